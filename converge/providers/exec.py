"""
Exec resources: run a shell command unless a guard says the work is done.

Guards: `creates` (path exists), `unless` (command succeeds), `onlyif`
(command fails). A `refreshonly` exec only runs when notified. Every exec
must declare at least one of these.
"""
from dataclasses import dataclass
from typing import Dict, Optional

from converge.models.outcome import CurrentState
from converge.models.resource import ResourceKind
from converge.providers.base import Provider
from converge.providers.command import run_command

_KIND = ResourceKind.EXEC.value


@dataclass
class CommandResult:
    returncode: int
    output: str = ""


class CommandRunner:
    def run(self, command: str, cwd: Optional[str] = None, user: Optional[str] = None,
            environment: Optional[Dict[str, str]] = None) -> CommandResult:
        raise NotImplementedError


class SubprocessRunner(CommandRunner):
    def __init__(self, shell: str = "/bin/sh"):
        self.shell = shell

    def run(self, command, cwd=None, user=None, environment=None):
        result = run_command(
            [self.shell, "-c", command], _KIND, user=user, cwd=cwd, env=environment, check=False
        )
        return CommandResult(result.returncode, (result.stdout or "") + (result.stderr or ""))


class ExecProvider(Provider):
    kind = ResourceKind.EXEC
    REQUIRED = ("command",)
    DEFAULTS = {
        "cwd": None,
        "user": None,
        "environment": None,
        "creates": None,
        "unless": None,
        "onlyif": None,
        "refreshonly": False,
    }
    CHOICES = {"refreshonly": (True, False)}

    @classmethod
    def validate(cls, attributes):
        problems = super().validate(attributes)
        env = attributes.get("environment")
        if env is not None and not isinstance(env, dict):
            problems.append("'environment' must be a mapping")
        if not any(attributes.get(g) for g in ("creates", "unless", "onlyif", "refreshonly")):
            problems.append("exec needs one of creates, unless, onlyif, refreshonly")
        return problems

    def _run(self, command: str) -> CommandResult:
        return self.host.commands.run(
            command, self.attr("cwd"), self.attr("user"), self.attr("environment")
        )

    def _satisfied(self) -> Optional[str]:
        """Return why the command need not run, or None if it should."""
        creates = self.attr("creates")
        if creates and self.host.filesystem.stat(creates) is not None:
            return f"{creates} exists"
        unless = self.attr("unless")
        if unless and self._run(unless).returncode == 0:
            return "'unless' succeeded"
        onlyif = self.attr("onlyif")
        if onlyif and self._run(onlyif).returncode != 0:
            return "'onlyif' failed"
        return None

    def _execute(self) -> None:
        result = self._run(self.attr("command"))
        if result.returncode != 0:
            tail = result.output.strip().splitlines()[-5:]
            raise self.fail(
                f"command exited with {result.returncode}" + (": " + " | ".join(tail) if tail else "")
            )

    def check(self) -> CurrentState:
        if self.attr("refreshonly"):
            return CurrentState(True, "runs on refresh only")
        reason = self._satisfied()
        if reason:
            return CurrentState(True, reason)
        return CurrentState(False, "command pending")

    def converge(self, state):
        self._execute()

    def refresh(self):
        if self._satisfied() is None:
            self._execute()
