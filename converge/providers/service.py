"""
Long-running processes supervised by supervisord.

Each Service owns one `[program:<title>]` section in the supervisor
configuration directory. A refresh restarts the program.
"""
import os
from typing import Any, Dict, Optional

from converge.models.outcome import CurrentState
from converge.models.resource import ResourceKind
from converge.providers.base import Provider
from converge.providers.command import run_command

_KIND = ResourceKind.SERVICE.value

_PROGRAM_TEMPLATE = """\
; managed by converge
[program:{{ name }}]
command={{ command }}
{% if directory %}directory={{ directory }}
{% endif %}{% if user %}user={{ user }}
{% endif %}{% if environment %}environment={{ environment }}
{% endif %}autostart={{ autostart }}
autorestart=true
stopsignal={{ stopsignal }}
stopasgroup=true
killasgroup=true
redirect_stderr=true
"""


def format_environment(env: Optional[Dict[str, Any]]) -> str:
    """KEY="value" pairs in supervisor syntax, sorted for stable output."""
    if not env:
        return ""
    pairs = []
    for key in sorted(env):
        val = str(env[key]).replace("%", "%%").replace('"', '\\"')
        pairs.append(f'{key}="{val}"')
    return ",".join(pairs)


class Supervisor:
    def read_config(self, name: str) -> Optional[str]:
        raise NotImplementedError

    def write_config(self, name: str, text: str) -> None:
        raise NotImplementedError

    def remove_config(self, name: str) -> None:
        raise NotImplementedError

    def reload(self) -> None:
        raise NotImplementedError

    def status(self, name: str) -> Optional[str]:
        raise NotImplementedError

    def start(self, name: str) -> None:
        raise NotImplementedError

    def stop(self, name: str) -> None:
        raise NotImplementedError

    def restart(self, name: str) -> None:
        raise NotImplementedError


class Supervisord(Supervisor):
    def __init__(self, conf_dir: str = "/etc/supervisor/conf.d", supervisorctl: str = "supervisorctl",
                 filesystem=None):
        self.conf_dir = conf_dir
        self.supervisorctl = supervisorctl
        self.filesystem = filesystem

    def _path(self, name: str) -> str:
        return os.path.join(self.conf_dir, f"{name}.conf")

    def read_config(self, name):
        path = self._path(name)
        if self.filesystem.stat(path) is None:
            return None
        return self.filesystem.read(path)

    def write_config(self, name, text):
        self.filesystem.mkdir(self.conf_dir)
        self.filesystem.write(self._path(name), text)

    def remove_config(self, name):
        if self.filesystem.stat(self._path(name)) is not None:
            self.filesystem.remove(self._path(name))

    def reload(self):
        run_command([self.supervisorctl, "reread"], _KIND)
        run_command([self.supervisorctl, "update"], _KIND)

    def status(self, name):
        result = run_command([self.supervisorctl, "status", name], _KIND, check=False)
        fields = result.stdout.split()
        if len(fields) < 2 or "no such process" in result.stdout.lower():
            return None
        return fields[1].upper()

    def start(self, name):
        run_command([self.supervisorctl, "start", name], _KIND)

    def stop(self, name):
        run_command([self.supervisorctl, "stop", name], _KIND)

    def restart(self, name):
        run_command([self.supervisorctl, "restart", name], _KIND)


class ServiceProvider(Provider):
    kind = ResourceKind.SERVICE
    REQUIRED = ("command",)
    DEFAULTS = {
        "ensure": "running",
        "directory": None,
        "user": None,
        "environment": None,
        "autostart": True,
        "stopsignal": "TERM",
    }
    CHOICES = {"ensure": ("running", "stopped"), "autostart": (True, False)}

    @classmethod
    def validate(cls, attributes):
        problems = super().validate(attributes)
        env = attributes.get("environment")
        if env is not None and not isinstance(env, dict):
            problems.append("'environment' must be a mapping")
        return problems

    def desired_config(self) -> str:
        return self.host.templates.render_string(_PROGRAM_TEMPLATE, {
            "name": self.title,
            "command": self.attr("command"),
            "directory": self.attr("directory"),
            "user": self.attr("user"),
            "environment": format_environment(self.attr("environment")),
            "autostart": "true" if self.attr("autostart") else "false",
            "stopsignal": self.attr("stopsignal"),
        })

    def check(self) -> CurrentState:
        supervisor = self.host.supervisor
        diffs = []
        current = supervisor.read_config(self.title)
        if current is None:
            diffs.append("program not configured")
        elif current != self.desired_config():
            diffs.append("program config differs")
        status = supervisor.status(self.title) if current is not None else None
        running = status == "RUNNING"
        if self.attr("ensure") == "running" and not running:
            diffs.append(f"status {status or 'unknown'}, want RUNNING")
        if self.attr("ensure") == "stopped" and running:
            diffs.append("status RUNNING, want STOPPED")
        return CurrentState(not diffs, "; ".join(diffs) or (status or "configured"))

    def converge(self, state):
        supervisor = self.host.supervisor
        desired = self.desired_config()
        if supervisor.read_config(self.title) != desired:
            supervisor.write_config(self.title, desired)
            supervisor.reload()
        status = supervisor.status(self.title)
        if self.attr("ensure") == "running" and status != "RUNNING":
            supervisor.start(self.title)
        elif self.attr("ensure") == "stopped" and status == "RUNNING":
            supervisor.stop(self.title)

    def refresh(self):
        if self.attr("ensure") == "running":
            self.host.supervisor.restart(self.title)
