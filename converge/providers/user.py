"""
System user accounts.
"""
import grp
import pwd
from dataclasses import dataclass, field
from typing import List, Optional

from converge.models.outcome import CurrentState
from converge.models.resource import ResourceKind
from converge.providers.base import Provider
from converge.providers.command import run_command

_KIND = ResourceKind.USER.value


@dataclass
class UserEntry:
    name: str
    home: str
    shell: str
    groups: List[str] = field(default_factory=list)


class UserDatabase:
    def lookup(self, name: str) -> Optional[UserEntry]:
        raise NotImplementedError

    def create(self, name: str, home: Optional[str], shell: Optional[str], system: bool, groups: List[str]) -> None:
        raise NotImplementedError

    def modify(self, name: str, home: Optional[str], shell: Optional[str], groups: Optional[List[str]]) -> None:
        raise NotImplementedError

    def delete(self, name: str) -> None:
        raise NotImplementedError


class PasswdUserDatabase(UserDatabase):
    def lookup(self, name):
        try:
            entry = pwd.getpwnam(name)
        except KeyError:
            return None
        groups = sorted(g.gr_name for g in grp.getgrall() if name in g.gr_mem)
        return UserEntry(entry.pw_name, entry.pw_dir, entry.pw_shell, groups)

    def create(self, name, home, shell, system, groups):
        argv = ["useradd"]
        if system:
            argv.append("--system")
        if home:
            argv += ["--home-dir", home, "--create-home"]
        if shell:
            argv += ["--shell", shell]
        if groups:
            argv += ["--groups", ",".join(groups)]
        run_command(argv + [name], _KIND)

    def modify(self, name, home, shell, groups):
        argv = ["usermod"]
        if home:
            argv += ["--home", home, "--move-home"]
        if shell:
            argv += ["--shell", shell]
        if groups is not None:
            argv += ["--groups", ",".join(groups)]
        run_command(argv + [name], _KIND)

    def delete(self, name):
        run_command(["userdel", name], _KIND)


class UserProvider(Provider):
    kind = ResourceKind.USER
    DEFAULTS = {"ensure": "present", "home": None, "shell": None, "system": False, "groups": None}
    CHOICES = {"ensure": ("present", "absent"), "system": (True, False)}

    def _groups(self) -> Optional[List[str]]:
        groups = self.attr("groups")
        if groups is None:
            return None
        if isinstance(groups, str):
            groups = [groups]
        return sorted(str(g) for g in groups)

    def check(self) -> CurrentState:
        entry = self.host.users.lookup(self.title)
        if self.attr("ensure") == "absent":
            return CurrentState(entry is None, "present" if entry else "absent")
        if entry is None:
            return CurrentState(False, "missing")

        diffs = []
        if self.attr("home") and entry.home != self.attr("home"):
            diffs.append(f"home {entry.home}, want {self.attr('home')}")
        if self.attr("shell") and entry.shell != self.attr("shell"):
            diffs.append(f"shell {entry.shell}, want {self.attr('shell')}")
        groups = self._groups()
        if groups is not None and sorted(entry.groups) != groups:
            diffs.append(f"groups {','.join(entry.groups)}, want {','.join(groups)}")
        return CurrentState(not diffs, "; ".join(diffs) or "present")

    def converge(self, state):
        users = self.host.users
        if self.attr("ensure") == "absent":
            users.delete(self.title)
        elif users.lookup(self.title) is None:
            users.create(
                self.title, self.attr("home"), self.attr("shell"), bool(self.attr("system")), self._groups() or []
            )
        else:
            users.modify(self.title, self.attr("home"), self.attr("shell"), self._groups())
