"""
File resources: plain files (literal or templated content), directories,
and removal, with owner/group/mode.
"""
import grp
import os
import pwd
import stat
import tempfile
from dataclasses import dataclass
from typing import Any, List, Optional

from converge.errors import ResourceError
from converge.models.outcome import CurrentState
from converge.models.resource import ResourceKind
from converge.providers.base import Provider

_KIND = ResourceKind.FILE.value


@dataclass
class FileStat:
    type: str            # "file", "directory", "other"
    owner: str
    group: str
    mode: int            # permission bits only


def parse_mode(val: Any) -> Optional[int]:
    """'0644' / '644' are octal strings. Bare numbers are rejected, since
    JSON 644 and YAML 0644 decode to different values."""
    if val is None:
        return None
    if not isinstance(val, str):
        raise ValueError(f"invalid mode {val!r}")
    mode = int(val, 8)
    if mode > 0o7777:
        raise ValueError(f"invalid mode {val!r}")
    return mode


class Filesystem:
    def stat(self, path: str) -> Optional[FileStat]:
        raise NotImplementedError

    def read(self, path: str) -> str:
        raise NotImplementedError

    def write(self, path: str, content: str) -> None:
        raise NotImplementedError

    def mkdir(self, path: str) -> None:
        raise NotImplementedError

    def remove(self, path: str) -> None:
        raise NotImplementedError

    def chown(self, path: str, owner: Optional[str], group: Optional[str]) -> None:
        raise NotImplementedError

    def chmod(self, path: str, mode: int) -> None:
        raise NotImplementedError


def _user_name(uid: int) -> str:
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        return str(uid)


def _group_name(gid: int) -> str:
    try:
        return grp.getgrgid(gid).gr_name
    except KeyError:
        return str(gid)


class LocalFilesystem(Filesystem):
    def stat(self, path):
        try:
            st = os.lstat(path)
        except FileNotFoundError:
            return None
        if stat.S_ISREG(st.st_mode):
            ftype = "file"
        elif stat.S_ISDIR(st.st_mode):
            ftype = "directory"
        else:
            ftype = "other"
        return FileStat(ftype, _user_name(st.st_uid), _group_name(st.st_gid), stat.S_IMODE(st.st_mode))

    def read(self, path):
        with open(path, encoding="utf-8", newline="") as fh:
            return fh.read()

    def write(self, path, content):
        directory = os.path.dirname(os.path.abspath(path))
        try:
            fd, tmp = tempfile.mkstemp(dir=directory, prefix=".converge-")
        except OSError as exc:
            raise ResourceError(_KIND, f"cannot write {path}: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
                fh.write(content)
            if os.path.exists(path):
                os.chmod(tmp, stat.S_IMODE(os.stat(path).st_mode))
            else:
                os.chmod(tmp, 0o644)
            os.replace(tmp, path)
        except OSError as exc:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise ResourceError(_KIND, f"cannot write {path}: {exc}") from exc

    def mkdir(self, path):
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as exc:
            raise ResourceError(_KIND, f"cannot create directory {path}: {exc}") from exc

    def remove(self, path):
        try:
            if os.path.isdir(path) and not os.path.islink(path):
                os.rmdir(path)
            else:
                os.unlink(path)
        except OSError as exc:
            raise ResourceError(_KIND, f"cannot remove {path}: {exc}") from exc

    def chown(self, path, owner, group):
        try:
            uid = pwd.getpwnam(owner).pw_uid if owner else -1
            gid = grp.getgrnam(group).gr_gid if group else -1
            os.chown(path, uid, gid)
        except KeyError as exc:
            raise ResourceError(_KIND, f"unknown owner or group for {path}: {exc}") from exc
        except OSError as exc:
            raise ResourceError(_KIND, f"cannot chown {path}: {exc}") from exc

    def chmod(self, path, mode):
        try:
            os.chmod(path, mode)
        except OSError as exc:
            raise ResourceError(_KIND, f"cannot chmod {path}: {exc}") from exc


class FileProvider(Provider):
    kind = ResourceKind.FILE
    DEFAULTS = {
        "ensure": "file",
        "content": None,
        "template": None,
        "context": None,
        "owner": None,
        "group": None,
        "mode": None,
    }
    CHOICES = {"ensure": ("file", "directory", "absent")}

    @classmethod
    def validate(cls, attributes):
        problems = super().validate(attributes)
        if attributes.get("content") is not None and attributes.get("template"):
            problems.append("'content' and 'template' are mutually exclusive")
        if attributes.get("context") is not None and not isinstance(attributes["context"], dict):
            problems.append("'context' must be a mapping")
        try:
            parse_mode(attributes.get("mode"))
        except ValueError:
            problems.append(f"'mode' must be a quoted octal string such as '0644', got {attributes.get('mode')!r}")
        return problems

    @property
    def path(self) -> str:
        return self.title

    def desired_content(self) -> Optional[str]:
        if self.attr("template"):
            context = dict(self.variables)
            context.update(self.attr("context") or {})
            return self.host.templates.render(self.attr("template"), context)
        content = self.attr("content")
        return None if content is None else str(content)

    def _differences(self, current: Optional[FileStat]) -> List[str]:
        ensure = self.attr("ensure")
        fs = self.host.filesystem
        if ensure == "absent":
            return [] if current is None else [f"{current.type} present"]
        if current is None:
            return ["missing"]
        if current.type != ensure:
            return [f"is a {current.type}, want {ensure}"]

        diffs = []
        if ensure == "file":
            content = self.desired_content()
            if content is not None and fs.read(self.path) != content:
                diffs.append("content differs")
        owner, group = self.attr("owner"), self.attr("group")
        if owner and current.owner != str(owner):
            diffs.append(f"owner {current.owner}, want {owner}")
        if group and current.group != str(group):
            diffs.append(f"group {current.group}, want {group}")
        mode = parse_mode(self.attr("mode"))
        if mode is not None and current.mode != mode:
            diffs.append(f"mode {current.mode:04o}, want {mode:04o}")
        return diffs

    def check(self) -> CurrentState:
        diffs = self._differences(self.host.filesystem.stat(self.path))
        return CurrentState(not diffs, "; ".join(diffs) or "in sync")

    def converge(self, state):
        fs = self.host.filesystem
        ensure = self.attr("ensure")
        current = fs.stat(self.path)

        if ensure == "absent":
            fs.remove(self.path)
            return

        if current is not None and current.type != ensure:
            raise self.fail(f"refusing to replace a {current.type} with a {ensure}")

        if ensure == "directory":
            if current is None:
                fs.mkdir(self.path)
        else:
            content = self.desired_content()
            if current is None or (content is not None and fs.read(self.path) != content):
                fs.write(self.path, content or "")

        owner, group = self.attr("owner"), self.attr("group")
        if owner or group:
            fs.chown(self.path, owner and str(owner), group and str(group))
        mode = parse_mode(self.attr("mode"))
        if mode is not None:
            fs.chmod(self.path, mode)
