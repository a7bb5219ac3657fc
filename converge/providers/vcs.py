"""
Source checkouts (git).

`ensure: present` clones when the checkout is missing and pins it when the
revision is a full commit id. `ensure: latest` also follows the remote
branch or tag on every run.
"""
import os
import re
from typing import Dict, Optional

from converge.errors import ResourceError
from converge.models.outcome import CurrentState
from converge.models.resource import ResourceKind
from converge.providers.base import Provider
from converge.providers.command import run_command

_KIND = ResourceKind.VCS_CHECKOUT.value
_SHA_RE = re.compile(r"^[0-9a-f]{40}$")


def is_commit_id(revision: Optional[str]) -> bool:
    return bool(revision) and bool(_SHA_RE.match(str(revision)))


class VcsClient:
    def head(self, path: str, user: Optional[str] = None) -> Optional[str]:
        raise NotImplementedError

    def remote_head(self, source: str, revision: Optional[str], identity: Optional[str] = None,
                    user: Optional[str] = None) -> str:
        raise NotImplementedError

    def clone(self, source: str, path: str, revision: Optional[str], identity: Optional[str] = None,
              user: Optional[str] = None) -> None:
        raise NotImplementedError

    def update(self, path: str, commit: str, identity: Optional[str] = None, user: Optional[str] = None) -> None:
        raise NotImplementedError


class GitClient(VcsClient):
    def __init__(self, git: str = "git"):
        self.git = git

    @staticmethod
    def _env(identity: Optional[str]) -> Optional[Dict[str, str]]:
        if not identity:
            return None
        return {"GIT_SSH_COMMAND": f"ssh -i {identity} -o IdentitiesOnly=yes -o StrictHostKeyChecking=accept-new"}

    def head(self, path, user=None):
        if not os.path.isdir(os.path.join(path, ".git")):
            return None
        result = run_command([self.git, "-C", path, "rev-parse", "HEAD"], _KIND, user=user, check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def remote_head(self, source, revision, identity=None, user=None):
        if is_commit_id(revision):
            return revision
        wanted = revision or "HEAD"
        result = run_command(
            [self.git, "ls-remote", source, wanted], _KIND, user=user, env=self._env(identity)
        )
        refs = {}
        for line in result.stdout.splitlines():
            sha, _, ref = line.partition("\t")
            refs[ref.strip()] = sha.strip()
        # peeled annotated tags point at the commit, not the tag object
        for ref in (f"refs/tags/{wanted}^{{}}", f"refs/heads/{wanted}", f"refs/tags/{wanted}", wanted):
            if ref in refs:
                return refs[ref]
        raise ResourceError(_KIND, f"revision '{wanted}' not found in {source}")

    def clone(self, source, path, revision, identity=None, user=None):
        argv = [self.git, "clone", "--quiet"]
        if revision and not is_commit_id(revision):
            argv += ["--branch", revision]
        run_command(argv + [source, path], _KIND, user=user, env=self._env(identity))
        if is_commit_id(revision):
            run_command([self.git, "-C", path, "checkout", "--quiet", revision], _KIND, user=user)

    def update(self, path, commit, identity=None, user=None):
        run_command(
            [self.git, "-C", path, "fetch", "--quiet", "--tags", "origin"], _KIND, user=user, env=self._env(identity)
        )
        run_command([self.git, "-C", path, "reset", "--quiet", "--hard", commit], _KIND, user=user)


class VcsCheckoutProvider(Provider):
    kind = ResourceKind.VCS_CHECKOUT
    REQUIRED = ("source",)
    DEFAULTS = {"ensure": "present", "revision": None, "user": None, "identity": None}
    CHOICES = {"ensure": ("present", "latest")}

    @property
    def path(self) -> str:
        return self.title

    def _target(self) -> Optional[str]:
        revision = self.attr("revision")
        if is_commit_id(revision):
            return revision
        if self.attr("ensure") == "latest":
            return self.host.vcs.remote_head(
                self.attr("source"), revision, self.attr("identity"), self.attr("user")
            )
        return None

    def check(self) -> CurrentState:
        current = self.host.vcs.head(self.path, self.attr("user"))
        if current is None:
            return CurrentState(False, "not checked out")
        target = self._target()
        if target and current != target:
            return CurrentState(False, f"at {current[:12]}, want {target[:12]}")
        return CurrentState(True, f"at {current[:12]}")

    def converge(self, state):
        vcs = self.host.vcs
        identity, user = self.attr("identity"), self.attr("user")
        if vcs.head(self.path, user) is None:
            vcs.clone(self.attr("source"), self.path, self.attr("revision"), identity, user)
        target = self._target()
        if target and vcs.head(self.path, user) != target:
            vcs.update(self.path, target, identity, user)
