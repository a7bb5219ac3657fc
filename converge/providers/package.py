"""
Package resources: system packages through apt, Python packages through a
virtualenv's pip.
"""
import os
from typing import Optional

from converge.errors import ResourceError
from converge.models.outcome import CurrentState
from converge.models.resource import ResourceKind
from converge.providers.base import Provider
from converge.providers.command import run_command

_KIND = ResourceKind.PACKAGE.value


class PackageManager:
    def installed_version(self, name: str, virtualenv: Optional[str] = None) -> Optional[str]:
        raise NotImplementedError

    def install(self, name: str, version: Optional[str] = None, virtualenv: Optional[str] = None) -> None:
        raise NotImplementedError

    def remove(self, name: str, virtualenv: Optional[str] = None) -> None:
        raise NotImplementedError


class AptPackageManager(PackageManager):
    def __init__(self, apt_get: str = "apt-get", dpkg_query: str = "dpkg-query"):
        self.apt_get = apt_get
        self.dpkg_query = dpkg_query

    def installed_version(self, name, virtualenv=None):
        result = run_command(
            [self.dpkg_query, "-W", "-f=${Status}\t${Version}", name], _KIND, check=False
        )
        if result.returncode != 0:
            return None
        status, _, version = result.stdout.partition("\t")
        if not status.endswith("installed") or status.endswith("not-installed"):
            return None
        return version.strip() or None

    def install(self, name, version=None, virtualenv=None):
        target = f"{name}={version}" if version else name
        run_command(
            [self.apt_get, "install", "-y", "-q", target],
            _KIND,
            env={"DEBIAN_FRONTEND": "noninteractive"},
        )

    def remove(self, name, virtualenv=None):
        run_command([self.apt_get, "remove", "-y", "-q", name], _KIND)


class PipPackageManager(PackageManager):
    """pip inside a virtualenv; the virtualenv path is required."""

    @staticmethod
    def _pip(virtualenv: Optional[str]) -> str:
        if not virtualenv:
            raise ResourceError(_KIND, "pip packages need a 'virtualenv' attribute")
        return os.path.join(virtualenv, "bin", "pip")

    def installed_version(self, name, virtualenv=None):
        pip = self._pip(virtualenv)
        if not os.path.exists(pip):
            return None
        result = run_command([pip, "show", name], _KIND, check=False)
        if result.returncode != 0:
            return None
        for line in result.stdout.splitlines():
            if line.lower().startswith("version:"):
                return line.split(":", 1)[1].strip()
        return None

    def install(self, name, version=None, virtualenv=None):
        target = f"{name}=={version}" if version else name
        run_command([self._pip(virtualenv), "install", "-q", target], _KIND)

    def remove(self, name, virtualenv=None):
        run_command([self._pip(virtualenv), "uninstall", "-y", "-q", name], _KIND)


class PackageProvider(Provider):
    kind = ResourceKind.PACKAGE
    DEFAULTS = {"ensure": "present", "provider": None, "virtualenv": None}

    @classmethod
    def validate(cls, attributes):
        problems = super().validate(attributes)
        if attributes.get("provider") not in (None, "apt", "pip"):
            problems.append("'provider' must be one of: apt, pip")
        if attributes.get("provider") == "pip" and not attributes.get("virtualenv"):
            problems.append("pip packages need a 'virtualenv' attribute")
        return problems

    def _manager(self) -> PackageManager:
        provider = self.attr("provider") or self.host.settings.package_provider
        return self.host.pip if provider == "pip" else self.host.packages

    def _wanted_version(self) -> Optional[str]:
        ensure = str(self.attr("ensure"))
        return None if ensure in ("present", "absent", "installed") else ensure

    def check(self) -> CurrentState:
        current = self._manager().installed_version(self.title, self.attr("virtualenv"))
        ensure = str(self.attr("ensure"))
        if ensure == "absent":
            return CurrentState(current is None, f"installed {current}" if current else "absent")
        if current is None:
            return CurrentState(False, "not installed")
        wanted = self._wanted_version()
        if wanted and current != wanted:
            return CurrentState(False, f"installed {current}, want {wanted}")
        return CurrentState(True, f"installed {current}")

    def converge(self, state):
        manager = self._manager()
        if str(self.attr("ensure")) == "absent":
            manager.remove(self.title, self.attr("virtualenv"))
        else:
            manager.install(self.title, self._wanted_version(), self.attr("virtualenv"))
