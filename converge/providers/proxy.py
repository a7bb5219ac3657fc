"""
Reverse-proxy upstream definitions (nginx).
"""
import os
import shlex
from typing import List, Optional

from converge.models.outcome import CurrentState
from converge.models.resource import ResourceKind
from converge.providers.base import Provider
from converge.providers.command import run_command

_KIND = ResourceKind.REVERSE_PROXY_UPSTREAM.value

_UPSTREAM_TEMPLATE = """\
# managed by converge
upstream {{ name }} {
{% for server in servers %}    server {{ server }};
{% endfor %}}
"""


class ProxyConfigurator:
    def read(self, name: str) -> Optional[str]:
        raise NotImplementedError

    def write(self, name: str, text: str) -> None:
        raise NotImplementedError

    def remove(self, name: str) -> None:
        raise NotImplementedError

    def reload(self) -> None:
        raise NotImplementedError


class NginxConfigurator(ProxyConfigurator):
    def __init__(self, conf_dir: str = "/etc/nginx/conf.d", reload_command: str = "nginx -s reload",
                 filesystem=None):
        self.conf_dir = conf_dir
        self.reload_command = reload_command
        self.filesystem = filesystem

    def _path(self, name: str) -> str:
        return os.path.join(self.conf_dir, f"upstream-{name}.conf")

    def read(self, name):
        path = self._path(name)
        if self.filesystem.stat(path) is None:
            return None
        return self.filesystem.read(path)

    def write(self, name, text):
        self.filesystem.mkdir(self.conf_dir)
        self.filesystem.write(self._path(name), text)

    def remove(self, name):
        if self.filesystem.stat(self._path(name)) is not None:
            self.filesystem.remove(self._path(name))

    def reload(self):
        run_command(shlex.split(self.reload_command), _KIND)


class ReverseProxyUpstreamProvider(Provider):
    kind = ResourceKind.REVERSE_PROXY_UPSTREAM
    REQUIRED = ("servers",)
    DEFAULTS = {"ensure": "present"}
    CHOICES = {"ensure": ("present", "absent")}

    @classmethod
    def validate(cls, attributes):
        problems = super().validate(attributes)
        servers = attributes.get("servers")
        if servers is not None and not isinstance(servers, (list, str)):
            problems.append("'servers' must be a list of addresses")
        return problems

    def _servers(self) -> List[str]:
        servers = self.attr("servers")
        if isinstance(servers, str):
            servers = [servers]
        return [str(s) for s in servers]

    def desired_config(self) -> str:
        return self.host.templates.render_string(
            _UPSTREAM_TEMPLATE, {"name": self.title, "servers": self._servers()}
        )

    def check(self) -> CurrentState:
        current = self.host.proxy.read(self.title)
        if self.attr("ensure") == "absent":
            return CurrentState(current is None, "defined" if current is not None else "absent")
        if current is None:
            return CurrentState(False, "upstream not defined")
        if current != self.desired_config():
            return CurrentState(False, "upstream definition differs")
        return CurrentState(True, f"{len(self._servers())} server(s)")

    def converge(self, state):
        proxy = self.host.proxy
        if self.attr("ensure") == "absent":
            proxy.remove(self.title)
        else:
            proxy.write(self.title, self.desired_config())
        proxy.reload()

    def refresh(self):
        self.host.proxy.reload()
