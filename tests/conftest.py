"""
In-memory host collaborators, so providers and the executor can be
exercised without touching the machine running the tests.
"""
import os

import pytest

from converge.config import Settings
from converge.errors import ResourceError
from converge.providers.database import DatabaseAdmin
from converge.providers.exec import CommandResult, CommandRunner
from converge.providers.file import FileStat, Filesystem
from converge.providers.host import Host
from converge.providers.package import PackageManager
from converge.providers.proxy import ProxyConfigurator
from converge.providers.service import Supervisor
from converge.providers.user import UserDatabase, UserEntry
from converge.providers.vcs import VcsClient
from converge.templates import TemplateRenderer

FIXTURES = os.path.join(os.path.dirname(__file__), "fixtures")


class FakePackages(PackageManager):
    def __init__(self):
        self.installed = {}
        self.calls = []
        self.unavailable = set()

    def installed_version(self, name, virtualenv=None):
        return self.installed.get((virtualenv, name))

    def install(self, name, version=None, virtualenv=None):
        self.calls.append(("install", name, version))
        if name in self.unavailable:
            raise ResourceError("Package", f"unable to locate package {name}")
        self.installed[(virtualenv, name)] = version or "1.0"

    def remove(self, name, virtualenv=None):
        self.calls.append(("remove", name, None))
        self.installed.pop((virtualenv, name), None)


class FakeFilesystem(Filesystem):
    def __init__(self):
        self.entries = {}
        self.writes = []

    def stat(self, path):
        entry = self.entries.get(path)
        if entry is None:
            return None
        return FileStat(entry["type"], entry["owner"], entry["group"], entry["mode"])

    def read(self, path):
        return self.entries[path]["content"]

    def write(self, path, content):
        self.writes.append(path)
        entry = self.entries.setdefault(path, {"type": "file", "owner": "root", "group": "root", "mode": 0o644})
        entry["content"] = content

    def mkdir(self, path):
        self.entries.setdefault(path, {"type": "directory", "owner": "root", "group": "root", "mode": 0o755})

    def remove(self, path):
        self.entries.pop(path, None)

    def chown(self, path, owner, group):
        if owner:
            self.entries[path]["owner"] = owner
        if group:
            self.entries[path]["group"] = group

    def chmod(self, path, mode):
        self.entries[path]["mode"] = mode


class FakeUsers(UserDatabase):
    def __init__(self):
        self.users = {}

    def lookup(self, name):
        return self.users.get(name)

    def create(self, name, home, shell, system, groups):
        self.users[name] = UserEntry(name, home or f"/home/{name}", shell or "/bin/sh", list(groups))

    def modify(self, name, home, shell, groups):
        entry = self.users[name]
        if home:
            entry.home = home
        if shell:
            entry.shell = shell
        if groups is not None:
            entry.groups = list(groups)

    def delete(self, name):
        self.users.pop(name, None)


class FakeVcs(VcsClient):
    def __init__(self):
        self.checkouts = {}
        self.remote = {}
        self.calls = []

    def head(self, path, user=None):
        return self.checkouts.get(path)

    def remote_head(self, source, revision, identity=None, user=None):
        key = (source, revision or "HEAD")
        if key not in self.remote:
            raise ResourceError("VcsCheckout", f"could not read from remote repository {source}")
        return self.remote[key]

    def clone(self, source, path, revision, identity=None, user=None):
        self.calls.append(("clone", source, path, revision, identity, user))
        if revision and len(revision) == 40:
            self.checkouts[path] = revision
        else:
            self.checkouts[path] = self.remote_head(source, revision)

    def update(self, path, commit, identity=None, user=None):
        self.calls.append(("update", path, commit))
        self.checkouts[path] = commit


class FakeCommands(CommandRunner):
    """Commands succeed unless listed in `exit_codes`; `effects` run on success."""

    def __init__(self):
        self.exit_codes = {}
        self.effects = {}
        self.ran = []

    def run(self, command, cwd=None, user=None, environment=None):
        self.ran.append(command)
        code = self.exit_codes.get(command, 0)
        if code == 0 and command in self.effects:
            self.effects[command]()
        return CommandResult(code, f"output of {command}\n")


class FakeSupervisor(Supervisor):
    def __init__(self):
        self.configs = {}
        self.states = {}
        self.restarts = []
        self.reloads = 0

    def read_config(self, name):
        return self.configs.get(name)

    def write_config(self, name, text):
        self.configs[name] = text

    def remove_config(self, name):
        self.configs.pop(name, None)

    def reload(self):
        self.reloads += 1
        for name in self.configs:
            self.states.setdefault(name, "STOPPED")

    def status(self, name):
        return self.states.get(name)

    def start(self, name):
        self.states[name] = "RUNNING"

    def stop(self, name):
        self.states[name] = "STOPPED"

    def restart(self, name):
        self.restarts.append(name)
        self.states[name] = "RUNNING"


class FakeDatabase(DatabaseAdmin):
    def __init__(self):
        self.roles = {}
        self.databases = {}

    def role_exists(self, name):
        return name in self.roles

    def create_role(self, name, password):
        self.roles[name] = password

    def database_owner(self, name):
        return self.databases.get(name)

    def create_database(self, name, owner, encoding=None):
        self.databases[name] = owner

    def set_owner(self, name, owner):
        self.databases[name] = owner

    def drop_database(self, name):
        self.databases.pop(name, None)


class FakeProxy(ProxyConfigurator):
    def __init__(self):
        self.configs = {}
        self.reloads = 0

    def read(self, name):
        return self.configs.get(name)

    def write(self, name, text):
        self.configs[name] = text

    def remove(self, name):
        self.configs.pop(name, None)

    def reload(self):
        self.reloads += 1


def make_host(template_dir=FIXTURES):
    return Host(
        packages=FakePackages(),
        pip=FakePackages(),
        filesystem=FakeFilesystem(),
        users=FakeUsers(),
        vcs=FakeVcs(),
        commands=FakeCommands(),
        supervisor=FakeSupervisor(),
        database=FakeDatabase(),
        proxy=FakeProxy(),
        templates=TemplateRenderer([template_dir]),
        settings=Settings(),
    )


@pytest.fixture
def host():
    return make_host()
