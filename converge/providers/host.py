"""
The set of collaborators providers use to inspect and change the host.
"""
import os
from dataclasses import dataclass, field
from typing import Optional

from converge.config import Settings
from converge.providers.database import DatabaseAdmin, PostgresAdmin
from converge.providers.exec import CommandRunner, SubprocessRunner
from converge.providers.file import Filesystem, LocalFilesystem
from converge.providers.package import AptPackageManager, PackageManager, PipPackageManager
from converge.providers.proxy import NginxConfigurator, ProxyConfigurator
from converge.providers.service import Supervisor, Supervisord
from converge.providers.user import PasswdUserDatabase, UserDatabase
from converge.providers.vcs import GitClient, VcsClient
from converge.templates import TemplateRenderer


@dataclass
class Host:
    packages: PackageManager
    pip: PackageManager
    filesystem: Filesystem
    users: UserDatabase
    vcs: VcsClient
    commands: CommandRunner
    supervisor: Supervisor
    database: DatabaseAdmin
    proxy: ProxyConfigurator
    templates: TemplateRenderer
    settings: Settings = field(default_factory=Settings)

    @classmethod
    def local(cls, settings: Optional[Settings] = None, template_dir: Optional[str] = None) -> "Host":
        """Collaborators that act on the machine converge runs on."""
        settings = settings or Settings()
        filesystem = LocalFilesystem()
        return cls(
            packages=AptPackageManager(settings.apt_get, settings.dpkg_query),
            pip=PipPackageManager(),
            filesystem=filesystem,
            users=PasswdUserDatabase(),
            vcs=GitClient(settings.git),
            commands=SubprocessRunner(),
            supervisor=Supervisord(settings.supervisor_conf_dir, settings.supervisorctl, filesystem),
            database=PostgresAdmin(settings.psql, settings.postgres_user),
            proxy=NginxConfigurator(settings.nginx_conf_dir, settings.nginx_reload_command, filesystem),
            templates=TemplateRenderer([os.path.abspath(template_dir or ".")]),
            settings=settings,
        )
