from typing import Dict, Type

from converge.models.resource import ResourceKind
from converge.providers.base import Provider
from converge.providers.database import DbDatabaseProvider
from converge.providers.exec import ExecProvider
from converge.providers.file import FileProvider
from converge.providers.package import PackageProvider
from converge.providers.proxy import ReverseProxyUpstreamProvider
from converge.providers.service import ServiceProvider
from converge.providers.user import UserProvider
from converge.providers.vcs import VcsCheckoutProvider

PROVIDERS: Dict[ResourceKind, Type[Provider]] = {
    ResourceKind.PACKAGE:                PackageProvider,
    ResourceKind.FILE:                   FileProvider,
    ResourceKind.USER:                   UserProvider,
    ResourceKind.VCS_CHECKOUT:           VcsCheckoutProvider,
    ResourceKind.EXEC:                   ExecProvider,
    ResourceKind.SERVICE:                ServiceProvider,
    ResourceKind.DB_DATABASE:            DbDatabaseProvider,
    ResourceKind.REVERSE_PROXY_UPSTREAM: ReverseProxyUpstreamProvider,
}
