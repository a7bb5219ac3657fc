"""
Host settings read from the `settings` block of a declaration file.
"""
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from rich.console import Console
from rich.markup import escape

console = Console(stderr=True)


@dataclass
class Settings:
    package_provider: str = "apt"
    apt_get: str = "apt-get"
    dpkg_query: str = "dpkg-query"
    supervisor_conf_dir: str = "/etc/supervisor/conf.d"
    supervisorctl: str = "supervisorctl"
    nginx_conf_dir: str = "/etc/nginx/conf.d"
    nginx_reload_command: str = "nginx -s reload"
    postgres_user: str = "postgres"
    psql: str = "psql"
    git: str = "git"

    @classmethod
    def from_mapping(cls, data: Optional[Dict[str, Any]]) -> "Settings":
        known = {f.name for f in fields(cls)}
        values = {}
        for key, val in (data or {}).items():
            if key not in known:
                console.print(f"[yellow]Warning:[/yellow] unknown setting '{escape(str(key))}', ignoring.")
                continue
            values[key] = str(val)
        return cls(**values)
