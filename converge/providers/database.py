"""
PostgreSQL databases and their owning roles.
"""
from typing import Optional

from converge.models.outcome import CurrentState
from converge.models.resource import ResourceKind
from converge.providers.base import Provider
from converge.providers.command import run_command

_KIND = ResourceKind.DB_DATABASE.value


def quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def quote_literal(val: str) -> str:
    return "'" + val.replace("'", "''") + "'"


class DatabaseAdmin:
    def role_exists(self, name: str) -> bool:
        raise NotImplementedError

    def create_role(self, name: str, password: Optional[str]) -> None:
        raise NotImplementedError

    def database_owner(self, name: str) -> Optional[str]:
        raise NotImplementedError

    def create_database(self, name: str, owner: str, encoding: Optional[str] = None) -> None:
        raise NotImplementedError

    def set_owner(self, name: str, owner: str) -> None:
        raise NotImplementedError

    def drop_database(self, name: str) -> None:
        raise NotImplementedError


class PostgresAdmin(DatabaseAdmin):
    def __init__(self, psql: str = "psql", user: str = "postgres"):
        self.psql = psql
        self.user = user

    def _query(self, sql: str) -> str:
        result = run_command(
            [self.psql, "-X", "-q", "-t", "-A", "-v", "ON_ERROR_STOP=1", "-d", "postgres", "-c", sql],
            _KIND,
            user=self.user,
        )
        return result.stdout.strip()

    def role_exists(self, name):
        return self._query(f"SELECT 1 FROM pg_roles WHERE rolname = {quote_literal(name)}") == "1"

    def create_role(self, name, password):
        sql = f"CREATE ROLE {quote_ident(name)} LOGIN"
        if password:
            sql += f" PASSWORD {quote_literal(password)}"
        self._query(sql)

    def database_owner(self, name):
        owner = self._query(
            "SELECT pg_get_userbyid(datdba) FROM pg_database "
            f"WHERE datname = {quote_literal(name)}"
        )
        return owner or None

    def create_database(self, name, owner, encoding=None):
        sql = f"CREATE DATABASE {quote_ident(name)} OWNER {quote_ident(owner)}"
        if encoding:
            sql += f" ENCODING {quote_literal(encoding)} TEMPLATE template0"
        self._query(sql)

    def set_owner(self, name, owner):
        self._query(f"ALTER DATABASE {quote_ident(name)} OWNER TO {quote_ident(owner)}")

    def drop_database(self, name):
        self._query(f"DROP DATABASE {quote_ident(name)}")


class DbDatabaseProvider(Provider):
    kind = ResourceKind.DB_DATABASE
    REQUIRED = ("owner",)
    DEFAULTS = {"ensure": "present", "password": None, "encoding": None}
    CHOICES = {"ensure": ("present", "absent")}

    def check(self) -> CurrentState:
        db = self.host.database
        owner = db.database_owner(self.title)
        if self.attr("ensure") == "absent":
            return CurrentState(owner is None, "present" if owner else "absent")

        diffs = []
        if not db.role_exists(self.attr("owner")):
            diffs.append(f"role {self.attr('owner')} missing")
        if owner is None:
            diffs.append("database missing")
        elif owner != self.attr("owner"):
            diffs.append(f"owned by {owner}, want {self.attr('owner')}")
        return CurrentState(not diffs, "; ".join(diffs) or f"owned by {owner}")

    def converge(self, state):
        db = self.host.database
        if self.attr("ensure") == "absent":
            db.drop_database(self.title)
            return
        owner = self.attr("owner")
        if not db.role_exists(owner):
            db.create_role(owner, self.attr("password"))
        current = db.database_owner(self.title)
        if current is None:
            db.create_database(self.title, owner, self.attr("encoding"))
        elif current != owner:
            db.set_owner(self.title, owner)
