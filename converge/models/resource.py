import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, NamedTuple


class ResourceKind(str, Enum):
    PACKAGE                = "Package"
    FILE                   = "File"
    USER                   = "User"
    VCS_CHECKOUT           = "VcsCheckout"
    EXEC                   = "Exec"
    SERVICE                = "Service"
    DB_DATABASE            = "DbDatabase"
    REVERSE_PROXY_UPSTREAM = "ReverseProxyUpstream"

    @classmethod
    def lookup(cls, name: str) -> "ResourceKind":
        """Resolve a kind from its declared name, case-insensitively."""
        wanted = name.strip().lower()
        for kind in cls:
            if kind.value.lower() == wanted:
                return kind
        raise ValueError(f"unknown resource kind '{name}'")


# e.g. "User[alice]" or "File[/etc/app/settings.py]"
_REF_RE = re.compile(r"^\s*([A-Za-z]+)\[(.+)\]\s*$")


class ResourceId(NamedTuple):
    kind: ResourceKind
    title: str

    def __str__(self) -> str:
        return f"{self.kind.value}[{self.title}]"

    @classmethod
    def parse(cls, ref: str) -> "ResourceId":
        m = _REF_RE.match(ref)
        if not m:
            raise ValueError(f"malformed resource reference '{ref}' (expected Kind[title])")
        return cls(ResourceKind.lookup(m.group(1)), m.group(2).strip())


@dataclass
class Resource:
    kind: ResourceKind
    title: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    dependencies: List[ResourceId] = field(default_factory=list)   # require
    notifies: List[ResourceId] = field(default_factory=list)       # notify
    source_file: str = ""
    position: int = 0            # index in the declaration

    @property
    def id(self) -> ResourceId:
        return ResourceId(self.kind, self.title)

    def __str__(self) -> str:
        return str(self.id)
