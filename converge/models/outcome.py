from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from converge.models.resource import ResourceId


class Outcome(str, Enum):
    UNCHANGED = "Unchanged"
    CHANGED   = "Changed"
    FAILED    = "Failed"
    SKIPPED   = "Skipped"

    @property
    def converged(self) -> bool:
        return self in (Outcome.UNCHANGED, Outcome.CHANGED)


class RunStatus(str, Enum):
    SUCCESS = "Success"
    FAILURE = "Failure"


@dataclass
class CurrentState:
    """Result of a read-only probe of the live system."""
    converged: bool
    detail: str = ""


@dataclass
class ResourceResult:
    resource_id: ResourceId
    outcome: Outcome
    reason: Optional[str] = None
    noop: bool = False                # dry run: change detected, not applied
    refreshed: bool = False
    refreshed_by: List[ResourceId] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "resource": str(self.resource_id),
            "kind": self.resource_id.kind.value,
            "title": self.resource_id.title,
            "outcome": self.outcome.value,
            "reason": self.reason,
            "noop": self.noop,
            "refreshed": self.refreshed,
            "refreshed_by": [str(r) for r in self.refreshed_by],
        }
