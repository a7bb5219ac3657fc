"""
Error taxonomy.

BuildError and its subclasses are raised before anything is executed and
abort the whole run. ResourceError belongs to a single resource and is
recorded in the run results by the executor.
"""
from typing import List, Optional, Sequence

from converge.models.resource import ResourceId


class ConvergeError(Exception):
    pass


class BuildError(ConvergeError):
    """Malformed declaration: duplicate id, unknown kind, bad attributes."""


class UnknownReferenceError(BuildError):
    def __init__(self, reference: ResourceId, referrer: Optional[ResourceId] = None, relation: str = "require"):
        self.reference = reference
        self.referrer = referrer
        self.relation = relation
        if referrer is None:
            msg = f"unknown resource {reference}"
        else:
            msg = f"{referrer} has {relation} on undeclared resource {reference}"
        super().__init__(msg)


class CyclicDependencyError(BuildError):
    def __init__(self, cycle_path: Sequence[ResourceId]):
        self.cycle_path: List[ResourceId] = list(cycle_path)
        chain = " -> ".join(str(r) for r in self.cycle_path + self.cycle_path[:1])
        super().__init__(f"dependency cycle: {chain}")


class ResourceError(ConvergeError):
    def __init__(self, kind: str, message: str):
        self.kind = kind
        self.message = message
        super().__init__(f"{kind}: {message}")
