"""
Provider contract shared by every resource kind.

A provider wraps one declared resource. check() only reads live state;
apply() converges it and is a no-op when check() already reports the
resource converged. Failures surface as ResourceError.
"""
from typing import Any, Dict, List, Optional, Tuple

from converge.errors import ResourceError
from converge.models.outcome import CurrentState, Outcome
from converge.models.resource import Resource, ResourceKind


class Provider:
    kind: ResourceKind
    REQUIRED: Tuple[str, ...] = ()
    DEFAULTS: Dict[str, Any] = {}
    CHOICES: Dict[str, Tuple[Any, ...]] = {}

    def __init__(self, resource: Resource, host: "Host", variables: Optional[Dict[str, Any]] = None):
        self.resource = resource
        self.host = host
        self.variables = dict(variables or {})
        self.last_state: Optional[CurrentState] = None

    @classmethod
    def validate(cls, attributes: Dict[str, Any]) -> List[str]:
        """Return a list of problems with a resource's declared attributes."""
        problems = []
        allowed = set(cls.REQUIRED) | set(cls.DEFAULTS)
        for name in sorted(attributes):
            if name not in allowed:
                problems.append(f"unknown attribute '{name}'")
        for name in cls.REQUIRED:
            if attributes.get(name) in (None, ""):
                problems.append(f"missing required attribute '{name}'")
        for name, choices in cls.CHOICES.items():
            if name in attributes and attributes[name] not in choices:
                shown = ", ".join(str(c) for c in choices)
                problems.append(f"'{name}' must be one of: {shown}")
        return problems

    @property
    def title(self) -> str:
        return self.resource.title

    def attr(self, name: str) -> Any:
        if name in self.resource.attributes:
            return self.resource.attributes[name]
        return self.DEFAULTS.get(name)

    def fail(self, message: str) -> ResourceError:
        return ResourceError(self.kind.value, f"{self.resource.id}: {message}")

    def check(self) -> CurrentState:
        raise NotImplementedError

    def converge(self, state: CurrentState) -> None:
        raise NotImplementedError

    def apply(self) -> Outcome:
        state = self.check()
        self.last_state = state
        if state.converged:
            return Outcome.UNCHANGED
        self.converge(state)
        return Outcome.CHANGED

    def refresh(self) -> None:
        """Forced refresh triggered by a notification. Most kinds have none."""
        return None
