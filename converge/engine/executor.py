"""
Convergence executor and notification propagation.

Resources are processed strictly in the scheduled order. A resource whose
`require` dependency ended Failed or Skipped is Skipped without being
touched. Changes already made are never rolled back when a later resource
fails: convergence is best-effort, and a rerun picks up from live state.
"""
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type

from rich.console import Console
from rich.markup import escape

from converge.engine.graph import ResourceGraph
from converge.errors import ResourceError
from converge.models.outcome import Outcome, ResourceResult
from converge.models.resource import Resource, ResourceId, ResourceKind
from converge.providers import PROVIDERS
from converge.providers.base import Provider

_OUTCOME_STYLE = {
    Outcome.UNCHANGED: "dim",
    Outcome.CHANGED: "green",
    Outcome.FAILED: "bold red",
    Outcome.SKIPPED: "yellow",
}


class NotificationQueue:
    """Pending refreshes, keyed by target, remembering which sources fired."""

    def __init__(self) -> None:
        self._pending: Dict[ResourceId, List[ResourceId]] = {}

    def notify(self, source: ResourceId, targets: Iterable[ResourceId]) -> None:
        for target in targets:
            sources = self._pending.setdefault(target, [])
            if source not in sources:
                sources.append(source)

    def take(self, target: ResourceId) -> List[ResourceId]:
        return self._pending.pop(target, [])

    def discard(self, target: ResourceId) -> None:
        self._pending.pop(target, None)

    def pending(self) -> Dict[ResourceId, List[ResourceId]]:
        return {k: list(v) for k, v in self._pending.items()}


class Executor:
    def __init__(
        self,
        graph: ResourceGraph,
        host: Any,
        variables: Optional[Dict[str, Any]] = None,
        dry_run: bool = False,
        console: Optional[Console] = None,
        providers: Optional[Mapping[ResourceKind, Type[Provider]]] = None,
    ):
        self.graph = graph
        self.host = host
        self.variables = dict(variables or {})
        self.dry_run = dry_run
        self.console = console or Console(stderr=True)
        self.providers = providers or PROVIDERS
        self.notifications = NotificationQueue()
        self.results: Dict[ResourceId, ResourceResult] = {}

    def provider_for(self, resource: Resource) -> Provider:
        return self.providers[resource.kind](resource, self.host, self.variables)

    def _log(self, result: ResourceResult, detail: Optional[str] = None) -> None:
        style = _OUTCOME_STYLE[result.outcome]
        label = result.outcome.value.lower()
        if result.noop:
            label = "would change"
        line = f"[{style}]{label:<12}[/{style}] {escape(str(result.resource_id))}"
        detail = detail if detail is not None else result.reason
        if detail:
            line += f" [dim]({escape(detail)})[/dim]"
        self.console.print(line, highlight=False)

    def _blocked_by(self, resource: Resource) -> Optional[ResourceResult]:
        for dep in resource.dependencies:
            result = self.results.get(dep)
            if result is not None and not result.outcome.converged:
                return result
        return None

    def _converge(self, resource: Resource, provider: Provider) -> ResourceResult:
        rid = resource.id
        try:
            if self.dry_run:
                state = provider.check()
                if state.converged:
                    return ResourceResult(rid, Outcome.UNCHANGED)
                return ResourceResult(rid, Outcome.CHANGED, reason=state.detail, noop=True)

            outcome = provider.apply()
            detail = provider.last_state.detail if provider.last_state else None
            if outcome == Outcome.CHANGED:
                return ResourceResult(rid, outcome, reason=detail)
            return ResourceResult(rid, outcome)
        except ResourceError as exc:
            return ResourceResult(rid, Outcome.FAILED, reason=exc.message)
        except Exception as exc:
            return ResourceResult(rid, Outcome.FAILED, reason=f"{exc.__class__.__name__}: {exc}")

    def _refresh(self, provider: Provider, result: ResourceResult, sources: List[ResourceId]) -> None:
        result.refreshed_by = list(sources)
        if self.dry_run:
            result.refreshed = True
            self.console.print(f"[cyan]would refresh[/cyan] {escape(str(result.resource_id))}", highlight=False)
            return
        try:
            provider.refresh()
        except ResourceError as exc:
            result.outcome = Outcome.FAILED
            result.reason = f"refresh failed: {exc.message}"
            return
        except Exception as exc:
            result.outcome = Outcome.FAILED
            result.reason = f"refresh failed: {exc.__class__.__name__}: {exc}"
            return
        result.refreshed = True
        by = ", ".join(str(s) for s in sources)
        self.console.print(f"[cyan]refreshed[/cyan]    {escape(str(result.resource_id))} [dim](notified by {escape(by)})[/dim]",
                           highlight=False)

    def run(self, order: Iterable[ResourceId]) -> Dict[ResourceId, ResourceResult]:
        for rid in order:
            resource = self.graph[rid]

            blocker = self._blocked_by(resource)
            if blocker is not None:
                self.notifications.discard(rid)
                result = ResourceResult(
                    rid,
                    Outcome.SKIPPED,
                    reason=f"dependency {blocker.resource_id} {blocker.outcome.value.lower()}",
                )
                self.results[rid] = result
                self._log(result)
                continue

            provider = self.provider_for(resource)
            result = self._converge(resource, provider)
            self.results[rid] = result
            self._log(result)

            sources = self.notifications.take(rid)
            if sources and result.outcome.converged:
                self._refresh(provider, result, sources)
                if result.outcome == Outcome.FAILED:
                    self._log(result)

            if result.outcome == Outcome.CHANGED:
                self.notifications.notify(rid, resource.notifies)

        return self.results
