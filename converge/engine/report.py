from dataclasses import dataclass, field
from typing import Dict, List, Optional

from converge.engine.graph import ResourceGraph
from converge.models.outcome import Outcome, ResourceResult, RunStatus
from converge.models.resource import ResourceId


@dataclass
class RunReport:
    """Final record of one convergence run."""
    order: List[ResourceId] = field(default_factory=list)
    results: Dict[ResourceId, ResourceResult] = field(default_factory=dict)
    source: str = ""
    dry_run: bool = False
    graph: Optional[ResourceGraph] = None

    def ordered_results(self) -> List[ResourceResult]:
        return [self.results[rid] for rid in self.order if rid in self.results]

    @property
    def counts(self) -> Dict[str, int]:
        counts = {o.value: 0 for o in Outcome}
        for r in self.results.values():
            counts[r.outcome.value] += 1
        return counts

    @property
    def failed(self) -> List[ResourceResult]:
        return [r for r in self.ordered_results() if r.outcome == Outcome.FAILED]

    @property
    def skipped(self) -> List[ResourceResult]:
        return [r for r in self.ordered_results() if r.outcome == Outcome.SKIPPED]

    @property
    def refreshed(self) -> List[ResourceResult]:
        return [r for r in self.ordered_results() if r.refreshed]

    @property
    def status(self) -> RunStatus:
        if self.failed or self.skipped:
            return RunStatus.FAILURE
        return RunStatus.SUCCESS

    @property
    def exit_code(self) -> int:
        return 0 if self.status == RunStatus.SUCCESS else 1

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "dry_run": self.dry_run,
            "summary": self.counts,
            "order": [str(rid) for rid in self.order],
            "results": [r.to_dict() for r in self.ordered_results()],
        }
