from typing import Any, Iterable, Optional

from rich.console import Console

from converge.engine.executor import Executor
from converge.engine.graph import build_graph
from converge.engine.report import RunReport
from converge.engine.scheduler import schedule
from converge.models.resource import ResourceId
from converge.parsers.declaration import Declaration


def run(
    declaration: Declaration,
    host: Any,
    dry_run: bool = False,
    only: Optional[Iterable[ResourceId]] = None,
    console: Optional[Console] = None,
) -> RunReport:
    """
    Build, validate and schedule the declared graph, then converge it.

    BuildError (and its subclasses) propagate before any resource is
    touched. Once execution starts the run always produces a report.
    """
    graph = build_graph(declaration.resources)
    order = schedule(graph, only)

    executor = Executor(graph, host, declaration.vars, dry_run=dry_run, console=console)
    results = executor.run(order)

    return RunReport(
        order=order, results=results, source=declaration.source_file, dry_run=dry_run, graph=graph
    )
