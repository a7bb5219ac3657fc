"""
Topological scheduling of a validated resource graph.
"""
import heapq
from typing import Dict, Iterable, List, Optional, Set, Tuple

from converge.errors import CyclicDependencyError, UnknownReferenceError
from converge.engine.graph import ResourceGraph, find_cycle
from converge.models.resource import ResourceId


def select(graph: ResourceGraph, only: Iterable[ResourceId]) -> Set[ResourceId]:
    """Return the requested ids plus everything they transitively wait on."""
    selected: Set[ResourceId] = set()
    pending = list(only)
    for rid in pending:
        if rid not in graph:
            raise UnknownReferenceError(rid)
    while pending:
        rid = pending.pop()
        if rid in selected:
            continue
        selected.add(rid)
        pending.extend(graph.predecessors[rid])
    return selected


def schedule(graph: ResourceGraph, only: Optional[Iterable[ResourceId]] = None) -> List[ResourceId]:
    """
    Kahn's algorithm with ties broken by declaration position, so resources
    with no ordering constraint between them keep the order they were
    written in.
    """
    members = select(graph, only) if only is not None else set(graph.resources)

    indegree: Dict[ResourceId, int] = {}
    outgoing: Dict[ResourceId, List[ResourceId]] = {rid: [] for rid in members}
    for rid in members:
        preds = [p for p in graph.predecessors[rid] if p in members]
        indegree[rid] = len(preds)
        for p in preds:
            outgoing[p].append(rid)

    ready: List[Tuple[int, ResourceId]] = [
        (graph.index[rid], rid) for rid, n in indegree.items() if n == 0
    ]
    heapq.heapify(ready)

    order: List[ResourceId] = []
    while ready:
        _, rid = heapq.heappop(ready)
        order.append(rid)
        for child in outgoing[rid]:
            indegree[child] -= 1
            if indegree[child] == 0:
                heapq.heappush(ready, (graph.index[child], child))

    if len(order) != len(members):
        cycle = find_cycle(graph)
        raise CyclicDependencyError(cycle or [rid for rid in members if rid not in order])
    return order
