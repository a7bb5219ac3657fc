"""
Resource graph: construction and validity checks.

Edges point from a resource to the resources that must converge before it:
its `require` targets, plus every resource that `notify`s it.
"""
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from converge.errors import BuildError, CyclicDependencyError, UnknownReferenceError
from converge.models.resource import Resource, ResourceId


@dataclass
class ResourceGraph:
    resources: "OrderedDict[ResourceId, Resource]" = field(default_factory=OrderedDict)
    # id -> ids that must be terminal before it starts, in declaration order
    predecessors: Dict[ResourceId, List[ResourceId]] = field(default_factory=dict)
    # id -> position in the declaration
    index: Dict[ResourceId, int] = field(default_factory=dict)
    # id -> ids that list it in `notify`
    notified_by: Dict[ResourceId, List[ResourceId]] = field(default_factory=dict)

    def __contains__(self, rid: ResourceId) -> bool:
        return rid in self.resources

    def __len__(self) -> int:
        return len(self.resources)

    def __getitem__(self, rid: ResourceId) -> Resource:
        return self.resources[rid]

    def ids(self) -> List[ResourceId]:
        return list(self.resources)


def _check_refs(resource: Resource, refs: Iterable[ResourceId], known: Dict[ResourceId, Resource], relation: str) -> None:
    for ref in refs:
        if ref == resource.id:
            raise BuildError(f"{resource.id} cannot {relation} itself")
        if ref not in known:
            raise UnknownReferenceError(ref, resource.id, relation)


def find_cycle(graph: ResourceGraph) -> Optional[List[ResourceId]]:
    """
    Depth-first search in declaration order. Returns the first cycle found
    as a list of ids (the closing edge goes from the last id back to the
    first), or None for a DAG.
    """
    visiting, done = 1, 2
    state: Dict[ResourceId, int] = {}

    for root in graph.resources:
        if root in state:
            continue
        state[root] = visiting
        stack = [(root, iter(graph.predecessors[root]))]
        while stack:
            node, edges = stack[-1]
            nxt = next(edges, None)
            if nxt is None:
                state[node] = done
                stack.pop()
                continue
            seen = state.get(nxt)
            if seen == visiting:
                path = [n for n, _ in stack]
                return path[path.index(nxt):]
            if seen is None:
                state[nxt] = visiting
                stack.append((nxt, iter(graph.predecessors[nxt])))
    return None


def build_graph(resources: Iterable[Resource]) -> ResourceGraph:
    """
    Assemble declared resources into a validated DAG.

    Raises BuildError for duplicate ids or self references,
    UnknownReferenceError for a require/notify target that was never
    declared, and CyclicDependencyError when the edges do not form a DAG.
    """
    graph = ResourceGraph()
    for r in resources:
        if r.id in graph.resources:
            first = graph.resources[r.id]
            raise BuildError(
                f"duplicate resource {r.id} (declared at #{first.position + 1} and #{r.position + 1})"
            )
        graph.index[r.id] = len(graph.resources)
        graph.resources[r.id] = r

    for r in graph.resources.values():
        _check_refs(r, r.dependencies, graph.resources, "require")
        _check_refs(r, r.notifies, graph.resources, "notify")
        graph.predecessors[r.id] = []
        graph.notified_by[r.id] = []

    for r in graph.resources.values():
        for dep in r.dependencies:
            if dep not in graph.predecessors[r.id]:
                graph.predecessors[r.id].append(dep)
        for target in r.notifies:
            graph.notified_by[target].append(r.id)
            if r.id not in graph.predecessors[target]:
                graph.predecessors[target].append(r.id)

    cycle = find_cycle(graph)
    if cycle:
        raise CyclicDependencyError(cycle)
    return graph
