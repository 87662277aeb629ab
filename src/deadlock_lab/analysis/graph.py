"""Deadlock detection by cycle search in a directed graph.

A **resource-allocation graph** (RAG) has two kinds of node:

    - **process** nodes (drawn as circles), and
    - **resource** nodes (drawn as squares),

and two kinds of edge:

    - **request** (process -> resource) — the process is waiting, and
    - **assignment** (resource -> process) — the resource is held.

A **wait-for graph** collapses the resource nodes away: an edge
Pi -> Pj means "Pi is waiting for something Pj holds".

``find_cycle`` runs a depth-first search with three colours:

    - **unvisited** — not reached yet,
    - **on stack** — on the current DFS path,
    - **finished** — fully explored, cannot close a new cycle.

Reaching an on-stack node closes a cycle (a *back edge*).  The first
cycle found wins; nodes and edges are visited in insertion order, so
the same input always yields the same witness.

When is a cycle a deadlock?  With **single-instance** resources a
cycle is both necessary and sufficient: each resource is assigned to
at most one process, so everyone on the cycle is stuck.  With
**multi-instance** resources a cycle is necessary but *not*
sufficient: another instance may be released by a process off the
cycle.  ``detect_rag_deadlock`` is the single-instance entry point and
refuses graphs that break that assumption; multi-instance systems go
through ``detection.wait_for_graph`` or the Banker's safety check.
"""

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from enum import Enum, StrEnum

from deadlock_lab.state import StateError


class GraphError(StateError):
    """Raise when a graph is structurally malformed."""


class NodeKind(StrEnum):
    """Kind of node in a resource-allocation or wait-for graph."""

    PROCESS = "process"
    RESOURCE = "resource"


class EdgeKind(StrEnum):
    """Kind of directed edge, fixing which node kinds it may join."""

    REQUEST = "request"
    ASSIGNMENT = "assignment"
    WAIT_FOR = "wait-for"


# Allowed (source kind, target kind) for each edge kind
_ENDPOINTS: dict[EdgeKind, tuple[NodeKind, NodeKind]] = {
    EdgeKind.REQUEST: (NodeKind.PROCESS, NodeKind.RESOURCE),
    EdgeKind.ASSIGNMENT: (NodeKind.RESOURCE, NodeKind.PROCESS),
    EdgeKind.WAIT_FOR: (NodeKind.PROCESS, NodeKind.PROCESS),
}


@dataclass(frozen=True)
class Node:
    """A graph node.  ``label`` is display text and defaults to the id."""

    id: str
    kind: NodeKind
    label: str = ""

    def to_dict(self) -> dict[str, str]:
        """Serialize for the JSON API."""
        return {"id": self.id, "kind": str(self.kind), "label": self.label or self.id}


@dataclass(frozen=True)
class Edge:
    """A directed edge from ``source`` to ``target`` (node ids)."""

    id: str
    source: str
    target: str
    kind: EdgeKind

    def to_dict(self) -> dict[str, str]:
        """Serialize for the JSON API."""
        return {"id": self.id, "source": self.source, "target": self.target, "kind": str(self.kind)}


@dataclass(frozen=True)
class CycleResult:
    """Outcome of a cycle search.

    Attributes:
        has_cycle: True if a cycle was found.
        cycle_nodes: Node ids around the cycle, read with wraparound
            (empty when there is no cycle).
        cycle_edges: Edge ids in the same order, so ``cycle_edges[k]``
            leaves ``cycle_nodes[k]``.

    """

    has_cycle: bool
    cycle_nodes: tuple[str, ...] = ()
    cycle_edges: tuple[str, ...] = ()

    @property
    def involved_edges(self) -> frozenset[str]:
        """Return the set of edge ids to highlight."""
        return frozenset(self.cycle_edges)

    def to_dict(self) -> dict[str, object]:
        """Serialize for the JSON API."""
        return {
            "has_cycle": self.has_cycle,
            "cycle_nodes": list(self.cycle_nodes),
            "cycle_edges": list(self.cycle_edges),
            "involved_edges": sorted(self.involved_edges),
        }


class _Colour(Enum):
    UNVISITED = 0
    ON_STACK = 1
    FINISHED = 2


def _check_graph(nodes: Sequence[Node], edges: Sequence[Edge]) -> dict[str, Node]:
    """Validate ids, endpoints and edge kinds; return nodes by id."""
    by_id: dict[str, Node] = {}
    for node in nodes:
        if node.id in by_id:
            msg = f"Duplicate node id: {node.id!r}"
            raise GraphError(msg)
        by_id[node.id] = node

    edge_ids: set[str] = set()
    for edge in edges:
        if edge.id in edge_ids:
            msg = f"Duplicate edge id: {edge.id!r}"
            raise GraphError(msg)
        edge_ids.add(edge.id)
        for end in (edge.source, edge.target):
            if end not in by_id:
                msg = f"Edge {edge.id!r} refers to unknown node {end!r}"
                raise GraphError(msg)
        expected = _ENDPOINTS[edge.kind]
        actual = (by_id[edge.source].kind, by_id[edge.target].kind)
        if actual != expected:
            msg = (
                f"{edge.kind} edge {edge.id!r} must go from {expected[0]} to {expected[1]}, "
                f"not {actual[0]} to {actual[1]}"
            )
            raise GraphError(msg)
    return by_id


def find_cycle(nodes: Sequence[Node], edges: Sequence[Edge]) -> CycleResult:
    """Find one cycle in a directed graph, if any exists.

    Args:
        nodes: All nodes, in traversal order.
        edges: All directed edges, in traversal order.

    Returns:
        The first cycle found by the deterministic DFS, or
        ``CycleResult(has_cycle=False)``.

    Raises:
        GraphError: If the graph is malformed.

    """
    by_id = _check_graph(nodes, edges)
    adjacency: dict[str, list[Edge]] = {node_id: [] for node_id in by_id}
    for edge in edges:
        adjacency[edge.source].append(edge)

    colour = dict.fromkeys(adjacency, _Colour.UNVISITED)
    for root in adjacency:
        if colour[root] is not _Colour.UNVISITED:
            continue
        # Explicit stack: path[k] is paired with an iterator over its
        # remaining out-edges, and via[k] is the edge from path[k] to path[k + 1]
        path: list[str] = [root]
        pending: list[Iterator[Edge]] = [iter(adjacency[root])]
        via: list[Edge] = []
        colour[root] = _Colour.ON_STACK
        while path:
            edge = next(pending[-1], None)
            if edge is None:
                colour[path.pop()] = _Colour.FINISHED
                pending.pop()
                if via:
                    via.pop()
                continue
            seen = colour[edge.target]
            if seen is _Colour.UNVISITED:
                colour[edge.target] = _Colour.ON_STACK
                path.append(edge.target)
                pending.append(iter(adjacency[edge.target]))
                via.append(edge)
            elif seen is _Colour.ON_STACK:
                start = path.index(edge.target)
                cycle_edges = [e.id for e in via[start:]] + [edge.id]
                return CycleResult(True, tuple(path[start:]), tuple(cycle_edges))
    return CycleResult(has_cycle=False)


def detect_rag_deadlock(nodes: Sequence[Node], edges: Sequence[Edge]) -> CycleResult:
    """Detect deadlock in a single-instance resource-allocation graph.

    Only valid when every resource has exactly one instance: then a
    cycle means deadlock.  A resource assigned to two processes breaks
    that assumption and is rejected rather than analysed.

    Raises:
        GraphError: If the graph is malformed, contains wait-for edges,
            or assigns a resource to more than one process.

    """
    assigned: dict[str, str] = {}
    for edge in edges:
        if edge.kind is EdgeKind.WAIT_FOR:
            msg = f"Wait-for edge {edge.id!r} does not belong in a resource-allocation graph"
            raise GraphError(msg)
        if edge.kind is EdgeKind.ASSIGNMENT:
            if edge.source in assigned:
                msg = (
                    f"Resource {edge.source!r} is assigned to more than one process; "
                    "single-instance detection does not apply"
                )
                raise GraphError(msg)
            assigned[edge.source] = edge.target
    return find_cycle(nodes, edges)
