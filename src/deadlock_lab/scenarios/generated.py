"""Validation of model-generated scenarios.

The scenario generator asks a language model for a JSON payload and
hands it over as a plain dict.  Nothing guarantees that the model
respected its instructions: rows can be ragged, counts negative or
fractional, a process can hold more than its maximum, an edge can
point at a node that was never declared.  So every payload goes
through the same validation as a stored scenario before any analysis
runs on it.

Three payload shapes are understood:

    - **state** — ``allocationMatrix``, ``maxMatrix``, ``availableVector``
      for an existing scenario's processes and resources.
    - **detection** — ``processes`` / ``resources`` counts with
      ``allocationMatrix``, ``requestMatrix``, ``availableVector``.
    - **graph** — single-instance RAG ``nodes`` (type + label) and
      ``edges`` (sourceLabel, targetLabel, type).

Each carries an ``explanation`` string, kept alongside the result.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from deadlock_lab.analysis.detection import DetectionState, make_detection_state
from deadlock_lab.analysis.graph import Edge, EdgeKind, GraphError, Node, NodeKind
from deadlock_lab.state import ResourceState, StateError, make_state


@dataclass(frozen=True)
class GeneratedState:
    """A validated Banker's state plus the model's explanation."""

    state: ResourceState
    explanation: str


@dataclass(frozen=True)
class GeneratedDetection:
    """A validated request-matrix state plus the model's explanation."""

    state: DetectionState
    explanation: str


@dataclass(frozen=True)
class GeneratedGraph:
    """A validated resource-allocation graph plus the model's explanation."""

    nodes: tuple[Node, ...]
    edges: tuple[Edge, ...]
    explanation: str


def _field(payload: Mapping[str, Any], key: str) -> Any:
    if key not in payload:
        msg = f"Generated payload is missing {key!r}"
        raise StateError(msg)
    return payload[key]


def _explanation(payload: Mapping[str, Any]) -> str:
    text = payload.get("explanation", "")
    if not isinstance(text, str):
        msg = "Generated explanation must be a string"
        raise StateError(msg)
    return text


def _count(payload: Mapping[str, Any], key: str) -> int:
    value = _field(payload, key)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        msg = f"Generated {key!r} must be a positive integer, got {value!r}"
        raise StateError(msg)
    return value


def _check_payload(payload: object) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        msg = "Generated payload must be a JSON object"
        raise StateError(msg)
    return payload


def default_names(prefix: str, count: int) -> list[str]:
    """Return ``["P0", "P1", ...]``-style identifiers."""
    return [f"{prefix}{i}" for i in range(count)]


def state_from_generated(
    payload: object,
    *,
    processes: Sequence[str],
    resources: Sequence[str],
) -> GeneratedState:
    """Validate a generated Banker's state for a known scenario.

    Args:
        payload: The model's JSON object.
        processes: The scenario's process identifiers.
        resources: The scenario's resource identifiers.

    Raises:
        StateError: If the payload is malformed or violates an invariant.

    """
    data = _check_payload(payload)
    state = make_state(
        processes,
        resources,
        _field(data, "allocationMatrix"),
        _field(data, "availableVector"),
        maximum=_field(data, "maxMatrix"),
    )
    return GeneratedState(state=state, explanation=_explanation(data))


def detection_state_from_generated(payload: object) -> GeneratedDetection:
    """Validate a generated request-matrix scenario.

    Processes are named ``P0..`` and resources ``R0..`` from the counts.

    Raises:
        StateError: If the payload is malformed or the counts disagree
            with the matrices.

    """
    data = _check_payload(payload)
    state = make_detection_state(
        default_names("P", _count(data, "processes")),
        default_names("R", _count(data, "resources")),
        _field(data, "allocationMatrix"),
        _field(data, "requestMatrix"),
        _field(data, "availableVector"),
    )
    return GeneratedDetection(state=state, explanation=_explanation(data))


def _enum(kind: type[NodeKind] | type[EdgeKind], value: object, label: str) -> Any:
    try:
        return kind(value)
    except ValueError:
        msg = f"Unknown {label} type: {value!r}"
        raise GraphError(msg) from None


def graph_from_generated(payload: object) -> GeneratedGraph:
    """Validate a generated single-instance resource-allocation graph.

    Node labels double as node ids; edges are numbered ``e0..`` in
    payload order.  Endpoint kinds are checked again by ``find_cycle``.

    Raises:
        GraphError: If nodes or edges are malformed.

    """
    data = _check_payload(payload)
    raw_nodes = _field(data, "nodes")
    raw_edges = _field(data, "edges")
    if not isinstance(raw_nodes, list) or not isinstance(raw_edges, list):
        msg = "Generated nodes and edges must be lists"
        raise GraphError(msg)

    nodes: list[Node] = []
    for item in raw_nodes:
        if not isinstance(item, Mapping) or not isinstance(item.get("label"), str):
            msg = f"Malformed generated node: {item!r}"
            raise GraphError(msg)
        nodes.append(Node(item["label"], _enum(NodeKind, item.get("type"), "node")))

    edges: list[Edge] = []
    for i, item in enumerate(raw_edges):
        if not isinstance(item, Mapping):
            msg = f"Malformed generated edge: {item!r}"
            raise GraphError(msg)
        source, target = item.get("sourceLabel"), item.get("targetLabel")
        if not isinstance(source, str) or not isinstance(target, str):
            msg = f"Generated edge {i} needs string sourceLabel and targetLabel"
            raise GraphError(msg)
        edges.append(Edge(f"e{i}", source, target, _enum(EdgeKind, item.get("type"), "edge")))

    return GeneratedGraph(tuple(nodes), tuple(edges), _explanation(data))
