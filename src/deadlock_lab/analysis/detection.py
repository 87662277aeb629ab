"""Deadlock detection and recovery for multi-instance resources.

Avoidance (the Banker's algorithm) needs every process to declare its
maximum claim up front.  **Detection** drops that requirement: let
processes request freely, and periodically ask "is anyone stuck right
now?"  Instead of Need it uses the **Request** matrix, the units each
process is blocked waiting for at this moment.

Detection algorithm:
    1. work = copy of available
    2. A process holding nothing cannot be part of a deadlock, so it
       starts finished.
    3. Repeatedly finish any process whose request fits in work,
       releasing its allocation (same pass order as the safety check).
    4. Whoever is left unfinished is deadlocked.

**Recovery** by process termination: abort a deadlocked process,
return everything it held to the pool, and detect again.  The victim
here is the deadlocked process holding the most units (ties go to the
lowest index), a simple stand-in for "cheapest to restart".

For highlighting, ``wait_for_graph`` collapses the allocation and
request matrices into a process-only wait-for graph.  With several
instances per resource a cycle in that graph is only a hint; the
detection algorithm is the authority on who is deadlocked.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from deadlock_lab.analysis.graph import Edge, EdgeKind, Node, NodeKind
from deadlock_lab.analysis.safety import TraceStep, run_passes
from deadlock_lab.state import (
    Matrix,
    StateError,
    Vector,
    check_identifiers,
    check_matrix,
    check_vector,
)


@dataclass(frozen=True)
class DetectionState:
    """A snapshot in the request-matrix view.

    Attributes:
        processes: Process identifiers, in index order.
        resources: Resource-type identifiers, in index order.
        allocation: ``allocation[i][j]`` units of resource j held by process i.
        request: ``request[i][j]`` units of j that process i is waiting for.
        available: Free units of each resource.

    """

    processes: tuple[str, ...]
    resources: tuple[str, ...]
    allocation: Matrix
    request: Matrix
    available: Vector

    def __post_init__(self) -> None:
        """Check identifiers, dimensions and value ranges; store tuples."""
        processes = check_identifiers("process", self.processes)
        resources = check_identifiers("resource", self.resources)
        height, width = len(processes), len(resources)
        normalised = {
            "processes": processes,
            "resources": resources,
            "allocation": check_matrix("allocation", self.allocation, height, width),
            "request": check_matrix("request", self.request, height, width),
            "available": check_vector("available", self.available, width),
        }
        for name, value in normalised.items():
            object.__setattr__(self, name, value)

    @property
    def total(self) -> Vector:
        """Return total instances per resource."""
        return tuple(
            free + sum(row[j] for row in self.allocation) for j, free in enumerate(self.available)
        )

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-ready dict."""
        return {
            "processes": list(self.processes),
            "resources": list(self.resources),
            "allocation": [list(row) for row in self.allocation],
            "request": [list(row) for row in self.request],
            "available": list(self.available),
            "total": list(self.total),
        }


def make_detection_state(
    processes: Sequence[str],
    resources: Sequence[str],
    allocation: Sequence[Sequence[int]],
    request: Sequence[Sequence[int]],
    available: Sequence[int],
) -> DetectionState:
    """Build and validate a ``DetectionState`` from plain lists.

    Raises:
        StateError: If any structural invariant is violated.

    """
    procs = check_identifiers("process", processes)
    res = check_identifiers("resource", resources)
    height, width = len(procs), len(res)
    return DetectionState(
        processes=procs,
        resources=res,
        allocation=check_matrix("allocation", allocation, height, width),
        request=check_matrix("request", request, height, width),
        available=check_vector("available", available, width),
    )


@dataclass(frozen=True)
class DetectionResult:
    """Outcome of the detection algorithm.

    Attributes:
        deadlocked: Indices of deadlocked processes (empty if none).
        completion_order: Order in which the other holders could finish.
        trace: One step per admissibility check.

    """

    deadlocked: tuple[int, ...]
    completion_order: tuple[int, ...]
    trace: tuple[TraceStep, ...]

    @property
    def is_deadlocked(self) -> bool:
        """Return True if any process is deadlocked."""
        return bool(self.deadlocked)

    def to_dict(self, state: DetectionState | None = None) -> dict[str, object]:
        """Serialize for the JSON API, with process names when *state* is given."""
        data: dict[str, object] = {
            "is_deadlocked": self.is_deadlocked,
            "deadlocked": list(self.deadlocked),
            "completion_order": list(self.completion_order),
            "trace": [step.to_dict() for step in self.trace],
        }
        if state is not None:
            data["deadlocked_names"] = [state.processes[i] for i in self.deadlocked]
        return data


def detect_deadlock(state: DetectionState) -> DetectionResult:
    """Run the multi-instance detection algorithm on *state*."""
    holds_nothing = [not any(row) for row in state.allocation]
    order, finish, trace = run_passes(state.available, state.request, state.allocation, holds_nothing)
    deadlocked = tuple(i for i, done in enumerate(finish) if not done)
    return DetectionResult(deadlocked, tuple(order), tuple(trace))


def wait_for_graph(state: DetectionState) -> tuple[list[Node], list[Edge]]:
    """Collapse *state* into a process-only wait-for graph.

    Pi -> Pj when Pi requests more of some resource than is available
    and Pj holds at least one instance of it.  Edge ids are
    ``"Pi->Pj"`` using process identifiers; each pair appears once.

    Returns:
        ``(nodes, edges)`` ready for ``find_cycle``.

    """
    nodes = [Node(name, NodeKind.PROCESS) for name in state.processes]
    edges: list[Edge] = []
    seen: set[tuple[int, int]] = set()
    for i, wanted in enumerate(state.request):
        blocked_on = [j for j, r in enumerate(wanted) if r > state.available[j]]
        for k, held in enumerate(state.allocation):
            if k == i or (i, k) in seen:
                continue
            if any(held[j] > 0 for j in blocked_on):
                seen.add((i, k))
                source, target = state.processes[i], state.processes[k]
                edges.append(Edge(f"{source}->{target}", source, target, EdgeKind.WAIT_FOR))
    return nodes, edges


def terminate(state: DetectionState, process_index: int) -> DetectionState:
    """Abort a process and release everything it holds.

    Total instances are preserved: the victim's allocation row moves
    into ``available``.

    Raises:
        StateError: If the index is out of range or names the last process.

    """
    count = len(state.processes)
    if not 0 <= process_index < count:
        msg = f"Process index {process_index} out of range for {count} processes"
        raise StateError(msg)
    if count == 1:
        msg = "Cannot terminate the only remaining process"
        raise StateError(msg)

    released = state.allocation[process_index]
    keep = [i for i in range(count) if i != process_index]
    return DetectionState(
        processes=tuple(state.processes[i] for i in keep),
        resources=state.resources,
        allocation=tuple(state.allocation[i] for i in keep),
        request=tuple(state.request[i] for i in keep),
        available=tuple(a + r for a, r in zip(state.available, released, strict=True)),
    )


def choose_victim(state: DetectionState, deadlocked: Sequence[int]) -> int:
    """Pick the deadlocked process holding the most units (lowest index on ties)."""
    return max(deadlocked, key=lambda i: (sum(state.allocation[i]), -i))


@dataclass(frozen=True)
class RecoveryResult:
    """Outcome of recovery by repeated termination.

    Attributes:
        victims: Identifiers of terminated processes, in order.
        final_state: The state after the last termination.
        resolved: True if the final state is deadlock-free.

    """

    victims: tuple[str, ...]
    final_state: DetectionState
    resolved: bool

    def to_dict(self) -> dict[str, object]:
        """Serialize for the JSON API."""
        return {
            "victims": list(self.victims),
            "final_state": self.final_state.to_dict(),
            "resolved": self.resolved,
        }


def recover(state: DetectionState) -> RecoveryResult:
    """Terminate deadlocked processes one at a time until none remain stuck.

    Stops early if the only process left is itself deadlocked (its
    request exceeds what the whole system owns).
    """
    victims: list[str] = []
    current = state
    result = detect_deadlock(current)
    while result.is_deadlocked and len(current.processes) > 1:
        victim = choose_victim(current, result.deadlocked)
        victims.append(current.processes[victim])
        current = terminate(current, victim)
        result = detect_deadlock(current)
    return RecoveryResult(tuple(victims), current, not result.is_deadlocked)
