"""Deadlock avoidance — the Banker's algorithm.

The Banker's algorithm is named after a banker who must decide whether
to grant loans: if granting a loan might make it impossible to satisfy
all customers, the banker refuses.  The key insight is the concept of
a **safe state**, one where there exists an ordering (safe sequence)
in which every process can finish.

Two operations:

**Safety check** (``check_safety``):
    1. work = copy of available
    2. finish = [False] * P
    3. Scan processes 0..P-1.  Each unfinished process whose need fits
       in work finishes immediately: work += its allocation.
    4. When a pass finishes nobody, stop.
    5. All finished -> safe (the finishing order is the safe sequence).
       Otherwise -> unsafe, and the unfinished processes are the culprits.

**Resource request** (``try_request``):
    Before granting a request, *simulate* granting it and run the
    safety check on the result.  If the simulated state is unsafe the
    request is denied and the caller's state is left exactly as it was.

Every admissibility test in the safety check is recorded as a
``TraceStep`` so the UI can replay the run one frame at a time.  The
scan order is fixed (each pass starts again at process 0), which makes
the trace identical for identical input.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum

from deadlock_lab.state import ResourceState, StateError, Vector, check_vector


class CheckOutcome(StrEnum):
    """Result of one admissibility test in the safety check."""

    FINISHED = "finished"
    WAITING = "waiting"


@dataclass(frozen=True)
class TraceStep:
    """One admissibility test, as replayed by the step-by-step view.

    Attributes:
        process: Index of the process that was checked.
        work_before: The work vector the process's need was compared to.
        work_after: The work vector after the check (grows on FINISHED).
        finished: Indices of all processes finished after this check.
        outcome: Whether the process could finish.

    """

    process: int
    work_before: Vector
    work_after: Vector
    finished: frozenset[int]
    outcome: CheckOutcome

    def to_dict(self) -> dict[str, object]:
        """Serialize for the JSON API."""
        return {
            "process": self.process,
            "work_before": list(self.work_before),
            "work_after": list(self.work_after),
            "finished": sorted(self.finished),
            "outcome": str(self.outcome),
        }


@dataclass(frozen=True)
class SafetyResult:
    """Outcome of a Banker's safety check.

    ``safe_sequence`` is empty unless ``is_safe``; ``unfinished`` is
    empty unless the state is unsafe.
    """

    is_safe: bool
    safe_sequence: tuple[int, ...]
    unfinished: tuple[int, ...]
    trace: tuple[TraceStep, ...]

    def to_dict(self, state: ResourceState | None = None) -> dict[str, object]:
        """Serialize for the JSON API, with process names when *state* is given."""
        data: dict[str, object] = {
            "is_safe": self.is_safe,
            "safe_sequence": list(self.safe_sequence),
            "unfinished": list(self.unfinished),
            "trace": [step.to_dict() for step in self.trace],
        }
        if state is not None:
            data["safe_sequence_names"] = [state.processes[i] for i in self.safe_sequence]
            data["unfinished_names"] = [state.processes[i] for i in self.unfinished]
        return data


def run_passes(
    work: Vector,
    demand: Sequence[Vector],
    allocation: Sequence[Vector],
    finished: Sequence[bool],
) -> tuple[list[int], list[bool], list[TraceStep]]:
    """Run the finish-and-release loop shared by avoidance and detection.

    A process may finish when its *demand* row (Need for the safety
    check, Request for detection) fits in *work*; finishing releases
    its allocation row back into work.

    Args:
        work: Initial work vector (usually Available).
        demand: Per-process demand rows compared against work.
        allocation: Per-process allocation rows released on finish.
        finished: Initial finish flags.

    Returns:
        ``(order, finish, trace)``: the order processes finished in,
        the final finish flags, and one trace step per check.

    """
    current = list(work)
    finish = list(finished)
    order: list[int] = []
    trace: list[TraceStep] = []

    progressed = True
    while progressed:
        progressed = False
        for i, row in enumerate(demand):
            if finish[i]:
                continue
            before = tuple(current)
            if all(d <= w for d, w in zip(row, current, strict=True)):
                # Pretend it finishes: release its allocation
                for j, held in enumerate(allocation[i]):
                    current[j] += held
                finish[i] = True
                order.append(i)
                progressed = True
                outcome = CheckOutcome.FINISHED
            else:
                outcome = CheckOutcome.WAITING
            done = frozenset(k for k, flag in enumerate(finish) if flag)
            trace.append(TraceStep(i, before, tuple(current), done, outcome))

    return order, finish, trace


def check_safety(state: ResourceState) -> SafetyResult:
    """Check whether *state* is safe using the Banker's safety algorithm.

    Args:
        state: A validated resource state.

    Returns:
        The safety verdict, the safe sequence (if any), the culprit
        set (if unsafe) and the full check trace.

    """
    order, finish, trace = run_passes(
        state.available,
        state.need,
        state.allocation,
        [False] * state.num_processes,
    )
    if all(finish):
        return SafetyResult(True, tuple(order), (), tuple(trace))
    unfinished = tuple(i for i, done in enumerate(finish) if not done)
    return SafetyResult(False, (), unfinished, tuple(trace))


class RequestReason(StrEnum):
    """Why a resource request was granted or denied."""

    GRANTED = "granted"
    EXCEEDS_MAXIMUM = "exceeds declared maximum"
    INSUFFICIENT = "insufficient available resources"
    UNSAFE = "would enter unsafe state"


@dataclass(frozen=True)
class RequestDecision:
    """Outcome of a Banker's resource-request check.

    Attributes:
        granted: True if the request can be granted safely.
        reason: Why it was granted or denied.
        resulting_state: The state after granting (None when denied).
        safety: Safety check of the tentative state, when one was run.

    """

    granted: bool
    reason: RequestReason
    resulting_state: ResourceState | None = None
    safety: SafetyResult | None = None

    def to_dict(self) -> dict[str, object]:
        """Serialize for the JSON API."""
        tentative = self.resulting_state
        return {
            "granted": self.granted,
            "reason": str(self.reason),
            "resulting_state": tentative.to_dict() if tentative is not None else None,
            "safety": self.safety.to_dict() if self.safety is not None else None,
        }


def try_request(state: ResourceState, process_index: int, request: Sequence[int]) -> RequestDecision:
    """Decide whether granting *request* to a process keeps the system safe.

    Admission checks, in order:
        1. request <= need — a process may never ask for more than it
           declared.  Violations are denied, not clamped.
        2. request <= available — otherwise the process must wait.
        3. The tentative state (available -= request, allocation += request)
           must pass the safety check.

    *state* is never modified; the granted state is returned for the
    caller to adopt.

    Args:
        state: The current resource state.
        process_index: Index of the requesting process.
        request: Units of each resource requested.

    Returns:
        The decision, with the resulting state when granted.

    Raises:
        StateError: If the process index or request vector is malformed.

    """
    if isinstance(process_index, bool) or not isinstance(process_index, int):
        msg = f"Process index must be an integer, got {process_index!r}"
        raise StateError(msg)
    if not 0 <= process_index < state.num_processes:
        msg = f"Process index {process_index} out of range for {state.num_processes} processes"
        raise StateError(msg)
    wanted = check_vector("request", request, state.num_resources)

    need = state.need[process_index]
    if any(r > n for r, n in zip(wanted, need, strict=True)):
        return RequestDecision(granted=False, reason=RequestReason.EXCEEDS_MAXIMUM)
    if any(r > a for r, a in zip(wanted, state.available, strict=True)):
        return RequestDecision(granted=False, reason=RequestReason.INSUFFICIENT)

    # Tentatively grant
    available = tuple(a - r for a, r in zip(state.available, wanted, strict=True))
    allocation = tuple(
        tuple(h + r for h, r in zip(row, wanted, strict=True)) if i == process_index else row
        for i, row in enumerate(state.allocation)
    )
    tentative = state.with_allocation(allocation, available)
    safety = check_safety(tentative)

    if safety.is_safe:
        return RequestDecision(
            granted=True,
            reason=RequestReason.GRANTED,
            resulting_state=tentative,
            safety=safety,
        )
    return RequestDecision(granted=False, reason=RequestReason.UNSAFE, safety=safety)
