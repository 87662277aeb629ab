"""Resource state snapshots — the matrices every analysis runs on.

The Banker's algorithm and its relatives all reason about the same
four textbook data structures:

    - **Available[r]** — free instances of resource r.
    - **Maximum[p][r]** — max instances process p might ever need.
    - **Allocation[p][r]** — instances process p currently holds.
    - **Need[p][r]** — Maximum - Allocation (remaining need).

A ``ResourceState`` bundles them into one immutable snapshot.  The
analysers never mutate it; a state transition (such as granting a
request) produces a *new* snapshot that the caller may adopt or throw
away.  That is what makes "what-if" previews free.

Structural problems (ragged rows, negative counts, a process holding
more than its declared maximum) are caller bugs, not analysis results.
They raise ``StateError`` and are never silently repaired: no clamping
to zero, no padding short rows.  An *unsafe* state, by contrast, is a
perfectly valid snapshot and is reported as a normal return value.
"""

from collections.abc import Sequence
from dataclasses import dataclass

Vector = tuple[int, ...]
Matrix = tuple[Vector, ...]


class StateError(ValueError):
    """Raise when input data violates the structure of a resource state."""


def check_identifiers(kind: str, names: Sequence[str]) -> tuple[str, ...]:
    """Validate a list of process or resource identifiers.

    Args:
        kind: What the identifiers name (used in error messages).
        names: The identifiers, in display order.

    Returns:
        The identifiers as a tuple.

    Raises:
        StateError: If the list is empty, holds non-strings, or repeats a name.

    """
    if isinstance(names, str) or not isinstance(names, Sequence):
        msg = f"{kind} identifiers must be a list of strings"
        raise StateError(msg)
    if not names:
        msg = f"At least one {kind} is required"
        raise StateError(msg)
    seen: set[str] = set()
    for name in names:
        if not isinstance(name, str) or not name:
            msg = f"Invalid {kind} identifier: {name!r}"
            raise StateError(msg)
        if name in seen:
            msg = f"Duplicate {kind} identifier: {name!r}"
            raise StateError(msg)
        seen.add(name)
    return tuple(names)


def check_vector(label: str, values: Sequence[int], length: int) -> Vector:
    """Validate a vector of non-negative integer counts.

    Booleans and floats are rejected rather than coerced: ``1.0``
    from a JSON document is a malformed count, not a one.

    Raises:
        StateError: On wrong length, wrong type, or a negative value.

    """
    if isinstance(values, str) or not isinstance(values, Sequence):
        msg = f"{label} must be a list of integers"
        raise StateError(msg)
    if len(values) != length:
        msg = f"{label} has length {len(values)}, expected {length}"
        raise StateError(msg)
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int):
            msg = f"{label} contains a non-integer value: {value!r}"
            raise StateError(msg)
        if value < 0:
            msg = f"{label} contains a negative value: {value}"
            raise StateError(msg)
    return tuple(values)


def check_matrix(label: str, rows: Sequence[Sequence[int]], height: int, width: int) -> Matrix:
    """Validate a rectangular ``height`` x ``width`` matrix of counts.

    Raises:
        StateError: If the matrix is not rectangular or holds a bad value.

    """
    if isinstance(rows, str) or not isinstance(rows, Sequence):
        msg = f"{label} must be a list of rows"
        raise StateError(msg)
    if len(rows) != height:
        msg = f"{label} has {len(rows)} rows, expected {height}"
        raise StateError(msg)
    return tuple(check_vector(f"{label} row {i}", row, width) for i, row in enumerate(rows))


@dataclass(frozen=True)
class ResourceState:
    """An immutable snapshot of a Banker's-algorithm system.

    Build instances with ``make_state``; it converts lists to tuples
    and checks every invariant.  Direct construction is validated the
    same way, and list arguments are copied into tuples.

    Attributes:
        processes: Process identifiers, in index order.
        resources: Resource-type identifiers, in index order.
        allocation: ``allocation[i][j]`` units of resource j held by process i.
        maximum: ``maximum[i][j]`` declared maximum claim of process i on j.
        available: Free units of each resource.

    """

    processes: tuple[str, ...]
    resources: tuple[str, ...]
    allocation: Matrix
    maximum: Matrix
    available: Vector

    def __post_init__(self) -> None:
        """Check dimensions, value ranges, and ``need >= 0``; store tuples."""
        processes = check_identifiers("process", self.processes)
        resources = check_identifiers("resource", self.resources)
        height, width = len(processes), len(resources)
        normalised = {
            "processes": processes,
            "resources": resources,
            "allocation": check_matrix("allocation", self.allocation, height, width),
            "maximum": check_matrix("maximum", self.maximum, height, width),
            "available": check_vector("available", self.available, width),
        }
        # Frozen: copies go in through object.__setattr__ so no caller list is shared
        for name, value in normalised.items():
            object.__setattr__(self, name, value)
        for i, (held, claim) in enumerate(zip(self.allocation, self.maximum, strict=True)):
            for j, (h, c) in enumerate(zip(held, claim, strict=True)):
                if h > c:
                    msg = (
                        f"{self.processes[i]} holds {h} {self.resources[j]} "
                        f"but declared a maximum of {c}"
                    )
                    raise StateError(msg)

    @property
    def num_processes(self) -> int:
        """Return P, the number of processes."""
        return len(self.processes)

    @property
    def num_resources(self) -> int:
        """Return R, the number of resource types."""
        return len(self.resources)

    @property
    def need(self) -> Matrix:
        """Return the Need matrix (Maximum - Allocation)."""
        return tuple(
            tuple(c - h for h, c in zip(held, claim, strict=True))
            for held, claim in zip(self.allocation, self.maximum, strict=True)
        )

    @property
    def total(self) -> Vector:
        """Return total instances per resource (available + all allocations)."""
        return tuple(
            free + sum(row[j] for row in self.allocation) for j, free in enumerate(self.available)
        )

    def index_of(self, process: str) -> int:
        """Return the index of a process identifier.

        Raises:
            StateError: If the process is unknown.

        """
        try:
            return self.processes.index(process)
        except ValueError:
            msg = f"Unknown process: {process!r}"
            raise StateError(msg) from None

    def with_allocation(self, allocation: Matrix, available: Vector) -> "ResourceState":
        """Return a copy of this state with new allocation and available vectors."""
        return ResourceState(
            processes=self.processes,
            resources=self.resources,
            allocation=allocation,
            maximum=self.maximum,
            available=available,
        )

    def to_dict(self) -> dict[str, object]:
        """Serialize to a JSON-ready dict, including derived need and total."""
        return {
            "processes": list(self.processes),
            "resources": list(self.resources),
            "allocation": [list(row) for row in self.allocation],
            "max": [list(row) for row in self.maximum],
            "need": [list(row) for row in self.need],
            "available": list(self.available),
            "total": list(self.total),
        }


def make_state(
    processes: Sequence[str],
    resources: Sequence[str],
    allocation: Sequence[Sequence[int]],
    available: Sequence[int],
    *,
    maximum: Sequence[Sequence[int]] | None = None,
    need: Sequence[Sequence[int]] | None = None,
) -> ResourceState:
    """Build and validate a ``ResourceState`` from plain lists.

    Exactly the claim-based view (``maximum``) or the direct view
    (``need``) is required; if both are given they must agree cell by
    cell (``need == maximum - allocation``).

    Args:
        processes: Process identifiers.
        resources: Resource-type identifiers.
        allocation: P x R matrix of held units.
        available: Length-R vector of free units.
        maximum: P x R matrix of declared maximum claims.
        need: P x R matrix of remaining needs.

    Returns:
        A validated, immutable snapshot.

    Raises:
        StateError: If any structural invariant is violated.

    """
    procs = check_identifiers("process", processes)
    res = check_identifiers("resource", resources)
    height, width = len(procs), len(res)
    alloc = check_matrix("allocation", allocation, height, width)

    if maximum is None and need is None:
        msg = "Either a maximum or a need matrix is required"
        raise StateError(msg)

    if maximum is not None:
        claim = check_matrix("maximum", maximum, height, width)
    else:
        assert need is not None  # noqa: S101
        needs = check_matrix("need", need, height, width)
        claim = tuple(
            tuple(h + n for h, n in zip(held, row, strict=True))
            for held, row in zip(alloc, needs, strict=True)
        )

    state = ResourceState(
        processes=procs,
        resources=res,
        allocation=alloc,
        maximum=claim,
        available=check_vector("available", available, width),
    )

    if maximum is not None and need is not None:
        given = check_matrix("need", need, height, width)
        if given != state.need:
            msg = "need does not equal maximum - allocation"
            raise StateError(msg)
    return state
