"""Analysis subsystem — Banker's safety, cycle search, detection and recovery.

Re-exports public symbols so callers can write::

    from deadlock_lab.analysis import check_safety, find_cycle, detect_deadlock
"""

from deadlock_lab.analysis.detection import (
    DetectionResult,
    DetectionState,
    RecoveryResult,
    choose_victim,
    detect_deadlock,
    make_detection_state,
    recover,
    terminate,
    wait_for_graph,
)
from deadlock_lab.analysis.graph import (
    CycleResult,
    Edge,
    EdgeKind,
    GraphError,
    Node,
    NodeKind,
    detect_rag_deadlock,
    find_cycle,
)
from deadlock_lab.analysis.safety import (
    CheckOutcome,
    RequestDecision,
    RequestReason,
    SafetyResult,
    TraceStep,
    check_safety,
    try_request,
)

__all__ = [
    "CheckOutcome",
    "CycleResult",
    "DetectionResult",
    "DetectionState",
    "Edge",
    "EdgeKind",
    "GraphError",
    "Node",
    "NodeKind",
    "RecoveryResult",
    "RequestDecision",
    "RequestReason",
    "SafetyResult",
    "TraceStep",
    "check_safety",
    "choose_victim",
    "detect_deadlock",
    "detect_rag_deadlock",
    "find_cycle",
    "make_detection_state",
    "recover",
    "terminate",
    "try_request",
    "wait_for_graph",
]
