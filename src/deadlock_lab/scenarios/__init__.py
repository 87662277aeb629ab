"""Scenario subsystem — stored exercises and model-generated states.

Re-exports public symbols so callers can write::

    from deadlock_lab.scenarios import ScenarioStore, seeded_store
"""

from deadlock_lab.scenarios.generated import (
    GeneratedDetection,
    GeneratedGraph,
    GeneratedState,
    detection_state_from_generated,
    graph_from_generated,
    state_from_generated,
)
from deadlock_lab.scenarios.store import (
    Scenario,
    ScenarioNotFoundError,
    ScenarioStore,
    scenario_from_record,
    seeded_store,
)

__all__ = [
    "GeneratedDetection",
    "GeneratedGraph",
    "GeneratedState",
    "Scenario",
    "ScenarioNotFoundError",
    "ScenarioStore",
    "detection_state_from_generated",
    "graph_from_generated",
    "scenario_from_record",
    "seeded_store",
    "state_from_generated",
]
