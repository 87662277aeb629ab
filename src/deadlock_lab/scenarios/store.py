"""Scenario store — named starting states for the practice exercises.

A scenario is a story ("two departments jammed the printers") wrapped
around a ``ResourceState``.  Scenarios live as JSON documents shaped
like this::

    {
      "id": "printer-queue-jam",
      "title": "...", "description": "...", "tags": [...],
      "content": {
        "processes": ["Dept A", "Dept B"],
        "resources": ["Printer 1", "Scanner 1"],
        "allocationMatrix": [{"row": [1, 0]}, {"row": [0, 1]}],
        "maxMatrix": [{"row": [1, 1]}, {"row": [1, 1]}],
        "initialAvailableResources": [0, 0],
        "objective": "..."
      }
    }

Rows may also be plain lists.  Every record is validated on the way
in; a stored document is trusted no more than user input.

The store is in-memory with ``dump`` / ``load`` to a JSON file, the
same round trip the analysis app uses to ship its seed data.
"""

import json
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from deadlock_lab.state import ResourceState, StateError, make_state


class ScenarioNotFoundError(KeyError):
    """Raise when a scenario id is not in the store."""


@dataclass(frozen=True)
class Scenario:
    """A named exercise built around a resource state."""

    id: str
    title: str
    state: ResourceState
    description: str = ""
    objective: str = ""
    tags: tuple[str, ...] = field(default=())
    image_url: str = ""

    def to_record(self) -> dict[str, object]:
        """Serialize back to the document shape of the store."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "tags": list(self.tags),
            "imageUrl": self.image_url,
            "content": {
                "processes": list(self.state.processes),
                "resources": list(self.state.resources),
                "allocationMatrix": [{"row": list(row)} for row in self.state.allocation],
                "maxMatrix": [{"row": list(row)} for row in self.state.maximum],
                "initialAvailableResources": list(self.state.available),
                "objective": self.objective,
            },
        }

    def summary(self) -> dict[str, object]:
        """Return the listing fields (no matrices)."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "tags": list(self.tags),
        }


def _rows(label: str, value: object) -> list[Any]:
    """Unwrap ``[{"row": [...]}, ...]`` into ``[[...], ...]``."""
    if not isinstance(value, list):
        msg = f"{label} must be a list of rows"
        raise StateError(msg)
    rows: list[Any] = []
    for item in value:
        if isinstance(item, Mapping):
            if "row" not in item:
                msg = f"{label} entry is missing its 'row' field"
                raise StateError(msg)
            rows.append(item["row"])
        else:
            rows.append(item)
    return rows


def _require(record: Mapping[str, Any], key: str, label: str) -> Any:
    if key not in record:
        msg = f"{label} is missing required field {key!r}"
        raise StateError(msg)
    return record[key]


def scenario_from_record(record: Mapping[str, Any]) -> Scenario:
    """Parse and validate one scenario document.

    Raises:
        StateError: If a field is missing or the matrices are invalid.

    """
    scenario_id = _require(record, "id", "scenario")
    if not isinstance(scenario_id, str) or not scenario_id:
        msg = f"Invalid scenario id: {scenario_id!r}"
        raise StateError(msg)
    label = f"scenario {scenario_id!r}"
    content = _require(record, "content", label)
    if not isinstance(content, Mapping):
        msg = f"{label} content must be an object"
        raise StateError(msg)

    state = make_state(
        processes=_require(content, "processes", label),
        resources=_require(content, "resources", label),
        allocation=_rows("allocationMatrix", _require(content, "allocationMatrix", label)),
        maximum=_rows("maxMatrix", _require(content, "maxMatrix", label)),
        available=_require(content, "initialAvailableResources", label),
    )
    tags = record.get("tags", [])
    return Scenario(
        id=scenario_id,
        title=str(record.get("title", scenario_id)),
        state=state,
        description=str(record.get("description", "")),
        objective=str(content.get("objective", "")),
        tags=tuple(str(tag) for tag in tags) if isinstance(tags, list) else (),
        image_url=str(record.get("imageUrl", "")),
    )


class ScenarioStore:
    """In-memory scenario collection keyed by id, in insertion order."""

    def __init__(self) -> None:
        """Create an empty store."""
        self._scenarios: dict[str, Scenario] = {}

    def add(self, scenario: Scenario) -> None:
        """Insert or replace a scenario."""
        self._scenarios[scenario.id] = scenario

    def get(self, scenario_id: str) -> Scenario:
        """Return a scenario by id.

        Raises:
            ScenarioNotFoundError: If no scenario has that id.

        """
        try:
            return self._scenarios[scenario_id]
        except KeyError:
            msg = f"No scenario with id {scenario_id!r}"
            raise ScenarioNotFoundError(msg) from None

    def ids(self) -> list[str]:
        """Return all scenario ids."""
        return list(self._scenarios)

    def all(self) -> list[Scenario]:
        """Return all scenarios."""
        return list(self._scenarios.values())

    def __iter__(self) -> Iterator[Scenario]:
        """Iterate over scenarios in insertion order."""
        return iter(self.all())

    def __len__(self) -> int:
        """Return the number of scenarios."""
        return len(self._scenarios)

    def dump(self, path: Path) -> None:
        """Save every scenario to a JSON file."""
        records = [scenario.to_record() for scenario in self._scenarios.values()]
        path.write_text(json.dumps(records, indent=2), encoding="utf-8")

    @classmethod
    def load(cls, path: Path) -> "ScenarioStore":
        """Load scenarios from a JSON file holding a list of records.

        Raises:
            FileNotFoundError: If the path does not exist.
            StateError: If the file is not a list of valid records.

        """
        try:
            records = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            msg = f"{path} is not valid UTF-8 JSON: {exc}"
            raise StateError(msg) from exc
        if not isinstance(records, list):
            msg = f"{path} must contain a list of scenario records"
            raise StateError(msg)
        store = cls()
        for record in records:
            if not isinstance(record, Mapping):
                msg = f"{path} contains a non-object scenario record"
                raise StateError(msg)
            store.add(scenario_from_record(record))
        return store


SEED_RECORDS: list[dict[str, object]] = [
    {
        "id": "printer-queue-jam",
        "title": "The Printer Queue Jam",
        "description": (
            "Two departments are trying to print large documents, but the printers "
            "are gridlocked. Can you sort it out?"
        ),
        "tags": ["Resource Allocation", "Beginner"],
        "content": {
            "processes": ["Dept A", "Dept B"],
            "resources": ["Printer 1", "Scanner 1"],
            "allocationMatrix": [{"row": [1, 0]}, {"row": [0, 1]}],
            "maxMatrix": [{"row": [1, 1]}, {"row": [1, 1]}],
            "initialAvailableResources": [0, 0],
            "objective": (
                "A deadlock has occurred. Identify the circular wait and determine a "
                "recovery strategy."
            ),
        },
    },
    {
        "id": "database-locks-dilemma",
        "title": "Database Deadlock Dilemma",
        "description": (
            "Multiple transactions are stuck, waiting on each other to release table "
            "locks. Find the deadlock and resolve it."
        ),
        "tags": ["Cycle Detection", "Intermediate"],
        "content": {
            "processes": ["T1", "T2", "T3"],
            "resources": ["Table A", "Table B", "Table C"],
            "allocationMatrix": [{"row": [1, 0, 0]}, {"row": [0, 1, 0]}, {"row": [0, 0, 1]}],
            "maxMatrix": [{"row": [1, 1, 0]}, {"row": [0, 1, 1]}, {"row": [1, 0, 1]}],
            "initialAvailableResources": [0, 0, 0],
            "objective": (
                "Analyze the resource graph to find the cycle and determine which "
                "process to terminate to break the deadlock."
            ),
        },
    },
    {
        "id": "bankers-algorithm-challenge",
        "title": "The Banker of Wall Street",
        "description": (
            "You're a banker managing loans. Use Banker's algorithm to ensure the bank "
            "never enters an unsafe state by granting or denying requests."
        ),
        "tags": ["Banker's Algorithm", "Advanced"],
        "content": {
            "processes": ["Client 1", "Client 2", "Client 3", "Client 4"],
            "resources": ["Loan A", "Loan B", "Loan C"],
            "allocationMatrix": [
                {"row": [0, 1, 0]},
                {"row": [2, 0, 0]},
                {"row": [3, 0, 2]},
                {"row": [2, 1, 1]},
            ],
            "maxMatrix": [
                {"row": [7, 5, 3]},
                {"row": [3, 2, 2]},
                {"row": [9, 0, 2]},
                {"row": [4, 2, 2]},
            ],
            "initialAvailableResources": [3, 3, 2],
            "objective": (
                "A new request arrives from Client 2 for [1,0,2]. Determine if granting "
                "this request will lead to an unsafe state using the Banker's algorithm."
            ),
        },
    },
]


def seeded_store() -> ScenarioStore:
    """Return a store holding the built-in seed scenarios."""
    store = ScenarioStore()
    for record in SEED_RECORDS:
        store.add(scenario_from_record(record))
    return store
