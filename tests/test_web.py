"""Tests for the browser-based web UI.

The web UI exposes the analysers as JSON endpoints.  Tests use
``pytest.importorskip`` so they are skipped gracefully when Flask is
not installed.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

flask = pytest.importorskip("flask")

from deadlock_lab.config import Config  # noqa: E402
from deadlock_lab.scenarios import seeded_store  # noqa: E402
from deadlock_lab.web.app import create_app  # noqa: E402

HTTP_OK = 200
HTTP_BAD_REQUEST = 400
HTTP_NOT_FOUND = 404
SEED_COUNT = 3

CLASSIC_STATE: dict[str, Any] = {
    "processes": ["P0", "P1", "P2", "P3", "P4"],
    "resources": ["A", "B", "C"],
    "allocation": [[0, 1, 0], [2, 0, 0], [3, 0, 2], [2, 1, 1], [0, 0, 2]],
    "max": [[7, 5, 3], [3, 2, 2], [9, 0, 2], [2, 2, 2], [4, 3, 3]],
    "available": [3, 3, 2],
}

CIRCULAR_DETECTION: dict[str, Any] = {
    "processes": ["P0", "P1"],
    "resources": ["A", "B"],
    "allocation": [[1, 0], [0, 1]],
    "request": [[0, 1], [1, 0]],
    "available": [0, 0],
}


def _create_client() -> Any:
    """Create a test client from a fresh app with the seed scenarios."""
    app = create_app(Config(), seeded_store())
    app.config["TESTING"] = True
    return app.test_client()


# -- Cycle 1: App creation and index page -----------------------------------


class TestAppCreation:
    """Verify app factory and landing page."""

    def test_create_app_returns_flask(self) -> None:
        """create_app should return a Flask application."""
        assert isinstance(create_app(Config(), seeded_store()), flask.Flask)

    def test_create_app_loads_scenarios_file(self, tmp_path: Path) -> None:
        """A configured scenarios file replaces the seeds."""
        path = tmp_path / "scenarios.json"
        path.write_text("[]")
        app = create_app(Config(scenarios_path=path))
        response = app.test_client().get("/api/scenarios")
        assert response.get_json() == {"scenarios": []}

    def test_index_returns_html(self) -> None:
        """GET / should list the scenarios."""
        response = _create_client().get("/")
        assert response.status_code == HTTP_OK
        assert "text/html" in response.content_type
        assert b"The Printer Queue Jam" in response.data


# -- Cycle 2: Scenarios -------------------------------------------------------


class TestScenarioEndpoints:
    """Verify scenario listing and detail."""

    def test_list(self) -> None:
        """All seed scenarios are listed."""
        data = _create_client().get("/api/scenarios").get_json()
        assert len(data["scenarios"]) == SEED_COUNT

    def test_detail_includes_safety(self) -> None:
        """A scenario comes with its safety analysis."""
        data = _create_client().get("/api/scenarios/printer-queue-jam").get_json()
        assert data["state"]["need"] == [[0, 1], [1, 0]]
        assert data["safety"]["is_safe"] is False
        assert data["safety"]["unfinished_names"] == ["Dept A", "Dept B"]

    def test_unknown_scenario(self) -> None:
        """Unknown ids are a 404."""
        response = _create_client().get("/api/scenarios/nope")
        assert response.status_code == HTTP_NOT_FOUND


# -- Cycle 3: Banker's endpoints ----------------------------------------------


class TestSafetyEndpoints:
    """Verify /api/safety and /api/request."""

    def test_safety(self) -> None:
        """The classic state is safe with the textbook sequence."""
        response = _create_client().post("/api/safety", json=CLASSIC_STATE)
        assert response.status_code == HTTP_OK
        data = response.get_json()
        assert data["is_safe"] is True
        assert data["safe_sequence"] == [1, 3, 4, 0, 2]
        assert data["trace"][0]["outcome"] == "waiting"

    def test_unsafe_is_not_an_error(self) -> None:
        """An unsafe state is a normal 200 response."""
        state = {
            "processes": ["P0", "P1"],
            "resources": ["A", "B"],
            "allocation": [[1, 0], [0, 1]],
            "need": [[0, 1], [1, 0]],
            "available": [0, 0],
        }
        response = _create_client().post("/api/safety", json=state)
        assert response.status_code == HTTP_OK
        assert response.get_json()["is_safe"] is False

    def test_malformed_state_is_bad_request(self) -> None:
        """A ragged matrix is a 400 with an error message."""
        state = dict(CLASSIC_STATE, available=[3, 3])
        response = _create_client().post("/api/safety", json=state)
        assert response.status_code == HTTP_BAD_REQUEST
        assert "available" in response.get_json()["error"]

    def test_request_by_name(self) -> None:
        """Processes can be named in a request."""
        body = {"state": CLASSIC_STATE, "process": "P1", "request": [1, 0, 2]}
        data = _create_client().post("/api/request", json=body).get_json()
        assert data["granted"] is True
        assert data["resulting_state"]["available"] == [2, 3, 0]

    def test_request_denied(self) -> None:
        """A request beyond the declared need is denied, not an error."""
        body = {"state": CLASSIC_STATE, "process": 3, "request": [0, 2, 0]}
        response = _create_client().post("/api/request", json=body)
        assert response.status_code == HTTP_OK
        data = response.get_json()
        assert data["granted"] is False
        assert data["reason"] == "exceeds declared maximum"
        assert data["resulting_state"] is None


# -- Cycle 4: Graph and detection endpoints ----------------------------------


class TestGraphEndpoints:
    """Verify /api/cycle, /api/detection and /api/recovery."""

    def test_cycle(self) -> None:
        """A circular RAG reports its cycle."""
        body = {
            "nodes": [
                {"id": "P0", "kind": "process"},
                {"id": "P1", "kind": "process"},
                {"id": "R0", "kind": "resource"},
                {"id": "R1", "kind": "resource"},
            ],
            "edges": [
                {"id": "e0", "source": "P0", "target": "R0", "kind": "request"},
                {"id": "e1", "source": "R0", "target": "P1", "kind": "assignment"},
                {"id": "e2", "source": "P1", "target": "R1", "kind": "request"},
                {"id": "e3", "source": "R1", "target": "P0", "kind": "assignment"},
            ],
        }
        data = _create_client().post("/api/cycle", json=body).get_json()
        assert data["has_cycle"] is True
        assert data["cycle_nodes"] == ["P0", "R0", "P1", "R1"]

    def test_cycle_bad_edge_kind(self) -> None:
        """Unknown edge kinds are a 400."""
        body = {
            "nodes": [{"id": "P0", "kind": "process"}],
            "edges": [{"id": "e0", "source": "P0", "target": "P0", "kind": "loop"}],
        }
        response = _create_client().post("/api/cycle", json=body)
        assert response.status_code == HTTP_BAD_REQUEST

    def test_detection(self) -> None:
        """Detection reports the deadlocked pair and a wait-for witness."""
        data = _create_client().post("/api/detection", json=CIRCULAR_DETECTION).get_json()
        assert data["deadlocked_names"] == ["P0", "P1"]
        assert data["wait_for"]["cycle"]["cycle_nodes"] == ["P0", "P1"]

    def test_recovery(self) -> None:
        """Recovery terminates one process of the pair."""
        data = _create_client().post("/api/recovery", json=CIRCULAR_DETECTION).get_json()
        assert data["resolved"] is True
        assert data["victims"] == ["P0"]


# -- Cycle 5: Generated payloads ----------------------------------------------


class TestGeneratedEndpoints:
    """Verify validation of model-generated payloads."""

    def test_generated_state(self) -> None:
        """A generated state for a scenario is validated and analysed."""
        body = {
            "scenario_id": "printer-queue-jam",
            "payload": {
                "allocationMatrix": [[0, 0], [0, 1]],
                "maxMatrix": [[1, 1], [1, 1]],
                "availableVector": [1, 0],
                "explanation": "Dept A can run first.",
            },
        }
        data = _create_client().post("/api/generated/state", json=body).get_json()
        assert data["explanation"] == "Dept A can run first."
        assert data["safety"]["is_safe"] is True

    def test_generated_state_invalid(self) -> None:
        """A generated state with need < 0 is a 400."""
        body = {
            "scenario_id": "printer-queue-jam",
            "payload": {
                "allocationMatrix": [[2, 0], [0, 1]],
                "maxMatrix": [[1, 1], [1, 1]],
                "availableVector": [0, 0],
            },
        }
        response = _create_client().post("/api/generated/state", json=body)
        assert response.status_code == HTTP_BAD_REQUEST

    def test_generated_detection(self) -> None:
        """A generated request-matrix scenario is analysed."""
        payload = {
            "processes": 2,
            "resources": 2,
            "allocationMatrix": [[1, 0], [0, 1]],
            "requestMatrix": [[0, 1], [1, 0]],
            "availableVector": [0, 0],
        }
        body = {"payload": payload}
        data = _create_client().post("/api/generated/detection", json=body).get_json()
        assert data["detection"]["is_deadlocked"] is True

    def test_generated_graph(self) -> None:
        """A generated safe graph has no cycle."""
        payload = {
            "nodes": [{"type": "process", "label": "P0"}, {"type": "resource", "label": "R0"}],
            "edges": [{"sourceLabel": "R0", "targetLabel": "P0", "type": "assignment"}],
            "explanation": "Nothing waits.",
        }
        data = _create_client().post("/api/generated/graph", json={"payload": payload}).get_json()
        assert data["cycle"]["has_cycle"] is False
        assert data["edges"][0]["id"] == "e0"


# -- Cycle 6: Error handling and audit log -----------------------------------


class TestErrorHandling:
    """Verify error responses and the audit trail."""

    def test_no_json_body(self) -> None:
        """POST with no JSON should return 400."""
        response = _create_client().post("/api/safety", data="not json")
        assert response.status_code == HTTP_BAD_REQUEST

    def test_missing_field(self) -> None:
        """POST without a required field should return 400."""
        response = _create_client().post("/api/request", json={"process": 0})
        assert response.status_code == HTTP_BAD_REQUEST

    def test_log_records_analyses_and_rejections(self) -> None:
        """Each analysis and each rejected input is audited."""
        client = _create_client()
        client.post("/api/safety", json=CLASSIC_STATE)
        client.post("/api/safety", json={"processes": []})
        entries = client.get("/api/log").get_json()["entries"]
        assert [e["source"] for e in entries] == ["safety", "api"]
        assert entries[0]["level"] == "INFO"
        assert entries[0]["detail"] == {"safe": True}
        assert entries[1]["level"] == "WARNING"
        assert entries[1]["detail"] == {"path": "/api/safety"}

    def test_log_since(self) -> None:
        """Polling with ?since skips entries already seen."""
        client = _create_client()
        client.post("/api/safety", json=CLASSIC_STATE)
        client.post("/api/recovery", json=CIRCULAR_DETECTION)
        entries = client.get("/api/log?since=1").get_json()["entries"]
        assert [e["source"] for e in entries] == ["recovery"]

    def test_log_since_must_be_integer(self) -> None:
        """A non-numeric ?since is a 400."""
        response = _create_client().get("/api/log?since=last")
        assert response.status_code == HTTP_BAD_REQUEST


class TestStrictInputTypes:
    """Identifiers from JSON must already be strings."""

    def test_non_string_scenario_id(self) -> None:
        """A list as scenario id is a 400 with an audit warning."""
        client = _create_client()
        body = {"scenario_id": ["printer-queue-jam"], "payload": {}}
        response = client.post("/api/generated/state", json=body)
        assert response.status_code == HTTP_BAD_REQUEST
        assert "scenario_id" in response.get_json()["error"]
        entries = client.get("/api/log").get_json()["entries"]
        assert [e["level"] for e in entries] == ["WARNING"]

    def test_null_node_label(self) -> None:
        """A null label is rejected, not turned into the text 'None'."""
        body = {"nodes": [{"id": "P0", "kind": "process", "label": None}], "edges": []}
        response = _create_client().post("/api/cycle", json=body)
        assert response.status_code == HTTP_BAD_REQUEST

    def test_numeric_edge_endpoint(self) -> None:
        """Numeric node references are rejected."""
        body = {
            "nodes": [{"id": "P0", "kind": "process"}],
            "edges": [{"id": "e0", "source": 0, "target": "P0", "kind": "wait-for"}],
        }
        response = _create_client().post("/api/cycle", json=body)
        assert response.status_code == HTTP_BAD_REQUEST

    def test_node_must_be_object(self) -> None:
        """Each node is a JSON object."""
        response = _create_client().post("/api/cycle", json={"nodes": ["P0"], "edges": []})
        assert response.status_code == HTTP_BAD_REQUEST
