"""Flask application factory for the deadlock-lab web UI.

The ``create_app`` function loads the scenario store, creates an audit
log, and returns a Flask app whose JSON endpoints wrap the pure
analysers:

- ``GET /`` — render the index page listing tools and scenarios.
- ``GET /api/scenarios`` / ``GET /api/scenarios/<id>`` — stored exercises.
- ``POST /api/safety`` — Banker's safety check with full trace.
- ``POST /api/request`` — Banker's resource-request check.
- ``POST /api/cycle`` — cycle search in a resource-allocation graph.
- ``POST /api/detection`` / ``POST /api/recovery`` — multi-instance
  detection and recovery by termination.
- ``POST /api/generated/{state,detection,graph}`` — validate and analyse
  model-generated payloads.
- ``GET /api/log?since=N`` — the audit log.

Unsafe states, denied requests and cycles are ordinary 200 responses.
Malformed input (``StateError``) is a 400; an unknown scenario is a 404.
"""

from __future__ import annotations

import os
from typing import Any

from flask import Flask, Response, jsonify, render_template, request

from deadlock_lab.analysis import (
    Edge,
    EdgeKind,
    GraphError,
    Node,
    NodeKind,
    check_safety,
    detect_deadlock,
    detect_rag_deadlock,
    find_cycle,
    make_detection_state,
    recover,
    try_request,
    wait_for_graph,
)
from deadlock_lab.config import Config
from deadlock_lab.logging import AuditLog
from deadlock_lab.scenarios import (
    ScenarioNotFoundError,
    ScenarioStore,
    detection_state_from_generated,
    graph_from_generated,
    seeded_store,
    state_from_generated,
)
from deadlock_lab.state import ResourceState, StateError, make_state

_HTTP_BAD_REQUEST = 400
_HTTP_NOT_FOUND = 404


def _field(data: dict[str, Any], key: str) -> Any:
    if key not in data:
        msg = f"Missing {key!r} field"
        raise StateError(msg)
    return data[key]


def _object(value: object, label: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        msg = f"{label} must be a JSON object"
        raise StateError(msg)
    return value


def _text(data: dict[str, Any], key: str, default: str | None = None) -> str:
    """Return a string field; other JSON types are rejected, not converted."""
    value = data.get(key, default) if default is not None else _field(data, key)
    if not isinstance(value, str):
        msg = f"{key!r} must be a string, got {value!r}"
        raise StateError(msg)
    return value


def _state_from(data: dict[str, Any]) -> ResourceState:
    """Build a Banker's state from ``processes/resources/allocation/max|need/available``."""
    if "max" not in data and "need" not in data:
        msg = "Missing 'max' or 'need' field"
        raise StateError(msg)
    return make_state(
        _field(data, "processes"),
        _field(data, "resources"),
        _field(data, "allocation"),
        _field(data, "available"),
        maximum=data.get("max"),
        need=data.get("need"),
    )


def _kind(kind: type[NodeKind] | type[EdgeKind], data: dict[str, Any]) -> Any:
    raw = _text(data, "kind")
    try:
        return kind(raw)
    except ValueError:
        msg = f"Unknown kind {raw!r}"
        raise GraphError(msg) from None


def _graph_from(data: dict[str, Any]) -> tuple[list[Node], list[Edge]]:
    """Parse ``{"nodes": [...], "edges": [...]}`` into graph values.

    Ids, endpoints and labels must already be strings; a ``null`` or
    numeric id is rejected rather than turned into ``"None"`` or ``"3"``.
    """
    raw_nodes, raw_edges = _field(data, "nodes"), _field(data, "edges")
    if not isinstance(raw_nodes, list) or not isinstance(raw_edges, list):
        msg = "'nodes' and 'edges' must be lists"
        raise GraphError(msg)
    nodes = []
    for item in raw_nodes:
        node = _object(item, "Each node")
        nodes.append(Node(_text(node, "id"), _kind(NodeKind, node), _text(node, "label", "")))
    edges = []
    for item in raw_edges:
        edge = _object(item, "Each edge")
        edges.append(
            Edge(
                _text(edge, "id"),
                _text(edge, "source"),
                _text(edge, "target"),
                _kind(EdgeKind, edge),
            )
        )
    return nodes, edges


def create_app(config: Config | None = None, store: ScenarioStore | None = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        config: Settings; read from the environment when omitted.
        store: Scenario store; loaded from ``config.scenarios_path`` or
            seeded with the built-in scenarios when omitted.

    Returns:
        A configured Flask application ready to serve.

    """
    if config is None:
        config = Config.from_env(os.environ)
    if store is None:
        store = (
            ScenarioStore.load(config.scenarios_path) if config.scenarios_path else seeded_store()
        )
    audit = AuditLog(config.log_capacity)

    app = Flask(__name__)
    app.config["DEADLOCK_LAB"] = config
    app.extensions["deadlock_lab.audit"] = audit
    app.extensions["deadlock_lab.store"] = store

    @app.errorhandler(StateError)
    def invalid_input(exc: StateError) -> tuple[Response, int]:  # pyright: ignore[reportUnusedFunction]
        """Report malformed input as a 400 and audit it."""
        audit.warning("api", str(exc), path=request.path)
        return jsonify({"error": str(exc)}), _HTTP_BAD_REQUEST

    @app.errorhandler(ScenarioNotFoundError)
    def unknown_scenario(exc: ScenarioNotFoundError) -> tuple[Response, int]:  # pyright: ignore[reportUnusedFunction]
        """Report an unknown scenario id as a 404."""
        return jsonify({"error": exc.args[0]}), _HTTP_NOT_FOUND

    def body() -> dict[str, Any]:
        return _object(request.get_json(silent=True), "Request body")

    @app.route("/")
    def index() -> str:  # pyright: ignore[reportUnusedFunction]
        """Render the index page."""
        return render_template("index.html", scenarios=store.all())

    @app.route("/api/scenarios")
    def list_scenarios() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return the scenario listing."""
        return jsonify({"scenarios": [s.summary() for s in store]})

    @app.route("/api/scenarios/<scenario_id>")
    def show_scenario(scenario_id: str) -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return one scenario with its state and safety analysis."""
        scenario = store.get(scenario_id)
        result = check_safety(scenario.state)
        data = scenario.summary()
        data.update(
            objective=scenario.objective,
            state=scenario.state.to_dict(),
            safety=result.to_dict(scenario.state),
        )
        return jsonify(data)

    @app.route("/api/safety", methods=["POST"])
    def safety() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Run the Banker's safety check.

        Expects JSON body: ``{"processes", "resources", "allocation",
        "max" or "need", "available"}``.
        """
        state = _state_from(body())
        result = check_safety(state)
        verdict = "safe" if result.is_safe else "unsafe"
        shape = f"{state.num_processes}x{state.num_resources}"
        audit.info("safety", f"{shape} state is {verdict}", safe=result.is_safe)
        return jsonify(result.to_dict(state))

    @app.route("/api/request", methods=["POST"])
    def resource_request() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Run the Banker's resource-request check.

        Expects JSON body: ``{"state": {...}, "process": index or name,
        "request": [...]}``.
        """
        data = body()
        state = _state_from(_object(_field(data, "state"), "'state'"))
        process = _field(data, "process")
        index = state.index_of(process) if isinstance(process, str) else process
        decision = try_request(state, index, _field(data, "request"))
        audit.info(
            "request",
            f"request from {state.processes[index]}: {decision.reason}",
            granted=decision.granted,
        )
        return jsonify(decision.to_dict())

    @app.route("/api/cycle", methods=["POST"])
    def cycle() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Search a graph for a cycle.

        Expects JSON body: ``{"nodes": [...], "edges": [...],
        "single_instance": true}``.  With ``single_instance`` (the
        default) the graph is treated as a RAG and a cycle means
        deadlock; otherwise it is a plain cycle search.
        """
        data = body()
        nodes, edges = _graph_from(data)
        if data.get("single_instance", True):
            result = detect_rag_deadlock(nodes, edges)
        else:
            result = find_cycle(nodes, edges)
        found = " -> ".join(result.cycle_nodes) if result.has_cycle else "no cycle"
        audit.info("cycle", found, has_cycle=result.has_cycle)
        return jsonify(result.to_dict())

    @app.route("/api/detection", methods=["POST"])
    def detection() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Run multi-instance deadlock detection.

        Expects JSON body: ``{"processes", "resources", "allocation",
        "request", "available"}``.  The response adds a wait-for graph
        and a cycle witness in it for highlighting.
        """
        data = body()
        state = make_detection_state(
            _field(data, "processes"),
            _field(data, "resources"),
            _field(data, "allocation"),
            _field(data, "request"),
            _field(data, "available"),
        )
        result = detect_deadlock(state)
        nodes, edges = wait_for_graph(state)
        payload = result.to_dict(state)
        payload["wait_for"] = {
            "nodes": [n.to_dict() for n in nodes],
            "edges": [e.to_dict() for e in edges],
            "cycle": find_cycle(nodes, edges).to_dict(),
        }
        audit.info(
            "detection",
            f"deadlocked: {payload['deadlocked_names'] or 'none'}",
            deadlocked=result.is_deadlocked,
        )
        return jsonify(payload)

    @app.route("/api/recovery", methods=["POST"])
    def recovery() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Recover from deadlock by terminating processes."""
        data = body()
        state = make_detection_state(
            _field(data, "processes"),
            _field(data, "resources"),
            _field(data, "allocation"),
            _field(data, "request"),
            _field(data, "available"),
        )
        result = recover(state)
        victims = list(result.victims) or "none"
        audit.info("recovery", f"terminated: {victims}", resolved=result.resolved)
        return jsonify(result.to_dict())

    @app.route("/api/generated/state", methods=["POST"])
    def generated_state() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Validate a generated Banker's state for a scenario and analyse it.

        Expects JSON body: ``{"scenario_id": "...", "payload": {...}}``.
        """
        data = body()
        scenario = store.get(_text(data, "scenario_id"))
        generated = state_from_generated(
            _field(data, "payload"),
            processes=scenario.state.processes,
            resources=scenario.state.resources,
        )
        result = check_safety(generated.state)
        audit.info("generated", f"generated state for {scenario.id}", safe=result.is_safe)
        return jsonify(
            {
                "state": generated.state.to_dict(),
                "explanation": generated.explanation,
                "safety": result.to_dict(generated.state),
            }
        )

    @app.route("/api/generated/detection", methods=["POST"])
    def generated_detection() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Validate a generated request-matrix scenario and run detection."""
        generated = detection_state_from_generated(_field(body(), "payload"))
        result = detect_deadlock(generated.state)
        audit.info("generated", "generated detection scenario", deadlocked=result.is_deadlocked)
        return jsonify(
            {
                "state": generated.state.to_dict(),
                "explanation": generated.explanation,
                "detection": result.to_dict(generated.state),
            }
        )

    @app.route("/api/generated/graph", methods=["POST"])
    def generated_graph() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Validate a generated single-instance RAG and search it for a cycle."""
        generated = graph_from_generated(_field(body(), "payload"))
        result = detect_rag_deadlock(generated.nodes, generated.edges)
        audit.info("generated", "generated graph", has_cycle=result.has_cycle)
        return jsonify(
            {
                "nodes": [n.to_dict() for n in generated.nodes],
                "edges": [e.to_dict() for e in generated.edges],
                "explanation": generated.explanation,
                "cycle": result.to_dict(),
            }
        )

    @app.route("/api/log")
    def audit_log() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return the audit log, oldest first.

        ``?since=N`` returns only entries numbered after ``N``, so a
        client can poll without seeing an entry twice.
        """
        raw = request.args.get("since", "0")
        try:
            since = int(raw)
        except ValueError:
            msg = f"'since' must be an integer, got {raw!r}"
            raise StateError(msg) from None
        return jsonify({"entries": [entry.to_dict() for entry in audit.since(since)]})

    return app


def main() -> None:
    """Run the web UI development server.

    This is the ``deadlock-lab-web`` console entry point.
    """
    config = Config.from_env(os.environ)
    app = create_app(config)
    app.run(host=config.host, port=config.port, debug=config.debug)
