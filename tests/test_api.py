"""
Tests for the FastAPI endpoints.
"""

import pytest
from fastapi.testclient import TestClient
from httpx import AsyncClient, ASGITransport
from fastapi import WebSocketDisconnect

from stepgraph.main import app
from stepgraph.workflows import register_demo_workflows


# ============================================================
# Sync Test Client (for simple tests)
# ============================================================

@pytest.fixture(scope="module")
def client():
    # Entering the client runs the lifespan, which registers the demo workflows
    with TestClient(app) as test_client:
        yield test_client


class TestRootEndpoints:
    """Tests for root endpoints."""

    def test_root(self, client):
        """Test root endpoint."""
        response = client.get("/")
        assert response.status_code == 200

        data = response.json()
        assert "name" in data
        assert "version" in data
        assert "endpoints" in data

    def test_health(self, client):
        """Test health endpoint."""
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["graphs_count"] >= 4


class TestGraphEndpoints:
    """Tests for graph endpoints."""

    def test_list_graphs(self, client):
        """Test listing graphs."""
        response = client.get("/graph/")
        assert response.status_code == 200

        data = response.json()
        assert data["total"] == len(data["graphs"])
        graph_ids = [g["graph_id"] for g in data["graphs"]]
        for graph_id in ("simple", "conditional", "retry", "research"):
            assert graph_id in graph_ids

    def test_get_demo_workflow(self, client):
        """Test getting a demo workflow."""
        response = client.get("/graph/research")
        assert response.status_code == 200

        data = response.json()
        assert data["graph_id"] == "research"
        assert data["name"] == "Research Agent"
        assert data["start_node_id"] == "start"
        assert data["output_key"] == "final_answer"
        assert data["node_count"] == 11
        assert data["mermaid_diagram"].startswith("graph TD;")

        search = next(n for n in data["nodes"] if n["id"] == "primary_search")
        assert search["timeout"] == 10.0
        assert search["has_failure_handler"] is True

        conditional = [e for e in data["edges"] if e["conditional"]]
        assert any(e["label"] == "Search error" for e in conditional)

    def test_get_nonexistent_graph(self, client):
        """Test getting a graph that doesn't exist."""
        response = client.get("/graph/nonexistent-graph")
        assert response.status_code == 404

    def test_run_simple_workflow(self, client):
        """A synchronous run returns output, path and events."""
        response = client.post("/graph/run", json={"graph_id": "simple", "input": "hello"})
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "completed"
        assert data["output"] == "Processed: Input 'hello' has 5 characters"
        assert data["execution_path"] == ["start", "analyze", "process"]
        assert data["events"][0]["type"] == "run_started"
        assert data["events"][-1]["type"] == "run_completed"
        assert data["error"] is None

    def test_run_state_after_run(self, client):
        """The run state includes the highlighted diagram."""
        run = client.post("/graph/run", json={"graph_id": "conditional", "input": "hi"}).json()

        response = client.get(f"/graph/state/{run['run_id']}")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "completed"
        assert data["input"] == "hi"
        assert data["output"] == "Quick processing for short input"
        assert data["current_node"] is None
        assert data["execution_path"] == ["start", "short_path"]
        assert "class start,short_path executedNode;" in data["mermaid_diagram"]

    def test_get_nonexistent_run(self, client):
        """Test getting a run that doesn't exist."""
        response = client.get("/graph/state/no-such-run")
        assert response.status_code == 404

    def test_list_runs_by_graph(self, client):
        """Runs can be filtered by graph id."""
        client.post("/graph/run", json={"graph_id": "simple", "input": "x"})

        response = client.get("/graph/runs", params={"graph_id": "simple"})
        assert response.status_code == 200

        data = response.json()
        assert data["total"] >= 1
        assert all(run["graph_id"] == "simple" for run in data["runs"])


class TestWebSocket:
    """Tests for the streaming endpoint."""

    def test_stream_run(self, client):
        """Events are streamed between 'started' and 'completed'."""
        with client.websocket_connect("/ws/run/simple") as ws:
            ws.send_json({"action": "start", "input": "hello"})

            started = ws.receive_json()
            assert started["type"] == "started"
            assert started["graph_id"] == "simple"

            event_types = []
            message = ws.receive_json()
            while message["type"] == "event":
                event_types.append(message["event"]["type"])
                message = ws.receive_json()

            assert message["type"] == "completed"
            assert message["status"] == "completed"
            assert message["output"] == "Processed: Input 'hello' has 5 characters"
            assert event_types[0] == "run_started"
            assert event_types[-1] == "run_completed"
            assert event_types.count("node_started") == 3

    def test_stream_requires_start_action(self, client):
        """Anything but a start action is rejected."""
        with client.websocket_connect("/ws/run/simple") as ws:
            ws.send_json({"action": "stop"})
            message = ws.receive_json()
            assert message["type"] == "error"

    def test_stream_unknown_graph(self, client):
        """Connecting to an unknown graph closes the socket with 4004."""
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws/run/no-such-graph") as ws:
                ws.receive_json()
        assert exc_info.value.code == 4004


# ============================================================
# Async Tests (for async endpoints)
# ============================================================

@pytest.mark.asyncio
async def test_run_reports_failure_in_body():
    """A failing run is a 200 with status 'failed', not an HTTP error."""
    from stepgraph.engine.graph import GraphDefinition
    from stepgraph.engine.node import Node
    from stepgraph.storage.memory import graph_storage

    await graph_storage.save(GraphDefinition(
        "only", "missing_key", graph_id="no-output",
        components=[Node(id="only", handler=lambda c: {})],
    ))

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.post("/graph/run", json={"graph_id": "no-output", "input": 1})
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "failed"
        assert data["error_type"] == "OutputKeyMissingError"
        assert data["output"] is None
        assert data["execution_path"] == ["only"]


@pytest.mark.asyncio
async def test_async_execution():
    """Test async execution mode."""
    await register_demo_workflows()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        run_data = {
            "graph_id": "simple",
            "input": "background",
            "async_execution": True
        }

        response = await ac.post("/graph/run", json=run_data)
        assert response.status_code == 200

        data = response.json()
        assert "run_id" in data
        assert data["status"] == "pending"

        run_id = data["run_id"]
        state_response = await ac.get(f"/graph/state/{run_id}")
        assert state_response.status_code == 200
        assert state_response.json()["graph_id"] == "simple"


@pytest.mark.asyncio
async def test_run_nonexistent_graph():
    """Test running a graph that doesn't exist."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        run_data = {
            "graph_id": "nonexistent-graph",
            "input": None
        }

        response = await ac.post("/graph/run", json=run_data)
        assert response.status_code == 404


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
