"""
Tests for the in-memory graph and run registries.
"""

import pytest

from stepgraph.engine.graph import GraphDefinition
from stepgraph.engine.node import Node
from stepgraph.storage.memory import GraphStorage, RunStorage


def one_node_graph(graph_id: str) -> GraphDefinition:
    return GraphDefinition(
        "a", "out", graph_id=graph_id, name=f"Graph {graph_id}",
        components=[Node(id="a", handler=lambda c: {"out": 1})],
    )


class TestGraphStorage:
    """Tests for GraphStorage."""

    @pytest.mark.asyncio
    async def test_save_and_get(self):
        """Graphs are stored by id and replaced on re-save."""
        storage = GraphStorage()
        await storage.save(one_node_graph("g1"))
        replacement = one_node_graph("g1")
        stored = await storage.save(replacement)

        assert stored.graph_id == "g1"
        assert stored.name == "Graph g1"
        assert (await storage.get("g1")).graph is replacement
        assert await storage.get("missing") is None
        assert len(storage) == 1

    @pytest.mark.asyncio
    async def test_list_all(self):
        """All stored graphs are listed."""
        storage = GraphStorage()
        await storage.save(one_node_graph("g1"))
        await storage.save(one_node_graph("g2"))

        assert sorted(s.graph_id for s in await storage.list_all()) == ["g1", "g2"]


class TestRunStorage:
    """Tests for RunStorage and StoredRun."""

    @pytest.mark.asyncio
    async def test_run_lifecycle(self):
        """A run goes from pending to running to its final status."""
        storage = RunStorage()
        stored = await storage.create("r1", "g1", "hello")
        assert stored.status == "pending"

        stored.record_event({"type": "run_started", "node_id": None})
        stored.record_event({"type": "node_started", "node_id": "a"})
        assert stored.status == "running"
        assert stored.current_node == "a"
        assert stored.execution_path == ["a"]

        await storage.finish("r1", status="completed", output=1, execution_path=["a"])

        finished = await storage.get("r1")
        assert finished.status == "completed"
        assert finished.output == 1
        assert finished.current_node is None
        assert finished.completed_at is not None
        assert len(finished.events) == 2

    @pytest.mark.asyncio
    async def test_finish_unknown_run(self):
        """Finishing an unknown run is a no-op."""
        assert await RunStorage().finish("nope", status="failed") is None

    @pytest.mark.asyncio
    async def test_list_by_graph(self):
        """Runs can be filtered by graph id."""
        storage = RunStorage()
        await storage.create("r1", "g1", None)
        await storage.create("r2", "g2", None)
        await storage.create("r3", "g1", None)

        assert [r.run_id for r in await storage.list_by_graph("g1")] == ["r1", "r3"]
        assert len(await storage.list_all()) == 3
        assert len(storage) == 3
