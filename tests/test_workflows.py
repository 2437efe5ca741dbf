"""
Tests for the demo workflows.
"""

import pytest

from stepgraph.engine.executor import Executor
from stepgraph.engine.observer import RecordingObserver
from stepgraph.engine.visualization import to_mermaid, to_mermaid_with_path
from stepgraph.storage.memory import graph_storage
from stepgraph.workflows import (
    create_conditional_workflow,
    create_research_workflow,
    create_retry_workflow,
    create_simple_workflow,
    register_demo_workflows,
)


class FixedRandom:
    """Stands in for random.Random with a constant draw."""

    def __init__(self, value: float):
        self.value = value

    def random(self) -> float:
        return self.value


def path_of(recorder: RecordingObserver):
    return [e.node_id for e in recorder.events if e.type == "node_started"]


# ============================================================
# Small Workflows
# ============================================================

class TestSimpleWorkflows:
    """Tests for the simple and conditional workflows."""

    @pytest.mark.asyncio
    async def test_simple_workflow(self):
        """The linear workflow analyzes then processes the input."""
        recorder = RecordingObserver()
        result = await Executor(create_simple_workflow(), observers=[recorder]).run("hello")

        assert result == "Processed: Input 'hello' has 5 characters"
        assert path_of(recorder) == ["start", "analyze", "process"]

    @pytest.mark.asyncio
    async def test_conditional_short_input(self):
        """Short input takes the quick branch."""
        result = await Executor(create_conditional_workflow()).run("short")
        assert result == "Quick processing for short input"

    @pytest.mark.asyncio
    async def test_conditional_long_input(self):
        """Long input takes the thorough branch."""
        result = await Executor(create_conditional_workflow()).run("a much longer input")
        assert result == "Thorough processing for long input"


class TestRetryWorkflow:
    """Tests for the retry & fallback workflow."""

    @pytest.mark.asyncio
    async def test_service_always_fails(self):
        """After three failed calls the cached fallback is used."""
        graph = create_retry_workflow(failure_rate=1.0, retry_delay=0)
        recorder = RecordingObserver()

        result = await Executor(graph, observers=[recorder]).run("req")

        assert result == "Fallback: Used cached data instead of live service"
        assert path_of(recorder) == ["start", "unreliable_service"]
        assert "node_failed" not in recorder.event_types

    @pytest.mark.asyncio
    async def test_service_succeeds(self):
        """A healthy service goes on to process_result."""
        graph = create_retry_workflow(failure_rate=0.0, retry_delay=0)
        recorder = RecordingObserver()

        result = await Executor(graph, observers=[recorder]).run("req")

        assert result == "Success: Service call successful!"
        assert path_of(recorder) == ["start", "unreliable_service", "process_result"]

    def test_retry_policy(self):
        """The service node retries three times with a fallback."""
        service = create_retry_workflow(retry_delay=0.5).get_node("unreliable_service")

        assert service.retry.max_attempts == 3
        assert service.retry.delay == 0.5
        assert service.failure_handler is not None


# ============================================================
# Research Workflow
# ============================================================

class TestResearchWorkflow:
    """Tests for the research agent workflow."""

    QUERY = "How does quantum computing work?"

    @pytest.mark.asyncio
    async def test_good_results_skip_refinement(self):
        """High-quality results go straight to extraction."""
        graph = create_research_workflow(rng=FixedRandom(0.9))
        recorder = RecordingObserver()

        answer = await Executor(graph, observers=[recorder]).run(self.QUERY)

        assert answer.startswith(f'Based on comprehensive research on "{self.QUERY}"')
        assert "Further insights:" in answer
        assert path_of(recorder) == [
            "start",
            "query_analysis",
            "primary_search",
            "information_extraction",
            "source_evaluation",
            "context_lookup",
            "response_draft",
            "response_refinement",
            "final_formatting",
        ]
        context = recorder.events[-1].data["context"]
        assert context["query_type"] == "procedural"
        assert context["stage"] == "completed"

    @pytest.mark.asyncio
    async def test_low_quality_results_are_refined(self):
        """Low-quality results pass through search_refinement."""
        graph = create_research_workflow(rng=FixedRandom(0.1))
        recorder = RecordingObserver()

        await Executor(graph, observers=[recorder]).run(self.QUERY)

        path = path_of(recorder)
        assert path[2:5] == ["primary_search", "search_refinement", "information_extraction"]
        context = recorder.events[-1].data["context"]
        assert len(context["all_results"]) == 7

    @pytest.mark.asyncio
    async def test_search_failure_routes_to_error_handling(self):
        """A failing search backend is absorbed and explained."""
        def broken_backend(key_terms):
            raise ConnectionError("search backend offline")

        graph = create_research_workflow(rng=FixedRandom(0.9), search_backend=broken_backend)
        recorder = RecordingObserver()

        answer = await Executor(graph, observers=[recorder]).run(self.QUERY)

        assert path_of(recorder) == ["start", "query_analysis", "primary_search", "error_handling"]
        assert f'I encountered an issue while researching "{self.QUERY}"' in answer
        assert "search backend offline" in answer

    @pytest.mark.asyncio
    async def test_search_timeout_routes_to_error_handling(self):
        """A slow search is cancelled and handled like any other failure."""
        graph = create_research_workflow(
            rng=FixedRandom(0.9),
            search_latency=1.0,
            search_timeout=0.05,
        )
        recorder = RecordingObserver()

        answer = await Executor(graph, observers=[recorder]).run(self.QUERY)

        assert path_of(recorder)[-1] == "error_handling"
        assert "NodeTimeoutError" in answer

    @pytest.mark.asyncio
    async def test_custom_search_backend(self):
        """An injected backend supplies the primary results."""
        graph = create_research_workflow(
            rng=FixedRandom(0.9),
            search_backend=lambda terms: [f"result for {t}" for t in terms],
        )
        recorder = RecordingObserver()

        await Executor(graph, observers=[recorder]).run(self.QUERY)

        context = recorder.events[-1].data["context"]
        assert context["primary_results"] == [
            "result for does", "result for quantum", "result for computing", "result for work?",
        ]


# ============================================================
# Visualization & Registration
# ============================================================

class TestVisualization:
    """Tests for Mermaid rendering."""

    def test_to_mermaid(self):
        """Nodes are sorted, the start node is marked and edges are labelled."""
        diagram = to_mermaid(create_conditional_workflow())
        lines = diagram.split("\n")

        assert lines[0] == "graph TD;"
        assert lines[1:4] == [
            '    long_path["long_path"];',
            '    short_path["short_path"];',
            '    start(["Start"]);',
        ]
        assert '    start -.->|"Short input"| short_path;' in lines
        assert '    start -.->|"Long input"| long_path;' in lines

    def test_unlabelled_edges_default_to_flow(self):
        """Edges without a label are drawn as 'flow'."""
        diagram = to_mermaid(create_retry_workflow())
        assert '    start -->|"flow"| unreliable_service;' in diagram

    def test_to_mermaid_with_path(self):
        """Executed nodes and traversed edges are highlighted."""
        graph = create_simple_workflow()
        diagram = to_mermaid_with_path(graph, ["start", "analyze", "process"])

        assert "classDef executedNode" in diagram
        assert "    class start,analyze,process executedNode;" in diagram
        assert "    linkStyle 0,1 " in diagram

    def test_empty_path_has_no_highlights(self):
        """Nothing is highlighted for a run that never started."""
        diagram = to_mermaid_with_path(create_simple_workflow(), [])

        assert "executedNode;" not in diagram
        assert "linkStyle" not in diagram


class TestRegistration:
    """Tests for demo workflow registration."""

    @pytest.mark.asyncio
    async def test_register_demo_workflows(self):
        """All demo workflows are stored by id."""
        await register_demo_workflows()

        for graph_id in ("simple", "conditional", "retry", "research"):
            stored = await graph_storage.get(graph_id)
            assert stored is not None
            assert stored.graph_id == graph_id
