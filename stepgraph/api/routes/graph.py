"""
Graph API Routes.

Endpoints for inspecting registered workflow graphs and executing them.
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, BackgroundTasks
from uuid import uuid4
import logging

from stepgraph.api.schemas import (
    EdgeInfo,
    ErrorResponse,
    ExecutionEvent,
    ExecutionStatus,
    GraphInfoResponse,
    GraphListResponse,
    GraphRunRequest,
    GraphRunResponse,
    NodeInfo,
    RunListResponse,
    RunStateResponse,
)
from stepgraph.engine.executor import ExecutionResult, Executor
from stepgraph.engine.graph import GraphDefinition
from stepgraph.engine.observer import LoggingObserver, RecordingObserver
from stepgraph.engine.visualization import to_mermaid, to_mermaid_with_path
from stepgraph.storage.memory import StoredGraph, StoredRun, graph_storage, run_storage


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/graph", tags=["Graph"])


# ============================================================
# Graph Endpoints
# ============================================================

def _graph_info(stored: StoredGraph, include_diagram: bool = True) -> GraphInfoResponse:
    graph = stored.graph
    nodes = [graph.get_node(node_id) for node_id in sorted(graph.nodes())]
    return GraphInfoResponse(
        graph_id=graph.graph_id,
        name=graph.name,
        description=graph.description or None,
        node_count=len(nodes),
        nodes=[NodeInfo(**node.to_dict()) for node in nodes],
        edges=[EdgeInfo(**edge.to_dict()) for edge in graph.edges()],
        start_node_id=graph.start_node_id,
        output_key=graph.output_key,
        created_at=stored.created_at.isoformat(),
        mermaid_diagram=to_mermaid(graph) if include_diagram else None,
    )


@router.get(
    "/",
    response_model=GraphListResponse,
)
async def list_graphs() -> GraphListResponse:
    """List all registered graphs."""
    graphs = await graph_storage.list_all()
    infos = [_graph_info(stored, include_diagram=False) for stored in graphs]
    return GraphListResponse(graphs=infos, total=len(infos))


# ============================================================
# Execution Endpoints
# ============================================================

@router.post(
    "/run",
    response_model=GraphRunResponse,
    responses={404: {"model": ErrorResponse}},
)
async def run_graph(
    request: GraphRunRequest,
    background_tasks: BackgroundTasks,
) -> GraphRunResponse:
    """
    Execute a workflow graph with the given input.

    Failed runs are reported with ``status = "failed"`` rather than an
    HTTP error. If `async_execution` is True, the workflow runs in the
    background and you can poll the status using GET /graph/state/{run_id}.
    """
    stored_graph = await graph_storage.get(request.graph_id)
    if not stored_graph:
        raise HTTPException(
            status_code=404,
            detail=f"Graph '{request.graph_id}' not found"
        )

    run_id = str(uuid4())
    stored_run = await run_storage.create(run_id, request.graph_id, request.input)

    if request.async_execution:
        background_tasks.add_task(
            execute_and_store,
            stored_graph.graph,
            stored_run,
            request.input,
        )
        return GraphRunResponse(
            run_id=run_id,
            graph_id=request.graph_id,
            status=ExecutionStatus.PENDING,
        )

    result = await execute_and_store(stored_graph.graph, stored_run, request.input)
    return GraphRunResponse(
        run_id=result.run_id,
        graph_id=result.graph_id,
        status=ExecutionStatus(result.status.value),
        output=result.output,
        error=result.error,
        error_type=result.error_type,
        execution_path=result.execution_path,
        events=[ExecutionEvent(**event) for event in stored_run.events],
        final_context=result.final_context,
        started_at=result.started_at.isoformat() if result.started_at else None,
        completed_at=result.completed_at.isoformat() if result.completed_at else None,
        total_duration_ms=result.total_duration_ms,
    )


async def execute_and_store(
    graph: GraphDefinition,
    stored_run: StoredRun,
    input_value,
    extra_observers=(),
) -> ExecutionResult:
    """
    Run ``graph`` once, recording every observer event on ``stored_run``.

    A fresh Executor is created per run so that the recording observer
    only ever sees this run's notifications.
    """
    recorder = RecordingObserver(
        on_event=lambda event: stored_run.record_event(event.to_dict())
    )
    executor = Executor(graph, observers=[LoggingObserver(logger), recorder, *extra_observers])
    result = await executor.execute(input_value, run_id=stored_run.run_id)

    await run_storage.finish(
        stored_run.run_id,
        status=result.status.value,
        output=result.output,
        final_context=result.final_context,
        execution_path=result.execution_path,
        error=result.error,
        error_type=result.error_type,
    )
    if result.succeeded:
        logger.info(f"Run {result.run_id} completed in {result.total_duration_ms:.1f}ms")
    else:
        logger.warning(f"Run {result.run_id} failed: {result.error_type}: {result.error}")
    return result


# ============================================================
# Run State Endpoints
# ============================================================

async def _run_state(stored: StoredRun) -> RunStateResponse:
    stored_graph = await graph_storage.get(stored.graph_id)
    diagram = (
        to_mermaid_with_path(stored_graph.graph, stored.execution_path)
        if stored_graph else None
    )
    return RunStateResponse(
        run_id=stored.run_id,
        graph_id=stored.graph_id,
        status=ExecutionStatus(stored.status),
        input=stored.input,
        output=stored.output,
        current_node=stored.current_node,
        execution_path=stored.execution_path,
        events=[ExecutionEvent(**event) for event in stored.events],
        final_context=stored.final_context,
        started_at=stored.started_at.isoformat(),
        completed_at=stored.completed_at.isoformat() if stored.completed_at else None,
        error=stored.error,
        error_type=stored.error_type,
        mermaid_diagram=diagram,
    )


@router.get(
    "/state/{run_id}",
    response_model=RunStateResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_run_state(run_id: str) -> RunStateResponse:
    """
    Get the current state of a workflow run.

    Use this to poll the status of async executions.
    """
    stored = await run_storage.get(run_id)
    if not stored:
        raise HTTPException(status_code=404, detail=f"Run '{run_id}' not found")
    return await _run_state(stored)


@router.get(
    "/runs",
    response_model=RunListResponse,
)
async def list_runs(graph_id: Optional[str] = None) -> RunListResponse:
    """List all runs, optionally filtered by graph_id."""
    if graph_id:
        runs = await run_storage.list_by_graph(graph_id)
    else:
        runs = await run_storage.list_all()

    states = [await _run_state(stored) for stored in runs]
    return RunListResponse(runs=states, total=len(states))


@router.get(
    "/{graph_id}",
    response_model=GraphInfoResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_graph(graph_id: str) -> GraphInfoResponse:
    """Get the structure of a specific graph, with a Mermaid diagram."""
    stored = await graph_storage.get(graph_id)
    if not stored:
        raise HTTPException(status_code=404, detail=f"Graph '{graph_id}' not found")
    return _graph_info(stored)
