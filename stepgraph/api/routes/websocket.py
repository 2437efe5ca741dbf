"""
WebSocket Routes for Real-time Execution Streaming.

Provides live observer events while a workflow executes.
"""

from typing import Any
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from uuid import uuid4
import asyncio
import logging

from stepgraph.api.routes.graph import execute_and_store
from stepgraph.engine.observer import ExecutionEvent, RecordingObserver
from stepgraph.storage.memory import graph_storage, run_storage


logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])


@router.websocket("/ws/run/{graph_id}")
async def websocket_run(websocket: WebSocket, graph_id: str):
    """
    WebSocket endpoint for real-time workflow execution.

    Connect to this endpoint and send the run input as JSON.
    You'll receive one message per observer event as the workflow executes.

    Message format (client -> server):
    ```json
    {"action": "start", "input": "What is new in quantum computing?"}
    ```

    Message format (server -> client):
    ```json
    {
        "type": "event",
        "event": {"type": "node_completed", "node_id": "analyze", "data": {...}, "timestamp": "..."}
    }
    ```
    """
    stored = await graph_storage.get(graph_id)
    if not stored:
        await websocket.close(code=4004, reason=f"Graph '{graph_id}' not found")
        return

    run_id = str(uuid4())
    await websocket.accept()
    logger.info(f"WebSocket connected for run: {run_id}")

    try:
        data = await websocket.receive_json()

        if data.get("action") != "start":
            await websocket.send_json({
                "type": "error",
                "error": "Expected 'start' action"
            })
            return

        input_value = data.get("input")
        stored_run = await run_storage.create(run_id, graph_id, input_value)

        await websocket.send_json({
            "type": "started",
            "run_id": run_id,
            "graph_id": graph_id,
        })

        # Events are queued on the loop thread and drained here in order;
        # None marks the end of the run.
        queue: "asyncio.Queue[Any]" = asyncio.Queue()

        def enqueue(event: ExecutionEvent) -> None:
            queue.put_nowait(event.to_dict())

        task = asyncio.ensure_future(execute_and_store(
            stored.graph,
            stored_run,
            input_value,
            extra_observers=[RecordingObserver(on_event=enqueue)],
        ))
        task.add_done_callback(lambda _: queue.put_nowait(None))

        while True:
            event = await queue.get()
            if event is None:
                break
            await websocket.send_json({"type": "event", "event": event})

        result = await task

        await websocket.send_json({
            "type": "completed",
            "run_id": run_id,
            "status": result.status.value,
            "output": result.output,
            "execution_path": result.execution_path,
            "final_context": result.final_context,
            "total_duration_ms": result.total_duration_ms,
            "error": result.error,
            "error_type": result.error_type,
        })

    except WebSocketDisconnect:
        logger.info(f"Client disconnected from run {run_id}")
