"""
Async Workflow Executor.

The executor walks a GraphDefinition one node at a time, merging each
node's delta into a private context, routing along the first matching
edge and notifying observers throughout. A single executor may serve
many concurrent runs; each run owns its own RunState.
"""

from typing import Any, Dict, Iterable, List, Optional
from dataclasses import dataclass, field
from datetime import datetime
import logging
import time

from stepgraph.config import settings
from stepgraph.engine.errors import (
    InvalidWorkflowError,
    NodeNotFoundError,
    OutputKeyMissingError,
)
from stepgraph.engine.graph import GraphDefinition
from stepgraph.engine.invoker import NodeInvoker
from stepgraph.engine.observer import GraphObserver, ObserverHandle, ObserverHub
from stepgraph.engine.router import Router
from stepgraph.engine.state import RunState, RunStatus


logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    """Outcome of a run, as reported by ``Executor.execute``."""
    run_id: str
    graph_id: str
    status: RunStatus
    output: Any = None
    final_context: Dict[str, Any] = field(default_factory=dict)
    execution_path: List[str] = field(default_factory=list)
    error: Optional[str] = None
    error_type: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    total_duration_ms: Optional[float] = None

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "graph_id": self.graph_id,
            "status": self.status.value,
            "output": self.output,
            "final_context": self.final_context,
            "execution_path": self.execution_path,
            "error": self.error,
            "error_type": self.error_type,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "total_duration_ms": self.total_duration_ms,
        }


class Executor:
    """
    Async workflow executor.

    Executes a graph once per ``run`` call, handling:
    - Sequential node execution with timeout/retry/fallback policies
    - First-match conditional routing
    - A revisit-count cycle guard
    - Observer notifications

    Usage:
        executor = Executor(graph)
        answer = await executor.run("What is new in quantum computing?")
    """

    def __init__(
        self,
        graph: GraphDefinition,
        observers: Optional[Iterable[GraphObserver]] = None,
        invoker: Optional[NodeInvoker] = None,
        cycle_threshold: Optional[int] = None,
        logger: logging.Logger = logger,
    ):
        """
        Initialize the executor.

        Args:
            graph: The workflow graph to execute
            observers: Listeners to register up front
            invoker: Node invoker (a default one is created if omitted)
            cycle_threshold: Maximum visits to a single node per run
            logger: Logger for run-level tracing
        """
        self.graph = graph
        self.logger = logger
        self.invoker = invoker or NodeInvoker(logger=logger)
        self.router = Router(graph, logger=logger)
        self.cycle_threshold = (
            cycle_threshold if cycle_threshold is not None else settings.CYCLE_THRESHOLD
        )
        self.hub = ObserverHub()
        for observer in observers or ():
            self.hub.add_observer(observer)

    def add_observer(self, observer: GraphObserver) -> ObserverHandle:
        return self.hub.add_observer(observer)

    def remove_observer(self, handle: ObserverHandle) -> bool:
        return self.hub.remove_observer(handle)

    async def run(self, input_value: Any) -> Any:
        """
        Execute the workflow once.

        Args:
            input_value: Seeded into the context under ``"input"``

        Returns:
            The value stored under the graph's output key

        Raises:
            NodeNotFoundError: Start node or a routed-to node is missing
            InvalidWorkflowError: The cycle guard tripped
            OutputKeyMissingError: The run ended without the output key
            NodeTimeoutError: A node exceeded its timeout
            Exception: Any unabsorbed error raised by a node handler
        """
        return await self._run(input_value, RunState())

    async def execute(self, input_value: Any, run_id: Optional[str] = None) -> ExecutionResult:
        """
        Execute the workflow and report the outcome instead of raising.

        Intended for service callers that need the path and final context
        of failed runs as well as successful ones.
        """
        state = RunState(run_id=run_id) if run_id else RunState()
        start_time = time.time()
        output = None
        error: Optional[Exception] = None

        try:
            output = await self._run(input_value, state)
        except Exception as e:
            error = e

        return ExecutionResult(
            run_id=state.run_id,
            graph_id=self.graph.graph_id,
            status=state.status,
            output=output,
            final_context=state.context.snapshot(),
            execution_path=state.path.to_list(),
            error=str(error) if error else None,
            error_type=type(error).__name__ if error else None,
            started_at=state.started_at,
            completed_at=state.completed_at,
            total_duration_ms=(time.time() - start_time) * 1000,
        )

    async def _run(self, input_value: Any, state: RunState) -> Any:
        graph = self.graph
        graph.freeze()

        if not graph.has_node(graph.start_node_id):
            state.fail()
            raise NodeNotFoundError(graph.start_node_id)

        state.start(input_value)
        self.logger.info(
            f"Starting run {state.run_id} of '{graph.name}' at node '{graph.start_node_id}'"
        )
        try:
            return await self._walk(state)
        finally:
            # An observer raising mid-run leaves the status unsettled
            if state.status == RunStatus.RUNNING:
                state.fail()

    async def _walk(self, state: RunState) -> Any:
        graph = self.graph
        self.hub.run_started(state.context.snapshot())

        current_id = graph.start_node_id
        while True:
            node = graph.get_node(current_id)
            if node is None:
                self._finish(state, failed=True)
                raise NodeNotFoundError(current_id)

            state.visit(current_id)
            self.logger.debug(f"Executing node: {current_id}")
            self.hub.node_started(current_id, state.context.snapshot())

            try:
                delta = await self.invoker.invoke(node, state.context.snapshot())
            except Exception as error:
                self.logger.error(f"Node '{current_id}' failed: {error!r}")
                self.hub.node_failed(current_id, error)
                self._finish(state, failed=True)
                raise

            state.context.merge(delta)
            self.logger.debug(f"Node '{current_id}' result keys: {', '.join(delta)}")
            self.hub.node_completed(current_id, delta)

            try:
                next_id = self.router.next_node(current_id, state.context.snapshot())
            except Exception:
                self._finish(state, failed=True)
                raise

            if next_id is None:
                self.logger.debug("End of workflow reached")
                if graph.output_key not in state.context:
                    self._finish(state, failed=True)
                    raise OutputKeyMissingError(graph.output_key)
                self._finish(state, failed=False)
                return state.context[graph.output_key]

            visits = state.path.count(next_id) + 1
            if visits > self.cycle_threshold:
                self.logger.warning(
                    f"Possible infinite loop detected at node '{next_id}', breaking cycle"
                )
                self._finish(state, failed=True)
                raise InvalidWorkflowError(next_id, visits, self.cycle_threshold)

            self.logger.debug(f"Moving to next node: {next_id}")
            current_id = next_id

    def _finish(self, state: RunState, failed: bool) -> None:
        """
        Notify run completion, then settle the run's terminal status.

        If an observer raises here the status stays RUNNING and ``_run``
        marks the run failed.
        """
        self.hub.run_completed(state.context.snapshot(), state.path.to_list())
        if failed:
            state.fail()
        else:
            state.complete()
        self.logger.info(
            f"Run {state.run_id} {state.status.value}: {' -> '.join(state.path)}"
        )


async def execute_graph(
    graph: GraphDefinition,
    input_value: Any,
    run_id: Optional[str] = None,
    observers: Optional[Iterable[GraphObserver]] = None,
) -> ExecutionResult:
    """
    Convenience function to execute a graph.

    Args:
        graph: The workflow graph
        input_value: Run input
        run_id: Optional run ID
        observers: Optional listeners for this execution

    Returns:
        ExecutionResult
    """
    executor = Executor(graph, observers=observers)
    return await executor.execute(input_value, run_id=run_id)
