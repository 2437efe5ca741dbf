"""
In-Memory Storage for StepGraph.

Holds the registered workflow graphs and a record of every run started
through the API. Nothing survives a process restart.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime
import asyncio
from dataclasses import dataclass, field

from stepgraph.engine.graph import GraphDefinition


@dataclass
class StoredGraph:
    """A registered graph definition."""
    graph: GraphDefinition
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def graph_id(self) -> str:
        return self.graph.graph_id

    @property
    def name(self) -> str:
        return self.graph.name


@dataclass
class StoredRun:
    """A stored execution run."""
    run_id: str
    graph_id: str
    status: str
    input: Any = None
    output: Any = None
    current_node: Optional[str] = None
    execution_path: List[str] = field(default_factory=list)
    events: List[Dict[str, Any]] = field(default_factory=list)
    final_context: Optional[Dict[str, Any]] = None
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    def record_event(self, event: Dict[str, Any]) -> None:
        """
        Append an observer event and track the node currently executing.

        Called synchronously from observers on the event loop thread.
        """
        self.status = "running"
        self.events.append(event)
        if event.get("type") == "node_started":
            self.current_node = event.get("node_id")
            self.execution_path.append(event["node_id"])


class GraphStorage:
    """
    In-memory registry of workflow graphs.

    Graphs hold Python callables, so they are stored as live
    GraphDefinition objects rather than serialized documents.
    """

    def __init__(self):
        self._graphs: Dict[str, StoredGraph] = {}
        self._lock = asyncio.Lock()

    async def save(self, graph: GraphDefinition) -> StoredGraph:
        """
        Register a graph under its graph_id, replacing any previous one.

        Args:
            graph: The graph definition

        Returns:
            The stored graph
        """
        async with self._lock:
            stored = StoredGraph(graph=graph)
            self._graphs[graph.graph_id] = stored
            return stored

    async def get(self, graph_id: str) -> Optional[StoredGraph]:
        """Get a graph by ID."""
        async with self._lock:
            return self._graphs.get(graph_id)

    async def list_all(self) -> List[StoredGraph]:
        """List all stored graphs."""
        async with self._lock:
            return list(self._graphs.values())

    def __len__(self) -> int:
        return len(self._graphs)


class RunStorage:
    """
    In-memory storage for execution runs.

    Stores run progress so that background executions can be polled
    and streamed while they are in flight.
    """

    def __init__(self):
        self._runs: Dict[str, StoredRun] = {}
        self._lock = asyncio.Lock()

    async def create(self, run_id: str, graph_id: str, input_value: Any) -> StoredRun:
        """
        Create a new pending run.

        Args:
            run_id: Unique run identifier
            graph_id: Associated graph ID
            input_value: The run input

        Returns:
            The stored run
        """
        async with self._lock:
            stored = StoredRun(
                run_id=run_id,
                graph_id=graph_id,
                status="pending",
                input=input_value,
            )
            self._runs[run_id] = stored
            return stored

    async def get(self, run_id: str) -> Optional[StoredRun]:
        """Get a run by ID."""
        async with self._lock:
            return self._runs.get(run_id)

    async def finish(
        self,
        run_id: str,
        status: str,
        output: Any = None,
        final_context: Optional[Dict[str, Any]] = None,
        execution_path: Optional[List[str]] = None,
        error: Optional[str] = None,
        error_type: Optional[str] = None,
    ) -> Optional[StoredRun]:
        """Mark a run as completed or failed."""
        async with self._lock:
            stored = self._runs.get(run_id)
            if stored is None:
                return None
            stored.status = status
            stored.output = output
            stored.final_context = final_context
            if execution_path is not None:
                stored.execution_path = list(execution_path)
            stored.error = error
            stored.error_type = error_type
            stored.current_node = None
            stored.completed_at = datetime.now()
            return stored

    async def list_all(self) -> List[StoredRun]:
        """List all runs."""
        async with self._lock:
            return list(self._runs.values())

    async def list_by_graph(self, graph_id: str) -> List[StoredRun]:
        """List all runs for a specific graph."""
        async with self._lock:
            return [r for r in self._runs.values() if r.graph_id == graph_id]

    def __len__(self) -> int:
        return len(self._runs)


# Global storage instances
graph_storage = GraphStorage()
run_storage = RunStorage()
