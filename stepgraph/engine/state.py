"""
Run State for Workflow Engine.

Every run owns a private context and execution path. The context is a
plain key/value store that grows by shallow, last-write-wins merges of
each node's delta; the path records every node visit in order.
"""

from typing import Any, Dict, Iterator, List, Mapping, Optional
from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum
import uuid


INPUT_KEY = "input"


class RunStatus(str, Enum):
    """Lifecycle of a single run."""
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ExecutionContext(BaseModel):
    """
    The shared key/value store threaded through one run.

    Nested values are never deep-merged: a later write to a key replaces
    the earlier value wholesale.
    """

    data: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        arbitrary_types_allowed = True

    @classmethod
    def seeded(cls, input_value: Any) -> "ExecutionContext":
        """Create a fresh context holding only the run input."""
        return cls(data={INPUT_KEY: input_value})

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value from the context."""
        return self.data.get(key, default)

    def merge(self, delta: Mapping[str, Any]) -> None:
        """Apply a node's delta in place, last write wins per key."""
        self.data.update(delta)

    def snapshot(self) -> Dict[str, Any]:
        """Shallow copy handed to handlers, predicates and observers."""
        return dict(self.data)

    def __contains__(self, key: str) -> bool:
        return key in self.data

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def __len__(self) -> int:
        return len(self.data)


class ExecutionPath(BaseModel):
    """Ordered, repeat-inclusive record of visited node ids."""

    nodes: List[str] = Field(default_factory=list)

    def append(self, node_id: str) -> None:
        self.nodes.append(node_id)

    def count(self, node_id: str) -> int:
        return self.nodes.count(node_id)

    def to_list(self) -> List[str]:
        return list(self.nodes)

    def __iter__(self) -> Iterator[str]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)


class RunState(BaseModel):
    """
    Everything a single run mutates.

    Created at run start and discarded when the run ends; never shared
    between concurrent runs of the same graph.
    """

    run_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    status: RunStatus = RunStatus.NOT_STARTED
    context: ExecutionContext = Field(default_factory=ExecutionContext)
    path: ExecutionPath = Field(default_factory=ExecutionPath)
    current_node: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def start(self, input_value: Any) -> None:
        """Seed the context and move to RUNNING."""
        self.context = ExecutionContext.seeded(input_value)
        self.status = RunStatus.RUNNING
        self.started_at = datetime.now()

    def visit(self, node_id: str) -> None:
        """Record a node visit."""
        self.path.append(node_id)
        self.current_node = node_id

    def complete(self) -> None:
        self.status = RunStatus.COMPLETED
        self.completed_at = datetime.now()

    def fail(self) -> None:
        self.status = RunStatus.FAILED
        self.completed_at = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        """Convert run state to a plain dictionary."""
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "context": self.context.snapshot(),
            "execution_path": self.path.to_list(),
            "current_node": self.current_node,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
