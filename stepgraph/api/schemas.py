"""
Pydantic Schemas for API Request/Response Models.

These schemas define the structure of data flowing through the API,
providing automatic validation and documentation.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from enum import Enum


# ============================================================
# Enums
# ============================================================

class ExecutionStatus(str, Enum):
    """Status of a workflow run as seen by API clients."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# ============================================================
# Graph Schemas
# ============================================================

class EdgeInfo(BaseModel):
    """An edge as exposed to diagram and UI clients."""
    source: str
    target: str
    label: str = ""
    conditional: bool = False


class NodeInfo(BaseModel):
    """A node and its resilience policies."""
    id: str
    description: str = ""
    retry: Optional[Dict[str, Any]] = None
    timeout: Optional[float] = None
    has_failure_handler: bool = False


class GraphInfoResponse(BaseModel):
    """Information about a registered graph."""
    graph_id: str
    name: str
    description: Optional[str] = None
    node_count: int
    nodes: List[NodeInfo] = Field(default_factory=list)
    edges: List[EdgeInfo] = Field(default_factory=list)
    start_node_id: str
    output_key: str
    created_at: str
    mermaid_diagram: Optional[str] = None


class GraphListResponse(BaseModel):
    """List of registered graphs."""
    graphs: List[GraphInfoResponse]
    total: int


# ============================================================
# Execution Schemas
# ============================================================

class GraphRunRequest(BaseModel):
    """Request to execute a graph."""
    graph_id: str = Field(..., description="ID of the graph to execute")
    input: Any = Field(None, description="Value seeded into the context under 'input'")
    async_execution: bool = Field(
        False,
        description="If true, run in background and return immediately"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "graph_id": "research",
                "input": "What are the latest advancements in quantum computing?",
                "async_execution": False
            }
        }


class ExecutionEvent(BaseModel):
    """A single observer notification recorded during a run."""
    type: str
    node_id: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: str


class GraphRunResponse(BaseModel):
    """Response from a graph execution."""
    run_id: str
    graph_id: str
    status: ExecutionStatus
    output: Any = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    execution_path: List[str] = Field(default_factory=list)
    events: List[ExecutionEvent] = Field(default_factory=list)
    final_context: Dict[str, Any] = Field(default_factory=dict)
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    total_duration_ms: Optional[float] = None


class RunStateResponse(BaseModel):
    """Current state of a run, for polling background executions."""
    run_id: str
    graph_id: str
    status: ExecutionStatus
    input: Any = None
    output: Any = None
    current_node: Optional[str] = None
    execution_path: List[str] = Field(default_factory=list)
    events: List[ExecutionEvent] = Field(default_factory=list)
    final_context: Optional[Dict[str, Any]] = None
    started_at: str
    completed_at: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    mermaid_diagram: Optional[str] = None


class RunListResponse(BaseModel):
    """List of runs."""
    runs: List[RunStateResponse]
    total: int


# ============================================================
# Error Schemas
# ============================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: str
