"""
Engine package - Core workflow execution components.
"""

from stepgraph.engine.errors import (
    GraphError,
    GraphFrozenError,
    InvalidNodeOutputError,
    InvalidWorkflowError,
    NodeNotFoundError,
    NodeTimeoutError,
    OutputKeyMissingError,
)
from stepgraph.engine.node import Node, RetryPolicy, node
from stepgraph.engine.state import ExecutionContext, ExecutionPath, RunState, RunStatus
from stepgraph.engine.graph import Edge, GraphBuilder, GraphDefinition
from stepgraph.engine.router import Router
from stepgraph.engine.invoker import NodeInvoker
from stepgraph.engine.observer import (
    GraphObserver,
    LoggingObserver,
    ObserverHandle,
    ObserverHub,
    RecordingObserver,
)
from stepgraph.engine.executor import Executor, ExecutionResult, execute_graph
from stepgraph.engine.visualization import to_mermaid, to_mermaid_with_path

__all__ = [
    "GraphError",
    "GraphFrozenError",
    "InvalidNodeOutputError",
    "InvalidWorkflowError",
    "NodeNotFoundError",
    "NodeTimeoutError",
    "OutputKeyMissingError",
    "Node",
    "RetryPolicy",
    "node",
    "ExecutionContext",
    "ExecutionPath",
    "RunState",
    "RunStatus",
    "Edge",
    "GraphBuilder",
    "GraphDefinition",
    "Router",
    "NodeInvoker",
    "GraphObserver",
    "LoggingObserver",
    "ObserverHandle",
    "ObserverHub",
    "RecordingObserver",
    "Executor",
    "ExecutionResult",
    "execute_graph",
    "to_mermaid",
    "to_mermaid_with_path",
]
