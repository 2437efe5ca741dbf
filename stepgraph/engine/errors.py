"""
Error taxonomy for the workflow engine.

Structural errors are raised by the engine itself and are never retried.
Anything a node handler raises passes through unchanged unless the node
absorbs it with a failure handler.
"""

from typing import Any


class GraphError(Exception):
    """Base class for errors produced by the engine."""


class NodeNotFoundError(GraphError):
    """A start node or routed-to node id has no registered node."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node '{node_id}' not found in graph")


class InvalidWorkflowError(GraphError):
    """The cycle guard tripped: a node was revisited too many times."""

    def __init__(self, node_id: str, visits: int, threshold: int):
        self.node_id = node_id
        self.visits = visits
        self.threshold = threshold
        super().__init__(
            f"Possible infinite loop: node '{node_id}' would be visited "
            f"{visits} times (limit {threshold})"
        )


class OutputKeyMissingError(GraphError):
    """The run terminated without writing the configured output key."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Output key '{key}' missing from final context")


class NodeTimeoutError(GraphError, TimeoutError):
    """A node did not finish within its configured timeout."""

    def __init__(self, node_id: str, timeout: float):
        self.node_id = node_id
        self.timeout = timeout
        super().__init__(f"Node '{node_id}' timed out after {timeout}s")


class InvalidNodeOutputError(GraphError):
    """A handler returned something other than a mapping or None."""

    def __init__(self, node_id: str, value: Any):
        self.node_id = node_id
        self.value = value
        super().__init__(
            f"Node '{node_id}' handler must return a dict or None, "
            f"got {type(value).__name__}"
        )


class GraphFrozenError(GraphError):
    """The graph definition was modified after its first run."""
