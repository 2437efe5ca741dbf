"""
Node Definition for Workflow Engine.

Nodes are the building blocks of a workflow. Each node wraps a handler
that receives the context accumulated so far and returns only its own
contribution, plus optional timeout, retry and failure-absorption policies.
"""

from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union
from dataclasses import dataclass, replace
import asyncio
import functools
import inspect

from stepgraph.config import settings
from stepgraph.engine.errors import InvalidNodeOutputError


Context = Dict[str, Any]
Delta = Optional[Mapping[str, Any]]
Handler = Callable[[Context], Union[Delta, Awaitable[Delta]]]
FailureHandler = Callable[[BaseException, Context], Union[Delta, Awaitable[Delta]]]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry with a fixed delay between attempts.

    Attributes:
        max_attempts: Total number of attempts, including the first one
        delay: Seconds to wait after each failed attempt except the last
    """

    max_attempts: int
    delay: float = 1.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay < 0:
            raise ValueError("delay cannot be negative")


@dataclass(frozen=True)
class Node:
    """
    A node in the workflow graph.

    Nodes are immutable. The ``with_*`` methods return a modified copy,
    so a base node can be shared and specialised without side effects.

    Attributes:
        id: Unique identifier for the node
        handler: Function that maps context to a delta (sync or async)
        retry: Optional retry policy
        timeout: Optional timeout in seconds covering all attempts
        failure_handler: Optional fallback called with (error, context)
        description: Human-readable description
    """

    id: str
    handler: Handler
    retry: Optional[RetryPolicy] = None
    timeout: Optional[float] = None
    failure_handler: Optional[FailureHandler] = None
    description: str = ""

    def __post_init__(self):
        """Validate the node after initialization."""
        if not self.id:
            raise ValueError("Node id cannot be empty")
        if not callable(self.handler):
            raise ValueError(f"Handler for node '{self.id}' must be callable")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"Timeout for node '{self.id}' must be positive")
        if self.failure_handler is not None and not callable(self.failure_handler):
            raise ValueError(f"Failure handler for node '{self.id}' must be callable")

    def with_timeout(self, seconds: float) -> "Node":
        """Return a copy that fails with a timeout after ``seconds``."""
        return replace(self, timeout=seconds)

    def with_retry(self, max_attempts: int, delay: Optional[float] = None) -> "Node":
        """Return a copy that retries up to ``max_attempts`` times."""
        if delay is None:
            delay = settings.DEFAULT_RETRY_DELAY
        return replace(self, retry=RetryPolicy(max_attempts=max_attempts, delay=delay))

    def with_failure_handler(self, handler: FailureHandler) -> "Node":
        """Return a copy whose failures are absorbed by ``handler``."""
        return replace(self, failure_handler=handler)

    async def execute(self, context: Context) -> Dict[str, Any]:
        """
        Invoke the handler once and return its delta.

        Sync handlers run in the default executor so they don't block the
        event loop. Exceptions from the handler propagate unchanged.
        """
        result = await _call(self.handler, context)
        return self._coerce(result)

    async def recover(self, error: BaseException, context: Context) -> Dict[str, Any]:
        """Invoke the failure handler and return its delta."""
        result = await _call(self.failure_handler, error, context)
        return self._coerce(result)

    def _coerce(self, result: Any) -> Dict[str, Any]:
        if result is None:
            return {}
        if isinstance(result, Mapping):
            return dict(result)
        raise InvalidNodeOutputError(self.id, result)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the node to a dictionary."""
        return {
            "id": self.id,
            "description": self.description,
            "handler": getattr(self.handler, "__name__", str(self.handler)),
            "retry": (
                {"max_attempts": self.retry.max_attempts, "delay": self.retry.delay}
                if self.retry else None
            ),
            "timeout": self.timeout,
            "has_failure_handler": self.failure_handler is not None,
        }


async def _call(func: Callable, *args: Any) -> Any:
    if inspect.iscoroutinefunction(func):
        return await func(*args)

    loop = asyncio.get_running_loop()
    result = await loop.run_in_executor(None, functools.partial(func, *args))
    # Plain callables may still hand back an awaitable (e.g. a lambda around a coroutine)
    if inspect.isawaitable(result):
        result = await result
    return result


def node(
    id: Optional[str] = None,
    description: str = "",
) -> Callable[[Handler], Node]:
    """
    Decorator that turns a function into a Node.

    Usage:
        @node("analyze", description="Analyze the query")
        def analyze(context: dict) -> dict:
            return {"analysis": ...}

        graph.add_node(analyze.with_retry(3, delay=0.5))

    Args:
        id: Node id (defaults to function name)
        description: Human-readable description (defaults to docstring)

    Returns:
        Decorator producing a Node
    """
    def decorator(func: Handler) -> Node:
        return Node(
            id=id or func.__name__,
            handler=func,
            description=description or (func.__doc__ or "").strip(),
        )

    return decorator
