"""
Node invocation with resilience policies.

Applies, from the outside in: timeout (covering every attempt), bounded
retry with a fixed delay, then failure absorption. Whatever is not
absorbed here propagates to the executor unchanged.
"""

from typing import Any, Awaitable, Callable, Dict
import asyncio
import logging

from stepgraph.engine.errors import NodeTimeoutError
from stepgraph.engine.node import Node


logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


class NodeInvoker:
    """
    Runs a single node step.

    Args:
        sleep: Coroutine used for the inter-attempt delay
        logger: Logger for attempt-level tracing
    """

    def __init__(self, sleep: Sleep = asyncio.sleep, logger: logging.Logger = logger):
        self._sleep = sleep
        self.logger = logger

    async def invoke(self, node: Node, context: Dict[str, Any]) -> Dict[str, Any]:
        """
        Execute ``node`` against ``context`` and return its delta.

        If the node has a failure handler, any error from the timed/retried
        invocation is handed to it together with the context as it was
        before this node ran, and its return value is used as the result.
        """
        try:
            if node.timeout is not None:
                return await self._with_timeout(node, context)
            return await self._with_retry(node, context)
        except Exception as error:
            if node.failure_handler is None:
                raise
            self.logger.info(
                f"Node '{node.id}' failed with {type(error).__name__}: {error}; "
                f"using failure handler"
            )
            return await node.recover(error, dict(context))

    async def _with_timeout(self, node: Node, context: Dict[str, Any]) -> Dict[str, Any]:
        task = asyncio.ensure_future(self._with_retry(node, context))
        try:
            done, _ = await asyncio.wait({task}, timeout=node.timeout)
        except asyncio.CancelledError:
            # The run itself was cancelled: stop the attempt and wait for it to unwind
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise

        if task in done:
            return task.result()

        self.logger.warning(f"Node '{node.id}' timed out after {node.timeout}s, cancelling")
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as late_error:
            self.logger.debug(f"Cancelled node '{node.id}' finished with {late_error!r}")
        raise NodeTimeoutError(node.id, node.timeout)

    async def _with_retry(self, node: Node, context: Dict[str, Any]) -> Dict[str, Any]:
        if node.retry is None:
            return await node.execute(dict(context))

        max_attempts = node.retry.max_attempts
        last_error: Exception
        for attempt in range(1, max_attempts + 1):
            try:
                self.logger.debug(f"Executing node '{node.id}' - attempt {attempt}/{max_attempts}")
                return await node.execute(dict(context))
            except Exception as error:
                last_error = error
                self.logger.debug(
                    f"Node '{node.id}' failed with error: {error!r}, "
                    f"attempt {attempt}/{max_attempts}"
                )
                if attempt < max_attempts:
                    await self._sleep(node.retry.delay)

        raise last_error
