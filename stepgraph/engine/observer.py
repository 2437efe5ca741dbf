"""
Execution observers.

Observers are notified synchronously, in registration order, on the run's
own task. There is no queue between the engine and its observers: a slow
observer slows the run, and an exception raised by an observer propagates
out of the run.
"""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
from datetime import datetime
import itertools
import logging
import threading


logger = logging.getLogger(__name__)


class GraphObserver:
    """
    Base class for execution listeners.

    Override only the hooks you need; the defaults do nothing.
    """

    def on_run_started(self, context: Dict[str, Any]) -> None:
        pass

    def on_node_started(self, node_id: str, context: Dict[str, Any]) -> None:
        pass

    def on_node_completed(self, node_id: str, result: Dict[str, Any]) -> None:
        pass

    def on_node_failed(self, node_id: str, error: BaseException) -> None:
        pass

    def on_run_completed(self, context: Dict[str, Any], execution_path: List[str]) -> None:
        pass


@dataclass(frozen=True)
class ObserverHandle:
    """Token returned by ``add_observer`` and used to remove the listener."""
    token: int


class ObserverHub:
    """
    Thread-safe multicast of lifecycle notifications.

    The hub does not own its listeners; registrants remove them through
    the handle they were given. Delivery iterates over a snapshot of the
    registry, so listeners may be added or removed during a notification
    without affecting the one in flight.
    """

    def __init__(self):
        self._observers: Dict[ObserverHandle, GraphObserver] = {}
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def add_observer(self, observer: GraphObserver) -> ObserverHandle:
        with self._lock:
            handle = ObserverHandle(next(self._counter))
            self._observers[handle] = observer
        return handle

    def remove_observer(self, handle: ObserverHandle) -> bool:
        with self._lock:
            return self._observers.pop(handle, None) is not None

    def observers(self) -> List[GraphObserver]:
        with self._lock:
            return list(self._observers.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._observers)

    def run_started(self, context: Dict[str, Any]) -> None:
        for observer in self.observers():
            observer.on_run_started(context)

    def node_started(self, node_id: str, context: Dict[str, Any]) -> None:
        for observer in self.observers():
            observer.on_node_started(node_id, context)

    def node_completed(self, node_id: str, result: Dict[str, Any]) -> None:
        for observer in self.observers():
            observer.on_node_completed(node_id, result)

    def node_failed(self, node_id: str, error: BaseException) -> None:
        for observer in self.observers():
            observer.on_node_failed(node_id, error)

    def run_completed(self, context: Dict[str, Any], execution_path: List[str]) -> None:
        for observer in self.observers():
            observer.on_run_completed(context, execution_path)


class LoggingObserver(GraphObserver):
    """
    Writes lifecycle events to a logger with structured ``extra`` fields.

    Args:
        logger: Destination logger (defaults to this module's logger)
        level: Level used for successful events; failures log at WARNING
    """

    def __init__(self, logger: logging.Logger = logger, level: int = logging.INFO):
        self.logger = logger
        self.level = level

    def on_run_started(self, context: Dict[str, Any]) -> None:
        self.logger.log(
            self.level, "Run started",
            extra={"event": "run_started", "context_keys": sorted(context)},
        )

    def on_node_started(self, node_id: str, context: Dict[str, Any]) -> None:
        self.logger.log(
            self.level, f"Node '{node_id}' started",
            extra={"event": "node_started", "node_id": node_id},
        )

    def on_node_completed(self, node_id: str, result: Dict[str, Any]) -> None:
        self.logger.log(
            self.level, f"Node '{node_id}' completed, result keys: {', '.join(sorted(result))}",
            extra={"event": "node_completed", "node_id": node_id, "result_keys": sorted(result)},
        )

    def on_node_failed(self, node_id: str, error: BaseException) -> None:
        self.logger.warning(
            f"Node '{node_id}' failed: {error}",
            extra={"event": "node_failed", "node_id": node_id, "error_type": type(error).__name__},
        )

    def on_run_completed(self, context: Dict[str, Any], execution_path: List[str]) -> None:
        self.logger.log(
            self.level, f"Run completed: {' -> '.join(execution_path)}",
            extra={"event": "run_completed", "execution_path": list(execution_path)},
        )


@dataclass
class ExecutionEvent:
    """A single recorded lifecycle notification."""
    type: str
    node_id: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "node_id": self.node_id,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }


class RecordingObserver(GraphObserver):
    """
    Keeps every notification as an ExecutionEvent.

    Used by the API to build run logs and by tests to assert on the
    exact notification sequence. An optional ``on_event`` callback is
    invoked for each event as it is recorded.
    """

    def __init__(self, on_event=None):
        self.events: List[ExecutionEvent] = []
        self.on_event = on_event

    def _record(self, event: ExecutionEvent) -> None:
        self.events.append(event)
        if self.on_event is not None:
            self.on_event(event)

    @property
    def event_types(self) -> List[str]:
        return [event.type for event in self.events]

    def on_run_started(self, context: Dict[str, Any]) -> None:
        self._record(ExecutionEvent("run_started", data={"context": dict(context)}))

    def on_node_started(self, node_id: str, context: Dict[str, Any]) -> None:
        self._record(ExecutionEvent("node_started", node_id, {"context": dict(context)}))

    def on_node_completed(self, node_id: str, result: Dict[str, Any]) -> None:
        self._record(ExecutionEvent("node_completed", node_id, {"result": dict(result)}))

    def on_node_failed(self, node_id: str, error: BaseException) -> None:
        self._record(ExecutionEvent(
            "node_failed", node_id,
            {"error": str(error), "error_type": type(error).__name__},
        ))

    def on_run_completed(self, context: Dict[str, Any], execution_path: List[str]) -> None:
        self._record(ExecutionEvent(
            "run_completed",
            data={"context": dict(context), "execution_path": list(execution_path)},
        ))
