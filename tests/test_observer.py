"""
Tests for observer registration and delivery.
"""

import pytest
import logging

from stepgraph.engine.graph import Edge, GraphDefinition
from stepgraph.engine.node import Node
from stepgraph.engine.observer import (
    GraphObserver,
    LoggingObserver,
    ObserverHub,
    RecordingObserver,
)
from stepgraph.engine.executor import Executor
from stepgraph.engine.state import RunStatus


def two_step_graph() -> GraphDefinition:
    return GraphDefinition("a", "out", components=[
        Node(id="a", handler=lambda c: {"x": 1}),
        Node(id="b", handler=lambda c: {"out": "done"}),
        Edge("a", "b"),
    ])


class OrderObserver(GraphObserver):
    """Appends its name to a shared list on every run start."""

    def __init__(self, name, log):
        self.name = name
        self.log = log

    def on_run_started(self, context):
        self.log.append(self.name)


# ============================================================
# Hub Tests
# ============================================================

class TestObserverHub:
    """Tests for ObserverHub registration."""

    def test_add_returns_distinct_handles(self):
        """The same observer can be registered twice under two handles."""
        hub = ObserverHub()
        observer = GraphObserver()

        first = hub.add_observer(observer)
        second = hub.add_observer(observer)

        assert first != second
        assert len(hub) == 2

    def test_remove_by_handle(self):
        """Removing a handle detaches exactly that registration."""
        hub = ObserverHub()
        observer = RecordingObserver()
        first = hub.add_observer(observer)
        hub.add_observer(observer)

        assert hub.remove_observer(first) is True
        assert len(hub) == 1
        assert hub.remove_observer(first) is False

    def test_delivery_in_registration_order(self):
        """Observers are notified in the order they were added."""
        log = []
        hub = ObserverHub()
        for name in ("one", "two", "three"):
            hub.add_observer(OrderObserver(name, log))

        hub.run_started({})
        assert log == ["one", "two", "three"]

    def test_removal_during_notification(self):
        """Removing a listener mid-delivery does not disturb the current one."""
        log = []
        hub = ObserverHub()
        handles = {}

        class Remover(GraphObserver):
            def on_run_started(self, context):
                log.append("remover")
                hub.remove_observer(handles["late"])

        hub.add_observer(Remover())
        handles["late"] = hub.add_observer(OrderObserver("late", log))

        hub.run_started({})
        hub.run_started({})

        assert log == ["remover", "late", "remover"]

    def test_observer_exceptions_propagate(self):
        """A failing observer is not silenced."""
        class Broken(GraphObserver):
            def on_node_started(self, node_id, context):
                raise RuntimeError("observer bug")

        hub = ObserverHub()
        hub.add_observer(Broken())

        with pytest.raises(RuntimeError, match="observer bug"):
            hub.node_started("a", {})


# ============================================================
# Executor Integration
# ============================================================

class TestExecutorObservers:
    """Tests for observers attached to an executor."""

    @pytest.mark.asyncio
    async def test_removed_observer_sees_nothing(self):
        """An observer removed before a run receives no events."""
        recorder = RecordingObserver()
        executor = Executor(two_step_graph())
        handle = executor.add_observer(recorder)
        executor.remove_observer(handle)

        await executor.run(None)
        assert recorder.events == []

    @pytest.mark.asyncio
    async def test_on_event_callback(self):
        """The recording observer forwards each event as it arrives."""
        forwarded = []
        recorder = RecordingObserver(on_event=lambda event: forwarded.append(event.type))

        await Executor(two_step_graph(), observers=[recorder]).run(None)

        assert forwarded == recorder.event_types
        assert recorder.events[0].to_dict()["type"] == "run_started"

    @pytest.mark.asyncio
    async def test_failing_observer_fails_the_run(self):
        """Observer exceptions surface from run()."""
        class Broken(GraphObserver):
            def on_node_completed(self, node_id, result):
                raise RuntimeError("observer bug")

        with pytest.raises(RuntimeError, match="observer bug"):
            await Executor(two_step_graph(), observers=[Broken()]).run(None)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("hook", ["on_node_started", "on_run_completed"])
    async def test_failing_observer_marks_run_failed(self, hook):
        """A run aborted by an observer is reported as failed, not running."""
        class Broken(GraphObserver):
            pass

        def explode(self, *args):
            raise RuntimeError("observer bug")

        setattr(Broken, hook, explode)

        result = await Executor(two_step_graph(), observers=[Broken()]).execute("x")

        assert result.status == RunStatus.FAILED
        assert result.error_type == "RuntimeError"
        assert result.error == "observer bug"
        assert result.completed_at is not None

    @pytest.mark.asyncio
    async def test_logging_observer(self, caplog):
        """The logging observer writes one record per event."""
        test_logger = logging.getLogger("stepgraph.tests.observer")

        with caplog.at_level(logging.INFO, logger="stepgraph.tests.observer"):
            await Executor(
                two_step_graph(),
                observers=[LoggingObserver(test_logger)],
            ).run(None)

        events = [
            record.event for record in caplog.records
            if record.name == "stepgraph.tests.observer"
        ]
        assert events == [
            "run_started",
            "node_started", "node_completed",
            "node_started", "node_completed",
            "run_completed",
        ]
