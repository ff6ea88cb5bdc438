"""Tests for the in-process event bus."""

import pytest

from core.events import EventBus, GoalsChanged, LogsChanged, publish

pytestmark = pytest.mark.unit


class TestEventBus:
    async def test_handlers_run_in_subscription_order(self):
        seen: list[str] = []
        bus = EventBus()

        async def first(event):
            seen.append("first")

        async def second(event):
            seen.append("second")

        bus.subscribe(first)
        bus.subscribe(second)
        await bus.publish(LogsChanged("u1"))

        assert seen == ["first", "second"]

    async def test_failing_handler_does_not_stop_others(self):
        seen = []
        bus = EventBus()

        async def broken(event):
            raise RuntimeError("handler bug")

        async def healthy(event):
            seen.append(event)

        bus.subscribe(broken)
        bus.subscribe(healthy)
        await bus.publish(GoalsChanged("u1"))

        assert seen == [GoalsChanged("u1")]

    async def test_unsubscribe(self):
        seen = []
        bus = EventBus()

        async def handler(event):
            seen.append(event)

        unsubscribe = bus.subscribe(handler)
        unsubscribe()
        unsubscribe()
        await bus.publish(LogsChanged("u1"))

        assert seen == []

    async def test_publish_without_bus_is_noop(self):
        await publish(None, LogsChanged("u1"))
