"""In-process event bus for state changes that affect achievements.

Services publish an event after a mutation has committed; the achievement
pipeline registry is the single subscriber that turns events into
serialized evaluation passes. Handlers run in subscription order and a
failing handler is logged without affecting the publisher or the other
handlers.

This is intentionally in-process (no Redis, no task queue). Every process
reconciles against the database before evaluating, so a lost event only
delays a badge until the next mutation or page load.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from core.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class LogsChanged:
    """A log was added, deleted, or a bulk delete completed."""

    user_id: str


@dataclass(frozen=True)
class GoalsChanged:
    user_id: str


@dataclass(frozen=True)
class PrestigeChanged:
    user_id: str


@dataclass(frozen=True)
class SessionStarted:
    """The user logged in or the client app (re)started."""

    user_id: str


Event = LogsChanged | GoalsChanged | PrestigeChanged | SessionStarted
EventHandler = Callable[[Event], Awaitable[None]]


class EventBus:
    def __init__(self) -> None:
        self._handlers: list[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """Register a handler. Returns a callable that unsubscribes it."""
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return _unsubscribe

    async def publish(self, event: Event) -> None:
        for handler in list(self._handlers):
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    "event.handler.failed",
                    event_type=type(event).__name__,
                    user_id=event.user_id,
                )


async def publish(bus: EventBus | None, event: Event) -> None:
    """Publish when a bus is wired up; no-op in CLI/test contexts without one."""
    if bus is not None:
        await bus.publish(event)
