"""Award/revoke notifications emitted by the achievement pipeline.

The pipeline calls ``notify`` exactly once per badge transition and
``celebrate`` only for awards. ``InboxNotifier`` keeps the messages until
the client drains them; ``LoggingNotifier`` records them in the logs.
"""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

from cachetools import TTLCache

from core.logger import get_logger

if TYPE_CHECKING:
    from services.badges_service import Badge

logger = get_logger(__name__)

INBOX_SIZE = 50
INBOX_TTL_SECONDS = 86_400.0
MAX_INBOXES = 1000


class NotificationKind(StrEnum):
    AWARD = "award"
    REVOKE = "revoke"


@dataclass(frozen=True)
class Notification:
    user_id: str
    badge_id: str
    message: str
    kind: NotificationKind
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


def award_message(badge: Badge) -> str:
    return f"{badge.emoji} Achievement Unlocked: {badge.name}"


def revoke_message(badge: Badge) -> str:
    return f"❌ Badge Lost: {badge.name}"


def build_notification(
    user_id: str, badge: Badge, kind: NotificationKind
) -> Notification:
    message = award_message(badge) if kind is NotificationKind.AWARD else revoke_message(badge)
    return Notification(user_id=user_id, badge_id=badge.id, message=message, kind=kind)


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None: ...

    def celebrate(self, notification: Notification) -> None: ...


@dataclass
class DrainedInbox:
    notifications: list[Notification]
    celebrate: bool


@dataclass
class _Inbox:
    notifications: deque[Notification]
    celebrations: int = 0


class InboxNotifier:
    """Bounded per-user inbox polled by the client.

    Inboxes live in a TTL cache: one that is not drained within ``ttl``
    seconds of its last notification is dropped, and at most ``max_users``
    are kept.
    """

    def __init__(
        self,
        maxlen: int = INBOX_SIZE,
        *,
        ttl: float = INBOX_TTL_SECONDS,
        max_users: int = MAX_INBOXES,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._maxlen = maxlen
        self._inboxes: TTLCache[str, _Inbox] = TTLCache(
            maxsize=max_users, ttl=ttl, timer=timer
        )

    def _inbox(self, user_id: str) -> _Inbox:
        inbox = self._inboxes.get(user_id)
        if inbox is None:
            inbox = _Inbox(deque(maxlen=self._maxlen))
        # Re-insert so the TTL counts from the latest notification
        self._inboxes[user_id] = inbox
        return inbox

    def notify(self, notification: Notification) -> None:
        self._inbox(notification.user_id).notifications.append(notification)

    def celebrate(self, notification: Notification) -> None:
        self._inbox(notification.user_id).celebrations += 1

    def pending(self, user_id: str) -> list[Notification]:
        inbox = self._inboxes.get(user_id)
        return list(inbox.notifications) if inbox is not None else []

    def drain(self, user_id: str) -> DrainedInbox:
        inbox = self._inboxes.pop(user_id, None)
        if inbox is None:
            return DrainedInbox(notifications=[], celebrate=False)
        return DrainedInbox(
            notifications=list(inbox.notifications), celebrate=inbox.celebrations > 0
        )


class LoggingNotifier:
    def notify(self, notification: Notification) -> None:
        logger.info(
            "achievement.notification",
            user_id=notification.user_id,
            badge_id=notification.badge_id,
            kind=notification.kind.value,
            message=notification.message,
        )

    def celebrate(self, notification: Notification) -> None:
        logger.debug(
            "achievement.celebration",
            user_id=notification.user_id,
            badge_id=notification.badge_id,
        )


class CompositeNotifier:
    """Fans out to several notifiers; one failing sink does not block the rest."""

    def __init__(self, *notifiers: Notifier) -> None:
        self._notifiers = notifiers

    def notify(self, notification: Notification) -> None:
        for notifier in self._notifiers:
            try:
                notifier.notify(notification)
            except Exception:
                logger.exception("notifier.failed", notifier=type(notifier).__name__)

    def celebrate(self, notification: Notification) -> None:
        for notifier in self._notifiers:
            try:
                notifier.celebrate(notification)
            except Exception:
                logger.exception("notifier.failed", notifier=type(notifier).__name__)
