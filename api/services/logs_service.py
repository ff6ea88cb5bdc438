"""Pushup log store.

Logs are created by explicit user action, never edited, and deleted one at a
time, per calendar day, or all at once. Every mutation commits before
``LogsChanged`` is published, so the evaluation pass triggered by the event
reads the new state from its own session.
"""

from datetime import UTC, date, datetime, time, timedelta, tzinfo

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.errors import InvalidLogError, LogNotFoundError
from core.events import EventBus, LogsChanged, publish
from core.logger import get_logger
from core.wide_event import set_wide_event_fields
from models import PushupLog
from repositories.log_repository import LogRepository
from services.log_entry import LogEntry, sorted_by_time

logger = get_logger(__name__)


def as_utc(value: datetime) -> datetime:
    """Aware UTC datetime. Naive values (SQLite round-trips) are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_log_entry(log: PushupLog) -> LogEntry:
    return LogEntry(
        id=str(log.id),
        count=log.count,
        timestamp=as_utc(log.logged_at),
        user_id=log.user_id,
    )


def resolve_logged_at(
    on_date: date | None,
    *,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> datetime:
    """Timestamp for a new log.

    Without ``on_date`` this is ``now``. With it, the current local
    time-of-day is merged onto that calendar day, so a log back-filled for
    yesterday lands on yesterday in the user's zone.
    """
    if tz is None:
        tz = get_settings().tzinfo
    if now is None:
        now = datetime.now(UTC)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=tz)

    if on_date is None:
        return now.astimezone(UTC)

    local_now = now.astimezone(tz)
    return datetime.combine(on_date, local_now.time(), tzinfo=tz).astimezone(UTC)


def local_day_bounds(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """UTC [start, end) covering the local calendar day ``day``."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(UTC), end.astimezone(UTC)


async def list_logs(db: AsyncSession, user_id: str) -> list[LogEntry]:
    """All of a user's logs, oldest first."""
    rows = await LogRepository(db).list_for_user(user_id)
    return sorted_by_time([to_log_entry(row) for row in rows])


async def add_log(
    db: AsyncSession,
    user_id: str,
    count: int,
    on_date: date | None = None,
    *,
    now: datetime | None = None,
    tz: tzinfo | None = None,
    bus: EventBus | None = None,
) -> LogEntry:
    """Record a pushup session.

    Raises:
        InvalidLogError: If ``count`` is not a positive integer.
    """
    if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
        raise InvalidLogError(f"count must be a positive integer, got {count!r}")

    logged_at = resolve_logged_at(on_date, now=now, tz=tz)
    row = await LogRepository(db).add(user_id, count, logged_at)
    entry = to_log_entry(row)
    await db.commit()

    logger.info("log.added", user_id=user_id, log_id=entry.id, count=count)
    set_wide_event_fields(log_action="add", log_count=count)
    await publish(bus, LogsChanged(user_id))
    return entry


async def delete_log(
    db: AsyncSession,
    user_id: str,
    log_id: int,
    *,
    bus: EventBus | None = None,
) -> None:
    """Delete one log.

    Raises:
        LogNotFoundError: If the log does not exist or belongs to someone else.
    """
    repo = LogRepository(db)
    row = await repo.get(user_id, log_id)
    if row is None:
        raise LogNotFoundError(log_id)

    await repo.delete(row)
    await db.commit()

    logger.info("log.deleted", user_id=user_id, log_id=log_id)
    set_wide_event_fields(log_action="delete")
    await publish(bus, LogsChanged(user_id))


async def clear_logs(
    db: AsyncSession,
    user_id: str,
    *,
    bus: EventBus | None = None,
) -> int:
    """Delete every log the user owns. Returns the number removed."""
    deleted = await LogRepository(db).delete_for_user(user_id)
    await db.commit()

    logger.info("log.cleared", user_id=user_id, deleted=deleted)
    set_wide_event_fields(log_action="clear", logs_deleted=deleted)
    await publish(bus, LogsChanged(user_id))
    return deleted


async def delete_logs_for_day(
    db: AsyncSession,
    user_id: str,
    day: date,
    *,
    tz: tzinfo | None = None,
    bus: EventBus | None = None,
) -> int:
    """Delete the logs falling on one local calendar day."""
    if tz is None:
        tz = get_settings().tzinfo
    start, end = local_day_bounds(day, tz)
    deleted = await LogRepository(db).delete_in_range(user_id, start, end)
    await db.commit()

    logger.info("log.day_deleted", user_id=user_id, day=day.isoformat(), deleted=deleted)
    set_wide_event_fields(log_action="delete_day", logs_deleted=deleted)
    await publish(bus, LogsChanged(user_id))
    return deleted
