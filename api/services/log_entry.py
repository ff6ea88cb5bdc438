"""Read-only view of a pushup log used by the derived-stats computations.

Services convert ``PushupLog`` rows into ``LogEntry`` objects so that stats,
streaks and badge predicates never touch the ORM or the database session.
"""

from dataclasses import dataclass
from datetime import date, datetime, tzinfo

from core.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class LogEntry:
    """One pushup session.

    ``timestamp`` is normally a datetime. Entries restored from a cache may
    carry an ISO string, and corrupt records may carry anything else; such
    entries still count toward totals but have no calendar day.
    """

    id: str
    count: int
    timestamp: datetime | str | None
    user_id: str | None = None


def parse_timestamp(value: datetime | str | None) -> datetime | None:
    """Return a datetime for ``value`` or None when it cannot be parsed."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.debug("log.timestamp.unparseable", value=value)
            return None
    return None


def local_datetime(value: datetime | str | None, tz: tzinfo | None = None) -> datetime | None:
    """Convert a timestamp to the user's local wall time.

    Aware timestamps are converted into ``tz``; naive timestamps are taken
    to already be local wall time.
    """
    ts = parse_timestamp(value)
    if ts is None:
        return None
    if ts.tzinfo is not None and tz is not None:
        return ts.astimezone(tz)
    return ts


def local_day(value: datetime | str | None, tz: tzinfo | None = None) -> date | None:
    """Local calendar day of a timestamp, or None for corrupt timestamps."""
    ts = local_datetime(value, tz)
    return ts.date() if ts is not None else None


def day_key(day: date) -> str:
    """YYYY-MM-DD key used by ``DerivedStats.day_counts``."""
    return day.isoformat()


def sorted_by_time(logs: list[LogEntry]) -> list[LogEntry]:
    """Order logs chronologically. Entries without a usable timestamp go last."""

    def _sort_key(entry: LogEntry) -> tuple[int, float]:
        ts = parse_timestamp(entry.timestamp)
        if ts is None:
            return (1, 0.0)
        return (0, ts.timestamp())

    return sorted(logs, key=_sort_key)


def local_today(tz: tzinfo | None = None) -> date:
    """Today's calendar day in ``tz`` (system local time when None)."""
    return datetime.now(tz).date()
