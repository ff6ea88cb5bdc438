"""Daily goal history.

A user's goal is a dated history: each entry takes effect from its
``start_date`` onward until a later entry replaces it. Setting a goal for
"today" or for a past date upserts the entry keyed by that date; entries
are never deleted.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.events import EventBus, GoalsChanged, publish
from core.logger import get_logger
from repositories.goal_repository import GoalRepository
from services.log_entry import local_today

logger = get_logger(__name__)

DEFAULT_GOAL = 50
EPOCH = date(1970, 1, 1)
_EPOCH_CHANGED_AT = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass(frozen=True)
class GoalHistoryEntry:
    value: int
    start_date: date
    changed_at: datetime


class GoalSchedule:
    """Answers "what was the goal on day D" from a goal history.

    The effective goal is the value of the entry with the latest
    ``start_date <= D``; ties on ``start_date`` go to the latest
    ``changed_at``. A synthetic epoch entry carrying ``default`` acts as the
    floor, so days before the first real entry use the default.
    """

    def __init__(self, entries: Iterable[GoalHistoryEntry] = (), default: int = DEFAULT_GOAL):
        self.default = default
        effective: dict[date, GoalHistoryEntry] = {
            EPOCH: GoalHistoryEntry(default, EPOCH, _EPOCH_CHANGED_AT)
        }
        for entry in entries:
            current = effective.get(entry.start_date)
            if (
                current is None
                or current.changed_at == _EPOCH_CHANGED_AT
                or _aware(entry.changed_at) >= _aware(current.changed_at)
            ):
                effective[entry.start_date] = entry
        self.entries: list[GoalHistoryEntry] = [
            effective[key] for key in sorted(effective)
        ]

    def goal_for(self, day: date) -> int:
        value = self.default
        for entry in self.entries:
            if entry.start_date > day:
                break
            value = entry.value
        return value

    def current_goal(self, today: date | None = None) -> int:
        return self.goal_for(today or local_today())

    def __repr__(self) -> str:
        return f"GoalSchedule(entries={len(self.entries)}, default={self.default})"


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


async def get_goal_schedule(
    db: AsyncSession,
    user_id: str,
    default: int | None = None,
) -> GoalSchedule:
    if default is None:
        default = get_settings().default_goal
    rows = await GoalRepository(db).list_for_user(user_id)
    return GoalSchedule(
        (
            GoalHistoryEntry(
                value=row.value,
                start_date=row.start_date,
                changed_at=_aware(row.changed_at),
            )
            for row in rows
        ),
        default=default,
    )


async def set_goal(
    db: AsyncSession,
    user_id: str,
    value: int,
    day: date | None = None,
    *,
    today: date | None = None,
    bus: EventBus | None = None,
) -> GoalHistoryEntry:
    """Set the goal from ``day`` (today when omitted) forward.

    Raises:
        ValueError: If ``value`` is negative.
    """
    if value < 0:
        raise ValueError("Goal must be non-negative")

    start_date = day or today or local_today(get_settings().tzinfo)
    await GoalRepository(db).upsert(user_id, value, start_date)
    await db.commit()

    logger.info("goal.set", user_id=user_id, value=value, start_date=start_date.isoformat())
    await publish(bus, GoalsChanged(user_id))
    return GoalHistoryEntry(value=value, start_date=start_date, changed_at=datetime.now(UTC))
