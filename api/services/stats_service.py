"""Derived statistics computed from the full pushup log collection.

Everything here is a pure function of (logs, goal, timezone). Nothing is
cached or updated incrementally: callers recompute from the complete log
list whenever it changes.

Day grouping always uses the user's local calendar day (year, month, day of
the timestamp converted into the configured zone), never a UTC date slice,
so sessions near midnight stay on the day the user did them.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta, tzinfo
from enum import StrEnum
from typing import Protocol

from services.log_entry import LogEntry, day_key, local_datetime, local_day


class GoalLookup(Protocol):
    """Anything that can answer "what was the goal on this day"."""

    def goal_for(self, day: date) -> int: ...


@dataclass(frozen=True)
class DerivedStats:
    """Aggregate snapshot handed to badge predicates."""

    total_pushups: int = 0
    day_counts: dict[str, int] = field(default_factory=dict)
    days_logged: int = 0
    goals_hit: int = 0
    # Zone the day keys were derived in; predicates reuse it for their own
    # day grouping
    tz: tzinfo | None = field(default=None, compare=False)


class StatsRange(StrEnum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ALL = "all"


def daily_pushup_totals(logs: list[LogEntry], tz: tzinfo | None = None) -> dict[str, int]:
    """Sum of ``count`` per local calendar day. Undated entries are skipped."""
    totals: dict[str, int] = {}
    for log in logs:
        day = local_day(log.timestamp, tz)
        if day is None:
            continue
        key = day_key(day)
        totals[key] = totals.get(key, 0) + log.count
    return totals


def goal_for_day(goal: "int | GoalLookup", day: date) -> int:
    if isinstance(goal, int):
        return goal
    return goal.goal_for(day)


def count_goals_hit(day_counts: dict[str, int], goal: "int | GoalLookup") -> int:
    """Number of days whose total reached the goal effective on that day."""
    return sum(
        1
        for key, total in day_counts.items()
        if total >= goal_for_day(goal, date.fromisoformat(key))
    )


def compute_derived_stats(
    logs: list[LogEntry],
    goal: "int | GoalLookup",
    tz: tzinfo | None = None,
) -> DerivedStats:
    """Build the stats snapshot for a log collection.

    Args:
        logs: Every log the user owns, in any order.
        goal: Either a single goal value or a goal history; with a history
            each day is compared against the goal effective on that day.
        tz: Zone used to derive local calendar days from aware timestamps.

    Returns:
        DerivedStats; all zeros for an empty collection.
    """
    day_counts = daily_pushup_totals(logs, tz)
    return DerivedStats(
        total_pushups=sum(log.count for log in logs),
        day_counts=day_counts,
        days_logged=len(day_counts),
        goals_hit=count_goals_hit(day_counts, goal),
        tz=tz,
    )


def daily_session_counts(logs: list[LogEntry], tz: tzinfo | None = None) -> dict[str, int]:
    """Number of sessions logged per local calendar day."""
    counter: Counter[str] = Counter()
    for log in logs:
        day = local_day(log.timestamp, tz)
        if day is not None:
            counter[day_key(day)] += 1
    return dict(counter)


def hourly_session_counts(logs: list[LogEntry], tz: tzinfo | None = None) -> dict[str, int]:
    """Number of sessions per local hour, keyed ``YYYY-MM-DDTHH``."""
    counter: Counter[str] = Counter()
    for log in logs:
        ts = local_datetime(log.timestamp, tz)
        if ts is not None:
            counter[ts.strftime("%Y-%m-%dT%H")] += 1
    return dict(counter)


def weekly_pushup_counts(logs: list[LogEntry], tz: tzinfo | None = None) -> dict[str, int]:
    """Sum of ``count`` per ISO week, keyed ``YYYY-Www``."""
    totals: dict[str, int] = {}
    for log in logs:
        day = local_day(log.timestamp, tz)
        if day is None:
            continue
        iso_year, iso_week, _ = day.isocalendar()
        key = f"{iso_year}-W{iso_week:02d}"
        totals[key] = totals.get(key, 0) + log.count
    return totals


def max_in_map(mapping: dict[str, int]) -> int:
    return max(mapping.values(), default=0)


def range_start(range_name: StatsRange, today: date) -> date | None:
    """First day included in a stats range; None means unbounded."""
    match range_name:
        case StatsRange.DAY:
            return today
        case StatsRange.WEEK:
            return today - timedelta(days=6)
        case StatsRange.MONTH:
            return today - timedelta(days=29)
        case StatsRange.YEAR:
            try:
                return today.replace(year=today.year - 1)
            except ValueError:
                # Feb 29 has no counterpart in the previous year
                return today.replace(year=today.year - 1, day=28)
        case _:
            return None


def range_totals(
    logs: list[LogEntry],
    range_name: StatsRange,
    today: date,
    tz: tzinfo | None = None,
) -> dict[str, int]:
    """Per-day totals for days within the range, sorted by day."""
    start = range_start(range_name, today)
    totals = daily_pushup_totals(logs, tz)
    return {
        key: totals[key]
        for key in sorted(totals)
        if start is None or date.fromisoformat(key) >= start
    }
