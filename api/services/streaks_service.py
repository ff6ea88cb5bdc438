"""Streak calculation utilities.

A streak is a run of consecutive local calendar days with at least one
logged session. Day arithmetic is done on ``date`` objects, so daylight
saving transitions cannot turn a one-day gap into 23 or 25 hours.
"""

from collections.abc import Callable, Iterable
from datetime import date, timedelta, tzinfo

from services.log_entry import LogEntry, local_day

ONE_DAY = timedelta(days=1)


def unique_log_days(logs: list[LogEntry], tz: tzinfo | None = None) -> list[date]:
    """Sorted distinct local days that have at least one dated log."""
    days = {local_day(log.timestamp, tz) for log in logs}
    return sorted(day for day in days if day is not None)


def longest_consecutive_run(days: Iterable[date]) -> int:
    """Length of the longest run of consecutive days in ``days``.

    Returns 0 for no days and at least 1 otherwise.
    """
    ordered = sorted(set(days))
    if not ordered:
        return 0

    longest = 1
    current = 1
    for previous, day in zip(ordered, ordered[1:]):
        if day - previous == ONE_DAY:
            current += 1
            longest = max(longest, current)
        else:
            current = 1
    return longest


def longest_streak(logs: list[LogEntry], tz: tzinfo | None = None) -> int:
    """Longest run of consecutive calendar days with at least one log.

    Days {Jan 1, Jan 2, Jan 3, Jan 5} give 3; a single day gives 1; no logs
    give 0.
    """
    return longest_consecutive_run(unique_log_days(logs, tz))


def longest_qualifying_run(
    logs: list[LogEntry],
    qualifies: Callable[[date, list[LogEntry]], bool],
    tz: tzinfo | None = None,
) -> int:
    """Longest run of consecutive days whose logs satisfy ``qualifies``.

    Used for compound conditions such as "5 days in a row with 2+ sessions".
    """
    by_day: dict[date, list[LogEntry]] = {}
    for log in logs:
        day = local_day(log.timestamp, tz)
        if day is not None:
            by_day.setdefault(day, []).append(log)
    return longest_consecutive_run(
        day for day, day_logs in by_day.items() if qualifies(day, day_logs)
    )


def current_streak(
    logs: list[LogEntry],
    on_date: date,
    *,
    today: date | None = None,
    tz: tzinfo | None = None,
) -> int:
    """Streak ending at ``on_date``, walking backward one day at a time.

    Future dates always give 0, as does a date with no logs of its own.
    """
    if today is None:
        today = date.today()
    if on_date > today:
        return 0

    days = set(unique_log_days(logs, tz))
    if on_date not in days:
        return 0

    streak = 1
    check = on_date - ONE_DAY
    while check in days:
        streak += 1
        check -= ONE_DAY
    return streak
