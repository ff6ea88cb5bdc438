"""Tests for services/stats_service.py - pure function tests."""

from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

import pytest

from factories import LogEntryFactory, at_noon
from services.goals_service import GoalHistoryEntry, GoalSchedule
from services.log_entry import LogEntry
from services.stats_service import (
    StatsRange,
    compute_derived_stats,
    count_goals_hit,
    daily_pushup_totals,
    daily_session_counts,
    hourly_session_counts,
    max_in_map,
    range_start,
    range_totals,
    weekly_pushup_counts,
)

pytestmark = pytest.mark.unit

NEW_YORK = ZoneInfo("America/New_York")


class TestComputeDerivedStats:
    def test_empty_logs_yield_zero_stats(self):
        stats = compute_derived_stats([], 50)
        assert stats.total_pushups == 0
        assert stats.day_counts == {}
        assert stats.days_logged == 0
        assert stats.goals_hit == 0

    def test_sums_per_day_and_total(self):
        logs = [
            LogEntryFactory.build(count=20, timestamp=datetime(2024, 1, 1, 8, tzinfo=UTC)),
            LogEntryFactory.build(count=30, timestamp=datetime(2024, 1, 1, 18, tzinfo=UTC)),
            LogEntryFactory.build(count=10, timestamp=datetime(2024, 1, 2, 9, tzinfo=UTC)),
        ]
        stats = compute_derived_stats(logs, 50, UTC)

        assert stats.total_pushups == 60
        assert stats.day_counts == {"2024-01-01": 50, "2024-01-02": 10}
        assert stats.days_logged == 2
        assert stats.goals_hit == 1

    def test_input_order_does_not_matter(self):
        logs = [
            LogEntryFactory.build(count=5, timestamp=at_noon(date(2024, 3, d)))
            for d in (3, 1, 2)
        ]
        assert compute_derived_stats(logs, 5, UTC) == compute_derived_stats(
            list(reversed(logs)), 5, UTC
        )

    def test_corrupt_timestamp_counts_toward_total_only(self):
        logs = [
            LogEntryFactory.build(count=10, timestamp=at_noon(date(2024, 1, 1))),
            LogEntry(id="bad", count=7, timestamp="not-a-date"),
            LogEntry(id="none", count=3, timestamp=None),
        ]
        stats = compute_derived_stats(logs, 50, UTC)

        assert stats.total_pushups == 20
        assert stats.day_counts == {"2024-01-01": 10}

    def test_iso_string_timestamps_are_grouped(self):
        logs = [LogEntry(id="1", count=12, timestamp="2024-05-01T10:00:00Z")]
        assert compute_derived_stats(logs, 50, UTC).day_counts == {"2024-05-01": 12}

    def test_stats_carry_timezone(self):
        assert compute_derived_stats([], 50, NEW_YORK).tz is NEW_YORK


class TestDayBoundaries:
    def test_midnight_local_splits_days_regardless_of_utc(self):
        """23:59:59 and 00:00:01 local fall into different buckets."""
        before = datetime(2024, 1, 1, 23, 59, 59, tzinfo=NEW_YORK).astimezone(UTC)
        after = datetime(2024, 1, 2, 0, 0, 1, tzinfo=NEW_YORK).astimezone(UTC)
        # Both are on 2024-01-02 in UTC
        assert before.date() == after.date()

        logs = [
            LogEntryFactory.build(count=10, timestamp=before),
            LogEntryFactory.build(count=15, timestamp=after),
        ]
        totals = daily_pushup_totals(logs, NEW_YORK)

        assert totals == {"2024-01-01": 10, "2024-01-02": 15}

    def test_naive_timestamps_are_local_wall_time(self):
        logs = [LogEntryFactory.build(count=4, timestamp=datetime(2024, 1, 1, 23, 30))]
        assert daily_pushup_totals(logs, NEW_YORK) == {"2024-01-01": 4}


class TestGoalsHit:
    def test_goal_boundary(self):
        assert count_goals_hit({"2024-01-01": 50, "2024-01-02": 49}, 50) == 1

    def test_zero_goal_counts_every_logged_day(self):
        assert count_goals_hit({"2024-01-01": 1, "2024-01-02": 2}, 0) == 2

    def test_history_aware_goal(self):
        schedule = GoalSchedule(
            [
                GoalHistoryEntry(100, date(2024, 1, 2), datetime(2024, 1, 2, tzinfo=UTC)),
            ],
            default=50,
        )
        day_counts = {"2024-01-01": 60, "2024-01-02": 60, "2024-01-03": 100}
        # Jan 1 uses the default 50, later days the new goal of 100
        assert count_goals_hit(day_counts, schedule) == 2


class TestSessionCounts:
    def test_daily_session_counts(self):
        logs = [
            LogEntryFactory.build(timestamp=datetime(2024, 1, 1, h, tzinfo=UTC))
            for h in (7, 12, 20)
        ] + [LogEntryFactory.build(timestamp=datetime(2024, 1, 2, 9, tzinfo=UTC))]
        assert daily_session_counts(logs, UTC) == {"2024-01-01": 3, "2024-01-02": 1}

    def test_hourly_session_counts(self):
        logs = [
            LogEntryFactory.build(timestamp=datetime(2024, 1, 1, 7, 5, tzinfo=UTC)),
            LogEntryFactory.build(timestamp=datetime(2024, 1, 1, 7, 55, tzinfo=UTC)),
            LogEntryFactory.build(timestamp=datetime(2024, 1, 1, 8, 0, tzinfo=UTC)),
        ]
        assert hourly_session_counts(logs, UTC) == {"2024-01-01T07": 2, "2024-01-01T08": 1}

    def test_weekly_counts_use_iso_weeks(self):
        logs = [
            # 2024-12-30 is in ISO week 1 of 2025
            LogEntryFactory.build(count=10, timestamp=at_noon(date(2024, 12, 30))),
            LogEntryFactory.build(count=5, timestamp=at_noon(date(2025, 1, 5))),
            LogEntryFactory.build(count=1, timestamp=at_noon(date(2025, 1, 6))),
        ]
        assert weekly_pushup_counts(logs, UTC) == {"2025-W01": 15, "2025-W02": 1}

    def test_max_in_map(self):
        assert max_in_map({}) == 0
        assert max_in_map({"a": 3, "b": 9}) == 9


class TestRanges:
    @pytest.mark.parametrize(
        ("range_name", "expected"),
        [
            (StatsRange.DAY, date(2024, 6, 15)),
            (StatsRange.WEEK, date(2024, 6, 9)),
            (StatsRange.MONTH, date(2024, 5, 17)),
            (StatsRange.YEAR, date(2023, 6, 15)),
            (StatsRange.ALL, None),
        ],
    )
    def test_range_start(self, range_name, expected):
        assert range_start(range_name, date(2024, 6, 15)) == expected

    def test_year_range_from_leap_day(self):
        assert range_start(StatsRange.YEAR, date(2024, 2, 29)) == date(2023, 2, 28)

    def test_range_totals_filters_and_sorts(self):
        logs = [
            LogEntryFactory.build(count=3, timestamp=at_noon(date(2024, 6, 15))),
            LogEntryFactory.build(count=2, timestamp=at_noon(date(2024, 6, 1))),
            LogEntryFactory.build(count=1, timestamp=at_noon(date(2024, 6, 10))),
        ]
        week = range_totals(logs, StatsRange.WEEK, date(2024, 6, 15), UTC)
        assert list(week) == ["2024-06-10", "2024-06-15"]

        everything = range_totals(logs, StatsRange.ALL, date(2024, 6, 15), UTC)
        assert list(everything) == ["2024-06-01", "2024-06-10", "2024-06-15"]
