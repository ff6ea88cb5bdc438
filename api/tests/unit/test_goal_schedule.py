"""Tests for GoalSchedule - effective goal lookup over a goal history."""

from datetime import UTC, date, datetime

import pytest
import time_machine

from services.goals_service import EPOCH, GoalHistoryEntry, GoalSchedule

pytestmark = pytest.mark.unit


def _entry(value: int, start: date, changed_hour: int = 0) -> GoalHistoryEntry:
    return GoalHistoryEntry(
        value=value,
        start_date=start,
        changed_at=datetime(start.year, start.month, start.day, changed_hour, tzinfo=UTC),
    )


class TestGoalSchedule:
    def test_empty_history_uses_default(self):
        schedule = GoalSchedule(default=40)
        assert schedule.goal_for(date(2024, 1, 1)) == 40
        assert [entry.start_date for entry in schedule.entries] == [EPOCH]

    def test_latest_start_date_on_or_before_day_wins(self):
        schedule = GoalSchedule(
            [_entry(100, date(2024, 3, 1)), _entry(75, date(2024, 2, 1))],
            default=50,
        )
        assert schedule.goal_for(date(2024, 1, 31)) == 50
        assert schedule.goal_for(date(2024, 2, 1)) == 75
        assert schedule.goal_for(date(2024, 2, 29)) == 75
        assert schedule.goal_for(date(2024, 3, 1)) == 100
        assert schedule.goal_for(date(2030, 1, 1)) == 100

    def test_same_start_date_latest_change_wins(self):
        schedule = GoalSchedule(
            [_entry(80, date(2024, 1, 1), changed_hour=15), _entry(60, date(2024, 1, 1), 9)],
            default=50,
        )
        assert schedule.goal_for(date(2024, 1, 1)) == 80

    def test_real_entry_at_epoch_replaces_default(self):
        schedule = GoalSchedule([_entry(10, EPOCH)], default=50)
        assert schedule.goal_for(date(2024, 1, 1)) == 10

    def test_zero_goal_is_valid(self):
        schedule = GoalSchedule([_entry(0, date(2024, 1, 1))], default=50)
        assert schedule.goal_for(date(2024, 1, 2)) == 0

    def test_current_goal_with_explicit_today(self):
        schedule = GoalSchedule([_entry(70, date(2024, 5, 1))], default=50)
        assert schedule.current_goal(date(2024, 4, 30)) == 50
        assert schedule.current_goal(date(2024, 5, 1)) == 70

    @time_machine.travel(datetime(2024, 5, 2, 12, 0, tzinfo=UTC), tick=False)
    def test_current_goal_defaults_to_today(self):
        schedule = GoalSchedule([_entry(70, date(2024, 5, 1))], default=50)
        assert schedule.current_goal() == 70
