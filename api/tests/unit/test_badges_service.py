"""Tests for services/badges_service.py - catalog shape and predicates."""

from datetime import UTC, date, datetime

import pytest

from factories import LogEntryFactory, at_noon, log_entries_on
from services.badges_service import (
    ALL_BADGES,
    BADGES_BY_ID,
    MAX_RANK,
    Badge,
    all_badges_of_rank,
    badges_by_rank,
    consecutive_days_with_sessions,
    get_badge,
    session_at_or_after_hour,
    session_before_hour,
    single_session_at_least,
    unlocked_count_at_least,
    validate_catalog,
    weekend_pair,
)
from services.stats_service import compute_derived_stats

pytestmark = pytest.mark.unit


def _check(badge_id: str, logs, goal: int = 50, unlocked: frozenset[str] = frozenset()):
    stats = compute_derived_stats(logs, goal, UTC)
    return BADGES_BY_ID[badge_id].qualifies(logs, stats, unlocked, ALL_BADGES)


class TestCatalog:
    def test_ids_are_unique(self):
        ids = [badge.id for badge in ALL_BADGES]
        assert len(ids) == len(set(ids))

    def test_original_prestige_one_ids_are_kept(self):
        expected = {
            "first_pushup",
            "daily_goal",
            "fifty_total",
            "hundred_club",
            "three_day_streak",
            "five_sessions",
            "twenty_five_day",
            "three_sessions_day",
            "five_goals",
            "week_warrior",
        }
        rank_one = {badge.id for badge in ALL_BADGES if badge.rank == 1}
        assert expected <= rank_one

    def test_ranks_cover_one_to_ten(self):
        assert MAX_RANK == 10
        assert set(badges_by_rank()) == set(range(1, 11))

    def test_badges_by_rank_is_ascending(self):
        assert list(badges_by_rank()) == sorted(badges_by_rank())

    def test_dependent_badges_come_after_what_they_depend_on(self):
        order = {badge.id: index for index, badge in enumerate(ALL_BADGES)}
        graduate = order["graduate"]
        assert all(
            order[badge.id] < graduate
            for badge in ALL_BADGES
            if badge.rank == 1 and badge.id != "graduate"
        )
        assert order["month_streak"] < order["streak_and_volume"]
        assert order["fifteen_thousand"] < order["streak_and_volume"]

    def test_get_badge(self):
        assert get_badge("hundred_club").name == "Century Club"
        assert get_badge("nope") is None

    def test_validate_catalog_rejects_duplicates(self):
        badge = BADGES_BY_ID["first_pushup"]
        with pytest.raises(ValueError, match="Duplicate"):
            validate_catalog([badge, badge])

    def test_validate_catalog_rejects_bad_rank(self):
        bad = Badge("x", "X", "x", "x", 11, lambda *args: True)
        with pytest.raises(ValueError, match="invalid rank"):
            validate_catalog([bad])


class TestPrestigeOnePredicates:
    def test_first_pushup(self):
        assert not _check("first_pushup", [])
        assert _check("first_pushup", log_entries_on([date(2024, 1, 1)], count=1))

    def test_daily_goal_uses_goal(self):
        logs = log_entries_on([date(2024, 1, 1)], count=30)
        assert not _check("daily_goal", logs, goal=50)
        assert _check("daily_goal", logs, goal=30)

    def test_hundred_club(self):
        assert not _check("hundred_club", log_entries_on([date(2024, 1, 1)], count=99))
        assert _check("hundred_club", log_entries_on([date(2024, 1, 1)], count=100))

    def test_three_day_streak(self):
        days = [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 4)]
        assert not _check("three_day_streak", log_entries_on(days))
        assert _check("three_day_streak", log_entries_on(days + [date(2024, 1, 3)]))

    def test_three_sessions_day(self):
        logs = [
            LogEntryFactory.build(timestamp=datetime(2024, 1, 1, h, tzinfo=UTC))
            for h in (6, 12, 18)
        ]
        assert _check("three_sessions_day", logs)
        assert not _check("three_sessions_day", logs[:2])

    def test_twenty_five_day_sums_sessions(self):
        logs = [
            LogEntryFactory.build(count=10, timestamp=datetime(2024, 1, 1, 8, tzinfo=UTC)),
            LogEntryFactory.build(count=15, timestamp=datetime(2024, 1, 1, 20, tzinfo=UTC)),
        ]
        assert _check("twenty_five_day", logs)


class TestPredicateBuilders:
    def _stats(self, logs):
        return compute_derived_stats(logs, 50, UTC)

    def test_hour_predicates(self):
        early = [LogEntryFactory.build(timestamp=datetime(2024, 1, 1, 6, 59, tzinfo=UTC))]
        late = [LogEntryFactory.build(timestamp=datetime(2024, 1, 1, 22, 0, tzinfo=UTC))]

        assert session_before_hour(7)(early, self._stats(early), frozenset(), ())
        assert not session_before_hour(7)(late, self._stats(late), frozenset(), ())
        assert session_at_or_after_hour(22)(late, self._stats(late), frozenset(), ())
        assert not session_at_or_after_hour(22)(early, self._stats(early), frozenset(), ())

    def test_consecutive_days_with_sessions(self):
        logs = [
            LogEntryFactory.build(timestamp=datetime(2024, 1, d, h, tzinfo=UTC))
            for d in (1, 2, 3)
            for h in (8, 20)
        ]
        check = consecutive_days_with_sessions(days=3, sessions=2)
        assert check(logs, self._stats(logs), frozenset(), ())
        assert not check(logs[:-1], self._stats(logs[:-1]), frozenset(), ())

    def test_weekend_pair(self):
        # 2024-01-06 is a Saturday
        saturday_sunday = log_entries_on([date(2024, 1, 6), date(2024, 1, 7)])
        sunday_monday = log_entries_on([date(2024, 1, 7), date(2024, 1, 8)])
        check = weekend_pair()
        assert check(saturday_sunday, self._stats(saturday_sunday), frozenset(), ())
        assert not check(sunday_monday, self._stats(sunday_monday), frozenset(), ())

    def test_weekend_pair_across_month_end(self):
        # Saturday 2024-08-31, Sunday 2024-09-01
        logs = log_entries_on([date(2024, 8, 31), date(2024, 9, 1)])
        assert weekend_pair()(logs, self._stats(logs), frozenset(), ())

    def test_single_session_at_least(self):
        logs = [LogEntryFactory.build(count=100, timestamp=at_noon(date(2024, 1, 1)))]
        assert single_session_at_least(100)(logs, self._stats(logs), frozenset(), ())
        assert not single_session_at_least(101)(logs, self._stats(logs), frozenset(), ())

    def test_all_badges_of_rank(self):
        rank_one = [b.id for b in ALL_BADGES if b.rank == 1 and b.id != "graduate"]
        check = all_badges_of_rank(1)
        stats = self._stats([])
        assert check([], stats, frozenset(rank_one), ALL_BADGES)
        assert not check([], stats, frozenset(rank_one[1:]), ALL_BADGES)

    def test_all_badges_of_empty_rank_is_false(self):
        assert not all_badges_of_rank(1)([], self._stats([]), frozenset(), ())

    def test_unlocked_count_ignores_unknown_and_dependent_ids(self):
        check = unlocked_count_at_least(2)
        stats = self._stats([])
        assert not check([], stats, frozenset({"first_pushup", "graduate", "bogus"}), ALL_BADGES)
        assert check([], stats, frozenset({"first_pushup", "hundred_club"}), ALL_BADGES)
