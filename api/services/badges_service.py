"""Badge catalog for gamification.

Badges are static definitions; only the earned state is persisted. Each
badge carries a predicate over ``(logs, stats, unlocked_ids, catalog)``
evaluated from scratch on every pass. Most predicates only look at the
first two arguments; badges that depend on other badges use the last two.

Badges unlock for evaluation by prestige rank (see prestige_service).
The catalog order matters: a badge that depends on other badges must come
after them so a single evaluation pass sees their latest state.

Badge ids are persistence keys and must never change once shipped.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date

from services.log_entry import LogEntry, local_datetime
from services.stats_service import DerivedStats, daily_session_counts
from services.streaks_service import (
    ONE_DAY,
    longest_consecutive_run,
    longest_qualifying_run,
)

Predicate = Callable[
    [list[LogEntry], DerivedStats, frozenset[str], Sequence["Badge"]], bool
]


@dataclass(frozen=True)
class Badge:
    """A catalog entry."""

    id: str
    name: str
    emoji: str
    description: str
    rank: int
    condition: Predicate

    def qualifies(
        self,
        logs: list[LogEntry],
        stats: DerivedStats,
        unlocked: frozenset[str] = frozenset(),
        catalog: Sequence["Badge"] = (),
    ) -> bool:
        return bool(self.condition(logs, stats, unlocked, catalog))


# =============================================================================
# Predicate builders
# =============================================================================


def total_at_least(n: int) -> Predicate:
    return lambda logs, stats, unlocked, catalog: stats.total_pushups >= n


def single_day_at_least(n: int) -> Predicate:
    return lambda logs, stats, unlocked, catalog: any(
        total >= n for total in stats.day_counts.values()
    )


def streak_at_least(n: int) -> Predicate:
    # day_counts keys are exactly the local days with logs
    return lambda logs, stats, unlocked, catalog: (
        longest_consecutive_run(date.fromisoformat(key) for key in stats.day_counts)
        >= n
    )


def goals_hit_at_least(n: int) -> Predicate:
    return lambda logs, stats, unlocked, catalog: stats.goals_hit >= n


def sessions_at_least(n: int) -> Predicate:
    return lambda logs, stats, unlocked, catalog: len(logs) >= n


def days_logged_at_least(n: int) -> Predicate:
    return lambda logs, stats, unlocked, catalog: stats.days_logged >= n


def single_session_at_least(n: int) -> Predicate:
    return lambda logs, stats, unlocked, catalog: any(log.count >= n for log in logs)


def sessions_in_one_day(n: int) -> Predicate:
    """N or more sessions logged on the same calendar day."""

    def _check(logs, stats, unlocked, catalog) -> bool:
        counts = daily_session_counts(logs, stats.tz)
        return any(count >= n for count in counts.values())

    return _check


def session_before_hour(hour: int) -> Predicate:
    """At least one session logged before ``hour``:00 local time."""

    def _check(logs, stats, unlocked, catalog) -> bool:
        for log in logs:
            ts = local_datetime(log.timestamp, stats.tz)
            if ts is not None and ts.hour < hour:
                return True
        return False

    return _check


def session_at_or_after_hour(hour: int) -> Predicate:
    def _check(logs, stats, unlocked, catalog) -> bool:
        for log in logs:
            ts = local_datetime(log.timestamp, stats.tz)
            if ts is not None and ts.hour >= hour:
                return True
        return False

    return _check


def consecutive_days_with_sessions(days: int, sessions: int) -> Predicate:
    """``days`` consecutive days, each with ``sessions`` or more sessions."""

    def _check(logs, stats, unlocked, catalog) -> bool:
        run = longest_qualifying_run(
            logs, lambda day, day_logs: len(day_logs) >= sessions, stats.tz
        )
        return run >= days

    return _check


def weekend_pair() -> Predicate:
    """Logged on both the Saturday and the Sunday of the same weekend."""

    def _check(logs, stats, unlocked, catalog) -> bool:
        days = {date.fromisoformat(key) for key in stats.day_counts}
        return any(
            day.weekday() == 5 and day + ONE_DAY in days
            for day in days
        )

    return _check


def all_badges_of_rank(rank: int) -> Predicate:
    """Every other badge of ``rank`` is already unlocked."""

    def _check(logs, stats, unlocked, catalog) -> bool:
        required = [b.id for b in catalog if b.rank == rank and b.id not in _META_IDS]
        return bool(required) and all(badge_id in unlocked for badge_id in required)

    return _check


def unlocked_count_at_least(n: int) -> Predicate:
    def _check(logs, stats, unlocked, catalog) -> bool:
        known = {b.id for b in catalog if b.id not in _META_IDS}
        return len(known & unlocked) >= n

    return _check


def requires(*badge_ids: str) -> Predicate:
    return lambda logs, stats, unlocked, catalog: all(
        badge_id in unlocked for badge_id in badge_ids
    )


def both(first: Predicate, second: Predicate) -> Predicate:
    return lambda logs, stats, unlocked, catalog: first(
        logs, stats, unlocked, catalog
    ) and second(logs, stats, unlocked, catalog)


# =============================================================================
# Catalog
# =============================================================================

_RANK_1: list[Badge] = [
    Badge("first_pushup", "First Step", "👣", "Log your first pushup", 1,
          sessions_at_least(1)),
    Badge("daily_goal", "Goal Getter", "🎯", "Reach your daily goal for the first time", 1,
          goals_hit_at_least(1)),
    Badge("fifty_total", "Fifty Club", "5️⃣", "Complete 50 total pushups", 1,
          total_at_least(50)),
    Badge("hundred_club", "Century Club", "💯", "Complete 100 total pushups", 1,
          total_at_least(100)),
    Badge("three_day_streak", "Three Days Strong", "📅", "Log pushups for 3 days in a row", 1,
          streak_at_least(3)),
    Badge("five_sessions", "Five Timer", "⏱️", "Log 5 different pushup sessions", 1,
          sessions_at_least(5)),
    Badge("twenty_five_day", "Daily Champion", "🏆", "Complete 25 pushups in one day", 1,
          single_day_at_least(25)),
    Badge("three_sessions_day", "Triple Session", "🔄", "Log pushups 3 times in one day", 1,
          sessions_in_one_day(3)),
    Badge("five_goals", "Goal Streak", "🎪", "Hit your daily goal 5 times", 1,
          goals_hit_at_least(5)),
    Badge("week_warrior", "Week Warrior", "🗓️", "Log pushups for 7 days in a row", 1,
          streak_at_least(7)),
]

_RANK_2: list[Badge] = [
    Badge("twenty_five_hundred", "Rising Reps", "📈", "Complete 2,500 total pushups", 2,
          total_at_least(2_500)),
    Badge("hundred_day", "Hundred in a Day", "🔥", "Complete 100 pushups in one day", 2,
          single_day_at_least(100)),
    Badge("two_week_streak", "Fortnight Force", "🧱", "Log pushups for 14 days in a row", 2,
          streak_at_least(14)),
    Badge("ten_goals", "Goal Collector", "🥅", "Hit your daily goal 10 times", 2,
          goals_hit_at_least(10)),
    Badge("twenty_five_sessions", "Regular", "🔁", "Log 25 pushup sessions", 2,
          sessions_at_least(25)),
    Badge("early_bird", "Early Bird", "🌅", "Log a session before 7 AM", 2,
          session_before_hour(7)),
    Badge("night_owl", "Night Owl", "🦉", "Log a session at or after 10 PM", 2,
          session_at_or_after_hour(22)),
]

_RANK_3: list[Badge] = [
    Badge("seventy_five_hundred", "Pushup Machine", "⚙️", "Complete 7,500 total pushups", 3,
          total_at_least(7_500)),
    Badge("two_hundred_day", "Double Century", "💥", "Complete 200 pushups in one day", 3,
          single_day_at_least(200)),
    Badge("three_week_streak", "Habit Formed", "🧠", "Log pushups for 21 days in a row", 3,
          streak_at_least(21)),
    Badge("twenty_five_goals", "Goal Crusher", "🔨", "Hit your daily goal 25 times", 3,
          goals_hit_at_least(25)),
    Badge("fifty_sessions", "Half Century Sessions", "🎟️", "Log 50 pushup sessions", 3,
          sessions_at_least(50)),
    Badge("five_sessions_day", "Grease the Groove", "🛢️", "Log pushups 5 times in one day", 3,
          sessions_in_one_day(5)),
    Badge("double_days", "Double Down", "✌️",
          "Log 2+ sessions a day for 3 days in a row", 3,
          consecutive_days_with_sessions(days=3, sessions=2)),
]

_RANK_4: list[Badge] = [
    Badge("fifteen_thousand", "Iron Chest", "🛡️", "Complete 15,000 total pushups", 4,
          total_at_least(15_000)),
    Badge("three_hundred_day", "Spartan Day", "⚔️", "Complete 300 pushups in one day", 4,
          single_day_at_least(300)),
    Badge("month_streak", "Monthly Master", "🌙", "Log pushups for 30 days in a row", 4,
          streak_at_least(30)),
    Badge("fifty_goals", "Goal Machine", "🤖", "Hit your daily goal 50 times", 4,
          goals_hit_at_least(50)),
    Badge("hundred_sessions", "Centurion", "🏛️", "Log 100 pushup sessions", 4,
          sessions_at_least(100)),
    Badge("weekend_warrior", "Weekend Warrior", "🏖️",
          "Log pushups on a Saturday and the Sunday after", 4,
          weekend_pair()),
    Badge("sixty_days_logged", "Committed", "📆", "Log pushups on 60 different days", 4,
          days_logged_at_least(60)),
]

_RANK_5: list[Badge] = [
    Badge("thirty_thousand", "Thirty K", "🚀", "Complete 30,000 total pushups", 5,
          total_at_least(30_000)),
    Badge("five_hundred_day", "Five Hundred Fury", "🌋", "Complete 500 pushups in one day", 5,
          single_day_at_least(500)),
    Badge("sixty_day_streak", "Unbreakable", "⛓️", "Log pushups for 60 days in a row", 5,
          streak_at_least(60)),
    Badge("hundred_goals", "Goal Legend", "👑", "Hit your daily goal 100 times", 5,
          goals_hit_at_least(100)),
    Badge("two_fifty_sessions", "Session Savant", "🎓", "Log 250 pushup sessions", 5,
          sessions_at_least(250)),
    Badge("ten_sessions_day", "All Day Long", "🕰️", "Log pushups 10 times in one day", 5,
          sessions_in_one_day(10)),
    Badge("triple_week", "Triple Threat Week", "🔱",
          "Log 3+ sessions a day for 7 days in a row", 5,
          consecutive_days_with_sessions(days=7, sessions=3)),
]

_RANK_6: list[Badge] = [
    Badge("seventy_five_thousand", "Titan", "🗿", "Complete 75,000 total pushups", 6,
          total_at_least(75_000)),
    Badge("seven_fifty_day", "Marathon Day", "🏃", "Complete 750 pushups in one day", 6,
          single_day_at_least(750)),
    Badge("hundred_day_streak", "Hundred Days Strong", "🌳", "Log pushups for 100 days in a row", 6,
          streak_at_least(100)),
    Badge("two_hundred_goals", "Goal Dynasty", "🏯", "Hit your daily goal 200 times", 6,
          goals_hit_at_least(200)),
    Badge("five_hundred_sessions", "Relentless", "🐂", "Log 500 pushup sessions", 6,
          sessions_at_least(500)),
    Badge("big_set", "Big Set", "🏋️", "Log 100 pushups in a single session", 6,
          single_session_at_least(100)),
]

_RANK_7: list[Badge] = [
    Badge("one_fifty_thousand", "Colossus", "🏔️", "Complete 150,000 total pushups", 7,
          total_at_least(150_000)),
    Badge("thousand_day", "Thousand Rep Day", "☄️", "Complete 1,000 pushups in one day", 7,
          single_day_at_least(1_000)),
    Badge("one_fifty_streak", "Seasoned", "🍂", "Log pushups for 150 days in a row", 7,
          streak_at_least(150)),
    Badge("three_hundred_goals", "Goal Emperor", "🦅", "Hit your daily goal 300 times", 7,
          goals_hit_at_least(300)),
    Badge("double_fortnight", "Twice Daily", "♊",
          "Log 2+ sessions a day for 14 days in a row", 7,
          consecutive_days_with_sessions(days=14, sessions=2)),
]

_RANK_8: list[Badge] = [
    Badge("quarter_million", "Quarter Million", "💎", "Complete 250,000 total pushups", 8,
          total_at_least(250_000)),
    Badge("two_hundred_streak", "Iron Will", "🧲", "Log pushups for 200 days in a row", 8,
          streak_at_least(200)),
    Badge("thousand_sessions", "Thousand Sessions", "🎰", "Log 1,000 pushup sessions", 8,
          sessions_at_least(1_000)),
    Badge("three_hundred_days_logged", "Almost Every Day", "🗓", "Log pushups on 300 different days", 8,
          days_logged_at_least(300)),
]

_RANK_9: list[Badge] = [
    Badge("half_million", "Half a Million", "🌌", "Complete 500,000 total pushups", 9,
          total_at_least(500_000)),
    Badge("year_streak", "Year of Pushups", "🌍", "Log pushups for 365 days in a row", 9,
          streak_at_least(365)),
    Badge("five_hundred_goals", "Goal Immortal", "⚡", "Hit your daily goal 500 times", 9,
          goals_hit_at_least(500)),
]

_RANK_10: list[Badge] = [
    Badge("million", "The Million", "🪐", "Complete 1,000,000 total pushups", 10,
          total_at_least(1_000_000)),
]

# Badges that depend on other badges go last so one pass converges.
_META: list[Badge] = [
    Badge("graduate", "Graduate", "🎓", "Earn every other Prestige 1 badge", 1,
          all_badges_of_rank(1)),
    Badge("collector", "Collector", "🗃️", "Earn 25 badges", 4,
          unlocked_count_at_least(25)),
    Badge("streak_and_volume", "Complete Athlete", "🥇",
          "Hold both Monthly Master and Fifteen Thousand", 4,
          both(requires("month_streak", "fifteen_thousand"), total_at_least(15_000))),
    Badge("prestige_master", "Prestige Master", "🏅", "Earn every Prestige 9 badge", 10,
          all_badges_of_rank(9)),
]

_META_IDS = frozenset(b.id for b in _META)

ALL_BADGES: tuple[Badge, ...] = tuple(
    _RANK_1 + _RANK_2 + _RANK_3 + _RANK_4 + _RANK_5
    + _RANK_6 + _RANK_7 + _RANK_8 + _RANK_9 + _RANK_10 + _META
)

BADGES_BY_ID: dict[str, Badge] = {badge.id: badge for badge in ALL_BADGES}

MAX_RANK = max(badge.rank for badge in ALL_BADGES)


def get_badge(badge_id: str) -> Badge | None:
    return BADGES_BY_ID.get(badge_id)


def badges_by_rank(catalog: Sequence[Badge] = ALL_BADGES) -> dict[int, list[Badge]]:
    """Group badges by rank for the prestige roadmap, ranks ascending."""
    grouped: dict[int, list[Badge]] = {}
    for badge in sorted(catalog, key=lambda b: b.rank):
        grouped.setdefault(badge.rank, []).append(badge)
    return grouped


def validate_catalog(catalog: Sequence[Badge]) -> None:
    """Raise ValueError on duplicate ids or out-of-range ranks."""
    seen: set[str] = set()
    for badge in catalog:
        if badge.id in seen:
            raise ValueError(f"Duplicate badge id: {badge.id}")
        seen.add(badge.id)
        if not 1 <= badge.rank <= 10:
            raise ValueError(f"Badge {badge.id} has invalid rank {badge.rank}")


validate_catalog(ALL_BADGES)
