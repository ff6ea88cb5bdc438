"""Prestige gate.

Prestige is a per-user tier 1..N that decides which badges are eligible for
evaluation. It auto-advances when lifetime pushups cross fixed thresholds and
never auto-demotes: deleting logs lowers the total but keeps the tier. The
only other way it moves is the explicit one-step manual increment.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING

from core.logger import get_logger

if TYPE_CHECKING:
    from services.achievement_store import AchievementStore
    from services.badges_service import Badge

logger = get_logger(__name__)

# Lifetime pushups needed for levels 1..9
PRESTIGE_THRESHOLDS: tuple[int, ...] = (
    0,
    1_000,
    5_000,
    10_000,
    20_000,
    50_000,
    100_000,
    200_000,
    365_000,
)

MIN_PRESTIGE = 1
META_RANK = 10


def level_for_total(total_pushups: int, max_level: int = META_RANK) -> int:
    """Highest level whose threshold is <= ``total_pushups``."""
    level = MIN_PRESTIGE
    for index, threshold in enumerate(PRESTIGE_THRESHOLDS):
        if total_pushups >= threshold:
            level = index + 1
    return min(level, max_level)


def current_prestige(
    total_pushups: int,
    stored_prestige: int | None,
    max_level: int = META_RANK,
) -> int:
    """Prestige after applying the auto-advance check.

    Never lower than ``stored_prestige``; calling it again with the same
    total returns the same value.
    """
    stored = clamp_prestige(stored_prestige, max_level)
    return max(stored, level_for_total(total_pushups, max_level))


def increment_prestige(stored_prestige: int | None, max_level: int = META_RANK) -> int:
    """Manual advance by exactly one level, capped at ``max_level``."""
    return min(clamp_prestige(stored_prestige, max_level) + 1, max_level)


def clamp_prestige(value: int | None, max_level: int = META_RANK) -> int:
    if value is None:
        return MIN_PRESTIGE
    return max(MIN_PRESTIGE, min(int(value), max_level))


def next_threshold(total_pushups: int) -> int | None:
    """Lifetime total needed for the next auto-advance, None past the last one."""
    for threshold in PRESTIGE_THRESHOLDS:
        if threshold > total_pushups:
            return threshold
    return None


def eligible_badges(
    prestige: int,
    catalog: "Sequence[Badge]",
    *,
    include_meta_rank: bool = False,
) -> list["Badge"]:
    """Badges with ``rank <= prestige``, in catalog order.

    With ``include_meta_rank`` the top rank is always eligible as well.
    """
    return [
        badge
        for badge in catalog
        if badge.rank <= prestige or (include_meta_rank and badge.rank == META_RANK)
    ]


async def refresh_prestige(
    store: "AchievementStore",
    user_id: str,
    total_pushups: int,
    max_level: int = META_RANK,
) -> int:
    """Read the stored level, apply auto-advance and write it back if it moved."""
    stored = await store.get_prestige(user_id)
    level = current_prestige(total_pushups, stored, max_level)
    if stored is None or level != stored:
        await store.set_prestige(user_id, level)
        logger.info(
            "prestige.advanced",
            user_id=user_id,
            previous=stored,
            level=level,
            total_pushups=total_pushups,
        )
    return level


async def manual_increment(
    store: "AchievementStore",
    user_id: str,
    max_level: int = META_RANK,
) -> int:
    stored = await store.get_prestige(user_id)
    level = increment_prestige(stored, max_level)
    if level != stored:
        await store.set_prestige(user_id, level)
    logger.info("prestige.incremented", user_id=user_id, previous=stored, level=level)
    return level
