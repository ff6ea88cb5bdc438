"""Achievement evaluator.

Pure decision step of the achievement pipeline: given the user's logs,
derived stats, prestige and currently earned set, decide which badges to
award and which to revoke. Persistence, notifications and serialization
live in ``achievement_sync_service``.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import tzinfo

from core.logger import get_logger
from services.badges_service import ALL_BADGES, Badge
from services.log_entry import LogEntry
from services.prestige_service import eligible_badges
from services.stats_service import DerivedStats, GoalLookup, compute_derived_stats

logger = get_logger(__name__)


@dataclass(frozen=True)
class EvaluationResult:
    to_award: list[Badge] = field(default_factory=list)
    to_revoke: list[Badge] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.to_award and not self.to_revoke

    def apply(self, earned: Iterable[str]) -> set[str]:
        """Earned set after this result's transitions."""
        result = set(earned)
        result.update(badge.id for badge in self.to_award)
        result.difference_update(badge.id for badge in self.to_revoke)
        return result


def evaluate(
    logs: list[LogEntry],
    stats: DerivedStats | None,
    goal: "int | GoalLookup",
    prestige: int,
    current_earned: Iterable[str],
    *,
    catalog: Sequence[Badge] = ALL_BADGES,
    revocable: bool = True,
    include_meta_rank: bool = False,
    tz: tzinfo | None = None,
) -> EvaluationResult:
    """Decide badge transitions for one pass.

    Each eligible badge's predicate runs exactly once, in catalog order.
    Predicates see the unlocked set as updated by the badges before them,
    so badges that depend on other badges settle in the same pass and a
    second call with the resulting earned set yields no transitions.

    Args:
        logs: The user's full log collection.
        stats: Snapshot for ``logs``; computed from ``logs`` and ``goal``
            when None.
        goal: Goal value or goal history used when stats are computed here.
        prestige: Current prestige level; badges above it are not evaluated.
        current_earned: Badge ids currently earned.
        catalog: Badge definitions, in dependency order.
        revocable: When False, earned badges are never revoked.
        include_meta_rank: Always evaluate the top rank.
        tz: Zone for day grouping when stats are computed here.

    Returns:
        EvaluationResult with badges to award and to revoke. A badge whose
        predicate raises keeps its current state.
    """
    if stats is None:
        stats = compute_derived_stats(logs, goal, tz)

    unlocked = set(current_earned)
    result = EvaluationResult()

    for badge in eligible_badges(prestige, catalog, include_meta_rank=include_meta_rank):
        try:
            qualifies = badge.qualifies(logs, stats, frozenset(unlocked), catalog)
        except Exception:
            logger.exception("achievement.predicate.failed", badge_id=badge.id)
            continue

        earned = badge.id in unlocked
        if qualifies and not earned:
            result.to_award.append(badge)
            unlocked.add(badge.id)
        elif earned and not qualifies and revocable:
            result.to_revoke.append(badge)
            unlocked.discard(badge.id)

    return result


def earned_badges(
    earned_ids: Iterable[str], catalog: Sequence[Badge] = ALL_BADGES
) -> list[Badge]:
    """Catalog entries for ``earned_ids``; unknown ids are ignored."""
    ids = set(earned_ids)
    return [badge for badge in catalog if badge.id in ids]
