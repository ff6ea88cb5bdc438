"""Achievement endpoints: catalog with earned state, evaluation, inbox."""

from datetime import datetime

from fastapi import APIRouter, Request

from core.auth import UserId
from core.events import SessionStarted
from core.ratelimit import EVALUATE_LIMIT, limiter
from core.wide_event import set_wide_event_fields
from routes.dependencies import Bus, Inbox, Registry
from schemas import (
    AchievementsResponse,
    BadgeResponse,
    EvaluationResponse,
    NotificationResponse,
    NotificationsResponse,
    RoadmapRank,
    RoadmapResponse,
)
from services.badges_service import Badge, badges_by_rank
from services.prestige_service import eligible_badges

router = APIRouter(prefix="/api/achievements", tags=["achievements"])


def _badge_response(badge: Badge, earned: dict[str, datetime | None]) -> BadgeResponse:
    return BadgeResponse(
        id=badge.id,
        name=badge.name,
        emoji=badge.emoji,
        description=badge.description,
        rank=badge.rank,
        earned=badge.id in earned,
        earned_at=earned.get(badge.id),
    )


@router.get("", response_model=AchievementsResponse)
async def get_achievements(user_id: UserId, registry: Registry) -> AchievementsResponse:
    """Badges eligible at the caller's prestige, with earned flags."""
    pipeline = registry.get(user_id)
    await pipeline.ensure_loaded()
    earned = pipeline.earned

    badges = eligible_badges(
        pipeline.prestige,
        pipeline.catalog,
        include_meta_rank=pipeline.settings.always_include_meta_rank,
    )
    return AchievementsResponse(
        prestige=pipeline.prestige,
        badges=[_badge_response(badge, earned) for badge in badges],
        earned_count=sum(1 for badge in badges if badge.id in earned),
    )


@router.post("/evaluate", response_model=EvaluationResponse)
@limiter.limit(EVALUATE_LIMIT)
async def evaluate_now(
    request: Request, user_id: UserId, registry: Registry
) -> EvaluationResponse:
    """Run one serialized pass immediately."""
    result = await registry.get(user_id).run_pass()
    set_wide_event_fields(
        badges_awarded=len(result.awarded), badges_revoked=len(result.revoked)
    )
    return EvaluationResponse(
        awarded=result.awarded,
        revoked=result.revoked,
        adopted=result.adopted,
        cleared=result.cleared,
        prestige=result.prestige,
        skipped=result.skipped,
    )


@router.post("/session", status_code=202)
async def start_session(user_id: UserId, bus: Bus) -> dict[str, str]:
    """Client login or app start; starts the notification grace period."""
    await bus.publish(SessionStarted(user_id))
    return {"status": "accepted"}


@router.get("/notifications", response_model=NotificationsResponse)
async def drain_notifications(user_id: UserId, inbox: Inbox) -> NotificationsResponse:
    """Pending award/revoke messages. Each is returned once."""
    drained = inbox.drain(user_id)
    return NotificationsResponse(
        notifications=[
            NotificationResponse(
                badge_id=n.badge_id,
                message=n.message,
                kind=n.kind.value,
                created_at=n.created_at,
            )
            for n in drained.notifications
        ],
        celebrate=drained.celebrate,
    )


@router.get("/roadmap", response_model=RoadmapResponse)
async def get_roadmap(user_id: UserId, registry: Registry) -> RoadmapResponse:
    """Every badge grouped by rank, with which ranks are unlocked."""
    pipeline = registry.get(user_id)
    await pipeline.ensure_loaded()
    earned = pipeline.earned

    return RoadmapResponse(
        prestige=pipeline.prestige,
        ranks=[
            RoadmapRank(
                rank=rank,
                unlocked=rank <= pipeline.prestige,
                badges=[_badge_response(badge, earned) for badge in badges],
            )
            for rank, badges in badges_by_rank(pipeline.catalog).items()
        ],
    )
