"""Prestige endpoints."""

from fastapi import APIRouter, Request

from core.auth import UserId
from core.config import get_settings
from core.database import DbSession
from core.events import PrestigeChanged
from core.ratelimit import WRITE_LIMIT, limiter
from repositories.log_repository import LogRepository
from routes.dependencies import Bus, Store
from schemas import PrestigeResponse
from services.prestige_service import manual_increment, next_threshold, refresh_prestige

router = APIRouter(prefix="/api/prestige", tags=["prestige"])


@router.get("", response_model=PrestigeResponse)
async def get_prestige(user_id: UserId, db: DbSession, store: Store) -> PrestigeResponse:
    """Stored prestige after the auto-advance check."""
    max_level = get_settings().max_prestige
    total = await LogRepository(db).total_for_user(user_id)
    level = await refresh_prestige(store, user_id, total, max_level)
    return PrestigeResponse(
        level=level,
        max_level=max_level,
        total_pushups=total,
        next_threshold=next_threshold(total),
    )


@router.post("/increment", response_model=PrestigeResponse)
@limiter.limit(WRITE_LIMIT)
async def increment(
    request: Request,
    user_id: UserId,
    db: DbSession,
    store: Store,
    bus: Bus,
) -> PrestigeResponse:
    """Advance exactly one level, capped at the maximum."""
    max_level = get_settings().max_prestige
    level = await manual_increment(store, user_id, max_level)
    await bus.publish(PrestigeChanged(user_id))

    total = await LogRepository(db).total_for_user(user_id)
    return PrestigeResponse(
        level=level,
        max_level=max_level,
        total_pushups=total,
        next_threshold=next_threshold(total),
    )
