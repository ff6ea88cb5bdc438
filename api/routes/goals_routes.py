"""Daily goal endpoints."""

from datetime import date

from fastapi import APIRouter, HTTPException, Request

from core.auth import UserId
from core.config import get_settings
from core.database import DbSession
from core.ratelimit import WRITE_LIMIT, limiter
from routes.dependencies import Bus
from schemas import (
    GoalEntryResponse,
    GoalForDateResponse,
    GoalResponse,
    GoalUpdateRequest,
)
from services.goals_service import EPOCH, GoalSchedule, get_goal_schedule, set_goal
from services.log_entry import local_today

router = APIRouter(prefix="/api/goals", tags=["goals"])


def _to_response(schedule: GoalSchedule, today: date) -> GoalResponse:
    return GoalResponse(
        current=schedule.current_goal(today),
        default=schedule.default,
        history=[
            GoalEntryResponse.model_validate(entry)
            for entry in schedule.entries
            if entry.start_date != EPOCH
        ],
    )


@router.get("", response_model=GoalResponse)
async def get_goals(user_id: UserId, db: DbSession) -> GoalResponse:
    settings = get_settings()
    schedule = await get_goal_schedule(db, user_id, settings.default_goal)
    return _to_response(schedule, local_today(settings.tzinfo))


@router.put("", response_model=GoalResponse)
@limiter.limit(WRITE_LIMIT)
async def update_goal(
    request: Request,
    body: GoalUpdateRequest,
    user_id: UserId,
    db: DbSession,
    bus: Bus,
) -> GoalResponse:
    """Set the goal from ``date`` (today when omitted) forward."""
    settings = get_settings()
    today = local_today(settings.tzinfo)
    try:
        await set_goal(db, user_id, body.value, body.on_date, today=today, bus=bus)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    schedule = await get_goal_schedule(db, user_id, settings.default_goal)
    return _to_response(schedule, today)


@router.get("/{day}", response_model=GoalForDateResponse)
async def get_goal_for_date(
    day: date, user_id: UserId, db: DbSession
) -> GoalForDateResponse:
    schedule = await get_goal_schedule(db, user_id, get_settings().default_goal)
    return GoalForDateResponse(day=day, value=schedule.goal_for(day))
