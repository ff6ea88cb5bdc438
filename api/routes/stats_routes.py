"""Derived stats and streak endpoints."""

from datetime import date

from fastapi import APIRouter, Query, Request

from core.auth import UserId
from core.config import get_settings
from core.database import DbSession
from core.ratelimit import READ_LIMIT, limiter
from core.wide_event import set_wide_event_fields
from schemas import StatsResponse, StreakResponse
from services.goals_service import get_goal_schedule
from services.log_entry import local_today
from services.logs_service import list_logs
from services.stats_service import (
    StatsRange,
    compute_derived_stats,
    hourly_session_counts,
    max_in_map,
    range_totals,
    weekly_pushup_counts,
)
from services.streaks_service import current_streak, longest_streak

router = APIRouter(prefix="/api/stats", tags=["stats"])


@router.get("", response_model=StatsResponse)
@limiter.limit(READ_LIMIT)
async def get_stats(
    request: Request,
    user_id: UserId,
    db: DbSession,
    range_name: StatsRange = Query(StatsRange.WEEK, alias="range"),
) -> StatsResponse:
    """Totals, per-day sums for the range, and streaks."""
    settings = get_settings()
    tz = settings.tzinfo
    today = local_today(tz)

    logs = await list_logs(db, user_id)
    schedule = await get_goal_schedule(db, user_id, settings.default_goal)
    stats = compute_derived_stats(logs, schedule, tz)
    weekly = weekly_pushup_counts(logs, tz)

    set_wide_event_fields(stats_range=range_name.value, log_count=len(logs))
    return StatsResponse(
        range=range_name,
        total_pushups=stats.total_pushups,
        days_logged=stats.days_logged,
        goals_hit=stats.goals_hit,
        day_counts=stats.day_counts,
        range_totals=range_totals(logs, range_name, today, tz),
        weekly_totals=weekly,
        best_day=max_in_map(stats.day_counts),
        best_week=max_in_map(weekly),
        most_sessions_in_hour=max_in_map(hourly_session_counts(logs, tz)),
        longest_streak=longest_streak(logs, tz),
        current_streak=current_streak(logs, today, today=today, tz=tz),
        goal_today=schedule.goal_for(today),
    )


@router.get("/streak", response_model=StreakResponse)
@limiter.limit(READ_LIMIT)
async def get_streak(
    request: Request,
    user_id: UserId,
    db: DbSession,
    day: date | None = Query(None, alias="date"),
) -> StreakResponse:
    """Streak ending on ``date`` (today when omitted); 0 for future dates."""
    tz = get_settings().tzinfo
    today = local_today(tz)
    target = day or today

    logs = await list_logs(db, user_id)
    return StreakResponse(
        day=target,
        current_streak=current_streak(logs, target, today=today, tz=tz),
        longest_streak=longest_streak(logs, tz),
    )
