"""Pydantic schemas for API request/response validation."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from services.stats_service import StatsRange


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str


# =============================================================================
# Logs
# =============================================================================


class LogCreateRequest(BaseModel):
    """Request to log a pushup session.

    ``date`` back-fills the log onto that calendar day at the current
    time-of-day; omitted means "now".
    """

    model_config = ConfigDict(populate_by_name=True)

    count: int = Field(gt=0, le=10_000)
    on_date: date | None = Field(default=None, alias="date")


class LogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    count: int
    timestamp: datetime | None


class LogListResponse(BaseModel):
    logs: list[LogResponse]
    total: int


class LogsDeletedResponse(BaseModel):
    deleted: int


# =============================================================================
# Goals
# =============================================================================


class GoalUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    value: int = Field(ge=0, le=100_000)
    on_date: date | None = Field(default=None, alias="date")


class GoalEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    value: int
    start_date: date
    changed_at: datetime


class GoalResponse(BaseModel):
    """Current goal plus the dated history it was derived from."""

    current: int
    default: int
    history: list[GoalEntryResponse]


class GoalForDateResponse(BaseModel):
    day: date
    value: int


# =============================================================================
# Stats
# =============================================================================


class StatsResponse(BaseModel):
    range: StatsRange
    total_pushups: int
    days_logged: int
    goals_hit: int
    day_counts: dict[str, int]
    range_totals: dict[str, int]
    weekly_totals: dict[str, int]
    best_day: int
    best_week: int
    most_sessions_in_hour: int
    longest_streak: int
    current_streak: int
    goal_today: int


class StreakResponse(BaseModel):
    day: date
    current_streak: int
    longest_streak: int


# =============================================================================
# Achievements
# =============================================================================


class BadgeResponse(BaseModel):
    """A catalog badge with the caller's earned state."""

    id: str
    name: str
    emoji: str
    description: str
    rank: int
    earned: bool = False
    earned_at: datetime | None = None


class AchievementsResponse(BaseModel):
    prestige: int
    badges: list[BadgeResponse]
    earned_count: int


class EvaluationResponse(BaseModel):
    awarded: list[str]
    revoked: list[str]
    adopted: list[str]
    cleared: list[str]
    prestige: int
    skipped: bool = False


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    badge_id: str
    message: str
    kind: str
    created_at: datetime


class NotificationsResponse(BaseModel):
    notifications: list[NotificationResponse]
    celebrate: bool


class RoadmapRank(BaseModel):
    rank: int
    unlocked: bool
    badges: list[BadgeResponse]


class RoadmapResponse(BaseModel):
    prestige: int
    ranks: list[RoadmapRank]


# =============================================================================
# Prestige
# =============================================================================


class PrestigeResponse(BaseModel):
    level: int
    max_level: int
    total_pushups: int
    next_threshold: int | None = None
