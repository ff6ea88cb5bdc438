"""Repository layer for database operations.

Repositories encapsulate all database queries, keeping routes and services
thin. This separation provides:
- Single source of truth for database operations
- Easier testing (repositories can be mocked)
- Reusable queries across multiple endpoints
"""

from repositories.achievement_repository import AchievementRepository
from repositories.goal_repository import GoalRepository
from repositories.log_repository import LogRepository
from repositories.prestige_repository import PrestigeRepository
from repositories.utils import log_slow_query, upsert_on_conflict

__all__ = [
    "AchievementRepository",
    "GoalRepository",
    "LogRepository",
    "PrestigeRepository",
    "log_slow_query",
    "upsert_on_conflict",
]
