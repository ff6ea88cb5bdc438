"""API route modules."""

from routes.achievements_routes import router as achievements_router
from routes.goals_routes import router as goals_router
from routes.health_routes import router as health_router
from routes.logs_routes import router as logs_router
from routes.prestige_routes import router as prestige_router
from routes.stats_routes import router as stats_router

__all__ = [
    "achievements_router",
    "goals_router",
    "health_router",
    "logs_router",
    "prestige_router",
    "stats_router",
]
