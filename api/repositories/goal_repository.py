"""Repository for goal history operations."""

from collections.abc import Sequence
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import GoalHistory, utcnow
from repositories.utils import upsert_on_conflict


class GoalRepository:
    """Repository for dated daily-goal entries."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def list_for_user(self, user_id: str) -> Sequence[GoalHistory]:
        result = await self.db.execute(
            select(GoalHistory)
            .where(GoalHistory.user_id == user_id)
            .order_by(GoalHistory.start_date, GoalHistory.changed_at)
        )
        return result.scalars().all()

    async def upsert(self, user_id: str, value: int, start_date: date) -> None:
        """Insert or replace the entry keyed by (user, start_date)."""
        await upsert_on_conflict(
            self.db,
            GoalHistory,
            values={
                "user_id": user_id,
                "value": value,
                "start_date": start_date,
                "changed_at": utcnow(),
            },
            index_elements=["user_id", "start_date"],
            update_fields=["value", "changed_at"],
        )
