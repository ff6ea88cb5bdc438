"""Repository for earned badge records."""

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from models import EarnedAchievement
from repositories.utils import log_slow_query, upsert_on_conflict


class AchievementRepository:
    """Only earned badges have rows; absence means not earned."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @log_slow_query("list_earned_achievements")
    async def list_for_user(self, user_id: str) -> Sequence[EarnedAchievement]:
        result = await self.db.execute(
            select(EarnedAchievement)
            .where(EarnedAchievement.user_id == user_id)
            .order_by(EarnedAchievement.earned_at)
        )
        return result.scalars().all()

    async def upsert(self, user_id: str, badge_id: str, earned_at: datetime) -> None:
        await upsert_on_conflict(
            self.db,
            EarnedAchievement,
            values={"user_id": user_id, "badge_id": badge_id, "earned_at": earned_at},
            index_elements=["user_id", "badge_id"],
            update_fields=["earned_at"],
        )

    async def delete(self, user_id: str, badge_id: str) -> None:
        await self.db.execute(
            delete(EarnedAchievement).where(
                EarnedAchievement.user_id == user_id,
                EarnedAchievement.badge_id == badge_id,
            )
        )
