"""Repository for stored prestige tiers."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import UserPrestige, utcnow
from repositories.utils import upsert_on_conflict


class PrestigeRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, user_id: str) -> int | None:
        """Stored level, or None when the user has never been assigned one."""
        result = await self.db.execute(
            select(UserPrestige.level).where(UserPrestige.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def set(self, user_id: str, level: int) -> None:
        now = utcnow()
        await upsert_on_conflict(
            self.db,
            UserPrestige,
            values={
                "user_id": user_id,
                "level": level,
                "created_at": now,
                "updated_at": now,
            },
            index_elements=["user_id"],
            update_fields=["level", "updated_at"],
        )
