"""Repository for pushup log operations."""

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models import PushupLog
from repositories.utils import log_slow_query


class LogRepository:
    """Repository for the per-user pushup log collection."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @log_slow_query("list_logs_for_user")
    async def list_for_user(self, user_id: str) -> Sequence[PushupLog]:
        """All logs for a user, oldest first."""
        result = await self.db.execute(
            select(PushupLog)
            .where(PushupLog.user_id == user_id)
            .order_by(PushupLog.logged_at, PushupLog.id)
        )
        return result.scalars().all()

    async def get(self, user_id: str, log_id: int) -> PushupLog | None:
        result = await self.db.execute(
            select(PushupLog).where(
                PushupLog.id == log_id,
                PushupLog.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def add(self, user_id: str, count: int, logged_at: datetime) -> PushupLog:
        log = PushupLog(user_id=user_id, count=count, logged_at=logged_at)
        self.db.add(log)
        await self.db.flush()
        return log

    async def delete(self, log: PushupLog) -> None:
        await self.db.delete(log)
        await self.db.flush()

    @log_slow_query("delete_logs_in_range")
    async def delete_in_range(
        self, user_id: str, start: datetime, end: datetime
    ) -> int:
        """Delete logs with start <= logged_at < end; returns rows removed."""
        result = await self.db.execute(
            delete(PushupLog).where(
                PushupLog.user_id == user_id,
                PushupLog.logged_at >= start,
                PushupLog.logged_at < end,
            )
        )
        return result.rowcount or 0

    @log_slow_query("delete_logs_for_user")
    async def delete_for_user(self, user_id: str) -> int:
        result = await self.db.execute(
            delete(PushupLog).where(PushupLog.user_id == user_id)
        )
        return result.rowcount or 0

    async def total_for_user(self, user_id: str) -> int:
        result = await self.db.execute(
            select(func.coalesce(func.sum(PushupLog.count), 0)).where(
                PushupLog.user_id == user_id
            )
        )
        return int(result.scalar_one())
