"""SQLAlchemy models for Pushup Pal logs, goals, badges and prestige."""

from datetime import UTC, date, datetime

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from core.database import Base


def utcnow() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(UTC)


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamp columns."""

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(DateTime(timezone=True), default=utcnow)

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class PushupLog(Base):
    """One logged pushup session. Never mutated after insert."""

    __tablename__ = "pushup_logs"
    __table_args__ = (
        CheckConstraint("count > 0", name="ck_pushup_logs_count_positive"),
        Index("ix_pushup_logs_user_logged_at", "user_id", "logged_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False)
    logged_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )


class GoalHistory(Base):
    """Daily goal value effective from ``start_date`` onward."""

    __tablename__ = "goal_history"
    __table_args__ = (
        UniqueConstraint("user_id", "start_date", name="uq_goal_history_user_start"),
        CheckConstraint("value >= 0", name="ck_goal_history_value_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    value: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class EarnedAchievement(Base):
    """An earned badge. A missing row means the badge is not earned."""

    __tablename__ = "earned_achievements"

    user_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    badge_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    earned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class UserPrestige(TimestampMixin, Base):
    """Stored prestige tier per user."""

    __tablename__ = "user_prestige"
    __table_args__ = (CheckConstraint("level >= 1", name="ck_user_prestige_level"),)

    user_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
