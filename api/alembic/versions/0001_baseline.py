"""baseline schema for pushup logs, goals, badges and prestige

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-18
"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_baseline"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "pushup_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False),
        sa.Column("logged_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("count > 0", name="ck_pushup_logs_count_positive"),
    )
    op.create_index(
        "ix_pushup_logs_user_logged_at", "pushup_logs", ["user_id", "logged_at"]
    )

    # One row per dated goal change; the latest start_date <= D wins
    op.create_table(
        "goal_history",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("value", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "start_date", name="uq_goal_history_user_start"),
        sa.CheckConstraint("value >= 0", name="ck_goal_history_value_non_negative"),
    )
    op.create_index("ix_goal_history_user_id", "goal_history", ["user_id"])

    # Only earned badges have rows
    op.create_table(
        "earned_achievements",
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("badge_id", sa.String(100), nullable=False),
        sa.Column("earned_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("user_id", "badge_id"),
    )

    op.create_table(
        "user_prestige",
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("user_id"),
        sa.CheckConstraint("level >= 1", name="ck_user_prestige_level"),
    )


def downgrade() -> None:
    op.drop_table("user_prestige")
    op.drop_table("earned_achievements")
    op.drop_index("ix_goal_history_user_id", table_name="goal_history")
    op.drop_table("goal_history")
    op.drop_index("ix_pushup_logs_user_logged_at", table_name="pushup_logs")
    op.drop_table("pushup_logs")
