"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-03-02 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- ENUM types ---
    habit_kind_enum = postgresql.ENUM("numeric", "binary", name="habit_kind_enum")
    habit_kind_enum.create(op.get_bind(), checkfirst=True)

    habit_status_enum = postgresql.ENUM("active", "archived", name="habit_status_enum")
    habit_status_enum.create(op.get_bind(), checkfirst=True)

    period_type_enum = postgresql.ENUM("daily", "weekly", "monthly", name="period_type_enum")
    period_type_enum.create(op.get_bind(), checkfirst=True)

    # --- habits ---
    op.create_table(
        "habits",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("kind", postgresql.ENUM(name="habit_kind_enum", create_type=False), nullable=False),
        sa.Column("status", postgresql.ENUM(name="habit_status_enum", create_type=False), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_habits_id", "habits", ["id"])
    op.create_index("ix_habits_owner_id", "habits", ["owner_id"])

    # --- goals ---
    op.create_table(
        "goals",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("habit_id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("period_type", postgresql.ENUM(name="period_type_enum", create_type=False), nullable=False),
        sa.Column("target_value", sa.Numeric(12, 2), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["habit_id"], ["habits.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_goals_id", "goals", ["id"])
    op.create_index("ix_goals_habit_id", "goals", ["habit_id"], unique=True)
    op.create_index("ix_goals_owner_id", "goals", ["owner_id"])

    # --- habit_entries ---
    op.create_table(
        "habit_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("habit_id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("value", sa.Numeric(12, 2), nullable=False),
        sa.Column("logged_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["habit_id"], ["habits.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_habit_entries_id", "habit_entries", ["id"])
    op.create_index("ix_habit_entries_habit_id", "habit_entries", ["habit_id"])
    op.create_index("ix_habit_entries_owner_id", "habit_entries", ["owner_id"])
    op.create_index("ix_habit_entries_logged_at", "habit_entries", ["logged_at"])

    # --- metrics ---
    op.create_table(
        "metrics",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("habit_id", sa.Integer(), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("metric_type", sa.String(64), nullable=False),
        sa.Column("granularity", sa.String(16), nullable=False),
        sa.Column("value", sa.Numeric(18, 4), nullable=False),
        sa.Column("metadata", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "owner_id", "habit_id", "date", "metric_type", "granularity",
            name="uq_metrics_habit_key",
        ),
    )
    op.create_index("ix_metrics_id", "metrics", ["id"])
    op.create_index("ix_metrics_owner_id", "metrics", ["owner_id"])
    op.create_index("ix_metrics_habit_id", "metrics", ["habit_id"])
    op.create_index("ix_metrics_date", "metrics", ["date"])
    op.create_index("ix_metrics_metric_type", "metrics", ["metric_type"])
    # NULL habit_id never collides in the constraint above
    op.create_index(
        "uq_metrics_profile_key",
        "metrics",
        ["owner_id", "date", "metric_type", "granularity"],
        unique=True,
        postgresql_where=sa.text("habit_id IS NULL"),
    )

    # --- habit_predictions (written by the prediction pipeline) ---
    op.create_table(
        "habit_predictions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("habit_id", sa.Integer(), nullable=False),
        sa.Column("prediction_type", sa.String(32), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("value", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("metadata", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_habit_predictions_id", "habit_predictions", ["id"])
    op.create_index("ix_habit_predictions_habit_id", "habit_predictions", ["habit_id"])
    op.create_index("ix_habit_predictions_date", "habit_predictions", ["date"])


def downgrade() -> None:
    op.drop_table("habit_predictions")
    op.drop_index("uq_metrics_profile_key", table_name="metrics")
    op.drop_table("metrics")
    op.drop_table("habit_entries")
    op.drop_table("goals")
    op.drop_table("habits")

    op.execute("DROP TYPE IF EXISTS period_type_enum")
    op.execute("DROP TYPE IF EXISTS habit_status_enum")
    op.execute("DROP TYPE IF EXISTS habit_kind_enum")
