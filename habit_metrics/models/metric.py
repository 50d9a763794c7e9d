"""
Metric — derived, cached aggregate rows written by the recalculation job.

At most one row per (owner_id, habit_id, date, metric_type, granularity).
Habit rows are covered by the unique constraint; profile rows
(habit_id IS NULL) need the partial unique index because NULLs never
collide in a plain unique constraint.

metadata: JSON-encoded dict stored as Text.
"""
from datetime import datetime, date
from decimal import Decimal
from sqlalchemy import Integer, String, Text, Numeric, DateTime, Date, Index, UniqueConstraint, func, text
from sqlalchemy.orm import Mapped, mapped_column

from habit_metrics.db.base import Base


class Metric(Base):
    __tablename__ = "metrics"
    __table_args__ = (
        UniqueConstraint(
            "owner_id", "habit_id", "date", "metric_type", "granularity",
            name="uq_metrics_habit_key",
        ),
        Index(
            "uq_metrics_profile_key",
            "owner_id", "date", "metric_type", "granularity",
            unique=True,
            postgresql_where=text("habit_id IS NULL"),
            sqlite_where=text("habit_id IS NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    habit_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    metric_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    granularity: Mapped[str] = mapped_column(String(16), nullable=False)
    value: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    metric_metadata: Mapped[str | None] = mapped_column("metadata", Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
