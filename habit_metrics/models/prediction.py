"""
HabitPrediction — rows produced by the external prediction pipeline.

The metrics service only reads this table to resolve the latest complete
prediction set. value / metadata are JSON-encoded Text.
"""
from datetime import datetime, date
from sqlalchemy import Integer, String, Text, DateTime, Date, func
from sqlalchemy.orm import Mapped, mapped_column

from habit_metrics.db.base import Base


class HabitPrediction(Base):
    __tablename__ = "habit_predictions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    habit_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    prediction_type: Mapped[str] = mapped_column(String(32), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    value: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    prediction_metadata: Mapped[str | None] = mapped_column("metadata", Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
