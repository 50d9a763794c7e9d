from datetime import datetime
from sqlalchemy import Integer, String, DateTime, Enum, func
from sqlalchemy.orm import Mapped, mapped_column
import enum

from habit_metrics.db.base import Base


class HabitKind(str, enum.Enum):
    numeric = "numeric"
    binary = "binary"


class HabitStatus(str, enum.Enum):
    active = "active"
    archived = "archived"


class Habit(Base):
    __tablename__ = "habits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    kind: Mapped[str] = mapped_column(
        Enum(HabitKind, name="habit_kind_enum"), nullable=False, default=HabitKind.numeric
    )
    status: Mapped[str] = mapped_column(
        Enum(HabitStatus, name="habit_status_enum"), nullable=False, default=HabitStatus.active
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
