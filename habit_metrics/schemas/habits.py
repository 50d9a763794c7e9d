"""
Habit and goal schemas.

POST /habits              → HabitCreate → HabitOut
PUT  /habits/{id}/goal    → GoalIn      → GoalOut
"""
from __future__ import annotations

import enum
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class HabitKindIn(str, enum.Enum):
    numeric = "numeric"
    binary = "binary"


class PeriodTypeIn(str, enum.Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"


class GoalIn(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    period_type: PeriodTypeIn = Field(
        description="Goal period. Weekly periods run Monday to Sunday.",
        examples=["daily", "weekly"],
    )
    target_value: Annotated[float, Field(
        gt=0,
        description="Total the period's entries must reach. Binary habits use 1.",
        examples=[3, 1],
    )]


class HabitCreate(BaseModel):
    """A new habit, optionally with its goal."""
    model_config = ConfigDict(use_enum_values=True)

    name: Annotated[str, Field(min_length=1, max_length=255, examples=["Drink water"])]
    kind: HabitKindIn = Field(
        default=HabitKindIn.numeric,
        description="numeric habits sum logged values; binary habits log 1 per occurrence.",
    )
    goal: Optional[GoalIn] = Field(default=None, description="Initial goal.")

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: str) -> str:
        stripped = v.strip() if isinstance(v, str) else v
        if not stripped:
            raise ValueError("name must not be empty after stripping whitespace")
        return stripped


class GoalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    habit_id: int
    period_type: str
    target_value: float


class HabitOut(BaseModel):
    id: int
    owner_id: str
    name: str
    kind: str
    status: str
    goal: Optional[GoalOut] = None
    created_at: str = Field(description="UTC timestamp of creation.")
