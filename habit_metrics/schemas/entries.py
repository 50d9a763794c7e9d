"""
Entry schemas.

POST   /habits/{id}/entries              → EntryCreate → EntryOut
PATCH  /habits/{id}/entries/{entry_id}   → EntryUpdate → EntryOut
"""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, Field, model_validator


class EntryCreate(BaseModel):
    value: Annotated[Optional[float], Field(
        default=None,
        ge=0,
        description="Logged amount. Ignored for binary habits, which always log 1.",
        examples=[2.5],
    )]
    logged_at: Optional[datetime] = Field(
        default=None,
        description="When it happened. Defaults to now. Naive timestamps are read as UTC.",
        examples=["2026-03-01T18:30:00-06:00"],
    )


class EntryUpdate(BaseModel):
    value: Annotated[Optional[float], Field(default=None, ge=0)]
    logged_at: Optional[datetime] = None

    @model_validator(mode="after")
    def at_least_one_field(self) -> "EntryUpdate":
        if self.value is None and self.logged_at is None:
            raise ValueError("provide value or logged_at")
        return self


class EntryOut(BaseModel):
    id: int
    habit_id: int
    value: float
    logged_at: str = Field(description="UTC timestamp of the entry.")
    logical_date: str = Field(description="Calendar day of the entry in the reference timezone.")
    recalculation_scheduled: bool = True
