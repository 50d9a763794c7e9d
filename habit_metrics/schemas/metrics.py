"""
Metric schemas.

GET  /metrics               → list[MetricOut]
POST /metrics/recalculate   → RecalculateRequest → RecalculateResponse
"""
from __future__ import annotations

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, Field


class MetricOut(BaseModel):
    habit_id: Optional[int] = Field(description="None for profile-level metrics.")
    date: str
    metric_type: str
    granularity: str
    value: float
    metadata: dict[str, Any] = Field(default_factory=dict)
    updated_at: Optional[str] = None


class RecalculateRequest(BaseModel):
    habit_id: int
    logical_date: Optional[date] = Field(
        default=None,
        description="Day to recompute for. Defaults to today in the reference timezone.",
        examples=["2026-03-01"],
    )


class RecalculateResponse(BaseModel):
    habit_id: int
    owner_id: str
    scheduled: bool
