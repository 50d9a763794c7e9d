"""
Insight schemas: prediction unlock status and the latest prediction set.
"""
from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field


class UnlockStatusOut(BaseModel):
    habit_id: int
    data_days: int = Field(description="Distinct logical days with at least one entry.")
    status: Literal["locked", "basic", "full"]
    reason: str


class StreakRiskOut(BaseModel):
    risk: Literal["low", "medium", "high"]
    confidence: float
    reason: str


class TrajectoryOut(BaseModel):
    trajectory: Literal["excellent", "good", "declining", "poor"]
    confidence: float
    prediction: str


class GoalEtaOut(BaseModel):
    eta: str
    confidence: float
    on_track: bool


class HabitPredictionsOut(BaseModel):
    streak_risk: StreakRiskOut
    trajectory: TrajectoryOut
    goal_eta: GoalEtaOut


class PredictionsResponse(BaseModel):
    habit_id: int
    unlock_status: Literal["locked", "basic", "full"]
    data_days: int
    is_eligible: bool
    has_prediction_rows: bool
    updated_at: Optional[str] = Field(default=None, description="Date of the prediction set shown.")
    reason: str = Field(description="Why predictions are not shown. Empty when they are.")
    predictions: Optional[HabitPredictionsOut] = None
