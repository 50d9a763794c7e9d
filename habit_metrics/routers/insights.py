"""
Insights router.

GET /insights/habits/{habit_id}/unlock-status
GET /insights/habits/{habit_id}/predictions
"""
from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from habit_metrics.db.base import get_db
from habit_metrics.routers.common import get_owner_id
from habit_metrics.schemas.common import ErrorResponse
from habit_metrics.schemas.insights import HabitPredictionsOut, PredictionsResponse, UnlockStatusOut
from habit_metrics.services.habits import get_owned_habit
from habit_metrics.services.insights import get_habit_predictions, get_unlock_status

router = APIRouter(prefix="/insights/habits", tags=["insights"])


@router.get(
    "/{habit_id}/unlock-status",
    response_model=UnlockStatusOut,
    summary="Prediction unlock status",
    responses={404: {"model": ErrorResponse}},
)
def insights_unlock_status(
    habit_id: int,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """
    `locked` below 14 distinct days of data, `basic` below 21, `full` from 21.
    """
    habit = get_owned_habit(db, habit_id, owner_id)
    state = get_unlock_status(db, habit.id)
    return UnlockStatusOut(
        habit_id=state.habit_id,
        data_days=state.data_days,
        status=state.status,
        reason=state.reason,
    )


@router.get(
    "/{habit_id}/predictions",
    response_model=PredictionsResponse,
    summary="Latest complete prediction set",
    responses={404: {"model": ErrorResponse}},
)
def insights_predictions(
    habit_id: int,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """
    Only the newest date carrying streak_risk, trajectory and goal_eta is
    returned. Predictions stay hidden until the habit is fully unlocked.
    """
    habit = get_owned_habit(db, habit_id, owner_id)
    view = get_habit_predictions(db, habit.id)
    return PredictionsResponse(
        habit_id=view.habit_id,
        unlock_status=view.unlock.status,
        data_days=view.unlock.data_days,
        is_eligible=view.is_eligible,
        has_prediction_rows=view.has_prediction_rows,
        updated_at=view.updated_at,
        reason=view.reason,
        predictions=HabitPredictionsOut(**asdict(view.predictions)) if view.predictions else None,
    )
