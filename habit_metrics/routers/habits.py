"""
Habits router.

POST /habits               — create a habit (optionally with its goal)
GET  /habits/{habit_id}    — fetch one habit
PUT  /habits/{habit_id}/goal — create or replace the goal
"""
from __future__ import annotations

from typing import Callable

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from habit_metrics.db.base import get_db, get_session_factory
from habit_metrics.models.habit import Habit
from habit_metrics.routers.common import ev, get_owner_id, iso_utc
from habit_metrics.schemas.common import ErrorResponse
from habit_metrics.schemas.habits import GoalIn, GoalOut, HabitCreate, HabitOut
from habit_metrics.services.habits import create_habit, get_goal_row, get_owned_habit, set_goal
from habit_metrics.services.recalculation import trigger_recalculation

router = APIRouter(prefix="/habits", tags=["habits"])


def _habit_to_response(db: Session, habit: Habit) -> HabitOut:
    goal = get_goal_row(db, habit.id)
    return HabitOut(
        id=habit.id,
        owner_id=habit.owner_id,
        name=habit.name,
        kind=ev(habit.kind),
        status=ev(habit.status),
        goal=GoalOut(
            habit_id=goal.habit_id,
            period_type=ev(goal.period_type),
            target_value=float(goal.target_value),
        ) if goal else None,
        created_at=iso_utc(habit.created_at),
    )


@router.post(
    "",
    response_model=HabitOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a habit",
    responses={401: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def habits_create(
    payload: HabitCreate,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    habit = create_habit(
        db,
        owner_id=owner_id,
        name=payload.name,
        kind=payload.kind,
        period_type=payload.goal.period_type if payload.goal else None,
        target_value=payload.goal.target_value if payload.goal else None,
    )
    return _habit_to_response(db, habit)


@router.get(
    "/{habit_id}",
    response_model=HabitOut,
    summary="Fetch a habit",
    responses={404: {"model": ErrorResponse}},
)
def habits_get(
    habit_id: int,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    return _habit_to_response(db, get_owned_habit(db, habit_id, owner_id))


@router.put(
    "/{habit_id}/goal",
    response_model=GoalOut,
    summary="Create or replace the habit's goal",
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def habits_set_goal(
    habit_id: int,
    payload: GoalIn,
    background_tasks: BackgroundTasks,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
):
    """
    A habit has a single goal: this replaces the previous one in place.
    Metrics are recomputed in the background once the goal is stored.
    """
    habit = get_owned_habit(db, habit_id, owner_id)
    goal = set_goal(db, habit, payload.period_type, payload.target_value)
    trigger_recalculation(
        habit.id, owner_id,
        background_tasks=background_tasks,
        session_factory=session_factory,
    )
    return GoalOut(
        habit_id=goal.habit_id,
        period_type=ev(goal.period_type),
        target_value=float(goal.target_value),
    )
