"""
Habit and goal writes.

A habit has at most one goal; `set_goal` replaces it in place. Callers
schedule a recalculation after the commit, since a goal change rewrites
every completion metric of the habit.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from habit_metrics.core.errors import HabitNotFoundError
from habit_metrics.engine.calendar import validate_period_type
from habit_metrics.models.goal import Goal, PeriodType
from habit_metrics.models.habit import Habit, HabitKind
from habit_metrics.services.repositories import get_habit


def get_owned_habit(db: Session, habit_id: int, owner_id: str) -> Habit:
    habit = get_habit(db, habit_id, owner_id)
    if habit is None:
        raise HabitNotFoundError(habit_id)
    return habit


def get_goal_row(db: Session, habit_id: int) -> Optional[Goal]:
    return db.query(Goal).filter(Goal.habit_id == habit_id).first()


def _write_goal(db: Session, habit: Habit, period_type: str, target_value: float) -> Goal:
    period = PeriodType(validate_period_type(period_type))
    goal = get_goal_row(db, habit.id)
    if goal is None:
        goal = Goal(habit_id=habit.id, owner_id=habit.owner_id)
        db.add(goal)
    goal.period_type = period
    goal.target_value = Decimal(str(target_value))
    return goal


def create_habit(
    db: Session,
    owner_id: str,
    name: str,
    kind: str = HabitKind.numeric.value,
    period_type: Optional[str] = None,
    target_value: Optional[float] = None,
) -> Habit:
    """Create a habit, with its goal when both goal fields are given."""
    habit = Habit(owner_id=owner_id, name=name, kind=HabitKind(kind))
    db.add(habit)
    db.flush()
    if period_type is not None and target_value is not None:
        _write_goal(db, habit, period_type, target_value)
    db.commit()
    db.refresh(habit)
    return habit


def set_goal(db: Session, habit: Habit, period_type: str, target_value: float) -> Goal:
    goal = _write_goal(db, habit, period_type, target_value)
    db.commit()
    db.refresh(goal)
    return goal
