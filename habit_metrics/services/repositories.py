"""
Read-side queries used by the recalculation job and the insights endpoints.

ORM rows are converted to engine value types (LogEntry, GoalSpec) here, so
nothing past this module touches SQLAlchemy objects or Decimal values.
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from habit_metrics.engine.calendar import TimezoneLike, resolve_timezone, to_logical_date, utc_range_for_days
from habit_metrics.engine.types import GoalSpec, LogEntry
from habit_metrics.models.entry import HabitEntry
from habit_metrics.models.goal import Goal
from habit_metrics.models.habit import Habit, HabitStatus


def _enum_value(value) -> str:
    return getattr(value, "value", value)


def _to_log_entry(row: HabitEntry) -> LogEntry:
    return LogEntry(
        value=float(row.value or 0),
        logged_at=row.logged_at,
        habit_id=row.habit_id,
        id=row.id,
    )


def get_habit(db: Session, habit_id: int, owner_id: Optional[str] = None) -> Optional[Habit]:
    query = db.query(Habit).filter(Habit.id == habit_id)
    if owner_id is not None:
        query = query.filter(Habit.owner_id == owner_id)
    return query.first()


def get_habit_kind(db: Session, habit_id: int) -> Optional[str]:
    habit = db.query(Habit).filter(Habit.id == habit_id).first()
    return _enum_value(habit.kind) if habit else None


def list_active_habits(db: Session, owner_id: str) -> list[Habit]:
    return (
        db.query(Habit)
        .filter(Habit.owner_id == owner_id, Habit.status == HabitStatus.active)
        .order_by(Habit.id.asc())
        .all()
    )


def get_goal(db: Session, habit_id: int) -> Optional[GoalSpec]:
    goal = db.query(Goal).filter(Goal.habit_id == habit_id).first()
    if goal is None:
        return None
    return GoalSpec(period_type=_enum_value(goal.period_type), target_value=float(goal.target_value))


def list_entries(
    db: Session,
    habit_id: int,
    start: date,
    end: date,
    tz: TimezoneLike = None,
) -> list[LogEntry]:
    """
    Entries whose logical date falls in [start, end].

    The UTC range narrows the query; the logical-date filter afterwards is
    what decides membership.
    """
    zone = resolve_timezone(tz)
    lo, hi = utc_range_for_days(start, end, zone)
    rows = (
        db.query(HabitEntry)
        .filter(
            HabitEntry.habit_id == habit_id,
            HabitEntry.logged_at >= lo,
            HabitEntry.logged_at < hi,
        )
        .order_by(HabitEntry.logged_at.asc(), HabitEntry.id.asc())
        .all()
    )
    entries = [_to_log_entry(r) for r in rows]
    return [e for e in entries if start <= to_logical_date(e.logged_at, zone) <= end]


def list_all_entries(db: Session, habit_id: int) -> list[LogEntry]:
    rows = (
        db.query(HabitEntry)
        .filter(HabitEntry.habit_id == habit_id)
        .order_by(HabitEntry.logged_at.asc(), HabitEntry.id.asc())
        .all()
    )
    return [_to_log_entry(r) for r in rows]


def list_profile_entries(db: Session, owner_id: str) -> dict[int, list[LogEntry]]:
    """All-time entries of the owner's active habits, grouped by habit id."""
    rows = (
        db.query(HabitEntry)
        .join(Habit, Habit.id == HabitEntry.habit_id)
        .filter(Habit.owner_id == owner_id, Habit.status == HabitStatus.active)
        .order_by(HabitEntry.habit_id.asc(), HabitEntry.logged_at.asc(), HabitEntry.id.asc())
        .all()
    )
    grouped: dict[int, list[LogEntry]] = {}
    for row in rows:
        grouped.setdefault(row.habit_id, []).append(_to_log_entry(row))
    return grouped
