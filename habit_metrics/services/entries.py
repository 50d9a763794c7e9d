"""
Entry writes for a habit.

Every mutation commits before returning; the router then schedules the
recalculation so metrics never see an uncommitted entry. Timestamps are
stored normalised to UTC (naive input is read as UTC).
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from habit_metrics.core.config import settings
from habit_metrics.core.errors import EntryNotFoundError
from habit_metrics.engine.calendar import resolve_timezone, to_logical_date, utc_range_for_days
from habit_metrics.models.entry import HabitEntry
from habit_metrics.models.habit import Habit, HabitKind

BINARY_VALUE = Decimal("1")


def _utc(value: Optional[datetime]) -> datetime:
    if value is None:
        return datetime.now(timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _entry_value(habit: Habit, value: Optional[float]) -> Decimal:
    if getattr(habit.kind, "value", habit.kind) == HabitKind.binary.value:
        return BINARY_VALUE
    return Decimal(str(value if value is not None else 0))


def get_entry(db: Session, habit: Habit, entry_id: int) -> HabitEntry:
    entry = (
        db.query(HabitEntry)
        .filter(HabitEntry.id == entry_id, HabitEntry.habit_id == habit.id)
        .first()
    )
    if entry is None:
        raise EntryNotFoundError(entry_id, habit.id)
    return entry


def create_entry(
    db: Session,
    habit: Habit,
    value: Optional[float] = None,
    logged_at: Optional[datetime] = None,
) -> HabitEntry:
    entry = HabitEntry(
        habit_id=habit.id,
        owner_id=habit.owner_id,
        value=_entry_value(habit, value),
        logged_at=_utc(logged_at),
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def update_entry(
    db: Session,
    habit: Habit,
    entry_id: int,
    value: Optional[float] = None,
    logged_at: Optional[datetime] = None,
) -> HabitEntry:
    entry = get_entry(db, habit, entry_id)
    if value is not None:
        entry.value = _entry_value(habit, value)
    if logged_at is not None:
        entry.logged_at = _utc(logged_at)
    db.commit()
    db.refresh(entry)
    return entry


def delete_entry(db: Session, habit: Habit, entry_id: int) -> None:
    entry = get_entry(db, habit, entry_id)
    db.delete(entry)
    db.commit()


def list_habit_entries(
    db: Session,
    habit: Habit,
    start: Optional[date] = None,
    end: Optional[date] = None,
    limit: int = 500,
) -> list[HabitEntry]:
    """Entries newest first, optionally bounded by logical dates (inclusive)."""
    zone = resolve_timezone(settings.REFERENCE_TIMEZONE)
    query = db.query(HabitEntry).filter(HabitEntry.habit_id == habit.id)
    if start is not None:
        query = query.filter(HabitEntry.logged_at >= utc_range_for_days(start, start, zone)[0])
    if end is not None:
        query = query.filter(HabitEntry.logged_at < utc_range_for_days(end, end, zone)[1])
    return query.order_by(HabitEntry.logged_at.desc(), HabitEntry.id.desc()).limit(limit).all()


def logical_date_of(entry: HabitEntry) -> date:
    return to_logical_date(entry.logged_at, settings.REFERENCE_TIMEZONE)
