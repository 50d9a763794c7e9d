"""
Entries router. Every mutation schedules a recalculation of the habit's
metrics after it commits; the response never waits for it.

POST   /habits/{habit_id}/entries
GET    /habits/{habit_id}/entries
PATCH  /habits/{habit_id}/entries/{entry_id}
DELETE /habits/{habit_id}/entries/{entry_id}
"""
from __future__ import annotations

from datetime import date
from typing import Callable, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status
from sqlalchemy.orm import Session

from habit_metrics.db.base import get_db, get_session_factory
from habit_metrics.models.entry import HabitEntry
from habit_metrics.routers.common import get_owner_id, iso_utc
from habit_metrics.schemas.common import ErrorResponse
from habit_metrics.schemas.entries import EntryCreate, EntryOut, EntryUpdate
from habit_metrics.services.entries import (
    create_entry,
    delete_entry,
    list_habit_entries,
    logical_date_of,
    update_entry,
)
from habit_metrics.services.habits import get_owned_habit
from habit_metrics.services.recalculation import trigger_recalculation

router = APIRouter(prefix="/habits/{habit_id}/entries", tags=["entries"])

SessionFactory = Callable[[], Session]


def _entry_to_response(entry: HabitEntry, scheduled: bool) -> EntryOut:
    return EntryOut(
        id=entry.id,
        habit_id=entry.habit_id,
        value=float(entry.value),
        logged_at=iso_utc(entry.logged_at),
        logical_date=str(logical_date_of(entry)),
        recalculation_scheduled=scheduled,
    )


@router.post(
    "",
    response_model=EntryOut,
    status_code=status.HTTP_201_CREATED,
    summary="Log an entry",
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def entries_create(
    habit_id: int,
    payload: EntryCreate,
    background_tasks: BackgroundTasks,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    habit = get_owned_habit(db, habit_id, owner_id)
    entry = create_entry(db, habit, value=payload.value, logged_at=payload.logged_at)
    trigger_recalculation(habit.id, owner_id, background_tasks=background_tasks, session_factory=session_factory)
    return _entry_to_response(entry, scheduled=True)


@router.get(
    "",
    response_model=list[EntryOut],
    summary="List a habit's entries, newest first",
    responses={404: {"model": ErrorResponse}},
)
def entries_list(
    habit_id: int,
    start: Optional[date] = Query(default=None, description="First logical date (inclusive)."),
    end: Optional[date] = Query(default=None, description="Last logical date (inclusive)."),
    limit: int = Query(default=100, ge=1, le=500),
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    habit = get_owned_habit(db, habit_id, owner_id)
    rows = list_habit_entries(db, habit, start=start, end=end, limit=limit)
    return [_entry_to_response(e, scheduled=False) for e in rows]


@router.patch(
    "/{entry_id}",
    response_model=EntryOut,
    summary="Edit an entry",
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def entries_update(
    habit_id: int,
    entry_id: int,
    payload: EntryUpdate,
    background_tasks: BackgroundTasks,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    habit = get_owned_habit(db, habit_id, owner_id)
    entry = update_entry(db, habit, entry_id, value=payload.value, logged_at=payload.logged_at)
    trigger_recalculation(habit.id, owner_id, background_tasks=background_tasks, session_factory=session_factory)
    return _entry_to_response(entry, scheduled=True)


@router.delete(
    "/{entry_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an entry",
    responses={404: {"model": ErrorResponse}},
)
def entries_delete(
    habit_id: int,
    entry_id: int,
    background_tasks: BackgroundTasks,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    habit = get_owned_habit(db, habit_id, owner_id)
    delete_entry(db, habit, entry_id)
    trigger_recalculation(habit.id, owner_id, background_tasks=background_tasks, session_factory=session_factory)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
