"""
Metrics router — cached metric rows and the explicit recalculation trigger.

GET  /metrics               — filtered list of the owner's metric rows
POST /metrics/recalculate   — schedule a recalculation for one habit
"""
from __future__ import annotations

from datetime import date
from typing import Callable, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from habit_metrics.db.base import get_db, get_session_factory
from habit_metrics.models.metric import Metric
from habit_metrics.routers.common import get_owner_id, iso_utc
from habit_metrics.schemas.common import ErrorResponse
from habit_metrics.schemas.metrics import MetricOut, RecalculateRequest, RecalculateResponse
from habit_metrics.services.habits import get_owned_habit
from habit_metrics.services.metrics_store import decode_metadata, list_metrics
from habit_metrics.services.recalculation import trigger_recalculation

router = APIRouter(prefix="/metrics", tags=["metrics"])


def _metric_to_response(row: Metric) -> MetricOut:
    return MetricOut(
        habit_id=row.habit_id,
        date=str(row.date),
        metric_type=row.metric_type,
        granularity=row.granularity,
        value=float(row.value),
        metadata=decode_metadata(row),
        updated_at=iso_utc(row.updated_at),
    )


@router.get(
    "",
    response_model=list[MetricOut],
    summary="List cached metric rows",
    responses={401: {"model": ErrorResponse}},
)
def metrics_list(
    habit_id: Optional[int] = Query(default=None, description="Only rows of this habit."),
    profile: bool = Query(default=False, description="Only profile-level rows (no habit)."),
    metric_type: Optional[str] = Query(default=None, examples=["streak"]),
    granularity: Optional[str] = Query(default=None, examples=["daily"]),
    since: Optional[date] = Query(default=None, description="First metric date (inclusive)."),
    until: Optional[date] = Query(default=None, description="Last metric date (inclusive)."),
    limit: int = Query(default=200, ge=1, le=500),
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """
    Rows are what the last recalculation wrote: they can lag behind the
    newest entries while a recalculation is still pending.
    """
    rows = list_metrics(
        db,
        owner_id,
        habit_id=habit_id,
        metric_type=metric_type,
        granularity=granularity,
        since=since,
        until=until,
        profile_only=profile,
        limit=limit,
    )
    return [_metric_to_response(r) for r in rows]


@router.post(
    "/recalculate",
    response_model=RecalculateResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Schedule a metrics recalculation",
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def metrics_recalculate(
    payload: RecalculateRequest,
    background_tasks: BackgroundTasks,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
):
    habit = get_owned_habit(db, payload.habit_id, owner_id)
    trigger_recalculation(
        habit.id, owner_id, payload.logical_date,
        background_tasks=background_tasks,
        session_factory=session_factory,
    )
    return RecalculateResponse(habit_id=habit.id, owner_id=owner_id, scheduled=True)
