"""
Recalculation job — rebuilds the cached metric rows of one habit and its owner.

Lifecycle
---------
  received → fetching → computing → writing → done
                                            ↘ failed (any step)

Each run recomputes from the full persisted entry set and upserts per key,
so two runs for the same habit converge on the same rows whatever order
they finish in. There is no lock, no cancellation and no retry loop.

Mutations never wait for this: `trigger_recalculation` schedules
`run_recalculation` on FastAPI BackgroundTasks inside a request, or on a
process-wide thread pool otherwise. `run_recalculation` owns its session
and turns every exception into a logged `failed` result.
"""
from __future__ import annotations

import enum
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Optional, Union

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from habit_metrics.core.config import settings
from habit_metrics.core.errors import MissingGoalError, RecalculationFailure, StoreWriteConflictError
from habit_metrics.core.logging import log_event
from habit_metrics.db.base import get_session_factory
from habit_metrics.engine.aggregation import (
    HabitSnapshot,
    build_habit_aggregates,
    build_profile_aggregates,
    habit_metric_values,
    profile_metric_values,
)
from habit_metrics.engine.calendar import parse_date_key, resolve_timezone, today_in
from habit_metrics.engine.types import HabitKind, MetricValue
from habit_metrics.services import repositories
from habit_metrics.services.metrics_store import (
    delete_metric,
    delete_metrics,
    delete_profile_metric_type,
    upsert_metric,
)

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


class RecalculationState(str, enum.Enum):
    received = "received"
    fetching = "fetching"
    computing = "computing"
    writing = "writing"
    done = "done"
    failed = "failed"


@dataclass
class RecalculationResult:
    habit_id: int
    owner_id: str
    logical_date: Optional[date]
    state: RecalculationState = RecalculationState.received
    written: int = 0
    deleted: int = 0
    conflicts: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state == RecalculationState.done


# ---------------------------------------------------------------------------
# Job body
# ---------------------------------------------------------------------------

def _profile_snapshots(db: Session, owner_id: str) -> list[HabitSnapshot]:
    entries_by_habit = repositories.list_profile_entries(db, owner_id)
    return [
        HabitSnapshot(
            habit_id=habit.id,
            kind=getattr(habit.kind, "value", habit.kind),
            goal=repositories.get_goal(db, habit.id),
            all_time_entries=entries_by_habit.get(habit.id, []),
        )
        for habit in repositories.list_active_habits(db, owner_id)
    ]


def _write(db: Session, rows: Iterable[MetricValue], result: RecalculationResult) -> None:
    for row in rows:
        if row.clear_scope == "type" and row.habit_id is None:
            result.deleted += delete_profile_metric_type(db, row.owner_id, row.metric_type)
        elif row.value is None:
            result.deleted += delete_metric(db, row.key)
        if row.value is None:
            continue
        try:
            upsert_metric(db, row)
        except StoreWriteConflictError as exc:
            result.conflicts += 1
            log_event(logger, "warning", "metrics.pipeline.write_conflict", **exc.details)
            continue
        result.written += 1


def recalculate(
    db: Session,
    habit_id: int,
    owner_id: str,
    logical_date: Union[date, str, None] = None,
    now: Optional[datetime] = None,
) -> RecalculationResult:
    """
    Recompute and persist the metrics of `habit_id` plus the owner's profile
    metrics for `logical_date` (default: today in the reference timezone).
    Commits once at the end. Exceptions propagate; see run_recalculation.
    """
    tz = resolve_timezone(settings.REFERENCE_TIMEZONE)
    today = parse_date_key(logical_date) if logical_date is not None else today_in(tz, now)
    lookback = settings.STREAK_LOOKBACK_DAYS
    result = RecalculationResult(habit_id=habit_id, owner_id=owner_id, logical_date=today)
    log_event(logger, "info", "metrics.pipeline.start",
              habit_id=habit_id, owner_id=owner_id, logical_date=today)

    result.state = RecalculationState.fetching
    kind = repositories.get_habit_kind(db, habit_id) or HabitKind.NUMERIC
    goal = repositories.get_goal(db, habit_id)
    all_time = repositories.list_all_entries(db, habit_id)
    today_entries = repositories.list_entries(db, habit_id, today, today, tz)
    window_entries = repositories.list_entries(db, habit_id, today - timedelta(days=lookback), today, tz)
    log_event(logger, "info", "metrics.pipeline.records",
              habit_id=habit_id, today=len(today_entries), window=len(window_entries),
              all_time=len(all_time), has_goal=goal is not None)

    result.state = RecalculationState.computing
    rows: list[MetricValue] = []
    if all_time:
        if goal is None:
            missing = MissingGoalError(habit_id)
            log_event(logger, "warning", "metrics.pipeline.goal_missing", **missing.to_dict())
        snapshot = HabitSnapshot(
            habit_id=habit_id,
            kind=kind,
            goal=goal,
            today_entries=today_entries,
            window_entries=window_entries,
            all_time_entries=all_time,
        )
        rows.extend(habit_metric_values(owner_id, build_habit_aggregates(snapshot, today, tz, lookback)))

    profile = build_profile_aggregates(_profile_snapshots(db, owner_id), today, tz)
    rows.extend(profile_metric_values(owner_id, profile))
    log_event(logger, "info", "metrics.pipeline.calculated",
              habit_id=habit_id, rows=len(rows),
              to_delete=sum(1 for r in rows if r.value is None))

    result.state = RecalculationState.writing
    if not all_time:
        result.deleted += delete_metrics(db, owner_id, habit_id)
        log_event(logger, "info", "metrics.pipeline.habit_metrics.delete",
                  habit_id=habit_id, owner_id=owner_id, deleted=result.deleted)
    _write(db, rows, result)
    db.commit()

    result.state = RecalculationState.done
    log_event(logger, "info", "metrics.pipeline.success",
              habit_id=habit_id, owner_id=owner_id, written=result.written,
              deleted=result.deleted, conflicts=result.conflicts)
    return result


# ---------------------------------------------------------------------------
# Trigger boundary
# ---------------------------------------------------------------------------

def run_recalculation(
    habit_id: int,
    owner_id: str,
    logical_date: Union[date, str, None] = None,
    session_factory: Optional[SessionFactory] = None,
) -> RecalculationResult:
    """Run one job in its own session. Never raises."""
    factory = session_factory or get_session_factory()
    db = factory()
    try:
        return recalculate(db, habit_id, owner_id, logical_date)
    except Exception as exc:
        db.rollback()
        failure = RecalculationFailure(habit_id, owner_id, f"{type(exc).__name__}: {exc}")
        log_event(logger, "error", "metrics.pipeline.failed",
                  code=failure.code, message=failure.message, **failure.details)
        logger.debug("recalculation traceback", exc_info=exc)
        return RecalculationResult(
            habit_id=habit_id,
            owner_id=owner_id,
            logical_date=None,
            state=RecalculationState.failed,
            error=failure.message,
        )
    finally:
        db.close()


_executor: Optional[ThreadPoolExecutor] = None
_executor_lock = threading.Lock()


def _get_executor() -> ThreadPoolExecutor:
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(
                max_workers=settings.RECALC_MAX_WORKERS,
                thread_name_prefix="recalc",
            )
        return _executor


def shutdown_executor(wait: bool = True) -> None:
    global _executor
    with _executor_lock:
        if _executor is not None:
            _executor.shutdown(wait=wait)
            _executor = None


def trigger_recalculation(
    habit_id: int,
    owner_id: str,
    logical_date: Union[date, str, None] = None,
    *,
    background_tasks: Optional[BackgroundTasks] = None,
    session_factory: Optional[SessionFactory] = None,
) -> Optional[Future]:
    """
    Schedule a recalculation and return immediately.

    Inside a request pass `background_tasks`: the job runs after the response
    is sent. Without it the job goes to the module thread pool and the Future
    is returned (callers are not expected to wait on it).
    """
    log_event(logger, "info", "metrics.pipeline.scheduled",
              habit_id=habit_id, owner_id=owner_id,
              mode="request" if background_tasks is not None else "pool")
    if background_tasks is not None:
        background_tasks.add_task(run_recalculation, habit_id, owner_id, logical_date, session_factory)
        return None
    return _get_executor().submit(run_recalculation, habit_id, owner_id, logical_date, session_factory)
