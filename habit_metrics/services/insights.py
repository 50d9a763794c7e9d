"""
Insights service: prediction readiness and the latest usable prediction set.

Predictions are only looked up once a habit is fully unlocked; below that the
view carries the reason the client should display instead.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from habit_metrics.core.config import settings
from habit_metrics.core.logging import log_event
from habit_metrics.engine.calendar import TimezoneLike, format_date_key
from habit_metrics.engine.readiness import (
    HabitPredictions,
    PredictionRow,
    UnlockStatus,
    count_data_days,
    disabled_reason,
    get_latest_complete_prediction_set,
    get_prediction_unlock_status,
)
from habit_metrics.models.prediction import HabitPrediction
from habit_metrics.services.repositories import list_all_entries

logger = logging.getLogger(__name__)

PREDICTION_ROW_LIMIT = 120
INCOMPLETE_ROWS_REASON = "Prediction rows are present but incomplete for required insight types."


@dataclass(frozen=True)
class UnlockState:
    habit_id: int
    data_days: int
    status: str
    reason: str


@dataclass(frozen=True)
class PredictionsView:
    habit_id: int
    unlock: UnlockState
    predictions: Optional[HabitPredictions]
    has_prediction_rows: bool
    updated_at: Optional[str]
    reason: str

    @property
    def is_eligible(self) -> bool:
        return self.predictions is not None


def get_unlock_status(db: Session, habit_id: int, tz: TimezoneLike = None) -> UnlockState:
    data_days = count_data_days(list_all_entries(db, habit_id), tz or settings.REFERENCE_TIMEZONE)
    status = get_prediction_unlock_status(data_days)
    return UnlockState(
        habit_id=habit_id,
        data_days=data_days,
        status=status,
        reason=disabled_reason(status, data_days),
    )


def _load_json(raw: Optional[str], row_id: int) -> dict:
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        log_event(logger, "warning", "insights.prediction.bad_payload", prediction_id=row_id)
        return {}
    return decoded if isinstance(decoded, dict) else {}


def list_prediction_rows(db: Session, habit_id: int, limit: int = PREDICTION_ROW_LIMIT) -> list[PredictionRow]:
    """Newest date first, newest row first within a date."""
    rows = (
        db.query(HabitPrediction)
        .filter(HabitPrediction.habit_id == habit_id)
        .order_by(
            HabitPrediction.date.desc(),
            HabitPrediction.created_at.desc(),
            HabitPrediction.id.desc(),
        )
        .limit(limit)
        .all()
    )
    return [
        PredictionRow(
            habit_id=r.habit_id,
            prediction_type=r.prediction_type,
            date=format_date_key(r.date),
            value=_load_json(r.value, r.id),
            metadata=_load_json(r.prediction_metadata, r.id),
        )
        for r in rows
    ]


def get_habit_predictions(db: Session, habit_id: int, tz: TimezoneLike = None) -> PredictionsView:
    unlock = get_unlock_status(db, habit_id, tz)
    if unlock.status != UnlockStatus.FULL:
        return PredictionsView(
            habit_id=habit_id,
            unlock=unlock,
            predictions=None,
            has_prediction_rows=False,
            updated_at=None,
            reason=unlock.reason,
        )

    latest = get_latest_complete_prediction_set(list_prediction_rows(db, habit_id))
    if latest.predictions is None:
        reason = INCOMPLETE_ROWS_REASON if latest.has_any_rows else unlock.reason
    else:
        reason = ""
    return PredictionsView(
        habit_id=habit_id,
        unlock=unlock,
        predictions=latest.predictions,
        has_prediction_rows=latest.has_any_rows,
        updated_at=latest.latest_date,
        reason=reason,
    )
