"""
Prediction readiness gate and prediction-set selection.

A habit needs enough distinct days of data before its predictions are shown:

    data days < 14   locked
    data days < 21   basic
    otherwise        full

Prediction rows are produced by an external pipeline, one row per
(habit, prediction_type, date). Only a date carrying all three required
types forms a usable set; the newest such date wins. Row payloads are loose
JSON, so every field is normalised with a fallback.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Optional

from habit_metrics.engine.calendar import TimezoneLike, resolve_timezone, to_logical_date
from habit_metrics.engine.rounding import round_half_up
from habit_metrics.engine.types import LogEntry

LOCKED_BELOW_DAYS = 14
FULL_FROM_DAYS = 21

REQUIRED_TYPES = ("streak_risk", "trajectory", "goal_eta")
ON_TRACK_MAX_DAYS = 7

_CONFIDENCE_LABELS = {"high": 0.88, "medium": 0.72, "low": 0.58}
_RISK_LEVELS = ("low", "medium", "high")
_TRAJECTORIES = ("excellent", "good", "declining", "poor")
_TRAJECTORY_ALIASES = {"up": "excellent", "stable": "good", "down": "declining"}


class UnlockStatus:
    LOCKED = "locked"
    BASIC  = "basic"
    FULL   = "full"


@dataclass(frozen=True)
class PredictionRow:
    habit_id: int
    prediction_type: str
    date: str
    value: dict[str, Any] = field(default_factory=dict)
    metadata: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class StreakRisk:
    risk: str
    confidence: float
    reason: str


@dataclass(frozen=True)
class Trajectory:
    trajectory: str
    confidence: float
    prediction: str


@dataclass(frozen=True)
class GoalEta:
    eta: str
    confidence: float
    on_track: bool


@dataclass(frozen=True)
class HabitPredictions:
    streak_risk: StreakRisk
    trajectory: Trajectory
    goal_eta: GoalEta


@dataclass(frozen=True)
class LatestPredictionSet:
    predictions: Optional[HabitPredictions]
    latest_date: Optional[str]
    has_any_rows: bool


# ---------------------------------------------------------------------------
# Readiness
# ---------------------------------------------------------------------------

def count_data_days(entries: Iterable[LogEntry], tz: TimezoneLike = None) -> int:
    """Distinct logical dates with at least one entry, whatever the value."""
    zone = resolve_timezone(tz)
    return len({to_logical_date(e.logged_at, zone) for e in entries})


def get_prediction_unlock_status(data_days: int) -> str:
    if data_days < LOCKED_BELOW_DAYS:
        return UnlockStatus.LOCKED
    if data_days < FULL_FROM_DAYS:
        return UnlockStatus.BASIC
    return UnlockStatus.FULL


def disabled_reason(status: str, data_days: int) -> str:
    if status == UnlockStatus.LOCKED:
        return f"Predictions unlock at {LOCKED_BELOW_DAYS} days of data. Current: {data_days}."
    if status == UnlockStatus.BASIC:
        return f"Full insights unlock at {FULL_FROM_DAYS} days of data. Current: {data_days}."
    return "Waiting for complete prediction rows from the prediction pipeline."


# ---------------------------------------------------------------------------
# Normalisers
# ---------------------------------------------------------------------------

def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            parsed = float(value)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def _first_present(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def to_unit_confidence(value: Any, fallback: float = 0.7) -> float:
    """Clamp to [0, 1]. Percentages (> 1) are scaled; labels map to fixed values."""
    numeric = _to_number(value)
    if numeric is not None:
        if numeric > 1:
            numeric = numeric / 100
        return max(0.0, min(1.0, numeric))
    return _CONFIDENCE_LABELS.get(value, fallback) if isinstance(value, str) else fallback


def normalize_risk(value: Any) -> str:
    return value if value in _RISK_LEVELS else "medium"


def normalize_trajectory(value: Any) -> str:
    if value in _TRAJECTORIES:
        return value
    if isinstance(value, str) and value in _TRAJECTORY_ALIASES:
        return _TRAJECTORY_ALIASES[value]
    return "good"


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def normalize_streak_risk(row: PredictionRow) -> StreakRisk:
    meta = row.metadata or {}
    confidence = to_unit_confidence(
        _first_present(row.value.get("confidence"), row.value.get("probability"), meta.get("confidence")),
        0.72,
    )
    risk = normalize_risk(row.value.get("risk"))
    reason = _text(row.value.get("reason"))
    if reason is None:
        reason = {
            "high": "Recent pattern indicates elevated streak-break risk.",
            "low": "Recent pattern indicates low streak-break risk.",
        }.get(risk, "Prediction generated from recent habit activity patterns.")
    return StreakRisk(risk=risk, confidence=confidence, reason=reason)


def normalize_trajectory_prediction(row: PredictionRow) -> Trajectory:
    meta = row.metadata or {}
    trajectory = normalize_trajectory(
        _first_present(row.value.get("trajectory"), row.value.get("trend"), row.value.get("direction"))
    )
    confidence = to_unit_confidence(_first_present(row.value.get("confidence"), meta.get("confidence")), 0.7)
    prediction = _text(row.value.get("prediction"))
    if prediction is None:
        prediction = {
            "excellent": "Momentum is strong and likely to stay high.",
            "declining": "Momentum is weakening and may require intervention.",
            "poor": "Current trajectory is below target pace.",
        }.get(trajectory, "Trend forecast generated from recent habit performance.")
    return Trajectory(trajectory=trajectory, confidence=confidence, prediction=prediction)


def normalize_goal_eta(row: PredictionRow) -> GoalEta:
    meta = row.metadata or {}
    confidence = to_unit_confidence(_first_present(row.value.get("confidence"), meta.get("confidence")), 0.7)
    days = _to_number(row.value.get("days"))

    eta = _text(row.value.get("eta"))
    if eta is None:
        if days is not None:
            rounded = round_half_up(days)
            eta = f"~{max(0, rounded)} day{'' if rounded == 1 else 's'}"
        else:
            eta = "ETA unavailable"

    on_track_raw = _first_present(row.value.get("onTrack"), row.value.get("on_track"))
    if isinstance(on_track_raw, bool):
        on_track = on_track_raw
    else:
        on_track = days is not None and days <= ON_TRACK_MAX_DAYS
    return GoalEta(eta=eta, confidence=confidence, on_track=on_track)


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------

def _date_sort_key(value: Any) -> str:
    return value.isoformat() if isinstance(value, date) else str(value)


def get_latest_complete_prediction_set(rows: Iterable[PredictionRow]) -> LatestPredictionSet:
    """
    Newest date that has all of streak_risk, trajectory and goal_eta.
    Within a date the first row seen for a type is kept, so callers pass
    rows newest-created first. When no date is complete, `latest_date` is
    still the newest date that has any required-type row.
    """
    rows = list(rows)
    if not rows:
        return LatestPredictionSet(predictions=None, latest_date=None, has_any_rows=False)

    by_date: dict[str, dict[str, PredictionRow]] = {}
    for row in rows:
        if row.prediction_type not in REQUIRED_TYPES:
            continue
        by_date.setdefault(_date_sort_key(row.date), {}).setdefault(row.prediction_type, row)

    dates = sorted(by_date, reverse=True)
    for day in dates:
        found = by_date[day]
        if not all(t in found for t in REQUIRED_TYPES):
            continue
        return LatestPredictionSet(
            predictions=HabitPredictions(
                streak_risk=normalize_streak_risk(found["streak_risk"]),
                trajectory=normalize_trajectory_prediction(found["trajectory"]),
                goal_eta=normalize_goal_eta(found["goal_eta"]),
            ),
            latest_date=day,
            has_any_rows=True,
        )

    return LatestPredictionSet(
        predictions=None,
        latest_date=dates[0] if dates else None,
        has_any_rows=True,
    )
