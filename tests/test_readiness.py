"""
Tests for the prediction readiness gate and prediction-set selection.
"""
from __future__ import annotations

from datetime import date, timedelta

import pytest
from conftest import entry

from habit_metrics.engine.readiness import (
    PredictionRow,
    UnlockStatus,
    count_data_days,
    disabled_reason,
    get_latest_complete_prediction_set,
    get_prediction_unlock_status,
    normalize_goal_eta,
    normalize_trajectory,
    to_unit_confidence,
)

MX = "America/Mexico_City"


def _row(prediction_type, day, **value):
    return PredictionRow(habit_id=1, prediction_type=prediction_type, date=day, value=value)


def _full_set(day):
    return [
        _row("streak_risk", day, risk="low", confidence=0.9),
        _row("trajectory", day, trajectory="up"),
        _row("goal_eta", day, days=3),
    ]


class TestUnlockStatus:
    @pytest.mark.parametrize("days, expected", [
        (0, UnlockStatus.LOCKED),
        (13, UnlockStatus.LOCKED),
        (14, UnlockStatus.BASIC),
        (20, UnlockStatus.BASIC),
        (21, UnlockStatus.FULL),
        (90, UnlockStatus.FULL),
    ])
    def test_thresholds(self, days, expected):
        assert get_prediction_unlock_status(days) == expected

    def test_data_days_are_distinct_logical_dates(self):
        start = date(2025, 1, 1)
        entries = [entry(start + timedelta(days=i)) for i in range(14)]
        entries.append(entry(start, 5, hour=20))
        assert count_data_days(entries, MX) == 14

    def test_zero_value_entries_still_count(self):
        assert count_data_days([entry("2025-01-01", 0)], MX) == 1

    def test_disabled_reason(self):
        assert "14 days" in disabled_reason(UnlockStatus.LOCKED, 9)
        assert "Current: 9" in disabled_reason(UnlockStatus.LOCKED, 9)
        assert "21 days" in disabled_reason(UnlockStatus.BASIC, 15)


class TestLatestCompleteSet:
    def test_no_rows(self):
        result = get_latest_complete_prediction_set([])
        assert result.predictions is None
        assert result.latest_date is None
        assert result.has_any_rows is False

    def test_newest_complete_date_wins(self):
        rows = [
            _row("streak_risk", "2025-01-15", risk="high"),
            _row("trajectory", "2025-01-15", trajectory="down"),
        ] + _full_set("2025-01-14") + _full_set("2025-01-10")
        result = get_latest_complete_prediction_set(rows)
        assert result.latest_date == "2025-01-14"
        assert result.has_any_rows is True
        assert result.predictions.streak_risk.risk == "low"
        assert result.predictions.trajectory.trajectory == "excellent"
        assert result.predictions.goal_eta.eta == "~3 days"
        assert result.predictions.goal_eta.on_track is True

    def test_incomplete_rows_report_newest_date(self):
        rows = [
            _row("streak_risk", "2025-01-12"),
            _row("goal_eta", "2025-01-15"),
            _row("best_reminder", "2025-01-20"),
        ]
        result = get_latest_complete_prediction_set(rows)
        assert result.predictions is None
        assert result.latest_date == "2025-01-15"
        assert result.has_any_rows is True

    def test_first_row_per_type_wins(self):
        rows = [
            _row("streak_risk", "2025-01-15", risk="high"),
            _row("streak_risk", "2025-01-15", risk="low"),
            _row("trajectory", "2025-01-15", trajectory="poor"),
            _row("goal_eta", "2025-01-15", eta="next week", onTrack=False),
        ]
        predictions = get_latest_complete_prediction_set(rows).predictions
        assert predictions.streak_risk.risk == "high"
        assert predictions.streak_risk.reason == "Recent pattern indicates elevated streak-break risk."
        assert predictions.trajectory.prediction == "Current trajectory is below target pace."
        assert predictions.goal_eta.eta == "next week"
        assert predictions.goal_eta.on_track is False


class TestNormalizers:
    @pytest.mark.parametrize("raw, expected", [
        (0.8, 0.8),
        (85, 0.85),
        ("0.5", 0.5),
        (-2, 0.0),
        (250, 1.0),
        ("high", 0.88),
        ("medium", 0.72),
        ("low", 0.58),
        (None, 0.7),
        ("unknown", 0.7),
        (True, 0.7),
    ])
    def test_unit_confidence(self, raw, expected):
        assert to_unit_confidence(raw) == pytest.approx(expected)

    @pytest.mark.parametrize("raw, expected", [
        ("up", "excellent"),
        ("stable", "good"),
        ("down", "declining"),
        ("poor", "poor"),
        ("sideways", "good"),
        (None, "good"),
    ])
    def test_trajectory_aliases(self, raw, expected):
        assert normalize_trajectory(raw) == expected

    def test_goal_eta_from_days(self):
        assert normalize_goal_eta(_row("goal_eta", "2025-01-15", days=1)).eta == "~1 day"
        late = normalize_goal_eta(_row("goal_eta", "2025-01-15", days="12.6"))
        assert late.eta == "~13 days"
        assert late.on_track is False

    def test_goal_eta_half_day_rounds_up(self):
        assert normalize_goal_eta(_row("goal_eta", "2025-01-15", days=2.5)).eta == "~3 days"
        assert normalize_goal_eta(_row("goal_eta", "2025-01-15", days=0.5)).eta == "~1 day"

    def test_goal_eta_unavailable(self):
        eta = normalize_goal_eta(_row("goal_eta", "2025-01-15"))
        assert eta.eta == "ETA unavailable"
        assert eta.on_track is False
        assert eta.confidence == 0.7

    def test_streak_risk_confidence_from_metadata(self):
        row = PredictionRow(
            habit_id=1, prediction_type="streak_risk", date="2025-01-15",
            value={"risk": "extreme"}, metadata={"confidence": "low"},
        )
        rows = [row, _row("trajectory", "2025-01-15"), _row("goal_eta", "2025-01-15")]
        risk = get_latest_complete_prediction_set(rows).predictions.streak_risk
        assert risk.risk == "medium"
        assert risk.confidence == 0.58
