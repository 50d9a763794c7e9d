"""
Tests for the aggregation builder and the metric rows it produces.

Fixed clock: today is Wednesday 2025-01-15 in the reference timezone.
"""
from __future__ import annotations

from datetime import date

from conftest import entry

from habit_metrics.engine.aggregation import (
    CompletionSummary,
    HabitSnapshot,
    active_days,
    average_value,
    build_habit_aggregates,
    build_profile_aggregates,
    completion_summary,
    habit_metric_values,
    profile_metric_values,
)
from habit_metrics.engine.completion import daily_totals
from habit_metrics.engine.types import GoalSpec, HabitKind, MetricType

MX = "America/Mexico_City"
TODAY = date(2025, 1, 15)
OWNER = "agg-owner"


def _snapshot(habit_id, entries, goal=GoalSpec("daily", 1), kind=HabitKind.NUMERIC):
    return HabitSnapshot.from_entries(habit_id, kind, goal, entries, TODAY, MX)


def _rows_by_type(rows):
    return {(r.metric_type, r.granularity): r for r in rows}


HABIT_1 = [entry("2025-01-13", 1), entry("2025-01-14", 1), entry("2025-01-15", 1)]
HABIT_2 = [entry("2025-01-10", 2), entry("2025-01-11", 2), entry("2025-01-12", 2), entry("2025-01-15", 1)]


class TestHabitAggregates:
    def test_same_input_same_output(self):
        snap = _snapshot(1, HABIT_1)
        first = build_habit_aggregates(snap, TODAY, MX)
        second = build_habit_aggregates(snap, TODAY, MX)
        assert first == second
        assert habit_metric_values(OWNER, first) == habit_metric_values(OWNER, second)

    def test_habit_rows(self):
        agg = build_habit_aggregates(_snapshot(1, HABIT_1), TODAY, MX)
        rows = _rows_by_type(habit_metric_values(OWNER, agg))

        assert rows[(MetricType.DAILY_TOTAL, "daily")].value == 1
        streak = rows[(MetricType.STREAK, "daily")]
        assert streak.value == 3
        assert streak.date == TODAY
        assert rows[(MetricType.BEST_STREAK, "all_time")].value == 3
        assert rows[(MetricType.GOAL_PROGRESS, "daily")].value == 100.0
        days = rows[(MetricType.DAYS_COMPLETED_30D, "monthly")]
        assert days.value == 3
        assert days.metadata["window_total"] == 30
        assert days.metadata["unit"] == "days"
        assert rows[(MetricType.WEEKLY_AVERAGE, "weekly")].date == date(2025, 1, 19)
        assert rows[(MetricType.MONTHLY_AVERAGE, "monthly")].date == date(2025, 1, 31)
        assert rows[(MetricType.AVG_VALUE_30D, "monthly")].value == 1.0
        assert rows[(MetricType.TOTAL_ENTRIES_ALL_TIME, "all_time")].value == 3

    def test_broken_streak_clears_row(self):
        entries = [entry("2025-01-10", 1)]
        rows = _rows_by_type(habit_metric_values(OWNER, build_habit_aggregates(_snapshot(1, entries), TODAY, MX)))
        assert rows[(MetricType.STREAK, "daily")].value is None
        assert rows[(MetricType.BEST_STREAK, "all_time")].value == 1
        assert rows[(MetricType.DAILY_TOTAL, "daily")].value is None

    def test_weekly_goal_rows_use_sunday_anchor(self):
        entries = [entry("2025-01-13", 2), entry("2025-01-14", 1)]
        agg = build_habit_aggregates(_snapshot(1, entries, GoalSpec("weekly", 3)), TODAY, MX)
        rows = _rows_by_type(habit_metric_values(OWNER, agg))
        streak = rows[(MetricType.STREAK, "weekly")]
        assert streak.value == 1
        assert streak.date == date(2025, 1, 19)
        progress = rows[(MetricType.GOAL_PROGRESS, "weekly")]
        assert progress.metadata["complete"] is True
        assert progress.metadata["period_start"] == "2025-01-13"
        summary = rows[(MetricType.DAYS_COMPLETED_30D, "monthly")]
        assert summary.metadata["unit"] == "weeks"
        assert summary.metadata["window_total"] == 5

    def test_missing_goal_skips_completion_metrics(self):
        agg = build_habit_aggregates(_snapshot(1, HABIT_1, goal=None), TODAY, MX)
        rows = habit_metric_values(OWNER, agg)
        by_type = {r.metric_type: r for r in rows}
        assert MetricType.STREAK not in by_type
        assert MetricType.GOAL_PROGRESS not in by_type
        assert by_type[MetricType.BEST_STREAK].value is None
        assert by_type[MetricType.BEST_STREAK].metadata == {"goal_missing": True}
        assert by_type[MetricType.DAYS_COMPLETED_30D].value is None
        assert by_type[MetricType.TOTAL_ENTRIES_ALL_TIME].value == 3


class TestBinaryHabits:
    def test_binary_average_is_none(self):
        assert average_value(HABIT_1, HabitKind.BINARY, TODAY, MX) is None
        assert average_value(HABIT_1, HabitKind.NUMERIC, TODAY, MX) == 1.0

    def test_binary_average_rows_cleared(self):
        agg = build_habit_aggregates(_snapshot(1, HABIT_1, kind=HabitKind.BINARY), TODAY, MX)
        rows = _rows_by_type(habit_metric_values(OWNER, agg))
        assert rows[(MetricType.AVG_VALUE_30D, "monthly")].value is None
        assert rows[(MetricType.WEEKLY_AVERAGE, "weekly")].value is None
        assert rows[(MetricType.STREAK, "daily")].value == 3


class TestWindows:
    def test_active_days(self):
        entries = HABIT_1 + [entry("2024-12-01", 1)]
        assert active_days(entries, TODAY, MX) == 3

    def test_weekly_summary_over_30_days(self):
        totals = daily_totals([entry("2025-01-07", 3), entry("2024-12-20", 3)], MX)
        summary = completion_summary(totals, "weekly", 3, TODAY, 30)
        assert (summary.count, summary.total, summary.unit) == (2, 5, "weeks")
        assert summary.rate == 40


class TestHalfUpRounding:
    def test_rate_rounds_half_up(self):
        assert CompletionSummary(count=1, total=8, unit="days").rate == 13
        assert CompletionSummary(count=3, total=8, unit="days").rate == 38

    def test_average_rounds_half_up(self):
        entries = [entry("2025-01-14", 2), entry("2025-01-15", 2.5)]
        assert average_value(entries, HabitKind.NUMERIC, TODAY, MX) == 2.3

    def test_average_rows_round_half_up(self):
        entries = [entry("2025-01-14", 2), entry("2025-01-15", 2.5)]
        agg = build_habit_aggregates(_snapshot(1, entries), TODAY, MX)
        rows = _rows_by_type(habit_metric_values(OWNER, agg))
        assert rows[(MetricType.AVG_VALUE_30D, "monthly")].value == 2.3
        assert rows[(MetricType.WEEKLY_AVERAGE, "weekly")].value == 2.3
        assert rows[(MetricType.MONTHLY_AVERAGE, "monthly")].value == 2.3


class TestProfileAggregates:
    def _profile(self, snapshots):
        return build_profile_aggregates(snapshots, TODAY, MX)

    def test_profile_totals(self):
        agg = self._profile([_snapshot(2, HABIT_2, GoalSpec("daily", 2)), _snapshot(1, HABIT_1)])
        assert agg.active_habit_count == 2
        assert agg.completed_habits_today == 1
        assert agg.entries_today == 2
        assert agg.entries_7d == 7
        assert agg.entries_30d == 7
        assert agg.active_days_30d == 6
        assert (agg.completion_7d.count, agg.completion_7d.total) == (6, 14)
        assert agg.completion_7d.rate == 43

    def test_best_streak_tie_resolves_to_lowest_habit_id(self):
        agg = self._profile([_snapshot(2, HABIT_2, GoalSpec("daily", 2)), _snapshot(1, HABIT_1)])
        assert agg.best_streak_overall == 3
        assert agg.best_streak_habit_id == 1

    def test_profile_rows(self):
        agg = self._profile([_snapshot(1, HABIT_1), _snapshot(2, HABIT_2, GoalSpec("daily", 2))])
        rows = _rows_by_type(profile_metric_values(OWNER, agg))
        assert all(r.habit_id is None for r in rows.values())
        best = rows[(MetricType.BEST_STREAK_OVERALL, "all_time")]
        assert best.value == 3
        assert best.clear_scope == "type"
        assert best.metadata["best_habit_id"] == 1
        assert rows[(MetricType.TOTAL_ENTRIES, "weekly")].value == 7
        assert rows[(MetricType.COMPLETED_HABITS_TODAY, "daily")].value == 1
        assert rows[(MetricType.ALL_GOALS_COMPLETED_TODAY, "daily")].value == 0
        assert rows[(MetricType.COMPLETION_RATE_7D, "daily")].value == 43

    def test_all_goals_completed(self):
        agg = self._profile([_snapshot(1, HABIT_1)])
        rows = _rows_by_type(profile_metric_values(OWNER, agg))
        assert rows[(MetricType.ALL_GOALS_COMPLETED_TODAY, "daily")].value == 1

    def test_goal_missing_blocks_all_done(self):
        agg = self._profile([_snapshot(1, HABIT_1), _snapshot(3, HABIT_1, goal=None)])
        assert agg.goal_missing == 1
        rows = _rows_by_type(profile_metric_values(OWNER, agg))
        assert rows[(MetricType.ALL_GOALS_COMPLETED_TODAY, "daily")].value == 0

    def test_empty_profile(self):
        agg = self._profile([])
        rows = _rows_by_type(profile_metric_values(OWNER, agg))
        assert rows[(MetricType.BEST_STREAK_OVERALL, "all_time")].value is None
        assert rows[(MetricType.TOTAL_ENTRIES, "daily")].value == 0
        assert rows[(MetricType.ALL_GOALS_COMPLETED_TODAY, "daily")].value == 0
