"""
Tests for the completion evaluator.
"""
from datetime import date

from conftest import entry

from habit_metrics.engine.completion import (
    daily_totals,
    evaluate_period,
    is_target_met,
    period_total,
    period_totals,
    progress_percent,
)

MX = "America/Mexico_City"


class TestDailyTotals:
    def test_sums_per_logical_day(self):
        totals = daily_totals([entry("2025-01-01", 2), entry("2025-01-01", 1.5), entry("2025-01-02", 3)], MX)
        assert totals == {date(2025, 1, 1): 3.5, date(2025, 1, 2): 3.0}

    def test_ignores_non_positive_values(self):
        totals = daily_totals([entry("2025-01-01", 0), entry("2025-01-02", -1)], MX)
        assert totals == {}

    def test_late_local_entry_counts_on_local_day(self):
        totals = daily_totals([entry("2025-01-01", 1, hour=23)], MX)
        assert list(totals) == [date(2025, 1, 1)]


class TestTargets:
    def test_target_reached(self):
        assert is_target_met(3, 3)
        assert not is_target_met(2.99, 3)

    def test_zero_target_needs_any_value(self):
        assert is_target_met(0.5, 0)
        assert not is_target_met(0, 0)

    def test_progress_percent_is_capped(self):
        assert progress_percent(1, 3) == 33.3
        assert progress_percent(6, 3) == 100.0
        assert progress_percent(0, 3) == 0.0


class TestPeriods:
    def test_weekly_bucket_sums_days(self):
        totals = {date(2025, 1, 13): 1.0, date(2025, 1, 19): 2.0, date(2025, 1, 20): 5.0}
        assert period_totals(totals, "weekly") == {date(2025, 1, 13): 3.0, date(2025, 1, 20): 5.0}
        assert period_total(totals, "weekly", date(2025, 1, 15)) == 3.0

    def test_evaluate_monthly(self):
        entries = [entry("2025-02-01", 10), entry("2025-02-28", 10), entry("2025-03-01", 50)]
        result = evaluate_period(entries, "monthly", 20, date(2025, 2, 14), MX)
        assert result.start == date(2025, 2, 1)
        assert result.end == date(2025, 2, 28)
        assert result.total == 20
        assert result.complete is True

    def test_evaluate_incomplete_daily(self):
        result = evaluate_period([entry("2025-02-01", 1)], "daily", 2, "2025-02-01", MX)
        assert result.complete is False
