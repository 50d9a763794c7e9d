"""
Completion Evaluator.

A period is complete when the summed value of its entries reaches the goal
target. Binary habits are stored with target 1, so one code path serves both
habit kinds:

    complete = total >= target   if target > 0
               total > 0         otherwise

Entries with a non-positive value never count.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Mapping

from habit_metrics.engine.calendar import (
    DateLike,
    TimezoneLike,
    period_bounds,
    period_start,
    resolve_timezone,
    to_logical_date,
)
from habit_metrics.engine.rounding import round_tenth
from habit_metrics.engine.types import LogEntry


@dataclass(frozen=True)
class PeriodCompletion:
    start: date
    end: date
    total: float
    complete: bool


def daily_totals(entries: Iterable[LogEntry], tz: TimezoneLike = None) -> dict[date, float]:
    """Sum of positive entry values per logical date."""
    zone = resolve_timezone(tz)
    totals: dict[date, float] = defaultdict(float)
    for entry in entries:
        value = float(entry.value or 0)
        if value <= 0:
            continue
        totals[to_logical_date(entry.logged_at, zone)] += value
    return dict(totals)


def period_totals(totals: Mapping[date, float], period_type: str) -> dict[date, float]:
    """Re-bucket daily totals by period start."""
    buckets: dict[date, float] = defaultdict(float)
    for day, value in totals.items():
        buckets[period_start(period_type, day)] += value
    return dict(buckets)


def period_total(totals: Mapping[date, float], period_type: str, anchor: DateLike) -> float:
    bounds = period_bounds(period_type, anchor)
    return sum(value for day, value in totals.items() if bounds.contains(day))


def is_target_met(total: float, target: float) -> bool:
    if target > 0:
        return total >= target
    return total > 0


def evaluate_period(
    entries: Iterable[LogEntry],
    period_type: str,
    target: float,
    anchor: DateLike,
    tz: TimezoneLike = None,
) -> PeriodCompletion:
    bounds = period_bounds(period_type, anchor)
    total = period_total(daily_totals(entries, tz), period_type, bounds.start)
    return PeriodCompletion(
        start=bounds.start,
        end=bounds.end,
        total=total,
        complete=is_target_met(total, float(target)),
    )


def progress_percent(total: float, target: float) -> float:
    """Share of the target reached, 0-100, rounded to 0.1."""
    if target <= 0:
        return 100.0 if total > 0 else 0.0
    return round_tenth(min(total / target, 1.0) * 100)
