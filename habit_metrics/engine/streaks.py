"""
Streak Calculator.

Current streak
--------------
  daily            If today is not complete yet it is "pending", not failed:
                   the backward walk starts at yesterday. Walk back one day
                   at a time while days are complete. The walk is bounded by
                   a lookback horizon; hitting it returns the capped count
                   with truncated=True.
  weekly/monthly   The current period must itself be complete, otherwise the
                   streak is 0. Partial progress never counts: the period
                   only closes at its end.

Best streak
-----------
Longest run of consecutive complete periods anywhere in the history.

Both are derived from daily totals, so the caller decides which entries go in
(e.g. all-time for best streak).
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Hashable, Iterable, Mapping, Optional

from habit_metrics.engine.calendar import (
    TimezoneLike,
    next_period_start,
    period_start,
    previous_period_start,
    validate_period_type,
)
from habit_metrics.engine.completion import daily_totals, is_target_met, period_totals
from habit_metrics.engine.types import LogEntry, PeriodType

# Daily walk horizon, used by the recalculation job and the local fallback
STREAK_LOOKBACK_DAYS = 60


@dataclass(frozen=True)
class StreakCount:
    value: int
    truncated: bool = False


@dataclass(frozen=True)
class StreakSummary:
    current: int
    best: int
    truncated: bool = False


def _daily_current(
    totals: Mapping[date, float],
    target: float,
    today: date,
    max_periods: Optional[int],
) -> StreakCount:
    def complete(day: date) -> bool:
        return is_target_met(totals.get(day, 0.0), target)

    cursor = today if complete(today) else today - timedelta(days=1)
    streak = 0
    while complete(cursor):
        streak += 1
        if max_periods is not None and streak >= max_periods:
            return StreakCount(streak, truncated=True)
        cursor -= timedelta(days=1)
    return StreakCount(streak)


def _period_current(
    totals: Mapping[date, float],
    period_type: str,
    target: float,
    today: date,
    max_periods: Optional[int],
) -> StreakCount:
    buckets = period_totals(totals, period_type)
    cursor = period_start(period_type, today)
    if not is_target_met(buckets.get(cursor, 0.0), target):
        return StreakCount(0)

    streak = 0
    while is_target_met(buckets.get(cursor, 0.0), target):
        streak += 1
        if max_periods is not None and streak >= max_periods:
            return StreakCount(streak, truncated=True)
        cursor = previous_period_start(period_type, cursor)
    return StreakCount(streak)


def current_streak(
    totals: Mapping[date, float],
    period_type: str,
    target: float,
    today: date,
    max_periods: Optional[int] = None,
) -> StreakCount:
    kind = validate_period_type(period_type)
    if kind == PeriodType.DAILY:
        return _daily_current(totals, float(target), today, max_periods)
    return _period_current(totals, kind, float(target), today, max_periods)


def best_streak(totals: Mapping[date, float], period_type: str, target: float) -> int:
    kind = validate_period_type(period_type)
    buckets = totals if kind == PeriodType.DAILY else period_totals(totals, kind)
    complete_starts = sorted(
        start for start, value in buckets.items() if is_target_met(value, float(target))
    )

    best = 0
    run = 0
    previous: Optional[date] = None
    for start in complete_starts:
        if previous is not None and next_period_start(kind, previous) == start:
            run += 1
        else:
            run = 1
        if run > best:
            best = run
        previous = start
    return best


def compute_streaks(
    entries: Iterable[LogEntry],
    period_type: str,
    target: float,
    today: date,
    tz: TimezoneLike = None,
    lookback_days: Optional[int] = None,
) -> StreakSummary:
    """Current and best streak of one habit. Guarantees current <= best."""
    totals = daily_totals(entries, tz)
    if not totals:
        return StreakSummary(current=0, best=0)

    kind = validate_period_type(period_type)
    horizon = lookback_days if kind == PeriodType.DAILY else None
    current = current_streak(totals, kind, target, today, max_periods=horizon)
    best = best_streak(totals, kind, target)
    return StreakSummary(
        current=current.value,
        best=max(best, current.value),
        truncated=current.truncated,
    )


def pick_best_streak(
    candidates: Iterable[tuple[Hashable, int]],
) -> Optional[tuple[Hashable, int]]:
    """
    Highest (owner, value) pair. On equal values the first one seen wins:
    a later candidate replaces it only when strictly greater.
    """
    best: Optional[tuple[Hashable, int]] = None
    for owner, value in candidates:
        if value <= 0:
            continue
        if best is None or value > best[1]:
            best = (owner, value)
    return best
