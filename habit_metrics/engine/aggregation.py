"""
Aggregation Builder — windowed statistics per habit and per profile.

Every builder is a pure function of (entries, today): the same input always
produces the same aggregates, so recalculations can run concurrently and in
any order and still converge on identical metric rows.

Windows
-------
  7 days   profile completion rate, weekly average, weekly entry count
  30 days  habit completion summary, active days, 30-day average
  all-time best streak, entry count

Completion summaries map the last N days onto the distinct goal periods they
touch: a 30-day lookback for a weekly goal covers 5 or 6 weeks, and the
summary reports `count` complete periods out of `total` in its natural unit.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Mapping, Optional, Sequence

from habit_metrics.engine.calendar import (
    TimezoneLike,
    iter_days,
    period_anchor,
    period_start,
    period_unit,
    resolve_timezone,
    to_logical_date,
    validate_period_type,
)
from habit_metrics.engine.completion import (
    PeriodCompletion,
    daily_totals,
    evaluate_period,
    is_target_met,
    period_total,
    period_totals,
    progress_percent,
)
from habit_metrics.engine.rounding import round_half_up, round_tenth
from habit_metrics.engine.streaks import (
    STREAK_LOOKBACK_DAYS,
    StreakSummary,
    compute_streaks,
    pick_best_streak,
)
from habit_metrics.engine.types import (
    GoalSpec,
    Granularity,
    HabitKind,
    LogEntry,
    MetricType,
    MetricValue,
    PeriodType,
)

WEEKLY_WINDOW_DAYS = 7
MONTHLY_WINDOW_DAYS = 30


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CompletionSummary:
    count: int
    total: int
    unit: str   # "days" | "weeks" | "months"

    @property
    def rate(self) -> int:
        return round_half_up(self.count / self.total * 100) if self.total else 0


@dataclass(frozen=True)
class WindowAverage:
    value: float
    days_with_data: int
    window_days: int


@dataclass
class HabitSnapshot:
    """
    Everything the builder needs for one habit, as fetched by the job:
    today's entries, a rolling window (streak lookback) and all-time entries.
    """
    habit_id: int
    kind: str
    goal: Optional[GoalSpec]
    today_entries: list[LogEntry] = field(default_factory=list)
    window_entries: list[LogEntry] = field(default_factory=list)
    all_time_entries: list[LogEntry] = field(default_factory=list)

    @classmethod
    def from_entries(
        cls,
        habit_id: int,
        kind: str,
        goal: Optional[GoalSpec],
        entries: Sequence[LogEntry],
        today: date,
        tz: TimezoneLike = None,
        lookback_days: int = STREAK_LOOKBACK_DAYS,
    ) -> "HabitSnapshot":
        """Slice a single entry list the way the job's three queries would."""
        zone = resolve_timezone(tz)
        window_start = today - timedelta(days=lookback_days)
        dated = [(to_logical_date(e.logged_at, zone), e) for e in entries]
        return cls(
            habit_id=habit_id,
            kind=kind,
            goal=goal,
            today_entries=[e for d, e in dated if d == today],
            window_entries=[e for d, e in dated if window_start <= d <= today],
            all_time_entries=list(entries),
        )


@dataclass(frozen=True)
class HabitAggregates:
    habit_id: int
    kind: str
    logical_date: date
    goal: Optional[GoalSpec]
    today_total: float
    today_entry_count: int
    streaks: Optional[StreakSummary]
    goal_period: Optional[PeriodCompletion]
    weekly_average: Optional[WindowAverage]
    monthly_average: Optional[WindowAverage]
    completion_30d: Optional[CompletionSummary]
    completion_7d: Optional[CompletionSummary]
    total_entries_all_time: int
    all_time_value: float


@dataclass(frozen=True)
class ProfileAggregates:
    logical_date: date
    active_habit_count: int
    habits_with_entries: int
    best_streak_habit_id: Optional[int]
    best_streak_overall: int
    entries_today: int
    entries_7d: int
    entries_30d: int
    completed_habits_today: int
    goal_missing: int
    completion_7d: CompletionSummary
    active_days_30d: int


# ---------------------------------------------------------------------------
# Window helpers
# ---------------------------------------------------------------------------

def _window_start(today: date, window_days: int) -> date:
    return today - timedelta(days=window_days - 1)


def _entries_in_window(
    entries: Iterable[LogEntry], today: date, window_days: int, tz: TimezoneLike
) -> list[LogEntry]:
    zone = resolve_timezone(tz)
    start = _window_start(today, window_days)
    return [e for e in entries if start <= to_logical_date(e.logged_at, zone) <= today]


def completion_summary(
    totals: Mapping[date, float],
    period_type: str,
    target: float,
    today: date,
    lookback_days: int,
) -> CompletionSummary:
    kind = validate_period_type(period_type)
    starts: list[date] = []
    for day in iter_days(_window_start(today, lookback_days), today):
        start = period_start(kind, day)
        if not starts or starts[-1] != start:
            starts.append(start)

    buckets = totals if kind == PeriodType.DAILY else period_totals(totals, kind)
    completed = sum(1 for s in starts if is_target_met(buckets.get(s, 0.0), float(target)))
    return CompletionSummary(count=completed, total=len(starts), unit=period_unit(kind))


def window_average(
    entries: Iterable[LogEntry],
    today: date,
    tz: TimezoneLike = None,
    window_days: int = MONTHLY_WINDOW_DAYS,
) -> Optional[WindowAverage]:
    """Mean of daily totals over the days in the window that have data."""
    totals = daily_totals(_entries_in_window(entries, today, window_days, tz), tz)
    if not totals:
        return None
    mean = sum(totals.values()) / len(totals)
    return WindowAverage(
        value=round_tenth(mean),
        days_with_data=len(totals),
        window_days=window_days,
    )


def average_value(
    entries: Iterable[LogEntry],
    kind: str,
    today: date,
    tz: TimezoneLike = None,
    window_days: int = MONTHLY_WINDOW_DAYS,
) -> Optional[float]:
    """30-day average. Binary habits are never averaged: always None."""
    if kind == HabitKind.BINARY:
        return None
    result = window_average(entries, today, tz, window_days)
    return result.value if result else None


def active_days(
    entries: Iterable[LogEntry],
    today: date,
    tz: TimezoneLike = None,
    window_days: int = MONTHLY_WINDOW_DAYS,
) -> int:
    zone = resolve_timezone(tz)
    start = _window_start(today, window_days)
    days = {to_logical_date(e.logged_at, zone) for e in entries}
    return sum(1 for d in days if start <= d <= today)


def total_entries_all_time(entries: Iterable[LogEntry]) -> int:
    return sum(1 for _ in entries)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def build_habit_aggregates(
    snapshot: HabitSnapshot,
    today: date,
    tz: TimezoneLike = None,
    lookback_days: int = STREAK_LOOKBACK_DAYS,
) -> HabitAggregates:
    goal = snapshot.goal
    all_time = snapshot.all_time_entries
    is_numeric = snapshot.kind != HabitKind.BINARY

    streaks = goal_period = completion_30d = completion_7d = None
    if goal is not None:
        period_type = validate_period_type(goal.period_type)
        target = float(goal.target_value)
        totals = daily_totals(all_time, tz)
        source = snapshot.window_entries if period_type == PeriodType.DAILY else all_time
        streak_current = compute_streaks(source, period_type, target, today, tz, lookback_days)
        streak_all = compute_streaks(all_time, period_type, target, today, tz)
        streaks = StreakSummary(
            current=streak_current.current,
            best=max(streak_all.best, streak_current.current),
            truncated=streak_current.truncated,
        )
        goal_period = evaluate_period(all_time, period_type, target, today, tz)
        completion_30d = completion_summary(totals, period_type, target, today, MONTHLY_WINDOW_DAYS)
        completion_7d = completion_summary(totals, period_type, target, today, WEEKLY_WINDOW_DAYS)

    today_values = [float(e.value or 0) for e in snapshot.today_entries]
    return HabitAggregates(
        habit_id=snapshot.habit_id,
        kind=snapshot.kind,
        logical_date=today,
        goal=goal,
        today_total=round_tenth(sum(v for v in today_values if v > 0)),
        today_entry_count=len(today_values),
        streaks=streaks,
        goal_period=goal_period,
        weekly_average=(
            window_average(snapshot.window_entries, today, tz, WEEKLY_WINDOW_DAYS)
            if is_numeric else None
        ),
        monthly_average=(
            window_average(snapshot.window_entries, today, tz, MONTHLY_WINDOW_DAYS)
            if is_numeric else None
        ),
        completion_30d=completion_30d,
        completion_7d=completion_7d,
        total_entries_all_time=total_entries_all_time(all_time),
        all_time_value=round_tenth(sum(float(e.value or 0) for e in all_time)),
    )


def build_profile_aggregates(
    habits: Sequence[HabitSnapshot],
    today: date,
    tz: TimezoneLike = None,
) -> ProfileAggregates:
    """
    Profile-level aggregates over the active habits. `habits` is processed
    in ascending habit_id order so best-streak ties resolve the same way on
    every run.
    """
    ordered = sorted(habits, key=lambda h: h.habit_id)
    zone = resolve_timezone(tz)
    all_entries = [e for h in ordered for e in h.all_time_entries]

    best_candidates: list[tuple[int, int]] = []
    completed_today = 0
    goal_missing = 0
    completed_7d = 0
    possible_7d = 0
    for habit in ordered:
        if habit.goal is None:
            goal_missing += 1
            continue
        period_type = validate_period_type(habit.goal.period_type)
        target = float(habit.goal.target_value)
        totals = daily_totals(habit.all_time_entries, zone)
        if not totals:
            # no qualifying entries: every period in the window is incomplete
            summary = completion_summary(totals, period_type, target, today, WEEKLY_WINDOW_DAYS)
            possible_7d += summary.total
            continue
        best_candidates.append(
            (habit.habit_id, compute_streaks(habit.all_time_entries, period_type, target, today, zone).best)
        )
        if is_target_met(period_total(totals, period_type, today), target):
            completed_today += 1
        summary = completion_summary(totals, period_type, target, today, WEEKLY_WINDOW_DAYS)
        completed_7d += summary.count
        possible_7d += summary.total

    best = pick_best_streak(best_candidates)
    entry_days = [to_logical_date(e.logged_at, zone) for e in all_entries]

    def count_since(window_days: int) -> int:
        start = _window_start(today, window_days)
        return sum(1 for d in entry_days if start <= d <= today)

    return ProfileAggregates(
        logical_date=today,
        active_habit_count=len(ordered),
        habits_with_entries=sum(1 for h in ordered if h.all_time_entries),
        best_streak_habit_id=best[0] if best else None,
        best_streak_overall=best[1] if best else 0,
        entries_today=count_since(1),
        entries_7d=count_since(WEEKLY_WINDOW_DAYS),
        entries_30d=count_since(MONTHLY_WINDOW_DAYS),
        completed_habits_today=completed_today,
        goal_missing=goal_missing,
        completion_7d=CompletionSummary(count=completed_7d, total=possible_7d, unit="periods"),
        active_days_30d=active_days(all_entries, today, zone, MONTHLY_WINDOW_DAYS),
    )


# ---------------------------------------------------------------------------
# Metric rows
# ---------------------------------------------------------------------------

def habit_metric_values(owner_id: str, agg: HabitAggregates) -> list[MetricValue]:
    """
    Metric rows for one habit. A value of None marks a metric that is no
    longer computable; its row is deleted instead of written.
    """
    today = agg.logical_date

    def metric(metric_type, granularity, value, metadata=None, day=today) -> MetricValue:
        return MetricValue(
            owner_id=owner_id,
            habit_id=agg.habit_id,
            date=day,
            metric_type=metric_type,
            granularity=granularity,
            value=value,
            metadata=metadata or {},
        )

    rows = [
        metric(
            MetricType.DAILY_TOTAL, Granularity.DAILY,
            agg.today_total if agg.today_entry_count else None,
            {"record_count": agg.today_entry_count},
        ),
    ]

    goal = agg.goal
    if goal is not None:
        period_type = validate_period_type(goal.period_type)
        anchor = period_anchor(period_type, today)
        streaks = agg.streaks
        period = agg.goal_period
        rows.append(metric(
            MetricType.STREAK, period_type,
            streaks.current if streaks and streaks.current > 0 else None,
            {"consecutive_periods": streaks.current if streaks else 0,
             "truncated": streaks.truncated if streaks else False},
            day=anchor,
        ))
        rows.append(metric(
            MetricType.BEST_STREAK, Granularity.ALL_TIME,
            streaks.best if streaks and streaks.best > 0 else None,
            {"window": "all_time", "period_type": period_type},
        ))
        rows.append(metric(
            MetricType.GOAL_PROGRESS, period_type,
            progress_percent(period.total, float(goal.target_value)) if period else None,
            {
                "total_value": round_tenth(period.total) if period else 0,
                "target_value": float(goal.target_value),
                "complete": period.complete if period else False,
                "period_start": str(period.start) if period else None,
            },
            day=anchor,
        ))
        summary = agg.completion_30d
        rows.append(metric(
            MetricType.DAYS_COMPLETED_30D, Granularity.MONTHLY,
            summary.count if summary else None,
            {
                "window_days": MONTHLY_WINDOW_DAYS,
                "target_value": float(goal.target_value),
                "window_total": summary.total if summary else 0,
                "unit": summary.unit if summary else period_unit(period_type),
            },
        ))
    else:
        for metric_type, granularity in (
            (MetricType.BEST_STREAK, Granularity.ALL_TIME),
            (MetricType.DAYS_COMPLETED_30D, Granularity.MONTHLY),
        ):
            rows.append(metric(metric_type, granularity, None, {"goal_missing": True}))

    weekly = agg.weekly_average
    rows.append(metric(
        MetricType.WEEKLY_AVERAGE, Granularity.WEEKLY,
        weekly.value if weekly else None,
        {"days_with_data": weekly.days_with_data, "window_size": weekly.window_days} if weekly else {},
        day=period_anchor(PeriodType.WEEKLY, today),
    ))
    monthly = agg.monthly_average
    rows.append(metric(
        MetricType.MONTHLY_AVERAGE, Granularity.MONTHLY,
        monthly.value if monthly else None,
        {"days_with_data": monthly.days_with_data, "window_size": monthly.window_days} if monthly else {},
        day=period_anchor(PeriodType.MONTHLY, today),
    ))
    rows.append(metric(
        MetricType.AVG_VALUE_30D, Granularity.MONTHLY,
        monthly.value if monthly else None,
        {"window_days": MONTHLY_WINDOW_DAYS,
         "days_with_data": monthly.days_with_data if monthly else 0},
    ))
    rows.append(metric(
        MetricType.TOTAL_ENTRIES_ALL_TIME, Granularity.ALL_TIME,
        agg.total_entries_all_time if agg.total_entries_all_time else None,
        {"window": "all_time", "value_sum": agg.all_time_value},
    ))
    return rows


def profile_metric_values(owner_id: str, agg: ProfileAggregates) -> list[MetricValue]:
    today = agg.logical_date

    def metric(metric_type, granularity, value, metadata, day=today, clear_scope="key") -> MetricValue:
        return MetricValue(
            owner_id=owner_id,
            habit_id=None,
            date=day,
            metric_type=metric_type,
            granularity=granularity,
            value=value,
            metadata=metadata,
            clear_scope=clear_scope,
        )

    totals_meta = {"habit_count": agg.active_habit_count}
    all_done = (
        agg.active_habit_count > 0
        and agg.goal_missing == 0
        and agg.completed_habits_today == agg.active_habit_count
    )
    progress_meta = {"total_active": agg.active_habit_count, "goal_missing": agg.goal_missing}
    return [
        metric(
            MetricType.BEST_STREAK_OVERALL, Granularity.ALL_TIME,
            agg.best_streak_overall if agg.best_streak_overall > 0 else None,
            {
                "source": "max_per_habit",
                "habit_count": agg.habits_with_entries,
                "best_habit_id": agg.best_streak_habit_id,
            },
            clear_scope="type",
        ),
        metric(MetricType.TOTAL_ENTRIES, Granularity.DAILY, agg.entries_today, totals_meta),
        metric(
            MetricType.TOTAL_ENTRIES, Granularity.WEEKLY, agg.entries_7d,
            {**totals_meta, "window_days": WEEKLY_WINDOW_DAYS},
            day=period_anchor(PeriodType.WEEKLY, today),
        ),
        metric(
            MetricType.TOTAL_ENTRIES, Granularity.MONTHLY, agg.entries_30d,
            {**totals_meta, "window_days": MONTHLY_WINDOW_DAYS},
            day=period_anchor(PeriodType.MONTHLY, today),
        ),
        metric(MetricType.COMPLETED_HABITS_TODAY, Granularity.DAILY, agg.completed_habits_today, progress_meta),
        metric(MetricType.ALL_GOALS_COMPLETED_TODAY, Granularity.DAILY, 1 if all_done else 0, progress_meta),
        metric(
            MetricType.COMPLETION_RATE_7D, Granularity.DAILY, agg.completion_7d.rate,
            {
                "completed_count": agg.completion_7d.count,
                "total_possible": agg.completion_7d.total,
                "window_days": WEEKLY_WINDOW_DAYS,
            },
        ),
        metric(
            MetricType.ACTIVE_DAYS, Granularity.MONTHLY, agg.active_days_30d,
            {"window_days": MONTHLY_WINDOW_DAYS},
        ),
    ]
