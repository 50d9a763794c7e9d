"""
Local Fallback / Staleness Resolver.

Clients hold a cached copy of each habit's entries plus the last metric rows
they fetched. A cached metric is trusted only when its date has reached the
expected date of the current goal period (period anchor of today). Anything
older is stale: the value is recomputed locally with the same streak code the
recalculation job uses, and shown until the authoritative row catches up.

    expected = period_anchor(goal.period_type, today)
    use cached      if cached.date >= expected
    recompute local otherwise
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

from habit_metrics.engine.calendar import TimezoneLike, period_anchor
from habit_metrics.engine.streaks import STREAK_LOOKBACK_DAYS, compute_streaks
from habit_metrics.engine.types import GoalSpec, LogEntry, MetricType

SOURCE_METRIC = "metric"
SOURCE_LOCAL = "local"


@dataclass(frozen=True)
class CachedMetric:
    habit_id: Optional[int]
    date: date
    metric_type: str
    value: float


@dataclass(frozen=True)
class ResolvedMetric:
    value: float
    source: str
    metric_date: Optional[date]


@dataclass
class HabitState:
    habit_id: int
    kind: str
    goal: Optional[GoalSpec]
    entries: list[LogEntry] = field(default_factory=list)


def expected_metric_date(period_type: str, today: date) -> date:
    return period_anchor(period_type, today)


def is_stale(metric: Optional[CachedMetric], period_type: str, today: date) -> bool:
    if metric is None:
        return True
    return metric.date < expected_metric_date(period_type, today)


def local_streak(habit: HabitState, today: date, tz: TimezoneLike = None,
                 lookback_days: Optional[int] = STREAK_LOOKBACK_DAYS) -> int:
    if habit.goal is None or not habit.entries:
        return 0
    summary = compute_streaks(
        habit.entries,
        habit.goal.period_type,
        float(habit.goal.target_value),
        today,
        tz,
        lookback_days,
    )
    return summary.current


def resolve_streak(
    cached: Optional[CachedMetric],
    habit: HabitState,
    today: date,
    tz: TimezoneLike = None,
    lookback_days: Optional[int] = STREAK_LOOKBACK_DAYS,
) -> ResolvedMetric:
    if habit.goal is None:
        return ResolvedMetric(value=0, source=SOURCE_LOCAL, metric_date=None)
    if not is_stale(cached, habit.goal.period_type, today):
        return ResolvedMetric(value=cached.value, source=SOURCE_METRIC, metric_date=cached.date)
    return ResolvedMetric(
        value=local_streak(habit, today, tz, lookback_days),
        source=SOURCE_LOCAL,
        metric_date=cached.date if cached else None,
    )


def latest_by_habit(metrics: Iterable[CachedMetric], metric_type: str) -> dict[int, CachedMetric]:
    latest: dict[int, CachedMetric] = {}
    for metric in metrics:
        if metric.habit_id is None or metric.metric_type != metric_type:
            continue
        current = latest.get(metric.habit_id)
        if current is None or metric.date > current.date:
            latest[metric.habit_id] = metric
    return latest


def resolve_streaks(
    metrics: Iterable[CachedMetric],
    habits: Iterable[HabitState],
    today: date,
    tz: TimezoneLike = None,
    lookback_days: Optional[int] = STREAK_LOOKBACK_DAYS,
) -> dict[int, ResolvedMetric]:
    latest = latest_by_habit(metrics, MetricType.STREAK)
    return {
        habit.habit_id: resolve_streak(latest.get(habit.habit_id), habit, today, tz, lookback_days)
        for habit in habits
    }


class LocalHabitCache:
    """
    Versioned client-side store of habits, entries and fetched metrics.

    `version` increases on every local mutation, so a view can tell whether
    what it rendered is still current. Fetched metrics are merged with
    `reconcile`, which never replaces a row with an older one.
    """

    def __init__(self, tz: TimezoneLike = None, lookback_days: Optional[int] = STREAK_LOOKBACK_DAYS):
        self.tz = tz
        self.lookback_days = lookback_days
        self.version = 0
        self._habits: dict[int, HabitState] = {}
        self._metrics: dict[tuple[int, str], CachedMetric] = {}

    def _bump(self) -> None:
        self.version += 1

    def put_habit(self, habit: HabitState) -> None:
        self._habits[habit.habit_id] = habit
        self._bump()

    def habit(self, habit_id: int) -> Optional[HabitState]:
        return self._habits.get(habit_id)

    def apply_entry(self, entry: LogEntry) -> None:
        habit = self._habits.get(entry.habit_id)
        if habit is None:
            raise KeyError(entry.habit_id)
        if entry.id is not None:
            habit.entries = [e for e in habit.entries if e.id != entry.id]
        habit.entries.append(entry)
        self._bump()

    def remove_entry(self, habit_id: int, entry_id: int) -> bool:
        habit = self._habits.get(habit_id)
        if habit is None:
            return False
        before = len(habit.entries)
        habit.entries = [e for e in habit.entries if e.id != entry_id]
        if len(habit.entries) == before:
            return False
        self._bump()
        return True

    def reconcile(self, metrics: Iterable[CachedMetric]) -> int:
        """Merge fetched rows. Returns how many cached rows were replaced."""
        replaced = 0
        for metric in metrics:
            if metric.habit_id is None:
                continue
            key = (metric.habit_id, metric.metric_type)
            current = self._metrics.get(key)
            if current is not None and metric.date < current.date:
                continue
            self._metrics[key] = metric
            replaced += 1
        if replaced:
            self._bump()
        return replaced

    def cached_metric(self, habit_id: int, metric_type: str) -> Optional[CachedMetric]:
        return self._metrics.get((habit_id, metric_type))

    def streaks(self, today: date) -> dict[int, ResolvedMetric]:
        return {
            habit_id: resolve_streak(
                self._metrics.get((habit_id, MetricType.STREAK)),
                habit,
                today,
                self.tz,
                self.lookback_days,
            )
            for habit_id, habit in self._habits.items()
        }
