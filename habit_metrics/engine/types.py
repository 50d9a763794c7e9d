"""
Plain value types shared by the engine, the recalculation job and the
client-side fallback resolver. No ORM, no Pydantic.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional


class PeriodType:
    DAILY   = "daily"
    WEEKLY  = "weekly"
    MONTHLY = "monthly"

    ALL = (DAILY, WEEKLY, MONTHLY)


class HabitKind:
    NUMERIC = "numeric"
    BINARY  = "binary"


class Granularity:
    DAILY    = "daily"
    WEEKLY   = "weekly"
    MONTHLY  = "monthly"
    ALL_TIME = "all_time"


class MetricType:
    # habit-scoped
    DAILY_TOTAL            = "daily_total"
    STREAK                 = "streak"
    BEST_STREAK            = "best_streak"
    GOAL_PROGRESS          = "goal_progress"
    WEEKLY_AVERAGE         = "weekly_average"
    MONTHLY_AVERAGE        = "monthly_average"
    DAYS_COMPLETED_30D     = "days_completed_30d"
    AVG_VALUE_30D          = "avg_value_30d"
    TOTAL_ENTRIES_ALL_TIME = "total_entries_all_time"

    # profile-scoped (habit_id is None)
    BEST_STREAK_OVERALL       = "best_streak_overall"
    TOTAL_ENTRIES             = "total_entries"
    COMPLETED_HABITS_TODAY    = "completed_habits_today"
    ALL_GOALS_COMPLETED_TODAY = "all_goals_completed_today"
    COMPLETION_RATE_7D        = "completion_rate_7d"
    ACTIVE_DAYS               = "active_days"


@dataclass(frozen=True)
class LogEntry:
    """One habit entry as the engine sees it."""
    value: float
    logged_at: datetime
    habit_id: Optional[int] = None
    id: Optional[int] = None


@dataclass(frozen=True)
class GoalSpec:
    period_type: str
    target_value: float


@dataclass(frozen=True)
class MetricKey:
    owner_id: str
    habit_id: Optional[int]
    date: date
    metric_type: str
    granularity: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "owner_id": self.owner_id,
            "habit_id": self.habit_id,
            "date": self.date,
            "metric_type": self.metric_type,
            "granularity": self.granularity,
        }


@dataclass
class MetricValue:
    """
    A metric computed for one key. `value is None` means the metric is
    no longer computable and its row must be removed.
    """
    owner_id: str
    habit_id: Optional[int]
    date: date
    metric_type: str
    granularity: str
    value: Optional[float]
    metadata: dict[str, Any] = field(default_factory=dict)
    # "key": delete only this row; "type": delete every row of this metric_type
    clear_scope: str = "key"

    @property
    def key(self) -> MetricKey:
        return MetricKey(
            owner_id=self.owner_id,
            habit_id=self.habit_id,
            date=self.date,
            metric_type=self.metric_type,
            granularity=self.granularity,
        )
