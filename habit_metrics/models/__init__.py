from .habit import Habit, HabitKind, HabitStatus
from .goal import Goal, PeriodType
from .entry import HabitEntry
from .metric import Metric
from .prediction import HabitPrediction

__all__ = [
    "Habit",
    "HabitKind",
    "HabitStatus",
    "Goal",
    "PeriodType",
    "HabitEntry",
    "Metric",
    "HabitPrediction",
]
