"""
Calendar and goal-period utilities.

All functions are pure and total over valid input. A logical date is the
calendar day a timestamp falls on in the reference timezone, so every
consumer (job, API, offline client) agrees on which day an entry belongs to.

Period shapes
-------------
  daily    start = end = anchor
  weekly   Monday .. Sunday containing anchor
  monthly  first .. last day of anchor's month

The canonical metric date of a period (its "anchor") is the day itself for
daily goals, the Sunday for weekly goals and the month end for monthly goals.
"""
from __future__ import annotations

import calendar as _calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from typing import Iterator, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from habit_metrics.engine.errors import InvalidDateKeyError, InvalidPeriodTypeError
from habit_metrics.engine.types import PeriodType

DEFAULT_TIMEZONE = "America/Mexico_City"

DateLike = Union[date, str]
TimezoneLike = Union[str, ZoneInfo, None]


@dataclass(frozen=True)
class PeriodBounds:
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


# ---------------------------------------------------------------------------
# Timezones and date keys
# ---------------------------------------------------------------------------

@lru_cache(maxsize=32)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def resolve_timezone(tz: TimezoneLike) -> ZoneInfo:
    if isinstance(tz, ZoneInfo):
        return tz
    try:
        return _zone(tz or DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone {tz!r}") from exc


def parse_date_key(value: DateLike) -> date:
    """Coerce a `YYYY-MM-DD` key (or a date) to a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or len(value) != 10:
        raise InvalidDateKeyError(value)
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise InvalidDateKeyError(value) from None


def format_date_key(value: date) -> str:
    return value.isoformat()


def _parse_timestamp(value: Union[datetime, str]) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            raise InvalidDateKeyError(value) from None
    raise InvalidDateKeyError(value)


def to_logical_date(timestamp: Union[datetime, str], tz: TimezoneLike = None) -> date:
    """Calendar day of `timestamp` in the reference timezone. Naive = UTC."""
    ts = _parse_timestamp(timestamp)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(resolve_timezone(tz)).date()


def today_in(tz: TimezoneLike = None, now: datetime | None = None) -> date:
    return to_logical_date(now or datetime.now(timezone.utc), tz)


def utc_range_for_days(start: date, end: date, tz: TimezoneLike = None) -> tuple[datetime, datetime]:
    """UTC instants [start 00:00, end+1 00:00) of a logical-date range."""
    zone = resolve_timezone(tz)
    lo = datetime.combine(start, time.min, tzinfo=zone).astimezone(timezone.utc)
    hi = datetime.combine(end + timedelta(days=1), time.min, tzinfo=zone).astimezone(timezone.utc)
    return lo, hi


def iter_days(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


# ---------------------------------------------------------------------------
# Periods
# ---------------------------------------------------------------------------

def validate_period_type(period_type: str) -> str:
    value = getattr(period_type, "value", period_type)
    if value not in PeriodType.ALL:
        raise InvalidPeriodTypeError(period_type)
    return value


def _month_end(day: date) -> date:
    return day.replace(day=_calendar.monthrange(day.year, day.month)[1])


def period_bounds(period_type: str, anchor: DateLike) -> PeriodBounds:
    kind = validate_period_type(period_type)
    day = parse_date_key(anchor)
    if kind == PeriodType.DAILY:
        return PeriodBounds(day, day)
    if kind == PeriodType.WEEKLY:
        monday = day - timedelta(days=day.weekday())
        return PeriodBounds(monday, monday + timedelta(days=6))
    return PeriodBounds(day.replace(day=1), _month_end(day))


def period_start(period_type: str, anchor: DateLike) -> date:
    return period_bounds(period_type, anchor).start


def period_anchor(period_type: str, day: DateLike) -> date:
    """Canonical metric date of the period containing `day`."""
    return period_bounds(period_type, day).end


def previous_period_start(period_type: str, start: DateLike) -> date:
    """Start of the period immediately before the one starting at `start`."""
    kind = validate_period_type(period_type)
    first = period_start(kind, start)
    return period_start(kind, first - timedelta(days=1))


def next_period_start(period_type: str, start: DateLike) -> date:
    return period_bounds(period_type, start).end + timedelta(days=1)


def period_unit(period_type: str) -> str:
    kind = validate_period_type(period_type)
    return {"daily": "days", "weekly": "weeks", "monthly": "months"}[kind]
