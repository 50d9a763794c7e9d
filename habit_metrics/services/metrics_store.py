"""
Metrics store gateway.

upsert_metric(db, metric)      write-or-replace at the unique key
delete_metric(db, key)         remove one key
delete_metrics(db, owner, id)  remove every row of a habit
list_metrics(db, owner, ...)   filtered read

PostgreSQL and SQLite take a single INSERT .. ON CONFLICT DO UPDATE against
the habit unique constraint or, for profile rows, the partial index on
`habit_id IS NULL`. Any other dialect, or an IntegrityError raised by a
concurrent writer, falls back to read-then-write under a savepoint, retried
once before giving up with StoreWriteConflictError.

Nothing here commits: the caller owns the transaction.
"""
from __future__ import annotations

import json
import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from habit_metrics.core.errors import StoreWriteConflictError
from habit_metrics.core.logging import log_event
from habit_metrics.engine.types import MetricKey, MetricValue
from habit_metrics.models.metric import Metric

logger = logging.getLogger(__name__)

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}
_HABIT_KEY = ("owner_id", "habit_id", "date", "metric_type", "granularity")
_PROFILE_KEY = ("owner_id", "date", "metric_type", "granularity")
_FALLBACK_ATTEMPTS = 2


def _encode_metadata(metadata: Optional[dict]) -> str:
    return json.dumps(metadata or {}, default=str, sort_keys=True)


def _decimal(value: float) -> Decimal:
    return Decimal(str(value))


def _key_query(db: Session, key: MetricKey) -> Query:
    query = db.query(Metric).filter(
        Metric.owner_id == key.owner_id,
        Metric.date == key.date,
        Metric.metric_type == key.metric_type,
        Metric.granularity == key.granularity,
    )
    if key.habit_id is None:
        return query.filter(Metric.habit_id.is_(None))
    return query.filter(Metric.habit_id == key.habit_id)


def _on_conflict_upsert(db: Session, dialect: str, metric: MetricValue) -> None:
    table = Metric.__table__
    stmt = _INSERT_BY_DIALECT[dialect](table).values(
        owner_id=metric.owner_id,
        habit_id=metric.habit_id,
        date=metric.date,
        metric_type=metric.metric_type,
        granularity=metric.granularity,
        value=_decimal(metric.value),
        metadata=_encode_metadata(metric.metadata),
    )
    updates = {
        "value": stmt.excluded["value"],
        "metadata": stmt.excluded["metadata"],
        "updated_at": func.now(),
    }
    if metric.habit_id is None:
        stmt = stmt.on_conflict_do_update(
            index_elements=list(_PROFILE_KEY),
            index_where=table.c.habit_id.is_(None),
            set_=updates,
        )
    else:
        stmt = stmt.on_conflict_do_update(index_elements=list(_HABIT_KEY), set_=updates)
    db.execute(stmt)


def _read_then_write(db: Session, metric: MetricValue) -> None:
    row = _key_query(db, metric.key).first()
    if row is None:
        db.add(Metric(
            owner_id=metric.owner_id,
            habit_id=metric.habit_id,
            date=metric.date,
            metric_type=metric.metric_type,
            granularity=metric.granularity,
            value=_decimal(metric.value),
            metric_metadata=_encode_metadata(metric.metadata),
        ))
    else:
        row.value = _decimal(metric.value)
        row.metric_metadata = _encode_metadata(metric.metadata)
    db.flush()


def upsert_metric(db: Session, metric: MetricValue) -> None:
    """Write-or-replace one metric row. `metric.value` must not be None."""
    if metric.value is None:
        raise ValueError("upsert_metric needs a value; use delete_metric to clear a key")

    dialect = db.get_bind().dialect.name
    if dialect in _INSERT_BY_DIALECT:
        try:
            with db.begin_nested():
                _on_conflict_upsert(db, dialect, metric)
            return
        except IntegrityError:
            log_event(logger, "warning", "metrics.store.conflict", key=metric.key.as_dict(), path="on_conflict")

    for attempt in range(1, _FALLBACK_ATTEMPTS + 1):
        try:
            with db.begin_nested():
                _read_then_write(db, metric)
            return
        except IntegrityError:
            log_event(logger, "warning", "metrics.store.conflict", key=metric.key.as_dict(), attempt=attempt)

    raise StoreWriteConflictError(metric.key.as_dict())


def upsert_metrics(db: Session, metrics: Iterable[MetricValue]) -> int:
    count = 0
    for metric in metrics:
        upsert_metric(db, metric)
        count += 1
    return count


def delete_metric(db: Session, key: MetricKey) -> int:
    return _key_query(db, key).delete(synchronize_session=False)


def delete_metrics(db: Session, owner_id: str, habit_id: int) -> int:
    """Remove every metric row of one habit."""
    return (
        db.query(Metric)
        .filter(Metric.owner_id == owner_id, Metric.habit_id == habit_id)
        .delete(synchronize_session=False)
    )


def delete_profile_metric_type(db: Session, owner_id: str, metric_type: str) -> int:
    """Remove every profile row of one metric type, whatever its date."""
    return (
        db.query(Metric)
        .filter(
            Metric.owner_id == owner_id,
            Metric.habit_id.is_(None),
            Metric.metric_type == metric_type,
        )
        .delete(synchronize_session=False)
    )


def list_metrics(
    db: Session,
    owner_id: str,
    habit_id: Optional[int] = None,
    metric_type: Optional[str] = None,
    granularity: Optional[str] = None,
    since: Optional[date] = None,
    until: Optional[date] = None,
    profile_only: bool = False,
    limit: int = 500,
) -> list[Metric]:
    query = db.query(Metric).filter(Metric.owner_id == owner_id)
    if profile_only:
        query = query.filter(Metric.habit_id.is_(None))
    elif habit_id is not None:
        query = query.filter(Metric.habit_id == habit_id)
    if metric_type is not None:
        query = query.filter(Metric.metric_type == metric_type)
    if granularity is not None:
        query = query.filter(Metric.granularity == granularity)
    if since is not None:
        query = query.filter(Metric.date >= since)
    if until is not None:
        query = query.filter(Metric.date <= until)
    return (
        query.order_by(Metric.date.desc(), Metric.metric_type.asc(), Metric.id.asc())
        .limit(limit)
        .all()
    )


def decode_metadata(row: Metric) -> dict:
    if not row.metric_metadata:
        return {}
    return json.loads(row.metric_metadata)
