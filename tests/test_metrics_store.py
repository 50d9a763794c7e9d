"""
Tests for the metrics store gateway against SQLite.

Each test uses its own owner id so rows never collide across tests.
"""
from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy.exc import IntegrityError

from habit_metrics.core.errors import StoreWriteConflictError
from habit_metrics.engine.types import MetricKey, MetricValue
from habit_metrics.models.metric import Metric
from habit_metrics.services import metrics_store
from habit_metrics.services.metrics_store import (
    decode_metadata,
    delete_metric,
    delete_metrics,
    delete_profile_metric_type,
    list_metrics,
    upsert_metric,
    upsert_metrics,
)

DAY = date(2025, 1, 15)


def _metric(owner, habit_id=1, value=1.0, metric_type="streak", day=DAY, granularity="daily", **meta):
    return MetricValue(
        owner_id=owner,
        habit_id=habit_id,
        date=day,
        metric_type=metric_type,
        granularity=granularity,
        value=value,
        metadata=meta,
    )


def _rows(db, owner):
    db.expire_all()
    return db.query(Metric).filter(Metric.owner_id == owner).all()


class TestUpsert:
    def test_second_write_replaces_first(self, db):
        owner = "store-replace"
        upsert_metric(db, _metric(owner, value=2, consecutive_periods=2))
        upsert_metric(db, _metric(owner, value=3, consecutive_periods=3))
        db.commit()
        rows = _rows(db, owner)
        assert len(rows) == 1
        assert float(rows[0].value) == 3
        assert decode_metadata(rows[0]) == {"consecutive_periods": 3}

    def test_profile_rows_are_unique_too(self, db):
        owner = "store-profile"
        upsert_metric(db, _metric(owner, habit_id=None, value=5, metric_type="active_days", granularity="monthly"))
        upsert_metric(db, _metric(owner, habit_id=None, value=6, metric_type="active_days", granularity="monthly"))
        db.commit()
        rows = _rows(db, owner)
        assert len(rows) == 1
        assert rows[0].habit_id is None
        assert float(rows[0].value) == 6

    def test_distinct_keys_get_distinct_rows(self, db):
        owner = "store-distinct"
        written = upsert_metrics(db, [
            _metric(owner, habit_id=1),
            _metric(owner, habit_id=2),
            _metric(owner, habit_id=None),
            _metric(owner, habit_id=1, day=date(2025, 1, 14)),
            _metric(owner, habit_id=1, granularity="weekly"),
        ])
        db.commit()
        assert written == 5
        assert len(_rows(db, owner)) == 5

    def test_none_value_rejected(self, db):
        with pytest.raises(ValueError):
            upsert_metric(db, _metric("store-none", value=None))

    def test_read_then_write_fallback(self, db, monkeypatch):
        owner = "store-fallback"
        monkeypatch.setattr(metrics_store, "_INSERT_BY_DIALECT", {})
        upsert_metric(db, _metric(owner, value=1))
        upsert_metric(db, _metric(owner, value=4))
        upsert_metric(db, _metric(owner, habit_id=None, value=7))
        upsert_metric(db, _metric(owner, habit_id=None, value=8))
        db.commit()
        values = sorted(float(r.value) for r in _rows(db, owner))
        assert values == [4, 8]

    def test_conflict_after_retry_raises(self, db, monkeypatch):
        calls = []

        def always_conflicts(session, metric):
            calls.append(metric)
            raise IntegrityError("INSERT INTO metrics", {}, Exception("duplicate key"))

        monkeypatch.setattr(metrics_store, "_INSERT_BY_DIALECT", {})
        monkeypatch.setattr(metrics_store, "_read_then_write", always_conflicts)
        with pytest.raises(StoreWriteConflictError) as exc_info:
            upsert_metric(db, _metric("store-conflict"))
        db.rollback()
        assert len(calls) == 2
        assert exc_info.value.code == "STORE_WRITE_CONFLICT"
        assert exc_info.value.details["key"]["owner_id"] == "store-conflict"


class TestDelete:
    def test_delete_single_key(self, db):
        owner = "store-del-key"
        upsert_metrics(db, [_metric(owner), _metric(owner, metric_type="best_streak", granularity="all_time")])
        db.commit()
        deleted = delete_metric(db, MetricKey(owner, 1, DAY, "streak", "daily"))
        db.commit()
        assert deleted == 1
        assert [r.metric_type for r in _rows(db, owner)] == ["best_streak"]

    def test_delete_profile_key(self, db):
        owner = "store-del-profile"
        upsert_metrics(db, [_metric(owner, habit_id=None), _metric(owner, habit_id=1)])
        db.commit()
        assert delete_metric(db, MetricKey(owner, None, DAY, "streak", "daily")) == 1
        db.commit()
        assert [r.habit_id for r in _rows(db, owner)] == [1]

    def test_delete_all_habit_rows(self, db):
        owner = "store-del-habit"
        upsert_metrics(db, [
            _metric(owner, habit_id=1),
            _metric(owner, habit_id=1, metric_type="goal_progress"),
            _metric(owner, habit_id=2),
            _metric(owner, habit_id=None),
        ])
        db.commit()
        assert delete_metrics(db, owner, 1) == 2
        db.commit()
        assert sorted((r.habit_id or 0) for r in _rows(db, owner)) == [0, 2]

    def test_delete_profile_type_across_dates(self, db):
        owner = "store-del-type"
        upsert_metrics(db, [
            _metric(owner, habit_id=None, metric_type="best_streak_overall", day=date(2025, 1, 1)),
            _metric(owner, habit_id=None, metric_type="best_streak_overall", day=DAY),
            _metric(owner, habit_id=3, metric_type="best_streak_overall"),
        ])
        db.commit()
        assert delete_profile_metric_type(db, owner, "best_streak_overall") == 2
        db.commit()
        assert [r.habit_id for r in _rows(db, owner)] == [3]


class TestList:
    def test_filters(self, db):
        owner = "store-list"
        upsert_metrics(db, [
            _metric(owner, habit_id=1, day=date(2025, 1, 10)),
            _metric(owner, habit_id=1, day=date(2025, 1, 15)),
            _metric(owner, habit_id=1, metric_type="best_streak", granularity="all_time"),
            _metric(owner, habit_id=None, metric_type="active_days", granularity="monthly"),
        ])
        db.commit()
        assert len(list_metrics(db, owner)) == 4
        assert len(list_metrics(db, owner, habit_id=1)) == 3
        assert len(list_metrics(db, owner, metric_type="streak")) == 2
        assert len(list_metrics(db, owner, granularity="all_time")) == 1
        assert len(list_metrics(db, owner, since=date(2025, 1, 11))) == 3
        assert len(list_metrics(db, owner, until=date(2025, 1, 10))) == 1
        profile = list_metrics(db, owner, profile_only=True)
        assert [r.metric_type for r in profile] == ["active_days"]

    def test_newest_first(self, db):
        owner = "store-order"
        upsert_metrics(db, [
            _metric(owner, day=date(2025, 1, 10)),
            _metric(owner, day=date(2025, 1, 12)),
        ])
        db.commit()
        assert [r.date for r in list_metrics(db, owner)] == [date(2025, 1, 12), date(2025, 1, 10)]

    def test_other_owner_invisible(self, db):
        upsert_metric(db, _metric("store-owner-a"))
        db.commit()
        assert list_metrics(db, "store-owner-b") == []
