"""
Shared pytest fixtures.

Uses a file-backed SQLite database so no Postgres is required for tests.
Background recalculations scheduled by the API run synchronously after each
TestClient response, on sessions from the test session factory.
"""
import os

os.environ["DATABASE_URL"] = "sqlite:///./test_habit_metrics.db"
os.environ["REFERENCE_TIMEZONE"] = "America/Mexico_City"

from datetime import datetime, time, timezone  # noqa: E402
from zoneinfo import ZoneInfo  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

import habit_metrics.models  # noqa: E402,F401
from habit_metrics.db.base import Base, get_db, get_session_factory  # noqa: E402
from habit_metrics.engine.calendar import parse_date_key  # noqa: E402
from habit_metrics.engine.types import LogEntry  # noqa: E402
from habit_metrics.main import app  # noqa: E402

SQLITE_URL = "sqlite:///./test_habit_metrics.db"
TZ = ZoneInfo("America/Mexico_City")

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


def override_get_session_factory():
    return TestingSessionLocal


def local_ts(day, hour: int = 12, minute: int = 0) -> datetime:
    """Aware UTC timestamp for a wall-clock time in the reference timezone."""
    return datetime.combine(parse_date_key(day), time(hour, minute), tzinfo=TZ).astimezone(timezone.utc)


def entry(day, value: float = 1, hour: int = 12, habit_id=None, entry_id=None) -> LogEntry:
    return LogEntry(value=value, logged_at=local_ts(day, hour), habit_id=habit_id, id=entry_id)


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def session_factory():
    return TestingSessionLocal


@pytest.fixture()
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = override_get_session_factory
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
