# backend/tests/conftest.py
"""
Shared fixtures for the schedule expansion test suite.

Every test gets a fresh in-memory SQLite database so services can commit
and roll back freely. The pysqlite SAVEPOINT fix is applied so per-slot
nested transactions behave as they do on PostgreSQL.
"""

from datetime import date, datetime, timezone
import os
from typing import Any, Callable, Iterator

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("CI", "1")

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.database import Base, enable_sqlite_savepoints  # noqa: E402

# Import models so Base.metadata is populated for create_all.
import app.models  # noqa: F401, E402
from app.models.schedule_exception import DoctorScheduleException  # noqa: E402
from app.models.schedule_rule import DoctorScheduleRule  # noqa: E402
from tests.helpers.schedule_data import DOCTOR_ID  # noqa: E402


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(test_engine)
    Base.metadata.create_all(test_engine)
    yield test_engine
    Base.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture
def db(engine) -> Iterator[Session]:
    """Session bound to the per-test database."""
    TestingSession = sessionmaker(
        bind=engine, autocommit=False, autoflush=False, expire_on_commit=False, future=True
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def make_rule(db: Session) -> Callable[..., DoctorScheduleRule]:
    """Persist a rule; defaults to the Mon/Wed 09:00-11:00 hourly rule."""

    def _make(**overrides: Any) -> DoctorScheduleRule:
        fields: dict = {
            "doctor_id": DOCTOR_ID,
            "frequency": "weekly",
            "interval": 1,
            "by_week_day": [1, 3],
            "by_month_day": [],
            "start_date": date(2024, 1, 1),
            "end_date": None,
            "start_time": "09:00",
            "end_time": "11:00",
            "slot_duration": 60,
            "appointment_type": "video",
            "is_active": True,
        }
        fields.update(overrides)
        rule = DoctorScheduleRule(**fields)
        db.add(rule)
        db.commit()
        return rule

    return _make


@pytest.fixture
def make_exception(db: Session) -> Callable[..., DoctorScheduleException]:
    """Persist an exception for DOCTOR_ID."""

    def _make(exception_date: date, exception_type: str, **overrides: Any) -> DoctorScheduleException:
        stamp = overrides.pop("updated_at", datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc))
        row = DoctorScheduleException(
            doctor_id=overrides.pop("doctor_id", DOCTOR_ID),
            exception_date=exception_date,
            exception_type=exception_type,
            created_at=stamp,
            updated_at=stamp,
            **overrides,
        )
        db.add(row)
        db.commit()
        return row

    return _make
