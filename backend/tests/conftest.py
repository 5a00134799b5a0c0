# backend/tests/conftest.py
"""
Pytest configuration for the lesson scheduling core.

Every test gets a fresh in-memory SQLite database with real commits and
rollbacks, a FixedClock pinned to the morning of 2025-03-09, and services
wired to both.
"""

import os
from pathlib import Path
import sys
from types import SimpleNamespace

# Keep a developer's .env out of the test run
os.environ.setdefault("CI", "true")

backend_dir = Path(__file__).resolve().parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from lessonbook.core.clock import FixedClock
from lessonbook.core.config import Settings
from lessonbook.database import Base
from lessonbook.domain.hour_range import HourRange
from lessonbook.events.lesson_events import LessonEvents
import lessonbook.models  # noqa: F401
from lessonbook.services.availability_service import AvailabilityService
from lessonbook.services.booking_service import BookingService
from lessonbook.services.hour_ledger_service import HourLedgerService
from lessonbook.services.lesson_status_service import LessonStatusService
from tests._utils.lesson_builders import LESSON_DAY, START_OF_TEST, TUTOR_ID


@pytest.fixture(scope="function")
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture(scope="function")
def db(session_factory) -> Session:
    """Create a new database session for each test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        environment="test",
        platform_timezone="UTC",
        default_unit_capacity=1,
        free_cancellation_hours=12,
        staff_cancellation_always_refunds=True,
    )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(START_OF_TEST)


@pytest.fixture(autouse=True)
def _isolate_event_listeners():
    LessonEvents.clear()
    yield
    LessonEvents.clear()


@pytest.fixture
def services(db, clock, test_settings) -> SimpleNamespace:
    """All services sharing one session, clock and settings."""
    availability = AvailabilityService(db, clock=clock, config=test_settings)
    ledger = HourLedgerService(db, clock=clock, config=test_settings)
    return SimpleNamespace(
        availability=availability,
        ledger=ledger,
        booking=BookingService(
            db,
            availability_service=availability,
            ledger_service=ledger,
            clock=clock,
            config=test_settings,
        ),
        status=LessonStatusService(db, clock=clock, config=test_settings),
    )


@pytest.fixture
def published_day(services) -> SimpleNamespace:
    """Tutor availability 08:00-16:00 on the lesson day, capacity 1 per hour."""
    services.availability.publish(TUTOR_ID, LESSON_DAY, HourRange(8, 16))
    return services
