"""Builders shared by the lesson scheduling tests."""

from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from lessonbook.core.enums import ActorRole
from lessonbook.models.package import PackageAssignment
from lessonbook.schemas.booking import Actor, BookingRequest

TUTOR_ID = "tutor-anna"
STUDENT_ID = "student-piotr"
OTHER_STUDENT_ID = "student-kasia"
LESSON_DAY = date(2025, 3, 10)
START_OF_TEST = datetime(2025, 3, 9, 8, 0, tzinfo=timezone.utc)


def at(day: date, hour: int, minute: int = 0) -> datetime:
    """Aware UTC instant on ``day``."""
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)


def make_assignment(
    db: Session,
    *,
    student_id: str = STUDENT_ID,
    hours: int = 5,
    expires_at: Optional[datetime] = None,
    is_active: bool = True,
) -> PackageAssignment:
    """Insert and commit a package assignment without going through a catalogue package."""
    assignment = PackageAssignment(
        student_id=student_id,
        assigned_at=START_OF_TEST - timedelta(days=1),
        expires_at=expires_at or START_OF_TEST + timedelta(days=30),
        hours_remaining=hours,
        is_active=is_active,
    )
    db.add(assignment)
    db.commit()
    return assignment


def booking_request(
    *,
    start_hour: int = 10,
    hours: int = 1,
    assignment_id: Optional[str] = None,
    student_id: str = STUDENT_ID,
    lesson_date: date = LESSON_DAY,
) -> BookingRequest:
    return BookingRequest(
        tutor_id=TUTOR_ID,
        student_id=student_id,
        lesson_date=lesson_date,
        start_time=f"{start_hour:02d}:00",
        duration_minutes=hours * 60,
        package_assignment_id=assignment_id,
    )


def student(user_id: str = STUDENT_ID) -> Actor:
    return Actor(role=ActorRole.STUDENT, user_id=user_id)


def tutor(user_id: str = TUTOR_ID) -> Actor:
    return Actor(role=ActorRole.TUTOR, user_id=user_id)


def admin(user_id: str = "admin-1") -> Actor:
    return Actor(role=ActorRole.ADMIN, user_id=user_id)
