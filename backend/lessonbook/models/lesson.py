# backend/lessonbook/models/lesson.py
"""
Lesson model.

A lesson is created by the booking transaction and afterwards changes only
through the lesson state machine. Lessons are never deleted; the status
history table keeps the audit trail of every transition.
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Optional, cast

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from lessonbook.core.constants import MINUTES_PER_HOUR
from lessonbook.core.enums import LessonStatus, LessonType
from lessonbook.core.timezone_utils import combine_local
from lessonbook.core.ulid_helper import generate_ulid
from lessonbook.database import Base
from lessonbook.domain.hour_range import HourRange

_STATUS_VALUES = ", ".join(f"'{status.value}'" for status in LessonStatus)
_TYPE_VALUES = ", ".join(f"'{lesson_type.value}'" for lesson_type in LessonType)


class Lesson(Base):
    """A booked hour (or hours) between a student and a tutor."""

    __tablename__ = "lessons"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)

    tutor_id = Column(String(26), nullable=False, index=True)
    student_id = Column(String(26), nullable=False, index=True)
    package_assignment_id = Column(
        String(26), ForeignKey("package_assignments.id"), nullable=True, index=True
    )

    lesson_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, default=LessonStatus.SCHEDULED.value, index=True)
    status_updated_at = Column(DateTime(timezone=True), nullable=True)

    lesson_type = Column(String(20), nullable=False, default=LessonType.INDIVIDUAL.value)
    language = Column(String(50), nullable=True)
    topic = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    # Opaque handle to a meeting room provisioned elsewhere
    meeting_room_name = Column(String(255), nullable=True)

    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Cancellation tracking
    cancelled_by = Column(String(20), nullable=True)
    cancelled_by_user_id = Column(String(26), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    hours_refunded = Column(Boolean, nullable=True)

    # Feedback is the only thing that may change once the lesson is terminal
    student_rating = Column(Integer, nullable=True)
    student_feedback = Column(Text, nullable=True)
    feedback_submitted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    package_assignment = relationship("PackageAssignment")
    status_history = relationship(
        "LessonStatusHistory",
        back_populates="lesson",
        order_by="LessonStatusHistory.id",
    )

    __table_args__ = (
        CheckConstraint(f"status IN ({_STATUS_VALUES})", name="ck_lessons_status"),
        CheckConstraint(f"lesson_type IN ({_TYPE_VALUES})", name="ck_lessons_lesson_type"),
        CheckConstraint(
            "duration_minutes > 0 AND duration_minutes % 60 = 0",
            name="ck_lessons_duration_whole_hours",
        ),
        CheckConstraint(
            "student_rating IS NULL OR (student_rating >= 1 AND student_rating <= 5)",
            name="ck_lessons_student_rating",
        ),
        Index("ix_lessons_tutor_date_status", "tutor_id", "lesson_date", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Lesson {self.id}: student={self.student_id}, tutor={self.tutor_id}, "
            f"date={self.lesson_date}, time={self.start_time}-{self.end_time}, "
            f"status={self.status}>"
        )

    @property
    def status_enum(self) -> LessonStatus:
        return LessonStatus.parse(cast(str, self.status))

    @property
    def is_terminal(self) -> bool:
        return self.status_enum.is_terminal

    @property
    def duration_hours(self) -> int:
        return int(self.duration_minutes) // MINUTES_PER_HOUR

    @property
    def hour_range(self) -> HourRange:
        return HourRange.from_lesson(cast(time, self.start_time), int(self.duration_minutes))

    def starts_at(self, tz_name: Optional[str] = None) -> datetime:
        """Nominal start as aware UTC."""
        return combine_local(cast(date, self.lesson_date), cast(time, self.start_time), tz_name)
