# backend/lessonbook/schemas/booking.py
"""
Booking request schemas.

A booking names a tutor day and a whole-hour range; everything else about
availability is resolved by the availability store at booking time.
"""

from datetime import date, time
from typing import Optional

from pydantic import ConfigDict, Field, field_validator, model_validator

from ..core.constants import MAX_REASON_LENGTH, MAX_TOPIC_LENGTH, MINUTES_PER_HOUR
from ..core.enums import ActorRole, LessonType
from ..domain.hour_range import HourRange
from .base import StandardizedModel, StrictRequestModel


class Actor(StandardizedModel):
    """Who is performing an operation."""

    role: ActorRole
    user_id: Optional[str] = None

    model_config = ConfigDict(use_enum_values=False, frozen=True)

    @classmethod
    def system(cls) -> "Actor":
        return cls(role=ActorRole.SYSTEM)

    @property
    def is_staff(self) -> bool:
        return self.role in (ActorRole.TUTOR, ActorRole.ADMIN)


class BookingRequest(StrictRequestModel):
    """Book one or more consecutive whole hours with a tutor."""

    tutor_id: str = Field(..., min_length=1, max_length=26)
    student_id: str = Field(..., min_length=1, max_length=26)
    lesson_date: date
    start_time: time = Field(..., description="Start time, on the hour")
    duration_minutes: int = Field(60, gt=0, le=24 * MINUTES_PER_HOUR)
    package_assignment_id: Optional[str] = Field(None, max_length=26)
    lesson_type: LessonType = LessonType.INDIVIDUAL
    language: Optional[str] = Field(None, max_length=50)
    topic: Optional[str] = Field(None, max_length=MAX_TOPIC_LENGTH)
    notes: Optional[str] = Field(None, max_length=MAX_REASON_LENGTH * 4)

    @field_validator("start_time", mode="before")
    @classmethod
    def parse_time_string(cls, v: object) -> object:
        """Accept HH:MM strings."""
        if isinstance(v, str):
            try:
                hour, minute = v.split(":")[:2]
                return time(int(hour), int(minute))
            except (ValueError, AttributeError):
                raise ValueError(f"Invalid time format: {v}. Expected HH:MM format.")
        return v

    @field_validator("start_time")
    @classmethod
    def validate_on_the_hour(cls, v: time) -> time:
        if v.minute or v.second or v.microsecond:
            raise ValueError("Lessons must start on the hour")
        return v.replace(tzinfo=None)

    @field_validator("duration_minutes")
    @classmethod
    def validate_whole_hours(cls, v: int) -> int:
        if v % MINUTES_PER_HOUR:
            raise ValueError("Lesson duration must be a whole number of hours")
        return v

    @field_validator("topic", "notes", "language")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() or None if v else v

    @model_validator(mode="after")
    def validate_within_day(self) -> "BookingRequest":
        if self.start_time.hour * MINUTES_PER_HOUR + self.duration_minutes > 24 * MINUTES_PER_HOUR:
            raise ValueError("Lesson cannot run past midnight")
        return self

    @property
    def hour_range(self) -> HourRange:
        return HourRange.from_lesson(self.start_time, self.duration_minutes)
