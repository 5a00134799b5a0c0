# backend/lessonbook/models/availability.py
"""
Hourly availability units.

One row per tutor, date and hour. A unit is the single source of truth for
what a tutor offered; the legacy half-day blocks are computed from these rows
at read time. Rows are never deleted, only closed, so the history of what
was offered survives.
"""

from __future__ import annotations

from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, Index, Integer, String

from lessonbook.database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class AvailabilityUnit(Base):
    __tablename__ = "availability_units"

    tutor_id = Column(String(26), primary_key=True)
    unit_date = Column(Date, primary_key=True)
    hour = Column(Integer, primary_key=True)

    is_open = Column(Boolean, nullable=False, default=True)
    hours_booked = Column(Integer, nullable=False, default=0)
    capacity = Column(Integer, nullable=False, default=1)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_now_utc,
        server_default=sa.func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_now_utc,
        onupdate=_now_utc,
        server_default=sa.func.now(),
    )

    __table_args__ = (
        CheckConstraint("hour >= 0 AND hour <= 23", name="ck_availability_units_hour"),
        CheckConstraint("capacity > 0", name="ck_availability_units_capacity_positive"),
        CheckConstraint(
            "hours_booked >= 0 AND hours_booked <= capacity",
            name="ck_availability_units_hours_booked_bounds",
        ),
        Index("ix_availability_units_tutor_date_open", "tutor_id", "unit_date", "is_open"),
    )

    @property
    def hours_free(self) -> int:
        return max(0, self.capacity - self.hours_booked)

    @property
    def is_bookable(self) -> bool:
        return bool(self.is_open) and self.hours_booked < self.capacity

    def label(self) -> str:
        return f"{self.hour:02d}:00 - {self.hour + 1:02d}:00"

    def __repr__(self) -> str:
        return (
            f"<AvailabilityUnit tutor={self.tutor_id} date={self.unit_date} hour={self.hour} "
            f"open={self.is_open} booked={self.hours_booked}/{self.capacity}>"
        )
