# backend/lessonbook/services/availability_service.py
"""
Availability Service for the lesson scheduling core.

Hourly units are the only stored form of availability. Publishing and
withdrawing commit on their own; reserving and releasing run inside the
caller's transaction (booking, cancellation) and never commit.
"""

from __future__ import annotations

from datetime import date
from typing import Iterator, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import Settings
from ..core.constants import COARSE_BLOCKS
from ..core.exceptions import (
    CapacityExceededError,
    ConflictError,
    NotOpenError,
    ValidationException,
)
from ..domain.hour_range import HourRange
from ..models.availability import AvailabilityUnit
from ..repositories.availability_repository import AvailabilityRepository
from ..schemas.availability import CoarseBlockView
from .base import BaseService


class AvailabilityQuery:
    """
    Lazy view over a tutor's bookable units in a date range.

    Nothing is read until iteration starts, and every iteration runs a fresh
    query, so the same object can be iterated again to see current state.
    """

    def __init__(
        self,
        repository: AvailabilityRepository,
        tutor_id: str,
        date_from: date,
        date_to: date,
        *,
        batch_size: int = 100,
    ):
        self._repository = repository
        self.tutor_id = tutor_id
        self.date_from = date_from
        self.date_to = date_to
        self.batch_size = batch_size

    def __iter__(self) -> Iterator[AvailabilityUnit]:
        stmt = self._repository.open_units_query(self.tutor_id, self.date_from, self.date_to)
        result = self._repository.db.execute(stmt.execution_options(yield_per=self.batch_size))
        for unit in result.scalars():
            yield unit

    def __repr__(self) -> str:
        return f"<AvailabilityQuery tutor={self.tutor_id} {self.date_from}..{self.date_to}>"


class AvailabilityService(BaseService):
    """Publish, withdraw, reserve and release hourly availability."""

    def __init__(
        self,
        db: Session,
        repository: Optional[AvailabilityRepository] = None,
        *,
        clock: Optional[Clock] = None,
        config: Optional[Settings] = None,
    ):
        super().__init__(db, clock=clock, config=config)
        self.repository = repository or AvailabilityRepository(db)

    @BaseService.measure_operation("publish_availability")
    def publish(
        self,
        tutor_id: str,
        unit_date: date,
        hour_range: HourRange,
        *,
        capacity: Optional[int] = None,
        replace: bool = False,
    ) -> List[AvailabilityUnit]:
        """
        Open the hours in ``hour_range`` for booking.

        Args:
            capacity: Capacity for the units (default: existing capacity, or the
                configured default for new units)
            replace: Also close the day's open hours outside ``hour_range``

        Raises:
            ConflictError: The change would close or shrink a booked unit
        """
        self._validate_range(hour_range)
        if capacity is not None and capacity < 1:
            raise ValidationException("Capacity must be at least 1", code="INVALID_CAPACITY")

        with self.transaction():
            existing = {
                unit.hour: unit
                for unit in self.repository.get_units(tutor_id, unit_date, for_update=True)
            }
            conflicts: list[int] = []
            published: list[AvailabilityUnit] = []

            for hour in hour_range:
                unit = existing.get(hour)
                if unit is None:
                    published.append(
                        self.repository.add_unit(
                            tutor_id,
                            unit_date,
                            hour,
                            capacity or self.settings.default_unit_capacity,
                        )
                    )
                    continue
                new_capacity = capacity if capacity is not None else unit.capacity
                if unit.hours_booked > new_capacity:
                    conflicts.append(hour)
                    continue
                unit.capacity = new_capacity
                unit.is_open = unit.hours_booked < new_capacity
                published.append(unit)

            if replace:
                for hour, unit in existing.items():
                    if hour in hour_range:
                        continue
                    if unit.hours_booked > 0:
                        conflicts.append(hour)
                    elif unit.is_open:
                        unit.is_open = False

            if conflicts:
                raise ConflictError(
                    f"Tutor {tutor_id} has bookings on {unit_date} at hours {sorted(conflicts)}",
                    details={
                        "tutor_id": tutor_id,
                        "date": unit_date.isoformat(),
                        "hours": sorted(conflicts),
                    },
                )
            self.repository.flush()

        self.log_operation(
            "publish_availability",
            tutor_id=tutor_id,
            date=unit_date.isoformat(),
            hours=hour_range.label(),
            replace=replace,
        )
        return published

    @BaseService.measure_operation("withdraw_availability")
    def withdraw(self, tutor_id: str, unit_date: date, hour_range: HourRange) -> int:
        """Close the units in ``hour_range``. Returns how many were open."""
        with self.transaction():
            units = self.repository.get_units(
                tutor_id, unit_date, hour_range.hours, for_update=True
            )
            booked = [unit.hour for unit in units if unit.hours_booked > 0]
            if booked:
                raise ConflictError(
                    f"Tutor {tutor_id} has bookings on {unit_date} at hours {booked}",
                    details={"tutor_id": tutor_id, "date": unit_date.isoformat(), "hours": booked},
                )
            closed = 0
            for unit in units:
                if unit.is_open:
                    unit.is_open = False
                    closed += 1
            self.repository.flush()

        self.log_operation(
            "withdraw_availability", tutor_id=tutor_id, date=unit_date.isoformat(), closed=closed
        )
        return closed

    @BaseService.measure_operation("reserve_hours")
    def reserve(self, tutor_id: str, unit_date: date, hour_range: HourRange) -> List[int]:
        """
        Book one hour on every unit of ``hour_range``, all or nothing.

        Runs inside the caller's transaction. On failure some units may already
        have been incremented; the caller's rollback undoes them.

        Raises:
            NotOpenError: A unit is missing or closed by the tutor
            CapacityExceededError: A unit is full
        """
        self._validate_range(hour_range)
        hours = hour_range.hours

        units = self.repository.get_units(tutor_id, unit_date, hours, for_update=True)
        self._raise_if_unbookable(tutor_id, unit_date, hours, units)

        updated = self.repository.increment_booked(tutor_id, unit_date, hours)
        if updated != len(hours):
            # Lost a race after the rows were read; report the current state
            units = self.repository.get_units(tutor_id, unit_date, hours, for_update=True)
            self._raise_if_unbookable(tutor_id, unit_date, hours, units)
            raise CapacityExceededError(tutor_id, unit_date.isoformat(), hours)

        self.logger.debug(
            "Reserved hours",
            extra={"tutor_id": tutor_id, "date": unit_date.isoformat(), "hours": hours},
        )
        return hours

    @BaseService.measure_operation("release_hours")
    def release(self, tutor_id: str, unit_date: date, hour_range: HourRange) -> List[int]:
        """
        Give back one booked hour per unit. Idempotent for units with nothing booked.

        Runs inside the caller's transaction. Returns the hours actually released.
        """
        units = self.repository.get_units(tutor_id, unit_date, hour_range.hours, for_update=True)
        releasable = [unit.hour for unit in units if unit.hours_booked > 0]
        if releasable:
            self.repository.decrement_booked(tutor_id, unit_date, releasable)
        return releasable

    def available_hours(self, tutor_id: str, date_from: date, date_to: date) -> AvailabilityQuery:
        """Bookable units between two dates (inclusive), ordered by date then hour."""
        if date_to < date_from:
            raise ValidationException("date_to must not be before date_from", code="INVALID_RANGE")
        return AvailabilityQuery(self.repository, tutor_id, date_from, date_to)

    def get_day(self, tutor_id: str, unit_date: date) -> List[AvailabilityUnit]:
        return self.repository.get_units(tutor_id, unit_date)

    def coarse_blocks(self, tutor_id: str, unit_date: date) -> List[CoarseBlockView]:
        """Legacy half-day blocks computed from the day's hourly units."""
        units = {unit.hour: unit for unit in self.repository.get_units(tutor_id, unit_date)}
        views: list[CoarseBlockView] = []
        for name, (start, end) in COARSE_BLOCKS.items():
            block_units = [units[hour] for hour in range(start, end) if hour in units]
            views.append(
                CoarseBlockView(
                    name=name,
                    start_hour=start,
                    end_hour=end,
                    capacity=self.settings.coarse_block_capacity,
                    open_hours=sum(1 for unit in block_units if unit.is_bookable),
                    booked_hours=sum(unit.hours_booked for unit in block_units),
                )
            )
        return views

    def _validate_range(self, hour_range: HourRange) -> None:
        lower = self.settings.bookable_day_start_hour
        upper = self.settings.bookable_day_end_hour
        if not hour_range.within(lower, upper):
            raise ValidationException(
                f"Hours {hour_range.label()} fall outside bookable hours {lower}-{upper}",
                code="HOURS_OUT_OF_BOUNDS",
                details={"start": hour_range.start, "end": hour_range.end},
            )

    @staticmethod
    def _raise_if_unbookable(
        tutor_id: str,
        unit_date: date,
        hours: Sequence[int],
        units: Sequence[AvailabilityUnit],
    ) -> None:
        by_hour = {unit.hour: unit for unit in units}
        day = unit_date.isoformat()

        not_open = [
            hour
            for hour in hours
            if hour not in by_hour
            or (not by_hour[hour].is_open and by_hour[hour].hours_booked < by_hour[hour].capacity)
        ]
        if not_open:
            raise NotOpenError(tutor_id, day, not_open)

        full = [hour for hour in hours if by_hour[hour].hours_booked >= by_hour[hour].capacity]
        if full:
            raise CapacityExceededError(tutor_id, day, full)
