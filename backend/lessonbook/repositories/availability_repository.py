# backend/lessonbook/repositories/availability_repository.py
"""
Availability Repository for hourly availability units.

All capacity changes are single guarded UPDATE statements; callers compare
the returned row count with the number of hours they asked for. Rows are
always locked in ascending hour order so two reservations over overlapping
ranges cannot deadlock each other.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
import logging
from typing import List, Optional, Sequence

from sqlalchemy import Select, and_, case, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.availability import AvailabilityUnit
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AvailabilityRepository(BaseRepository[AvailabilityUnit]):
    """Data access for AvailabilityUnit rows."""

    def __init__(self, db: Session):
        super().__init__(db, AvailabilityUnit)

    def get_unit(self, tutor_id: str, unit_date: date, hour: int) -> Optional[AvailabilityUnit]:
        return self.get_by_id((tutor_id, unit_date, hour))

    def get_units(
        self,
        tutor_id: str,
        unit_date: date,
        hours: Optional[Sequence[int]] = None,
        *,
        for_update: bool = False,
    ) -> List[AvailabilityUnit]:
        """
        Units of one tutor day, ordered by hour.

        Args:
            hours: Restrict to these hours (all of the day when omitted)
            for_update: Lock the rows; the ascending hour order is the lock order
        """
        stmt = select(AvailabilityUnit).where(
            AvailabilityUnit.tutor_id == tutor_id,
            AvailabilityUnit.unit_date == unit_date,
        )
        if hours is not None:
            stmt = stmt.where(AvailabilityUnit.hour.in_(list(hours)))
        stmt = stmt.order_by(AvailabilityUnit.hour)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        try:
            return list(self.db.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading units for {tutor_id} on {unit_date}: {str(e)}")
            raise RepositoryException(f"Failed to load availability: {str(e)}") from e

    def add_unit(self, tutor_id: str, unit_date: date, hour: int, capacity: int) -> AvailabilityUnit:
        return self.create(
            tutor_id=tutor_id,
            unit_date=unit_date,
            hour=hour,
            capacity=capacity,
            hours_booked=0,
            is_open=True,
        )

    def increment_booked(self, tutor_id: str, unit_date: date, hours: Sequence[int]) -> int:
        """
        Book one more hour on every unit in ``hours`` that still has room.

        Units that reach capacity are closed in the same statement. Returns the
        number of rows changed; anything short of ``len(hours)`` means the
        caller must roll back.
        """
        stmt = (
            update(AvailabilityUnit)
            .where(
                and_(
                    AvailabilityUnit.tutor_id == tutor_id,
                    AvailabilityUnit.unit_date == unit_date,
                    AvailabilityUnit.hour.in_(list(hours)),
                    AvailabilityUnit.is_open.is_(True),
                    AvailabilityUnit.hours_booked < AvailabilityUnit.capacity,
                )
            )
            .values(
                hours_booked=AvailabilityUnit.hours_booked + 1,
                is_open=case(
                    (AvailabilityUnit.hours_booked + 1 >= AvailabilityUnit.capacity, False),
                    else_=AvailabilityUnit.is_open,
                ),
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return self._execute_guarded(stmt, tutor_id, unit_date, hours)

    def decrement_booked(self, tutor_id: str, unit_date: date, hours: Sequence[int]) -> int:
        """Give back one booked hour per unit, floored at zero, reopening the unit."""
        stmt = (
            update(AvailabilityUnit)
            .where(
                and_(
                    AvailabilityUnit.tutor_id == tutor_id,
                    AvailabilityUnit.unit_date == unit_date,
                    AvailabilityUnit.hour.in_(list(hours)),
                    AvailabilityUnit.hours_booked > 0,
                )
            )
            .values(
                hours_booked=AvailabilityUnit.hours_booked - 1,
                is_open=True,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return self._execute_guarded(stmt, tutor_id, unit_date, hours)

    def open_units_query(
        self, tutor_id: str, date_from: date, date_to: date
    ) -> Select[tuple[AvailabilityUnit]]:
        """Statement for bookable units in ``[date_from, date_to]``, date then hour."""
        return (
            select(AvailabilityUnit)
            .where(
                AvailabilityUnit.tutor_id == tutor_id,
                AvailabilityUnit.unit_date >= date_from,
                AvailabilityUnit.unit_date <= date_to,
                AvailabilityUnit.is_open.is_(True),
                AvailabilityUnit.hours_booked < AvailabilityUnit.capacity,
            )
            .order_by(AvailabilityUnit.unit_date, AvailabilityUnit.hour)
        )

    def _execute_guarded(
        self, stmt, tutor_id: str, unit_date: date, hours: Sequence[int]
    ) -> int:
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as e:
            self.logger.error(f"Guarded update failed for {tutor_id} on {unit_date}: {str(e)}")
            raise RepositoryException(f"Failed to update availability: {str(e)}") from e
        self._expire_cached(tutor_id, unit_date, hours)
        return int(result.rowcount or 0)

    def _expire_cached(self, tutor_id: str, unit_date: date, hours: Sequence[int]) -> None:
        # Bulk updates bypass the identity map
        for hour in hours:
            unit = self.db.identity_map.get(
                self.db.identity_key(AvailabilityUnit, (tutor_id, unit_date, hour))
            )
            if unit is not None:
                self.db.expire(unit)
