# backend/lessonbook/repositories/package_assignment_repository.py
"""
Repository for packages and package assignments (the hour ledger).

Balance changes are conditional UPDATE statements so that two debits racing
on the same assignment can never take it below zero: the database applies
the condition and the decrement as one step.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.package import Package, PackageAssignment
from .base_repository import BaseRepository


class PackageRepository(BaseRepository[Package]):
    def __init__(self, db: Session):
        super().__init__(db, Package)


class PackageAssignmentRepository(BaseRepository[PackageAssignment]):
    """Data access for PackageAssignment rows."""

    def __init__(self, db: Session):
        super().__init__(db, PackageAssignment)

    def conditional_debit(self, assignment_id: str, hours: int, now: datetime) -> int:
        """
        Decrement the balance only if it is active, unexpired and large enough.

        Returns:
            1 when the debit was applied, 0 otherwise
        """
        stmt = (
            update(PackageAssignment)
            .where(
                and_(
                    PackageAssignment.id == assignment_id,
                    PackageAssignment.hours_remaining >= hours,
                    PackageAssignment.is_active.is_(True),
                    PackageAssignment.expires_at >= now,
                )
            )
            .values(hours_remaining=PackageAssignment.hours_remaining - hours)
            .execution_options(synchronize_session=False)
        )
        return self._execute_balance_update(stmt, assignment_id)

    def increment(self, assignment_id: str, hours: int) -> int:
        """Add hours back unconditionally. Returns 0 if the assignment does not exist."""
        stmt = (
            update(PackageAssignment)
            .where(PackageAssignment.id == assignment_id)
            .values(hours_remaining=PackageAssignment.hours_remaining + hours)
            .execution_options(synchronize_session=False)
        )
        return self._execute_balance_update(stmt, assignment_id)

    def reload(self, assignment_id: str) -> Optional[PackageAssignment]:
        """Fresh read of one assignment, bypassing stale identity-map state."""
        stmt = (
            select(PackageAssignment)
            .where(PackageAssignment.id == assignment_id)
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def find_active_for_student(self, student_id: str, now: datetime) -> List[PackageAssignment]:
        """Usable assignments, soonest expiry first."""
        stmt = (
            select(PackageAssignment)
            .where(
                PackageAssignment.student_id == student_id,
                PackageAssignment.is_active.is_(True),
                PackageAssignment.expires_at >= now,
                PackageAssignment.hours_remaining > 0,
            )
            .order_by(PackageAssignment.expires_at, PackageAssignment.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def deactivate_expired(self, now: datetime) -> int:
        """Mark every expired but still active assignment inactive."""
        stmt = (
            update(PackageAssignment)
            .where(
                PackageAssignment.is_active.is_(True),
                PackageAssignment.expires_at < now,
            )
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        try:
            return int(self.db.execute(stmt).rowcount or 0)
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to deactivate expired assignments: {str(e)}")
            raise RepositoryException(f"Failed to deactivate assignments: {str(e)}") from e

    def _execute_balance_update(self, stmt, assignment_id: str) -> int:
        try:
            rowcount = int(self.db.execute(stmt).rowcount or 0)
        except SQLAlchemyError as e:
            self.logger.error(f"Balance update failed for {assignment_id}: {str(e)}")
            raise RepositoryException(f"Failed to update hour balance: {str(e)}") from e
        cached = self.db.identity_map.get(self.db.identity_key(PackageAssignment, assignment_id))
        if cached is not None:
            self.db.expire(cached)
        return rowcount
