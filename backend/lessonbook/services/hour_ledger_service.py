# backend/lessonbook/services/hour_ledger_service.py
"""
Hour Ledger Service.

Tracks the prepaid hours on each package assignment. ``debit`` and
``credit`` are building blocks for booking and cancellation and run inside
the caller's transaction; the administrative operations commit on their own.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import Settings
from ..core.exceptions import (
    BusinessRuleException,
    ExpiredError,
    InactiveError,
    InsufficientHoursError,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import ensure_stored_utc
from ..models.package import Package, PackageAssignment
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.package_assignment_repository import (
    PackageAssignmentRepository,
    PackageRepository,
)
from ..schemas.ledger import LedgerSnapshot
from .base import BaseService


def _require_positive_hours(hours: int) -> int:
    if isinstance(hours, bool) or not isinstance(hours, int) or hours <= 0:
        raise ValidationException(
            f"Hours must be a positive whole number, got {hours!r}",
            code="INVALID_HOURS",
            details={"hours": hours},
        )
    return hours


class HourLedgerService(BaseService):
    def __init__(
        self,
        db: Session,
        repository: Optional[PackageAssignmentRepository] = None,
        package_repository: Optional[PackageRepository] = None,
        *,
        clock: Optional[Clock] = None,
        config: Optional[Settings] = None,
    ):
        super().__init__(db, clock=clock, config=config)
        self.repository = repository or PackageAssignmentRepository(db)
        self.package_repository = package_repository or PackageRepository(db)

    def get_assignment(self, assignment_id: str) -> PackageAssignment:
        assignment = self.repository.get_by_id(assignment_id)
        if assignment is None:
            raise NotFoundException(
                f"Package assignment {assignment_id} not found",
                code="PACKAGE_ASSIGNMENT_NOT_FOUND",
            )
        return assignment

    @BaseService.measure_operation("debit_hours")
    def debit(
        self, assignment_id: str, hours: int, *, now: Optional[datetime] = None
    ) -> PackageAssignment:
        """
        Take ``hours`` off the balance in one conditional statement.

        Raises:
            NotFoundException: Unknown assignment
            InactiveError: Assignment deactivated
            ExpiredError: Assignment past ``expires_at``
            InsufficientHoursError: Balance lower than ``hours``
        """
        _require_positive_hours(hours)
        now = self.now(now)

        if not self.repository.conditional_debit(assignment_id, hours, now):
            self._raise_debit_failure(assignment_id, hours, now)

        prometheus_metrics.record_ledger_movement("debit", hours)
        assignment = self.repository.reload(assignment_id)
        self.logger.info(
            "Debited hours",
            extra={
                "assignment_id": assignment_id,
                "hours": hours,
                "hours_remaining": assignment.hours_remaining if assignment else None,
            },
        )
        return assignment  # type: ignore[return-value]

    @BaseService.measure_operation("credit_hours")
    def credit(self, assignment_id: str, hours: int) -> PackageAssignment:
        """
        Return ``hours`` to the balance.

        Allowed on expired and inactive assignments: a credit reverses an
        earlier debit and does not extend the package's usable life.
        """
        _require_positive_hours(hours)
        if not self.repository.increment(assignment_id, hours):
            raise NotFoundException(
                f"Package assignment {assignment_id} not found",
                code="PACKAGE_ASSIGNMENT_NOT_FOUND",
            )
        prometheus_metrics.record_ledger_movement("credit", hours)
        self.logger.info("Credited hours", extra={"assignment_id": assignment_id, "hours": hours})
        return self.repository.reload(assignment_id)  # type: ignore[return-value]

    def query_ledger(self, assignment_id: str, *, now: Optional[datetime] = None) -> LedgerSnapshot:
        now = self.now(now)
        assignment = self.repository.reload(assignment_id)
        if assignment is None:
            raise NotFoundException(
                f"Package assignment {assignment_id} not found",
                code="PACKAGE_ASSIGNMENT_NOT_FOUND",
            )
        return LedgerSnapshot(
            assignment_id=assignment.id,
            student_id=assignment.student_id,
            hours_remaining=assignment.hours_remaining,
            status=assignment.status_at(now),
            expires_at=ensure_stored_utc(assignment.expires_at),
            days_remaining=assignment.days_remaining(now),
        )

    def find_active_assignment(
        self, student_id: str, *, now: Optional[datetime] = None
    ) -> Optional[PackageAssignment]:
        """The usable assignment expiring soonest, if any."""
        candidates = self.repository.find_active_for_student(student_id, self.now(now))
        return candidates[0] if candidates else None

    @BaseService.measure_operation("create_package")
    def create_package(
        self,
        name: str,
        hours_count: int,
        validity_days: int,
        *,
        description: Optional[str] = None,
    ) -> Package:
        _require_positive_hours(hours_count)
        if validity_days <= 0:
            raise ValidationException("validity_days must be positive", code="INVALID_VALIDITY")
        with self.transaction():
            package = self.package_repository.create(
                name=name,
                hours_count=hours_count,
                validity_days=validity_days,
                description=description,
                is_active=True,
            )
        return package

    @BaseService.measure_operation("assign_package")
    def assign_package(
        self,
        student_id: str,
        package_id: str,
        *,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> PackageAssignment:
        """Give a student a fresh ledger with the package's hours and validity."""
        now = self.now(now)
        package = self.package_repository.get_by_id(package_id)
        if package is None:
            raise NotFoundException(f"Package {package_id} not found", code="PACKAGE_NOT_FOUND")
        if not package.is_active:
            raise BusinessRuleException(
                f"Package {package_id} is no longer offered", code="PACKAGE_NOT_OFFERED"
            )

        with self.transaction():
            assignment = self.repository.create(
                student_id=student_id,
                package_id=package.id,
                assigned_at=now,
                expires_at=now + timedelta(days=package.validity_days),
                hours_remaining=package.hours_count,
                is_active=True,
                notes=notes,
            )

        self.log_operation(
            "assign_package",
            student_id=student_id,
            package_id=package_id,
            assignment_id=assignment.id,
        )
        return assignment

    @BaseService.measure_operation("grant_hours")
    def grant_hours(self, assignment_id: str, hours: int, reason: str) -> PackageAssignment:
        """Administrative top-up. Commits immediately."""
        _require_positive_hours(hours)
        if not reason or not reason.strip():
            raise ValidationException("A reason is required to grant hours", code="REASON_REQUIRED")
        with self.transaction():
            if not self.repository.increment(assignment_id, hours):
                raise NotFoundException(
                    f"Package assignment {assignment_id} not found",
                    code="PACKAGE_ASSIGNMENT_NOT_FOUND",
                )
        prometheus_metrics.record_ledger_movement("grant", hours)
        self.log_operation("grant_hours", assignment_id=assignment_id, hours=hours, reason=reason)
        return self.repository.reload(assignment_id)  # type: ignore[return-value]

    @BaseService.measure_operation("deactivate_expired")
    def deactivate_expired(self, *, now: Optional[datetime] = None) -> int:
        now = self.now(now)
        with self.transaction():
            count = self.repository.deactivate_expired(now)
        self.log_operation("deactivate_expired", count=count, now=now.isoformat())
        return count

    def _raise_debit_failure(self, assignment_id: str, hours: int, now: datetime) -> None:
        assignment = self.repository.reload(assignment_id)
        if assignment is None:
            raise NotFoundException(
                f"Package assignment {assignment_id} not found",
                code="PACKAGE_ASSIGNMENT_NOT_FOUND",
            )
        if not assignment.is_active:
            raise InactiveError(assignment_id)
        if assignment.is_expired(now):
            expires_at = ensure_stored_utc(assignment.expires_at)
            raise ExpiredError(assignment_id, expires_at.isoformat() if expires_at else "")
        raise InsufficientHoursError(assignment_id, hours, assignment.hours_remaining)
