from datetime import timedelta

import pytest

from lessonbook.core.enums import PackageAssignmentStatus
from lessonbook.core.exceptions import (
    BusinessRuleException,
    ExpiredError,
    InactiveError,
    InsufficientHoursError,
    NotFoundException,
    ValidationException,
)
from tests._utils.lesson_builders import START_OF_TEST, STUDENT_ID, make_assignment


class TestDebit:
    def test_debit_reduces_balance(self, services, db):
        assignment = make_assignment(db, hours=5)

        updated = services.ledger.debit(assignment.id, 2)
        db.commit()

        assert updated.hours_remaining == 3
        assert services.ledger.query_ledger(assignment.id).hours_remaining == 3

    def test_insufficient_hours_leaves_balance_untouched(self, services, db):
        assignment = make_assignment(db, hours=1)

        with pytest.raises(InsufficientHoursError) as exc_info:
            services.ledger.debit(assignment.id, 2)

        assert exc_info.value.details == {
            "assignment_id": assignment.id,
            "requested_hours": 2,
            "hours_remaining": 1,
        }
        assert services.ledger.query_ledger(assignment.id).hours_remaining == 1

    def test_debit_to_zero_then_exhausted(self, services, db):
        assignment = make_assignment(db, hours=1)
        services.ledger.debit(assignment.id, 1)
        db.commit()

        snapshot = services.ledger.query_ledger(assignment.id)
        assert snapshot.hours_remaining == 0
        assert snapshot.status == PackageAssignmentStatus.EXHAUSTED.value
        with pytest.raises(InsufficientHoursError):
            services.ledger.debit(assignment.id, 1)

    def test_expired_assignment(self, services, db):
        assignment = make_assignment(db, expires_at=START_OF_TEST - timedelta(minutes=1))

        with pytest.raises(ExpiredError) as exc_info:
            services.ledger.debit(assignment.id, 1)

        assert exc_info.value.code == "PACKAGE_EXPIRED"

    def test_debit_allowed_at_the_expiry_instant(self, services, db):
        assignment = make_assignment(db, expires_at=START_OF_TEST)

        assert services.ledger.debit(assignment.id, 1).hours_remaining == 4

    def test_inactive_is_reported_before_expired_and_insufficient(self, services, db):
        assignment = make_assignment(
            db, hours=0, expires_at=START_OF_TEST - timedelta(days=1), is_active=False
        )

        with pytest.raises(InactiveError):
            services.ledger.debit(assignment.id, 1)

    def test_expired_is_reported_before_insufficient(self, services, db):
        assignment = make_assignment(db, hours=0, expires_at=START_OF_TEST - timedelta(days=1))

        with pytest.raises(ExpiredError):
            services.ledger.debit(assignment.id, 1)

    def test_unknown_assignment(self, services):
        with pytest.raises(NotFoundException) as exc_info:
            services.ledger.debit("missing", 1)

        assert exc_info.value.code == "PACKAGE_ASSIGNMENT_NOT_FOUND"

    @pytest.mark.parametrize("hours", [0, -1, True, 1.5])
    def test_hours_must_be_positive_integers(self, services, db, hours):
        assignment = make_assignment(db)

        with pytest.raises(ValidationException) as exc_info:
            services.ledger.debit(assignment.id, hours)

        assert exc_info.value.code == "INVALID_HOURS"


class TestCredit:
    def test_credit_restores_hours(self, services, db):
        assignment = make_assignment(db, hours=2)

        assert services.ledger.credit(assignment.id, 3).hours_remaining == 5

    def test_credit_allowed_on_expired_assignment(self, services, db):
        assignment = make_assignment(db, hours=0, expires_at=START_OF_TEST - timedelta(days=3))

        services.ledger.credit(assignment.id, 1)
        db.commit()

        snapshot = services.ledger.query_ledger(assignment.id)
        assert snapshot.hours_remaining == 1
        assert snapshot.status == PackageAssignmentStatus.EXPIRED.value
        assert snapshot.days_remaining == 0

    def test_credit_unknown_assignment(self, services):
        with pytest.raises(NotFoundException):
            services.ledger.credit("missing", 1)


class TestPackages:
    def test_assign_package_copies_hours_and_validity(self, services):
        package = services.ledger.create_package("Ten hours", 10, 30)

        assignment = services.ledger.assign_package(STUDENT_ID, package.id, notes="Spring offer")

        assert assignment.hours_remaining == 10
        snapshot = services.ledger.query_ledger(assignment.id)
        assert snapshot.expires_at == START_OF_TEST + timedelta(days=30)
        assert snapshot.days_remaining == 30
        assert snapshot.status == PackageAssignmentStatus.ACTIVE.value

    def test_withdrawn_package_cannot_be_assigned(self, services, db):
        package = services.ledger.create_package("Old offer", 5, 10)
        package.is_active = False
        db.commit()

        with pytest.raises(BusinessRuleException) as exc_info:
            services.ledger.assign_package(STUDENT_ID, package.id)

        assert exc_info.value.code == "PACKAGE_NOT_OFFERED"

    def test_create_package_validates_input(self, services):
        with pytest.raises(ValidationException):
            services.ledger.create_package("Broken", 0, 30)
        with pytest.raises(ValidationException):
            services.ledger.create_package("Broken", 5, 0)

    def test_grant_hours_requires_reason(self, services, db):
        assignment = make_assignment(db, hours=1)

        with pytest.raises(ValidationException) as exc_info:
            services.ledger.grant_hours(assignment.id, 2, "  ")
        assert exc_info.value.code == "REASON_REQUIRED"

        assert services.ledger.grant_hours(assignment.id, 2, "Goodwill").hours_remaining == 3

    def test_find_active_assignment_prefers_soonest_expiry(self, services, db):
        make_assignment(db, expires_at=START_OF_TEST + timedelta(days=60))
        soonest = make_assignment(db, expires_at=START_OF_TEST + timedelta(days=5))
        make_assignment(db, expires_at=START_OF_TEST - timedelta(days=1))
        make_assignment(db, hours=0, expires_at=START_OF_TEST + timedelta(days=1))

        assert services.ledger.find_active_assignment(STUDENT_ID).id == soonest.id

    def test_deactivate_expired(self, services, db):
        expired = make_assignment(db, expires_at=START_OF_TEST - timedelta(hours=1))
        current = make_assignment(db)

        assert services.ledger.deactivate_expired() == 1

        assert services.ledger.query_ledger(expired.id).status == (
            PackageAssignmentStatus.INACTIVE.value
        )
        assert services.ledger.query_ledger(current.id).status == (
            PackageAssignmentStatus.ACTIVE.value
        )
