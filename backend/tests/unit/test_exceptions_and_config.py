from pydantic import ValidationError
import pytest

from lessonbook.core.config import Settings
from lessonbook.core.exceptions import (
    CapacityExceededError,
    InsufficientHoursError,
    LedgerError,
    NotOpenError,
    SlotUnavailableError,
    ValidationException,
)


class TestExceptions:
    def test_slot_errors_share_a_retryable_base(self):
        assert issubclass(CapacityExceededError, SlotUnavailableError)
        assert issubclass(NotOpenError, SlotUnavailableError)
        assert not issubclass(InsufficientHoursError, SlotUnavailableError)
        assert issubclass(InsufficientHoursError, LedgerError)

    def test_capacity_error_maps_to_409(self):
        http_exc = CapacityExceededError("tutor-1", "2025-03-10", [10]).to_http_exception()

        assert http_exc.status_code == 409
        assert http_exc.detail["code"] == "CAPACITY_EXCEEDED"
        assert http_exc.detail["details"]["hours"] == [10]

    def test_ledger_error_maps_to_422_with_user_message(self):
        http_exc = InsufficientHoursError("pkg-1", 2, 1).to_http_exception()

        assert http_exc.status_code == 422
        assert http_exc.detail["message"] == "You don't have enough hours remaining."
        assert http_exc.detail["details"]["hours_remaining"] == 1

    def test_validation_exception_exposes_its_message(self):
        http_exc = ValidationException("Bad hours", code="INVALID_HOURS").to_http_exception()

        assert http_exc.status_code == 400
        assert http_exc.detail["message"] == "Bad hours"


class TestSettings:
    def test_defaults(self):
        config = Settings()

        assert config.free_cancellation_hours == 12
        assert config.default_unit_capacity == 1
        assert config.tutor_early_start_minutes == 11

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("LESSONBOOK_FREE_CANCELLATION_HOURS", "24")

        assert Settings().free_cancellation_hours == 24

    def test_rejects_unknown_timezone(self):
        with pytest.raises(ValidationError):
            Settings(platform_timezone="Mars/Olympus")

    def test_rejects_inverted_bookable_day(self):
        with pytest.raises(ValidationError):
            Settings(bookable_day_start_hour=20, bookable_day_end_hour=8)

    def test_tests_use_in_memory_database(self, monkeypatch):
        monkeypatch.delenv("LESSONBOOK_DATABASE_URL", raising=False)

        assert Settings().get_database_url() == "sqlite+pysqlite:///:memory:"
