# backend/lessonbook/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: Literal["development", "test", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    database_url: str = Field(
        default="sqlite:///./lessonbook.db",
        description="SQLAlchemy database URL",
    )
    sql_echo: bool = Field(default=False, description="Echo SQL statements")
    log_level: str = Field(default="INFO", description="Root log level for commands")
    platform_timezone: str = Field(
        default="UTC",
        description="Timezone lesson dates and hours are expressed in",
    )

    # Availability
    default_unit_capacity: int = Field(
        default=1, ge=1, description="Bookable hours per published availability unit"
    )
    coarse_block_capacity: int = Field(
        default=8, ge=1, description="Nominal hour ceiling of a legacy half-day block"
    )
    bookable_day_start_hour: int = Field(default=8, ge=0, le=23)
    bookable_day_end_hour: int = Field(default=22, ge=1, le=24)

    # Cancellation policy
    free_cancellation_hours: int = Field(
        default=12, ge=0, description="Minimum notice for a refunded cancellation"
    )
    staff_cancellation_always_refunds: bool = Field(
        default=True,
        description="Tutor and admin cancellations refund the student regardless of notice",
    )

    # Lesson start window
    tutor_early_start_minutes: int = Field(default=11, ge=0)
    student_early_join_minutes: int = Field(default=10, ge=0)
    lesson_abandon_minutes: int = Field(
        default=80, ge=1, description="Minutes after nominal start before a lesson is abandoned"
    )

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        env_prefix="LESSONBOOK_",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("platform_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            pytz.timezone(value)
        except pytz.UnknownTimeZoneError as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @model_validator(mode="after")
    def _validate_bookable_day(self) -> "Settings":
        if self.bookable_day_start_hour >= self.bookable_day_end_hour:
            raise ValueError("bookable_day_start_hour must be before bookable_day_end_hour")
        return self

    @property
    def tz(self) -> pytz.BaseTzInfo:
        return pytz.timezone(self.platform_timezone)

    def get_database_url(self) -> str:
        """Get the database URL, forcing in-memory SQLite under pytest unless overridden."""
        if is_running_tests() and not os.getenv("LESSONBOOK_DATABASE_URL"):
            return "sqlite+pysqlite:///:memory:"
        return self.database_url


settings = Settings()
