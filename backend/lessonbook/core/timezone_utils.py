"""
Timezone utilities for the scheduling core.

Lesson dates and hours are wall-clock values in the platform timezone;
everything compared against "now" is converted to aware UTC first.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional

import pytz

from .config import settings


def get_platform_timezone(tz_name: Optional[str] = None) -> pytz.BaseTzInfo:
    """Return the configured platform timezone (or an explicit override)."""
    return pytz.timezone(tz_name or settings.platform_timezone)


def ensure_utc(dt: datetime, tz_name: Optional[str] = None) -> datetime:
    """
    Normalize a datetime to aware UTC.

    Naive values are interpreted in the platform timezone, which is also
    what SQLite hands back for columns stored in UTC when tz_name is "UTC".
    """
    if dt.tzinfo is None:
        dt = get_platform_timezone(tz_name).localize(dt)
    return dt.astimezone(pytz.UTC)


def ensure_stored_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to values read back from the database (SQLite drops tzinfo)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC)


def combine_local(day: date, at: time, tz_name: Optional[str] = None) -> datetime:
    """Combine a lesson date and wall-clock time into an aware UTC datetime."""
    local = get_platform_timezone(tz_name).localize(datetime.combine(day, at.replace(tzinfo=None)))
    return local.astimezone(pytz.UTC)


def days_remaining(now: datetime, until: datetime) -> int:
    """Whole days left until a deadline, never negative."""
    delta: timedelta = ensure_utc(until) - ensure_utc(now)
    if delta.total_seconds() <= 0:
        return 0
    return delta.days
