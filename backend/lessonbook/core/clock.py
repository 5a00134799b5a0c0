"""Injectable clock so policy checks never read wall-clock time directly."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol

from .timezone_utils import ensure_utc


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """A clock frozen at a given instant; tests move it explicitly."""

    def __init__(self, at: datetime) -> None:
        self._at = ensure_utc(at)

    def now(self) -> datetime:
        return self._at

    def set(self, at: datetime) -> None:
        self._at = ensure_utc(at)

    def advance(self, **kwargs: float) -> datetime:
        self._at = self._at + timedelta(**kwargs)
        return self._at

    def __repr__(self) -> str:
        return f"<FixedClock {self._at.isoformat()}>"
