"""Half-open range of whole hours within one day."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import time
from typing import Iterator

from lessonbook.core.constants import MINUTES_PER_HOUR


@dataclass(frozen=True)
class HourRange:
    """Hours ``[start, end)``; 10-11 is the single unit starting at 10:00."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if not 0 <= self.start < self.end <= 24:
            raise ValueError(f"Invalid hour range {self.start}-{self.end}")

    @classmethod
    def from_lesson(cls, start_time: time, duration_minutes: int) -> "HourRange":
        """Hours occupied by a lesson; only on-the-hour, whole-hour lessons are supported."""
        if start_time.minute or start_time.second or start_time.microsecond:
            raise ValueError("Lessons must start on the hour")
        if duration_minutes <= 0 or duration_minutes % MINUTES_PER_HOUR:
            raise ValueError("Lesson duration must be a positive whole number of hours")
        return cls(start_time.hour, start_time.hour + duration_minutes // MINUTES_PER_HOUR)

    @property
    def hours(self) -> list[int]:
        return list(range(self.start, self.end))

    def __len__(self) -> int:
        return self.end - self.start

    def __iter__(self) -> Iterator[int]:
        return iter(range(self.start, self.end))

    def __contains__(self, hour: object) -> bool:
        return isinstance(hour, int) and self.start <= hour < self.end

    def within(self, lower: int, upper: int) -> bool:
        return lower <= self.start and self.end <= upper

    def end_time(self) -> time:
        # A lesson ending at midnight is stored as 00:00
        return time(self.end % 24, 0)

    def label(self) -> str:
        return f"{self.start:02d}:00 - {self.end:02d}:00"
