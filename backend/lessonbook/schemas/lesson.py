"""Lesson lifecycle results and views."""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from .base import StandardizedModel


class CancellationResult(StandardizedModel):
    lesson_id: str
    refunded: bool
    hours_credited: int = 0
    released_hours: List[int] = Field(default_factory=list)
    policy_basis: Optional[str] = None


class StatusHistoryEntry(StandardizedModel):
    id: int
    lesson_id: str
    status: str
    previous_status: Optional[str] = None
    reason: Optional[str] = None
    changed_by_role: str
    changed_by_user_id: Optional[str] = None
    created_at: Optional[datetime] = None


class TimeoutSweepResult(StandardizedModel):
    """Outcome of one pass over in-progress lessons past their abandon window."""

    processed: int = 0
    completed: int = 0
    errors: List[str] = Field(default_factory=list)
