"""Hour ledger views."""

from datetime import datetime

from ..core.enums import PackageAssignmentStatus
from .base import StandardizedModel


class LedgerSnapshot(StandardizedModel):
    """Point-in-time view of one package assignment's balance."""

    assignment_id: str
    student_id: str
    hours_remaining: int
    status: PackageAssignmentStatus
    expires_at: datetime
    days_remaining: int
