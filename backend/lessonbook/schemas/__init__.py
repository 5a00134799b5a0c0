"""Pydantic schemas at the boundary of the lesson scheduling core."""

from .availability import CoarseBlockView
from .base import StandardizedModel, StrictRequestModel, parse_request
from .booking import Actor, BookingRequest
from .ledger import LedgerSnapshot
from .lesson import CancellationResult, StatusHistoryEntry, TimeoutSweepResult

__all__ = [
    "Actor",
    "BookingRequest",
    "CancellationResult",
    "CoarseBlockView",
    "LedgerSnapshot",
    "StandardizedModel",
    "StatusHistoryEntry",
    "StrictRequestModel",
    "TimeoutSweepResult",
    "parse_request",
]
