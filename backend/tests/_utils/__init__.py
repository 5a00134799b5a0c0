"""Shared helpers for backend test suites."""

from .lesson_builders import at, booking_request, make_assignment

__all__ = ["at", "booking_request", "make_assignment"]
