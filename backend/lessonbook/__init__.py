"""Tutoring scheduling and hour-accounting core."""

__version__ = "0.1.0"
