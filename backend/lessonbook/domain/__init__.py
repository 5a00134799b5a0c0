"""Pure domain value objects."""

from .hour_range import HourRange

__all__ = ["HourRange"]
