"""Availability read views."""

from .base import StandardizedModel


class CoarseBlockView(StandardizedModel):
    """
    One legacy half-day block, derived from hourly units at read time.

    ``open_hours`` counts bookable hours inside the block; ``booked_hours``
    sums booked hours. The block itself is never stored.
    """

    name: str
    start_hour: int
    end_hour: int
    capacity: int
    open_hours: int
    booked_hours: int

    @property
    def is_available(self) -> bool:
        return self.open_hours > 0 and self.booked_hours < self.capacity
