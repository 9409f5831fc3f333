"""Calendar-day time intervals."""

from dataclasses import dataclass
from datetime import date, time


@dataclass(frozen=True)
class TimeInterval:
    """A half-open ``[start, end)`` time-of-day range on one calendar day."""

    day: date
    start: time
    end: time

    def __post_init__(self) -> None:
        """Reject empty or inverted intervals."""
        if not self.start < self.end:
            raise ValueError("Interval start must be before its end")

    def overlaps(self, other: "TimeInterval") -> bool:
        """
        Check whether two intervals share any instant.

        Intervals on different days never overlap. Touching intervals
        (one ends exactly when the other starts) do not overlap.
        """
        if self.day != other.day:
            return False
        return self.start < other.end and other.start < self.end

    def __str__(self) -> str:
        """Render as ``YYYY-MM-DD HH:MM-HH:MM``."""
        return f"{self.day.isoformat()} {self.start:%H:%M}-{self.end:%H:%M}"
