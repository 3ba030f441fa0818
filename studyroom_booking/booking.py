from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class TimeInterval:
    """Half-open time range [start, end)."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if not is_valid_order(self.start, self.end):
            raise ValueError("Interval start time must be earlier than end time.")

    def overlaps(self, other: "TimeInterval") -> bool:
        return has_time_overlap(self.start, self.end, other.start, other.end)


def is_valid_order(start: datetime, end: datetime) -> bool:
    return start < end


def has_time_overlap(new_start: datetime, new_end: datetime, exist_start: datetime, exist_end: datetime) -> bool:
    """Return True when two time intervals share at least one instant.

    Intervals are treated as half-open ranges: [start, end)
    so touching boundaries (e.g. 10:00-11:00 and 11:00-12:00) do not overlap.
    Containment and equality are covered by the same comparison.
    """
    return new_start < exist_end and new_end > exist_start


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    return has_time_overlap(a.start, a.end, b.start, b.end)
