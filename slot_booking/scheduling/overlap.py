"""
Overlap detection between half-open booking intervals.

Status filtering happens before these checks: callers pass only the
intervals of appointments that still hold their slot.
"""

from datetime import datetime
from typing import Iterable, NamedTuple


class Interval(NamedTuple):
    start: datetime
    end: datetime

    def overlaps(self, other: 'Interval') -> bool:
        # [a, b) and [c, d) overlap iff a < d and c < b
        return self.start < other.end and other.start < self.end

    def contains(self, other: 'Interval') -> bool:
        return self.start <= other.start and other.end <= self.end


def overlaps(candidate: Interval, existing: Iterable[Interval]) -> bool:
    return any(candidate.overlaps(interval) for interval in existing)


def find_overlapping(candidate: Interval, existing: Iterable[Interval]) -> list[Interval]:
    return [interval for interval in existing if candidate.overlaps(interval)]
