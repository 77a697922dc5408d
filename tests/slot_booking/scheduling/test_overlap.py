from datetime import datetime, timezone

import pytest

from slot_booking.scheduling.overlap import Interval, find_overlapping, overlaps


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2031, 1, 15, hour, minute, tzinfo=timezone.utc)


CANDIDATE = Interval(at(10, 0), at(11, 0))


@pytest.mark.parametrize(
    ('other', 'expected'),
    [
        (Interval(at(9, 0), at(10, 0)), False),  # ends exactly at candidate start
        (Interval(at(11, 0), at(12, 0)), False),  # starts exactly at candidate end
        (Interval(at(9, 30), at(10, 30)), True),
        (Interval(at(10, 30), at(11, 30)), True),
        (Interval(at(10, 15), at(10, 45)), True),  # contained
        (Interval(at(9, 0), at(12, 0)), True),  # contains
        (Interval(at(10, 0), at(11, 0)), True),  # identical
        (Interval(at(12, 0), at(13, 0)), False),
    ],
)
def test_half_open_overlap_rule(other: Interval, expected: bool) -> None:
    assert CANDIDATE.overlaps(other) is expected
    assert other.overlaps(CANDIDATE) is expected


def test_overlaps_is_false_for_empty_collection() -> None:
    assert overlaps(CANDIDATE, []) is False


def test_find_overlapping_returns_only_conflicts() -> None:
    conflicting = Interval(at(10, 40), at(11, 20))
    existing = [Interval(at(8, 0), at(9, 0)), conflicting, Interval(at(11, 0), at(11, 30))]

    assert find_overlapping(CANDIDATE, existing) == [conflicting]
    assert overlaps(CANDIDATE, existing) is True


def test_contains_requires_both_bounds_inside() -> None:
    window = Interval(at(9, 0), at(17, 0))

    assert window.contains(Interval(at(16, 0), at(17, 0)))
    assert not window.contains(Interval(at(16, 1), at(17, 1)))
    assert not window.contains(Interval(at(8, 59), at(9, 59)))
