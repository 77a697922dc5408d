"""
Slot Generation

Turns the provider's local working hours into UTC slot starts for one
calendar date. The grid is fixed: every slot is followed by the buffer,
whether or not the slot was emitted, so bookings never repack the grid.
"""

from datetime import date, datetime, timedelta
from typing import Iterable, Iterator

from slot_booking.scheduling.errors import ErrorKind, SchedulingError
from slot_booking.scheduling.overlap import Interval, overlaps
from slot_booking.scheduling.settings import AvailabilitySettings
from slot_booking.scheduling.timemath import local_time_to_utc


def slot_step(settings: AvailabilitySettings) -> timedelta:
    step_minutes = settings.slot_duration + settings.buffer_between_slots
    if step_minutes <= 0:
        raise SchedulingError(ErrorKind.INVALID_CONFIG, 'Slot duration plus buffer must be greater than zero')
    return timedelta(minutes=step_minutes)


def working_window(settings: AvailabilitySettings, calendar_date: date) -> Interval:
    work_start = local_time_to_utc(settings.start_time, settings.timezone, calendar_date)
    work_end = local_time_to_utc(settings.end_time, settings.timezone, calendar_date)
    return Interval(work_start, work_end)


def iter_slot_starts(
    settings: AvailabilitySettings,
    calendar_date: date,
    booked_intervals: Iterable[Interval] = (),
) -> Iterator[datetime]:
    """
    Yield UTC slot starts for ``calendar_date`` in grid order.

    Each call builds a fresh generator; nothing is cached between calls.
    """
    step = slot_step(settings)
    duration = timedelta(minutes=settings.slot_duration)
    window = working_window(settings, calendar_date)
    booked = list(booked_intervals)

    cursor = window.start
    while cursor + duration <= window.end:
        if not overlaps(Interval(cursor, cursor + duration), booked):
            yield cursor
        cursor += step


def generate_slots(
    settings: AvailabilitySettings,
    calendar_date: date,
    booked_intervals: Iterable[Interval] = (),
) -> list[datetime]:
    return list(iter_slot_starts(settings, calendar_date, booked_intervals))
