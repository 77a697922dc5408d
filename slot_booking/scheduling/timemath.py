"""Timezone-aware conversions between the provider's wall clock and UTC instants."""

import re
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from slot_booking.scheduling.errors import ErrorKind, SchedulingError

TIME_OF_DAY_PATTERN = re.compile(r'^([01]?[0-9]|2[0-3]):([0-5][0-9])$')
CALENDAR_DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def parse_time_of_day(value: str) -> time:
    if not isinstance(value, str):
        raise SchedulingError(ErrorKind.INVALID_TIME_FORMAT, 'Time must be in HH:mm format')

    match = TIME_OF_DAY_PATTERN.fullmatch(value.strip())
    if match is None:
        raise SchedulingError(ErrorKind.INVALID_TIME_FORMAT, f'Time must be in HH:mm format, got {value!r}')

    return time(int(match.group(1)), int(match.group(2)))


def resolve_timezone(name: str) -> ZoneInfo:
    if not isinstance(name, str) or not name.strip():
        raise SchedulingError(ErrorKind.INVALID_TIMEZONE, 'Invalid timezone')

    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError, TypeError, OSError) as exc:
        raise SchedulingError(ErrorKind.INVALID_TIMEZONE, f'Invalid timezone: {name}') from exc


def local_time_to_utc(time_of_day: str, timezone_name: str, calendar_date: date) -> datetime:
    """Interpret ``time_of_day`` on ``calendar_date`` in ``timezone_name``.

    Ambiguous wall times (clocks falling back) resolve to their first
    occurrence. Wall times skipped by a spring-forward transition land after
    the gap, shifted by its length.
    """
    zone = resolve_timezone(timezone_name)
    wall_clock = parse_time_of_day(time_of_day)
    local = datetime.combine(calendar_date, wall_clock, tzinfo=zone)
    return local.astimezone(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_storage(value: datetime) -> datetime:
    return ensure_utc(value).replace(tzinfo=None)


def local_date_of(instant: datetime, timezone_name: str) -> date:
    return ensure_utc(instant).astimezone(resolve_timezone(timezone_name)).date()


def format_utc_time(instant: datetime) -> str:
    return ensure_utc(instant).strftime('%H:%M')


def parse_calendar_date(value: str) -> date:
    try:
        normalized = value.strip()
        if not CALENDAR_DATE_PATTERN.fullmatch(normalized):
            raise ValueError(value)
        return date.fromisoformat(normalized)
    except (AttributeError, ValueError) as exc:
        raise ValueError('Invalid date format, expected YYYY-MM-DD') from exc
