"""Rejection kinds shared by the scheduling engine and the HTTP layer."""

from datetime import datetime
from enum import Enum


class ErrorKind(str, Enum):
    INVALID_CONFIG = 'invalid_config'
    INVALID_TIMEZONE = 'invalid_timezone'
    INVALID_TIME_FORMAT = 'invalid_time_format'
    PAST_APPOINTMENT = 'past_appointment'
    OUTSIDE_WORKING_HOURS = 'outside_working_hours'
    INVALID_SLOT_ALIGNMENT = 'invalid_slot_alignment'
    SLOT_ALREADY_BOOKED = 'slot_already_booked'
    NOT_FOUND = 'not_found'


HTTP_STATUS_BY_KIND = {
    ErrorKind.INVALID_CONFIG: 400,
    ErrorKind.INVALID_TIMEZONE: 400,
    ErrorKind.INVALID_TIME_FORMAT: 400,
    ErrorKind.PAST_APPOINTMENT: 400,
    ErrorKind.OUTSIDE_WORKING_HOURS: 400,
    ErrorKind.INVALID_SLOT_ALIGNMENT: 400,
    ErrorKind.SLOT_ALREADY_BOOKED: 409,
    ErrorKind.NOT_FOUND: 404,
}


class SchedulingError(Exception):
    """A recoverable, user-facing validation outcome."""

    def __init__(self, kind: ErrorKind, message: str, next_available_slot: datetime | None = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.next_available_slot = next_available_slot

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_BY_KIND[self.kind]

    def to_detail(self) -> dict:
        detail = {'error_kind': self.kind.value, 'message': self.message}
        if self.next_available_slot is not None:
            detail['next_available_slot'] = self.next_available_slot.isoformat()
        return detail

    def __repr__(self) -> str:
        return f'SchedulingError({self.kind.value!r}, {self.message!r})'
