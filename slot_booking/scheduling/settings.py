"""Validated working-hours configuration passed explicitly through the engine."""

from dataclasses import dataclass, replace

from slot_booking.scheduling.errors import ErrorKind, SchedulingError
from slot_booking.scheduling.timemath import parse_time_of_day, resolve_timezone

EDITABLE_FIELDS = ('start_time', 'end_time', 'timezone', 'slot_duration', 'buffer_between_slots')
MAX_MINUTES = 24 * 60


@dataclass(frozen=True)
class AvailabilitySettings:
    start_time: str
    end_time: str
    timezone: str
    slot_duration: int
    buffer_between_slots: int

    def validate(self) -> 'AvailabilitySettings':
        start = parse_time_of_day(self.start_time)
        end = parse_time_of_day(self.end_time)
        resolve_timezone(self.timezone)

        if end <= start:
            raise SchedulingError(ErrorKind.INVALID_CONFIG, 'End time must be after start time')

        if isinstance(self.slot_duration, bool) or not isinstance(self.slot_duration, int) or self.slot_duration <= 0:
            raise SchedulingError(ErrorKind.INVALID_CONFIG, 'Slot duration must be a positive number of minutes')

        if self.slot_duration > MAX_MINUTES:
            raise SchedulingError(ErrorKind.INVALID_CONFIG, f'Slot duration cannot exceed {MAX_MINUTES} minutes')

        if (
            isinstance(self.buffer_between_slots, bool)
            or not isinstance(self.buffer_between_slots, int)
            or self.buffer_between_slots < 0
        ):
            raise SchedulingError(ErrorKind.INVALID_CONFIG, 'Buffer between slots cannot be negative')

        if self.buffer_between_slots > MAX_MINUTES:
            raise SchedulingError(ErrorKind.INVALID_CONFIG, f'Buffer between slots cannot exceed {MAX_MINUTES} minutes')

        return self

    @property
    def step_minutes(self) -> int:
        return self.slot_duration + self.buffer_between_slots

    def with_updates(self, **changes) -> 'AvailabilitySettings':
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise SchedulingError(ErrorKind.INVALID_CONFIG, f'Unknown availability fields: {", ".join(sorted(unknown))}')

        applied = {field: value for field, value in changes.items() if value is not None}
        return replace(self, **applied).validate()

    @classmethod
    def from_record(cls, record) -> 'AvailabilitySettings':
        return cls(
            start_time=record.start_time,
            end_time=record.end_time,
            timezone=record.timezone,
            slot_duration=record.slot_duration,
            buffer_between_slots=record.buffer_between_slots,
        ).validate()

    def describe_hours(self) -> str:
        return f'{self.start_time} to {self.end_time} {self.timezone}'
