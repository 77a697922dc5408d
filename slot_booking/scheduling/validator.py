"""
Booking Validation

One validation pass walks a fixed sequence of stages and stops at the
first failed check:

    RECEIVED -> TIME_CHECKED -> BOUNDS_CHECKED -> GRID_CHECKED
             -> CONFLICT_CHECKED -> ACCEPTED

Steps up to GRID_CHECKED only read the configuration, so they can run
concurrently. The conflict check has to be repeated inside the booking
commit's critical section (see ``slot_booking.booking.service``).

Business-rule failures never raise out of this module; they come back as a
rejected ``BookingDecision`` that carries the ``SchedulingError``.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable

from slot_booking.scheduling.errors import ErrorKind, SchedulingError
from slot_booking.scheduling.overlap import Interval, find_overlapping
from slot_booking.scheduling.settings import AvailabilitySettings
from slot_booking.scheduling.slots import slot_step, working_window
from slot_booking.scheduling.timemath import ensure_utc, local_date_of


class ValidationStage(str, Enum):
    RECEIVED = 'received'
    TIME_CHECKED = 'time_checked'
    BOUNDS_CHECKED = 'bounds_checked'
    GRID_CHECKED = 'grid_checked'
    CONFLICT_CHECKED = 'conflict_checked'
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'


@dataclass(frozen=True)
class AppointmentDraft:
    start_time_utc: datetime
    end_time_utc: datetime
    status: str = 'scheduled'
    reminders_sent: dict = field(default_factory=lambda: {'confirmation': False, 'one_hour_before': False})


@dataclass(frozen=True)
class BookingDecision:
    stage: ValidationStage
    candidate: Interval | None = None
    error: SchedulingError | None = None
    draft: AppointmentDraft | None = None

    @property
    def accepted(self) -> bool:
        return self.stage == ValidationStage.ACCEPTED

    @property
    def rejected(self) -> bool:
        return self.stage == ValidationStage.REJECTED

    def advance(self, stage: ValidationStage) -> 'BookingDecision':
        return replace(self, stage=stage)

    def reject(self, error: SchedulingError) -> 'BookingDecision':
        return replace(self, stage=ValidationStage.REJECTED, error=error)


def _check_future(decision: BookingDecision, now: datetime) -> BookingDecision:
    if decision.candidate.start <= now:
        return decision.reject(
            SchedulingError(ErrorKind.PAST_APPOINTMENT, 'Appointment must be in the future')
        )
    return decision.advance(ValidationStage.TIME_CHECKED)


def _check_bounds(decision: BookingDecision, settings: AvailabilitySettings, window: Interval) -> BookingDecision:
    if not window.contains(decision.candidate):
        return decision.reject(
            SchedulingError(
                ErrorKind.OUTSIDE_WORKING_HOURS,
                f"Appointment must be within admin's working hours ({settings.describe_hours()})",
            )
        )
    return decision.advance(ValidationStage.BOUNDS_CHECKED)


def _check_grid(decision: BookingDecision, settings: AvailabilitySettings, window: Interval) -> BookingDecision:
    step = slot_step(settings)
    offset = decision.candidate.start - window.start

    if offset % step == timedelta(0):
        return decision.advance(ValidationStage.GRID_CHECKED)

    steps_to_next = -(-offset // step)  # ceiling division on timedeltas
    next_start = window.start + steps_to_next * step
    if next_start + timedelta(minutes=settings.slot_duration) > window.end:
        next_start = None

    return decision.reject(
        SchedulingError(
            ErrorKind.INVALID_SLOT_ALIGNMENT,
            'Appointment must start at a valid slot time',
            next_available_slot=next_start,
        )
    )


def check_booking(settings: AvailabilitySettings, start_time_utc: datetime, now: datetime) -> BookingDecision:
    """Run the read-only checks: future start, working-hours bounds, slot grid."""
    try:
        start = ensure_utc(start_time_utc)
        candidate = Interval(start, start + timedelta(minutes=settings.slot_duration))
        decision = BookingDecision(stage=ValidationStage.RECEIVED, candidate=candidate)

        decision = _check_future(decision, ensure_utc(now))
        if decision.rejected:
            return decision

        # Bounds use the provider's calendar date, never the client's.
        window = working_window(settings, local_date_of(start, settings.timezone))
        decision = _check_bounds(decision, settings, window)
        if decision.rejected:
            return decision

        return _check_grid(decision, settings, window)
    except SchedulingError as exc:
        return BookingDecision(stage=ValidationStage.REJECTED, error=exc)


def check_conflicts(decision: BookingDecision, existing: Iterable[Interval]) -> BookingDecision:
    if decision.stage != ValidationStage.GRID_CHECKED:
        return decision

    if find_overlapping(decision.candidate, existing):
        return decision.reject(
            SchedulingError(ErrorKind.SLOT_ALREADY_BOOKED, 'Time slot is already booked')
        )
    return decision.advance(ValidationStage.CONFLICT_CHECKED)


def accept(decision: BookingDecision) -> BookingDecision:
    """Draft the appointment record for a decision that cleared every check."""
    if decision.stage != ValidationStage.CONFLICT_CHECKED:
        return decision

    draft = AppointmentDraft(start_time_utc=decision.candidate.start, end_time_utc=decision.candidate.end)
    return replace(decision, stage=ValidationStage.ACCEPTED, draft=draft)


def validate_booking(
    settings: AvailabilitySettings,
    start_time_utc: datetime,
    existing: Iterable[Interval],
    now: datetime,
) -> BookingDecision:
    return accept(check_conflicts(check_booking(settings, start_time_utc, now), existing))
