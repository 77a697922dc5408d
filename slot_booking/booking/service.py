"""Persistence-facing side of booking: loading snapshots and committing reservations."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from threading import Lock

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from slot_booking.core import config
from slot_booking.models.appointment import ACTIVE_START_INDEX, ACTIVE_STATUSES, Appointment
from slot_booking.models.availability import AvailabilityConfig
from slot_booking.scheduling.errors import ErrorKind, SchedulingError
from slot_booking.scheduling.overlap import Interval
from slot_booking.scheduling.settings import AvailabilitySettings
from slot_booking.scheduling.slots import generate_slots, working_window
from slot_booking.scheduling.timemath import ensure_utc, to_storage
from slot_booking.scheduling.validator import (
    BookingDecision,
    ValidationStage,
    accept,
    check_booking,
    check_conflicts,
)

logger = logging.getLogger(__name__)

# Single provider: one commit at a time covers every calendar day.
_booking_lock = Lock()


@dataclass
class BookingDetails:
    client_email: str
    client_timezone: str
    appointment_title: str = config.DEFAULT_APPOINTMENT_TITLE
    description: str = ''


@dataclass
class BookingResult:
    decision: BookingDecision
    appointment: Appointment | None = None

    @property
    def accepted(self) -> bool:
        return self.appointment is not None


def _is_active_start_conflict(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return ACTIVE_START_INDEX in message or 'appointments.start_time_utc' in message


def get_availability_record(db: Session) -> AvailabilityConfig | None:
    return db.query(AvailabilityConfig).order_by(AvailabilityConfig.id.asc()).first()


def load_settings(db: Session) -> AvailabilitySettings:
    record = get_availability_record(db)
    if record is None:
        raise SchedulingError(ErrorKind.NOT_FOUND, 'Availability not configured yet')
    return AvailabilitySettings.from_record(record)


def get_active_intervals(db: Session, window: Interval) -> list[Interval]:
    rows = db.query(Appointment.start_time_utc, Appointment.end_time_utc).filter(
        Appointment.status.in_(ACTIVE_STATUSES),
        Appointment.start_time_utc < to_storage(window.end),
        Appointment.end_time_utc > to_storage(window.start),
    ).all()
    return [Interval(ensure_utc(start), ensure_utc(end)) for start, end in rows]


def list_open_slots(db: Session, calendar_date: date) -> tuple[AvailabilitySettings, list[datetime]]:
    settings = load_settings(db)
    booked = get_active_intervals(db, working_window(settings, calendar_date))
    return settings, generate_slots(settings, calendar_date, booked)


def book_appointment(
    db: Session,
    start_time_utc: datetime,
    details: BookingDetails,
    now: datetime | None = None,
) -> BookingResult:
    """
    Validate a requested start and reserve it.

    The read-only checks run without the lock; the overlap query, insert and
    commit run under it. The partial unique index on active start instants
    rejects a second writer from another process, which is reported as
    ``slot_already_booked`` as well.
    """
    try:
        settings = load_settings(db)
    except SchedulingError as exc:
        return BookingResult(decision=BookingDecision(stage=ValidationStage.REJECTED, error=exc))

    decision = check_booking(settings, start_time_utc, now or datetime.now(timezone.utc))
    if decision.rejected:
        return BookingResult(decision=decision)

    with _booking_lock:
        existing = get_active_intervals(db, decision.candidate)
        decision = accept(check_conflicts(decision, existing))
        if decision.rejected:
            return BookingResult(decision=decision)

        draft = decision.draft
        appointment = Appointment(
            appointment_title=details.appointment_title or config.DEFAULT_APPOINTMENT_TITLE,
            description=details.description or '',
            start_time_utc=to_storage(draft.start_time_utc),
            end_time_utc=to_storage(draft.end_time_utc),
            status=draft.status,
            meeting_link='',
            reminder_confirmation_sent=draft.reminders_sent['confirmation'],
            reminder_one_hour_before_sent=draft.reminders_sent['one_hour_before'],
            client_email=details.client_email,
            client_timezone=details.client_timezone,
        )
        db.add(appointment)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            if not _is_active_start_conflict(exc):
                raise
            logger.warning('Storage rejected a second booking for %s', draft.start_time_utc.isoformat())
            return BookingResult(
                decision=decision.reject(
                    SchedulingError(ErrorKind.SLOT_ALREADY_BOOKED, 'Time slot is already booked')
                )
            )
        db.refresh(appointment)

    logger.info('Booked appointment %s at %s', appointment.id, draft.start_time_utc.isoformat())
    return BookingResult(decision=decision, appointment=appointment)


def change_status(db: Session, appointment: Appointment, new_status: str) -> None:
    """
    Move ``appointment`` to ``new_status`` without breaking the no-overlap rule.

    Reactivating a cancelled appointment re-checks its interval against the
    active bookings under the same lock as new bookings.
    """
    reactivating = appointment.status not in ACTIVE_STATUSES and new_status in ACTIVE_STATUSES

    with _booking_lock:
        if reactivating:
            candidate = Interval(ensure_utc(appointment.start_time_utc), ensure_utc(appointment.end_time_utc))
            others = db.query(Appointment.id).filter(
                Appointment.id != appointment.id,
                Appointment.status.in_(ACTIVE_STATUSES),
                Appointment.start_time_utc < to_storage(candidate.end),
                Appointment.end_time_utc > to_storage(candidate.start),
            ).first()
            if others is not None:
                raise SchedulingError(ErrorKind.SLOT_ALREADY_BOOKED, 'Time slot is already booked')

        appointment.status = new_status
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            if not _is_active_start_conflict(exc):
                raise
            raise SchedulingError(ErrorKind.SLOT_ALREADY_BOOKED, 'Time slot is already booked') from exc
