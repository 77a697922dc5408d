"""
Post-commit follow-up work for bookings.

Runs after the booking response has been sent:
- create the conference link and store it on the appointment
- send the confirmation email, then mark the confirmation reminder as sent
- periodically send one-hour-before reminders (send_due_reminders)

Failures are logged and never reach the client that booked. An appointment
whose follow-up failed keeps an empty or placeholder link and an unset
confirmation flag until the follow-up is queued again.
"""

import logging
import time
from datetime import datetime, timedelta, timezone

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from slot_booking.core import config
from slot_booking.database import SessionLocal
from slot_booking.models.appointment import Appointment
from slot_booking.notifications.mailer import build_confirmation_message, build_reminder_message, send_email
from slot_booking.notifications.meet import LINK_NOT_CREATED, get_provider
from slot_booking.scheduling.timemath import to_storage

logger = logging.getLogger(__name__)


def run_with_retries(action, description: str, attempts: int | None = None, delay: float | None = None):
    attempts = max(1, attempts or config.FOLLOW_UP_MAX_ATTEMPTS)
    delay = config.FOLLOW_UP_RETRY_DELAY_SECONDS if delay is None else delay

    for attempt in range(1, attempts + 1):
        try:
            return action()
        except Exception:
            if attempt == attempts:
                raise
            logger.warning('%s failed (attempt %s of %s), retrying', description, attempt, attempts)
            time.sleep(delay)


def needs_follow_up(appointment: Appointment) -> bool:
    return (
        appointment.status == 'scheduled'
        and (appointment.meeting_link in ('', LINK_NOT_CREATED) or not appointment.reminder_confirmation_sent)
    )


def _ensure_meeting_link(appointment: Appointment, provider) -> None:
    if appointment.meeting_link and appointment.meeting_link != LINK_NOT_CREATED:
        return

    try:
        link = run_with_retries(
            lambda: provider.create_meeting(appointment),
            f'Meeting link for appointment {appointment.id}',
        )
    except Exception:
        logger.exception('Could not create a meeting link for appointment %s', appointment.id)
        link = ''

    appointment.meeting_link = link.strip() if isinstance(link, str) and link.strip() else LINK_NOT_CREATED


def _ensure_confirmation(appointment: Appointment, send) -> bool:
    if appointment.reminder_confirmation_sent:
        return False

    if not config.EMAIL_ENABLED:
        logger.info('Email disabled; confirmation for appointment %s not sent', appointment.id)
        return False

    try:
        run_with_retries(
            lambda: send(build_confirmation_message(appointment)),
            f'Confirmation email for appointment {appointment.id}',
        )
    except Exception:
        logger.exception('Could not send the confirmation email for appointment %s', appointment.id)
        return False

    appointment.reminder_confirmation_sent = True
    return True


def run_booking_follow_up(appointment_id: int, session_factory=SessionLocal, provider=None, send=send_email) -> None:
    db = session_factory()
    try:
        appointment = db.get(Appointment, appointment_id)
        if appointment is None:
            logger.warning('Follow-up skipped: appointment %s no longer exists', appointment_id)
            return

        if appointment.status != 'scheduled':
            logger.info('Follow-up skipped: appointment %s is %s', appointment_id, appointment.status)
            return

        _ensure_meeting_link(appointment, provider or get_provider())
        db.commit()

        # Only a delivered email flips the confirmation flag.
        if _ensure_confirmation(appointment, send):
            db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception('Follow-up for appointment %s could not be saved', appointment_id)
    finally:
        db.close()


def send_due_reminders(db, now: datetime | None = None, send=send_email) -> int:
    """Send reminders for scheduled appointments starting within the lead window."""
    if not config.EMAIL_ENABLED:
        return 0

    current_time = now or datetime.now(timezone.utc)
    window_end = current_time + timedelta(minutes=config.REMINDER_LEAD_MINUTES)

    due = db.query(Appointment).filter(
        Appointment.status == 'scheduled',
        # Rows added by the column upgrade may hold NULL instead of false.
        or_(
            Appointment.reminder_one_hour_before_sent.is_(False),
            Appointment.reminder_one_hour_before_sent.is_(None),
        ),
        Appointment.start_time_utc > to_storage(current_time),
        Appointment.start_time_utc <= to_storage(window_end),
    ).order_by(Appointment.start_time_utc.asc()).all()

    sent_count = 0
    for appointment in due:
        try:
            send(build_reminder_message(appointment))
        except Exception:
            logger.exception('Could not send the reminder for appointment %s', appointment.id)
            continue

        appointment.reminder_one_hour_before_sent = True
        db.commit()
        sent_count += 1

    if sent_count > 0:
        logger.info('send_due_reminders: %s reminders sent', sent_count)

    return sent_count
