import re
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slot_booking.booking.service import BookingDetails, book_appointment, change_status
from slot_booking.core import config
from slot_booking.database import get_db
from slot_booking.models.appointment import Appointment
from slot_booking.notifications.follow_up import needs_follow_up, run_booking_follow_up, send_due_reminders
from slot_booking.routes.common import database_unavailable, ensure_database_ready, rejection
from slot_booking.scheduling.errors import SchedulingError
from slot_booking.scheduling.timemath import ensure_utc, resolve_timezone

router = APIRouter(tags=['appointments'])

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 2000


class CreateAppointmentRequest(BaseModel):
    start_time_utc: datetime
    client_email: str
    client_timezone: str
    appointment_title: str = config.DEFAULT_APPOINTMENT_TITLE
    description: str = ''

    @field_validator('start_time_utc')
    @classmethod
    def normalize_start_time(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @field_validator('client_email')
    @classmethod
    def validate_client_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not EMAIL_PATTERN.match(normalized):
            raise ValueError('Please provide a valid email address')
        return normalized

    @field_validator('client_timezone')
    @classmethod
    def validate_client_timezone(cls, value: str) -> str:
        normalized = value.strip()
        try:
            resolve_timezone(normalized)
        except SchedulingError as exc:
            raise ValueError(exc.message) from exc
        return normalized

    @field_validator('appointment_title')
    @classmethod
    def validate_title(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            return config.DEFAULT_APPOINTMENT_TITLE
        if len(normalized) > MAX_TITLE_LENGTH:
            raise ValueError(f'Title must be {MAX_TITLE_LENGTH} characters or fewer.')
        return normalized

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str) -> str:
        normalized = value.strip()
        if len(normalized) > MAX_DESCRIPTION_LENGTH:
            raise ValueError(f'Description must be {MAX_DESCRIPTION_LENGTH} characters or fewer.')
        return normalized


class RemindersSent(BaseModel):
    confirmation: bool = False
    one_hour_before: bool = False


class RemindersUpdate(BaseModel):
    confirmation: bool | None = None
    one_hour_before: bool | None = None


class UpdateAppointmentRequest(BaseModel):
    status: Literal['scheduled', 'completed', 'cancelled'] | None = None
    reminders_sent: RemindersUpdate | None = None


class AppointmentResponse(BaseModel):
    id: int
    appointment_title: str
    description: str
    start_time_utc: datetime
    end_time_utc: datetime
    status: str
    meeting_link: str
    reminders_sent: RemindersSent
    client_email: str
    client_timezone: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class FollowUpResponse(BaseModel):
    appointment_id: int
    queued: bool


class ReminderDispatchResponse(BaseModel):
    sent: int


def to_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        appointment_title=appointment.appointment_title,
        description=appointment.description or '',
        start_time_utc=ensure_utc(appointment.start_time_utc),
        end_time_utc=ensure_utc(appointment.end_time_utc),
        status=appointment.status,
        meeting_link=appointment.meeting_link or '',
        reminders_sent=RemindersSent(**appointment.reminders_sent),
        client_email=appointment.client_email,
        client_timezone=appointment.client_timezone,
        created_at=appointment.created_at,
        updated_at=appointment.updated_at,
    )


def get_appointment_or_404(appointment_id: int, db: Session) -> Appointment:
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Appointment not found',
        )
    return appointment


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        result = book_appointment(
            db,
            data.start_time_utc,
            BookingDetails(
                client_email=data.client_email,
                client_timezone=data.client_timezone,
                appointment_title=data.appointment_title,
                description=data.description,
            ),
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    if not result.accepted:
        raise rejection(result.decision.error)

    # Link creation and email run after the response is sent.
    background_tasks.add_task(run_booking_follow_up, result.appointment.id)

    return to_response(result.appointment)


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointments = db.query(Appointment).order_by(Appointment.start_time_utc.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return [to_response(appointment) for appointment in appointments]


@router.post('/reminders', response_model=ReminderDispatchResponse)
def dispatch_reminders(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        sent = send_due_reminders(db)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return ReminderDispatchResponse(sent=sent)


@router.put('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    data: UpdateAppointmentRequest,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(appointment_id, db)

        if data.reminders_sent is not None:
            if data.reminders_sent.confirmation is not None:
                appointment.reminder_confirmation_sent = data.reminders_sent.confirmation
            if data.reminders_sent.one_hour_before is not None:
                appointment.reminder_one_hour_before_sent = data.reminders_sent.one_hour_before

        if data.status is not None and data.status != appointment.status:
            try:
                change_status(db, appointment, data.status)
            except SchedulingError as exc:
                raise rejection(exc) from exc
        else:
            db.commit()

        db.refresh(appointment)
        return to_response(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(appointment_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(appointment_id, db)
        db.delete(appointment)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/{appointment_id}/follow-up', response_model=FollowUpResponse, status_code=status.HTTP_202_ACCEPTED)
def retry_follow_up(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = get_appointment_or_404(appointment_id, db)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if not needs_follow_up(appointment):
        return FollowUpResponse(appointment_id=appointment.id, queued=False)

    background_tasks.add_task(run_booking_follow_up, appointment.id)
    return FollowUpResponse(appointment_id=appointment.id, queued=True)
