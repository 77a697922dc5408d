from datetime import date, datetime
from threading import Lock

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slot_booking.booking.service import get_availability_record, list_open_slots
from slot_booking.core import config
from slot_booking.database import get_db
from slot_booking.models.availability import AvailabilityConfig
from slot_booking.routes.common import database_unavailable, ensure_database_ready, rejection
from slot_booking.scheduling.errors import ErrorKind, SchedulingError
from slot_booking.scheduling.settings import AvailabilitySettings
from slot_booking.scheduling.timemath import format_utc_time, parse_calendar_date

router = APIRouter(tags=['availability'])

# Upserts must never leave two configuration rows behind.
_config_write_lock = Lock()


def _strip(value):
    if isinstance(value, str):
        return value.strip()
    return value


class AvailabilityRequest(BaseModel):
    start_time: str
    end_time: str
    timezone: str
    slot_duration: int | None = None
    buffer_between_slots: int | None = None

    @field_validator('start_time', 'end_time', 'timezone')
    @classmethod
    def strip_text(cls, value: str) -> str:
        return _strip(value)


class AvailabilityUpdateRequest(BaseModel):
    start_time: str | None = None
    end_time: str | None = None
    timezone: str | None = None
    slot_duration: int | None = None
    buffer_between_slots: int | None = None

    @field_validator('start_time', 'end_time', 'timezone')
    @classmethod
    def strip_text(cls, value: str | None) -> str | None:
        return _strip(value)


class AvailabilityResponse(BaseModel):
    id: int
    start_time: str
    end_time: str
    timezone: str
    slot_duration: int
    buffer_between_slots: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class TimeSlotsResponse(BaseModel):
    date: date
    time_slots: list[str]
    timezone: str


def _apply(record: AvailabilityConfig, settings: AvailabilitySettings) -> None:
    record.start_time = settings.start_time
    record.end_time = settings.end_time
    record.timezone = settings.timezone
    record.slot_duration = settings.slot_duration
    record.buffer_between_slots = settings.buffer_between_slots


def not_configured() -> HTTPException:
    return rejection(SchedulingError(ErrorKind.NOT_FOUND, 'Availability not configured yet'))


@router.get('', response_model=AvailabilityResponse)
def get_availability(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        record = get_availability_record(db)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if record is None:
        raise not_configured()

    return record


@router.post('', response_model=AvailabilityResponse)
def upsert_availability(data: AvailabilityRequest, db: Session = Depends(get_db)):
    try:
        settings = AvailabilitySettings(
            start_time=data.start_time,
            end_time=data.end_time,
            timezone=data.timezone,
            slot_duration=(
                config.DEFAULT_SLOT_DURATION_MINUTES if data.slot_duration is None else data.slot_duration
            ),
            buffer_between_slots=(
                config.DEFAULT_BUFFER_BETWEEN_SLOTS_MINUTES
                if data.buffer_between_slots is None
                else data.buffer_between_slots
            ),
        ).validate()
    except SchedulingError as exc:
        raise rejection(exc) from exc

    ensure_database_ready()

    try:
        with _config_write_lock:
            record = get_availability_record(db)
            if record is None:
                record = AvailabilityConfig()
                db.add(record)

            _apply(record, settings)
            db.commit()
            db.refresh(record)

        return record
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.patch('', response_model=AvailabilityResponse)
def update_availability(data: AvailabilityUpdateRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        with _config_write_lock:
            record = get_availability_record(db)
            if record is None:
                raise not_configured()

            current = AvailabilitySettings(
                start_time=record.start_time,
                end_time=record.end_time,
                timezone=record.timezone,
                slot_duration=record.slot_duration,
                buffer_between_slots=record.buffer_between_slots,
            )
            try:
                updated = current.with_updates(**data.model_dump(exclude_unset=True))
            except SchedulingError as exc:
                raise rejection(exc) from exc

            _apply(record, updated)
            db.commit()
            db.refresh(record)

        return record
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('/time-slots', response_model=TimeSlotsResponse)
def list_time_slots(
    slot_date: str = Query(..., alias='date'),
    db: Session = Depends(get_db),
):
    try:
        calendar_date = parse_calendar_date(slot_date)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Invalid date format',
        ) from exc

    ensure_database_ready()

    try:
        settings, slots = list_open_slots(db, calendar_date)
    except SchedulingError as exc:
        raise rejection(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return TimeSlotsResponse(
        date=calendar_date,
        time_slots=[format_utc_time(slot) for slot in slots],
        timezone=settings.timezone,
    )
