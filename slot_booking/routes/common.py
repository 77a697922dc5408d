from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from slot_booking.database import ensure_appointment_schema, ensure_availability_schema
from slot_booking.scheduling.errors import SchedulingError

DATABASE_UNAVAILABLE = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def ensure_database_ready() -> None:
    try:
        ensure_availability_schema()
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE,
    )


def rejection(error: SchedulingError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.to_detail())
