"""Appointment model definitions."""

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, func, text
from slot_booking.database import Base

APPOINTMENT_STATUSES = ("scheduled", "completed", "cancelled")
ACTIVE_STATUSES = ("scheduled", "completed")
ACTIVE_START_INDEX = "uq_appointments_active_start"


class Appointment(Base):
    """Represents a booked slot; instants are stored as naive UTC."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointments_time_range", "start_time_utc", "end_time_utc"),
        Index(
            ACTIVE_START_INDEX,
            "start_time_utc",
            unique=True,
            sqlite_where=text("status != 'cancelled'"),
            postgresql_where=text("status != 'cancelled'"),
        ),
    )

    id = Column(Integer, primary_key=True)
    appointment_title = Column(String, nullable=False, default="Appointment")
    description = Column(String, nullable=False, default="")
    start_time_utc = Column(DateTime, nullable=False)
    end_time_utc = Column(DateTime, nullable=False)
    status = Column(String, nullable=False, default="scheduled")
    meeting_link = Column(String, nullable=False, default="")
    reminder_confirmation_sent = Column(Boolean, nullable=False, default=False)
    reminder_one_hour_before_sent = Column(Boolean, nullable=False, default=False)
    client_email = Column(String, nullable=False)
    client_timezone = Column(String, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def reminders_sent(self) -> dict:
        return {
            "confirmation": bool(self.reminder_confirmation_sent),
            "one_hour_before": bool(self.reminder_one_hour_before_sent),
        }
