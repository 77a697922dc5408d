"""Availability configuration model definitions."""

from sqlalchemy import Column, DateTime, Integer, String, func
from slot_booking.database import Base


class AvailabilityConfig(Base):
    """Working hours of the single provider; at most one row exists."""
    __tablename__ = "availability"

    id = Column(Integer, primary_key=True)
    start_time = Column(String, nullable=False)  # "09:00" in the provider's timezone
    end_time = Column(String, nullable=False)  # "17:00" in the provider's timezone
    timezone = Column(String, nullable=False)
    slot_duration = Column(Integer, nullable=False, default=20)  # minutes
    buffer_between_slots = Column(Integer, nullable=False, default=10)  # minutes
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
