import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')
os.environ.setdefault('EMAIL_ENABLED', 'true')
os.environ.setdefault('MEETING_PROVIDER', 'none')

from slot_booking.database import Base  # noqa: E402
from slot_booking.models.appointment import Appointment  # noqa: E402
from slot_booking.models.availability import AvailabilityConfig  # noqa: E402
from slot_booking.scheduling.settings import AvailabilitySettings  # noqa: E402


@pytest.fixture
def new_york_settings() -> AvailabilitySettings:
    return AvailabilitySettings(
        start_time='09:00',
        end_time='17:00',
        timezone='America/New_York',
        slot_duration=20,
        buffer_between_slots=10,
    ).validate()


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=[AvailabilityConfig.__table__, Appointment.__table__])
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine, tables=[Appointment.__table__, AvailabilityConfig.__table__])
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def configured_db(db, new_york_settings):
    db.add(
        AvailabilityConfig(
            start_time=new_york_settings.start_time,
            end_time=new_york_settings.end_time,
            timezone=new_york_settings.timezone,
            slot_duration=new_york_settings.slot_duration,
            buffer_between_slots=new_york_settings.buffer_between_slots,
        )
    )
    db.commit()
    return db


@pytest.fixture
def database_ready(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('slot_booking.routes.availability_routes.ensure_database_ready', lambda: None)
    monkeypatch.setattr('slot_booking.routes.appointment_routes.ensure_database_ready', lambda: None)
