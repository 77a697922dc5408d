from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from slot_booking.core import config


def _connect_args(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(config.DATABASE_URL, connect_args=_connect_args(config.DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_availability_schema_checked = False
_appointment_schema_checked = False


def ensure_availability_schema() -> None:
    global _availability_schema_checked

    if _availability_schema_checked:
        return

    with _schema_lock:
        if _availability_schema_checked:
            return

        inspector = inspect(engine)

        if 'availability' not in inspector.get_table_names():
            _availability_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('availability')}
        migration_steps = [
            ('slot_duration', 'ALTER TABLE availability ADD COLUMN slot_duration INTEGER'),
            ('buffer_between_slots', 'ALTER TABLE availability ADD COLUMN buffer_between_slots INTEGER'),
            ('created_at', 'ALTER TABLE availability ADD COLUMN created_at TIMESTAMP'),
            ('updated_at', 'ALTER TABLE availability ADD COLUMN updated_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))

        _availability_schema_checked = True


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('description', "ALTER TABLE appointments ADD COLUMN description VARCHAR DEFAULT ''"),
            ('meeting_link', "ALTER TABLE appointments ADD COLUMN meeting_link VARCHAR DEFAULT ''"),
            ('client_timezone', 'ALTER TABLE appointments ADD COLUMN client_timezone VARCHAR'),
            (
                'reminder_confirmation_sent',
                'ALTER TABLE appointments ADD COLUMN reminder_confirmation_sent BOOLEAN DEFAULT FALSE',
            ),
            (
                'reminder_one_hour_before_sent',
                'ALTER TABLE appointments ADD COLUMN reminder_one_hour_before_sent BOOLEAN DEFAULT FALSE',
            ),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_time_range ON appointments(start_time_utc, end_time_utc)')
            )
            connection.execute(
                text(
                    'CREATE UNIQUE INDEX IF NOT EXISTS uq_appointments_active_start '
                    "ON appointments(start_time_utc) WHERE status != 'cancelled'"
                )
            )

        _appointment_schema_checked = True


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
