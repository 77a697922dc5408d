import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./slot_booking.db")
CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), ["http://localhost:3000"])

DEFAULT_SLOT_DURATION_MINUTES = _get_int(os.getenv("DEFAULT_SLOT_DURATION_MINUTES"), 20)
DEFAULT_BUFFER_BETWEEN_SLOTS_MINUTES = _get_int(os.getenv("DEFAULT_BUFFER_BETWEEN_SLOTS_MINUTES"), 10)
DEFAULT_APPOINTMENT_TITLE = os.getenv("DEFAULT_APPOINTMENT_TITLE", "Appointment")

MEETING_PROVIDER = os.getenv("MEETING_PROVIDER", "google_meet").strip().lower()
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID", "")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET", "")
GOOGLE_REFRESH_TOKEN = os.getenv("GOOGLE_REFRESH_TOKEN", "")
GOOGLE_TOKEN_URI = os.getenv("GOOGLE_TOKEN_URI", "https://oauth2.googleapis.com/token")
GOOGLE_CALENDAR_ID = os.getenv("GOOGLE_CALENDAR_ID", "primary")

EMAIL_ENABLED = _get_bool(os.getenv("EMAIL_ENABLED"), default=True)
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = _get_int(os.getenv("SMTP_PORT"), 587)
SMTP_USE_TLS = _get_bool(os.getenv("SMTP_USE_TLS"), default=True)
EMAIL_USER = os.getenv("EMAIL_USER", "")
EMAIL_PASS = os.getenv("EMAIL_PASS", "")
EMAIL_SENDER_NAME = os.getenv("EMAIL_SENDER_NAME", "Scheduling Team")

FOLLOW_UP_MAX_ATTEMPTS = _get_int(os.getenv("FOLLOW_UP_MAX_ATTEMPTS"), 3)
FOLLOW_UP_RETRY_DELAY_SECONDS = float(os.getenv("FOLLOW_UP_RETRY_DELAY_SECONDS", "2"))
FOLLOW_UP_TIMEOUT_SECONDS = float(os.getenv("FOLLOW_UP_TIMEOUT_SECONDS", "20"))
REMINDER_LEAD_MINUTES = _get_int(os.getenv("REMINDER_LEAD_MINUTES"), 60)


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and DATABASE_URL.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must point to a server database in production.")
    if MEETING_PROVIDER not in {"google_meet", "none"}:
        raise RuntimeError(f"Unsupported MEETING_PROVIDER: {MEETING_PROVIDER}")
