"""Configuration for the salon booking service.

Process-level settings come from the environment (``.env`` is honoured);
business defaults below are used whenever the ``settings`` table has no
override. Weekday numbers follow Sunday=0 ... Saturday=6.
"""
import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///salon.db")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("LOG_JSON", "true").lower() in ("1", "true", "yes")
SALON_TIMEZONE = os.getenv("SALON_TIMEZONE", "Asia/Tokyo")

# Comma-separated origins allowed to call the public booking API
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

SALON_INFO = {
    "name": "LUMINA HAIR STUDIO",
    "phone": "03-1234-5678",
}

BUSINESS_HOURS = {
    "weekday": {
        "open": "10:00",
        "last_booking": "19:00",
        "close": "20:00",
    },
    "weekend": {
        "open": "09:00",
        "last_booking": "18:00",
        "close": "19:00",
    },
}

DEFAULT_CLOSED_DAYS = [1]  # Monday

BOOKING = {
    "slot_interval_minutes": 10,
    "booking_advance_days": 60,
    "cancel_deadline": {
        "days_before": 1,
        "time": "19:00",
    },
}

# Reservation writer retries on serialization failures / unique races
TRANSACTION_MAX_ATTEMPTS = int(os.getenv("TRANSACTION_MAX_ATTEMPTS", "3"))

# Seconds a SQLite connection waits for the write lock
SQLITE_BUSY_TIMEOUT = int(os.getenv("SQLITE_BUSY_TIMEOUT", "30"))
