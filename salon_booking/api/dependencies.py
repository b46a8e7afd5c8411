"""FastAPI dependency injection functions.

Tests swap these through ``app.dependency_overrides`` (temporary
database, fixed clock).
"""
from datetime import datetime

from fastapi import Depends

from salon_booking.business_config import BusinessConfig, load_business_config
from salon_booking.database import Database, get_database
from salon_booking.timeutils import now_in


def get_db() -> Database:
    """Process-wide store (singleton)."""
    return get_database()


def get_business_config(database: Database = Depends(get_db)) -> BusinessConfig:
    """
    Configuration snapshot for one request.

    Loaded once and passed to every calendar/availability/booking call so
    a request never sees settings change halfway through.
    """
    with database.read_session() as db:
        return load_business_config(db)


def get_now(config: BusinessConfig = Depends(get_business_config)) -> datetime:
    """Current salon-local time."""
    return now_in(config.timezone)
