"""
Business configuration snapshot.

Settings that used to be fetched ad hoc (closed days, business hours)
are loaded once per request into an immutable, versioned
``BusinessConfig`` and handed to every calendar/availability/booking call.

Pattern: separate database persistence (``Setting`` rows) from the
domain model (``BusinessConfig``).
"""
import json
from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from sqlalchemy.orm import Session as SQLSession

from salon_booking import config
from salon_booking.database_models import Setting
from salon_booking.timeutils import time_to_minutes

SETTING_KEYS = {
    "closed_days": "closed_days",
    "public_holidays": "public_holidays",
    "slot_interval_minutes": "slot_interval_minutes",
    "booking_advance_days": "booking_advance_days",
    "version": "config_version",
}


class BusinessHours(BaseModel):
    """Opening hours for one kind of day."""
    model_config = ConfigDict(frozen=True)

    open: str = Field(..., description="Opening time HH:MM")
    last_booking: str = Field(..., description="Latest start time HH:MM")
    close: str = Field(..., description="Closing time HH:MM")

    @field_validator("open", "last_booking", "close")
    @classmethod
    def validate_time(cls, v):
        time_to_minutes(v)
        return v

    @model_validator(mode="after")
    def check_order(self):
        if not (time_to_minutes(self.open) <= time_to_minutes(self.last_booking) <= time_to_minutes(self.close)):
            raise ValueError("Business hours must satisfy open <= last_booking <= close")
        return self


class CancelDeadline(BaseModel):
    model_config = ConfigDict(frozen=True)

    days_before: int = Field(default=1, ge=0, le=30)
    time: str = Field(default="19:00")

    @field_validator("time")
    @classmethod
    def validate_time(cls, v):
        time_to_minutes(v)
        return v


class BusinessConfig(BaseModel):
    """Immutable configuration snapshot for one request."""
    model_config = ConfigDict(frozen=True)

    version: int = Field(default=0, ge=0)
    closed_days: List[int] = Field(default_factory=lambda: list(config.DEFAULT_CLOSED_DAYS))
    weekday_hours: BusinessHours = Field(
        default_factory=lambda: BusinessHours(**config.BUSINESS_HOURS["weekday"])
    )
    weekend_hours: BusinessHours = Field(
        default_factory=lambda: BusinessHours(**config.BUSINESS_HOURS["weekend"])
    )
    public_holidays: List[date] = Field(
        default_factory=list,
        description="Dates served with weekend hours"
    )
    slot_interval_minutes: int = Field(
        default=config.BOOKING["slot_interval_minutes"], ge=5, le=120
    )
    booking_advance_days: int = Field(
        default=config.BOOKING["booking_advance_days"], ge=0, le=365
    )
    cancel_deadline: CancelDeadline = Field(
        default_factory=lambda: CancelDeadline(**config.BOOKING["cancel_deadline"])
    )
    timezone: str = Field(default=config.SALON_TIMEZONE)

    @field_validator("closed_days")
    @classmethod
    def validate_closed_days(cls, v):
        """Weekday numbers are Sunday=0 ... Saturday=6."""
        if any(day < 0 or day > 6 for day in v):
            raise ValueError("Closed days must be between 0 (Sunday) and 6 (Saturday)")
        return sorted(set(v))


def _read_settings(db: SQLSession) -> Dict[str, Any]:
    raw = {row.key: row.value for row in db.query(Setting).all()}
    values: Dict[str, Any] = {}
    for field_name, key in SETTING_KEYS.items():
        if key in raw:
            values[field_name] = json.loads(raw[key])
    return values


def load_business_config(db: SQLSession) -> BusinessConfig:
    """
    Build a configuration snapshot from the ``settings`` table.

    Missing keys fall back to the defaults in ``config``.
    """
    return BusinessConfig(**_read_settings(db))


def update_business_settings(
    db: SQLSession,
    closed_days: Optional[List[int]] = None,
    public_holidays: Optional[List[date]] = None,
) -> BusinessConfig:
    """
    Persist setting changes and bump the configuration version.

    Runs inside the caller's transaction. Validation happens on the
    resulting snapshot before anything is written.
    """
    current = load_business_config(db)
    changes: Dict[str, Any] = {"version": current.version + 1}
    if closed_days is not None:
        changes["closed_days"] = closed_days
    if public_holidays is not None:
        changes["public_holidays"] = public_holidays

    updated = BusinessConfig(**{**current.model_dump(), **changes})

    dumped = updated.model_dump(mode="json")
    for field_name in changes:
        key = SETTING_KEYS[field_name]
        row = db.get(Setting, key)
        value = json.dumps(dumped[field_name])
        if row is None:
            db.add(Setting(key=key, value=value))
        else:
            row.value = value

    return updated
