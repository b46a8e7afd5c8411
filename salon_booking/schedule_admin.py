"""
Admin edits to schedule exceptions and business settings.

Each function is one unit of work on the store. Changes take effect for
the next availability query or booking; existing reservations are never
touched.
"""
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt

from salon_booking.business_calendar import regular_hours, special_open_bounds
from salon_booking.business_config import BusinessConfig, load_business_config, update_business_settings
from salon_booking.database import Database
from salon_booking.database_models import (
    Holiday, SpecialOpenDay, Staff, StaffScheduleOverride, StaffWeeklySchedule,
)
from salon_booking.errors import BookingValidationError, DuplicateRecord, RecordNotFound, StaffNotFound
from salon_booking.logging_config import get_logger
from salon_booking.timeutils import time_to_minutes

logger = get_logger(__name__)


@dataclass(frozen=True)
class WeeklyShift:
    day_of_week: int  # Sunday=0
    start_time: str
    end_time: str
    is_active: bool = True


def validate_time_range(start_time: Optional[str], end_time: Optional[str], require_both: bool = False):
    """
    Check optional HH:MM bounds.

    Raises:
        BookingValidationError: malformed time, missing bound, or start >= end
    """
    try:
        start = time_to_minutes(start_time) if start_time else None
        end = time_to_minutes(end_time) if end_time else None
    except ValueError as e:
        raise BookingValidationError("Invalid time", detail=str(e))

    if require_both and (start is None) != (end is None):
        raise BookingValidationError("Both start and end time are required")
    if start is not None and end is not None and start >= end:
        raise BookingValidationError("Start time must be before end time")


def _get_staff(db, staff_id: str) -> Staff:
    staff = db.get(Staff, staff_id)
    if staff is None:
        raise StaffNotFound("Staff member not found")
    return staff


def _find_override(db, staff_id: str, target: date) -> Optional[StaffScheduleOverride]:
    return (
        db.query(StaffScheduleOverride)
        .filter(StaffScheduleOverride.staff_id == staff_id, StaffScheduleOverride.date == target)
        .first()
    )


def upsert_schedule_override(
    database: Database,
    staff_id: str,
    target: date,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
) -> StaffScheduleOverride:
    """
    Set one-off hours for a date; no times marks the day off.

    A concurrent first save for the same staff and date loses on the unique
    index; the loser reruns once and updates the row the winner inserted.

    Raises:
        DuplicateRecord: the unique index still rejects the save after the rerun
    """
    validate_time_range(start_time, end_time, require_both=True)

    try:
        for attempt in Retrying(
            stop=stop_after_attempt(2),
            retry=retry_if_exception_type(IntegrityError),
            reraise=True,
        ):
            with attempt:
                with database.transaction() as db:
                    _get_staff(db, staff_id)
                    override = _find_override(db, staff_id, target)
                    if override is None:
                        override = StaffScheduleOverride(staff_id=staff_id, date=target)
                        db.add(override)
                    override.start_time = start_time
                    override.end_time = end_time
                    db.flush()
    except IntegrityError as e:
        raise DuplicateRecord("A schedule override for this date was saved concurrently") from e

    logger.info(
        "schedule_override_saved",
        staff_id=staff_id, date=str(target), day_off=start_time is None,
    )
    return override


def delete_schedule_override(database: Database, staff_id: str, target: date) -> None:
    """Revert a date to the weekly pattern."""
    with database.transaction() as db:
        _get_staff(db, staff_id)
        deleted = (
            db.query(StaffScheduleOverride)
            .filter(StaffScheduleOverride.staff_id == staff_id, StaffScheduleOverride.date == target)
            .delete(synchronize_session=False)
        )
    if not deleted:
        raise RecordNotFound("No schedule override for this date")
    logger.info("schedule_override_deleted", staff_id=staff_id, date=str(target))


def replace_weekly_schedule(
    database: Database,
    staff_id: str,
    shifts: Iterable[WeeklyShift],
) -> List[StaffWeeklySchedule]:
    """Replace a staff member's whole weekly pattern."""
    shifts = list(shifts)
    days = [s.day_of_week for s in shifts]
    if any(day < 0 or day > 6 for day in days):
        raise BookingValidationError("Day of week must be between 0 (Sunday) and 6 (Saturday)")
    if len(set(days)) != len(days):
        raise BookingValidationError("Each day of the week may appear only once")
    for shift in shifts:
        validate_time_range(shift.start_time, shift.end_time, require_both=True)

    with database.transaction() as db:
        _get_staff(db, staff_id)
        db.query(StaffWeeklySchedule).filter(
            StaffWeeklySchedule.staff_id == staff_id
        ).delete(synchronize_session=False)
        schedules = [
            StaffWeeklySchedule(
                staff_id=staff_id,
                day_of_week=s.day_of_week,
                start_time=s.start_time,
                end_time=s.end_time,
                is_active=s.is_active,
            )
            for s in sorted(shifts, key=lambda s: s.day_of_week)
        ]
        db.add_all(schedules)
        db.flush()

    logger.info("weekly_schedule_replaced", staff_id=staff_id, days=sorted(days))
    return schedules


def create_holiday(
    database: Database,
    target: date,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    reason: Optional[str] = None,
) -> Holiday:
    """Add an irregular closure; no times closes the whole day."""
    validate_time_range(start_time, end_time)
    with database.transaction() as db:
        holiday = Holiday(date=target, start_time=start_time, end_time=end_time, reason=reason)
        db.add(holiday)
        db.flush()
    logger.info("holiday_created", date=str(target), start=start_time, end=end_time)
    return holiday


def delete_holiday(database: Database, holiday_id: str) -> None:
    with database.transaction() as db:
        holiday = db.get(Holiday, holiday_id)
        if holiday is None:
            raise RecordNotFound("Holiday not found")
        db.delete(holiday)
    logger.info("holiday_deleted", holiday_id=holiday_id)


def create_special_open_day(
    database: Database,
    target: date,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    reason: Optional[str] = None,
) -> SpecialOpenDay:
    """
    Open a date that falls on a regular closed weekday.

    Raises:
        BookingValidationError: the bounds, merged with the regular hours
            for that date, leave no opening time
        DuplicateRecord: a special open day already exists for the date
    """
    validate_time_range(start_time, end_time)
    try:
        with database.transaction() as db:
            if start_time or end_time:
                base = regular_hours(load_business_config(db), target)
                open_minutes, close_minutes = special_open_bounds(base, start_time, end_time)
                if open_minutes >= close_minutes:
                    raise BookingValidationError(
                        "Special opening hours must start before closing time",
                        detail=f"Regular hours that day are {base.open}-{base.close}",
                    )
            if db.query(SpecialOpenDay).filter(SpecialOpenDay.date == target).first():
                raise DuplicateRecord("A special open day already exists for this date")
            special = SpecialOpenDay(date=target, start_time=start_time, end_time=end_time, reason=reason)
            db.add(special)
            db.flush()
    except IntegrityError as e:
        raise DuplicateRecord("A special open day already exists for this date") from e

    logger.info("special_open_day_created", date=str(target), start=start_time, end=end_time)
    return special


def delete_special_open_day(database: Database, special_open_day_id: str) -> None:
    with database.transaction() as db:
        special = db.get(SpecialOpenDay, special_open_day_id)
        if special is None:
            raise RecordNotFound("Special open day not found")
        db.delete(special)
    logger.info("special_open_day_deleted", special_open_day_id=special_open_day_id)


def update_settings(
    database: Database,
    closed_days: Optional[List[int]] = None,
    public_holidays: Optional[List[date]] = None,
) -> BusinessConfig:
    """
    Change business settings and bump the configuration version.

    Raises:
        BookingValidationError: the resulting configuration is invalid
    """
    try:
        with database.transaction() as db:
            updated = update_business_settings(db, closed_days=closed_days, public_holidays=public_holidays)
    except ValueError as e:
        raise BookingValidationError("Invalid settings", detail=str(e))

    logger.info("business_settings_updated", version=updated.version, closed_days=updated.closed_days)
    return updated
