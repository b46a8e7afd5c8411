"""Availability calculation.

Produces the bookable start times for a date and a set of menus,
optionally for one requested staff member.

The result is advisory: it reflects a point-in-time read and is not a
reservation. The reservation writer re-checks conflicts inside its
transaction.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy.orm import Session as SQLSession

from salon_booking.assignment import BookedWindows, pick_staff
from salon_booking.business_calendar import DayCalendar, is_within_booking_window, load_day_calendar
from salon_booking.business_config import BusinessConfig
from salon_booking.catalog import MenuSelection, load_menus
from salon_booking.errors import BookingValidationError
from salon_booking.logging_config import get_logger
from salon_booking.overlap import TimeWindow, confirmed_windows_by_staff, has_conflict
from salon_booking.staff_schedule import StaffProfile, load_staff_profiles
from salon_booking.timeutils import format_date, minutes_of_day, minutes_to_time, time_to_minutes

logger = get_logger(__name__)


@dataclass(frozen=True)
class Slot:
    time: str
    available: bool
    staff_id: Optional[str] = None


@dataclass(frozen=True)
class AvailabilityResult:
    date: str
    day_of_week: int
    is_closed: bool
    slots: Sequence[Slot] = ()
    total_duration: Optional[int] = None
    total_price: Optional[int] = None


def generate_grid(day: DayCalendar, interval_minutes: int) -> List[int]:
    """Start times from opening (inclusive) to closing (exclusive)."""
    return list(range(
        time_to_minutes(day.hours.open),
        time_to_minutes(day.hours.close),
        interval_minutes,
    ))


def compute_slots(
    day: DayCalendar,
    selection: MenuSelection,
    profiles: Sequence[StaffProfile],
    booked: BookedWindows,
    now: datetime,
    interval_minutes: int,
) -> List[Slot]:
    """
    Mark every grid start time available or not.

    A start time is available when it is not after the last-booking
    cutoff, not in the past, the service ends by closing time, the window
    misses every holiday block, and at least one of ``profiles`` can take
    it (qualified, on shift, conflict-free). The staff member
    auto-assignment would choose is reported with each available slot.
    """
    cutoff = selection.last_booking_cutoff(day.hours.last_booking)
    close = time_to_minutes(day.hours.close)
    duration = selection.total_duration
    past_until = minutes_of_day(now) if now.date() == day.date else None

    slots = []
    for start in generate_grid(day, interval_minutes):
        time_str = minutes_to_time(start)
        window = TimeWindow(start, start + duration)

        if start > cutoff:
            slots.append(Slot(time_str, False))
            continue
        if past_until is not None and start <= past_until:
            slots.append(Slot(time_str, False))
            continue
        if window.end > close or has_conflict(window, day.blocks):
            slots.append(Slot(time_str, False))
            continue

        chosen = pick_staff(profiles, day.date, window, selection.menu_ids, booked)
        if chosen is None:
            slots.append(Slot(time_str, False))
        else:
            slots.append(Slot(time_str, True, chosen.id))

    return slots


def get_availability(
    db: SQLSession,
    config: BusinessConfig,
    target: date,
    menu_ids: Sequence[str],
    now: datetime,
    staff_id: Optional[str] = None,
) -> AvailabilityResult:
    """
    Availability for one date.

    Args:
        db: read session
        config: configuration snapshot for this request
        target: requested date
        menu_ids: requested menus (must not be empty)
        now: current salon time (injected for determinism)
        staff_id: restrict to one staff member

    Raises:
        BookingValidationError: empty/unknown menus or unknown staff member
    """
    selection = load_menus(db, menu_ids)
    day = load_day_calendar(db, config, target)
    date_str = format_date(target)

    if day.is_closed:
        return AvailabilityResult(date=date_str, day_of_week=day.day_of_week, is_closed=True)

    if not is_within_booking_window(config, target, now.date()):
        return AvailabilityResult(date=date_str, day_of_week=day.day_of_week, is_closed=False)

    profiles = load_staff_profiles(db, target, staff_id=staff_id)
    if staff_id is not None and not profiles:
        raise BookingValidationError("The requested stylist was not found")

    booked: Dict[str, List[TimeWindow]] = confirmed_windows_by_staff(
        db, target, staff_ids=[p.id for p in profiles]
    )
    slots = compute_slots(day, selection, profiles, booked, now, config.slot_interval_minutes)

    logger.debug(
        "availability_computed",
        date=date_str,
        menus=len(selection.menus),
        available=sum(1 for s in slots if s.available),
        config_version=config.version,
    )

    return AvailabilityResult(
        date=date_str,
        day_of_week=day.day_of_week,
        is_closed=False,
        slots=tuple(slots),
        total_duration=selection.total_duration,
        total_price=selection.total_price,
    )
