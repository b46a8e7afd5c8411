"""
Staff assignment.

Auto-assignment filters active staff down to those who can perform every
requested menu, are on shift for the whole window and have no CONFIRMED
booking overlapping it, then applies one fixed tie-break:

    1. fewest CONFIRMED reservations on that date (load balancing)
    2. display_order ascending
    3. staff id ascending
"""
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Mapping, Optional, Sequence

from salon_booking.errors import BookingValidationError, BusinessRuleViolation, SchedulingConflict
from salon_booking.logging_config import get_logger
from salon_booking.overlap import TimeWindow, has_conflict
from salon_booking.staff_schedule import StaffProfile, is_on_shift

logger = get_logger(__name__)

BookedWindows = Mapping[str, Sequence[TimeWindow]]


@dataclass(frozen=True)
class StaffAssignment:
    staff_id: str
    staff_name: str
    auto_assigned: bool


def qualified_candidates(
    profiles: Iterable[StaffProfile],
    target: date,
    window: TimeWindow,
    menu_ids: Sequence[str],
) -> List[StaffProfile]:
    """Active staff able to do every menu and on shift for the whole window."""
    return [
        p for p in profiles
        if p.is_active and p.can_perform(menu_ids) and is_on_shift(p, target, window)
    ]


def rank_candidates(candidates: Iterable[StaffProfile], booked: BookedWindows) -> List[StaffProfile]:
    return sorted(
        candidates,
        key=lambda p: (len(booked.get(p.id, ())), p.display_order, p.id),
    )


def pick_staff(
    profiles: Iterable[StaffProfile],
    target: date,
    window: TimeWindow,
    menu_ids: Sequence[str],
    booked: BookedWindows,
) -> Optional[StaffProfile]:
    """Best free candidate for the window, or None when nobody fits."""
    free = [
        p for p in qualified_candidates(profiles, target, window, menu_ids)
        if not has_conflict(window, booked.get(p.id, ()))
    ]
    ranked = rank_candidates(free, booked)
    return ranked[0] if ranked else None


def auto_assign(
    profiles: Iterable[StaffProfile],
    target: date,
    window: TimeWindow,
    menu_ids: Sequence[str],
    booked: BookedWindows,
) -> StaffAssignment:
    """
    Pick a staff member when the customer has no preference.

    Raises:
        SchedulingConflict: no qualified, on-shift, unbooked staff member
    """
    chosen = pick_staff(profiles, target, window, menu_ids, booked)
    if chosen is None:
        logger.info(
            "auto_assignment_failed",
            date=str(target), start=window.start_time, end=window.end_time,
        )
        raise SchedulingConflict("Sorry, all stylists are fully booked for this time slot")

    logger.info(
        "staff_auto_assigned",
        staff_id=chosen.id, date=str(target), start=window.start_time,
    )
    return StaffAssignment(staff_id=chosen.id, staff_name=chosen.name, auto_assigned=True)


def validate_requested_staff(
    profile: Optional[StaffProfile],
    target: date,
    window: TimeWindow,
    menu_ids: Sequence[str],
    booked: BookedWindows,
) -> StaffAssignment:
    """
    Check an explicitly requested staff member.

    Raises:
        BookingValidationError: unknown or inactive staff member
        BusinessRuleViolation: not qualified, or not working the window
        SchedulingConflict: already booked for an overlapping window
    """
    if profile is None or not profile.is_active:
        raise BookingValidationError("The requested stylist was not found")

    if not profile.can_perform(menu_ids):
        raise BusinessRuleViolation(
            "This stylist does not offer the selected menus",
            reason="staff_not_qualified",
        )

    if not is_on_shift(profile, target, window):
        raise BusinessRuleViolation(
            "This stylist is not working during the requested time",
            reason="staff_not_working",
        )

    if has_conflict(window, booked.get(profile.id, ())):
        raise SchedulingConflict("Sorry, this stylist is already booked for this time slot")

    return StaffAssignment(staff_id=profile.id, staff_name=profile.name, auto_assigned=False)
