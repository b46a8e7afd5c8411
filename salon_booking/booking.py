"""
Booking flow.

All checks that do not need the final conflict re-check run first, on a
read session, so that the write transaction only does the definitive
overlap check and the inserts:

    menus → date → closed day → all-day holiday → booking window →
    past time → business hours / cutoff → holiday blocks → coupon →
    staff selection → commit
"""
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from salon_booking.assignment import auto_assign, validate_requested_staff
from salon_booking.business_calendar import is_within_booking_window, load_day_calendar
from salon_booking.business_config import BusinessConfig
from salon_booking.catalog import load_menus
from salon_booking.coupons import CouponValidationParams, normalize_code, validate_coupon
from salon_booking.database import Database
from salon_booking.database_models import Customer, Reservation
from salon_booking.errors import BookingValidationError, BusinessRuleViolation, CouponRejected
from salon_booking.logging_config import get_logger
from salon_booking.overlap import TimeWindow, confirmed_windows_by_staff, has_conflict
from salon_booking.reservation_writer import ReservationDraft, commit_reservation
from salon_booking.staff_schedule import load_staff_profiles
from salon_booking.timeutils import (
    day_of_week, minutes_of_day, minutes_to_time, parse_date, time_to_minutes,
)

logger = get_logger(__name__)


@dataclass
class BookingRequest:
    menu_ids: List[str]
    date: str
    start_time: str
    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    staff_id: Optional[str] = None
    is_first_visit: Optional[bool] = None
    note: Optional[str] = None
    coupon_code: Optional[str] = None
    payment_method: str = "ONSITE"
    payment_reference: Optional[str] = None


def create_booking(
    database: Database,
    config: BusinessConfig,
    request: BookingRequest,
    now: datetime,
) -> Reservation:
    """
    Validate a booking request and commit it.

    Args:
        database: store
        config: configuration snapshot for this request
        request: booking request
        now: current salon time

    Returns:
        The committed reservation with customer, staff and items loaded

    Raises:
        BookingValidationError: malformed input or unknown menus/staff
        BusinessRuleViolation: the salon's rules forbid the booking
        CouponRejected: coupon not applicable
        SchedulingConflict: no staff free for the window
    """
    logger.info(
        "booking_requested",
        date=request.date, start=request.start_time,
        menus=len(request.menu_ids), staff_id=request.staff_id,
    )

    with database.read_session() as db:
        selection = load_menus(db, request.menu_ids)

        try:
            target = parse_date(request.date)
            start = time_to_minutes(request.start_time)
        except ValueError as e:
            raise BookingValidationError("Invalid date or time", detail=str(e))

        day = load_day_calendar(db, config, target)
        if day.closed_weekday:
            raise BusinessRuleViolation("Sorry, we are closed on this day", reason="closed_day")
        if day.all_day_holiday:
            raise BusinessRuleViolation(
                "Sorry, we are closed on this day",
                reason="holiday",
                detail=day.holiday_reason,
            )

        if not is_within_booking_window(config, target, now.date()):
            raise BusinessRuleViolation(
                f"Bookings can be made up to {config.booking_advance_days} days in advance",
                reason="outside_booking_window",
            )

        if target == now.date() and start <= minutes_of_day(now):
            raise BusinessRuleViolation("This time has already passed", reason="past_time")

        window = TimeWindow(start, start + selection.total_duration)
        open_minutes = time_to_minutes(day.hours.open)
        close_minutes = time_to_minutes(day.hours.close)
        cutoff = selection.last_booking_cutoff(day.hours.last_booking)
        hours_message = f"Please choose a time within business hours ({day.hours.open}-{day.hours.close})"
        if start < open_minutes:
            raise BusinessRuleViolation(hours_message, reason="outside_business_hours")
        if start > cutoff:
            raise BusinessRuleViolation(
                f"The last booking time for this selection is {minutes_to_time(cutoff)}",
                reason="after_last_booking",
            )
        if window.end > close_minutes:
            raise BusinessRuleViolation(hours_message, reason="outside_business_hours")
        if has_conflict(window, day.blocks):
            raise BusinessRuleViolation(
                "Sorry, the salon is closed during this time",
                reason="holiday",
                detail=day.holiday_reason,
            )

        coupon = None
        if request.coupon_code and request.coupon_code.strip():
            customer = db.query(Customer).filter(Customer.phone == request.customer_phone).first()
            coupon = validate_coupon(
                db,
                CouponValidationParams(
                    code=normalize_code(request.coupon_code),
                    subtotal=selection.total_price,
                    customer_id=customer.id if customer else None,
                    menus=selection.menus,
                    weekday=day_of_week(target),
                    time=request.start_time,
                ),
                now,
            )
            if not coupon.valid:
                logger.info("coupon_rejected", code=request.coupon_code, error=coupon.error)
                raise CouponRejected(coupon.error)

        profiles = load_staff_profiles(db, target, staff_id=request.staff_id)
        booked = confirmed_windows_by_staff(db, target)
        if request.staff_id:
            assignment = validate_requested_staff(
                profiles[0] if profiles else None,
                target, window, selection.menu_ids, booked,
            )
        else:
            assignment = auto_assign(profiles, target, window, selection.menu_ids, booked)

    draft = ReservationDraft(
        customer_name=request.customer_name,
        customer_phone=request.customer_phone,
        customer_email=request.customer_email,
        staff_id=assignment.staff_id,
        staff_name=assignment.staff_name,
        date=target,
        start_time=window.start_time,
        end_time=window.end_time,
        menus=selection.menus,
        total_price=selection.total_price,
        total_duration=selection.total_duration,
        menu_summary=selection.summary,
        coupon=coupon,
        payment_method=request.payment_method,
        payment_reference=request.payment_reference,
        is_first_visit=request.is_first_visit,
        note=request.note,
    )
    return commit_reservation(database, draft)
