"""
Reservation writer.

Commits a fully validated booking as one unit of work:

    1. lock the staff row and re-check CONFIRMED conflicts
    2. upsert the customer by phone
    3. insert the reservation and its item snapshots
    4. consume the coupon (conditional increment)

Any failure rolls the whole unit back. Serialization failures and
customer-phone races are retried a bounded number of times; a collision
on the confirmed-slot unique index is reported as a scheduling conflict.
"""
from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session as SQLSession, selectinload
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from salon_booking import config
from salon_booking.catalog import MenuSnapshot
from salon_booking.coupons import CouponValidationResult, consume_coupon
from salon_booking.database import Database, is_serialization_failure
from salon_booking.database_models import Customer, Reservation, ReservationItem, Staff
from salon_booking.errors import SchedulingConflict
from salon_booking.logging_config import get_logger
from salon_booking.overlap import CONFIRMED, TimeWindow, confirmed_windows_by_staff, has_conflict

logger = get_logger(__name__)


class CustomerPhoneRace(Exception):
    """Another transaction created the same customer phone first."""


@dataclass(frozen=True)
class ReservationDraft:
    customer_name: str
    customer_phone: str
    staff_id: str
    staff_name: str
    date: date
    start_time: str
    end_time: str
    menus: Sequence[MenuSnapshot]
    total_price: int
    total_duration: int
    menu_summary: str
    customer_email: Optional[str] = None
    coupon: Optional[CouponValidationResult] = None
    payment_method: str = "ONSITE"
    payment_reference: Optional[str] = None
    is_first_visit: Optional[bool] = None
    note: Optional[str] = None

    @property
    def window(self) -> TimeWindow:
        return TimeWindow.from_times(self.start_time, self.end_time)


def upsert_customer(db: SQLSession, name: str, phone: str, email: Optional[str] = None) -> Customer:
    """
    Find the customer by phone and refresh their details, or create one.

    The name is always updated; the email only when one is given.

    Raises:
        CustomerPhoneRace: a concurrent transaction inserted the phone first
    """
    customer = db.query(Customer).filter(Customer.phone == phone).first()
    if customer is not None:
        customer.name = name
        if email:
            customer.email = email
        return customer

    customer = Customer(name=name, phone=phone, email=email)
    db.add(customer)
    try:
        db.flush()
    except IntegrityError as e:
        raise CustomerPhoneRace(phone) from e
    return customer


def _lock_staff(db: SQLSession, staff_id: str) -> Staff:
    # FOR UPDATE on PostgreSQL; SQLite already holds the write lock (BEGIN IMMEDIATE)
    staff = db.query(Staff).filter(Staff.id == staff_id).with_for_update().first()
    if staff is None or not staff.is_active:
        raise SchedulingConflict("Sorry, the selected stylist is no longer available")
    return staff


def _write(db: SQLSession, draft: ReservationDraft) -> Reservation:
    _lock_staff(db, draft.staff_id)

    booked = confirmed_windows_by_staff(db, draft.date, staff_ids=[draft.staff_id])
    if has_conflict(draft.window, booked.get(draft.staff_id, ())):
        logger.info(
            "booking_conflict_detected",
            staff_id=draft.staff_id, date=str(draft.date), start=draft.start_time,
        )
        raise SchedulingConflict("Sorry, this time slot has just been booked")

    customer = upsert_customer(db, draft.customer_name, draft.customer_phone, draft.customer_email)

    coupon = draft.coupon if draft.coupon is not None and draft.coupon.valid else None
    reservation = Reservation(
        customer_id=customer.id,
        staff_id=draft.staff_id,
        staff_name=draft.staff_name,
        date=draft.date,
        start_time=draft.start_time,
        end_time=draft.end_time,
        total_price=draft.total_price,
        total_duration=draft.total_duration,
        menu_summary=draft.menu_summary,
        coupon_id=coupon.coupon_id if coupon else None,
        coupon_code=coupon.code if coupon else None,
        coupon_discount=coupon.discount_amount if coupon else 0,
        status=CONFIRMED,
        payment_method=draft.payment_method,
        payment_reference=draft.payment_reference,
        is_first_visit=draft.is_first_visit,
        note=draft.note,
    )
    reservation.items = [
        ReservationItem(
            menu_id=menu.id,
            menu_name=menu.name,
            category=menu.category_name,
            price=menu.price,
            duration=menu.duration,
            order_index=index,
        )
        for index, menu in enumerate(draft.menus)
    ]
    db.add(reservation)
    try:
        db.flush()
    except IntegrityError as e:
        raise SchedulingConflict("Sorry, this time slot has just been booked") from e

    if coupon:
        consume_coupon(db, coupon.coupon_id, customer.id, reservation.id, coupon.discount_amount)
        db.flush()

    return load_reservation(db, reservation.id)


def load_reservation(db: SQLSession, reservation_id: str) -> Optional[Reservation]:
    """Reservation with customer, staff and items eagerly loaded."""
    return (
        db.query(Reservation)
        .options(
            selectinload(Reservation.customer),
            selectinload(Reservation.staff),
            selectinload(Reservation.items),
        )
        .filter(Reservation.id == reservation_id)
        .populate_existing()
        .first()
    )


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, CustomerPhoneRace):
        return True
    return isinstance(exc, DBAPIError) and is_serialization_failure(exc)


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception()
    logger.warning(
        "transaction_retry",
        reason="customer_phone_race" if isinstance(exc, CustomerPhoneRace) else "serialization_failure",
        attempt=retry_state.attempt_number,
    )


def commit_reservation(database: Database, draft: ReservationDraft) -> Reservation:
    """
    Write a reservation atomically, retrying transient store failures.

    Raises:
        SchedulingConflict: the slot was taken before the write
        CouponRejected: the coupon ran out during the write
    """
    retrying = Retrying(
        stop=stop_after_attempt(config.TRANSACTION_MAX_ATTEMPTS),
        wait=wait_exponential(multiplier=0.05, max=0.5),
        retry=retry_if_exception(_is_retryable),
        before_sleep=_log_retry,
        reraise=True,
    )
    for attempt in retrying:
        with attempt:
            with database.transaction() as db:
                reservation = _write(db, draft)

    logger.info(
        "reservation_created",
        reservation_id=reservation.id,
        staff_id=reservation.staff_id,
        date=str(reservation.date),
        start=reservation.start_time,
        end=reservation.end_time,
        coupon=reservation.coupon_code,
    )
    return reservation
