"""Reservation status machine.

Transitions:
    CONFIRMED → COMPLETED | CANCELLED | NO_SHOW
    CANCELLED / NO_SHOW → CONFIRMED (restore)
    COMPLETED is terminal.

A restore puts the reservation back into the conflict set, so it re-runs
the overlap check inside a write transaction.
"""
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from salon_booking.business_config import BusinessConfig
from salon_booking.database import Database
from salon_booking.database_models import Reservation, Staff
from salon_booking.errors import (
    BookingValidationError, BusinessRuleViolation, InvalidStatusTransition,
    ReservationNotFound, SchedulingConflict,
)
from salon_booking.logging_config import get_logger
from salon_booking.overlap import TimeWindow, confirmed_windows_by_staff, has_conflict
from salon_booking.reservation_writer import load_reservation
from salon_booking.timeutils import time_to_minutes

logger = get_logger(__name__)


class ReservationStatus(str, Enum):
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


# Pattern: current status → [allowed next statuses]
VALID_TRANSITIONS: Dict[ReservationStatus, List[ReservationStatus]] = {
    ReservationStatus.CONFIRMED: [
        ReservationStatus.COMPLETED,
        ReservationStatus.CANCELLED,
        ReservationStatus.NO_SHOW,
    ],
    ReservationStatus.CANCELLED: [ReservationStatus.CONFIRMED],  # restore
    ReservationStatus.NO_SHOW: [ReservationStatus.CONFIRMED],  # restore
    ReservationStatus.COMPLETED: [],
}


def validate_transition(current: ReservationStatus, intended: ReservationStatus) -> bool:
    """
    Validate a status transition.

    Example:
        >>> validate_transition(ReservationStatus.CANCELLED, ReservationStatus.CONFIRMED)
        True
        >>> validate_transition(ReservationStatus.COMPLETED, ReservationStatus.CONFIRMED)
        False
    """
    return intended in VALID_TRANSITIONS.get(current, [])


def get_reservation(database: Database, reservation_id: str) -> Reservation:
    with database.read_session() as db:
        reservation = load_reservation(db, reservation_id)
    if reservation is None:
        raise ReservationNotFound("Reservation not found")
    return reservation


def update_reservation_status(
    database: Database,
    reservation_id: str,
    status: Optional[str] = None,
    note: Optional[str] = None,
) -> Reservation:
    """
    Admin status change and/or note edit.

    Raises:
        ReservationNotFound: unknown id
        InvalidStatusTransition: transition not allowed from the current status
        SchedulingConflict: restoring into a slot that has since been taken
    """
    with database.transaction() as db:
        reservation = db.get(Reservation, reservation_id)
        if reservation is None:
            raise ReservationNotFound("Reservation not found")

        if status is not None and status != reservation.status:
            current = ReservationStatus(reservation.status)
            try:
                intended = ReservationStatus(status)
            except ValueError:
                raise BookingValidationError(f"Unknown status: {status}")
            if not validate_transition(current, intended):
                raise InvalidStatusTransition(
                    f"Cannot change status from {current.value} to {intended.value}"
                )

            if intended == ReservationStatus.CONFIRMED:
                _ensure_slot_free(db, reservation)

            reservation.status = intended.value
            logger.info(
                "reservation_status_changed",
                reservation_id=reservation.id,
                from_status=current.value,
                to_status=intended.value,
            )

        if note is not None:
            reservation.note = note

        try:
            db.flush()
        except IntegrityError as e:
            raise SchedulingConflict("This time slot has already been taken by another reservation") from e

        return load_reservation(db, reservation.id)


def _ensure_slot_free(db, reservation: Reservation) -> None:
    db.query(Staff).filter(Staff.id == reservation.staff_id).with_for_update().first()
    booked = confirmed_windows_by_staff(
        db, reservation.date,
        staff_ids=[reservation.staff_id],
        exclude_reservation=reservation.id,
    )
    window = TimeWindow.from_times(reservation.start_time, reservation.end_time)
    if has_conflict(window, booked.get(reservation.staff_id, ())):
        raise SchedulingConflict("This time slot has already been taken by another reservation")


def cancellation_deadline(config: BusinessConfig, reservation: Reservation) -> datetime:
    """Naive salon-local deadline, e.g. 19:00 the day before."""
    deadline = config.cancel_deadline
    minutes = time_to_minutes(deadline.time)
    day = reservation.date - timedelta(days=deadline.days_before)
    return datetime(day.year, day.month, day.day) + timedelta(minutes=minutes)


def can_cancel(config: BusinessConfig, reservation: Reservation, now: datetime) -> bool:
    return now.replace(tzinfo=None) < cancellation_deadline(config, reservation)


def cancel_reservation(
    database: Database,
    config: BusinessConfig,
    reservation_id: str,
    now: datetime,
) -> Reservation:
    """
    Customer self-service cancellation.

    Raises:
        ReservationNotFound: unknown id
        BusinessRuleViolation: not CONFIRMED, or past the cancellation deadline
    """
    with database.transaction() as db:
        reservation = db.get(Reservation, reservation_id)
        if reservation is None:
            raise ReservationNotFound("Reservation not found")

        if reservation.status == ReservationStatus.CANCELLED.value:
            raise BusinessRuleViolation("This reservation has already been cancelled", reason="already_cancelled")
        if reservation.status != ReservationStatus.CONFIRMED.value:
            raise BusinessRuleViolation("This reservation can no longer be cancelled", reason="not_cancellable")
        if not can_cancel(config, reservation, now):
            raise BusinessRuleViolation(
                "The cancellation deadline has passed. Please contact the salon by phone.",
                reason="cancel_deadline_passed",
            )

        reservation.status = ReservationStatus.CANCELLED.value
        logger.info("reservation_cancelled", reservation_id=reservation.id, by="customer")
        db.flush()
        return load_reservation(db, reservation.id)
