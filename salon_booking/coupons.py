"""
Coupon validation and consumption.

``validate_coupon`` is a read-only check run before the booking
transaction; ``consume_coupon`` runs inside it and re-enforces the usage
caps with a conditional UPDATE so that two concurrent bookings can never
push ``usage_count`` past ``usage_limit``.

Coupon validity datetimes are stored as naive salon-local times.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session as SQLSession

from salon_booking.catalog import MenuSnapshot
from salon_booking.database_models import Coupon, CouponUsage, Reservation
from salon_booking.errors import CouponRejected
from salon_booking.logging_config import get_logger

logger = get_logger(__name__)

PERCENTAGE = "PERCENTAGE"
FIXED = "FIXED"
COMPLETED = "COMPLETED"


@dataclass(frozen=True)
class CouponValidationParams:
    code: str
    subtotal: int
    customer_id: Optional[str] = None
    menus: Sequence[MenuSnapshot] = ()
    weekday: Optional[int] = None  # Sunday=0
    time: Optional[str] = None  # HH:MM of the booking


@dataclass(frozen=True)
class CouponValidationResult:
    valid: bool
    coupon_id: Optional[str] = None
    code: Optional[str] = None
    name: Optional[str] = None
    discount_amount: int = 0
    applicable_menu_ids: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def rejected(cls, error: str) -> "CouponValidationResult":
        return cls(valid=False, error=error)


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def calculate_discount(coupon_type: str, value: int, applicable_subtotal: int) -> int:
    """
    Discount for the applicable subtotal.

    PERCENTAGE rounds down to whole yen; FIXED never exceeds the subtotal.
    """
    if applicable_subtotal <= 0:
        return 0
    if coupon_type == PERCENTAGE:
        discount = applicable_subtotal * value // 100
    else:
        discount = min(value, applicable_subtotal)
    return max(0, min(discount, applicable_subtotal))


def applicable_items(coupon: Coupon, menus: Sequence[MenuSnapshot]) -> List[MenuSnapshot]:
    """Menus the coupon applies to; all of them when it has no allow-list."""
    menu_ids = coupon.applicable_menu_ids or []
    category_ids = coupon.applicable_category_ids or []
    if not menu_ids and not category_ids:
        return list(menus)
    return [m for m in menus if m.id in menu_ids or m.category_id in category_ids]


def count_customer_usages(db: SQLSession, coupon_id: str, customer_id: str) -> int:
    return (
        db.query(func.count(CouponUsage.id))
        .filter(CouponUsage.coupon_id == coupon_id, CouponUsage.customer_id == customer_id)
        .scalar()
    )


def count_completed_visits(db: SQLSession, customer_id: str) -> int:
    return (
        db.query(func.count(Reservation.id))
        .filter(Reservation.customer_id == customer_id, Reservation.status == COMPLETED)
        .scalar()
    )


def validate_coupon(db: SQLSession, params: CouponValidationParams, now: datetime) -> CouponValidationResult:
    """
    Check whether a coupon can be applied to a prospective booking.

    Rules are applied in a fixed order and the first failure is returned
    as ``error``. Customer-specific rules are skipped for customers not
    yet on file.

    Args:
        db: read session
        params: booking facts the coupon is checked against
        now: current salon time

    Returns:
        CouponValidationResult (never raises for a rejected coupon)
    """
    code = normalize_code(params.code)
    coupon = db.query(Coupon).filter(Coupon.code == code).first()
    if coupon is None:
        return CouponValidationResult.rejected("Coupon not found")

    if not coupon.is_active:
        return CouponValidationResult.rejected("This coupon is not currently active")

    local_now = now.replace(tzinfo=None)
    if local_now < coupon.valid_from:
        return CouponValidationResult.rejected(
            f"This coupon is valid from {coupon.valid_from.strftime('%Y-%m-%d')}"
        )
    if local_now > coupon.valid_until:
        return CouponValidationResult.rejected("This coupon has expired")

    if coupon.usage_limit is not None and coupon.usage_count >= coupon.usage_limit:
        return CouponValidationResult.rejected("This coupon has reached its usage limit")

    if params.customer_id and coupon.usage_limit_per_customer is not None:
        used = count_customer_usages(db, coupon.id, params.customer_id)
        if used >= coupon.usage_limit_per_customer:
            return CouponValidationResult.rejected("You have already used this coupon the maximum number of times")

    if params.customer_id and (coupon.only_first_time or coupon.only_returning):
        visits = count_completed_visits(db, params.customer_id)
        if coupon.only_first_time and visits > 0:
            return CouponValidationResult.rejected("This coupon is for first-time customers only")
        if coupon.only_returning and visits == 0:
            return CouponValidationResult.rejected("This coupon is for returning customers only")

    if coupon.minimum_amount is not None and params.subtotal < coupon.minimum_amount:
        return CouponValidationResult.rejected(
            f"This coupon requires a minimum purchase of ¥{coupon.minimum_amount:,}"
        )

    items = applicable_items(coupon, params.menus)
    if not items:
        return CouponValidationResult.rejected("This coupon does not apply to the selected menus")

    weekdays = coupon.applicable_weekdays or []
    if weekdays and params.weekday not in weekdays:
        return CouponValidationResult.rejected("This coupon cannot be used on this day of the week")

    if coupon.start_time and coupon.end_time and params.time:
        if params.time < coupon.start_time or params.time > coupon.end_time:
            return CouponValidationResult.rejected(
                f"This coupon can be used between {coupon.start_time} and {coupon.end_time}"
            )

    has_allow_list = bool(coupon.applicable_menu_ids or coupon.applicable_category_ids)
    applicable_subtotal = sum(m.price for m in items) if has_allow_list else params.subtotal
    discount = min(
        calculate_discount(coupon.type, coupon.value, applicable_subtotal),
        params.subtotal,
    )

    return CouponValidationResult(
        valid=True,
        coupon_id=coupon.id,
        code=coupon.code,
        name=coupon.name,
        discount_amount=discount,
        applicable_menu_ids=[m.id for m in items],
    )


def consume_coupon(
    db: SQLSession,
    coupon_id: str,
    customer_id: str,
    reservation_id: str,
    discount_amount: int,
) -> CouponUsage:
    """
    Record one use of a coupon inside the booking transaction.

    The global cap is enforced by a conditional increment: zero rows
    updated means the last use was taken by someone else.

    Raises:
        CouponRejected: global or per-customer cap reached
    """
    result = db.execute(
        update(Coupon)
        .where(
            Coupon.id == coupon_id,
            or_(Coupon.usage_limit.is_(None), Coupon.usage_count < Coupon.usage_limit),
        )
        .values(usage_count=Coupon.usage_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.info("coupon_limit_reached", coupon_id=coupon_id)
        raise CouponRejected("This coupon has reached its usage limit")

    per_customer = db.query(Coupon.usage_limit_per_customer).filter(Coupon.id == coupon_id).scalar()
    if per_customer is not None and count_customer_usages(db, coupon_id, customer_id) >= per_customer:
        raise CouponRejected("You have already used this coupon the maximum number of times")

    usage = CouponUsage(
        coupon_id=coupon_id,
        customer_id=customer_id,
        reservation_id=reservation_id,
        discount_amount=discount_amount,
    )
    db.add(usage)
    logger.info("coupon_consumed", coupon_id=coupon_id, reservation_id=reservation_id)
    return usage
