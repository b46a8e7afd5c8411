"""Booking error taxonomy.

Every error carries the HTTP status and machine code the API layer
renders, so services raise and the exception handlers translate.
"""
from typing import Optional


class BookingError(Exception):
    """Base class for errors surfaced to API clients."""
    status_code = 400
    code = "BOOKING_ERROR"

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class BookingValidationError(BookingError):
    """Malformed input, unknown menu IDs, unparsable dates."""
    status_code = 400
    code = "VALIDATION_ERROR"


class BusinessRuleViolation(BookingError):
    """Request is well-formed but the salon's rules forbid it."""
    status_code = 400
    code = "BUSINESS_RULE_VIOLATION"

    def __init__(self, message: str, reason: str, detail: Optional[str] = None):
        super().__init__(message, detail)
        self.reason = reason


class SchedulingConflict(BookingError):
    """No qualified staff free for the window, or the requested one is taken."""
    status_code = 409
    code = "SCHEDULING_CONFLICT"


class CouponRejected(BookingError):
    """Coupon failed validation; message carries the validator's reason."""
    status_code = 400
    code = "COUPON_REJECTED"


class RecordNotFound(BookingError):
    status_code = 404
    code = "NOT_FOUND"


class ReservationNotFound(RecordNotFound):
    pass


class StaffNotFound(RecordNotFound):
    pass


class DuplicateRecord(BookingError):
    """A record already exists for this key (e.g. one special open day per date)."""
    status_code = 409
    code = "DUPLICATE"


class InvalidStatusTransition(BookingError):
    status_code = 409
    code = "INVALID_TRANSITION"
