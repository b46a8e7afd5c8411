"""Pydantic models for API request/response validation.

Field names are snake_case in Python and camelCase on the wire.
"""
import re
from datetime import date, datetime
from typing import Annotated, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

PHONE_PATTERN = re.compile(r"^\+?[0-9]{7,15}$")
TIME_PATTERN = re.compile(r"^(([01]\d|2[0-3]):[0-5]\d|24:00)$")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def _check_time(v: str) -> str:
    if not TIME_PATTERN.match(v):
        raise ValueError("time must be HH:MM")
    return v


ClockTime = Annotated[str, AfterValidator(_check_time)]


# ==================== Reservations ====================

class CreateReservationRequest(CamelModel):
    """Request schema for POST /api/reservations."""
    menu_ids: List[str] = Field(..., description="Requested menus, in service order")
    date: str = Field(..., description="YYYY-MM-DD", examples=["2025-03-12"])
    start_time: str = Field(..., description="HH:MM", examples=["14:00"])
    customer_name: str = Field(..., min_length=1, max_length=100)
    customer_phone: str = Field(..., min_length=1, max_length=20)
    customer_email: Optional[str] = Field(None, max_length=255)
    staff_id: Optional[str] = Field(None, description="Requested stylist; omitted → auto-assign")
    is_first_visit: Optional[bool] = None
    note: Optional[str] = Field(None, max_length=500)
    coupon_code: Optional[str] = Field(None, max_length=50)
    payment_method: Literal["ONSITE", "ONLINE"] = "ONSITE"
    payment_reference: Optional[str] = Field(None, max_length=255)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "menuIds": ["cut", "color"],
                "date": "2025-03-12",
                "startTime": "14:00",
                "customerName": "Hanako Yamada",
                "customerPhone": "09012345678",
                "couponCode": "WELCOME10",
                "paymentMethod": "ONSITE",
            }
        }
    )

    @field_validator("customer_name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("customerName must not be blank")
        return v

    @field_validator("customer_phone")
    @classmethod
    def normalize_phone(cls, v):
        """Phone is the customer key: drop spaces and hyphens before storing."""
        normalized = re.sub(r"[\s\-()]", "", v)
        if not PHONE_PATTERN.match(normalized):
            raise ValueError("customerPhone must contain 7-15 digits")
        return normalized

    @field_validator("customer_email")
    @classmethod
    def check_email(cls, v):
        if v is None or not v.strip():
            return None
        v = v.strip()
        if not re.match(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", v):
            raise ValueError("customerEmail is not a valid email address")
        return v


class CustomerResponse(CamelModel):
    id: str
    name: str
    phone: str
    email: Optional[str] = None


class ReservationItemResponse(CamelModel):
    menu_id: str
    menu_name: str
    category: str
    price: int
    duration: int
    order_index: int


class ReservationResponse(CamelModel):
    """A reservation with its customer and item snapshots."""
    id: str
    customer_id: str
    staff_id: str
    staff_name: Optional[str] = None
    date: date
    start_time: str
    end_time: str
    total_price: int
    total_duration: int
    menu_summary: str
    coupon_code: Optional[str] = None
    coupon_discount: int = 0
    final_price: int
    status: str
    payment_method: str
    payment_reference: Optional[str] = None
    is_first_visit: Optional[bool] = None
    note: Optional[str] = None
    customer: Optional[CustomerResponse] = None
    items: List[ReservationItemResponse] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class ReservationEnvelope(CamelModel):
    message: Optional[str] = None
    reservation: ReservationResponse


class CustomerReservationAction(CamelModel):
    """Request schema for PATCH /api/reservations/{id}."""
    action: str

    @field_validator("action")
    @classmethod
    def only_cancel(cls, v):
        if v != "cancel":
            raise ValueError("Invalid action. Use 'cancel'")
        return v


class AdminReservationUpdate(CamelModel):
    """Request schema for PATCH /api/admin/reservations/{id}."""
    status: Optional[Literal["CONFIRMED", "COMPLETED", "CANCELLED", "NO_SHOW"]] = None
    note: Optional[str] = Field(None, max_length=500)


# ==================== Availability ====================

class SlotResponse(CamelModel):
    time: str
    available: bool
    staff_id: Optional[str] = None


class AvailabilityResponse(CamelModel):
    date: str
    day_of_week: int
    is_closed: bool
    slots: List[SlotResponse] = Field(default_factory=list)
    total_duration: Optional[int] = None
    total_price: Optional[int] = None


# ==================== Schedule administration ====================

class ScheduleOverrideRequest(CamelModel):
    """Omit both times to mark the day off."""
    date: date
    start_time: Optional[ClockTime] = None
    end_time: Optional[ClockTime] = None


class ScheduleOverrideResponse(CamelModel):
    id: str
    staff_id: str
    date: date
    start_time: Optional[ClockTime] = None
    end_time: Optional[ClockTime] = None


class WeeklyShiftModel(CamelModel):
    day_of_week: int = Field(..., ge=0, le=6, description="Sunday=0 ... Saturday=6")
    start_time: ClockTime
    end_time: ClockTime
    is_active: bool = True


class WeeklyScheduleRequest(CamelModel):
    shifts: List[WeeklyShiftModel]


class WeeklyScheduleResponse(CamelModel):
    staff_id: str
    shifts: List[WeeklyShiftModel]


class DateExceptionRequest(CamelModel):
    """Holiday or special open day."""
    date: date
    start_time: Optional[ClockTime] = None
    end_time: Optional[ClockTime] = None
    reason: Optional[str] = Field(None, max_length=200)


class DateExceptionResponse(CamelModel):
    id: str
    date: date
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = None


class HoursModel(CamelModel):
    open: str
    last_booking: str
    close: str


class SettingsUpdateRequest(CamelModel):
    closed_days: Optional[List[int]] = None
    public_holidays: Optional[List[date]] = None


class SettingsResponse(CamelModel):
    version: int
    closed_days: List[int]
    public_holidays: List[date]
    weekday_hours: HoursModel
    weekend_hours: HoursModel
    slot_interval_minutes: int
    booking_advance_days: int


# ==================== Errors ====================

class ErrorResponse(BaseModel):
    """Error response schema."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Detailed error information")
    code: Optional[str] = Field(None, description="Error code")
    reason: Optional[str] = Field(None, description="Business rule that rejected the request")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "Sorry, we are closed on this day",
                "code": "BUSINESS_RULE_VIOLATION",
                "reason": "closed_day",
            }
        }
    )
