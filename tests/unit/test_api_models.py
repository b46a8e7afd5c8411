"""Unit tests for API request/response models."""
from datetime import date

import pytest
from pydantic import ValidationError

from salon_booking.api.models import (
    AdminReservationUpdate, CreateReservationRequest, CustomerReservationAction,
    DateExceptionRequest, ErrorResponse, SlotResponse, WeeklyShiftModel,
)


def valid_request(**overrides):
    body = {
        "menuIds": ["cut"],
        "date": "2025-03-12",
        "startTime": "14:00",
        "customerName": "Hanako Yamada",
        "customerPhone": "090-1234-5678",
    }
    body.update(overrides)
    return body


class TestCreateReservationRequest:

    def test_reads_camel_case(self):
        request = CreateReservationRequest(**valid_request(staffId="s1", couponCode="WELCOME10"))
        assert request.menu_ids == ["cut"]
        assert request.start_time == "14:00"
        assert request.staff_id == "s1"
        assert request.coupon_code == "WELCOME10"
        assert request.payment_method == "ONSITE"

    def test_phone_normalized(self):
        assert CreateReservationRequest(**valid_request()).customer_phone == "09012345678"

    def test_phone_rejected(self):
        with pytest.raises(ValidationError):
            CreateReservationRequest(**valid_request(customerPhone="call me"))

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError):
            CreateReservationRequest(**valid_request(customerName="   "))

    def test_email_checked(self):
        with pytest.raises(ValidationError):
            CreateReservationRequest(**valid_request(customerEmail="not-an-email"))
        request = CreateReservationRequest(**valid_request(customerEmail=""))
        assert request.customer_email is None

    def test_payment_method(self):
        assert CreateReservationRequest(**valid_request(paymentMethod="ONLINE")).payment_method == "ONLINE"
        with pytest.raises(ValidationError):
            CreateReservationRequest(**valid_request(paymentMethod="CASH"))


def test_customer_action_only_cancel():
    assert CustomerReservationAction(action="cancel").action == "cancel"
    with pytest.raises(ValidationError):
        CustomerReservationAction(action="reschedule")


def test_admin_update_status_values():
    assert AdminReservationUpdate(status="NO_SHOW").status == "NO_SHOW"
    with pytest.raises(ValidationError):
        AdminReservationUpdate(status="DELETED")


def test_clock_time_fields():
    assert WeeklyShiftModel(dayOfWeek=3, startTime="10:00", endTime="19:00").day_of_week == 3
    with pytest.raises(ValidationError):
        WeeklyShiftModel(dayOfWeek=3, startTime="10am", endTime="19:00")
    with pytest.raises(ValidationError):
        WeeklyShiftModel(dayOfWeek=7, startTime="10:00", endTime="19:00")
    exception = DateExceptionRequest(date="2025-03-12", startTime="15:00")
    assert exception.date == date(2025, 3, 12)
    assert exception.end_time is None


def test_responses_dump_camel_case():
    slot = SlotResponse(time="14:00", available=True, staff_id="s1")
    assert slot.model_dump(by_alias=True) == {"time": "14:00", "available": True, "staffId": "s1"}


def test_error_response():
    error = ErrorResponse(error="Sorry, we are closed on this day", code="BUSINESS_RULE_VIOLATION",
                          reason="closed_day")
    assert error.model_dump(exclude_none=True) == {
        "error": "Sorry, we are closed on this day",
        "code": "BUSINESS_RULE_VIOLATION",
        "reason": "closed_day",
    }
