"""Unit tests for the reservation status machine and cancellation deadline."""
from datetime import date, datetime
from types import SimpleNamespace
from zoneinfo import ZoneInfo

from salon_booking.business_config import BusinessConfig
from salon_booking.status import (
    VALID_TRANSITIONS, ReservationStatus, can_cancel, cancellation_deadline, validate_transition,
)

TOKYO = ZoneInfo("Asia/Tokyo")


def test_every_status_has_transition_entry():
    assert set(VALID_TRANSITIONS) == set(ReservationStatus)


def test_confirmed_can_close_out():
    for target in (ReservationStatus.COMPLETED, ReservationStatus.CANCELLED, ReservationStatus.NO_SHOW):
        assert validate_transition(ReservationStatus.CONFIRMED, target)


def test_restore_from_cancelled_and_no_show():
    assert validate_transition(ReservationStatus.CANCELLED, ReservationStatus.CONFIRMED)
    assert validate_transition(ReservationStatus.NO_SHOW, ReservationStatus.CONFIRMED)


def test_completed_is_terminal():
    for target in ReservationStatus:
        assert not validate_transition(ReservationStatus.COMPLETED, target)


def test_no_lateral_moves_between_closed_statuses():
    assert not validate_transition(ReservationStatus.CANCELLED, ReservationStatus.NO_SHOW)
    assert not validate_transition(ReservationStatus.NO_SHOW, ReservationStatus.COMPLETED)


class TestCancellationDeadline:
    """Default policy: 19:00 the day before the visit."""

    reservation = SimpleNamespace(date=date(2025, 3, 12))

    def test_deadline(self):
        assert cancellation_deadline(BusinessConfig(), self.reservation) == datetime(2025, 3, 11, 19, 0)

    def test_before_deadline(self):
        now = datetime(2025, 3, 11, 18, 59, tzinfo=TOKYO)
        assert can_cancel(BusinessConfig(), self.reservation, now)

    def test_at_or_after_deadline(self):
        assert not can_cancel(BusinessConfig(), self.reservation, datetime(2025, 3, 11, 19, 0, tzinfo=TOKYO))
        assert not can_cancel(BusinessConfig(), self.reservation, datetime(2025, 3, 12, 9, 0, tzinfo=TOKYO))

    def test_custom_policy(self):
        config = BusinessConfig(cancel_deadline={"days_before": 2, "time": "12:00"})
        assert cancellation_deadline(config, self.reservation) == datetime(2025, 3, 10, 12, 0)
