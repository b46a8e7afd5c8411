"""Unit tests for staff auto-assignment and requested-staff validation."""
from datetime import date

import pytest

from salon_booking.assignment import (
    auto_assign, pick_staff, rank_candidates, validate_requested_staff,
)
from salon_booking.errors import BookingValidationError, BusinessRuleViolation, SchedulingConflict
from salon_booking.overlap import TimeWindow
from salon_booking.staff_schedule import Shift, SpecificMenus, StaffProfile

WEDNESDAY = date(2025, 3, 12)
DOW = 3
WINDOW = TimeWindow.from_times("14:00", "16:30")
MENUS = ["cut", "color"]


def staff(id, display_order=0, hours=("10:00", "20:00"), menus=None, **kwargs):
    capability = {"capability": SpecificMenus(frozenset(menus))} if menus is not None else {}
    return StaffProfile(
        id=id, name=id.upper(), display_order=display_order,
        weekly={DOW: Shift(*hours)} if hours else {},
        **capability, **kwargs,
    )


class TestTieBreak:
    """fewest bookings that day → display_order → id"""

    def test_fewest_bookings_first(self):
        a, b = staff("a"), staff("b")
        booked = {"a": [TimeWindow.from_times("10:00", "11:00")]}

        assert pick_staff([a, b], WEDNESDAY, WINDOW, MENUS, booked).id == "b"

    def test_display_order_breaks_equal_load(self):
        a, b = staff("a", display_order=5), staff("b", display_order=1)
        assert pick_staff([a, b], WEDNESDAY, WINDOW, MENUS, {}).id == "b"

    def test_id_breaks_equal_display_order(self):
        a, b = staff("b"), staff("a")
        assert pick_staff([a, b], WEDNESDAY, WINDOW, MENUS, {}).id == "a"

    def test_ranking_is_stable_regardless_of_input_order(self):
        profiles = [staff("c", 1), staff("a", 2), staff("b", 1)]
        ranked = rank_candidates(profiles, {})
        assert [p.id for p in ranked] == ["b", "c", "a"]
        assert [p.id for p in rank_candidates(reversed(profiles), {})] == ["b", "c", "a"]


class TestFiltering:

    def test_unqualified_excluded(self):
        cutter = staff("cutter", menus=["cut"])
        all_round = staff("z", display_order=9)
        assert pick_staff([cutter, all_round], WEDNESDAY, WINDOW, MENUS, {}).id == "z"

    def test_inactive_excluded(self):
        assert pick_staff([staff("a", is_active=False)], WEDNESDAY, WINDOW, MENUS, {}) is None

    def test_not_on_shift_excluded(self):
        early = staff("early", hours=("10:00", "15:00"))
        assert pick_staff([early], WEDNESDAY, WINDOW, MENUS, {}) is None

    def test_day_off_override_excluded(self):
        off = staff("off", overrides={WEDNESDAY: None})
        assert pick_staff([off], WEDNESDAY, WINDOW, MENUS, {}) is None

    def test_conflicting_booking_excluded(self):
        busy, free = staff("busy"), staff("free", display_order=3)
        booked = {"busy": [TimeWindow.from_times("16:00", "17:00")]}
        assert pick_staff([busy, free], WEDNESDAY, WINDOW, MENUS, booked).id == "free"

    def test_back_to_back_booking_allowed(self):
        a = staff("a")
        booked = {"a": [TimeWindow.from_times("16:30", "17:00")]}
        assert pick_staff([a], WEDNESDAY, WINDOW, MENUS, booked).id == "a"


def test_auto_assign_returns_assignment():
    assignment = auto_assign([staff("a")], WEDNESDAY, WINDOW, MENUS, {})
    assert assignment.staff_id == "a"
    assert assignment.staff_name == "A"
    assert assignment.auto_assigned


def test_auto_assign_fully_booked():
    booked = {"a": [TimeWindow.from_times("15:00", "16:00")]}
    with pytest.raises(SchedulingConflict, match="fully booked"):
        auto_assign([staff("a")], WEDNESDAY, WINDOW, MENUS, booked)


class TestRequestedStaff:

    def test_valid(self):
        assignment = validate_requested_staff(staff("a"), WEDNESDAY, WINDOW, MENUS, {})
        assert assignment.staff_id == "a"
        assert not assignment.auto_assigned

    def test_unknown(self):
        with pytest.raises(BookingValidationError):
            validate_requested_staff(None, WEDNESDAY, WINDOW, MENUS, {})

    def test_not_qualified(self):
        with pytest.raises(BusinessRuleViolation) as exc_info:
            validate_requested_staff(staff("a", menus=["cut"]), WEDNESDAY, WINDOW, MENUS, {})
        assert exc_info.value.reason == "staff_not_qualified"

    def test_not_working(self):
        with pytest.raises(BusinessRuleViolation) as exc_info:
            validate_requested_staff(staff("a", hours=None), WEDNESDAY, WINDOW, MENUS, {})
        assert exc_info.value.reason == "staff_not_working"

    def test_double_booked(self):
        booked = {"a": [TimeWindow.from_times("14:30", "15:00")]}
        with pytest.raises(SchedulingConflict):
            validate_requested_staff(staff("a"), WEDNESDAY, WINDOW, MENUS, booked)
