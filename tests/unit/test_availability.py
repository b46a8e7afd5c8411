"""Unit tests for slot generation."""
from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from salon_booking.availability import compute_slots, generate_grid, get_availability
from salon_booking.business_calendar import resolve_day
from salon_booking.business_config import BusinessConfig
from salon_booking.catalog import MenuSelection, MenuSnapshot
from salon_booking.database_models import Holiday
from salon_booking.errors import BookingValidationError
from salon_booking.overlap import TimeWindow
from salon_booking.staff_schedule import Shift, StaffProfile

TOKYO = ZoneInfo("Asia/Tokyo")
WEDNESDAY = date(2025, 3, 12)
EARLIER = datetime(2025, 3, 10, 9, 0, tzinfo=TOKYO)

CUT = MenuSnapshot(id="cut", name="Cut", price=5500, duration=60, category_id="c1", category_name="Cut")
SPA = MenuSnapshot(
    id="spa", name="Head Spa", price=3000, duration=30, category_id="c2",
    category_name="Spa", last_booking_time="17:00",
)


def stylist(id="a", hours=("10:00", "20:00"), **kwargs):
    return StaffProfile(id=id, name=id, weekly={3: Shift(*hours)}, **kwargs)


def slots_by_time(slots):
    return {s.time: s for s in slots}


def test_grid_spans_open_to_close_exclusive():
    day = resolve_day(BusinessConfig(), WEDNESDAY)
    grid = generate_grid(day, 10)
    assert grid[0] == 600
    assert grid[-1] == 1190
    assert len(grid) == 60


class TestComputeSlots:

    def compute(self, menus=(CUT,), profiles=None, booked=None, now=EARLIER, holidays=()):
        config = BusinessConfig()
        day = resolve_day(config, WEDNESDAY, holidays)
        return slots_by_time(compute_slots(
            day, MenuSelection(menus=menus),
            profiles if profiles is not None else [stylist()],
            booked or {}, now, config.slot_interval_minutes,
        ))

    def test_last_booking_cutoff(self):
        slots = self.compute()
        assert slots["19:00"].available
        assert not slots["19:10"].available

    def test_menu_cutoff_is_earlier_than_business_cutoff(self):
        slots = self.compute(menus=(SPA,))
        assert slots["17:00"].available
        assert not slots["17:10"].available

    def test_service_must_end_by_close(self):
        long_menu = MenuSnapshot(id="perm", name="Perm", price=9000, duration=120,
                                 category_id="c3", category_name="Perm")
        slots = self.compute(menus=(long_menu,))
        assert slots["18:00"].available
        assert not slots["18:10"].available

    def test_past_times_unavailable_today(self):
        now = datetime(2025, 3, 12, 12, 5, tzinfo=TOKYO)
        slots = self.compute(now=now)
        assert not slots["12:00"].available
        assert slots["12:10"].available

    def test_holiday_block(self):
        slots = self.compute(holidays=[Holiday(date=WEDNESDAY, start_time="15:00", end_time="16:00")])
        assert slots["13:50"].available
        assert not slots["14:10"].available  # would run into the block
        assert not slots["15:30"].available
        assert slots["16:00"].available

    def test_staff_hours_limit_slots(self):
        slots = self.compute(profiles=[stylist(hours=("13:00", "18:00"))])
        assert not slots["12:50"].available
        assert slots["13:00"].available
        assert slots["17:00"].available
        assert not slots["17:10"].available

    def test_booked_staff_blocks_slot(self):
        booked = {"a": [TimeWindow.from_times("14:00", "15:00")]}
        slots = self.compute(booked=booked)
        assert slots["13:00"].available  # back-to-back
        assert not slots["13:10"].available
        assert not slots["14:50"].available
        assert slots["15:00"].available

    def test_available_slot_reports_assigned_staff(self):
        booked = {"a": [TimeWindow.from_times("14:00", "15:00")]}
        profiles = [stylist("a"), stylist("b")]
        slots = self.compute(profiles=profiles, booked=booked)

        assert slots["14:00"].staff_id == "b"
        # b has fewer bookings that day
        assert slots["10:00"].staff_id == "b"

    def test_no_staff_no_slots(self):
        slots = self.compute(profiles=[])
        assert not any(s.available for s in slots.values())


class TestGetAvailability:

    def test_closed_day(self, database, menus):
        with database.read_session() as db:
            result = get_availability(db, BusinessConfig(), date(2025, 3, 17), [menus["cut"]], EARLIER)
        assert result.is_closed
        assert result.slots == ()
        assert result.day_of_week == 1

    def test_outside_booking_window(self, database, menus, factory):
        factory.staff("Aoi")
        with database.read_session() as db:
            result = get_availability(db, BusinessConfig(), date(2025, 6, 4), [menus["cut"]], EARLIER)
        assert not result.is_closed
        assert result.slots == ()

    def test_empty_menus_rejected(self, database):
        with database.read_session() as db:
            with pytest.raises(BookingValidationError, match="at least one menu"):
                get_availability(db, BusinessConfig(), WEDNESDAY, [], EARLIER)

    def test_unknown_menu_rejected(self, database, menus):
        with database.read_session() as db:
            with pytest.raises(BookingValidationError, match="Menu not found: nope"):
                get_availability(db, BusinessConfig(), WEDNESDAY, [menus["cut"], "nope"], EARLIER)

    def test_totals(self, database, menus, factory):
        factory.staff("Aoi")
        with database.read_session() as db:
            result = get_availability(
                db, BusinessConfig(), WEDNESDAY, [menus["cut"], menus["color"]], EARLIER
            )
        assert result.total_duration == 150
        assert result.total_price == 13500
        by_time = slots_by_time(result.slots)
        assert by_time["17:30"].available
        assert not by_time["17:40"].available

    def test_requested_staff_only(self, database, menus, factory):
        factory.staff("Aoi", hours=("10:00", "20:00"))
        ren = factory.staff("Ren", hours=("15:00", "20:00"))
        with database.read_session() as db:
            result = get_availability(
                db, BusinessConfig(), WEDNESDAY, [menus["cut"]], EARLIER, staff_id=ren
            )
        by_time = slots_by_time(result.slots)
        assert not by_time["14:00"].available
        assert by_time["15:00"].available
        assert by_time["15:00"].staff_id == ren
