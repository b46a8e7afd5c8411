"""Shared test fixtures."""
from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

from salon_booking.api.dependencies import get_db, get_now
from salon_booking.api_server import app
from salon_booking.business_config import BusinessConfig
from salon_booking.database import Database
from salon_booking.database_models import (
    Category, Coupon, Holiday, Menu, SpecialOpenDay, Staff, StaffMenu,
    StaffScheduleOverride, StaffWeeklySchedule,
)

TOKYO = ZoneInfo("Asia/Tokyo")

# Monday 2025-03-10 09:00 in the salon's timezone.
# Calendar around it: 11 Tue, 12 Wed, 15 Sat, 16 Sun, 17 Mon (closed).
NOW = datetime(2025, 3, 10, 9, 0, tzinfo=TOKYO)
WEDNESDAY = date(2025, 3, 12)
SATURDAY = date(2025, 3, 15)
CLOSED_MONDAY = date(2025, 3, 17)

WEEKDAYS = (2, 3, 4, 5)  # Tue-Fri
ALL_OPEN_DAYS = (0, 2, 3, 4, 5, 6)


class SalonFactory:
    """Seeds catalog, staff and calendar rows through committed transactions."""

    def __init__(self, database: Database):
        self.database = database
        self._categories = {}

    def category(self, name: str) -> str:
        if name not in self._categories:
            with self.database.transaction() as db:
                category = Category(name=name)
                db.add(category)
                db.flush()
                self._categories[name] = category.id
        return self._categories[name]

    def menu(self, name, price, duration, category="Cut", last_booking_time=None, is_active=True) -> str:
        category_id = self.category(category)
        with self.database.transaction() as db:
            menu = Menu(
                name=name, price=price, duration=duration, category_id=category_id,
                last_booking_time=last_booking_time, is_active=is_active,
            )
            db.add(menu)
            db.flush()
            return menu.id

    def staff(self, name, hours=("10:00", "20:00"), days=ALL_OPEN_DAYS, menu_ids=(), display_order=0,
              is_active=True) -> str:
        """Staff member working ``hours`` on each of ``days`` (Sunday=0)."""
        with self.database.transaction() as db:
            staff = Staff(name=name, display_order=display_order, is_active=is_active)
            db.add(staff)
            db.flush()
            for day in days:
                db.add(StaffWeeklySchedule(
                    staff_id=staff.id, day_of_week=day, start_time=hours[0], end_time=hours[1],
                ))
            for menu_id in menu_ids:
                db.add(StaffMenu(staff_id=staff.id, menu_id=menu_id))
            return staff.id

    def override(self, staff_id, target, start_time=None, end_time=None):
        with self.database.transaction() as db:
            db.add(StaffScheduleOverride(
                staff_id=staff_id, date=target, start_time=start_time, end_time=end_time,
            ))

    def holiday(self, target, start_time=None, end_time=None, reason=None) -> str:
        with self.database.transaction() as db:
            holiday = Holiday(date=target, start_time=start_time, end_time=end_time, reason=reason)
            db.add(holiday)
            db.flush()
            return holiday.id

    def special_open_day(self, target, start_time=None, end_time=None) -> str:
        with self.database.transaction() as db:
            special = SpecialOpenDay(date=target, start_time=start_time, end_time=end_time)
            db.add(special)
            db.flush()
            return special.id

    def coupon(self, code, type="PERCENTAGE", value=10, **kwargs) -> str:
        values = {
            "name": code,
            "valid_from": datetime(2025, 1, 1),
            "valid_until": datetime(2025, 12, 31, 23, 59),
        }
        values.update(kwargs)
        with self.database.transaction() as db:
            coupon = Coupon(code=code, type=type, value=value, **values)
            db.add(coupon)
            db.flush()
            return coupon.id


@pytest.fixture
def database(tmp_path):
    """Fresh SQLite file database per test."""
    db = Database(f"sqlite:///{tmp_path / 'salon.db'}")
    yield db
    db.dispose()


@pytest.fixture
def factory(database) -> SalonFactory:
    return SalonFactory(database)


@pytest.fixture
def business_config() -> BusinessConfig:
    """Default configuration: closed on Mondays, 10-minute grid."""
    return BusinessConfig()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def menus(factory):
    """Standard catalog used across scenarios."""
    return {
        "cut": factory.menu("Cut", 5500, 60, category="Cut"),
        "color": factory.menu("Color", 8000, 90, category="Color"),
        "spa": factory.menu("Head Spa", 3000, 30, category="Spa", last_booking_time="17:00"),
    }


@pytest.fixture
def client(database):
    """TestClient bound to the temporary database and a fixed clock."""
    app.dependency_overrides[get_db] = lambda: database
    app.dependency_overrides[get_now] = lambda: NOW
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def booking_payload():
    """Build a POST /api/reservations body."""
    def _create(menu_ids, start_time="14:00", target=WEDNESDAY, phone="09012345678", **extra):
        body = {
            "menuIds": list(menu_ids),
            "date": target.isoformat(),
            "startTime": start_time,
            "customerName": "Hanako Yamada",
            "customerPhone": phone,
        }
        body.update(extra)
        return body
    return _create
