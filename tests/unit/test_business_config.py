"""Unit tests for the configuration snapshot."""
from datetime import date

import pytest
from pydantic import ValidationError

from salon_booking.business_config import (
    BusinessConfig, BusinessHours, load_business_config, update_business_settings,
)


def test_defaults():
    config = BusinessConfig()
    assert config.version == 0
    assert config.closed_days == [1]
    assert config.slot_interval_minutes == 10
    assert config.booking_advance_days == 60
    assert config.cancel_deadline.time == "19:00"
    assert config.weekday_hours.last_booking == "19:00"


def test_closed_days_sorted_and_deduplicated():
    assert BusinessConfig(closed_days=[3, 1, 3]).closed_days == [1, 3]


def test_closed_days_out_of_range():
    with pytest.raises(ValidationError):
        BusinessConfig(closed_days=[7])


def test_hours_must_be_ordered():
    with pytest.raises(ValidationError):
        BusinessHours(open="10:00", last_booking="21:00", close="20:00")
    with pytest.raises(ValidationError):
        BusinessHours(open="10:00", last_booking="19:00", close="8pm")


def test_snapshot_is_immutable():
    config = BusinessConfig()
    with pytest.raises(ValidationError):
        config.closed_days = [2]


def test_load_without_rows_uses_defaults(database):
    with database.read_session() as db:
        assert load_business_config(db) == BusinessConfig()


def test_update_bumps_version_and_persists(database):
    with database.transaction() as db:
        updated = update_business_settings(db, closed_days=[1, 2], public_holidays=[date(2025, 3, 20)])
    assert updated.version == 1

    with database.transaction() as db:
        update_business_settings(db, closed_days=[2])

    with database.read_session() as db:
        loaded = load_business_config(db)

    assert loaded.version == 2
    assert loaded.closed_days == [2]
    assert loaded.public_holidays == [date(2025, 3, 20)]


def test_invalid_update_writes_nothing(database):
    with pytest.raises(ValidationError):
        with database.transaction() as db:
            update_business_settings(db, closed_days=[9])

    with database.read_session() as db:
        assert load_business_config(db).version == 0
