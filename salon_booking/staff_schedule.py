"""
Staff directory and effective schedules.

Staff rows are converted into immutable ``StaffProfile`` objects for one
date, so availability and auto-assignment share a single, pure
precedence rule:

    date override (even "off") > active weekly pattern > not working
"""
from dataclasses import dataclass, field
from datetime import date
from typing import FrozenSet, Iterable, List, Mapping, Optional, Union

from sqlalchemy.orm import Session as SQLSession, selectinload, with_loader_criteria

from salon_booking.database_models import (
    Staff, StaffScheduleOverride, StaffWeeklySchedule,
)
from salon_booking.overlap import TimeWindow
from salon_booking.timeutils import day_of_week


@dataclass(frozen=True)
class AllMenus:
    """Qualified for every active menu."""

    def covers(self, menu_ids: Iterable[str]) -> bool:
        return True


@dataclass(frozen=True)
class SpecificMenus:
    """Qualified only for the listed menus."""
    menu_ids: FrozenSet[str]

    def covers(self, menu_ids: Iterable[str]) -> bool:
        return set(menu_ids) <= self.menu_ids


Capability = Union[AllMenus, SpecificMenus]


def capability_from_assignments(menu_ids: Iterable[str]) -> Capability:
    """Stored capability rows → tagged variant. No rows means every menu."""
    menu_ids = frozenset(menu_ids)
    if not menu_ids:
        return AllMenus()
    return SpecificMenus(menu_ids)


@dataclass(frozen=True)
class Shift:
    start_time: str
    end_time: str

    @property
    def window(self) -> TimeWindow:
        return TimeWindow.from_times(self.start_time, self.end_time)

    def covers(self, window: TimeWindow) -> bool:
        return self.window.contains(window)


@dataclass(frozen=True)
class StaffProfile:
    id: str
    name: str
    display_order: int = 0
    is_active: bool = True
    capability: Capability = field(default_factory=AllMenus)
    weekly: Mapping[int, Shift] = field(default_factory=dict)
    # None value: explicitly off that day
    overrides: Mapping[date, Optional[Shift]] = field(default_factory=dict)

    def can_perform(self, menu_ids: Iterable[str]) -> bool:
        return self.capability.covers(menu_ids)


def effective_shift(profile: StaffProfile, target: date) -> Optional[Shift]:
    """
    Working hours of a staff member on a date, or None when not working.

    An override for the date wins even when it marks the day off.
    """
    if target in profile.overrides:
        return profile.overrides[target]
    return profile.weekly.get(day_of_week(target))


def is_on_shift(profile: StaffProfile, target: date, window: TimeWindow) -> bool:
    shift = effective_shift(profile, target)
    return shift is not None and shift.covers(window)


def to_profile(staff: Staff) -> StaffProfile:
    """Convert a loaded Staff row (with schedules/overrides) to a profile."""
    weekly = {
        s.day_of_week: Shift(s.start_time, s.end_time)
        for s in staff.schedules
        if s.is_active
    }
    overrides = {
        o.date: (Shift(o.start_time, o.end_time) if o.start_time and o.end_time else None)
        for o in staff.schedule_overrides
    }
    return StaffProfile(
        id=staff.id,
        name=staff.name,
        display_order=staff.display_order,
        is_active=staff.is_active,
        capability=capability_from_assignments(a.menu_id for a in staff.menu_assignments),
        weekly=weekly,
        overrides=overrides,
    )


def load_staff_profiles(
    db: SQLSession,
    target: date,
    staff_id: Optional[str] = None,
) -> List[StaffProfile]:
    """
    Load active staff with the schedule data relevant to ``target``.

    Only the override for ``target`` is loaded. Results are ordered by
    display order, then id.
    """
    query = (
        db.query(Staff)
        .options(
            selectinload(Staff.menu_assignments),
            selectinload(Staff.schedules),
            selectinload(Staff.schedule_overrides),
            with_loader_criteria(StaffScheduleOverride, StaffScheduleOverride.date == target),
            with_loader_criteria(StaffWeeklySchedule, StaffWeeklySchedule.is_active == True),
        )
        .filter(Staff.is_active == True)
        .order_by(Staff.display_order, Staff.id)
    )
    if staff_id is not None:
        query = query.filter(Staff.id == staff_id)

    return [to_profile(staff) for staff in query.all()]
