"""
Business Calendar

Resolves, for one date, whether the salon is open, its opening hours and
the holiday windows that block bookings:
- Regular closed weekdays (``BusinessConfig.closed_days``)
- Special open days, which reopen a closed weekday (optionally with
  their own hours)
- Irregular holidays, full-day or a time range, regardless of weekday
- Weekend hours for Saturday, Sunday and configured public holidays

The resolution functions are pure; ``load_day_calendar`` fetches the
records they need.
"""
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session as SQLSession

from salon_booking.business_config import BusinessConfig, BusinessHours
from salon_booking.database_models import Holiday, SpecialOpenDay
from salon_booking.overlap import TimeWindow
from salon_booking.timeutils import END_OF_DAY, day_of_week, minutes_to_time, time_to_minutes

SATURDAY = 6
SUNDAY = 0


@dataclass(frozen=True)
class DayCalendar:
    """Resolved calendar facts for one date."""
    date: date
    day_of_week: int
    closed_weekday: bool
    hours: BusinessHours
    blocks: Tuple[TimeWindow, ...] = field(default_factory=tuple)
    all_day_holiday: bool = False
    holiday_reason: Optional[str] = None

    @property
    def is_closed(self) -> bool:
        return self.closed_weekday or self.all_day_holiday

    @property
    def open_window(self) -> TimeWindow:
        return TimeWindow.from_times(self.hours.open, self.hours.close)


def is_closed_date(
    config: BusinessConfig,
    target: date,
    special_open_day: Optional[SpecialOpenDay] = None,
) -> bool:
    """A regular closed weekday, unless a special open day reopens it."""
    return day_of_week(target) in config.closed_days and special_open_day is None


def is_weekend_or_public_holiday(config: BusinessConfig, target: date) -> bool:
    return day_of_week(target) in (SATURDAY, SUNDAY) or target in config.public_holidays


def regular_hours(config: BusinessConfig, target: date) -> BusinessHours:
    return config.weekend_hours if is_weekend_or_public_holiday(config, target) else config.weekday_hours


def special_open_bounds(
    base: BusinessHours,
    start_time: Optional[str],
    end_time: Optional[str],
) -> Tuple[int, int]:
    """Open/close minutes of a special open day; a missing bound keeps the regular value."""
    open_minutes = time_to_minutes(start_time or base.open)
    close_minutes = time_to_minutes(end_time or base.close)
    return open_minutes, close_minutes


def get_business_hours(
    config: BusinessConfig,
    target: date,
    special_open_day: Optional[SpecialOpenDay] = None,
) -> BusinessHours:
    """
    Opening hours for a date.

    A special open day's times replace the regular open/close (a missing
    bound keeps the regular value); the last-booking time keeps the
    regular gap to closing time. Bounds that leave no opening time give
    an empty day (open == close) with no bookable window.
    """
    base = regular_hours(config, target)
    if special_open_day is None or not (special_open_day.start_time or special_open_day.end_time):
        return base

    open_minutes, close_minutes = special_open_bounds(
        base, special_open_day.start_time, special_open_day.end_time
    )
    if open_minutes >= close_minutes:
        empty = minutes_to_time(open_minutes)
        return BusinessHours(open=empty, last_booking=empty, close=empty)

    if special_open_day.end_time:
        gap = time_to_minutes(base.close) - time_to_minutes(base.last_booking)
        last_minutes = close_minutes - gap
    else:
        last_minutes = time_to_minutes(base.last_booking)
    last_minutes = min(max(last_minutes, open_minutes), close_minutes)

    return BusinessHours(
        open=minutes_to_time(open_minutes),
        last_booking=minutes_to_time(last_minutes),
        close=minutes_to_time(close_minutes),
    )


def get_holiday_blocks(holidays: Iterable[Holiday]) -> List[TimeWindow]:
    """
    Blocking windows for a date's holidays.

    No times → the whole day; only a start → until end of day;
    only an end → from start of day.
    """
    blocks = []
    for holiday in holidays:
        start = time_to_minutes(holiday.start_time) if holiday.start_time else 0
        end = time_to_minutes(holiday.end_time) if holiday.end_time else END_OF_DAY
        blocks.append(TimeWindow(start, end))
    blocks.sort(key=lambda w: (w.start, w.end))
    return blocks


def is_full_day_holiday(holiday: Holiday) -> bool:
    return not holiday.start_time and not holiday.end_time


def is_within_booking_window(config: BusinessConfig, target: date, today: date) -> bool:
    """Bookable dates run from today to ``booking_advance_days`` ahead."""
    return today <= target <= today + timedelta(days=config.booking_advance_days)


def resolve_day(
    config: BusinessConfig,
    target: date,
    holidays: Iterable[Holiday] = (),
    special_open_day: Optional[SpecialOpenDay] = None,
) -> DayCalendar:
    holidays = list(holidays)
    full_day = [h for h in holidays if is_full_day_holiday(h)]
    reason = next((h.reason for h in full_day if h.reason), None)

    return DayCalendar(
        date=target,
        day_of_week=day_of_week(target),
        closed_weekday=is_closed_date(config, target, special_open_day),
        hours=get_business_hours(config, target, special_open_day),
        blocks=tuple(get_holiday_blocks(holidays)),
        all_day_holiday=bool(full_day),
        holiday_reason=reason,
    )


def load_day_calendar(db: SQLSession, config: BusinessConfig, target: date) -> DayCalendar:
    """Fetch the holiday/special-open-day records for a date and resolve it."""
    holidays = db.query(Holiday).filter(Holiday.date == target).all()
    special_open_day = db.query(SpecialOpenDay).filter(SpecialOpenDay.date == target).first()
    return resolve_day(config, target, holidays, special_open_day)
