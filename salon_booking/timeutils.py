"""Clock-time helpers.

Reservation and schedule times travel as zero-padded ``HH:MM`` strings;
arithmetic is done in minutes since midnight.
"""
import re
from datetime import date, datetime
from zoneinfo import ZoneInfo

TIME_PATTERN = re.compile(r"^(\d{2}):(\d{2})$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

END_OF_DAY = 24 * 60


def time_to_minutes(value: str) -> int:
    """Convert ``HH:MM`` to minutes since midnight (``24:00`` allowed)."""
    match = TIME_PATTERN.match(value or "")
    if not match:
        raise ValueError(f"Invalid time format: {value!r} (expected HH:MM)")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if minutes >= 60 or hours > 24 or (hours == 24 and minutes):
        raise ValueError(f"Invalid time: {value!r}")
    return hours * 60 + minutes


def minutes_to_time(minutes: int) -> str:
    """Convert minutes since midnight back to ``HH:MM``."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_date(value: str) -> date:
    """Parse ``YYYY-MM-DD`` strictly (no time component, no timezone shift)."""
    if not DATE_PATTERN.match(value or ""):
        raise ValueError(f"Invalid date format: {value!r} (expected YYYY-MM-DD)")
    return datetime.strptime(value, "%Y-%m-%d").date()


def day_of_week(target: date) -> int:
    """Weekday number with Sunday=0 ... Saturday=6."""
    return (target.weekday() + 1) % 7


def format_date(target: date) -> str:
    return target.strftime("%Y-%m-%d")


def now_in(timezone: str) -> datetime:
    """Current wall-clock time at the salon."""
    return datetime.now(ZoneInfo(timezone))


def minutes_of_day(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute
