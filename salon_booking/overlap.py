"""
Overlap Detection

Detects scheduling conflicts between half-open time windows ``[start, end)``.
Two windows conflict iff ``start_a < end_b and end_a > start_b``;
back-to-back windows (``end == other.start``) never conflict.

Only CONFIRMED reservations take part in conflict checks.
"""
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session as SQLSession

from salon_booking.database_models import Reservation
from salon_booking.timeutils import minutes_to_time, time_to_minutes

CONFIRMED = "CONFIRMED"


@dataclass(frozen=True)
class TimeWindow:
    """Half-open window in minutes since midnight."""
    start: int
    end: int

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError(f"Window ends before it starts: {self.start}-{self.end}")

    @classmethod
    def from_times(cls, start_time: str, end_time: str) -> "TimeWindow":
        return cls(time_to_minutes(start_time), time_to_minutes(end_time))

    @property
    def start_time(self) -> str:
        return minutes_to_time(self.start)

    @property
    def end_time(self) -> str:
        return minutes_to_time(self.end)

    def contains(self, other: "TimeWindow") -> bool:
        """True when ``other`` lies fully inside this window."""
        return self.start <= other.start and other.end <= self.end


def windows_overlap(a: TimeWindow, b: TimeWindow) -> bool:
    return a.start < b.end and a.end > b.start


def has_conflict(window: TimeWindow, others: Iterable[TimeWindow]) -> bool:
    return any(windows_overlap(window, other) for other in others)


def confirmed_windows_by_staff(
    db: SQLSession,
    target_date: date,
    staff_ids: Optional[Iterable[str]] = None,
    exclude_reservation: Optional[str] = None,
) -> Dict[str, List[TimeWindow]]:
    """
    Load CONFIRMED reservation windows for a date, grouped by staff.

    Args:
        db: open session
        target_date: day to inspect
        staff_ids: restrict to these staff members (all when None)
        exclude_reservation: reservation id to ignore (status restores)

    Returns:
        {staff_id: [TimeWindow, ...]}
    """
    query = db.query(
        Reservation.staff_id, Reservation.start_time, Reservation.end_time
    ).filter(
        Reservation.date == target_date,
        Reservation.status == CONFIRMED,
    )
    if staff_ids is not None:
        query = query.filter(Reservation.staff_id.in_(list(staff_ids)))
    if exclude_reservation:
        query = query.filter(Reservation.id != exclude_reservation)

    booked: Dict[str, List[TimeWindow]] = defaultdict(list)
    for staff_id, start_time, end_time in query.all():
        booked[staff_id].append(TimeWindow.from_times(start_time, end_time))
    return dict(booked)
