"""Read-only access to the menu catalog.

The catalog itself is administered elsewhere; booking only needs a
snapshot of the requested menus.
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session as SQLSession, joinedload

from salon_booking.database_models import Menu
from salon_booking.errors import BookingValidationError
from salon_booking.timeutils import time_to_minutes


@dataclass(frozen=True)
class MenuSnapshot:
    id: str
    name: str
    price: int
    duration: int
    category_id: str
    category_name: str
    last_booking_time: Optional[str] = None


@dataclass(frozen=True)
class MenuSelection:
    """The requested menus, in request order, with their totals."""
    menus: Sequence[MenuSnapshot]

    @property
    def menu_ids(self) -> List[str]:
        return [m.id for m in self.menus]

    @property
    def category_ids(self) -> List[str]:
        return [m.category_id for m in self.menus]

    @property
    def total_price(self) -> int:
        return sum(m.price for m in self.menus)

    @property
    def total_duration(self) -> int:
        return sum(m.duration for m in self.menus)

    @property
    def summary(self) -> str:
        return ", ".join(m.name for m in self.menus)

    def last_booking_cutoff(self, business_last_booking: str) -> int:
        """Earliest of the business last-booking time and each menu's own cutoff."""
        cutoffs = [time_to_minutes(business_last_booking)]
        cutoffs.extend(
            time_to_minutes(m.last_booking_time) for m in self.menus if m.last_booking_time
        )
        return min(cutoffs)


def load_menus(db: SQLSession, menu_ids: Sequence[str]) -> MenuSelection:
    """
    Resolve requested menu IDs to active menus.

    Raises:
        BookingValidationError: empty selection, duplicates, or an
            unknown/inactive menu ID
    """
    if not menu_ids:
        raise BookingValidationError("Please select at least one menu", detail="menuIds must not be empty")
    if len(set(menu_ids)) != len(menu_ids):
        raise BookingValidationError("The same menu was selected more than once", detail="menuIds contains duplicates")

    rows = (
        db.query(Menu)
        .options(joinedload(Menu.category))
        .filter(Menu.id.in_(list(menu_ids)), Menu.is_active == True)
        .all()
    )
    by_id = {row.id: row for row in rows}

    missing = [menu_id for menu_id in menu_ids if menu_id not in by_id]
    if missing:
        raise BookingValidationError(
            f"Menu not found: {missing[0]}",
            detail=f"Unknown or inactive menu ids: {', '.join(missing)}",
        )

    return MenuSelection(menus=tuple(
        MenuSnapshot(
            id=row.id,
            name=row.name,
            price=row.price,
            duration=row.duration,
            category_id=row.category_id,
            category_name=row.category.name if row.category else "",
            last_booking_time=row.last_booking_time,
        )
        for row in (by_id[menu_id] for menu_id in menu_ids)
    ))
