"""SQLAlchemy database models for the salon booking store."""
import uuid
from datetime import datetime, UTC

from sqlalchemy import (
    JSON, Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, String,
    Text, UniqueConstraint, text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utc_now():
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def new_id() -> str:
    return uuid.uuid4().hex


class Customer(Base):
    """Guest identity; the phone number is the deduplication key."""
    __tablename__ = "customers"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    reservations = relationship("Reservation", back_populates="customer")

    def __repr__(self):
        return f"<Customer(id={self.id}, phone={self.phone})>"


class Category(Base):
    __tablename__ = "categories"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String(100), nullable=False, unique=True)
    display_order = Column(Integer, default=0, nullable=False)


class Menu(Base):
    """Service menu (catalog entry). Price in yen, duration in minutes."""
    __tablename__ = "menus"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False)
    category_id = Column(String(32), ForeignKey("categories.id"), nullable=False, index=True)
    price = Column(Integer, nullable=False)
    duration = Column(Integer, nullable=False)
    last_booking_time = Column(String(5), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    display_order = Column(Integer, default=0, nullable=False)

    category = relationship("Category")

    def __repr__(self):
        return f"<Menu(id={self.id}, name={self.name}, duration={self.duration})>"


class Staff(Base):
    __tablename__ = "staff"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String(100), nullable=False)
    display_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    menu_assignments = relationship("StaffMenu", cascade="all, delete-orphan")
    schedules = relationship("StaffWeeklySchedule", cascade="all, delete-orphan")
    schedule_overrides = relationship("StaffScheduleOverride", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Staff(id={self.id}, name={self.name}, active={self.is_active})>"


class StaffMenu(Base):
    """Capability row. A staff member with no rows can perform every menu."""
    __tablename__ = "staff_menus"

    staff_id = Column(String(32), ForeignKey("staff.id", ondelete="CASCADE"), primary_key=True)
    menu_id = Column(String(32), ForeignKey("menus.id", ondelete="CASCADE"), primary_key=True)


class StaffWeeklySchedule(Base):
    __tablename__ = "staff_weekly_schedules"
    __table_args__ = (
        UniqueConstraint("staff_id", "day_of_week", name="uq_staff_weekly_day"),
    )

    id = Column(String(32), primary_key=True, default=new_id)
    staff_id = Column(String(32), ForeignKey("staff.id", ondelete="CASCADE"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # Sunday=0
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)


class StaffScheduleOverride(Base):
    """One-off shift for a date. Null times mean the staff member is off."""
    __tablename__ = "staff_schedule_overrides"
    __table_args__ = (
        UniqueConstraint("staff_id", "date", name="uq_staff_override_date"),
    )

    id = Column(String(32), primary_key=True, default=new_id)
    staff_id = Column(String(32), ForeignKey("staff.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=True)
    end_time = Column(String(5), nullable=True)


class Holiday(Base):
    """Irregular closure. No times = whole day."""
    __tablename__ = "holidays"

    id = Column(String(32), primary_key=True, default=new_id)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(String(5), nullable=True)
    end_time = Column(String(5), nullable=True)
    reason = Column(String(200), nullable=True)


class SpecialOpenDay(Base):
    """Opens a date that falls on a regular closed weekday."""
    __tablename__ = "special_open_days"

    id = Column(String(32), primary_key=True, default=new_id)
    date = Column(Date, nullable=False, unique=True)
    start_time = Column(String(5), nullable=True)
    end_time = Column(String(5), nullable=True)
    reason = Column(String(200), nullable=True)


class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(String(32), primary_key=True, default=new_id)
    code = Column(String(50), nullable=False, unique=True, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(20), nullable=False)  # PERCENTAGE | FIXED
    value = Column(Integer, nullable=False)
    valid_from = Column(DateTime, nullable=False)
    valid_until = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    usage_limit = Column(Integer, nullable=True)
    usage_count = Column(Integer, default=0, nullable=False)
    usage_limit_per_customer = Column(Integer, nullable=True)
    minimum_amount = Column(Integer, nullable=True)
    applicable_menu_ids = Column(JSON, nullable=False, default=list)
    applicable_category_ids = Column(JSON, nullable=False, default=list)
    applicable_weekdays = Column(JSON, nullable=False, default=list)
    start_time = Column(String(5), nullable=True)
    end_time = Column(String(5), nullable=True)
    only_first_time = Column(Boolean, default=False, nullable=False)
    only_returning = Column(Boolean, default=False, nullable=False)

    def __repr__(self):
        return f"<Coupon(code={self.code}, used={self.usage_count}/{self.usage_limit})>"


class CouponUsage(Base):
    __tablename__ = "coupon_usages"

    id = Column(String(32), primary_key=True, default=new_id)
    coupon_id = Column(String(32), ForeignKey("coupons.id"), nullable=False, index=True)
    customer_id = Column(String(32), ForeignKey("customers.id"), nullable=False, index=True)
    reservation_id = Column(String(32), ForeignKey("reservations.id"), nullable=True)
    discount_amount = Column(Integer, nullable=False)
    used_at = Column(DateTime, default=utc_now, nullable=False)


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        # Backstop for the conflict check: two confirmed bookings may never
        # share staff, date and start time.
        Index(
            "uq_reservations_confirmed_staff_slot",
            "staff_id", "date", "start_time",
            unique=True,
            sqlite_where=text("status = 'CONFIRMED'"),
            postgresql_where=text("status = 'CONFIRMED'"),
        ),
        Index("ix_reservations_staff_date", "staff_id", "date"),
        Index("ix_reservations_date_status", "date", "status"),
    )

    id = Column(String(32), primary_key=True, default=new_id)
    customer_id = Column(String(32), ForeignKey("customers.id"), nullable=False, index=True)
    staff_id = Column(String(32), ForeignKey("staff.id"), nullable=False)
    staff_name = Column(String(100), nullable=True)
    date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    total_price = Column(Integer, nullable=False)
    total_duration = Column(Integer, nullable=False)
    menu_summary = Column(String(500), nullable=False)
    coupon_id = Column(String(32), ForeignKey("coupons.id"), nullable=True)
    coupon_code = Column(String(50), nullable=True)
    coupon_discount = Column(Integer, default=0, nullable=False)
    status = Column(String(20), default="CONFIRMED", nullable=False)
    payment_method = Column(String(20), default="ONSITE", nullable=False)
    payment_reference = Column(String(255), nullable=True)
    is_first_visit = Column(Boolean, nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    customer = relationship("Customer", back_populates="reservations")
    staff = relationship("Staff")
    coupon = relationship("Coupon")
    items = relationship(
        "ReservationItem",
        order_by="ReservationItem.order_index",
        cascade="all, delete-orphan",
    )

    @property
    def final_price(self) -> int:
        return self.total_price - (self.coupon_discount or 0)

    def __repr__(self):
        return (
            f"<Reservation(id={self.id}, staff={self.staff_id}, "
            f"{self.date} {self.start_time}-{self.end_time}, status={self.status})>"
        )


class ReservationItem(Base):
    """Menu snapshot taken at booking time; never updated afterwards."""
    __tablename__ = "reservation_items"

    id = Column(String(32), primary_key=True, default=new_id)
    reservation_id = Column(String(32), ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False, index=True)
    menu_id = Column(String(32), nullable=False)
    menu_name = Column(String(200), nullable=False)
    category = Column(String(100), nullable=False)
    price = Column(Integer, nullable=False)
    duration = Column(Integer, nullable=False)
    order_index = Column(Integer, nullable=False)


class Setting(Base):
    """Key/value business settings (JSON-encoded values)."""
    __tablename__ = "settings"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)
