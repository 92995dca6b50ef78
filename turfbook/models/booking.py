import datetime as dt
from decimal import Decimal
from enum import Enum

from sqlalchemy import DateTime, Index
from sqlmodel import AutoString, Field, SQLModel

from turfbook.core.clock import utc_now_naive

# Name of the PostgreSQL exclusion constraint on booked ranges (see migrations)
OVERLAP_CONSTRAINT = "ex_bookings_no_overlap"


class BookingStatus(str, Enum):
    BOOKED = "booked"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PAID = "paid"
    REFUNDED = "refunded"


class BookingBase(SQLModel):
    turf_id: int = Field(foreign_key="turfs.id", index=True)
    date: dt.date
    # Half-open [start_minute, end_minute) in minutes since midnight
    start_minute: int
    end_minute: int
    status: BookingStatus = Field(default=BookingStatus.BOOKED, sa_type=AutoString)


class Booking(BookingBase, table=True):
    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_turf_date_status", "turf_id", "date", "status"),
        Index("ix_bookings_user_status", "user_id", "status"),
    )
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id")
    # Demo payment: marked paid on admission, refunded on cancel
    payment_status: PaymentStatus = Field(default=PaymentStatus.PAID, sa_type=AutoString)
    total_amount: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=10, decimal_places=2)
    # Both timestamps are naive UTC; booking times themselves are venue-local
    created_at: dt.datetime = Field(default_factory=utc_now_naive, sa_type=DateTime)
    cancelled_at: dt.datetime | None = Field(default=None, sa_type=DateTime)
