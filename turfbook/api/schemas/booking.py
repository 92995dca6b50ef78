import datetime as dt
from decimal import Decimal

from pydantic import BaseModel

from turfbook.models.booking import BookingStatus, PaymentStatus
from turfbook.services.slot_service import SlotClassification


class BookSlotRequest(BaseModel):
    turf_id: int
    date: dt.date
    start_time: str  # HH:MM
    end_time: str  # HH:MM


class BookingPublic(BaseModel):
    id: int
    user_id: int
    turf_id: int
    date: dt.date
    start_time: str
    end_time: str
    status: BookingStatus
    payment_status: PaymentStatus
    total_amount: Decimal
    created_at: dt.datetime
    cancelled_at: dt.datetime | None = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class BookingListResponse(BaseModel):
    count: int
    pagination: Pagination
    bookings: list[BookingPublic]


class SlotInfo(BaseModel):
    start_time: str
    end_time: str
    status: SlotClassification


class AvailabilityTurf(BaseModel):
    id: int
    name: str
    opening_time: str
    closing_time: str
    price_per_hour: Decimal


class AvailabilityResponse(BaseModel):
    turf: AvailabilityTurf
    date: str  # YYYY-MM-DD
    slots: list[SlotInfo]
