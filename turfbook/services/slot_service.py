"""Availability and overlap rules for turf bookings.

Every function here is pure: callers fetch the turf and its booked intervals,
pass the current wall-clock time in explicitly, and persist whatever comes
back. Expected domain failures are returned as a ``Rejection`` rather than
raised.
"""

import datetime as dt
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict

from turfbook.models.booking import BookingBase, BookingStatus
from turfbook.models.turf import Turf
from turfbook.services.time_grid import (
    SLOT_MINUTES,
    InvalidTimeFormat,
    format_time_of_day,
    generate_hourly_slots,
    minute_of_day,
    parse_time_of_day,
)

_CENTS = Decimal("0.01")


class RejectionReason(str, Enum):
    INVALID_FORMAT = "invalid_format"
    INVALID_RANGE = "invalid_range"
    PAST_DATE = "past_date"
    PAST_TIME = "past_time"
    OUTSIDE_OPERATING_HOURS = "outside_operating_hours"
    SLOT_TAKEN = "slot_taken"
    ALREADY_CANCELLED = "already_cancelled"
    PAST_BOOKING = "past_booking"
    ALREADY_STARTED = "already_started"
    # Returned by the booking service before the rules above run
    TURF_NOT_FOUND = "turf_not_found"
    TURF_INACTIVE = "turf_inactive"
    BOOKING_NOT_FOUND = "booking_not_found"
    NOT_OWNER = "not_owner"


REJECTION_MESSAGES: dict[RejectionReason, str] = {
    RejectionReason.INVALID_FORMAT: "Please provide valid time in HH:MM format.",
    RejectionReason.INVALID_RANGE: "End time must be after start time.",
    RejectionReason.PAST_DATE: "Cannot book slots in the past.",
    RejectionReason.PAST_TIME: "Cannot book a slot whose start time has already passed.",
    RejectionReason.OUTSIDE_OPERATING_HOURS: "Booking must be within turf operating hours.",
    RejectionReason.SLOT_TAKEN: "This time slot is already booked. Please choose a different time.",
    RejectionReason.ALREADY_CANCELLED: "Booking is already cancelled.",
    RejectionReason.PAST_BOOKING: "Cannot cancel past bookings.",
    RejectionReason.ALREADY_STARTED: "Cannot cancel a booking that has already started.",
    RejectionReason.TURF_NOT_FOUND: "Turf not found.",
    RejectionReason.TURF_INACTIVE: "This turf is not available for booking.",
    RejectionReason.BOOKING_NOT_FOUND: "Booking not found.",
    RejectionReason.NOT_OWNER: "Not authorized to modify this booking.",
}


class Rejection(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: RejectionReason
    message: str


def reject(reason: RejectionReason) -> Rejection:
    return Rejection(reason=reason, message=REJECTION_MESSAGES[reason])


class SlotClassification(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    PAST = "past"


class GridSlot(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_minute: int
    end_minute: int
    status: SlotClassification

    @property
    def start_time(self) -> str:
        return format_time_of_day(self.start_minute)

    @property
    def end_time(self) -> str:
        return format_time_of_day(self.end_minute)


class ValidatedBooking(BaseModel):
    """An admitted, priced request. The caller persists it as a booked interval."""

    model_config = ConfigDict(frozen=True)

    turf_id: int
    date: dt.date
    start_minute: int
    end_minute: int
    duration_hours: Decimal
    total_amount: Decimal


class CancelledBooking(BaseModel):
    model_config = ConfigDict(frozen=True)

    turf_id: int
    date: dt.date
    start_minute: int
    end_minute: int
    status: BookingStatus = BookingStatus.CANCELLED


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Half-open interval overlap. Touching at a boundary is not an overlap."""
    return a_start < b_end and a_end > b_start


def _as_day(value: dt.date | dt.datetime) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    return value


def _current_minute(now: dt.datetime) -> int:
    return minute_of_day(now.hour, now.minute)


def check_overlap(
    turf_id: int | None,
    day: dt.date | dt.datetime,
    start: int,
    end: int,
    booked: Iterable[BookingBase],
) -> bool:
    """True if [start, end) overlaps any booked interval of this turf on this day.

    Cancelled intervals never participate.
    """
    day = _as_day(day)
    for interval in booked:
        if interval.status != BookingStatus.BOOKED:
            continue
        if interval.turf_id != turf_id or _as_day(interval.date) != day:
            continue
        if overlaps(start, end, interval.start_minute, interval.end_minute):
            return True
    return False


def price_for(start: int, end: int, price_per_hour: Decimal | int | float) -> tuple[Decimal, Decimal]:
    """Return (duration_hours, total_amount) for a [start, end) range."""
    hours = Decimal(end - start) / Decimal(60)
    total = (hours * Decimal(str(price_per_hour))).quantize(_CENTS, rounding=ROUND_HALF_UP)
    return hours.quantize(_CENTS, rounding=ROUND_HALF_UP), total


def validate_booking_request(
    turf: Turf,
    day: dt.date | dt.datetime,
    start: str,
    end: str,
    now: dt.datetime,
    booked: Iterable[BookingBase] = (),
) -> ValidatedBooking | Rejection:
    """Run the admission guards in order; the first failing guard wins."""
    try:
        start_minute = parse_time_of_day(start)
        end_minute = parse_time_of_day(end)
    except InvalidTimeFormat:
        return reject(RejectionReason.INVALID_FORMAT)

    if end_minute <= start_minute:
        return reject(RejectionReason.INVALID_RANGE)

    day = _as_day(day)
    today = now.date()
    if day < today:
        return reject(RejectionReason.PAST_DATE)
    # Starting at the current minute is still allowed
    if day == today and start_minute < _current_minute(now):
        return reject(RejectionReason.PAST_TIME)

    if start_minute < turf.opening_minute or end_minute > turf.closing_minute:
        return reject(RejectionReason.OUTSIDE_OPERATING_HOURS)

    if check_overlap(turf.id, day, start_minute, end_minute, booked):
        return reject(RejectionReason.SLOT_TAKEN)

    duration_hours, total_amount = price_for(start_minute, end_minute, turf.price_per_hour)
    return ValidatedBooking(
        turf_id=turf.id,
        date=day,
        start_minute=start_minute,
        end_minute=end_minute,
        duration_hours=duration_hours,
        total_amount=total_amount,
    )


def classify_slot(
    day: dt.date,
    start: int,
    end: int,
    now: dt.datetime,
    turf_id: int | None,
    booked: list[BookingBase],
) -> SlotClassification:
    today = now.date()
    if day < today or (day == today and start < _current_minute(now)):
        return SlotClassification.PAST
    if check_overlap(turf_id, day, start, end, booked):
        return SlotClassification.BOOKED
    return SlotClassification.AVAILABLE


def build_availability_grid(
    turf: Turf,
    day: dt.date | dt.datetime,
    booked: Iterable[BookingBase],
    now: dt.datetime,
    step: int = SLOT_MINUTES,
) -> list[GridSlot]:
    """Classify every slot of the turf's day, in ascending start order."""
    day = _as_day(day)
    booked = list(booked)
    return [
        GridSlot(
            start_minute=start,
            end_minute=end,
            status=classify_slot(day, start, end, now, turf.id, booked),
        )
        for start, end in generate_hourly_slots(turf.opening_minute, turf.closing_minute, step)
    ]


def cancel_booking(interval: BookingBase, now: dt.datetime) -> CancelledBooking | Rejection:
    """Decide whether a booked interval may move to cancelled.

    Unlike admission, a booking starting at the current minute has already
    started and can no longer be cancelled.
    """
    if interval.status == BookingStatus.CANCELLED:
        return reject(RejectionReason.ALREADY_CANCELLED)

    day = _as_day(interval.date)
    today = now.date()
    if day < today:
        return reject(RejectionReason.PAST_BOOKING)
    if day == today and interval.start_minute <= _current_minute(now):
        return reject(RejectionReason.ALREADY_STARTED)

    return CancelledBooking(
        turf_id=interval.turf_id,
        date=day,
        start_minute=interval.start_minute,
        end_minute=interval.end_minute,
    )
