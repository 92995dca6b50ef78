import datetime as dt
import math

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from turfbook.api.deps import get_current_user, get_now, get_session, require_role
from turfbook.api.schemas.booking import (
    AvailabilityResponse,
    AvailabilityTurf,
    BookingListResponse,
    BookingPublic,
    BookSlotRequest,
    Pagination,
    SlotInfo,
)
from turfbook.core.config import settings
from turfbook.models.booking import Booking, BookingStatus
from turfbook.models.user import User, UserRole
from turfbook.services.booking_service import (
    book_slot,
    cancel_user_booking,
    get_booking,
    get_turf_availability,
    list_bookings_for_turf,
    list_bookings_for_user,
)
from turfbook.services.slot_service import Rejection, RejectionReason
from turfbook.services.time_grid import format_time_of_day
from turfbook.services.turf_service import get_turf

router = APIRouter(prefix="/bookings", tags=["bookings"])

_REJECTION_STATUS = {
    RejectionReason.TURF_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    RejectionReason.BOOKING_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    RejectionReason.NOT_OWNER: status.HTTP_403_FORBIDDEN,
    RejectionReason.SLOT_TAKEN: status.HTTP_409_CONFLICT,
}


def _raise_rejection(rejection: Rejection) -> None:
    raise HTTPException(
        status_code=_REJECTION_STATUS.get(rejection.reason, status.HTTP_400_BAD_REQUEST),
        detail={"reason": rejection.reason.value, "message": rejection.message},
    )


def _to_public(b: Booking) -> BookingPublic:
    return BookingPublic(
        id=b.id,
        user_id=b.user_id,
        turf_id=b.turf_id,
        date=b.date,
        start_time=format_time_of_day(b.start_minute),
        end_time=format_time_of_day(b.end_minute),
        status=b.status,
        payment_status=b.payment_status,
        total_amount=b.total_amount,
        created_at=b.created_at,
        cancelled_at=b.cancelled_at,
    )


def _to_list_response(
    bookings: list[Booking], total: int, page: int, limit: int
) -> BookingListResponse:
    return BookingListResponse(
        count=len(bookings),
        pagination=Pagination(
            page=page, limit=limit, total=total, pages=math.ceil(total / limit)
        ),
        bookings=[_to_public(b) for b in bookings],
    )


@router.get("/availability/{turf_id}", response_model=AvailabilityResponse)
async def turf_availability(
    turf_id: int,
    date_param: dt.date = Query(..., alias="date"),
    session: AsyncSession = Depends(get_session),
    now: dt.datetime = Depends(get_now),
) -> AvailabilityResponse:
    """Hourly grid for a turf on a date; each slot is available, booked or past."""
    result = await get_turf_availability(session, turf_id, date_param, now)
    if isinstance(result, Rejection):
        _raise_rejection(result)
    turf, grid = result
    return AvailabilityResponse(
        turf=AvailabilityTurf(
            id=turf.id,
            name=turf.name,
            opening_time=turf.opening_time,
            closing_time=turf.closing_time,
            price_per_hour=turf.price_per_hour,
        ),
        date=date_param.isoformat(),
        slots=[
            SlotInfo(start_time=s.start_time, end_time=s.end_time, status=s.status)
            for s in grid
        ],
    )


@router.post("", response_model=BookingPublic, status_code=status.HTTP_201_CREATED)
async def create_booking(
    body: BookSlotRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_role(UserRole.USER)),
    now: dt.datetime = Depends(get_now),
) -> BookingPublic:
    result = await book_slot(
        session,
        user_id=current_user.id,
        turf_id=body.turf_id,
        day=body.date,
        start_time=body.start_time,
        end_time=body.end_time,
        now=now,
    )
    if isinstance(result, Rejection):
        _raise_rejection(result)
    return _to_public(result)


@router.get("/my-bookings", response_model=BookingListResponse)
async def my_bookings(
    status_param: BookingStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_role(UserRole.USER)),
) -> BookingListResponse:
    bookings, total = await list_bookings_for_user(
        session, current_user.id, status=status_param, page=page, limit=limit
    )
    return _to_list_response(bookings, total, page, limit)


@router.get("/turf/{turf_id}", response_model=BookingListResponse)
async def turf_bookings(
    turf_id: int,
    start_date: dt.date | None = Query(None),
    end_date: dt.date | None = Query(None),
    status_param: BookingStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_role(UserRole.OWNER)),
) -> BookingListResponse:
    turf = await get_turf(session, turf_id)
    if not turf:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Turf not found")
    if turf.owner_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to view bookings for this turf",
        )
    bookings, total = await list_bookings_for_turf(
        session,
        turf_id,
        start_date=start_date,
        end_date=end_date,
        status=status_param,
        page=page,
        limit=limit,
    )
    return _to_list_response(bookings, total, page, limit)


@router.get("/{booking_id}", response_model=BookingPublic)
async def booking_detail(
    booking_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> BookingPublic:
    booking = await get_booking(session, booking_id)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    if booking.user_id != current_user.id:
        turf = await get_turf(session, booking.turf_id)
        if not turf or turf.owner_id != current_user.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not authorized to view this booking",
            )
    return _to_public(booking)


@router.put("/{booking_id}/cancel", response_model=BookingPublic)
async def cancel_my_booking(
    booking_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_role(UserRole.USER)),
    now: dt.datetime = Depends(get_now),
) -> BookingPublic:
    result = await cancel_user_booking(session, booking_id, current_user.id, now)
    if isinstance(result, Rejection):
        _raise_rejection(result)
    return _to_public(result)
