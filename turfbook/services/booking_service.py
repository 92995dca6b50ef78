import asyncio
import datetime as dt
import logging
import weakref

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from turfbook.core.clock import utc_now_naive
from turfbook.core.config import settings
from turfbook.models.booking import OVERLAP_CONSTRAINT, Booking, BookingStatus, PaymentStatus
from turfbook.models.turf import Turf
from turfbook.services.slot_service import (
    GridSlot,
    Rejection,
    RejectionReason,
    build_availability_grid,
    cancel_booking,
    reject,
    validate_booking_request,
)
from turfbook.services.turf_service import is_listed

logger = logging.getLogger(__name__)


class AdmissionLocks:
    """One asyncio.Lock per (turf, day), dropped once nobody holds or awaits it."""

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[tuple[int, dt.date], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def get(self, turf_id: int, day: dt.date) -> asyncio.Lock:
        key = (turf_id, day)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock


admission_locks = AdmissionLocks()


async def fetch_booked_intervals(
    session: AsyncSession, turf_id: int, day: dt.date
) -> list[Booking]:
    result = await session.execute(
        select(Booking)
        .where(
            Booking.turf_id == turf_id,
            Booking.date == day,
            Booking.status == BookingStatus.BOOKED.value,
        )
        .order_by(Booking.start_minute)
    )
    return list(result.scalars().all())


def _is_overlap_violation(exc: IntegrityError) -> bool:
    return OVERLAP_CONSTRAINT in str(exc.orig)


async def _get_turf_for_admission(session: AsyncSession, turf_id: int) -> Turf | None:
    # Row lock serializes admission for this turf across processes (no-op on SQLite)
    result = await session.execute(
        select(Turf).where(Turf.id == turf_id).with_for_update()
    )
    return result.scalar_one_or_none()


async def book_slot(
    session: AsyncSession,
    user_id: int,
    turf_id: int,
    day: dt.date,
    start_time: str,
    end_time: str,
    now: dt.datetime,
) -> Booking | Rejection:
    """Admit and persist a booking, or return why it was refused.

    The overlap check and the insert run under the (turf, day) admission lock
    and commit before the lock is released, so two overlapping requests can
    never both be admitted.
    """
    async with admission_locks.get(turf_id, day):
        turf = await _get_turf_for_admission(session, turf_id)
        if turf is None:
            await session.commit()
            return reject(RejectionReason.TURF_NOT_FOUND)
        if not is_listed(turf):
            await session.commit()
            return reject(RejectionReason.TURF_INACTIVE)

        booked = await fetch_booked_intervals(session, turf_id, day)
        decision = validate_booking_request(turf, day, start_time, end_time, now, booked)
        if isinstance(decision, Rejection):
            # Ends the transaction and releases the turf row lock
            await session.commit()
            logger.info(
                "Booking rejected: turf=%s date=%s %s-%s reason=%s",
                turf_id, day, start_time, end_time, decision.reason.value,
            )
            return decision

        booking = Booking(
            user_id=user_id,
            turf_id=decision.turf_id,
            date=decision.date,
            start_minute=decision.start_minute,
            end_minute=decision.end_minute,
            status=BookingStatus.BOOKED.value,
            payment_status=PaymentStatus.PAID.value,
            total_amount=decision.total_amount,
        )
        session.add(booking)
        try:
            await session.flush()
            await session.commit()
        except IntegrityError as exc:
            await session.rollback()
            if not _is_overlap_violation(exc):
                raise
            # Exclusion constraint caught a writer outside this process
            logger.warning(
                "Booking conflict at insert: turf=%s date=%s %s-%s",
                turf_id, day, start_time, end_time,
            )
            return reject(RejectionReason.SLOT_TAKEN)

    logger.info(
        "Booking %s admitted: turf=%s date=%s %s-%s amount=%s",
        booking.id, turf_id, day, start_time, end_time, booking.total_amount,
    )
    return booking


async def cancel_user_booking(
    session: AsyncSession, booking_id: int, user_id: int, now: dt.datetime
) -> Booking | Rejection:
    result = await session.execute(
        select(Booking).where(Booking.id == booking_id).with_for_update()
    )
    booking = result.scalar_one_or_none()
    if booking is None:
        return reject(RejectionReason.BOOKING_NOT_FOUND)
    if booking.user_id != user_id:
        return reject(RejectionReason.NOT_OWNER)

    decision = cancel_booking(booking, now)
    if isinstance(decision, Rejection):
        logger.info("Cancel of booking %s rejected: %s", booking_id, decision.reason.value)
        return decision

    booking.status = decision.status.value
    booking.payment_status = PaymentStatus.REFUNDED.value
    booking.cancelled_at = utc_now_naive()
    await session.flush()
    logger.info("Booking %s cancelled", booking_id)
    return booking


async def get_booking(session: AsyncSession, booking_id: int) -> Booking | None:
    result = await session.execute(select(Booking).where(Booking.id == booking_id))
    return result.scalar_one_or_none()


async def get_turf_availability(
    session: AsyncSession, turf_id: int, day: dt.date, now: dt.datetime
) -> tuple[Turf, list[GridSlot]] | Rejection:
    result = await session.execute(select(Turf).where(Turf.id == turf_id))
    turf = result.scalar_one_or_none()
    if turf is None:
        return reject(RejectionReason.TURF_NOT_FOUND)
    booked = await fetch_booked_intervals(session, turf_id, day)
    grid = build_availability_grid(turf, day, booked, now, step=settings.slot_duration_minutes)
    return turf, grid


async def _paginate(
    session: AsyncSession, q: Select, page: int, limit: int
) -> tuple[list[Booking], int]:
    total = (
        await session.execute(select(func.count()).select_from(q.subquery()))
    ).scalar_one()
    result = await session.execute(
        q.order_by(Booking.date.desc(), Booking.start_minute.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def list_bookings_for_user(
    session: AsyncSession,
    user_id: int,
    status: BookingStatus | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Booking], int]:
    q = select(Booking).where(Booking.user_id == user_id)
    if status:
        q = q.where(Booking.status == status.value)
    return await _paginate(session, q, page, limit)


async def list_bookings_for_turf(
    session: AsyncSession,
    turf_id: int,
    start_date: dt.date | None = None,
    end_date: dt.date | None = None,
    status: BookingStatus | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Booking], int]:
    q = select(Booking).where(Booking.turf_id == turf_id)
    if start_date:
        q = q.where(Booking.date >= start_date)
    if end_date:
        q = q.where(Booking.date <= end_date)
    if status:
        q = q.where(Booking.status == status.value)
    return await _paginate(session, q, page, limit)
