"""
Tests for turfbook/services/booking_service.py.

These run against a file-backed SQLite database so that concurrent admission
attempts use genuinely separate sessions and connections.
"""

import asyncio
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError

from conftest import FIXED_NOW, TODAY, TOMORROW
from turfbook.models import Booking, BookingStatus, PaymentStatus
from turfbook.services import booking_service
from turfbook.services.booking_service import (
    AdmissionLocks,
    book_slot,
    cancel_user_booking,
    fetch_booked_intervals,
    get_turf_availability,
    list_bookings_for_turf,
    list_bookings_for_user,
)
from turfbook.services.slot_service import Rejection, RejectionReason, SlotClassification


async def _book(session_maker, user_id, turf_id, day, start, end, now=FIXED_NOW):
    async with session_maker() as s:
        return await book_slot(s, user_id, turf_id, day, start, end, now)


class TestBookSlot:
    """Tests for book_slot admission and persistence."""

    @pytest.mark.asyncio
    async def test_admits_and_persists(self, session_maker, seeded) -> None:
        result = await _book(session_maker, seeded["player_id"], seeded["turf_id"], TOMORROW, "12:00", "14:00")

        assert isinstance(result, Booking)
        assert result.id is not None
        assert result.total_amount == Decimal("3000.00")
        assert result.status == BookingStatus.BOOKED
        assert result.payment_status == PaymentStatus.PAID

        async with session_maker() as s:
            stored = (await s.execute(select(Booking).where(Booking.id == result.id))).scalar_one()
        assert stored.start_minute == 720
        assert stored.end_minute == 840
        assert stored.date == TOMORROW

    @pytest.mark.asyncio
    async def test_overlap_with_existing_booking_is_slot_taken(self, session_maker, seeded) -> None:
        first = await _book(session_maker, seeded["player_id"], seeded["turf_id"], TOMORROW, "10:00", "12:00")
        second = await _book(session_maker, seeded["other_id"], seeded["turf_id"], TOMORROW, "11:00", "13:00")
        third = await _book(session_maker, seeded["other_id"], seeded["turf_id"], TOMORROW, "12:00", "14:00")

        assert isinstance(first, Booking)
        assert isinstance(second, Rejection)
        assert second.reason == RejectionReason.SLOT_TAKEN
        assert isinstance(third, Booking)
        assert third.total_amount == Decimal("3000.00")

    @pytest.mark.asyncio
    async def test_same_slot_on_another_day_is_free(self, session_maker, seeded) -> None:
        await _book(session_maker, seeded["player_id"], seeded["turf_id"], TOMORROW, "10:00", "12:00")

        result = await _book(session_maker, seeded["player_id"], seeded["turf_id"], date(2024, 6, 3), "10:00", "12:00")

        assert isinstance(result, Booking)

    @pytest.mark.asyncio
    async def test_unknown_turf(self, session_maker, seeded) -> None:
        result = await _book(session_maker, seeded["player_id"], 9999, TOMORROW, "10:00", "11:00")

        assert isinstance(result, Rejection)
        assert result.reason == RejectionReason.TURF_NOT_FOUND

    @pytest.mark.asyncio
    async def test_inactive_turf(self, session_maker, seeded) -> None:
        result = await _book(session_maker, seeded["player_id"], seeded["closed_turf_id"], TOMORROW, "10:00", "11:00")

        assert isinstance(result, Rejection)
        assert result.reason == RejectionReason.TURF_INACTIVE

    @pytest.mark.asyncio
    async def test_unapproved_turf_is_not_bookable(self, session_maker, seeded) -> None:
        result = await _book(session_maker, seeded["player_id"], seeded["pending_turf_id"], TOMORROW, "10:00", "11:00")

        assert isinstance(result, Rejection)
        assert result.reason == RejectionReason.TURF_INACTIVE

    @pytest.mark.asyncio
    async def test_rejection_writes_nothing(self, session_maker, seeded) -> None:
        result = await _book(session_maker, seeded["player_id"], seeded["turf_id"], TODAY, "14:00", "15:00")

        assert isinstance(result, Rejection)
        assert result.reason == RejectionReason.PAST_TIME
        async with session_maker() as s:
            rows = (await s.execute(select(Booking))).scalars().all()
        assert rows == []

    @pytest.mark.asyncio
    async def test_concurrent_overlapping_requests_admit_exactly_one(self, session_maker, seeded) -> None:
        turf_id = seeded["turf_id"]
        attempts = [
            _book(session_maker, seeded["player_id"], turf_id, TOMORROW, "10:00", "12:00"),
            _book(session_maker, seeded["other_id"], turf_id, TOMORROW, "11:00", "13:00"),
            _book(session_maker, seeded["other_id"], turf_id, TOMORROW, "10:00", "12:00"),
            _book(session_maker, seeded["player_id"], turf_id, TOMORROW, "10:30", "11:00"),
        ]

        results = await asyncio.gather(*attempts)

        winners = [r for r in results if isinstance(r, Booking)]
        losers = [r for r in results if isinstance(r, Rejection)]
        assert len(winners) == 1
        assert len(losers) == 3
        assert {r.reason for r in losers} == {RejectionReason.SLOT_TAKEN}

        async with session_maker() as s:
            stored = await fetch_booked_intervals(s, turf_id, TOMORROW)
        assert len(stored) == 1

    @pytest.mark.asyncio
    async def test_concurrent_adjacent_requests_are_all_admitted(self, session_maker, seeded) -> None:
        turf_id = seeded["turf_id"]
        attempts = [
            _book(session_maker, seeded["player_id"], turf_id, TOMORROW, f"{h:02d}:00", f"{h + 1:02d}:00")
            for h in range(8, 12)
        ]

        results = await asyncio.gather(*attempts)

        assert all(isinstance(r, Booking) for r in results)


# SQLite stand-ins for PostgreSQL constraints; RAISE(ABORT) surfaces as IntegrityError
OVERLAP_TRIGGER = """
CREATE TRIGGER bookings_no_overlap BEFORE INSERT ON bookings
WHEN NEW.status = 'booked' AND EXISTS (
    SELECT 1 FROM bookings
    WHERE turf_id = NEW.turf_id AND date = NEW.date AND status = 'booked'
      AND start_minute < NEW.end_minute AND end_minute > NEW.start_minute
)
BEGIN
    SELECT RAISE(ABORT, 'conflicting key value violates exclusion constraint "ex_bookings_no_overlap"');
END
"""

USER_FK_TRIGGER = """
CREATE TRIGGER bookings_user_fk BEFORE INSERT ON bookings
WHEN NOT EXISTS (SELECT 1 FROM users WHERE id = NEW.user_id)
BEGIN
    SELECT RAISE(ABORT, 'FOREIGN KEY constraint failed');
END
"""


async def _stale_read(session, turf_id, day):
    """What a request sees when another process commits right after its read."""
    return []


class TestInsertTimeConflicts:
    """Tests for conflicts only the database catches at insert time."""

    @pytest.mark.asyncio
    async def test_overlap_constraint_maps_to_slot_taken(
        self, test_engine, session_maker, seeded, monkeypatch
    ) -> None:
        async with test_engine.begin() as conn:
            await conn.execute(text(OVERLAP_TRIGGER))
        async with session_maker() as s:
            s.add(
                Booking(
                    user_id=seeded["other_id"],
                    turf_id=seeded["turf_id"],
                    date=TOMORROW,
                    start_minute=600,
                    end_minute=720,
                    status=BookingStatus.BOOKED.value,
                    payment_status=PaymentStatus.PAID.value,
                    total_amount=Decimal("3000.00"),
                )
            )
            await s.commit()
        monkeypatch.setattr(booking_service, "fetch_booked_intervals", _stale_read)

        result = await _book(session_maker, seeded["player_id"], seeded["turf_id"], TOMORROW, "11:00", "12:00")

        assert isinstance(result, Rejection)
        assert result.reason == RejectionReason.SLOT_TAKEN
        async with session_maker() as s:
            rows = (await s.execute(select(Booking))).scalars().all()
        assert [r.user_id for r in rows] == [seeded["other_id"]]

    @pytest.mark.asyncio
    async def test_other_integrity_errors_propagate(self, test_engine, session_maker, seeded) -> None:
        async with test_engine.begin() as conn:
            await conn.execute(text(USER_FK_TRIGGER))

        with pytest.raises(IntegrityError):
            await _book(session_maker, 9999, seeded["turf_id"], TOMORROW, "10:00", "11:00")

        async with session_maker() as s:
            rows = (await s.execute(select(Booking))).scalars().all()
        assert rows == []


class TestAdmissionLocks:
    """Tests for the per-(turf, day) lock registry."""

    def test_same_key_shares_a_lock(self) -> None:
        locks = AdmissionLocks()

        first = locks.get(1, TOMORROW)
        second = locks.get(1, TOMORROW)

        assert first is second

    def test_different_keys_do_not_share(self) -> None:
        locks = AdmissionLocks()

        held = locks.get(1, TOMORROW)

        assert locks.get(2, TOMORROW) is not held
        assert locks.get(1, TODAY) is not held


class TestCancelUserBooking:
    """Tests for cancel_user_booking."""

    @pytest.mark.asyncio
    async def test_cancel_frees_the_slot(self, session_maker, seeded) -> None:
        booking = await _book(session_maker, seeded["player_id"], seeded["turf_id"], TOMORROW, "10:00", "12:00")

        async with session_maker() as s:
            result = await cancel_user_booking(s, booking.id, seeded["player_id"], FIXED_NOW)
            await s.commit()

        assert isinstance(result, Booking)
        assert result.status == BookingStatus.CANCELLED
        assert result.payment_status == PaymentStatus.REFUNDED
        # audit stamp is real UTC, not the injected venue clock
        assert abs(result.cancelled_at - datetime.now(UTC).replace(tzinfo=None)) < timedelta(minutes=1)

        rebook = await _book(session_maker, seeded["other_id"], seeded["turf_id"], TOMORROW, "10:00", "12:00")
        assert isinstance(rebook, Booking)

    @pytest.mark.asyncio
    async def test_second_cancel_is_already_cancelled(self, session_maker, seeded) -> None:
        booking = await _book(session_maker, seeded["player_id"], seeded["turf_id"], TOMORROW, "10:00", "12:00")
        async with session_maker() as s:
            first = await cancel_user_booking(s, booking.id, seeded["player_id"], FIXED_NOW)
            await s.commit()

        later = datetime(2024, 6, 1, 16, 0)
        async with session_maker() as s:
            result = await cancel_user_booking(s, booking.id, seeded["player_id"], later)
            await s.commit()
            stored = (await s.execute(select(Booking).where(Booking.id == booking.id))).scalar_one()

        assert isinstance(result, Rejection)
        assert result.reason == RejectionReason.ALREADY_CANCELLED
        assert stored.cancelled_at == first.cancelled_at

    @pytest.mark.asyncio
    async def test_only_the_owner_can_cancel(self, session_maker, seeded) -> None:
        booking = await _book(session_maker, seeded["player_id"], seeded["turf_id"], TOMORROW, "10:00", "12:00")

        async with session_maker() as s:
            result = await cancel_user_booking(s, booking.id, seeded["other_id"], FIXED_NOW)

        assert isinstance(result, Rejection)
        assert result.reason == RejectionReason.NOT_OWNER

    @pytest.mark.asyncio
    async def test_unknown_booking(self, session, seeded) -> None:
        result = await cancel_user_booking(session, 4242, seeded["player_id"], FIXED_NOW)

        assert isinstance(result, Rejection)
        assert result.reason == RejectionReason.BOOKING_NOT_FOUND

    @pytest.mark.asyncio
    async def test_started_booking_cannot_be_cancelled(self, session_maker, seeded) -> None:
        booking = await _book(session_maker, seeded["player_id"], seeded["turf_id"], TODAY, "15:00", "16:00")
        during = datetime(2024, 6, 1, 15, 10)

        async with session_maker() as s:
            result = await cancel_user_booking(s, booking.id, seeded["player_id"], during)

        assert isinstance(result, Rejection)
        assert result.reason == RejectionReason.ALREADY_STARTED


class TestAvailabilityAndListing:
    """Tests for availability grid lookup and booking listings."""

    @pytest.mark.asyncio
    async def test_availability_reflects_bookings(self, session_maker, seeded) -> None:
        await _book(session_maker, seeded["player_id"], seeded["turf_id"], TODAY, "16:00", "18:00")

        async with session_maker() as s:
            result = await get_turf_availability(s, seeded["turf_id"], TODAY, FIXED_NOW)

        turf, grid = result
        assert turf.id == seeded["turf_id"]
        statuses = {slot.start_time: slot.status for slot in grid}
        assert statuses["14:00"] == SlotClassification.PAST
        assert statuses["15:00"] == SlotClassification.AVAILABLE
        assert statuses["16:00"] == SlotClassification.BOOKED
        assert statuses["17:00"] == SlotClassification.BOOKED
        assert statuses["21:00"] == SlotClassification.AVAILABLE

    @pytest.mark.asyncio
    async def test_availability_for_unknown_turf(self, session, seeded) -> None:
        result = await get_turf_availability(session, 9999, TODAY, FIXED_NOW)

        assert isinstance(result, Rejection)
        assert result.reason == RejectionReason.TURF_NOT_FOUND

    @pytest.mark.asyncio
    async def test_user_listing_filters_and_paginates(self, session_maker, seeded) -> None:
        for h in (8, 10, 12):
            await _book(session_maker, seeded["player_id"], seeded["turf_id"], TOMORROW, f"{h:02d}:00", f"{h + 1:02d}:00")
        await _book(session_maker, seeded["other_id"], seeded["turf_id"], TOMORROW, "15:00", "16:00")

        async with session_maker() as s:
            page_one, total = await list_bookings_for_user(s, seeded["player_id"], page=1, limit=2)
            page_two, _ = await list_bookings_for_user(s, seeded["player_id"], page=2, limit=2)
            cancelled, cancelled_total = await list_bookings_for_user(
                s, seeded["player_id"], status=BookingStatus.CANCELLED
            )

        assert total == 3
        # newest start first
        assert [b.start_minute for b in page_one] == [720, 600]
        assert [b.start_minute for b in page_two] == [480]
        assert cancelled == []
        assert cancelled_total == 0

    @pytest.mark.asyncio
    async def test_turf_listing_date_range(self, session_maker, seeded) -> None:
        await _book(session_maker, seeded["player_id"], seeded["turf_id"], TOMORROW, "10:00", "11:00")
        await _book(session_maker, seeded["player_id"], seeded["turf_id"], date(2024, 6, 5), "10:00", "11:00")

        async with session_maker() as s:
            in_range, total = await list_bookings_for_turf(
                s, seeded["turf_id"], start_date=TOMORROW, end_date=date(2024, 6, 3)
            )

        assert total == 1
        assert in_range[0].date == TOMORROW
