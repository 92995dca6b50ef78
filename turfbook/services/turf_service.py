import logging
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from turfbook.models.turf import Turf, TurfCreate, TurfPublic, TurfStatus, TurfUpdate
from turfbook.services.time_grid import parse_time_of_day

logger = logging.getLogger(__name__)

DEFAULT_REJECTION_REASON = "No reason provided"


class InvalidTurfConfiguration(ValueError):
    pass


class TurfStatusConflict(Exception):
    """Moderation action that would leave the turf where it already is."""


def turf_to_public(turf: Turf) -> TurfPublic:
    return TurfPublic(
        id=turf.id,
        owner_id=turf.owner_id,
        name=turf.name,
        location=turf.location,
        city=turf.city,
        description=turf.description,
        price_per_hour=turf.price_per_hour,
        opening_time=turf.opening_time,
        closing_time=turf.closing_time,
        is_active=turf.is_active,
        status=turf.status,
        rejection_reason=turf.rejection_reason,
    )


def is_listed(turf: Turf) -> bool:
    """Visible to the public and open for bookings."""
    return turf.is_active and turf.status == TurfStatus.APPROVED


async def get_turf(session: AsyncSession, turf_id: int) -> Turf | None:
    result = await session.execute(select(Turf).where(Turf.id == turf_id))
    return result.scalar_one_or_none()


async def list_turfs(
    session: AsyncSession,
    city: str | None = None,
    location: str | None = None,
    min_price: Decimal | None = None,
    max_price: Decimal | None = None,
) -> list[Turf]:
    """Active, approved turfs matching the optional filters."""
    q = (
        select(Turf)
        .where(Turf.is_active.is_(True), Turf.status == TurfStatus.APPROVED.value)
        .order_by(Turf.name)
    )
    if city:
        q = q.where(Turf.city == city.strip().lower())
    if location:
        q = q.where(Turf.location.ilike(f"%{location.strip()}%"))
    if min_price is not None:
        q = q.where(Turf.price_per_hour >= min_price)
    if max_price is not None:
        q = q.where(Turf.price_per_hour <= max_price)
    result = await session.execute(q)
    return list(result.scalars().all())


async def list_owner_turfs(session: AsyncSession, owner_id: int) -> list[Turf]:
    """Every turf of one owner, including deactivated and unapproved ones."""
    result = await session.execute(
        select(Turf)
        .where(Turf.owner_id == owner_id)
        .order_by(Turf.created_at.desc(), Turf.id.desc())
    )
    return list(result.scalars().all())


async def list_cities(session: AsyncSession) -> list[str]:
    result = await session.execute(
        select(Turf.city)
        .where(Turf.is_active.is_(True), Turf.status == TurfStatus.APPROVED.value)
        .distinct()
        .order_by(Turf.city)
    )
    return list(result.scalars().all())


async def list_turfs_for_moderation(
    session: AsyncSession,
    status: TurfStatus | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Turf], int]:
    q = select(Turf)
    if status:
        q = q.where(Turf.status == status.value)
    total = (
        await session.execute(select(func.count()).select_from(q.subquery()))
    ).scalar_one()
    result = await session.execute(
        q.order_by(Turf.created_at.desc(), Turf.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def create_turf(session: AsyncSession, owner_id: int, data: TurfCreate) -> Turf:
    turf = Turf(owner_id=owner_id, status=TurfStatus.PENDING.value, **data.to_row_fields())
    session.add(turf)
    await session.flush()
    await session.refresh(turf)
    logger.info("Turf %s created by owner %s, awaiting approval", turf.id, owner_id)
    return turf


async def update_turf(session: AsyncSession, turf: Turf, data: TurfUpdate) -> Turf:
    """Apply a partial update, re-checking the operating window as a whole."""
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    opening = changes.pop("opening_time", None)
    closing = changes.pop("closing_time", None)
    opening_minute = parse_time_of_day(opening) if opening else turf.opening_minute
    closing_minute = parse_time_of_day(closing) if closing else turf.closing_minute
    if opening_minute >= closing_minute:
        raise InvalidTurfConfiguration("opening_time must be before closing_time")

    for field, value in changes.items():
        setattr(turf, field, value)
    turf.opening_minute = opening_minute
    turf.closing_minute = closing_minute
    session.add(turf)
    await session.flush()
    await session.refresh(turf)
    return turf


async def deactivate_turf(session: AsyncSession, turf: Turf) -> Turf:
    """Soft delete: the row and its bookings stay, the listing disappears."""
    turf.is_active = False
    session.add(turf)
    await session.flush()
    logger.info("Turf %s deactivated", turf.id)
    return turf


async def approve_turf(session: AsyncSession, turf: Turf) -> Turf:
    if turf.status == TurfStatus.APPROVED:
        raise TurfStatusConflict("Turf is already approved.")
    turf.status = TurfStatus.APPROVED.value
    turf.rejection_reason = None
    session.add(turf)
    await session.flush()
    logger.info("Turf %s approved", turf.id)
    return turf


async def reject_turf(session: AsyncSession, turf: Turf, reason: str | None = None) -> Turf:
    if turf.status == TurfStatus.REJECTED:
        raise TurfStatusConflict("Turf is already rejected.")
    turf.status = TurfStatus.REJECTED.value
    turf.rejection_reason = reason or DEFAULT_REJECTION_REASON
    session.add(turf)
    await session.flush()
    logger.info("Turf %s rejected: %s", turf.id, turf.rejection_reason)
    return turf
