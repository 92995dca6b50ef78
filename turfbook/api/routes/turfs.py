from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from turfbook.api.deps import get_session, require_role
from turfbook.models.turf import Turf, TurfCreate, TurfPublic, TurfUpdate
from turfbook.models.user import User, UserRole
from turfbook.services.turf_service import (
    InvalidTurfConfiguration,
    create_turf,
    deactivate_turf,
    get_turf,
    is_listed,
    list_cities,
    list_owner_turfs,
    list_turfs,
    turf_to_public,
    update_turf,
)

router = APIRouter(prefix="/turfs", tags=["turfs"])


async def _get_own_turf(session: AsyncSession, turf_id: int, owner: User) -> Turf:
    turf = await get_turf(session, turf_id)
    if not turf:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Turf not found")
    if turf.owner_id != owner.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to manage this turf",
        )
    return turf


@router.get("", response_model=list[TurfPublic])
async def list_active_turfs(
    city: str | None = Query(None),
    location: str | None = Query(None),
    min_price: Decimal | None = Query(None, ge=0),
    max_price: Decimal | None = Query(None, ge=0),
    session: AsyncSession = Depends(get_session),
) -> list[TurfPublic]:
    turfs = await list_turfs(
        session, city=city, location=location, min_price=min_price, max_price=max_price
    )
    return [turf_to_public(t) for t in turfs]


@router.get("/cities", response_model=list[str])
async def cities(session: AsyncSession = Depends(get_session)) -> list[str]:
    return await list_cities(session)


@router.get("/my-turfs", response_model=list[TurfPublic])
async def my_turfs(
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_role(UserRole.OWNER)),
) -> list[TurfPublic]:
    turfs = await list_owner_turfs(session, current_user.id)
    return [turf_to_public(t) for t in turfs]


@router.get("/{turf_id}", response_model=TurfPublic)
async def turf_detail(
    turf_id: int,
    session: AsyncSession = Depends(get_session),
) -> TurfPublic:
    turf = await get_turf(session, turf_id)
    if not turf or not is_listed(turf):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Turf not found")
    return turf_to_public(turf)


@router.post("", response_model=TurfPublic, status_code=status.HTTP_201_CREATED)
async def create_my_turf(
    body: TurfCreate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_role(UserRole.OWNER)),
) -> TurfPublic:
    turf = await create_turf(session, current_user.id, body)
    return turf_to_public(turf)


@router.patch("/{turf_id}", response_model=TurfPublic)
async def update_my_turf(
    turf_id: int,
    body: TurfUpdate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_role(UserRole.OWNER)),
) -> TurfPublic:
    turf = await _get_own_turf(session, turf_id, current_user)
    try:
        turf = await update_turf(session, turf, body)
    except InvalidTurfConfiguration as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
        ) from e
    return turf_to_public(turf)


@router.delete("/{turf_id}", response_model=TurfPublic)
async def delete_my_turf(
    turf_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_role(UserRole.OWNER)),
) -> TurfPublic:
    turf = await _get_own_turf(session, turf_id, current_user)
    turf = await deactivate_turf(session, turf)
    return turf_to_public(turf)
