import math

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from turfbook.api.deps import get_session, require_role
from turfbook.api.schemas.booking import Pagination
from turfbook.api.schemas.turf import TurfListResponse
from turfbook.core.config import settings
from turfbook.models.turf import Turf, TurfPublic, TurfRejectRequest, TurfStatus
from turfbook.models.user import UserRole
from turfbook.services.turf_service import (
    TurfStatusConflict,
    approve_turf,
    get_turf,
    list_turfs_for_moderation,
    reject_turf,
    turf_to_public,
)

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_role(UserRole.ADMIN))],
)


async def _get_turf_or_404(session: AsyncSession, turf_id: int) -> Turf:
    turf = await get_turf(session, turf_id)
    if not turf:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Turf not found")
    return turf


@router.get("/turfs", response_model=TurfListResponse)
async def all_turfs(
    status_param: TurfStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    session: AsyncSession = Depends(get_session),
) -> TurfListResponse:
    turfs, total = await list_turfs_for_moderation(
        session, status=status_param, page=page, limit=limit
    )
    return TurfListResponse(
        count=len(turfs),
        pagination=Pagination(
            page=page, limit=limit, total=total, pages=math.ceil(total / limit)
        ),
        turfs=[turf_to_public(t) for t in turfs],
    )


@router.put("/turfs/{turf_id}/approve", response_model=TurfPublic)
async def approve(
    turf_id: int,
    session: AsyncSession = Depends(get_session),
) -> TurfPublic:
    turf = await _get_turf_or_404(session, turf_id)
    try:
        turf = await approve_turf(session, turf)
    except TurfStatusConflict as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return turf_to_public(turf)


@router.put("/turfs/{turf_id}/reject", response_model=TurfPublic)
async def reject(
    turf_id: int,
    body: TurfRejectRequest | None = Body(None),
    session: AsyncSession = Depends(get_session),
) -> TurfPublic:
    turf = await _get_turf_or_404(session, turf_id)
    try:
        turf = await reject_turf(session, turf, body.reason if body else None)
    except TurfStatusConflict as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return turf_to_public(turf)
