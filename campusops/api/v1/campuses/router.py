from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from campusops.auth.dependencies import get_current_user
from campusops.auth.rbac import check_permission
from campusops.auth.schemas import CurrentUser
from campusops.db.session import get_db

from .schemas import CampusCreate, CampusResponse
from . import service

router = APIRouter(prefix="/api/v1/campuses", tags=["campuses"])


@router.post(
    "",
    response_model=CampusResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("campuses", "create"))],
)
async def create_campus(
    payload: CampusCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> CampusResponse:
    return await service.create_campus(db, current_user.tenant_id, payload)


@router.get(
    "",
    response_model=List[CampusResponse],
    dependencies=[Depends(check_permission("campuses", "read"))],
)
async def list_campuses(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[CampusResponse]:
    return await service.list_campuses(db, current_user.tenant_id)


@router.get(
    "/{campus_id}",
    response_model=CampusResponse,
    dependencies=[Depends(check_permission("campuses", "read"))],
)
async def get_campus(
    campus_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> CampusResponse:
    campus = await service.get_campus(db, current_user.tenant_id, campus_id)
    if not campus:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Campus not found")
    return campus
