from typing import List, Optional
from uuid import UUID

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from campusops.core.models import Campus

from .schemas import CampusCreate, CampusResponse


async def create_campus(
    db: AsyncSession,
    tenant_id: UUID,
    payload: CampusCreate,
) -> CampusResponse:
    """Create a campus. A new main campus demotes the tenant's previous main campus in the same transaction."""
    if payload.is_main_campus:
        await db.execute(
            update(Campus)
            .where(Campus.tenant_id == tenant_id, Campus.is_main_campus.is_(True))
            .values(is_main_campus=False)
        )
    obj = Campus(
        tenant_id=tenant_id,
        campus_name=payload.campus_name.strip(),
        address=payload.address,
        phone_number=payload.phone_number,
        email=payload.email,
        is_main_campus=payload.is_main_campus,
        year_established=payload.year_established,
        no_of_floors=payload.no_of_floors,
    )
    db.add(obj)
    await db.commit()
    await db.refresh(obj)
    logger.info(f"Created campus {obj.id} for tenant {tenant_id} (main={obj.is_main_campus})")
    return CampusResponse.model_validate(obj)


async def list_campuses(db: AsyncSession, tenant_id: UUID) -> List[CampusResponse]:
    result = await db.execute(
        select(Campus)
        .where(Campus.tenant_id == tenant_id)
        .order_by(Campus.is_main_campus.desc(), Campus.created_at.desc())
    )
    return [CampusResponse.model_validate(c) for c in result.scalars().all()]


async def get_campus(db: AsyncSession, tenant_id: UUID, campus_id: UUID) -> Optional[CampusResponse]:
    obj = await get_campus_for_tenant(db, tenant_id, campus_id)
    return CampusResponse.model_validate(obj) if obj else None


async def get_campus_for_tenant(db: AsyncSession, tenant_id: UUID, campus_id: UUID) -> Optional[Campus]:
    result = await db.execute(select(Campus).where(Campus.id == campus_id, Campus.tenant_id == tenant_id))
    return result.scalar_one_or_none()


async def get_default_campus_id(db: AsyncSession, tenant_id: UUID) -> Optional[UUID]:
    """Main campus of the tenant, else the oldest campus, else None."""
    result = await db.execute(
        select(Campus.id)
        .where(Campus.tenant_id == tenant_id)
        .order_by(Campus.is_main_campus.desc(), Campus.created_at.asc())
        .limit(1)
    )
    return result.scalar_one_or_none()
