"""
Tenant onboarding.

Tenant, main campus and admin user are written in a single transaction:
either all three exist afterwards or none do.
"""
from typing import Optional
from uuid import UUID

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from campusops.auth.models import User
from campusops.auth.security import hash_password
from campusops.core.exceptions import ConflictError
from campusops.core.models import Campus, Tenant

from .schemas import TenantCreate, TenantCreateResponse, TenantResponse

TENANT_ADMIN_ROLE = "SUPER_ADMIN"


def _tenant_to_response(t: Tenant) -> TenantResponse:
    return TenantResponse.model_validate(t)


async def create_tenant(db: AsyncSession, payload: TenantCreate) -> TenantCreateResponse:
    subdomain = payload.subdomain.strip().lower()
    existing = await db.execute(select(Tenant.id).where(Tenant.subdomain == subdomain))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError(f"Subdomain '{subdomain}' is already taken")
    taken = await db.execute(select(User.id).where(User.username == payload.admin.username.strip()))
    if taken.scalar_one_or_none() is not None:
        raise ConflictError(f"Username '{payload.admin.username}' is already taken")

    try:
        tenant = Tenant(
            tenant_name=payload.tenant_name.strip(),
            subdomain=subdomain,
            phone_number=payload.phone_number,
            year_founded=payload.year_founded,
            website=payload.website,
            status="ACTIVE",
        )
        db.add(tenant)
        await db.flush()

        campus = Campus(
            tenant_id=tenant.id,
            campus_name=payload.campus.campus_name.strip(),
            address=payload.campus.address,
            phone_number=payload.campus.phone_number,
            email=payload.campus.email,
            is_main_campus=True,
            year_established=payload.campus.year_established,
            no_of_floors=payload.campus.no_of_floors,
        )
        db.add(campus)

        admin = User(
            tenant_id=tenant.id,
            username=payload.admin.username.strip(),
            first_name=payload.admin.first_name.strip(),
            last_name=payload.admin.last_name.strip(),
            phone_number=payload.admin.phone_number,
            password_hash=hash_password(payload.admin.password),
            role=TENANT_ADMIN_ROLE,
            status="ACTIVE",
        )
        db.add(admin)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Tenant, campus or admin user already exists")

    await db.refresh(tenant)
    logger.info(f"Created tenant {tenant.id} ({subdomain}) with main campus {campus.id}")
    return TenantCreateResponse(
        tenant=_tenant_to_response(tenant),
        main_campus_id=campus.id,
        admin_user_id=admin.id,
        admin_username=admin.username,
    )


async def get_tenant(db: AsyncSession, tenant_id: UUID) -> Optional[TenantResponse]:
    tenant = await db.get(Tenant, tenant_id)
    return _tenant_to_response(tenant) if tenant else None
