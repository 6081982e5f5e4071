from datetime import datetime, timezone
from typing import Optional

from fastapi import status
from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from campusops.auth.models import User
from campusops.auth.schemas import LoginRequest, LoginResponse, UserInfo
from campusops.auth.security import create_access_token, verify_password
from campusops.core.exceptions import ServiceError
from campusops.core.models import Tenant


def _display_name(user: User) -> str:
    return " ".join(p for p in (user.first_name, user.middle_name, user.last_name) if p)


async def login_user(db: AsyncSession, payload: LoginRequest) -> LoginResponse:
    # 1. Find user by username
    result = await db.execute(
        select(User)
        .where(User.username == payload.username.strip())
        .options(selectinload(User.employment))
    )
    user: Optional[User] = result.scalar_one_or_none()
    if not user or not verify_password(payload.password, user.password_hash):
        logger.warning(f"Failed login attempt for username {payload.username!r}")
        raise ServiceError("Invalid credentials", status.HTTP_401_UNAUTHORIZED)

    # 2. User and tenant must both be active
    if user.status != "ACTIVE":
        raise ServiceError("User is inactive", status.HTTP_403_FORBIDDEN)
    tenant = await db.get(Tenant, user.tenant_id)
    if not tenant:
        raise ServiceError("Tenant not found", status.HTTP_403_FORBIDDEN)
    if tenant.status != "ACTIVE":
        raise ServiceError("Tenant is inactive", status.HTTP_403_FORBIDDEN)

    # 3. Employees carry their campus in the token; tenant admins do not
    campus_id = user.employment.campus_id if user.employment else None

    subject = {
        "user_id": str(user.id),
        "tenant_id": str(user.tenant_id),
        "role": user.role,
    }
    if campus_id:
        subject["campus_id"] = str(campus_id)
    access_token = create_access_token(subject=subject)

    logger.info(f"User {user.username} logged in (tenant={user.tenant_id})")
    return LoginResponse(
        access_token=access_token,
        user=UserInfo(id=user.id, username=user.username, name=_display_name(user), role=user.role),
        tenant_id=user.tenant_id,
        campus_id=campus_id,
        issued_at=datetime.now(timezone.utc),
    )
