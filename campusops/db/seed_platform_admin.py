"""
Seed script to create the Platform tenant and the first PLATFORM_ADMIN user.

Run once (after schema_check) with env set:
  PLATFORM_ADMIN_USERNAME=platform-admin
  PLATFORM_ADMIN_PASSWORD=YourSecurePassword

Creates (if missing):
- core.tenants: one row with subdomain "platform"
- auth.users: one PLATFORM_ADMIN user for that tenant
"""
import asyncio

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from campusops.auth.models import User
from campusops.auth.security import hash_password
from campusops.core.config import settings
from campusops.core.models import Tenant
from campusops.db.session import SessionFactory

PLATFORM_TENANT_NAME = "Platform"
PLATFORM_SUBDOMAIN = "platform"
PLATFORM_ADMIN_ROLE = "PLATFORM_ADMIN"


async def seed_platform_admin(db: AsyncSession) -> User:
    result = await db.execute(select(Tenant).where(Tenant.subdomain == PLATFORM_SUBDOMAIN))
    platform_tenant = result.scalar_one_or_none()
    if not platform_tenant:
        platform_tenant = Tenant(
            tenant_name=PLATFORM_TENANT_NAME,
            subdomain=PLATFORM_SUBDOMAIN,
            status="ACTIVE",
        )
        db.add(platform_tenant)
        await db.flush()
        print("Created Platform tenant.")
    else:
        print("Platform tenant already exists.")

    username = settings.platform_admin_username
    password = settings.platform_admin_password
    if not password:
        raise RuntimeError("PLATFORM_ADMIN_PASSWORD must be set")

    result = await db.execute(select(User).where(User.username == username))
    platform_user = result.scalar_one_or_none()
    if not platform_user:
        platform_user = User(
            tenant_id=platform_tenant.id,
            username=username,
            first_name="Platform",
            last_name="Admin",
            password_hash=hash_password(password),
            role=PLATFORM_ADMIN_ROLE,
            status="ACTIVE",
        )
        db.add(platform_user)
        print("Created PLATFORM_ADMIN user:", username)
    else:
        platform_user.role = PLATFORM_ADMIN_ROLE
        platform_user.password_hash = hash_password(password)
        print("Updated existing user to PLATFORM_ADMIN:", username)

    await db.commit()
    print("Platform admin seed done.")
    return platform_user


async def main() -> None:
    async with SessionFactory() as db:
        try:
            await seed_platform_admin(db)
        except Exception as e:
            await db.rollback()
            print("Error:", e)
            raise


if __name__ == "__main__":
    asyncio.run(main())
