from uuid import UUID

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from campusops.auth.models import User
from campusops.auth.security import hash_password, verify_password
from campusops.core.config import settings
from campusops.core.models import Campus, Tenant
from campusops.db.seed_platform_admin import seed_platform_admin
from conftest import make_auth_headers


@pytest.fixture()
async def platform_headers(db_session: AsyncSession):
    platform = Tenant(tenant_name="Platform", subdomain="platform", status="ACTIVE")
    db_session.add(platform)
    await db_session.flush()
    user = User(
        tenant_id=platform.id,
        username="platform-admin",
        first_name="Platform",
        last_name="Admin",
        password_hash=hash_password("platform-pass-123"),
        role="PLATFORM_ADMIN",
        status="ACTIVE",
    )
    db_session.add(user)
    await db_session.commit()
    return make_auth_headers(user)


def _tenant_body(subdomain="riverside", username="riverside-admin"):
    return {
        "tenant_name": "Riverside Academy",
        "subdomain": subdomain,
        "campus": {"campus_name": "Riverside Main", "email": "office@riverside.edu"},
        "admin": {
            "username": username,
            "first_name": "Rhea",
            "last_name": "Kapoor",
            "password": "riverside-pass-1",
        },
    }


@pytest.mark.asyncio
async def test_create_tenant_with_main_campus_and_admin(client: AsyncClient, db_session: AsyncSession, platform_headers):
    response = await client.post("/api/v1/tenants", json=_tenant_body(), headers=platform_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["tenant"]["subdomain"] == "riverside"
    assert data["admin_username"] == "riverside-admin"

    campuses = (await db_session.execute(select(Campus).where(Campus.tenant_id == UUID(data["tenant"]["id"])))).scalars().all()
    assert [(c.campus_name, c.is_main_campus) for c in campuses] == [("Riverside Main", True)]
    admin = (await db_session.execute(select(User).where(User.username == "riverside-admin"))).scalar_one()
    assert admin.role == "SUPER_ADMIN"

    login = await client.post(
        "/api/v1/auth/login", json={"username": "riverside-admin", "password": "riverside-pass-1"}
    )
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_duplicate_subdomain_conflicts(client: AsyncClient, platform_headers):
    first = await client.post("/api/v1/tenants", json=_tenant_body(), headers=platform_headers)
    assert first.status_code == 201

    second = await client.post(
        "/api/v1/tenants", json=_tenant_body(username="another-admin"), headers=platform_headers
    )
    assert second.status_code == 409
    assert second.json()["detail"] == "Subdomain 'riverside' is already taken"


@pytest.mark.asyncio
async def test_only_platform_admin_creates_tenants(client: AsyncClient, admin_headers):
    response = await client.post("/api/v1/tenants", json=_tenant_body(), headers=admin_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_my_tenant(client: AsyncClient, admin_headers, tenant):
    response = await client.get("/api/v1/tenants/me", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["subdomain"] == "greenfield"


@pytest.mark.asyncio
async def test_new_main_campus_demotes_previous(client: AsyncClient, admin_headers, campus):
    response = await client.post(
        "/api/v1/campuses", json={"campus_name": "City Campus", "is_main_campus": True}, headers=admin_headers
    )
    assert response.status_code == 201

    listed = await client.get("/api/v1/campuses", headers=admin_headers)
    flags = {c["campus_name"]: c["is_main_campus"] for c in listed.json()}
    assert flags == {"City Campus": True, "Main Campus": False}


async def test_seed_platform_admin_is_rerunnable(db_session: AsyncSession, monkeypatch):
    monkeypatch.setattr(settings, "platform_admin_password", "first-pass-123")
    user = await seed_platform_admin(db_session)
    assert user.role == "PLATFORM_ADMIN"

    monkeypatch.setattr(settings, "platform_admin_password", "second-pass-123")
    again = await seed_platform_admin(db_session)
    assert again.id == user.id
    tenants = (await db_session.execute(select(Tenant).where(Tenant.subdomain == "platform"))).scalars().all()
    assert len(tenants) == 1
    assert verify_password("second-pass-123", again.password_hash)


async def test_seed_platform_admin_requires_password(db_session: AsyncSession, monkeypatch):
    monkeypatch.setattr(settings, "platform_admin_password", None)
    with pytest.raises(RuntimeError):
        await seed_platform_admin(db_session)
