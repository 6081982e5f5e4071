import os

# Settings are read at import time; point them at a throwaway database before importing the app.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"

from typing import AsyncGenerator, Callable, Dict, List, Optional, Sequence
from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient
from openpyxl import Workbook
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import campusops.auth.models  # noqa: F401
import campusops.core.models  # noqa: F401
from campusops.api.v1.employees import service as employee_service
from campusops.api.v1.employees.schemas import EmployeeCreate, EmployeeResponse
from campusops.auth.models import Role, User
from campusops.auth.security import create_access_token, hash_password
from campusops.core.config import settings
from campusops.core.models import Campus, Tenant
from campusops.db.session import Base, get_db
from campusops.main import app

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
ADMIN_PASSWORD = "admin-pass-123"


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch) -> str:
    """Keep uploaded temp files inside the test's tmp_path."""
    path = str(tmp_path / "uploads")
    monkeypatch.setattr(settings, "upload_dir", path)
    return path


@pytest.fixture()
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """One in-memory SQLite database per test. SQLite has no schemas, so core/auth are mapped away."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        execution_options={"schema_translate_map": {"core": None, "auth": None}},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for a test and override the FastAPI dependency."""
    session_factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session
    app.dependency_overrides.clear()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
async def tenant(db_session: AsyncSession) -> Tenant:
    obj = Tenant(tenant_name="Greenfield School", subdomain="greenfield", status="ACTIVE")
    db_session.add(obj)
    await db_session.commit()
    return obj


@pytest.fixture()
async def campus(db_session: AsyncSession, tenant: Tenant) -> Campus:
    obj = Campus(tenant_id=tenant.id, campus_name="Main Campus", is_main_campus=True)
    db_session.add(obj)
    await db_session.commit()
    return obj


@pytest.fixture()
async def admin_user(db_session: AsyncSession, tenant: Tenant) -> User:
    user = User(
        tenant_id=tenant.id,
        username="school-admin",
        first_name="School",
        last_name="Admin",
        password_hash=hash_password(ADMIN_PASSWORD),
        role="SUPER_ADMIN",
        status="ACTIVE",
    )
    db_session.add(user)
    await db_session.commit()
    return user


def make_auth_headers(user: User, campus_id: Optional[UUID] = None) -> Dict[str, str]:
    subject = {"user_id": str(user.id), "tenant_id": str(user.tenant_id), "role": user.role}
    if campus_id:
        subject["campus_id"] = str(campus_id)
    return {"Authorization": f"Bearer {create_access_token(subject=subject)}"}


@pytest.fixture()
def admin_headers(admin_user: User, campus: Campus) -> Dict[str, str]:
    return make_auth_headers(admin_user, campus.id)


@pytest.fixture()
def headers_without_campus(admin_user: User) -> Dict[str, str]:
    return make_auth_headers(admin_user)


@pytest.fixture()
async def clerk_headers(db_session: AsyncSession, tenant: Tenant, campus: Campus) -> Dict[str, str]:
    """A non-admin user whose role may read and update employees but not create or delete them."""
    db_session.add(
        Role(
            tenant_id=tenant.id,
            name="Employee",
            permissions={"employees": {"read": True, "update": True, "create": False, "delete": False}},
        )
    )
    user = User(
        tenant_id=tenant.id,
        username="office-clerk",
        first_name="Office",
        last_name="Clerk",
        password_hash=hash_password("clerk-pass-123"),
        role="Employee",
        status="ACTIVE",
    )
    db_session.add(user)
    await db_session.commit()
    return make_auth_headers(user, campus.id)


@pytest.fixture()
def create_employee(db_session: AsyncSession, tenant: Tenant, campus: Campus) -> Callable:
    """Factory creating an employee through the service. Keyword overrides go to the user group."""

    async def _create(
        employee_id: str = "EMP001",
        email: Optional[str] = None,
        campus_id: Optional[UUID] = None,
        **user_fields,
    ) -> EmployeeResponse:
        user = {
            "first_name": "Asha",
            "last_name": "Rao",
            "date_of_birth": "1990-04-12",
            "phone_number": "9000000001",
            "role": "Teacher",
        }
        user.update(user_fields)
        payload = EmployeeCreate(
            user=user,
            contact={"email": email or f"{employee_id.lower()}@greenfield.edu", "city": "Pune"},
            employment={
                "employee_id": employee_id,
                "designation": "Teacher",
                "department": "Science",
                "joining_date": "2020-06-01",
                "salary": "45000",
            },
        )
        return await employee_service.create_employee(db_session, tenant.id, payload, campus_id or campus.id)

    return _create


@pytest.fixture()
def make_workbook(tmp_path) -> Callable[..., str]:
    """Write headers + rows to an .xlsx file under tmp_path and return its path."""
    counter = {"n": 0}

    def _make(headers: Sequence[str], rows: List[Sequence[object]]) -> str:
        counter["n"] += 1
        wb = Workbook()
        ws = wb.active
        ws.append(list(headers))
        for row in rows:
            ws.append(list(row))
        path = tmp_path / f"upload_{counter['n']}.xlsx"
        wb.save(path)
        return str(path)

    return _make
