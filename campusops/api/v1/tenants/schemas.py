from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class MainCampusCreate(BaseModel):
    campus_name: str = Field(..., min_length=1, max_length=255)
    address: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[EmailStr] = None
    year_established: Optional[int] = None
    no_of_floors: Optional[int] = Field(None, ge=0)


class TenantAdminCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone_number: Optional[str] = None
    password: str = Field(..., min_length=8)


class TenantCreate(BaseModel):
    """Onboard a school: tenant, its main campus and the first admin account are created together."""

    tenant_name: str = Field(..., min_length=3)
    subdomain: str = Field(..., min_length=2, max_length=63, pattern=r"^[a-z0-9-]+$")
    phone_number: Optional[str] = None
    year_founded: Optional[int] = None
    website: Optional[str] = None
    campus: MainCampusCreate
    admin: TenantAdminCreate


class TenantResponse(BaseModel):
    id: UUID
    tenant_name: str
    subdomain: str
    phone_number: Optional[str] = None
    year_founded: Optional[int] = None
    website: Optional[str] = None
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class TenantCreateResponse(BaseModel):
    tenant: TenantResponse
    main_campus_id: UUID
    admin_user_id: UUID
    admin_username: str
