from datetime import datetime
from typing import Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str


class UserInfo(BaseModel):
    id: UUID
    username: str
    name: str
    role: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserInfo
    tenant_id: UUID
    campus_id: Optional[UUID] = None
    issued_at: datetime


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated user for RBAC checks.
    campus_id is the campus the user works at (employees) or None for tenant-wide admins.
    """

    id: UUID
    username: str
    tenant_id: UUID
    role: str
    campus_id: Optional[UUID] = None
    permissions: Dict[str, Dict[str, bool]]
