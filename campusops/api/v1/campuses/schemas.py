from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class CampusCreate(BaseModel):
    campus_name: str = Field(..., min_length=1, max_length=255)
    address: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[EmailStr] = None
    is_main_campus: bool = False
    year_established: Optional[int] = None
    no_of_floors: Optional[int] = Field(None, ge=0)


class CampusResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    campus_name: str
    address: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    is_main_campus: bool
    year_established: Optional[int] = None
    no_of_floors: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
