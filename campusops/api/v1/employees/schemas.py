from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from campusops.core.enums import (
    BloodGroup,
    EmergencyRelation,
    EmployeeRole,
    EmploymentStatus,
    EmploymentType,
    Gender,
)

# Spreadsheet cells arrive as text; JSON clients may also send numbers
FieldValue = Optional[Union[str, int, float]]


# ----- Partial update groups -----
# A field left unset is not touched; a field explicitly set to null is cleared.
class EmployeeUserFields(BaseModel):
    first_name: FieldValue = None
    middle_name: FieldValue = None
    last_name: FieldValue = None
    date_of_birth: FieldValue = None
    phone_number: FieldValue = None

    class Config:
        extra = "forbid"


class EmployeeContactFields(BaseModel):
    email: FieldValue = None
    contact_phone: FieldValue = None
    alt_phone: FieldValue = None
    current_address: FieldValue = None
    city: FieldValue = None
    state: FieldValue = None
    pincode: FieldValue = None
    country: FieldValue = None
    permanent_address: FieldValue = None
    emergency_contact_name: FieldValue = None
    emergency_contact_phone: FieldValue = None
    emergency_contact_relation: FieldValue = None

    class Config:
        extra = "forbid"


class EmployeeEmploymentFields(BaseModel):
    employee_id: FieldValue = None
    designation: FieldValue = None
    department: FieldValue = None
    joining_date: FieldValue = None
    salary: FieldValue = None
    employment_type: FieldValue = None
    status: FieldValue = None
    transport_details: FieldValue = None
    hostel_details: FieldValue = None

    class Config:
        extra = "forbid"


class EmployeePersonalFields(BaseModel):
    gender: FieldValue = None
    nationality: FieldValue = None
    religion: FieldValue = None
    caste: FieldValue = None
    category: FieldValue = None
    blood_group: FieldValue = None
    height_cm: FieldValue = None
    weight_kg: FieldValue = None
    medical_conditions: FieldValue = None
    allergies: FieldValue = None
    occupation: FieldValue = None
    income: FieldValue = None
    marital_status: FieldValue = None

    class Config:
        extra = "forbid"


class EmployeeUpdate(BaseModel):
    """Partial update across the four employee detail groups. Used by PUT and by the bulk update."""

    user: EmployeeUserFields = Field(default_factory=EmployeeUserFields)
    contact: EmployeeContactFields = Field(default_factory=EmployeeContactFields)
    employment: EmployeeEmploymentFields = Field(default_factory=EmployeeEmploymentFields)
    personal: EmployeePersonalFields = Field(default_factory=EmployeePersonalFields)


# ----- Create -----
class EmployeeUserCreate(BaseModel):
    first_name: str = Field(..., min_length=1)
    middle_name: Optional[str] = None
    last_name: str = Field(..., min_length=1)
    date_of_birth: date  # Initial password is derived from it (YYYYMMDD)
    phone_number: Optional[str] = None
    role: EmployeeRole = EmployeeRole.TEACHER


class EmployeeContactCreate(BaseModel):
    email: EmailStr
    contact_phone: Optional[str] = None  # Falls back to user.phone_number
    alt_phone: Optional[str] = None
    current_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    country: Optional[str] = None
    permanent_address: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relation: Optional[EmergencyRelation] = None


class EmployeeEmploymentCreate(BaseModel):
    employee_id: str = Field(..., min_length=1, max_length=50)
    designation: str = Field(..., min_length=1)
    department: str = Field(..., min_length=1)
    joining_date: date
    salary: Decimal = Field(Decimal("0"), ge=0)
    employment_type: EmploymentType = EmploymentType.FULL_TIME
    status: EmploymentStatus = EmploymentStatus.ACTIVE
    transport_details: Optional[str] = None
    hostel_details: Optional[str] = None


class EmployeePersonalCreate(BaseModel):
    gender: Optional[Gender] = None
    marital_status: Optional[str] = None
    nationality: Optional[str] = None
    religion: Optional[str] = None
    caste: Optional[str] = None
    category: Optional[str] = None
    blood_group: Optional[BloodGroup] = None
    height_cm: Optional[int] = Field(None, gt=0)
    weight_kg: Optional[Decimal] = Field(None, gt=0)
    medical_conditions: Optional[str] = None
    allergies: Optional[str] = None
    occupation: Optional[str] = None
    income: Optional[Decimal] = Field(None, ge=0)


class EmployeeCreate(BaseModel):
    """Do NOT send username or tenant_id (generated / taken from the token). campus_id defaults to the main campus."""

    user: EmployeeUserCreate
    contact: EmployeeContactCreate
    employment: EmployeeEmploymentCreate
    personal: EmployeePersonalCreate = Field(default_factory=EmployeePersonalCreate)
    campus_id: Optional[UUID] = None


# ----- Responses -----
class EmployeeResponse(BaseModel):
    """Flattened view of an employee across users, employment, personal and contact tables."""

    user_id: UUID
    username: str
    tenant_id: UUID
    first_name: str
    middle_name: Optional[str] = None
    last_name: str
    phone_number: Optional[str] = None
    date_of_birth: Optional[date] = None
    role: str
    status: str
    created_at: datetime

    campus_id: Optional[UUID] = None
    employee_id: Optional[str] = None
    designation: Optional[str] = None
    department: Optional[str] = None
    joining_date: Optional[date] = None
    salary: Optional[Decimal] = None
    employment_type: Optional[str] = None
    employment_status: Optional[str] = None
    transport_details: Optional[str] = None
    hostel_details: Optional[str] = None

    gender: Optional[str] = None
    marital_status: Optional[str] = None
    nationality: Optional[str] = None
    religion: Optional[str] = None
    caste: Optional[str] = None
    category: Optional[str] = None
    blood_group: Optional[str] = None
    height_cm: Optional[int] = None
    weight_kg: Optional[Decimal] = None
    medical_conditions: Optional[str] = None
    allergies: Optional[str] = None
    occupation: Optional[str] = None
    income: Optional[Decimal] = None

    email: Optional[str] = None
    contact_phone: Optional[str] = None
    alt_phone: Optional[str] = None
    current_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    country: Optional[str] = None
    permanent_address: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relation: Optional[str] = None


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_count: int
    limit: int
    has_next: bool
    has_prev: bool


class EmployeeListResponse(BaseModel):
    employees: List[EmployeeResponse]
    pagination: Pagination


# ----- Bulk operations -----
class BulkSummary(BaseModel):
    total: int
    success: int
    failed: int


class BulkUpdateResponse(BaseModel):
    success: bool
    message: str
    summary: BulkSummary


class EmployeeExportRequest(BaseModel):
    usernames: List[str] = Field(default_factory=list)
