import math
import secrets
import string
from typing import Any, Callable, Dict, Optional, Tuple
from uuid import UUID

from email_validator import EmailNotValidError, validate_email
from fastapi import status
from loguru import logger
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from campusops.api.v1.campuses import service as campus_service
from campusops.auth.models import User
from campusops.auth.security import hash_password, initial_password_from_dob
from campusops.core.enums import (
    EMPLOYEE_ROLES,
    BloodGroup,
    EmergencyRelation,
    EmploymentStatus,
    EmploymentType,
    Gender,
)
from campusops.core.exceptions import ConflictError, NotFoundError, ServiceError, ValidationError
from campusops.core.models import ContactDetail, EmploymentDetail, PersonalDetail

from .coercion import RawValue, clean_text, parse_choice, parse_date, parse_decimal, parse_int
from .schemas import EmployeeCreate, EmployeeListResponse, EmployeeResponse, EmployeeUpdate, Pagination

USERNAME_PREFIX = "emp-"
USERNAME_SUFFIX_LENGTH = 7
_USERNAME_ALPHABET = string.ascii_lowercase + string.digits
_USERNAME_ATTEMPTS = 10

NO_CAMPUS_MESSAGE = "No campus found for this tenant. Please create a campus first."

Coercer = Callable[[RawValue, str], Any]


def _text(value: RawValue, label: str) -> Optional[str]:
    return clean_text(value)


def _email(value: RawValue, label: str) -> Optional[str]:
    text = clean_text(value)
    if text is None:
        return None
    try:
        return validate_email(text, check_deliverability=False).normalized
    except EmailNotValidError:
        raise ValidationError(f"Invalid {label}: {text}")


def _choice(choices) -> Coercer:
    return lambda value, label: parse_choice(value, choices, label)


# field name -> (model attribute, coercer, label, required)
FieldRule = Tuple[str, Coercer, str, bool]

USER_FIELD_RULES: Dict[str, FieldRule] = {
    "first_name": ("first_name", _text, "First Name", True),
    "middle_name": ("middle_name", _text, "Middle Name", False),
    "last_name": ("last_name", _text, "Last Name", True),
    "date_of_birth": ("date_of_birth", parse_date, "Date of Birth", False),
    "phone_number": ("phone_number", _text, "Phone Number", False),
}

CONTACT_FIELD_RULES: Dict[str, FieldRule] = {
    "email": ("email", _email, "Email", True),
    "contact_phone": ("phone", _text, "Contact Phone", False),
    "alt_phone": ("alt_phone", _text, "Alt Phone", False),
    "current_address": ("current_address", _text, "Current Address", False),
    "city": ("city", _text, "City", False),
    "state": ("state", _text, "State", False),
    "pincode": ("pincode", _text, "Pincode", False),
    "country": ("country", _text, "Country", False),
    "permanent_address": ("permanent_address", _text, "Permanent Address", False),
    "emergency_contact_name": ("emergency_contact_name", _text, "Emergency Contact Name", False),
    "emergency_contact_phone": ("emergency_contact_phone", _text, "Emergency Contact Phone", False),
    "emergency_contact_relation": (
        "emergency_contact_relation",
        _choice(EmergencyRelation),
        "Emergency Contact Relation",
        False,
    ),
}

EMPLOYMENT_FIELD_RULES: Dict[str, FieldRule] = {
    "employee_id": ("employee_id", _text, "Employee ID", True),
    "designation": ("designation", _text, "Designation", False),
    "department": ("department", _text, "Department", False),
    "joining_date": ("joining_date", parse_date, "Joining Date", False),
    "salary": ("salary", parse_decimal, "Salary", False),
    "employment_type": ("employment_type", _choice(EmploymentType), "Employment Type", True),
    "status": ("status", _choice(EmploymentStatus), "Status", True),
    "transport_details": ("transport_details", _text, "Transport Details", False),
    "hostel_details": ("hostel_details", _text, "Hostel Details", False),
}

PERSONAL_FIELD_RULES: Dict[str, FieldRule] = {
    "gender": ("gender", _choice(Gender), "Gender", False),
    "nationality": ("nationality", _text, "Nationality", False),
    "religion": ("religion", _text, "Religion", False),
    "caste": ("caste", _text, "Caste", False),
    "category": ("category", _text, "Category", False),
    "blood_group": ("blood_group", _choice(BloodGroup), "Blood Group", False),
    "height_cm": ("height_cm", parse_int, "Height", False),
    "weight_kg": ("weight_kg", parse_decimal, "Weight", False),
    "medical_conditions": ("medical_conditions", _text, "Medical Conditions", False),
    "allergies": ("allergies", _text, "Allergies", False),
    "occupation": ("occupation", _text, "Occupation", False),
    "income": ("income", parse_decimal, "Income", False),
    "marital_status": ("marital_status", _text, "Marital Status", False),
}


def _coerce_group(values: Dict[str, Any], rules: Dict[str, FieldRule]) -> Dict[str, Any]:
    """Coerce the present fields of one group into {model attribute: value}. Nothing is mutated here."""
    changes: Dict[str, Any] = {}
    for name, value in values.items():
        attr, coerce, label, required = rules[name]
        coerced = coerce(value, label)
        if coerced is None and required:
            raise ValidationError(f"{label} cannot be empty")
        changes[attr] = coerced
    return changes


def _apply(target: Any, changes: Dict[str, Any]) -> None:
    for attr, value in changes.items():
        setattr(target, attr, value)


def _user_to_employee_response(user: User) -> EmployeeResponse:
    employment = user.employment
    personal = user.personal
    contact = user.contact
    return EmployeeResponse(
        user_id=user.id,
        username=user.username,
        tenant_id=user.tenant_id,
        first_name=user.first_name,
        middle_name=user.middle_name,
        last_name=user.last_name,
        phone_number=user.phone_number,
        date_of_birth=user.date_of_birth,
        role=user.role,
        status=user.status,
        created_at=user.created_at,
        campus_id=employment.campus_id if employment else None,
        employee_id=employment.employee_id if employment else None,
        designation=employment.designation if employment else None,
        department=employment.department if employment else None,
        joining_date=employment.joining_date if employment else None,
        salary=employment.salary if employment else None,
        employment_type=employment.employment_type if employment else None,
        employment_status=employment.status if employment else None,
        transport_details=employment.transport_details if employment else None,
        hostel_details=employment.hostel_details if employment else None,
        gender=personal.gender if personal else None,
        marital_status=personal.marital_status if personal else None,
        nationality=personal.nationality if personal else None,
        religion=personal.religion if personal else None,
        caste=personal.caste if personal else None,
        category=personal.category if personal else None,
        blood_group=personal.blood_group if personal else None,
        height_cm=personal.height_cm if personal else None,
        weight_kg=personal.weight_kg if personal else None,
        medical_conditions=personal.medical_conditions if personal else None,
        allergies=personal.allergies if personal else None,
        occupation=personal.occupation if personal else None,
        income=personal.income if personal else None,
        email=contact.email if contact else None,
        contact_phone=contact.phone if contact else None,
        alt_phone=contact.alt_phone if contact else None,
        current_address=contact.current_address if contact else None,
        city=contact.city if contact else None,
        state=contact.state if contact else None,
        pincode=contact.pincode if contact else None,
        country=contact.country if contact else None,
        permanent_address=contact.permanent_address if contact else None,
        emergency_contact_name=contact.emergency_contact_name if contact else None,
        emergency_contact_phone=contact.emergency_contact_phone if contact else None,
        emergency_contact_relation=contact.emergency_contact_relation if contact else None,
    )


async def _load_employee(db: AsyncSession, tenant_id: UUID, username: str) -> Optional[User]:
    result = await db.execute(
        select(User)
        .where(
            User.username == username,
            User.tenant_id == tenant_id,
            User.role.in_(EMPLOYEE_ROLES),
        )
        .options(
            selectinload(User.employment),
            selectinload(User.personal),
            selectinload(User.contact),
        )
    )
    return result.scalar_one_or_none()


async def _employee_id_taken(
    db: AsyncSession,
    campus_id: UUID,
    employee_id: str,
    exclude_username: Optional[str] = None,
) -> bool:
    q = select(EmploymentDetail.id).where(
        EmploymentDetail.campus_id == campus_id,
        EmploymentDetail.employee_id == employee_id,
    )
    if exclude_username:
        q = q.where(EmploymentDetail.username != exclude_username)
    result = await db.execute(q.limit(1))
    return result.scalar_one_or_none() is not None


async def _email_taken(
    db: AsyncSession,
    tenant_id: UUID,
    email: str,
    exclude_username: Optional[str] = None,
) -> bool:
    q = (
        select(ContactDetail.id)
        .join(User, User.username == ContactDetail.username)
        .where(User.tenant_id == tenant_id, func.lower(ContactDetail.email) == email.lower())
    )
    if exclude_username:
        q = q.where(ContactDetail.username != exclude_username)
    result = await db.execute(q.limit(1))
    return result.scalar_one_or_none() is not None


async def resolve_campus_id(db: AsyncSession, tenant_id: UUID, campus_id: Optional[UUID]) -> UUID:
    """Requested campus (must belong to the tenant), else the tenant's main campus, else any campus."""
    if campus_id is not None:
        campus = await campus_service.get_campus_for_tenant(db, tenant_id, campus_id)
        if not campus:
            raise ServiceError("Campus not found for this tenant", status.HTTP_400_BAD_REQUEST)
        return campus.id
    default_id = await campus_service.get_default_campus_id(db, tenant_id)
    if default_id is None:
        raise ServiceError(NO_CAMPUS_MESSAGE, status.HTTP_400_BAD_REQUEST)
    return default_id


async def _generate_username(db: AsyncSession) -> str:
    for _ in range(_USERNAME_ATTEMPTS):
        suffix = "".join(secrets.choice(_USERNAME_ALPHABET) for _ in range(USERNAME_SUFFIX_LENGTH))
        candidate = f"{USERNAME_PREFIX}{suffix}"
        result = await db.execute(select(User.id).where(User.username == candidate))
        if result.scalar_one_or_none() is None:
            return candidate
    raise ServiceError("Could not generate a unique username", status.HTTP_500_INTERNAL_SERVER_ERROR)


async def create_employee(
    db: AsyncSession,
    tenant_id: UUID,
    payload: EmployeeCreate,
    campus_id: Optional[UUID] = None,
) -> EmployeeResponse:
    """
    Create an employee across users, employment, personal and contact tables in one transaction.
    Username is generated (emp-XXXXXXX); the initial password is the date of birth as YYYYMMDD.
    Raises ServiceError 400 (no campus), ConflictError 409 (duplicate Employee ID / email).
    """
    resolved_campus_id = await resolve_campus_id(db, tenant_id, payload.campus_id or campus_id)
    employee_id = payload.employment.employee_id.strip()
    email = str(payload.contact.email)

    if await _employee_id_taken(db, resolved_campus_id, employee_id):
        raise ConflictError(f"Employee ID ({employee_id}) already exists in this campus")
    if await _email_taken(db, tenant_id, email):
        raise ConflictError(f"Email ({email}) already exists for this tenant")

    username = await _generate_username(db)
    u = payload.user
    c = payload.contact
    e = payload.employment
    p = payload.personal
    user = User(
        username=username,
        tenant_id=tenant_id,
        first_name=u.first_name.strip(),
        middle_name=clean_text(u.middle_name),
        last_name=u.last_name.strip(),
        phone_number=clean_text(u.phone_number),
        date_of_birth=u.date_of_birth,
        password_hash=hash_password(initial_password_from_dob(u.date_of_birth)),
        role=u.role.value,
        status="ACTIVE",
    )
    user.employment = EmploymentDetail(
        campus_id=resolved_campus_id,
        employee_id=employee_id,
        designation=e.designation.strip(),
        department=e.department.strip(),
        joining_date=e.joining_date,
        salary=e.salary,
        employment_type=e.employment_type.value,
        status=e.status.value,
        transport_details=clean_text(e.transport_details),
        hostel_details=clean_text(e.hostel_details),
    )
    user.personal = PersonalDetail(
        gender=p.gender.value if p.gender else None,
        marital_status=clean_text(p.marital_status),
        nationality=clean_text(p.nationality),
        religion=clean_text(p.religion),
        caste=clean_text(p.caste),
        category=clean_text(p.category),
        blood_group=p.blood_group.value if p.blood_group else None,
        height_cm=p.height_cm,
        weight_kg=p.weight_kg,
        medical_conditions=clean_text(p.medical_conditions),
        allergies=clean_text(p.allergies),
        occupation=clean_text(p.occupation),
        income=p.income,
    )
    user.contact = ContactDetail(
        email=email,
        phone=clean_text(c.contact_phone) or clean_text(u.phone_number),
        alt_phone=clean_text(c.alt_phone),
        current_address=clean_text(c.current_address),
        city=clean_text(c.city),
        state=clean_text(c.state),
        pincode=clean_text(c.pincode),
        country=clean_text(c.country),
        permanent_address=clean_text(c.permanent_address),
        emergency_contact_name=clean_text(c.emergency_contact_name),
        emergency_contact_phone=clean_text(c.emergency_contact_phone),
        emergency_contact_relation=c.emergency_contact_relation.value if c.emergency_contact_relation else None,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Employee ID ({employee_id}) already exists in this campus")

    logger.info(f"Created employee {username} (employee_id={employee_id}) in campus {resolved_campus_id}")
    return _user_to_employee_response(user)


async def get_employee(db: AsyncSession, tenant_id: UUID, username: str) -> Optional[EmployeeResponse]:
    user = await _load_employee(db, tenant_id, username)
    return _user_to_employee_response(user) if user else None


async def list_employees(
    db: AsyncSession,
    tenant_id: UUID,
    *,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    department: Optional[str] = None,
    designation: Optional[str] = None,
    status: Optional[str] = None,
    employment_type: Optional[str] = None,
    campus_id: Optional[UUID] = None,
    role: Optional[str] = None,
) -> EmployeeListResponse:
    """Paginated employee list. search matches first/last name, Employee ID and email (case-insensitive)."""
    conditions = [User.tenant_id == tenant_id, User.role.in_(EMPLOYEE_ROLES)]
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        conditions.append(
            or_(
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                EmploymentDetail.employee_id.ilike(pattern),
                ContactDetail.email.ilike(pattern),
            )
        )
    if department:
        conditions.append(EmploymentDetail.department == department)
    if designation:
        conditions.append(EmploymentDetail.designation == designation)
    if status:
        conditions.append(EmploymentDetail.status == status)
    if employment_type:
        conditions.append(EmploymentDetail.employment_type == employment_type)
    if campus_id:
        conditions.append(EmploymentDetail.campus_id == campus_id)
    if role:
        conditions.append(User.role == role)

    def _filtered(stmt):
        return (
            stmt.outerjoin(EmploymentDetail, EmploymentDetail.username == User.username)
            .outerjoin(ContactDetail, ContactDetail.username == User.username)
            .where(*conditions)
        )

    total_count = (await db.execute(select(func.count()).select_from(_filtered(select(User.id)).subquery()))).scalar_one()

    result = await db.execute(
        _filtered(select(User))
        .options(
            selectinload(User.employment),
            selectinload(User.personal),
            selectinload(User.contact),
        )
        .order_by(User.created_at.desc(), User.username)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    users = result.scalars().unique().all()
    total_pages = math.ceil(total_count / limit) if total_count else 0
    return EmployeeListResponse(
        employees=[_user_to_employee_response(u) for u in users],
        pagination=Pagination(
            current_page=page,
            total_pages=total_pages,
            total_count=total_count,
            limit=limit,
            has_next=page < total_pages,
            has_prev=page > 1,
        ),
    )


async def update_employee_by_username(
    db: AsyncSession,
    username: str,
    payload: EmployeeUpdate,
    tenant_id: UUID,
) -> EmployeeResponse:
    """
    Apply a partial update to one employee. Only fields present in payload are written;
    a present field with value None clears the column. All values are validated before anything
    is mutated, and the whole change commits or rolls back as one unit.

    Raises NotFoundError (404), ConflictError (409), ValidationError (422).
    """
    user = await _load_employee(db, tenant_id, username)
    if not user:
        raise NotFoundError(f"Employee not found: {username}")

    user_changes = _coerce_group(payload.user.model_dump(exclude_unset=True), USER_FIELD_RULES)
    contact_changes = _coerce_group(payload.contact.model_dump(exclude_unset=True), CONTACT_FIELD_RULES)
    employment_changes = _coerce_group(payload.employment.model_dump(exclude_unset=True), EMPLOYMENT_FIELD_RULES)
    personal_changes = _coerce_group(payload.personal.model_dump(exclude_unset=True), PERSONAL_FIELD_RULES)

    if employment_changes and user.employment is None:
        raise NotFoundError(f"Employment details not found for employee: {username}")
    if contact_changes and user.contact is None:
        raise NotFoundError(f"Contact details not found for employee: {username}")

    new_employee_id = employment_changes.get("employee_id")
    if new_employee_id and new_employee_id != user.employment.employee_id:
        if await _employee_id_taken(db, user.employment.campus_id, new_employee_id, exclude_username=username):
            raise ConflictError(f"Employee ID ({new_employee_id}) already exists in this campus")

    new_email = contact_changes.get("email")
    if new_email and new_email.lower() != (user.contact.email or "").lower():
        if await _email_taken(db, tenant_id, new_email, exclude_username=username):
            raise ConflictError(f"Email ({new_email}) already exists for this tenant")

    if personal_changes and user.personal is None:
        user.personal = PersonalDetail()

    _apply(user, user_changes)
    if contact_changes:
        _apply(user.contact, contact_changes)
    if employment_changes:
        _apply(user.employment, employment_changes)
    if personal_changes:
        _apply(user.personal, personal_changes)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Duplicate Employee ID or email for employee: {username}")
    except Exception:
        await db.rollback()
        raise

    changed = len(user_changes) + len(contact_changes) + len(employment_changes) + len(personal_changes)
    logger.info(f"Updated employee {username} ({changed} field(s))")
    return _user_to_employee_response(user)


async def delete_employee(db: AsyncSession, tenant_id: UUID, username: str) -> bool:
    user = await _load_employee(db, tenant_id, username)
    if not user:
        return False
    await db.delete(user)
    await db.commit()
    logger.info(f"Deleted employee {username}")
    return True
