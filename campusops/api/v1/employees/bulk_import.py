"""Employee bulk import: downloadable template and row-by-row creation from an uploaded workbook."""
import io
from dataclasses import dataclass
from typing import Dict, List, NamedTuple, Optional
from uuid import UUID

from loguru import logger
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.datavalidation import DataValidation
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from campusops.core.enums import (
    BloodGroup,
    EmergencyRelation,
    EmployeeRole,
    EmploymentStatus,
    EmploymentType,
    Gender,
)
from campusops.core.exceptions import ServiceError, ValidationError

from . import service
from .coercion import parse_choice, parse_date, parse_decimal, parse_int
from .schemas import BulkSummary, EmployeeCreate
from .spreadsheet import HeaderIndex, cell_text, classify_cell, is_empty_row, read_header, read_worksheet

TEMPLATE_SHEET_TITLE = "Employees Import Template"
RESULT_SHEET_TITLE = "Import Results"
TEMPLATE_MAX_ROWS = 1000


class ImportColumn(NamedTuple):
    group: str
    field: str
    header: str  # as written in the template
    key: str  # lookup key when reading; also the name used in error messages
    width: int
    required: bool


IMPORT_COLUMNS: List[ImportColumn] = [
    ImportColumn("user", "first_name", "First Name*", "First Name", 20, True),
    ImportColumn("user", "middle_name", "Middle Name", "Middle Name", 20, False),
    ImportColumn("user", "last_name", "Last Name*", "Last Name", 20, True),
    ImportColumn("user", "date_of_birth", "Date of Birth* (YYYY-MM-DD)", "Date of Birth", 25, True),
    ImportColumn("user", "phone_number", "Phone Number*", "Phone Number", 18, True),
    ImportColumn("personal", "gender", "Gender*", "Gender", 12, True),
    ImportColumn("user", "role", "Role* (Teacher/Employee/Admin)", "Role", 24, True),
    ImportColumn("contact", "email", "Email*", "Email", 28, True),
    ImportColumn("contact", "contact_phone", "Contact Phone*", "Contact Phone", 18, True),
    ImportColumn("contact", "alt_phone", "Alt Phone", "Alt Phone", 18, False),
    ImportColumn("contact", "emergency_contact_name", "Emergency Contact Name", "Emergency Contact Name", 24, False),
    ImportColumn("contact", "emergency_contact_phone", "Emergency Contact Phone", "Emergency Contact Phone", 20, False),
    ImportColumn(
        "contact", "emergency_contact_relation", "Emergency Contact Relation", "Emergency Contact Relation", 24, False
    ),
    ImportColumn("contact", "current_address", "Current Address*", "Current Address", 32, True),
    ImportColumn("contact", "city", "City*", "City", 18, True),
    ImportColumn("contact", "state", "State*", "State", 18, True),
    ImportColumn("contact", "pincode", "Pincode", "Pincode", 12, False),
    ImportColumn("contact", "country", "Country", "Country", 18, False),
    ImportColumn("contact", "permanent_address", "Permanent Address", "Permanent Address", 32, False),
    ImportColumn("employment", "employee_id", "Employee ID*", "Employee ID", 18, True),
    ImportColumn("employment", "designation", "Designation*", "Designation", 22, True),
    ImportColumn("employment", "department", "Department*", "Department", 22, True),
    ImportColumn("employment", "joining_date", "Joining Date* (YYYY-MM-DD)", "Joining Date", 25, True),
    ImportColumn("employment", "salary", "Salary*", "Salary", 14, True),
    ImportColumn("employment", "employment_type", "Employment Type*", "Employment Type", 20, True),
    ImportColumn("employment", "status", "Status*", "Status", 16, True),
    ImportColumn("employment", "transport_details", "Transport Details", "Transport Details", 24, False),
    ImportColumn("employment", "hostel_details", "Hostel Details", "Hostel Details", 24, False),
    ImportColumn("personal", "marital_status", "Marital Status", "Marital Status", 18, False),
    ImportColumn("personal", "nationality", "Nationality*", "Nationality", 18, False),
    ImportColumn("personal", "religion", "Religion", "Religion", 18, False),
    ImportColumn("personal", "caste", "Caste", "Caste", 18, False),
    ImportColumn("personal", "category", "Category", "Category", 18, False),
    ImportColumn("personal", "blood_group", "Blood Group", "Blood Group", 12, False),
    ImportColumn("personal", "height_cm", "Height (cm)", "Height", 14, False),
    ImportColumn("personal", "weight_kg", "Weight (kg)", "Weight", 14, False),
    ImportColumn("personal", "medical_conditions", "Medical Conditions", "Medical Conditions", 24, False),
    ImportColumn("personal", "allergies", "Allergies", "Allergies", 24, False),
    ImportColumn("personal", "occupation", "Occupation", "Occupation", 18, False),
    ImportColumn("personal", "income", "Income", "Income", 16, False),
]

# field -> enum whose values populate the template dropdown
TEMPLATE_DROPDOWNS = {
    "gender": Gender,
    "role": EmployeeRole,
    "employment_type": EmploymentType,
    "status": EmploymentStatus,
    "blood_group": BloodGroup,
    "emergency_contact_relation": EmergencyRelation,
}

SAMPLE_ROW: Dict[str, str] = {
    "first_name": "John",
    "middle_name": "Michael",
    "last_name": "Smith",
    "date_of_birth": "1985-06-15",
    "phone_number": "+1234567890",
    "gender": "Male",
    "role": "Teacher",
    "email": "john.smith@school.edu",
    "contact_phone": "+1234567890",
    "alt_phone": "+0987654321",
    "emergency_contact_name": "Jane Smith",
    "emergency_contact_phone": "+1234567891",
    "emergency_contact_relation": "Spouse",
    "current_address": "123 Main Street",
    "city": "New York",
    "state": "NY",
    "pincode": "10001",
    "country": "USA",
    "permanent_address": "456 Elm Street",
    "employee_id": "EMP001",
    "designation": "Senior Teacher",
    "department": "Mathematics",
    "joining_date": "2023-08-15",
    "salary": "55000",
    "employment_type": "Full-time",
    "status": "Active",
    "transport_details": "Staff Bus Route 5",
    "hostel_details": "Staff Quarters, Room 10B",
    "marital_status": "Single",
    "nationality": "American",
    "religion": "Christian",
    "caste": "General",
    "category": "General",
    "blood_group": "O+",
    "height_cm": "175",
    "weight_kg": "70.5",
    "medical_conditions": "None",
    "allergies": "None",
    "occupation": "Teacher",
    "income": "55000",
}


@dataclass
class ImportOutcome:
    summary: BulkSummary
    result_file: bytes


def build_import_template() -> bytes:
    """Template workbook: starred headers are required, list columns carry dropdowns, row 2 is a sample."""
    wb = Workbook()
    ws = wb.active
    ws.title = TEMPLATE_SHEET_TITLE
    ws.append([c.header for c in IMPORT_COLUMNS])

    header_fill = PatternFill(start_color="FFE0E0E0", end_color="FFE0E0E0", fill_type="solid")
    for cell in ws[1]:
        cell.font = Font(bold=True)
        cell.fill = header_fill

    for position, column in enumerate(IMPORT_COLUMNS, start=1):
        letter = get_column_letter(position)
        ws.column_dimensions[letter].width = column.width
        choices = TEMPLATE_DROPDOWNS.get(column.field)
        if choices is None:
            continue
        dv = DataValidation(
            type="list",
            formula1='"' + ",".join(c.value for c in choices) + '"',
            allow_blank=True,
        )
        dv.error = f"Select a value from the {column.key} dropdown"
        ws.add_data_validation(dv)
        dv.add(f"{letter}2:{letter}{TEMPLATE_MAX_ROWS + 1}")

    ws.append([SAMPLE_ROW.get(c.field, "") for c in IMPORT_COLUMNS])

    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()


def _missing_fields(values: Dict[str, Optional[str]]) -> List[str]:
    return [c.key for c in IMPORT_COLUMNS if c.required and not values.get(c.field)]


def _positive(value, label: str):
    if value is not None and value <= 0:
        raise ValidationError(f"Invalid {label}: {value}")
    return value


def _pydantic_message(exc: PydanticValidationError) -> str:
    err = exc.errors()[0]
    location = ".".join(str(part) for part in err.get("loc", ()))
    return f"{location}: {err.get('msg')}" if location else str(err.get("msg"))


def build_create_payload(values: Dict[str, Optional[str]]) -> EmployeeCreate:
    """Validate one row's text values and build the create payload. Raises ValidationError."""
    groups: Dict[str, Dict[str, object]] = {"user": {}, "contact": {}, "employment": {}, "personal": {}}
    for column in IMPORT_COLUMNS:
        groups[column.group][column.field] = values.get(column.field)

    user, contact, employment, personal = (groups[g] for g in ("user", "contact", "employment", "personal"))
    user["date_of_birth"] = parse_date(user["date_of_birth"], "Date of Birth")
    user["role"] = parse_choice(user["role"], EmployeeRole, "Role")
    employment["joining_date"] = parse_date(employment["joining_date"], "Joining Date")
    employment["salary"] = parse_decimal(employment["salary"], "Salary")
    employment["employment_type"] = parse_choice(employment["employment_type"], EmploymentType, "Employment Type")
    employment["status"] = parse_choice(employment["status"], EmploymentStatus, "Status")
    personal["gender"] = parse_choice(personal["gender"], Gender, "Gender")
    personal["blood_group"] = parse_choice(personal["blood_group"], BloodGroup, "Blood Group")
    personal["height_cm"] = _positive(parse_int(personal["height_cm"], "Height (cm)"), "Height (cm)")
    personal["weight_kg"] = _positive(parse_decimal(personal["weight_kg"], "Weight (kg)"), "Weight (kg)")
    personal["income"] = parse_decimal(personal["income"], "Income")
    contact["emergency_contact_relation"] = parse_choice(
        contact["emergency_contact_relation"], EmergencyRelation, "Emergency Contact Relation"
    )

    try:
        return EmployeeCreate(user=user, contact=contact, employment=employment, personal=personal)
    except PydanticValidationError as e:
        raise ValidationError(_pydantic_message(e)) from e


def _build_result_workbook(index: HeaderIndex, width: int, rows: List[List[object]]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = RESULT_SHEET_TITLE
    headers = [index.header(position) or "" for position in range(1, width + 1)]
    ws.append(headers + ["Import Status", "Username", "Error Message"])
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for position in range(1, width + 1):
        ws.column_dimensions[get_column_letter(position)].width = 18
    ws.column_dimensions[get_column_letter(width + 1)].width = 16
    ws.column_dimensions[get_column_letter(width + 2)].width = 18
    ws.column_dimensions[get_column_letter(width + 3)].width = 40
    for row in rows:
        ws.append(row)
    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()


async def import_employees(
    db: AsyncSession,
    path: str,
    tenant_id: UUID,
    campus_id: Optional[UUID],
) -> ImportOutcome:
    """
    Create one employee per non-empty data row, each in its own transaction, in sheet order.
    Every row is echoed into the result workbook with its status, generated username and error.
    Raises MalformedInputError for unreadable files and ServiceError 400 when the tenant has no campus.
    """
    worksheet = read_worksheet(path)
    index = read_header(worksheet)
    resolved_campus_id = await service.resolve_campus_id(db, tenant_id, campus_id)
    columns = {c.field: index.resolve(c.key) for c in IMPORT_COLUMNS}
    width = max(index.positions)

    logger.info(f"Starting employee bulk import (tenant={tenant_id}, campus={resolved_campus_id})")
    summary = BulkSummary(total=0, success=0, failed=0)
    result_rows: List[List[object]] = []

    for row_number, row in enumerate(worksheet.iter_rows(min_row=2, values_only=True), start=2):
        if not row or is_empty_row(row):
            continue
        summary.total += 1
        original = [classify_cell(row[i]).text() if i < len(row) else None for i in range(width)]
        values = {field: cell_text(row, column) for field, column in columns.items()}

        missing = _missing_fields(values)
        if missing:
            summary.failed += 1
            result_rows.append(original + ["Failed", None, f"Missing required fields: {', '.join(missing)}"])
            continue

        try:
            payload = build_create_payload(values)
            created = await service.create_employee(db, tenant_id, payload, resolved_campus_id)
        except ServiceError as e:
            summary.failed += 1
            result_rows.append(original + ["Failed", None, e.message])
            logger.error(f"Employee bulk import error at row {row_number}: {e.message}")
            continue
        except SQLAlchemyError as e:
            await db.rollback()
            summary.failed += 1
            result_rows.append(original + ["Failed", None, str(e)])
            logger.error(f"Employee bulk import database error at row {row_number}: {e}")
            continue

        summary.success += 1
        result_rows.append(original + ["Success", created.username, ""])

    logger.info(
        f"Employee bulk import finished: total={summary.total} success={summary.success} failed={summary.failed}"
    )
    return ImportOutcome(summary=summary, result_file=_build_result_workbook(index, width, result_rows))
