"""Export selected employees to a protected workbook that can be edited and re-uploaded through bulk update."""
import io
from datetime import date
from typing import List, Optional, Sequence
from uuid import UUID

from loguru import logger
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Protection
from openpyxl.utils import get_column_letter
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from campusops.auth.rbac import ADMIN_ROLES
from campusops.core.exceptions import ServiceError

from . import service
from .schemas import EmployeeResponse
from .spreadsheet import EMPLOYEE_ID_HEADER, ROLE_HEADER, USERNAME_HEADER

EXPORT_SHEET_TITLE = "Employees Export"

# (header, EmployeeResponse attribute, width). Headers match the bulk update lookup keys.
EXPORT_COLUMNS = [
    (USERNAME_HEADER, "username", 20),
    ("First Name", "first_name", 20),
    ("Middle Name", "middle_name", 20),
    ("Last Name", "last_name", 20),
    ("Date of Birth (YYYY-MM-DD)", "date_of_birth", 25),
    ("Phone Number", "phone_number", 18),
    ("Gender", "gender", 12),
    (ROLE_HEADER, "role", 24),
    ("Email", "email", 28),
    ("Contact Phone", "contact_phone", 18),
    ("Alt Phone", "alt_phone", 18),
    ("Emergency Contact Name", "emergency_contact_name", 24),
    ("Emergency Contact Phone", "emergency_contact_phone", 20),
    ("Emergency Contact Relation", "emergency_contact_relation", 24),
    ("Current Address", "current_address", 32),
    ("City", "city", 18),
    ("State", "state", 18),
    ("Pincode", "pincode", 12),
    ("Country", "country", 18),
    ("Permanent Address", "permanent_address", 32),
    (EMPLOYEE_ID_HEADER, "employee_id", 18),
    ("Designation", "designation", 22),
    ("Department", "department", 22),
    ("Joining Date (YYYY-MM-DD)", "joining_date", 25),
    ("Salary", "salary", 14),
    ("Employment Type", "employment_type", 20),
    ("Status", "employment_status", 16),
    ("Transport Details", "transport_details", 24),
    ("Hostel Details", "hostel_details", 24),
    ("Marital Status", "marital_status", 18),
    ("Nationality", "nationality", 18),
    ("Religion", "religion", 18),
    ("Caste", "caste", 18),
    ("Category", "category", 18),
    ("Blood Group", "blood_group", 12),
    ("Height (cm)", "height_cm", 14),
    ("Weight (kg)", "weight_kg", 14),
    ("Medical Conditions", "medical_conditions", 24),
    ("Allergies", "allergies", 24),
    ("Occupation", "occupation", 18),
    ("Income", "income", 16),
]

# Identity columns stay read-only so an edited export still maps back to the right employees
LOCKED_HEADERS = (USERNAME_HEADER, EMPLOYEE_ID_HEADER)


def _cell_value(emp: EmployeeResponse, attribute: str):
    value = getattr(emp, attribute)
    if isinstance(value, date):
        return value.isoformat()
    return value


def _protect(ws) -> None:
    """Unlock every cell except the identity columns, then protect the sheet (formatting, sort and filter stay allowed)."""
    locked_columns = {position for position, (header, _, _) in enumerate(EXPORT_COLUMNS, start=1) if header in LOCKED_HEADERS}
    for row in ws.iter_rows(min_row=1, max_row=ws.max_row, max_col=len(EXPORT_COLUMNS)):
        for cell in row:
            cell.protection = Protection(locked=cell.column in locked_columns)

    protection = ws.protection
    protection.sheet = True
    protection.formatCells = False
    protection.formatColumns = False
    protection.formatRows = False
    protection.sort = False
    protection.autoFilter = False
    protection.insertColumns = True
    protection.insertRows = True
    protection.deleteColumns = True
    protection.deleteRows = True
    protection.selectLockedCells = False
    protection.selectUnlockedCells = False


async def export_employees(
    db: AsyncSession,
    usernames: Sequence[str],
    tenant_id: UUID,
    campus_id: Optional[UUID],
    role: str,
) -> bytes:
    """
    Build the export workbook for the given usernames, in request order.
    Unknown usernames, lookup failures and (for non-admins) employees of another campus are skipped.
    """
    logger.info(f"Starting employee export of {len(usernames)} employee(s) for tenant {tenant_id}")
    wb = Workbook()
    ws = wb.active
    ws.title = EXPORT_SHEET_TITLE
    ws.append([header for header, _, _ in EXPORT_COLUMNS])

    header_fill = PatternFill(start_color="FFE0E0E0", end_color="FFE0E0E0", fill_type="solid")
    for cell in ws[1]:
        cell.font = Font(bold=True)
        cell.fill = header_fill
    for position, (_, _, width) in enumerate(EXPORT_COLUMNS, start=1):
        ws.column_dimensions[get_column_letter(position)].width = width

    exported: List[str] = []
    for username in usernames:
        try:
            emp = await service.get_employee(db, tenant_id, username)
        except (ServiceError, SQLAlchemyError) as e:
            logger.error(f"Error fetching data for employee {username} during export: {e}")
            continue
        if emp is None:
            logger.warning(f"Skipping export for unknown employee {username}")
            continue
        if role not in ADMIN_ROLES and emp.campus_id != campus_id:
            logger.warning(f"Skipping export for employee {username} due to campus mismatch")
            continue
        ws.append([_cell_value(emp, attribute) for _, attribute, _ in EXPORT_COLUMNS])
        exported.append(username)

    _protect(ws)
    logger.info(f"Employee export finished: {len(exported)} of {len(usernames)} exported")

    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()
