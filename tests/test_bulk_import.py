import io

import pytest
from httpx import AsyncClient
from openpyxl import load_workbook

from campusops.api.v1.employees import service as employee_service
from campusops.api.v1.employees.bulk_import import (
    IMPORT_COLUMNS,
    SAMPLE_ROW,
    build_create_payload,
    build_import_template,
    import_employees,
)
from campusops.core.exceptions import ServiceError, ValidationError

HEADERS = [c.header for c in IMPORT_COLUMNS]


def _row(**overrides):
    values = dict(SAMPLE_ROW, **overrides)
    return [values.get(c.field) for c in IMPORT_COLUMNS]


def test_template_layout():
    ws = load_workbook(io.BytesIO(build_import_template())).active

    assert ws.title == "Employees Import Template"
    header = [c.value for c in ws[1]]
    assert len(header) == 40
    assert header[0] == "First Name*"
    assert "Role* (Teacher/Employee/Admin)" in header
    assert ws["A1"].font.b is True
    assert ws["A2"].value == "John"
    formulas = sorted(dv.formula1 for dv in ws.data_validations.dataValidation)
    assert '"Male,Female,Other"' in formulas
    assert '"Full-time,Part-time,Contract,Intern"' in formulas
    assert len(formulas) == 6


def test_build_create_payload_from_sample_row():
    payload = build_create_payload(dict(SAMPLE_ROW))

    assert payload.user.role.value == "Teacher"
    assert str(payload.user.date_of_birth) == "1985-06-15"
    assert payload.personal.height_cm == 175
    assert str(payload.personal.weight_kg) == "70.5"
    assert payload.contact.contact_phone == "+1234567890"


def test_build_create_payload_rejects_bad_values():
    with pytest.raises(ValidationError, match="Invalid Date of Birth"):
        build_create_payload(dict(SAMPLE_ROW, date_of_birth="someday"))
    with pytest.raises(ValidationError, match="Invalid Height"):
        build_create_payload(dict(SAMPLE_ROW, height_cm="0"))
    with pytest.raises(ValidationError, match="Invalid Salary"):
        build_create_payload(dict(SAMPLE_ROW, salary="-10"))
    with pytest.raises(ValidationError, match="Invalid Role") as exc:
        build_create_payload(dict(SAMPLE_ROW, role="Manager"))
    assert exc.value.status_code == 422


async def test_import_creates_rows_and_reports_failures(db_session, tenant, campus, make_workbook):
    path = make_workbook(
        HEADERS,
        [
            _row(),
            _row(employee_id="EMP002", email="priya@school.edu", first_name="Priya", city=None, salary=None),
            _row(employee_id="EMP001", email="dup@school.edu"),
            [None] * len(HEADERS),
            _row(employee_id="EMP003", email="ravi@school.edu", joining_date="soon"),
        ],
    )

    outcome = await import_employees(db_session, path, tenant.id, None)

    assert outcome.summary.model_dump() == {"total": 4, "success": 1, "failed": 3}
    ws = load_workbook(io.BytesIO(outcome.result_file)).active
    assert ws.title == "Import Results"
    header = [c.value for c in ws[1]]
    assert header[-3:] == ["Import Status", "Username", "Error Message"]
    results = [row[-3:] for row in ws.iter_rows(min_row=2, values_only=True)]
    assert results[0][0] == "Success"
    assert results[0][1].startswith("emp-")
    assert results[1] == ("Failed", None, "Missing required fields: City, Salary")
    assert results[2] == ("Failed", None, "Employee ID (EMP001) already exists in this campus")
    assert results[3][0] == "Failed"
    assert results[3][2].startswith("Invalid Joining Date")

    created = await employee_service.get_employee(db_session, tenant.id, results[0][1])
    assert created.campus_id == campus.id
    assert created.employee_id == "EMP001"
    assert created.salary == 55000


async def test_import_without_campus_fails_whole_batch(db_session, tenant, make_workbook):
    path = make_workbook(HEADERS, [_row()])
    with pytest.raises(ServiceError) as exc:
        await import_employees(db_session, path, tenant.id, None)
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_import_routes(client: AsyncClient, admin_headers, make_workbook):
    template = await client.get("/api/v1/employees/bulk-import/template", headers=admin_headers)
    assert template.status_code == 200
    assert "Employee_Import_Template.xlsx" in template.headers["content-disposition"]

    path = make_workbook(HEADERS, [_row()])
    with open(path, "rb") as fh:
        response = await client.post(
            "/api/v1/employees/bulk-import",
            files={"file": ("import.xlsx", fh.read(), "application/octet-stream")},
            headers=admin_headers,
        )
    assert response.status_code == 200
    assert response.headers["x-import-success"] == "1"
    assert response.headers["x-import-failed"] == "0"
