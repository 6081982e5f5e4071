import io
from functools import partial

import pytest
from httpx import AsyncClient
from openpyxl import load_workbook

from campusops.api.v1.employees import service as employee_service
from campusops.api.v1.employees.bulk_update import update_employees
from campusops.api.v1.employees.export import EXPORT_COLUMNS, export_employees
from campusops.core.models import Campus


def _sheet(content):
    return load_workbook(io.BytesIO(content)).active


async def test_export_writes_selected_employees_in_order(db_session, tenant, create_employee):
    first = await create_employee("EMP001")
    second = await create_employee("EMP002", first_name="Vikram")

    content = await export_employees(
        db_session, [second.username, "emp-nobody0", first.username], tenant.id, None, "SUPER_ADMIN"
    )

    ws = _sheet(content)
    assert ws.title == "Employees Export"
    assert [c.value for c in ws[1]] == [header for header, _, _ in EXPORT_COLUMNS]
    rows = list(ws.iter_rows(min_row=2, values_only=True))
    assert [r[0] for r in rows] == [second.username, first.username]
    assert rows[0][1] == "Vikram"
    assert rows[1][4] == "1990-04-12"
    assert rows[1][20] == "EMP001"


async def test_export_locks_identity_columns(db_session, tenant, create_employee):
    emp = await create_employee("EMP001")

    ws = _sheet(await export_employees(db_session, [emp.username], tenant.id, None, "SUPER_ADMIN"))

    assert ws.protection.sheet is True
    assert ws["A2"].protection.locked is True  # Username
    assert ws["U2"].protection.locked is True  # Employee ID
    assert ws["B2"].protection.locked is False
    assert ws["Y2"].protection.locked is False


async def test_non_admin_export_skips_other_campus(db_session, tenant, campus, create_employee):
    branch = Campus(tenant_id=tenant.id, campus_name="North Branch", is_main_campus=False)
    db_session.add(branch)
    await db_session.commit()
    local = await create_employee("EMP001")
    remote = await create_employee("EMP001", email="north@greenfield.edu", campus_id=branch.id)

    ws = _sheet(await export_employees(db_session, [local.username, remote.username], tenant.id, campus.id, "Employee"))
    assert [r[0] for r in ws.iter_rows(min_row=2, values_only=True)] == [local.username]

    ws = _sheet(await export_employees(db_session, [local.username, remote.username], tenant.id, campus.id, "Admin"))
    assert ws.max_row == 3


async def test_exported_file_round_trips_through_bulk_update(db_session, tenant, create_employee, tmp_path):
    emp = await create_employee("EMP001")
    content = await export_employees(db_session, [emp.username], tenant.id, None, "SUPER_ADMIN")

    wb = load_workbook(io.BytesIO(content))
    ws = wb.active
    designation_column = [c.value for c in ws[1]].index("Designation") + 1
    ws.cell(row=2, column=designation_column, value="Head of Department")
    path = tmp_path / "edited.xlsx"
    wb.save(path)

    outcome = await update_employees(
        str(path), tenant.id, None, partial(employee_service.update_employee_by_username, db_session)
    )

    assert outcome.summary.model_dump() == {"total": 1, "success": 1, "failed": 0}
    updated = await employee_service.get_employee(db_session, tenant.id, emp.username)
    assert updated.designation == "Head of Department"
    assert updated.email == "emp001@greenfield.edu"
    assert updated.employee_id == "EMP001"


@pytest.mark.asyncio
async def test_export_route(client: AsyncClient, admin_headers, create_employee):
    emp = await create_employee("EMP001")

    empty = await client.post("/api/v1/employees/export", json={"usernames": []}, headers=admin_headers)
    assert empty.status_code == 400
    assert empty.json()["detail"] == "No employees selected for export"

    response = await client.post("/api/v1/employees/export", json={"usernames": [emp.username]}, headers=admin_headers)
    assert response.status_code == 200
    assert "Employees_Export.xlsx" in response.headers["content-disposition"]
    assert _sheet(response.content)["A2"].value == emp.username
