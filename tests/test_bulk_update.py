import io
from functools import partial

import pytest
from openpyxl import load_workbook
from sqlalchemy import select

from campusops.api.v1.employees import service as employee_service
from campusops.api.v1.employees.bulk_update import (
    MISSING_USERNAME_MESSAGE,
    RESULT_HEADERS,
    RowError,
    build_result_workbook,
    process_rows,
    update_employees,
)
from campusops.api.v1.employees.spreadsheet import UnidentifiedRow, UpdateRecord
from campusops.api.v1.employees.schemas import EmployeeUpdate
from campusops.core.exceptions import MalformedInputError, NotFoundError
from campusops.core.models import EmploymentDetail


class RecordingUpdater:
    """Fake collaborator: remembers calls, fails for chosen usernames."""

    def __init__(self, failures=None):
        self.failures = failures or {}
        self.calls = []

    async def __call__(self, username, changes, tenant_id):
        self.calls.append(username)
        if username in self.failures:
            raise self.failures[username]
        return username


def _record(row_number, username=None, employee_id=None):
    return UpdateRecord(row_number=row_number, username=username, employee_id=employee_id, changes=EmployeeUpdate())


def _result_rows(buffer):
    ws = load_workbook(io.BytesIO(buffer)).active
    return ws.title, [list(r) for r in ws.iter_rows(values_only=True)]


async def test_process_rows_counts_and_orders_errors(tenant):
    updater = RecordingUpdater(failures={"emp-missing": NotFoundError("Employee not found: emp-missing")})
    rows = [
        _record(2, "emp-aaaaaaa"),
        UnidentifiedRow(3),
        _record(4, "emp-missing"),
        _record(5, employee_id="EMP777"),
        _record(6, "emp-bbbbbbb"),
    ]

    result = await process_rows(rows, tenant.id, updater)

    assert (result.total, result.success, result.failed) == (5, 2, 3)
    assert result.total == result.success + result.failed
    assert [str(e) for e in result.errors] == [
        "Row 3: Missing Username and Employee ID. Cannot identify employee.",
        "Row 4: Employee not found: emp-missing",
        f"Row 5: {MISSING_USERNAME_MESSAGE}",
    ]
    assert result.errors[2].employee == "EMP777"
    # sequential and only for identified rows
    assert updater.calls == ["emp-aaaaaaa", "emp-missing", "emp-bbbbbbb"]


async def test_process_rows_catches_unexpected_errors(tenant):
    updater = RecordingUpdater(failures={"emp-boom000": RuntimeError("connection reset")})
    result = await process_rows([_record(2, "emp-boom000"), _record(3, "emp-ok00000")], tenant.id, updater)

    assert result.success == 1
    assert [str(e) for e in result.errors] == ["Row 2: connection reset"]


def test_result_workbook_lists_failures():
    buffer = build_result_workbook([RowError(3, "N/A", "Missing Username and Employee ID. Cannot identify employee.")])
    title, rows = _result_rows(buffer)

    assert title == "Update Results"
    assert rows[0] == RESULT_HEADERS
    assert rows[1] == [3, "N/A", "Failed", "Missing Username and Employee ID. Cannot identify employee."]
    assert len(rows) == 2


def test_result_workbook_without_errors_has_success_row():
    _, rows = _result_rows(build_result_workbook([]))
    assert rows[1][0] == "All processed"
    assert rows[1][2] == "Success"


async def test_three_row_file_with_unidentified_row(db_session, tenant, create_employee, make_workbook):
    first = await create_employee("EMP001")
    second = await create_employee("EMP002")
    path = make_workbook(
        ["Username", "Employee ID", "Designation"],
        [
            [None, None, "Nobody"],
            [first.username, "EMP001", "Principal"],
            [second.username, "EMP002", "Vice Principal"],
        ],
    )

    outcome = await update_employees(path, tenant.id, None, partial(employee_service.update_employee_by_username, db_session))

    assert outcome.summary.model_dump() == {"total": 3, "success": 2, "failed": 1}
    assert outcome.errors == ["Row 2: Missing Username and Employee ID. Cannot identify employee."]
    assert outcome.file_buffer
    _, rows = _result_rows(outcome.file_buffer)
    assert len(rows) - 1 == len(outcome.errors)

    updated = await employee_service.get_employee(db_session, tenant.id, first.username)
    assert updated.designation == "Principal"


async def test_all_rows_succeed_without_result_file(db_session, tenant, create_employee, make_workbook):
    emp = await create_employee("EMP001")
    path = make_workbook(
        ["Username", "Middle Name", "Salary", "Date of Birth (YYYY-MM-DD)", "Height (cm)"],
        [[emp.username, None, 52000.0, "1991-02-03", 172]],
    )

    outcome = await update_employees(path, tenant.id, None, partial(employee_service.update_employee_by_username, db_session))

    assert outcome.summary.failed == 0
    assert outcome.file_buffer is None
    updated = await employee_service.get_employee(db_session, tenant.id, emp.username)
    assert updated.middle_name is None
    assert updated.salary == 52000
    assert str(updated.date_of_birth) == "1991-02-03"
    assert updated.height_cm == 172
    # untouched columns keep their values
    assert updated.first_name == "Asha"
    assert updated.email == "emp001@greenfield.edu"


async def test_blank_cell_under_present_header_clears_stored_value(db_session, tenant, create_employee, make_workbook):
    emp = await create_employee("EMP001", middle_name="Kumar")
    before = await employee_service.get_employee(db_session, tenant.id, emp.username)
    assert (before.middle_name, before.city) == ("Kumar", "Pune")
    path = make_workbook(
        ["Username", "Middle Name", "City", "Designation"],
        [[emp.username, None, "   ", "HOD"]],
    )

    outcome = await update_employees(path, tenant.id, None, partial(employee_service.update_employee_by_username, db_session))

    assert outcome.summary.model_dump() == {"total": 1, "success": 1, "failed": 0}
    updated = await employee_service.get_employee(db_session, tenant.id, emp.username)
    assert updated.middle_name is None
    assert updated.city is None
    assert updated.designation == "HOD"
    # columns absent from the sheet keep their values
    assert updated.first_name == "Asha"
    assert updated.department == "Science"
    assert updated.email == "emp001@greenfield.edu"


async def test_rerunning_a_successful_batch_is_idempotent(db_session, tenant, create_employee, make_workbook):
    emp = await create_employee("EMP001")
    path = make_workbook(["Username", "City", "Status"], [[emp.username, "Mumbai", "On Leave"]])
    updater = partial(employee_service.update_employee_by_username, db_session)

    first = await update_employees(path, tenant.id, None, updater)
    second = await update_employees(path, tenant.id, None, updater)

    assert first.summary == second.summary
    assert second.summary.success == 1
    updated = await employee_service.get_employee(db_session, tenant.id, emp.username)
    assert (updated.city, updated.employment_status) == ("Mumbai", "On Leave")


async def test_failed_row_does_not_leak_into_next_row(db_session, tenant, create_employee, make_workbook):
    first = await create_employee("EMP001")
    second = await create_employee("EMP002")
    path = make_workbook(
        ["Username", "Employee ID", "Salary"],
        [
            [first.username, "EMP002", 60000],  # duplicate Employee ID in campus
            [second.username, "EMP002", 61000],
        ],
    )

    outcome = await update_employees(path, tenant.id, None, partial(employee_service.update_employee_by_username, db_session))

    assert outcome.summary.model_dump() == {"total": 2, "success": 1, "failed": 1}
    assert outcome.errors == ["Row 2: Employee ID (EMP002) already exists in this campus"]
    result = await db_session.execute(
        select(EmploymentDetail.employee_id, EmploymentDetail.salary).where(EmploymentDetail.username == first.username)
    )
    employee_id, salary = result.one()
    assert employee_id == "EMP001"
    assert salary == 45000


async def test_invalid_values_and_unknown_usernames_fail_per_row(db_session, tenant, create_employee, make_workbook):
    emp = await create_employee("EMP001")
    path = make_workbook(
        ["Username", "Joining Date (YYYY-MM-DD)", "First Name"],
        [
            [emp.username, "15/08/2023", "Asha"],
            ["emp-zzzzzzz", None, "Ghost"],
            [emp.username, None, None],
        ],
    )

    outcome = await update_employees(path, tenant.id, None, partial(employee_service.update_employee_by_username, db_session))

    assert outcome.summary.failed == 3
    assert outcome.errors[0].startswith("Row 2: Invalid Joining Date")
    assert outcome.errors[1] == "Row 3: Employee not found: emp-zzzzzzz"
    assert outcome.errors[2] == "Row 4: First Name cannot be empty"


async def test_employee_id_only_rows_are_not_resolved(db_session, tenant, create_employee, make_workbook):
    await create_employee("EMP001")
    path = make_workbook(["Employee ID", "City"], [["EMP001", "Nagpur"]])

    outcome = await update_employees(path, tenant.id, None, partial(employee_service.update_employee_by_username, db_session))

    assert outcome.errors == [f"Row 2: {MISSING_USERNAME_MESSAGE}"]


async def test_malformed_file_aborts_before_any_update(tenant, tmp_path):
    path = tmp_path / "broken.xlsx"
    path.write_bytes(b"PK\x03\x04 definitely not a workbook")
    updater = RecordingUpdater()

    with pytest.raises(MalformedInputError):
        await update_employees(str(path), tenant.id, None, updater)
    assert updater.calls == []
