"""
Employee bulk update from an uploaded workbook.

Rows are applied one at a time, in sheet order, each through the injected updater.
A failing row never stops the batch: its error is recorded and the next row runs.
When any row fails, a result workbook listing the failures is produced.
"""
import io
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence
from uuid import UUID

from loguru import logger
from openpyxl import Workbook
from openpyxl.styles import Font

from campusops.core.exceptions import ServiceError

from .schemas import BulkSummary, EmployeeUpdate
from .spreadsheet import MappedRow, UnidentifiedRow, map_update_rows, read_worksheet

MISSING_USERNAME_MESSAGE = "Cannot identify employee. Missing Username."

RESULT_SHEET_TITLE = "Update Results"
RESULT_HEADERS = ["Row Number", "Employee", "Status", "Error Message"]
RESULT_COLUMN_WIDTHS = {"A": 12, "B": 30, "C": 15, "D": 60}

# (username, changes, tenant_id) -> updated employee
EmployeeUpdater = Callable[[str, EmployeeUpdate, UUID], Awaitable[Any]]


@dataclass
class RowError:
    row_number: int
    employee: str
    message: str

    def __str__(self) -> str:
        return f"Row {self.row_number}: {self.message}"


@dataclass
class BatchResult:
    """Counters for one batch. total == success + failed; errors stay in row order."""

    total: int = 0
    success: int = 0
    failed: int = 0
    errors: List[RowError] = field(default_factory=list)

    def record_success(self) -> None:
        self.total += 1
        self.success += 1

    def record_failure(self, row_number: int, employee: str, message: str) -> None:
        self.total += 1
        self.failed += 1
        self.errors.append(RowError(row_number, employee, message))

    @property
    def summary(self) -> BulkSummary:
        return BulkSummary(total=self.total, success=self.success, failed=self.failed)


@dataclass
class BulkUpdateOutcome:
    summary: BulkSummary
    errors: List[str]
    file_buffer: Optional[bytes] = None


def _error_message(exc: Exception) -> str:
    if isinstance(exc, ServiceError):
        return exc.message
    return str(exc) or exc.__class__.__name__


async def process_rows(
    rows: Iterable[MappedRow],
    tenant_id: UUID,
    updater: EmployeeUpdater,
) -> BatchResult:
    """Apply rows strictly in order; each update is awaited before the next row starts."""
    result = BatchResult()
    for row in rows:
        if isinstance(row, UnidentifiedRow):
            logger.warning(f"Row {row.row_number}: {row.message}")
            result.record_failure(row.row_number, "N/A", row.message)
            continue
        if not row.username:
            # TODO: resolve username from Employee ID within the caller's campus
            logger.warning(f"Row {row.row_number}: {MISSING_USERNAME_MESSAGE} (Employee ID {row.employee_id})")
            result.record_failure(row.row_number, row.employee, MISSING_USERNAME_MESSAGE)
            continue
        try:
            await updater(row.username, row.changes, tenant_id)
        except Exception as e:
            message = _error_message(e)
            logger.error(f"Error updating employee at row {row.row_number} ({row.employee}): {message}")
            result.record_failure(row.row_number, row.employee, message)
            continue
        result.record_success()
    return result


def build_result_workbook(errors: Sequence[RowError]) -> bytes:
    """One row per failed spreadsheet row, or a single success row when there are none."""
    wb = Workbook()
    ws = wb.active
    ws.title = RESULT_SHEET_TITLE
    ws.append(RESULT_HEADERS)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for column, width in RESULT_COLUMN_WIDTHS.items():
        ws.column_dimensions[column].width = width

    if not errors:
        ws.append(["All processed", "", "Success", ""])
    for error in errors:
        ws.append([error.row_number, error.employee, "Failed", error.message])

    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()


async def update_employees(
    path: str,
    tenant_id: UUID,
    campus_id: Optional[UUID],
    updater: EmployeeUpdater,
) -> BulkUpdateOutcome:
    """
    Read the workbook at path, apply every row and summarise.
    file_buffer is set only when at least one row failed.
    Raises MalformedInputError when the file cannot be read; no row is applied in that case.
    """
    logger.info(f"Starting employee bulk update (tenant={tenant_id}, campus={campus_id})")
    worksheet = read_worksheet(path)
    rows = list(map_update_rows(worksheet))

    result = await process_rows(rows, tenant_id, updater)
    logger.info(
        f"Employee bulk update finished: total={result.total} success={result.success} failed={result.failed}"
    )

    file_buffer = build_result_workbook(result.errors) if result.failed > 0 else None
    return BulkUpdateOutcome(
        summary=result.summary,
        errors=[str(e) for e in result.errors],
        file_buffer=file_buffer,
    )
