"""
Reading employee workbooks.

Header row is row 1 of the first worksheet. Column lookup is case-insensitive:
an exact header match wins, otherwise the first header containing the key
(so "Contact" finds "Contact No"). Cells are classified once into plain or
rich-text values; empty and whitespace-only cells read as None.
"""
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from loguru import logger
from openpyxl import load_workbook
from openpyxl.cell.rich_text import CellRichText
from openpyxl.worksheet.worksheet import Worksheet

from campusops.core.exceptions import MalformedInputError

from .schemas import (
    EmployeeContactFields,
    EmployeeEmploymentFields,
    EmployeePersonalFields,
    EmployeeUpdate,
    EmployeeUserFields,
)

USERNAME_HEADER = "Username"
EMPLOYEE_ID_HEADER = "Employee ID"
ROLE_HEADER = "Role"

# (field, header) per update group, in export column order
USER_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("first_name", "First Name"),
    ("middle_name", "Middle Name"),
    ("last_name", "Last Name"),
    ("date_of_birth", "Date of Birth (YYYY-MM-DD)"),
    ("phone_number", "Phone Number"),
)
CONTACT_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("email", "Email"),
    ("contact_phone", "Contact Phone"),
    ("alt_phone", "Alt Phone"),
    ("emergency_contact_name", "Emergency Contact Name"),
    ("emergency_contact_phone", "Emergency Contact Phone"),
    ("emergency_contact_relation", "Emergency Contact Relation"),
    ("current_address", "Current Address"),
    ("city", "City"),
    ("state", "State"),
    ("pincode", "Pincode"),
    ("country", "Country"),
    ("permanent_address", "Permanent Address"),
)
EMPLOYMENT_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("employee_id", EMPLOYEE_ID_HEADER),
    ("designation", "Designation"),
    ("department", "Department"),
    ("joining_date", "Joining Date (YYYY-MM-DD)"),
    ("salary", "Salary"),
    ("employment_type", "Employment Type"),
    ("status", "Status"),
    ("transport_details", "Transport Details"),
    ("hostel_details", "Hostel Details"),
)
PERSONAL_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("gender", "Gender"),
    ("marital_status", "Marital Status"),
    ("nationality", "Nationality"),
    ("religion", "Religion"),
    ("caste", "Caste"),
    ("category", "Category"),
    ("blood_group", "Blood Group"),
    ("height_cm", "Height (cm)"),
    ("weight_kg", "Weight (kg)"),
    ("medical_conditions", "Medical Conditions"),
    ("allergies", "Allergies"),
    ("occupation", "Occupation"),
    ("income", "Income"),
)

UPDATE_GROUPS = {
    "user": (USER_COLUMNS, EmployeeUserFields),
    "contact": (CONTACT_COLUMNS, EmployeeContactFields),
    "employment": (EMPLOYMENT_COLUMNS, EmployeeEmploymentFields),
    "personal": (PERSONAL_COLUMNS, EmployeePersonalFields),
}

UNIDENTIFIED_ROW_MESSAGE = "Missing Username and Employee ID. Cannot identify employee."


@dataclass(frozen=True)
class PlainValue:
    raw: Any

    def text(self) -> Optional[str]:
        value = self.raw
        if value is None:
            return None
        if isinstance(value, datetime):
            if value.time() == time(0, 0):
                return value.date().isoformat()
            return value.isoformat(sep=" ")
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        text = str(value).strip()
        return text or None


@dataclass(frozen=True)
class RichTextValue:
    runs: CellRichText

    def text(self) -> Optional[str]:
        # str() concatenates the text of every run
        text = str(self.runs).strip()
        return text or None


CellValue = Union[PlainValue, RichTextValue]


def classify_cell(raw: Any) -> CellValue:
    if isinstance(raw, CellRichText):
        return RichTextValue(raw)
    return PlainValue(raw)


def cell_text(row: Sequence[Any], column: Optional[int]) -> Optional[str]:
    """Text of the 1-based column in a values_only row tuple; None when the column is absent or empty."""
    if column is None or column > len(row):
        return None
    return classify_cell(row[column - 1]).text()


def is_empty_row(row: Sequence[Any]) -> bool:
    return all(classify_cell(value).text() is None for value in row)


class HeaderIndex:
    """1-based column -> header text, built once from the header row and shared by every row of the batch."""

    def __init__(self, headers: Dict[int, str]):
        self._headers = dict(sorted(headers.items()))

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> "HeaderIndex":
        headers = {}
        for position, raw in enumerate(row, start=1):
            text = classify_cell(raw).text()
            if text is not None:
                headers[position] = text
        return cls(headers)

    def __len__(self) -> int:
        return len(self._headers)

    @property
    def positions(self) -> List[int]:
        return list(self._headers)

    def header(self, column: int) -> Optional[str]:
        return self._headers.get(column)

    def exact(self, key: str) -> Optional[int]:
        needle = key.lower()
        for column, header in self._headers.items():
            if header.lower() == needle:
                return column
        return None

    def resolve(self, key: str) -> Optional[int]:
        column = self.exact(key)
        if column is not None:
            return column
        needle = key.lower()
        candidates = [column for column, header in self._headers.items() if needle in header.lower()]
        if not candidates:
            return None
        if len(candidates) > 1:
            names = ", ".join(repr(self._headers[c]) for c in candidates)
            logger.warning(f"Header key {key!r} matches several columns ({names}); using {self._headers[candidates[0]]!r}")
        return candidates[0]


@dataclass
class UpdateRecord:
    """One identified spreadsheet row, ready for the row processor."""

    row_number: int
    username: Optional[str]
    employee_id: Optional[str]
    changes: EmployeeUpdate

    @property
    def employee(self) -> str:
        return self.username or self.employee_id or "N/A"


@dataclass
class UnidentifiedRow:
    row_number: int
    message: str = UNIDENTIFIED_ROW_MESSAGE


MappedRow = Union[UpdateRecord, UnidentifiedRow]


def read_worksheet(path: str) -> Worksheet:
    """Open the workbook at path and return its first worksheet. Raises MalformedInputError."""
    try:
        wb = load_workbook(filename=path, data_only=True, rich_text=True)
    except Exception as e:
        raise MalformedInputError(f"Invalid Excel file: {e}") from e
    if not wb.worksheets:
        raise MalformedInputError("Invalid Excel file: No worksheet found")
    return wb.worksheets[0]


def read_header(worksheet: Worksheet) -> HeaderIndex:
    header_row = next(worksheet.iter_rows(min_row=1, max_row=1, values_only=True), None)
    index = HeaderIndex.from_row(header_row or ())
    if not len(index):
        raise MalformedInputError("Excel file has no header row")
    return index


def resolve_update_columns(index: HeaderIndex) -> Dict[str, Dict[str, int]]:
    """
    group -> {field: column} for every update field whose header is present.
    A partial match never takes a column whose header is exactly another field's
    header ("Status" does not fall back to "Marital Status").
    """
    owners: Dict[int, str] = {}
    for catalogue, _ in UPDATE_GROUPS.values():
        for _, header in catalogue:
            column = index.exact(header)
            if column is not None:
                owners[column] = header

    columns: Dict[str, Dict[str, int]] = {}
    for group, (catalogue, _) in UPDATE_GROUPS.items():
        columns[group] = {}
        for field, header in catalogue:
            column = index.resolve(header)
            if column is None:
                continue
            owner = owners.get(column)
            if owner is not None and owner != header:
                logger.warning(f"Ignoring column {owner!r} for {header!r}: it belongs to another field")
                continue
            if owner is None:
                logger.warning(f"No exact column for {header!r}; using partial match {index.header(column)!r}")
            columns[group][field] = column
    return columns


def _build_update(row: Sequence[Any], columns: Dict[str, Dict[str, int]]) -> EmployeeUpdate:
    groups = {}
    for group, (_, model) in UPDATE_GROUPS.items():
        # only present columns are set, so exclude_unset tells "absent" from "empty"
        values = {field: cell_text(row, column) for field, column in columns[group].items()}
        groups[group] = model(**values)
    return EmployeeUpdate(**groups)


def map_update_rows(worksheet: Worksheet) -> Iterator[MappedRow]:
    """Yield one UpdateRecord or UnidentifiedRow per non-empty data row, in sheet order."""
    index = read_header(worksheet)
    username_col = index.resolve(USERNAME_HEADER)
    employee_id_col = index.resolve(EMPLOYEE_ID_HEADER)
    columns = resolve_update_columns(index)
    resolved = sum(len(c) for c in columns.values())
    logger.debug(f"Resolved {resolved} update column(s) from {len(index)} header(s)")

    for row_number, row in enumerate(worksheet.iter_rows(min_row=2, values_only=True), start=2):
        if not row or is_empty_row(row):
            continue
        username = cell_text(row, username_col)
        employee_id = cell_text(row, employee_id_col)
        if not username and not employee_id:
            yield UnidentifiedRow(row_number)
            continue
        yield UpdateRecord(
            row_number=row_number,
            username=username,
            employee_id=employee_id,
            changes=_build_update(row, columns),
        )
