"""CSV rendering for report downloads.

The format is fixed: header row, one line per record, rows joined by ``\\n``
with no newline after the last row (a header-only file ends in ``\\n``).
Values containing a comma, quote or line break are quoted with embedded
quotes doubled; missing values render empty.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Sequence

from ..models.borrow import BorrowRecord
from ..models.inventory import Inventory

NEEDS_QUOTING = (",", '"', "\n", "\r")

INVENTORY_COLUMNS: Sequence[tuple[str, str]] = (
    ("fullName", "full_name"),
    ("department", "department"),
    ("pcName", "pc_name"),
    ("pcType", "pc_type"),
    ("windowsVersion", "windows_version"),
    ("microsoftOffice", "microsoft_office"),
    ("applicationsSystem", "applications_system"),
    ("status", "status"),
    ("userStatus", "user_status"),
    ("serialNumber", "serial_number"),
    ("brand", "brand"),
    ("model", "model"),
    ("remarks", "remarks"),
)


def _or_na(value: Any) -> Any:
    return value if value not in (None, "") else "N/A"


def _asset_value(attribute: str) -> Callable[[BorrowRecord], Any]:
    def getter(record: BorrowRecord) -> Any:
        item = record.inventory
        return _or_na(getattr(item, attribute) if item is not None else None)

    return getter


BORROW_COLUMNS: Sequence[tuple[str, Callable[[BorrowRecord], Any]]] = (
    ("borrowerName", lambda r: r.borrower_name),
    ("borrowerDepartment", lambda r: r.borrower_department),
    ("itemName", _asset_value("pc_name")),
    ("pcType", _asset_value("pc_type")),
    ("serialNumber", _asset_value("serial_number")),
    ("borrowDate", lambda r: r.borrow_date),
    ("expectedReturnDate", lambda r: r.expected_return_date),
    ("actualReturnDate", lambda r: _or_na(r.actual_return_date)),
    ("status", lambda r: r.status),
    ("returnCondition", lambda r: _or_na(r.return_condition)),
    ("purpose", lambda r: _or_na(r.purpose)),
)


def format_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        text = "true" if value else "false"
    else:
        text = str(value)
    if any(marker in text for marker in NEEDS_QUOTING):
        return '"' + text.replace('"', '""') + '"'
    return text


def render_csv(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    lines = [",".join(format_cell(value) for value in row) for row in rows]
    header = ",".join(headers)
    if not lines:
        return header + "\n"
    return header + "\n" + "\n".join(lines)


def inventory_csv(items: Iterable[Inventory]) -> str:
    headers = [header for header, _ in INVENTORY_COLUMNS]
    rows = ([getattr(item, attribute) for _, attribute in INVENTORY_COLUMNS] for item in items)
    return render_csv(headers, rows)


def borrow_csv(records: Iterable[BorrowRecord]) -> str:
    headers = [header for header, _ in BORROW_COLUMNS]
    rows = ([getter(record) for _, getter in BORROW_COLUMNS] for record in records)
    return render_csv(headers, rows)
