"""Spreadsheet export of expiration records and the catalog import template."""
from __future__ import annotations

from datetime import date
from io import BytesIO
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import xlwt

from .errors import ValidationError
from .status import StatusPolicy, remaining_days

EXPORT_COLUMNS: Sequence[str] = (
    "Barcode",
    "Item Name",
    "Description",
    "Quantity",
    "Expiration Date",
    "Remaining Days",
    "Status",
    "Notes",
    "Date Created",
)

_COLUMN_WIDTHS: Dict[str, int] = {
    "Barcode": 15,
    "Item Name": 25,
    "Description": 30,
    "Quantity": 10,
    "Expiration Date": 15,
    "Remaining Days": 15,
    "Status": 15,
    "Notes": 30,
    "Date Created": 15,
}

TEMPLATE_COLUMNS: Sequence[str] = ("Barcode", "Item Name", "Description")
TEMPLATE_ROWS: Sequence[Mapping[str, Any]] = (
    {"Barcode": "0123456789", "Item Name": "Sample Product", "Description": "Sample product description"},
    {"Barcode": "9876543210", "Item Name": "Another Product", "Description": "Another product description"},
)


def format_export_date(value: date) -> str:
    return f"{value.month}/{value.day}/{value.year}"


def resolve_columns(columns: Optional[Iterable[str]]) -> List[str]:
    """Validate a requested column subset and return it in export order."""

    if columns is None:
        return list(EXPORT_COLUMNS)
    lookup = {name.lower(): name for name in EXPORT_COLUMNS}
    requested = set()
    for column in columns:
        key = column.strip().lower()
        if not key:
            continue
        if key not in lookup:
            raise ValidationError(f"Unknown export column: {column}", field="columns")
        requested.add(lookup[key])
    if not requested:
        raise ValidationError("At least one export column is required", field="columns")
    return [name for name in EXPORT_COLUMNS if name in requested]


def export_rows(
    records: Iterable[Any],
    *,
    policy: StatusPolicy,
    today: date,
    columns: Optional[Iterable[str]] = None,
) -> tuple[List[str], List[Dict[str, Any]]]:
    fieldnames = resolve_columns(columns)
    rows: List[Dict[str, Any]] = []
    for record in records:
        status = policy.classify(record.expiration_date, today)
        row = {
            "Barcode": record.barcode,
            "Item Name": record.item_name,
            "Description": record.description,
            "Quantity": record.quantity,
            "Expiration Date": format_export_date(record.expiration_date),
            "Remaining Days": remaining_days(record.expiration_date, today),
            "Status": status.replace("-", " "),
            "Notes": record.notes,
            "Date Created": format_export_date(record.date_created),
        }
        rows.append({name: row[name] for name in fieldnames})
    return fieldnames, rows


def rows_to_xls(
    fieldnames: Sequence[str],
    rows: Iterable[Mapping[str, Any]],
    *,
    sheet_name: str = "Sheet1",
) -> bytes:
    workbook = xlwt.Workbook()
    sheet = workbook.add_sheet(sheet_name)
    header_style = xlwt.easyxf("font: bold on; align: horiz center, vert center")

    for col_index, field in enumerate(fieldnames):
        sheet.col(col_index).width = 256 * _COLUMN_WIDTHS.get(field, 15)
        sheet.write(0, col_index, field, header_style)
    row_index = 1
    for row in rows:
        for col_index, field in enumerate(fieldnames):
            value = row.get(field, "")
            if value is None:
                value = ""
            sheet.write(row_index, col_index, value)
        row_index += 1
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def records_to_xls(
    records: Iterable[Any],
    *,
    policy: StatusPolicy,
    today: date,
    columns: Optional[Iterable[str]] = None,
) -> bytes:
    fieldnames, rows = export_rows(records, policy=policy, today=today, columns=columns)
    return rows_to_xls(fieldnames, rows, sheet_name="Expiration Records")


def product_template_xls() -> bytes:
    return rows_to_xls(TEMPLATE_COLUMNS, TEMPLATE_ROWS, sheet_name="Product Data Template")


def export_filename(prefix: str, today: date) -> str:
    return f"{prefix}-{today.isoformat()}.xls"


__all__ = [
    "EXPORT_COLUMNS",
    "TEMPLATE_COLUMNS",
    "format_export_date",
    "resolve_columns",
    "export_rows",
    "rows_to_xls",
    "records_to_xls",
    "product_template_xls",
    "export_filename",
]
