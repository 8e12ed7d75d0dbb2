"""Spreadsheet import: header mapping, row validation and file decoding."""
from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from io import BytesIO, StringIO
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence

import openpyxl
import xlrd
from pydantic import ValidationError as SchemaValidationError

from .errors import ImportRowError, MissingColumnError, ValidationError
from .schemas import MAX_QUANTITY, ProductCreate, RecordCreate

logger = logging.getLogger(__name__)

BARCODE_SYNONYMS = ("barcode", "upc", "ean", "code")
ITEM_NAME_SYNONYMS = ("item", "name", "product", "title")
DESCRIPTION_SYNONYMS = ("description", "desc", "detail")
QUANTITY_SYNONYMS = ("quantity", "qty", "count")
EXPIRATION_SYNONYMS = ("expiration", "expiry", "expires", "best before", "use by")
NOTES_SYNONYMS = ("notes", "note", "comment")

EXCEL_EPOCH = date(1899, 12, 30)

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%m-%d-%Y",
    "%d.%m.%Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d %b %Y",
    "%d %B %Y",
    "%Y-%m-%d %H:%M:%S",
    "%m/%d/%Y %H:%M:%S",
)

_MISSING_BARCODE_MESSAGE = "Barcode column not found. Expected column names: Barcode, UPC, EAN, or Code"
_MISSING_ITEM_NAME_MESSAGE = (
    "Item name column not found. Expected column names: Item Name, Name, Product, or Title"
)
_MISSING_EXPIRATION_MESSAGE = (
    "Expiration date column not found. Expected column names: Expiration Date, Expiry, or Use By"
)
_TOO_SHORT_MESSAGE = "File must contain at least a header row and one data row"

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
_ZIP_MAGIC = b"PK\x03\x04"


def _normalize_header(value: Any) -> str:
    if value is None:
        return ""
    text = str(value).strip().lower()
    if "\ufeff" in text:
        text = text.replace("\ufeff", "")
    return text


def find_column(headers: Sequence[Any], synonyms: Iterable[str]) -> Optional[int]:
    """Index of the first header containing any of ``synonyms``."""

    candidates = tuple(synonyms)
    for index, header in enumerate(headers):
        normalized = _normalize_header(header)
        if normalized and any(synonym in normalized for synonym in candidates):
            return index
    return None


@dataclass(frozen=True)
class ColumnMapping:
    barcode: Optional[int]
    item_name: int
    description: Optional[int] = None
    quantity: Optional[int] = None
    expiration_date: Optional[int] = None
    notes: Optional[int] = None


def map_columns(headers: Sequence[Any], *, require_barcode: bool = True) -> ColumnMapping:
    barcode = find_column(headers, BARCODE_SYNONYMS)
    item_name = find_column(headers, ITEM_NAME_SYNONYMS)
    if barcode is None and require_barcode:
        raise MissingColumnError(_MISSING_BARCODE_MESSAGE, column="barcode")
    if item_name is None:
        raise MissingColumnError(_MISSING_ITEM_NAME_MESSAGE, column="item_name")
    return ColumnMapping(
        barcode=barcode,
        item_name=item_name,
        description=find_column(headers, DESCRIPTION_SYNONYMS),
        quantity=find_column(headers, QUANTITY_SYNONYMS),
        expiration_date=find_column(headers, EXPIRATION_SYNONYMS),
        notes=find_column(headers, NOTES_SYNONYMS),
    )


def cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value).strip()


def _cell(row: Sequence[Any], index: Optional[int]) -> Any:
    if index is None or index >= len(row):
        return None
    return row[index]


def _is_blank_row(row: Optional[Sequence[Any]]) -> bool:
    return not row or not any(cell_text(value) for value in row)


def parse_spreadsheet_date(value: Any) -> Optional[date]:
    """Convert an Excel serial, a date object or free text into a ``date``.

    Serials count days since 1899-12-30; any time-of-day fraction is
    dropped. Returns ``None`` when the value cannot be interpreted.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        return _from_excel_serial(value)

    text = str(value).strip()
    if not text:
        return None
    try:
        return _from_excel_serial(float(text))
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _from_excel_serial(serial: float) -> Optional[date]:
    if serial != serial or serial <= 0:
        return None
    try:
        return EXCEL_EPOCH + timedelta(days=int(serial))
    except OverflowError:
        return None


def _parse_quantity(value: Any) -> Optional[int]:
    text = cell_text(value)
    if text == "":
        return 1
    try:
        parsed = float(text)
    except ValueError:
        return None
    if not parsed.is_integer():
        return None
    quantity = int(parsed)
    if quantity < 1 or quantity > MAX_QUANTITY:
        return None
    return quantity


def _first_error(exc: SchemaValidationError) -> str:
    """Readable reason for the first field a row failed on, e.g. ``item_name: ...``."""

    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ()))
    message = error.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


@dataclass
class _ImportOutcome:
    row_errors: List[ImportRowError] = field(default_factory=list)
    messages: List[str] = field(default_factory=list)

    @property
    def errors(self) -> List[str]:
        return [*self.messages, *(str(error) for error in self.row_errors)]

    @property
    def success(self) -> bool:
        return not self.messages and not self.row_errors


@dataclass
class ProductImport(_ImportOutcome):
    products: List[ProductCreate] = field(default_factory=list)

    @property
    def imported(self) -> int:
        return len(self.products)


@dataclass
class RecordImport(_ImportOutcome):
    records: List[RecordCreate] = field(default_factory=list)
    row_numbers: List[int] = field(default_factory=list)

    @property
    def imported(self) -> int:
        return len(self.records)


def map_product_rows(table: Sequence[Sequence[Any]]) -> ProductImport:
    """Map a header-first table onto catalog entries.

    A bad row is reported and skipped; it never aborts the import. Callers
    must look at both ``imported`` and ``errors``.
    """

    outcome = ProductImport()
    if len(table) < 2:
        outcome.messages.append(_TOO_SHORT_MESSAGE)
        return outcome

    mapping = map_columns(table[0])
    for index in range(1, len(table)):
        row = table[index]
        if _is_blank_row(row):
            continue
        row_number = index + 1
        barcode = cell_text(_cell(row, mapping.barcode))
        item_name = cell_text(_cell(row, mapping.item_name))
        if not barcode or not item_name:
            outcome.row_errors.append(ImportRowError(row_number, "Missing barcode or item name"))
            continue
        try:
            product = ProductCreate(
                barcode=barcode,
                item_name=item_name,
                description=cell_text(_cell(row, mapping.description)),
            )
        except SchemaValidationError as exc:
            outcome.row_errors.append(ImportRowError(row_number, _first_error(exc)))
            continue
        outcome.products.append(product)

    for error in outcome.row_errors:
        logger.warning("Skipped catalog import row: %s", error)
    logger.info(
        "Mapped %d catalog rows with %d errors", outcome.imported, len(outcome.row_errors)
    )
    return outcome


def map_record_rows(table: Sequence[Sequence[Any]]) -> RecordImport:
    """Map a header-first table onto expiration records.

    The barcode column is optional here; the item name and expiration date
    columns are required.
    """

    outcome = RecordImport()
    if len(table) < 2:
        outcome.messages.append(_TOO_SHORT_MESSAGE)
        return outcome

    mapping = map_columns(table[0], require_barcode=False)
    if mapping.expiration_date is None:
        raise MissingColumnError(_MISSING_EXPIRATION_MESSAGE, column="expiration_date")

    for index in range(1, len(table)):
        row = table[index]
        if _is_blank_row(row):
            continue
        row_number = index + 1
        item_name = cell_text(_cell(row, mapping.item_name))
        if not item_name:
            outcome.row_errors.append(ImportRowError(row_number, "Missing item name"))
            continue
        expiration_date = parse_spreadsheet_date(_cell(row, mapping.expiration_date))
        if expiration_date is None:
            outcome.row_errors.append(ImportRowError(row_number, "Invalid expiration date"))
            continue
        quantity = _parse_quantity(_cell(row, mapping.quantity))
        if quantity is None:
            outcome.row_errors.append(ImportRowError(row_number, "Invalid quantity"))
            continue
        try:
            record = RecordCreate(
                barcode=cell_text(_cell(row, mapping.barcode)),
                item_name=item_name,
                description=cell_text(_cell(row, mapping.description)),
                quantity=quantity,
                expiration_date=expiration_date,
                notes=cell_text(_cell(row, mapping.notes)),
            )
        except SchemaValidationError as exc:
            outcome.row_errors.append(ImportRowError(row_number, _first_error(exc)))
            continue
        outcome.row_numbers.append(row_number)
        outcome.records.append(record)

    for error in outcome.row_errors:
        logger.warning("Skipped record import row: %s", error)
    logger.info(
        "Mapped %d record rows with %d errors", outcome.imported, len(outcome.row_errors)
    )
    return outcome


# ----------------------------------------------------------------------
# File decoding
# ----------------------------------------------------------------------
def read_table(filename: str, content: bytes) -> List[List[Any]]:
    """Decode an uploaded ``.xlsx``, ``.xls`` or CSV file into a list of rows.

    Uploads larger than :data:`MAX_UPLOAD_BYTES` are rejected. Files without
    a known extension are read as CSV, falling back to a workbook when the
    bytes are not UTF-8.
    """

    if not content:
        raise ValidationError("Empty file", field="file")
    if len(content) > MAX_UPLOAD_BYTES:
        raise ValidationError("File size must be less than 10MB", field="file")
    extension = Path(filename or "").suffix.lower()
    if extension == ".xlsx":
        return _read_xlsx_table(content)
    if extension == ".xls":
        return _read_xls_table(content)
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        reader = _read_xlsx_table if content.startswith(_ZIP_MAGIC) else _read_xls_table
        try:
            return reader(content)
        except ValidationError as exc:
            raise ValidationError(
                "File must be UTF-8 encoded CSV or a valid XLSX/XLS workbook", field="file"
            ) from exc
    return _read_csv_table(text)


def _read_csv_table(text: str) -> List[List[Any]]:
    reader = csv.reader(StringIO(text))
    return [row for row in reader]


def _xlsx_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        return value.strip()
    return value


def _read_xlsx_table(data: bytes) -> List[List[Any]]:
    try:
        workbook = openpyxl.load_workbook(BytesIO(data), read_only=True, data_only=True)
    except Exception as exc:
        raise ValidationError("Invalid XLSX file", field="file") from exc
    try:
        if not workbook.worksheets:
            raise ValidationError("Missing worksheet", field="file")
        sheet = workbook.worksheets[0]
        return [
            [_xlsx_value(value) for value in row]
            for row in sheet.iter_rows(values_only=True)
        ]
    finally:
        workbook.close()


def _read_xls_table(data: bytes) -> List[List[Any]]:
    try:
        workbook = xlrd.open_workbook(file_contents=data)
    except Exception as exc:
        raise ValidationError("Invalid XLS file", field="file") from exc
    if workbook.nsheets == 0:
        raise ValidationError("Missing worksheet", field="file")
    sheet = workbook.sheet_by_index(0)

    rows: List[List[Any]] = []
    for row_index in range(sheet.nrows):
        values: List[Any] = []
        for col_index in range(sheet.ncols):
            cell = sheet.cell(row_index, col_index)
            if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
                values.append("")
            elif cell.ctype == xlrd.XL_CELL_DATE:
                values.append(
                    xlrd.xldate.xldate_as_datetime(cell.value, workbook.datemode).date()
                )
            elif cell.ctype == xlrd.XL_CELL_NUMBER:
                value = float(cell.value)
                values.append(int(value) if value.is_integer() else value)
            else:
                values.append(str(cell.value).strip())
        rows.append(values)
    return rows


__all__ = [
    "ColumnMapping",
    "ProductImport",
    "RecordImport",
    "find_column",
    "map_columns",
    "map_product_rows",
    "map_record_rows",
    "parse_spreadsheet_date",
    "read_table",
    "MAX_UPLOAD_BYTES",
    "cell_text",
]
