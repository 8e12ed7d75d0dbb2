from datetime import date
from types import SimpleNamespace

import pytest
import xlrd

from expiry_service.errors import ValidationError
from expiry_service.exporter import (
    EXPORT_COLUMNS,
    export_filename,
    export_rows,
    format_export_date,
    product_template_xls,
    records_to_xls,
)
from expiry_service.importer import map_product_rows, map_record_rows, read_table
from expiry_service.status import DayTierPolicy, MonthTierPolicy

TODAY = date(2026, 3, 15)


def _record(**overrides):
    values = {
        "id": "rec-1",
        "barcode": "0123456789",
        "item_name": "Milk",
        "description": "Whole milk",
        "quantity": 3,
        "expiration_date": date(2026, 3, 20),
        "notes": "top shelf",
        "date_created": date(2026, 3, 1),
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def test_export_rows_formats_values() -> None:
    fieldnames, rows = export_rows([_record()], policy=DayTierPolicy(), today=TODAY)

    assert fieldnames == list(EXPORT_COLUMNS)
    assert rows == [
        {
            "Barcode": "0123456789",
            "Item Name": "Milk",
            "Description": "Whole milk",
            "Quantity": 3,
            "Expiration Date": "3/20/2026",
            "Remaining Days": 5,
            "Status": "near expiration",
            "Notes": "top shelf",
            "Date Created": "3/1/2026",
        }
    ]


def test_export_rows_uses_active_policy() -> None:
    _, rows = export_rows(
        [_record(expiration_date=date(2026, 7, 2))], policy=MonthTierPolicy(), today=TODAY
    )

    assert rows[0]["Status"] == "return"
    assert rows[0]["Remaining Days"] == 109


def test_export_rows_column_subset_keeps_fixed_order() -> None:
    fieldnames, rows = export_rows(
        [_record()],
        policy=DayTierPolicy(),
        today=TODAY,
        columns=["status", "Barcode", " item name "],
    )

    assert fieldnames == ["Barcode", "Item Name", "Status"]
    assert rows == [{"Barcode": "0123456789", "Item Name": "Milk", "Status": "near expiration"}]


def test_export_rows_rejects_unknown_columns() -> None:
    with pytest.raises(ValidationError):
        export_rows([_record()], policy=DayTierPolicy(), today=TODAY, columns=["Price"])
    with pytest.raises(ValidationError):
        export_rows([_record()], policy=DayTierPolicy(), today=TODAY, columns=[" "])


def test_records_to_xls_layout() -> None:
    content = records_to_xls([_record()], policy=DayTierPolicy(), today=TODAY)

    workbook = xlrd.open_workbook(file_contents=content)
    sheet = workbook.sheet_by_index(0)
    assert sheet.name == "Expiration Records"
    assert sheet.row_values(0) == list(EXPORT_COLUMNS)
    assert sheet.cell_value(1, 0) == "0123456789"
    assert sheet.cell_value(1, 3) == 3
    assert sheet.cell_value(1, 6) == "near expiration"


def test_export_then_import_recovers_catalog_fields() -> None:
    records = [
        _record(id=f"rec-{index}", barcode=f"00{index}12345", item_name=f"Item {index}",
                description=f"Desc {index}")
        for index in range(5)
    ]
    content = records_to_xls(records, policy=DayTierPolicy(), today=TODAY)

    outcome = map_product_rows(read_table("export.xls", content))

    assert outcome.success is True
    assert outcome.imported == 5
    assert [(p.barcode, p.item_name, p.description) for p in outcome.products] == [
        (r.barcode, r.item_name, r.description) for r in records
    ]


def test_export_then_record_import_recovers_dates_and_quantities() -> None:
    records = [_record(), _record(id="rec-2", item_name="Bread", quantity=1,
                                  expiration_date=date(2026, 12, 31))]
    content = records_to_xls(records, policy=DayTierPolicy(), today=TODAY)

    outcome = map_record_rows(read_table("export.xls", content))

    assert outcome.success is True
    assert [(r.item_name, r.quantity, r.expiration_date, r.notes) for r in outcome.records] == [
        ("Milk", 3, date(2026, 3, 20), "top shelf"),
        ("Bread", 1, date(2026, 12, 31), "top shelf"),
    ]


def test_product_template() -> None:
    outcome = map_product_rows(read_table("template.xls", product_template_xls()))

    assert outcome.imported == 2
    assert outcome.products[0].barcode == "0123456789"


def test_export_helpers() -> None:
    assert format_export_date(date(2026, 1, 5)) == "1/5/2026"
    assert export_filename("expiration-records", TODAY) == "expiration-records-2026-03-15.xls"
