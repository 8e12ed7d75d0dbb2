"""Pydantic schemas used by the API."""
from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .status import StatusPolicy, remaining_days

MAX_QUANTITY = 9999


def _strip(value: str | None) -> str:
    return (value or "").strip()


class RecordBase(BaseModel):
    barcode: str = Field("", description="Scanned or typed barcode; may be empty.")
    item_name: str = Field(..., max_length=255)
    description: str = ""
    quantity: int = Field(1, ge=1, le=MAX_QUANTITY)
    expiration_date: date
    notes: str = ""

    @field_validator("barcode", "description", "notes", mode="before")
    @classmethod
    def _strip_optional(cls, value: str | None) -> str:
        return _strip(value)

    @field_validator("item_name", mode="before")
    @classmethod
    def _require_item_name(cls, value: str | None) -> str:
        cleaned = _strip(value)
        if not cleaned:
            raise ValueError("Item name is required")
        return cleaned


class RecordCreate(RecordBase):
    pass


class RecordUpdate(BaseModel):
    """Partial update; ``id`` and ``date_created`` are not writable."""

    barcode: str | None = None
    item_name: str | None = Field(default=None, max_length=255)
    description: str | None = None
    quantity: int | None = Field(default=None, ge=1, le=MAX_QUANTITY)
    expiration_date: date | None = None
    notes: str | None = None

    @field_validator("item_name")
    @classmethod
    def _reject_blank_name(cls, value: str | None) -> str | None:
        if value is None:
            return value
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Item name is required")
        return cleaned


class RecordOut(BaseModel):
    id: str
    barcode: str
    item_name: str
    description: str
    quantity: int
    expiration_date: date
    notes: str
    date_created: date
    remaining_days: int
    status: str
    status_label: str

    @classmethod
    def from_record(cls, record, *, policy: StatusPolicy, today: date) -> "RecordOut":
        status = policy.classify(record.expiration_date, today)
        return cls(
            id=record.id,
            barcode=record.barcode,
            item_name=record.item_name,
            description=record.description,
            quantity=record.quantity,
            expiration_date=record.expiration_date,
            notes=record.notes,
            date_created=record.date_created,
            remaining_days=remaining_days(record.expiration_date, today),
            status=status,
            status_label=policy.describe(status),
        )


class RecordAddResult(BaseModel):
    id: str
    merged: bool
    record: RecordOut


class RecordSnapshot(BaseModel):
    policy: str
    generated_at: datetime
    counts: dict[str, int]
    records: list[RecordOut]


class ProductBase(BaseModel):
    barcode: str = Field(..., description="Primary key of the catalog.")
    item_name: str = Field(..., max_length=255)
    description: str = ""

    @field_validator("item_name", mode="before")
    @classmethod
    def _require_item_name(cls, value: str | None) -> str:
        cleaned = _strip(value)
        if not cleaned:
            raise ValueError("Item name is required")
        return cleaned

    @field_validator("description", mode="before")
    @classmethod
    def _strip_description(cls, value: str | None) -> str:
        return _strip(value)


class ProductCreate(ProductBase):
    pass


class ProductUpdate(BaseModel):
    item_name: str | None = None
    description: str | None = None


class ProductOut(ProductBase):
    model_config = ConfigDict(from_attributes=True)


class ImportResult(BaseModel):
    """Outcome of an import; ``errors`` may be non-empty even when rows were imported."""

    success: bool
    imported: int
    errors: list[str] = Field(default_factory=list)


class RecordImportResult(ImportResult):
    merged: int = 0


class NotificationSettings(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    days_before_expiration: int = Field(7, ge=0)
    notify_on_expiration_day: bool = True
    quantity_threshold: int = Field(2, ge=0, description="0 turns low-quantity alerts off.")


class NotificationOut(BaseModel):
    title: str
    body: str
    tag: str


class NotificationSummaryOut(BaseModel):
    expired_count: int
    expiring_today_count: int
    expiring_this_week_count: int
    low_quantity_count: int


class ScanRequest(BaseModel):
    text: str = Field(..., description="Decoded text from the camera or manual entry.")


class ScanResult(BaseModel):
    barcode: str
    display: str
    barcode_type: str
    found: bool
    product: ProductOut | None = None


class HealthStatus(BaseModel):
    status: Literal["ok"] = "ok"
    environment: str
    status_policy: str


__all__ = [
    "RecordCreate",
    "RecordUpdate",
    "RecordOut",
    "RecordAddResult",
    "RecordSnapshot",
    "ProductCreate",
    "ProductUpdate",
    "ProductOut",
    "ImportResult",
    "RecordImportResult",
    "NotificationSettings",
    "NotificationOut",
    "NotificationSummaryOut",
    "ScanRequest",
    "ScanResult",
    "HealthStatus",
    "MAX_QUANTITY",
]
