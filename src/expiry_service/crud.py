"""Business logic for interacting with the database."""
from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from datetime import date, datetime, timezone
from functools import wraps
from typing import Literal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from . import schemas
from .barcode import BarcodeFormat, normalize_barcode
from .errors import NotFoundError, StorageError, ValidationError
from .models import SETTINGS_ROW_ID, ExpirationRecord, NotificationSettingsRow, ProductData
from .status import StatusPolicy

logger = logging.getLogger(__name__)

MergeKey = Literal["barcode", "item_name"]

_LOOKUP_BARCODE_MIN_DIGITS = 8
_LOOKUP_BARCODE_MAX_DIGITS = 12


def _storage_errors(func_):
    """Log SQLAlchemy failures and re-raise them as :class:`StorageError`."""

    @wraps(func_)
    async def wrapper(*args, **kwargs):
        try:
            return await func_(*args, **kwargs)
        except SQLAlchemyError as exc:
            logger.exception("Storage failure in %s", func_.__name__)
            raise StorageError(f"{func_.__name__} failed") from exc

    return wrapper


# ----------------------------------------------------------------------
# Expiration records
# ----------------------------------------------------------------------
async def _find_merge_match(
    session: AsyncSession, candidate: schemas.RecordCreate, merge_key: MergeKey
) -> ExpirationRecord | None:
    if merge_key == "barcode":
        if not candidate.barcode:
            return None
        key_clause = ExpirationRecord.barcode == candidate.barcode
    elif merge_key == "item_name":
        key_clause = ExpirationRecord.item_name == candidate.item_name
    else:
        raise ValueError(f"Unknown merge key: {merge_key!r}")
    stmt = (
        select(ExpirationRecord)
        .where(key_clause, ExpirationRecord.expiration_date == candidate.expiration_date)
        .order_by(ExpirationRecord.date_created, ExpirationRecord.id)
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalars().first()


@_storage_errors
async def add_record(
    session: AsyncSession,
    candidate: schemas.RecordCreate,
    *,
    merge_key: MergeKey = "barcode",
    barcode_format: BarcodeFormat = BarcodeFormat.CUSTOM,
    today: date | None = None,
) -> tuple[ExpirationRecord, bool]:
    """Create a record or merge ``candidate`` into the batch it belongs to.

    A batch is identified by the merge key (barcode or item name) together
    with the expiration day. Merging only adds to the quantity of the
    existing row; every other field of that row is left untouched.
    Returns the affected row and whether it was a merge.
    """

    barcode = normalize_barcode(candidate.barcode, barcode_format, allow_empty=True)
    if barcode != candidate.barcode:
        candidate = candidate.model_copy(update={"barcode": barcode})

    match = await _find_merge_match(session, candidate, merge_key)
    if match is not None:
        match.quantity += candidate.quantity
        await session.flush()
        logger.debug(
            "Merged %d into record %s (now %d)", candidate.quantity, match.id, match.quantity
        )
        return match, True

    record = ExpirationRecord(
        **candidate.model_dump(),
        date_created=today or date.today(),
    )
    session.add(record)
    await session.flush()
    logger.debug("Created record %s for %r", record.id, record.item_name)
    return record, False


@_storage_errors
async def list_records(session: AsyncSession) -> Sequence[ExpirationRecord]:
    stmt = select(ExpirationRecord).order_by(
        ExpirationRecord.expiration_date, ExpirationRecord.item_name
    )
    result = await session.execute(stmt)
    return result.scalars().all()


@_storage_errors
async def get_record(session: AsyncSession, record_id: str) -> ExpirationRecord:
    record = await session.get(ExpirationRecord, record_id)
    if record is None:
        raise NotFoundError("Record", record_id)
    return record


@_storage_errors
async def update_record(
    session: AsyncSession,
    record_id: str,
    data: schemas.RecordUpdate,
    *,
    barcode_format: BarcodeFormat = BarcodeFormat.CUSTOM,
) -> ExpirationRecord:
    record = await get_record(session, record_id)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("barcode") is not None:
        changes["barcode"] = normalize_barcode(
            changes["barcode"], barcode_format, allow_empty=True
        )
    for field, value in changes.items():
        if value is None:
            raise ValidationError(f"{field} cannot be null", field=field)
        setattr(record, field, value.strip() if isinstance(value, str) else value)
    await session.flush()
    return record


@_storage_errors
async def delete_record(session: AsyncSession, record_id: str) -> None:
    record = await get_record(session, record_id)
    await session.delete(record)
    await session.flush()


async def refresh(
    session: AsyncSession, *, policy: StatusPolicy, today: date | None = None
) -> schemas.RecordSnapshot:
    """Re-read every record and derive its status as of ``today``."""

    today = today or date.today()
    records = await list_records(session)
    out = [schemas.RecordOut.from_record(record, policy=policy, today=today) for record in records]
    counts = {label: 0 for label in policy.labels}
    for entry in out:
        counts[entry.status] = counts.get(entry.status, 0) + 1
    return schemas.RecordSnapshot(
        policy=policy.name,
        generated_at=datetime.now(timezone.utc),
        counts=counts,
        records=out,
    )


# ----------------------------------------------------------------------
# Product catalog
# ----------------------------------------------------------------------
@_storage_errors
async def upsert_product(
    session: AsyncSession,
    data: schemas.ProductCreate,
    *,
    barcode_format: BarcodeFormat = BarcodeFormat.CUSTOM,
) -> ProductData:
    barcode = normalize_barcode(data.barcode, barcode_format)
    product = await session.get(ProductData, barcode)
    if product is None:
        product = ProductData(
            barcode=barcode, item_name=data.item_name, description=data.description
        )
        session.add(product)
    else:
        product.item_name = data.item_name
        product.description = data.description
    await session.flush()
    return product


async def bulk_upsert_products(
    session: AsyncSession,
    products: Sequence[schemas.ProductCreate],
    *,
    barcode_format: BarcodeFormat = BarcodeFormat.CUSTOM,
) -> tuple[int, list[str]]:
    """Upsert ``products`` one at a time, continuing past rejected barcodes."""

    success = 0
    errors: list[str] = []
    for product in products:
        try:
            await upsert_product(session, product, barcode_format=barcode_format)
        except ValidationError as exc:
            logger.warning("Rejected catalog row %r: %s", product.barcode, exc.message)
            errors.append(f"Failed to import {product.barcode}: {exc.message}")
            continue
        success += 1
    return success, errors


@_storage_errors
async def list_products(session: AsyncSession) -> Sequence[ProductData]:
    stmt = select(ProductData).order_by(ProductData.item_name, ProductData.barcode)
    result = await session.execute(stmt)
    return result.scalars().all()


@_storage_errors
async def get_product(session: AsyncSession, barcode: str) -> ProductData:
    product = await session.get(ProductData, barcode.strip())
    if product is None:
        raise NotFoundError("Product", barcode)
    return product


@_storage_errors
async def find_product(session: AsyncSession, barcode: str) -> ProductData | None:
    if not barcode:
        return None
    return await session.get(ProductData, barcode)


@_storage_errors
async def update_product(
    session: AsyncSession, barcode: str, data: schemas.ProductUpdate
) -> ProductData:
    product = await get_product(session, barcode)
    changes = data.model_dump(exclude_unset=True)
    if "item_name" in changes:
        name = (changes["item_name"] or "").strip()
        if not name:
            raise ValidationError("Item name is required", field="item_name")
        product.item_name = name
    if "description" in changes:
        product.description = (changes["description"] or "").strip()
    await session.flush()
    return product


@_storage_errors
async def delete_product(session: AsyncSession, barcode: str) -> None:
    product = await get_product(session, barcode)
    await session.delete(product)
    await session.flush()


@_storage_errors
async def clear_products(session: AsyncSession) -> int:
    products = (await session.execute(select(ProductData))).scalars().all()
    for product in products:
        await session.delete(product)
    await session.flush()
    return len(products)


@_storage_errors
async def lookup_products(session: AsyncSession, query: str) -> Sequence[ProductData]:
    """Match catalog entries by barcode prefix or by item name.

    Queries carrying at least eight digits are treated as a (possibly
    partial) barcode, anything else as a case-insensitive name fragment.
    """

    value = (query or "").strip().lower()
    if not value:
        return []
    digits = re.sub(r"\D", "", value)[:_LOOKUP_BARCODE_MAX_DIGITS]
    if len(digits) >= _LOOKUP_BARCODE_MIN_DIGITS:
        clause = ProductData.barcode.startswith(digits, autoescape=True)
    else:
        clause = ProductData.item_name.icontains(value, autoescape=True)
    stmt = select(ProductData).where(clause).order_by(ProductData.item_name)
    result = await session.execute(stmt)
    return result.scalars().all()


@_storage_errors
async def suggest_barcodes(
    session: AsyncSession, partial: str, *, limit: int = 10
) -> Sequence[ProductData]:
    partial = (partial or "").strip()
    if len(partial) < 2:
        return []
    stmt = (
        select(ProductData)
        .where(ProductData.barcode.contains(partial, autoescape=True))
        .order_by(ProductData.barcode)
        .limit(limit)
    )
    result = await session.execute(stmt)
    return result.scalars().all()


# ----------------------------------------------------------------------
# Notification settings
# ----------------------------------------------------------------------
@_storage_errors
async def load_notification_settings(session: AsyncSession) -> schemas.NotificationSettings:
    """Return the settings singleton, creating it with defaults on first use."""

    row = await session.get(NotificationSettingsRow, SETTINGS_ROW_ID)
    if row is None:
        defaults = schemas.NotificationSettings()
        row = NotificationSettingsRow(id=SETTINGS_ROW_ID, **defaults.model_dump())
        session.add(row)
        await session.flush()
        logger.info("Created default notification settings")
    return schemas.NotificationSettings.model_validate(row)


@_storage_errors
async def save_notification_settings(
    session: AsyncSession, settings: schemas.NotificationSettings
) -> schemas.NotificationSettings:
    row = await session.get(NotificationSettingsRow, SETTINGS_ROW_ID)
    if row is None:
        row = NotificationSettingsRow(id=SETTINGS_ROW_ID)
        session.add(row)
    for field, value in settings.model_dump().items():
        setattr(row, field, value)
    await session.flush()
    return schemas.NotificationSettings.model_validate(row)


__all__ = [name for name in globals() if not name.startswith("_")]
