"""Database models for expiration tracking."""
from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base

SETTINGS_ROW_ID = "default"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_record_id() -> str:
    return str(uuid.uuid4())


class TimestampMixin:
    """Mixin providing created/updated timestamp columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )


class ExpirationRecord(Base):
    __tablename__ = "expiration_records"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_expiration_records_quantity_positive"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_record_id)
    barcode: Mapped[str] = mapped_column(String(64), default="", nullable=False, index=True)
    item_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    expiration_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    notes: Mapped[str] = mapped_column(Text, default="", nullable=False)
    date_created: Mapped[date] = mapped_column(Date, nullable=False)


class ProductData(Base, TimestampMixin):
    __tablename__ = "product_data"

    barcode: Mapped[str] = mapped_column(String(64), primary_key=True)
    item_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)


class NotificationSettingsRow(Base, TimestampMixin):
    __tablename__ = "notification_settings"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=SETTINGS_ROW_ID)
    days_before_expiration: Mapped[int] = mapped_column(Integer, default=7, nullable=False)
    notify_on_expiration_day: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    quantity_threshold: Mapped[int] = mapped_column(Integer, default=2, nullable=False)


__all__ = [
    "ExpirationRecord",
    "ProductData",
    "NotificationSettingsRow",
    "SETTINGS_ROW_ID",
]
