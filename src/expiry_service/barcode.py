"""Barcode parsing and validation.

Every input path (manual form, camera scan, spreadsheet import, catalog
entry) runs its barcode through :func:`normalize_barcode` with the single
:class:`BarcodeFormat` chosen in the settings, so a barcode stored in the
database always satisfies that one policy.
"""
from __future__ import annotations

import re
from enum import Enum
from typing import Optional

from .errors import ValidationError

_KNOWN_PREFIXES = ("UPC:", "EAN:", "CODE:", "BARCODE:")
_PRINTABLE_ASCII = re.compile(r"^[\x20-\x7E]+$")
_NON_DIGITS = re.compile(r"\D")

CUSTOM_MIN_LENGTH = 4
CUSTOM_MAX_LENGTH = 50


class BarcodeFormat(str, Enum):
    UPC_A = "UPC_A"
    EAN_13 = "EAN_13"
    CUSTOM = "CUSTOM"

    @property
    def digits(self) -> Optional[int]:
        if self is BarcodeFormat.UPC_A:
            return 12
        if self is BarcodeFormat.EAN_13:
            return 13
        return None


def parse_barcode(raw: Optional[str]) -> str:
    """Strip a known label prefix, spaces and dashes from scanner or form input."""

    if not raw:
        return ""
    cleaned = str(raw).strip()
    for prefix in _KNOWN_PREFIXES:
        if cleaned.upper().startswith(prefix):
            cleaned = cleaned[len(prefix):].strip()
            break
    return re.sub(r"[\s-]", "", cleaned)


def normalize_barcode(
    raw: Optional[str],
    barcode_format: BarcodeFormat = BarcodeFormat.CUSTOM,
    *,
    allow_empty: bool = False,
) -> str:
    """Return the canonical form of ``raw`` or raise :class:`ValidationError`."""

    cleaned = parse_barcode(raw)
    if not cleaned:
        if allow_empty:
            return ""
        raise ValidationError("Barcode cannot be empty", field="barcode")

    expected_digits = barcode_format.digits
    if expected_digits is not None:
        digits = _NON_DIGITS.sub("", cleaned)
        if len(digits) != expected_digits:
            raise ValidationError(
                f"Barcode must contain exactly {expected_digits} digits "
                f"({barcode_format.value})",
                field="barcode",
            )
        return digits

    if not (CUSTOM_MIN_LENGTH <= len(cleaned) <= CUSTOM_MAX_LENGTH):
        raise ValidationError(
            "Invalid barcode format. Must be 4-50 characters and contain valid characters.",
            field="barcode",
        )
    if not _PRINTABLE_ASCII.match(cleaned):
        raise ValidationError(
            "Barcode may only contain printable ASCII characters", field="barcode"
        )
    return cleaned


def detect_format(barcode: str) -> Optional[str]:
    """Best-effort symbology name for an already parsed barcode."""

    clean = parse_barcode(barcode)
    if not clean:
        return None
    if clean.isdigit():
        if len(clean) == 12:
            return "UPC_A"
        if len(clean) == 13:
            return "EAN_13"
        if len(clean) == 8:
            return "EAN_8"
    if CUSTOM_MIN_LENGTH <= len(clean) <= CUSTOM_MAX_LENGTH and _PRINTABLE_ASCII.match(clean):
        return "CUSTOM"
    return None


_DESCRIPTIONS = {
    "UPC_A": "UPC-A (12 digits)",
    "EAN_13": "EAN-13 (13 digits)",
    "EAN_8": "EAN-8 (8 digits)",
    "CUSTOM": "Custom Format",
}


def describe_barcode(barcode: str) -> str:
    detected = detect_format(barcode)
    if detected is None:
        return "Invalid"
    return _DESCRIPTIONS[detected]


def is_likely_product_barcode(barcode: str) -> bool:
    return detect_format(barcode) in {"UPC_A", "EAN_13", "EAN_8"}


def format_for_display(barcode: str) -> str:
    """Group the digits of retail barcodes for readability."""

    clean = (barcode or "").strip()
    if not clean.isdigit():
        return clean
    if len(clean) == 12:
        return f"{clean[:6]} {clean[6:]}"
    if len(clean) == 13:
        return f"{clean[:1]} {clean[1:7]} {clean[7:]}"
    if len(clean) == 8:
        return f"{clean[:4]} {clean[4:]}"
    return clean


__all__ = [
    "BarcodeFormat",
    "parse_barcode",
    "normalize_barcode",
    "detect_format",
    "describe_barcode",
    "is_likely_product_barcode",
    "format_for_display",
]
