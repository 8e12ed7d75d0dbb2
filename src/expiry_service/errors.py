"""Exception types raised by the service layer."""
from __future__ import annotations

from typing import Optional


class ExpiryServiceError(Exception):
    """Base class for errors raised by the expiry service."""


class ValidationError(ExpiryServiceError):
    """Input rejected before any mutation took place."""

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class MissingColumnError(ValidationError):
    """A required spreadsheet column could not be matched to any header."""

    def __init__(self, message: str, *, column: str) -> None:
        super().__init__(message, field=column)
        self.column = column


class NotFoundError(ExpiryServiceError):
    """An operation referenced an id or barcode that does not exist."""

    def __init__(self, kind: str, key: str) -> None:
        super().__init__(f"{kind} {key} not found")
        self.kind = kind
        self.key = key


class ImportRowError(ExpiryServiceError):
    """A single spreadsheet row that was skipped during import.

    Row numbers are 1-indexed and count the header row, so the first data
    row is row 2.
    """

    def __init__(self, row: int, reason: str) -> None:
        super().__init__(f"Row {row}: {reason}")
        self.row = row
        self.reason = reason


class StorageError(ExpiryServiceError):
    """Opaque failure reported by the persistence layer."""


__all__ = [
    "ExpiryServiceError",
    "ValidationError",
    "MissingColumnError",
    "NotFoundError",
    "ImportRowError",
    "StorageError",
]
