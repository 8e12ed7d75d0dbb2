import pytest
from pydantic import ValidationError

from expiry_service.barcode import BarcodeFormat
from expiry_service.config import Settings


def test_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.status_policy == "day"
    assert settings.merge_key == "barcode"
    assert settings.barcode_format is BarcodeFormat.CUSTOM
    assert settings.near_expiration_days == 7
    assert settings.notification_check_hour == 9


def test_invalid_sqlite_url() -> None:
    with pytest.raises(ValidationError):
        Settings(database_url="sqlite+aiosqlite:relative.db", _env_file=None)


def test_environment_prefix(monkeypatch) -> None:
    monkeypatch.setenv("EXPIRY_STATUS_POLICY", "month")
    monkeypatch.setenv("EXPIRY_BARCODE_FORMAT", "UPC_A")
    monkeypatch.setenv("EXPIRY_LOG_LEVEL", "debug")

    settings = Settings(_env_file=None)

    assert settings.status_policy == "month"
    assert settings.barcode_format is BarcodeFormat.UPC_A
    assert settings.log_level == "DEBUG"


def test_rejects_out_of_range_hour() -> None:
    with pytest.raises(ValidationError):
        Settings(notification_check_hour=24, _env_file=None)
