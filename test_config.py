import pytest
from pydantic import ValidationError

from rentdesk.config import Settings


def test_app_secret_is_required(monkeypatch):
    monkeypatch.delenv("APP_SECRET", raising=False)
    with pytest.raises(ValidationError, match="APP_SECRET"):
        Settings(_env_file=None)


def test_settings_read_from_env(monkeypatch):
    monkeypatch.setenv("APP_SECRET", "s3cret")
    monkeypatch.setenv("RECEIPT_TOLERANCE_PERCENT", "1.5")
    s = Settings(_env_file=None)
    assert s.APP_SECRET == "s3cret"
    assert s.RECEIPT_TOLERANCE_PERCENT == 1.5
    assert s.BOOKING_EXPIRATION_HOURS == 24
