import pytest

from app.core import config
from app.core.config import require_settings


def test_database_url_is_required(reload_config):
    settings = reload_config(DATABASE_URL=None)

    assert settings.DB_URL is None
    with pytest.raises(settings.ConfigurationError, match="DB_URL"):
        settings.require_settings("DB_URL")


def test_database_url_read_from_environment(reload_config):
    settings = reload_config(DATABASE_URL="postgres://svc:pw@localhost:5432/shop")

    assert settings.DB_URL == "postgres://svc:pw@localhost:5432/shop"
    settings.require_settings("DB_URL")


def test_require_settings_lists_every_missing_name(monkeypatch):
    monkeypatch.setattr(config, "DB_URL", "sqlite://:memory:")
    monkeypatch.setattr(config, "WEBHOOK_SECRET", None)
    monkeypatch.setattr(config, "CRM_API_TOKEN", "")

    with pytest.raises(config.ConfigurationError) as exc:
        require_settings("DB_URL", "WEBHOOK_SECRET", "CRM_API_TOKEN")

    assert "WEBHOOK_SECRET" in str(exc.value)
    assert "CRM_API_TOKEN" in str(exc.value)
    assert "DB_URL" not in str(exc.value)


def test_require_settings_passes_when_configured(monkeypatch):
    monkeypatch.setattr(config, "DB_URL", "sqlite://:memory:")
    monkeypatch.setattr(config, "WEBHOOK_SECRET", "secret")

    require_settings("DB_URL", "WEBHOOK_SECRET")
