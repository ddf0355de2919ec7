"""Tests for configuration module."""

import pytest
from pydantic import SecretStr, ValidationError

from gestioncartes.config import Settings


def _settings(**overrides) -> Settings:
    values = {
        "database_url": SecretStr("postgresql://localhost/cartes"),
        "secret_key": SecretStr("test-secret-key"),
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def test_settings_validation(monkeypatch):
    """Test that Settings validates required fields."""
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("SECRET_KEY", raising=False)

    with pytest.raises(ValidationError) as exc_info:
        Settings(_env_file=None)

    errors = exc_info.value.errors()
    required_fields = {error["loc"][0] for error in errors}

    assert "database_url" in required_fields
    assert "secret_key" in required_fields


def test_settings_with_valid_data(monkeypatch):
    """Test Settings with valid configuration."""
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    settings = _settings()

    assert settings.database_url.get_secret_value() == "postgresql://localhost/cartes"
    assert settings.algorithm == "HS256"
    assert settings.environment == "local"
    assert settings.journal_admin_role == "Administrateur"
    assert settings.journal_default_page_size == 50
    assert settings.journal_max_page_size == 500


def test_settings_log_level_validation():
    """Test that log level is validated."""
    with pytest.raises(ValidationError) as exc_info:
        _settings(log_level="INVALID")

    assert "log_level" in str(exc_info.value)


def test_settings_log_level_case_insensitive():
    """Test that log level accepts lowercase."""
    assert _settings(log_level="debug").log_level == "DEBUG"


@pytest.mark.parametrize(
    "field",
    ["journal_default_page_size", "journal_max_page_size", "journal_retention_days"],
)
def test_journal_settings_must_be_positive(field):
    with pytest.raises(ValidationError):
        _settings(**{field: 0})


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("postgresql://u:p@db/cartes", "postgresql+asyncpg://u:p@db/cartes"),
        ("sqlite:///./cartes.db", "sqlite+aiosqlite:///./cartes.db"),
        ("postgresql+asyncpg://db/cartes", "postgresql+asyncpg://db/cartes"),
    ],
)
def test_async_database_url(url, expected):
    assert _settings(database_url=SecretStr(url)).async_database_url == expected


def test_environment_flags():
    assert _settings(environment="production").is_production
    assert not _settings(environment="staging").is_local
