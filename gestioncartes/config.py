from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: SecretStr = Field(
        ...,
        description="Database connection string (PostgreSQL in production, SQLite locally)",
    )

    # JWT verification (tokens are issued by the auth service)
    secret_key: SecretStr = Field(
        ...,
        description="Secret key used to verify JWT signatures",
    )
    algorithm: str = Field(
        default="HS256",
        description="JWT signing algorithm",
    )

    # Monitoring
    sentry_dsn: SecretStr | None = Field(
        default=None,
        description="Sentry DSN for error tracking (optional)",
    )

    # Environment
    environment: Literal["local", "staging", "production"] = Field(
        default="local",
        description="Deployment environment",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    # Journal
    journal_admin_role: str = Field(
        default="Administrateur",
        description="Role allowed to read the journal, undo actions and cancel imports",
    )
    journal_default_page_size: int = Field(
        default=50,
        description="Default number of journal entries per page",
    )
    journal_max_page_size: int = Field(
        default=500,
        description="Upper bound for the journal page size",
    )
    journal_stats_window_days: int = Field(
        default=30,
        description="Default window for activity statistics, in days",
    )
    journal_retention_days: int = Field(
        default=90,
        description="Default age after which journal entries may be purged",
    )

    # API Configuration
    api_v1_prefix: str = Field(
        default="/api/v1",
        description="API v1 route prefix",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid option."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v_upper

    @field_validator(
        "journal_default_page_size",
        "journal_max_page_size",
        "journal_stats_window_days",
        "journal_retention_days",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("journal settings must be >= 1")
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_local(self) -> bool:
        """Check if running in local environment."""
        return self.environment == "local"

    @property
    def async_database_url(self) -> str:
        """Database URL with the async driver selected."""
        url = self.database_url.get_secret_value()
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+asyncpg://", 1)
        if url.startswith("sqlite:///"):
            return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
        return url


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once and cached for the application lifetime.
    """
    return Settings()
