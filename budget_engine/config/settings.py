"""
Configuration Management for Budget Engine

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
There is no module-level database handle: the store is built from
DatabaseSettings and initialised explicitly by whoever owns it.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Relational store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BUDGET_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    url: str = Field(
        default="sqlite:///budget.db",
        description="SQLAlchemy database URL"
    )
    echo: bool = Field(
        default=False,
        description="Echo SQL statements (debugging only)"
    )
    connect_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many times to try reaching the database at startup"
    )

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Reject obviously empty URLs early."""
        if not v.strip():
            raise ValueError("Database URL cannot be empty")
        return v.strip()

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_in_memory(self) -> bool:
        """True for `sqlite://` and `sqlite:///:memory:` URLs."""
        return self.url in ("sqlite://", "sqlite:///:memory:")


class EngineSettings(BaseSettings):
    """
    Budget engine behaviour settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="BUDGET_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Projections
    default_projection_months: int = Field(
        default=12,
        ge=1,
        le=600,
        description="Projection horizon used when the caller does not pass one"
    )

    # Categories
    seed_default_categories: bool = Field(
        default=True,
        description="Seed the default category kinds for new users"
    )
    default_category_kind: str = Field(
        default="spending",
        pattern="^(bill|spending)$",
        description="Kind used when neither the rule nor the category lookup classifies an expense"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def database(self) -> DatabaseSettings:
        return DatabaseSettings()

    @property
    def engine(self) -> EngineSettings:
        return EngineSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with a
    `<name>_error` entry describing each failure.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.database
        results["database"] = True
    except Exception as e:
        results["database"] = False
        results["database_error"] = str(e)

    try:
        _ = settings.engine
        results["engine"] = True
    except Exception as e:
        results["engine"] = False
        results["engine_error"] = str(e)

    return results
