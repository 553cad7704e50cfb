"""Configuration package."""

from budget_engine.config.settings import (
    DatabaseSettings,
    EngineSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "DatabaseSettings",
    "EngineSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
