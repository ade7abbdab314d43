"""Configuration package."""

from tally.config.settings import (
    AppSettings,
    BlobSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "BlobSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
