"""
Configuration Management for Tally

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Everything the ledger touches outside its own process (the database file,
the receipt image directory) is declared and validated in one place.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Ledger database configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TALLY_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    database_url: str = Field(
        default="sqlite:///tally.db",
        description="SQLAlchemy URL of the local ledger database"
    )
    echo_sql: bool = Field(
        default=False,
        description="Log every SQL statement (debugging only)"
    )

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """The ledger is a local store; only SQLite URLs are accepted."""
        if not v.startswith("sqlite"):
            raise ValueError(f"Unsupported database URL: {v}. Only sqlite URLs are allowed")
        return v


class BlobSettings(BaseSettings):
    """Receipt and settlement-proof image storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TALLY_BLOBS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    root_dir: Path = Field(
        default=Path("receipts"),
        description="Directory holding content-addressed image blobs"
    )
    max_image_dimension: int = Field(
        default=2048,
        ge=256,
        le=8192,
        description="Longest side (px) a stored receipt image is reduced to"
    )
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum accepted image size in MB"
    )

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="TALLY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Presentation
    currency_symbol: str = Field(
        default="৳",
        min_length=1,
        max_length=5,
        description="Symbol prefixed to formatted amounts"
    )
    currency_code: str = Field(
        default="BDT",
        min_length=3,
        max_length=3,
        description="ISO 4217 code of the ledger currency"
    )
    recent_pending_limit: int = Field(
        default=5,
        ge=1,
        le=50,
        description="How many pending transactions the dashboard lists"
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
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def blobs(self) -> BlobSettings:
        return BlobSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


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
    "<name>_error" entry for every section that failed.
    """
    results = {}

    settings = get_settings()

    for name in ("storage", "blobs", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
