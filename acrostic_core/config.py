"""
Centralized configuration management for the Acrostic core library.

This module provides a unified configuration system with support for:
- Environment variables (optionally loaded from a .env file)
- Storage, cache and sync tuning knobs
- Validation using Pydantic
"""

import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from .constants import EnvironmentVariable, LogLevel

load_dotenv()


class StorageConfig(BaseModel):
    """Object store, secret store and shared store locations."""

    local_store_url: str = Field(
        default_factory=lambda: os.getenv(
            EnvironmentVariable.LOCAL_STORE_URL.value, "sqlite:///./acrostic_local.db"
        ),
        description="Connection string of the device-only object store",
    )
    synced_store_url: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.SYNCED_STORE_URL.value, ""),
        description="Connection string of the cloud-synced object store (empty = unavailable)",
    )
    secret_store_url: str = Field(
        default_factory=lambda: os.getenv(
            EnvironmentVariable.SECRET_STORE_URL.value, "sqlite:///./acrostic_secrets.db"
        ),
        description="Connection string of the secret vault",
    )
    shared_store_url: str = Field(
        default_factory=lambda: os.getenv(
            EnvironmentVariable.SHARED_STORE_URL.value, "sqlite:///./acrostic_shared.db"
        ),
        description="Connection string of the store shared with the widget extension",
    )
    preferences_url: str = Field(
        default_factory=lambda: os.getenv(
            EnvironmentVariable.PREFERENCES_URL.value, "sqlite:///./acrostic_preferences.db"
        ),
        description="Connection string of the per-device preference store",
    )
    legacy_store_url: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.LEGACY_STORE_URL.value, ""),
        description="Connection string of a pre-upgrade object store to import once (empty = none)",
    )
    cloud_init_timeout_seconds: float = Field(
        default=5.0, gt=0, description="Bounded wait for the synced store to open"
    )
    secret_store_timeout_seconds: float = Field(
        default=5.0, gt=0, description="Bounded wait for secret store access"
    )


class CacheConfig(BaseModel):
    """Cache freshness and retention policy."""

    default_max_age_seconds: int = Field(
        default=24 * 60 * 60, description="Entries older than this are a cache miss"
    )
    stale_after_seconds: int = Field(
        default=60 * 60, description="Entries older than this are served and refreshed"
    )
    retention_seconds: int = Field(
        default=7 * 24 * 60 * 60, description="Sweep removes entries older than this"
    )


class SyncConfig(BaseModel):
    """Sync cycle behaviour."""

    page_size: int = Field(default=100, ge=1, le=100, description="Remote page size")
    record_queries: bool = Field(
        default=False, description="Log every remote task query in the query table"
    )


class RemoteConfig(BaseModel):
    """Notion API client configuration."""

    base_url: str = Field(
        default_factory=lambda: os.getenv(
            EnvironmentVariable.NOTION_API_URL.value, "https://api.notion.com/v1"
        ),
    )
    notion_version: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.NOTION_VERSION.value, "2022-06-28"),
    )
    timeout_seconds: float = Field(default=30.0, description="Per-request timeout")
    max_retries: int = Field(default=3, ge=1, description="Attempts per request")
    backoff_factor: float = Field(default=2.0, description="Base for exponential backoff")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.LOG_LEVEL.value, LogLevel.INFO.value),
        description="Logging level",
    )

    @field_validator("level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {level.value for level in LogLevel}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class AppConfig(BaseModel):
    """Main application configuration."""

    environment: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.APP_ENV.value, "development"),
        description="Application environment",
    )

    storage: StorageConfig = Field(default_factory=StorageConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    custom: Dict[str, Any] = Field(default_factory=dict, description="Custom configuration values")

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create configuration from environment variables."""
        return cls()

    def get_custom(self, key: str, default: Any = None) -> Any:
        """Get a custom configuration value."""
        return self.custom.get(key, default)


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None
