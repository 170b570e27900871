"""
Constants and enums for the Acrostic core library.

This module centralizes the magic strings shared between the app process and
the widget extension so both sides agree on keys and values.
"""

from enum import Enum


class LogLevel(str, Enum):
    """Standard logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EnvironmentVariable(str, Enum):
    """Standard environment variable names."""

    APP_ENV = "APP_ENV"
    LOG_LEVEL = "LOG_LEVEL"
    LOCAL_STORE_URL = "ACROSTIC_LOCAL_STORE_URL"
    SYNCED_STORE_URL = "ACROSTIC_SYNCED_STORE_URL"
    SECRET_STORE_URL = "ACROSTIC_SECRET_STORE_URL"
    SHARED_STORE_URL = "ACROSTIC_SHARED_STORE_URL"
    PREFERENCES_URL = "ACROSTIC_PREFERENCES_URL"
    LEGACY_STORE_URL = "ACROSTIC_LEGACY_STORE_URL"
    NOTION_API_URL = "NOTION_API_URL"
    NOTION_VERSION = "NOTION_VERSION"


class StorageLocation(str, Enum):
    """Persisted values of the storage backend preference."""

    CLOUD = "icloud"
    LOCAL = "local"


class CacheType(str, Enum):
    """Cache namespaces and the shared-store key each one is written under."""

    TOKEN = "token"
    DATABASE = "database"
    TASK = "task"
    WIDGET = "widget"
    FILE = "file"

    @property
    def key(self) -> str:
        return _CACHE_KEYS[self]


_CACHE_KEYS = {
    CacheType.TOKEN: "acrostic_tokens_cache",
    CacheType.DATABASE: "acrostic_database_metadata_cache",
    CacheType.TASK: "acrostic_tasks_cache",
    CacheType.WIDGET: "acrostic_widget_data_cache",
    CacheType.FILE: "acrostic_file_metadata_cache",
}

CACHE_KEY_PREFIX = "acrostic_"
FILE_SELECTION_KEY_PREFIX = "acrostic_file_selection_"


class SharedKey(str, Enum):
    """Keys and key prefixes of the widget snapshot in the shared store."""

    TOKENS = "tokens"
    DATABASES_PREFIX = "databases_"
    TASKS_PREFIX = "tasks_"
    PROGRESS_PREFIX = "progress_"
    WIDGET_CONFIG_DATABASES_PREFIX = "widget_config_databases_"


class PreferenceKey(str, Enum):
    """Keys in the per-device preference store."""

    STORAGE_LOCATION = "storage_location_preference"
    LEGACY_MIGRATION_COMPLETED = "core_data_model_migration_completed"


class FileKind(str, Enum):
    """Kinds of items offered by the file picker."""

    DATABASE = "database"
    PAGE = "page"


class SyncTrigger(str, Enum):
    """Events that start a sync cycle."""

    LAUNCH = "launch"
    FOREGROUND = "foreground"
    BACKGROUND = "background"
    MANUAL = "manual"


class OperationStatus(str, Enum):
    """Status values for operations."""

    SUCCESS = "success"
    ERROR = "error"


SECRET_SERVICE_NAME = "com.acrostic.tokens"
KNOWN_LEGACY_DATABASE_ID = "15bed8dc2e838174bb19d5423c4e2ddf"
UNKNOWN_WORKSPACE_NAME = "Unknown"
UNTITLED = "Untitled"

TITLE_PROPERTY_CANDIDATES = ("title", "name")
COMPLETION_PROPERTY_CANDIDATES = ("status", "complete", "done", "completed", "checkbox")
DUE_DATE_PROPERTY_CANDIDATES = ("date", "due", "deadline", "due date")
COMPLETED_STATUS_NAMES = frozenset({"done", "complete", "completed"})
