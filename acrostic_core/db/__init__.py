"""
SQLAlchemy models and engine management for the object store.

This module provides a common entry point for all models.
"""

from .db_base import (
    JSON,
    EncryptedBinary,
    TimestampMixin,
    ensure_utc,
    parse_timestamp,
    utc_now,
)
from .db_config import (
    Base,
    DatabaseConfig,
    DatabaseManager,
    get_development_config,
    import_all_models,
    init_db,
)
from .db_query_models import Query, SearchFilter
from .db_token_models import Token, token_database
from .db_widget_models import WidgetConfiguration
from .db_workspace_models import Database, Page, Task

__all__ = [
    # Base definitions
    "Base",
    "JSON",
    "EncryptedBinary",
    "TimestampMixin",
    "ensure_utc",
    "parse_timestamp",
    "utc_now",
    # Configuration
    "DatabaseConfig",
    "DatabaseManager",
    "get_development_config",
    "import_all_models",
    "init_db",
    # Models
    "Token",
    "token_database",
    "Database",
    "Page",
    "Task",
    "WidgetConfiguration",
    "Query",
    "SearchFilter",
]
