from .cache_service import CacheService, cache_key
from .file_service import FileService
from .query_log_service import QueryLogService
from .sync_service import SyncResult, SyncService
from .token_service import TokenService
from .widget_publisher import WidgetDataPublisher
from .widget_service import WidgetService

__all__ = [
    "CacheService",
    "FileService",
    "QueryLogService",
    "SyncResult",
    "SyncService",
    "TokenService",
    "WidgetDataPublisher",
    "WidgetService",
    "cache_key",
]
