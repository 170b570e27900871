from .sql_backend import LocalStorageBackend, SqlStorageBackend, SyncedStorageBackend
from .storage_backend import StorageBackend
from .storage_manager import StorageManager

__all__ = [
    "LocalStorageBackend",
    "SqlStorageBackend",
    "StorageBackend",
    "StorageManager",
    "SyncedStorageBackend",
]
