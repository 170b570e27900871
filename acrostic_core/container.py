"""
Composition root.

Builds every service once and hands each its collaborators explicitly; there
are no module-level service singletons. Tests construct the container with
in-memory stores and a scripted remote source.
"""

import asyncio
import time
from typing import Callable, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from .config import AppConfig, get_config
from .db.db_config import DatabaseConfig
from .exceptions import SecretStoreError, StorageMigrationError
from .maintenance.database_repair import DatabaseRepairUtility, RepairReport
from .maintenance.legacy_migration import LegacyDataMigration
from .mapping.entity_mapper import EntityMapper
from .remote.notion_client import NotionRemoteSource
from .remote.remote_source import RemoteSource
from .services.cache_service import CacheService
from .services.file_service import FileService
from .services.query_log_service import QueryLogService
from .services.sync_service import SyncService
from .services.token_service import TokenService
from .services.widget_publisher import WidgetDataPublisher
from .services.widget_service import WidgetService
from .storage.sql_backend import LocalStorageBackend, SyncedStorageBackend
from .storage.storage_backend import StorageBackend
from .storage.storage_manager import StorageManager
from .stores.key_value_store import KeyValueStore, SqlKeyValueStore
from .stores.secret_store import SecretStore, SqlSecretStore
from .utils.logger import get_logger


class AppContainer:
    """Owns the object graph for one process."""

    def __init__(
        self,
        config: AppConfig,
        local: StorageBackend,
        synced: StorageBackend,
        secret_store: SecretStore,
        shared_store: KeyValueStore,
        preferences: KeyValueStore,
        remote: RemoteSource,
        reload_signal: Optional[Callable[[], None]] = None,
        clock: Callable[[], float] = time.time,
        legacy_engine: Optional[Engine] = None,
    ):
        self.config = config
        self.secret_store = secret_store
        self.shared_store = shared_store
        self.preferences = preferences
        self.remote = remote
        self.logger = get_logger()

        self.storage = StorageManager(local, synced, preferences, config.storage)
        self.cache = CacheService(shared_store, config.cache, clock=clock)
        self.mapper = EntityMapper()
        self.query_log = QueryLogService(self.storage)
        self.widgets = WidgetService(self.storage)
        self.repair = DatabaseRepairUtility(self.storage)
        self.legacy_migration = (
            LegacyDataMigration(legacy_engine, self.storage, secret_store, preferences)
            if legacy_engine is not None
            else None
        )

        self.tokens = TokenService(self.storage, secret_store, remote, config.storage)
        self.publisher = WidgetDataPublisher(
            self.storage,
            shared_store,
            reload_signal=reload_signal,
            config=config.cache,
            clock=clock,
        )
        self.files = FileService(
            self.tokens, remote, self.cache, preferences, config.cache, publisher=self.publisher
        )
        self.publisher.files = self.files.files_for_token

        self.sync = SyncService(
            self.storage,
            remote,
            self.tokens,
            self.files,
            self.cache,
            self.publisher,
            mapper=self.mapper,
            query_log=self.query_log,
            config=config.sync,
            cache_config=config.cache,
        )

    @classmethod
    def from_config(
        cls,
        config: Optional[AppConfig] = None,
        remote: Optional[RemoteSource] = None,
        reload_signal: Optional[Callable[[], None]] = None,
    ) -> "AppContainer":
        """Build the production graph from configuration."""
        config = config or get_config()
        storage = config.storage

        synced_config = (
            DatabaseConfig.from_url(storage.synced_store_url) if storage.synced_store_url else None
        )
        legacy_engine = (
            create_engine(storage.legacy_store_url) if storage.legacy_store_url else None
        )
        return cls(
            config=config,
            local=LocalStorageBackend(DatabaseConfig.from_url(storage.local_store_url)),
            synced=SyncedStorageBackend(synced_config),
            secret_store=SqlSecretStore(DatabaseConfig.from_url(storage.secret_store_url)),
            shared_store=SqlKeyValueStore(
                DatabaseConfig.from_url(storage.shared_store_url), namespace="shared"
            ),
            preferences=SqlKeyValueStore(
                DatabaseConfig.from_url(storage.preferences_url), namespace="preferences"
            ),
            remote=remote or NotionRemoteSource(config.remote),
            reload_signal=reload_signal,
            legacy_engine=legacy_engine,
        )

    async def start(self) -> RepairReport:
        """
        Open the secret store and the preferred object store, import any
        legacy data, then repair database records merged in from the synced
        store.
        """
        try:
            await asyncio.wait_for(
                asyncio.to_thread(self.secret_store.initialize),
                timeout=self.config.storage.secret_store_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise SecretStoreError(
                "Secret store did not open in time",
                cause=e,
                timeout_seconds=self.config.storage.secret_store_timeout_seconds,
            ) from e

        await self.storage.start()
        self._migrate_legacy_data()
        report = self.repair.run()
        self.cache.cleanup_expired_caches()
        return report

    def _migrate_legacy_data(self) -> None:
        if self.legacy_migration is None:
            return
        try:
            self.legacy_migration.migrate_if_needed()
        except StorageMigrationError:
            # Completion flag stays unset, so the import is retried on the next start
            self.logger.warning("Legacy data left in place after failed import")
        finally:
            self.legacy_migration.legacy_engine.dispose()

    async def close(self) -> None:
        await self.sync.wait_for_background()
        await self.remote.aclose()
