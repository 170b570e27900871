"""
Sync orchestrator.

A cycle runs three stages strictly in order:

1. credential refresh: validate every credential;
2. metadata refresh: database metadata and the file list for activated
   credentials, cache-first with stale-while-revalidate;
3. task refresh: query every widget-enabled database of an activated
   credential and map its pages and tasks.

Failures are collected per item and never abort later items or stages. The
cycle always ends by publishing the widget snapshot.
"""

import asyncio
from typing import List, Optional, Set

from pydantic import BaseModel, Field

from ..config import CacheConfig, SyncConfig
from ..constants import CacheType, FileKind, SyncTrigger
from ..context.operation_context import operation
from ..exceptions import BaseError, SecretStoreError
from ..mapping.entity_mapper import EntityMapper
from ..mapping.property_extraction import extract_task
from ..remote.remote_source import RemoteSource
from ..schemas.credential_schemas import CredentialRecord
from ..schemas.remote_schemas import RemoteItem
from ..schemas.workspace_schemas import TaskSnapshot
from ..storage.storage_manager import StorageManager
from ..utils.logger import get_logger
from .cache_service import CacheService
from .file_service import FileService
from .query_log_service import QueryLogService
from .token_service import TokenService
from .widget_publisher import WidgetDataPublisher


class SyncResult(BaseModel):
    """Outcome of one sync cycle."""

    trigger: SyncTrigger = SyncTrigger.MANUAL
    errors: List[str] = Field(default_factory=list)
    credentials_total: int = 0
    credentials_failed: int = 0
    databases_refreshed: int = 0
    databases_from_cache: int = 0
    background_refreshes: int = 0
    tasks_synced: int = 0

    @property
    def error_message(self) -> Optional[str]:
        return "\n".join(self.errors) if self.errors else None

    @property
    def validation_message(self) -> str:
        return f"{self.credentials_failed} of {self.credentials_total} credentials failed validation"

    @property
    def succeeded(self) -> bool:
        return not self.errors


class SyncService:
    """Runs sync cycles against the active store."""

    def __init__(
        self,
        storage: StorageManager,
        remote: RemoteSource,
        token_service: TokenService,
        file_service: FileService,
        cache: CacheService,
        publisher: WidgetDataPublisher,
        mapper: Optional[EntityMapper] = None,
        query_log: Optional[QueryLogService] = None,
        config: Optional[SyncConfig] = None,
        cache_config: Optional[CacheConfig] = None,
    ):
        self.storage = storage
        self.remote = remote
        self.token_service = token_service
        self.file_service = file_service
        self.cache = cache
        self.publisher = publisher
        self.mapper = mapper or EntityMapper()
        self.query_log = query_log
        self.config = config or SyncConfig()
        self.cache_config = cache_config or CacheConfig()
        self.logger = get_logger()

        self.is_loading = False
        self._background: Set[asyncio.Task] = set()

    # Stage 1

    async def _refresh_credentials(self, result: SyncResult) -> None:
        credentials = self.token_service.list_tokens()
        result.credentials_total = len(credentials)
        for credential in credentials:
            try:
                valid = await self.token_service.validate_token(credential.id)
            except BaseError as e:
                result.errors.append(f"{credential.display_name}: {e.message}")
                valid = False
            if not valid:
                result.credentials_failed += 1

        if result.credentials_failed:
            result.errors.append(result.validation_message)

    # Stage 2

    async def refresh_databases(self, credential: CredentialRecord) -> int:
        """Search the credential's databases, map them and cache the result."""
        secret = await self.token_service.get_secret(credential.id)
        if not secret:
            raise SecretStoreError("No secret stored for credential", token_id=credential.id)

        items = await self.remote.search_all(secret, object_type=FileKind.DATABASE.value)
        with self.storage.session_scope() as session:
            for item in items:
                self.mapper.map_database(session, item, credential_id=credential.id)

        self.cache.store(
            [item.model_dump(mode="json") for item in items],
            CacheType.DATABASE,
            credential.id,
        )
        return len(items)

    def _schedule_database_refresh(self, credential: CredentialRecord) -> None:
        async def refresh() -> None:
            try:
                await self.refresh_databases(credential)
            except BaseError as e:
                self.logger.warning(
                    "Background database refresh failed",
                    extra={"credential_id": credential.id, "error": e.message},
                )

        task = asyncio.create_task(refresh())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _refresh_metadata(self, credentials: List[CredentialRecord], result: SyncResult):
        for credential in credentials:
            try:
                cached = self.cache.retrieve(
                    CacheType.DATABASE,
                    credential.id,
                    max_age=self.cache_config.default_max_age_seconds,
                    model=List[RemoteItem],
                )
                if cached is None:
                    result.databases_refreshed += await self.refresh_databases(credential)
                    continue

                result.databases_from_cache += len(cached)
                age = self.cache.entry_age(CacheType.DATABASE, credential.id)
                if age is not None and age > self.cache_config.stale_after_seconds:
                    self._schedule_database_refresh(credential)
                    result.background_refreshes += 1
            except BaseError as e:
                result.errors.append(f"{credential.display_name}: {e.message}")

        try:
            await self.file_service.load_files()
        except BaseError as e:
            result.errors.append(e.message)
        if self.file_service.error_message:
            result.errors.append(self.file_service.error_message)

    # Stage 3

    async def sync_database_tasks(self, credential: CredentialRecord, database_id: str) -> int:
        """
        Query one database, mirror its pages and tasks into the object store
        and cache the task list. Records the remote no longer returns are
        deleted in the same transaction.
        """
        secret = await self.token_service.get_secret(credential.id)
        if not secret:
            raise SecretStoreError("No secret stored for credential", token_id=credential.id)

        items = await self.remote.query_all(secret, database_id, page_size=self.config.page_size)
        if self.query_log is not None and self.config.record_queries:
            self.query_log.save_query(database_id, page_size=self.config.page_size)

        tasks: List[TaskSnapshot] = []
        with self.storage.session_scope() as session:
            for item in items:
                if not item.id:
                    continue
                self.mapper.map_page(session, item, database_id=database_id)
                snapshot = extract_task(item)
                self.mapper.map_task(session, snapshot, database_id, credential.id)
                tasks.append(snapshot)
            self.mapper.prune_database(session, database_id, [item.id for item in items if item.id])

        self.cache.store(
            [task.model_dump(mode="json") for task in tasks],
            CacheType.TASK,
            f"{credential.id}_{database_id}",
        )
        return len(tasks)

    async def _refresh_tasks(self, credentials: List[CredentialRecord], result: SyncResult):
        for credential in credentials:
            try:
                databases = self.storage.list_databases(credential.id)
            except BaseError as e:
                result.errors.append(f"{credential.display_name}: {e.message}")
                continue

            for database in databases:
                if not database.widget_enabled or not database.id:
                    continue
                try:
                    result.tasks_synced += await self.sync_database_tasks(credential, database.id)
                except BaseError as e:
                    result.errors.append(f"{database.display_title}: {e.message}")

    # Cycle

    @operation(name="sync_service_run_cycle")
    async def run_cycle(self, trigger: SyncTrigger = SyncTrigger.MANUAL) -> SyncResult:
        result = SyncResult(trigger=trigger)
        self.is_loading = True
        self.logger.info("Sync cycle started", extra={"trigger": trigger.value})

        try:
            await self._refresh_credentials(result)

            activated = self.token_service.activated_tokens()
            await self._refresh_metadata(activated, result)
            await self._refresh_tasks(activated, result)

            try:
                self.publisher.publish_all()
            except BaseError as e:
                result.errors.append(e.message)
        finally:
            self.is_loading = False

        self.logger.info(
            "Sync cycle finished",
            extra={
                "trigger": trigger.value,
                "errors": len(result.errors),
                "credentials_failed": result.credentials_failed,
                "tasks_synced": result.tasks_synced,
            },
        )
        return result

    async def wait_for_background(self) -> None:
        """Wait for scheduled background refreshes, including the file list's."""
        if self._background:
            await asyncio.gather(*list(self._background))
        await self.file_service.wait_for_background()

