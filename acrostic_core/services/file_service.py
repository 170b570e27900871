"""
File picker data: databases and pages visible to each activated credential.

The list is cache-first with stale-while-revalidate. Selection flags are
per-device preferences keyed by file id, so they survive cache refreshes.
"""

import asyncio
from typing import List, Optional, Set

from ..config import CacheConfig
from ..constants import FILE_SELECTION_KEY_PREFIX, UNTITLED, CacheType, FileKind
from ..context.operation_context import operation
from ..exceptions import BaseError
from ..remote.remote_source import RemoteSource
from ..schemas.remote_schemas import RemoteItem
from ..schemas.workspace_schemas import FileMetadata
from ..stores.key_value_store import KeyValueStore
from ..utils.logger import get_logger
from .cache_service import CacheService
from .token_service import TokenService
from .widget_publisher import WidgetDataPublisher


def selection_key(file_id: str) -> str:
    return f"{FILE_SELECTION_KEY_PREFIX}{file_id}"


class FileService:
    """Loads, caches and tracks selection of picker entries."""

    def __init__(
        self,
        token_service: TokenService,
        remote: RemoteSource,
        cache: CacheService,
        preferences: KeyValueStore,
        config: Optional[CacheConfig] = None,
        publisher: Optional[WidgetDataPublisher] = None,
    ):
        self.token_service = token_service
        self.remote = remote
        self.cache = cache
        self.preferences = preferences
        self.config = config or CacheConfig()
        self.publisher = publisher
        self.logger = get_logger()

        self.files: List[FileMetadata] = []
        self.error_message: Optional[str] = None
        self.is_loading = False
        self._background: Set[asyncio.Task] = set()

    def is_selected(self, file_id: str) -> bool:
        return bool(self.preferences.get(selection_key(file_id), False))

    def _with_selection(self, files: List[FileMetadata]) -> List[FileMetadata]:
        return [file.model_copy(update={"is_selected": self.is_selected(file.id)}) for file in files]

    def _to_metadata(self, item: RemoteItem, token_id: str) -> Optional[FileMetadata]:
        if not item.id:
            return None
        return FileMetadata(
            id=item.id,
            title=item.plain_title or UNTITLED,
            kind=FileKind.DATABASE if item.is_database else FileKind.PAGE,
            token_id=token_id,
            is_selected=self.is_selected(item.id),
        )

    def _schedule_refresh(self) -> None:
        task = asyncio.create_task(self.refresh_metadata())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    @operation(name="file_service_load")
    async def load_files(self) -> List[FileMetadata]:
        """
        Return picker entries for activated credentials.

        A cached list younger than 24 hours is served; when it is older than
        one hour a refresh is scheduled in the background. Otherwise the list
        is fetched from the remote.
        """
        activated = {credential.id for credential in self.token_service.activated_tokens()}
        if not activated:
            self.files = []
            return self.files

        cached = self.cache.retrieve(
            CacheType.FILE,
            max_age=self.config.default_max_age_seconds,
            model=List[FileMetadata],
        )
        if cached is not None:
            self.files = [
                file for file in self._with_selection(cached) if file.token_id in activated
            ]
            age = self.cache.entry_age(CacheType.FILE)
            if age is not None and age > self.config.stale_after_seconds:
                self.logger.info("File list stale, refreshing in background", extra={"age": age})
                self._schedule_refresh()
            return self.files

        return await self.refresh_metadata()

    async def refresh_metadata(self) -> List[FileMetadata]:
        """Search every activated credential and cache the combined list."""
        self.is_loading = True
        files: List[FileMetadata] = []
        errors: List[str] = []

        try:
            for credential in self.token_service.activated_tokens():
                try:
                    secret = await self.token_service.get_secret(credential.id)
                    if not secret:
                        continue
                    items = await self.remote.search_all(secret)
                except BaseError as e:
                    errors.append(e.message)
                    continue

                for item in items:
                    metadata = self._to_metadata(item, credential.id)
                    if metadata is not None:
                        files.append(metadata)
        finally:
            self.is_loading = False

        if files:
            self.cache.store([file.model_dump(mode="json") for file in files], CacheType.FILE)
        self.files = files
        self.error_message = "\n".join(errors) if errors else None

        self.logger.info(
            "File metadata refreshed", extra={"count": len(files), "errors": len(errors)}
        )
        return files

    def files_for_token(self, token_id: str) -> List[FileMetadata]:
        files = self.files
        if not files:
            files = self.cache.retrieve(CacheType.FILE, model=List[FileMetadata]) or []
        return [file for file in self._with_selection(files) if file.token_id == token_id]

    def selected_files(self, token_id: str) -> List[FileMetadata]:
        return [file for file in self.files_for_token(token_id) if file.is_selected]

    def toggle_file_selection(self, file_id: str) -> bool:
        """
        Flip the selection flag of a file, update the cached list and
        republish the widget snapshot.

        Returns:
            The new selection state
        """
        selected = not self.is_selected(file_id)
        self.preferences.set(selection_key(file_id), selected)

        self.files = self._with_selection(self.files)
        if self.files:
            self.cache.store([file.model_dump(mode="json") for file in self.files], CacheType.FILE)

        self.logger.info("File selection changed", extra={"file_id": file_id, "selected": selected})
        if self.publisher is not None:
            self.publisher.publish_all()
        return selected

    async def wait_for_background(self) -> None:
        results = await asyncio.gather(*list(self._background), return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                self.logger.error(
                    "Background file refresh failed", extra={"error": str(result)}
                )
