"""
Active storage backend selection, fallback and migration.

The manager owns two backends and a per-device preference. It delegates every
data operation to whichever backend is active, so callers never know where
data lives.
"""

import asyncio
from contextlib import AbstractContextManager
from typing import List, Optional

from sqlalchemy.orm import Session

from ..config import StorageConfig
from ..constants import PreferenceKey, StorageLocation
from ..exceptions import (
    BaseError,
    ErrorCode,
    RepositoryError,
    StorageInitializationError,
    StorageMigrationError,
)
from ..schemas.credential_schemas import CredentialRecord
from ..schemas.workspace_schemas import DatabaseRecord
from ..stores.key_value_store import KeyValueStore
from ..utils.logger import get_logger
from .storage_backend import StorageBackend

CLOUD_UNAVAILABLE_NOTICE = (
    "iCloud storage is unavailable. Your data is being stored on this device only."
)


class StorageManager:
    """Chooses between the cloud-synced and local backends."""

    def __init__(
        self,
        local: StorageBackend,
        synced: StorageBackend,
        preferences: KeyValueStore,
        config: Optional[StorageConfig] = None,
    ):
        self.local = local
        self.synced = synced
        self.preferences = preferences
        self.config = config or StorageConfig()
        self.logger = get_logger()
        self._active: Optional[StorageBackend] = None
        self.storage_notice: Optional[str] = None

    # Preference handling

    @property
    def preferred_location(self) -> StorageLocation:
        raw = self.preferences.get(PreferenceKey.STORAGE_LOCATION.value)
        try:
            return StorageLocation(raw) if raw else StorageLocation.CLOUD
        except ValueError:
            self.logger.warning(
                "Unknown storage preference, using cloud", extra={"preference": raw}
            )
            return StorageLocation.CLOUD

    def _set_preference(self, location: StorageLocation) -> None:
        self.preferences.set(PreferenceKey.STORAGE_LOCATION.value, location.value)

    def _backend_for(self, location: StorageLocation) -> StorageBackend:
        return self.synced if location == StorageLocation.CLOUD else self.local

    @property
    def active(self) -> StorageBackend:
        if self._active is None:
            raise StorageInitializationError("Storage manager has not been started")
        return self._active

    @property
    def active_location(self) -> Optional[StorageLocation]:
        return self._active.location if self._active else None

    @property
    def alternate(self) -> StorageBackend:
        return self.local if self.active is self.synced else self.synced

    # Startup

    async def _initialize_cloud(self) -> None:
        try:
            await asyncio.wait_for(
                asyncio.to_thread(self.synced.initialize),
                timeout=self.config.cloud_init_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise StorageInitializationError(
                "Cloud store did not open in time",
                error_code=ErrorCode.TIMEOUT_ERROR,
                cause=e,
                timeout_seconds=self.config.cloud_init_timeout_seconds,
            ) from e

    async def start(self) -> StorageBackend:
        """
        Initialize the preferred backend, falling back to local storage.

        A cloud failure or timeout rewrites the preference to local and sets
        ``storage_notice`` for the UI. A local failure propagates.
        """
        if self._active is not None:
            return self._active

        if self.preferred_location == StorageLocation.CLOUD:
            try:
                await self._initialize_cloud()
                self._active = self.synced
            except StorageInitializationError as e:
                self.logger.warning(
                    "Cloud storage unavailable, falling back to local",
                    extra={"error": e.message},
                )
                self._set_preference(StorageLocation.LOCAL)
                self.storage_notice = CLOUD_UNAVAILABLE_NOTICE

        if self._active is None:
            await asyncio.to_thread(self.local.initialize)
            self._active = self.local

        self.logger.info("Storage started", extra={"location": self._active.location.value})
        return self._active

    # Switching

    async def set_storage_location(self, location: StorageLocation) -> int:
        """
        Switch the active backend, copying all data from the current one.

        On failure the preference is restored and the active backend is left
        unchanged.

        Returns:
            Number of credentials migrated

        Raises:
            StorageMigrationError: If the target cannot be opened or the copy fails
        """
        source = self.active
        target = self._backend_for(location)
        if target is source:
            self._set_preference(location)
            return 0

        previous = self.preferred_location
        self._set_preference(location)
        try:
            if location == StorageLocation.CLOUD:
                await self._initialize_cloud()
            else:
                await asyncio.to_thread(target.initialize)
            migrated = target.migrate_from(source)
        except StorageMigrationError:
            self._set_preference(previous)
            raise
        except BaseError as e:
            self._set_preference(previous)
            raise StorageMigrationError(
                f"Could not switch storage to {location.value}",
                cause=e,
                source=source.location.value,
                target=location.value,
            ) from e

        self._active = target
        self.storage_notice = None
        self.logger.info(
            "Storage location changed",
            extra={"location": location.value, "migrated_credentials": migrated},
        )
        return migrated

    async def migrate_to_cloud(self) -> int:
        return await self.set_storage_location(StorageLocation.CLOUD)

    async def migrate_to_local(self) -> int:
        return await self.set_storage_location(StorageLocation.LOCAL)

    # Delegation

    def session_scope(self) -> AbstractContextManager[Session]:
        return self.active.session_scope()

    def save_credential(self, credential: CredentialRecord) -> CredentialRecord:
        return self.active.save_credential(credential)

    def get_credential(self, credential_id: str) -> Optional[CredentialRecord]:
        return self.active.get_credential(credential_id)

    def list_credentials(self) -> List[CredentialRecord]:
        return self.active.list_credentials()

    def save_database(self, database: DatabaseRecord, credential_id: str) -> DatabaseRecord:
        return self.active.save_database(database, credential_id)

    def list_databases(self, credential_id: str) -> List[DatabaseRecord]:
        return self.active.list_databases(credential_id)

    def delete_credential(self, credential_id: str) -> None:
        self.active.delete_credential(credential_id)

    def delete_database(self, database_id: str) -> None:
        self.active.delete_database(database_id)

    def update_credential(self, credential: CredentialRecord) -> CredentialRecord:
        """Update on the active backend, then on the alternate one if that fails."""
        active = self.active
        try:
            return active.update_credential(credential)
        except BaseError as primary_error:
            alternate = self.alternate
            self.logger.warning(
                "Credential update failed on active store, trying alternate",
                extra={
                    "credential_id": credential.id,
                    "active": active.location.value,
                    "alternate": alternate.location.value,
                },
            )
            try:
                if not alternate.is_initialized:
                    alternate.initialize()
                return alternate.update_credential(credential)
            except BaseError as e:
                raise RepositoryError(
                    "Credential update failed on both stores",
                    cause=e,
                    credential_id=credential.id,
                    primary_error=primary_error.message,
                ) from e
