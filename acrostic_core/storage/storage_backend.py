"""
Storage backend strategy.

The local and cloud-synced stores implement the same interface, so callers
never branch on which one is active. ``migrate_from`` moves all data from
another backend in dependency order: each credential before its databases.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..constants import StorageLocation
from ..exceptions import BaseError, StorageMigrationError
from ..schemas.credential_schemas import CredentialRecord
from ..schemas.workspace_schemas import DatabaseRecord
from ..utils.logger import get_logger


class StorageBackend(ABC):
    """One persistent object store holding the canonical schema."""

    location: StorageLocation

    @property
    @abstractmethod
    def is_initialized(self) -> bool:
        """Whether ``initialize`` has completed."""

    @abstractmethod
    def initialize(self) -> None:
        """Open the store and create the schema. Raises StorageInitializationError."""

    @abstractmethod
    def session_scope(self) -> AbstractContextManager[Session]:
        """Transactional session: commit on success, rollback on error."""

    @abstractmethod
    def save_credential(self, credential: CredentialRecord) -> CredentialRecord:
        """Insert or replace a credential by id."""

    @abstractmethod
    def update_credential(self, credential: CredentialRecord) -> CredentialRecord:
        """Update an existing credential; raises a NOT_FOUND RepositoryError if missing."""

    @abstractmethod
    def get_credential(self, credential_id: str) -> Optional[CredentialRecord]:
        """Return one credential or None."""

    @abstractmethod
    def list_credentials(self) -> List[CredentialRecord]:
        """All credentials, oldest first."""

    @abstractmethod
    def save_database(self, database: DatabaseRecord, credential_id: str) -> DatabaseRecord:
        """Upsert a database and link it to the credential, which must exist."""

    @abstractmethod
    def list_databases(self, credential_id: str) -> List[DatabaseRecord]:
        """Databases linked to a credential, by title."""

    @abstractmethod
    def delete_credential(self, credential_id: str) -> None:
        """Delete a credential and what only it owns."""

    @abstractmethod
    def delete_database(self, database_id: str) -> None:
        """Delete every record carrying this database id."""

    def migrate_from(self, other: "StorageBackend") -> int:
        """
        Copy every credential, then its databases, from ``other`` into this backend.

        Stops at the first credential that fails. Credentials copied before the
        failure stay in this backend; nothing is rolled back.

        Returns:
            Number of credentials migrated

        Raises:
            StorageMigrationError: If any credential or database fails to persist
        """
        logger = get_logger()
        migrated = 0

        for credential in other.list_credentials():
            try:
                self.save_credential(credential)
                for database in other.list_databases(credential.id):
                    self.save_database(database, credential.id)
            except (BaseError, SQLAlchemyError) as e:
                raise StorageMigrationError(
                    f"Migration from {other.location.value} to {self.location.value} failed",
                    cause=e,
                    source=other.location.value,
                    target=self.location.value,
                    credential_id=credential.id,
                    migrated_credentials=migrated,
                ) from e
            migrated += 1

        logger.info(
            "Storage migration completed",
            extra={
                "source": other.location.value,
                "target": self.location.value,
                "migrated_credentials": migrated,
            },
        )
        return migrated
