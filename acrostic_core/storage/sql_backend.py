"""SQLAlchemy implementations of the storage backend strategy."""

from contextlib import contextmanager
from typing import Iterator, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..constants import StorageLocation
from ..db.db_config import DatabaseConfig, DatabaseManager, init_db
from ..db.db_token_models import Token
from ..db.db_workspace_models import Database
from ..exceptions import (
    ErrorCode,
    RepositoryError,
    StorageInitializationError,
    not_found,
)
from ..schemas.credential_schemas import CredentialRecord
from ..schemas.workspace_schemas import DatabaseRecord
from ..utils.crud_helpers import get_record_by_id, list_records, update_record
from ..utils.logger import get_logger
from .storage_backend import StorageBackend

_CREDENTIAL_FIELDS = (
    "name",
    "workspace_id",
    "workspace_name",
    "connection_status",
    "is_activated",
    "last_validated",
)

_DATABASE_FIELDS = (
    "title",
    "title_string",
    "url",
    "created_time",
    "last_edited_time",
    "archived",
    "widget_enabled",
    "widget_type",
    "last_sync_time",
)


class SqlStorageBackend(StorageBackend):
    """Backend over one SQLAlchemy engine."""

    def __init__(self, config: Optional[DatabaseConfig], location: StorageLocation):
        self.config = config
        self.location = location
        self.db_manager: Optional[DatabaseManager] = None
        self.logger = get_logger()

    @property
    def is_initialized(self) -> bool:
        return self.db_manager is not None

    def initialize(self) -> None:
        if self.db_manager is not None:
            return
        if self.config is None:
            raise StorageInitializationError(
                f"No {self.location.value} store configured", backend=self.location.value
            )
        try:
            manager = DatabaseManager(self.config)
            init_db(manager)
        except SQLAlchemyError as e:
            raise StorageInitializationError(
                f"Could not open {self.location.value} store",
                cause=e,
                backend=self.location.value,
            ) from e
        self.db_manager = manager
        self.logger.info("Storage backend initialized", extra={"backend": self.location.value})

    def close(self) -> None:
        if self.db_manager is not None:
            self.db_manager.close()
            self.db_manager = None

    def _new_session(self) -> Session:
        if self.db_manager is None:
            raise StorageInitializationError(
                f"{self.location.value} store used before initialization",
                backend=self.location.value,
            )
        return self.db_manager.get_session()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        session = self._new_session()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise RepositoryError(
                f"{self.location.value} store transaction failed",
                cause=e,
                backend=self.location.value,
            ) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # Credentials

    def save_credential(self, credential: CredentialRecord) -> CredentialRecord:
        with self.session_scope() as session:
            token = session.get(Token, credential.id)
            if token is None:
                token = Token(id=credential.id)
                session.add(token)
            for field in _CREDENTIAL_FIELDS:
                setattr(token, field, getattr(credential, field))
            session.flush()
            saved = CredentialRecord.model_validate(token)

        self.logger.info(
            "Credential saved", extra={"backend": self.location.value, "credential_id": saved.id}
        )
        return saved

    def update_credential(self, credential: CredentialRecord) -> CredentialRecord:
        session = self._new_session()
        try:
            data = {field: getattr(credential, field) for field in _CREDENTIAL_FIELDS}
            token = update_record(session, Token, credential.id, data)
            # update_record skips None; clearing optional fields is explicit here
            for field in ("workspace_id", "workspace_name", "last_validated"):
                if data[field] is None and getattr(token, field) is not None:
                    setattr(token, field, None)
            session.commit()
            return CredentialRecord.model_validate(token)
        except SQLAlchemyError as e:
            session.rollback()
            raise RepositoryError(
                "Failed to update credential",
                error_code=ErrorCode.DATABASE_ERROR,
                cause=e,
                backend=self.location.value,
                credential_id=credential.id,
            ) from e
        finally:
            session.close()

    def get_credential(self, credential_id: str) -> Optional[CredentialRecord]:
        with self.session_scope() as session:
            token = get_record_by_id(session, Token, credential_id)
            return CredentialRecord.model_validate(token) if token else None

    def list_credentials(self) -> List[CredentialRecord]:
        with self.session_scope() as session:
            return [CredentialRecord.model_validate(t) for t in list_records(session, Token)]

    def delete_credential(self, credential_id: str) -> None:
        with self.session_scope() as session:
            token = session.get(Token, credential_id)
            if token is None:
                raise not_found("Token", token_id=credential_id)

            for database in list(token.databases):
                if len(database.tokens) <= 1:
                    session.delete(database)
                else:
                    database.tokens.remove(token)
            session.delete(token)

        self.logger.info(
            "Credential deleted",
            extra={"backend": self.location.value, "credential_id": credential_id},
        )

    # Databases

    def save_database(self, database: DatabaseRecord, credential_id: str) -> DatabaseRecord:
        with self.session_scope() as session:
            token = session.get(Token, credential_id)
            if token is None:
                raise not_found("Token", token_id=credential_id)

            record = None
            if database.id:
                record = (
                    session.query(Database)
                    .filter(Database.id == database.id)
                    .order_by(Database.row_id)
                    .first()
                )
            if record is None:
                record = Database(id=database.id)
                session.add(record)

            for field in _DATABASE_FIELDS:
                setattr(record, field, getattr(database, field))
            if token not in record.tokens:
                record.tokens.append(token)

            session.flush()
            saved = DatabaseRecord.model_validate(record)

        self.logger.debug(
            "Database saved",
            extra={
                "backend": self.location.value,
                "database_id": saved.id,
                "credential_id": credential_id,
            },
        )
        return saved

    def list_databases(self, credential_id: str) -> List[DatabaseRecord]:
        with self.session_scope() as session:
            records = (
                session.query(Database)
                .join(Database.tokens)
                .filter(Token.id == credential_id)
                .order_by(Database.title_string, Database.row_id)
                .all()
            )
            return [DatabaseRecord.model_validate(record) for record in records]

    def delete_database(self, database_id: str) -> None:
        with self.session_scope() as session:
            records = session.query(Database).filter(Database.id == database_id).all()
            if not records:
                raise not_found("Database", database_id=database_id)
            for record in records:
                session.delete(record)

        self.logger.info(
            "Database deleted",
            extra={"backend": self.location.value, "database_id": database_id},
        )


class LocalStorageBackend(SqlStorageBackend):
    """Device-only store."""

    def __init__(self, config: DatabaseConfig):
        super().__init__(config, StorageLocation.LOCAL)


class SyncedStorageBackend(SqlStorageBackend):
    """
    Cloud-synced store with the same schema.

    A missing configuration means no cloud account or container is available;
    ``initialize`` then fails and the storage manager falls back to local.
    """

    def __init__(self, config: Optional[DatabaseConfig]):
        super().__init__(config, StorageLocation.CLOUD)
