"""
Secret vault for credential API tokens.

Secrets are namespaced by a fixed service name and keyed by credential id.
The SQL implementation keeps its own engine and metadata so secrets never
share tables with the object store.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import Column, DateTime, PrimaryKeyConstraint, String
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base

from ..constants import SECRET_SERVICE_NAME
from ..db.db_base import EncryptedBinary, utc_now
from ..db.db_config import DatabaseConfig, DatabaseManager
from ..exceptions import SecretStoreError
from ..utils.encryption_utils import decrypt_value, encrypt_value
from ..utils.logger import get_logger

SecretBase: Any = declarative_base()


class StoredSecret(SecretBase):
    __tablename__ = "stored_secret"

    service = Column(String(255), nullable=False)
    account = Column(String(255), nullable=False)
    value = Column(EncryptedBinary, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (PrimaryKeyConstraint("service", "account"),)


class SecretStore(ABC):
    """Store, retrieve and delete a string secret by account key."""

    def __init__(self, service: str = SECRET_SERVICE_NAME):
        self.service = service

    def initialize(self) -> None:
        """Open the vault. Slow or failing vaults raise SecretStoreError."""

    @abstractmethod
    def store(self, account: str, secret: str) -> None:
        """Create or replace the secret for ``account``."""

    @abstractmethod
    def retrieve(self, account: str) -> Optional[str]:
        """Return the secret for ``account`` or None."""

    @abstractmethod
    def delete(self, account: str) -> None:
        """Remove the secret for ``account``; missing accounts are ignored."""


class InMemorySecretStore(SecretStore):
    def __init__(self, service: str = SECRET_SERVICE_NAME):
        super().__init__(service)
        self._secrets: Dict[Tuple[str, str], str] = {}

    def store(self, account: str, secret: str) -> None:
        self._secrets[(self.service, account)] = secret

    def retrieve(self, account: str) -> Optional[str]:
        return self._secrets.get((self.service, account))

    def delete(self, account: str) -> None:
        self._secrets.pop((self.service, account), None)


class SqlSecretStore(SecretStore):
    """Secrets in a dedicated database, encrypted with pgcrypto on PostgreSQL."""

    def __init__(self, config: DatabaseConfig, service: str = SECRET_SERVICE_NAME):
        super().__init__(service)
        self.config = config
        self.db_manager: Optional[DatabaseManager] = None
        self.logger = get_logger()

    def initialize(self) -> None:
        if self.db_manager is not None:
            return
        try:
            manager = DatabaseManager(self.config, metadata=SecretBase.metadata)
            manager.create_tables()
        except SQLAlchemyError as e:
            raise SecretStoreError("Secret store could not be opened", cause=e) from e
        self.db_manager = manager

    def _session(self):
        if self.db_manager is None:
            self.initialize()
        return self.db_manager.get_session()

    def store(self, account: str, secret: str) -> None:
        session = self._session()
        try:
            record = session.get(StoredSecret, (self.service, account))
            encrypted = encrypt_value(session, secret, self.service, account)
            if record is None:
                session.add(StoredSecret(service=self.service, account=account, value=encrypted))
            else:
                record.value = encrypted
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise SecretStoreError(
                "Failed to store secret", cause=e, account=account
            ) from e
        finally:
            session.close()

        self.logger.debug("Secret stored", extra={"service": self.service, "account": account})

    def retrieve(self, account: str) -> Optional[str]:
        session = self._session()
        try:
            record = session.get(StoredSecret, (self.service, account))
            if record is None:
                return None
            return decrypt_value(session, record.value, self.service, account)
        except SQLAlchemyError as e:
            raise SecretStoreError(
                "Failed to read secret", cause=e, account=account
            ) from e
        finally:
            session.close()

    def delete(self, account: str) -> None:
        session = self._session()
        try:
            record = session.get(StoredSecret, (self.service, account))
            if record is not None:
                session.delete(record)
                session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise SecretStoreError(
                "Failed to delete secret", cause=e, account=account
            ) from e
        finally:
            session.close()
