"""
Flat string-keyed stores.

The same abstraction backs two things: the store shared with the widget
extension (cross-process, last write wins per key) and the per-device
preference store. Values must be JSON-serializable.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from sqlalchemy import Column, DateTime, PrimaryKeyConstraint, String, delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base

from ..db.db_base import JSON, utc_now
from ..db.db_config import DatabaseConfig, DatabaseManager
from ..exceptions import RepositoryError
from ..utils.logger import get_logger

KeyValueBase: Any = declarative_base()


class KeyValueEntry(KeyValueBase):
    __tablename__ = "key_value_entry"

    namespace = Column(String(64), nullable=False)
    key = Column(String(512), nullable=False)
    value = Column(JSON, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (PrimaryKeyConstraint("namespace", "key"),)


class KeyValueStore(ABC):
    """A flat, unordered, string-keyed map. No multi-key transactions."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the value under ``key`` or ``default``."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Write ``value`` under ``key``, replacing whatever was there."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete ``key``; missing keys are ignored."""

    @abstractmethod
    def keys(self) -> List[str]:
        """Snapshot of the current keys."""

    def keys_with_prefix(self, prefix: str) -> List[str]:
        return [key for key in self.keys() if key.startswith(prefix)]


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store, used in tests and as a fallback."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data.keys())


class SqlKeyValueStore(KeyValueStore):
    """
    Store kept as one row per key in a database other processes can open.

    Every read goes back to the database so writes by another process are
    observed. Each ``set`` is a single-row upsert, so writers touching
    different keys never overwrite each other; writers racing on the same
    key resolve last write wins. Several stores may share one database as
    long as their ``namespace`` differs.
    """

    def __init__(self, config: DatabaseConfig, namespace: str = "shared"):
        self.config = config
        self.namespace = namespace
        self.db_manager: Optional[DatabaseManager] = None
        self.logger = get_logger()

    def initialize(self) -> None:
        if self.db_manager is not None:
            return
        try:
            manager = DatabaseManager(self.config, metadata=KeyValueBase.metadata)
            manager.create_tables()
        except SQLAlchemyError as e:
            raise RepositoryError(
                "Key-value store could not be opened", cause=e, namespace=self.namespace
            ) from e
        self.db_manager = manager
        self.logger.debug("Key-value store opened", extra={"namespace": self.namespace})

    def close(self) -> None:
        if self.db_manager is not None:
            self.db_manager.close()
            self.db_manager = None

    def _session(self):
        if self.db_manager is None:
            self.initialize()
        return self.db_manager.get_session()

    def _upsert(self, key: str, value: Any):
        dialect = postgresql if self.db_manager.engine.dialect.name == "postgresql" else sqlite
        stmt = dialect.insert(KeyValueEntry.__table__).values(
            namespace=self.namespace, key=key, value=value, updated_at=utc_now()
        )
        return stmt.on_conflict_do_update(
            index_elements=["namespace", "key"],
            set_={"value": stmt.excluded.value, "updated_at": stmt.excluded.updated_at},
        )

    def get(self, key: str, default: Any = None) -> Any:
        session = self._session()
        try:
            record = session.get(KeyValueEntry, (self.namespace, key))
            return default if record is None else record.value
        except SQLAlchemyError as e:
            raise RepositoryError(
                "Failed to read key", cause=e, namespace=self.namespace, key=key
            ) from e
        finally:
            session.close()

    def set(self, key: str, value: Any) -> None:
        session = self._session()
        try:
            session.execute(self._upsert(key, value))
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise RepositoryError(
                "Failed to write key", cause=e, namespace=self.namespace, key=key
            ) from e
        finally:
            session.close()

    def remove(self, key: str) -> None:
        session = self._session()
        try:
            session.execute(
                delete(KeyValueEntry).where(
                    KeyValueEntry.namespace == self.namespace, KeyValueEntry.key == key
                )
            )
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise RepositoryError(
                "Failed to remove key", cause=e, namespace=self.namespace, key=key
            ) from e
        finally:
            session.close()

    def keys(self) -> List[str]:
        session = self._session()
        try:
            return list(
                session.scalars(
                    select(KeyValueEntry.key).where(KeyValueEntry.namespace == self.namespace)
                )
            )
        except SQLAlchemyError as e:
            raise RepositoryError(
                "Failed to list keys", cause=e, namespace=self.namespace
            ) from e
        finally:
            session.close()
