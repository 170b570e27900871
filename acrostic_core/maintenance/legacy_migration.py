"""
One-time import of data from the legacy object store schema.

Legacy tables are reflected rather than modelled, since the schema is frozen
and only read once. Everything is copied in a single transaction on the
target; secrets move to the secret store after that transaction commits.
Relationships are wired from the legacy foreign-key columns once every row
exists.
"""

import uuid
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from sqlalchemy import MetaData, Table, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..constants import UNTITLED, PreferenceKey
from ..db.db_base import parse_timestamp
from ..db.db_query_models import Query, SearchFilter
from ..db.db_token_models import Token
from ..db.db_widget_models import WidgetConfiguration
from ..db.db_workspace_models import Database, Page, Task
from ..exceptions import BaseError, StorageMigrationError
from ..mapping.entity_mapper import find_database
from ..storage.storage_backend import StorageBackend
from ..storage.storage_manager import StorageManager
from ..stores.key_value_store import KeyValueStore
from ..stores.secret_store import SecretStore
from ..utils.json_utils import loads
from ..utils.logger import get_logger

LEGACY_TOKEN_TABLE = "token_entity"


def _text_to_rich_text(text: Optional[str]) -> Optional[List[Dict[str, Any]]]:
    if text is None:
        return None
    return [{"type": "text", "text": {"content": text}, "plain_text": text}]


def _json_blob(value: Any) -> Any:
    """Legacy blobs are JSON text; anything undecodable is dropped."""
    if value is None or isinstance(value, (dict, list)):
        return value
    try:
        return loads(value)
    except (TypeError, ValueError):
        return None


class LegacyDataMigration:
    """Copies legacy rows into the current schema once per device."""

    def __init__(
        self,
        legacy_engine: Engine,
        backend: Union[StorageManager, StorageBackend],
        secret_store: SecretStore,
        preferences: KeyValueStore,
    ):
        self.legacy_engine = legacy_engine
        self.backend = backend
        self.secret_store = secret_store
        self.preferences = preferences
        self.logger = get_logger()

    @property
    def completed(self) -> bool:
        return bool(self.preferences.get(PreferenceKey.LEGACY_MIGRATION_COMPLETED.value, False))

    def _mark_completed(self) -> None:
        self.preferences.set(PreferenceKey.LEGACY_MIGRATION_COMPLETED.value, True)

    def _reflect(self) -> Dict[str, Table]:
        metadata = MetaData()
        metadata.reflect(bind=self.legacy_engine)
        return dict(metadata.tables)

    def _rows(self, tables: Dict[str, Table], name: str) -> List[Mapping[str, Any]]:
        table = tables.get(name)
        if table is None:
            return []
        with self.legacy_engine.connect() as connection:
            return [row._mapping for row in connection.execute(select(table))]

    def has_legacy_data(self, tables: Optional[Dict[str, Table]] = None) -> bool:
        tables = tables if tables is not None else self._reflect()
        table = tables.get(LEGACY_TOKEN_TABLE)
        if table is None:
            return False
        with self.legacy_engine.connect() as connection:
            count = connection.execute(select(func.count()).select_from(table)).scalar()
        return bool(count)

    def migrate_if_needed(self) -> bool:
        """
        Run the import unless it already ran on this device.

        Returns:
            True if legacy rows were imported

        Raises:
            StorageMigrationError: If the import fails; the completion flag stays unset
        """
        if self.completed:
            self.logger.debug("Legacy migration already completed")
            return False

        try:
            tables = self._reflect()
            if not self.has_legacy_data(tables):
                self.logger.info("No legacy data found")
                self._mark_completed()
                return False

            secrets = self._copy(tables)
            for token_id, secret in secrets:
                self.secret_store.store(token_id, secret)
        except (BaseError, SQLAlchemyError) as e:
            raise StorageMigrationError(
                "Legacy data migration failed", cause=e, source="legacy"
            ) from e

        self._mark_completed()
        self.logger.info("Legacy migration completed", extra={"tokens": len(secrets)})
        return True

    def _copy(self, tables: Dict[str, Table]) -> List[Tuple[str, str]]:
        with self.backend.session_scope() as session:
            secrets = self._copy_tokens(session, tables)
            self._copy_databases(session, tables)
            self._copy_pages(session, tables)
            self._copy_tasks(session, tables)
            self._copy_widget_configurations(session, tables)
            self._copy_queries(session, tables)
            self._copy_search_filters(session, tables)
        return secrets

    def _copy_tokens(self, session: Session, tables: Dict[str, Table]) -> List[Tuple[str, str]]:
        secrets = []
        for row in self._rows(tables, LEGACY_TOKEN_TABLE):
            token_id = str(row.get("id") or uuid.uuid4())
            token = session.get(Token, token_id) or Token(id=token_id)
            token.name = row.get("name") or token_id
            token.workspace_id = row.get("workspace_id")
            token.workspace_name = row.get("workspace_name")
            token.connection_status = bool(row.get("connection_status"))
            token.is_activated = bool(row.get("is_activated"))
            token.last_validated = parse_timestamp(row.get("last_validated"))
            session.add(token)
            if row.get("api_token"):
                secrets.append((token_id, row["api_token"]))
        session.flush()
        return secrets

    def _copy_databases(self, session: Session, tables: Dict[str, Table]) -> None:
        for row in self._rows(tables, "database_entity"):
            database = find_database(session, row.get("id"))
            if database is None:
                database = Database(id=row.get("id"))
                session.add(database)
            database.title_string = row.get("title")
            database.title = _text_to_rich_text(row.get("title"))
            database.created_time = parse_timestamp(row.get("created_time"))
            database.last_edited_time = parse_timestamp(row.get("last_edited_time"))
            # Misspelled in the legacy schema
            database.last_sync_time = parse_timestamp(row.get("last_sync_tiime"))
            database.url = row.get("url")
            database.widget_enabled = bool(row.get("widget_enabled"))
            database.widget_type = row.get("widget_type")

            token = session.get(Token, str(row["token_id"])) if row.get("token_id") else None
            if token is not None and token not in database.tokens:
                database.tokens.append(token)
        session.flush()

    def _copy_pages(self, session: Session, tables: Dict[str, Table]) -> None:
        for row in self._rows(tables, "page_entity"):
            if not row.get("id"):
                continue
            page = session.get(Page, row["id"]) or Page(id=row["id"])
            page.title = row.get("title")
            page.archived = bool(row.get("archived"))
            page.created_time = parse_timestamp(row.get("created_time"))
            page.last_edited_time = parse_timestamp(row.get("last_edited_time"))
            page.last_sync_time = parse_timestamp(row.get("last_sync_time"))
            page.url = row.get("url")
            page.properties = _json_blob(row.get("properties"))
            page.database_id = row.get("database_id")
            parent = find_database(session, row.get("database_id"))
            if parent is not None:
                page.parent_database = parent
            session.add(page)
        session.flush()

    def _copy_tasks(self, session: Session, tables: Dict[str, Table]) -> None:
        for row in self._rows(tables, "task_entity"):
            task_id = row.get("id") or row.get("page_id")
            if not task_id:
                continue
            task = session.get(Task, task_id) or Task(id=task_id)
            task.title = row.get("title") or task.title or UNTITLED
            task.is_completed = bool(row.get("is_completed"))
            task.due_date = parse_timestamp(row.get("due_date"))
            task.last_sync_time = parse_timestamp(row.get("last_sync_time"))
            task.database_id = row.get("database_id")
            database = find_database(session, row.get("database_id"))
            if database is not None:
                task.database = database
            if row.get("token_id"):
                token = session.get(Token, str(row["token_id"]))
                if token is not None:
                    task.token = token
            session.add(task)
        session.flush()

    def _copy_widget_configurations(self, session: Session, tables: Dict[str, Table]) -> None:
        for row in self._rows(tables, "widget_configuration_entity"):
            widget_id = str(row.get("id") or uuid.uuid4())
            widget = session.get(WidgetConfiguration, widget_id) or WidgetConfiguration(id=widget_id)
            widget.name = row.get("name") or widget_id
            widget.widget_family = row.get("widget_family") or ""
            widget.widget_kind = row.get("widget_kind") or ""
            widget.configuration = _json_blob(row.get("config_data")) or {}
            last_updated = parse_timestamp(row.get("last_updated"))
            if last_updated is not None:
                widget.last_updated = last_updated
            database = find_database(session, row.get("database_id"))
            if database is not None:
                widget.database = database
            if row.get("token_id"):
                token = session.get(Token, str(row["token_id"]))
                if token is not None:
                    widget.token = token
            session.add(widget)
        session.flush()

    def _copy_queries(self, session: Session, tables: Dict[str, Table]) -> None:
        for row in self._rows(tables, "query_entity"):
            if not row.get("database_id"):
                continue
            data = _json_blob(row.get("query_data"))
            data = data if isinstance(data, dict) else {}
            query = Query(
                id=str(row.get("id") or uuid.uuid4()),
                database_id=row["database_id"],
                filter=data.get("filter"),
                sorts=data.get("sorts"),
                start_cursor=data.get("start_cursor"),
                page_size=data.get("page_size"),
            )
            created_at = parse_timestamp(row.get("created_at"))
            if created_at is not None:
                query.created_at = created_at
            session.merge(query)
        session.flush()

    def _copy_search_filters(self, session: Session, tables: Dict[str, Table]) -> None:
        for row in self._rows(tables, "search_filter_entity"):
            if row.get("property") is None or row.get("value") is None:
                continue
            search_filter = SearchFilter(
                id=str(row.get("id") or uuid.uuid4()),
                property=row["property"],
                value=str(row["value"]),
                object_type=row.get("type"),
            )
            created_at = parse_timestamp(row.get("created_at"))
            if created_at is not None:
                search_filter.created_at = created_at
            session.merge(search_filter)
        session.flush()
