"""
Publishes a denormalized snapshot of the store for the widget extension.

The extension cannot open the object store, so everything it renders is
written to the shared key-value store under flat keys:

    tokens
    databases_<credentialId>
    tasks_<credentialId>_<databaseId>
    widget_config_databases_<credentialId>

Entries with an empty id are never published.
"""

import time
from typing import Callable, List, Optional

from ..config import CacheConfig
from ..constants import UNTITLED, SharedKey
from ..db.db_base import ensure_utc
from ..db.db_workspace_models import Task
from ..schemas.widget_schemas import (
    SharedDatabase,
    SharedTask,
    SharedTaskList,
    SharedToken,
    SharedWidgetConfigDatabase,
)
from ..schemas.workspace_schemas import FileMetadata, TaskSnapshot
from ..storage.storage_manager import StorageManager
from ..stores.key_value_store import KeyValueStore
from ..utils.logger import get_logger

FileProvider = Callable[[str], List[FileMetadata]]


def databases_key(credential_id: str) -> str:
    return f"{SharedKey.DATABASES_PREFIX.value}{credential_id}"


def tasks_key(credential_id: str, database_id: str) -> str:
    return f"{SharedKey.TASKS_PREFIX.value}{credential_id}_{database_id}"


def widget_config_databases_key(credential_id: str) -> str:
    return f"{SharedKey.WIDGET_CONFIG_DATABASES_PREFIX.value}{credential_id}"


class WidgetDataPublisher:
    """Writes the widget snapshot and asks the widgets to reload."""

    def __init__(
        self,
        storage: StorageManager,
        shared_store: KeyValueStore,
        files: Optional[FileProvider] = None,
        reload_signal: Optional[Callable[[], None]] = None,
        config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.storage = storage
        self.shared_store = shared_store
        self.files = files or (lambda credential_id: [])
        self.reload_signal = reload_signal or self._log_reload
        self.config = config or CacheConfig()
        self.clock = clock
        self.logger = get_logger()

    def _log_reload(self) -> None:
        self.logger.info("Widget reload requested")

    def publish_tokens(self) -> int:
        entries = [
            SharedToken(
                id=credential.id,
                name=credential.display_name,
                is_connected=credential.connection_status,
                is_activated=credential.is_activated,
            ).to_shared()
            for credential in self.storage.list_credentials()
            if credential.id
        ]
        self.shared_store.set(SharedKey.TOKENS.value, entries)
        self.logger.debug("Tokens published", extra={"count": len(entries)})
        return len(entries)

    def publish_databases(self, credential_id: str) -> int:
        """
        Publish the databases a widget may show for a credential.

        Files picked in the file selector take precedence; without a selection
        every stored database linked to the credential is listed.
        """
        selected = [file for file in self.files(credential_id) if file.is_selected and file.id]
        if selected:
            entries = [
                SharedDatabase(
                    id=file.id,
                    title=file.title,
                    widget_enabled=True,
                    widget_type=file.kind.value,
                    url="",
                ).to_shared()
                for file in selected
            ]
        else:
            entries = [
                SharedDatabase(
                    id=database.id,
                    title=database.title_string or UNTITLED,
                    widget_enabled=database.widget_enabled,
                    widget_type=database.widget_type or "",
                    url=database.url or "",
                ).to_shared()
                for database in self.storage.list_databases(credential_id)
                if database.id
            ]

        self.shared_store.set(databases_key(credential_id), entries)
        self.logger.debug(
            "Databases published",
            extra={"credential_id": credential_id, "count": len(entries), "selected": bool(selected)},
        )
        return len(entries)

    def _stored_tasks(self, database_id: str) -> List[TaskSnapshot]:
        with self.storage.session_scope() as session:
            tasks = (
                session.query(Task)
                .filter(Task.database_id == database_id)
                .order_by(Task.is_completed, Task.due_date.is_(None), Task.due_date, Task.title)
                .all()
            )
            return [TaskSnapshot.model_validate(task) for task in tasks]

    def publish_tasks(
        self,
        credential_id: str,
        database_id: str,
        tasks: Optional[List[TaskSnapshot]] = None,
    ) -> int:
        """Publish a task list; reads the stored tasks when none are given."""
        if tasks is None:
            tasks = self._stored_tasks(database_id)

        shared = SharedTaskList(
            timestamp=self.clock(),
            tasks=[
                SharedTask(
                    id=task.id,
                    title=task.title,
                    is_completed=task.is_completed,
                    due_date=ensure_utc(task.due_date).timestamp() if task.due_date else None,
                )
                for task in tasks
                if task.id
            ],
        )
        self.shared_store.set(tasks_key(credential_id, database_id), shared.to_shared())
        return len(shared.tasks)

    def publish_widget_config_databases(self, credential_id: str) -> int:
        """Publish every picker entry of a credential, selected or not."""
        entries = [
            SharedWidgetConfigDatabase(
                id=file.id,
                title=file.title,
                type=file.kind.value,
                token_id=file.token_id,
                is_selected=file.is_selected,
            ).to_shared()
            for file in self.files(credential_id)
            if file.id
        ]
        self.shared_store.set(widget_config_databases_key(credential_id), entries)
        return len(entries)

    def cleanup_stale_entries(self, older_than: Optional[float] = None) -> List[str]:
        """Remove task and progress snapshots older than the retention window."""
        window = self.config.retention_seconds if older_than is None else older_than
        now = self.clock()
        removed = []

        prefixes = (SharedKey.TASKS_PREFIX.value, SharedKey.PROGRESS_PREFIX.value)
        for key in self.shared_store.keys():
            if not key.startswith(prefixes):
                continue
            value = self.shared_store.get(key)
            timestamp = value.get("timestamp") if isinstance(value, dict) else None
            if isinstance(timestamp, (int, float)) and now - timestamp > window:
                self.shared_store.remove(key)
                removed.append(key)

        if removed:
            self.logger.info("Stale widget entries removed", extra={"count": len(removed)})
        return removed

    def publish_all(self) -> None:
        """
        Publish the full snapshot: tokens first, then per activated credential
        its databases, picker entries and the tasks of each widget-enabled
        database. Ends with the reload signal.
        """
        self.publish_tokens()

        for credential in self.storage.list_credentials():
            if not credential.is_activated:
                continue
            self.publish_databases(credential.id)
            self.publish_widget_config_databases(credential.id)
            for database in self.storage.list_databases(credential.id):
                if database.widget_enabled and database.id:
                    self.publish_tasks(credential.id, database.id)

        self.cleanup_stale_entries()
        self.reload_signal()
