"""
Unit tests for the widget snapshot written to the shared store.
"""

from datetime import UTC, datetime

import pytest

from acrostic_core.constants import FileKind
from acrostic_core.schemas import CredentialRecord, DatabaseRecord, FileMetadata, TaskSnapshot
from acrostic_core.services import WidgetDataPublisher
from acrostic_core.services.widget_publisher import (
    databases_key,
    tasks_key,
    widget_config_databases_key,
)
from tests.fixtures.factories import TaskFactory


@pytest.fixture
def files():
    """Picker entries per credential, editable by each test."""
    return {}


@pytest.fixture
def reloads():
    return []


@pytest.fixture
def publisher(storage, shared_store, files, reloads, clock):
    return WidgetDataPublisher(
        storage,
        shared_store,
        files=lambda credential_id: files.get(credential_id, []),
        reload_signal=lambda: reloads.append(True),
        clock=clock,
    )


def add_credential(storage, credential_id="T1", **kwargs):
    kwargs.setdefault("name", "Personal")
    kwargs.setdefault("is_activated", True)
    return storage.save_credential(CredentialRecord(id=credential_id, **kwargs))


class TestKeys:
    def test_key_formats(self):
        assert databases_key("T1") == "databases_T1"
        assert tasks_key("T1", "D1") == "tasks_T1_D1"
        assert widget_config_databases_key("T1") == "widget_config_databases_T1"


class TestPublishTokens:
    async def test_name_falls_back_to_record_name(self, storage, publisher, shared_store):
        add_credential(storage, "T1", workspace_name="Acme", connection_status=True)
        add_credential(storage, "T2", name="Work", is_activated=False)

        publisher.publish_tokens()

        assert shared_store.get("tokens") == [
            {"id": "T1", "name": "Acme", "isConnected": True, "isActivated": True},
            {"id": "T2", "name": "Work", "isConnected": False, "isActivated": False},
        ]

    async def test_empty_store_publishes_empty_list(self, publisher, shared_store):
        assert publisher.publish_tokens() == 0
        assert shared_store.get("tokens") == []


class TestPublishDatabases:
    async def test_stored_databases_without_selection(self, storage, publisher, shared_store):
        add_credential(storage)
        storage.save_database(
            DatabaseRecord(id="D1", title_string="Tasks", widget_enabled=True, widget_type="database"),
            "T1",
        )
        storage.save_database(DatabaseRecord(id="D2", url="https://www.notion.so/D2"), "T1")

        publisher.publish_databases("T1")

        entries = {entry["id"]: entry for entry in shared_store.get("databases_T1")}
        assert entries["D1"] == {
            "id": "D1",
            "title": "Tasks",
            "widgetEnabled": True,
            "widgetType": "database",
            "url": "",
        }
        assert entries["D2"]["title"] == "Untitled"
        assert entries["D2"]["url"] == "https://www.notion.so/D2"

    async def test_selected_files_take_precedence(self, storage, publisher, shared_store, files):
        add_credential(storage)
        storage.save_database(DatabaseRecord(id="D1", title_string="Tasks"), "T1")
        files["T1"] = [
            FileMetadata(id="P9", title="Reading list", kind=FileKind.PAGE, token_id="T1", is_selected=True),
            FileMetadata(id="D1", title="Tasks", kind=FileKind.DATABASE, token_id="T1"),
        ]

        publisher.publish_databases("T1")

        assert shared_store.get("databases_T1") == [
            {"id": "P9", "title": "Reading list", "widgetEnabled": True, "widgetType": "page", "url": ""}
        ]

    async def test_empty_ids_are_dropped(self, storage, publisher, shared_store):
        add_credential(storage)
        storage.save_database(DatabaseRecord(id="", title_string="Broken"), "T1")
        storage.save_database(DatabaseRecord(id="D1", title_string="Tasks"), "T1")

        assert publisher.publish_databases("T1") == 1
        assert [entry["id"] for entry in shared_store.get("databases_T1")] == ["D1"]


class TestPublishTasks:
    async def test_due_date_is_epoch_seconds_and_optional(self, publisher, shared_store, clock):
        tasks = [
            TaskSnapshot(id="P1", title="Buy milk"),
            TaskSnapshot(
                id="P2", title="Call bank", is_completed=True, due_date=datetime(2025, 1, 1, tzinfo=UTC)
            ),
            TaskSnapshot(id="", title="Ghost"),
        ]

        assert publisher.publish_tasks("T1", "D1", tasks) == 2

        assert shared_store.get("tasks_T1_D1") == {
            "timestamp": clock.now,
            "tasks": [
                {"id": "P1", "title": "Buy milk", "isCompleted": False},
                {"id": "P2", "title": "Call bank", "isCompleted": True, "dueDate": 1735689600.0},
            ],
        }

    async def test_reads_stored_tasks(self, storage, publisher, shared_store, db_session):
        TaskFactory(id="P1", title="Later", database_id="D1")
        TaskFactory(id="P2", title="Soon", database_id="D1", due_date=datetime(2025, 1, 1))
        TaskFactory(id="P3", title="Elsewhere", database_id="D2")

        publisher.publish_tasks("T1", "D1")

        titles = [task["title"] for task in shared_store.get("tasks_T1_D1")["tasks"]]
        assert titles == ["Soon", "Later"]


class TestPublishWidgetConfigDatabases:
    async def test_lists_every_picker_entry(self, publisher, shared_store, files):
        files["T1"] = [
            FileMetadata(id="D1", title="Tasks", kind=FileKind.DATABASE, token_id="T1", is_selected=True),
            FileMetadata(id="P1", title="Notes", kind=FileKind.PAGE, token_id="T1"),
        ]

        publisher.publish_widget_config_databases("T1")

        assert shared_store.get("widget_config_databases_T1") == [
            {"id": "D1", "title": "Tasks", "type": "database", "tokenID": "T1", "isSelected": True},
            {"id": "P1", "title": "Notes", "type": "page", "tokenID": "T1", "isSelected": False},
        ]


class TestCleanupAndPublishAll:
    async def test_cleanup_removes_old_task_and_progress_entries(self, publisher, shared_store, clock):
        shared_store.set("tasks_T1_D1", {"timestamp": clock.now - 8 * 86400, "tasks": []})
        shared_store.set("progress_T1_D1", {"timestamp": clock.now - 8 * 86400})
        shared_store.set("tasks_T1_D2", {"timestamp": clock.now, "tasks": []})
        shared_store.set("tokens", [])

        removed = publisher.cleanup_stale_entries()

        assert sorted(removed) == ["progress_T1_D1", "tasks_T1_D1"]
        assert shared_store.get("tasks_T1_D2") is not None

    async def test_publish_all(self, storage, publisher, shared_store, reloads, db_session):
        add_credential(storage, "T1")
        add_credential(storage, "T2", is_activated=False)
        storage.save_database(DatabaseRecord(id="D1", widget_enabled=True), "T1")
        storage.save_database(DatabaseRecord(id="D2", widget_enabled=False), "T1")
        storage.save_database(DatabaseRecord(id="D3", widget_enabled=True), "T2")
        TaskFactory(id="P1", title="Buy milk", database_id="D1")

        publisher.publish_all()

        assert [entry["id"] for entry in shared_store.get("tokens")] == ["T1", "T2"]
        assert shared_store.get("databases_T2") is None
        assert shared_store.get("widget_config_databases_T1") == []
        assert shared_store.get("tasks_T1_D1")["tasks"][0]["title"] == "Buy milk"
        assert shared_store.get("tasks_T1_D2") is None
        assert shared_store.get("tasks_T2_D3") is None
        assert reloads == [True]
