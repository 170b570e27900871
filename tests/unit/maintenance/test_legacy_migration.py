"""
Unit tests for the one-time legacy import.

The legacy schema is created with SQLAlchemy Core in its own SQLite file,
the way an old install would have left it.
"""

import json

import pytest
from sqlalchemy import Boolean, Column, Integer, MetaData, String, Table, Text, create_engine

from acrostic_core.constants import PreferenceKey
from acrostic_core.db import Database, Page, Query, SearchFilter, Task, Token, WidgetConfiguration
from acrostic_core.maintenance import LegacyDataMigration
from acrostic_core.stores import InMemorySecretStore


def legacy_tables(metadata: MetaData) -> dict:
    return {
        "token_entity": Table(
            "token_entity",
            metadata,
            Column("id", String, primary_key=True),
            Column("name", String),
            Column("api_token", String),
            Column("workspace_id", String),
            Column("workspace_name", String),
            Column("connection_status", Boolean),
            Column("is_activated", Boolean),
            Column("last_validated", String),
        ),
        "database_entity": Table(
            "database_entity",
            metadata,
            Column("pk", Integer, primary_key=True),
            Column("id", String),
            Column("title", String),
            Column("url", String),
            Column("created_time", String),
            Column("last_edited_time", String),
            Column("last_sync_tiime", String),
            Column("widget_enabled", Boolean),
            Column("widget_type", String),
            Column("token_id", String),
        ),
        "page_entity": Table(
            "page_entity",
            metadata,
            Column("id", String, primary_key=True),
            Column("title", String),
            Column("properties", Text),
            Column("database_id", String),
            Column("archived", Boolean),
            Column("url", String),
        ),
        "task_entity": Table(
            "task_entity",
            metadata,
            Column("id", String, primary_key=True),
            Column("title", String),
            Column("is_completed", Boolean),
            Column("due_date", String),
            Column("database_id", String),
            Column("token_id", String),
        ),
        "widget_configuration_entity": Table(
            "widget_configuration_entity",
            metadata,
            Column("id", String, primary_key=True),
            Column("name", String),
            Column("widget_kind", String),
            Column("widget_family", String),
            Column("config_data", Text),
            Column("database_id", String),
            Column("token_id", String),
        ),
        "query_entity": Table(
            "query_entity",
            metadata,
            Column("id", String, primary_key=True),
            Column("database_id", String),
            Column("query_data", Text),
        ),
        "search_filter_entity": Table(
            "search_filter_entity",
            metadata,
            Column("id", String, primary_key=True),
            Column("property", String),
            Column("value", String),
            Column("type", String),
        ),
    }


@pytest.fixture
def legacy_engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'legacy.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def populated_legacy(legacy_engine):
    metadata = MetaData()
    tables = legacy_tables(metadata)
    metadata.create_all(legacy_engine)

    with legacy_engine.begin() as connection:
        connection.execute(
            tables["token_entity"].insert(),
            [
                {
                    "id": "T1",
                    "name": "Personal",
                    "api_token": "secret_legacy",
                    "workspace_name": "Acme",
                    "connection_status": True,
                    "is_activated": True,
                    "last_validated": "2024-05-01T08:00:00Z",
                }
            ],
        )
        connection.execute(
            tables["database_entity"].insert(),
            [
                {
                    "id": "D1",
                    "title": "Groceries",
                    "url": "https://www.notion.so/D1",
                    "last_sync_tiime": "2024-05-01T08:00:00Z",
                    "widget_enabled": True,
                    "widget_type": "database",
                    "token_id": "T1",
                }
            ],
        )
        connection.execute(
            tables["page_entity"].insert(),
            [
                {
                    "id": "P1",
                    "title": "Buy milk",
                    "properties": json.dumps({"Done": {"type": "checkbox", "checkbox": False}}),
                    "database_id": "D1",
                    "archived": False,
                }
            ],
        )
        connection.execute(
            tables["task_entity"].insert(),
            [
                {
                    "id": "P1",
                    "title": "Buy milk",
                    "is_completed": False,
                    "due_date": "2025-01-01",
                    "database_id": "D1",
                    "token_id": "T1",
                }
            ],
        )
        connection.execute(
            tables["widget_configuration_entity"].insert(),
            [
                {
                    "id": "W1",
                    "name": "Shopping",
                    "widget_kind": "TaskListWidget",
                    "widget_family": "systemMedium",
                    "config_data": json.dumps({"showCompleted": False}),
                    "database_id": "D1",
                    "token_id": "T1",
                }
            ],
        )
        connection.execute(
            tables["query_entity"].insert(),
            [{"id": "Q1", "database_id": "D1", "query_data": json.dumps({"page_size": 50})}],
        )
        connection.execute(
            tables["search_filter_entity"].insert(),
            [{"id": "S1", "property": "object", "value": "database", "type": "database"}],
        )
    return legacy_engine


@pytest.fixture
def secrets():
    return InMemorySecretStore()


@pytest.fixture
def migration(populated_legacy, local_backend, secrets, preferences):
    return LegacyDataMigration(populated_legacy, local_backend, secrets, preferences)


class TestLegacyDataMigration:
    def test_imports_everything(self, migration, local_backend, secrets, preferences):
        assert migration.migrate_if_needed() is True

        assert preferences.get(PreferenceKey.LEGACY_MIGRATION_COMPLETED.value) is True
        assert secrets.retrieve("T1") == "secret_legacy"
        with local_backend.session_scope() as session:
            token = session.get(Token, "T1")
            assert token.workspace_name == "Acme"
            assert token.is_activated is True

            database = session.query(Database).filter(Database.id == "D1").one()
            assert database.title_string == "Groceries"
            assert database.widget_enabled is True
            assert database.last_sync_time is not None
            assert [t.id for t in database.tokens] == ["T1"]

            page = session.get(Page, "P1")
            assert page.parent_database.row_id == database.row_id
            assert page.properties["Done"]["checkbox"] is False

            task = session.get(Task, "P1")
            assert task.database.row_id == database.row_id
            assert task.token.id == "T1"
            assert task.due_date.date().isoformat() == "2025-01-01"

            widget = session.get(WidgetConfiguration, "W1")
            assert widget.configuration == {"showCompleted": False}
            assert widget.database.row_id == database.row_id

            assert session.get(Query, "Q1").page_size == 50
            assert session.get(SearchFilter, "S1").object_type == "database"

    def test_runs_once(self, migration, secrets):
        migration.migrate_if_needed()
        secrets.delete("T1")

        assert migration.migrate_if_needed() is False
        assert secrets.retrieve("T1") is None

    def test_empty_legacy_store_marks_completed(
        self, legacy_engine, local_backend, secrets, preferences
    ):
        migration = LegacyDataMigration(legacy_engine, local_backend, secrets, preferences)

        assert migration.has_legacy_data() is False
        assert migration.migrate_if_needed() is False
        assert migration.completed is True
