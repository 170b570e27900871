"""
Unit tests for the SQL storage backends and the cross-backend migration.
"""

import pytest

from acrostic_core.constants import StorageLocation
from acrostic_core.db import Database, Task, Token
from acrostic_core.exceptions import (
    ErrorCode,
    RepositoryError,
    StorageInitializationError,
    StorageMigrationError,
)
from acrostic_core.schemas import CredentialRecord, DatabaseRecord
from acrostic_core.storage import LocalStorageBackend, SyncedStorageBackend
from tests.fixtures.factories import DatabaseFactory, TaskFactory, TokenFactory


class RecordingBackend(LocalStorageBackend):
    """Local backend that records the order of writes it receives."""

    def __init__(self, config):
        super().__init__(config)
        self.events = []

    def save_credential(self, credential):
        self.events.append(("credential", credential.id))
        return super().save_credential(credential)

    def save_database(self, database, credential_id):
        self.events.append(("database", database.id, credential_id))
        return super().save_database(database, credential_id)


class RejectingBackend(LocalStorageBackend):
    """Local backend whose database writes always fail."""

    def save_database(self, database, credential_id):
        raise RepositoryError("disk full", backend=self.location.value)


def credential(credential_id="t-1", **kwargs):
    return CredentialRecord(id=credential_id, name=kwargs.pop("name", "Personal"), **kwargs)


class TestInitialization:
    def test_initialize_is_idempotent(self, local_db_config):
        backend = LocalStorageBackend(local_db_config)
        backend.initialize()
        manager = backend.db_manager

        backend.initialize()

        assert backend.is_initialized
        assert backend.db_manager is manager
        backend.close()
        assert not backend.is_initialized

    def test_unconfigured_synced_backend_fails(self):
        backend = SyncedStorageBackend(None)

        with pytest.raises(StorageInitializationError) as exc_info:
            backend.initialize()

        assert exc_info.value.error_code == ErrorCode.STORAGE_UNAVAILABLE
        assert backend.location == StorageLocation.CLOUD

    def test_use_before_initialize(self, local_db_config):
        with pytest.raises(StorageInitializationError):
            LocalStorageBackend(local_db_config).list_credentials()


class TestSessionScope:
    def test_commits_on_success(self, local_backend):
        with local_backend.session_scope() as session:
            session.add(Token(id="t-1", name="Personal"))

        assert local_backend.get_credential("t-1") is not None

    def test_rolls_back_and_wraps_database_errors(self, local_backend):
        with pytest.raises(RepositoryError) as exc_info:
            with local_backend.session_scope() as session:
                session.add(Token(id="t-1", name=None))

        assert exc_info.value.error_code == ErrorCode.DATABASE_ERROR
        assert local_backend.list_credentials() == []

    def test_rolls_back_on_other_errors(self, local_backend):
        with pytest.raises(KeyError):
            with local_backend.session_scope() as session:
                session.add(Token(id="t-1", name="Personal"))
                raise KeyError("boom")

        assert local_backend.list_credentials() == []


class TestCredentials:
    def test_save_is_an_upsert(self, local_backend):
        local_backend.save_credential(credential(name="Old"))
        local_backend.save_credential(credential(name="New", is_activated=True))

        stored = local_backend.list_credentials()

        assert len(stored) == 1
        assert stored[0].name == "New"
        assert stored[0].is_activated is True

    def test_update_missing_credential(self, local_backend):
        with pytest.raises(RepositoryError) as exc_info:
            local_backend.update_credential(credential("missing"))

        assert exc_info.value.error_code == ErrorCode.NOT_FOUND

    def test_update_clears_optional_fields(self, local_backend):
        local_backend.save_credential(credential(workspace_name="Acme"))

        updated = local_backend.update_credential(credential(workspace_name=None))

        assert updated.workspace_name is None
        assert local_backend.get_credential("t-1").workspace_name is None

    def test_list_is_oldest_first(self, local_backend):
        local_backend.save_credential(credential("t-1"))
        local_backend.save_credential(credential("t-2"))

        assert [c.id for c in local_backend.list_credentials()] == ["t-1", "t-2"]

    def test_delete_missing_credential(self, local_backend):
        with pytest.raises(RepositoryError) as exc_info:
            local_backend.delete_credential("missing")

        assert exc_info.value.error_code == ErrorCode.NOT_FOUND

    def test_delete_keeps_shared_databases(self, local_backend, db_session):
        """Databases also linked to another credential survive, unlinked."""
        doomed, other = TokenFactory(id="t-1"), TokenFactory(id="t-2")
        DatabaseFactory(id="solo", tokens=[doomed])
        DatabaseFactory(id="shared", tokens=[doomed, other])
        TaskFactory(token=doomed)

        local_backend.delete_credential("t-1")

        db_session.expire_all()
        remaining = db_session.query(Database).all()
        assert [d.id for d in remaining] == ["shared"]
        assert [t.id for t in remaining[0].tokens] == ["t-2"]
        assert db_session.query(Task).count() == 0


class TestDatabases:
    def test_save_requires_credential(self, local_backend):
        with pytest.raises(RepositoryError) as exc_info:
            local_backend.save_database(DatabaseRecord(id="d-1"), "missing")

        assert exc_info.value.error_code == ErrorCode.NOT_FOUND

    def test_save_upserts_and_unions_links(self, local_backend):
        local_backend.save_credential(credential("t-1"))
        local_backend.save_credential(credential("t-2"))

        local_backend.save_database(DatabaseRecord(id="d-1", title_string="Old"), "t-1")
        local_backend.save_database(
            DatabaseRecord(id="d-1", title_string="New", widget_enabled=True), "t-2"
        )

        assert [d.title_string for d in local_backend.list_databases("t-1")] == ["New"]
        assert local_backend.list_databases("t-2")[0].widget_enabled is True

    def test_list_is_ordered_by_title(self, local_backend):
        local_backend.save_credential(credential())
        local_backend.save_database(DatabaseRecord(id="d-2", title_string="Work"), "t-1")
        local_backend.save_database(DatabaseRecord(id="d-1", title_string="Home"), "t-1")

        assert [d.id for d in local_backend.list_databases("t-1")] == ["d-1", "d-2"]

    def test_delete_removes_every_record_with_the_id(self, local_backend, db_session):
        token = TokenFactory(id="t-1")
        DatabaseFactory(id="dup", tokens=[token])
        DatabaseFactory(id="dup", tokens=[token])

        local_backend.delete_database("dup")

        assert local_backend.list_databases("t-1") == []

    def test_delete_missing_database(self, local_backend):
        with pytest.raises(RepositoryError):
            local_backend.delete_database("missing")


class TestMigration:
    def test_credential_is_written_before_its_databases(self, local_backend, synced_db_config):
        local_backend.save_credential(credential("T1", is_activated=True))
        local_backend.save_database(DatabaseRecord(id="DA", title_string="A"), "T1")
        local_backend.save_database(DatabaseRecord(id="DB", title_string="B"), "T1")
        target = RecordingBackend(synced_db_config)
        target.initialize()

        migrated = target.migrate_from(local_backend)

        assert migrated == 1
        assert target.events == [
            ("credential", "T1"),
            ("database", "DA", "T1"),
            ("database", "DB", "T1"),
        ]
        assert [c.id for c in target.list_credentials()] == ["T1"]
        assert [d.id for d in target.list_databases("T1")] == ["DA", "DB"]
        target.close()

    def test_failure_keeps_already_copied_data(self, local_backend, synced_db_config):
        local_backend.save_credential(credential("T1"))
        local_backend.save_database(DatabaseRecord(id="DA"), "T1")
        target = RejectingBackend(synced_db_config)
        target.initialize()

        with pytest.raises(StorageMigrationError) as exc_info:
            target.migrate_from(local_backend)

        assert exc_info.value.context["credential_id"] == "T1"
        assert exc_info.value.context["migrated_credentials"] == 0
        assert [c.id for c in target.list_credentials()] == ["T1"]
        target.close()
