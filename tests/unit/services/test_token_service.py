"""
Unit tests for the credential lifecycle: creation, validation, updates,
deletion and backup.
"""

import json
import time
from datetime import UTC, datetime

import pytest

from acrostic_core.config import StorageConfig
from acrostic_core.exceptions import ErrorCode, RepositoryError, SecretStoreError, ValidationError
from acrostic_core.services import TokenService
from acrostic_core.stores import InMemorySecretStore

NOW = datetime(2025, 3, 1, tzinfo=UTC)


class LockedSecretStore(InMemorySecretStore):
    """Vault that refuses writes, like a locked device keychain."""

    def store(self, account, secret):
        raise SecretStoreError("Keychain locked", account=account)


class StalledSecretStore(InMemorySecretStore):
    def retrieve(self, account):
        time.sleep(0.5)
        return super().retrieve(account)

    def delete(self, account):
        time.sleep(0.5)
        super().delete(account)


@pytest.fixture
def tokens(storage, secret_store, remote, storage_config):
    return TokenService(storage, secret_store, remote, storage_config, clock=lambda: NOW)


class TestCreateToken:
    async def test_create_stores_record_and_secret(self, tokens, secret_store):
        created = await tokens.create_token("Personal", "  secret_abc ")

        assert tokens.get_token(created.id).name == "Personal"
        assert secret_store.retrieve(created.id) == "secret_abc"
        assert created.is_activated is False

    async def test_empty_secret_is_rejected(self, tokens):
        with pytest.raises(ValidationError):
            await tokens.create_token("Personal", "   ")

        assert tokens.list_tokens() == []

    async def test_empty_name_is_rejected(self, tokens):
        with pytest.raises(ValidationError) as exc_info:
            await tokens.create_token("", "secret_abc")

        assert exc_info.value.context["field"] == "name"

    async def test_record_is_removed_when_secret_cannot_be_stored(
        self, storage, remote, storage_config
    ):
        service = TokenService(storage, LockedSecretStore(), remote, storage_config)

        with pytest.raises(SecretStoreError):
            await service.create_token("Personal", "secret_abc")

        assert service.list_tokens() == []


class TestValidateToken:
    async def test_success_refreshes_workspace(self, tokens, remote):
        remote.add_user("secret_abc", "Acme", workspace_id="ws-1")
        created = await tokens.create_token("Personal", "secret_abc")

        assert await tokens.validate_token(created.id) is True

        stored = tokens.get_token(created.id)
        assert stored.connection_status is True
        assert stored.workspace_name == "Acme"
        assert stored.workspace_id == "ws-1"
        assert stored.last_validated == NOW

    async def test_failure_deactivates(self, tokens):
        created = await tokens.create_token("Personal", "revoked")
        tokens.set_activation(created.id, True)

        assert await tokens.validate_token(created.id) is False

        stored = tokens.get_token(created.id)
        assert stored.connection_status is False
        assert stored.is_activated is False

    async def test_missing_secret_counts_as_failure(self, tokens, secret_store, remote):
        remote.add_user("secret_abc", "Acme")
        created = await tokens.create_token("Personal", "secret_abc")
        secret_store.delete(created.id)

        assert await tokens.validate_token(created.id) is False

    async def test_unknown_credential(self, tokens):
        with pytest.raises(RepositoryError) as exc_info:
            await tokens.validate_token("missing")

        assert exc_info.value.error_code == ErrorCode.NOT_FOUND

    async def test_validate_all_summary(self, tokens, remote):
        remote.add_user("good", "Acme")
        await tokens.create_token("Good", "good")
        bad = await tokens.create_token("Bad", "bad")

        summary = await tokens.validate_all_tokens()

        assert summary.total == 2
        assert summary.invalid_ids == [bad.id]
        assert summary.message == "1 of 2 credentials failed validation"

    async def test_stalled_vault_times_out(self, storage, remote):
        config = StorageConfig(secret_store_timeout_seconds=0.05)
        vault = StalledSecretStore()
        service = TokenService(storage, vault, remote, config)
        created = await service.create_token("Personal", "secret_abc")

        with pytest.raises(SecretStoreError) as exc_info:
            await service.get_secret(created.id)

        assert exc_info.value.context["timeout_seconds"] == 0.05


class TestUpdateAndDelete:
    async def test_update_name_and_secret(self, tokens, secret_store):
        created = await tokens.create_token("Old", "secret_abc")

        updated = await tokens.update_token(created.id, name="New", secret="secret_xyz")

        assert updated.name == "New"
        assert tokens.get_token(created.id).name == "New"
        assert secret_store.retrieve(created.id) == "secret_xyz"

    async def test_update_rejects_blank_name(self, tokens):
        created = await tokens.create_token("Old", "secret_abc")

        with pytest.raises(ValidationError):
            await tokens.update_token(created.id, name=" ")

    async def test_set_activation(self, tokens):
        created = await tokens.create_token("Personal", "secret_abc")

        tokens.set_activation(created.id, True)

        assert [t.id for t in tokens.activated_tokens()] == [created.id]

    async def test_delete_removes_record_and_secret(self, tokens, secret_store):
        created = await tokens.create_token("Personal", "secret_abc")

        await tokens.delete_token(created.id)

        assert tokens.get_token(created.id) is None
        assert secret_store.retrieve(created.id) is None

    async def test_record_survives_failed_secret_delete(self, storage, remote):
        """The record is only removed once its secret is gone."""
        config = StorageConfig(secret_store_timeout_seconds=0.05)
        service = TokenService(storage, StalledSecretStore(), remote, config)
        created = await service.create_token("Personal", "secret_abc")

        with pytest.raises(SecretStoreError):
            await service.delete_token(created.id)

        assert service.get_token(created.id) is not None


class TestBackup:
    async def test_export_contains_secrets(self, tokens, secret_store):
        created = await tokens.create_token("Personal", "secret_abc")
        orphan = await tokens.create_token("Orphan", "secret_def")
        secret_store.delete(orphan.id)

        exported = json.loads(await tokens.export_tokens())

        assert exported == [
            {
                "id": created.id,
                "name": "Personal",
                "apiToken": "secret_abc",
                "workspaceID": "",
                "workspaceName": "",
            }
        ]

    async def test_import_creates_and_updates(self, tokens, secret_store):
        existing = await tokens.create_token("Old", "secret_abc")
        tokens.set_activation(existing.id, True)
        backup = json.dumps(
            [
                {"id": existing.id, "name": "Renamed", "apiToken": "secret_new"},
                {
                    "id": "restored",
                    "name": "Restored",
                    "apiToken": "secret_r",
                    "workspaceName": "Acme",
                },
            ]
        )

        assert await tokens.import_tokens(backup) == 2

        updated = tokens.get_token(existing.id)
        assert updated.name == "Renamed"
        assert updated.is_activated is True
        assert tokens.get_token("restored").workspace_name == "Acme"
        assert secret_store.retrieve(existing.id) == "secret_new"
        assert secret_store.retrieve("restored") == "secret_r"

    @pytest.mark.parametrize(
        "payload",
        ["not json", json.dumps({"id": "x"}), json.dumps([{"id": "x", "name": "n"}])],
    )
    async def test_malformed_backup(self, tokens, payload):
        with pytest.raises(ValidationError) as exc_info:
            await tokens.import_tokens(payload)

        assert exc_info.value.error_code == ErrorCode.INVALID_FORMAT
