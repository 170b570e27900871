"""
Credential lifecycle: records in the object store, secrets in the vault.

A credential record never carries its secret. Every secret store call is
bounded by ``storage.secret_store_timeout_seconds`` so a stalled vault cannot
hang a sync cycle.
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, List, Optional

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..config import StorageConfig
from ..context.operation_context import operation
from ..db.db_base import utc_now
from ..exceptions import (
    ErrorCode,
    ExternalServiceError,
    SecretStoreError,
    ValidationError,
    not_found,
    validation_failed,
)
from ..remote.remote_source import RemoteSource
from ..schemas.credential_schemas import CredentialExport, CredentialRecord, ValidationSummary
from ..storage.storage_manager import StorageManager
from ..stores.secret_store import SecretStore
from ..utils.json_utils import dumps, loads
from ..utils.logger import get_logger

_EXPORT_ADAPTER = TypeAdapter(List[CredentialExport])


class TokenService:
    """Create, validate, update, remove and back up credentials."""

    def __init__(
        self,
        storage: StorageManager,
        secret_store: SecretStore,
        remote: RemoteSource,
        config: Optional[StorageConfig] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.storage = storage
        self.secret_store = secret_store
        self.remote = remote
        self.config = config or StorageConfig()
        self.clock = clock
        self.logger = get_logger()

    async def _secret_call(self, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args),
                timeout=self.config.secret_store_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise SecretStoreError(
                "Secret store did not respond in time",
                cause=e,
                operation=func.__name__,
                timeout_seconds=self.config.secret_store_timeout_seconds,
            ) from e

    def _require(self, token_id: str) -> CredentialRecord:
        credential = self.storage.get_credential(token_id)
        if credential is None:
            raise not_found("Token", token_id=token_id)
        return credential

    # Queries

    def get_token(self, token_id: str) -> Optional[CredentialRecord]:
        return self.storage.get_credential(token_id)

    def list_tokens(self) -> List[CredentialRecord]:
        return self.storage.list_credentials()

    def activated_tokens(self) -> List[CredentialRecord]:
        return [credential for credential in self.storage.list_credentials() if credential.is_activated]

    async def get_secret(self, token_id: str) -> Optional[str]:
        return await self._secret_call(self.secret_store.retrieve, token_id)

    # Commands

    @operation(name="token_service_create")
    async def create_token(self, name: str, secret: str) -> CredentialRecord:
        """
        Save a new credential and its secret.

        The record is removed again when the secret cannot be stored, so no
        credential exists without a secret.

        Raises:
            ValidationError: If the name or secret is empty
            SecretStoreError: If the secret cannot be stored
        """
        if not secret or not secret.strip():
            raise validation_failed("secret", "", "must not be empty")
        try:
            record = CredentialRecord(name=name)
        except PydanticValidationError as e:
            raise validation_failed("name", name, "must not be empty", cause=e) from e

        saved = self.storage.save_credential(record)
        try:
            await self._secret_call(self.secret_store.store, saved.id, secret.strip())
        except SecretStoreError:
            self.logger.warning(
                "Secret not stored, removing credential", extra={"token_id": saved.id}
            )
            self.storage.delete_credential(saved.id)
            raise

        self.logger.info("Credential created", extra={"token_id": saved.id})
        return saved

    @operation(name="token_service_validate")
    async def validate_token(self, token_id: str) -> bool:
        """
        Check the credential against the remote and record the outcome.

        Success refreshes the workspace name and id. Failure clears both the
        connection status and the activation flag in the same update.
        """
        credential = self._require(token_id)
        now = self.clock()
        try:
            secret = await self.get_secret(token_id)
            if not secret:
                raise SecretStoreError("No secret stored for credential", token_id=token_id)
            user = await self.remote.retrieve_bot_user(secret)
        except (ExternalServiceError, SecretStoreError) as e:
            self.logger.warning(
                "Credential validation failed",
                extra={"token_id": token_id, "error_code": e.error_code.value},
            )
            updated = credential.model_copy(
                update={"connection_status": False, "is_activated": False, "last_validated": now}
            )
            self.storage.update_credential(updated)
            return False

        updated = credential.model_copy(
            update={
                "connection_status": True,
                "last_validated": now,
                "workspace_name": user.workspace_name or credential.workspace_name,
                "workspace_id": user.workspace_id or credential.workspace_id,
            }
        )
        self.storage.update_credential(updated)
        return True

    async def validate_all_tokens(self) -> ValidationSummary:
        credentials = self.storage.list_credentials()
        invalid_ids = []
        for credential in credentials:
            if not await self.validate_token(credential.id):
                invalid_ids.append(credential.id)

        summary = ValidationSummary(total=len(credentials), invalid_ids=invalid_ids)
        self.logger.info(
            "Credentials validated", extra={"total": summary.total, "failed": summary.failed}
        )
        return summary

    @operation(name="token_service_update")
    async def update_token(
        self, token_id: str, name: Optional[str] = None, secret: Optional[str] = None
    ) -> CredentialRecord:
        credential = self._require(token_id)
        if name is not None:
            if not name.strip():
                raise validation_failed("name", name, "must not be empty")
            credential = credential.model_copy(update={"name": name.strip()})
            credential = self.storage.update_credential(credential)
        if secret is not None:
            if not secret.strip():
                raise validation_failed("secret", "", "must not be empty")
            await self._secret_call(self.secret_store.store, token_id, secret.strip())
        return credential

    def set_activation(self, token_id: str, activated: bool) -> CredentialRecord:
        credential = self._require(token_id)
        updated = self.storage.update_credential(
            credential.model_copy(update={"is_activated": activated})
        )
        self.logger.info(
            "Credential activation changed", extra={"token_id": token_id, "activated": activated}
        )
        return updated

    @operation(name="token_service_delete")
    async def delete_token(self, token_id: str) -> None:
        """
        Remove the secret first, then the record. A failed secret delete
        leaves the record in place so the deletion can be retried.
        """
        await self._secret_call(self.secret_store.delete, token_id)
        self.storage.delete_credential(token_id)

    # Backup

    async def export_tokens(self) -> str:
        """JSON backup of every credential that has a secret. Contains secrets."""
        exports = []
        for credential in self.storage.list_credentials():
            secret = await self.get_secret(credential.id)
            if not secret:
                self.logger.warning(
                    "Credential without secret skipped in export",
                    extra={"token_id": credential.id},
                )
                continue
            exports.append(
                CredentialExport(
                    id=credential.id,
                    name=credential.name,
                    api_token=secret,
                    workspace_id=credential.workspace_id or "",
                    workspace_name=credential.workspace_name or "",
                ).model_dump(by_alias=True)
            )
        return dumps(exports)

    @operation(name="token_service_import")
    async def import_tokens(self, data: str) -> int:
        """
        Restore credentials from ``export_tokens`` output.

        Known ids are updated in place, unknown ids are created.

        Returns:
            Number of credentials imported

        Raises:
            ValidationError: If the backup is not a list of credential entries
        """
        try:
            entries = _EXPORT_ADAPTER.validate_python(loads(data))
        except (ValueError, TypeError) as e:
            # pydantic's ValidationError is a ValueError
            raise ValidationError(
                "Malformed credential backup",
                field="data",
                error_code=ErrorCode.INVALID_FORMAT,
                cause=e,
            ) from e

        for entry in entries:
            existing = self.storage.get_credential(entry.id)
            record = CredentialRecord(
                id=entry.id,
                name=entry.name,
                workspace_id=entry.workspace_id or None,
                workspace_name=entry.workspace_name or None,
                connection_status=existing.connection_status if existing else False,
                is_activated=existing.is_activated if existing else False,
                last_validated=existing.last_validated if existing else None,
            )
            if existing:
                self.storage.update_credential(record)
            else:
                self.storage.save_credential(record)
            await self._secret_call(self.secret_store.store, entry.id, entry.api_token)

        self.logger.info("Credentials imported", extra={"count": len(entries)})
        return len(entries)
