"""
Pydantic schemas for stored credentials.

These are the backend-neutral shapes that travel between storage backends,
so a migration never hands an ORM object bound to one store to another.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..constants import UNKNOWN_WORKSPACE_NAME
from ..db.db_base import ensure_utc


class CredentialRecord(BaseModel):
    """A credential as seen outside the object store. Never carries the secret."""

    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()), description="Opaque id, also the secret store key"
    )
    name: str = Field(..., min_length=1, description="User-facing label")
    workspace_id: Optional[str] = Field(None, description="Remote workspace id")
    workspace_name: Optional[str] = Field(None, description="Remote workspace name")
    connection_status: bool = Field(default=False, description="Last validation succeeded")
    is_activated: bool = Field(default=False, description="Opted into widget use")
    last_validated: Optional[datetime] = Field(None, description="Last validation attempt")

    @field_validator("last_validated")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @property
    def display_name(self) -> str:
        return self.workspace_name or self.name or UNKNOWN_WORKSPACE_NAME


class CredentialExport(BaseModel):
    """Backup representation of a credential, including its secret."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    name: str = Field(..., min_length=1)
    api_token: str = Field(..., min_length=1, alias="apiToken")
    workspace_id: str = Field(default="", alias="workspaceID")
    workspace_name: str = Field(default="", alias="workspaceName")


class ValidationSummary(BaseModel):
    """Outcome of validating every stored credential."""

    total: int = 0
    invalid_ids: List[str] = Field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.invalid_ids)

    @property
    def message(self) -> str:
        return f"{self.failed} of {self.total} credentials failed validation"
