"""Backend-neutral shapes for mirrored workspace items."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..constants import UNTITLED, FileKind
from ..db.db_base import ensure_utc


class DatabaseRecord(BaseModel):
    """A mirrored database as exchanged between backends and services."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    title: Optional[List[Dict[str, Any]]] = None
    title_string: Optional[str] = None
    url: Optional[str] = None
    created_time: Optional[datetime] = None
    last_edited_time: Optional[datetime] = None
    archived: bool = False
    widget_enabled: bool = False
    widget_type: Optional[str] = None
    last_sync_time: Optional[datetime] = None

    @field_validator("created_time", "last_edited_time", "last_sync_time")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @property
    def display_title(self) -> str:
        return self.title_string or UNTITLED


class TaskSnapshot(BaseModel):
    """The actionable projection of a page."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str = UNTITLED
    is_completed: bool = False
    due_date: Optional[datetime] = None

    @field_validator("due_date")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)


class FileMetadata(BaseModel):
    """An entry of the file picker: a database or page visible to a credential."""

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(..., min_length=1)
    title: str = UNTITLED
    kind: FileKind
    token_id: str
    is_selected: bool = False
