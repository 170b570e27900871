"""
Shapes consumed from the remote source.

Only the fields the sync layer needs are modelled; everything else in the
remote payload is ignored.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..constants import TITLE_PROPERTY_CANDIDATES, FileKind
from ..utils.json_value import JsonObject, extract_plain_text, find_property


class RemoteItem(BaseModel):
    """A database or page returned by a query or search."""

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    object: str = FileKind.PAGE.value
    title: List[Dict[str, Any]] = Field(default_factory=list)
    properties: Dict[str, Any] = Field(default_factory=dict)
    parent: Dict[str, Any] = Field(default_factory=dict)
    url: Optional[str] = None
    archived: bool = False
    created_time: Optional[datetime] = None
    last_edited_time: Optional[datetime] = None

    @property
    def is_database(self) -> bool:
        return self.object == FileKind.DATABASE.value

    @property
    def parent_database_id(self) -> Optional[str]:
        parent = JsonObject(self.parent)
        if parent.as_string("type") == "database_id":
            return parent.as_string("database_id")
        return None

    @property
    def plain_title(self) -> str:
        """Title text of a database (title array) or page (title property)."""
        if self.title:
            return extract_plain_text(self.title)
        match = find_property(self.properties, TITLE_PROPERTY_CANDIDATES, property_type="title")
        if match is None:
            return ""
        _, prop = match
        return extract_plain_text(prop.as_array("title") or prop.as_array("rich_text"))


class RemoteResultPage(BaseModel):
    """One page of a paginated query or search."""

    model_config = ConfigDict(extra="ignore")

    results: List[RemoteItem] = Field(default_factory=list)
    next_cursor: Optional[str] = None
    has_more: bool = False


class RemoteUser(BaseModel):
    """The integration's bot user, used as a cheap credential check."""

    id: str
    name: Optional[str] = None
    workspace_id: Optional[str] = None
    workspace_name: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "RemoteUser":
        data = JsonObject(payload)
        bot = data.as_object("bot") or JsonObject({})
        return cls(
            id=data.as_string("id") or "",
            name=data.as_string("name"),
            workspace_id=bot.as_string("workspace_id"),
            workspace_name=bot.as_string("workspace_name"),
        )
