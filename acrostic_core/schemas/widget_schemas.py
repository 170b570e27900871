"""
Snapshot entries published to the shared store for the widget extension.

Field names follow the camelCase keys the widget decodes.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..utils.json_value import JsonObject


class _SharedModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_shared(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SharedToken(_SharedModel):
    id: str
    name: str
    is_connected: bool = Field(alias="isConnected")
    is_activated: bool = Field(alias="isActivated")


class SharedDatabase(_SharedModel):
    id: str
    title: str
    widget_enabled: bool = Field(alias="widgetEnabled")
    widget_type: str = Field(alias="widgetType")
    url: str = ""


class SharedTask(_SharedModel):
    id: str
    title: str
    is_completed: bool = Field(alias="isCompleted")
    due_date: Optional[float] = Field(default=None, alias="dueDate")


class SharedTaskList(_SharedModel):
    timestamp: float
    tasks: List[SharedTask] = Field(default_factory=list)


class SharedWidgetConfigDatabase(_SharedModel):
    id: str
    title: str
    type: str
    token_id: str = Field(alias="tokenID")
    is_selected: bool = Field(alias="isSelected")


class WidgetConfigurationRecord(BaseModel):
    """A stored widget instance, with its remote database id resolved."""

    id: str
    name: str
    token_id: Optional[str] = None
    database_id: Optional[str] = None
    widget_kind: str
    widget_family: str
    configuration: Dict[str, Any] = Field(default_factory=dict)
    last_updated: Optional[datetime] = None

    @property
    def settings(self) -> JsonObject:
        return JsonObject(self.configuration)
