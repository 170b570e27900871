"""
Task projection of remote pages.

Property names differ between user databases, so each field is located with
the ranked candidate lookup in ``utils.json_value.find_property``.
"""

from datetime import datetime
from typing import Any, Mapping, Optional

from ..constants import (
    COMPLETED_STATUS_NAMES,
    COMPLETION_PROPERTY_CANDIDATES,
    DUE_DATE_PROPERTY_CANDIDATES,
    TITLE_PROPERTY_CANDIDATES,
    UNTITLED,
)
from ..db.db_base import parse_timestamp
from ..schemas.remote_schemas import RemoteItem
from ..schemas.workspace_schemas import TaskSnapshot
from ..utils.json_value import JsonObject, extract_plain_text, find_property


def extract_title(properties: Mapping[str, Any]) -> str:
    match = find_property(properties, TITLE_PROPERTY_CANDIDATES, property_type="title")
    if match is None:
        return UNTITLED
    _, prop = match
    text = extract_plain_text(prop.as_array("title") or prop.as_array("rich_text"))
    return text or UNTITLED


def _option_name(prop: JsonObject, kind: str) -> Optional[str]:
    option = prop.as_object(kind)
    return option.as_string("name") if option else None


def extract_completion(properties: Mapping[str, Any]) -> bool:
    """
    True for a checked checkbox, or a status/select option named done,
    complete or completed (case-insensitive).
    """
    match = find_property(properties, COMPLETION_PROPERTY_CANDIDATES, property_type="checkbox")
    if match is None:
        return False
    _, prop = match

    checked = prop.as_bool("checkbox")
    if checked is not None:
        return checked

    for kind in ("status", "select"):
        name = _option_name(prop, kind)
        if name is not None:
            return name.strip().lower() in COMPLETED_STATUS_NAMES
    return False


def extract_due_date(properties: Mapping[str, Any]) -> Optional[datetime]:
    match = find_property(properties, DUE_DATE_PROPERTY_CANDIDATES, property_type="date")
    if match is None:
        return None
    _, prop = match
    return parse_timestamp(prop.path("date", "start"))


def extract_task(item: RemoteItem) -> TaskSnapshot:
    """Project a remote page onto the task fields shown by widgets."""
    return TaskSnapshot(
        id=item.id,
        title=extract_title(item.properties),
        is_completed=extract_completion(item.properties),
        due_date=extract_due_date(item.properties),
    )
