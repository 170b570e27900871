"""
Typed access to schema-free JSON blobs.

Remote properties and widget configuration maps have no fixed shape. Every
accessor here returns ``None`` on a shape mismatch instead of raising, so
callers never assume structure.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

JsonValue = Union[None, bool, int, float, str, List["JsonValue"], Dict[str, "JsonValue"]]


class JsonObject:
    """Read-only view over a JSON object with optional-returning accessors."""

    def __init__(self, data: Any):
        self._data: Dict[str, Any] = data if isinstance(data, dict) else {}

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __bool__(self) -> bool:
        return bool(self._data)

    @property
    def raw(self) -> Dict[str, Any]:
        return self._data

    def keys(self) -> Iterable[str]:
        return self._data.keys()

    def get(self, key: str) -> JsonValue:
        return self._data.get(key)

    def as_string(self, key: str) -> Optional[str]:
        value = self._data.get(key)
        return value if isinstance(value, str) else None

    def as_bool(self, key: str) -> Optional[bool]:
        value = self._data.get(key)
        return value if isinstance(value, bool) else None

    def as_number(self, key: str) -> Optional[float]:
        value = self._data.get(key)
        # bool is an int subclass; it is not a number here
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return value

    def as_array(self, key: str) -> Optional[List[JsonValue]]:
        value = self._data.get(key)
        return value if isinstance(value, list) else None

    def as_object(self, key: str) -> Optional["JsonObject"]:
        value = self._data.get(key)
        return JsonObject(value) if isinstance(value, dict) else None

    def path(self, *keys: str) -> JsonValue:
        """Follow nested object keys, returning None as soon as a step is missing."""
        current: Any = self._data
        for key in keys:
            if not isinstance(current, dict):
                return None
            current = current.get(key)
        return current


def extract_plain_text(rich_text: Any) -> str:
    """
    Concatenate the text runs of a rich-text array.

    Each run contributes its ``plain_text``, or ``text.content`` when the run
    carries no plain text.
    """
    if not isinstance(rich_text, list):
        return ""

    parts = []
    for run in rich_text:
        item = JsonObject(run)
        text = item.as_string("plain_text")
        if text is None:
            content = item.path("text", "content")
            text = content if isinstance(content, str) else None
        if text:
            parts.append(text)
    return "".join(parts)


def find_property(
    properties: Optional[Mapping[str, Any]],
    candidates: Tuple[str, ...],
    property_type: Optional[str] = None,
) -> Optional[Tuple[str, JsonObject]]:
    """
    Locate a property by a ranked list of candidate names.

    Ranking, highest first:
      1. a property whose name equals a candidate (case-insensitive), in
         candidate order;
      2. a property whose name contains a candidate, in candidate order;
      3. when ``property_type`` is given, the first property of that type.

    Returns:
        ``(name, property)`` or None when nothing matches
    """
    if not properties:
        return None

    lowered = [(name, name.lower()) for name in properties]

    for candidate in candidates:
        for name, lower in lowered:
            if lower == candidate:
                return name, JsonObject(properties[name])

    for candidate in candidates:
        for name, lower in lowered:
            if candidate in lower:
                return name, JsonObject(properties[name])

    if property_type:
        for name, value in properties.items():
            if JsonObject(value).as_string("type") == property_type:
                return name, JsonObject(value)

    return None
