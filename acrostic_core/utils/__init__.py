"""Utility helpers shared across the library."""

from .hash_utils import stable_hash
from .json_utils import dumps, loads
from .json_value import JsonObject, JsonValue, extract_plain_text, find_property
from .logger import ContextAwareLogger, configure_logging, get_logger

__all__ = [
    "ContextAwareLogger",
    "JsonObject",
    "JsonValue",
    "configure_logging",
    "dumps",
    "extract_plain_text",
    "find_property",
    "get_logger",
    "loads",
    "stable_hash",
]
