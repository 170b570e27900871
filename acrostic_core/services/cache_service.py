"""
Time-stamped cache entries in the shared key-value store.

Each entry is a JSON string ``{"timestamp": <epoch seconds>, "data": ...}``
under the cache type's key, optionally suffixed with ``_<identifier>``.
Anything unreadable is a miss, never an error.
"""

import time
from typing import Any, Callable, List, Optional, Tuple, Type

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..config import CacheConfig
from ..constants import CACHE_KEY_PREFIX, CacheType
from ..stores.key_value_store import KeyValueStore
from ..utils.json_utils import dumps, loads
from ..utils.logger import get_logger


def cache_key(cache_type: CacheType, identifier: Optional[str] = None) -> str:
    return f"{cache_type.key}_{identifier}" if identifier else cache_type.key


class CacheService:
    """Read-through cache with age checks against an injectable clock."""

    def __init__(
        self,
        store: KeyValueStore,
        config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.kv_store = store
        self.config = config or CacheConfig()
        self.clock = clock
        self.logger = get_logger()

    def _read_entry(self, key: str) -> Optional[Tuple[float, Any]]:
        raw = self.kv_store.get(key)
        if raw is None:
            return None
        try:
            entry = loads(raw) if isinstance(raw, str) else raw
            timestamp = float(entry["timestamp"])
            return timestamp, entry["data"]
        except (ValueError, TypeError, KeyError) as e:
            self.logger.debug("Undecodable cache entry", extra={"key": key, "error": str(e)})
            return None

    def store(self, obj: Any, cache_type: CacheType, identifier: Optional[str] = None) -> None:
        key = cache_key(cache_type, identifier)
        self.kv_store.set(key, dumps({"timestamp": self.clock(), "data": obj}))
        self.logger.debug("Cache stored", extra={"key": key})

    def retrieve(
        self,
        cache_type: CacheType,
        identifier: Optional[str] = None,
        max_age: Optional[float] = None,
        model: Optional[Type] = None,
    ) -> Any:
        """
        Return the cached payload, or None for a missing, undecodable, invalid
        or expired entry.

        Args:
            max_age: Maximum age in seconds (default 24 hours)
            model: Optional type to validate the payload against, e.g. ``List[FileMetadata]``
        """
        key = cache_key(cache_type, identifier)
        entry = self._read_entry(key)
        if entry is None:
            return None

        timestamp, data = entry
        limit = self.config.default_max_age_seconds if max_age is None else max_age
        if self.clock() - timestamp > limit:
            self.logger.debug("Cache expired", extra={"key": key})
            return None

        if model is None:
            return data
        try:
            return TypeAdapter(model).validate_python(data)
        except PydanticValidationError as e:
            self.logger.debug("Cache payload invalid", extra={"key": key, "error": str(e)})
            return None

    def entry_age(self, cache_type: CacheType, identifier: Optional[str] = None) -> Optional[float]:
        """Seconds since the entry was written, or None if there is no readable entry."""
        entry = self._read_entry(cache_key(cache_type, identifier))
        return None if entry is None else self.clock() - entry[0]

    def invalidate(self, cache_type: CacheType, identifier: Optional[str] = None) -> None:
        self.kv_store.remove(cache_key(cache_type, identifier))

    def cleanup_expired_caches(self, older_than: Optional[float] = None) -> List[str]:
        """
        Remove cache entries older than the retention window, and any entry
        under the cache prefix that cannot be decoded.

        Returns:
            The removed keys
        """
        window = self.config.retention_seconds if older_than is None else older_than
        now = self.clock()
        removed = []

        for key in self.kv_store.keys_with_prefix(CACHE_KEY_PREFIX):
            entry = self._read_entry(key)
            if entry is None or now - entry[0] > window:
                self.kv_store.remove(key)
                removed.append(key)

        if removed:
            self.logger.info("Expired cache entries removed", extra={"count": len(removed)})
        return removed
