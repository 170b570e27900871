"""
Deterministic hashing used to derive stable identifiers.

Hashes must be reproducible across runs and processes, so Python's salted
``hash()`` is never used here.
"""

import hashlib
from typing import Any

from .json_utils import dumps

IDENTIFIER_HASH_LENGTH = 32


def stable_hash(value: Any, length: int = IDENTIFIER_HASH_LENGTH) -> str:
    """
    Return a hex sha256 digest of ``value`` truncated to ``length`` characters.

    Strings are hashed as their UTF-8 bytes; anything else is hashed through
    its sorted-key JSON form.
    """
    if isinstance(value, str):
        payload = value
    else:
        payload = dumps(value, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:length]
