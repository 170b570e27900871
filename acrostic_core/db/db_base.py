"""
Shared column types and helpers for the object store models.

Keeps cross-database compatibility (SQLite/PostgreSQL) for JSON blobs and
timezone handling.
"""

import json
from datetime import UTC, date, datetime
from typing import Optional

from pydantic_core import to_jsonable_python
from sqlalchemy import Column, DateTime, Text
from sqlalchemy.dialects.postgresql import BYTEA, JSONB
from sqlalchemy.types import TypeDecorator


def utc_now():
    """Return current UTC time with timezone info attached."""
    return datetime.now(UTC)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite returns naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an ISO-8601 date or datetime string into an aware UTC datetime."""
    if value is None or isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return ensure_utc(parsed)


class JSON(TypeDecorator):
    """Cross-database JSON type for SQLite/PostgreSQL compatibility."""

    impl = Text
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        else:
            return dialect.type_descriptor(Text())

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if dialect.name == "postgresql":
            return to_jsonable_python(value)
        else:
            return json.dumps(to_jsonable_python(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if dialect.name == "postgresql":
            return value
        else:
            return json.loads(value)


class EncryptedBinary(TypeDecorator):
    """
    Cross-database encrypted binary type.
    Uses BYTEA for PostgreSQL and Text for SQLite.
    """

    impl = Text
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(BYTEA())
        else:
            return dialect.type_descriptor(Text())

    def process_bind_param(self, value, dialect):
        if dialect.name == "postgresql":
            return value
        else:
            # SQLite: ensure it's a string for TEXT column
            if isinstance(value, bytes):
                return value.decode("utf-8", errors="ignore")
            return value

    def process_result_value(self, value, dialect):
        # Encryption/decryption handled in utils.encryption_utils
        return value


class TimestampMixin:
    """Simple mixin for created_at/updated_at timestamps."""

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)
