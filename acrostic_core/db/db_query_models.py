import uuid

from sqlalchemy import Column, DateTime, Index, Integer, String

from .db_base import JSON, utc_now
from .db_config import Base


class Query(Base):
    """A previously issued remote database query, kept for replay and debugging."""

    __tablename__ = "notion_query"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    database_id = Column(String(100), nullable=False)
    filter = Column(JSON, nullable=True)
    sorts = Column(JSON, nullable=True)
    start_cursor = Column(String(255), nullable=True)
    page_size = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (Index("ix_notion_query_database", "database_id"),)


class SearchFilter(Base):
    """A previously issued search filter."""

    __tablename__ = "search_filter"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    property = Column(String(100), nullable=False)
    value = Column(String(255), nullable=False)
    object_type = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (Index("ix_search_filter_property_value", "property", "value"),)
