from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from ..constants import UNTITLED
from .db_base import JSON, TimestampMixin
from .db_config import Base
from .db_token_models import token_database


class Database(Base, TimestampMixin):
    """
    Local mirror of a remote Notion database.

    ``id`` is the remote identifier. It is indexed but not unique at the SQL
    level: records merged in from the synced store can arrive without an id or
    twice, and the repair pass restores uniqueness.
    """

    __tablename__ = "notion_database"

    row_id = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(100), nullable=True)
    title = Column(JSON, nullable=True)
    title_string = Column(String(500), nullable=True)
    created_time = Column(DateTime(timezone=True), nullable=True)
    last_edited_time = Column(DateTime(timezone=True), nullable=True)
    url = Column(Text, nullable=True)
    archived = Column(Boolean, nullable=False, default=False)
    widget_enabled = Column(Boolean, nullable=False, default=False)
    widget_type = Column(String(50), nullable=True)
    last_sync_time = Column(DateTime(timezone=True), nullable=True)

    tokens = relationship("Token", secondary=token_database, back_populates="databases")
    pages = relationship(
        "Page", back_populates="parent_database", cascade="all, delete-orphan"
    )
    tasks = relationship("Task", back_populates="database", cascade="all, delete-orphan")
    widget_configurations = relationship("WidgetConfiguration", back_populates="database")

    __table_args__ = (
        Index("ix_notion_database_id", "id"),
        Index("ix_notion_database_widget_enabled", "widget_enabled"),
    )

    @property
    def display_title(self) -> str:
        return self.title_string or UNTITLED

    def __repr__(self) -> str:
        return (
            f"<Database(row_id={self.row_id}, id='{self.id}', "
            f"title='{self.title_string}', widget_enabled={self.widget_enabled})>"
        )


class Page(Base, TimestampMixin):
    """Local mirror of a remote page, with its properties kept as an opaque blob."""

    __tablename__ = "notion_page"

    id = Column(String(100), primary_key=True)
    title = Column(String(500), nullable=True)
    database_id = Column(String(100), nullable=True)
    parent_database_row_id = Column(
        Integer, ForeignKey("notion_database.row_id", ondelete="CASCADE"), nullable=True
    )
    archived = Column(Boolean, nullable=False, default=False)
    properties = Column(JSON, nullable=True)
    url = Column(Text, nullable=True)
    created_time = Column(DateTime(timezone=True), nullable=True)
    last_edited_time = Column(DateTime(timezone=True), nullable=True)
    last_sync_time = Column(DateTime(timezone=True), nullable=True)

    parent_database = relationship("Database", back_populates="pages")

    __table_args__ = (
        Index("ix_notion_page_parent", "parent_database_row_id"),
        Index("ix_notion_page_database_id", "database_id"),
    )

    def __repr__(self) -> str:
        return f"<Page(id='{self.id}', title='{self.title}', database_id='{self.database_id}')>"


class Task(Base, TimestampMixin):
    """Actionable projection of a page. Rebuilt from remote data on every sync."""

    __tablename__ = "task"

    id = Column(String(100), primary_key=True)
    title = Column(String(500), nullable=False, default=UNTITLED)
    is_completed = Column(Boolean, nullable=False, default=False)
    due_date = Column(DateTime(timezone=True), nullable=True)
    database_id = Column(String(100), nullable=True)
    database_row_id = Column(
        Integer, ForeignKey("notion_database.row_id", ondelete="CASCADE"), nullable=True
    )
    token_id = Column(String(36), ForeignKey("token.id", ondelete="CASCADE"), nullable=True)
    last_sync_time = Column(DateTime(timezone=True), nullable=True)

    database = relationship("Database", back_populates="tasks")
    token = relationship("Token", back_populates="tasks")

    __table_args__ = (
        Index("ix_task_token", "token_id"),
        Index("ix_task_database", "database_row_id"),
        Index("ix_task_is_completed", "is_completed"),
        Index("ix_task_due_date", "due_date"),
    )

    def __repr__(self) -> str:
        return f"<Task(id='{self.id}', title='{self.title}', completed={self.is_completed})>"
