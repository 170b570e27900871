import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Table
from sqlalchemy.orm import relationship

from ..constants import UNKNOWN_WORKSPACE_NAME
from .db_base import TimestampMixin
from .db_config import Base

# Many-to-many link between credentials and the databases they can see
token_database = Table(
    "token_database",
    Base.metadata,
    Column("token_id", String(36), ForeignKey("token.id", ondelete="CASCADE"), primary_key=True),
    Column(
        "database_row_id",
        Integer,
        ForeignKey("notion_database.row_id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Index("ix_token_database_token", "token_id"),
)


class Token(Base, TimestampMixin):
    """
    A stored Notion integration credential.

    The API secret is never a column: it lives in the secret store, keyed by
    ``id``.
    """

    __tablename__ = "token"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    workspace_id = Column(String(100), nullable=True)
    workspace_name = Column(String(255), nullable=True)
    connection_status = Column(Boolean, nullable=False, default=False)
    is_activated = Column(Boolean, nullable=False, default=False)
    last_validated = Column(DateTime(timezone=True), nullable=True)

    databases = relationship("Database", secondary=token_database, back_populates="tokens")
    tasks = relationship("Task", back_populates="token", cascade="all, delete-orphan")
    widget_configurations = relationship(
        "WidgetConfiguration", back_populates="token", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("ix_token_is_activated", "is_activated"),)

    @property
    def display_name(self) -> str:
        return self.workspace_name or self.name or UNKNOWN_WORKSPACE_NAME

    def __repr__(self) -> str:
        return (
            f"<Token(id='{self.id}', name='{self.name}', "
            f"connected={self.connection_status}, activated={self.is_activated})>"
        )
