import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.orm.attributes import flag_modified

from .db_base import JSON, utc_now
from .db_config import Base


class WidgetConfiguration(Base):
    """A home-screen widget instance and its schema-free settings."""

    __tablename__ = "widget_configuration"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    token_id = Column(String(36), ForeignKey("token.id", ondelete="CASCADE"), nullable=True)
    database_row_id = Column(
        Integer, ForeignKey("notion_database.row_id", ondelete="SET NULL"), nullable=True
    )
    widget_kind = Column(String(100), nullable=False)
    widget_family = Column(String(50), nullable=False)
    configuration = Column(JSON, nullable=True, default=dict)
    last_updated = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    token = relationship("Token", back_populates="widget_configurations")
    database = relationship("Database", back_populates="widget_configurations")

    __table_args__ = (
        Index("ix_widget_configuration_token", "token_id"),
        Index("ix_widget_configuration_kind", "widget_kind"),
    )

    def update_configuration(self, configuration) -> None:
        """Replace the configuration blob and bump ``last_updated``."""
        self.configuration = dict(configuration)
        self.last_updated = utc_now()

        flag_modified(self, "configuration")

    def __repr__(self) -> str:
        return f"<WidgetConfiguration(id='{self.id}', name='{self.name}', kind='{self.widget_kind}')>"
