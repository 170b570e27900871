"""CRUD for widget configurations."""

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..context.operation_context import operation
from ..db.db_token_models import Token
from ..db.db_widget_models import WidgetConfiguration
from ..db.db_workspace_models import Database
from ..exceptions import not_found, validation_failed
from ..mapping.entity_mapper import find_database
from ..schemas.widget_schemas import WidgetConfigurationRecord
from ..storage.storage_manager import StorageManager
from ..utils.logger import get_logger


def _to_record(widget: WidgetConfiguration) -> WidgetConfigurationRecord:
    return WidgetConfigurationRecord(
        id=widget.id,
        name=widget.name,
        token_id=widget.token_id,
        database_id=widget.database.id if widget.database is not None else None,
        widget_kind=widget.widget_kind,
        widget_family=widget.widget_family,
        configuration=widget.configuration or {},
        last_updated=widget.last_updated,
    )


class WidgetService:
    """Widget instances in the active store."""

    def __init__(self, storage: StorageManager):
        self.storage = storage
        self.logger = get_logger()

    def _require(self, session: Session, widget_id: str) -> WidgetConfiguration:
        widget = session.get(WidgetConfiguration, widget_id)
        if widget is None:
            raise not_found("WidgetConfiguration", widget_id=widget_id)
        return widget

    @operation(name="widget_service_create")
    def create_widget(
        self,
        name: str,
        widget_kind: str,
        widget_family: str,
        token_id: Optional[str] = None,
        database_id: Optional[str] = None,
        configuration: Optional[Dict[str, Any]] = None,
    ) -> WidgetConfigurationRecord:
        """
        Create a widget, optionally bound to a credential and a database.

        Raises:
            ValidationError: If the name is empty
            RepositoryError: NOT_FOUND if the credential or database does not exist
        """
        if not name or not name.strip():
            raise validation_failed("name", name, "must not be empty")

        with self.storage.session_scope() as session:
            widget = WidgetConfiguration(
                name=name.strip(),
                widget_kind=widget_kind,
                widget_family=widget_family,
                configuration=dict(configuration or {}),
            )
            if token_id:
                token = session.get(Token, token_id)
                if token is None:
                    raise not_found("Token", token_id=token_id)
                widget.token = token
            if database_id:
                database = find_database(session, database_id)
                if database is None:
                    raise not_found("Database", database_id=database_id)
                widget.database = database

            session.add(widget)
            session.flush()
            record = _to_record(widget)

        self.logger.info(
            "Widget created", extra={"widget_id": record.id, "widget_kind": widget_kind}
        )
        return record

    @operation(name="widget_service_update")
    def update_widget(
        self,
        widget_id: str,
        name: Optional[str] = None,
        configuration: Optional[Dict[str, Any]] = None,
    ) -> WidgetConfigurationRecord:
        with self.storage.session_scope() as session:
            widget = self._require(session, widget_id)
            if name is not None:
                if not name.strip():
                    raise validation_failed("name", name, "must not be empty")
                widget.name = name.strip()
            if configuration is not None:
                widget.update_configuration(configuration)
            session.flush()
            return _to_record(widget)

    def fetch_widgets(
        self,
        token_id: Optional[str] = None,
        database_id: Optional[str] = None,
        widget_kind: Optional[str] = None,
    ) -> List[WidgetConfigurationRecord]:
        with self.storage.session_scope() as session:
            query = session.query(WidgetConfiguration)
            if token_id:
                query = query.filter(WidgetConfiguration.token_id == token_id)
            if database_id:
                query = query.join(WidgetConfiguration.database).filter(
                    Database.id == database_id
                )
            if widget_kind:
                query = query.filter(WidgetConfiguration.widget_kind == widget_kind)
            return [_to_record(widget) for widget in query.order_by(WidgetConfiguration.name)]

    def fetch_widget(self, widget_id: str) -> Optional[WidgetConfigurationRecord]:
        with self.storage.session_scope() as session:
            widget = session.get(WidgetConfiguration, widget_id)
            return _to_record(widget) if widget is not None else None

    @operation(name="widget_service_delete")
    def delete_widget(self, widget_id: str) -> None:
        with self.storage.session_scope() as session:
            session.delete(self._require(session, widget_id))
        self.logger.info("Widget deleted", extra={"widget_id": widget_id})
