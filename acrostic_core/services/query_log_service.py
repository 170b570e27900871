"""Debug log of remote queries and search filters."""

from typing import Any, Dict, List, Optional

from ..db.db_query_models import Query, SearchFilter
from ..schemas.query_schemas import QueryRecord, SearchFilterRecord
from ..storage.storage_manager import StorageManager
from ..utils.crud_helpers import create_record, get_record, list_records


class QueryLogService:
    def __init__(self, storage: StorageManager):
        self.storage = storage

    def save_query(
        self,
        database_id: str,
        filter: Optional[Dict[str, Any]] = None,
        sorts: Optional[List[Dict[str, Any]]] = None,
        page_size: int = 100,
        start_cursor: Optional[str] = None,
    ) -> QueryRecord:
        with self.storage.session_scope() as session:
            query = create_record(
                session,
                Query,
                {
                    "database_id": database_id,
                    "filter": filter,
                    "sorts": sorts,
                    "page_size": page_size,
                    "start_cursor": start_cursor,
                },
            )
            return QueryRecord.model_validate(query)

    def fetch_queries(self, database_id: str) -> List[QueryRecord]:
        """Queries issued against a database, oldest first."""
        with self.storage.session_scope() as session:
            queries = list_records(session, Query, {"database_id": database_id})
            return [QueryRecord.model_validate(query) for query in queries]

    def save_search_filter(
        self, property: str, value: str, object_type: Optional[str] = None
    ) -> SearchFilterRecord:
        with self.storage.session_scope() as session:
            search_filter = create_record(
                session,
                SearchFilter,
                {"property": property, "value": value, "object_type": object_type},
            )
            return SearchFilterRecord.model_validate(search_filter)

    def fetch_search_filter(self, property: str, value: str) -> Optional[SearchFilterRecord]:
        with self.storage.session_scope() as session:
            search_filter = get_record(session, SearchFilter, {"property": property, "value": value})
            return SearchFilterRecord.model_validate(search_filter) if search_filter else None
