"""Read shapes of the query and search-filter log."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class QueryRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    database_id: str
    filter: Optional[Dict[str, Any]] = None
    sorts: Optional[List[Dict[str, Any]]] = None
    start_cursor: Optional[str] = None
    page_size: Optional[int] = None
    created_at: Optional[datetime] = None


class SearchFilterRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    property: str
    value: str
    object_type: Optional[str] = None
    created_at: Optional[datetime] = None
