"""
Remote source abstraction.

The sync layer only needs a credential check, a database query and a search.
Pagination helpers follow ``has_more``/``next_cursor`` until exhausted.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..schemas.remote_schemas import RemoteItem, RemoteResultPage, RemoteUser


class RemoteSource(ABC):
    """Async read access to the remote workspace, authenticated per call."""

    @abstractmethod
    async def retrieve_bot_user(self, secret: str) -> RemoteUser:
        """Return the integration user for ``secret``; raises on invalid credentials."""

    @abstractmethod
    async def query_database(
        self,
        secret: str,
        database_id: str,
        start_cursor: Optional[str] = None,
        page_size: int = 100,
        filter: Optional[Dict[str, Any]] = None,
        sorts: Optional[List[Dict[str, Any]]] = None,
    ) -> RemoteResultPage:
        """One page of a database's rows."""

    @abstractmethod
    async def search(
        self,
        secret: str,
        query: Optional[str] = None,
        object_type: Optional[str] = None,
        start_cursor: Optional[str] = None,
    ) -> RemoteResultPage:
        """One page of databases and pages shared with the integration."""

    async def query_all(
        self,
        secret: str,
        database_id: str,
        page_size: int = 100,
        filter: Optional[Dict[str, Any]] = None,
        sorts: Optional[List[Dict[str, Any]]] = None,
    ) -> List[RemoteItem]:
        items: List[RemoteItem] = []
        start_cursor: Optional[str] = None
        while True:
            page = await self.query_database(
                secret,
                database_id,
                start_cursor=start_cursor,
                page_size=page_size,
                filter=filter,
                sorts=sorts,
            )
            items.extend(page.results)
            if not page.has_more or not page.next_cursor:
                return items
            start_cursor = page.next_cursor

    async def search_all(
        self,
        secret: str,
        query: Optional[str] = None,
        object_type: Optional[str] = None,
    ) -> List[RemoteItem]:
        items: List[RemoteItem] = []
        start_cursor: Optional[str] = None
        while True:
            page = await self.search(
                secret, query=query, object_type=object_type, start_cursor=start_cursor
            )
            items.extend(page.results)
            if not page.has_more or not page.next_cursor:
                return items
            start_cursor = page.next_cursor

    async def aclose(self) -> None:
        """Release network resources."""
