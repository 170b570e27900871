"""Scripted remote source for tests and offline use."""

from typing import Any, Dict, List, Optional

from ..exceptions import ErrorCode, ExternalServiceError
from ..schemas.remote_schemas import RemoteItem, RemoteResultPage, RemoteUser
from .remote_source import RemoteSource


class InMemoryRemoteSource(RemoteSource):
    """
    Serves fixed items per secret.

    ``users`` maps a secret to its bot user; unknown secrets are rejected like
    an invalid token. ``databases`` maps a database id to its rows, and
    ``search_results`` a secret to what a search returns. Results are paged by
    ``page_size`` so pagination code paths run.
    """

    def __init__(self, page_size: int = 100):
        self.page_size = page_size
        self.users: Dict[str, RemoteUser] = {}
        self.databases: Dict[str, List[RemoteItem]] = {}
        self.search_results: Dict[str, List[RemoteItem]] = {}
        self.failing_databases: Dict[str, Exception] = {}
        self.calls: List[Dict[str, Any]] = []

    def add_user(self, secret: str, workspace_name: str, workspace_id: str = "ws") -> None:
        self.users[secret] = RemoteUser(
            id=f"bot-{workspace_id}", workspace_id=workspace_id, workspace_name=workspace_name
        )

    def _check(self, secret: str) -> None:
        if secret not in self.users:
            raise ExternalServiceError(
                "Notion request failed with status 401",
                service_name="notion",
                error_code=ErrorCode.UNAUTHORIZED,
                status=401,
            )

    def _page(self, items: List[RemoteItem], start_cursor: Optional[str], size: int):
        start = int(start_cursor) if start_cursor else 0
        end = start + size
        has_more = end < len(items)
        return RemoteResultPage(
            results=items[start:end], has_more=has_more, next_cursor=str(end) if has_more else None
        )

    async def retrieve_bot_user(self, secret: str) -> RemoteUser:
        self.calls.append({"op": "retrieve_bot_user"})
        self._check(secret)
        return self.users[secret]

    async def query_database(
        self,
        secret: str,
        database_id: str,
        start_cursor: Optional[str] = None,
        page_size: int = 100,
        filter: Optional[Dict[str, Any]] = None,
        sorts: Optional[List[Dict[str, Any]]] = None,
    ) -> RemoteResultPage:
        self.calls.append({"op": "query_database", "database_id": database_id})
        self._check(secret)
        if database_id in self.failing_databases:
            raise self.failing_databases[database_id]
        items = self.databases.get(database_id, [])
        return self._page(items, start_cursor, min(page_size, self.page_size))

    async def search(
        self,
        secret: str,
        query: Optional[str] = None,
        object_type: Optional[str] = None,
        start_cursor: Optional[str] = None,
    ) -> RemoteResultPage:
        self.calls.append({"op": "search", "object_type": object_type})
        self._check(secret)
        items = self.search_results.get(secret, [])
        if object_type:
            items = [item for item in items if item.object == object_type]
        return self._page(items, start_cursor, self.page_size)
