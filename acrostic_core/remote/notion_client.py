"""Notion REST implementation of the remote source."""

from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..config import RemoteConfig
from ..exceptions import ErrorCode, ExternalServiceError
from ..schemas.remote_schemas import RemoteResultPage, RemoteUser
from ..utils.logger import get_logger
from .remote_source import RemoteSource
from .retry import retry_on_error

SERVICE_NAME = "notion"


class NotionRemoteSource(RemoteSource):
    """
    Talks to the Notion API over one shared ``httpx.AsyncClient``.

    The secret is sent per request, so one client serves every credential.
    Transport and HTTP failures surface as ExternalServiceError after retries.
    """

    def __init__(
        self,
        config: Optional[RemoteConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or RemoteConfig()
        self.base_url = self.config.base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=self.config.timeout_seconds)
        self.logger = get_logger()

        retry = retry_on_error(
            max_retries=self.config.max_retries, backoff_factor=self.config.backoff_factor
        )
        self._send = retry(self._send_once)

    def _headers(self, secret: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {secret}",
            "Notion-Version": self.config.notion_version,
            "Content-Type": "application/json",
        }

    async def _send_once(
        self, method: str, path: str, secret: str, body: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        response = await self.client.request(
            method, f"{self.base_url}{path}", headers=self._headers(secret), json=body
        )
        response.raise_for_status()
        return response.json()

    async def _request(
        self, method: str, path: str, secret: str, body: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        try:
            return await self._send(method, path, secret, body)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise ExternalServiceError(
                f"Notion request failed with status {status}",
                service_name=SERVICE_NAME,
                error_code=ErrorCode.UNAUTHORIZED if status == 401 else ErrorCode.EXTERNAL_API_ERROR,
                cause=e,
                path=path,
                status=status,
            ) from e
        except (httpx.TransportError, ValueError) as e:
            raise ExternalServiceError(
                f"Notion request failed: {type(e).__name__}",
                service_name=SERVICE_NAME,
                cause=e,
                path=path,
            ) from e

    def _parse_page(self, payload: Dict[str, Any], path: str) -> RemoteResultPage:
        try:
            return RemoteResultPage.model_validate(payload)
        except PydanticValidationError as e:
            raise ExternalServiceError(
                "Malformed Notion response",
                service_name=SERVICE_NAME,
                error_code=ErrorCode.INVALID_FORMAT,
                cause=e,
                path=path,
            ) from e

    async def retrieve_bot_user(self, secret: str) -> RemoteUser:
        payload = await self._request("GET", "/users/me", secret)
        return RemoteUser.from_payload(payload)

    async def query_database(
        self,
        secret: str,
        database_id: str,
        start_cursor: Optional[str] = None,
        page_size: int = 100,
        filter: Optional[Dict[str, Any]] = None,
        sorts: Optional[List[Dict[str, Any]]] = None,
    ) -> RemoteResultPage:
        path = f"/databases/{database_id}/query"
        body: Dict[str, Any] = {"page_size": page_size}
        if start_cursor:
            body["start_cursor"] = start_cursor
        if filter:
            body["filter"] = filter
        if sorts:
            body["sorts"] = sorts

        payload = await self._request("POST", path, secret, body)
        return self._parse_page(payload, path)

    async def search(
        self,
        secret: str,
        query: Optional[str] = None,
        object_type: Optional[str] = None,
        start_cursor: Optional[str] = None,
    ) -> RemoteResultPage:
        body: Dict[str, Any] = {"page_size": 100}
        if query:
            body["query"] = query
        if object_type:
            body["filter"] = {"property": "object", "value": object_type}
        if start_cursor:
            body["start_cursor"] = start_cursor

        payload = await self._request("POST", "/search", secret, body)
        return self._parse_page(payload, "/search")

    async def aclose(self) -> None:
        await self.client.aclose()
