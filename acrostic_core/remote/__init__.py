from .in_memory import InMemoryRemoteSource
from .notion_client import NotionRemoteSource
from .remote_source import RemoteSource
from .retry import retry_on_error

__all__ = ["InMemoryRemoteSource", "NotionRemoteSource", "RemoteSource", "retry_on_error"]
