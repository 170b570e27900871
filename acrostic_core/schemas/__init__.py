from .credential_schemas import CredentialExport, CredentialRecord, ValidationSummary
from .query_schemas import QueryRecord, SearchFilterRecord
from .remote_schemas import RemoteItem, RemoteResultPage, RemoteUser
from .widget_schemas import (
    SharedDatabase,
    SharedTask,
    SharedTaskList,
    SharedToken,
    SharedWidgetConfigDatabase,
    WidgetConfigurationRecord,
)
from .workspace_schemas import DatabaseRecord, FileMetadata, TaskSnapshot

__all__ = [
    "CredentialExport",
    "CredentialRecord",
    "DatabaseRecord",
    "FileMetadata",
    "QueryRecord",
    "RemoteItem",
    "RemoteResultPage",
    "RemoteUser",
    "SearchFilterRecord",
    "SharedDatabase",
    "SharedTask",
    "SharedTaskList",
    "SharedToken",
    "SharedWidgetConfigDatabase",
    "TaskSnapshot",
    "ValidationSummary",
    "WidgetConfigurationRecord",
]
