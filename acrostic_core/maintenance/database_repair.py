"""
Repairs database records merged in from the synced store.

Two problems are fixed in order: records with no remote id get a
recovered or derived one, then records sharing an id are collapsed onto the
first-seen record (lowest ``row_id``).
"""

import uuid
from typing import List, Optional, Union

from pydantic import BaseModel, Field
from sqlalchemy import func, or_

from ..constants import KNOWN_LEGACY_DATABASE_ID
from ..db.db_workspace_models import Database
from ..exceptions import BaseError
from ..storage.storage_backend import StorageBackend
from ..storage.storage_manager import StorageManager
from ..utils.hash_utils import stable_hash
from ..utils.logger import get_logger


class RepairReport(BaseModel):
    fixed_ids: List[str] = Field(default_factory=list)
    removed_duplicates: int = 0
    errors: List[str] = Field(default_factory=list)


def recover_identifier(url: Optional[str], title: Optional[str]) -> str:
    """
    Derive an id for a record that lost it.

    Tried in order: the last path segment of the URL, the known historical id
    when the URL contains it, a hash of the URL, a hash of the title, and a
    random hex id.
    """
    if url:
        last_segment = url.split("/")[-1]
        if last_segment:
            return last_segment
        if KNOWN_LEGACY_DATABASE_ID in url:
            return KNOWN_LEGACY_DATABASE_ID
        return stable_hash(url)
    if title:
        return stable_hash(title)
    return uuid.uuid4().hex


class DatabaseRepairUtility:
    def __init__(self, storage: Union[StorageManager, StorageBackend]):
        self.storage = storage
        self.logger = get_logger()

    def _recover_missing_ids(self, report: RepairReport) -> None:
        with self.storage.session_scope() as session:
            row_ids = [
                row_id
                for (row_id,) in session.query(Database.row_id)
                .filter(or_(Database.id.is_(None), Database.id == ""))
                .order_by(Database.row_id)
            ]

        for row_id in row_ids:
            try:
                with self.storage.session_scope() as session:
                    database = session.get(Database, row_id)
                    if database is None:
                        continue
                    database.id = recover_identifier(database.url, database.title_string)
                    fixed_id = database.id
                report.fixed_ids.append(fixed_id)
                self.logger.info(
                    "Database id recovered", extra={"row_id": row_id, "database_id": fixed_id}
                )
            except BaseError as e:
                report.errors.append(f"row {row_id}: {e.message}")

    def _remove_duplicates(self, report: RepairReport) -> None:
        with self.storage.session_scope() as session:
            duplicated_ids = [
                database_id
                for (database_id,) in session.query(Database.id)
                .filter(Database.id.isnot(None))
                .group_by(Database.id)
                .having(func.count(Database.row_id) > 1)
            ]

        for database_id in duplicated_ids:
            try:
                with self.storage.session_scope() as session:
                    records = (
                        session.query(Database)
                        .filter(Database.id == database_id)
                        .order_by(Database.row_id)
                        .all()
                    )
                    survivor, duplicates = records[0], records[1:]
                    for duplicate in duplicates:
                        self._merge_into(survivor, duplicate)
                        session.delete(duplicate)
                    removed = len(duplicates)
                report.removed_duplicates += removed
                self.logger.info(
                    "Duplicate databases removed",
                    extra={"database_id": database_id, "removed": removed},
                )
            except BaseError as e:
                report.errors.append(f"{database_id}: {e.message}")

    @staticmethod
    def _merge_into(survivor: Database, duplicate: Database) -> None:
        for token in list(duplicate.tokens):
            if token not in survivor.tokens:
                survivor.tokens.append(token)
        for page in list(duplicate.pages):
            page.parent_database = survivor
        for task in list(duplicate.tasks):
            task.database = survivor
        for widget in list(duplicate.widget_configurations):
            widget.database = survivor

    def run(self) -> RepairReport:
        report = RepairReport()
        self._recover_missing_ids(report)
        self._remove_duplicates(report)

        self.logger.info(
            "Database repair finished",
            extra={
                "fixed": len(report.fixed_ids),
                "removed_duplicates": report.removed_duplicates,
                "errors": len(report.errors),
            },
        )
        return report
