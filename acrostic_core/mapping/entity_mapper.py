"""
Maps remote items and task snapshots onto object store records.

Every mapping is fetch-or-create by id followed by a scalar overwrite, so
mapping the same input twice leaves the store unchanged. Relationships are
wired only when the referent already exists, and token links only grow.
User-owned fields (``widget_enabled``, ``widget_type``) are never written.
"""

from datetime import datetime
from typing import Callable, Collection, Optional

from sqlalchemy.orm import Session

from ..db.db_base import utc_now
from ..db.db_token_models import Token
from ..db.db_workspace_models import Database, Page, Task
from ..schemas.remote_schemas import RemoteItem
from ..schemas.workspace_schemas import TaskSnapshot
from ..utils.json_value import extract_plain_text
from ..utils.logger import get_logger


def find_database(session: Session, database_id: Optional[str]) -> Optional[Database]:
    """First-seen record carrying ``database_id``."""
    if not database_id:
        return None
    return (
        session.query(Database)
        .filter(Database.id == database_id)
        .order_by(Database.row_id)
        .first()
    )


class EntityMapper:
    """Stateless apart from the clock used for ``last_sync_time``."""

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self.clock = clock
        self.logger = get_logger()

    def _link_token(self, session: Session, database: Database, credential_id: Optional[str]):
        if not credential_id:
            return
        token = session.get(Token, credential_id)
        if token is not None and token not in database.tokens:
            database.tokens.append(token)

    def map_database(
        self, session: Session, item: RemoteItem, credential_id: Optional[str] = None
    ) -> Database:
        database = find_database(session, item.id)
        if database is None:
            database = Database(id=item.id)
            session.add(database)

        database.title = item.title
        database.title_string = extract_plain_text(item.title)
        database.url = item.url
        database.created_time = item.created_time
        database.last_edited_time = item.last_edited_time
        database.archived = item.archived
        database.last_sync_time = self.clock()
        self._link_token(session, database, credential_id)

        session.flush()
        return database

    def map_page(
        self, session: Session, item: RemoteItem, database_id: Optional[str] = None
    ) -> Page:
        page = session.get(Page, item.id)
        if page is None:
            page = Page(id=item.id)
            session.add(page)

        parent_id = database_id or item.parent_database_id
        page.title = item.plain_title
        page.database_id = parent_id
        page.properties = item.properties
        page.url = item.url
        page.archived = item.archived
        page.created_time = item.created_time
        page.last_edited_time = item.last_edited_time
        page.last_sync_time = self.clock()

        parent = find_database(session, parent_id)
        if parent is not None:
            page.parent_database = parent

        session.flush()
        return page

    def map_task(
        self,
        session: Session,
        snapshot: TaskSnapshot,
        database_id: str,
        credential_id: str,
    ) -> Task:
        task = session.get(Task, snapshot.id)
        if task is None:
            task = Task(id=snapshot.id)
            session.add(task)

        task.title = snapshot.title
        task.is_completed = snapshot.is_completed
        task.due_date = snapshot.due_date
        task.database_id = database_id
        task.last_sync_time = self.clock()

        database = find_database(session, database_id)
        if database is not None:
            task.database = database
        token = session.get(Token, credential_id)
        if token is not None:
            task.token = token

        session.flush()
        return task

    def prune_database(self, session: Session, database_id: str, keep_ids: Collection[str]) -> int:
        """
        Delete the pages and tasks of ``database_id`` whose ids are not in
        ``keep_ids``. Returns the number of records removed.
        """
        keep = set(keep_ids)
        removed = 0
        for model in (Task, Page):
            stale = session.query(model).filter(model.database_id == database_id)
            if keep:
                stale = stale.filter(model.id.notin_(keep))
            for record in stale.all():
                session.delete(record)
                removed += 1

        if removed:
            session.flush()
            self.logger.info(
                "Pruned records missing from remote",
                extra={"database_id": database_id, "removed": removed},
            )
        return removed
