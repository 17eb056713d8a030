"""Content ledger: verbatim backups of applied changelog files.

Each row holds the full text of a changelog file as it was when its
changesets were applied, together with the tag to roll back to if that
version ever has to be undone. The table carries no uniqueness constraint;
``insert`` keeps a single live row per filename by removing older rows in
the same transaction.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import delete, inspect, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from src.changelog_sync.config import LedgerEntry
from src.changelog_sync.exceptions import PersistenceError
from src.db.engine import get_sync_session_factory
from src.db.models import ContentChangelog

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _to_entry(row: ContentChangelog) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,
        filename=row.filename,
        applied_at=row.date,
        content=row.content,
        tag=row.tag,
    )


class ContentLedger:
    """Backup table of applied changelog contents for one datasource."""

    def __init__(self, engine: Engine, datasource: str = ""):
        self.engine = engine
        self.datasource = datasource
        self._session_factory = get_sync_session_factory(engine)

    @property
    def table_name(self) -> str:
        return ContentChangelog.__tablename__

    def table_exists(self) -> bool:
        try:
            return inspect(self.engine).has_table(self.table_name)
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Cannot inspect {self.table_name}: {e}", datasource=self.datasource
            ) from e

    def ensure_table_exists(self) -> None:
        """Create the ledger table unless it already exists."""
        if self.table_exists():
            logger.info("Content changelog table exists")
            return
        try:
            ContentChangelog.__table__.create(self.engine, checkfirst=True)
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Cannot create {self.table_name}: {e}", datasource=self.datasource
            ) from e
        logger.info("Created content changelog table %s", self.table_name)

    def lookup(self, filename: str) -> Optional[LedgerEntry]:
        """Return the live entry for a filename, if any."""
        stmt = (
            select(ContentChangelog)
            .where(ContentChangelog.filename == filename)
            .order_by(ContentChangelog.id.desc())
            .limit(1)
        )
        try:
            with self._session_factory() as session:
                row = session.execute(stmt).scalars().first()
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Cannot read ledger entry: {e}", datasource=self.datasource, filename=filename
            ) from e
        return _to_entry(row) if row is not None else None

    def entries(self) -> List[LedgerEntry]:
        """All entries, oldest first."""
        stmt = select(ContentChangelog).order_by(ContentChangelog.id)
        try:
            with self._session_factory() as session:
                rows = session.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Cannot read ledger: {e}", datasource=self.datasource
            ) from e
        return [_to_entry(r) for r in rows]

    def insert(self, filename: str, content: str, tag: str) -> LedgerEntry:
        """Record the applied content of a changelog file.

        Any previous entry for the same filename is removed in the same
        transaction.

        Raises:
            PersistenceError: If the database write fails.
        """
        return self.insert_all({filename: content}, tag)[0]

    def insert_all(self, contents: Dict[str, str], tag: str) -> List[LedgerEntry]:
        """Record several applied files under one tag, all or none."""
        applied_at = datetime.now().strftime(DATE_FORMAT)
        rows = [
            ContentChangelog(filename=filename, date=applied_at, content=content, tag=tag)
            for filename, content in contents.items()
        ]
        try:
            with self._session_factory.begin() as session:
                session.execute(
                    delete(ContentChangelog).where(ContentChangelog.filename.in_(list(contents)))
                )
                session.add_all(rows)
                session.flush()
                entries = [_to_entry(row) for row in rows]
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Cannot insert ledger entry: {e}",
                datasource=self.datasource,
                filename=", ".join(contents),
                tag=tag,
            ) from e
        for entry in entries:
            logger.info(
                "Content inserted for %s (ok)", entry.filename,
                extra={"changelog": entry.filename, "tag": tag},
            )
        return entries

    def delete(self, filename: str) -> int:
        """Remove the entry for a filename. Returns the number of rows removed."""
        try:
            with self._session_factory.begin() as session:
                result = session.execute(
                    delete(ContentChangelog).where(ContentChangelog.filename == filename)
                )
                removed = result.rowcount or 0
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Cannot delete ledger entry: {e}", datasource=self.datasource, filename=filename
            ) from e
        logger.info("Content removed for %s (%d rows)", filename, removed, extra={"changelog": filename})
        return removed
