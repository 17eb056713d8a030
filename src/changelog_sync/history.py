"""Read-only access to the migration engine's history table."""

import logging
from typing import List, Optional

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from src.changelog_sync.config import HISTORY_TABLE, INTERNAL_FILENAME
from src.changelog_sync.exceptions import PersistenceError

logger = logging.getLogger(__name__)


class ChangelogHistory:
    """Distinct changelog filenames recorded by the engine, newest first."""

    def __init__(self, engine: Engine, datasource: str = ""):
        self.engine = engine
        self.datasource = datasource

    def _table_name(self) -> Optional[str]:
        # Unquoted identifiers fold to lower case on some databases.
        try:
            names = inspect(self.engine).get_table_names()
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Cannot list tables: {e}", datasource=self.datasource
            ) from e
        for name in names:
            if name.upper() == HISTORY_TABLE:
                return name
        return None

    def exists(self) -> bool:
        return self._table_name() is not None

    def filenames(self) -> List[str]:
        """Distinct filenames ordered by their latest execution, descending.

        Returns an empty list when the history table does not exist.
        """
        table = self._table_name()
        if table is None:
            return []
        quoted = self.engine.dialect.identifier_preparer.quote(table)
        query = text(
            f"SELECT filename, MAX(orderexecuted) AS last_executed FROM {quoted} "
            "WHERE filename <> :internal "
            "GROUP BY filename "
            "ORDER BY last_executed DESC"
        )
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(query, {"internal": INTERNAL_FILENAME}).all()
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Cannot read {table}: {e}", datasource=self.datasource
            ) from e
        return [row[0] for row in rows]
