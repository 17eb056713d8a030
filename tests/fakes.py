"""Test doubles and database helpers shared by the test modules."""

from pathlib import Path
from typing import List, Optional

from sqlalchemy import text

from src.changelog_sync.config import ChangeSet
from src.changelog_sync.context import DatasourceContext

MASTER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<databaseChangeLog xmlns="http://www.liquibase.org/xml/ns/dbchangelog"
    xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
    xsi:schemaLocation="http://www.liquibase.org/xml/ns/dbchangelog http://www.liquibase.org/xml/ns/dbchangelog/dbchangelog-4.20.xsd">
    <include file="V0__base.xml"/>
</databaseChangeLog>
"""


class FakeSession:
    """Engine session that records every call made through it."""

    def __init__(self, engine: "FakeEngine", master_file: Path):
        self.engine = engine
        self.master_file = master_file

    def _call(self, name: str, *args):
        self.engine.calls.append((name, self.master_file, *args))
        if name in self.engine.hooks:
            self.engine.hooks[name](self.master_file, *args)
        if name in self.engine.fail_on:
            raise RuntimeError(f"{name} failed")

    def list_unrun(self, context: str) -> List[ChangeSet]:
        self._call("list_unrun", context)
        return list(self.engine.unrun)

    def tag(self, label: str) -> None:
        self._call("tag", label)

    def update_testing_rollback(self, context: str) -> None:
        self._call("update_testing_rollback", context)

    def update(self, context: str) -> None:
        self._call("update", context)

    def rollback(self, tag: str, context: str) -> None:
        self._call("rollback", tag, context)


class FakeEngine:
    """Recording ``MigrationEngine`` for tests.

    ``fail_on`` names session calls that raise; ``hooks`` maps a call name
    to a callback run before it, receiving the master file and arguments.
    """

    def __init__(self, unrun: Optional[List[ChangeSet]] = None):
        self.unrun = list(unrun or [])
        self.calls: list = []
        self.opened: List[Path] = []
        self.fail_on: set = set()
        self.hooks: dict = {}

    def open(self, master_file: Path, ctx: DatasourceContext) -> FakeSession:
        self.opened.append(master_file)
        return FakeSession(self, master_file)

    def names(self) -> List[str]:
        return [c[0] for c in self.calls]

    def calls_to(self, name: str) -> list:
        return [c for c in self.calls if c[0] == name]


def create_history_table(engine, rows=()):
    """Create a DATABASECHANGELOG table with ``(id, filename, orderexecuted)`` rows."""
    with engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE DATABASECHANGELOG ("
            "ID VARCHAR(255) NOT NULL, AUTHOR VARCHAR(255) NOT NULL, "
            "FILENAME VARCHAR(255) NOT NULL, DATEEXECUTED TIMESTAMP, "
            "ORDEREXECUTED INTEGER NOT NULL, TAG VARCHAR(255))"
        ))
        for change_id, filename, order in rows:
            add_history_row(conn, change_id, filename, order)


def add_history_row(conn, change_id: str, filename: str, order: int, tag: Optional[str] = None):
    conn.execute(
        text(
            "INSERT INTO DATABASECHANGELOG (ID, AUTHOR, FILENAME, DATEEXECUTED, ORDEREXECUTED, TAG) "
            "VALUES (:id, 'dev', :filename, CURRENT_TIMESTAMP, :order, :tag)"
        ),
        {"id": change_id, "filename": filename, "order": order, "tag": tag},
    )


def delete_history_rows(engine, filename: str):
    with engine.begin() as conn:
        conn.execute(text("DELETE FROM DATABASECHANGELOG WHERE FILENAME = :f"), {"f": filename})


def forget_history_on_rollback(fake: FakeEngine, db_engine, filename: str):
    """Make ``fake`` drop the history rows of ``filename`` on rollback, as Liquibase does."""
    fake.hooks["rollback"] = lambda master_file, tag, context: delete_history_rows(db_engine, filename)
