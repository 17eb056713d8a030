"""Tests for the content ledger (CONTENTCHANGELOG)."""

from unittest.mock import patch

import pytest
from sqlalchemy import Table, event, inspect, text
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from src.changelog_sync.exceptions import PersistenceError
from src.changelog_sync.ledger import ContentLedger
from src.db.models import ContentChangelog


class TestEnsureTable:
    def test_creates_table_when_absent(self, db_engine):
        ledger = ContentLedger(db_engine, "default")
        assert ledger.table_exists() is False
        ledger.ensure_table_exists()
        assert inspect(db_engine).has_table("CONTENTCHANGELOG")

    def test_is_idempotent(self, db_engine):
        ledger = ContentLedger(db_engine, "default")
        ledger.ensure_table_exists()
        ledger.insert("V1.xml", "<a/>", "state-1")
        ledger.ensure_table_exists()
        assert ledger.lookup("V1.xml").content == "<a/>"

    def test_logs_exists_on_second_call(self, db_engine, caplog):
        ledger = ContentLedger(db_engine)
        ledger.ensure_table_exists()
        with caplog.at_level("INFO", logger="src.changelog_sync.ledger"):
            ledger.ensure_table_exists()
        assert "Content changelog table exists" in caplog.text


class TestLedgerEntries:
    def setup_method(self):
        self.content = '<databaseChangeLog>\n  <changeSet id="1" author="dev"/>\n</databaseChangeLog>\n'

    @pytest.fixture
    def ledger(self, db_engine):
        ledger = ContentLedger(db_engine, "default")
        ledger.ensure_table_exists()
        return ledger

    def test_lookup_missing_returns_none(self, ledger):
        assert ledger.lookup("nope.xml") is None

    def test_insert_and_lookup_keeps_content_verbatim(self, ledger):
        entry = ledger.insert("V1__add_table.xml", self.content, "state-1")
        found = ledger.lookup("V1__add_table.xml")
        assert found == entry
        assert found.content == self.content
        assert found.tag == "state-1"
        assert len(found.applied_at) == len("2024-07-01 14:15:03")

    def test_insert_replaces_prior_entry(self, ledger):
        ledger.insert("V1.xml", "<old/>", "state-1")
        ledger.insert("V1.xml", "<new/>", "state-2")
        entries = [e for e in ledger.entries() if e.filename == "V1.xml"]
        assert len(entries) == 1
        assert entries[0].content == "<new/>"
        assert entries[0].tag == "state-2"

    def test_lookup_picks_newest_row(self, ledger, db_engine):
        # Rows written by older tooling may leave duplicates behind.
        with db_engine.begin() as conn:
            for content, tag in (("<a/>", "state-1"), ("<b/>", "state-2")):
                conn.execute(
                    text("INSERT INTO CONTENTCHANGELOG (filename, date, content, tag) "
                         "VALUES ('V1.xml', '2024-01-01 00:00:00', :c, :t)"),
                    {"c": content, "t": tag},
                )
        assert ledger.lookup("V1.xml").tag == "state-2"

    def test_entries_are_oldest_first(self, ledger):
        ledger.insert("V1.xml", "<a/>", "state-1")
        ledger.insert("V2.xml", "<b/>", "state-2")
        assert [e.filename for e in ledger.entries()] == ["V1.xml", "V2.xml"]

    def test_insert_all_shares_tag_and_date(self, ledger):
        ledger.insert("V1.xml", "<old/>", "state-1")
        entries = ledger.insert_all({"V1.xml": "<a/>", "V2.xml": "<b/>"}, "state-2")
        assert [(e.filename, e.tag) for e in entries] == [("V1.xml", "state-2"), ("V2.xml", "state-2")]
        assert entries[0].applied_at == entries[1].applied_at
        assert ledger.entries() == entries

    def test_delete_removes_entry(self, ledger):
        ledger.insert("V1.xml", "<a/>", "state-1")
        assert ledger.delete("V1.xml") == 1
        assert ledger.lookup("V1.xml") is None

    def test_delete_unknown_is_zero(self, ledger):
        assert ledger.delete("V9.xml") == 0


class TestLedgerErrors:
    def test_insert_without_table_raises_persistence_error(self, db_engine):
        ledger = ContentLedger(db_engine, "default")
        with pytest.raises(PersistenceError) as exc_info:
            ledger.insert("V1.xml", "<a/>", "state-1")
        err = exc_info.value
        assert err.datasource == "default"
        assert err.filename == "V1.xml"
        assert err.tag == "state-1"
        assert isinstance(err.__cause__, OperationalError)

    def test_lookup_without_table_raises(self, db_engine):
        with pytest.raises(PersistenceError):
            ContentLedger(db_engine).lookup("V1.xml")

    def test_create_failure_is_wrapped(self, db_engine):
        ledger = ContentLedger(db_engine, "default")
        error = OperationalError("CREATE TABLE", {}, Exception("disk full"))
        with patch.object(Table, "create", side_effect=error):
            with pytest.raises(PersistenceError, match="Cannot create"):
                ledger.ensure_table_exists()

    def test_insert_all_is_all_or_nothing(self, db_engine):
        ledger = ContentLedger(db_engine, "default")
        ledger.ensure_table_exists()
        ledger.insert("A.xml", "<a-old/>", "state-1")

        def fail_on_b(mapper, connection, target):
            if target.filename == "B.xml":
                raise SQLAlchemyError("disk full")

        event.listen(ContentChangelog, "before_insert", fail_on_b)
        try:
            with pytest.raises(PersistenceError) as exc_info:
                ledger.insert_all({"A.xml": "<a/>", "B.xml": "<b/>"}, "state-2")
        finally:
            event.remove(ContentChangelog, "before_insert", fail_on_b)

        assert exc_info.value.filename == "A.xml, B.xml"
        assert [(e.filename, e.content, e.tag) for e in ledger.entries()] == [
            ("A.xml", "<a-old/>", "state-1")
        ]
