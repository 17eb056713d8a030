"""Tests for changelog file operations."""

import pytest

from src.changelog_sync import files
from src.changelog_sync.exceptions import PersistenceError


class TestChangelogFiles:
    def test_file_exists_ignores_directories(self, tmp_path):
        (tmp_path / "dir.xml").mkdir()
        (tmp_path / "file.xml").write_text("<a/>")
        assert files.file_exists(tmp_path / "file.xml")
        assert not files.file_exists(tmp_path / "dir.xml")
        assert not files.file_exists(tmp_path / "missing.xml")

    def test_write_new_then_read_preserves_line_endings(self, tmp_path):
        path = tmp_path / "V1.xml"
        files.write_new(path, "<a/>\r\n<b/>\n")
        assert files.read_text(path) == "<a/>\r\n<b/>\n"

    def test_write_new_refuses_existing_file(self, tmp_path):
        path = tmp_path / "V1.xml"
        path.write_text("keep me")
        with pytest.raises(PersistenceError, match="exists") as exc_info:
            files.write_new(path, "<a/>")
        assert exc_info.value.filename == str(path)
        assert path.read_text() == "keep me"

    def test_read_missing_raises(self, tmp_path):
        with pytest.raises(PersistenceError):
            files.read_text(tmp_path / "missing.xml")

    def test_delete_missing_raises(self, tmp_path):
        with pytest.raises(PersistenceError):
            files.delete(tmp_path / "missing.xml")

    def test_rename_replaces_destination(self, tmp_path):
        source = tmp_path / "V1.xml.tmp"
        destination = tmp_path / "V1.xml"
        source.write_text("new")
        destination.write_text("old")
        files.rename(source, destination)
        assert destination.read_text() == "new"
        assert not source.exists()

    def test_rename_missing_source_raises(self, tmp_path):
        with pytest.raises(PersistenceError, match="not successfully renamed"):
            files.rename(tmp_path / "a.xml", tmp_path / "b.xml")

    def test_read_non_utf8_raises_persistence_error(self, tmp_path):
        path = tmp_path / "V2.xml"
        path.write_bytes(b'<changeSet id="1" author="J\xfcrgen"/>')
        with pytest.raises(PersistenceError, match="not valid UTF-8") as exc_info:
            files.read_text(path)
        assert exc_info.value.filename == str(path)
        assert isinstance(exc_info.value.__cause__, UnicodeDecodeError)

    def test_write_unencodable_content_leaves_no_file(self, tmp_path):
        path = tmp_path / "V2.xml"
        with pytest.raises(PersistenceError, match="Cannot encode"):
            files.write_new(path, "<a/>\udcfc")
        assert not path.exists()

    def test_make_parents_and_remove_dirs(self, tmp_path):
        path = tmp_path / "db" / "2023" / "V1.xml"
        created = files.make_parents(path)
        assert created == [tmp_path / "db" / "2023", tmp_path / "db"]
        assert path.parent.is_dir()

        files.remove_dirs(created)
        assert not (tmp_path / "db").exists()
        assert tmp_path.exists()

    def test_make_parents_with_existing_parent(self, tmp_path):
        assert files.make_parents(tmp_path / "V1.xml") == []

    def test_remove_dirs_refuses_non_empty(self, tmp_path):
        (tmp_path / "db").mkdir()
        (tmp_path / "db" / "keep.xml").write_text("<a/>")
        with pytest.raises(PersistenceError):
            files.remove_dirs([tmp_path / "db"])
