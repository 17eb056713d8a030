"""Tests for the command line entry point."""

import json
from unittest.mock import patch

import pytest

import main
from src.changelog_sync.config import ChangeSet
from src.changelog_sync.ledger import ContentLedger
from src.settings import DatasourceSettings, Settings
from tests.fakes import FakeEngine, MASTER_XML, create_history_table


@pytest.fixture
def settings(tmp_path):
    master_dir = tmp_path / "conf" / "liquibase" / "default"
    master_dir.mkdir(parents=True)
    (master_dir / "db.changelog-master.xml").write_text(MASTER_XML, encoding="utf-8")
    return Settings(
        _env_file=None,
        app_root=str(tmp_path),
        datasources={
            "default": DatasourceSettings(
                url=f"sqlite:///{tmp_path / 'app.db'}", jdbc_url="jdbc:sqlite:app.db", auto_apply=True
            )
        },
    )


class TestMain:
    @pytest.fixture(autouse=True)
    def _patch(self, settings):
        self.settings = settings
        self.engine = FakeEngine()
        with patch.object(main, "get_settings", return_value=settings), \
                patch.object(main, "LiquibaseCli", return_value=self.engine), \
                patch.object(main, "configure_logging"):
            yield

    def test_parser_requires_command(self):
        with pytest.raises(SystemExit):
            main.build_parser().parse_args([])

    def test_upgrade_applies(self, tmp_path, capsys):
        (tmp_path / "V2.xml").write_text("<b/>", encoding="utf-8")
        self.engine.unrun = [ChangeSet("V2.xml", "1", "dev")]

        assert main.main(["upgrade"]) == main.EXIT_OK

        reports = json.loads(capsys.readouterr().out)
        assert reports[0]["state"] == "done"
        assert reports[0]["tag"].startswith("state-")

    def test_upgrade_needing_confirmation_exits_2(self, capsys):
        from src.db.engine import get_sync_engine

        db = get_sync_engine(self.settings.datasources["default"].url)
        create_history_table(db, [("1", "V1.xml", 1)])
        ledger = ContentLedger(db)
        ledger.ensure_table_exists()
        ledger.insert("V1.xml", "<a/>", "state-1")

        assert main.main(["upgrade"]) == main.EXIT_CONFIRMATION_REQUIRED
        assert "python main.py confirm" in capsys.readouterr().err

    def test_confirm_then_status(self, capsys):
        assert main.main(["confirm"]) == main.EXIT_OK
        results = json.loads(capsys.readouterr().out)
        assert results[0]["status"] == "reconciled"

        assert main.main(["status"]) == main.EXIT_OK
        status = json.loads(capsys.readouterr().out)
        assert status[0]["datasource"] == "default"
        assert status[0]["history_table"] is False

    def test_failure_exits_1(self, capsys):
        self.engine.unrun = [ChangeSet("V2.xml", "1", "dev")]
        self.engine.fail_on.add("update_testing_rollback")
        assert main.main(["upgrade"]) == main.EXIT_FAILED
        assert "Rollback test failed" in capsys.readouterr().err
