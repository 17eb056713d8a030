"""Tests for the Liquibase CLI engine."""

import subprocess
from dataclasses import replace
from unittest.mock import patch

import pytest

from src.changelog_sync.config import ChangeSet
from src.changelog_sync.exceptions import EngineError
from src.changelog_sync.liquibase import LiquibaseCli, parse_status_output

STATUS_OUTPUT = """\
1 changesets have not been applied to APP@jdbc:postgresql://localhost/app
     conf/liquibase/default/V2__orders.xml::1::alice
     conf/liquibase/default/V2__orders.xml::2::alice
     conf/liquibase/default/V3__index.xml::idx-1::bob
Liquibase command 'status' was executed successfully.
"""


def _completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestParseStatusOutput:
    def test_parses_changeset_lines(self):
        change_sets = parse_status_output(STATUS_OUTPUT)
        assert change_sets == [
            ChangeSet("conf/liquibase/default/V2__orders.xml", "1", "alice"),
            ChangeSet("conf/liquibase/default/V2__orders.xml", "2", "alice"),
            ChangeSet("conf/liquibase/default/V3__index.xml", "idx-1", "bob"),
        ]

    def test_up_to_date_output(self):
        assert parse_status_output("APP@jdbc:h2:mem is up to date\n") == []


class TestLiquibaseSession:
    def setup_method(self):
        self.cli = LiquibaseCli("/opt/liquibase/liquibase")

    def test_requires_jdbc_url(self, make_ctx):
        ctx = replace(make_ctx(), jdbc_url="")
        with pytest.raises(EngineError, match="No JDBC URL"):
            self.cli.open(ctx.master_file, ctx)

    def test_status_command_line(self, ctx):
        session = self.cli.open(ctx.master_file, ctx)
        with patch("src.changelog_sync.liquibase.subprocess.run",
                   return_value=_completed(stdout=STATUS_OUTPUT)) as run:
            change_sets = session.list_unrun("dev")

        assert len(change_sets) == 3
        cmd = run.call_args.args[0]
        assert cmd[0] == "/opt/liquibase/liquibase"
        assert "--changelog-file=conf/liquibase/default/db.changelog-master.xml" in cmd
        assert f"--search-path={ctx.search_path}" in cmd
        assert "--url=jdbc:sqlite:app.db" in cmd
        assert cmd[-3:] == ["status", "--verbose", "--contexts=dev"]
        assert run.call_args.kwargs["cwd"] == str(ctx.search_path)

    def test_rollback_command_line(self, ctx):
        session = self.cli.open(ctx.master_file, ctx)
        with patch("src.changelog_sync.liquibase.subprocess.run", return_value=_completed()) as run:
            session.rollback("state-1", "test")
        assert run.call_args.args[0][-3:] == ["rollback", "--tag=state-1", "--contexts=test"]

    def test_credentials_only_when_set(self, ctx):
        session = self.cli.open(ctx.master_file, ctx)
        with patch("src.changelog_sync.liquibase.subprocess.run", return_value=_completed()) as run:
            session.tag("state-1")
        cmd = run.call_args.args[0]
        assert not any(arg.startswith("--username") for arg in cmd)
        assert cmd[-2:] == ["tag", "--tag=state-1"]

    def test_nonzero_exit_raises_with_stderr(self, ctx):
        session = self.cli.open(ctx.master_file, ctx)
        with patch("src.changelog_sync.liquibase.subprocess.run",
                   return_value=_completed(returncode=1, stderr="Validation Failed")):
            with pytest.raises(EngineError, match="update exited with 1: Validation Failed"):
                session.update("dev")

    def test_missing_executable_raises(self, ctx):
        session = self.cli.open(ctx.master_file, ctx)
        with patch("src.changelog_sync.liquibase.subprocess.run",
                   side_effect=FileNotFoundError("liquibase")):
            with pytest.raises(EngineError, match="Cannot run"):
                session.update_testing_rollback("dev")
