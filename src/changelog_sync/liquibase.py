"""Migration engine backed by the Liquibase command line.

Each session call runs one ``liquibase`` command against a master
changelog and the datasource's JDBC connection. Unrun changesets are read
from ``status --verbose`` output, one ``path::id::author`` line each.
"""

import logging
import os
import re
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from src.changelog_sync.config import ChangeSet
from src.changelog_sync.context import DatasourceContext
from src.changelog_sync.exceptions import EngineError

logger = logging.getLogger(__name__)

CHANGESET_LINE = re.compile(r"^\s*(?P<path>[^\s].*?)::(?P<id>.+?)::(?P<author>.+?)\s*$")
STDERR_TAIL = 2000


def parse_status_output(output: str) -> List[ChangeSet]:
    """Extract unrun changesets from ``liquibase status --verbose`` output."""
    change_sets = []
    for line in output.splitlines():
        match = CHANGESET_LINE.match(line)
        if match:
            change_sets.append(
                ChangeSet(
                    file_path=match.group("path"),
                    id=match.group("id"),
                    author=match.group("author"),
                )
            )
    return change_sets


class LiquibaseSession:
    """Engine session running ``liquibase`` commands for one master changelog."""

    def __init__(self, executable: str, master_file: Path, ctx: DatasourceContext):
        self.executable = executable
        self.master_file = master_file
        self.ctx = ctx

    def _changelog_argument(self) -> str:
        # Filenames in the history table are recorded relative to the search path.
        try:
            return os.path.relpath(self.master_file, self.ctx.search_path)
        except ValueError:
            return str(self.master_file)

    def _global_options(self) -> List[str]:
        options = [
            f"--changelog-file={self._changelog_argument()}",
            f"--search-path={self.ctx.search_path}",
            f"--url={self.ctx.jdbc_url}",
        ]
        if self.ctx.username:
            options.append(f"--username={self.ctx.username}")
        if self.ctx.password:
            options.append(f"--password={self.ctx.password}")
        return options

    def run(self, command: str, args: Sequence[str] = ()) -> str:
        cmd = [self.executable, *self._global_options(), command, *args]
        logger.debug("Running liquibase %s %s", command, " ".join(args))
        try:
            result = subprocess.run(
                cmd,
                cwd=str(self.ctx.search_path),
                capture_output=True,
                text=True,
            )
        except OSError as e:
            raise EngineError(
                f"Cannot run {self.executable}: {e}", datasource=self.ctx.name
            ) from e

        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()[-STDERR_TAIL:]
            raise EngineError(
                f"liquibase {command} exited with {result.returncode}: {detail}",
                datasource=self.ctx.name,
                filename=str(self.master_file),
            )
        return result.stdout

    def list_unrun(self, context: str) -> List[ChangeSet]:
        return parse_status_output(self.run("status", ["--verbose", f"--contexts={context}"]))

    def tag(self, label: str) -> None:
        self.run("tag", [f"--tag={label}"])

    def update_testing_rollback(self, context: str) -> None:
        self.run("update-testing-rollback", [f"--contexts={context}"])

    def update(self, context: str) -> None:
        self.run("update", [f"--contexts={context}"])

    def rollback(self, tag: str, context: str) -> None:
        self.run("rollback", [f"--tag={tag}", f"--contexts={context}"])


class LiquibaseCli:
    """``MigrationEngine`` that shells out to the Liquibase CLI."""

    def __init__(self, executable: Optional[str] = None):
        self.executable = executable or "liquibase"

    def open(self, master_file: Path, ctx: DatasourceContext) -> LiquibaseSession:
        if not ctx.jdbc_url:
            raise EngineError("No JDBC URL configured", datasource=ctx.name)
        return LiquibaseSession(self.executable, master_file, ctx)
