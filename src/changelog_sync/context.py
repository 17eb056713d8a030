"""Per-datasource context threaded through reconciliation and upgrade."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sqlalchemy.engine import Engine

from src.changelog_sync.config import TEMP_MASTER_SUFFIX, RunMode, resolve_changelog_path


@dataclass(frozen=True)
class DatasourceContext:
    """Everything one datasource pass needs; never shared between datasources.

    Attributes:
        name: Datasource name as configured by the host application.
        engine: SQLAlchemy engine for the datasource.
        master_file: Master changelog the migration engine reads.
        search_path: Root that changelog filenames in the history table are
            relative to.
        mode: Run mode of the host application.
        auto_apply: Whether unrun changesets may be applied automatically.
        jdbc_url: Connection URL handed to the migration engine.
    """

    name: str
    engine: Engine
    master_file: Path
    search_path: Path
    mode: RunMode = RunMode.DEVELOPMENT
    auto_apply: bool = False
    jdbc_url: str = ""
    username: Optional[str] = None
    password: Optional[str] = None

    @property
    def temp_master_file(self) -> Path:
        return self.master_file.with_name(self.master_file.name + TEMP_MASTER_SUFFIX)

    @property
    def engine_context(self) -> str:
        return self.mode.context

    @property
    def is_production(self) -> bool:
        return self.mode == RunMode.PRODUCTION

    def resolve(self, filename: str) -> Path:
        return resolve_changelog_path(self.search_path, filename)
