"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path
from typing import Callable

import pytest
from sqlalchemy import create_engine

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.changelog_sync.config import RunMode  # noqa: E402
from src.changelog_sync.context import DatasourceContext  # noqa: E402
from tests.fakes import MASTER_XML, FakeEngine  # noqa: E402


@pytest.fixture
def db_engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'app.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def make_ctx(tmp_path, db_engine) -> Callable[..., DatasourceContext]:
    """Build a context rooted at ``tmp_path`` with a master changelog on disk."""

    def _make(
        mode: RunMode = RunMode.DEVELOPMENT,
        auto_apply: bool = True,
        name: str = "default",
    ) -> DatasourceContext:
        master_dir = tmp_path / "conf" / "liquibase" / name
        master_dir.mkdir(parents=True, exist_ok=True)
        master_file = master_dir / "db.changelog-master.xml"
        if not master_file.exists():
            master_file.write_text(MASTER_XML, encoding="utf-8")
        return DatasourceContext(
            name=name,
            engine=db_engine,
            master_file=master_file,
            search_path=tmp_path,
            mode=mode,
            auto_apply=auto_apply,
            jdbc_url="jdbc:sqlite:app.db",
        )

    return _make


@pytest.fixture
def ctx(make_ctx) -> DatasourceContext:
    return make_ctx()
