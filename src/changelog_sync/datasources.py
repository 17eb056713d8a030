"""Datasource discovery from settings.

Every configured datasource becomes one ``DatasourceContext`` whose master
changelog lives at ``<app_root>/<changelog_dir>/<name>/<master_filename>``.
Also builds the read-only status snapshot served by the CLI and the API.
"""

import logging
from pathlib import Path
from typing import List, Optional

from src.changelog_sync.context import DatasourceContext
from src.changelog_sync.history import ChangelogHistory
from src.changelog_sync.ledger import ContentLedger
from src.changelog_sync.reconciler import FileReconciler
from src.db.engine import get_sync_engine
from src.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def master_file_for(settings: Settings, name: str) -> Path:
    return Path(settings.app_root) / settings.changelog_dir / name / settings.master_filename


def build_contexts(settings: Optional[Settings] = None) -> List[DatasourceContext]:
    """One context per configured datasource, in configuration order."""
    settings = settings or get_settings()
    contexts = []
    for name, ds in settings.datasources.items():
        contexts.append(
            DatasourceContext(
                name=name,
                engine=get_sync_engine(ds.url),
                master_file=master_file_for(settings, name),
                search_path=Path(settings.app_root),
                mode=settings.mode,
                auto_apply=ds.auto_apply,
                jdbc_url=ds.jdbc_url,
                username=ds.username,
                password=ds.password,
            )
        )
    if not contexts:
        logger.warning("No datasources configured")
    return contexts


def describe_datasource(ctx: DatasourceContext, reconciler: FileReconciler) -> dict:
    """Read-only snapshot of a datasource: history, drift and ledger backups."""
    ledger = ContentLedger(ctx.engine, ctx.name)
    history = ChangelogHistory(ctx.engine, ctx.name)
    entries = ledger.entries() if ledger.table_exists() else []
    return {
        "datasource": ctx.name,
        "mode": ctx.mode.value,
        "auto_apply": ctx.auto_apply,
        "master_file": str(ctx.master_file),
        "history_table": history.exists(),
        "drift": [item.to_dict() for item in reconciler.inspect(ctx)],
        "ledger": [
            {"filename": e.filename, "applied_at": e.applied_at, "tag": e.tag} for e in entries
        ],
    }
