"""FastAPI dependencies.

The migration engine and the datasource factory are set on ``app.state`` by
``create_app``; routes reach them through these getters.
"""

from typing import List

from fastapi import Request

from src.changelog_sync.context import DatasourceContext
from src.changelog_sync.engine import MigrationEngine
from src.changelog_sync.reconciler import FileReconciler


def get_migration_engine(request: Request) -> MigrationEngine:
    return request.app.state.migration_engine


def get_contexts(request: Request) -> List[DatasourceContext]:
    """Datasource contexts, rebuilt per request so settings changes are seen."""
    return request.app.state.contexts_factory()


def get_reconciler(request: Request) -> FileReconciler:
    return FileReconciler(get_migration_engine(request))
