"""Changelog drift reconciliation and safe-rollback upgrades.

Keeps a directory of Liquibase changelog files consistent with a database's
migration history. Applied changelog files are backed up in a content
ledger; when a file later goes missing or changes, the applied version is
rebuilt from the ledger and rolled back before anything new is applied.

Datasource discovery lives in ``src.changelog_sync.datasources`` and is not
re-exported here, since it depends on application settings.
"""

from src.changelog_sync.config import (
    ChangeSet,
    DriftItem,
    DriftKind,
    LedgerEntry,
    ReconcileStatus,
    RunMode,
    UpgradeReport,
    UpgradeState,
)
from src.changelog_sync.context import DatasourceContext
from src.changelog_sync.engine import EngineSession, MigrationEngine, MigrationEngineAdapter
from src.changelog_sync.exceptions import (
    ApplyError,
    ChangelogSyncError,
    ConfirmationRequiredError,
    EngineError,
    IrreconcilableDriftError,
    LedgerPersistError,
    PersistenceError,
    ProductionGuardError,
    ReconciliationError,
    TestRollbackError,
)
from src.changelog_sync.gate import ConfirmationGate
from src.changelog_sync.ledger import ContentLedger
from src.changelog_sync.liquibase import LiquibaseCli
from src.changelog_sync.master import MasterChangelog
from src.changelog_sync.orchestrator import UpgradeOrchestrator, make_tag
from src.changelog_sync.reconciler import FileReconciler, ReconcileResult

__all__ = [
    # Config
    "ChangeSet",
    "DriftItem",
    "DriftKind",
    "LedgerEntry",
    "ReconcileStatus",
    "RunMode",
    "UpgradeReport",
    "UpgradeState",
    # Context
    "DatasourceContext",
    # Engine
    "EngineSession",
    "MigrationEngine",
    "MigrationEngineAdapter",
    "LiquibaseCli",
    # Errors
    "ApplyError",
    "ChangelogSyncError",
    "ConfirmationRequiredError",
    "EngineError",
    "IrreconcilableDriftError",
    "LedgerPersistError",
    "PersistenceError",
    "ProductionGuardError",
    "ReconciliationError",
    "TestRollbackError",
    # Components
    "ConfirmationGate",
    "ContentLedger",
    "FileReconciler",
    "MasterChangelog",
    "ReconcileResult",
    "UpgradeOrchestrator",
    "make_tag",
]
