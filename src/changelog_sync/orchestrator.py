"""Upgrade orchestration per datasource.

For each datasource, in order: make sure the ledger table exists, reconcile
drifted changelog files (without destructive rollback), then, when the
datasource is set to auto-apply and the engine reports unrun changesets,
tag the current state, test the rollback, apply, and back up every applied
changelog file in the ledger. Any failure after tagging rolls the database
back to the tag before the error is raised.

Engine update and ledger insert are not wrapped in one transaction: a crash
between the two leaves the database migrated without a ledger backup.
"""

import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from src.changelog_sync import files
from src.changelog_sync.config import TAG_FORMAT, TAG_PREFIX, UpgradeReport, UpgradeState
from src.changelog_sync.context import DatasourceContext
from src.changelog_sync.engine import MigrationEngine, MigrationEngineAdapter
from src.changelog_sync.exceptions import (
    ApplyError,
    ChangelogSyncError,
    ConfirmationRequiredError,
    LedgerPersistError,
    ProductionGuardError,
    TestRollbackError,
)
from src.changelog_sync.ledger import ContentLedger
from src.changelog_sync.reconciler import FileReconciler
from src.logging_config.context import SyncContext
from src.logging_config.performance import log_performance

logger = logging.getLogger(__name__)


def make_tag(now: Optional[datetime] = None) -> str:
    """Timestamp-derived rollback label, e.g. ``state-20240701-141503-000123``."""
    return TAG_PREFIX + (now or datetime.now()).strftime(TAG_FORMAT)


class UpgradeOrchestrator:
    """Runs the reconcile-then-upgrade sequence for each datasource."""

    def __init__(
        self,
        engine: MigrationEngine,
        reconciler: Optional[FileReconciler] = None,
        tag_factory: Callable[[], str] = make_tag,
    ):
        self.engine = engine
        self.reconciler = reconciler or FileReconciler(engine)
        self.tag_factory = tag_factory

    @log_performance(threshold_ms=120_000)
    def run(self, ctx: DatasourceContext) -> UpgradeReport:
        """Reconcile and upgrade one datasource.

        Raises:
            ConfirmationRequiredError: A missing changelog can only be
                rebuilt with operator consent.
            ChangelogSyncError: Any other failure; the datasource is left
                rolled back to the pass's tag when one was created.
        """
        with SyncContext(datasource=ctx.name):
            logger.info("Changelog sync starting for datasource %s (%s)", ctx.name, ctx.mode.value)
            ledger = ContentLedger(ctx.engine, ctx.name)
            ledger.ensure_table_exists()

            result = self.reconciler.reconcile(ctx, allow_destructive_rollback=False)
            result.raise_for_status()
            report = UpgradeReport(datasource=ctx.name, state=UpgradeState.NO_WORK, repaired=result.repaired)

            if not ctx.auto_apply:
                logger.warning("Apply disabled in configuration for datasource: %s", ctx.name)
                report.state = UpgradeState.DISABLED
                return report

            adapter = MigrationEngineAdapter.open(self.engine, ctx)
            filenames = adapter.changelog_filenames()
            if not filenames:
                logger.info("No unrun changesets found")
                return report
            report.filenames = filenames

            if ctx.is_production:
                raise ProductionGuardError(
                    "Production database needs updates; no automatic update to production, run manually",
                    datasource=ctx.name,
                    filename=", ".join(filenames),
                )

            report.tag = self.upgrade(ctx, adapter, ledger, filenames)
            report.state = UpgradeState.DONE
            logger.info("Changelog sync finished (ok)")
            return report

    def upgrade(
        self,
        ctx: DatasourceContext,
        adapter: MigrationEngineAdapter,
        ledger: ContentLedger,
        filenames: List[str],
    ) -> str:
        """Tag, test, apply and record. Returns the tag of this attempt."""
        tag = adapter.tag(self.tag_factory())

        if not adapter.test_rollback():
            adapter.rollback(tag)
            raise TestRollbackError(
                "Rollback test failed, changesets were not applied", datasource=ctx.name, tag=tag
            )

        if not adapter.update():
            adapter.rollback(tag)
            raise ApplyError(
                "Update from changesets failed, database rolled back", datasource=ctx.name, tag=tag
            )

        contents = {}
        try:
            for filename in filenames:
                contents[filename] = files.read_text(ctx.resolve(filename))
            ledger.insert_all(contents, tag)
        except ChangelogSyncError as e:
            adapter.rollback(tag)
            raise LedgerPersistError(
                f"Cannot back up applied changelog, database rolled back: {e.message}",
                datasource=ctx.name,
                filename=filename if filename not in contents else ", ".join(filenames),
                tag=tag,
            ) from e
        return tag

    def run_all(
        self, contexts: Iterable[DatasourceContext], stop_on_error: bool = True
    ) -> List[UpgradeReport]:
        """Run every datasource in turn.

        With ``stop_on_error`` the first failure propagates. Otherwise each
        failure is logged and recorded in the reports, and a pending
        confirmation is re-raised once every datasource has been visited.
        """
        reports = []
        pending: Optional[ConfirmationRequiredError] = None
        with SyncContext():
            for ctx in contexts:
                try:
                    reports.append(self.run(ctx))
                except ChangelogSyncError as e:
                    if stop_on_error:
                        raise
                    logger.error("Datasource %s failed: %s", ctx.name, e)
                    state = _failure_state(e)
                    reports.append(
                        UpgradeReport(datasource=ctx.name, state=state, tag=e.tag, error=str(e))
                    )
                    if isinstance(e, ConfirmationRequiredError) and pending is None:
                        pending = e
        if pending is not None:
            raise pending
        return reports


def _failure_state(error: ChangelogSyncError) -> UpgradeState:
    if isinstance(error, ConfirmationRequiredError):
        return UpgradeState.CONFIRMATION_REQUIRED
    if isinstance(error, TestRollbackError):
        return UpgradeState.TEST_FAILED
    if isinstance(error, ApplyError):
        return UpgradeState.APPLY_FAILED
    if isinstance(error, LedgerPersistError):
        return UpgradeState.RECORD_FAILED
    return UpgradeState.FAILED
