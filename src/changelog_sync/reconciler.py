"""Reconciles the engine's history with changelog files on disk.

For every filename the history table references (most recently executed
first) the reconciler compares the file on disk with its ledger backup:

* missing file with a backup: rebuild it, roll back to the backup's tag
  through a temporary master, remove the rebuilt file and the backup.
  Requires ``allow_destructive_rollback``; without it the pass stops and
  asks for confirmation.
* missing file without a backup: nothing can be rebuilt, the pass fails.
* changed file: put the applied version back in place, roll back to the
  backup's tag, drop the backup and restore the edited file, which then
  shows up as unrun.
* matching file, or no backup: nothing to do.

The outcome is returned as a ``ReconcileResult`` rather than raised, so
callers branch on the status.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from src.changelog_sync import files
from src.changelog_sync.config import (
    ASIDE_SUFFIX,
    DriftItem,
    DriftKind,
    LedgerEntry,
    ReconcileStatus,
)
from src.changelog_sync.context import DatasourceContext
from src.changelog_sync.engine import MigrationEngine, MigrationEngineAdapter
from src.changelog_sync.exceptions import (
    ChangelogSyncError,
    ConfirmationRequiredError,
    IrreconcilableDriftError,
    ReconciliationError,
)
from src.changelog_sync.history import ChangelogHistory
from src.changelog_sync.ledger import ContentLedger
from src.changelog_sync.master import write_temp_master
from src.logging_config.performance import log_performance

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass for a datasource."""

    status: ReconcileStatus
    datasource: str
    repaired: List[str] = field(default_factory=list)
    filename: Optional[str] = None
    error: Optional[ChangelogSyncError] = None

    @classmethod
    def reconciled(cls, datasource: str, repaired: List[str]) -> "ReconcileResult":
        return cls(ReconcileStatus.RECONCILED, datasource, repaired=list(repaired))

    @classmethod
    def needs_confirmation(
        cls, datasource: str, filename: str, repaired: List[str]
    ) -> "ReconcileResult":
        return cls(
            ReconcileStatus.NEEDS_CONFIRMATION,
            datasource,
            repaired=list(repaired),
            filename=filename,
        )

    @classmethod
    def failed(
        cls, datasource: str, error: ChangelogSyncError, repaired: List[str]
    ) -> "ReconcileResult":
        return cls(
            ReconcileStatus.FAILED,
            datasource,
            repaired=list(repaired),
            filename=error.filename,
            error=error,
        )

    @property
    def ok(self) -> bool:
        return self.status == ReconcileStatus.RECONCILED

    @property
    def kind(self) -> Optional[str]:
        return type(self.error).__name__ if self.error is not None else None

    @property
    def detail(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None

    def raise_for_status(self) -> None:
        """Raise the error this result stands for; no-op when reconciled."""
        if self.status == ReconcileStatus.NEEDS_CONFIRMATION:
            raise ConfirmationRequiredError(self.filename, datasource=self.datasource)
        if self.status == ReconcileStatus.FAILED:
            raise self.error

    def to_dict(self) -> dict:
        return {
            "datasource": self.datasource,
            "status": self.status.value,
            "repaired": list(self.repaired),
            "filename": self.filename,
            "error": self.kind,
            "detail": self.detail,
        }


class FileReconciler:
    """Detects and repairs drift between history, ledger and changelog files."""

    def __init__(self, engine: MigrationEngine):
        self.engine = engine

    def inspect(self, ctx: DatasourceContext) -> List[DriftItem]:
        """Report drift for every recorded filename without changing anything."""
        history = ChangelogHistory(ctx.engine, ctx.name)
        ledger = ContentLedger(ctx.engine, ctx.name)
        if not history.exists():
            return []

        items = []
        for filename in history.filenames():
            entry = ledger.lookup(filename) if ledger.table_exists() else None
            path = ctx.resolve(filename)
            if not files.file_exists(path):
                kind = DriftKind.MISSING
            elif entry is not None and files.read_text(path) != entry.content:
                kind = DriftKind.CHANGED
            else:
                kind = DriftKind.NONE
            items.append(
                DriftItem(
                    filename=filename,
                    kind=kind,
                    has_backup=entry is not None,
                    tag=entry.tag if entry is not None else None,
                )
            )
        return items

    @log_performance(threshold_ms=60_000)
    def reconcile(
        self, ctx: DatasourceContext, allow_destructive_rollback: bool = False
    ) -> ReconcileResult:
        history = ChangelogHistory(ctx.engine, ctx.name)
        ledger = ContentLedger(ctx.engine, ctx.name)
        repaired: List[str] = []

        try:
            if not history.exists():
                logger.info("First time run, no compare needed")
                return ReconcileResult.reconciled(ctx.name, repaired)
            filenames = history.filenames()
        except ChangelogSyncError as e:
            return ReconcileResult.failed(ctx.name, e, repaired)

        for filename in filenames:
            path = ctx.resolve(filename)
            try:
                entry = ledger.lookup(filename)

                if not files.file_exists(path):
                    logger.warning("Missing changelog file: %s", filename, extra={"changelog": filename})
                    if entry is None:
                        raise IrreconcilableDriftError(
                            f"Cannot regenerate {filename}: no content backup in the ledger",
                            datasource=ctx.name,
                            filename=filename,
                        )
                    if not allow_destructive_rollback:
                        logger.warning(
                            "Rollback of %s needs confirmation", filename,
                            extra={"changelog": filename, "tag": entry.tag},
                        )
                        return ReconcileResult.needs_confirmation(ctx.name, filename, repaired)
                    self._restore_missing(ctx, ledger, entry, path)
                    repaired.append(filename)

                elif entry is not None and files.read_text(path) != entry.content:
                    logger.info(
                        "Changed changeset in %s, rolling back so it can be replaced", filename,
                        extra={"changelog": filename, "tag": entry.tag},
                    )
                    self._replace_changed(ctx, ledger, entry, path)
                    repaired.append(filename)

                else:
                    logger.debug("No changes for %s", filename)

            except IrreconcilableDriftError as e:
                return ReconcileResult.failed(ctx.name, e, repaired)
            except ReconciliationError as e:
                return ReconcileResult.failed(ctx.name, e, repaired)
            except ChangelogSyncError as e:
                error = ReconciliationError(
                    f"Reconciling {filename} failed: {e.message}",
                    datasource=ctx.name,
                    filename=filename,
                    tag=e.tag,
                )
                error.__cause__ = e
                return ReconcileResult.failed(ctx.name, error, repaired)

        if repaired:
            logger.info("Reconciled %d changelog file(s): %s", len(repaired), ", ".join(repaired))
        return ReconcileResult.reconciled(ctx.name, repaired)

    def _restore_missing(
        self, ctx: DatasourceContext, ledger: ContentLedger, entry: LedgerEntry, path: Path
    ) -> None:
        """Rebuild a missing file, roll it back through a temporary master, clean up.

        Parent directories that no longer exist are recreated for the
        rollback and removed with the file. A failing step leaves whatever
        files it had created in place.
        """
        created_dirs = files.make_parents(path)
        files.write_new(path, entry.content)
        write_temp_master(ctx.master_file, ctx.temp_master_file, entry.filename)

        adapter = MigrationEngineAdapter.open(self.engine, ctx, ctx.temp_master_file)
        adapter.rollback(entry.tag)

        files.delete(path)
        files.remove_dirs(created_dirs)
        files.delete(ctx.temp_master_file)
        ledger.delete(entry.filename)

    def _replace_changed(
        self, ctx: DatasourceContext, ledger: ContentLedger, entry: LedgerEntry, path: Path
    ) -> None:
        """Roll back the applied version of an edited file, keeping the edit on disk."""
        aside = path.with_name(path.name + ASIDE_SUFFIX)
        files.rename(path, aside)
        try:
            files.write_new(path, entry.content)
            adapter = MigrationEngineAdapter.open(self.engine, ctx)
            adapter.rollback(entry.tag)
            files.delete(path)
            ledger.delete(entry.filename)
        except ChangelogSyncError:
            self._put_back(aside, path)
            raise
        files.rename(aside, path)

    @staticmethod
    def _put_back(aside: Path, path: Path) -> None:
        try:
            files.rename(aside, path)
        except ChangelogSyncError as e:
            logger.error("Could not restore %s from %s: %s", path, aside, e)
        else:
            logger.warning("Restored %s after a failed rollback", path)
