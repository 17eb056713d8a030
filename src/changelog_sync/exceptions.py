"""Exception hierarchy for changelog reconciliation and upgrade.

Every error carries the datasource, filename and tag it concerns (when
known) so an operator can locate and repair the affected changelog.
"""

from typing import Any, Dict, Optional


class ChangelogSyncError(Exception):
    """Base exception for all changelog-sync errors."""

    requires_confirmation = False

    def __init__(
        self,
        message: str,
        datasource: Optional[str] = None,
        filename: Optional[str] = None,
        tag: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.datasource = datasource
        self.filename = filename
        self.tag = tag

    @property
    def context(self) -> Dict[str, Any]:
        ctx = {}
        if self.datasource is not None:
            ctx["datasource"] = self.datasource
        if self.filename is not None:
            ctx["filename"] = self.filename
        if self.tag is not None:
            ctx["tag"] = self.tag
        return ctx

    def __str__(self) -> str:
        if not self.context:
            return self.message
        parts = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} ({parts})"


class ConfirmationRequiredError(ChangelogSyncError):
    """A missing changelog can be rebuilt from the ledger, but only with operator consent."""

    requires_confirmation = True

    def __init__(self, filename: str, datasource: Optional[str] = None):
        super().__init__(
            "Database rollback action needed",
            datasource=datasource,
            filename=filename,
        )


class IrreconcilableDriftError(ChangelogSyncError):
    """History references a changelog that is neither on disk nor in the ledger."""


class ReconciliationError(ChangelogSyncError):
    """A rollback-and-replace cycle failed part way through."""


class ProductionGuardError(ChangelogSyncError):
    """Unrun changesets were found while running in production."""


class TestRollbackError(ChangelogSyncError):
    """The rollback simulation failed; the database was rolled back to the tag."""

    __test__ = False


class ApplyError(ChangelogSyncError):
    """Applying unrun changesets failed; the database was rolled back to the tag."""


class LedgerPersistError(ChangelogSyncError):
    """Recording an applied changelog failed; the database was rolled back to the tag."""


class EngineError(ChangelogSyncError):
    """The migration engine could not complete a command."""


class PersistenceError(ChangelogSyncError):
    """A database or filesystem operation failed."""
