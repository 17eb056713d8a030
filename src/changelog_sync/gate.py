"""Operator confirmation of destructive rollbacks.

When a startup pass stops with ``ConfirmationRequiredError``, the operator
triggers ``ConfirmationGate.confirm``. It reconciles every datasource with
destructive rollback allowed and then asks the host to reload, which runs
the normal upgrade pass again.
"""

import logging
from typing import Callable, Iterable, List, Optional

from src.changelog_sync.context import DatasourceContext
from src.changelog_sync.ledger import ContentLedger
from src.changelog_sync.reconciler import FileReconciler, ReconcileResult
from src.logging_config.context import SyncContext

logger = logging.getLogger(__name__)


class ConfirmationGate:
    def __init__(self, reconciler: FileReconciler, reload: Optional[Callable[[], None]] = None):
        self.reconciler = reconciler
        self.reload = reload

    def confirm(self, contexts: Iterable[DatasourceContext]) -> List[ReconcileResult]:
        """Reconcile all datasources with rollback allowed, then reload.

        Raises:
            ChangelogSyncError: The first datasource that fails to reconcile.
                The host is not reloaded.
        """
        results = []
        for ctx in contexts:
            with SyncContext(datasource=ctx.name):
                logger.info("Rollback confirmed for datasource %s", ctx.name)
                ContentLedger(ctx.engine, ctx.name).ensure_table_exists()
                result = self.reconciler.reconcile(ctx, allow_destructive_rollback=True)
                result.raise_for_status()
                results.append(result)

        if self.reload is not None:
            logger.info("Reloading application")
            self.reload()
        return results
