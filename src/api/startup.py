"""Startup pass run by the application lifespan and after confirmation.

The outcome is kept on ``app.state`` so the service stays up to serve the
confirmation action when a pass stops on drift.
"""

import logging
from typing import Any, Dict

from fastapi import FastAPI

from src.changelog_sync.exceptions import ChangelogSyncError, ConfirmationRequiredError
from src.changelog_sync.orchestrator import UpgradeOrchestrator

logger = logging.getLogger(__name__)


def run_startup_pass(app: FastAPI) -> None:
    """Reconcile and upgrade every datasource, recording the outcome on ``app.state``."""
    state = app.state
    state.reports = []
    state.pending_confirmation = None
    state.startup_error = None

    orchestrator = UpgradeOrchestrator(state.migration_engine)
    try:
        state.reports = orchestrator.run_all(
            state.contexts_factory(), stop_on_error=state.stop_on_error
        )
    except ConfirmationRequiredError as e:
        logger.warning("Startup halted: %s. Confirm at %s", e, state.confirm_path)
        state.pending_confirmation = e
    except ChangelogSyncError as e:
        logger.error("Startup pass failed: %s", e)
        state.startup_error = e


def startup_summary(app: FastAPI) -> Dict[str, Any]:
    state = app.state
    pending = getattr(state, "pending_confirmation", None)
    error = getattr(state, "startup_error", None)
    return {
        "reports": [r.to_dict() for r in getattr(state, "reports", [])],
        "pending_confirmation": pending.filename if pending is not None else None,
        "startup_error": str(error) if error is not None else None,
    }
