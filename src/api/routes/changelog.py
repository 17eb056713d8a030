"""Changelog endpoints: operator confirmation, upgrade and status.

``/changelog/confirm`` answers both POST and GET; the GET form keeps plain
links in operator notices working. Browsers (``Accept: text/html``) are
redirected to ``/`` afterwards, other clients receive JSON.
"""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from src.api.dependencies import get_contexts, get_reconciler
from src.api.models import ConfirmResponse, StatusResponse, UpgradeReportResponse
from src.api.startup import run_startup_pass, startup_summary
from src.changelog_sync.context import DatasourceContext
from src.changelog_sync.datasources import describe_datasource
from src.changelog_sync.gate import ConfirmationGate
from src.changelog_sync.reconciler import FileReconciler

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/changelog", tags=["Changelog"])


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "")


@router.api_route("/confirm", methods=["POST", "GET"], response_model=ConfirmResponse)
def confirm(
    request: Request,
    contexts: List[DatasourceContext] = Depends(get_contexts),
    reconciler: FileReconciler = Depends(get_reconciler),
):
    """Reconcile every datasource with rollback allowed, then rerun the startup pass."""
    app = request.app
    gate = ConfirmationGate(reconciler, reload=lambda: run_startup_pass(app))
    results = gate.confirm(contexts)

    if _wants_html(request):
        return RedirectResponse(url="/", status_code=303)

    summary = startup_summary(app)
    clean = summary["pending_confirmation"] is None and summary["startup_error"] is None
    return ConfirmResponse(
        status="ok" if clean else "degraded",
        results=[r.to_dict() for r in results],
        reports=summary["reports"],
        pending_confirmation=summary["pending_confirmation"],
        startup_error=summary["startup_error"],
    )


@router.get("/status", response_model=StatusResponse)
def status(
    request: Request,
    contexts: List[DatasourceContext] = Depends(get_contexts),
    reconciler: FileReconciler = Depends(get_reconciler),
):
    """Drift and ledger backups per datasource, plus the last startup pass."""
    summary = startup_summary(request.app)
    return StatusResponse(
        datasources=[describe_datasource(ctx, reconciler) for ctx in contexts],
        reports=summary["reports"],
        pending_confirmation=summary["pending_confirmation"],
        startup_error=summary["startup_error"],
    )


@router.post("/upgrade", response_model=list[UpgradeReportResponse])
def upgrade(request: Request):
    """Rerun the startup pass; a pending confirmation answers 409."""
    run_startup_pass(request.app)
    state = request.app.state
    if state.pending_confirmation is not None:
        raise state.pending_confirmation
    if state.startup_error is not None:
        raise state.startup_error
    return [r.to_dict() for r in state.reports]
