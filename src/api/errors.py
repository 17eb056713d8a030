"""Error envelope and exception handlers.

Every ``ChangelogSyncError`` reaching the HTTP layer is rendered as::

    {"error": {"code": ..., "message": ..., "timestamp": ..., "details": [...]}}

A pending confirmation answers 409 with the confirmation action in the
details; every other changelog failure answers 500.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.api.config import CONFIRM_PATH
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
from src.logging_config.context import get_run_id

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    CONFIRMATION_REQUIRED = "CONFIRMATION_REQUIRED"
    IRRECONCILABLE_DRIFT = "IRRECONCILABLE_DRIFT"
    RECONCILIATION_FAILED = "RECONCILIATION_FAILED"
    PRODUCTION_GUARD = "PRODUCTION_GUARD"
    TEST_ROLLBACK_FAILED = "TEST_ROLLBACK_FAILED"
    APPLY_FAILED = "APPLY_FAILED"
    LEDGER_PERSIST_FAILED = "LEDGER_PERSIST_FAILED"
    ENGINE_ERROR = "ENGINE_ERROR"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# Most specific first
ERROR_CODE_MAP = [
    (ConfirmationRequiredError, ErrorCode.CONFIRMATION_REQUIRED),
    (IrreconcilableDriftError, ErrorCode.IRRECONCILABLE_DRIFT),
    (ReconciliationError, ErrorCode.RECONCILIATION_FAILED),
    (ProductionGuardError, ErrorCode.PRODUCTION_GUARD),
    (TestRollbackError, ErrorCode.TEST_ROLLBACK_FAILED),
    (ApplyError, ErrorCode.APPLY_FAILED),
    (LedgerPersistError, ErrorCode.LEDGER_PERSIST_FAILED),
    (EngineError, ErrorCode.ENGINE_ERROR),
    (PersistenceError, ErrorCode.PERSISTENCE_ERROR),
]


def error_code_for(exc: ChangelogSyncError) -> ErrorCode:
    for exc_type, code in ERROR_CODE_MAP:
        if isinstance(exc, exc_type):
            return code
    return ErrorCode.INTERNAL_ERROR


@dataclass
class ErrorResponse:
    """Structured error response envelope."""

    code: str
    message: str
    status_code: int = 500
    details: List[Dict[str, Any]] = field(default_factory=list)
    run_id: Optional[str] = None
    timestamp: str = ""

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "error": {
                "code": self.code,
                "message": self.message,
                "timestamp": self.timestamp,
            }
        }
        if self.details:
            body["error"]["details"] = self.details
        if self.run_id:
            body["error"]["run_id"] = self.run_id
        return body


def create_error_response(exc: ChangelogSyncError, confirm_path: str = CONFIRM_PATH) -> ErrorResponse:
    """Build the envelope for a changelog-sync failure."""
    details: List[Dict[str, Any]] = []
    if exc.context:
        details.append(dict(exc.context))
    if exc.requires_confirmation:
        details.append({"action": confirm_path, "method": "POST"})
        status_code = 409
    else:
        status_code = 500

    return ErrorResponse(
        code=error_code_for(exc).value,
        message=exc.message,
        status_code=status_code,
        details=details,
        run_id=get_run_id() or None,
    )


def register_exception_handlers(app: FastAPI, confirm_path: str = CONFIRM_PATH) -> None:
    """Register the changelog-sync exception handler on an application."""

    async def handle_changelog_error(request: Request, exc: ChangelogSyncError) -> JSONResponse:
        response = create_error_response(exc, confirm_path)
        if exc.requires_confirmation:
            logger.warning("API Error [%s] (%d): %s", response.code, response.status_code, exc)
        else:
            logger.error("API Error [%s] (%d): %s", response.code, response.status_code, exc)
        return JSONResponse(status_code=response.status_code, content=response.to_dict())

    app.add_exception_handler(ChangelogSyncError, handle_changelog_error)
