"""API Request/Response Models."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "1.0.0"
    pending_confirmation: Optional[str] = None
    startup_error: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ReconcileResultResponse(BaseModel):
    datasource: str
    status: str
    repaired: list[str] = []
    filename: Optional[str] = None
    error: Optional[str] = None
    detail: Optional[str] = None


class UpgradeReportResponse(BaseModel):
    datasource: str
    state: str
    tag: Optional[str] = None
    filenames: list[str] = []
    repaired: list[str] = []
    error: Optional[str] = None
    started_at: datetime


class ConfirmResponse(BaseModel):
    """Outcome of a confirmed reconciliation followed by a reload."""

    status: str = "ok"
    results: list[ReconcileResultResponse] = []
    reports: list[UpgradeReportResponse] = []
    pending_confirmation: Optional[str] = None
    startup_error: Optional[str] = None


class DriftItemResponse(BaseModel):
    filename: str
    kind: str
    has_backup: bool
    tag: Optional[str] = None


class LedgerEntryResponse(BaseModel):
    filename: str
    applied_at: str
    tag: str


class DatasourceStatusResponse(BaseModel):
    datasource: str
    mode: str
    auto_apply: bool
    master_file: str
    history_table: bool
    drift: list[DriftItemResponse] = []
    ledger: list[LedgerEntryResponse] = []


class StatusResponse(BaseModel):
    datasources: list[DatasourceStatusResponse] = []
    reports: list[UpgradeReportResponse] = []
    pending_confirmation: Optional[str] = None
    startup_error: Optional[str] = None
