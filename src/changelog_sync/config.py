"""Types shared across changelog reconciliation and upgrade."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional

HISTORY_TABLE = "DATABASECHANGELOG"
INTERNAL_FILENAME = "liquibase-internal"
ASIDE_SUFFIX = ".tmp"
TEMP_MASTER_SUFFIX = "_tmp.xml"
TAG_PREFIX = "state-"
TAG_FORMAT = "%Y%m%d-%H%M%S-%f"


class RunMode(str, Enum):
    """Mode the host application runs in."""

    DEVELOPMENT = "development"
    TEST = "test"
    PRODUCTION = "production"

    @property
    def context(self) -> str:
        """Engine context label passed to every migration command."""
        return {
            RunMode.DEVELOPMENT: "dev",
            RunMode.TEST: "test",
            RunMode.PRODUCTION: "prod",
        }[self]


class DriftKind(str, Enum):
    """How a recorded changelog file differs from the filesystem."""

    MISSING = "missing"
    CHANGED = "changed"
    NONE = "none"


class ReconcileStatus(str, Enum):
    """Outcome of one reconciliation pass."""

    RECONCILED = "reconciled"
    NEEDS_CONFIRMATION = "needs_confirmation"
    FAILED = "failed"


class UpgradeState(str, Enum):
    """Terminal state reached by one orchestration attempt."""

    CONFIRMATION_REQUIRED = "confirmation_required"
    DISABLED = "disabled"
    NO_WORK = "no_work"
    TEST_FAILED = "test_failed"
    APPLY_FAILED = "apply_failed"
    RECORD_FAILED = "record_failed"
    FAILED = "failed"
    DONE = "done"


@dataclass(frozen=True)
class ChangeSet:
    """An unrun changeset reported by the migration engine."""

    file_path: str
    id: str = ""
    author: str = ""


@dataclass(frozen=True)
class LedgerEntry:
    """A backed-up changelog file as it was when applied."""

    id: int
    filename: str
    applied_at: str
    content: str
    tag: str


@dataclass
class DriftItem:
    """Drift observed for one filename in the history table."""

    filename: str
    kind: DriftKind
    has_backup: bool
    tag: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "kind": self.kind.value,
            "has_backup": self.has_backup,
            "tag": self.tag,
        }


@dataclass
class UpgradeReport:
    """What one orchestration attempt did for a datasource."""

    datasource: str
    state: UpgradeState
    tag: Optional[str] = None
    filenames: List[str] = field(default_factory=list)
    repaired: List[str] = field(default_factory=list)
    error: Optional[str] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def applied(self) -> bool:
        return self.state == UpgradeState.DONE

    def to_dict(self) -> dict:
        return {
            "datasource": self.datasource,
            "state": self.state.value,
            "tag": self.tag,
            "filenames": list(self.filenames),
            "repaired": list(self.repaired),
            "error": self.error,
            "started_at": self.started_at.isoformat(),
        }


def resolve_changelog_path(search_path: Path, filename: str) -> Path:
    """Resolve a filename recorded by the engine against the search path."""
    path = Path(filename)
    if path.is_absolute():
        return path
    return search_path / path
