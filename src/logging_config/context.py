"""Run Context Management.

Context variables binding a run ID and the datasource being processed to
every log entry emitted during a reconciliation or upgrade pass.
"""

import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any


_run_id_var: ContextVar[str] = ContextVar("run_id", default="")
_datasource_var: ContextVar[str] = ContextVar("datasource", default="")


def generate_run_id() -> str:
    """Generate a short unique run ID."""
    return uuid.uuid4().hex[:12]


def get_run_id() -> str:
    return _run_id_var.get()


def get_context_dict() -> dict[str, Any]:
    """Bound run_id and datasource, omitting unset ones."""
    values = {"run_id": _run_id_var.get(), "datasource": _datasource_var.get()}
    return {k: v for k, v in values.items() if v}


@dataclass
class SyncContext:
    """Context manager binding run_id and datasource to log entries.

    A datasource context nested in a run-wide one inherits its run ID, and
    the outer values come back on exit.

    Example:
        with SyncContext(datasource="default"):
            logger.info("reconciling")  # includes run_id, datasource
    """

    datasource: str = ""
    run_id: str = ""
    _tokens: list = field(default_factory=list, repr=False)

    def __post_init__(self):
        if not self.run_id:
            self.run_id = _run_id_var.get() or generate_run_id()

    def __enter__(self) -> "SyncContext":
        self._tokens = [
            (_run_id_var, _run_id_var.set(self.run_id)),
            (_datasource_var, _datasource_var.set(self.datasource)),
        ]
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)
