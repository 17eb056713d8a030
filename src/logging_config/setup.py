"""Logging Setup.

``configure_logging`` installs one stdout handler on the root logger: JSON
lines for unattended runs, or plain lines for an operator's terminal. Both
formats carry the bound run ID and datasource.
"""

import json
import logging
import os
import sys
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from src.logging_config.config import DEFAULT_LOGGING_CONFIG, LogFormat, LoggingConfig, LogLevel
from src.logging_config.context import get_context_dict

LEVEL_ENV_VAR = "CHANGELOG_SYNC_LOG_LEVEL"
FORMAT_ENV_VAR = "CHANGELOG_SYNC_LOG_FORMAT"

# Attributes passed through ``extra=`` by the changelog_sync modules.
RECORD_EXTRAS = ("changelog", "tag", "duration_ms")

QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "httpx", "uvicorn.access")


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def __init__(self, service_name: str = "changelog-sync", include_caller: bool = True):
        super().__init__()
        self.service_name = service_name
        self.include_caller = include_caller

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "service": self.service_name,
            "message": record.getMessage(),
            **get_context_dict(),
        }
        entry.update({k: getattr(record, k) for k in RECORD_EXTRAS if hasattr(record, k)})
        if self.include_caller:
            entry["caller"] = f"{record.module}.{record.funcName}:{record.lineno}"
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """``time LEVEL logger: message [run_id=..., datasource=..., tag=...]``"""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-8s %(name)s: %(message)s", datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = get_context_dict()
        fields.update({k: getattr(record, k) for k in ("changelog", "tag") if hasattr(record, k)})
        if not fields:
            return line
        head, newline, rest = line.partition("\n")
        suffix = ", ".join(f"{k}={v}" for k, v in fields.items())
        return f"{head} [{suffix}]{newline}{rest}"


def configure_logging(config: Optional[LoggingConfig] = None) -> None:
    """Configure the root logger for changelog-sync.

    CHANGELOG_SYNC_LOG_LEVEL and CHANGELOG_SYNC_LOG_FORMAT override the
    level and format of ``config``.
    """
    config = config or DEFAULT_LOGGING_CONFIG

    level = os.environ.get(LEVEL_ENV_VAR, "").upper()
    if level in LogLevel.__members__:
        config = replace(config, level=LogLevel(level))
    fmt = os.environ.get(FORMAT_ENV_VAR, "").lower()
    if fmt in {f.value for f in LogFormat}:
        config = replace(config, format=LogFormat(fmt))

    handler = logging.StreamHandler(sys.stdout)
    if config.format == LogFormat.JSON:
        handler.setFormatter(StructuredFormatter(config.service_name, config.include_caller))
    else:
        handler.setFormatter(ConsoleFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(config.level.value)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
