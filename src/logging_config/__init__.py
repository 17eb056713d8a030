"""Structured Logging.

Provides structured JSON or console logging, run/datasource context
propagation, and stage timing for changelog-sync.
"""

from src.logging_config.config import LogFormat, LoggingConfig, LogLevel
from src.logging_config.context import SyncContext, generate_run_id
from src.logging_config.performance import PerformanceTimer, log_performance
from src.logging_config.setup import configure_logging

__all__ = [
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "PerformanceTimer",
    "SyncContext",
    "configure_logging",
    "generate_run_id",
    "log_performance",
]
