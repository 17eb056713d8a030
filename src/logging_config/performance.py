"""Stage timing.

Engine calls and reconcile/upgrade passes are timed; a stage over its
threshold is logged at WARNING, a failed one at ERROR, the rest at DEBUG.
"""

import functools
import logging
import time
from typing import Any, Callable, Optional

from src.logging_config.config import DEFAULT_LOGGING_CONFIG

logger = logging.getLogger(__name__)


def _report(log: logging.Logger, name: str, duration_ms: float, threshold_ms: float,
            error: Optional[type] = None) -> None:
    extra = {"duration_ms": round(duration_ms, 2)}
    if error is not None:
        log.error("%s failed after %.1fms: %s", name, duration_ms, error.__name__, extra=extra)
    elif duration_ms >= threshold_ms:
        log.warning("Slow operation: %s took %.1fms", name, duration_ms, extra=extra)
    else:
        log.debug("%s completed in %.1fms", name, duration_ms, extra=extra)


def log_performance(
    threshold_ms: Optional[float] = None,
    logger_name: Optional[str] = None,
) -> Callable:
    """Decorator timing each call of the wrapped function.

    Args:
        threshold_ms: Calls at or above this are logged as slow. Defaults
            to ``LoggingConfig.slow_threshold_ms``.
        logger_name: Logger to report on. Defaults to the function's module.
    """
    def decorator(func: Callable) -> Callable:
        log = logging.getLogger(logger_name or func.__module__)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            with PerformanceTimer(func.__qualname__, threshold_ms, log):
                return func(*args, **kwargs)

        return wrapper

    return decorator


class PerformanceTimer:
    """Times a block; ``duration_ms`` is set on exit.

    Example:
        with PerformanceTimer("update") as timer:
            session.update(context)
    """

    def __init__(self, operation_name: str, threshold_ms: Optional[float] = None,
                 log: Optional[logging.Logger] = None):
        self.operation_name = operation_name
        if threshold_ms is None:
            threshold_ms = DEFAULT_LOGGING_CONFIG.slow_threshold_ms
        self.threshold_ms = threshold_ms
        self.log = log or logger
        self.start_time = 0.0
        self.duration_ms = 0.0

    def __enter__(self) -> "PerformanceTimer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.duration_ms = (time.perf_counter() - self.start_time) * 1000
        _report(self.log, self.operation_name, self.duration_ms, self.threshold_ms, exc_type)
