"""HTTP surface for changelog-sync.

Example:
    from src.api import create_app
    app = create_app()
"""

from src.api.app import create_app
from src.api.config import APIConfig, CONFIRM_PATH, DEFAULT_API_CONFIG
from src.api.errors import ErrorCode, ErrorResponse, register_exception_handlers

__all__ = [
    "APIConfig",
    "CONFIRM_PATH",
    "DEFAULT_API_CONFIG",
    "ErrorCode",
    "ErrorResponse",
    "create_app",
    "register_exception_handlers",
]
