"""Database package for changelog-sync."""

from src.db.base import Base
from src.db.engine import dispose_engines, get_sync_engine, get_sync_session_factory
from src.db.models import ContentChangelog

__all__ = [
    "Base",
    "ContentChangelog",
    "dispose_engines",
    "get_sync_engine",
    "get_sync_session_factory",
]
