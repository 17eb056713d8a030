"""Database engine factory, one engine per datasource URL."""

from typing import Dict

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

_engines: Dict[str, Engine] = {}


def get_sync_engine(url: str) -> Engine:
    """Get or create the engine for a datasource URL."""
    engine = _engines.get(url)
    if engine is None:
        engine = create_engine(url, pool_pre_ping=True)
        _engines[url] = engine
    return engine


def get_sync_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)


def dispose_engines() -> None:
    """Dispose every cached engine (used on shutdown and in tests)."""
    for engine in _engines.values():
        engine.dispose()
    _engines.clear()
