"""FastAPI Application Factory.

Creates the changelog-sync service: the lifespan runs the startup pass
(reconcile, then upgrade every datasource) before serving, and the
changelog routes expose the operator confirmation action and a status
report.
"""

import logging
from contextlib import asynccontextmanager
from typing import Callable, List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.config import APIConfig, DEFAULT_API_CONFIG
from src.api.errors import register_exception_handlers
from src.api.models import HealthResponse
from src.api.routes import changelog as changelog_routes
from src.api.startup import run_startup_pass, startup_summary
from src.changelog_sync.context import DatasourceContext
from src.changelog_sync.engine import MigrationEngine
from src.changelog_sync.liquibase import LiquibaseCli
from src.db.engine import dispose_engines
from src.logging_config import configure_logging

logger = logging.getLogger(__name__)


# ── Lifespan (startup / shutdown) ────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: configure logging and run the startup pass."""
    # ── Startup ──
    configure_logging()
    logger.info("changelog-sync starting up")
    if app.state.run_on_startup:
        run_startup_pass(app)
    yield
    # ── Shutdown ──
    dispose_engines()
    logger.info("changelog-sync shutting down")


# ── App Factory ──────────────────────────────────────────────────────


def create_app(
    config: Optional[APIConfig] = None,
    migration_engine: Optional[MigrationEngine] = None,
    contexts_factory: Optional[Callable[[], List[DatasourceContext]]] = None,
    stop_on_error: Optional[bool] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: API configuration. Uses defaults if not provided.
        migration_engine: Engine used for every datasource. Defaults to the
            Liquibase CLI configured in settings.
        contexts_factory: Returns the datasource contexts. Defaults to
            settings-driven discovery.
        stop_on_error: Overrides the ``stop_on_error`` setting.

    Returns:
        Configured FastAPI application.
    """
    config = config or DEFAULT_API_CONFIG

    if migration_engine is None or contexts_factory is None or stop_on_error is None:
        from src.changelog_sync.datasources import build_contexts
        from src.settings import get_settings

        settings = get_settings()
        migration_engine = migration_engine or LiquibaseCli(settings.liquibase_executable)
        contexts_factory = contexts_factory or (lambda: build_contexts(settings))
        if stop_on_error is None:
            stop_on_error = settings.stop_on_error

    app = FastAPI(
        title=config.title,
        version=config.version,
        description=config.description,
        docs_url=config.docs_url,
        lifespan=lifespan,
    )
    app.state.migration_engine = migration_engine
    app.state.contexts_factory = contexts_factory
    app.state.stop_on_error = stop_on_error
    app.state.run_on_startup = config.run_on_startup
    app.state.confirm_path = config.confirm_path
    app.state.reports = []
    app.state.pending_confirmation = None
    app.state.startup_error = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=config.cors_methods,
        allow_headers=["*"],
    )
    register_exception_handlers(app, config.confirm_path)

    # ── Health check ─────────────────────────────────────────────

    @app.get("/health", response_model=HealthResponse)
    def health():
        summary = startup_summary(app)
        if summary["pending_confirmation"] is not None:
            overall = "confirmation_required"
        elif summary["startup_error"] is not None:
            overall = "degraded"
        else:
            overall = "ok"
        return HealthResponse(
            status=overall,
            version=config.version,
            pending_confirmation=summary["pending_confirmation"],
            startup_error=summary["startup_error"],
        )

    @app.get("/")
    def index():
        return {"service": config.title, **startup_summary(app)}

    # ── Route modules ────────────────────────────────────────────

    app.include_router(changelog_routes.router)

    logger.info("changelog-sync API v%s initialized", config.version)
    return app
