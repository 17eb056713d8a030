"""Centralized settings for changelog-sync.

Uses pydantic-settings to load from environment variables (prefixed
CHANGELOG_SYNC_) with defaults matching the conventional layout of a
Liquibase-managed application: ``conf/liquibase/<datasource>/db.changelog-master.xml``.
"""

from functools import lru_cache
from typing import Dict, Optional

from pydantic import BaseModel
from pydantic_settings import BaseSettings

from src.changelog_sync.config import RunMode


class DatasourceSettings(BaseModel):
    """Connection and policy settings for one datasource."""

    url: str
    jdbc_url: str = ""
    username: Optional[str] = None
    password: Optional[str] = None
    auto_apply: bool = False


class Settings(BaseSettings):
    """changelog-sync settings loaded from environment variables."""

    # --- Layout ---
    app_root: str = "."
    changelog_dir: str = "conf/liquibase"
    master_filename: str = "db.changelog-master.xml"

    # --- Run mode (development | test | production) ---
    mode: RunMode = RunMode.DEVELOPMENT

    # --- Datasources, e.g. CHANGELOG_SYNC_DATASOURCES='{"default": {"url": "sqlite:///app.db"}}' ---
    datasources: Dict[str, DatasourceSettings] = {}

    # --- Migration engine ---
    liquibase_executable: str = "liquibase"

    # --- Host policy ---
    stop_on_error: bool = True

    # --- HTTP service ---
    api_host: str = "127.0.0.1"
    api_port: int = 9000

    model_config = {
        "env_prefix": "CHANGELOG_SYNC_",
        "env_file": ".env",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton."""
    return Settings()
