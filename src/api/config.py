"""API Configuration."""

from dataclasses import dataclass, field

CONFIRM_PATH = "/changelog/confirm"


@dataclass
class APIConfig:
    """Core API settings."""

    title: str = "changelog-sync"
    version: str = "1.0.0"
    description: str = "Changelog drift reconciliation and safe-rollback upgrades"
    docs_url: str = "/docs"
    run_on_startup: bool = True
    confirm_path: str = CONFIRM_PATH
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:9000"])
    cors_methods: list[str] = field(default_factory=lambda: ["GET", "POST", "OPTIONS"])


DEFAULT_API_CONFIG = APIConfig()
