"""Installer configuration — env-driven.

Centralized config using pydantic-settings.  Reads from a ``.env`` file and
``PACKSMITH_*`` environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from packsmith.core.paths import DEFAULT_INSTANCE_ID, InstancePaths


class PacksmithConfig(BaseSettings):
    """Installer configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export PACKSMITH_BASE_DIR=/srv/packsmith
        export PACKSMITH_LOG_LEVEL=DEBUG
        export PACKSMITH_FETCH_RETRIES=5

    Or via .env file::

        PACKSMITH_LOG_FORMAT=text
        PACKSMITH_SNAPSHOTS_ENABLED=false
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PACKSMITH_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"
    log_format: str = "json"  # "json" or "text"
    debug: bool = False

    # Storage
    base_dir: Path = Path(".packsmith")
    default_instance_id: str = DEFAULT_INSTANCE_ID

    # Fetch collaborator
    fetch_timeout_seconds: float = 60.0
    fetch_retries: int = 3
    user_agent: str = "packsmith/0.3"

    # Snapshots
    snapshots_enabled: bool = True

    @property
    def effective_log_level(self) -> str:
        """``DEBUG`` whenever debug mode is on, else the configured level."""
        return "DEBUG" if self.debug else self.log_level.upper()

    def instance_paths(self, instance_id: str | None = None) -> InstancePaths:
        return InstancePaths(self.base_dir, instance_id or self.default_instance_id)


# Module-level singleton: import as `from packsmith.config import config`
config = PacksmithConfig()
