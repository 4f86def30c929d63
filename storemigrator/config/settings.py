"""Global settings instance for StoreMigrator.

This module provides a unified settings object that combines:
- Configuration from config.toml
- Secrets from secrets.env
- Environment variable overrides

The settings object provides a flat interface while internally using the
structured configuration.
"""

import logging
import os
import socket
from pathlib import Path

from storemigrator.config.loader import load_config, load_secrets
from storemigrator.config.schema import SecretsConfig, StoremigratorConfig, TargetConfig

logger = logging.getLogger(__name__)


class Settings:
    """Unified settings object combining config and secrets."""

    def __init__(
        self,
        config: StoremigratorConfig | None = None,
        secrets: SecretsConfig | None = None,
    ):
        """Initialize settings.

        Args:
            config: Optional StoremigratorConfig instance. If not provided, loads from file.
            secrets: Optional SecretsConfig instance. If not provided, loads from file.
        """
        self._config = config or load_config()
        self._secrets = secrets or load_secrets()

        if not self._secrets.target_access_token:
            logger.warning(
                "No target access token configured. Migration jobs will fail "
                "against the target store until TARGET_ACCESS_TOKEN is set."
            )

    # =========================================================================
    # Config accessors
    # =========================================================================

    @property
    def config(self) -> StoremigratorConfig:
        """Get the full configuration object."""
        return self._config

    @property
    def secrets(self) -> SecretsConfig:
        """Get the secrets configuration object."""
        return self._secrets

    # =========================================================================
    # Flat property interface
    # =========================================================================

    @property
    def app_name(self) -> str:
        return self._config.app_name

    @property
    def debug(self) -> bool:
        return self._config.server.debug

    # Server
    @property
    def host(self) -> str:
        return self._config.server.host

    @property
    def port(self) -> int:
        return self._config.server.port

    @property
    def rate_limit_per_minute(self) -> int:
        return self._config.server.rate_limit_per_minute

    @property
    def cors_origins(self) -> list[str]:
        return self._config.server.cors_origins

    # Database
    @property
    def mongodb_url(self) -> str:
        return self._config.database.mongodb_url

    @property
    def mongodb_database(self) -> str:
        return self._config.database.mongodb_database

    @property
    def min_pool_size(self) -> int:
        return self._config.database.min_pool_size

    @property
    def max_pool_size(self) -> int:
        return self._config.database.max_pool_size

    # Storage
    @property
    def data_dir(self) -> Path:
        return self._config.storage.data_dir

    @property
    def uploads_dir(self) -> Path:
        return self._config.storage.uploads_dir

    @property
    def reports_dir(self) -> Path:
        return self._config.storage.reports_dir

    @property
    def max_upload_size_bytes(self) -> int:
        return self._config.storage.max_upload_bytes

    # Worker
    @property
    def embedded_worker(self) -> bool:
        return self._config.worker.embedded

    @property
    def max_jobs_per_process(self) -> int:
        return self._config.worker.max_jobs_per_process

    @property
    def lock_ttl_minutes(self) -> float:
        return self._config.worker.lock_ttl_minutes

    @property
    def poll_interval_seconds(self) -> float:
        return self._config.worker.poll_interval_seconds

    @property
    def worker_resource_key(self) -> str | None:
        return self._config.worker.resource_key or None

    @property
    def worker_id(self) -> str:
        return self._config.worker.worker_id or f"{socket.gethostname()}-{os.getpid()}"

    # Target store
    @property
    def target(self) -> TargetConfig:
        return self._config.target

    @property
    def target_access_token(self) -> str:
        return self._secrets.target_access_token or ""


# Global settings instance - lazily initialized
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance.

    The settings are loaded once and cached for subsequent calls.

    Returns:
        The global Settings instance.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the global settings instance.

    This is primarily useful for testing to reload configuration.
    """
    global _settings
    _settings = None


class _SettingsProxy:
    """Proxy object that lazily loads settings on first access."""

    def __getattr__(self, name: str):
        return getattr(get_settings(), name)

    def __repr__(self) -> str:
        return repr(get_settings())


settings = _SettingsProxy()
