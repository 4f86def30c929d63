"""StoreMigrator configuration module.

This module provides TOML-based configuration with environment variable overrides.

Configuration is loaded from the following locations (in order of priority):
1. Environment variables (highest priority)
2. ./config.toml (project root - for development)
3. ~/.config/storemigrator/config.toml (user config)
4. /etc/storemigrator/config.toml (system config)

Secrets are loaded from secrets.env files in the same directories.
"""

from storemigrator.config.schema import (
    DatabaseConfig,
    SecretsConfig,
    ServerConfig,
    StorageConfig,
    StoremigratorConfig,
    TargetConfig,
    WorkerConfig,
)
from storemigrator.config.settings import get_settings, reset_settings, settings

__all__ = [
    "DatabaseConfig",
    "SecretsConfig",
    "ServerConfig",
    "StorageConfig",
    "StoremigratorConfig",
    "TargetConfig",
    "WorkerConfig",
    "get_settings",
    "reset_settings",
    "settings",
]
