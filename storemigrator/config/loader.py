"""Configuration loader for StoreMigrator.

Loads configuration from TOML files and secrets from .env files.
Environment variables can override any configuration value.
"""

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from storemigrator.config.schema import SecretsConfig, StoremigratorConfig

logger = logging.getLogger(__name__)

_INT_KEYS = {
    "port",
    "rate_limit_per_minute",
    "max_upload_mb",
    "max_jobs_per_process",
    "page_size",
    "min_pool_size",
    "max_pool_size",
}
_FLOAT_KEYS = {
    "lock_ttl_minutes",
    "poll_interval_seconds",
    "product_delay_seconds",
    "definition_delay_seconds",
    "timeout_seconds",
}
_BOOL_KEYS = {"debug", "embedded"}


def get_config_search_paths() -> list[Path]:
    """Get the list of paths to search for configuration files.

    Returns paths in priority order (first found wins):
    1. ./config.toml (project root - for development)
    2. ~/.config/storemigrator/config.toml (user config)
    3. /etc/storemigrator/config.toml (system config)
    """
    return [
        Path.cwd() / "config.toml",
        Path.home() / ".config" / "storemigrator" / "config.toml",
        Path("/etc/storemigrator/config.toml"),
    ]


def get_secrets_search_paths() -> list[Path]:
    """Get the list of paths to search for secrets files.

    Returns paths in priority order (first found wins):
    1. ./secrets.env (project root - for development)
    2. ~/.config/storemigrator/secrets.env (user secrets)
    3. /etc/storemigrator/secrets.env (system secrets)
    """
    return [
        Path.cwd() / "secrets.env",
        Path.home() / ".config" / "storemigrator" / "secrets.env",
        Path("/etc/storemigrator/secrets.env"),
    ]


def find_config_file() -> Path | None:
    """Find the first existing config file from search paths."""
    for path in get_config_search_paths():
        if path.exists() and path.is_file():
            logger.debug("Found config file: %s", path)
            return path
    return None


def find_secrets_file() -> Path | None:
    """Find the first existing secrets file from search paths."""
    for path in get_secrets_search_paths():
        if path.exists() and path.is_file():
            logger.debug("Found secrets file: %s", path)
            return path
    return None


def load_toml_file(path: Path) -> dict[str, Any]:
    """Load a TOML file and return its contents as a dictionary."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a simple .env file into a dictionary.

    Supports:
    - KEY=value
    - KEY="quoted value"
    - # comments
    - Empty lines
    """
    env_vars: dict[str, str] = {}

    with open(path) as f:
        for line in f:
            line = line.strip()

            if not line or line.startswith("#"):
                continue

            if "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip()

            if (value.startswith('"') and value.endswith('"')) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]

            env_vars[key] = value

    return env_vars


def _coerce_env_value(key: str, value: str) -> Any:
    """Convert an environment string to the type expected for ``key``."""
    if key in _INT_KEYS:
        return int(value)
    if key in _FLOAT_KEYS:
        return float(value)
    if key in _BOOL_KEYS:
        return value.lower() in ("true", "1", "yes")
    return value


def apply_env_overrides(config_dict: dict[str, Any], prefix: str = "STOREMIGRATOR") -> None:
    """Apply environment variable overrides to configuration dictionary.

    Environment variables are mapped as follows:
    - STOREMIGRATOR_SERVER_PORT -> config_dict["server"]["port"]
    - STOREMIGRATOR_MONGODB_URL -> config_dict["database"]["mongodb_url"]
    - MAX_JOBS_PER_PROCESS -> config_dict["worker"]["max_jobs_per_process"]
    - etc.

    Note: This modifies config_dict in place.
    """
    env_mappings = {
        # Server
        f"{prefix}_SERVER_HOST": ("server", "host"),
        f"{prefix}_SERVER_PORT": ("server", "port"),
        f"{prefix}_SERVER_DEBUG": ("server", "debug"),
        f"{prefix}_DEBUG": ("server", "debug"),  # Shorthand
        f"{prefix}_HOST": ("server", "host"),  # Shorthand
        f"{prefix}_PORT": ("server", "port"),  # Shorthand
        # Database
        f"{prefix}_DATABASE_MONGODB_URL": ("database", "mongodb_url"),
        f"{prefix}_DATABASE_MONGODB_DATABASE": ("database", "mongodb_database"),
        f"{prefix}_MONGODB_URL": ("database", "mongodb_url"),  # Shorthand
        f"{prefix}_MONGODB_DATABASE": ("database", "mongodb_database"),  # Shorthand
        # Storage
        f"{prefix}_STORAGE_DATA_DIR": ("storage", "data_dir"),
        f"{prefix}_STORAGE_MAX_UPLOAD_MB": ("storage", "max_upload_mb"),
        # Worker
        f"{prefix}_WORKER_EMBEDDED": ("worker", "embedded"),
        f"{prefix}_WORKER_MAX_JOBS_PER_PROCESS": ("worker", "max_jobs_per_process"),
        f"{prefix}_WORKER_LOCK_TTL_MINUTES": ("worker", "lock_ttl_minutes"),
        f"{prefix}_WORKER_POLL_INTERVAL_SECONDS": ("worker", "poll_interval_seconds"),
        f"{prefix}_WORKER_RESOURCE_KEY": ("worker", "resource_key"),
        f"{prefix}_WORKER_ID": ("worker", "worker_id"),
        "WORKER_ID": ("worker", "worker_id"),
        "MAX_JOBS_PER_PROCESS": ("worker", "max_jobs_per_process"),
        "JOB_LOCK_TTL_MINUTES": ("worker", "lock_ttl_minutes"),
        "WORKER_RESOURCE_KEY": ("worker", "resource_key"),
        # Target store
        f"{prefix}_TARGET_SHOP": ("target", "shop"),
        f"{prefix}_TARGET_API_VERSION": ("target", "api_version"),
        f"{prefix}_TARGET_PRODUCT_DELAY_SECONDS": ("target", "product_delay_seconds"),
        "TARGET_SHOP": ("target", "shop"),
        "API_VERSION": ("target", "api_version"),
    }

    for env_var, (section, key) in env_mappings.items():
        value = os.environ.get(env_var)
        if value is None or value == "":
            continue
        config_dict.setdefault(section, {})[key] = _coerce_env_value(key, value)

    # Legacy poll interval is expressed in milliseconds
    poll_ms = os.environ.get("JOB_POLL_INTERVAL_MS")
    if poll_ms:
        config_dict.setdefault("worker", {})["poll_interval_seconds"] = int(poll_ms) / 1000


def load_secrets(secrets_file: Path | None = None) -> SecretsConfig:
    """Load secrets from environment variables and optional secrets.env file.

    Environment variables take precedence over file values.
    """
    secrets_dict: dict[str, str | None] = {}
    key_mapping = {
        "STOREMIGRATOR_TARGET_ACCESS_TOKEN": "target_access_token",
        "TARGET_ACCESS_TOKEN": "target_access_token",
    }

    if secrets_file is None:
        secrets_file = find_secrets_file()

    if secrets_file and secrets_file.exists():
        logger.info("Loading secrets from: %s", secrets_file)
        file_secrets = parse_env_file(secrets_file)
        for file_key, config_key in key_mapping.items():
            if file_key in file_secrets:
                secrets_dict[config_key] = file_secrets[file_key]

    for env_var, config_key in key_mapping.items():
        value = os.environ.get(env_var)
        if value:
            secrets_dict[config_key] = value

    return SecretsConfig(**secrets_dict)


def load_config(config_file: Path | None = None) -> StoremigratorConfig:
    """Load configuration from TOML file with environment variable overrides.

    Args:
        config_file: Optional path to config file. If not provided,
                     searches default locations.

    Returns:
        StoremigratorConfig instance with all settings loaded.
    """
    config_dict: dict[str, Any] = {}

    if config_file is None:
        config_file = find_config_file()

    if config_file and config_file.exists():
        logger.info("Loading config from: %s", config_file)
        config_dict = load_toml_file(config_file)
    else:
        logger.info("No config file found, using defaults with env overrides")

    apply_env_overrides(config_dict)

    return StoremigratorConfig(**config_dict)
