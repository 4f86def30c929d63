"""Pydantic models for StoreMigrator configuration.

These models define the structure of config.toml and secrets.env files.
"""

from pathlib import Path

from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    rate_limit_per_minute: int = 60
    # CORS configuration - empty list means same-origin only
    cors_origins: list[str] = []


class DatabaseConfig(BaseModel):
    """MongoDB database configuration."""

    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_database: str = "storemigrator"
    # Connection pool settings
    min_pool_size: int = 2
    max_pool_size: int = 50


class StorageConfig(BaseModel):
    """File storage configuration."""

    data_dir: Path = Field(default_factory=lambda: Path("data"))
    max_upload_mb: int = 25

    @property
    def uploads_dir(self) -> Path:
        """Directory holding uploaded spreadsheets."""
        return self.data_dir / "uploads"

    @property
    def reports_dir(self) -> Path:
        """Directory holding generated migration reports."""
        return self.data_dir / "reports"

    @property
    def max_upload_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_mb * 1024 * 1024


class WorkerConfig(BaseModel):
    """Job worker pool configuration."""

    # Run a worker pool inside the web process
    embedded: bool = True
    max_jobs_per_process: int = Field(default=3, ge=1)
    lock_ttl_minutes: float = Field(default=60, gt=0)
    poll_interval_seconds: float = Field(default=1.5, gt=0)
    # Restrict this process to one resource key (empty = all)
    resource_key: str | None = None
    worker_id: str | None = None


class TargetConfig(BaseModel):
    """Target store Admin API configuration."""

    shop: str = ""
    api_version: str = "2025-10"
    timeout_seconds: float = 30.0
    # Pause between products to stay under the API rate limit
    product_delay_seconds: float = 1.0
    definition_delay_seconds: float = 0.25
    page_size: int = Field(default=250, ge=1, le=250)

    @property
    def graphql_url(self) -> str:
        """Admin GraphQL endpoint for the configured shop."""
        return f"https://{self.shop}/admin/api/{self.api_version}/graphql.json"


class StoremigratorConfig(BaseModel):
    """Main StoreMigrator configuration loaded from config.toml."""

    app_name: str = "StoreMigrator"
    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    target: TargetConfig = Field(default_factory=TargetConfig)


class SecretsConfig(BaseModel):
    """Secrets loaded from secrets.env file.

    These are sensitive values that should not be stored in config.toml.
    """

    target_access_token: str | None = None
