"""ImportJob document model for durable migration jobs."""

from datetime import datetime, timezone
from enum import Enum

from beanie import Document
from pydantic import BaseModel, Field
from pymongo import ASCENDING, DESCENDING, IndexModel


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class ResourceKey(str, Enum):
    """Kind of catalog data a job migrates."""

    PRODUCTS = "products"
    ORDERS = "orders"
    CUSTOMERS = "customers"


class JobStatus(str, Enum):
    """Lifecycle of a migration job: queued -> running -> completed | failed."""

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


class JobProgress(BaseModel):
    """Per-job entity counters."""

    total: int = 0
    processed: int = 0
    success: int = 0
    failed: int = 0


class ImportJob(Document):
    """One migration run of an uploaded spreadsheet.

    Lock fields are only set while the job is running. Mutations go through
    ``storemigrator.services.job_queue``.
    """

    resource_key: ResourceKey
    original_file_name: str
    uploaded_file_path: str
    file_hash: str = ""

    status: JobStatus = JobStatus.QUEUED
    progress: JobProgress = Field(default_factory=JobProgress)

    # Latest status text for the UI and the failure diagnostic
    message: str = ""
    error: str = ""

    # Populated on completion
    report_file_name: str = ""
    report_path: str = ""

    locked_at: datetime | None = None
    locked_by: str | None = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "import_jobs"
        indexes = [
            IndexModel([("status", ASCENDING), ("locked_at", ASCENDING), ("created_at", ASCENDING)]),
            IndexModel([("resource_key", ASCENDING), ("created_at", DESCENDING)]),
            "file_hash",
        ]
