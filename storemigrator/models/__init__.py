"""MongoDB document models for StoreMigrator."""

from storemigrator.models.import_job import (
    TERMINAL_STATUSES,
    ImportJob,
    JobProgress,
    JobStatus,
    ResourceKey,
)

__all__ = [
    "ImportJob",
    "JobProgress",
    "JobStatus",
    "ResourceKey",
    "TERMINAL_STATUSES",
]
