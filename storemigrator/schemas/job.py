"""Pydantic schemas for migration job endpoints."""

from datetime import datetime

from pydantic import BaseModel

from storemigrator.models.import_job import ImportJob, JobProgress, JobStatus, ResourceKey


class JobUploadResponse(BaseModel):
    """Response after a spreadsheet upload is queued."""

    job_id: str
    resource_key: ResourceKey
    original_file_name: str
    stored_file_name: str
    status: JobStatus
    message: str


class JobResponse(BaseModel):
    """Full state of one migration job."""

    id: str
    resource_key: ResourceKey
    original_file_name: str
    uploaded_file_path: str
    file_hash: str
    status: JobStatus
    progress: JobProgress
    message: str
    error: str
    report_file_name: str
    report_path: str
    locked_at: datetime | None = None
    locked_by: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_job(cls, job: ImportJob) -> "JobResponse":
        response_data = job.model_dump()
        response_data["id"] = str(job.id)
        return cls.model_validate(response_data)
