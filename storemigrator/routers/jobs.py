"""Migration job endpoints: upload, status and report download."""

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import FileResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from storemigrator.config import settings
from storemigrator.models.import_job import JobStatus, ResourceKey
from storemigrator.schemas.job import JobResponse, JobUploadResponse
from storemigrator.services.job_queue import JobQueue
from storemigrator.services.upload_storage import UploadStorageService
from storemigrator.services.worker_pool import WorkerPool

logger = logging.getLogger(__name__)

router = APIRouter()

# Per-client limiter for uploads
limiter = Limiter(key_func=get_remote_address)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def get_job_queue(request: Request) -> JobQueue:
    return request.app.state.job_queue


def get_worker_pool(request: Request) -> WorkerPool | None:
    return getattr(request.app.state, "worker_pool", None)


def get_upload_storage() -> UploadStorageService:
    return UploadStorageService()


def _parse_resource_key(value: str) -> ResourceKey:
    try:
        return ResourceKey(value.strip().lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid resourceKey '{value}'. Allowed: {', '.join(k.value for k in ResourceKey)}",
        )


@router.post("/upload", response_model=JobUploadResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(lambda: f"{settings.rate_limit_per_minute}/minute")
async def upload_job(
    request: Request,
    resource_key: str = Form(..., alias="resourceKey"),
    file: UploadFile = File(..., description="XLSX, XLS or CSV export"),
    queue: JobQueue = Depends(get_job_queue),
    pool: WorkerPool | None = Depends(get_worker_pool),
    storage: UploadStorageService = Depends(get_upload_storage),
) -> JobUploadResponse:
    """Store an uploaded export and queue a migration job for it.

    The worker pool is woken without waiting for the job to start.
    """
    key = _parse_resource_key(resource_key)
    stored = await storage.save_upload(file)

    job = await queue.create_job(
        resource_key=key,
        original_file_name=stored.original_file_name,
        uploaded_file_path=stored.path,
        file_hash=stored.file_hash,
    )
    logger.info("Queued %s job %s for %s", key.value, job.id, stored.original_file_name)

    if pool is not None:
        pool.kick()

    return JobUploadResponse(
        job_id=str(job.id),
        resource_key=job.resource_key,
        original_file_name=job.original_file_name,
        stored_file_name=stored.stored_file_name,
        status=job.status,
        message=job.message,
    )


@router.get("", response_model=list[JobResponse])
async def list_jobs(
    resource_key: str = Query(..., alias="resourceKey"),
    queue: JobQueue = Depends(get_job_queue),
) -> list[JobResponse]:
    """List jobs for a resource key, newest first."""
    key = _parse_resource_key(resource_key)
    jobs = await queue.list_jobs(key)
    return [JobResponse.from_job(job) for job in jobs]


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, queue: JobQueue = Depends(get_job_queue)) -> JobResponse:
    """Get the full state of one job."""
    job = await queue.get_job(job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Job with ID {job_id} not found",
        )
    return JobResponse.from_job(job)


@router.get("/{job_id}/report")
async def download_report(job_id: str, queue: JobQueue = Depends(get_job_queue)) -> FileResponse:
    """Stream the report of a completed job."""
    job = await queue.get_job(job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Job with ID {job_id} not found",
        )
    if job.status != JobStatus.COMPLETED or not job.report_path:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Report not available for this job",
        )

    report_path = Path(job.report_path)
    if not report_path.is_file():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Report file not found",
        )

    return FileResponse(
        report_path,
        media_type=XLSX_MEDIA_TYPE,
        filename=job.report_file_name or report_path.name,
    )
