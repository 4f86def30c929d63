"""Job queue coordinator: atomic claim, lock renewal and terminal transitions.

Every state change is a single conditional update against the ``import_jobs``
collection, so any number of worker processes can share the queue without
further coordination.
"""

import logging
import os
from datetime import timedelta

from beanie import PydanticObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, ReturnDocument

from storemigrator.models.import_job import (
    TERMINAL_STATUSES,
    ImportJob,
    JobProgress,
    JobStatus,
    ResourceKey,
    utcnow,
)
from storemigrator.services.migration.report import MigrationResult

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TTL_MINUTES = 60


class LockLostError(Exception):
    """The caller no longer holds the job lock; another worker reclaimed it."""

    def __init__(self, job_id, worker_id: str) -> None:
        super().__init__(f"Worker {worker_id} lost the lock on job {job_id}")
        self.job_id = job_id
        self.worker_id = worker_id


def _object_id(job_id: str | PydanticObjectId) -> PydanticObjectId | None:
    if isinstance(job_id, PydanticObjectId):
        return job_id
    try:
        return PydanticObjectId(job_id)
    except (InvalidId, TypeError, ValueError):
        return None


class JobQueue:
    """Coordinator for ImportJob state transitions."""

    def __init__(self, lock_ttl_minutes: float = DEFAULT_LOCK_TTL_MINUTES) -> None:
        self.lock_ttl = timedelta(minutes=lock_ttl_minutes)

    @staticmethod
    def _collection():
        return ImportJob.get_motor_collection()

    def claimable_filter(self, resource_key: str | None = None) -> dict:
        """Mongo filter matching jobs a worker may take right now.

        A job is claimable when it is queued and unlocked (or its lock went
        stale), or when it is running under a lock older than the TTL, which
        means its worker died.
        """
        stale_before = utcnow() - self.lock_ttl
        query: dict = {
            "$or": [
                {
                    "status": JobStatus.QUEUED.value,
                    "$or": [{"locked_at": None}, {"locked_at": {"$lt": stale_before}}],
                },
                {"status": JobStatus.RUNNING.value, "locked_at": {"$lt": stale_before}},
            ]
        }
        if resource_key:
            query["resource_key"] = str(getattr(resource_key, "value", resource_key))
        return query

    async def claim_next(
        self,
        worker_id: str,
        resource_key: str | None = None,
    ) -> ImportJob | None:
        """Atomically claim the oldest claimable job.

        Args:
            worker_id: Identity recorded in ``locked_by``.
            resource_key: Optional restriction to one resource key.

        Returns:
            The claimed job, or None when no work is available.
        """
        now = utcnow()
        raw = await self._collection().find_one_and_update(
            self.claimable_filter(resource_key),
            {
                "$set": {
                    "status": JobStatus.RUNNING.value,
                    "locked_at": now,
                    "locked_by": worker_id,
                    "message": "Job claimed",
                    "error": "",
                    "updated_at": now,
                }
            },
            sort=[("created_at", ASCENDING), ("_id", ASCENDING)],
            return_document=ReturnDocument.AFTER,
        )
        if raw is None:
            return None

        logger.info("Worker %s claimed job %s (%s)", worker_id, raw["_id"], raw.get("resource_key"))
        return await ImportJob.get(raw["_id"])

    async def _update_running(self, job_id, worker_id: str, fields: dict) -> bool:
        fields = {**fields, "updated_at": utcnow()}
        result = await self._collection().update_one(
            {"_id": _object_id(job_id), "status": JobStatus.RUNNING.value, "locked_by": worker_id},
            {"$set": fields},
        )
        return result.modified_count == 1

    async def renew_lock(self, job_id, worker_id: str) -> bool:
        """Refresh ``locked_at`` so the job is not reclaimed while alive.

        Returns:
            False if the caller no longer holds the lock.
        """
        return await self._update_running(job_id, worker_id, {"locked_at": utcnow()})

    async def update_message(self, job_id, worker_id: str, message: str) -> bool:
        """Set the status message of a running job held by ``worker_id``."""
        return await self._update_running(job_id, worker_id, {"message": message})

    async def update_progress(
        self,
        job_id,
        worker_id: str,
        progress: JobProgress,
        message: str | None = None,
    ) -> bool:
        """Store progress counters and renew the lock in the same write."""
        fields: dict = {"progress": progress.model_dump(), "locked_at": utcnow()}
        if message is not None:
            fields["message"] = message
        held = await self._update_running(job_id, worker_id, fields)
        if not held:
            logger.warning("Worker %s lost the lock on job %s", worker_id, job_id)
        return held

    async def _finish(self, job_id, worker_id: str | None, fields: dict) -> bool:
        query: dict = {
            "_id": _object_id(job_id),
            "status": {"$nin": [s.value for s in TERMINAL_STATUSES]},
        }
        if worker_id is not None:
            query["locked_by"] = worker_id
        fields = {**fields, "locked_at": None, "locked_by": None, "updated_at": utcnow()}
        result = await self._collection().update_one(query, {"$set": fields})
        return result.modified_count == 1

    async def mark_completed(
        self,
        job_id,
        result: MigrationResult,
        worker_id: str | None = None,
    ) -> bool:
        """Move a job to ``completed`` and store its report metadata."""
        total = result.report_count or result.total_processed
        report_path = result.report_path or ""
        done = await self._finish(
            job_id,
            worker_id,
            {
                "status": JobStatus.COMPLETED.value,
                "message": "Completed",
                "error": "",
                "report_path": report_path,
                "report_file_name": os.path.basename(report_path),
                "progress": JobProgress(
                    total=total,
                    processed=total,
                    success=result.success_count,
                    failed=result.failed_count,
                ).model_dump(),
            },
        )
        if done:
            logger.info(
                "Job %s completed: %d ok, %d failed",
                job_id,
                result.success_count,
                result.failed_count,
            )
        return done

    async def mark_failed(
        self,
        job_id,
        message: str,
        error: str,
        worker_id: str | None = None,
    ) -> bool:
        """Move a job to ``failed``. Failed jobs are never claimed again."""
        done = await self._finish(
            job_id,
            worker_id,
            {
                "status": JobStatus.FAILED.value,
                "message": message or "Failed",
                "error": error or "Unknown error",
            },
        )
        if done:
            logger.error("Job %s failed: %s (%s)", job_id, message, error)
        return done

    async def create_job(
        self,
        resource_key: ResourceKey,
        original_file_name: str,
        uploaded_file_path: str,
        file_hash: str = "",
    ) -> ImportJob:
        """Insert a new queued job."""
        job = ImportJob(
            resource_key=resource_key,
            original_file_name=original_file_name,
            uploaded_file_path=uploaded_file_path,
            file_hash=file_hash,
            status=JobStatus.QUEUED,
            message="File uploaded",
        )
        await job.insert()
        return job

    async def get_job(self, job_id: str) -> ImportJob | None:
        """Fetch a job by id; malformed ids behave like unknown ones."""
        oid = _object_id(job_id)
        if oid is None:
            return None
        return await ImportJob.get(oid)

    async def list_jobs(self, resource_key: ResourceKey | str) -> list[ImportJob]:
        """All jobs for a resource key, newest first."""
        key = ResourceKey(resource_key)
        return (
            await ImportJob.find(ImportJob.resource_key == key)
            .sort(-ImportJob.created_at)
            .to_list()
        )
