"""Run one claimed ImportJob through its resource migrator."""

import logging
from collections.abc import Awaitable, Callable
from pathlib import Path

import aiofiles

from storemigrator.config.schema import TargetConfig
from storemigrator.models.import_job import ImportJob, JobProgress, ResourceKey
from storemigrator.services.job_queue import JobQueue, LockLostError
from storemigrator.services.migration.products import ProgressCallback, migrate_products
from storemigrator.services.migration.report import MigrationResult
from storemigrator.services.target_client import TargetClient

logger = logging.getLogger(__name__)


class JobInfrastructureError(Exception):
    """The job cannot run at all: its upload is gone or its kind is unknown."""

    def __init__(self, message: str, detail: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or message


Migrator = Callable[["JobRunner", ImportJob, bytes, ProgressCallback], Awaitable[MigrationResult]]


async def run_products(runner: "JobRunner", job: ImportJob, content: bytes, on_progress: ProgressCallback) -> MigrationResult:
    target = runner.target
    return await migrate_products(
        content,
        job.original_file_name,
        runner.client,
        runner.reports_dir,
        job_id=str(job.id),
        on_progress=on_progress,
        product_delay=target.product_delay_seconds,
        definition_delay=target.definition_delay_seconds,
        page_size=target.page_size,
    )


# Orders and customers are accepted resource keys without a migrator yet
DEFAULT_MIGRATORS: dict[ResourceKey, Migrator] = {
    ResourceKey.PRODUCTS: run_products,
}


class JobRunner:
    """Executes claimed jobs and records their outcome on the queue.

    Args:
        queue: Coordinator used for every job state change.
        client: Shared target API client.
        reports_dir: Where migration reports are written.
        target: Target store tuning (delays, page size).
        migrators: Resource key -> migrator registry.
    """

    def __init__(
        self,
        queue: JobQueue,
        client: TargetClient,
        reports_dir: Path,
        target: TargetConfig | None = None,
        migrators: dict[ResourceKey, Migrator] | None = None,
    ) -> None:
        self.queue = queue
        self.client = client
        self.reports_dir = Path(reports_dir)
        self.target = target or TargetConfig()
        self.migrators = dict(DEFAULT_MIGRATORS if migrators is None else migrators)

    def get_migrator(self, resource_key: ResourceKey | str) -> Migrator:
        key = getattr(resource_key, "value", resource_key)
        try:
            migrator = self.migrators.get(ResourceKey(key))
        except ValueError:
            migrator = None
        if migrator is None:
            raise JobInfrastructureError("Unsupported resourceKey", f"Unsupported resourceKey: {key}")
        return migrator

    async def read_upload(self, job: ImportJob) -> bytes:
        path = Path(job.uploaded_file_path)
        if not path.is_file():
            raise JobInfrastructureError("Uploaded file not found", f"Missing file: {path}")
        async with aiofiles.open(path, "rb") as f:
            return await f.read()

    async def run_job(self, job: ImportJob, worker_id: str) -> bool:
        """Run ``job`` to a terminal state.

        Returns:
            True if the job completed. False if it was marked failed, or was
            abandoned because another worker reclaimed its lock.
        """
        job_id = job.id

        async def set_message(message: str) -> None:
            if not await self.queue.update_message(job_id, worker_id, message):
                raise LockLostError(job_id, worker_id)

        async def on_progress(processed: int, success: int, failed: int, total: int) -> None:
            held = await self.queue.update_progress(
                job_id,
                worker_id,
                JobProgress(total=total, processed=processed, success=success, failed=failed),
                message=f"Migrating... {processed}/{total}",
            )
            if not held:
                raise LockLostError(job_id, worker_id)

        try:
            migrator = self.get_migrator(job.resource_key)
            await set_message("Reading file...")
            content = await self.read_upload(job)
            await set_message("Migrating...")
            result = await migrator(self, job, content, on_progress)
        except LockLostError:
            # The new lock holder owns the job's state from here on
            logger.warning("Abandoning job %s: worker %s no longer holds its lock", job_id, worker_id)
            return False
        except JobInfrastructureError as e:
            await self.queue.mark_failed(job_id, e.message, e.detail, worker_id=worker_id)
            return False
        except Exception as e:
            logger.exception("Job %s crashed", job_id)
            await self.queue.mark_failed(job_id, "Failed", str(e) or e.__class__.__name__, worker_id=worker_id)
            return False

        return await self.queue.mark_completed(job_id, result, worker_id=worker_id)
