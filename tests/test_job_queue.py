"""Tests for the job queue coordinator against a real MongoDB."""

import asyncio
from datetime import timedelta

import pytest

from storemigrator.models.import_job import ImportJob, JobProgress, JobStatus, ResourceKey, utcnow
from storemigrator.services.migration.report import MigrationResult


async def _insert(
    status: JobStatus = JobStatus.QUEUED,
    resource_key: ResourceKey = ResourceKey.PRODUCTS,
    created_offset: int = 0,
    locked_minutes_ago: float | None = None,
    locked_by: str | None = None,
) -> ImportJob:
    now = utcnow()
    job = ImportJob(
        resource_key=resource_key,
        original_file_name="products.csv",
        uploaded_file_path="/tmp/products.csv",
        status=status,
        created_at=now + timedelta(seconds=created_offset),
        locked_at=None if locked_minutes_ago is None else now - timedelta(minutes=locked_minutes_ago),
        locked_by=locked_by,
    )
    await job.insert()
    return job


@pytest.mark.asyncio
async def test_create_job_is_queued(init_test_db, job_queue) -> None:
    job = await job_queue.create_job(ResourceKey.PRODUCTS, "products.xlsx", "/tmp/x.xlsx", "abc")

    stored = await ImportJob.get(job.id)
    assert stored.status == JobStatus.QUEUED
    assert stored.message == "File uploaded"
    assert stored.file_hash == "abc"
    assert stored.locked_at is None and stored.locked_by is None


@pytest.mark.asyncio
async def test_claim_is_exclusive(init_test_db, job_queue) -> None:
    job = await _insert()

    claims = await asyncio.gather(*(job_queue.claim_next(f"worker-{i}") for i in range(8)))

    winners = [c for c in claims if c is not None]
    assert len(winners) == 1
    assert winners[0].id == job.id
    assert winners[0].status == JobStatus.RUNNING
    assert winners[0].locked_by.startswith("worker-")
    assert winners[0].locked_at is not None


@pytest.mark.asyncio
async def test_concurrent_claims_never_share_a_job(init_test_db, job_queue) -> None:
    for i in range(5):
        await _insert(created_offset=i)

    claims = await asyncio.gather(*(job_queue.claim_next(f"worker-{i}") for i in range(10)))

    ids = [c.id for c in claims if c is not None]
    assert len(ids) == 5
    assert len(set(ids)) == 5


@pytest.mark.asyncio
async def test_claims_oldest_first(init_test_db, job_queue) -> None:
    newer = await _insert(created_offset=10)
    older = await _insert(created_offset=0)

    first = await job_queue.claim_next("w")
    second = await job_queue.claim_next("w")

    assert first.id == older.id
    assert second.id == newer.id
    assert await job_queue.claim_next("w") is None


@pytest.mark.asyncio
async def test_stale_running_job_is_reclaimed(init_test_db, job_queue) -> None:
    stale = await _insert(status=JobStatus.RUNNING, locked_minutes_ago=61, locked_by="dead")

    claimed = await job_queue.claim_next("alive")

    assert claimed.id == stale.id
    assert claimed.locked_by == "alive"


@pytest.mark.asyncio
async def test_fresh_running_job_is_not_reclaimed(init_test_db, job_queue) -> None:
    await _insert(status=JobStatus.RUNNING, locked_minutes_ago=5, locked_by="busy")

    assert await job_queue.claim_next("other") is None


@pytest.mark.asyncio
async def test_stale_queued_lock_is_claimable(init_test_db, job_queue) -> None:
    job = await _insert(status=JobStatus.QUEUED, locked_minutes_ago=90, locked_by="old")

    claimed = await job_queue.claim_next("w")

    assert claimed.id == job.id


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [JobStatus.COMPLETED, JobStatus.FAILED])
@pytest.mark.parametrize("locked_minutes_ago", [None, 600])
async def test_terminal_jobs_are_never_claimed(init_test_db, job_queue, status, locked_minutes_ago) -> None:
    await _insert(status=status, locked_minutes_ago=locked_minutes_ago)

    assert await job_queue.claim_next("w") is None


@pytest.mark.asyncio
async def test_claim_filters_by_resource_key(init_test_db, job_queue) -> None:
    orders = await _insert(resource_key=ResourceKey.ORDERS, created_offset=0)
    products = await _insert(resource_key=ResourceKey.PRODUCTS, created_offset=5)

    claimed = await job_queue.claim_next("w", resource_key="products")
    assert claimed.id == products.id
    assert await job_queue.claim_next("w", resource_key=ResourceKey.PRODUCTS) is None

    claimed = await job_queue.claim_next("w")
    assert claimed.id == orders.id


@pytest.mark.asyncio
async def test_progress_requires_lock_holder(init_test_db, job_queue) -> None:
    await _insert()
    job = await job_queue.claim_next("owner")

    progress = JobProgress(total=4, processed=1, success=1, failed=0)
    assert await job_queue.update_progress(job.id, "intruder", progress) is False
    assert await job_queue.update_progress(job.id, "owner", progress, message="Migrating... 1/4") is True

    stored = await ImportJob.get(job.id)
    assert stored.progress.processed == 1
    assert stored.message == "Migrating... 1/4"


@pytest.mark.asyncio
async def test_renew_lock_moves_locked_at_forward(init_test_db, job_queue) -> None:
    job = await _insert(status=JobStatus.RUNNING, locked_minutes_ago=30, locked_by="w")

    assert await job_queue.renew_lock(job.id, "w") is True

    stored = await ImportJob.get(job.id)
    assert stored.locked_at > utcnow() - timedelta(minutes=1)


@pytest.mark.asyncio
async def test_mark_completed_clears_lock(init_test_db, job_queue, tmp_path) -> None:
    await _insert()
    job = await job_queue.claim_next("w")
    report_path = str(tmp_path / "report.xlsx")
    result = MigrationResult(
        total_processed=3, report_count=3, success_count=2, failed_count=1, report_path=report_path
    )

    assert await job_queue.mark_completed(job.id, result, worker_id="w") is True

    stored = await ImportJob.get(job.id)
    assert stored.status == JobStatus.COMPLETED
    assert stored.locked_at is None and stored.locked_by is None
    assert stored.report_file_name == "report.xlsx"
    assert stored.progress == JobProgress(total=3, processed=3, success=2, failed=1)


@pytest.mark.asyncio
async def test_mark_failed_clears_lock(init_test_db, job_queue) -> None:
    await _insert()
    job = await job_queue.claim_next("w")

    assert await job_queue.mark_failed(job.id, "Uploaded file not found", "Missing file", worker_id="w")

    stored = await ImportJob.get(job.id)
    assert stored.status == JobStatus.FAILED
    assert stored.message == "Uploaded file not found"
    assert stored.error == "Missing file"
    assert stored.locked_at is None and stored.locked_by is None


@pytest.mark.asyncio
async def test_terminal_jobs_are_immutable(init_test_db, job_queue) -> None:
    job = await _insert(status=JobStatus.COMPLETED)

    assert await job_queue.mark_failed(job.id, "Failed", "late") is False
    assert await job_queue.mark_completed(job.id, MigrationResult(total_processed=0, report_count=0, success_count=0, failed_count=0)) is False

    stored = await ImportJob.get(job.id)
    assert stored.status == JobStatus.COMPLETED
    assert stored.error == ""


@pytest.mark.asyncio
async def test_list_jobs_newest_first(init_test_db, job_queue) -> None:
    first = await _insert(created_offset=0)
    second = await _insert(created_offset=10)
    await _insert(resource_key=ResourceKey.ORDERS)

    jobs = await job_queue.list_jobs("products")

    assert [j.id for j in jobs] == [second.id, first.id]


@pytest.mark.asyncio
async def test_get_job_handles_bad_ids(init_test_db, job_queue) -> None:
    job = await _insert()

    assert (await job_queue.get_job(str(job.id))).id == job.id
    assert await job_queue.get_job("not-an-object-id") is None
    assert await job_queue.get_job("0123456789abcdef01234567") is None
