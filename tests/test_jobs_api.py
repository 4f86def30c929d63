"""Tests for the job upload and status endpoints."""

import pytest
from httpx import AsyncClient

from storemigrator.models.import_job import ImportJob, JobStatus, ResourceKey
from storemigrator.services.migration.report import MigrationResult, render_report_xlsx

from conftest import PRODUCT_HEADERS, make_csv, product_rows


async def _upload(client: AsyncClient, content: bytes, filename: str = "products.csv", resource_key: str = "products"):
    return await client.post(
        "/api/jobs/upload",
        data={"resourceKey": resource_key},
        files={"file": (filename, content, "text/csv")},
    )


class TestUpload:
    """Tests for POST /api/jobs/upload."""

    @pytest.mark.asyncio
    async def test_upload_queues_job(self, client: AsyncClient, recording_pool, uploads_dir) -> None:
        response = await _upload(client, make_csv(PRODUCT_HEADERS, product_rows(2)), "My Products.csv")

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "queued"
        assert data["resource_key"] == "products"
        assert data["original_file_name"] == "My Products.csv"
        assert data["stored_file_name"].endswith("_My_Products.csv")
        assert (uploads_dir / data["stored_file_name"]).is_file()
        assert recording_pool.kicks == 1

        job = await ImportJob.get(data["job_id"])
        assert job.status == JobStatus.QUEUED
        assert len(job.file_hash) == 64

    @pytest.mark.asyncio
    async def test_resource_key_is_case_insensitive(self, client: AsyncClient) -> None:
        response = await _upload(client, b"Handle\nshirt\n", resource_key="Products")

        assert response.status_code == 201
        assert response.json()["resource_key"] == "products"

    @pytest.mark.asyncio
    async def test_invalid_resource_key(self, client: AsyncClient, recording_pool) -> None:
        response = await _upload(client, b"Handle\nshirt\n", resource_key="invoices")

        assert response.status_code == 400
        assert "resourceKey" in response.json()["detail"]
        assert recording_pool.kicks == 0

    @pytest.mark.asyncio
    async def test_rejects_unsupported_extension(self, client: AsyncClient) -> None:
        response = await _upload(client, b"hello", filename="products.txt")

        assert response.status_code == 400
        assert await ImportJob.find_all().count() == 0

    @pytest.mark.asyncio
    async def test_rejects_empty_file(self, client: AsyncClient) -> None:
        response = await _upload(client, b"", filename="products.csv")

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_rejects_oversized_file(self, client: AsyncClient) -> None:
        response = await _upload(client, b"x" * (1024 * 1024 + 1), filename="products.csv")

        assert response.status_code == 413

    @pytest.mark.asyncio
    async def test_missing_file(self, client: AsyncClient) -> None:
        response = await client.post("/api/jobs/upload", data={"resourceKey": "products"})

        assert response.status_code == 422


class TestJobStatus:
    """Tests for the job listing and detail endpoints."""

    @pytest.mark.asyncio
    async def test_get_job(self, client: AsyncClient) -> None:
        job_id = (await _upload(client, b"Handle\nshirt\n")).json()["job_id"]

        response = await client.get(f"/api/jobs/{job_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == job_id
        assert data["status"] == "queued"
        assert data["progress"] == {"total": 0, "processed": 0, "success": 0, "failed": 0}
        assert data["locked_by"] is None

    @pytest.mark.asyncio
    async def test_get_unknown_job(self, client: AsyncClient) -> None:
        assert (await client.get("/api/jobs/0123456789abcdef01234567")).status_code == 404
        assert (await client.get("/api/jobs/not-an-id")).status_code == 404

    @pytest.mark.asyncio
    async def test_list_jobs_newest_first(self, client: AsyncClient) -> None:
        first = (await _upload(client, b"Handle\na\n")).json()["job_id"]
        second = (await _upload(client, b"Handle\nb\n")).json()["job_id"]
        await _upload(client, b"Name\n#1\n", resource_key="orders")

        response = await client.get("/api/jobs", params={"resourceKey": "products"})

        assert response.status_code == 200
        assert [j["id"] for j in response.json()] == [second, first]

    @pytest.mark.asyncio
    async def test_list_jobs_requires_valid_key(self, client: AsyncClient) -> None:
        assert (await client.get("/api/jobs", params={"resourceKey": "nope"})).status_code == 400
        assert (await client.get("/api/jobs")).status_code == 422


class TestReportDownload:
    """Tests for GET /api/jobs/{job_id}/report."""

    @pytest.mark.asyncio
    async def test_report_unavailable_before_completion(self, client: AsyncClient) -> None:
        job_id = (await _upload(client, b"Handle\nshirt\n")).json()["job_id"]

        response = await client.get(f"/api/jobs/{job_id}/report")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_report_download_after_completion(self, client: AsyncClient, job_queue, reports_dir) -> None:
        job = await job_queue.create_job(ResourceKey.PRODUCTS, "products.csv", "/tmp/products.csv")
        claimed = await job_queue.claim_next("w")
        report_path = reports_dir / f"products_upload_report_2026-01-01_00-00-00_{job.id}.xlsx"
        report_path.write_bytes(render_report_xlsx([]))
        result = MigrationResult(
            total_processed=0, report_count=0, success_count=0, failed_count=0, report_path=str(report_path)
        )
        await job_queue.mark_completed(claimed.id, result, worker_id="w")

        response = await client.get(f"/api/jobs/{job.id}/report")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )
        assert report_path.name in response.headers["content-disposition"]
        assert response.content[:2] == b"PK"

    @pytest.mark.asyncio
    async def test_report_file_removed(self, client: AsyncClient, job_queue, reports_dir) -> None:
        job = await job_queue.create_job(ResourceKey.PRODUCTS, "products.csv", "/tmp/products.csv")
        await job_queue.claim_next("w")
        result = MigrationResult(
            total_processed=0,
            report_count=0,
            success_count=0,
            failed_count=0,
            report_path=str(reports_dir / "missing.xlsx"),
        )
        await job_queue.mark_completed(job.id, result, worker_id="w")

        assert (await client.get(f"/api/jobs/{job.id}/report")).status_code == 404


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "worker_pool" in data
