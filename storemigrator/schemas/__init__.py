"""Pydantic schemas for API request/response validation."""

from storemigrator.schemas.job import JobResponse, JobUploadResponse

__all__ = ["JobResponse", "JobUploadResponse"]
