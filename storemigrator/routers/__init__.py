"""API routers for StoreMigrator."""

from storemigrator.routers import jobs

__all__ = ["jobs"]
