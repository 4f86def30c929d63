"""Business logic services for StoreMigrator."""

from storemigrator.services.job_queue import JobQueue, LockLostError
from storemigrator.services.job_runner import JobInfrastructureError, JobRunner
from storemigrator.services.target_client import (
    GraphQLError,
    TargetAPIError,
    TargetClient,
    TransportError,
)
from storemigrator.services.worker_pool import WorkerPool

__all__ = [
    "GraphQLError",
    "JobInfrastructureError",
    "JobQueue",
    "JobRunner",
    "LockLostError",
    "TargetAPIError",
    "TargetClient",
    "TransportError",
    "WorkerPool",
]
