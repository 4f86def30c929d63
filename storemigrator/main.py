"""FastAPI application entry point for StoreMigrator."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from storemigrator import __version__
from storemigrator.config import settings
from storemigrator.database import close_db, init_db
from storemigrator.services.job_queue import JobQueue
from storemigrator.services.job_runner import JobRunner
from storemigrator.services.target_client import TargetClient
from storemigrator.services.worker_pool import WorkerPool

logger = logging.getLogger(__name__)

# Rate limiter configuration
limiter = Limiter(key_func=get_remote_address)


def build_worker_pool(queue: JobQueue, client: TargetClient) -> WorkerPool:
    """Build a worker pool from the application settings."""
    runner = JobRunner(queue, client, settings.reports_dir, target=settings.target)
    return WorkerPool(
        queue,
        runner,
        worker_id=settings.worker_id,
        slots=settings.max_jobs_per_process,
        poll_interval=settings.poll_interval_seconds,
        resource_key=settings.worker_resource_key,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    settings.uploads_dir.mkdir(parents=True, exist_ok=True)
    settings.reports_dir.mkdir(parents=True, exist_ok=True)

    await init_db()

    queue = JobQueue(lock_ttl_minutes=settings.lock_ttl_minutes)
    client = TargetClient.from_settings(settings)
    app.state.job_queue = queue
    app.state.target_client = client
    app.state.worker_pool = None

    if settings.embedded_worker:
        pool = build_worker_pool(queue, client)
        await pool.start()
        app.state.worker_pool = pool

    yield

    # Shutdown
    if app.state.worker_pool is not None:
        await app.state.worker_pool.stop()
    await client.aclose()
    await close_db()


app = FastAPI(
    title=settings.app_name,
    description="Background migration of store catalog exports into a target store",
    version=__version__,
    lifespan=lifespan,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Only allow origins from the whitelist; empty list means same-origin only
if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Authorization", "Content-Type"],
        max_age=600,
    )


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    pool = getattr(app.state, "worker_pool", None)
    return JSONResponse(
        content={
            "status": "healthy",
            "version": __version__,
            "app_name": settings.app_name,
            "worker_pool": bool(pool and pool.running),
        }
    )


# Import and include routers
from storemigrator.routers import jobs

app.include_router(jobs.router, prefix="/api/jobs", tags=["Jobs"])
