"""Standalone migration worker process.

Usage:
    storemigrator-worker [--slots N] [--resource-key KEY] [--once]

Any number of worker processes (and web processes with the embedded pool)
can share one database; jobs are handed out by the queue's atomic claim.
"""

import argparse
import asyncio
import logging
import signal
import sys

from storemigrator.config import settings
from storemigrator.database import close_db, init_db
from storemigrator.models.import_job import ResourceKey
from storemigrator.services.job_queue import JobQueue
from storemigrator.services.job_runner import JobRunner
from storemigrator.services.target_client import TargetClient
from storemigrator.services.worker_pool import WorkerPool

logger = logging.getLogger("storemigrator.worker")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


async def run_worker(slots: int, resource_key: str | None, once: bool) -> int:
    """Run a worker pool until stopped, or until the queue is drained with ``once``.

    Returns:
        Number of jobs run.
    """
    settings.reports_dir.mkdir(parents=True, exist_ok=True)
    await init_db()

    queue = JobQueue(lock_ttl_minutes=settings.lock_ttl_minutes)
    client = TargetClient.from_settings(settings)
    runner = JobRunner(queue, client, settings.reports_dir, target=settings.target)
    pool = WorkerPool(
        queue,
        runner,
        worker_id=settings.worker_id,
        slots=slots,
        poll_interval=settings.poll_interval_seconds,
        resource_key=resource_key,
    )

    loop = asyncio.get_running_loop()
    stop_requested = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_requested.set)
        except NotImplementedError:
            # Windows event loops
            pass

    try:
        if once:
            drain = asyncio.create_task(pool.drain())
            stopper = asyncio.create_task(stop_requested.wait())
            await asyncio.wait({drain, stopper}, return_when=asyncio.FIRST_COMPLETED)
            if not drain.done():
                logger.info("Stop requested; finishing running jobs")
                await pool.stop()
            stopper.cancel()
            count = await drain
        else:
            await pool.start()
            await stop_requested.wait()
            logger.info("Stop requested; finishing running jobs")
            await pool.stop()
            count = pool.jobs_run
    finally:
        await client.aclose()
        await close_db()

    logger.info("Worker %s exiting after %d job(s)", settings.worker_id, count)
    return count


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="StoreMigrator migration worker")
    parser.add_argument(
        "--slots", "-n",
        type=int,
        default=settings.max_jobs_per_process,
        help=f"Concurrent jobs in this process (default: {settings.max_jobs_per_process})",
    )
    parser.add_argument(
        "--resource-key", "-k",
        choices=[k.value for k in ResourceKey],
        default=settings.worker_resource_key,
        help="Only claim jobs of this resource key",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run until no job is claimable, then exit",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args()

    if args.slots < 1:
        parser.error("--slots must be at least 1")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
    )

    try:
        asyncio.run(run_worker(args.slots, args.resource_key, args.once))
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
