"""Process-local pool of job slots.

Each slot loops: claim the oldest claimable job, run it, repeat. When the
queue is empty a slot sleeps for the poll interval, or until ``kick()`` wakes
it early. Exclusivity between slots and between processes comes only from
the queue's atomic claim.
"""

import asyncio
import logging

from storemigrator.services.job_queue import JobQueue
from storemigrator.services.job_runner import JobRunner

logger = logging.getLogger(__name__)


class WorkerPool:
    """Runs at most ``slots`` jobs at a time in this process.

    Args:
        queue: Shared job coordinator.
        runner: Executes a claimed job to a terminal state.
        worker_id: Process identity; slot ``n`` locks jobs as ``<worker_id>:<n>``.
        slots: Number of concurrent job slots.
        poll_interval: Seconds an idle slot waits before claiming again.
        resource_key: Only claim jobs of this resource key.
    """

    def __init__(
        self,
        queue: JobQueue,
        runner: JobRunner,
        worker_id: str,
        slots: int = 3,
        poll_interval: float = 1.5,
        resource_key: str | None = None,
    ) -> None:
        if slots < 1:
            raise ValueError("slots must be at least 1")
        self.queue = queue
        self.runner = runner
        self.worker_id = worker_id
        self.slots = slots
        self.poll_interval = poll_interval
        self.resource_key = resource_key

        self._tasks: list[asyncio.Task] = []
        self._wake = asyncio.Event()
        self._stopping = asyncio.Event()
        self._start_guard = asyncio.Semaphore(1)
        self.jobs_run = 0

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def slot_id(self, index: int) -> str:
        return f"{self.worker_id}:{index}"

    def kick(self) -> None:
        """Wake idle slots so a new upload is claimed without waiting."""
        self._wake.set()

    async def _run_one(self, slot_id: str) -> bool:
        """Claim and run a single job. Returns False when nothing was claimable."""
        job = await self.queue.claim_next(slot_id, self.resource_key)
        if job is None:
            return False
        logger.info("Slot %s running job %s", slot_id, job.id)
        await self.runner.run_job(job, slot_id)
        self.jobs_run += 1
        return True

    async def _idle(self) -> None:
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            return
        self._wake.clear()

    async def _poll_slot(self, index: int) -> None:
        slot_id = self.slot_id(index)
        logger.debug("Slot %s started", slot_id)
        while not self._stopping.is_set():
            try:
                claimed = await self._run_one(slot_id)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Slot %s error", slot_id)
                claimed = False
            if not claimed:
                await self._idle()
        logger.debug("Slot %s stopped", slot_id)

    async def start(self) -> None:
        """Start the polling slots. Calling it again while running is a no-op."""
        async with self._start_guard:
            if self.running:
                return
            self._stopping.clear()
            self._tasks = [
                asyncio.create_task(self._poll_slot(i), name=self.slot_id(i))
                for i in range(self.slots)
            ]
            logger.info("Worker pool %s started with %d slot(s)", self.worker_id, self.slots)

    async def stop(self, timeout: float | None = None) -> None:
        """Stop claiming. Running jobs finish unless ``timeout`` expires first."""
        self._stopping.set()
        self._wake.set()
        if not self._tasks:
            return
        done, pending = await asyncio.wait(self._tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks = []
        logger.info("Worker pool %s stopped", self.worker_id)

    async def drain(self) -> int:
        """Run jobs until none are claimable, then return how many ran."""
        async def drain_slot(index: int) -> int:
            slot_id = self.slot_id(index)
            count = 0
            while not self._stopping.is_set() and await self._run_one(slot_id):
                count += 1
            return count

        counts = await asyncio.gather(*(drain_slot(i) for i in range(self.slots)))
        return sum(counts)
