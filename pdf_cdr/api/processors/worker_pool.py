"""
Bounded worker pool over the durable job queue.

Each worker claims one job at a time and processes it to completion. At
startup the pool recovers jobs this instance left running; an hourly sweep
purges old terminal jobs together with their stored outputs.
"""
import asyncio
import logging
import shutil
from datetime import timedelta
from pathlib import Path
from typing import List, Optional, Set

from pdf_cdr.adapters.callbacks import CallbackDispatcher
from pdf_cdr.api.job_processors import process_sanitize_job
from pdf_cdr.api.processors.job_lifecycle import fail_job
from pdf_cdr.core.exceptions import CoreError, DocumentNotFoundError, PersistenceError
from pdf_cdr.core.models import SanitizeJob
from pdf_cdr.core.models.job import utcnow
from pdf_cdr.core.ports.queue import JobQueuePort
from pdf_cdr.core.ports.storage import DocumentStoragePort
from pdf_cdr.core.retry_utils import RetryConfig, retry_with_backoff
from pdf_cdr.core.sanitization import PdfRegenerator

logger = logging.getLogger(__name__)

INTERRUPTED_ERROR = "Job interrupted by service restart"
ATTEMPTS_EXCEEDED_ERROR = "Job interrupted and exceeded maximum attempts"

# Per-job (job processor) and per-run (pipeline) scratch directory prefixes
SCRATCH_PREFIXES = ("job-", "cdr-")


class WorkerPool:
    """Runs `concurrency` workers that drain the job queue.

    Args:
        queue: Durable job queue
        storage: Document storage for inputs and outputs
        regenerator: Sanitization pipeline
        dispatcher: Callback dispatcher
        concurrency: Number of jobs processed at once
        poll_interval: Seconds an idle worker waits before claiming again
        recovery_policy: "resume" re-processes interrupted jobs, "fail" fails them
        max_attempts: Attempts allowed before a resumed job is failed instead
        retention_hours: Age after which terminal jobs are purged
        claim_retry: Backoff applied when the queue store is unavailable
        work_dir: Parent directory for scratch files; stale ones are removed at start
        sweep_interval: Seconds between retention sweeps
    """

    def __init__(
        self,
        queue: JobQueuePort,
        storage: DocumentStoragePort,
        regenerator: PdfRegenerator,
        dispatcher: CallbackDispatcher,
        concurrency: int = 4,
        poll_interval: float = 1.0,
        recovery_policy: str = "resume",
        max_attempts: int = 3,
        retention_hours: float = 24,
        claim_retry: Optional[RetryConfig] = None,
        work_dir: Optional[str] = None,
        sweep_interval: float = 3600,
    ):
        if recovery_policy not in ("resume", "fail"):
            raise ValueError(f"Unknown recovery policy: {recovery_policy}")
        self.queue = queue
        self.storage = storage
        self.regenerator = regenerator
        self.dispatcher = dispatcher
        self.concurrency = concurrency
        self.poll_interval = poll_interval
        self.recovery_policy = recovery_policy
        self.max_attempts = max_attempts
        self.retention = timedelta(hours=retention_hours)
        self.claim_retry = claim_retry or RetryConfig.for_queue_polling()
        self.work_dir = work_dir
        self.sweep_interval = sweep_interval
        self._resumed: asyncio.Queue = asyncio.Queue()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    async def start(self) -> None:
        """Recover interrupted jobs, then start workers and the retention sweep."""
        if self._tasks:
            return
        logger.info(f"Starting worker pool ({self.concurrency} workers)")
        self.clear_stale_scratch()
        for job in await self.recover():
            self._resumed.put_nowait(job)
        for n in range(self.concurrency):
            self._tasks.add(asyncio.create_task(self._worker(n), name=f"cdr-worker-{n}"))
        self._tasks.add(asyncio.create_task(self._sweep_loop(), name="cdr-retention-sweep"))

    async def stop(self) -> None:
        """Cancel all workers; a job cut off mid-flight stays Running for recovery."""
        logger.info("Stopping worker pool...")
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("Worker pool stopped")

    async def recover(self) -> List[SanitizeJob]:
        """Apply the recovery policy to jobs this instance left Running.

        Returns:
            Jobs to process again (already resumed, attempts incremented)
        """
        interrupted = await self.queue.recover()
        if interrupted:
            logger.warning(f"Recovering {len(interrupted)} interrupted jobs ({self.recovery_policy})")

        resumed = []
        for job in interrupted:
            if self.recovery_policy == "fail":
                await self._fail_interrupted(job, INTERRUPTED_ERROR)
            elif job.attempts >= self.max_attempts:
                await self._fail_interrupted(job, ATTEMPTS_EXCEEDED_ERROR)
            else:
                resumed.append(await self.queue.resume(job.job_id))
                logger.info(f"Job {job.job_id} resumed (attempt {job.attempts + 1})")
        return resumed

    async def _fail_interrupted(self, job: SanitizeJob, error: str) -> None:
        if not await fail_job(job, error, self.queue, self.dispatcher):
            return
        try:
            await self._delete_quietly(job.input_handle)
        except CoreError as e:
            logger.warning(f"Job {job.job_id}: failed to delete stored document {job.input_handle}: {e}")

    def clear_stale_scratch(self) -> int:
        """Remove scratch directories left behind by an interrupted run.

        Only safe while no worker of this instance is running; the work
        directory must not be shared with another instance.

        Returns:
            Number of directories removed
        """
        if not self.work_dir or not Path(self.work_dir).is_dir():
            return 0
        removed = 0
        for prefix in SCRATCH_PREFIXES:
            for path in Path(self.work_dir).glob(f"{prefix}*"):
                if path.is_dir():
                    shutil.rmtree(path, ignore_errors=True)
                    removed += 1
        if removed:
            logger.info(f"Removed {removed} stale scratch directories from {self.work_dir}")
        return removed

    async def run_once(self) -> Optional[SanitizeJob]:
        """Take one resumed or queued job and process it.

        Returns:
            The job that was processed, or None if there was no work
        """
        job = self._next_resumed() or await self._claim()
        if job is None:
            return None
        await process_sanitize_job(
            job, self.queue, self.storage, self.regenerator, self.dispatcher, self.work_dir
        )
        return job

    def _next_resumed(self) -> Optional[SanitizeJob]:
        try:
            return self._resumed.get_nowait()
        except asyncio.QueueEmpty:
            return None

    async def _claim(self) -> Optional[SanitizeJob]:
        try:
            return await retry_with_backoff(self.queue.claim, **self.claim_retry.as_kwargs())
        except PersistenceError as e:
            logger.error(f"Job queue unavailable: {e}")
            return None

    async def _worker(self, n: int) -> None:
        while True:
            try:
                job = await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Worker {n}: unexpected error: {e}", exc_info=True)
                job = None
            if job is None:
                await asyncio.sleep(self.poll_interval)

    async def sweep(self) -> int:
        """Purge terminal jobs older than the retention period.

        Returns:
            Number of jobs purged
        """
        cutoff = utcnow() - self.retention
        purged = 0
        for job in await self.queue.terminal_jobs_older_than(cutoff):
            try:
                for handle in (job.output_handle, job.input_handle):
                    if handle:
                        await self._delete_quietly(handle)
                await self.queue.purge(job.job_id)
                purged += 1
                logger.info(f"Cleaned up old job: {job.job_id}")
            except CoreError as e:
                logger.error(f"Error cleaning up job {job.job_id}: {e}")
        return purged

    async def _delete_quietly(self, handle: str) -> None:
        try:
            await self.storage.delete(handle)
        except DocumentNotFoundError:
            pass

    async def _sweep_loop(self) -> None:
        """Background task to cleanup old jobs"""
        while True:
            try:
                await self.sweep()
            except CoreError as e:
                logger.error(f"Error in cleanup task: {e}")
            await asyncio.sleep(self.sweep_interval)
