"""
Persistent job queue with file-based storage.

Keeps jobs in memory for fast access while persisting every state change
to disk, so queued and running jobs survive a server restart.
"""

import asyncio
import json
import logging
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, TypeVar

from pdf_cdr.core.exceptions import (
    DuplicateJobError,
    InvalidTransitionError,
    JobNotFoundError,
    PersistenceError,
)
from pdf_cdr.core.models import CallbackOutcome, JobStatus, SanitizeJob, Success
from pdf_cdr.core.ports.queue import JobQueuePort

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SAFE_JOB_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,199}$")


class FileJobQueue(JobQueuePort):
    """File-backed implementation of JobQueuePort.

    One JSON file per job, replaced atomically on every transition.
    Mutations are serialized by a lock and run off the event loop, so a
    single process can run any number of workers against it. Use
    RedisJobQueue when several processes share a queue.

    Args:
        storage_dir: Directory for job files
        instance_id: Identifier recorded on claimed jobs
    """

    def __init__(self, storage_dir: str, instance_id: str = "local"):
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self.instance_id = instance_id
        self._jobs: Dict[str, SanitizeJob] = {}
        self._lock = threading.Lock()
        self._load_persisted_jobs()

    def _job_file(self, job_id: str) -> Path:
        if not _SAFE_JOB_ID.match(job_id):
            raise ValueError(f"Invalid job_id: {job_id!r}")
        return self.storage_dir / f"job_{job_id}.json"

    def _load_persisted_jobs(self) -> None:
        """Load jobs from disk on startup."""
        for job_file in self.storage_dir.glob("job_*.json"):
            try:
                with open(job_file) as f:
                    job = SanitizeJob.from_dict(json.load(f))
                self._jobs[job.job_id] = job
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.warning(f"Failed to load {job_file}: {e}")
        if self._jobs:
            logger.info(f"Loaded {len(self._jobs)} persisted jobs from {self.storage_dir}")

    def _persist_job(self, job: SanitizeJob) -> None:
        """Write a job record atomically (temp file + rename)."""
        job_file = self._job_file(job.job_id)
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.storage_dir, prefix=".tmp_", suffix=".json")
            try:
                with os.fdopen(fd, "w") as f:
                    json.dump(job.to_dict(), f, indent=2)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, job_file)
            except BaseException:
                Path(tmp_path).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceError(f"Failed to persist job {job.job_id}: {e}") from e

    def _save(self, job: SanitizeJob) -> None:
        self._persist_job(job)
        self._jobs[job.job_id] = job

    async def _locked(self, func: Callable[..., T], *args) -> T:
        """Run a mutation under the lock in the default executor.

        Every mutation fsyncs its job file, so it never runs on the event loop.
        """
        def run() -> T:
            with self._lock:
                return func(*args)

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, run)

    async def enqueue(
        self, job_id: str, input_handle: str, success_url: str, failure_url: str
    ) -> SanitizeJob:
        self._job_file(job_id)
        job = SanitizeJob(
            job_id=job_id,
            input_handle=input_handle,
            success_url=success_url,
            failure_url=failure_url,
        )
        await self._locked(self._insert, job)
        logger.info(f"Job {job_id} queued")
        return job

    def _insert(self, job: SanitizeJob) -> None:
        if job.job_id in self._jobs:
            raise DuplicateJobError(f"Job {job.job_id} already exists")
        self._save(job)

    async def claim(self) -> Optional[SanitizeJob]:
        job = await self._locked(self._claim_oldest)
        if job is not None:
            logger.info(f"Job {job.job_id} claimed (attempt {job.attempts})")
        return job

    def _claim_oldest(self) -> Optional[SanitizeJob]:
        queued = [job for job in self._jobs.values() if job.status is JobStatus.QUEUED]
        if not queued:
            return None
        oldest = min(queued, key=lambda job: (job.created_at, job.job_id))
        job = oldest.start(self.instance_id)
        self._save(job)
        return job

    async def complete(self, job_id: str, outcome: CallbackOutcome) -> bool:
        updated = await self._locked(self._record_outcome, job_id, outcome)
        if updated is None:
            logger.info(f"Job {job_id} already {outcome.status.value}; ignoring duplicate completion")
            return False
        logger.info(f"Job {job_id} {updated.status.value}")
        return True

    def _record_outcome(self, job_id: str, outcome: CallbackOutcome) -> Optional[SanitizeJob]:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        if job.status is outcome.status:
            return None
        if isinstance(outcome, Success):
            updated = job.transition(outcome.status, output_handle=outcome.output_handle)
        else:
            updated = job.transition(outcome.status, error=outcome.error)
        self._save(updated)
        return updated

    async def get(self, job_id: str) -> Optional[SanitizeJob]:
        return self._jobs.get(job_id)

    async def list_jobs(self, status: Optional[JobStatus] = None) -> List[SanitizeJob]:
        jobs = sorted(self._jobs.values(), key=lambda job: job.created_at)
        if status is None:
            return jobs
        return [job for job in jobs if job.status is status]

    async def recover(self) -> List[SanitizeJob]:
        return [
            job for job in await self.list_jobs(JobStatus.RUNNING)
            if job.claimed_by in (None, self.instance_id)
        ]

    async def resume(self, job_id: str) -> SanitizeJob:
        return await self._locked(self._restart, job_id)

    def _restart(self, job_id: str) -> SanitizeJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        job = job.restart()
        self._save(job)
        return job

    async def purge(self, job_id: str) -> None:
        await self._locked(self._remove, job_id)

    def _remove(self, job_id: str) -> None:
        job = self._jobs.get(job_id)
        if job is None:
            return
        if not job.status.is_terminal:
            raise InvalidTransitionError(f"Job {job_id} is {job.status.value}; only terminal jobs can be purged")
        try:
            self._job_file(job_id).unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Failed to purge job {job_id}: {e}") from e
        del self._jobs[job_id]

    def __len__(self) -> int:
        """Get number of jobs."""
        return len(self._jobs)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._jobs
