"""Job queue port interface.

Defines the contract for the durable sanitization job queue. The queue owns
every SanitizeJob record and is the only state shared between workers.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from pdf_cdr.core.models import CallbackOutcome, JobStatus, SanitizeJob


class JobQueuePort(ABC):
    """Abstract interface for the durable job queue / state machine.

    Implementations: FileJobQueue, RedisJobQueue
    """

    @abstractmethod
    async def enqueue(
        self, job_id: str, input_handle: str, success_url: str, failure_url: str
    ) -> SanitizeJob:
        """Create a queued job.

        Raises:
            DuplicateJobError: If a job with the same id exists
            PersistenceError: If the durable store is unavailable
        """
        pass

    @abstractmethod
    async def claim(self) -> Optional[SanitizeJob]:
        """Atomically move at most one queued job to running.

        Returns:
            The claimed job, or None when nothing is queued
        """
        pass

    @abstractmethod
    async def complete(self, job_id: str, outcome: CallbackOutcome) -> bool:
        """Move a running job to its terminal status.

        Args:
            job_id: Job identifier
            outcome: Success or Failure

        Returns:
            True if this call performed the transition, False if the job
            already held the same terminal status (duplicate completion)

        Raises:
            InvalidTransitionError: If the job is not running and not
                already in the outcome's terminal status
            JobNotFoundError: If the job does not exist
        """
        pass

    @abstractmethod
    async def get(self, job_id: str) -> Optional[SanitizeJob]:
        """Retrieve a job record, or None."""
        pass

    @abstractmethod
    async def list_jobs(self, status: Optional[JobStatus] = None) -> List[SanitizeJob]:
        """List jobs, optionally filtered by status."""
        pass

    @abstractmethod
    async def recover(self) -> List[SanitizeJob]:
        """Return running jobs claimed by this instance before a restart."""
        pass

    @abstractmethod
    async def resume(self, job_id: str) -> SanitizeJob:
        """Record a new attempt on a recovered running job."""
        pass

    @abstractmethod
    async def purge(self, job_id: str) -> None:
        """Remove a terminal job record."""
        pass

    async def terminal_jobs_older_than(self, cutoff: datetime) -> List[SanitizeJob]:
        """Terminal jobs last updated before `cutoff`."""
        return [
            job for job in await self.list_jobs()
            if job.status.is_terminal and job.updated_at < cutoff
        ]
