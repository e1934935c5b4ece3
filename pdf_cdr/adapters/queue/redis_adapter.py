"""Redis implementation of JobQueuePort.

Job records are JSON strings under `{prefix}job:{id}`. Queued ids live in the
`{prefix}queued` list and claimed ids in a per-instance `{prefix}running:{instance}`
list. LMOVE makes the claim atomic across any number of processes; WATCH/MULTI
transactions guard enqueue and completion.
"""
import json
import logging
from typing import List, Optional

import redis

from pdf_cdr.core.exceptions import (
    DuplicateJobError,
    InvalidTransitionError,
    JobNotFoundError,
    PersistenceError,
)
from pdf_cdr.core.models import CallbackOutcome, JobStatus, SanitizeJob, Success
from pdf_cdr.core.ports.queue import JobQueuePort

logger = logging.getLogger(__name__)


class RedisJobQueue(JobQueuePort):
    """Redis implementation of JobQueuePort.

    Args:
        redis_client: Configured redis.Redis instance
        instance_id: Identifier of this worker pool; owns its running list
        key_prefix: Prefix for all keys (default: "cdr:")
    """

    def __init__(self, redis_client, instance_id: str, key_prefix: str = "cdr:"):
        self._redis = redis_client
        self.instance_id = instance_id
        self._prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, instance_id: str, key_prefix: str = "cdr:") -> "RedisJobQueue":
        return cls(redis.Redis.from_url(url), instance_id=instance_id, key_prefix=key_prefix)

    def _key(self, job_id: str) -> str:
        """Build Redis key for job."""
        return f"{self._prefix}job:{job_id}"

    @property
    def _queued_key(self) -> str:
        return f"{self._prefix}queued"

    @property
    def _running_key(self) -> str:
        return f"{self._prefix}running:{self.instance_id}"

    def _load(self, raw) -> Optional[SanitizeJob]:
        if raw is None:
            return None
        return SanitizeJob.from_dict(json.loads(raw))

    async def enqueue(
        self, job_id: str, input_handle: str, success_url: str, failure_url: str
    ) -> SanitizeJob:
        job = SanitizeJob(
            job_id=job_id,
            input_handle=input_handle,
            success_url=success_url,
            failure_url=failure_url,
        )
        key = self._key(job_id)
        try:
            with self._redis.pipeline() as pipe:
                pipe.watch(key)
                if pipe.exists(key):
                    raise DuplicateJobError(f"Job {job_id} already exists")
                pipe.multi()
                pipe.set(key, json.dumps(job.to_dict()))
                pipe.lpush(self._queued_key, job_id)
                pipe.execute()
        except redis.WatchError as e:
            raise DuplicateJobError(f"Job {job_id} was created concurrently") from e
        except redis.RedisError as e:
            raise PersistenceError(f"Failed to enqueue job {job_id}: {e}") from e
        logger.info(f"Job {job_id} queued")
        return job

    async def claim(self) -> Optional[SanitizeJob]:
        try:
            raw_id = self._redis.lmove(self._queued_key, self._running_key, "RIGHT", "LEFT")
            if raw_id is None:
                return None
            job_id = raw_id.decode() if isinstance(raw_id, bytes) else raw_id
            job = self._load(self._redis.get(self._key(job_id)))
            if job is None:
                logger.warning(f"Dropping queued id {job_id} without a job record")
                self._redis.lrem(self._running_key, 0, job_id)
                return None
            job = job.start(self.instance_id)
            self._redis.set(self._key(job_id), json.dumps(job.to_dict()))
        except redis.RedisError as e:
            raise PersistenceError(f"Failed to claim job: {e}") from e
        logger.info(f"Job {job.job_id} claimed (attempt {job.attempts})")
        return job

    async def complete(self, job_id: str, outcome: CallbackOutcome) -> bool:
        key = self._key(job_id)
        try:
            with self._redis.pipeline() as pipe:
                pipe.watch(key)
                job = self._load(pipe.get(key))
                if job is None:
                    raise JobNotFoundError(f"Job {job_id} not found")
                if job.status is outcome.status:
                    logger.info(f"Job {job_id} already {job.status.value}; ignoring duplicate completion")
                    return False
                if isinstance(outcome, Success):
                    updated = job.transition(outcome.status, output_handle=outcome.output_handle)
                else:
                    updated = job.transition(outcome.status, error=outcome.error)
                pipe.multi()
                pipe.set(key, json.dumps(updated.to_dict()))
                pipe.lrem(self._running_key, 0, job_id)
                pipe.execute()
        except redis.WatchError:
            # Someone else completed it between WATCH and EXEC; re-evaluate.
            return await self.complete(job_id, outcome)
        except redis.RedisError as e:
            raise PersistenceError(f"Failed to complete job {job_id}: {e}") from e
        logger.info(f"Job {job_id} {updated.status.value}")
        return True

    async def get(self, job_id: str) -> Optional[SanitizeJob]:
        """Retrieve job data from Redis."""
        try:
            return self._load(self._redis.get(self._key(job_id)))
        except redis.RedisError as e:
            raise PersistenceError(f"Failed to read job {job_id}: {e}") from e

    async def list_jobs(self, status: Optional[JobStatus] = None) -> List[SanitizeJob]:
        try:
            keys = list(self._redis.scan_iter(match=f"{self._prefix}job:*"))
            raws = self._redis.mget(keys) if keys else []
        except redis.RedisError as e:
            raise PersistenceError(f"Failed to list jobs: {e}") from e
        jobs = [job for job in map(self._load, raws) if job is not None]
        jobs.sort(key=lambda job: job.created_at)
        if status is None:
            return jobs
        return [job for job in jobs if job.status is status]

    async def recover(self) -> List[SanitizeJob]:
        recovered = []
        try:
            for raw_id in self._redis.lrange(self._running_key, 0, -1):
                job_id = raw_id.decode() if isinstance(raw_id, bytes) else raw_id
                job = self._load(self._redis.get(self._key(job_id)))
                if job is None or job.status.is_terminal:
                    self._redis.lrem(self._running_key, 0, job_id)
                    continue
                if job.status is JobStatus.QUEUED:
                    # Claimed by LMOVE but the record was never updated before a crash
                    job = job.start(self.instance_id)
                    self._redis.set(self._key(job_id), json.dumps(job.to_dict()))
                recovered.append(job)
        except redis.RedisError as e:
            raise PersistenceError(f"Failed to recover running jobs: {e}") from e
        return recovered

    async def resume(self, job_id: str) -> SanitizeJob:
        job = await self.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        job = job.restart()
        try:
            self._redis.set(self._key(job_id), json.dumps(job.to_dict()))
        except redis.RedisError as e:
            raise PersistenceError(f"Failed to resume job {job_id}: {e}") from e
        return job

    async def purge(self, job_id: str) -> None:
        job = await self.get(job_id)
        if job is None:
            return
        if not job.status.is_terminal:
            raise InvalidTransitionError(f"Job {job_id} is {job.status.value}; only terminal jobs can be purged")
        try:
            self._redis.delete(self._key(job_id))
        except redis.RedisError as e:
            raise PersistenceError(f"Failed to purge job {job_id}: {e}") from e
