"""Sanitization job record and its lifecycle.

A SanitizeJob is owned by the job queue. Status only moves forward:
queued -> running -> succeeded | failed.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pdf_cdr.core.exceptions import InvalidTransitionError


class JobStatus(str, Enum):
    """Lifecycle states of a sanitization job."""
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED)


_ALLOWED_TRANSITIONS = {
    JobStatus.QUEUED: {JobStatus.RUNNING},
    JobStatus.RUNNING: {JobStatus.SUCCEEDED, JobStatus.FAILED},
    JobStatus.SUCCEEDED: set(),
    JobStatus.FAILED: set(),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SanitizeJob:
    """One sanitization request, tracked from submission through callback.

    Attributes:
        job_id: Caller-supplied document id
        input_handle: Storage handle of the uploaded document
        success_url: Endpoint notified with the sanitized bytes
        failure_url: Endpoint notified with the error payload
        status: Current lifecycle state
        attempts: Number of times a worker started processing this job
        output_handle: Storage handle of the sanitized document, once produced
        error: Failure message, once failed
        claimed_by: Instance id of the worker pool that claimed the job
    """
    job_id: str
    input_handle: str
    success_url: str
    failure_url: str
    status: JobStatus = JobStatus.QUEUED
    attempts: int = 0
    output_handle: Optional[str] = None
    error: Optional[str] = None
    claimed_by: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def transition(self, status: JobStatus, **changes: Any) -> "SanitizeJob":
        """Return a copy moved to `status`.

        Raises:
            InvalidTransitionError: If the move is not a forward lifecycle step
        """
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Job {self.job_id}: cannot move from {self.status.value} to {status.value}"
            )
        return replace(self, status=status, updated_at=utcnow(), **changes)

    def start(self, instance_id: str) -> "SanitizeJob":
        return self.transition(
            JobStatus.RUNNING, attempts=self.attempts + 1, claimed_by=instance_id
        )

    def restart(self) -> "SanitizeJob":
        """Record another processing attempt of a job left running by a crash."""
        if self.status is not JobStatus.RUNNING:
            raise InvalidTransitionError(
                f"Job {self.job_id}: only running jobs can be resumed, got {self.status.value}"
            )
        return replace(self, attempts=self.attempts + 1, updated_at=utcnow())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "input_handle": self.input_handle,
            "success_url": self.success_url,
            "failure_url": self.failure_url,
            "status": self.status.value,
            "attempts": self.attempts,
            "output_handle": self.output_handle,
            "error": self.error,
            "claimed_by": self.claimed_by,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SanitizeJob":
        return cls(
            job_id=data["job_id"],
            input_handle=data["input_handle"],
            success_url=data["success_url"],
            failure_url=data["failure_url"],
            status=JobStatus(data.get("status", JobStatus.QUEUED.value)),
            attempts=int(data.get("attempts", 0)),
            output_handle=data.get("output_handle"),
            error=data.get("error"),
            claimed_by=data.get("claimed_by"),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )
