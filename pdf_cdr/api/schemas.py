"""
API Pydantic models for the sanitization service.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from pdf_cdr.core.models import SanitizeJob


class JobStatusResponse(BaseModel):
    """Response model for job status"""

    job_id: str
    status: str
    attempts: int
    error: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_job(cls, job: SanitizeJob) -> "JobStatusResponse":
        return cls(
            job_id=job.job_id,
            status=job.status.value,
            attempts=job.attempts,
            error=job.error,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )


class ErrorResponse(BaseModel):
    """Error response model"""

    error: str
    message: str
    timestamp: datetime
