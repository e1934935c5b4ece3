"""Terminal outcomes of a job, consumed once by the callback dispatcher."""
from dataclasses import dataclass
from typing import Union

from pdf_cdr.core.models.job import JobStatus


@dataclass(frozen=True)
class Success:
    """Job produced a sanitized document."""
    job_id: str
    document: bytes
    output_handle: str

    @property
    def status(self) -> JobStatus:
        return JobStatus.SUCCEEDED


@dataclass(frozen=True)
class Failure:
    """Job failed; `error` is the message reported to the caller."""
    job_id: str
    error: str

    @property
    def status(self) -> JobStatus:
        return JobStatus.FAILED

    def to_payload(self) -> dict:
        return {"id": self.job_id, "error": self.error}


CallbackOutcome = Union[Success, Failure]
