"""
Job processors and worker pool.

Lifecycle helpers, metrics and the bounded worker pool that drains the queue.
"""
from pdf_cdr.api.processors.job_lifecycle import (
    complete_job,
    fail_job,
    render_failure_kind,
)

__all__ = [
    "complete_job",
    "fail_job",
    "render_failure_kind",
]
