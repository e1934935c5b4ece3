"""
Job Lifecycle Management.

Handles terminal transitions and the single callback that follows each one.
"""
import logging

from prometheus_client import Counter, Gauge, Histogram

from pdf_cdr.adapters.callbacks import CallbackDispatcher
from pdf_cdr.core.exceptions import (
    EngineError,
    ProcessCrashedError,
    QueueError,
    RenderError,
    RenderTimeoutError,
)
from pdf_cdr.core.models import CallbackOutcome, Failure, SanitizeJob, Success
from pdf_cdr.core.ports.queue import JobQueuePort

logger = logging.getLogger(__name__)

# Prometheus metrics
SUBMISSIONS = Counter(
    "pdf_cdr_submissions_total", "Documents accepted for sanitization"
)
JOB_OUTCOMES = Counter(
    "pdf_cdr_jobs_completed_total", "Jobs reaching a terminal state", ["status"]
)
PROCESSING_TIME = Histogram(
    "pdf_cdr_processing_duration_seconds", "Document sanitization time"
)
CALLBACKS = Counter(
    "pdf_cdr_callbacks_total", "Callback delivery attempts", ["kind", "result"]
)
RENDER_FAILURES = Counter(
    "pdf_cdr_render_failures_total", "Isolated render failures", ["kind"]
)
JOBS_IN_FLIGHT = Gauge("pdf_cdr_jobs_in_flight", "Jobs currently being processed")


def render_failure_kind(error: RenderError) -> str:
    """Label for the render failure counter."""
    if isinstance(error, RenderTimeoutError):
        return "timeout"
    if isinstance(error, ProcessCrashedError):
        return "crashed"
    if isinstance(error, EngineError):
        return "engine_error"
    return "other"


async def complete_job(
    job: SanitizeJob,
    outcome: CallbackOutcome,
    queue: JobQueuePort,
    dispatcher: CallbackDispatcher,
) -> bool:
    """
    Record the terminal outcome and fire its callback.

    The callback is sent only when this call performed the transition, so a
    duplicate completion fires nothing.

    Args:
        job: Job being completed
        outcome: Success or Failure
        queue: Job queue owning the record
        dispatcher: Callback dispatcher

    Returns:
        True if this call moved the job to its terminal state

    Raises:
        QueueError: If the transition could not be recorded
    """
    transitioned = await queue.complete(job.job_id, outcome)
    if not transitioned:
        return False

    JOB_OUTCOMES.labels(status=outcome.status.value).inc()
    kind = "success" if isinstance(outcome, Success) else "failure"
    delivered = await dispatcher.dispatch(job, outcome)
    CALLBACKS.labels(kind=kind, result="delivered" if delivered else "failed").inc()
    return True


async def fail_job(
    job: SanitizeJob,
    error: str,
    queue: JobQueuePort,
    dispatcher: CallbackDispatcher,
) -> bool:
    """
    Mark job as failed and notify the failure URL.

    Args:
        job: Job to fail
        error: Message reported to the caller
        queue: Job queue owning the record
        dispatcher: Callback dispatcher

    Returns:
        True if this call moved the job to Failed
    """
    logger.error(f"Processing failed for job {job.job_id}: {error}")
    try:
        return await complete_job(job, Failure(job_id=job.job_id, error=error), queue, dispatcher)
    except QueueError as e:
        logger.error(f"Job {job.job_id}: could not record failure: {e}")
        return False
