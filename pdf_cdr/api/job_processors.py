"""
Background job processor for PDF sanitization.

Runs one claimed job end to end: fetch the upload, regenerate it in the
isolated pipeline, store the result, record the terminal state, fire the
callback, then delete every temporary artifact.
"""
import asyncio
import functools
import logging
import shutil
import tempfile
import time
from pathlib import Path
from typing import Optional

import aiofiles

from pdf_cdr.adapters.callbacks import CallbackDispatcher
from pdf_cdr.api.processors.job_lifecycle import (
    JOBS_IN_FLIGHT,
    PROCESSING_TIME,
    RENDER_FAILURES,
    complete_job,
    render_failure_kind,
)
from pdf_cdr.core.exceptions import CoreError, DocumentNotFoundError, QueueError, RenderError
from pdf_cdr.core.models import CallbackOutcome, Failure, JobStatus, SanitizeJob, Success
from pdf_cdr.core.ports.queue import JobQueuePort
from pdf_cdr.core.ports.storage import DocumentStoragePort
from pdf_cdr.core.sanitization import PdfRegenerator

logger = logging.getLogger(__name__)


async def _regenerate(
    job: SanitizeJob,
    storage: DocumentStoragePort,
    regenerator: PdfRegenerator,
    scratch: Path,
) -> Success:
    data = await storage.retrieve(job.input_handle)
    source = scratch / "input.pdf"
    output = scratch / "sanitized.pdf"
    async with aiofiles.open(source, "wb") as f:
        await f.write(data)

    # Blocking: spawns render processes and writes chunk files
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(
        None,
        functools.partial(regenerator.regenerate, str(source), str(output), label=job.job_id),
    )

    async with aiofiles.open(output, "rb") as f:
        document = await f.read()
    output_handle = await storage.store(document)
    return Success(job_id=job.job_id, document=document, output_handle=output_handle)


async def process_sanitize_job(
    job: SanitizeJob,
    queue: JobQueuePort,
    storage: DocumentStoragePort,
    regenerator: PdfRegenerator,
    dispatcher: CallbackDispatcher,
    work_dir: Optional[str] = None,
) -> Optional[JobStatus]:
    """
    Process a claimed sanitization job.

    Args:
        job: Running job returned by claim() or resume()
        queue: Job queue owning the record
        storage: Document storage holding the upload
        regenerator: Pipeline that rebuilds the document
        dispatcher: Callback dispatcher
        work_dir: Parent directory for the job's scratch files

    Returns:
        Terminal status recorded by this call, or None when the job was
        already completed or its completion could not be recorded
    """
    start_time = time.monotonic()
    JOBS_IN_FLIGHT.inc()
    scratch: Optional[Path] = None
    try:
        if work_dir:
            Path(work_dir).mkdir(parents=True, exist_ok=True)
        scratch = Path(tempfile.mkdtemp(prefix="job-", dir=work_dir))
        logger.info(f"Job {job.job_id}: processing (attempt {job.attempts})")

        outcome: CallbackOutcome
        try:
            outcome = await _regenerate(job, storage, regenerator, scratch)
        except RenderError as e:
            RENDER_FAILURES.labels(kind=render_failure_kind(e)).inc()
            outcome = Failure(job_id=job.job_id, error=str(e))
        except CoreError as e:
            outcome = Failure(job_id=job.job_id, error=str(e))
        except Exception as e:
            logger.error(f"Job {job.job_id}: unexpected error: {e}", exc_info=True)
            outcome = Failure(job_id=job.job_id, error=f"Unexpected error: {e}")

        if isinstance(outcome, Failure):
            logger.error(f"Processing failed for job {job.job_id}: {outcome.error}")

        try:
            transitioned = await complete_job(job, outcome, queue, dispatcher)
        except QueueError as e:
            # Left Running; startup recovery picks it up again
            logger.error(f"Job {job.job_id}: could not record {outcome.status.value}: {e}")
            if isinstance(outcome, Success):
                await _discard(storage, outcome.output_handle, job.job_id)
            return None
    except asyncio.CancelledError:
        # Shutdown mid-job: the record stays Running and the input is kept for recovery
        logger.warning(f"Job {job.job_id}: cancelled before completion")
        raise
    finally:
        if scratch is not None:
            shutil.rmtree(scratch, ignore_errors=True)
        JOBS_IN_FLIGHT.dec()

    if not transitioned and isinstance(outcome, Success):
        await _discard(storage, outcome.output_handle, job.job_id)
    await _discard(storage, job.input_handle, job.job_id)

    PROCESSING_TIME.observe(time.monotonic() - start_time)
    return outcome.status if transitioned else None


async def _discard(storage: DocumentStoragePort, handle: str, job_id: str) -> None:
    try:
        await storage.delete(handle)
    except DocumentNotFoundError:
        pass
    except CoreError as e:
        logger.warning(f"Job {job_id}: failed to delete stored document {handle}: {e}")
