"""Sanitization submission and job status routes"""
import logging

from fastapi import APIRouter, HTTPException, Path, Query, Request
from fastapi.responses import PlainTextResponse
from slowapi import Limiter

from pdf_cdr.api.processors.job_lifecycle import SUBMISSIONS
from pdf_cdr.api.schemas import ErrorResponse, JobStatusResponse
from pdf_cdr.core.exceptions import CoreError, DocumentNotFoundError, DuplicateJobError
from pdf_cdr.core.ports.queue import JobQueuePort
from pdf_cdr.core.ports.storage import DocumentStoragePort

logger = logging.getLogger(__name__)

ACCEPTED_MESSAGE = "PDF added to queue for processing"
PDF_CONTENT_TYPE = "application/pdf"
JOB_ID_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9._-]*$"


def create_sanitise_router(
    queue: JobQueuePort,
    storage: DocumentStoragePort,
    limiter: Limiter,
    max_upload_bytes: int,
    submit_rate_limit: str = "60/minute",
) -> APIRouter:
    """Create sanitization router with dependency injection.

    Args:
        queue: Durable job queue
        storage: Document storage receiving uploads
        limiter: slowapi limiter registered on the application
        max_upload_bytes: Largest accepted request body
        submit_rate_limit: slowapi rate for submissions

    Returns:
        APIRouter configured with sanitization endpoints
    """
    router = APIRouter(tags=["Sanitization"])

    @router.post(
        "/sanitise/pdf",
        response_class=PlainTextResponse,
        responses={
            status: {"model": ErrorResponse}
            for status in (400, 409, 413, 415, 500)
        },
    )
    @limiter.limit(submit_rate_limit)
    async def submit_pdf(
        request: Request,
        id: str = Query(..., min_length=1, max_length=200, pattern=JOB_ID_PATTERN),
        success_callback_url: str = Query(..., min_length=1),
        failure_callback_url: str = Query(..., min_length=1),
    ):
        """Queue a PDF for sanitization"""
        content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
        if content_type != PDF_CONTENT_TYPE:
            raise HTTPException(status_code=415, detail="Body must be application/pdf")

        declared = request.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > max_upload_bytes:
            raise HTTPException(status_code=413, detail="PDF exceeds maximum upload size")

        body = await request.body()
        if len(body) > max_upload_bytes:
            raise HTTPException(status_code=413, detail="PDF exceeds maximum upload size")

        if await queue.get(id) is not None:
            raise HTTPException(status_code=409, detail=f"Job {id} already exists")

        handle = None
        try:
            handle = await storage.store(body)
            await queue.enqueue(id, handle, success_callback_url, failure_callback_url)
        except DuplicateJobError as e:
            await _discard_upload(storage, handle)
            raise HTTPException(status_code=409, detail=str(e))
        except CoreError as e:
            logger.error(f"Failed to queue job {id}: {e}")
            await _discard_upload(storage, handle)
            raise HTTPException(status_code=500, detail="Failed to queue PDF for processing")

        SUBMISSIONS.inc()
        logger.info(f"Job {id} accepted ({len(body)} bytes)")
        return ACCEPTED_MESSAGE

    @router.get(
        "/sanitise/jobs/{job_id}",
        response_model=JobStatusResponse,
        responses={404: {"model": ErrorResponse}},
    )
    async def get_job_status(job_id: str = Path(..., pattern=JOB_ID_PATTERN)):
        """Current lifecycle state of a job"""
        job = await queue.get(job_id)
        if job is None:
            raise HTTPException(status_code=404, detail="Job not found")
        return JobStatusResponse.from_job(job)

    return router


async def _discard_upload(storage: DocumentStoragePort, handle) -> None:
    if handle is None:
        return
    try:
        await storage.delete(handle)
    except DocumentNotFoundError:
        pass
    except CoreError as e:
        logger.warning(f"Failed to delete rejected upload {handle}: {e}")
