"""Domain models for sanitization jobs and raster data."""
from pdf_cdr.core.models.job import JobStatus, SanitizeJob
from pdf_cdr.core.models.outcome import CallbackOutcome, Failure, Success
from pdf_cdr.core.models.raster import Bitmap, BitmapBuffer, PageBatch, PageSize, PDFChunk

__all__ = [
    "JobStatus",
    "SanitizeJob",
    "CallbackOutcome",
    "Failure",
    "Success",
    "Bitmap",
    "BitmapBuffer",
    "PageBatch",
    "PageSize",
    "PDFChunk",
]
