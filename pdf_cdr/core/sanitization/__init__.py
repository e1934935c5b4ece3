"""Isolated rendering, batched regeneration and assembly of sanitized PDFs."""
from pdf_cdr.core.sanitization.assembler import assemble_chunks
from pdf_cdr.core.sanitization.isolation import (
    IsolatedRenderer,
    PageCountTask,
    RenderPageTask,
    RenderResult,
    RenderStatus,
)
from pdf_cdr.core.sanitization.pipeline import (
    PdfRegenerator,
    PipelineConfig,
    RegenerationResult,
    batch_count,
    encode_page_image,
    partition_pages,
    write_chunk,
)

__all__ = [
    "assemble_chunks",
    "IsolatedRenderer",
    "PageCountTask",
    "RenderPageTask",
    "RenderResult",
    "RenderStatus",
    "PdfRegenerator",
    "PipelineConfig",
    "RegenerationResult",
    "batch_count",
    "encode_page_image",
    "partition_pages",
    "write_chunk",
]
