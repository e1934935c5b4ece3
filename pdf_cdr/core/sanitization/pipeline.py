"""
Rasterization and batch pipeline.

Regenerates a PDF as an entirely new document: every page is rendered to a
bitmap in an isolated process, re-encoded as a lossy image and placed as the
only content of a fresh page with the source page's physical size. Pages are
processed in fixed-size batches; each batch is written to disk as a small PDF
chunk so peak bitmap memory stays bounded regardless of document length.

The trade-off is losing all native PDF objects (text, forms, scripts) and
producing files that are considerably larger than the input.
"""
import io
import logging
import math
import shutil
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

import fitz
from PIL import Image

from pdf_cdr.config.limits import JPEG_QUALITY, PAGE_BATCH_SIZE, RENDER_DPI
from pdf_cdr.core.exceptions import EmptyDocumentError, StorageError
from pdf_cdr.core.models import Bitmap, BitmapBuffer, PageBatch, PageSize, PDFChunk
from pdf_cdr.core.sanitization.assembler import assemble_chunks
from pdf_cdr.core.sanitization.isolation import IsolatedRenderer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineConfig:
    """Tunables for one regeneration run."""
    batch_size: int = PAGE_BATCH_SIZE
    dpi: int = RENDER_DPI
    jpeg_quality: int = JPEG_QUALITY

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.dpi < 1:
            raise ValueError("dpi must be at least 1")
        if not 1 <= self.jpeg_quality <= 100:
            raise ValueError("jpeg_quality must be between 1 and 100")


@dataclass
class RegenerationResult:
    """Summary of a completed regeneration."""
    output_path: str
    page_count: int
    chunk_count: int
    chunk_page_counts: List[int] = field(default_factory=list)
    duration_seconds: float = 0.0


def partition_pages(page_count: int, batch_size: int = PAGE_BATCH_SIZE) -> List[PageBatch]:
    """Split `[0, page_count)` into consecutive batches of `batch_size`.

    The last batch holds the remainder when page_count is not a multiple of
    batch_size. A zero-page document yields no batches.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    if page_count < 0:
        raise ValueError("page_count cannot be negative")
    return [
        PageBatch(number=number, pages=list(range(start, min(start + batch_size, page_count))))
        for number, start in enumerate(range(0, page_count, batch_size))
    ]


def batch_count(page_count: int, batch_size: int = PAGE_BATCH_SIZE) -> int:
    return math.ceil(page_count / batch_size)


def encode_page_image(bitmap: Bitmap, quality: int = JPEG_QUALITY) -> bytes:
    """Encode raw RGB pixels as a JPEG.

    Pixels go through a lossless PNG first, then get re-encoded lossy at
    `quality` so the embedded image size stays bounded.
    """
    image = Image.frombuffer(
        "RGB", (bitmap.width, bitmap.height), bitmap.samples, "raw", "RGB", bitmap.stride, 1
    )
    lossless = io.BytesIO()
    image.save(lossless, format="PNG", compress_level=1)
    lossless.seek(0)

    lossy = io.BytesIO()
    with Image.open(lossless) as decoded:
        decoded.convert("RGB").save(lossy, format="JPEG", quality=quality)
    return lossy.getvalue()


def write_chunk(
    batch: PageBatch, pages: List[Tuple[PageSize, bytes]], path: Path
) -> PDFChunk:
    """Write one batch of encoded pages as a standalone PDF.

    Args:
        batch: Batch the pages belong to
        pages: (source page size, JPEG bytes) in page order
        path: Destination file

    Returns:
        PDFChunk describing the written file
    """
    doc = fitz.open()
    try:
        for size, image in pages:
            page = doc.new_page(width=size.width, height=size.height)
            page.insert_image(page.rect, stream=image)
        doc.save(str(path), garbage=3, deflate=True)
    except Exception as e:
        raise StorageError(f"Failed to write chunk {batch.number} to {path}: {e}") from e
    finally:
        doc.close()

    return PDFChunk(number=batch.number, path=str(path), page_count=len(pages))


class PdfRegenerator:
    """Drives the isolated renderer batch by batch and assembles the output.

    Args:
        renderer: IsolatedRenderer used for every engine call
        config: Batch size, resolution and JPEG quality
        work_dir: Parent directory for per-run scratch directories
            (system temp dir when None)
    """

    def __init__(
        self,
        renderer: IsolatedRenderer,
        config: Optional[PipelineConfig] = None,
        work_dir: Optional[str] = None,
    ):
        self.renderer = renderer
        self.config = config or PipelineConfig()
        self.work_dir = work_dir

    def regenerate(self, source: str, output_path: str, label: str = "document") -> RegenerationResult:
        """Regenerate `source` into `output_path`.

        Args:
            source: Path to the untrusted input PDF
            output_path: Where the sanitized PDF is written
            label: Identifier used in scratch directory names and log lines

        Returns:
            RegenerationResult with page and chunk counts

        Raises:
            RenderError: EngineError, ProcessCrashedError or RenderTimeoutError
                from any page; no output is written
            AssemblyError: If the chunks cannot be merged consistently
            StorageError: If a chunk or the output cannot be written
        """
        start_time = time.monotonic()
        page_count = self.renderer.page_count(source).unwrap()
        if page_count == 0:
            raise EmptyDocumentError("The input PDF has no pages.")

        if self.work_dir:
            Path(self.work_dir).mkdir(parents=True, exist_ok=True)
        scratch = Path(tempfile.mkdtemp(prefix=f"cdr-{_safe_label(label)}-", dir=self.work_dir))
        buffer = BitmapBuffer()
        try:
            chunks = []
            for batch in partition_pages(page_count, self.config.batch_size):
                chunks.append(self._process_batch(source, batch, buffer, scratch))
                logger.info(
                    f"[{label}] batch {batch.number + 1}/{batch_count(page_count, self.config.batch_size)} "
                    f"written ({len(batch)} pages)"
                )

            assemble_chunks(chunks, output_path)
        finally:
            buffer.release()
            shutil.rmtree(scratch, ignore_errors=True)

        duration = time.monotonic() - start_time
        logger.info(f"[{label}] regenerated {page_count} pages in {duration:.2f}s")
        return RegenerationResult(
            output_path=output_path,
            page_count=page_count,
            chunk_count=len(chunks),
            chunk_page_counts=[chunk.page_count for chunk in chunks],
            duration_seconds=duration,
        )

    def _process_batch(
        self, source: str, batch: PageBatch, buffer: BitmapBuffer, scratch: Path
    ) -> PDFChunk:
        pages: List[Tuple[PageSize, bytes]] = []
        for index in batch.pages:
            bitmap = self.renderer.render_page(source, index, self.config.dpi, buffer).unwrap()
            pages.append((bitmap.page_size, encode_page_image(bitmap, self.config.jpeg_quality)))
        return write_chunk(batch, pages, scratch / f"chunk_{batch.number:05d}.pdf")


def _safe_label(label: str) -> str:
    cleaned = "".join(c if c.isalnum() or c in "-_" else "_" for c in label)
    return cleaned[:40] or "document"
