"""PDF assembler.

Merges ordered chunk files into the final sanitized document. Chunk order and
the page order inside each chunk are preserved.
"""
import logging
import time
from typing import Sequence

import fitz

from pdf_cdr.core.exceptions import AssemblyError
from pdf_cdr.core.models import PDFChunk

logger = logging.getLogger(__name__)


def assemble_chunks(chunks: Sequence[PDFChunk], output_path: str) -> int:
    """Merge `chunks` into a single PDF at `output_path`.

    Args:
        chunks: Chunks in page order
        output_path: Destination of the merged document

    Returns:
        Page count of the merged document

    Raises:
        AssemblyError: If there is nothing to merge, a chunk is unreadable, or
            the merged page count differs from the sum of chunk page counts
    """
    if not chunks:
        raise AssemblyError("No input files provided")

    start_time = time.monotonic()
    expected = sum(chunk.page_count for chunk in chunks)
    merged = fitz.open()
    try:
        for chunk in sorted(chunks, key=lambda c: c.number):
            try:
                with fitz.open(chunk.path) as doc:
                    if doc.page_count != chunk.page_count:
                        raise AssemblyError(
                            f"Chunk {chunk.number} has {doc.page_count} pages, "
                            f"expected {chunk.page_count}"
                        )
                    merged.insert_pdf(doc)
            except AssemblyError:
                raise
            except Exception as e:
                raise AssemblyError(f"Could not read chunk {chunk.number} ({chunk.path}): {e}") from e

        if merged.page_count != expected:
            raise AssemblyError(
                f"Merged document has {merged.page_count} pages, expected {expected}"
            )

        try:
            merged.save(output_path, garbage=3, deflate=True)
        except Exception as e:
            raise AssemblyError(f"Could not write merged document to {output_path}: {e}") from e
        page_count = merged.page_count
    finally:
        merged.close()

    logger.info(
        f"Merged {len(chunks)} chunks into {page_count} pages in "
        f"{time.monotonic() - start_time:.2f}s"
    )
    return page_count
