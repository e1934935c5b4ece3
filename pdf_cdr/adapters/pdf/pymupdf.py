"""PyMuPDF adapter.

Implements RenderingEnginePort using fitz (PyMuPDF). Only ever instantiated
inside an isolated render process.
"""
import logging

import fitz

from pdf_cdr.config.limits import POINTS_PER_INCH
from pdf_cdr.core.exceptions import EngineError
from pdf_cdr.core.models import Bitmap, PageSize
from pdf_cdr.core.ports.rendering import RenderingEnginePort

logger = logging.getLogger(__name__)


class PyMuPDFEngine(RenderingEnginePort):
    """PyMuPDF implementation of RenderingEnginePort.

    Directly uses fitz library for opening and rasterizing documents.
    """

    def open(self, source: str) -> fitz.Document:
        """Open a PDF document.

        Args:
            source: Path to PDF file

        Returns:
            Opened fitz Document
        """
        try:
            doc = fitz.open(source, filetype="pdf")
        except Exception as e:
            raise EngineError(f"Failed to open PDF: {e}") from e
        if doc.needs_pass:
            doc.close()
            raise EngineError("Failed to open PDF: document is encrypted")
        return doc

    def page_count(self, handle: fitz.Document) -> int:
        """Get total page count."""
        try:
            return handle.page_count
        except Exception as e:
            raise EngineError(f"Failed to get page count: {e}") from e

    def page_size(self, handle: fitz.Document, index: int) -> PageSize:
        """Get page size in points.

        Args:
            handle: Opened document
            index: Page index (0-indexed)
        """
        try:
            rect = handle[index].rect
        except Exception as e:
            raise EngineError(f"Failed to get size of page {index}: {e}") from e
        return PageSize(width=rect.width, height=rect.height)

    def render_page(self, handle: fitz.Document, index: int, dpi: int) -> Bitmap:
        """Render page as raw RGB pixels.

        Args:
            handle: Opened document
            index: Page index (0-indexed)
            dpi: Resolution for rendering

        Returns:
            Bitmap whose pixel size is the page size in points scaled by dpi/72
        """
        try:
            page = handle[index]
            rect = page.rect
            width = max(1, round(rect.width * dpi / POINTS_PER_INCH))
            height = max(1, round(rect.height * dpi / POINTS_PER_INCH))
            mat = fitz.Matrix(width / rect.width, height / rect.height)
            pix = page.get_pixmap(matrix=mat, alpha=False, colorspace=fitz.csRGB)
        except Exception as e:
            raise EngineError(f"Failed to render page {index}: {e}") from e

        return Bitmap(
            page_index=index,
            width=pix.width,
            height=pix.height,
            page_size=PageSize(width=rect.width, height=rect.height),
            samples=pix.samples,
        )

    def close(self, handle: fitz.Document) -> None:
        """Release the document."""
        try:
            handle.close()
        except Exception as e:
            logger.warning(f"Failed to close PDF: {e}")
