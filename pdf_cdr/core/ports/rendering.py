"""Rendering engine port interface.

Defines the capability the sanitizer needs from a native PDF engine. Engines
are only ever driven inside an isolated child process.
"""
from abc import ABC, abstractmethod
from typing import Any

from pdf_cdr.core.models import Bitmap, PageSize


class RenderingEnginePort(ABC):
    """Abstract interface for opening and rasterizing untrusted documents.

    Implementations: PyMuPDFEngine

    All methods raise EngineError for document or page failures.
    """

    @abstractmethod
    def open(self, source: str) -> Any:
        """Open a document.

        Args:
            source: Path to the document file

        Returns:
            Engine-specific document handle
        """
        pass

    @abstractmethod
    def page_count(self, handle: Any) -> int:
        """Number of pages in an opened document."""
        pass

    @abstractmethod
    def page_size(self, handle: Any, index: int) -> PageSize:
        """Physical size of a page in points.

        Args:
            handle: Document handle from open()
            index: Page index (0-indexed)
        """
        pass

    @abstractmethod
    def render_page(self, handle: Any, index: int, dpi: int) -> Bitmap:
        """Rasterize a page to RGB pixels.

        Args:
            handle: Document handle from open()
            index: Page index (0-indexed)
            dpi: Target resolution

        Returns:
            Bitmap sized from the page's physical dimensions at `dpi`
        """
        pass

    @abstractmethod
    def close(self, handle: Any) -> None:
        """Release an opened document."""
        pass
