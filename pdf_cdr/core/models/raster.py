"""Raster data flowing through the rasterize-encode-assemble pipeline."""
from dataclasses import dataclass
from typing import List, Union


@dataclass(frozen=True)
class PageSize:
    """Physical page size in PDF points."""
    width: float
    height: float


@dataclass
class Bitmap:
    """Raw RGB pixels of one rendered page.

    `samples` may be a view into a reused BitmapBuffer, so it is only
    valid until the next page is received into the same buffer.
    """
    page_index: int
    width: int
    height: int
    page_size: PageSize
    samples: Union[bytes, memoryview]

    @property
    def stride(self) -> int:
        return self.width * 3


@dataclass(frozen=True)
class PageBatch:
    """Consecutive page indices processed and written together."""
    number: int
    pages: List[int]

    def __len__(self) -> int:
        return len(self.pages)


class BitmapBuffer:
    """Growable byte buffer that rendered pages are received into.

    The pipeline keeps one per job so bitmap storage is reused across
    pages and batches instead of reallocated.
    """

    def __init__(self, initial_size: int = 0):
        self._buffer = bytearray(initial_size)
        self.allocations = 1 if initial_size else 0

    def __len__(self) -> int:
        return len(self._buffer)

    def reserve(self, size: int) -> bytearray:
        """Return the underlying buffer, growing it to at least `size` bytes."""
        if size > len(self._buffer):
            self._buffer = bytearray(size)
            self.allocations += 1
        return self._buffer

    def view(self, size: int) -> memoryview:
        return memoryview(self._buffer)[:size]

    def release(self) -> None:
        """Drop the backing storage (end of job)."""
        self._buffer = bytearray()


@dataclass(frozen=True)
class PDFChunk:
    """A written PDF file holding exactly one batch of regenerated pages."""
    number: int
    path: str
    page_count: int
