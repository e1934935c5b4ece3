"""Tests for raster models."""
from pdf_cdr.core.models import Bitmap, BitmapBuffer, PageBatch, PageSize


class TestBitmapBuffer:
    def test_reserve_grows_only_when_needed(self):
        buffer = BitmapBuffer()
        buffer.reserve(100)
        buffer.reserve(50)
        buffer.reserve(100)
        assert buffer.allocations == 1
        assert len(buffer) == 100

    def test_reserve_larger_reallocates(self):
        buffer = BitmapBuffer(10)
        buffer.reserve(20)
        assert buffer.allocations == 2
        assert len(buffer) >= 20

    def test_view_is_sized(self):
        buffer = BitmapBuffer()
        storage = buffer.reserve(8)
        storage[:4] = b"abcd"
        assert bytes(buffer.view(4)) == b"abcd"

    def test_release_drops_storage(self):
        buffer = BitmapBuffer(64)
        buffer.release()
        assert len(buffer) == 0


class TestBitmap:
    def test_stride_is_rgb(self):
        bitmap = Bitmap(0, 10, 4, PageSize(7.2, 2.88), b"\x00" * 120)
        assert bitmap.stride == 30


class TestPageBatch:
    def test_len(self):
        assert len(PageBatch(number=0, pages=[0, 1, 2])) == 3
