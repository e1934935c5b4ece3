"""Tests for sanitization limit configuration"""
from pdf_cdr.config.limits import (
    JPEG_QUALITY,
    MAX_UPLOAD_BYTES,
    PAGE_BATCH_SIZE,
    POINTS_PER_INCH,
    RENDER_DPI,
)


class TestLimits:
    """Test limit constants"""

    def test_constants_are_defined(self):
        """Should define all pipeline constants"""
        assert PAGE_BATCH_SIZE == 5
        assert RENDER_DPI == 300
        assert JPEG_QUALITY == 70
        assert POINTS_PER_INCH == 72.0
        assert MAX_UPLOAD_BYTES == 50 * 1024 * 1024

    def test_constants_are_positive(self):
        """All limits should be positive"""
        assert PAGE_BATCH_SIZE > 0
        assert RENDER_DPI > 0
        assert 0 < JPEG_QUALITY <= 100
        assert MAX_UPLOAD_BYTES > 0
