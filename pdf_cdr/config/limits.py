"""
Sanitization processing limits and constants.

Centralized defaults for batching, rasterization and upload limits used
across the rasterize-encode-assemble pipeline.
"""

# Rasterization
RENDER_DPI = 300
"""Resolution every page is rasterized at"""

POINTS_PER_INCH = 72.0
"""PDF user space unit (1 point = 1/72 inch)"""

JPEG_QUALITY = 70
"""Lossy re-encode quality for embedded page images (keeps output size bounded)"""

# Batching
PAGE_BATCH_SIZE = 5
"""Pages rendered and written per chunk (bounds peak bitmap memory)"""

# Upload limits
MAX_UPLOAD_BYTES = 50 * 1024 * 1024
"""Maximum accepted PDF payload at the HTTP boundary"""
