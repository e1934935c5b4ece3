"""
PDF Content Disarm and Reconstruction service.

Sanitizes untrusted PDFs by rasterizing every page in an isolated process
and rebuilding a brand new document from the page images.
"""

__version__ = "0.1.0"
