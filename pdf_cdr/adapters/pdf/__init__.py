"""PDF rendering engine adapters."""
from pdf_cdr.adapters.pdf.pymupdf import PyMuPDFEngine

__all__ = ["PyMuPDFEngine"]
