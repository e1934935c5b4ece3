"""Abstract interfaces for external dependencies."""
from pdf_cdr.core.ports.queue import JobQueuePort
from pdf_cdr.core.ports.rendering import RenderingEnginePort
from pdf_cdr.core.ports.storage import DocumentStoragePort

__all__ = [
    "JobQueuePort",
    "RenderingEnginePort",
    "DocumentStoragePort",
]
