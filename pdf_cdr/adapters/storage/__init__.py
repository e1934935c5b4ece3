"""Document storage adapters."""
from pdf_cdr.adapters.storage.file_storage import FileStorageAdapter

__all__ = ["FileStorageAdapter"]
