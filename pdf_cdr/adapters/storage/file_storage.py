"""Local filesystem implementation of DocumentStoragePort.

Documents are stored as individual files named by an opaque random handle,
so concurrent jobs never contend on the same file even for identical bytes.
"""
import logging
import os
import re
import uuid
from pathlib import Path

import aiofiles
import aiofiles.os

from pdf_cdr.core.exceptions import DocumentNotFoundError, StorageError
from pdf_cdr.core.ports.storage import DocumentStoragePort

logger = logging.getLogger(__name__)

_HANDLE_PATTERN = re.compile(r"^[0-9a-f]{32}$")


class FileStorageAdapter(DocumentStoragePort):
    """Filesystem implementation of DocumentStoragePort.

    Args:
        base_dir: Directory holding stored documents (created if missing)
    """

    def __init__(self, base_dir: str):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, handle: str) -> Path:
        """Resolve a handle to its file path.

        Raises:
            StorageError: If the handle is malformed
        """
        if not isinstance(handle, str) or not _HANDLE_PATTERN.match(handle):
            raise StorageError(f"Invalid storage handle: {handle!r}")
        return self.base_dir / f"{handle}.bin"

    async def store(self, data: bytes) -> str:
        """Write bytes under a new handle and fsync them."""
        handle = uuid.uuid4().hex
        path = self.path_for(handle)
        try:
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
                await f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise StorageError(f"Failed to store document: {e}") from e
        return handle

    async def retrieve(self, handle: str) -> bytes:
        """Read the bytes stored under `handle`."""
        path = self.path_for(handle)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except FileNotFoundError as e:
            raise DocumentNotFoundError(f"No document stored for handle {handle}") from e
        except OSError as e:
            raise StorageError(f"Failed to read document {handle}: {e}") from e

    async def delete(self, handle: str) -> None:
        """Delete the file stored under `handle`."""
        path = self.path_for(handle)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError as e:
            raise DocumentNotFoundError(f"No document stored for handle {handle}") from e
        except OSError as e:
            raise StorageError(f"Failed to delete document {handle}: {e}") from e

    async def exists(self, handle: str) -> bool:
        return self.path_for(handle).is_file()
