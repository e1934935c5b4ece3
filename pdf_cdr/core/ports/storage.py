"""Storage port interface.

Defines the contract for document storage. Core code depends only on this
abstraction, not on specific implementations like the local filesystem.
"""
from abc import ABC, abstractmethod


class DocumentStoragePort(ABC):
    """Abstract interface for storing document bytes under opaque handles.

    Implementations: FileStorageAdapter
    """

    @abstractmethod
    async def store(self, data: bytes) -> str:
        """Store document bytes.

        Args:
            data: Raw document bytes

        Returns:
            Opaque handle identifying the stored document
        """
        pass

    @abstractmethod
    async def retrieve(self, handle: str) -> bytes:
        """Retrieve document bytes.

        Args:
            handle: Handle returned by store()

        Returns:
            Stored bytes

        Raises:
            DocumentNotFoundError: If nothing is stored under the handle
        """
        pass

    @abstractmethod
    async def delete(self, handle: str) -> None:
        """Delete a stored document.

        Args:
            handle: Handle returned by store()

        Raises:
            DocumentNotFoundError: If nothing is stored under the handle
        """
        pass

    @abstractmethod
    async def exists(self, handle: str) -> bool:
        """Check whether a document is stored under the handle."""
        pass
