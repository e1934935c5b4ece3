"""Core domain exceptions.

All exceptions raised by core logic inherit from CoreError.
Adapters catch provider-specific errors and re-raise as these.
"""


class CoreError(Exception):
    """Base for all core domain errors."""
    pass


class ConfigurationError(CoreError):
    """Settings could not be loaded or validated."""
    pass


class UploadError(CoreError):
    """Submission rejected before a job exists."""
    pass


class QueueError(CoreError):
    """Job queue operation failed."""
    pass


class PersistenceError(QueueError):
    """Durable job store is unavailable."""
    pass


class DuplicateJobError(QueueError):
    """A job with the same id already exists."""
    pass


class JobNotFoundError(QueueError):
    """No job with the given id."""
    pass


class InvalidTransitionError(QueueError):
    """Requested status change is not allowed from the current status."""
    pass


class RenderError(CoreError):
    """Rendering a document or page failed."""
    pass


class EngineError(RenderError):
    """Rendering engine reported a document or page failure."""
    pass


class EmptyDocumentError(EngineError):
    """Document opened but contains no pages."""
    pass


class ProcessCrashedError(RenderError):
    """Isolated render process terminated unexpectedly."""
    pass


class RenderTimeoutError(RenderError):
    """Isolated render process did not answer in time."""
    pass


class AssemblyError(CoreError):
    """Chunks could not be merged into the final document."""
    pass


class StorageError(CoreError):
    """Storage operation failed."""
    pass


class DocumentNotFoundError(StorageError):
    """No stored document for the given handle."""
    pass


class CallbackDeliveryError(CoreError):
    """Outbound callback request failed or was rejected."""
    pass
