"""Tests for core exceptions."""
from pdf_cdr.core.exceptions import (
    AssemblyError,
    CallbackDeliveryError,
    ConfigurationError,
    CoreError,
    DocumentNotFoundError,
    DuplicateJobError,
    EmptyDocumentError,
    EngineError,
    InvalidTransitionError,
    JobNotFoundError,
    PersistenceError,
    ProcessCrashedError,
    QueueError,
    RenderError,
    RenderTimeoutError,
    StorageError,
    UploadError,
)


class TestExceptionHierarchy:
    def test_top_level_errors_are_core_errors(self):
        for error_type in (
            ConfigurationError, UploadError, QueueError, RenderError,
            AssemblyError, StorageError, CallbackDeliveryError,
        ):
            assert isinstance(error_type("test"), CoreError)

    def test_queue_errors(self):
        for error_type in (PersistenceError, DuplicateJobError, JobNotFoundError, InvalidTransitionError):
            assert isinstance(error_type("test"), QueueError)

    def test_render_failure_kinds_are_render_errors(self):
        for error_type in (EngineError, ProcessCrashedError, RenderTimeoutError):
            assert isinstance(error_type("test"), RenderError)

    def test_empty_document_is_engine_error(self):
        assert isinstance(EmptyDocumentError("test"), EngineError)

    def test_document_not_found_is_storage_error(self):
        assert isinstance(DocumentNotFoundError("test"), StorageError)

    def test_error_message_preserved(self):
        error = EngineError("specific message")
        assert str(error) == "specific message"
