#!/usr/bin/env python3
"""
REST API for the PDF sanitization service.

Accepts untrusted PDFs, queues them durably and runs the worker pool that
regenerates them and reports each outcome through the caller's callbacks.
"""
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from pdf_cdr import __version__
from pdf_cdr.adapters.callbacks import CallbackDispatcher
from pdf_cdr.adapters.pdf import PyMuPDFEngine
from pdf_cdr.adapters.queue import FileJobQueue, RedisJobQueue
from pdf_cdr.adapters.storage import FileStorageAdapter
from pdf_cdr.api.processors.worker_pool import WorkerPool
from pdf_cdr.api.routes.health import create_health_router
from pdf_cdr.api.routes.sanitise import create_sanitise_router
from pdf_cdr.api.schemas import ErrorResponse
from pdf_cdr.config import AppSettings, get_app_settings
from pdf_cdr.core.ports.queue import JobQueuePort
from pdf_cdr.core.ports.storage import DocumentStoragePort
from pdf_cdr.core.retry_utils import RetryConfig
from pdf_cdr.core.sanitization import IsolatedRenderer, PdfRegenerator, PipelineConfig

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def build_queue(settings: AppSettings) -> JobQueuePort:
    """Job queue backend selected by `queue.backend`."""
    queue_settings = settings.queue
    instance_id = settings.application.instance_id
    if queue_settings.backend == "redis":
        return RedisJobQueue.from_url(
            queue_settings.redis_url, instance_id=instance_id, key_prefix=queue_settings.key_prefix
        )
    return FileJobQueue(queue_settings.jobs_dir, instance_id=instance_id)


def build_regenerator(settings: AppSettings) -> PdfRegenerator:
    renderer = IsolatedRenderer(
        timeout=settings.renderer.timeout_seconds,
        engine_factory=PyMuPDFEngine,
        start_method=settings.renderer.start_method,
    )
    config = PipelineConfig(
        batch_size=settings.pipeline.batch_size,
        dpi=settings.renderer.dpi,
        jpeg_quality=settings.pipeline.jpeg_quality,
    )
    return PdfRegenerator(renderer, config, work_dir=settings.pipeline.work_dir)


class SanitiserAPI:
    """Sanitization API wiring adapters, worker pool and routes"""

    def __init__(
        self,
        settings: AppSettings,
        queue: Optional[JobQueuePort] = None,
        storage: Optional[DocumentStoragePort] = None,
        regenerator: Optional[PdfRegenerator] = None,
        dispatcher: Optional[CallbackDispatcher] = None,
    ):
        """Initialize API with dependency injection.

        Args:
            settings: Application settings
            queue: Job queue (default: backend from settings)
            storage: Document storage (default: FileStorageAdapter)
            regenerator: Sanitization pipeline (default: isolated PyMuPDF renderer)
            dispatcher: Callback dispatcher (default: HTTP dispatcher from settings)
        """
        self.settings = settings
        self.queue = queue or build_queue(settings)
        self.storage = storage or FileStorageAdapter(settings.storage.base_dir)
        self.regenerator = regenerator or build_regenerator(settings)
        self.dispatcher = dispatcher or CallbackDispatcher(
            timeout=settings.callbacks.timeout_seconds,
            retry_config=RetryConfig.for_callbacks(
                max_retries=settings.callbacks.max_retries,
                base_delay=settings.callbacks.retry_base_delay,
            ),
        )
        self.worker_pool = WorkerPool(
            self.queue,
            self.storage,
            self.regenerator,
            self.dispatcher,
            concurrency=settings.workers.concurrency,
            poll_interval=settings.queue.poll_interval_seconds,
            recovery_policy=settings.queue.recovery_policy,
            max_attempts=settings.queue.max_attempts,
            retention_hours=settings.queue.retention_hours,
            claim_retry=RetryConfig.for_queue_polling(settings.queue.claim_max_retries),
            work_dir=settings.pipeline.work_dir,
        )
        self.limiter = Limiter(key_func=get_remote_address)
        self.start_time = time.time()

        self.app = FastAPI(
            title="PDF Sanitization API",
            description="Content disarm and reconstruction for untrusted PDF documents",
            version=__version__,
            lifespan=self._lifespan,
        )

        self._setup_middleware()
        self._setup_routes()
        self._setup_error_handlers()

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        await self.start()
        try:
            yield
        finally:
            await self.stop()

    def _setup_middleware(self):
        """Setup API middleware"""
        # Rate limiting
        self.app.state.limiter = self.limiter
        self.app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

        # Request logging middleware
        @self.app.middleware("http")
        async def log_requests(request, call_next):
            start_time = time.time()
            response = await call_next(request)
            process_time = time.time() - start_time
            logger.info(
                f"{request.method} {request.url.path} - {response.status_code} - {process_time:.3f}s"
            )
            return response

    def _setup_routes(self):
        """Setup API routes"""
        self.app.include_router(create_health_router())
        self.app.include_router(
            create_sanitise_router(
                queue=self.queue,
                storage=self.storage,
                limiter=self.limiter,
                max_upload_bytes=self.settings.application.max_upload_bytes,
                submit_rate_limit=self.settings.application.submit_rate_limit,
            )
        )

    def _setup_error_handlers(self):
        """Setup error handlers"""
        @self.app.exception_handler(HTTPException)
        async def http_exception_handler(request, exc):
            return _error_response(exc.status_code, f"HTTP_{exc.status_code}", str(exc.detail))

        @self.app.exception_handler(RequestValidationError)
        async def validation_exception_handler(request, exc):
            # Missing or malformed query parameters are a bad request
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                for error in exc.errors()
            )
            return _error_response(400, "HTTP_400", problems or "Invalid request")

        @self.app.exception_handler(Exception)
        async def global_exception_handler(request, exc):
            logger.error(f"Unhandled exception: {exc}", exc_info=True)
            return _error_response(500, "INTERNAL_SERVER_ERROR", "An internal server error occurred")

    async def start(self):
        """Start the worker pool"""
        logger.info("Starting PDF sanitization API...")
        await self.worker_pool.start()
        logger.info("PDF sanitization API started successfully")

    async def stop(self):
        """Stop the worker pool"""
        logger.info("Stopping PDF sanitization API...")
        await self.worker_pool.stop()
        logger.info("PDF sanitization API stopped")


def _error_response(status_code: int, error: str, message: str) -> JSONResponse:
    body = ErrorResponse(error=error, message=message, timestamp=datetime.now())
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


# FastAPI app factory
def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create FastAPI application"""
    api = SanitiserAPI(settings or get_app_settings())
    return api.app


def run_server(settings: Optional[AppSettings] = None) -> None:
    """Serve the API with uvicorn on the configured host and port."""
    settings = settings or get_app_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.application.host,
        port=settings.application.port,
    )


if __name__ == "__main__":
    run_server()
