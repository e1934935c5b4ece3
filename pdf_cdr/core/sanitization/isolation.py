"""
Process-isolated rendering.

Every call into the native rendering engine runs inside a fresh, short-lived
child process. A crash, hang or memory fault in the engine while handling an
adversarial document only ever takes down that child; the caller receives a
RenderResult describing what happened instead of an exception.

Per task: spawned -> task sent -> awaiting result
          -> completed | engine error | crashed | timed out -> terminated
"""
import logging
import multiprocessing
import pickle
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Union

from pdf_cdr.core.exceptions import (
    EngineError,
    ProcessCrashedError,
    RenderError,
    RenderTimeoutError,
)
from pdf_cdr.core.models import Bitmap, BitmapBuffer, PageSize
from pdf_cdr.core.ports.rendering import RenderingEnginePort

logger = logging.getLogger(__name__)

EngineFactory = Callable[[], RenderingEnginePort]


class RenderStatus(str, Enum):
    COMPLETED = "completed"
    ENGINE_ERROR = "engine_error"
    CRASHED = "crashed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class PageCountTask:
    """Count the pages of a document."""
    source: str


@dataclass(frozen=True)
class RenderPageTask:
    """Rasterize one page of a document."""
    source: str
    page_index: int
    dpi: int


RenderTask = Union[PageCountTask, RenderPageTask]


@dataclass
class RenderResult:
    """Outcome of one isolated render task.

    Attributes:
        status: How the task ended
        value: Page count or Bitmap when completed
        message: Failure description otherwise
        exitcode: Child exit code when it crashed
    """
    status: RenderStatus
    value: Any = None
    message: str = ""
    exitcode: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status is RenderStatus.COMPLETED

    def unwrap(self) -> Any:
        """Return the value or raise the matching RenderError."""
        if self.status is RenderStatus.COMPLETED:
            return self.value
        if self.status is RenderStatus.ENGINE_ERROR:
            raise EngineError(self.message)
        if self.status is RenderStatus.TIMED_OUT:
            raise RenderTimeoutError(self.message)
        if self.status is RenderStatus.CRASHED:
            raise ProcessCrashedError(self.message)
        raise RenderError(self.message)


def _serve_task(conn, engine_factory: EngineFactory, task: RenderTask) -> None:
    """Child process entry point.

    Only EngineError is reported back; anything else kills the child and is
    seen by the parent as a crash.
    """
    engine = engine_factory()
    try:
        handle = engine.open(task.source)
        try:
            if isinstance(task, PageCountTask):
                conn.send(("page_count", engine.page_count(handle)))
            else:
                bitmap = engine.render_page(handle, task.page_index, task.dpi)
                samples = memoryview(bitmap.samples)
                conn.send((
                    "bitmap",
                    (
                        bitmap.page_index,
                        bitmap.width,
                        bitmap.height,
                        bitmap.page_size.width,
                        bitmap.page_size.height,
                        samples.nbytes,
                    ),
                ))
                conn.send_bytes(samples)
        finally:
            engine.close(handle)
    except EngineError as e:
        conn.send(("engine_error", str(e) or type(e).__name__))
    finally:
        conn.close()


class IsolatedRenderer:
    """Runs rendering engine calls in one child process per task.

    Args:
        timeout: Seconds a task may take before its process is killed
        engine_factory: Picklable callable building the engine inside the child
        start_method: multiprocessing start method ("spawn" gives each task a
            fresh interpreter)
        kill_grace: Seconds to wait for a finished child to exit before killing it
    """

    def __init__(
        self,
        timeout: float,
        engine_factory: EngineFactory,
        start_method: str = "spawn",
        kill_grace: float = 1.0,
    ):
        if timeout <= 0:
            raise ValueError("Render timeout must be positive")
        self.timeout = timeout
        self._engine_factory = engine_factory
        self._context = multiprocessing.get_context(start_method)
        self._kill_grace = kill_grace

    def page_count(self, source: str) -> RenderResult:
        """Count pages of `source` in an isolated process."""
        return self._run(PageCountTask(source=source), None)

    def render_page(
        self,
        source: str,
        page_index: int,
        dpi: int,
        buffer: Optional[BitmapBuffer] = None,
    ) -> RenderResult:
        """Render one page of `source` in an isolated process.

        Args:
            source: Path to the document
            page_index: Page index (0-indexed)
            dpi: Target resolution
            buffer: Reusable buffer the pixels are received into; the returned
                Bitmap views it and stays valid until the buffer is reused

        Returns:
            RenderResult whose value is a Bitmap when completed
        """
        task = RenderPageTask(source=source, page_index=page_index, dpi=dpi)
        return self._run(task, buffer or BitmapBuffer())

    def _run(self, task: RenderTask, buffer: Optional[BitmapBuffer]) -> RenderResult:
        receiver, sender = self._context.Pipe(duplex=False)
        process = self._context.Process(
            target=_serve_task,
            args=(sender, self._engine_factory, task),
            name=f"render-{type(task).__name__}",
            daemon=True,
        )
        deadline = time.monotonic() + self.timeout
        try:
            process.start()
        except OSError as e:
            receiver.close()
            sender.close()
            return RenderResult(
                RenderStatus.CRASHED, message=f"Could not start render process: {e}"
            )
        sender.close()

        try:
            result = self._collect(task, process, receiver, deadline, buffer)
        finally:
            receiver.close()
            self._terminate(process)

        if result.status is RenderStatus.CRASHED and result.exitcode is None:
            result.exitcode = process.exitcode
            result.message = f"{result.message} (exit code {process.exitcode})"
        if not result.ok:
            logger.warning(f"Render task {task} ended {result.status.value}: {result.message}")
        return result

    def _collect(self, task, process, receiver, deadline, buffer) -> RenderResult:
        header = self._receive(receiver, deadline, receiver.recv)
        if isinstance(header, RenderResult):
            return header

        kind, payload = header
        if kind == "engine_error":
            return RenderResult(RenderStatus.ENGINE_ERROR, message=payload)
        if kind == "page_count":
            return RenderResult(RenderStatus.COMPLETED, value=payload)

        page_index, width, height, width_pt, height_pt, size = payload
        storage = buffer.reserve(size)
        received = self._receive(receiver, deadline, lambda: receiver.recv_bytes_into(storage))
        if isinstance(received, RenderResult):
            return received

        return RenderResult(
            RenderStatus.COMPLETED,
            value=Bitmap(
                page_index=page_index,
                width=width,
                height=height,
                page_size=PageSize(width=width_pt, height=height_pt),
                samples=buffer.view(received),
            ),
        )

    def _receive(self, receiver, deadline: float, read: Callable[[], Any]) -> Any:
        remaining = deadline - time.monotonic()
        if remaining <= 0 or not receiver.poll(remaining):
            return RenderResult(
                RenderStatus.TIMED_OUT,
                message=f"Render process did not respond within {self.timeout:g}s",
            )
        try:
            return read()
        except (EOFError, OSError, pickle.UnpicklingError, multiprocessing.BufferTooShort) as e:
            detail = str(e) or type(e).__name__
            return RenderResult(
                RenderStatus.CRASHED,
                message=f"Render process terminated unexpectedly: {detail}",
            )

    def _terminate(self, process) -> None:
        process.join(self._kill_grace)
        if process.is_alive():
            logger.warning(f"Killing render process pid={process.pid}")
            process.kill()
            process.join()
