"""Worker-process pool that isolates and bounds PDF renders."""

from __future__ import annotations

import logging
import multiprocessing as mp
import threading
from concurrent.futures import ProcessPoolExecutor, TimeoutError as FutureTimeoutError
from concurrent.futures.process import BrokenProcessPool
from typing import Callable, Optional

from .config import RenderOptions

logger = logging.getLogger(__name__)

RenderFunc = Callable[..., bytes]


class DependencyError(RuntimeError):
    """Raised when a required runtime dependency is missing."""


class RenderError(RuntimeError):
    """Raised when the rendering engine fails to produce a PDF."""


class RenderTimeoutError(RenderError):
    """Raised when a render exceeds the configured timeout."""


def load_render_pdf() -> RenderFunc:
    try:
        from .rendering import render_pdf
    except ModuleNotFoundError as exc:
        if exc.name == "fpdf":
            raise DependencyError(
                "Missing dependency 'fpdf'. Install project dependencies with "
                "'pip install -e .'."
            ) from exc
        raise
    return render_pdf


class RenderPool:
    """Runs renders in spawned worker processes with a per-render timeout.

    With ``isolated`` off, renders run in the calling thread without a
    timeout; that mode exists for debugging and single-process deployments.
    """

    def __init__(self, options: RenderOptions) -> None:
        self.options = options
        self._lock = threading.Lock()
        self._executor: Optional[ProcessPoolExecutor] = None

    @property
    def timeout_seconds(self) -> float:
        return self.options.timeout_ms / 1000.0

    def _create_executor(self) -> ProcessPoolExecutor:
        return ProcessPoolExecutor(
            max_workers=self.options.max_workers,
            mp_context=mp.get_context("spawn"),
        )

    def _get_executor(self) -> ProcessPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = self._create_executor()
            return self._executor

    def _restart_executor(self, previous: ProcessPoolExecutor) -> ProcessPoolExecutor:
        with self._lock:
            if self._executor is previous:
                logger.warning("Restarting broken render worker pool")
                previous.shutdown(wait=False, cancel_futures=True)
                self._executor = self._create_executor()
            if self._executor is None:
                self._executor = self._create_executor()
            return self._executor

    def _discard_executor(self, previous: ProcessPoolExecutor) -> None:
        """Kill the workers of ``previous`` so a hung render frees its slot.

        Renders still queued on it fail with ``BrokenProcessPool``; the next
        render starts a fresh pool.
        """
        with self._lock:
            if self._executor is previous:
                self._executor = None
        logger.warning("Discarding render worker pool after timeout")
        kill_workers = getattr(previous, "kill_workers", None)
        if kill_workers is not None:
            kill_workers()
        else:
            processes = getattr(previous, "_processes", None) or {}
            for process in list(processes.values()):
                if process.is_alive():
                    process.kill()
        previous.shutdown(wait=False, cancel_futures=True)

    def start(self) -> None:
        load_render_pdf()
        if self.options.isolated:
            self._get_executor()

    def render(self, html: str) -> bytes:
        render_pdf = load_render_pdf()
        args = (html, self.options.font_path, self.options.font_bold_path)
        if not self.options.isolated:
            return render_pdf(*args)

        executor = self._get_executor()
        try:
            future = executor.submit(render_pdf, *args)
        except RuntimeError:
            # Broken, or discarded by a render that timed out in another thread.
            executor = self._restart_executor(executor)
            future = executor.submit(render_pdf, *args)

        try:
            return future.result(timeout=self.timeout_seconds)
        except FutureTimeoutError:
            if not future.cancel():
                self._discard_executor(executor)
            raise RenderTimeoutError(
                f"Render exceeded timeout of {self.options.timeout_ms} ms."
            ) from None
        except BrokenProcessPool as exc:
            self._restart_executor(executor)
            raise RenderError("Render worker process crashed.") from exc

    def shutdown(self) -> None:
        with self._lock:
            executor = self._executor
            self._executor = None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)
