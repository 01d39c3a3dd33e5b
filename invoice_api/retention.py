"""Periodic deletion of rendered PDFs older than the retention window."""

from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    deleted: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


class RetentionSweeper:
    """Deletes files in ``directory`` whose mtime is older than ``max_age`` seconds.

    ``start()`` runs :meth:`sweep_once` every ``interval`` seconds on a daemon
    thread until ``stop()``. Tests call :meth:`sweep_once` directly.
    """

    def __init__(self, directory: str, max_age: float, interval: float) -> None:
        self.directory = directory
        self.max_age = max_age
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def sweep_once(self, now: Optional[float] = None) -> SweepResult:
        now = time.time() if now is None else now
        result = SweepResult()
        try:
            entries = list(os.scandir(self.directory))
        except FileNotFoundError:
            return result
        except OSError as exc:
            logger.warning("Cannot list %s for cleanup: %s", self.directory, exc)
            return result

        for entry in entries:
            try:
                if not entry.is_file(follow_symlinks=False):
                    continue
                if now - entry.stat(follow_symlinks=False).st_mtime <= self.max_age:
                    continue
                os.unlink(entry.path)
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warning("Failed to clean up %s: %s", entry.name, exc)
                result.failed.append(entry.name)
                continue
            logger.info("Cleaned up old PDF: %s", entry.name)
            result.deleted.append(entry.name)

        return result

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.sweep_once()
            except Exception:
                logger.exception("Retention sweep failed")

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="retention-sweeper", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop.set()
        thread = self._thread
        self._thread = None
        if thread is not None:
            thread.join(timeout)
