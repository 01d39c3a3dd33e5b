"""Flat-directory storage for rendered invoice PDFs."""

from __future__ import annotations

import logging
import os
import tempfile
from typing import Optional

from .formatting import is_sanitized_filename, sanitize_filename

logger = logging.getLogger(__name__)

TEMP_PREFIX = ".tmp-"


class StorageError(OSError):
    """Raised when a rendered PDF cannot be persisted."""


class InvoiceStore:
    """One directory of ``<sanitized-invoice-number>.pdf`` files.

    Writes go to a temporary file in the same directory and are moved into
    place with ``os.replace``, so a file is either absent or complete, and
    concurrent writes of one invoice number end with the last writer's bytes.
    """

    def __init__(self, output_dir: str) -> None:
        self.output_dir = os.path.abspath(output_dir)

    def ensure_dir(self) -> None:
        os.makedirs(self.output_dir, exist_ok=True)

    def path_for(self, invoice_number: str) -> str:
        return os.path.join(self.output_dir, sanitize_filename(invoice_number))

    def save(self, invoice_number: str, pdf_bytes: bytes) -> str:
        """Persist a PDF and return its filename."""
        filename = sanitize_filename(invoice_number)
        target = os.path.join(self.output_dir, filename)
        tmp_path = None
        try:
            self.ensure_dir()
            fd, tmp_path = tempfile.mkstemp(prefix=TEMP_PREFIX, suffix=".pdf", dir=self.output_dir)
            with os.fdopen(fd, "wb") as handle:
                handle.write(pdf_bytes)
            os.replace(tmp_path, target)
            tmp_path = None
        except OSError as exc:
            raise StorageError(f"Cannot write {filename}: {exc.strerror or exc}") from exc
        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    logger.warning("Could not remove temporary file %s", tmp_path)

        logger.info("Stored %s (%d bytes)", filename, len(pdf_bytes))
        return filename

    def resolve(self, filename: str) -> Optional[str]:
        """Return the path of a stored PDF, or None if absent or not a valid name."""
        if not is_sanitized_filename(filename):
            return None
        path = os.path.join(self.output_dir, filename)
        if not os.path.isfile(path):
            return None
        return path
