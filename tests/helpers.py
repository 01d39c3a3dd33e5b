"""Shared fixtures for service and HTTP tests."""

from __future__ import annotations

from typing import List, Optional

from invoice_api.config import ServiceConfig
from invoice_api.shortener import ShortenResult

FAKE_PDF = b"%PDF-1.4\n% fake invoice\n%%EOF\n"


def make_config(output_dir: str, **overrides: object) -> ServiceConfig:
    fields = {
        "host": "127.0.0.1",
        "port": 0,
        "output_dir": output_dir,
        "public_base_url": "http://shop.example:8090",
        "shortener_enabled": False,
    }
    fields.update(overrides)
    return ServiceConfig(**fields)  # type: ignore[arg-type]


class RecordingRenderer:
    def __init__(self, pdf: bytes = FAKE_PDF, error: Optional[BaseException] = None) -> None:
        self.pdf = pdf
        self.error = error
        self.documents: List[str] = []

    def __call__(self, html: str) -> bytes:
        self.documents.append(html)
        if self.error is not None:
            raise self.error
        return self.pdf


class StaticShortener:
    def __init__(self, result: ShortenResult) -> None:
        self.result = result
        self.calls: List[str] = []

    def shorten(self, url: str) -> ShortenResult:
        self.calls.append(url)
        return self.result
