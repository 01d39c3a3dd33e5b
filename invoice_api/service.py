"""Invoice generation: template, render, store, publish."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

from .config import SERVICE_NAME, ServiceConfig
from .models import InvoiceRequest
from .render_pool import RenderPool, RenderTimeoutError
from .shortener import DisabledShortener, TinyUrlShortener, UrlShortener, shorten_or_fallback
from .storage import InvoiceStore, StorageError
from .templating import TemplateError, build_invoice_html, load_template

logger = logging.getLogger(__name__)

STATIC_PREFIX = "/invoices"

Renderer = Callable[[str], bytes]


class InvoiceGenerationError(Exception):
    """A failed generate() call.

    ``kind`` is one of ``template``, ``render``, ``render_timeout`` or
    ``storage``.
    """

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind


@dataclass(frozen=True)
class GeneratedInvoice:
    invoice_number: str
    pdf_url: str
    original_url: str
    filename: str

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def build_public_url(base_url: str, filename: str) -> str:
    return f"{base_url.rstrip('/')}{STATIC_PREFIX}/{quote(filename)}"


def create_shortener(config: ServiceConfig) -> UrlShortener:
    if not config.shortener_enabled:
        return DisabledShortener()
    return TinyUrlShortener(config.shortener_url, timeout=config.shortener_timeout)


class InvoiceService:
    def __init__(
        self,
        config: ServiceConfig,
        renderer: Optional[Renderer] = None,
        shortener: Optional[UrlShortener] = None,
        store: Optional[InvoiceStore] = None,
    ) -> None:
        self.config = config
        self.store = store or InvoiceStore(config.output_dir)
        self.shortener = shortener or create_shortener(config)
        self._pool: Optional[RenderPool] = None
        if renderer is None:
            self._pool = RenderPool(config.render)
            renderer = self._pool.render
        self.renderer = renderer

    def start(self) -> None:
        self.store.ensure_dir()
        if self._pool is not None:
            self._pool.start()

    def close(self) -> None:
        if self._pool is not None:
            self._pool.shutdown()

    def health(self) -> Dict[str, str]:
        return {"status": "ok", "service": SERVICE_NAME}

    def render_html(self, request: InvoiceRequest) -> str:
        template = load_template(self.config.template_path, escape=self.config.escape_html)
        return build_invoice_html(request, template, self.config.currency_symbol)

    def generate(self, request: InvoiceRequest) -> GeneratedInvoice:
        try:
            html = self.render_html(request)
        except TemplateError as exc:
            raise InvoiceGenerationError("template", str(exc)) from exc

        try:
            pdf_bytes = self.renderer(html)
        except RenderTimeoutError as exc:
            raise InvoiceGenerationError("render_timeout", str(exc)) from exc
        except Exception as exc:
            # fpdf raises a variety of exception types for bad markup and fonts.
            message = str(exc) or type(exc).__name__
            raise InvoiceGenerationError("render", message) from exc

        try:
            filename = self.store.save(request.invoice_number, pdf_bytes)
        except StorageError as exc:
            raise InvoiceGenerationError("storage", str(exc)) from exc

        original_url = build_public_url(self.config.public_base_url, filename)
        pdf_url = shorten_or_fallback(self.shortener, original_url)
        logger.info("Generated invoice %s -> %s", request.invoice_number, filename)
        return GeneratedInvoice(
            invoice_number=request.invoice_number,
            pdf_url=pdf_url,
            original_url=original_url,
            filename=filename,
        )
