"""HTTP server for invoice generation and PDF downloads."""

from __future__ import annotations

import errno
import json
import logging
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, Optional, Tuple, Type
from urllib.parse import unquote, urlsplit

from .config import ServiceConfig
from .models import parse_invoice_request
from .retention import RetentionSweeper
from .service import STATIC_PREFIX, InvoiceGenerationError, InvoiceService

logger = logging.getLogger(__name__)

GENERATE_PATH = "/api/invoice/generate"
HEALTH_PATH = "/health"

DISCONNECT_ERRNOS = {errno.EPIPE, errno.ECONNRESET, errno.ETIMEDOUT}

CORS_HEADERS = (
    ("Access-Control-Allow-Origin", "*"),
    ("Access-Control-Allow-Methods", "GET, POST, OPTIONS"),
    ("Access-Control-Allow-Headers", "Content-Type"),
)


def is_client_disconnect(exc: BaseException) -> bool:
    if isinstance(exc, (BrokenPipeError, ConnectionResetError, TimeoutError)):
        return True
    return isinstance(exc, OSError) and exc.errno in DISCONNECT_ERRNOS


class InvoiceHandler(BaseHTTPRequestHandler):
    server: "InvoiceHTTPServer"

    @property
    def service(self) -> InvoiceService:
        return self.server.service

    @property
    def route(self) -> str:
        return urlsplit(self.path).path

    def _write_response(
        self,
        status: int,
        content_type: Optional[str],
        body: bytes,
        headers: Tuple[Tuple[str, str], ...] = (),
    ) -> bool:
        try:
            self.send_response(status)
            if content_type is not None:
                self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body)))
            for name, value in CORS_HEADERS + headers:
                self.send_header(name, value)
            self.end_headers()
            if body and self.command != "HEAD":
                self.wfile.write(body)
            return True
        except Exception as exc:
            if is_client_disconnect(exc):
                return False
            raise

    def _send_json(self, status: int, payload: Dict[str, Any]) -> bool:
        body = json.dumps(payload).encode("utf-8")
        return self._write_response(status, "application/json", body)

    def _send_error_json(self, status: int, code: str, message: str) -> bool:
        return self._send_json(status, {"error": code, "message": message})

    def _read_body(self) -> Optional[bytes]:
        header = self.headers.get("Content-Length")
        if header is None:
            self._send_error_json(411, "missing_content_length", "Content-Length header is required.")
            return None

        try:
            content_length = int(header)
        except ValueError:
            self._send_error_json(400, "invalid_content_length", "Content-Length must be an integer.")
            return None

        if content_length <= 0:
            self._send_error_json(400, "empty_body", "Request body cannot be empty.")
            return None

        max_body = self.server.config.max_body_bytes
        if content_length > max_body:
            self._send_error_json(413, "payload_too_large", f"Body exceeds {max_body} bytes.")
            return None

        try:
            return self.rfile.read(content_length)
        except Exception as exc:
            if is_client_disconnect(exc):
                return None
            raise

    def do_OPTIONS(self) -> None:
        self._write_response(204, None, b"")

    def do_POST(self) -> None:
        if self.route != GENERATE_PATH:
            self._send_error_json(404, "not_found", "Unsupported endpoint.")
            return

        body = self._read_body()
        if body is None:
            return

        request, validation_error = parse_invoice_request(body, self.server.config.max_items)
        if validation_error is not None:
            status, payload_body = validation_error
            self._send_json(status, payload_body)
            return
        if request is None:
            return

        try:
            generated = self.service.generate(request)
        except InvoiceGenerationError as exc:
            logger.exception("PDF generation failed for %s", request.invoice_number)
            self._send_json(
                500,
                {"error": "Failed to generate PDF", "kind": exc.kind, "message": str(exc)},
            )
            return

        payload = {"success": True, **generated.as_dict()}
        payload["message"] = f"Invoice {generated.invoice_number} generated successfully"
        self._send_json(200, payload)

    def _serve_invoice(self, filename: str) -> None:
        path = self.service.store.resolve(filename)
        if path is None:
            self._send_error_json(404, "not_found", "Invoice not found.")
            return
        try:
            with open(path, "rb") as handle:
                body = handle.read()
        except FileNotFoundError:
            # Swept between resolve() and open().
            self._send_error_json(404, "not_found", "Invoice not found.")
            return
        self._write_response(
            200,
            "application/pdf",
            body,
            headers=(("Content-Disposition", f'inline; filename="{filename}"'),),
        )

    def do_GET(self) -> None:
        route = self.route
        if route == HEALTH_PATH:
            self._send_json(200, self.service.health())
            return
        if route.startswith(STATIC_PREFIX + "/"):
            self._serve_invoice(unquote(route[len(STATIC_PREFIX) + 1:]))
            return
        self._send_error_json(404, "not_found", "Unsupported endpoint.")

    do_HEAD = do_GET

    def handle_one_request(self) -> None:
        try:
            super().handle_one_request()
        except Exception as exc:
            if is_client_disconnect(exc):
                return
            raise

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)


class InvoiceHTTPServer(ThreadingHTTPServer):
    daemon_threads = True
    allow_reuse_address = True

    def __init__(
        self,
        config: ServiceConfig,
        service: InvoiceService,
        handler_class: Type[BaseHTTPRequestHandler] = InvoiceHandler,
    ) -> None:
        self.request_queue_size = config.listen_backlog
        self.config = config
        self.service = service
        super().__init__(config.address, handler_class)


def create_server(config: ServiceConfig, service: Optional[InvoiceService] = None) -> InvoiceHTTPServer:
    service = service or InvoiceService(config)
    service.start()
    return InvoiceHTTPServer(config, service)


def run(config: Optional[ServiceConfig] = None) -> None:
    config = config or ServiceConfig.from_env()
    server = create_server(config)
    sweeper = RetentionSweeper(
        server.service.store.output_dir,
        max_age=config.retention_seconds,
        interval=config.sweep_interval_seconds,
    )
    sweeper.start()

    host, port = server.server_address[:2]
    logger.info("PDF Invoice API running on http://%s:%s", host, port)
    logger.info("  Health: GET %s", HEALTH_PATH)
    logger.info("  Generate: POST %s", GENERATE_PATH)
    logger.info("  PDFs: %s%s/ (stored in %s)", config.public_base_url, STATIC_PREFIX, server.service.store.output_dir)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        sweeper.stop()
        server.server_close()
        server.service.close()
