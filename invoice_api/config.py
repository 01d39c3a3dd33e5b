"""Runtime configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

SERVICE_NAME = "pdf-invoice-api"

_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_TEMPLATE_PATH = os.path.join(_PACKAGE_DIR, "templates", "invoice.html")
DEFAULT_OUTPUT_DIR = os.path.join("public", "invoices")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= minimum else default


def env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value >= minimum else default


def env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return default


def env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw


@dataclass(frozen=True)
class RenderOptions:
    """Launch options for the PDF rendering engine."""

    max_workers: int = 2
    timeout_ms: int = 60000
    isolated: bool = True
    font_path: Optional[str] = None
    font_bold_path: Optional[str] = None


@dataclass(frozen=True)
class ServiceConfig:
    host: str = "0.0.0.0"
    port: int = 3001
    output_dir: str = DEFAULT_OUTPUT_DIR
    template_path: str = DEFAULT_TEMPLATE_PATH
    public_base_url: str = "http://localhost:8090"
    retention_days: int = 7
    sweep_interval_seconds: int = 24 * 60 * 60
    render: RenderOptions = field(default_factory=RenderOptions)
    currency_symbol: str = "Rs. "
    escape_html: bool = True
    shortener_enabled: bool = True
    shortener_url: str = "https://tinyurl.com/api-create.php"
    shortener_timeout: float = 5.0
    max_body_bytes: int = 1024 * 1024
    max_items: int = 500
    listen_backlog: int = 128
    log_level: str = "INFO"

    @property
    def retention_seconds(self) -> int:
        return self.retention_days * 24 * 60 * 60

    @property
    def address(self) -> Tuple[str, int]:
        return self.host, self.port

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        host = env_str("INVOICE_HOST", "0.0.0.0")
        public_host = env_str("INVOICE_PUBLIC_HOST", host)
        public_port = env_int("INVOICE_PUBLIC_PORT", 8090)
        public_base_url = env_str(
            "INVOICE_PUBLIC_BASE_URL",
            f"http://{public_host}:{public_port}",
        ).rstrip("/")

        render = RenderOptions(
            max_workers=env_int("INVOICE_MAX_CONCURRENT_RENDERS", 2, minimum=1),
            timeout_ms=env_int("INVOICE_RENDER_TIMEOUT_MS", 60000, minimum=1000),
            isolated=env_bool("INVOICE_RENDER_ISOLATED", True),
            font_path=os.getenv("INVOICE_FONT_PATH") or None,
            font_bold_path=os.getenv("INVOICE_FONT_BOLD_PATH") or None,
        )

        return cls(
            host=host,
            port=env_int("INVOICE_PORT", 3001, minimum=0),
            output_dir=env_str("INVOICE_OUTPUT_DIR", DEFAULT_OUTPUT_DIR),
            template_path=env_str("INVOICE_TEMPLATE_PATH", DEFAULT_TEMPLATE_PATH),
            public_base_url=public_base_url,
            retention_days=env_int("INVOICE_RETENTION_DAYS", 7, minimum=1),
            sweep_interval_seconds=env_int("INVOICE_SWEEP_INTERVAL_SECONDS", 24 * 60 * 60, minimum=1),
            render=render,
            currency_symbol=env_str("INVOICE_CURRENCY_SYMBOL", "Rs. "),
            escape_html=env_bool("INVOICE_ESCAPE_HTML", True),
            shortener_enabled=env_bool("INVOICE_SHORTENER_ENABLED", True),
            shortener_url=env_str("INVOICE_SHORTENER_URL", "https://tinyurl.com/api-create.php"),
            shortener_timeout=env_float("INVOICE_SHORTENER_TIMEOUT", 5.0, minimum=0.1),
            max_body_bytes=env_int("INVOICE_MAX_BODY_BYTES", 1024 * 1024, minimum=1024),
            max_items=env_int("INVOICE_MAX_ITEMS", 500, minimum=1),
            listen_backlog=env_int("INVOICE_LISTEN_BACKLOG", 128, minimum=1),
            log_level=env_str("INVOICE_LOG_LEVEL", "INFO").upper(),
        )
