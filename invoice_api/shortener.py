"""Best-effort URL shortening.

Shorteners report failure through :class:`ShortenResult` and never raise, so
a shortening outage can never fail an invoice request. Callers fall back to
the direct URL.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import requests

logger = logging.getLogger(__name__)

DISABLED = "disabled"


@dataclass(frozen=True)
class ShortenResult:
    success: bool
    url: Optional[str] = None
    error: Optional[str] = None


class UrlShortener(Protocol):
    def shorten(self, url: str) -> ShortenResult:
        ...


class DisabledShortener:
    def shorten(self, url: str) -> ShortenResult:
        return ShortenResult(success=False, error=DISABLED)


class TinyUrlShortener:
    """Shortens through a TinyURL-style ``GET <endpoint>?url=<long url>`` API."""

    def __init__(
        self,
        endpoint: str = "https://tinyurl.com/api-create.php",
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = session or requests.Session()

    def shorten(self, url: str) -> ShortenResult:
        try:
            response = self.session.get(self.endpoint, params={"url": url}, timeout=self.timeout)
        except requests.RequestException as exc:
            return ShortenResult(success=False, error=f"request failed: {exc}")

        if not response.ok:
            return ShortenResult(success=False, error=f"HTTP {response.status_code}")

        short_url = response.text.strip()
        if not short_url.startswith(("http://", "https://")):
            return ShortenResult(success=False, error="response is not a URL")
        return ShortenResult(success=True, url=short_url)


def shorten_or_fallback(shortener: UrlShortener, url: str) -> str:
    """Return the shortened URL, or ``url`` itself if shortening failed."""
    try:
        result = shortener.shorten(url)
    except Exception as exc:
        logger.warning("URL shortener raised, using original URL %s: %s", url, exc)
        return url
    if result.success and result.url:
        return result.url
    if result.error != DISABLED:
        logger.warning("URL shortening failed, using original %s: %s", url, result.error)
    return url
