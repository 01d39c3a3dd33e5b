"""PDF invoice rendering service for the shopkeeper app."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .config import ServiceConfig


def render_pdf(html: str) -> bytes:
    from .rendering import render_pdf as _render_pdf

    return _render_pdf(html)


def run(config: Optional["ServiceConfig"] = None) -> None:
    from .server import run as _run

    _run(config)


__all__ = ["render_pdf", "run"]
