"""Formatting helpers for invoice values and artifact names."""

from __future__ import annotations

import re
from typing import Any, List

_FILENAME_DISALLOWED = re.compile(r"[^A-Za-z0-9-]")
FALLBACK_STEM = "invoice"
PDF_SUFFIX = ".pdf"


def fmt_money(amount: float, symbol: str) -> str:
    return f"{symbol}{amount:.2f}"


def fmt_qty(qty: Any) -> str:
    try:
        quantity = float(qty)
        if quantity.is_integer():
            return str(int(quantity))
        return str(quantity)
    except (TypeError, ValueError):
        return str(qty)


def split_lines(text: str) -> List[str]:
    if not text:
        return []
    return [line for line in text.split("\n") if line.strip() != ""]


def sanitize_stem(invoice_number: str) -> str:
    stem = _FILENAME_DISALLOWED.sub("", invoice_number)
    return stem or FALLBACK_STEM


def sanitize_filename(invoice_number: str) -> str:
    """Map an invoice number to the name of its PDF artifact.

    Only ``[A-Za-z0-9-]`` survive; ``INV/2026 #42`` becomes
    ``INV202642.pdf``.
    """
    return sanitize_stem(invoice_number) + PDF_SUFFIX


def is_sanitized_filename(filename: str) -> bool:
    if not filename.endswith(PDF_SUFFIX):
        return False
    stem = filename[: -len(PDF_SUFFIX)]
    return bool(stem) and _FILENAME_DISALLOWED.search(stem) is None
