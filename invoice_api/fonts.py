"""Font discovery for the PDF renderer."""

from __future__ import annotations

import os
import threading
from typing import List, Optional

from fpdf import FPDF  # type: ignore

_PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

FONT_INIT_LOCK = threading.Lock()


def find_font_path(override: Optional[str], candidates: List[str]) -> Optional[str]:
    if override and os.path.exists(override):
        return override

    for path in candidates:
        if os.path.exists(path):
            return path
    return None


class FontManager:
    """Registers a Unicode TrueType family on a PDF, or falls back to Helvetica.

    The HTML renderer switches to bold and italic for headings, ``<b>`` and
    ``<i>``, so every style of the family must exist. Styles without their
    own file reuse the regular face.
    """

    FAMILY = "InvoiceFont"
    CORE_FAMILY = "helvetica"
    BUNDLED_REGULAR = os.path.join(_PROJECT_ROOT, "fonts", "DejaVuSans.ttf")
    BUNDLED_BOLD = os.path.join(_PROJECT_ROOT, "fonts", "DejaVuSans-Bold.ttf")
    SYSTEM_REGULAR_CANDIDATES = [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/dejavu/DejaVuSans.ttf",
        "/Library/Fonts/DejaVuSans.ttf",
    ]
    SYSTEM_BOLD_CANDIDATES = [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
        "/usr/share/fonts/dejavu/DejaVuSans-Bold.ttf",
        "/Library/Fonts/DejaVuSans-Bold.ttf",
    ]
    SYSTEM_ITALIC_CANDIDATES = [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Oblique.ttf",
        "/usr/share/fonts/dejavu/DejaVuSans-Oblique.ttf",
    ]

    def __init__(
        self,
        pdf: FPDF,
        regular_override: Optional[str] = None,
        bold_override: Optional[str] = None,
    ) -> None:
        self.pdf = pdf
        self.family = self.CORE_FAMILY
        self.unicode = False

        regular_path = find_font_path(
            regular_override,
            [self.BUNDLED_REGULAR, *self.SYSTEM_REGULAR_CANDIDATES],
        )
        if not regular_path:
            return

        bold_path = find_font_path(
            bold_override,
            [self.BUNDLED_BOLD, *self.SYSTEM_BOLD_CANDIDATES],
        ) or regular_path
        italic_path = find_font_path(None, self.SYSTEM_ITALIC_CANDIDATES) or regular_path

        with FONT_INIT_LOCK:
            self.pdf.add_font(self.FAMILY, "", regular_path)
            self.pdf.add_font(self.FAMILY, "B", bold_path)
            self.pdf.add_font(self.FAMILY, "I", italic_path)
            self.pdf.add_font(self.FAMILY, "BI", bold_path)
        self.family = self.FAMILY
        self.unicode = True

    def set_font(self, size: int) -> None:
        self.pdf.set_font(self.family, "", size)
