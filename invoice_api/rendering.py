"""HTML to PDF rendering with fpdf2."""

from __future__ import annotations

from typing import Optional

from fpdf import FPDF  # type: ignore

from .fonts import FontManager

PAGE_FORMAT = "A4"
PAGE_MARGIN_MM = 10
FONT_SIZE_NORMAL = 10


def render_pdf(
    html: str,
    font_path: Optional[str] = None,
    font_bold_path: Optional[str] = None,
) -> bytes:
    """Rasterize a populated invoice document to A4 PDF bytes.

    Runs inside render worker processes, so it takes and returns only
    picklable values.
    """
    pdf = FPDF(orientation="portrait", unit="mm", format=PAGE_FORMAT)
    pdf.set_margins(PAGE_MARGIN_MM, PAGE_MARGIN_MM, PAGE_MARGIN_MM)
    pdf.set_auto_page_break(True, margin=PAGE_MARGIN_MM)
    pdf.add_page()

    fonts = FontManager(pdf, font_path, font_bold_path)
    fonts.set_font(FONT_SIZE_NORMAL)
    pdf.write_html(html, font_family=fonts.family)

    pdf_blob = pdf.output()
    if isinstance(pdf_blob, (bytes, bytearray)):
        return bytes(pdf_blob)
    if isinstance(pdf_blob, str):
        try:
            return pdf_blob.encode("latin-1")
        except UnicodeEncodeError as exc:
            raise RuntimeError(
                "PDF serialization failed due to non-Latin-1 content. "
                "Check Unicode font configuration (INVOICE_FONT_PATH/INVOICE_FONT_BOLD_PATH)."
            ) from exc
    raise RuntimeError(f"Unexpected PDF output type: {type(pdf_blob).__name__}")
