"""HTML invoice template population.

Templates use two constructs:

* ``{{NAME}}`` placeholders, replaced at every occurrence;
* ``{{#NAME}} ... {{/NAME}}`` sections, kept or dropped by a boolean flag.

Caller-supplied strings are HTML-escaped unless wrapped in :class:`Markup`.
Every placeholder and section in the template must be given a value;
leftovers raise :class:`TemplateError` instead of leaking into the PDF.
"""

from __future__ import annotations

import html
import re
from typing import Any, Iterable, Mapping, Optional, Set

from .formatting import fmt_money, fmt_qty, split_lines
from .models import InvoiceRequest, LineItem

_PLACEHOLDER = re.compile(r"\{\{([A-Z][A-Z0-9_]*)\}\}")
_SECTION = re.compile(r"\{\{#([A-Z][A-Z0-9_]*)\}\}(.*?)\{\{/\1\}\}", re.DOTALL)
_SECTION_TAG = re.compile(r"\{\{[#/]([A-Z][A-Z0-9_]*)\}\}")


class TemplateError(Exception):
    """Raised when a template cannot be loaded or fully populated."""


class Markup(str):
    """A string that is already HTML and must be inserted verbatim."""


class InvoiceTemplate:
    def __init__(self, source: str, escape: bool = True) -> None:
        self.source = source
        self.escape_values = escape

    @property
    def placeholders(self) -> Set[str]:
        return set(_PLACEHOLDER.findall(self.source))

    @property
    def sections(self) -> Set[str]:
        return set(_SECTION_TAG.findall(self.source))

    def escape(self, value: Any) -> str:
        text = "" if value is None else str(value)
        if isinstance(value, Markup) or not self.escape_values:
            return text
        return html.escape(text, quote=True)

    def render(self, values: Mapping[str, Any], sections: Optional[Mapping[str, bool]] = None) -> str:
        sections = sections or {}

        def keep_section(match: "re.Match[str]") -> str:
            name = match.group(1)
            if name not in sections:
                raise TemplateError(f"No flag given for template section '{name}'")
            return match.group(2) if sections[name] else ""

        text = self.source
        while True:
            resolved = _SECTION.sub(keep_section, text)
            if resolved == text:
                break
            text = resolved

        dangling = _SECTION_TAG.search(text)
        if dangling is not None:
            raise TemplateError(f"Unbalanced template section '{dangling.group(1)}'")

        def fill(match: "re.Match[str]") -> str:
            name = match.group(1)
            if name not in values:
                raise TemplateError(f"No value given for template placeholder '{name}'")
            return self.escape(values[name])

        # One pass, so substituted values are never re-expanded.
        return _PLACEHOLDER.sub(fill, text)


def load_template(path: str, escape: bool = True) -> InvoiceTemplate:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            source = handle.read()
    except OSError as exc:
        raise TemplateError(f"Cannot read invoice template {path}: {exc.strerror or exc}") from exc
    return InvoiceTemplate(source, escape=escape)


def render_item_rows(template: InvoiceTemplate, items: Iterable[LineItem], symbol: str) -> Markup:
    rows = []
    for index, item in enumerate(items, start=1):
        rows.append(
            "<tr>"
            f"<td>{index}</td>"
            f"<td>{template.escape(item.name or '-')}</td>"
            f"<td>{fmt_qty(item.quantity)} {template.escape(item.unit)}</td>"
            f"<td align=\"right\">{template.escape(fmt_money(item.price, symbol))}</td>"
            f"<td align=\"right\">{template.escape(fmt_money(item.amount, symbol))}</td>"
            "</tr>"
        )
    return Markup("\n".join(rows))


def render_notes(template: InvoiceTemplate, notes: str) -> Markup:
    return Markup("<br>".join(template.escape(line) for line in split_lines(notes)))


def build_invoice_html(request: InvoiceRequest, template: InvoiceTemplate, currency_symbol: str) -> str:
    values = {
        "SHOP_NAME": request.shop_name,
        "SHOP_ADDRESS": request.shop_address,
        "SHOP_PHONE": request.shop_phone,
        "SHOP_GST": f"GSTIN: {request.shop_gst}" if request.shop_gst else "",
        "SHOP_UPI": request.shop_upi,
        "CUSTOMER_NAME": request.customer_name,
        "CUSTOMER_PHONE": request.customer_phone,
        "INVOICE_NUMBER": request.invoice_number,
        "INVOICE_DATE": request.invoice_date,
        "ITEMS": render_item_rows(template, request.items, currency_symbol),
        "SUBTOTAL": fmt_money(request.subtotal, currency_symbol),
        "TAX_AMOUNT": fmt_money(request.tax_amount, currency_symbol),
        "TOTAL_AMOUNT": fmt_money(request.total_amount, currency_symbol),
        "NOTES": render_notes(template, request.notes),
        "PAID_DATE": request.paid_date if request.is_paid else "",
    }
    sections = {
        "SHOP_ADDRESS": bool(request.shop_address.strip()),
        "SHOP_PHONE": bool(request.shop_phone.strip()),
        "GST": bool(request.shop_gst.strip()),
        "UPI": bool(request.shop_upi.strip()),
        "CUSTOMER_PHONE": bool(request.customer_phone.strip()),
        "TAX_ROW": request.tax_amount != 0,
        "PAID": request.is_paid,
        "NOTES": bool(split_lines(request.notes)),
    }
    return template.render(values, sections)
