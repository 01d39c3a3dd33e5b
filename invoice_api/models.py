"""Invoice request types and payload validation."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

ValidationError = Tuple[int, Dict[str, Any]]

DEFAULT_SHOP_NAME = "My Kirana Store"
DEFAULT_CUSTOMER_NAME = "Customer"
DEFAULT_INVOICE_NUMBER = "INV-001"
DEFAULT_UNIT = "pcs"

# Differences below half a paisa are rounding noise.
TOTALS_TOLERANCE = 0.005


class PayloadError(ValueError):
    def __init__(self, code: str, message: str, status: int = 400) -> None:
        super().__init__(message)
        self.code = code
        self.status = status

    def as_response(self) -> ValidationError:
        return self.status, {"error": self.code, "message": str(self)}


def today() -> str:
    return datetime.now().strftime("%d/%m/%Y")


def _number(value: Any, name: str, default: float = 0.0) -> float:
    if value is None:
        return default
    number = None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            number = float(value)
        except OverflowError:
            number = None
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            number = None
    # NaN, Infinity and ints too large for a float are not amounts.
    if number is not None and math.isfinite(number):
        return number
    raise PayloadError("invalid_payload", f"'{name}' must be a number.")


def _text(payload: Mapping[str, Any], name: str, default: str = "") -> str:
    value = payload.get(name)
    if value is None:
        return default
    return str(value)


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


@dataclass(frozen=True)
class LineItem:
    name: str
    quantity: float
    price: float
    unit: str = DEFAULT_UNIT

    @property
    def amount(self) -> float:
        return self.quantity * self.price

    @classmethod
    def from_payload(cls, raw: Any, index: int) -> "LineItem":
        if not isinstance(raw, dict):
            raise PayloadError("invalid_item", f"Item {index + 1} must be an object.")
        qty_value = raw.get("qty", raw.get("quantity"))
        try:
            quantity = _number(qty_value, "qty")
            price = _number(raw.get("price"), "price")
        except PayloadError as exc:
            raise PayloadError("invalid_item", f"Item {index + 1}: {exc}") from exc
        unit = raw.get("unit") or DEFAULT_UNIT
        return cls(
            name=_text(raw, "name"),
            quantity=quantity,
            price=price,
            unit=str(unit),
        )


@dataclass(frozen=True)
class InvoiceRequest:
    """One invoice to render.

    Totals are supplied by the caller and rendered as given; the renderer
    never recomputes them.
    """

    items: List[LineItem] = field(default_factory=list)
    shop_name: str = DEFAULT_SHOP_NAME
    shop_upi: str = ""
    shop_gst: str = ""
    shop_address: str = ""
    shop_phone: str = ""
    customer_name: str = DEFAULT_CUSTOMER_NAME
    customer_phone: str = ""
    invoice_number: str = DEFAULT_INVOICE_NUMBER
    invoice_date: str = field(default_factory=today)
    subtotal: float = 0.0
    tax_amount: float = 0.0
    total_amount: float = 0.0
    notes: str = ""
    is_paid: bool = False
    paid_date: str = field(default_factory=today)

    @property
    def items_total(self) -> float:
        return sum(item.amount for item in self.items)

    def totals_mismatch(self) -> Optional[Tuple[str, float, float]]:
        """Return (field, supplied, computed) when line amounts disagree with the totals."""
        computed = self.items_total
        if self.subtotal:
            supplied_name, supplied = "subtotal", self.subtotal
        else:
            supplied_name, supplied = "total_amount", self.total_amount - self.tax_amount
        if abs(supplied - computed) > TOTALS_TOLERANCE:
            return supplied_name, supplied, computed
        return None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], max_items: Optional[int] = None) -> "InvoiceRequest":
        if "items" not in payload or not isinstance(payload.get("items"), list):
            raise PayloadError("invalid_payload", "'items' must be an array.")
        raw_items = payload["items"]
        if max_items is not None and len(raw_items) > max_items:
            raise PayloadError(
                "invoice_too_large",
                f"Invoice has {len(raw_items)} items; maximum is {max_items}.",
                status=413,
            )

        items = [LineItem.from_payload(raw, index) for index, raw in enumerate(raw_items)]
        return cls(
            items=items,
            shop_name=_text(payload, "shop_name", DEFAULT_SHOP_NAME),
            shop_upi=_text(payload, "shop_upi"),
            shop_gst=_text(payload, "shop_gst"),
            shop_address=_text(payload, "shop_address"),
            shop_phone=_text(payload, "shop_phone"),
            customer_name=_text(payload, "customer_name", DEFAULT_CUSTOMER_NAME),
            customer_phone=_text(payload, "customer_phone"),
            invoice_number=_text(payload, "invoice_number", DEFAULT_INVOICE_NUMBER),
            invoice_date=_text(payload, "invoice_date") or today(),
            subtotal=_number(payload.get("subtotal"), "subtotal"),
            tax_amount=_number(payload.get("tax_amount"), "tax_amount"),
            total_amount=_number(payload.get("total_amount"), "total_amount"),
            notes=_text(payload, "notes"),
            is_paid=_flag(payload.get("is_paid", False)),
            paid_date=_text(payload, "paid_date") or today(),
        )


def parse_invoice_request(
    body: bytes,
    max_items: Optional[int] = None,
) -> Tuple[Optional[InvoiceRequest], Optional[ValidationError]]:
    try:
        payload = json.loads(body.decode("utf-8"))
    except UnicodeDecodeError:
        return None, (
            400,
            {"error": "invalid_encoding", "message": "Body must be UTF-8 encoded JSON."},
        )
    except json.JSONDecodeError as exc:
        return None, (
            400,
            {
                "error": "invalid_json",
                "message": f"{exc.msg} (line {exc.lineno}, column {exc.colno})",
            },
        )
    except (ValueError, RecursionError) as exc:
        # Integer literals past the interpreter's digit limit, or nesting too deep.
        return None, (
            400,
            {"error": "invalid_json", "message": str(exc) or type(exc).__name__},
        )

    if not isinstance(payload, dict):
        return None, (
            400,
            {"error": "invalid_payload", "message": "JSON root must be an object."},
        )

    try:
        request = InvoiceRequest.from_payload(payload, max_items=max_items)
    except PayloadError as exc:
        return None, exc.as_response()

    mismatch = request.totals_mismatch()
    if mismatch is not None:
        name, supplied, computed = mismatch
        logger.warning(
            "Invoice %s: supplied %s %.2f differs from line items %.2f; rendering as given",
            request.invoice_number,
            name,
            supplied,
            computed,
        )

    return request, None
