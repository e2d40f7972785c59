"""Domain entities consumed by the document assembler.

These are already-validated, in-memory snapshots of what the document store
holds. from_dict accepts either snake_case keys or the camelCase keys used by
the store, so exported documents can be loaded as-is.

- Organization: the business issuing the document
- Party: customer or supplier on the other side
- LineItem / Payment: rows of an order, invoice or quote
- Order: point-of-sale order (printed as a receipt)
- Invoice: sales or purchase invoice
- Quote: price quotation
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

logger = logging.getLogger(__name__)

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(key: str) -> str:
    return _CAMEL_RE.sub("_", key).lower()


def _normalize_keys(data: Mapping[str, Any]) -> dict[str, Any]:
    """Map camelCase keys onto snake_case; explicit snake_case keys win."""
    normalized: dict[str, Any] = {}
    for key, value in data.items():
        snake = _snake(key)
        if snake in normalized and snake == key:
            normalized[snake] = value
        else:
            normalized.setdefault(snake, value)
    # Store exports spell VAT as an acronym (clientVAT, supplierVAT)
    for key in list(normalized):
        if key.endswith("_v_a_t"):
            normalized.setdefault(key[: -len("_v_a_t")] + "_vat", normalized.pop(key))
    return normalized


def to_decimal(value: Any, default: Decimal | None = Decimal("0")) -> Decimal | None:
    """Convert a number-like value to Decimal.

    Floats go through str() so 0.1 stays 0.1 rather than its binary expansion.
    Unparseable values log a warning and return the default.
    """
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        return Decimal(int(value))
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        logger.warning("Ignoring non-numeric amount: %r", value)
        return default


def to_datetime(value: Any) -> datetime | None:
    """Convert a date-like value to a timezone-aware datetime.

    Accepts datetime, date, ISO-8601 strings and epoch seconds (int/float).
    Naive values are taken as UTC. Unparseable values log a warning and
    return None.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value, tz=UTC)
        except (OverflowError, OSError, ValueError):
            logger.warning("Ignoring out-of-range timestamp: %r", value)
            return None
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Ignoring unparseable date: %r", value)
            return None
    else:
        logger.warning("Ignoring date of unsupported type %s", type(value).__name__)
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def _text(value: Any) -> str:
    return "" if value is None else str(value)


@dataclass(frozen=True)
class Organization:
    """The business issuing the document.

    Attributes:
        name: Trading name
        name_ar: Arabic trading name
        address: Postal address
        phone: Phone number
        email: Contact email
        vat_number: VAT registration number
        logo_url: Logo image URL or data URI
        stamp_url: Company stamp image URL or data URI
        currency: ISO currency code shown next to amounts
    """

    name: str = ""
    name_ar: str = ""
    address: str = ""
    phone: str = ""
    email: str = ""
    vat_number: str = ""
    logo_url: str = ""
    stamp_url: str = ""
    currency: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "Organization":
        """Build from a store document."""
        d = _normalize_keys(data or {})
        return cls(
            name=_text(d.get("name")),
            name_ar=_text(d.get("name_ar")),
            address=_text(d.get("address")),
            phone=_text(d.get("phone")),
            email=_text(d.get("email")),
            vat_number=_text(d.get("vat_number") or d.get("vat")),
            logo_url=_text(d.get("logo_url")),
            stamp_url=_text(d.get("stamp_url")),
            currency=_text(d.get("currency")),
        )


@dataclass(frozen=True)
class Party:
    """Customer or supplier on the other side of the document."""

    name: str = ""
    name_ar: str = ""
    address: str = ""
    email: str = ""
    phone: str = ""
    vat_number: str = ""
    logo_url: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "Party":
        """Build from a customer or supplier document."""
        d = _normalize_keys(data or {})
        return cls(
            name=_text(d.get("name")),
            name_ar=_text(d.get("name_ar")),
            address=_text(d.get("address")),
            email=_text(d.get("email")),
            phone=_text(d.get("phone")),
            vat_number=_text(d.get("vat_number") or d.get("vat")),
            logo_url=_text(d.get("logo_url")),
        )


@dataclass(frozen=True)
class LineItem:
    """Single line of an order, invoice or quote.

    Quantities are whole units; from_dict rounds fractional values half-up
    and logs a warning.
    """

    name: str
    quantity: int
    unit_price: Decimal
    description: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LineItem":
        """Build from a store line item; price may be keyed price or unitPrice."""
        d = _normalize_keys(data)
        price = d.get("unit_price", d.get("price"))
        name = _text(d.get("name"))
        quantity = to_decimal(d.get("quantity"), Decimal("0")) or Decimal("0")
        if not quantity.is_finite():
            logger.warning("Ignoring non-finite quantity of %r: %s", name, quantity)
            quantity = Decimal("0")
        whole = quantity.to_integral_value(rounding=ROUND_HALF_UP)
        if whole != quantity:
            logger.warning("Rounding fractional quantity %s of %r to %s", quantity, name, whole)
        return cls(
            name=name,
            quantity=int(whole),
            unit_price=to_decimal(price) or Decimal("0"),
            description=_text(d.get("description") or d.get("special_instructions")),
        )


@dataclass(frozen=True)
class Payment:
    """Payment recorded against an order or invoice."""

    method: str
    amount: Decimal
    paid_at: datetime | None = None
    reference: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Payment":
        """Build from a store payment document."""
        d = _normalize_keys(data)
        return cls(
            method=_text(d.get("payment_method") or d.get("method") or d.get("payment_type")),
            amount=to_decimal(d.get("amount")) or Decimal("0"),
            paid_at=to_datetime(d.get("payment_date") or d.get("created_at")),
            reference=_text(d.get("reference")),
        )


@dataclass(frozen=True)
class Order:
    """Point-of-sale order, printed as a receipt.

    Totals are optional: when absent the assembler derives them from the
    line items and tax rate.
    """

    order_number: str
    items: tuple[LineItem, ...] = ()
    payments: tuple[Payment, ...] = ()
    created_at: datetime | None = None
    order_type: str = ""
    queue_number: str = ""
    table_name: str = ""
    customer_name: str = ""
    created_by_name: str = ""
    notes: str = ""
    subtotal: Decimal | None = None
    tax_rate: Decimal | None = None
    tax_amount: Decimal | None = None
    total: Decimal | None = None

    @property
    def number(self) -> str:
        """Document number used on compliance data."""
        return self.order_number

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Order":
        """Build from a store order document."""
        d = _normalize_keys(data)
        return cls(
            order_number=_text(d.get("order_number") or d.get("id")),
            items=tuple(LineItem.from_dict(i) for i in d.get("items") or ()),
            payments=tuple(Payment.from_dict(p) for p in d.get("payments") or ()),
            created_at=to_datetime(d.get("created_at")),
            order_type=_text(d.get("order_type")),
            queue_number=_text(d.get("queue_number")),
            table_name=_text(d.get("table_name")),
            customer_name=_text(d.get("customer_name")),
            created_by_name=_text(d.get("created_by_name")),
            notes=_text(d.get("notes")),
            subtotal=to_decimal(d.get("subtotal"), None),
            tax_rate=to_decimal(d.get("tax_rate"), None),
            tax_amount=to_decimal(d.get("tax_amount"), None),
            total=to_decimal(d.get("total"), None),
        )


@dataclass(frozen=True)
class Invoice:
    """Sales or purchase invoice.

    Attributes:
        invoice_type: "sales" or "purchase"
    """

    invoice_number: str
    invoice_type: str = "sales"
    items: tuple[LineItem, ...] = ()
    payments: tuple[Payment, ...] = ()
    created_at: datetime | None = None
    invoice_date: datetime | None = None
    due_date: datetime | None = None
    status: str = ""
    notes: str = ""
    subtotal: Decimal | None = None
    tax_rate: Decimal | None = None
    tax_amount: Decimal | None = None
    total: Decimal | None = None

    @property
    def number(self) -> str:
        """Document number used on compliance data."""
        return self.invoice_number

    @property
    def issued_at(self) -> datetime | None:
        """Invoice date, falling back to the creation time."""
        return self.invoice_date or self.created_at

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], default_type: str = "sales") -> "Invoice":
        """Build from a store invoice document; default_type applies when it names no type."""
        d = _normalize_keys(data)
        number = d.get("invoice_number") or _text(d.get("id"))[-8:]
        return cls(
            invoice_number=_text(number),
            invoice_type=_text(d.get("type") or d.get("invoice_type") or default_type).lower(),
            items=tuple(LineItem.from_dict(i) for i in d.get("items") or ()),
            payments=tuple(Payment.from_dict(p) for p in d.get("payments") or ()),
            created_at=to_datetime(d.get("created_at")),
            invoice_date=to_datetime(d.get("invoice_date")),
            due_date=to_datetime(d.get("due_date")),
            status=_text(d.get("status")),
            notes=_text(d.get("notes")),
            subtotal=to_decimal(d.get("subtotal"), None),
            tax_rate=to_decimal(d.get("tax_rate"), None),
            tax_amount=to_decimal(d.get("tax_amount"), None),
            total=to_decimal(d.get("total"), None),
        )


@dataclass(frozen=True)
class Quote:
    """Price quotation sent to a customer."""

    quote_number: str
    items: tuple[LineItem, ...] = ()
    created_at: datetime | None = None
    valid_until: datetime | None = None
    status: str = ""
    notes: str = ""
    subtotal: Decimal | None = None
    tax_rate: Decimal | None = None
    tax_amount: Decimal | None = None
    total: Decimal | None = None

    @property
    def number(self) -> str:
        """Document number used on compliance data."""
        return self.quote_number

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Quote":
        """Build from a store quote document."""
        d = _normalize_keys(data)
        number = d.get("quote_number") or _text(d.get("id"))[-8:]
        return cls(
            quote_number=_text(number),
            items=tuple(LineItem.from_dict(i) for i in d.get("items") or ()),
            created_at=to_datetime(d.get("created_at")),
            valid_until=to_datetime(d.get("valid_until")),
            status=_text(d.get("status")),
            notes=_text(d.get("notes")),
            subtotal=to_decimal(d.get("subtotal"), None),
            tax_rate=to_decimal(d.get("tax_rate"), None),
            tax_amount=to_decimal(d.get("tax_amount"), None),
            total=to_decimal(d.get("total"), None),
        )


FinancialDocument = Order | Invoice | Quote
