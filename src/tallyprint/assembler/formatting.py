"""Value formatting for document records.

Money is computed and rounded in Decimal (ROUND_HALF_UP, two places) before it
reaches a record; the engine only ever prints the resulting strings.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from markupsafe import escape

from tallyprint.models.documents import to_decimal
from tallyprint.models.kinds import Locale

CENTS = Decimal("0.01")

DATE_PATTERNS: dict[Locale, str] = {
    Locale.EN: "%d/%m/%Y",
    Locale.AR: "%Y/%m/%d",
}

LABELS: dict[str, dict[str, dict[Locale, str]]] = {
    "payment_method": {
        "cash": {Locale.EN: "Cash", Locale.AR: "نقداً"},
        "card": {Locale.EN: "Card", Locale.AR: "بطاقة"},
        "credit_card": {Locale.EN: "Credit Card", Locale.AR: "بطاقة ائتمان"},
        "bank_transfer": {Locale.EN: "Bank Transfer", Locale.AR: "تحويل بنكي"},
        "online": {Locale.EN: "Online", Locale.AR: "دفع إلكتروني"},
        "credit": {Locale.EN: "On Account", Locale.AR: "آجل"},
    },
    "order_type": {
        "dine_in": {Locale.EN: "Dine In", Locale.AR: "محلي"},
        "takeaway": {Locale.EN: "Takeaway", Locale.AR: "سفري"},
        "delivery": {Locale.EN: "Delivery", Locale.AR: "توصيل"},
        "drive_thru": {Locale.EN: "Drive Thru", Locale.AR: "طلب من السيارة"},
    },
    "status": {
        "draft": {Locale.EN: "Draft", Locale.AR: "مسودة"},
        "sent": {Locale.EN: "Sent", Locale.AR: "مرسل"},
        "paid": {Locale.EN: "Paid", Locale.AR: "مدفوع"},
        "partially_paid": {Locale.EN: "Partially Paid", Locale.AR: "مدفوع جزئياً"},
        "unpaid": {Locale.EN: "Unpaid", Locale.AR: "غير مدفوع"},
        "overdue": {Locale.EN: "Overdue", Locale.AR: "متأخر"},
        "cancelled": {Locale.EN: "Cancelled", Locale.AR: "ملغي"},
        "pending": {Locale.EN: "Pending", Locale.AR: "قيد الانتظار"},
        "accepted": {Locale.EN: "Accepted", Locale.AR: "مقبول"},
        "rejected": {Locale.EN: "Rejected", Locale.AR: "مرفوض"},
        "expired": {Locale.EN: "Expired", Locale.AR: "منتهي الصلاحية"},
    },
}

DOCUMENT_TITLES: dict[str, dict[Locale, str]] = {
    "receipt": {Locale.EN: "Receipt", Locale.AR: "إيصال"},
    "sales_invoice": {Locale.EN: "Tax Invoice", Locale.AR: "فاتورة ضريبية"},
    "purchase_invoice": {Locale.EN: "Purchase Invoice", Locale.AR: "فاتورة شراء"},
    "quote": {Locale.EN: "Quotation", Locale.AR: "عرض سعر"},
}


def round_money(value: Any) -> Decimal:
    """Round a number-like value to cents with ROUND_HALF_UP."""
    amount = to_decimal(value) or Decimal("0")
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def format_money(value: Any) -> str:
    """Format an amount with exactly two decimal places.

    Args:
        value: Decimal, int, float, numeric string or None

    Returns:
        Amount such as "12.50" ("0.00" for None)
    """
    return str(round_money(value))


def line_total(quantity: Any, unit_price: Any) -> Decimal:
    """Compute quantity * unit price in Decimal, rounded once to cents."""
    qty = to_decimal(quantity) or Decimal("0")
    price = to_decimal(unit_price) or Decimal("0")
    return (qty * price).quantize(CENTS, rounding=ROUND_HALF_UP)


def format_rate(value: Any) -> str:
    """Format a percentage rate without trailing zeros (15 -> "15", 7.50 -> "7.5")."""
    rate = to_decimal(value)
    if rate is None or rate.is_zero():
        return "0"
    text = format(rate, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_date(value: datetime | None, locale: Locale) -> str:
    """Format a date with the fixed pattern of the locale."""
    if value is None:
        return ""
    return value.strftime(DATE_PATTERNS[locale])


def format_datetime(value: datetime | None, locale: Locale) -> str:
    """Format a date and time (24h clock) with the fixed pattern of the locale."""
    if value is None:
        return ""
    return value.strftime(DATE_PATTERNS[locale] + " %H:%M")


def _label_key(key: str) -> str:
    return key.strip().lower().replace("-", "_").replace(" ", "_")


def localize_label(group: str, key: str, locale: Locale) -> str:
    """Translate a stored enum value (payment method, order type, status).

    Unknown keys fall back to the key with separators replaced, title-cased.

    Args:
        group: "payment_method", "order_type" or "status"
        key: Stored value, e.g. "dine_in"
        locale: Target locale

    Returns:
        Display label
    """
    if not key:
        return ""
    labels = LABELS.get(group, {}).get(_label_key(key))
    if labels is not None:
        return labels[locale]
    return key.replace("_", " ").replace("-", " ").strip().title()


def document_title(kind_value: str, locale: Locale) -> str:
    """Return the heading printed at the top of a document kind."""
    return DOCUMENT_TITLES[kind_value][locale]


def escape_markup(value: str) -> str:
    """Escape a string for inclusion in an HTML template."""
    return str(escape(value))


@dataclass(frozen=True)
class Totals:
    """Money totals of a document, already rounded to cents.

    Attributes:
        subtotal: Sum of line totals (or the stored subtotal)
        tax_rate: Tax rate in percent
        tax_amount: Tax on the subtotal
        total: Subtotal plus tax (or the stored total)
        total_qty: Sum of line quantities
    """

    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    total_qty: int


def compute_totals(
    items: Iterable[Any],
    subtotal: Decimal | None = None,
    tax_rate: Decimal | None = None,
    tax_amount: Decimal | None = None,
    total: Decimal | None = None,
) -> Totals:
    """Use stored totals where present and derive the rest from the line items.

    Args:
        items: Line items with quantity and unit_price
        subtotal: Stored subtotal
        tax_rate: Stored tax rate in percent
        tax_amount: Stored tax amount
        total: Stored grand total

    Returns:
        Totals rounded to cents
    """
    lines = list(items)
    rate = tax_rate if tax_rate is not None else Decimal("0")
    sub = (
        round_money(subtotal)
        if subtotal is not None
        else sum((line_total(i.quantity, i.unit_price) for i in lines), Decimal("0.00"))
    )
    tax = round_money(tax_amount) if tax_amount is not None else round_money(sub * rate / 100)
    grand = round_money(total) if total is not None else sub + tax
    return Totals(
        subtotal=sub,
        tax_rate=rate,
        tax_amount=tax,
        total=grand,
        total_qty=sum(int(i.quantity) for i in lines),
    )
