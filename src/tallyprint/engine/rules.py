"""Section rules: predicates that decide specific conditional sections.

A section whose name has a rule is decided by that rule alone; every other
section falls back to plain truthiness of its field.
"""

from collections.abc import Callable, Mapping
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import Any

from tallyprint.engine.values import is_truthy

SectionRule = Callable[[Mapping[str, Any]], bool]

QR_SECTION = "includeQrImage"
QR_PAYLOAD_FIELD = "qrImagePayload"
TAX_RATE_SECTION = "taxRate"


def qr_image_rule(scope: Mapping[str, Any]) -> bool:
    """Show the QR block only when requested and a payload is present."""
    payload = scope.get(QR_PAYLOAD_FIELD)
    return (
        is_truthy(scope.get(QR_SECTION))
        and isinstance(payload, str)
        and payload.strip() != ""
    )


def tax_rate_rule(scope: Mapping[str, Any]) -> bool:
    """Show the tax block unless the rate is empty or numerically zero.

    "0", "0.0" and "0.00" all count as zero. A non-numeric, non-empty rate is
    shown as-is.
    """
    value = scope.get(TAX_RATE_SECTION)
    if isinstance(value, str):
        text = value.strip().rstrip("%").strip()
        if not text:
            return False
        try:
            return not Decimal(text).is_zero()
        except InvalidOperation:
            return True
    return is_truthy(value)


DEFAULT_SECTION_RULES: Mapping[str, SectionRule] = MappingProxyType(
    {
        QR_SECTION: qr_image_rule,
        TAX_RATE_SECTION: tax_rate_rule,
    }
)
