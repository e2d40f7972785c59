"""Shared pytest fixtures for tallyprint tests.

Fixtures are organized by category:
- Domain fixtures: organizations, parties and financial documents
- Document file fixtures: YAML documents as the CLI reads them
- Configuration fixtures: config dictionaries for various scenarios
"""

import logging
from collections.abc import Iterator
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest
import yaml

from tallyprint.models import (
    Invoice,
    LineItem,
    Order,
    Organization,
    Party,
    Payment,
    Quote,
)

QR_PAYLOAD = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAE="

# =============================================================================
# Domain Fixtures
# =============================================================================


@pytest.fixture
def organization() -> Organization:
    """Return an issuing organization with VAT number and currency."""
    return Organization(
        name="Cafe Nakheel",
        name_ar="مقهى النخيل",
        address="King Fahd Road, Riyadh",
        phone="+966 11 000 0000",
        email="billing@nakheel.example",
        vat_number="300000000000003",
        currency="SAR",
    )


@pytest.fixture
def customer() -> Party:
    """Return a customer with a VAT number."""
    return Party(
        name="Acme Trading",
        name_ar="أكمي للتجارة",
        address="Olaya Street, Riyadh",
        email="accounts@acme.example",
        vat_number="311111111100003",
    )


@pytest.fixture
def line_items() -> tuple[LineItem, ...]:
    """Return two line items (2 x 5.25 and 1 x 3.10)."""
    return (
        LineItem(name="Tea", quantity=2, unit_price=Decimal("5.25")),
        LineItem(name="Croissant", quantity=1, unit_price=Decimal("3.10"), description="Warm"),
    )


@pytest.fixture
def order(line_items: tuple[LineItem, ...]) -> Order:
    """Return a dine-in order with one card payment and 15% VAT."""
    return Order(
        order_number="1042",
        items=line_items,
        payments=(Payment(method="card", amount=Decimal("15.64")),),
        created_at=datetime(2024, 3, 5, 14, 30, tzinfo=UTC),
        order_type="dine_in",
        queue_number="17",
        table_name="T4",
        created_by_name="Sara",
        tax_rate=Decimal("15"),
    )


@pytest.fixture
def invoice(line_items: tuple[LineItem, ...]) -> Invoice:
    """Return a partially paid sales invoice."""
    return Invoice(
        invoice_number="INV-0001",
        invoice_type="sales",
        items=line_items,
        payments=(Payment(method="bank_transfer", amount=Decimal("10")),),
        invoice_date=datetime(2024, 3, 5, 9, 0, tzinfo=UTC),
        due_date=datetime(2024, 4, 4, tzinfo=UTC),
        status="partially_paid",
        tax_rate=Decimal("15"),
    )


@pytest.fixture
def quote(line_items: tuple[LineItem, ...]) -> Quote:
    """Return a draft quote without tax."""
    return Quote(
        quote_number="Q-0007",
        items=line_items,
        created_at=datetime(2024, 3, 1, tzinfo=UTC),
        valid_until=datetime(2024, 3, 31, tzinfo=UTC),
        status="draft",
        tax_rate=Decimal("0"),
    )


# =============================================================================
# Document File Fixtures
# =============================================================================


@pytest.fixture
def receipt_document() -> dict[str, Any]:
    """Return a receipt document as exported by the store (camelCase keys)."""
    return {
        "kind": "receipt",
        "locale": "en",
        "organization": {
            "name": "Cafe Nakheel",
            "vatNumber": "300000000000003",
            "currency": "SAR",
        },
        "entity": {
            "orderNumber": "1042",
            "orderType": "takeaway",
            "createdAt": "2024-03-05T14:30:00Z",
            "taxRate": 15,
            "items": [
                {"name": "Tea", "quantity": 2, "price": 5.25},
                {"name": "Croissant", "quantity": 1, "price": "3.10"},
            ],
            "payments": [{"paymentMethod": "cash", "amount": 15.64}],
        },
    }


@pytest.fixture
def receipt_file(tmp_path: Path, receipt_document: dict[str, Any]) -> Path:
    """Write the receipt document to a YAML file."""
    path = tmp_path / "order.yaml"
    path.write_text(yaml.safe_dump(receipt_document, allow_unicode=True), encoding="utf-8")
    return path


# =============================================================================
# Template Fixtures
# =============================================================================


@pytest.fixture
def custom_receipt_template() -> str:
    """Return a minimal custom receipt template that iterates over items."""
    return (
        "<h1>{{companyName}}</h1>"
        "{{#each items}}<p>{{@index}}. {{name}} x{{quantity}} = {{lineTotal}}</p>{{/each}}"
        "<p>Total: {{total}}</p>"
        "{{#includeQrImage}}<img src=\"{{qrImagePayload}}\">{{/includeQrImage}}"
    )


@pytest.fixture
def qr_payload() -> str:
    """Return a pre-encoded compliance image payload."""
    return QR_PAYLOAD


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def minimal_config() -> dict[str, Any]:
    """Return a minimal valid tallyprint configuration."""
    return {
        "locale": {
            "default": "en",
        }
    }


@pytest.fixture
def full_config() -> dict[str, Any]:
    """Return a complete tallyprint configuration with all options."""
    return {
        "locale": {"default": "ar", "currency": "SAR"},
        "output": {"directory": "out", "open_browser": False},
        "presentation": {
            "receipts": {
                "paper": "thermal_58",
                "margins": 0,
                "padding": [2, 3, 2, 3],
                "line_spacing": 1.1,
                "heading_font": "Tahoma",
                "custom_footer": "Thank you",
                "qr_placement": "append",
            },
            "invoices": {
                "paper": "a4",
                "margins": {"top": 15, "right": 10, "bottom": 15, "left": 10},
                "include_qr": True,
            },
        },
        "templates": {
            "strict": True,
            "assignments": {
                "receipt": {"en": "receipt_a4_en.html"},
                "sales_invoice": {"ar": "templates/invoice_ar.html"},
            },
        },
        "email": {
            "host": "smtp.example.com",
            "port": 2525,
            "username": "mailer",
            "password": "secret",
            "sender": "billing@example.com",
            "sender_name": "Billing",
            "use_tls": False,
            "timeout": 10,
        },
    }


# =============================================================================
# Logging Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_tallyprint_logger() -> Iterator[None]:
    """Undo CLI logging setup so caplog sees tallyprint records in every test."""
    yield
    logger = logging.getLogger("tallyprint")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
