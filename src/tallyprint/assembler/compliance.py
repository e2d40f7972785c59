"""Compliance (e-invoicing QR) image collaborator.

The assembler asks a ComplianceImageProvider for an encoded image payload
(typically a data URI) and places it in the record as qrImagePayload. Encoding
the payload is the provider's business; compliance_fields gathers the data a
provider needs in one place.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Protocol

from tallyprint.assembler.formatting import compute_totals, format_money
from tallyprint.errors import ComplianceImageError
from tallyprint.models.documents import FinancialDocument, Invoice, Order, Organization, Party

logger = logging.getLogger(__name__)


class ComplianceImageProvider(Protocol):
    """Produces the encoded compliance image for a document."""

    def __call__(self, document: FinancialDocument, organization: Organization) -> str:
        """Return the encoded image payload (e.g. a data URI)."""
        ...


@dataclass(frozen=True)
class ComplianceFields:
    """Summary encoded into a compliance image.

    Attributes:
        seller_name: Issuing organization
        seller_vat: Seller VAT registration number
        document_number: Receipt, invoice or quote number
        issued_at: Issue timestamp, if known
        total: Grand total including tax
        vat_amount: Tax amount
        buyer_name: Counterparty name (empty for walk-in receipts)
        buyer_vat: Counterparty VAT number
    """

    seller_name: str
    seller_vat: str
    document_number: str
    issued_at: datetime | None
    total: Decimal
    vat_amount: Decimal
    buyer_name: str = ""
    buyer_vat: str = ""

    @property
    def date(self) -> str:
        """Issue date as YYYY-MM-DD."""
        return self.issued_at.strftime("%Y-%m-%d") if self.issued_at else ""

    @property
    def time(self) -> str:
        """Issue time as HH:MM:SS."""
        return self.issued_at.strftime("%H:%M:%S") if self.issued_at else ""

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary of display strings."""
        return {
            "seller_name": self.seller_name,
            "seller_vat": self.seller_vat,
            "document_number": self.document_number,
            "date": self.date,
            "time": self.time,
            "total": format_money(self.total),
            "vat_amount": format_money(self.vat_amount),
            "buyer_name": self.buyer_name,
            "buyer_vat": self.buyer_vat,
        }


def _issued_at(document: FinancialDocument) -> datetime | None:
    if isinstance(document, Invoice):
        return document.issued_at
    return document.created_at


def compliance_fields(
    document: FinancialDocument,
    organization: Organization,
    counterparty: Party | None = None,
) -> ComplianceFields:
    """Collect the data a compliance image encodes.

    Args:
        document: Order, invoice or quote
        organization: Issuing organization
        counterparty: Customer or supplier, if any

    Returns:
        ComplianceFields for the document
    """
    totals = compute_totals(
        document.items,
        document.subtotal,
        document.tax_rate,
        document.tax_amount,
        document.total,
    )
    buyer_name = counterparty.name if counterparty else ""
    if not buyer_name and isinstance(document, Order):
        buyer_name = document.customer_name
    return ComplianceFields(
        seller_name=organization.name,
        seller_vat=organization.vat_number,
        document_number=document.number,
        issued_at=_issued_at(document),
        total=totals.total,
        vat_amount=totals.tax_amount,
        buyer_name=buyer_name,
        buyer_vat=counterparty.vat_number if counterparty else "",
    )


class StaticComplianceImage:
    """Provider that returns a payload encoded elsewhere.

    Usage:
        provider = StaticComplianceImage("data:image/png;base64,...")
    """

    def __init__(self, payload: str) -> None:
        self.payload = payload

    def __call__(self, document: FinancialDocument, organization: Organization) -> str:
        return self.payload


def request_compliance_image(
    provider: ComplianceImageProvider,
    document: FinancialDocument,
    organization: Organization,
) -> str:
    """Call the provider, turning any failure into ComplianceImageError.

    Raises:
        ComplianceImageError: If the provider raises or returns a non-string
    """
    try:
        payload = provider(document, organization)
    except ComplianceImageError:
        raise
    except Exception as e:
        raise ComplianceImageError(
            f"Compliance image provider failed for {document.number}: {e}"
        ) from e

    if not isinstance(payload, str):
        raise ComplianceImageError(
            f"Compliance image provider returned {type(payload).__name__}, expected str"
        )
    if not payload:
        logger.debug("Compliance image provider returned an empty payload for %s", document.number)
    return payload
