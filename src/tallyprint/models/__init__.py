"""tallyprint data models.

This module exports the core entities used throughout the application:
- Record: the flat/nested data shape fed into the template engine
- FieldSet: fields the assembler guarantees per document kind
- Organization, Party, LineItem, Payment: domain building blocks
- Order, Invoice, Quote: financial documents
- DocumentKind, Locale, PaperProfile, TemplateFormat: selection keys
- PresentationSettings, BoxSpacing, QrPlacement: layout around a document
"""

from tallyprint.models.documents import (
    FinancialDocument,
    Invoice,
    LineItem,
    Order,
    Organization,
    Party,
    Payment,
    Quote,
)
from tallyprint.models.kinds import DocumentKind, Locale, PaperProfile, TemplateFormat
from tallyprint.models.presentation import (
    BoxSpacing,
    PresentationSettings,
    QrPlacement,
    default_presentation,
)
from tallyprint.models.record import FieldSet, Record, field_set_for

__all__ = [
    "Record",
    "FieldSet",
    "field_set_for",
    "Organization",
    "Party",
    "LineItem",
    "Payment",
    "Order",
    "Invoice",
    "Quote",
    "FinancialDocument",
    "DocumentKind",
    "Locale",
    "PaperProfile",
    "TemplateFormat",
    "BoxSpacing",
    "PresentationSettings",
    "QrPlacement",
    "default_presentation",
]
