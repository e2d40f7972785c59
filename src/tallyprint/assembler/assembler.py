"""Document assembler: turns domain entities into (Template, Record) pairs.

The assembler owns every data decision the engine must not make: money
rounding, date patterns, label translation, markup escaping, template
selection and the compliance image. The record it produces keeps top-level
names distinct from line-item names (lineTotal, not total) so no field is
ever ambiguous inside an iteration block.
"""

import logging
from collections.abc import Mapping
from decimal import Decimal
from typing import Any, NamedTuple

from tallyprint.assembler.compliance import ComplianceImageProvider, request_compliance_image
from tallyprint.assembler.formatting import (
    Totals,
    compute_totals,
    document_title,
    escape_markup,
    format_date,
    format_datetime,
    format_money,
    format_rate,
    line_total,
    localize_label,
    round_money,
)
from tallyprint.assembler.selection import (
    Template,
    TemplateDefaults,
    default_paper,
    select_template,
)
from tallyprint.engine import QR_PAYLOAD_FIELD, template_fields
from tallyprint.errors import IncompleteRecordError
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
from tallyprint.models.presentation import PresentationSettings, default_presentation
from tallyprint.models.record import Record

logger = logging.getLogger(__name__)

_ENTITY_TYPES: dict[DocumentKind, type] = {
    DocumentKind.RECEIPT: Order,
    DocumentKind.SALES_INVOICE: Invoice,
    DocumentKind.PURCHASE_INVOICE: Invoice,
    DocumentKind.QUOTE: Quote,
}

_INVOICE_TYPES: dict[str, DocumentKind] = {
    "sales": DocumentKind.SALES_INVOICE,
    "purchase": DocumentKind.PURCHASE_INVOICE,
}


class AssembledDocument(NamedTuple):
    """Template and record ready for the engine."""

    template: Template
    record: Record


class DocumentAssembler:
    """Builds records and selects templates for financial documents.

    Usage:
        assembler = DocumentAssembler(compliance_provider=my_qr_encoder)
        template, record = assembler.assemble(order, None, org, DocumentKind.RECEIPT, Locale.EN)

    Attributes:
        compliance_provider: Produces the compliance image payload (optional)
        template_defaults: Configured per-(kind, locale) template assignments
        presentation_defaults: Presentation settings per document kind
        strict: Raise IncompleteRecordError instead of warning on missing fields
    """

    def __init__(
        self,
        compliance_provider: ComplianceImageProvider | None = None,
        template_defaults: TemplateDefaults | None = None,
        presentation_defaults: Mapping[DocumentKind, PresentationSettings] | None = None,
        strict: bool = False,
    ) -> None:
        """Initialize assembler.

        Args:
            compliance_provider: Compliance image collaborator
            template_defaults: Template assignments from configuration
            presentation_defaults: Per-kind presentation settings from configuration
            strict: Treat missing template fields as errors
        """
        self.compliance_provider = compliance_provider
        self.template_defaults = template_defaults
        self.presentation_defaults = dict(presentation_defaults or {})
        self.strict = strict

    def presentation_for(self, kind: DocumentKind) -> PresentationSettings:
        """Return the configured presentation settings for a kind."""
        return self.presentation_defaults.get(kind) or default_presentation(kind)

    def assemble(
        self,
        entity: FinancialDocument,
        counterparty: Party | None,
        organization: Organization,
        kind: DocumentKind | str,
        locale: Locale | str,
        *,
        paper: PaperProfile | None = None,
        custom_template: str | None = None,
        include_qr: bool = True,
        presentation: PresentationSettings | None = None,
        fmt: TemplateFormat = TemplateFormat.HTML,
    ) -> AssembledDocument:
        """Produce the template and record for one document.

        Args:
            entity: Order, invoice or quote
            counterparty: Customer or supplier (None for walk-in receipts)
            organization: Issuing organization
            kind: Document kind
            locale: Document locale
            paper: Paper profile (default: from presentation settings)
            custom_template: Caller-supplied template text
            include_qr: Request a compliance image from the provider
            presentation: Presentation settings (default: configured per kind)
            fmt: Template format to select

        Returns:
            AssembledDocument(template, record)

        Raises:
            TypeError: If the entity does not match the kind
            ValueError: If an invoice's type contradicts the kind
            ComplianceImageError: If the compliance provider fails
            RecordError: If the record breaks its scope invariant
            IncompleteRecordError: In strict mode, if the template needs absent fields
        """
        kind = DocumentKind.parse(kind)
        locale = Locale.parse(locale)

        expected = _ENTITY_TYPES[kind]
        if not isinstance(entity, expected):
            raise TypeError(
                f"{kind.value} documents need a {expected.__name__}, got {type(entity).__name__}"
            )
        if isinstance(entity, Invoice):
            invoice_kind = _INVOICE_TYPES.get(entity.invoice_type)
            if invoice_kind is None:
                logger.warning(
                    "Invoice %s has unknown type %r", entity.invoice_number, entity.invoice_type
                )
            elif invoice_kind is not kind:
                raise ValueError(
                    f"Invoice {entity.invoice_number} is a {entity.invoice_type} invoice, "
                    f"not {kind.value}"
                )

        settings = presentation or self.presentation_for(kind)
        paper = paper or settings.paper or default_paper(kind)

        template = select_template(
            kind,
            locale,
            paper,
            custom=custom_template,
            defaults=self.template_defaults,
            fmt=fmt,
        )

        payload = ""
        if include_qr:
            if self.compliance_provider is None:
                logger.debug("No compliance provider configured; QR section omitted")
            else:
                payload = request_compliance_image(self.compliance_provider, entity, organization)

        fields = self._common_fields(entity, organization, kind, locale, settings, include_qr, payload)
        match kind:
            case DocumentKind.RECEIPT:
                fields.update(self._receipt_fields(entity, counterparty, locale))
            case DocumentKind.SALES_INVOICE | DocumentKind.PURCHASE_INVOICE:
                fields.update(self._invoice_fields(entity, locale, fields["total"]))
                fields.update(self._party_fields(counterparty))
            case DocumentKind.QUOTE:
                fields.update(self._quote_fields(entity, locale))
                fields.update(self._party_fields(counterparty))

        if template.format is TemplateFormat.HTML:
            fields = _escape_fields(fields)

        record = Record(fields)
        record.check_scopes()
        self._check_completeness(template, record)

        logger.debug(
            "Assembled %s %s (%s, %s) with template %s",
            kind.value,
            entity.number,
            locale.value,
            paper.value,
            template.name,
        )
        return AssembledDocument(template, record)

    # =========================================================================
    # Field groups
    # =========================================================================

    def _common_fields(
        self,
        entity: FinancialDocument,
        organization: Organization,
        kind: DocumentKind,
        locale: Locale,
        settings: PresentationSettings,
        include_qr: bool,
        payload: str,
    ) -> dict[str, Any]:
        totals: Totals = compute_totals(
            entity.items,
            entity.subtotal,
            entity.tax_rate,
            entity.tax_amount,
            entity.total,
        )
        return {
            "lang": locale.value,
            "direction": locale.direction,
            "documentTitle": document_title(kind.value, locale),
            "currency": organization.currency,
            "companyName": organization.name,
            "companyNameAr": organization.name_ar or organization.name,
            "companyAddress": organization.address,
            "companyPhone": organization.phone,
            "companyEmail": organization.email,
            "companyVat": organization.vat_number,
            "companyLogo": organization.logo_url,
            "companyStamp": organization.stamp_url,
            "subtotal": format_money(totals.subtotal),
            "taxRate": format_rate(totals.tax_rate),
            "taxAmount": format_money(totals.tax_amount),
            "total": format_money(totals.total),
            "totalQty": totals.total_qty,
            "notes": entity.notes,
            "includeQrImage": include_qr,
            QR_PAYLOAD_FIELD: payload,
            "headingFont": settings.heading_font,
            "bodyFont": settings.body_font,
            "lineSpacing": f"{settings.line_spacing:g}",
            "customHeader": settings.custom_header,
            "customFooter": settings.custom_footer,
            "items": [_item_fields(item) for item in entity.items],
        }

    def _receipt_fields(
        self,
        order: Order,
        counterparty: Party | None,
        locale: Locale,
    ) -> dict[str, Any]:
        methods = [
            localize_label("payment_method", p.method, locale) for p in order.payments if p.method
        ]
        return {
            "orderNumber": order.order_number,
            "queueNumber": order.queue_number,
            "orderType": localize_label("order_type", order.order_type, locale),
            "orderDate": format_datetime(order.created_at, locale),
            "tableName": order.table_name,
            "customerName": order.customer_name or (counterparty.name if counterparty else ""),
            "createdByName": order.created_by_name,
            "paymentMethod": ", ".join(dict.fromkeys(methods)),
            "payments": [_payment_fields(p, locale) for p in order.payments],
        }

    def _invoice_fields(self, invoice: Invoice, locale: Locale, total: str) -> dict[str, Any]:
        paid = round_money(sum((p.amount for p in invoice.payments), Decimal("0")))
        due = max(round_money(total) - paid, Decimal("0.00"))
        return {
            "invoiceNumber": invoice.invoice_number,
            "invoiceDate": format_date(invoice.issued_at, locale),
            "dueDate": format_date(invoice.due_date, locale),
            "status": localize_label("status", invoice.status, locale),
            "amountPaid": format_money(paid),
            "amountDue": format_money(due),
            "payments": [_payment_fields(p, locale) for p in invoice.payments],
        }

    def _quote_fields(self, quote: Quote, locale: Locale) -> dict[str, Any]:
        return {
            "quoteNumber": quote.quote_number,
            "quoteDate": format_date(quote.created_at, locale),
            "validUntil": format_date(quote.valid_until, locale),
            "status": localize_label("status", quote.status, locale),
        }

    def _party_fields(self, party: Party | None) -> dict[str, Any]:
        party = party or Party()
        return {
            "partyName": party.name,
            "partyNameAr": party.name_ar or party.name,
            "partyAddress": party.address,
            "partyEmail": party.email,
            "partyPhone": party.phone,
            "partyVat": party.vat_number,
            "partyLogo": party.logo_url,
        }

    def _check_completeness(self, template: Template, record: Record) -> None:
        """Compare the template's references with the record."""
        refs = template_fields(template.text)
        missing = sorted(name for name in refs.top if name not in record)

        for list_name, names in refs.lists.items():
            children = record.get(list_name)
            if not isinstance(children, tuple):
                missing.append(list_name)
                continue
            if not children:
                continue
            available = set().union(*(child.keys() for child in children))
            missing.extend(f"{list_name}.{n}" for n in sorted(names) if n not in available)

        if not missing:
            return
        if self.strict:
            raise IncompleteRecordError(template.name, missing)
        logger.warning(
            "Template %s references fields the record does not supply: %s",
            template.name,
            ", ".join(missing),
        )


def _item_fields(item: LineItem) -> dict[str, Any]:
    return {
        "name": item.name,
        "description": item.description,
        "quantity": item.quantity,
        "unitPrice": format_money(item.unit_price),
        "lineTotal": format_money(line_total(item.quantity, item.unit_price)),
    }


def _payment_fields(payment: Payment, locale: Locale) -> dict[str, Any]:
    return {
        "paymentType": localize_label("payment_method", payment.method, locale),
        "amount": format_money(payment.amount),
    }


def _escape_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    escaped: dict[str, Any] = {}
    for key, value in fields.items():
        if key == QR_PAYLOAD_FIELD:
            escaped[key] = value
        elif isinstance(value, str):
            escaped[key] = escape_markup(value)
        elif isinstance(value, list):
            escaped[key] = [_escape_fields(child) for child in value]
        else:
            escaped[key] = value
    return escaped
