"""Document pipeline orchestrator.

Runs one document through assemble -> render -> wrap -> deliver. Assembly and
rendering always finish before any delivery collaborator is called, so a
failed print or email never leaves a half-built document behind.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from enum import Enum
from functools import partial
from pathlib import Path
from typing import Any

from tallyprint.assembler import DocumentAssembler, Template
from tallyprint.assembler.compliance import ComplianceImageProvider, request_compliance_image
from tallyprint.assembler.formatting import document_title
from tallyprint.assembler.selection import default_paper
from tallyprint.config import TallyprintConfig
from tallyprint.delivery import (
    Attachment,
    BrowserPrintSurface,
    FilePrintSurface,
    Mailer,
    PrintSurface,
    SMTPMailer,
    document_filename,
)
from tallyprint.engine import SyntaxIssue, TemplateEngine
from tallyprint.errors import DeliveryError, PresentationError
from tallyprint.models import (
    DocumentKind,
    FinancialDocument,
    Invoice,
    Locale,
    Order,
    Organization,
    PaperProfile,
    Party,
    PresentationSettings,
    QrPlacement,
    Quote,
    Record,
    TemplateFormat,
)
from tallyprint.templates import PresentationRenderer

logger = logging.getLogger(__name__)

_ENTITY_LOADERS = {
    DocumentKind.RECEIPT: Order.from_dict,
    DocumentKind.SALES_INVOICE: partial(Invoice.from_dict, default_type="sales"),
    DocumentKind.PURCHASE_INVOICE: partial(Invoice.from_dict, default_type="purchase"),
    DocumentKind.QUOTE: Quote.from_dict,
}


class Delivery(Enum):
    """What happens to a generated document."""

    PRINT = "print"
    EMAIL = "email"
    NONE = "none"


@dataclass
class DocumentRequest:
    """One document to generate and deliver.

    Attributes:
        kind: Document kind
        locale: Document locale
        entity: Order, invoice or quote
        counterparty: Customer or supplier (None for walk-in receipts)
        organization: Issuing organization
        delivery: Print, email or nothing
        paper: Paper override (default: presentation settings)
        custom_template: Caller-supplied template text
        include_qr: Request a compliance image (None: presentation settings)
        qr_placement: Where the compliance image goes (None: presentation settings)
        recipient: Email recipient
        subject: Email subject (default: document title and number)
        message: Personal message shown above an emailed document
        output_path: Also write the print-ready page here
    """

    kind: DocumentKind
    locale: Locale
    entity: FinancialDocument
    organization: Organization
    counterparty: Party | None = None
    delivery: Delivery = Delivery.NONE
    paper: PaperProfile | None = None
    custom_template: str | None = None
    include_qr: bool | None = None
    qr_placement: QrPlacement | None = None
    recipient: str = ""
    subject: str = ""
    message: str = ""
    output_path: Path | None = None

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        default_locale: Locale = Locale.EN,
        default_currency: str = "",
    ) -> "DocumentRequest":
        """Build a request from a document file (kind, locale, entity, ...).

        Args:
            data: Mapping with kind, locale, entity, counterparty and organization
            default_locale: Locale used when the data names none
            default_currency: Currency used when the organization has none

        Returns:
            DocumentRequest with delivery NONE

        Raises:
            ValueError: If kind is missing or invalid, or entity is missing
        """
        if "kind" not in data:
            raise ValueError("Document file must name its kind")
        kind = DocumentKind.parse(data["kind"])
        locale = Locale.parse(data["locale"]) if data.get("locale") else default_locale

        entity_data = data.get("entity")
        if not isinstance(entity_data, Mapping):
            raise ValueError("Document file must contain an 'entity' mapping")
        entity = _ENTITY_LOADERS[kind](entity_data)

        organization = Organization.from_dict(data.get("organization"))
        if not organization.currency and default_currency:
            organization = replace(organization, currency=default_currency)

        counterparty_data = data.get("counterparty")
        counterparty = Party.from_dict(counterparty_data) if counterparty_data else None

        return cls(
            kind=kind,
            locale=locale,
            entity=entity,
            organization=organization,
            counterparty=counterparty,
        )

    @property
    def title(self) -> str:
        """Document title and number, e.g. "Tax Invoice INV-001"."""
        return f"{document_title(self.kind.value, self.locale)} {self.entity.number}".strip()


@dataclass
class GeneratedDocument:
    """Result of running a request through the pipeline.

    Attributes:
        rendered: Document rendered by the engine
        output: Print-ready page or email body
        template: Template that was used
        record: Record the template was rendered with
        issues: Template syntax issues
        location: Where the page was written, if anywhere
        delivered: Delivery that was performed
    """

    rendered: str
    output: str
    template: Template
    record: Record
    issues: tuple[SyntaxIssue, ...] = ()
    location: Path | None = None
    delivered: Delivery = Delivery.NONE

    @property
    def has_issues(self) -> bool:
        """Return True if the template had syntax issues."""
        return bool(self.issues)


@dataclass
class _Rendered:
    template: Template
    record: Record
    text: str
    issues: tuple[SyntaxIssue, ...]
    settings: PresentationSettings
    paper: PaperProfile
    qr_payload: str = ""


class DocumentPipeline:
    """Orchestrates assembly, rendering, presentation and delivery.

    Usage:
        pipeline = DocumentPipeline.from_config(config)
        result = pipeline.generate(request)
    """

    def __init__(
        self,
        assembler: DocumentAssembler | None = None,
        engine: TemplateEngine | None = None,
        presenter: PresentationRenderer | None = None,
        print_surface: PrintSurface | None = None,
        mailer: Mailer | None = None,
        sender_name: str = "",
    ) -> None:
        """Initialize the pipeline.

        Args:
            assembler: Document assembler (default: no compliance provider)
            engine: Template engine (default section rules)
            presenter: Print/email shell renderer
            print_surface: Where printed documents go
            mailer: Email sender
            sender_name: Signature line for emailed documents
        """
        self.assembler = assembler or DocumentAssembler()
        self.engine = engine or TemplateEngine()
        self.presenter = presenter or PresentationRenderer()
        self.print_surface = print_surface
        self.mailer = mailer
        self.sender_name = sender_name

    @classmethod
    def from_config(
        cls,
        config: TallyprintConfig,
        compliance_provider: ComplianceImageProvider | None = None,
        open_browser: bool | None = None,
    ) -> "DocumentPipeline":
        """Build a pipeline wired from configuration.

        Args:
            config: Loaded configuration
            compliance_provider: Compliance image collaborator
            open_browser: Override output.open_browser

        Returns:
            Configured DocumentPipeline
        """
        assembler = DocumentAssembler(
            compliance_provider=compliance_provider,
            template_defaults=config.template_defaults(),
            presentation_defaults=config.presentation_defaults(),
            strict=config.templates.strict,
        )

        output_dir = Path(config.output.directory)
        browser = config.output.open_browser if open_browser is None else open_browser
        surface: PrintSurface = (
            BrowserPrintSurface(output_dir) if browser else FilePrintSurface(output_dir)
        )

        mailer = None
        if config.email.is_configured:
            mailer = SMTPMailer(
                host=config.email.host,
                port=config.email.port,
                username=config.email.username,
                password=config.email.password,
                sender=config.email.sender,
                sender_name=config.email.sender_name,
                use_tls=config.email.use_tls,
                timeout=config.email.timeout,
            )

        return cls(
            assembler=assembler,
            print_surface=surface,
            mailer=mailer,
            sender_name=config.email.sender_name,
        )

    # =========================================================================
    # Stages
    # =========================================================================

    def _render(self, request: DocumentRequest, fmt: TemplateFormat = TemplateFormat.HTML) -> _Rendered:
        settings = self.assembler.presentation_for(request.kind)
        if request.paper is not None:
            settings = replace(settings, paper=request.paper)
        paper = settings.paper or default_paper(request.kind)

        placement = request.qr_placement or settings.qr_placement
        include_qr = settings.include_qr if request.include_qr is None else request.include_qr
        if placement is QrPlacement.NONE or fmt is TemplateFormat.TEXT:
            include_qr = False

        qr_payload = ""
        if include_qr and placement is QrPlacement.APPEND:
            provider = self.assembler.compliance_provider
            if provider is not None:
                qr_payload = request_compliance_image(provider, request.entity, request.organization)

        template, record = self.assembler.assemble(
            request.entity,
            request.counterparty,
            request.organization,
            request.kind,
            request.locale,
            paper=paper,
            custom_template=request.custom_template if fmt is TemplateFormat.HTML else None,
            include_qr=include_qr and placement is QrPlacement.TEMPLATE,
            presentation=settings,
            fmt=fmt,
        )

        result = self.engine.render_with_issues(template.text, record)
        for issue in result.issues:
            logger.warning(
                "Template %s: %s",
                template.name,
                issue.describe(),
                extra={"extra_data": {"template": template.name, **issue.to_dict()}},
            )
        return _Rendered(
            template=template,
            record=record,
            text=result.text,
            issues=result.issues,
            settings=settings,
            paper=paper,
            qr_payload=qr_payload,
        )

    def _print_page(self, request: DocumentRequest, rendered: _Rendered) -> str:
        return self.presenter.render_print(
            rendered.text,
            rendered.settings,
            request.locale,
            rendered.paper,
            fmt=rendered.template.format,
            title=request.title,
            qr_payload=rendered.qr_payload,
        )

    def _plain_text(self, request: DocumentRequest) -> str:
        """Plain-text alternative for an emailed document."""
        parts = [request.message] if request.message else []
        if request.kind is DocumentKind.RECEIPT:
            parts.append(self._render(request, TemplateFormat.TEXT).text)
        else:
            parts.append(request.title)
        return "\n\n".join(part.strip() for part in parts if part.strip())

    def generate(self, request: DocumentRequest) -> GeneratedDocument:
        """Generate a document and hand it to its delivery collaborator.

        Args:
            request: Document request

        Returns:
            GeneratedDocument

        Raises:
            ComplianceImageError: If the compliance provider fails
            IncompleteRecordError: In strict mode, for templates needing absent fields
            PresentationError: If the print surface fails
            DeliveryError: If the mailer fails
        """
        logger.info("Generating %s", request.title)
        rendered = self._render(request)
        page = self._print_page(request, rendered)

        location: Path | None = None
        if request.output_path is not None:
            try:
                location = self.presenter.render_to_file(page, request.output_path)
            except OSError as e:
                raise PresentationError(f"Cannot write {request.output_path}: {e}") from e

        output = page
        match request.delivery:
            case Delivery.PRINT:
                if self.print_surface is None:
                    raise PresentationError("No print surface configured")
                location = self.print_surface.open(page, request.title) or location

            case Delivery.EMAIL:
                output = self.presenter.render_email(
                    rendered.text,
                    request.locale,
                    fmt=rendered.template.format,
                    title=request.title,
                    message=request.message,
                    sender_name=self.sender_name,
                )
                text = self._plain_text(request)
                if self.mailer is None:
                    raise DeliveryError("SMTP_NOT_CONFIGURED", "No mailer configured")
                subject = request.subject or (
                    f"{request.title} - {request.organization.name}"
                    if request.organization.name
                    else request.title
                )
                self.mailer.send(
                    request.recipient,
                    subject,
                    text,
                    html=output,
                    attachments=[
                        Attachment(document_filename(request.title), page.encode("utf-8"))
                    ],
                )

            case Delivery.NONE:
                pass

        return GeneratedDocument(
            rendered=rendered.text,
            output=output,
            template=rendered.template,
            record=rendered.record,
            issues=rendered.issues,
            location=location,
            delivered=request.delivery,
        )

    def preview(self, request: DocumentRequest, max_lines: int = 50) -> str:
        """Render a document without delivering it.

        Args:
            request: Document request (delivery is ignored)
            max_lines: Maximum lines to include in preview

        Returns:
            Rendered document, truncated with an indicator
        """
        rendered = self._render(request)
        return self.presenter.preview(rendered.text, max_lines)
