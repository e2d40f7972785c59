"""Presentation shell rendering.

Wraps a rendered document in the HTML needed to print it (page size, margins,
padding, script direction) or to send it as an email body. Shells are Jinja2
templates shipped with the package; the document itself was already rendered
and escaped, so it is inserted as-is.
"""

import logging
import re
from pathlib import Path
from typing import Any

from jinja2 import Environment, PackageLoader, TemplateNotFound, select_autoescape
from markupsafe import Markup

from tallyprint.models.kinds import Locale, PaperProfile, TemplateFormat
from tallyprint.models.presentation import PresentationSettings

logger = logging.getLogger(__name__)

PRINT_SHELL = "print_shell.html.j2"
EMAIL_SHELL = "email_body.html.j2"
PRINT_STYLES = "print_styles.css.j2"

_FULL_DOCUMENT_RE = re.compile(r"<html[\s>]", re.IGNORECASE)
_HEAD_CLOSE_RE = re.compile(r"</head\s*>", re.IGNORECASE)
_BODY_CLOSE_RE = re.compile(r"</body\s*>", re.IGNORECASE)


def is_full_document(html: str) -> bool:
    """Return True if the markup already carries its own <html> element."""
    return bool(_FULL_DOCUMENT_RE.search(html))


class PresentationRenderer:
    """Renders print and email shells around a rendered document.

    Usage:
        renderer = PresentationRenderer()
        page = renderer.render_print(body, settings, Locale.EN, PaperProfile.THERMAL_80)
    """

    def __init__(self) -> None:
        """Initialize the Jinja2 environment with the package shells."""
        self._env = Environment(
            loader=PackageLoader("tallyprint", "templates"),
            autoescape=select_autoescape(["html", "xml", "html.j2"]),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

    def _context(
        self,
        body: str,
        settings: PresentationSettings,
        locale: Locale,
        paper: PaperProfile,
        fmt: TemplateFormat,
        title: str,
    ) -> dict[str, Any]:
        return {
            "body": body if fmt is TemplateFormat.TEXT else Markup(body),
            "preformatted": fmt is TemplateFormat.TEXT,
            "title": title,
            "lang": locale.value,
            "direction": locale.direction,
            "paper": paper,
            "margins": settings.margins.css(),
            "padding": settings.padding.css(),
            "line_spacing": f"{settings.line_spacing:g}",
        }

    def _render(self, template_name: str, context: dict[str, Any]) -> str:
        try:
            template = self._env.get_template(template_name)
        except TemplateNotFound as e:
            logger.error("Failed to load shell template %s: %s", template_name, e)
            raise ValueError(f"Template not found: {template_name}") from e
        return template.render(**context)

    def render_print(
        self,
        body: str,
        settings: PresentationSettings,
        locale: Locale,
        paper: PaperProfile,
        fmt: TemplateFormat = TemplateFormat.HTML,
        title: str = "",
        qr_payload: str = "",
    ) -> str:
        """Wrap a rendered document for printing.

        Documents that are already complete HTML pages get the print styles
        injected into their <head> instead of being nested in the shell.

        Args:
            body: Rendered document
            settings: Presentation settings (margins, padding, spacing)
            locale: Document locale (direction)
            paper: Paper profile (page size, thermal vs A4 rules)
            fmt: Format of the rendered document
            title: Page title
            qr_payload: Compliance image appended below the document

        Returns:
            Print-ready HTML
        """
        context = self._context(body, settings, locale, paper, fmt, title)
        # Pre-encoded image data from the compliance provider, embedded verbatim
        context["qr_payload"] = Markup(qr_payload)

        if fmt is TemplateFormat.HTML and is_full_document(body):
            styles = self._render(PRINT_STYLES, context)
            style_tag = f"<style>\n{styles}</style>\n"
            if qr_payload:
                qr = f'<div class="compliance-qr"><img src="{qr_payload}" alt="QR"></div>'
                if _BODY_CLOSE_RE.search(body):
                    body = _BODY_CLOSE_RE.sub(lambda _: qr + "</body>", body, count=1)
                else:
                    logger.warning("Document has no </body>; appending QR image at the end")
                    body += qr
            if _HEAD_CLOSE_RE.search(body):
                return _HEAD_CLOSE_RE.sub(lambda _: style_tag + "</head>", body, count=1)
            return style_tag + body

        rendered = self._render(PRINT_SHELL, context)
        logger.debug("Rendered print shell (%d characters)", len(rendered))
        return rendered

    def render_email(
        self,
        body: str,
        locale: Locale,
        fmt: TemplateFormat = TemplateFormat.HTML,
        title: str = "",
        message: str = "",
        sender_name: str = "",
    ) -> str:
        """Wrap a rendered document as an HTML email body.

        Args:
            body: Rendered document
            locale: Document locale (direction)
            fmt: Format of the rendered document
            title: Email title
            message: Personal message shown above the document
            sender_name: Signature line

        Returns:
            HTML email body
        """
        context = self._context(
            body, PresentationSettings(), locale, PaperProfile.A4, fmt, title
        )
        context["message"] = message
        context["sender_name"] = sender_name
        return self._render(EMAIL_SHELL, context)

    def render_to_file(self, html: str, output_path: Path) -> Path:
        """Write print-ready HTML to a file.

        Args:
            html: Page to write
            output_path: Destination file

        Returns:
            Path to written file
        """
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(html, encoding="utf-8")
        logger.info("Wrote document to %s", output_path)
        return output_path

    @staticmethod
    def preview(content: str, max_lines: int = 50) -> str:
        """Truncate rendered output for display.

        Args:
            content: Rendered output
            max_lines: Maximum lines to include in preview

        Returns:
            Preview string with truncation indicator
        """
        lines = content.split("\n")

        if len(lines) <= max_lines:
            return content

        preview_lines = lines[:max_lines]
        preview_lines.append(f"\n... [{len(lines) - max_lines} more lines] ...")

        return "\n".join(preview_lines)
