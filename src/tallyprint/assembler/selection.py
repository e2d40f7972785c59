"""Template selection.

Picks the template for a document in a fixed fallback order:

1. caller-supplied custom template text
2. the template assigned to (kind, locale) in TemplateDefaults (plain-text
   bodies only take .txt assignments)
3. the built-in template for (kind, locale, paper)

Custom and assigned templates are only used if they iterate over the line
items; a template without {{#each items}} would print a document with no lines.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from importlib import resources
from pathlib import Path
from typing import NamedTuple

from tallyprint.engine import has_items_iteration
from tallyprint.errors import TemplateNotFoundError
from tallyprint.models.kinds import DocumentKind, Locale, PaperProfile, TemplateFormat

logger = logging.getLogger(__name__)

TEMPLATE_PACKAGE = "tallyprint.templates"
TEMPLATE_DIR = "documents"


class TemplateSource(Enum):
    """Where a selected template came from."""

    CUSTOM = "custom"
    ASSIGNED = "assigned"
    BUILTIN = "builtin"


@dataclass(frozen=True)
class Template:
    """A template ready for rendering.

    Attributes:
        name: Built-in file name, assigned path, or "custom"
        text: Template source
        locale: Locale the template is written for
        format: HTML (values escaped) or TEXT
        source: Which step of the fallback order produced it
    """

    name: str
    text: str
    locale: Locale
    format: TemplateFormat = TemplateFormat.HTML
    source: TemplateSource = TemplateSource.BUILTIN


class BuiltinTemplate(NamedTuple):
    """Catalogue entry for a packaged template."""

    kind: DocumentKind
    locale: Locale
    paper: PaperProfile | None
    format: TemplateFormat
    name: str


def default_paper(kind: DocumentKind) -> PaperProfile:
    """Paper used when neither the caller nor the settings name one."""
    return PaperProfile.THERMAL_80 if kind is DocumentKind.RECEIPT else PaperProfile.A4


def builtin_template_name(
    kind: DocumentKind,
    locale: Locale,
    paper: PaperProfile,
    fmt: TemplateFormat = TemplateFormat.HTML,
) -> str:
    """Return the packaged template file for a document flavor.

    Receipts have a thermal layout, an A4 layout and a plain-text body per
    locale. Invoices and quotes have one page layout per locale regardless of
    paper.

    Raises:
        TemplateNotFoundError: For a flavor no built-in covers (text invoices)
    """
    lang = locale.value
    match (kind, fmt, paper):
        case (DocumentKind.RECEIPT, TemplateFormat.TEXT, _):
            return f"receipt_text_{lang}.txt"
        case (DocumentKind.RECEIPT, TemplateFormat.HTML, PaperProfile.A4):
            return f"receipt_a4_{lang}.html"
        case (DocumentKind.RECEIPT, TemplateFormat.HTML, PaperProfile.THERMAL_58 | PaperProfile.THERMAL_80):
            return f"receipt_thermal_{lang}.html"
        case (DocumentKind.SALES_INVOICE, TemplateFormat.HTML, _):
            return f"sales_invoice_{lang}.html"
        case (DocumentKind.PURCHASE_INVOICE, TemplateFormat.HTML, _):
            return f"purchase_invoice_{lang}.html"
        case (DocumentKind.QUOTE, TemplateFormat.HTML, _):
            return f"quote_{lang}.html"
        case _:
            raise TemplateNotFoundError(
                f"No built-in {fmt.value} template for {kind.value} ({lang})"
            )


def list_builtin_templates() -> list[BuiltinTemplate]:
    """Return every packaged template with the flavor it serves."""
    entries: list[BuiltinTemplate] = []
    for kind in DocumentKind:
        for locale in Locale:
            if kind is DocumentKind.RECEIPT:
                for paper in (PaperProfile.THERMAL_80, PaperProfile.A4):
                    name = builtin_template_name(kind, locale, paper)
                    entries.append(BuiltinTemplate(kind, locale, paper, TemplateFormat.HTML, name))
                entries.append(
                    BuiltinTemplate(
                        kind,
                        locale,
                        None,
                        TemplateFormat.TEXT,
                        builtin_template_name(kind, locale, PaperProfile.THERMAL_80, TemplateFormat.TEXT),
                    )
                )
            else:
                entries.append(
                    BuiltinTemplate(
                        kind,
                        locale,
                        None,
                        TemplateFormat.HTML,
                        builtin_template_name(kind, locale, PaperProfile.A4),
                    )
                )
    return entries


def builtin_names() -> set[str]:
    """Return the file names of all packaged templates."""
    return {entry.name for entry in list_builtin_templates()}


def load_builtin(name: str) -> str:
    """Read a packaged template.

    Raises:
        TemplateNotFoundError: If the resource is missing
    """
    resource = resources.files(TEMPLATE_PACKAGE).joinpath(TEMPLATE_DIR, name)
    try:
        return resource.read_text(encoding="utf-8")
    except (FileNotFoundError, OSError) as e:
        raise TemplateNotFoundError(f"Built-in template not found: {name}") from e


def format_for_name(name: str, fallback: TemplateFormat = TemplateFormat.HTML) -> TemplateFormat:
    """Infer the template format from a file name."""
    suffix = Path(name).suffix.lower()
    if suffix == ".txt":
        return TemplateFormat.TEXT
    if suffix in (".html", ".htm"):
        return TemplateFormat.HTML
    return fallback


@dataclass(frozen=True)
class TemplateDefaults:
    """Per-(kind, locale) template assignments.

    Each value is either the name of a built-in template or a path to a
    template file (relative paths resolve against base_dir).

    Attributes:
        assignments: (kind, locale) to template name or path
        base_dir: Directory relative paths are resolved against
    """

    assignments: Mapping[tuple[DocumentKind, Locale], str] = field(default_factory=dict)
    base_dir: Path | None = None

    def assigned(self, kind: DocumentKind, locale: Locale) -> str | None:
        """Return the assignment for (kind, locale), if any."""
        return self.assignments.get((kind, locale)) or None

    def load(self, kind: DocumentKind, locale: Locale) -> tuple[str, str] | None:
        """Load the assigned template as (name, text).

        Returns None (with a warning) when the assignment cannot be read.
        """
        value = self.assigned(kind, locale)
        if value is None:
            return None

        if value in builtin_names():
            try:
                return value, load_builtin(value)
            except TemplateNotFoundError as e:
                logger.warning("Assigned template %s unavailable: %s", value, e)
                return None

        path = Path(value).expanduser()
        if not path.is_absolute() and self.base_dir is not None:
            path = self.base_dir / path
        try:
            return str(path), path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Skipping unreadable template %s: %s", path, e)
            return None


def select_template(
    kind: DocumentKind,
    locale: Locale,
    paper: PaperProfile | None = None,
    custom: str | None = None,
    defaults: TemplateDefaults | None = None,
    fmt: TemplateFormat = TemplateFormat.HTML,
) -> Template:
    """Choose the template for a document.

    Args:
        kind: Document kind
        locale: Document locale
        paper: Paper profile (default depends on kind)
        custom: Caller-supplied template text
        defaults: Configured template assignments
        fmt: Format of the built-in fallback and of custom text

    Returns:
        Selected Template

    Raises:
        TemplateNotFoundError: If the built-in fallback is missing
    """
    paper = paper or default_paper(kind)

    if custom is not None and custom.strip():
        if has_items_iteration(custom):
            logger.debug("Using custom template for %s (%s)", kind.value, locale.value)
            return Template("custom", custom, locale, fmt, TemplateSource.CUSTOM)
        logger.warning(
            "Custom template for %s has no {{#each items}} block; using default",
            kind.value,
        )

    if defaults is not None:
        loaded = defaults.load(kind, locale)
        if loaded is not None:
            name, text = loaded
            assigned_fmt = format_for_name(name, fmt)
            # Plain-text bodies never take markup; pages may print text in <pre>
            if fmt is TemplateFormat.TEXT and assigned_fmt is not TemplateFormat.TEXT:
                logger.debug("Assigned template %s is not plain text; using built-in", name)
            elif has_items_iteration(text):
                logger.debug("Using assigned template %s", name)
                return Template(name, text, locale, assigned_fmt, TemplateSource.ASSIGNED)
            else:
                logger.warning(
                    "Assigned template %s has no {{#each items}} block; using built-in", name
                )

    name = builtin_template_name(kind, locale, paper, fmt)
    return Template(name, load_builtin(name), locale, fmt, TemplateSource.BUILTIN)
