"""Presentation settings applied around a rendered document.

Settings are grouped per document family (receipts, invoices, quotes) and
only affect the print shell and a few record fields (fonts, line spacing,
custom header and footer). Values are not range-checked.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from tallyprint.models.kinds import DocumentKind, PaperProfile


class QrPlacement(Enum):
    """How the compliance image reaches the output."""

    TEMPLATE = "template"  # the template's {{#includeQrImage}} section
    APPEND = "append"  # spliced into the print shell after rendering
    NONE = "none"


@dataclass(frozen=True)
class BoxSpacing:
    """Spacing on four sides, in millimetres."""

    top: float = 0
    right: float = 0
    bottom: float = 0
    left: float = 0

    @classmethod
    def from_value(cls, value: Any) -> "BoxSpacing":
        """Build from a number (all sides), a 4-item list or a mapping."""
        if value is None:
            return cls()
        if isinstance(value, BoxSpacing):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return cls(value, value, value, value)
        if isinstance(value, (list, tuple)):
            if len(value) != 4:
                raise ValueError(f"Spacing list must have 4 values (top, right, bottom, left): {value}")
            return cls(*(float(v) for v in value))
        if isinstance(value, Mapping):
            return cls(
                top=float(value.get("top", 0)),
                right=float(value.get("right", 0)),
                bottom=float(value.get("bottom", 0)),
                left=float(value.get("left", 0)),
            )
        raise ValueError(f"Invalid spacing value: {value!r}")

    def css(self) -> str:
        """CSS shorthand such as "3mm 3mm 3mm 3mm"."""
        return " ".join(f"{side:g}mm" for side in (self.top, self.right, self.bottom, self.left))


@dataclass(frozen=True)
class PresentationSettings:
    """Layout settings for one document family.

    Attributes:
        paper: Paper profile (None: the kind's default)
        margins: Page margins
        padding: Padding inside the document container
        line_spacing: CSS line-height multiplier
        heading_font: Font family for headings
        body_font: Font family for body text
        custom_header: Text printed above the document
        custom_footer: Text printed below the document
        include_qr: Whether to request a compliance image
        qr_placement: Where the compliance image is placed
    """

    paper: PaperProfile | None = None
    margins: BoxSpacing = field(default_factory=BoxSpacing)
    padding: BoxSpacing = field(default_factory=lambda: BoxSpacing(3, 3, 3, 3))
    line_spacing: float = 1.2
    heading_font: str = "Arial"
    body_font: str = "Arial"
    custom_header: str = ""
    custom_footer: str = ""
    include_qr: bool = True
    qr_placement: QrPlacement = QrPlacement.TEMPLATE


def default_presentation(kind: DocumentKind) -> PresentationSettings:
    """Return the built-in settings for a document kind."""
    if kind is DocumentKind.RECEIPT:
        return PresentationSettings(paper=PaperProfile.THERMAL_80)
    return PresentationSettings(
        paper=PaperProfile.A4,
        margins=BoxSpacing(10, 10, 10, 10),
        padding=BoxSpacing(5, 5, 5, 5),
        line_spacing=1.4,
        include_qr=kind is DocumentKind.SALES_INVOICE,
    )
