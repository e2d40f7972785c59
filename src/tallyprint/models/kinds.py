"""Enumerations that key template selection and presentation.

- DocumentKind: receipt, sales invoice, purchase invoice, quote
- Locale: display language and script direction
- PaperProfile: physical paper the document is laid out for
- TemplateFormat: markup or plain text output
"""

from enum import Enum


class DocumentKind(Enum):
    """Kind of financial document being produced."""

    RECEIPT = "receipt"
    SALES_INVOICE = "sales_invoice"
    PURCHASE_INVOICE = "purchase_invoice"
    QUOTE = "quote"

    @property
    def is_invoice(self) -> bool:
        """Return True for sales and purchase invoices."""
        return self in (DocumentKind.SALES_INVOICE, DocumentKind.PURCHASE_INVOICE)

    @property
    def settings_group(self) -> str:
        """Name of the presentation settings group for this kind."""
        if self is DocumentKind.RECEIPT:
            return "receipts"
        if self is DocumentKind.QUOTE:
            return "quotes"
        return "invoices"

    @classmethod
    def parse(cls, value: "str | DocumentKind") -> "DocumentKind":
        """Parse a kind from its value, accepting hyphens and any case."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace("-", "_")
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(k.value for k in cls)
            raise ValueError(f"Invalid document kind: {value}. Valid: {valid}") from None


class Locale(Enum):
    """Document locale: selects language, script direction and template variant."""

    EN = "en"
    AR = "ar"

    @property
    def direction(self) -> str:
        """Script direction for the locale (ltr or rtl)."""
        return "rtl" if self is Locale.AR else "ltr"

    @classmethod
    def parse(cls, value: "str | Locale") -> "Locale":
        """Parse a locale code such as "en", "ar" or "ar-SA"."""
        if isinstance(value, cls):
            return value
        code = str(value).strip().lower().replace("_", "-").split("-")[0]
        try:
            return cls(code)
        except ValueError:
            valid = ", ".join(loc.value for loc in cls)
            raise ValueError(f"Invalid locale: {value}. Valid: {valid}") from None


class PaperProfile(Enum):
    """Physical paper profile."""

    THERMAL_58 = "thermal_58"
    THERMAL_80 = "thermal_80"
    A4 = "a4"

    @property
    def width_mm(self) -> int:
        """Printable paper width in millimetres."""
        return {
            PaperProfile.THERMAL_58: 58,
            PaperProfile.THERMAL_80: 80,
            PaperProfile.A4: 210,
        }[self]

    @property
    def is_thermal(self) -> bool:
        """Return True for receipt-roll paper."""
        return self is not PaperProfile.A4

    @classmethod
    def parse(cls, value: "str | int | PaperProfile") -> "PaperProfile":
        """Parse a paper profile from its name or its width in mm (58, 80, 210)."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower().replace("-", "_").removesuffix("mm")
        by_width = {"58": cls.THERMAL_58, "80": cls.THERMAL_80, "210": cls.A4}
        if text in by_width:
            return by_width[text]
        try:
            return cls(text)
        except ValueError:
            valid = ", ".join(p.value for p in cls)
            raise ValueError(f"Invalid paper profile: {value}. Valid: {valid}") from None


class TemplateFormat(Enum):
    """Output format of a template; decides whether values are markup-escaped."""

    HTML = "html"
    TEXT = "text"
