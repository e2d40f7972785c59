"""Exception hierarchy for tallyprint.

The template engine itself never raises; everything here belongs to the layers
around it (record construction, assembly, presentation and delivery).
"""


class TallyprintError(Exception):
    """Base class for all tallyprint errors."""


class RecordError(TallyprintError, ValueError):
    """Raised when a record cannot be built or violates its scope invariant."""


class IncompleteRecordError(TallyprintError):
    """Raised in strict mode when a template references fields the record lacks."""

    def __init__(self, template_name: str, missing: list[str]) -> None:
        self.template_name = template_name
        self.missing = missing
        super().__init__(
            f"Template {template_name} references fields the record does not supply: "
            + ", ".join(missing)
        )


class TemplateNotFoundError(TallyprintError, LookupError):
    """Raised when a built-in template resource is missing from the package."""


class ComplianceImageError(TallyprintError):
    """Raised when the compliance image collaborator fails."""


class PresentationError(TallyprintError):
    """Raised when the print surface cannot be opened or written."""


class DeliveryError(TallyprintError):
    """Raised when a rendered document cannot be handed to the mailer."""

    def __init__(self, code: str, message: str | None = None) -> None:
        self.code = code
        self.message = message or code
        super().__init__(f"{code}: {self.message}" if message else code)
