"""tallyprint configuration system.

Configuration is YAML-based with a few CLI overrides (--locale, --paper, --output).
Supports environment variable substitution (${VAR}) in config files.

Configuration file discovery (in priority order):
1. CLI --config argument
2. ./.tallyprint/config.yaml
3. ./tallyprint.yaml
"""

import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from tallyprint.assembler.selection import TemplateDefaults
from tallyprint.models.kinds import DocumentKind, Locale, PaperProfile
from tallyprint.models.presentation import (
    BoxSpacing,
    PresentationSettings,
    QrPlacement,
    default_presentation,
)

PRESENTATION_GROUPS = ("receipts", "invoices", "quotes")

# =============================================================================
# Configuration Dataclasses
# =============================================================================


@dataclass
class LocaleConfig:
    """Locale defaults.

    Attributes:
        default: Locale used when a document does not name one (en, ar)
        currency: Currency code used when the organization has none
    """

    default: str = "en"
    currency: str = ""

    def __post_init__(self) -> None:
        """Validate locale configuration."""
        Locale.parse(self.default)

    @property
    def locale(self) -> Locale:
        """Default locale as an enum."""
        return Locale.parse(self.default)


@dataclass
class OutputConfig:
    """Output configuration.

    Attributes:
        directory: Directory print-ready files are written to
        open_browser: Open printed documents in the system browser
    """

    directory: str = ".tallyprint/output"
    open_browser: bool = True


@dataclass
class PresentationConfig:
    """Presentation overrides for one document family.

    Unset attributes (None) keep the built-in default for the kind.

    Attributes:
        paper: Paper profile (thermal_58, thermal_80, a4, or a width in mm)
        margins: Page margins in mm (number, [top, right, bottom, left] or mapping)
        padding: Container padding in mm (same forms as margins)
        line_spacing: CSS line-height multiplier
        heading_font: Font family for headings
        body_font: Font family for body text
        custom_header: Text printed above the document
        custom_footer: Text printed below the document
        include_qr: Request a compliance image
        qr_placement: template, append or none
    """

    paper: str | None = None
    margins: Any = None
    padding: Any = None
    line_spacing: float | None = None
    heading_font: str | None = None
    body_font: str | None = None
    custom_header: str | None = None
    custom_footer: str | None = None
    include_qr: bool | None = None
    qr_placement: str | None = None

    def __post_init__(self) -> None:
        """Validate presentation configuration."""
        if self.paper is not None:
            PaperProfile.parse(self.paper)
        if self.qr_placement is not None:
            valid = {p.value for p in QrPlacement}
            if self.qr_placement not in valid:
                raise ValueError(f"Invalid qr_placement: {self.qr_placement}. Valid: {valid}")
        BoxSpacing.from_value(self.margins)
        BoxSpacing.from_value(self.padding)

    def apply(self, base: PresentationSettings) -> PresentationSettings:
        """Overlay the configured values on top of base settings."""
        overrides: dict[str, Any] = {}
        if self.paper is not None:
            overrides["paper"] = PaperProfile.parse(self.paper)
        if self.margins is not None:
            overrides["margins"] = BoxSpacing.from_value(self.margins)
        if self.padding is not None:
            overrides["padding"] = BoxSpacing.from_value(self.padding)
        if self.qr_placement is not None:
            overrides["qr_placement"] = QrPlacement(self.qr_placement)
        for name in (
            "line_spacing",
            "heading_font",
            "body_font",
            "custom_header",
            "custom_footer",
            "include_qr",
        ):
            value = getattr(self, name)
            if value is not None:
                overrides[name] = value
        return replace(base, **overrides)


@dataclass
class TemplatesConfig:
    """Template assignments.

    Attributes:
        assignments: kind -> locale -> built-in template name or file path
        strict: Fail when a template references fields the record lacks
    """

    assignments: dict[str, dict[str, str]] = field(default_factory=dict)
    strict: bool = False

    def __post_init__(self) -> None:
        """Validate template assignments."""
        for kind_name, by_locale in self.assignments.items():
            DocumentKind.parse(kind_name)
            if not isinstance(by_locale, dict):
                raise ValueError(f"Template assignment for {kind_name} must map locale to template")
            for locale_name in by_locale:
                Locale.parse(locale_name)

    def to_defaults(self, base_dir: Path | None = None) -> TemplateDefaults:
        """Build the TemplateDefaults passed to the assembler."""
        assignments = {
            (DocumentKind.parse(kind_name), Locale.parse(locale_name)): str(value)
            for kind_name, by_locale in self.assignments.items()
            for locale_name, value in by_locale.items()
            if value
        }
        return TemplateDefaults(assignments=assignments, base_dir=base_dir)


@dataclass
class EmailConfig:
    """SMTP settings for emailed documents.

    Attributes:
        host: SMTP server host
        port: SMTP server port
        username: Login user
        password: Login password (use ${VAR} substitution)
        sender: From address
        sender_name: From display name
        use_tls: Issue STARTTLS before login
        timeout: Socket timeout in seconds
    """

    host: str = ""
    port: int = 587
    username: str = ""
    password: str = ""
    sender: str = ""
    sender_name: str = ""
    use_tls: bool = True
    timeout: int = 30

    def __post_init__(self) -> None:
        """Validate email configuration."""
        if not 0 < int(self.port) < 65536:
            raise ValueError(f"Invalid SMTP port: {self.port}")
        if self.timeout <= 0:
            raise ValueError(f"SMTP timeout must be positive (got {self.timeout})")

    @property
    def is_configured(self) -> bool:
        """Return True if enough is set to attempt delivery."""
        return bool(self.host and (self.sender or self.username))


@dataclass
class TallyprintConfig:
    """Top-level tallyprint configuration.

    Attributes:
        locale: Locale defaults
        output: Output directory and browser behaviour
        presentation: Presentation overrides per family (receipts, invoices, quotes)
        templates: Template assignments and strictness
        email: SMTP settings
    """

    locale: LocaleConfig = field(default_factory=LocaleConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    presentation: dict[str, PresentationConfig] = field(default_factory=dict)
    templates: TemplatesConfig = field(default_factory=TemplatesConfig)
    email: EmailConfig = field(default_factory=EmailConfig)

    # Set by load_config
    _config_path: Path | None = field(default=None, repr=False)

    @property
    def config_path(self) -> Path | None:
        """Get the path to the config file that was loaded."""
        return self._config_path

    def presentation_for(self, kind: DocumentKind) -> PresentationSettings:
        """Return the effective presentation settings for a kind."""
        base = default_presentation(kind)
        overrides = self.presentation.get(kind.settings_group)
        return overrides.apply(base) if overrides else base

    def presentation_defaults(self) -> dict[DocumentKind, PresentationSettings]:
        """Return effective presentation settings for every kind."""
        return {kind: self.presentation_for(kind) for kind in DocumentKind}

    def template_defaults(self) -> TemplateDefaults:
        """Return template assignments; relative paths resolve against the config file."""
        base_dir = self._config_path.parent if self._config_path else Path.cwd()
        return self.templates.to_defaults(base_dir)


# =============================================================================
# Environment Variable Substitution
# =============================================================================


def substitute_env_vars(value: Any) -> Any:
    """Substitute environment variables in config values.

    Supports ${VAR} syntax for environment variable substitution.
    Example: ${SMTP_PASSWORD} -> value of SMTP_PASSWORD

    Args:
        value: Config value (string, dict, list, or other)

    Returns:
        Value with environment variables substituted

    Raises:
        ValueError: If a referenced variable is not set
    """
    if isinstance(value, str):
        pattern = re.compile(r"\$\{([^}]+)\}")

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ValueError(f"Environment variable not set: {var_name}")
            return env_value

        return pattern.sub(replace_var, value)

    elif isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [substitute_env_vars(v) for v in value]

    return value


# =============================================================================
# Config File Discovery
# =============================================================================


def find_config_file(start_path: Path | None = None) -> Path | None:
    """Find configuration file in standard locations.

    Search order:
    1. ./.tallyprint/config.yaml
    2. ./tallyprint.yaml

    Args:
        start_path: Starting directory for search (defaults to cwd)

    Returns:
        Path to config file if found, None otherwise
    """
    if start_path is None:
        start_path = Path.cwd()

    start_path = start_path.resolve()

    candidates = [
        start_path / ".tallyprint" / "config.yaml",
        start_path / "tallyprint.yaml",
    ]

    for candidate in candidates:
        if candidate.exists():
            return candidate

    return None


# =============================================================================
# Config Loading
# =============================================================================


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{name}' must be a mapping")
    return value


def load_config_from_dict(data: dict[str, Any]) -> TallyprintConfig:
    """Load configuration from a dictionary.

    Args:
        data: Configuration dictionary

    Returns:
        TallyprintConfig instance

    Raises:
        ValueError: For invalid values or unset environment variables
    """
    data = substitute_env_vars(data)

    config = TallyprintConfig()

    if "locale" in data:
        locale_data = _section(data, "locale")
        config.locale = LocaleConfig(
            default=str(locale_data.get("default", config.locale.default)),
            currency=str(locale_data.get("currency", config.locale.currency)),
        )

    if "output" in data:
        output_data = _section(data, "output")
        config.output = OutputConfig(
            directory=str(output_data.get("directory", config.output.directory)),
            open_browser=bool(output_data.get("open_browser", config.output.open_browser)),
        )

    if "presentation" in data:
        for group, group_data in _section(data, "presentation").items():
            if group not in PRESENTATION_GROUPS:
                raise ValueError(
                    f"Invalid presentation group: {group}. Valid: {set(PRESENTATION_GROUPS)}"
                )
            if isinstance(group_data, dict):
                paper = group_data.get("paper")
                config.presentation[group] = PresentationConfig(
                    paper=str(paper) if paper is not None else None,
                    margins=group_data.get("margins"),
                    padding=group_data.get("padding"),
                    line_spacing=group_data.get("line_spacing"),
                    heading_font=group_data.get("heading_font"),
                    body_font=group_data.get("body_font"),
                    custom_header=group_data.get("custom_header"),
                    custom_footer=group_data.get("custom_footer"),
                    include_qr=group_data.get("include_qr"),
                    qr_placement=group_data.get("qr_placement"),
                )

    if "templates" in data:
        templates_data = _section(data, "templates")
        config.templates = TemplatesConfig(
            assignments=templates_data.get("assignments") or {},
            strict=bool(templates_data.get("strict", False)),
        )

    if "email" in data:
        email_data = _section(data, "email")
        config.email = EmailConfig(
            host=str(email_data.get("host", "")),
            port=int(email_data.get("port", 587)),
            username=str(email_data.get("username", "")),
            password=str(email_data.get("password", "")),
            sender=str(email_data.get("sender", "")),
            sender_name=str(email_data.get("sender_name", "")),
            use_tls=bool(email_data.get("use_tls", True)),
            timeout=int(email_data.get("timeout", 30)),
        )

    return config


def load_config(
    config_path: Path | None = None,
    auto_discover: bool = True,
) -> TallyprintConfig:
    """Load configuration from file.

    Args:
        config_path: Explicit path to config file
        auto_discover: Whether to search for config file if not specified

    Returns:
        TallyprintConfig instance

    Raises:
        FileNotFoundError: If config_path specified but doesn't exist
    """
    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        found_path = config_path
    elif auto_discover:
        found_path = find_config_file()
    else:
        found_path = None

    if found_path is not None:
        with open(found_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file must contain a mapping: {found_path}")
        config = load_config_from_dict(data)
        config._config_path = found_path
    else:
        config = TallyprintConfig()

    return config


def create_default_config() -> str:
    """Create default configuration YAML content.

    Returns:
        YAML string with default configuration and comments
    """
    return '''# tallyprint configuration

# Locale defaults
locale:
  default: "en"        # en, ar
  currency: "SAR"      # used when the organization has no currency

# Output settings
output:
  directory: ".tallyprint/output"
  open_browser: true   # open printed documents in the system browser

# Presentation per document family (sizes in mm)
presentation:
  receipts:
    paper: "thermal_80"  # thermal_58, thermal_80, a4
    margins: 0
    padding: 3
    line_spacing: 1.2
    heading_font: "Arial"
    body_font: "Arial"
    include_qr: true
    qr_placement: "template"  # template, append, none
  invoices:
    paper: "a4"
    margins: 10
    padding: [5, 5, 5, 5]  # top, right, bottom, left
  quotes:
    paper: "a4"
    include_qr: false

# Template assignments: built-in name or file path (relative to this file)
templates:
  strict: false        # fail when a template uses fields the record lacks
  # assignments:
  #   receipt:
  #     en: "templates/my-receipt.html"
  #     ar: "receipt_a4_ar.html"

# Email delivery
email:
  host: ""
  port: 587
  username: ""
  # password: "${SMTP_PASSWORD}"
  sender: ""
  sender_name: ""
  use_tls: true
  timeout: 30
'''
