"""Preflight validation.

Checks everything a render run depends on before any document is produced:
configuration, the packaged templates, configured template assignments, the
output directory, a browser for printing, and SMTP settings for email.
"""

import os
import webbrowser
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from tallyprint.assembler.selection import list_builtin_templates, load_builtin
from tallyprint.config import TallyprintConfig
from tallyprint.engine import check_template, has_items_iteration, template_fields
from tallyprint.errors import TemplateNotFoundError
from tallyprint.models.kinds import DocumentKind
from tallyprint.models.record import field_set_for


@dataclass
class Check:
    """Result of a single preflight check.

    Attributes:
        name: What was checked
        passed: Whether the check passed
        required: Whether a failure blocks rendering
        message: Status message (human-readable context)
    """

    name: str
    passed: bool
    required: bool = True
    message: str = ""


@dataclass
class PreflightResult:
    """Result of preflight validation.

    Attributes:
        success: Whether all required checks passed
        checks: Individual check results
        errors: Messages for failed required checks
        warnings: Messages for failed optional checks
    """

    success: bool = True
    checks: list[Check] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add_check(self, check: Check) -> None:
        """Add a check result."""
        self.checks.append(check)

        if not check.passed:
            if check.required:
                self.success = False
                self.errors.append(f"{check.name}: {check.message}")
            else:
                self.warnings.append(f"{check.name}: {check.message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "success": self.success,
            "checks": [
                {
                    "name": c.name,
                    "passed": c.passed,
                    "required": c.required,
                    "message": c.message,
                }
                for c in self.checks
            ],
            "errors": self.errors,
            "warnings": self.warnings,
        }


def validate_template_text(text: str, kind: DocumentKind) -> list[str]:
    """Return the problems of a template for a document kind.

    Args:
        text: Template source
        kind: Document kind the template is meant for

    Returns:
        Problem descriptions (empty if the template is usable)
    """
    problems = [f"syntax: {issue.describe()}" for issue in check_template(text)]
    if not has_items_iteration(text):
        problems.append("no {{#each items}} block; the template would be ignored")
    refs = template_fields(text)
    unknown = field_set_for(kind).unknown_references(refs.top, refs.lists)
    if unknown:
        problems.append(f"fields not supplied for {kind.value}: {', '.join(unknown)}")
    return problems


class PreflightChecker:
    """Validates configuration and templates before rendering.

    Usage:
        checker = PreflightChecker()
        result = checker.check_all(config)
        if not result.success:
            sys.exit(1)
    """

    def check_config(self, config: TallyprintConfig) -> Check:
        """Report which configuration is in effect."""
        source = str(config.config_path) if config.config_path else "built-in defaults"
        return Check(name="config", passed=True, message=f"Using {source}")

    def check_builtin_templates(self) -> list[Check]:
        """Check every packaged template for syntax, items block and field references."""
        checks: list[Check] = []
        for entry in list_builtin_templates():
            try:
                text = load_builtin(entry.name)
            except TemplateNotFoundError as e:
                checks.append(Check(name=entry.name, passed=False, message=str(e)))
                continue
            problems = validate_template_text(text, entry.kind)
            checks.append(
                Check(
                    name=entry.name,
                    passed=not problems,
                    message="; ".join(problems) if problems else "OK",
                )
            )
        return checks

    def check_template_assignments(self, config: TallyprintConfig) -> list[Check]:
        """Check configured template assignments (failures fall back to built-ins)."""
        defaults = config.template_defaults()
        checks: list[Check] = []
        for (kind, locale), value in sorted(
            defaults.assignments.items(), key=lambda item: (item[0][0].value, item[0][1].value)
        ):
            name = f"template {kind.value}/{locale.value}"
            loaded = defaults.load(kind, locale)
            if loaded is None:
                checks.append(
                    Check(name=name, passed=False, required=False, message=f"Cannot read {value}")
                )
                continue
            problems = validate_template_text(loaded[1], kind)
            checks.append(
                Check(
                    name=name,
                    passed=not problems,
                    required=False,
                    message="; ".join(problems) if problems else loaded[0],
                )
            )
        return checks

    def check_output_directory(self, config: TallyprintConfig) -> Check:
        """Check that the output directory exists or can be created."""
        directory = Path(config.output.directory)
        existing = directory
        while not existing.exists() and existing != existing.parent:
            existing = existing.parent
        writable = os.access(existing, os.W_OK)
        return Check(
            name="output directory",
            passed=writable,
            message=str(directory) if writable else f"Not writable: {existing}",
        )

    def check_browser(self, required: bool = False) -> Check:
        """Check that a browser is available for printing."""
        try:
            browser = webbrowser.get()
        except webbrowser.Error:
            return Check(
                name="browser",
                passed=False,
                required=required,
                message="No browser found; set output.open_browser: false for headless use",
            )
        return Check(
            name="browser",
            passed=True,
            required=required,
            message=getattr(browser, "name", type(browser).__name__),
        )

    def check_smtp(self, config: TallyprintConfig, required: bool = False) -> Check:
        """Check that SMTP settings are complete enough to send email."""
        email = config.email
        if not email.is_configured:
            return Check(
                name="smtp",
                passed=False,
                required=required,
                message="email.host and email.sender are not set; emailing is disabled",
            )
        if email.username and not email.password:
            return Check(
                name="smtp",
                passed=False,
                required=required,
                message=f"No password set for {email.username}",
            )
        return Check(
            name="smtp",
            passed=True,
            required=required,
            message=f"{email.host}:{email.port} ({'STARTTLS' if email.use_tls else 'plain'})",
        )

    def check_all(
        self,
        config: TallyprintConfig,
        require_email: bool = False,
        require_browser: bool = False,
    ) -> PreflightResult:
        """Run all checks.

        Args:
            config: Loaded configuration
            require_email: Fail if SMTP is not configured
            require_browser: Fail if no browser is available

        Returns:
            PreflightResult
        """
        result = PreflightResult()
        result.add_check(self.check_config(config))
        for check in self.check_builtin_templates():
            result.add_check(check)
        for check in self.check_template_assignments(config):
            result.add_check(check)
        result.add_check(self.check_output_directory(config))
        if config.output.open_browser or require_browser:
            result.add_check(self.check_browser(required=require_browser))
        result.add_check(self.check_smtp(config, required=require_email))
        return result
