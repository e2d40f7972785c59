"""tallyprint CLI interface.

Commands:
- render: Render a receipt, invoice or quote from a document file
- validate: Validate a document template
- templates: List built-in templates
- check: Validate configuration, templates and delivery settings
- init: Initialize tallyprint configuration

Global options:
- --config: Path to configuration file
- --verbose: Enable verbose output with timestamps
- --quiet: Suppress info messages
- --json: Machine-readable output
- --version: Show version and exit

Exit codes: 0 success, 1 error, 2 success with template syntax warnings.
"""

import json
import logging
from pathlib import Path
from typing import Annotated, Any

import typer
import yaml

from tallyprint import __version__
from tallyprint.assembler import StaticComplianceImage, list_builtin_templates
from tallyprint.config import TallyprintConfig, create_default_config, load_config
from tallyprint.delivery import document_filename
from tallyprint.engine import check_template
from tallyprint.errors import DeliveryError, TallyprintError
from tallyprint.models import DocumentKind, PaperProfile
from tallyprint.pipeline import Delivery, DocumentPipeline, DocumentRequest
from tallyprint.utils.logging import configure_from_cli, get_logger
from tallyprint.utils.preflight import PreflightChecker, validate_template_text

# Create Typer app
app = typer.Typer(
    name="tallyprint",
    help="Receipt, invoice and quote rendering for print and email",
    add_completion=False,
    no_args_is_help=True,
)

# Global state
_config: TallyprintConfig | None = None
_json_output = False
_logger = get_logger("tallyprint.cli")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"tallyprint {__version__}")
        raise typer.Exit()


def _get_config() -> TallyprintConfig:
    return _config or TallyprintConfig()


@app.callback()
def main(
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration file",
            exists=True,
            dir_okay=False,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output with timestamps",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress info messages (warnings and errors only)",
        ),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Machine-readable JSON output and JSON log lines",
        ),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
) -> None:
    """tallyprint - receipts, invoices and quotes for print and email.

    Renders financial documents from templates in English or Arabic, for
    thermal receipt printers or A4 paper.
    """
    global _config, _json_output

    _json_output = json_output
    configure_from_cli(verbose=verbose, quiet=quiet, json_output=json_output)

    try:
        _config = load_config(config_path=config)
        if _config.config_path:
            _logger.debug("Loaded config from: %s", _config.config_path)
    except FileNotFoundError as e:
        _logger.error(str(e))
        raise typer.Exit(1)
    except (ValueError, yaml.YAMLError) as e:
        _logger.error("Failed to load config: %s", e)
        raise typer.Exit(1)


# =============================================================================
# render command
# =============================================================================


def _load_document_file(path: Path) -> dict[str, Any]:
    """Load a YAML or JSON document file."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError(f"Document file must contain a mapping: {path}")
    return data


@app.command()
def render(
    document_file: Annotated[
        Path,
        typer.Argument(
            help="YAML or JSON file with kind, locale, entity, counterparty, organization",
            exists=True,
            dir_okay=False,
        ),
    ],
    kind: Annotated[
        str | None,
        typer.Option("--kind", "-k", help="receipt, sales_invoice, purchase_invoice, quote"),
    ] = None,
    locale: Annotated[
        str | None,
        typer.Option("--locale", "-l", help="Document locale: en or ar"),
    ] = None,
    paper: Annotated[
        str | None,
        typer.Option("--paper", "-p", help="Paper: thermal_58, thermal_80, a4 (or 58, 80)"),
    ] = None,
    template: Annotated[
        Path | None,
        typer.Option("--template", "-t", help="Custom template file", exists=True, dir_okay=False),
    ] = None,
    qr_payload: Annotated[
        Path | None,
        typer.Option(
            "--qr-payload",
            help="File holding a pre-encoded compliance image (data URI)",
            exists=True,
            dir_okay=False,
        ),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the print-ready page to this file"),
    ] = None,
    print_document: Annotated[
        bool,
        typer.Option("--print", help="Open the document in the browser for printing"),
    ] = False,
    email: Annotated[
        str | None,
        typer.Option("--email", help="Email the document to this address"),
    ] = None,
    subject: Annotated[
        str | None,
        typer.Option("--subject", help="Email subject"),
    ] = None,
    message: Annotated[
        str | None,
        typer.Option("--message", help="Message shown above the emailed document"),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Render and show a preview without writing or sending"),
    ] = False,
) -> None:
    """Render a document and print, email or save it.

    Exit codes:
        0: Document rendered
        1: Error (invalid input, delivery failure)
        2: Document rendered, but the template has syntax issues
    """
    config = _get_config()

    if print_document and email:
        _logger.error("Use either --print or --email, not both")
        raise typer.Exit(1)

    try:
        data = _load_document_file(document_file)
        if kind:
            data["kind"] = kind
        if locale:
            data["locale"] = locale

        request = DocumentRequest.from_dict(
            data,
            default_locale=config.locale.locale,
            default_currency=config.locale.currency,
        )
        if paper:
            request.paper = PaperProfile.parse(paper)
        if template:
            request.custom_template = template.read_text(encoding="utf-8")

        if dry_run:
            request.delivery = Delivery.NONE
        elif print_document:
            request.delivery = Delivery.PRINT
        elif email:
            request.delivery = Delivery.EMAIL
            request.recipient = email
            request.subject = subject or ""
            request.message = message or ""

        if output:
            request.output_path = output
        elif not dry_run and request.delivery is Delivery.NONE:
            request.output_path = Path(config.output.directory) / document_filename(request.title)

        provider = None
        if qr_payload:
            provider = StaticComplianceImage(qr_payload.read_text(encoding="utf-8").strip())

        pipeline = DocumentPipeline.from_config(config, compliance_provider=provider)
        result = pipeline.generate(request)

    except DeliveryError as e:
        _logger.structured(logging.ERROR, f"Delivery failed: {e.message}", code=e.code)
        raise typer.Exit(1)
    except (TallyprintError, ValueError, TypeError, OSError, yaml.YAMLError) as e:
        _logger.error("Render failed: %s", e)
        raise typer.Exit(1)

    if _json_output:
        typer.echo(
            json.dumps(
                {
                    "title": request.title,
                    "template": result.template.name,
                    "source": result.template.source.value,
                    "delivered": result.delivered.value,
                    "location": str(result.location) if result.location else None,
                    "issues": [issue.to_dict() for issue in result.issues],
                },
                indent=2,
                ensure_ascii=False,
            )
        )
    elif dry_run:
        typer.echo(pipeline.presenter.preview(result.rendered))
    else:
        where = f" -> {result.location}" if result.location else ""
        typer.echo(f"✅ {request.title} ({result.template.name}){where}")
        if request.delivery is Delivery.EMAIL:
            typer.echo(f"   Sent to {request.recipient}")

    raise typer.Exit(2 if result.has_issues else 0)


# =============================================================================
# validate command
# =============================================================================


@app.command()
def validate(
    template: Annotated[
        Path,
        typer.Argument(
            help="Path to document template to validate",
            exists=True,
            dir_okay=False,
        ),
    ],
    kind: Annotated[
        str,
        typer.Option("--kind", "-k", help="Document kind the template is for"),
    ] = "receipt",
) -> None:
    """Validate a document template.

    Reports unbalanced markers, a missing {{#each items}} block, and fields the
    document kind does not supply.
    """
    try:
        doc_kind = DocumentKind.parse(kind)
    except ValueError as e:
        _logger.error(str(e))
        raise typer.Exit(1)

    _logger.info("Validating template: %s", template)
    text = template.read_text(encoding="utf-8")
    problems = validate_template_text(text, doc_kind)

    if _json_output:
        typer.echo(
            json.dumps(
                {
                    "template": str(template),
                    "kind": doc_kind.value,
                    "valid": not problems,
                    "issues": [issue.to_dict() for issue in check_template(text)],
                    "problems": problems,
                },
                indent=2,
            )
        )
    elif problems:
        typer.echo(f"❌ Template has problems: {template}")
        for problem in problems:
            typer.echo(f"   • {problem}")
    else:
        typer.echo(f"✅ Template is valid: {template}")

    raise typer.Exit(1 if problems else 0)


# =============================================================================
# templates command
# =============================================================================


@app.command()
def templates() -> None:
    """List built-in templates per kind, locale and paper."""
    entries = list_builtin_templates()

    if _json_output:
        typer.echo(
            json.dumps(
                [
                    {
                        "kind": e.kind.value,
                        "locale": e.locale.value,
                        "paper": e.paper.value if e.paper else None,
                        "format": e.format.value,
                        "name": e.name,
                    }
                    for e in entries
                ],
                indent=2,
            )
        )
        return

    typer.echo("\n📄 Built-in templates\n")
    for e in entries:
        paper = e.paper.value if e.paper else "any"
        typer.echo(f"  {e.kind.value:<17} {e.locale.value:<3} {paper:<11} {e.format.value:<5} {e.name}")
    typer.echo()


# =============================================================================
# check command
# =============================================================================


@app.command()
def check(
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output results as JSON",
        ),
    ] = False,
    require_email: Annotated[
        bool,
        typer.Option(
            "--require-email",
            help="Fail if SMTP is not configured",
        ),
    ] = False,
) -> None:
    """Validate configuration, templates and delivery settings.

    Exit codes:
        0: All checks passed
        1: One or more required checks failed
        2: Only optional checks failed (warnings)
    """
    checker = PreflightChecker()
    result = checker.check_all(_get_config(), require_email=require_email)

    if json_output or _json_output:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        raise typer.Exit(1 if result.errors else 2 if result.warnings else 0)

    typer.echo("\n🔍 Preflight Check Results\n")

    for check_result in result.checks:
        status = "✅" if check_result.passed else "❌"
        required_str = " [required]" if check_result.required else " [optional]"

        typer.echo(f"  {status} {check_result.name}{required_str}")
        if check_result.message:
            typer.echo(f"     └─ {check_result.message}")

    typer.echo()

    if result.errors:
        typer.echo("❌ Preflight check FAILED")
        for error in result.errors:
            typer.echo(f"   • {error}")
        raise typer.Exit(1)
    elif result.warnings:
        typer.echo("⚠️  Preflight check passed with WARNINGS")
        for warning in result.warnings:
            typer.echo(f"   • {warning}")
        raise typer.Exit(2)
    else:
        typer.echo("✅ All preflight checks passed")
        raise typer.Exit(0)


# =============================================================================
# init command
# =============================================================================


@app.command()
def init(
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            help="Overwrite existing config",
        ),
    ] = False,
) -> None:
    """Initialize tallyprint configuration.

    Creates .tallyprint/config.yaml with commented defaults.
    """
    config_dir = Path(".tallyprint")
    config_file = config_dir / "config.yaml"

    if config_file.exists() and not force:
        _logger.error("Config already exists: %s", config_file)
        _logger.info("Use --force to overwrite")
        raise typer.Exit(1)

    config_dir.mkdir(exist_ok=True)
    config_file.write_text(create_default_config(), encoding="utf-8")
    _logger.info("Created config: %s", config_file)

    typer.echo("\n✅ tallyprint configuration initialized")
    typer.echo(f"   Config: {config_file}")
    raise typer.Exit(0)


if __name__ == "__main__":
    app()
