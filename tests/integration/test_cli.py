"""Integration tests for tallyprint CLI commands.

These tests run the CLI end to end against document files written to a
temporary working directory.
"""

import json
from pathlib import Path
from typing import Any

import pytest
import yaml
from typer.testing import CliRunner

from tallyprint import __version__
from tallyprint.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run every command from an empty temporary directory."""
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    return work


@pytest.fixture
def headless_config(workdir: Path) -> Path:
    """Write a discoverable config that never opens a browser."""
    path = workdir / "tallyprint.yaml"
    path.write_text(
        yaml.safe_dump({"output": {"directory": "prints", "open_browser": False}}),
        encoding="utf-8",
    )
    return path


class TestGlobalOptions:
    """Tests for options shared by every command."""

    def test_version(self) -> None:
        """Test --version."""
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert f"tallyprint {__version__}" in result.output

    def test_missing_config_file(self, tmp_path: Path) -> None:
        """Test that an explicit missing config is rejected."""
        result = runner.invoke(app, ["--config", str(tmp_path / "nope.yaml"), "templates"])

        assert result.exit_code != 0

    def test_invalid_config_file(self, workdir: Path) -> None:
        """Test that an invalid config fails with exit code 1."""
        (workdir / "tallyprint.yaml").write_text("locale:\n  default: fr\n")

        result = runner.invoke(app, ["templates"])

        assert result.exit_code == 1


class TestRender:
    """Integration tests for `tallyprint render`."""

    def test_render_to_output(self, receipt_file: Path, tmp_path: Path) -> None:
        """Test rendering a receipt to an explicit file."""
        output = tmp_path / "receipt.html"

        result = runner.invoke(app, ["render", str(receipt_file), "--output", str(output)])

        assert result.exit_code == 0, result.output
        assert "✅ Receipt 1042 (receipt_thermal_en.html)" in result.output
        content = output.read_text(encoding="utf-8")
        assert "15.64" in content
        assert "Takeaway" in content
        assert "size: 80mm auto;" in content

    def test_render_default_output_directory(self, receipt_file: Path, workdir: Path) -> None:
        """Test that pages go to the configured output directory by default."""
        result = runner.invoke(app, ["render", str(receipt_file)])

        assert result.exit_code == 0, result.output
        assert (workdir / ".tallyprint" / "output" / "Receipt-1042.html").exists()

    def test_render_locale_and_paper(self, receipt_file: Path, tmp_path: Path) -> None:
        """Test --locale and --paper overrides."""
        output = tmp_path / "receipt_ar.html"

        result = runner.invoke(
            app,
            ["render", str(receipt_file), "-l", "ar", "-p", "a4", "-o", str(output)],
        )

        assert result.exit_code == 0, result.output
        assert "receipt_a4_ar.html" in result.output
        assert 'dir="rtl"' in output.read_text(encoding="utf-8")

    def test_render_dry_run(self, receipt_file: Path, workdir: Path) -> None:
        """Test that --dry-run previews without writing."""
        result = runner.invoke(app, ["render", str(receipt_file), "--dry-run"])

        assert result.exit_code == 0, result.output
        assert "Receipt #1042" in result.output
        assert not (workdir / ".tallyprint").exists()

    def test_render_json(self, receipt_file: Path, tmp_path: Path) -> None:
        """Test machine-readable render output."""
        output = tmp_path / "receipt.html"

        result = runner.invoke(
            app,
            ["--json", "--quiet", "render", str(receipt_file), "-o", str(output)],
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["title"] == "Receipt 1042"
        assert data["template"] == "receipt_thermal_en.html"
        assert data["source"] == "builtin"
        assert data["delivered"] == "none"
        assert data["location"] == str(output)
        assert data["issues"] == []

    def test_render_with_qr_payload(
        self,
        receipt_file: Path,
        tmp_path: Path,
        qr_payload: str,
    ) -> None:
        """Test embedding a pre-encoded compliance image."""
        payload_file = tmp_path / "qr.txt"
        payload_file.write_text(qr_payload + "\n")
        output = tmp_path / "receipt.html"

        result = runner.invoke(
            app,
            ["render", str(receipt_file), "--qr-payload", str(payload_file), "-o", str(output)],
        )

        assert result.exit_code == 0, result.output
        assert f'src="{qr_payload}"' in output.read_text(encoding="utf-8")

    def test_render_custom_template_with_issues(
        self,
        receipt_file: Path,
        tmp_path: Path,
    ) -> None:
        """Test exit code 2 for a template with unbalanced markers."""
        template = tmp_path / "custom.html"
        template.write_text("{{#each items}}<p>{{name}}</p>{{/each}}{{#notes}}", encoding="utf-8")
        output = tmp_path / "receipt.html"

        result = runner.invoke(
            app,
            ["render", str(receipt_file), "--template", str(template), "-o", str(output)],
        )

        assert result.exit_code == 2, result.output
        assert "<p>Croissant</p>" in output.read_text(encoding="utf-8")

    def test_render_print_to_file_surface(
        self,
        receipt_file: Path,
        headless_config: Path,
        workdir: Path,
    ) -> None:
        """Test --print with a headless configuration."""
        result = runner.invoke(app, ["render", str(receipt_file), "--print"])

        assert result.exit_code == 0, result.output
        assert (workdir / "prints" / "Receipt-1042.html").exists()

    def test_render_print_and_email_conflict(self, receipt_file: Path) -> None:
        """Test that --print and --email are exclusive."""
        result = runner.invoke(
            app, ["render", str(receipt_file), "--print", "--email", "a@example.com"]
        )

        assert result.exit_code == 1

    def test_render_email_without_smtp(self, receipt_file: Path) -> None:
        """Test that emailing without SMTP settings fails."""
        result = runner.invoke(app, ["render", str(receipt_file), "--email", "a@example.com"])

        assert result.exit_code == 1

    def test_render_invalid_kind(self, receipt_file: Path) -> None:
        """Test that an unknown kind fails."""
        result = runner.invoke(app, ["render", str(receipt_file), "--kind", "credit_note"])

        assert result.exit_code == 1

    def test_render_json_document(
        self,
        tmp_path: Path,
        receipt_document: dict[str, Any],
    ) -> None:
        """Test reading a JSON document file and overriding the kind."""
        receipt_document["kind"] = "sales_invoice"
        receipt_document["entity"]["invoiceNumber"] = "INV-9"
        path = tmp_path / "invoice.json"
        path.write_text(json.dumps(receipt_document), encoding="utf-8")
        output = tmp_path / "invoice.html"

        result = runner.invoke(app, ["render", str(path), "-o", str(output)])

        assert result.exit_code == 0, result.output
        assert "Tax Invoice INV-9 (sales_invoice_en.html)" in result.output

    def test_render_non_mapping_document(self, tmp_path: Path) -> None:
        """Test that a document file must hold a mapping."""
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        result = runner.invoke(app, ["render", str(path)])

        assert result.exit_code == 1


class TestValidate:
    """Integration tests for `tallyprint validate`."""

    def test_validate_valid_template(self, tmp_path: Path, custom_receipt_template: str) -> None:
        """Test a valid receipt template."""
        path = tmp_path / "receipt.html"
        path.write_text(custom_receipt_template, encoding="utf-8")

        result = runner.invoke(app, ["validate", str(path)])

        assert result.exit_code == 0
        assert "✅ Template is valid" in result.output

    def test_validate_invalid_template(self, tmp_path: Path) -> None:
        """Test a template with problems."""
        path = tmp_path / "quote.html"
        path.write_text("{{#validUntil}}{{validUntil}}", encoding="utf-8")

        result = runner.invoke(app, ["validate", str(path), "--kind", "quote"])

        assert result.exit_code == 1
        assert "❌ Template has problems" in result.output
        assert "never closed" in result.output
        assert "{{#each items}}" in result.output

    def test_validate_json(self, tmp_path: Path) -> None:
        """Test machine-readable validation output."""
        path = tmp_path / "receipt.html"
        path.write_text("{{/each}}{{#each items}}{{name}}{{/each}}", encoding="utf-8")

        result = runner.invoke(app, ["--json", "--quiet", "validate", str(path)])

        data = json.loads(result.stdout)
        assert result.exit_code == 1
        assert data["valid"] is False
        assert data["issues"][0]["kind"] == "unexpected_close"

    def test_validate_invalid_kind(self, tmp_path: Path, custom_receipt_template: str) -> None:
        """Test that an unknown kind fails."""
        path = tmp_path / "receipt.html"
        path.write_text(custom_receipt_template, encoding="utf-8")

        result = runner.invoke(app, ["validate", str(path), "--kind", "ticket"])

        assert result.exit_code == 1


class TestTemplates:
    """Integration tests for `tallyprint templates`."""

    def test_templates_listing(self) -> None:
        """Test the human-readable listing."""
        result = runner.invoke(app, ["templates"])

        assert result.exit_code == 0
        assert "receipt_thermal_ar.html" in result.output
        assert "quote_en.html" in result.output

    def test_templates_json(self) -> None:
        """Test the JSON listing."""
        result = runner.invoke(app, ["--json", "--quiet", "templates"])

        data = json.loads(result.stdout)
        assert len(data) == 12
        assert {"kind", "locale", "paper", "format", "name"} == set(data[0])


class TestCheck:
    """Integration tests for `tallyprint check`."""

    def test_check_warns_without_smtp(self, headless_config: Path) -> None:
        """Test that missing SMTP is a warning."""
        result = runner.invoke(app, ["check"])

        assert result.exit_code == 2
        assert "Preflight check passed with WARNINGS" in result.output

    def test_check_require_email(self, headless_config: Path) -> None:
        """Test that --require-email makes SMTP mandatory."""
        result = runner.invoke(app, ["check", "--require-email"])

        assert result.exit_code == 1
        assert "Preflight check FAILED" in result.output

    def test_check_json(self, headless_config: Path) -> None:
        """Test machine-readable preflight output."""
        result = runner.invoke(app, ["check", "--json"])

        data = json.loads(result.stdout)
        assert data["success"] is True
        assert any(c["name"] == "smtp" for c in data["checks"])


class TestInit:
    """Integration tests for `tallyprint init`."""

    def test_init_creates_config(self, workdir: Path) -> None:
        """Test that init writes a loadable config."""
        result = runner.invoke(app, ["init"])

        config_file = workdir / ".tallyprint" / "config.yaml"
        assert result.exit_code == 0
        assert config_file.exists()
        assert yaml.safe_load(config_file.read_text(encoding="utf-8"))["locale"]["default"] == "en"

    def test_init_refuses_overwrite(self) -> None:
        """Test that an existing config is kept without --force."""
        runner.invoke(app, ["init"])

        result = runner.invoke(app, ["init"])

        assert result.exit_code == 1

    def test_init_force(self) -> None:
        """Test that --force overwrites."""
        runner.invoke(app, ["init"])

        result = runner.invoke(app, ["init", "--force"])

        assert result.exit_code == 0
