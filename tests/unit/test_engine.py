"""Unit tests for the template engine."""

import logging
from decimal import Decimal

import pytest

from tallyprint.engine import (
    IssueKind,
    TemplateEngine,
    check_template,
    has_items_iteration,
    render,
    render_with_issues,
    template_fields,
)
from tallyprint.engine.rules import qr_image_rule, tax_rate_rule
from tallyprint.engine.values import is_truthy, scalar_text
from tallyprint.models import Record


class TestInterpolation:
    """Tests for scalar markers."""

    def test_hello_scenario(self) -> None:
        """Test the basic interpolation scenario."""
        result = render("Hello {{name}}, you owe {{total}}.", {"name": "Jane", "total": "12.50"})

        assert result == "Hello Jane, you owe 12.50."

    def test_missing_field_left_literal(self) -> None:
        """Test that an absent field leaves its marker unchanged."""
        result = render("Value: {{missingField}}!", {"name": "Jane"})

        assert "{{missingField}}" in result
        assert result == "Value: {{missingField}}!"

    def test_inner_whitespace_accepted(self) -> None:
        """Test markers with whitespace inside the braces."""
        assert render("{{ name }}", {"name": "Jane"}) == "Jane"

    def test_scalar_types(self) -> None:
        """Test string forms of numbers and booleans."""
        record = {"i": 3, "d": Decimal("12.50"), "f": 1.5, "t": True, "n": False}

        result = render("{{i}}|{{d}}|{{f}}|{{t}}|{{n}}", record)

        assert result == "3|12.50|1.5|true|false"

    def test_list_valued_field_left_literal(self) -> None:
        """Test that a scalar marker for a list field is left as-is."""
        assert render("{{items}}", {"items": [{"name": "Tea"}]}) == "{{items}}"

    def test_values_not_rescanned(self) -> None:
        """Test that substituted text containing markers is emitted literally."""
        result = render("{{a}}", {"a": "{{b}}", "b": "x"})

        assert result == "{{b}}"

    def test_none_record(self) -> None:
        """Test rendering against no record at all."""
        assert render("Hi {{name}}", None) == "Hi {{name}}"

    def test_plain_text_passthrough(self) -> None:
        """Test that text without markers is returned unchanged."""
        text = "<p>{ not a marker }</p>"
        assert render(text, {}) == text


class TestConditionalSections:
    """Tests for {{#field}} sections."""

    @pytest.mark.parametrize("value", ["", 0, False, [], Decimal("0")])
    def test_falsy_section_omitted(self, value: object) -> None:
        """Test that falsy values hide the section byte-for-byte."""
        result = render("A{{#flag}}hidden{{/flag}}B", {"flag": value})

        assert result == "AB"

    @pytest.mark.parametrize("value", ["x", 1, True, [{"a": 1}], Decimal("0.01")])
    def test_truthy_section_shown(self, value: object) -> None:
        """Test that truthy values show the section."""
        assert render("{{#flag}}shown{{/flag}}", {"flag": value}) == "shown"

    def test_absent_field_hides_section(self) -> None:
        """Test that an absent field is falsy."""
        assert render("[{{#nothing}}x{{/nothing}}]", {}) == "[]"

    def test_if_alias(self) -> None:
        """Test {{#if field}} as an alias of {{#field}}."""
        template = "{{#if notes}}Note: {{notes}}{{/if}}"

        assert render(template, {"notes": "Extra hot"}) == "Note: Extra hot"
        assert render(template, {"notes": ""}) == ""

    def test_nested_sections(self) -> None:
        """Test sections inside sections."""
        template = "{{#a}}1{{#b}}2{{/b}}3{{/a}}"

        assert render(template, {"a": True, "b": True}) == "123"
        assert render(template, {"a": True, "b": False}) == "13"
        assert render(template, {"a": False, "b": True}) == ""


class TestIteration:
    """Tests for {{#each list}} blocks."""

    def test_items_scenario(self) -> None:
        """Test the guarded line-item iteration scenario."""
        template = "{{#items}}{{#each items}}{{name}} x{{quantity}}{{/each}}{{/items}}"

        assert render(template, {"items": [{"name": "Tea", "quantity": 2}]}) == "Tea x2"
        assert render(template, {"items": []}) == ""

    def test_empty_list_renders_nothing(self) -> None:
        """Test that an empty list contributes nothing regardless of surroundings."""
        result = render("before{{#each items}}<li>{{name}}</li>{{/each}}after", {"items": []})

        assert result == "beforeafter"

    def test_each_over_record(self) -> None:
        """Test iteration over child records of a Record."""
        record = Record.from_dict({"items": [{"name": "Tea"}, {"name": "Coffee"}]})

        assert render("{{#each items}}{{name}};{{/each}}", record) == "Tea;Coffee;"

    def test_index_is_one_based(self) -> None:
        """Test {{@index}} inside an iteration block."""
        record = {"items": [{"name": "Tea"}, {"name": "Coffee"}]}

        result = render("{{#each items}}{{@index}}.{{name}} {{/each}}", record)

        assert result == "1.Tea 2.Coffee "

    def test_index_outside_each_left_literal(self) -> None:
        """Test that {{@index}} outside a block is not resolved."""
        assert render("{{@index}}", {}) == "{{@index}}"

    def test_child_scope_isolated(self) -> None:
        """Test that parent fields are not visible inside the block."""
        record = {"companyName": "Acme", "items": [{"name": "Tea"}]}

        result = render("{{#each items}}{{name}}@{{companyName}}{{/each}}", record)

        assert result == "Tea@{{companyName}}"

    def test_child_sections_use_child_scope(self) -> None:
        """Test that sections inside a block read the child record."""
        record = {"items": [{"name": "Tea", "description": "Mint"}, {"name": "Water", "description": ""}]}

        result = render(
            "{{#each items}}{{name}}{{#description}}({{description}}){{/description}} {{/each}}",
            record,
        )

        assert result == "Tea(Mint) Water "

    def test_absent_list_renders_nothing(self) -> None:
        """Test iteration over an absent or scalar field."""
        assert render("[{{#each items}}x{{/each}}]", {}) == "[]"
        assert render("[{{#each items}}x{{/each}}]", {"items": "Tea"}) == "[]"

    def test_nested_each(self) -> None:
        """Test iteration inside iteration."""
        record = {"groups": [{"label": "A", "rows": [{"v": 1}, {"v": 2}]}]}

        result = render("{{#each groups}}{{label}}:{{#each rows}}{{v}}{{/each}}{{/each}}", record)

        assert result == "A:12"


class TestSectionRules:
    """Tests for the named section rules."""

    def test_qr_section_requires_payload(self) -> None:
        """Test that includeQrImage needs a non-empty payload."""
        template = "{{#includeQrImage}}<img src=\"{{qrImagePayload}}\">{{/includeQrImage}}"

        assert render(template, {"includeQrImage": True, "qrImagePayload": ""}) == ""
        assert render(template, {"includeQrImage": True, "qrImagePayload": "   "}) == ""
        assert render(template, {"includeQrImage": False, "qrImagePayload": "data:x"}) == ""
        assert (
            render(template, {"includeQrImage": True, "qrImagePayload": "data:x"})
            == '<img src="data:x">'
        )

    def test_qr_section_without_payload_field(self) -> None:
        """Test that a missing payload field hides the section."""
        assert render("{{#includeQrImage}}QR{{/includeQrImage}}", {"includeQrImage": True}) == ""

    @pytest.mark.parametrize("rate", ["0", "0.0", "0.00", "", "0%", 0, Decimal("0.00")])
    def test_zero_tax_rate_hidden(self, rate: object) -> None:
        """Test that every spelling of zero hides the tax line."""
        assert render("{{#taxRate}}VAT {{taxRate}}%{{/taxRate}}", {"taxRate": rate}) == ""

    @pytest.mark.parametrize("rate", ["15", "7.5", "exempt", 15])
    def test_nonzero_tax_rate_shown(self, rate: object) -> None:
        """Test that non-zero and non-numeric rates show the tax line."""
        result = render("{{#taxRate}}VAT{{/taxRate}}", {"taxRate": rate})

        assert result == "VAT"

    def test_rule_is_exclusive(self) -> None:
        """Test that the rule decides alone (truthy "0.0" is still hidden)."""
        assert is_truthy("0.0") is True
        assert tax_rate_rule({"taxRate": "0.0"}) is False

    def test_empty_rules_use_truthiness(self) -> None:
        """Test that rules={} falls back to plain truthiness."""
        assert render("{{#taxRate}}VAT{{/taxRate}}", {"taxRate": "0.0"}, rules={}) == "VAT"

    def test_custom_rule(self) -> None:
        """Test a caller-supplied rule."""
        engine = TemplateEngine(rules={"vip": lambda scope: scope.get("points", 0) > 100})

        assert engine.render("{{#vip}}VIP{{/vip}}", {"points": 150}) == "VIP"
        assert engine.render("{{#vip}}VIP{{/vip}}", {"points": 10, "vip": True}) == ""

    def test_failing_rule_hides_section(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that a rule that raises hides its section and logs a warning."""

        def broken(scope: object) -> bool:
            raise RuntimeError("boom")

        engine = TemplateEngine(rules={"x": broken})

        with caplog.at_level(logging.WARNING, logger="tallyprint.engine"):
            result = engine.render("a{{#x}}b{{/x}}c", {"x": True})

        assert result == "ac"
        assert "boom" in caplog.text

    def test_qr_rule_direct(self) -> None:
        """Test the QR predicate on its own."""
        assert qr_image_rule({"includeQrImage": True, "qrImagePayload": "p"}) is True
        assert qr_image_rule({"includeQrImage": True, "qrImagePayload": 5}) is False


class TestSyntaxIssues:
    """Tests for unbalanced markers."""

    def test_unexpected_close_left_literal(self) -> None:
        """Test a close marker without open."""
        result = render_with_issues("a{{/items}}b", {})

        assert result.text == "a{{/items}}b"
        assert len(result.issues) == 1
        assert result.issues[0].kind is IssueKind.UNEXPECTED_CLOSE
        assert result.issues[0].marker == "{{/items}}"

    def test_unclosed_section_keeps_content(self) -> None:
        """Test that an unclosed open stays literal and its content renders in place."""
        result = render_with_issues("{{#flag}}Hello {{name}}", {"name": "Jane", "flag": False})

        assert result.text == "{{#flag}}Hello Jane"
        assert result.issues[0].kind is IssueKind.UNCLOSED_SECTION

    def test_mismatched_close(self) -> None:
        """Test a close that does not match the innermost open."""
        result = render_with_issues("{{#a}}x{{#b}}y{{/a}}", {"a": True, "b": True})

        assert result.text == "x{{#b}}y"
        assert [issue.kind for issue in result.issues] == [IssueKind.UNCLOSED_SECTION]

    def test_issue_location(self) -> None:
        """Test 1-based line and column of an issue."""
        issues = check_template("line one\n  {{/each}}")

        assert issues[0].line == 2
        assert issues[0].column == 3
        assert "line 2, column 3" in issues[0].describe()

    def test_issue_to_dict(self) -> None:
        """Test JSON form of an issue."""
        issue = check_template("{{/x}}")[0]

        assert issue.to_dict() == {
            "kind": "unexpected_close",
            "marker": "{{/x}}",
            "line": 1,
            "column": 1,
        }

    def test_balanced_template_has_no_issues(self) -> None:
        """Test that a balanced template reports nothing."""
        assert check_template("{{#a}}{{#each items}}{{x}}{{/each}}{{/a}}") == []

    def test_render_logs_issues(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that render() logs syntax issues as warnings."""
        with caplog.at_level(logging.WARNING, logger="tallyprint.engine"):
            render("{{/oops}}", {})

        assert "{{/oops}}" in caplog.text


class TestEngineProperties:
    """Tests for determinism and totality."""

    TEMPLATE = (
        "{{companyName}}{{#each items}}[{{name}} {{lineTotal}}]{{/each}}"
        "{{#taxRate}}VAT {{taxRate}}{{/taxRate}} {{total}}"
    )
    RECORD = {
        "companyName": "Acme",
        "items": [{"name": "Tea", "lineTotal": "10.50"}],
        "taxRate": "15",
        "total": "12.08",
    }

    def test_no_markers_left_when_complete(self) -> None:
        """Test that a complete record leaves no marker syntax."""
        result = render(self.TEMPLATE, self.RECORD)

        assert "{{" not in result
        assert "}}" not in result

    def test_render_is_deterministic(self) -> None:
        """Test that rendering twice yields identical output."""
        assert render(self.TEMPLATE, self.RECORD) == render(self.TEMPLATE, self.RECORD)

    def test_record_not_mutated(self) -> None:
        """Test that rendering leaves the record untouched."""
        record = Record.from_dict(self.RECORD)
        before = record.to_dict()

        render(self.TEMPLATE, record)

        assert record.to_dict() == before

    def test_non_string_template(self) -> None:
        """Test that a None template renders as empty text."""
        assert render(None, {}) == ""  # type: ignore[arg-type]


class TestTemplateInspection:
    """Tests for template_fields and has_items_iteration."""

    def test_template_fields_split_by_scope(self) -> None:
        """Test top-level and per-list references."""
        fields = template_fields(
            "{{companyName}}{{#notes}}{{notes}}{{/notes}}"
            "{{#each items}}{{name}}{{@index}}{{/each}}{{#each payments}}{{amount}}{{/each}}"
        )

        assert fields.top == {"companyName", "notes"}
        assert fields.lists == {"items": {"name"}, "payments": {"amount"}}

    def test_has_items_iteration(self) -> None:
        """Test detection of the line-item block."""
        assert has_items_iteration("{{#each items}}{{/each}}")
        assert has_items_iteration("{{ #each items }}{{/each}}")
        assert not has_items_iteration("{{#items}}{{/items}}")
        assert not has_items_iteration("{{#each payments}}{{/each}}")


class TestValues:
    """Tests for value helpers."""

    def test_scalar_text_bool(self) -> None:
        """Test boolean text."""
        assert scalar_text(True) == "true"
        assert scalar_text(False) == "false"

    def test_unknown_type_is_falsy(self) -> None:
        """Test that unsupported values never open a section."""
        assert is_truthy(object()) is False
