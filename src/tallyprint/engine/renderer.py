"""Template rendering.

Renders a parsed template against a Record (or any mapping of the same shape).
Rendering is total: every input produces text, and problems are reported as
SyntaxIssue values and log warnings instead of exceptions.

Resolution:
- {{#each list}} blocks render their body once per child record, with only that
  child's fields in scope.
- {{#name}} sections render their body when the section rule for name (if any)
  or the truthiness of name in the current scope says so.
- {{name}} scalars are replaced by the field's text; absent or list-valued
  fields leave the marker as-is.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from tallyprint.engine.rules import DEFAULT_SECTION_RULES, SectionRule
from tallyprint.engine.syntax import (
    INDEX_FIELD,
    Each,
    Node,
    Section,
    SyntaxIssue,
    Text,
    Variable,
    parse,
)
from tallyprint.engine.values import is_scalar, is_truthy, scalar_text

logger = logging.getLogger(__name__)

_EMPTY_SCOPE: Mapping[str, Any] = {}


@dataclass(frozen=True)
class RenderResult:
    """Rendered text plus the syntax issues found while parsing.

    Attributes:
        text: Rendered output
        issues: Unbalanced markers, in source order
    """

    text: str
    issues: tuple[SyntaxIssue, ...] = ()

    @property
    def has_issues(self) -> bool:
        """Return True if the template had unbalanced markers."""
        return bool(self.issues)


class TemplateEngine:
    """Renders templates with a fixed set of section rules.

    Usage:
        engine = TemplateEngine()
        engine.render("Hello {{name}}", {"name": "Jane"})  # "Hello Jane"

    Attributes:
        rules: Section name to predicate; sections without a rule use truthiness
    """

    def __init__(self, rules: Mapping[str, SectionRule] | None = None) -> None:
        """Initialize engine.

        Args:
            rules: Section rules (default: DEFAULT_SECTION_RULES). Pass {} for
                plain truthiness everywhere.
        """
        self.rules: Mapping[str, SectionRule] = (
            DEFAULT_SECTION_RULES if rules is None else rules
        )

    def render_with_issues(self, template: str, record: Mapping[str, Any] | None) -> RenderResult:
        """Render a template and return the syntax issues alongside the text.

        Args:
            template: Template source
            record: Top-level scope

        Returns:
            RenderResult with rendered text and issues
        """
        parsed = parse(template)
        scope = record if isinstance(record, Mapping) else _EMPTY_SCOPE
        parts: list[str] = []
        self._render_nodes(parsed.nodes, scope, None, parts)
        return RenderResult(text="".join(parts), issues=parsed.issues)

    def render(self, template: str, record: Mapping[str, Any] | None) -> str:
        """Render a template, logging any syntax issues as warnings.

        Args:
            template: Template source
            record: Top-level scope

        Returns:
            Rendered text
        """
        result = self.render_with_issues(template, record)
        for issue in result.issues:
            logger.warning(
                "Template syntax issue at %s",
                issue.describe(),
                extra={"extra_data": issue.to_dict()},
            )
        return result.text

    def _render_nodes(
        self,
        nodes: tuple[Node, ...],
        scope: Mapping[str, Any],
        index: int | None,
        out: list[str],
    ) -> None:
        for node in nodes:
            if isinstance(node, Text):
                out.append(node.text)
            elif isinstance(node, Variable):
                out.append(self._resolve_variable(node, scope, index))
            elif isinstance(node, Section):
                if self._section_visible(node.name, scope):
                    self._render_nodes(node.children, scope, index, out)
            elif isinstance(node, Each):
                children = scope.get(node.name)
                if not isinstance(children, (list, tuple)):
                    continue
                for position, child in enumerate(children, start=1):
                    if isinstance(child, Mapping):
                        self._render_nodes(node.children, child, position, out)

    def _resolve_variable(
        self,
        node: Variable,
        scope: Mapping[str, Any],
        index: int | None,
    ) -> str:
        if node.name == INDEX_FIELD:
            return str(index) if index is not None else node.raw
        value = scope.get(node.name)
        if value is None or not is_scalar(value):
            return node.raw
        return scalar_text(value)

    def _section_visible(self, name: str, scope: Mapping[str, Any]) -> bool:
        rule = self.rules.get(name)
        if rule is None:
            return is_truthy(scope.get(name))
        try:
            return bool(rule(scope))
        except Exception as e:
            logger.warning("Section rule for %s failed, hiding section: %s", name, e)
            return False


_default_engine = TemplateEngine()


def render(
    template: str,
    record: Mapping[str, Any] | None,
    rules: Mapping[str, SectionRule] | None = None,
) -> str:
    """Render a template against a record.

    Args:
        template: Template source
        record: Top-level scope
        rules: Section rules (default: DEFAULT_SECTION_RULES)

    Returns:
        Rendered text
    """
    engine = _default_engine if rules is None else TemplateEngine(rules)
    return engine.render(template, record)


def render_with_issues(
    template: str,
    record: Mapping[str, Any] | None,
    rules: Mapping[str, SectionRule] | None = None,
) -> RenderResult:
    """Render a template and return its syntax issues without logging them."""
    engine = _default_engine if rules is None else TemplateEngine(rules)
    return engine.render_with_issues(template, record)
