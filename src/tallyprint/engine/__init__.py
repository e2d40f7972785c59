"""Mustache-style template engine used for every printed and emailed document.

The engine is pure: no I/O, no shared mutable state, and it never raises.
"""

from tallyprint.engine.renderer import RenderResult, TemplateEngine, render, render_with_issues
from tallyprint.engine.rules import (
    DEFAULT_SECTION_RULES,
    QR_PAYLOAD_FIELD,
    QR_SECTION,
    TAX_RATE_SECTION,
    SectionRule,
)
from tallyprint.engine.syntax import (
    IssueKind,
    SyntaxIssue,
    TemplateFields,
    check_template,
    has_items_iteration,
    template_fields,
)

__all__ = [
    "render",
    "render_with_issues",
    "RenderResult",
    "TemplateEngine",
    "SectionRule",
    "DEFAULT_SECTION_RULES",
    "QR_SECTION",
    "QR_PAYLOAD_FIELD",
    "TAX_RATE_SECTION",
    "SyntaxIssue",
    "IssueKind",
    "TemplateFields",
    "check_template",
    "has_items_iteration",
    "template_fields",
]
