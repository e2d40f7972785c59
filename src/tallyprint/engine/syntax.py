"""Template syntax: tokenizer, parser and balance checking.

Three marker forms, all delimited by double braces:

    {{field}}                      scalar reference
    {{#field}}...{{/field}}        conditional section ({{#if field}}...{{/if}} also accepted)
    {{#each list}}...{{/each}}     iteration section ({{@index}} is the 1-based position)

Parsing never fails. A marker that cannot be paired (a close with no open, or an
open that is never closed) becomes literal text and is reported as a
SyntaxIssue; the content it would have enclosed is kept in the enclosing block.
"""

import re
from dataclasses import dataclass, field
from enum import Enum

NAME = r"[A-Za-z_][A-Za-z0-9_]*"

MARKER_RE = re.compile(
    r"\{\{\s*(?:"
    rf"#each\s+(?P<each>{NAME})"
    rf"|#if\s+(?P<if>{NAME})"
    rf"|#\s*(?P<open>{NAME})"
    rf"|/\s*(?P<close>{NAME})"
    rf"|(?P<var>@index|{NAME})"
    r")\s*\}\}"
)

ITEMS_ITERATION_RE = re.compile(r"\{\{\s*#each\s+items\s*\}\}")

INDEX_FIELD = "@index"


class BlockType(Enum):
    """Kind of block opened by a section marker."""

    SECTION = "section"
    IF = "if"
    EACH = "each"


class IssueKind(Enum):
    """Kind of template syntax problem."""

    UNEXPECTED_CLOSE = "unexpected_close"
    UNCLOSED_SECTION = "unclosed_section"


@dataclass(frozen=True)
class SyntaxIssue:
    """Unbalanced marker found while parsing a template.

    Attributes:
        kind: What went wrong
        marker: The literal marker text
        line: 1-based line of the marker
        column: 1-based column of the marker
    """

    kind: IssueKind
    marker: str
    line: int
    column: int

    def describe(self) -> str:
        """Human-readable one-line description."""
        what = (
            "closing marker without matching open"
            if self.kind is IssueKind.UNEXPECTED_CLOSE
            else "section is never closed"
        )
        return f"line {self.line}, column {self.column}: {self.marker} {what}"

    def to_dict(self) -> dict[str, str | int]:
        """Convert to dictionary for JSON output."""
        return {
            "kind": self.kind.value,
            "marker": self.marker,
            "line": self.line,
            "column": self.column,
        }


# =============================================================================
# Syntax tree
# =============================================================================


@dataclass(frozen=True)
class Text:
    """Literal text."""

    text: str


@dataclass(frozen=True)
class Variable:
    """Scalar reference; raw is emitted when the field cannot be resolved."""

    name: str
    raw: str


@dataclass(frozen=True)
class Section:
    """Conditional block rendered once when its field (or rule) is truthy."""

    name: str
    children: tuple["Node", ...]


@dataclass(frozen=True)
class Each:
    """Iteration block rendered once per child record of a list field."""

    name: str
    children: tuple["Node", ...]


Node = Text | Variable | Section | Each


@dataclass
class _Frame:
    block: BlockType
    name: str
    raw: str
    position: int
    children: list[Node] = field(default_factory=list)

    @property
    def close_name(self) -> str:
        if self.block is BlockType.EACH:
            return "each"
        if self.block is BlockType.IF:
            return "if"
        return self.name


@dataclass(frozen=True)
class ParsedTemplate:
    """Result of parsing: the node tree plus any balance problems."""

    nodes: tuple[Node, ...]
    issues: tuple[SyntaxIssue, ...]


def _location(text: str, position: int) -> tuple[int, int]:
    line = text.count("\n", 0, position) + 1
    column = position - (text.rfind("\n", 0, position) + 1) + 1
    return line, column


def _append(children: list[Node], node: Node) -> None:
    # Merge adjacent text so literal fallbacks don't fragment the tree
    if isinstance(node, Text) and children and isinstance(children[-1], Text):
        children[-1] = Text(children[-1].text + node.text)
    else:
        children.append(node)


def parse(text: str) -> ParsedTemplate:
    """Parse template text into a node tree.

    Args:
        text: Template source

    Returns:
        ParsedTemplate with nodes and syntax issues
    """
    if not isinstance(text, str):
        text = "" if text is None else str(text)

    root: list[Node] = []
    stack: list[_Frame] = []
    issues: list[SyntaxIssue] = []

    def current() -> list[Node]:
        return stack[-1].children if stack else root

    def unwind(frame: _Frame) -> None:
        # Unclosed open: keep the marker literally, keep its content in place
        line, column = _location(text, frame.position)
        issues.append(SyntaxIssue(IssueKind.UNCLOSED_SECTION, frame.raw, line, column))
        _append(current(), Text(frame.raw))
        for child in frame.children:
            _append(current(), child)

    cursor = 0
    for match in MARKER_RE.finditer(text):
        if match.start() > cursor:
            _append(current(), Text(text[cursor : match.start()]))
        cursor = match.end()
        raw = match.group(0)

        if match.group("var"):
            _append(current(), Variable(match.group("var"), raw))
        elif match.group("each"):
            stack.append(_Frame(BlockType.EACH, match.group("each"), raw, match.start()))
        elif match.group("if"):
            stack.append(_Frame(BlockType.IF, match.group("if"), raw, match.start()))
        elif match.group("open"):
            stack.append(_Frame(BlockType.SECTION, match.group("open"), raw, match.start()))
        else:
            name = match.group("close")
            depth = next(
                (i for i in range(len(stack) - 1, -1, -1) if stack[i].close_name == name),
                None,
            )
            if depth is None:
                line, column = _location(text, match.start())
                issues.append(SyntaxIssue(IssueKind.UNEXPECTED_CLOSE, raw, line, column))
                _append(current(), Text(raw))
                continue
            while len(stack) - 1 > depth:
                unwind(stack.pop())
            frame = stack.pop()
            block: Node
            if frame.block is BlockType.EACH:
                block = Each(frame.name, tuple(frame.children))
            else:
                block = Section(frame.name, tuple(frame.children))
            _append(current(), block)

    if cursor < len(text):
        _append(current(), Text(text[cursor:]))

    while stack:
        unwind(stack.pop())

    issues.sort(key=lambda issue: (issue.line, issue.column))
    return ParsedTemplate(nodes=tuple(root), issues=tuple(issues))


def check_template(text: str) -> list[SyntaxIssue]:
    """Return the balance problems of a template without rendering it."""
    return list(parse(text).issues)


def has_items_iteration(text: str) -> bool:
    """Return True if the template iterates over the line-item list."""
    return bool(ITEMS_ITERATION_RE.search(text or ""))


# =============================================================================
# Field references
# =============================================================================


@dataclass
class TemplateFields:
    """Field names a template references, split by scope.

    Attributes:
        top: Names resolved against the top-level record
        lists: Child names resolved inside each iteration block, keyed by list name
    """

    top: set[str] = field(default_factory=set)
    lists: dict[str, set[str]] = field(default_factory=dict)


def template_fields(text: str) -> TemplateFields:
    """Collect the fields a template references.

    Args:
        text: Template source

    Returns:
        TemplateFields with top-level and per-list references
    """
    fields = TemplateFields()

    def walk(nodes: tuple[Node, ...], into: set[str]) -> None:
        for node in nodes:
            if isinstance(node, Variable):
                if node.name != INDEX_FIELD:
                    into.add(node.name)
            elif isinstance(node, Section):
                into.add(node.name)
                walk(node.children, into)
            elif isinstance(node, Each):
                walk(node.children, fields.lists.setdefault(node.name, set()))

    walk(parse(text).nodes, fields.top)
    return fields
