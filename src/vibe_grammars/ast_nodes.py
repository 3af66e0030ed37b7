"""AST node definitions shared by every grammar.

Nodes are a single tagged variant: a :class:`NodeKind` discriminant plus an
ordered tuple of children. Child order is fixed by the grammar rule that
built the node; leaves carry the text of the token they came from.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum

from vibe_grammars.source import Span
from vibe_grammars.tokens import Token


class NodeKind(Enum):
    # ── Shared ────────────────────────────────────────────────────
    SOURCE_FILE = "source_file"
    SHEBANG = "shebang"
    GRAMMAR_NAME = "grammar_name"
    IDENTIFIER = "identifier"

    # ── Type expressions ─────────────────────────────────────────
    TYPE_SPECIFICATION = "type_specification"
    PRIMITIVE_TYPE = "primitive_type"
    OBJECT_TYPE = "object_type"
    PROPERTY_TYPE = "property_type"
    ARRAY_TYPE = "array_type"
    UNION_TYPE = "union_type"
    GENERIC_TYPE = "generic_type"

    # ── Specs sections ───────────────────────────────────────────
    FEATURE_SECTION = "feature_section"
    FEATURE_NAME = "feature_name"
    INTENT_SECTION = "intent_section"
    INTENT_DECLARATION = "intent_declaration"
    ACTION_VERB = "action_verb"
    SUBJECT = "subject"
    PARAMETERS = "parameters"
    RETURN_TYPE = "return_type"
    INPUTS_SECTION = "inputs_section"
    INPUT_SPEC = "input_spec"
    OUTPUTS_SECTION = "outputs_section"
    OUTPUT_SPEC = "output_spec"
    ERROR_TYPES = "error_types"
    EXAMPLES_SECTION = "examples_section"
    EXAMPLE_SPEC = "example_spec"
    ARGUMENT = "argument"
    OBJECT_LITERAL = "object_literal"
    PROPERTY_ASSIGNMENT = "property_assignment"
    EXPECTED_RESULT = "expected_result"
    ERROR_RESULT = "error_result"
    CONSTRAINTS_SECTION = "constraints_section"
    CONSTRAINT_SPEC = "constraint_spec"
    COMPARISON = "comparison"
    COMPARISON_OPERATOR = "comparison_operator"
    RANGE_CONSTRAINT = "range_constraint"
    RANGE = "range"
    FORMAT_CONSTRAINT = "format_constraint"
    PATTERN = "pattern"
    INVARIANTS_SECTION = "invariants_section"
    INVARIANT_SPEC = "invariant_spec"
    PROPERTY_ACCESS = "property_access"
    FUNCTION_CALL = "function_call"
    VALUE = "value"
    STRING_LITERAL = "string_literal"
    NUMBER = "number"
    BOOLEAN_LITERAL = "boolean_literal"

    # ── Pseudo-kernel markdown ───────────────────────────────────
    MARKDOWN_HEADER = "markdown_header"
    PARAGRAPH = "paragraph"
    CONTEXT_LINK = "context_link"
    LINK_TARGET = "link_target"
    LINK_DESCRIPTION = "link_description"
    PSEUDO_CODE_BLOCK = "pseudo_code_block"
    CODE_BLOCK = "code_block"
    LANGUAGE_IDENTIFIER = "language_identifier"
    CODE_LINE = "code_line"
    MATH_BLOCK = "math_block"
    LATEX_LINE = "latex_line"

    # ── Pseudo-kernel statements ─────────────────────────────────
    FUNCTION_DEFINITION = "function_definition"
    PARAMETER_LIST = "parameter_list"
    PARAMETER = "parameter"
    BLOCK = "block"
    LET_BINDING = "let_binding"
    ASSIGNMENT = "assignment"
    IF_STATEMENT = "if_statement"
    RETURN_STATEMENT = "return_statement"
    SYSTEM_FUNCTION_CALL = "system_function_call"
    EXPRESSION_STATEMENT = "expression_statement"

    # ── Pseudo-kernel expressions ────────────────────────────────
    ARGUMENT_LIST = "argument_list"
    METHOD_CALL = "method_call"
    SCOPED_IDENTIFIER = "scoped_identifier"
    OBJECT_PROPERTY = "object_property"
    ARRAY_LITERAL = "array_literal"
    RANGE_EXPRESSION = "range_expression"
    BINARY_EXPRESSION = "binary_expression"
    PIPE_EXPRESSION = "pipe_expression"
    UNARY_EXPRESSION = "unary_expression"
    BOOLEAN = "boolean"


@dataclass(frozen=True)
class Node:
    """A tagged AST node. Equality is structural and ignores spans."""

    kind: NodeKind
    children: tuple[Node, ...] = ()
    text: str | None = None
    field_name: str | None = None
    span: Span | None = field(default=None, compare=False, repr=False)

    @property
    def type(self) -> str:
        return self.kind.value

    def child(self, field_name: str) -> Node | None:
        """Return the child stored under *field_name*, if any."""
        for c in self.children:
            if c.field_name == field_name:
                return c
        return None

    def children_of(self, kind: NodeKind) -> list[Node]:
        return [c for c in self.children if c.kind == kind]

    def with_field(self, name: str) -> Node:
        return dataclasses.replace(self, field_name=name)

    def walk(self) -> Iterator[Node]:
        """Yield this node and every descendant in pre-order."""
        yield self
        for c in self.children:
            yield from c.walk()

    def to_sexp(self, *, fields: bool = False, text: bool = False) -> str:
        """Render as a one-line parenthesized s-expression."""
        parts = [self.kind.value]
        if text and self.text is not None:
            parts.append(quote(self.text))
        for c in self.children:
            rendered = c.to_sexp(fields=fields, text=text)
            if fields and c.field_name:
                rendered = f"{c.field_name}: {rendered}"
            parts.append(rendered)
        return f"({' '.join(parts)})"

    def pretty(self, *, fields: bool = False, text: bool = False,
               indent: str = "  ") -> str:
        """Render as an indented multi-line s-expression."""
        return "\n".join(self._pretty_lines(0, fields, text, indent, None))

    def _pretty_lines(self, depth: int, fields: bool, text: bool,
                      indent: str, prefix: str | None) -> list[str]:
        head = f"({self.kind.value}"
        if text and self.text is not None:
            head += f" {quote(self.text)}"
        if prefix:
            head = f"{prefix}: {head}"
        pad = indent * depth
        if not self.children:
            return [f"{pad}{head})"]
        lines = [f"{pad}{head}"]
        for c in self.children:
            lines.extend(c._pretty_lines(
                depth + 1, fields, text, indent,
                c.field_name if fields else None,
            ))
        lines[-1] += ")"
        return lines


def quote(text: str) -> str:
    """Quote literal text for s-expression output."""
    escaped = (text.replace("\\", "\\\\").replace('"', '\\"')
               .replace("\n", "\\n").replace("\t", "\\t"))
    return f'"{escaped}"'


def leaf(kind: NodeKind, tok: Token, text: str | None = None) -> Node:
    """Build a leaf node carrying a token's text."""
    return Node(kind, (), tok.value if text is None else text, None, tok.span)


def node(kind: NodeKind, *children: Node, text: str | None = None,
         span: Span | None = None) -> Node:
    """Build an internal node, deriving its span from its children."""
    if span is None:
        spans = [c.span for c in children if c.span is not None]
        if spans:
            span = spans[0].to(spans[-1])
    return Node(kind, tuple(children), text, None, span)
