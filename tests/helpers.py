"""Shared test helpers for the vibe-grammars test suite."""

from __future__ import annotations

from vibe_grammars.ast_nodes import Node
from vibe_grammars.driver import ParseResult, parse_document, parse_type_specification


def parse(source: str, grammar: str | None = None, **kwargs) -> ParseResult:
    return parse_document(source, grammar, filename="<test>", **kwargs)


def parse_ok(source: str, grammar: str | None = None, **kwargs) -> Node:
    """Parse source, asserting success. Returns the tree."""
    result = parse(source, grammar, **kwargs)
    assert result.success, f"Unexpected diagnostics: {[str(d) for d in result.diagnostics]}"
    assert result.tree is not None
    return result.tree


def sexp(source: str, grammar: str | None = None) -> str:
    """Parse source and render the tree as a one-line s-expression."""
    return parse_ok(source, grammar).to_sexp()


def type_sexp(text: str) -> str:
    result = parse_type_specification(text)
    assert result.success, f"Unexpected diagnostics: {[str(d) for d in result.diagnostics]}"
    return result.tree.to_sexp()


def diagnostic_kinds(result: ParseResult) -> list[str]:
    return [d.kind.value for d in result.diagnostics]


def pseudo(code: str) -> str:
    """Wrap code in a pseudo-kernel document with one pseudo fence."""
    return f"#!/grammars/pseudo-kernel parse\n\n```pseudo\n{code}\n```\n"


def statements(code: str) -> str:
    """Parse a pseudo fence and render its statements without the wrapper nodes."""
    tree = parse_ok(pseudo(code))
    block = tree.children[-1]
    return " ".join(s.to_sexp() for s in block.children)
