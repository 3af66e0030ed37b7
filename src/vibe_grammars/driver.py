"""Public parse entry points.

``parse_document`` runs the whole pipeline: document lexing, the markdown
structural layer, grammar selection and the selected grammar's entry rule.
It never raises for malformed input; every outcome is a :class:`ParseResult`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from vibe_grammars.ast_nodes import Node
from vibe_grammars.errors import (
    DepthExceededError,
    Diagnostic,
    DocumentError,
    GrammarError,
    GrammarSelectionError,
    Severity,
)
from vibe_grammars.lexer import tokenize, tokenize_code
from vibe_grammars.markdown import SHEBANG_RE, MarkdownLayer
from vibe_grammars.parser import DEFAULT_MAX_DEPTH, ParseContext
from vibe_grammars.registry import REGISTRY, GrammarRegistry
from vibe_grammars.source import Span
from vibe_grammars.type_spec import TypeSpecParser

logger = logging.getLogger(__name__)


@dataclass
class ParseResult:
    tree: Node | None
    diagnostics: list[Diagnostic] = field(default_factory=list)
    grammar: str | None = None

    @property
    def success(self) -> bool:
        return self.tree is not None and not any(
            d.severity == Severity.ERROR for d in self.diagnostics
        )

    def raise_for_errors(self) -> Node:
        """Return the tree, or raise :class:`DocumentError` if parsing failed."""
        if not self.success:
            raise DocumentError(self.diagnostics)
        assert self.tree is not None
        return self.tree


def _invalid_depth(filename: str, max_depth: int) -> ParseResult:
    exc = DepthExceededError(f"max_depth must be positive, got {max_depth}",
                             Span(filename, 1, 1, 1, 1))
    return ParseResult(None, [exc.to_diagnostic()])


def parse_document(text: str, default_grammar: str | None = None, *,
                   filename: str = "<input>",
                   max_depth: int = DEFAULT_MAX_DEPTH,
                   registry: GrammarRegistry | None = None) -> ParseResult:
    """Parse *text* with the grammar named by its shebang or *default_grammar*."""
    if registry is None:
        registry = REGISTRY
    if max_depth < 1:
        return _invalid_depth(filename, max_depth)
    ctx = ParseContext(filename, max_depth)
    grammar_name: str | None = None

    try:
        tokens = tokenize(text, filename)
        document = MarkdownLayer(tokens, ctx).run()

        grammar_name = document.grammar_name or default_grammar
        if grammar_name is None:
            raise GrammarSelectionError(
                "no grammar selected: add a shebang or pass a default grammar",
                Span(filename, 1, 1, 1, 1),
                ("#!/grammars/<name> parse",),
            )
        span = document.shebang.span if document.shebang is not None else None
        definition = registry.resolve(grammar_name, span)
        logger.debug("parsing %s with grammar %r", filename, definition.name)

        tree = definition.entry_rule(document, ctx)
    except GrammarError as exc:
        return ParseResult(None, ctx.diagnostics + [exc.to_diagnostic()], grammar_name)
    except RecursionError:
        exc = DepthExceededError("nesting exceeds the interpreter recursion limit",
                                 Span(filename, 1, 1, 1, 1))
        return ParseResult(None, ctx.diagnostics + [exc.to_diagnostic()], grammar_name)

    return ParseResult(tree, ctx.diagnostics, grammar_name)


def parse_type_specification(text: str, *, filename: str = "<input>",
                             max_depth: int = DEFAULT_MAX_DEPTH) -> ParseResult:
    """Parse a standalone type expression such as ``string | number[]``."""
    if max_depth < 1:
        return _invalid_depth(filename, max_depth)
    ctx = ParseContext(filename, max_depth)
    try:
        tokens = tokenize_code(text, {}, filename)
        tree = TypeSpecParser(tokens, ctx).parse_complete_type()
    except GrammarError as exc:
        return ParseResult(None, [exc.to_diagnostic()])
    except RecursionError:
        exc = DepthExceededError("nesting exceeds the interpreter recursion limit",
                                 Span(filename, 1, 1, 1, 1))
        return ParseResult(None, [exc.to_diagnostic()])
    return ParseResult(tree)


def detect_grammar(text: str) -> str | None:
    """Return the grammar named by the shebang of *text*, if it has a valid one."""
    first_line = text.split("\n", 1)[0].removesuffix("\r")
    match = SHEBANG_RE.match(first_line)
    return match.group(1) if match else None
