"""Shared parser machinery: per-call context, depth guard, token cursor."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from vibe_grammars.ast_nodes import Node, NodeKind, node
from vibe_grammars.errors import (
    DepthExceededError,
    Diagnostic,
    GrammarError,
    ParseSyntaxError,
)
from vibe_grammars.source import Span
from vibe_grammars.tokens import Token, TokenKind

if TYPE_CHECKING:
    from vibe_grammars.markdown import Document

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 100

_TOKEN_NAMES: dict[TokenKind, str] = {
    TokenKind.NEWLINE: "end of line",
    TokenKind.EOF: "end of input",
}


class ParseContext:
    """State owned by a single parse call: diagnostics and nesting depth."""

    def __init__(self, filename: str = "<input>",
                 max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        if max_depth < 1:
            raise ValueError(f"max_depth must be positive, got {max_depth}")
        self.filename = filename
        self.max_depth = max_depth
        self.depth = 0
        self.diagnostics: list[Diagnostic] = []

    def report(self, error: GrammarError) -> None:
        logger.debug("recovering from %s at %s: %s",
                     error.kind.value, error.span, error.message)
        self.diagnostics.append(error.to_diagnostic())

    @contextmanager
    def depth_guard(self, span: Span) -> Iterator[None]:
        """Count one level of nesting; fail fast past ``max_depth``."""
        if self.depth >= self.max_depth:
            raise DepthExceededError(
                f"nesting exceeds the maximum depth of {self.max_depth}", span,
            )
        self.depth += 1
        try:
            yield
        finally:
            self.depth -= 1


def describe(tok: Token) -> str:
    """Human-readable description of a token for error messages."""
    if tok.kind in _TOKEN_NAMES:
        return _TOKEN_NAMES[tok.kind]
    if tok.kind == TokenKind.STRING_LIT:
        return f"string {tok.value!r}"
    return f"{tok.value!r}"


class Parser:
    """Token cursor shared by the type sub-grammar and both grammars."""

    def __init__(self, tokens: list[Token], ctx: ParseContext) -> None:
        self.tokens = [t for t in tokens if t.kind != TokenKind.COMMENT]
        self.pos = 0
        self.ctx = ctx

    # ── Token access ─────────────────────────────────────────────

    def _current(self) -> Token:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return self.tokens[-1]  # EOF

    def _peek(self, offset: int = 0) -> Token:
        idx = self.pos + offset
        if idx < len(self.tokens):
            return self.tokens[idx]
        return self.tokens[-1]

    def _at(self, kind: TokenKind) -> bool:
        return self._current().kind == kind

    def _at_any(self, *kinds: TokenKind) -> bool:
        return self._current().kind in kinds

    def _at_word(self, word: str) -> bool:
        tok = self._current()
        return tok.kind == TokenKind.IDENTIFIER and tok.value == word

    def _advance(self) -> Token:
        tok = self._current()
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return tok

    def _expect(self, kind: TokenKind, what: str) -> Token:
        if self._current().kind == kind:
            return self._advance()
        raise self._error(self._current(), (what,))

    def _skip_newlines(self) -> None:
        while self._at(TokenKind.NEWLINE):
            self._advance()

    def _error(self, tok: Token, expected: tuple[str, ...],
               message: str | None = None) -> ParseSyntaxError:
        if message is None:
            message = f"unexpected {describe(tok)}"
            if expected:
                message += f", expected {' or '.join(expected)}"
        return ParseSyntaxError(message, tok.span, expected)

    def _nested(self):
        return self.ctx.depth_guard(self._current().span)


def source_file_node(document: Document, body: list[Node]) -> Node:
    """Assemble the root node: optional shebang followed by section nodes."""
    children: list[Node] = []
    shebang = document.shebang
    if shebang is not None and document.grammar_name is not None:
        name_col = shebang.value.index(document.grammar_name) + 1
        name_span = Span(shebang.span.file, shebang.line, name_col,
                         shebang.line, name_col + len(document.grammar_name) - 1)
        grammar_name = Node(NodeKind.GRAMMAR_NAME, (), document.grammar_name,
                            None, name_span)
        children.append(node(NodeKind.SHEBANG, grammar_name, span=shebang.span))
    children.extend(body)
    span = Span(document.filename, 1, 1, document.end.end_line, document.end.end_col)
    return node(NodeKind.SOURCE_FILE, *children, span=span)
