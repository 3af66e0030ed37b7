"""Lexers for grammar documents.

Documents are lexed in two layers. :class:`Lexer` classifies each physical
line of a markdown-hosted document (shebang, headings, fences, context
links, comments, plain lines). :class:`CodeLexer` turns section bodies and
fenced code into operator-level tokens using the keyword table of the
grammar that asked for them.
"""

from __future__ import annotations

import re

from vibe_grammars.errors import LexError
from vibe_grammars.source import Span
from vibe_grammars.tokens import (
    NEWLINE_SUPPRESSED_AFTER,
    SINGLE_CHAR_TOKENS,
    TWO_CHAR_OPERATORS,
    Token,
    TokenKind,
)

_HEADING_RE = re.compile(r"^(#{1,6})[ \t]+(\S.*?)\s*$")
_FENCE_RE = re.compile(r"^[ \t]{0,3}(`{3,})(.*)$")
_LINK_RE = re.compile(r"^([ \t]*)-[ \t]+\[([^\]]+)\](.*)$")
_ALLOWED_CONTROL = frozenset("\t\r")

# Token kinds that end a value; a following '/' is division, not a pattern.
_VALUE_TOKENS = frozenset({
    TokenKind.IDENTIFIER,
    TokenKind.NUMBER_LIT,
    TokenKind.STRING_LIT,
    TokenKind.BOOLEAN_LIT,
    TokenKind.PATTERN_LIT,
    TokenKind.RPAREN,
    TokenKind.RBRACKET,
    TokenKind.RBRACE,
})

_ESCAPES = {'n': '\n', 'r': '\r', 't': '\t', '\\': '\\', '"': '"',
            "'": "'", '0': '\0'}


class Lexer:
    """Tokenizes a document at the markdown (line) level."""

    def __init__(self, source: str, filename: str = "<input>") -> None:
        self.source = source
        self.filename = filename
        self.tokens: list[Token] = []
        self._fence: tuple[int, str] | None = None  # (backtick count, info)

    def lex(self) -> list[Token]:
        """Tokenize the entire document and return the token list."""
        lines = self.source.split("\n")
        for index, raw in enumerate(lines, start=1):
            line = raw[:-1] if raw.endswith("\r") else raw
            self._check_characters(line, index)
            if self._fence is not None:
                self._lex_fence_line(line, index)
            else:
                self._lex_line(line, index)

        last = len(lines)
        self._emit(TokenKind.EOF, "", last, len(lines[-1]) + 1, 0)
        return self.tokens

    # ── Helpers ───────────────────────────────────────────────────

    def _emit(self, kind: TokenKind, value: str, line: int, col: int,
              length: int) -> Token:
        span = Span(self.filename, line, col, line, max(col, col + length - 1))
        tok = Token(kind, value, span)
        self.tokens.append(tok)
        return tok

    def _newline(self, line: str, index: int) -> None:
        self._emit(TokenKind.NEWLINE, "\n", index, len(line) + 1, 1)

    def _check_characters(self, line: str, index: int) -> None:
        for col, ch in enumerate(line, start=1):
            if (ord(ch) < 32 and ch not in _ALLOWED_CONTROL) or ord(ch) == 127:
                span = Span(self.filename, index, col, index, col)
                raise LexError(f"unexpected character: {ch!r}", span)

    # ── Line classification ───────────────────────────────────────

    def _lex_line(self, line: str, index: int) -> None:
        stripped = line.strip()
        if not stripped:
            return

        if line.startswith("#!") and index == 1:
            self._emit(TokenKind.SHEBANG, line, index, 1, len(line))
            self._newline(line, index)
            return

        if line.startswith("#"):
            heading = _HEADING_RE.match(line)
            if heading is not None:
                marker, title = heading.group(1), heading.group(2)
                self._emit(TokenKind.HEADING_MARKER, marker, index, 1, len(marker))
                self._emit(TokenKind.TEXT, title, index, heading.start(2) + 1, len(title))
            else:
                value = line.rstrip()
                self._emit(TokenKind.COMMENT, value, index, 1, len(value))
            self._newline(line, index)
            return

        fence = _FENCE_RE.match(line)
        if fence is not None:
            ticks = fence.group(1)
            info = fence.group(2).strip()
            self._fence = (len(ticks), info)
            self._emit(TokenKind.FENCE_MARKER, info, index, fence.start(1) + 1,
                       len(line.rstrip()) - fence.start(1))
            self._newline(line, index)
            return

        link = _LINK_RE.match(line)
        if link is not None:
            self._lex_context_link(line, index, link)
            self._newline(line, index)
            return

        col = len(line) - len(line.lstrip()) + 1
        self._emit(TokenKind.LINE, stripped, index, col, len(stripped))
        self._newline(line, index)

    def _lex_context_link(self, line: str, index: int, link: re.Match[str]) -> None:
        bullet_col = len(link.group(1)) + 1
        self._emit(TokenKind.LIST_BULLET, "-", index, bullet_col, 1)
        open_col = line.index("[", bullet_col - 1) + 1
        self._emit(TokenKind.LINK_OPEN, "[", index, open_col, 1)
        target = link.group(2)
        self._emit(TokenKind.TEXT, target.strip(), index, open_col + 1, len(target))
        close_col = open_col + len(target) + 1
        self._emit(TokenKind.LINK_CLOSE, "]", index, close_col, 1)

        rest = link.group(3)
        description = rest.strip()
        if description.startswith("-"):
            description = description[1:].strip()
        if description:
            desc_col = line.index(description, close_col) + 1
            self._emit(TokenKind.TEXT, description, index, desc_col, len(description))

    def _lex_fence_line(self, line: str, index: int) -> None:
        assert self._fence is not None
        ticks, _info = self._fence
        stripped = line.strip()
        if len(stripped) >= ticks and set(stripped) == {"`"}:
            self._fence = None
            col = len(line) - len(line.lstrip()) + 1
            self._emit(TokenKind.FENCE_MARKER, "", index, col, len(stripped))
            self._newline(line, index)
            return
        self._emit(TokenKind.CODE_LINE, line, index, 1, len(line))


class CodeLexer:
    """Tokenizes section bodies and fenced code at the operator level."""

    def __init__(self, source: str, keywords: dict[str, TokenKind],
                 filename: str = "<input>", line: int = 1, column: int = 1) -> None:
        self.source = source
        self.keywords = keywords
        self.filename = filename
        self.pos = 0
        self.line = line
        self.col = column
        self.bracket_depth = 0
        self.prev_token: Token | None = None
        self.tokens: list[Token] = []

    def lex(self) -> list[Token]:
        """Tokenize the entire source and return the token list."""
        while self.pos < len(self.source):
            self._skip_spaces()
            if self.pos >= len(self.source):
                break
            ch = self.source[self.pos]
            if ch == '\n':
                self._handle_newline()
            elif ch == '/' and self._peek(1) == '/':
                self._lex_line_comment()
            elif ch == '"' and self._peek(1) == '"' and self._peek(2) == '"':
                self._lex_triple_string()
            elif ch in ('"', "'"):
                self._lex_string(ch)
            elif ch == '/' and self._should_start_pattern():
                self._lex_pattern()
            elif ch.isdigit():
                self._lex_number()
            elif ch.isalpha() or ch == '_':
                self._lex_identifier()
            else:
                self._lex_operator_or_punct()

        self._emit(TokenKind.EOF, "", self.line, self.col)
        return self.tokens

    # ── Helpers ───────────────────────────────────────────────────

    def _peek(self, offset: int = 0) -> str:
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return '\0'

    def _advance(self) -> str:
        ch = self.source[self.pos]
        self.pos += 1
        if ch == '\n':
            self.line += 1
            self.col = 1
        else:
            self.col += 1
        return ch

    def _emit(self, kind: TokenKind, value: str, start_line: int, start_col: int) -> Token:
        end_col = self.col - 1 if self.col > 1 else 1
        span = Span(self.filename, start_line, start_col, self.line, end_col)
        tok = Token(kind, value, span)
        self.tokens.append(tok)
        if kind != TokenKind.COMMENT:
            self.prev_token = tok
        return tok

    def _error(self, message: str, line: int, col: int) -> LexError:
        span = Span(self.filename, line, col, line, col)
        return LexError(message, span)

    def _skip_spaces(self) -> None:
        while self.pos < len(self.source) and self.source[self.pos] in (' ', '\t', '\r'):
            self._advance()

    # ── Newlines ─────────────────────────────────────────────────

    def _handle_newline(self) -> None:
        start_line = self.line
        start_col = self.col
        self._advance()

        if self.bracket_depth > 0:
            return
        if self.prev_token is None:
            return
        if self.prev_token.kind in NEWLINE_SUPPRESSED_AFTER:
            return
        # Don't emit duplicate newlines
        if self.prev_token.kind == TokenKind.NEWLINE:
            return

        self._emit(TokenKind.NEWLINE, "\n", start_line, start_col)

    # ── Comments ─────────────────────────────────────────────────

    def _lex_line_comment(self) -> None:
        start_line = self.line
        start_col = self.col
        self._advance()
        self._advance()
        text = []
        while self.pos < len(self.source) and self.source[self.pos] != '\n':
            text.append(self._advance())
        self._emit(TokenKind.COMMENT, ''.join(text).strip(), start_line, start_col)

    # ── Strings ──────────────────────────────────────────────────

    def _lex_triple_string(self) -> None:
        start_line = self.line
        start_col = self.col
        for _ in range(3):
            self._advance()
        text = []
        while self.pos < len(self.source):
            if (self.source[self.pos] == '"'
                    and self._peek(1) == '"'
                    and self._peek(2) == '"'):
                for _ in range(3):
                    self._advance()
                self._emit(TokenKind.STRING_LIT, ''.join(text), start_line, start_col)
                return
            text.append(self._advance())
        raise self._error("unterminated triple-quoted string", start_line, start_col)

    def _lex_string(self, quote: str) -> None:
        start_line = self.line
        start_col = self.col
        self._advance()  # skip opening quote
        text = []
        while self.pos < len(self.source) and self.source[self.pos] != quote:
            if self.source[self.pos] == '\n':
                break
            if self.source[self.pos] == '\\':
                text.append(self._lex_escape_sequence())
            else:
                text.append(self._advance())

        if self.pos >= len(self.source) or self.source[self.pos] != quote:
            raise self._error("unterminated string literal", start_line, start_col)

        self._advance()  # skip closing quote
        self._emit(TokenKind.STRING_LIT, ''.join(text), start_line, start_col)

    def _lex_escape_sequence(self) -> str:
        self._advance()  # skip backslash
        if self.pos >= len(self.source):
            raise self._error("unexpected end of escape sequence", self.line, self.col)
        ch = self._advance()
        if ch in _ESCAPES:
            return _ESCAPES[ch]
        raise self._error(f"unknown escape sequence: \\{ch}", self.line, self.col - 2)

    # ── Patterns ─────────────────────────────────────────────────

    def _should_start_pattern(self) -> bool:
        if self.prev_token is None:
            return True
        return self.prev_token.kind not in _VALUE_TOKENS

    def _lex_pattern(self) -> None:
        start_line = self.line
        start_col = self.col
        self._advance()  # skip opening /
        text = []
        while self.pos < len(self.source) and self.source[self.pos] != '/':
            if self.source[self.pos] == '\\':
                text.append(self._advance())  # backslash
                if self.pos < len(self.source) and self.source[self.pos] != '\n':
                    text.append(self._advance())  # escaped char
            elif self.source[self.pos] == '\n':
                raise self._error("unterminated pattern literal", start_line, start_col)
            else:
                text.append(self._advance())
        if self.pos >= len(self.source):
            raise self._error("unterminated pattern literal", start_line, start_col)
        if not text:
            raise self._error("empty pattern literal", start_line, start_col)
        self._advance()  # skip closing /
        self._emit(TokenKind.PATTERN_LIT, ''.join(text), start_line, start_col)

    # ── Numbers ──────────────────────────────────────────────────

    def _lex_number(self) -> None:
        start_line = self.line
        start_col = self.col
        text = []
        while self.pos < len(self.source) and self.source[self.pos].isdigit():
            text.append(self._advance())

        if self._peek() == '.' and self._peek(1).isdigit():
            text.append(self._advance())  # .
            while self.pos < len(self.source) and self.source[self.pos].isdigit():
                text.append(self._advance())
        self._emit(TokenKind.NUMBER_LIT, ''.join(text), start_line, start_col)

    # ── Identifiers and Keywords ─────────────────────────────────

    def _lex_identifier(self) -> None:
        start_line = self.line
        start_col = self.col
        text = []
        while self.pos < len(self.source) and (
                self.source[self.pos].isalnum() or self.source[self.pos] == '_'):
            text.append(self._advance())
        word = ''.join(text)
        self._emit(self.keywords.get(word, TokenKind.IDENTIFIER), word,
                   start_line, start_col)

    # ── Operators and Punctuation ────────────────────────────────

    def _lex_operator_or_punct(self) -> None:
        start_line = self.line
        start_col = self.col
        ch = self.source[self.pos]

        two = self.source[self.pos:self.pos + 2]
        if two in TWO_CHAR_OPERATORS:
            self._advance()
            self._advance()
            self._emit(TWO_CHAR_OPERATORS[two], two, start_line, start_col)
            return

        kind = SINGLE_CHAR_TOKENS.get(ch)
        if kind is None:
            raise self._error(f"unexpected character: {ch!r}", start_line, start_col)
        self._advance()
        match kind:
            case TokenKind.LPAREN | TokenKind.LBRACKET:
                self.bracket_depth += 1
            case TokenKind.RPAREN | TokenKind.RBRACKET:
                self.bracket_depth = max(0, self.bracket_depth - 1)
        self._emit(kind, ch, start_line, start_col)


def tokenize(text: str, filename: str = "<input>") -> list[Token]:
    """Lex a whole document at the markdown level."""
    return Lexer(text, filename).lex()


def tokenize_code(text: str, keywords: dict[str, TokenKind],
                  filename: str = "<input>", line: int = 1,
                  column: int = 1) -> list[Token]:
    """Lex code or section-body text starting at the given position."""
    return CodeLexer(text, keywords, filename, line, column).lex()
