"""Token kinds and token representation for the grammar lexer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vibe_grammars.source import Span


class TokenKind(Enum):
    # Markdown structure (document mode)
    SHEBANG = auto()
    HEADING_MARKER = auto()
    TEXT = auto()
    FENCE_MARKER = auto()
    CODE_LINE = auto()
    LIST_BULLET = auto()
    LINK_OPEN = auto()
    LINK_CLOSE = auto()
    LINE = auto()

    # Keywords (code mode, per grammar)
    FN = auto()
    LET = auto()
    IF = auto()
    ELSE = auto()
    RETURN = auto()
    WITH = auto()
    RETURNING = auto()
    IN = auto()
    MATCHES = auto()

    # Literals
    NUMBER_LIT = auto()
    STRING_LIT = auto()
    BOOLEAN_LIT = auto()
    PATTERN_LIT = auto()

    # Operators
    ARROW = auto()
    RESULT_ARROW = auto()
    IFF = auto()
    PIPE_ARROW = auto()
    EQUAL = auto()
    NOT_EQUAL = auto()
    LESS = auto()
    GREATER = auto()
    LESS_EQUAL = auto()
    GREATER_EQUAL = auto()
    AND = auto()
    OR = auto()
    BANG = auto()
    ASSIGN = auto()
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    SLASH = auto()
    PERCENT = auto()
    DOT = auto()
    DOT_DOT = auto()
    DOUBLE_COLON = auto()

    # Punctuation
    LPAREN = auto()
    RPAREN = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    LBRACE = auto()
    RBRACE = auto()
    COMMA = auto()
    COLON = auto()
    SEMICOLON = auto()
    PIPE = auto()

    # Comments
    COMMENT = auto()

    # Identifiers
    IDENTIFIER = auto()

    # Special
    NEWLINE = auto()
    EOF = auto()


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: str
    span: Span

    @property
    def line(self) -> int:
        return self.span.start_line

    @property
    def column(self) -> int:
        return self.span.start_col


SPECS_KEYWORDS: dict[str, TokenKind] = {
    "WITH": TokenKind.WITH,
    "RETURNING": TokenKind.RETURNING,
    "IN": TokenKind.IN,
    "MATCHES": TokenKind.MATCHES,
    "true": TokenKind.BOOLEAN_LIT,
    "false": TokenKind.BOOLEAN_LIT,
}

PSEUDO_KERNEL_KEYWORDS: dict[str, TokenKind] = {
    "fn": TokenKind.FN,
    "let": TokenKind.LET,
    "if": TokenKind.IF,
    "else": TokenKind.ELSE,
    "return": TokenKind.RETURN,
    "true": TokenKind.BOOLEAN_LIT,
    "false": TokenKind.BOOLEAN_LIT,
}

# Two-character operators, tried before single characters.
TWO_CHAR_OPERATORS: dict[str, TokenKind] = {
    "->": TokenKind.ARROW,
    "|>": TokenKind.PIPE_ARROW,
    "==": TokenKind.EQUAL,
    "!=": TokenKind.NOT_EQUAL,
    "<=": TokenKind.LESS_EQUAL,
    ">=": TokenKind.GREATER_EQUAL,
    "&&": TokenKind.AND,
    "||": TokenKind.OR,
    "..": TokenKind.DOT_DOT,
    "::": TokenKind.DOUBLE_COLON,
}

SINGLE_CHAR_TOKENS: dict[str, TokenKind] = {
    "→": TokenKind.RESULT_ARROW,
    "⟺": TokenKind.IFF,
    "<": TokenKind.LESS,
    ">": TokenKind.GREATER,
    "!": TokenKind.BANG,
    "=": TokenKind.ASSIGN,
    "+": TokenKind.PLUS,
    "-": TokenKind.MINUS,
    "*": TokenKind.STAR,
    "/": TokenKind.SLASH,
    "%": TokenKind.PERCENT,
    ".": TokenKind.DOT,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "[": TokenKind.LBRACKET,
    "]": TokenKind.RBRACKET,
    "{": TokenKind.LBRACE,
    "}": TokenKind.RBRACE,
    ",": TokenKind.COMMA,
    ":": TokenKind.COLON,
    ";": TokenKind.SEMICOLON,
    "|": TokenKind.PIPE,
}

NEWLINE_SUPPRESSED_AFTER: frozenset[TokenKind] = frozenset({
    TokenKind.COMMA,
    TokenKind.PLUS,
    TokenKind.MINUS,
    TokenKind.STAR,
    TokenKind.SLASH,
    TokenKind.PERCENT,
    TokenKind.EQUAL,
    TokenKind.NOT_EQUAL,
    TokenKind.LESS_EQUAL,
    TokenKind.GREATER_EQUAL,
    TokenKind.AND,
    TokenKind.OR,
    TokenKind.PIPE_ARROW,
    TokenKind.ARROW,
    TokenKind.RESULT_ARROW,
    TokenKind.IFF,
    TokenKind.PIPE,
    TokenKind.LPAREN,
    TokenKind.LBRACKET,
    TokenKind.ASSIGN,
    TokenKind.DOT,
    TokenKind.DOT_DOT,
    TokenKind.DOUBLE_COLON,
})
