"""Markdown structural layer.

Turns the document-level token stream into a :class:`Document`: the
validated shebang plus a list of heading-delimited :class:`Section`s whose
items are text blocks, fenced blocks and context links. Grammars walk the
sections with :func:`walk_sections`, which applies section-level recovery.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Union

from vibe_grammars.ast_nodes import Node
from vibe_grammars.errors import (
    RECOVERABLE_ERRORS,
    GrammarError,
    GrammarSelectionError,
    StructuralError,
)
from vibe_grammars.parser import ParseContext
from vibe_grammars.source import Span
from vibe_grammars.tokens import Token, TokenKind

logger = logging.getLogger(__name__)

SHEBANG_RE = re.compile(r"^#!/grammars/([a-z][a-z0-9-]*) parse$")


class State(Enum):
    START = auto()
    AWAITING_SHEBANG = auto()
    IN_SECTION = auto()
    IN_FENCED_BLOCK = auto()
    END = auto()


@dataclass
class Heading:
    marker: Token
    title: Token

    @property
    def level(self) -> int:
        return len(self.marker.value)

    @property
    def span(self) -> Span:
        return self.marker.span.to(self.title.span)


@dataclass
class TextBlock:
    """Consecutive non-blank lines of prose or section body."""

    lines: list[Token]

    @property
    def text(self) -> str:
        return "\n".join(t.value for t in self.lines)

    @property
    def span(self) -> Span:
        return self.lines[0].span.to(self.lines[-1].span)


@dataclass
class FencedBlock:
    opener: Token
    lines: list[Token] = field(default_factory=list)
    closer: Token | None = None

    @property
    def info(self) -> str:
        return self.opener.value

    @property
    def language(self) -> str:
        words = self.info.split()
        return words[0] if words else ""

    @property
    def text(self) -> str:
        return "\n".join(t.value for t in self.lines)

    @property
    def first_line(self) -> int:
        if self.lines:
            return self.lines[0].line
        return self.opener.line + 1

    @property
    def span(self) -> Span:
        end = self.closer or (self.lines[-1] if self.lines else self.opener)
        return self.opener.span.to(end.span)


@dataclass
class ContextLink:
    bullet: Token
    target: Token
    description: Token | None = None

    @property
    def span(self) -> Span:
        end = self.description or self.target
        return self.bullet.span.to(end.span)


Item = Union[TextBlock, FencedBlock, ContextLink]


@dataclass
class Section:
    """A heading and everything up to the next heading.

    The preamble (content before the first heading) has no heading and
    level 0.
    """

    heading: Heading | None
    items: list[Item] = field(default_factory=list)
    error: GrammarError | None = None

    @property
    def level(self) -> int:
        return self.heading.level if self.heading is not None else 0

    @property
    def title(self) -> str:
        return self.heading.title.value if self.heading is not None else ""


@dataclass
class Document:
    filename: str
    tokens: list[Token]
    shebang: Token | None
    grammar_name: str | None
    sections: list[Section]

    @property
    def end(self) -> Span:
        return self.tokens[-1].span


class MarkdownLayer:
    """State machine over heading-delimited regions of a document."""

    def __init__(self, tokens: list[Token], ctx: ParseContext) -> None:
        self.tokens = tokens
        self.ctx = ctx
        self.pos = 0
        self.state = State.START
        self.shebang: Token | None = None
        self.grammar_name: str | None = None
        self.sections: list[Section] = [Section(None)]
        self._fence: FencedBlock | None = None

    def run(self) -> Document:
        while self.state != State.END:
            match self.state:
                case State.START:
                    self.state = State.AWAITING_SHEBANG
                case State.AWAITING_SHEBANG:
                    self._read_shebang()
                case State.IN_SECTION:
                    self._step_section()
                case State.IN_FENCED_BLOCK:
                    self._step_fence()

        sections = self.sections
        if sections[0].heading is None and not sections[0].items:
            sections = sections[1:]
        return Document(self.ctx.filename, self.tokens, self.shebang,
                        self.grammar_name, sections)

    # ── Token access ─────────────────────────────────────────────

    def _current(self) -> Token:
        return self.tokens[min(self.pos, len(self.tokens) - 1)]

    def _advance(self) -> Token:
        tok = self._current()
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return tok

    def _expect(self, kind: TokenKind) -> Token:
        tok = self._advance()
        if tok.kind != kind:
            raise StructuralError(
                f"malformed markdown: expected {kind.name}, got {tok.kind.name}",
                tok.span,
            )
        return tok

    # ── States ───────────────────────────────────────────────────

    def _read_shebang(self) -> None:
        tok = self._current()
        if tok.kind == TokenKind.SHEBANG:
            self._advance()
            match = SHEBANG_RE.match(tok.value)
            if match is None:
                raise GrammarSelectionError(
                    f"malformed shebang directive {tok.value!r}",
                    tok.span,
                    ("#!/grammars/<name> parse",),
                )
            self.shebang = tok
            self.grammar_name = match.group(1)
        self.state = State.IN_SECTION

    def _step_section(self) -> None:
        tok = self._advance()
        section = self.sections[-1]

        match tok.kind:
            case TokenKind.EOF:
                self.state = State.END
            case TokenKind.NEWLINE | TokenKind.COMMENT:
                pass
            case TokenKind.HEADING_MARKER:
                title = self._expect(TokenKind.TEXT)
                self.sections.append(Section(Heading(tok, title)))
            case TokenKind.FENCE_MARKER:
                self._fence = FencedBlock(tok)
                section.items.append(self._fence)
                self.state = State.IN_FENCED_BLOCK
            case TokenKind.LINE:
                last = section.items[-1] if section.items else None
                if isinstance(last, TextBlock) and last.lines[-1].line == tok.line - 1:
                    last.lines.append(tok)
                else:
                    section.items.append(TextBlock([tok]))
            case TokenKind.LIST_BULLET:
                self._expect(TokenKind.LINK_OPEN)
                target = self._expect(TokenKind.TEXT)
                self._expect(TokenKind.LINK_CLOSE)
                description = None
                if self._current().kind == TokenKind.TEXT:
                    description = self._advance()
                section.items.append(ContextLink(tok, target, description))
            case _:
                raise StructuralError(f"unexpected {tok.kind.name} token", tok.span)

    def _step_fence(self) -> None:
        assert self._fence is not None
        tok = self._advance()

        match tok.kind:
            case TokenKind.CODE_LINE:
                self._fence.lines.append(tok)
            case TokenKind.NEWLINE:
                pass
            case TokenKind.FENCE_MARKER:
                self._fence.closer = tok
                self._fence = None
                self.state = State.IN_SECTION
            case TokenKind.EOF:
                section = self.sections[-1]
                if section.error is None:
                    section.error = StructuralError(
                        "unterminated fenced block", self._fence.opener.span,
                        ("closing '```'",),
                    )
                self.state = State.END
            case _:
                raise StructuralError(f"unexpected {tok.kind.name} token", tok.span)


def next_sibling(sections: list[Section], index: int,
                 resume: Callable[[Section], bool] | None = None) -> int:
    """Index of the next section at the same or shallower heading level.

    Deeper sections for which *resume* returns true stop the skip as well.
    """
    if sections[index].heading is None:
        return index + 1
    level = sections[index].level
    i = index + 1
    while i < len(sections) and sections[i].level > level:
        if resume is not None and resume(sections[i]):
            break
        i += 1
    return i


def walk_sections(sections: list[Section], ctx: ParseContext,
                  parse_section: Callable[[Section], list[Node]],
                  resume: Callable[[Section], bool] | None = None) -> list[Node]:
    """Parse every section, dropping failed ones and their subsections."""
    nodes: list[Node] = []
    i = 0
    while i < len(sections):
        section = sections[i]
        try:
            if section.error is not None:
                raise section.error
            nodes.extend(parse_section(section))
        except RECOVERABLE_ERRORS as exc:
            ctx.report(exc)
            skip_to = next_sibling(sections, i, resume)
            if skip_to > i + 1:
                logger.debug("skipping %d nested section(s) under %r",
                             skip_to - i - 1, section.title)
            i = skip_to
            continue
        i += 1
    return nodes
