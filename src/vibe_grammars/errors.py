"""Diagnostics, the parse error taxonomy, and rust-style colored rendering."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vibe_grammars.source import SourceText, Span


class Severity(Enum):
    ERROR = "error"


class DiagnosticKind(Enum):
    LEX = "LexError"
    GRAMMAR_SELECTION = "GrammarSelectionError"
    STRUCTURAL = "StructuralError"
    SYNTAX = "SyntaxError"
    TYPE_SPEC = "TypeSpecError"
    DEPTH_EXCEEDED = "DepthExceededError"


_CODES = {
    DiagnosticKind.LEX: "E100",
    DiagnosticKind.GRAMMAR_SELECTION: "E110",
    DiagnosticKind.STRUCTURAL: "E120",
    DiagnosticKind.SYNTAX: "E200",
    DiagnosticKind.TYPE_SPEC: "E210",
    DiagnosticKind.DEPTH_EXCEEDED: "E300",
}

# ANSI color codes
_COLORS = {
    Severity.ERROR: "\033[1;31m",    # bold red
}
_BOLD = "\033[1m"
_BLUE = "\033[1;34m"
_RESET = "\033[0m"


@dataclass
class Diagnostic:
    """A single diagnostic produced while parsing a document."""

    kind: DiagnosticKind
    message: str
    span: Span
    expected: tuple[str, ...] = ()
    severity: Severity = Severity.ERROR

    @property
    def code(self) -> str:
        return _CODES[self.kind]

    @property
    def line(self) -> int:
        return self.span.start_line

    @property
    def column(self) -> int:
        return self.span.start_col

    def __str__(self) -> str:
        return f"{self.span}: {self.kind.value}: {self.message}"


class DiagnosticRenderer:
    """Renders diagnostics in Rust-style format with colors."""

    def __init__(self, *, color: bool = True) -> None:
        self.color = color
        self._sources: dict[str, SourceText] = {}

    def add_source(self, source: SourceText) -> None:
        self._sources[source.filename] = source

    def _c(self, code: str) -> str:
        return code if self.color else ""

    def _get_source_line(self, filename: str, line_num: int) -> str | None:
        source = self._sources.get(filename)
        if source is None or not 1 <= line_num <= len(source.lines):
            return None
        return source.line_at(line_num)

    def render(self, diag: Diagnostic) -> str:
        lines: list[str] = []
        sev = diag.severity
        color = _COLORS[sev]

        # Header: error[E200]: message
        lines.append(
            f"{self._c(color)}{sev.value}[{diag.code}]{self._c(_RESET)}"
            f"{self._c(_BOLD)}: {diag.message}{self._c(_RESET)}"
        )

        span = diag.span
        lines.append(f"  {self._c(_BLUE)}-->{self._c(_RESET)} {span}")
        gutter = f"{span.start_line:>4}"
        lines.append(f"  {self._c(_BLUE)}   |{self._c(_RESET)}")

        source_line = self._get_source_line(span.file, span.start_line)
        if source_line is not None:
            lines.append(
                f"  {self._c(_BLUE)}{gutter} |{self._c(_RESET)} {source_line}"
            )
            if span.start_line == span.end_line:
                caret_len = max(1, span.end_col - span.start_col + 1)
            else:
                caret_len = max(1, len(source_line) - span.start_col + 1)
            padding = " " * (span.start_col - 1)
            lines.append(
                f"  {self._c(_BLUE)}   |{self._c(_RESET)} "
                f"{padding}{self._c(color)}{'^' * caret_len}{self._c(_RESET)}"
            )

        if diag.expected:
            expected = ", ".join(diag.expected)
            lines.append(
                f"  {self._c(_BLUE)}={self._c(_RESET)} expected one of: {expected}"
            )

        return "\n".join(lines)


class GrammarError(Exception):
    """Base class for every failure the parsing engine reports."""

    kind: DiagnosticKind = DiagnosticKind.SYNTAX

    def __init__(self, message: str, span: Span,
                 expected: tuple[str, ...] = ()) -> None:
        self.message = message
        self.span = span
        self.expected = expected
        super().__init__(f"{span}: {message}")

    def to_diagnostic(self) -> Diagnostic:
        return Diagnostic(self.kind, self.message, self.span, self.expected)


class LexError(GrammarError):
    """Unrecognized character; fatal for the whole parse."""

    kind = DiagnosticKind.LEX


class GrammarSelectionError(GrammarError):
    """Unknown grammar name or malformed shebang directive."""

    kind = DiagnosticKind.GRAMMAR_SELECTION


class StructuralError(GrammarError):
    """Illegal section ordering, unknown heading, or unterminated fence."""

    kind = DiagnosticKind.STRUCTURAL


class ParseSyntaxError(GrammarError):
    """Unexpected token inside a recognized construct."""

    kind = DiagnosticKind.SYNTAX


class TypeSpecError(GrammarError):
    """Malformed type expression."""

    kind = DiagnosticKind.TYPE_SPEC


class DepthExceededError(GrammarError):
    """The recursion guard tripped."""

    kind = DiagnosticKind.DEPTH_EXCEEDED


# Errors a grammar recovers from by dropping the enclosing section.
RECOVERABLE_ERRORS = (
    StructuralError,
    ParseSyntaxError,
    TypeSpecError,
    DepthExceededError,
)


class DocumentError(Exception):
    """Batch error carrying every diagnostic of a failed parse."""

    def __init__(self, diagnostics: list[Diagnostic]) -> None:
        self.diagnostics = diagnostics
        messages = [d.message for d in diagnostics]
        super().__init__(f"{len(diagnostics)} error(s): {'; '.join(messages)}")
