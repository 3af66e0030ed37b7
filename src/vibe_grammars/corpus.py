"""Golden-file corpus harness.

A fixture file holds one or more cases::

    ==================
    feature heading
    :grammar(specs)
    ==================

    # Feature: User Authentication
    ---

    (source_file (feature_section (feature_name)))

The header is either three lines (rule, name, rule) or a single
``=== name ===`` line. Attribute lines between the name and the closing
rule select the grammar (``:grammar(name)``) or parse the input as a bare
type expression (``:type``). The expected tree lists node kinds; field
names and quoted literals are only compared where the fixture states them.
"""

from __future__ import annotations

import difflib
import json
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from vibe_grammars.ast_nodes import Node, quote
from vibe_grammars.driver import ParseResult, parse_document, parse_type_specification

_RULE_RE = re.compile(r"^={3,}\s*$")
_INLINE_HEADER_RE = re.compile(r"^={3,}\s+(.+?)\s+={3,}\s*$")
_ATTRIBUTE_RE = re.compile(r"^:([a-z_]+)(?:\(([^)]*)\))?\s*$")
_DIVIDER = "---"

_SEXP_TOKEN_RE = re.compile(r"""
    \s*(?:
        (?P<open>\()
      | (?P<close>\))
      | (?P<field>[A-Za-z_][\w-]*):
      | (?P<name>[A-Za-z_][\w-]*)
      | (?P<string>"(?:[^"\\]|\\.)*")
    )
""", re.VERBOSE)

KNOWN_ATTRIBUTES = frozenset({"grammar", "type"})

Parse = Callable[[str, str | None], ParseResult]


class CorpusFormatError(ValueError):
    """A fixture file or expected tree is malformed."""

    def __init__(self, message: str, line: int | None = None) -> None:
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


@dataclass
class ExpectedNode:
    kind: str
    children: list[ExpectedNode] = field(default_factory=list)
    text: str | None = None
    field_name: str | None = None

    @property
    def has_fields(self) -> bool:
        return self.field_name is not None or any(c.has_fields for c in self.children)

    @property
    def has_text(self) -> bool:
        return self.text is not None or any(c.has_text for c in self.children)

    def pretty(self, indent: str = "  ") -> str:
        return "\n".join(self._pretty_lines(0, indent))

    def _pretty_lines(self, depth: int, indent: str) -> list[str]:
        head = f"({self.kind}"
        if self.text is not None:
            head += f" {quote(self.text)}"
        if self.field_name:
            head = f"{self.field_name}: {head}"
        pad = indent * depth
        if not self.children:
            return [f"{pad}{head})"]
        lines = [f"{pad}{head}"]
        for c in self.children:
            lines.extend(c._pretty_lines(depth + 1, indent))
        lines[-1] += ")"
        return lines


@dataclass
class CorpusCase:
    name: str
    input_text: str
    expected_tree: ExpectedNode
    line: int = 0
    attributes: dict[str, str] = field(default_factory=dict)

    @property
    def grammar(self) -> str | None:
        return self.attributes.get("grammar") or None

    @property
    def is_type(self) -> bool:
        return "type" in self.attributes


@dataclass
class CaseResult:
    name: str
    passed: bool
    diff: str = ""
    line: int = 0


# ── Fixture parsing ──────────────────────────────────────────────


def parse_corpus(text: str) -> list[CorpusCase]:
    """Split fixture text into cases."""
    lines = text.splitlines()
    cases: list[CorpusCase] = []
    i = 0

    while i < len(lines) and not lines[i].strip():
        i += 1

    while i < len(lines):
        header_line = i + 1
        name, attributes, i = _read_header(lines, i)

        body: list[str] = []
        while i < len(lines) and lines[i].rstrip() != _DIVIDER:
            if _is_header(lines, i):
                raise CorpusFormatError(f"case {name!r} has no '---' divider", header_line)
            body.append(lines[i])
            i += 1
        if i >= len(lines):
            raise CorpusFormatError(f"case {name!r} has no '---' divider", header_line)
        i += 1  # ---

        tree_lines: list[str] = []
        while i < len(lines) and not _is_header(lines, i):
            tree_lines.append(lines[i])
            i += 1

        tree_text = "\n".join(tree_lines).strip()
        if not tree_text:
            raise CorpusFormatError(f"case {name!r} has no expected tree", header_line)
        try:
            expected = parse_sexp(tree_text)
        except CorpusFormatError as exc:
            raise CorpusFormatError(f"case {name!r}: {exc}", header_line) from exc

        input_text = "\n".join(body).strip("\n")
        cases.append(CorpusCase(name, input_text, expected, header_line, attributes))

    return cases


def _is_header(lines: list[str], i: int) -> bool:
    return bool(_RULE_RE.match(lines[i]) or _INLINE_HEADER_RE.match(lines[i]))


def _read_header(lines: list[str], i: int) -> tuple[str, dict[str, str], int]:
    inline = _INLINE_HEADER_RE.match(lines[i])
    if inline is not None:
        return inline.group(1), {}, i + 1

    if not _RULE_RE.match(lines[i]):
        raise CorpusFormatError(f"expected a '===' case header, got {lines[i]!r}", i + 1)
    if i + 1 >= len(lines) or not lines[i + 1].strip():
        raise CorpusFormatError("missing case name", i + 2)
    name = lines[i + 1].strip()
    i += 2

    attributes: dict[str, str] = {}
    while i < len(lines) and not _RULE_RE.match(lines[i]):
        match = _ATTRIBUTE_RE.match(lines[i].strip())
        if match is None or match.group(1) not in KNOWN_ATTRIBUTES:
            raise CorpusFormatError(f"unexpected header line {lines[i]!r}", i + 1)
        attributes[match.group(1)] = (match.group(2) or "").strip()
        i += 1
    if i >= len(lines):
        raise CorpusFormatError(f"unterminated header for case {name!r}", i)
    return name, attributes, i + 1


def parse_sexp(text: str) -> ExpectedNode:
    """Parse an expected tree such as ``(a name: (b) (c "lit"))``."""
    tokens = _tokenize_sexp(text)
    result, pos = _parse_sexp_node(tokens, 0, None)
    if pos != len(tokens):
        raise CorpusFormatError(f"trailing content after expected tree: {tokens[pos][1]!r}")
    return result


def _tokenize_sexp(text: str) -> list[tuple[str, str]]:
    tokens: list[tuple[str, str]] = []
    pos = 0
    while pos < len(text):
        if text[pos:].strip() == "":
            break
        match = _SEXP_TOKEN_RE.match(text, pos)
        if match is None:
            bad = text[pos:].lstrip()[:20]
            raise CorpusFormatError(f"unexpected text in expected tree: {bad!r}")
        kind = match.lastgroup
        assert kind is not None
        tokens.append((kind, match.group(kind)))
        pos = match.end()
    return tokens


def _parse_sexp_node(tokens: list[tuple[str, str]], pos: int,
                     field_name: str | None) -> tuple[ExpectedNode, int]:
    if pos >= len(tokens) or tokens[pos][0] != "open":
        raise CorpusFormatError("expected '('")
    pos += 1
    if pos >= len(tokens) or tokens[pos][0] != "name":
        raise CorpusFormatError("expected a node kind after '('")
    result = ExpectedNode(tokens[pos][1], field_name=field_name)
    pos += 1

    while True:
        if pos >= len(tokens):
            raise CorpusFormatError(f"unclosed '(' for {result.kind!r}")
        kind, value = tokens[pos]
        match kind:
            case "close":
                return result, pos + 1
            case "string":
                if result.text is not None:
                    raise CorpusFormatError(f"{result.kind!r} has more than one literal")
                result.text = json.loads(value)
                pos += 1
            case "field":
                child, pos = _parse_sexp_node(tokens, pos + 1, value)
                result.children.append(child)
            case "open":
                child, pos = _parse_sexp_node(tokens, pos, None)
                result.children.append(child)
            case _:
                raise CorpusFormatError(f"unexpected {value!r} in {result.kind!r}")


# ── Matching ─────────────────────────────────────────────────────


def match_tree(expected: ExpectedNode, actual: Node) -> bool:
    """Exact on kind and child order; fields and text only where stated."""
    if expected.kind != actual.kind.value:
        return False
    if expected.text is not None and expected.text != actual.text:
        return False
    if expected.field_name is not None and expected.field_name != actual.field_name:
        return False
    if len(expected.children) != len(actual.children):
        return False
    return all(match_tree(e, a) for e, a in zip(expected.children, actual.children))


def _default_parse(case: CorpusCase, default_grammar: str | None) -> ParseResult:
    if case.is_type:
        return parse_type_specification(case.input_text)
    return parse_document(case.input_text, case.grammar or default_grammar)


def run_case(case: CorpusCase, default_grammar: str | None = None,
             parse: Parse | None = None) -> CaseResult:
    if parse is not None and not case.is_type:
        result = parse(case.input_text, case.grammar or default_grammar)
    else:
        result = _default_parse(case, default_grammar)

    tree_ok = result.tree is not None and match_tree(case.expected_tree, result.tree)
    if tree_ok and not result.diagnostics:
        return CaseResult(case.name, True, line=case.line)

    expected = case.expected_tree.pretty().splitlines()
    if result.tree is not None:
        actual = result.tree.pretty(fields=case.expected_tree.has_fields,
                                    text=case.expected_tree.has_text).splitlines()
    else:
        actual = ["(no tree)"]
    diff = list(difflib.unified_diff(expected, actual, "expected", "actual", lineterm=""))
    diff.extend(f"diagnostic: {d}" for d in result.diagnostics)
    return CaseResult(case.name, False, "\n".join(diff), case.line)


def run_corpus(fixture_text: str, default_grammar: str | None = None,
               parse: Parse | None = None) -> list[CaseResult]:
    """Run every case in *fixture_text*.

    *parse* replaces :func:`parse_document` for document cases; it receives
    the input text and the selected grammar name.
    """
    return [run_case(case, default_grammar, parse) for case in parse_corpus(fixture_text)]


def run_corpus_dir(path: Path, default_grammar: str | None = None,
                   parse: Parse | None = None) -> dict[Path, list[CaseResult]]:
    """Run every ``*.txt`` fixture under *path*, keyed by file."""
    results: dict[Path, list[CaseResult]] = {}
    for fixture in sorted(Path(path).rglob("*.txt")):
        results[fixture] = run_corpus(fixture.read_text(encoding="utf-8"),
                                      default_grammar, parse)
    return results
