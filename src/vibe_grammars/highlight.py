"""Pygments lexers for specs and pseudo-kernel documents."""

from __future__ import annotations

from pygments import highlight
from pygments.formatters import TerminalFormatter
from pygments.lexer import RegexLexer, bygroups, include, using, words
from pygments.token import (
    Comment,
    Generic,
    Keyword,
    Name,
    Number,
    Operator,
    Punctuation,
    String,
    Text,
)

from vibe_grammars.pseudo_kernel import SYSTEM_FUNCTIONS
from vibe_grammars.type_spec import PRIMITIVE_TYPES

_SHEBANG = (r"\A(#!/grammars/)([a-z][a-z0-9-]*)( parse)$",
            bygroups(Comment.Hashbang, Name.Namespace, Comment.Hashbang))

_SPECS_SECTIONS = ("Intent", "Inputs", "Outputs", "Examples",
                   "Constraints", "Invariants")


class PseudoCodeLexer(RegexLexer):
    """Statements inside ``pseudo`` fences."""

    name = "Pseudo-kernel code"
    aliases = ["pseudo"]
    filenames: list[str] = []

    tokens = {
        "root": [
            (r"\s+", Text),
            (r"//.*$", Comment.Single),
            (r'"""[\s\S]*?"""', String),
            (r'"', String, "dstring"),
            (r"'", String, "sstring"),
            (r"[0-9]+\.[0-9]+", Number.Float),
            (r"[0-9]+", Number.Integer),
            (r"\b(fn)(\s+)([A-Za-z_]\w*)",
             bygroups(Keyword.Declaration, Text, Name.Function)),
            (words(("let", "if", "else", "return"), prefix=r"\b", suffix=r"\b"),
             Keyword),
            (r"\b(true|false)\b", Keyword.Constant),
            (words(tuple(sorted(SYSTEM_FUNCTIONS)), prefix=r"\b", suffix=r"\b"),
             Name.Builtin),
            (words(tuple(sorted(PRIMITIVE_TYPES)), prefix=r"\b", suffix=r"\b"),
             Keyword.Type),
            (r"\|>|->|==|!=|<=|>=|&&|\|\||\.\.|::", Operator),
            (r"[+\-*/%<>!=|.]", Operator),
            (r"[A-Z][a-zA-Z0-9]*", Name.Class),
            (r"[A-Za-z_]\w*", Name),
            (r"[{}()\[\],:;]", Punctuation),
        ],
        "dstring": [
            (r'\\.', String.Escape),
            (r'[^"\\\n]+', String),
            (r'"', String, "#pop"),
        ],
        "sstring": [
            (r"\\.", String.Escape),
            (r"[^'\\\n]+", String),
            (r"'", String, "#pop"),
        ],
    }


class SpecsLexer(RegexLexer):
    """Specs requirement documents."""

    name = "Specs"
    aliases = ["specs"]
    filenames = ["*.specs.md"]
    mimetypes = ["text/x-specs"]

    tokens = {
        "root": [
            _SHEBANG,
            (r"^(#)(\s+)(Feature:)(.*)$",
             bygroups(Generic.Heading, Text, Keyword.Declaration, Name.Class)),
            (r"^(##)(\s+)(" + "|".join(_SPECS_SECTIONS) + r")(\s*)$",
             bygroups(Generic.Subheading, Text, Keyword.Namespace, Text)),
            (r"^#{1,6}\s.*$", Generic.Heading),
            (r"^#.*$", Comment.Single),
            (r"^```.*\n[\s\S]*?^```\s*$", String.Doc),
            include("body"),
        ],
        "body": [
            (r"\s+", Text),
            (r"//.*$", Comment.Single),
            (r"\b(SUCCESS|FAILURE|Error)(:)", bygroups(Name.Label, Punctuation)),
            (r"\b[A-Z][A-Z_]*\b(?=\s+\w+\s+WITH\b)", Keyword.Declaration),
            (words(("WITH", "RETURNING", "IN", "MATCHES"), prefix=r"\b", suffix=r"\b"),
             Keyword),
            (r"\b(true|false)\b", Keyword.Constant),
            (words(tuple(sorted(PRIMITIVE_TYPES)), prefix=r"\b", suffix=r"\b"),
             Keyword.Type),
            (r'"(\\\\|\\"|[^"\n])*"', String),
            (r"'(\\\\|\\'|[^'\n])*'", String),
            (r"/[^\s/]([^/\n\\]|\\.)*/", String.Regex),
            (r"-?[0-9]+(\.[0-9]+)?", Number),
            (r"→|⟺|>=|<=|==|!=|\.\.|[<>=|]", Operator),
            (r"[A-Z][a-zA-Z0-9]*", Name.Class),
            (r"[A-Za-z_]\w*", Name),
            (r"[{}()\[\],:.]", Punctuation),
        ],
    }


class PseudoKernelLexer(RegexLexer):
    """Pseudo-kernel documents; ``pseudo`` fences go through PseudoCodeLexer."""

    name = "Pseudo-kernel"
    aliases = ["pseudo-kernel", "pseudo_kernel"]
    filenames = ["*.pk.md"]
    mimetypes = ["text/x-pseudo-kernel"]

    tokens = {
        "root": [
            _SHEBANG,
            (r"^(```pseudo[^\n]*\n)([\s\S]*?)(^```\s*$)",
             bygroups(String.Doc, using(PseudoCodeLexer), String.Doc)),
            (r"^```[\s\S]*?^```\s*$", String.Doc),
            (r"^#{1,6}\s.*$", Generic.Heading),
            (r"^#.*$", Comment.Single),
            (r"^(\s*-\s+)(\[)([^\]]+)(\])(.*)$",
             bygroups(Punctuation, Punctuation, Name.Entity, Punctuation, Text)),
            (r"[^\n]+", Text),
            (r"\n", Text),
        ],
    }


LEXERS: dict[str, type[RegexLexer]] = {
    "specs": SpecsLexer,
    "pseudo-kernel": PseudoKernelLexer,
}


def get_lexer(grammar: str) -> RegexLexer:
    """Return a lexer instance for a registered grammar name."""
    try:
        return LEXERS[grammar]()
    except KeyError:
        raise ValueError(f"no highlighter for grammar {grammar!r}") from None


def highlight_document(text: str, grammar: str) -> str:
    """Render *text* with ANSI colors for the terminal."""
    return highlight(text, get_lexer(grammar), TerminalFormatter())
