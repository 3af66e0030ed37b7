"""Parsing engine for markdown-hosted specs and pseudo-kernel documents."""

from __future__ import annotations

__version__ = "0.1.0"

from vibe_grammars.ast_nodes import Node, NodeKind
from vibe_grammars.driver import (
    ParseResult,
    detect_grammar,
    parse_document,
    parse_type_specification,
)
from vibe_grammars.errors import (
    DepthExceededError,
    Diagnostic,
    DiagnosticKind,
    DocumentError,
    GrammarError,
    GrammarSelectionError,
    LexError,
    ParseSyntaxError,
    StructuralError,
    TypeSpecError,
)
from vibe_grammars.registry import (
    REGISTRY,
    GrammarDefinition,
    GrammarRegistry,
    register_grammar,
    resolve_grammar,
)

__all__ = [
    "REGISTRY",
    "DepthExceededError",
    "Diagnostic",
    "DiagnosticKind",
    "DocumentError",
    "GrammarDefinition",
    "GrammarError",
    "GrammarRegistry",
    "GrammarSelectionError",
    "LexError",
    "Node",
    "NodeKind",
    "ParseResult",
    "ParseSyntaxError",
    "StructuralError",
    "TypeSpecError",
    "__version__",
    "detect_grammar",
    "parse_document",
    "parse_type_specification",
    "register_grammar",
    "resolve_grammar",
]
