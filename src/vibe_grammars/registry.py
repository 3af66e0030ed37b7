"""Name to grammar mapping used to dispatch on the shebang directive."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

from vibe_grammars.ast_nodes import Node
from vibe_grammars.errors import GrammarSelectionError
from vibe_grammars.markdown import Document
from vibe_grammars.parser import ParseContext
from vibe_grammars.pseudo_kernel import parse_pseudo_kernel
from vibe_grammars.source import Span
from vibe_grammars.specs import parse_specs

logger = logging.getLogger(__name__)

GRAMMAR_NAME_RE = re.compile(r"^[a-z][a-z0-9-]*$")

EntryRule = Callable[[Document, ParseContext], Node]


@dataclass(frozen=True)
class GrammarDefinition:
    name: str
    entry_rule: EntryRule
    description: str = ""


class GrammarRegistry:
    """Explicit registry of grammars, keyed by shebang name.

    Entries are added once and never replaced; lookup is a dict access.
    """

    def __init__(self) -> None:
        self._grammars: dict[str, GrammarDefinition] = {}

    def register(self, name: str, entry_rule: EntryRule,
                 description: str = "") -> GrammarDefinition:
        if not GRAMMAR_NAME_RE.match(name):
            raise ValueError(f"invalid grammar name {name!r}: must match [a-z][a-z0-9-]*")
        if name in self._grammars:
            raise ValueError(f"grammar {name!r} is already registered")
        definition = GrammarDefinition(name, entry_rule, description)
        self._grammars[name] = definition
        logger.debug("registered grammar %r", name)
        return definition

    def resolve(self, name: str, span: Span | None = None) -> GrammarDefinition:
        """Look up *name*; unknown names raise :class:`GrammarSelectionError`."""
        definition = self._grammars.get(name)
        if definition is None:
            raise GrammarSelectionError(
                f"unknown grammar {name!r}",
                span or Span("<input>", 1, 1, 1, 1),
                tuple(sorted(self._grammars)),
            )
        return definition

    def names(self) -> list[str]:
        return sorted(self._grammars)

    def __contains__(self, name: object) -> bool:
        return name in self._grammars

    def __iter__(self):
        return iter(self._grammars[name] for name in self.names())

    def __len__(self) -> int:
        return len(self._grammars)


def default_registry() -> GrammarRegistry:
    """Build a registry holding the built-in grammars."""
    registry = GrammarRegistry()
    registry.register("specs", parse_specs,
                      "Feature / Intent / Inputs / Outputs / Examples / "
                      "Constraints / Invariants requirement documents")
    registry.register("pseudo-kernel", parse_pseudo_kernel,
                      "markdown with context links and fenced pseudo-code")
    return registry


REGISTRY = default_registry()


def register_grammar(name: str, entry_rule: EntryRule,
                     description: str = "") -> GrammarDefinition:
    """Add a grammar to the process-wide registry."""
    return REGISTRY.register(name, entry_rule, description)


def resolve_grammar(name: str, span: Span | None = None) -> GrammarDefinition:
    return REGISTRY.resolve(name, span)
