"""TOML config loading for grammars.toml."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from vibe_grammars.parser import DEFAULT_MAX_DEPTH

CONFIG_FILENAME = "grammars.toml"


@dataclass
class ParserConfig:
    default_grammar: str | None = None
    max_depth: int = DEFAULT_MAX_DEPTH


@dataclass
class CorpusConfig:
    directory: str = "tests/corpus"


@dataclass
class OutputConfig:
    color: bool = True
    fields: bool = False


@dataclass
class GrammarsConfig:
    parser: ParserConfig = field(default_factory=ParserConfig)
    corpus: CorpusConfig = field(default_factory=CorpusConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    root: Path | None = None

    @property
    def corpus_path(self) -> Path:
        """Corpus directory, relative to the config file when there is one."""
        path = Path(self.corpus.directory)
        if self.root is not None and not path.is_absolute():
            return self.root / path
        return path


def find_config(start_path: Path | None = None) -> Path:
    """Walk up directories to find grammars.toml. Raises FileNotFoundError."""
    path = (start_path or Path.cwd()).resolve()
    if path.is_file():
        path = path.parent
    while True:
        candidate = path / CONFIG_FILENAME
        if candidate.exists():
            return candidate
        parent = path.parent
        if parent == path:
            raise FileNotFoundError(f"No {CONFIG_FILENAME} found in any parent directory")
        path = parent


def load_config(path: Path) -> GrammarsConfig:
    """Parse a grammars.toml file into a GrammarsConfig."""
    with open(path, "rb") as f:
        data = tomllib.load(f)

    config = GrammarsConfig(root=path.parent)

    if "parser" in data:
        prs = data["parser"]
        max_depth = prs.get("max_depth", DEFAULT_MAX_DEPTH)
        if not isinstance(max_depth, int) or max_depth < 1:
            raise ValueError(f"{path}: parser.max_depth must be a positive integer")
        config.parser = ParserConfig(
            default_grammar=prs.get("default_grammar"),
            max_depth=max_depth,
        )

    if "corpus" in data:
        crp = data["corpus"]
        config.corpus = CorpusConfig(
            directory=crp.get("directory", "tests/corpus"),
        )

    if "output" in data:
        out = data["output"]
        config.output = OutputConfig(
            color=out.get("color", True),
            fields=out.get("fields", False),
        )

    return config


def load_config_or_default(start_path: Path | None = None) -> GrammarsConfig:
    """Load the nearest grammars.toml, falling back to defaults."""
    try:
        return load_config(find_config(start_path))
    except FileNotFoundError:
        return GrammarsConfig()
