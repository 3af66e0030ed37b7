"""vibe-grammars CLI."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from vibe_grammars import __version__
from vibe_grammars.config import GrammarsConfig, load_config_or_default
from vibe_grammars.corpus import CorpusFormatError, run_corpus, run_corpus_dir
from vibe_grammars.driver import detect_grammar, parse_document
from vibe_grammars.errors import DiagnosticRenderer, GrammarError
from vibe_grammars.lexer import tokenize
from vibe_grammars.registry import REGISTRY
from vibe_grammars.source import SourceText


def _read(path: str) -> SourceText:
    return SourceText.from_path(Path(path))


def _config(ctx: click.Context) -> GrammarsConfig:
    return ctx.obj["config"]


@click.group()
@click.version_option(__version__, prog_name="vibe-grammars")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """Parse specs and pseudo-kernel documents."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format="%(levelname)s %(name)s: %(message)s")
    ctx.ensure_object(dict)
    ctx.obj.setdefault("config", load_config_or_default())


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--grammar", "-g", default=None, help="Grammar used when the file has no shebang.")
@click.option("--fields/--no-fields", default=None, help="Show field names in the tree.")
@click.option("--text", is_flag=True, help="Show literal text of leaves.")
@click.option("--max-depth", type=click.IntRange(min=1), default=None,
              help="Maximum nesting depth.")
@click.pass_context
def parse(ctx: click.Context, path: str, grammar: str | None, fields: bool | None,
          text: bool, max_depth: int | None) -> None:
    """Parse a document and print its tree."""
    config = _config(ctx)
    source = _read(path)
    result = parse_document(
        source.content,
        grammar or config.parser.default_grammar,
        filename=source.filename,
        max_depth=max_depth or config.parser.max_depth,
    )

    if result.tree is not None:
        show_fields = config.output.fields if fields is None else fields
        click.echo(result.tree.pretty(fields=show_fields, text=text))

    renderer = DiagnosticRenderer(color=config.output.color)
    renderer.add_source(source)
    for diag in result.diagnostics:
        click.echo(renderer.render(diag), err=True)

    if not result.success:
        raise SystemExit(1)


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def tokens(ctx: click.Context, path: str) -> None:
    """Dump the document-level tokens of a file."""
    source = _read(path)
    try:
        toks = tokenize(source.content, source.filename)
    except GrammarError as e:
        renderer = DiagnosticRenderer(color=_config(ctx).output.color)
        renderer.add_source(source)
        click.echo(renderer.render(e.to_diagnostic()), err=True)
        raise SystemExit(1)
    for tok in toks:
        click.echo(f"{tok.line}:{tok.column}\t{tok.kind.name}\t{tok.value!r}")


@main.command()
@click.argument("path", required=False, type=click.Path(exists=True))
@click.option("--grammar", "-g", default=None, help="Grammar for cases without a shebang.")
@click.pass_context
def test(ctx: click.Context, path: str | None, grammar: str | None) -> None:
    """Run corpus fixtures (a file or a directory of *.txt files)."""
    config = _config(ctx)
    target = Path(path) if path is not None else config.corpus_path
    if not target.exists():
        click.echo(f"error: corpus path {target} does not exist", err=True)
        raise SystemExit(1)
    default_grammar = grammar or config.parser.default_grammar

    try:
        if target.is_dir():
            by_file = run_corpus_dir(target, default_grammar)
        else:
            by_file = {target: run_corpus(target.read_text(encoding="utf-8"),
                                          default_grammar)}
    except CorpusFormatError as e:
        click.echo(f"error: {e}", err=True)
        raise SystemExit(1)

    total = failed = 0
    for fixture, results in by_file.items():
        click.echo(f"{fixture}:")
        for case in results:
            total += 1
            if case.passed:
                click.echo(f"  ✓ {case.name}")
            else:
                failed += 1
                click.echo(f"  ✗ {case.name} (line {case.line})")
                for line in case.diff.splitlines():
                    click.echo(f"      {line}")

    if failed:
        click.echo(f"{failed} of {total} case(s) failed", err=True)
        raise SystemExit(1)
    click.echo(f"{total} case(s) passed")


@main.command()
def grammars() -> None:
    """List the registered grammars."""
    for definition in REGISTRY:
        line = definition.name
        if definition.description:
            line += f"\t{definition.description}"
        click.echo(line)


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--grammar", "-g", default=None, help="Grammar used when the file has no shebang.")
@click.pass_context
def highlight(ctx: click.Context, path: str, grammar: str | None) -> None:
    """Print a document with terminal syntax highlighting."""
    from vibe_grammars.highlight import highlight_document

    source = _read(path)
    name = detect_grammar(source.content) or grammar or _config(ctx).parser.default_grammar
    if name is None:
        click.echo("error: no grammar selected; pass --grammar", err=True)
        raise SystemExit(1)
    try:
        click.echo(highlight_document(source.content, name), nl=False, color=True)
    except ValueError as e:
        click.echo(f"error: {e}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
