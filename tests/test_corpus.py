"""Tests for the golden-file corpus harness."""

from __future__ import annotations

from pathlib import Path

import pytest

from vibe_grammars.ast_nodes import Node, NodeKind
from vibe_grammars.corpus import (
    CorpusFormatError,
    ExpectedNode,
    match_tree,
    parse_corpus,
    parse_sexp,
    run_corpus,
    run_corpus_dir,
)
from vibe_grammars.driver import ParseResult

CORPUS_DIR = Path(__file__).parent / "corpus"

FIXTURE = """\
==================
feature
:grammar(specs)
==================

# Feature: Login
---

(source_file (feature_section (feature_name "Login")))

=== wrong kind ===

#!/grammars/specs parse

# Feature: Login
---

(source_file (shebang (grammar_name)) (intent_section))
"""


def ident(name: str) -> Node:
    return Node(NodeKind.IDENTIFIER, (), name)


class TestParseCorpus:
    def test_cases(self):
        cases = parse_corpus(FIXTURE)
        assert [c.name for c in cases] == ["feature", "wrong kind"]
        assert cases[0].grammar == "specs"
        assert cases[0].input_text == "# Feature: Login"
        assert cases[0].line == 1
        assert cases[1].grammar is None
        assert cases[1].input_text.startswith("#!/grammars/specs parse")

    def test_type_attribute(self):
        cases = parse_corpus("===\nt\n:type\n===\nstring\n---\n(type_specification (primitive_type))")
        assert cases[0].is_type
        assert cases[0].input_text == "string"

    def test_unknown_attribute(self):
        with pytest.raises(CorpusFormatError, match="unexpected header line"):
            parse_corpus("===\nt\n:language(x)\n===\nx\n---\n(a)")

    def test_missing_divider(self):
        with pytest.raises(CorpusFormatError, match="no '---' divider") as exc:
            parse_corpus("=== a ===\ninput\n=== b ===\ninput\n---\n(a)")
        assert exc.value.line == 1

    def test_missing_tree(self):
        with pytest.raises(CorpusFormatError, match="no expected tree"):
            parse_corpus("=== a ===\ninput\n---\n\n")

    def test_text_before_first_header(self):
        with pytest.raises(CorpusFormatError, match="case header"):
            parse_corpus("stray\n=== a ===\nx\n---\n(a)")


class TestParseSexp:
    def test_nested(self):
        tree = parse_sexp("(a (b) (c (d)))")
        assert tree.kind == "a"
        assert [c.kind for c in tree.children] == ["b", "c"]
        assert tree.children[1].children[0].kind == "d"

    def test_fields_and_literals(self):
        tree = parse_sexp('(output_spec name: (identifier "tok\\"en") (x))')
        assert tree.children[0].field_name == "name"
        assert tree.children[0].text == 'tok"en'
        assert tree.has_fields
        assert tree.has_text
        assert not tree.children[1].has_fields

    @pytest.mark.parametrize("text", [
        "(a (b)",
        "a",
        "(a) (b)",
        "(a \"x\" \"y\")",
        "(a [b])",
        "()",
    ])
    def test_malformed(self, text):
        with pytest.raises(CorpusFormatError):
            parse_sexp(text)

    def test_pretty(self):
        tree = parse_sexp('(a name: (b "x") (c))')
        assert tree.pretty() == '(a\n  name: (b "x")\n  (c))'


class TestMatchTree:
    def test_kinds_and_order(self):
        actual = Node(NodeKind.PROPERTY_ACCESS, (ident("a"), ident("b")))
        assert match_tree(parse_sexp("(property_access (identifier) (identifier))"), actual)
        assert not match_tree(parse_sexp("(property_access (identifier))"), actual)
        assert not match_tree(parse_sexp("(function_call (identifier) (identifier))"), actual)

    def test_text_only_where_stated(self):
        assert match_tree(parse_sexp('(identifier "a")'), ident("a"))
        assert not match_tree(parse_sexp('(identifier "b")'), ident("a"))

    def test_field_only_where_stated(self):
        actual = Node(NodeKind.OUTPUT_SPEC, (ident("tok").with_field("name"),))
        assert match_tree(parse_sexp("(output_spec (identifier))"), actual)
        assert match_tree(parse_sexp("(output_spec name: (identifier))"), actual)
        assert not match_tree(parse_sexp("(output_spec type: (identifier))"), actual)

    def test_expected_node_defaults(self):
        assert ExpectedNode("a").children == []


class TestRunCorpus:
    def test_pass_and_fail(self):
        results = run_corpus(FIXTURE)
        assert [r.passed for r in results] == [True, False]
        diff = results[1].diff
        assert "--- expected" in diff
        assert "+++ actual" in diff
        assert "+  (feature_section" in diff

    def test_diagnostics_fail_a_case(self):
        fixture = "=== bad ===\n#!/grammars/specs parse\n\n## Inputs\nbad\n---\n(source_file (shebang (grammar_name)))"
        result = run_corpus(fixture)[0]
        assert not result.passed
        assert "diagnostic:" in result.diff
        assert "SyntaxError" in result.diff

    def test_missing_tree_fails(self):
        fixture = "=== bad ===\n#!/grammars/nope parse\n---\n(source_file)"
        result = run_corpus(fixture)[0]
        assert not result.passed
        assert "(no tree)" in result.diff

    def test_default_grammar(self):
        fixture = "=== a ===\n# Feature: X\n---\n(source_file (feature_section (feature_name)))"
        assert run_corpus(fixture)[0].passed is False
        assert run_corpus(fixture, "specs")[0].passed

    def test_custom_parse_function(self):
        seen = []

        def fake_parse(text, grammar):
            seen.append((text, grammar))
            return ParseResult(Node(NodeKind.SOURCE_FILE))

        results = run_corpus("=== a ===\nhello\n---\n(source_file)", "specs", parse=fake_parse)
        assert results[0].passed
        assert seen == [("hello", "specs")]

    def test_bundled_corpus_passes(self):
        results = run_corpus_dir(CORPUS_DIR)
        assert {p.name for p in results} == {"specs.txt", "pseudo_kernel.txt", "types.txt"}
        failures = [(p.name, r.name, r.diff) for p, rs in results.items() for r in rs if not r.passed]
        assert failures == []
