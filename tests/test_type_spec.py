"""Tests for the shared type-expression sub-grammar."""

from __future__ import annotations

import pytest

from tests.helpers import type_sexp
from vibe_grammars.ast_nodes import NodeKind
from vibe_grammars.driver import parse_type_specification
from vibe_grammars.errors import DiagnosticKind

PRIM = "(type_specification (primitive_type))"
IDENT = "(type_specification (identifier))"


def union(left: str, right: str) -> str:
    return f"(type_specification (union_type {left} {right}))"


def array(inner: str) -> str:
    return f"(type_specification (array_type {inner}))"


class TestAtoms:
    @pytest.mark.parametrize("name", ["string", "number", "boolean", "any"])
    def test_primitive(self, name):
        assert type_sexp(name) == PRIM
        tree = parse_type_specification(name).tree
        assert tree.children[0].text == name

    def test_identifier(self):
        assert type_sexp("UserClaims") == IDENT

    def test_generic(self):
        assert type_sexp("JWT<UserClaims>") == (
            "(type_specification (generic_type (identifier) (type_specification (identifier))))"
        )

    def test_generic_with_several_arguments(self):
        assert type_sexp("Result<Session, VibeError>") == (
            "(type_specification (generic_type (identifier) "
            f"{IDENT} {IDENT}))"
        )

    def test_nested_generic(self):
        assert type_sexp("Option<Array<string>>") == (
            "(type_specification (generic_type (identifier) "
            f"(type_specification (generic_type (identifier) {PRIM}))))"
        )

    def test_object(self):
        assert type_sexp("{username: string, roles: Role[]}") == (
            "(type_specification (object_type "
            f"(property_type (identifier) {PRIM}) "
            f"(property_type (identifier) {array(IDENT)})))"
        )

    def test_empty_object(self):
        assert type_sexp("{}") == "(type_specification (object_type))"

    def test_object_trailing_comma_and_newlines(self):
        assert type_sexp("{\n  a: string,\n  b: number,\n}") == (
            "(type_specification (object_type "
            f"(property_type (identifier) {PRIM}) "
            f"(property_type (identifier) {PRIM})))"
        )


class TestPrecedence:
    def test_array(self):
        assert type_sexp("string[]") == (
            "(type_specification (array_type (type_specification (primitive_type))))"
        )

    def test_repeated_array_suffix(self):
        assert type_sexp("string[][]") == array(array(PRIM))

    def test_array_binds_tighter_than_union(self):
        assert type_sexp("string | number[]") == (
            "(type_specification (union_type (type_specification (primitive_type)) "
            "(type_specification (array_type (type_specification (primitive_type))))))"
        )

    @pytest.mark.parametrize("left,right", [
        ("A", "B"), ("string", "Item"), ("Map<K>", "number"),
    ])
    def test_array_precedence_for_any_atoms(self, left, right):
        tree = parse_type_specification(f"{left} | {right}[]").tree
        inner = tree.children[0]
        assert inner.kind == NodeKind.UNION_TYPE
        assert inner.children[0].children[0].kind != NodeKind.ARRAY_TYPE
        assert inner.children[1].children[0].kind == NodeKind.ARRAY_TYPE

    def test_union_is_left_associative(self):
        assert type_sexp("A | B | C") == union(union(IDENT, IDENT), IDENT)

    def test_union_depth_for_three_alternatives(self):
        tree = parse_type_specification("A | B | C").tree
        outer = tree.children[0]
        assert outer.kind == NodeKind.UNION_TYPE
        assert outer.children[0].children[0].kind == NodeKind.UNION_TYPE
        assert outer.children[1].children[0].kind == NodeKind.IDENTIFIER

    def test_generic_is_atomic(self):
        assert type_sexp("List<A | B>[]") == array(
            "(type_specification (generic_type (identifier) "
            f"{union(IDENT, IDENT)}))"
        )

    def test_deterministic(self):
        first = parse_type_specification("{a: string | number[], b: Map<K, V>}").tree
        second = parse_type_specification("{a: string | number[], b: Map<K, V>}").tree
        assert first == second
        assert first.to_sexp() == second.to_sexp()


class TestErrors:
    @pytest.mark.parametrize("text", [
        "string |",
        "Map<string",
        "{a string}",
        "{a: string b: number}",
        "string number",
        "[]",
        "",
    ])
    def test_malformed_type(self, text):
        result = parse_type_specification(text)
        assert not result.success
        assert result.tree is None
        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.TYPE_SPEC]

    def test_expected_set(self):
        result = parse_type_specification("Map<string")
        assert result.diagnostics[0].expected == ("'>'", "','")
        assert result.diagnostics[0].column == 11

    def test_lex_error(self):
        result = parse_type_specification("string @")
        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.LEX]

    def test_depth_guard(self):
        result = parse_type_specification("Array<Array<string>>", max_depth=2)
        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.DEPTH_EXCEEDED]
        assert parse_type_specification("Array<Array<string>>", max_depth=3).success

    def test_deep_nesting_fails_fast(self):
        text = "A<" * 500 + "string" + ">" * 500
        result = parse_type_specification(text)
        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.DEPTH_EXCEEDED]
        assert "100" in result.diagnostics[0].message
