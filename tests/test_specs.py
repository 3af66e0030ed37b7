"""Tests for the specs grammar."""

from __future__ import annotations

import pytest

from tests.helpers import diagnostic_kinds, parse, parse_ok, sexp
from vibe_grammars.ast_nodes import NodeKind

SHEBANG = "#!/grammars/specs parse\n\n"

FULL_SPEC = """\
#!/grammars/specs parse

# Feature: User Authentication

## Intent
AUTHENTICATE user WITH credentials RETURNING session_token

## Inputs
credentials: {username: string, password: string}
remember: boolean

## Outputs
SUCCESS: session_token: JWT<UserClaims>
FAILURE: AuthError = InvalidCredentials | AccountLocked

## Examples
authenticate({username: "alice", password: "secret"}) → session_token
authenticate({username: "bob", password: ""}) → Error: InvalidCredentials

## Constraints
credentials.password.length >= 8
credentials.attempts IN 0..5
credentials.username MATCHES /^[a-z]+$/

## Invariants
is_authenticated(user) ⟺ has_session(user)
"""


def section(body: str) -> str:
    """Helper: parse a feature plus one section, return that section's s-expression."""
    tree = parse_ok(SHEBANG + "# Feature: X\n\n" + body)
    assert tree.children[1].kind == NodeKind.FEATURE_SECTION
    return tree.children[2].to_sexp()


class TestFeature:
    def test_feature_with_shebang(self):
        source = "#!/grammars/specs parse\n\n# Feature: User Authentication"
        assert sexp(source) == (
            "(source_file (shebang (grammar_name)) (feature_section (feature_name)))"
        )

    def test_feature_name_text(self):
        tree = parse_ok(SHEBANG + "# Feature:   User Authentication  ")
        name = tree.children[1].children[0]
        assert name.text == "User Authentication"
        assert name.span.start_col == 14

    def test_default_grammar(self):
        assert sexp("# Feature: Login", "specs") == (
            "(source_file (feature_section (feature_name)))"
        )

    def test_grammar_name_text(self):
        tree = parse_ok(SHEBANG + "# Feature: X")
        assert tree.children[0].children[0].text == "specs"

    def test_fenced_prose_is_ignored(self):
        tree = parse_ok(SHEBANG + "# Feature: X\n```\nsome prose\n```")
        assert tree.children[1].to_sexp() == "(feature_section (feature_name))"

    def test_missing_feature_name(self):
        result = parse(SHEBANG + "# Feature:")
        assert diagnostic_kinds(result) == ["SyntaxError"]


class TestSections:
    def test_full_document(self):
        tree = parse_ok(FULL_SPEC)
        assert [c.type for c in tree.children] == [
            "shebang", "feature_section", "intent_section", "inputs_section",
            "outputs_section", "examples_section", "constraints_section",
            "invariants_section",
        ]

    def test_intent(self):
        assert section("## Intent\nAUTHENTICATE user WITH credentials RETURNING session_token") == (
            "(intent_section (intent_declaration (action_verb) (subject (identifier)) "
            "(parameters (identifier)) (return_type (identifier))))"
        )

    def test_intent_snake_case_verb(self):
        tree = parse_ok(SHEBANG + "# Feature: X\n## Intent\nRESET_PASSWORD user WITH email RETURNING ok")
        verb = tree.children[2].children[0].children[0]
        assert verb.text == "RESET_PASSWORD"

    def test_inputs(self):
        assert section("## Inputs\ncredentials: {username: string, password: string}\nremember: boolean") == (
            "(inputs_section "
            "(input_spec (identifier) (type_specification (object_type "
            "(property_type (identifier) (type_specification (primitive_type))) "
            "(property_type (identifier) (type_specification (primitive_type)))))) "
            "(input_spec (identifier) (type_specification (primitive_type))))"
        )

    def test_inputs_use_type_precedence(self):
        assert section("## Inputs\nids: string | number[]") == (
            "(inputs_section (input_spec (identifier) "
            "(type_specification (union_type (type_specification (primitive_type)) "
            "(type_specification (array_type (type_specification (primitive_type))))))))"
        )

    def test_outputs(self):
        body = ("## Outputs\nSUCCESS: session_token: JWT<UserClaims>\n"
                "FAILURE: AuthError = InvalidCredentials | AccountLocked")
        assert section(body) == (
            "(outputs_section "
            "(output_spec (identifier) (type_specification (generic_type (identifier) "
            "(type_specification (identifier))))) "
            "(output_spec (identifier) (error_types (identifier) (identifier))))"
        )

    def test_output_fields(self):
        tree = parse_ok(SHEBANG + "# Feature: X\n## Outputs\nSUCCESS: token: string\nFAILURE: E = A")
        success, failure = tree.children[2].children
        assert success.child("name").text == "token"
        assert success.child("type").kind == NodeKind.TYPE_SPECIFICATION
        assert failure.child("errors").kind == NodeKind.ERROR_TYPES

    def test_examples(self):
        body = ('## Examples\n'
                'authenticate({username: "alice", password: "secret"}) → session_token\n'
                'authenticate({username: "bob", password: ""}) → Error: InvalidCredentials')
        assert section(body) == (
            "(examples_section "
            "(example_spec (function_call (identifier) (argument (object_literal "
            "(property_assignment (identifier) (value (string_literal))) "
            "(property_assignment (identifier) (value (string_literal)))))) "
            "(expected_result (identifier))) "
            "(example_spec (function_call (identifier) (argument (object_literal "
            "(property_assignment (identifier) (value (string_literal))) "
            "(property_assignment (identifier) (value (string_literal)))))) "
            "(expected_result (error_result (identifier)))))"
        )

    @pytest.mark.parametrize("result,kind", [
        ('"ok"', "string_literal"),
        ("42", "number"),
        ("-1", "number"),
        ("true", "boolean_literal"),
        ("session", "identifier"),
    ])
    def test_example_results(self, result, kind):
        assert section(f"## Examples\nf(x, 1, \"s\") → {result}") == (
            "(examples_section (example_spec (function_call (identifier) "
            "(argument (identifier)) (argument (number)) (argument (string_literal))) "
            f"(expected_result ({kind}))))"
        )

    def test_constraints(self):
        body = ("## Constraints\ncredentials.password.length >= 8\n"
                "credentials.attempts IN 0..5\n"
                "credentials.username MATCHES /^[a-z]+$/")
        assert section(body) == (
            "(constraints_section "
            "(constraint_spec (comparison (property_access (identifier) (identifier) (identifier)) "
            "(comparison_operator) (value (number)))) "
            "(constraint_spec (range_constraint (property_access (identifier) (identifier)) "
            "(range (number) (number)))) "
            "(constraint_spec (format_constraint (property_access (identifier) (identifier)) "
            "(pattern))))"
        )

    def test_constraint_text(self):
        tree = parse_ok(SHEBANG + "# Feature: X\n## Constraints\nage IN [-1, 10]\nname MATCHES /^a+$/")
        assert tree.children[2].to_sexp(text=True) == (
            '(constraints_section '
            '(constraint_spec (range_constraint (property_access (identifier "age")) '
            '(range (value (number "-1")) (value (number "10"))))) '
            '(constraint_spec (format_constraint (property_access (identifier "name")) '
            '(pattern "^a+$"))))'
        )

    @pytest.mark.parametrize("op", [">=", "<=", ">", "<", "==", "!="])
    def test_comparison_operators(self, op):
        tree = parse_ok(SHEBANG + f"# Feature: X\n## Constraints\nuser.age {op} 18")
        comparison = tree.children[2].children[0].children[0]
        assert comparison.children[1].text == op

    def test_invariants(self):
        assert section("## Invariants\nis_authenticated(user) ⟺ has_session(user)") == (
            "(invariants_section (invariant_spec "
            "(function_call (identifier) (argument (identifier))) "
            "(function_call (identifier) (argument (identifier)))))"
        )

    def test_invariant_property_and_boolean(self):
        assert section("## Invariants\nsession.active ⟺ true") == (
            "(invariants_section (invariant_spec "
            "(property_access (identifier) (identifier)) (boolean_literal)))"
        )

    def test_sections_in_any_order_after_feature(self):
        source = SHEBANG + "# Feature: X\n## Invariants\na ⟺ b\n## Intent\nDO x WITH y RETURNING z"
        tree = parse_ok(source)
        assert [c.type for c in tree.children[1:]] == [
            "feature_section", "invariants_section", "intent_section",
        ]

    def test_sections_without_feature(self):
        tree = parse_ok(SHEBANG + "## Inputs\nname: string")
        assert tree.children[1].type == "inputs_section"

    def test_empty_section(self):
        assert section("## Constraints\n") == "(constraints_section)"

    def test_comments_are_ignored(self):
        body = "## Inputs\n#comment line\nname: string // trailing"
        assert section(body) == (
            "(inputs_section (input_spec (identifier) (type_specification (primitive_type))))"
        )


class TestErrors:
    def test_unknown_heading(self):
        result = parse(SHEBANG + "# Feature: X\n## Background\ntext\n## Inputs\nname: string")
        assert diagnostic_kinds(result) == ["StructuralError"]
        assert "Background" in result.diagnostics[0].message
        assert [c.type for c in result.tree.children[1:]] == ["feature_section", "inputs_section"]

    def test_unknown_heading_skips_subsections(self):
        source = SHEBANG + "# Feature: X\n## Background\n### Notes\nfree text\n## Inputs\nname: string"
        result = parse(source)
        assert diagnostic_kinds(result) == ["StructuralError"]
        assert result.tree.children[-1].type == "inputs_section"

    def test_recovery_keeps_well_formed_sections(self):
        source = (SHEBANG + "# Feature: X\n## Inputs\ncredentials string\n"
                  "## Intent\nLOGIN user WITH creds RETURNING token")
        result = parse(source)
        assert not result.success
        assert diagnostic_kinds(result) == ["SyntaxError"]
        assert [c.type for c in result.tree.children[1:]] == ["feature_section", "intent_section"]

    def test_feature_failure_keeps_child_sections(self):
        source = (SHEBANG + "# Feature: X\nstray prose\n## Intent\nLOGIN user WITH c RETURNING t\n"
                  "## Inputs\nname: string")
        result = parse(source)
        assert diagnostic_kinds(result) == ["SyntaxError"]
        assert [c.type for c in result.tree.children[1:]] == ["intent_section", "inputs_section"]

    def test_missing_feature_name_keeps_child_sections(self):
        result = parse(SHEBANG + "# Feature:\n## Inputs\nname: string\n## Outputs\nSUCCESS: token: string")
        assert diagnostic_kinds(result) == ["SyntaxError"]
        assert [c.type for c in result.tree.children[1:]] == ["inputs_section", "outputs_section"]

    def test_late_feature_keeps_following_sections(self):
        source = (SHEBANG + "## Intent\nLOGIN user WITH c RETURNING t\n# Feature: X\n"
                  "## Inputs\nname: string\n## Outputs\nSUCCESS: token: string")
        result = parse(source)
        assert diagnostic_kinds(result) == ["StructuralError"]
        assert [c.type for c in result.tree.children[1:]] == [
            "intent_section", "inputs_section", "outputs_section",
        ]

    def test_unknown_heading_stops_skip_at_keyword_subsection(self):
        source = SHEBANG + "# Feature: X\n## Background\n### Inputs\nname: string"
        result = parse(source)
        assert diagnostic_kinds(result) == ["StructuralError", "StructuralError"]
        assert "level-2" in result.diagnostics[1].message

    def test_multiple_diagnostics(self):
        source = (SHEBANG + "# Feature: X\n## Inputs\nbad\n## Outputs\nMAYBE: x\n"
                  "## Invariants\na ⟺ b")
        result = parse(source)
        assert diagnostic_kinds(result) == ["SyntaxError", "SyntaxError"]
        assert result.tree.children[-1].type == "invariants_section"

    def test_feature_must_come_first(self):
        result = parse(SHEBANG + "## Inputs\nname: string\n# Feature: X")
        assert diagnostic_kinds(result) == ["StructuralError"]
        assert [c.type for c in result.tree.children[1:]] == ["inputs_section"]

    def test_feature_must_be_level_one(self):
        result = parse(SHEBANG + "## Feature: X")
        assert diagnostic_kinds(result) == ["StructuralError"]

    def test_section_keyword_must_be_level_two(self):
        result = parse(SHEBANG + "# Intent\nDO x WITH y RETURNING z")
        assert diagnostic_kinds(result) == ["StructuralError"]

    def test_content_outside_sections(self):
        result = parse(SHEBANG + "stray text\n# Feature: X")
        assert diagnostic_kinds(result) == ["StructuralError"]
        assert result.tree.children[1].type == "feature_section"

    def test_lowercase_action_verb(self):
        result = parse(SHEBANG + "## Intent\nauthenticate user WITH c RETURNING t")
        assert diagnostic_kinds(result) == ["SyntaxError"]
        assert result.diagnostics[0].expected == ("ACTION_VERB",)

    def test_intent_holds_one_declaration(self):
        result = parse(SHEBANG + "## Intent\nA x WITH y RETURNING z\nB x WITH y RETURNING z")
        assert diagnostic_kinds(result) == ["SyntaxError"]

    def test_missing_keyword_reports_expected(self):
        result = parse(SHEBANG + "## Intent\nLOGIN user RETURNING token")
        diag = result.diagnostics[0]
        assert diag.expected == ("'WITH'",)
        assert (diag.line, diag.column) == (4, 12)

    def test_malformed_type_in_inputs(self):
        result = parse(SHEBANG + "## Inputs\nname: Map<string")
        assert diagnostic_kinds(result) == ["TypeSpecError"]

    def test_context_link_in_section(self):
        result = parse(SHEBANG + "## Inputs\n- [other.md]")
        assert diagnostic_kinds(result) == ["SyntaxError"]

    def test_unterminated_fence(self):
        result = parse(SHEBANG + "# Feature: X\n## Inputs\n```\nnotes")
        assert diagnostic_kinds(result) == ["StructuralError"]
        assert [c.type for c in result.tree.children[1:]] == ["feature_section"]

    def test_lex_error_in_body_is_fatal(self):
        result = parse(SHEBANG + "## Inputs\nname: string @")
        assert diagnostic_kinds(result) == ["LexError"]
        assert result.tree is None

    def test_deterministic(self):
        assert parse_ok(FULL_SPEC) == parse_ok(FULL_SPEC)
