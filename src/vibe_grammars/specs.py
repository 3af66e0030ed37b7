"""Parser for the specs requirement-description grammar.

A specs document is a sequence of markdown sections::

    # Feature: User Authentication
    ## Intent
    AUTHENTICATE user WITH credentials RETURNING session_token
    ## Inputs
    credentials: {username: string, password: string}
    ## Outputs
    SUCCESS: session_token: JWT<UserClaims>
    FAILURE: AuthError = InvalidCredentials | AccountLocked
    ## Examples
    authenticate({username: "alice"}) → session_token
    ## Constraints
    credentials.password.length >= 8
    ## Invariants
    is_authenticated(user) ⟺ has_session(user)

Section bodies are lexed line by line in code mode; every type position
goes through the shared type sub-grammar.
"""

from __future__ import annotations

import re

from vibe_grammars.ast_nodes import Node, NodeKind, leaf, node
from vibe_grammars.errors import ParseSyntaxError, StructuralError
from vibe_grammars.lexer import tokenize_code
from vibe_grammars.markdown import (
    ContextLink,
    Document,
    FencedBlock,
    Section,
    TextBlock,
    walk_sections,
)
from vibe_grammars.parser import ParseContext, source_file_node
from vibe_grammars.source import Span
from vibe_grammars.tokens import SPECS_KEYWORDS, Token, TokenKind
from vibe_grammars.type_spec import TypeSpecParser

FEATURE_PREFIX = "Feature:"

ACTION_VERB_RE = re.compile(r"^[A-Z][A-Z_]*$")

_COMPARISON_OPERATORS = frozenset({
    TokenKind.GREATER_EQUAL,
    TokenKind.LESS_EQUAL,
    TokenKind.GREATER,
    TokenKind.LESS,
    TokenKind.EQUAL,
    TokenKind.NOT_EQUAL,
})

_END_OF_LINE = ("end of line",)


def parse_specs(document: Document, ctx: ParseContext) -> Node:
    """Entry rule of the ``specs`` grammar."""
    return SpecsGrammar(document, ctx).parse()


class SpecsGrammar:
    """Maps document sections onto specs section rules."""

    _SECTION_RULES = {
        "Intent": "parse_intent",
        "Inputs": "parse_inputs",
        "Outputs": "parse_outputs",
        "Examples": "parse_examples",
        "Constraints": "parse_constraints",
        "Invariants": "parse_invariants",
    }

    def __init__(self, document: Document, ctx: ParseContext) -> None:
        self.document = document
        self.ctx = ctx
        self._seen_section = False

    def parse(self) -> Node:
        body = walk_sections(self.document.sections, self.ctx, self._parse_section,
                             resume=self._is_section_heading)
        return source_file_node(self.document, body)

    def _is_section_heading(self, section: Section) -> bool:
        if section.heading is None:
            return False
        title = section.heading.title.value
        return title.startswith(FEATURE_PREFIX) or title.strip() in self._SECTION_RULES

    def _parse_section(self, section: Section) -> list[Node]:
        if section.heading is None:
            for item in section.items:
                if not isinstance(item, FencedBlock):
                    raise StructuralError("content outside of a section", item.span,
                                          ("'# Feature:'", "'## <Section>'"))
            return []

        heading = section.heading
        title = heading.title.value

        if title.startswith(FEATURE_PREFIX):
            if section.level != 1:
                raise StructuralError("'Feature:' must be a level-1 heading",
                                      heading.span, ("'# Feature:'",))
            if self._seen_section:
                raise StructuralError("the Feature section must precede all other sections",
                                      heading.span)
            self._seen_section = True
            return [self._parse_feature(section)]

        keyword = title.strip()
        rule = self._SECTION_RULES.get(keyword)
        if rule is None:
            expected = ("Feature:",) + tuple(self._SECTION_RULES)
            raise StructuralError(f"unknown section heading {title!r}",
                                  heading.title.span, expected)
        if section.level != 2:
            raise StructuralError(f"'{keyword}' must be a level-2 heading",
                                  heading.span, (f"'## {keyword}'",))
        self._seen_section = True

        parser = SpecsSectionParser(self._body_tokens(section), self.ctx)
        result = getattr(parser, rule)()
        return [node(result.kind, *result.children,
                     span=heading.span.to(result.span or heading.span))]

    def _parse_feature(self, section: Section) -> Node:
        heading = section.heading
        assert heading is not None
        title_tok = heading.title
        name = title_tok.value[len(FEATURE_PREFIX):].strip()
        if not name:
            raise ParseSyntaxError("missing feature name", title_tok.span, ("feature name",))
        for item in section.items:
            if not isinstance(item, FencedBlock):
                raise ParseSyntaxError("unexpected content after the feature heading",
                                       item.span, ("'## <Section>'",))
        offset = title_tok.value.index(name, len(FEATURE_PREFIX))
        col = title_tok.column + offset
        name_span = Span(title_tok.span.file, title_tok.line, col,
                         title_tok.line, col + len(name) - 1)
        name_node = Node(NodeKind.FEATURE_NAME, (), name, None, name_span)
        return node(NodeKind.FEATURE_SECTION, name_node, span=heading.span)

    def _body_tokens(self, section: Section) -> list[Token]:
        """Lex each body line in code mode into one newline-separated stream."""
        tokens: list[Token] = []
        for item in section.items:
            if isinstance(item, FencedBlock):
                continue  # prose, left untouched
            if isinstance(item, ContextLink):
                raise ParseSyntaxError("context links are not allowed in specs sections",
                                       item.span)
            assert isinstance(item, TextBlock)
            for line in item.lines:
                line_tokens = tokenize_code(line.value, SPECS_KEYWORDS,
                                            self.ctx.filename, line.line, line.column)
                tokens.extend(t for t in line_tokens if t.kind != TokenKind.EOF)
                end = line.span.end_col + 1
                tokens.append(Token(TokenKind.NEWLINE, "\n",
                                    Span(line.span.file, line.line, end, line.line, end)))

        last = tokens[-1].span if tokens else section.heading.title.span
        eof_span = Span(last.file, last.end_line, last.end_col + 1,
                        last.end_line, last.end_col + 1)
        tokens.append(Token(TokenKind.EOF, "", eof_span))
        return tokens


class SpecsSectionParser(TypeSpecParser):
    """Recursive-descent parser for the body of one specs section."""

    # ── Sections ─────────────────────────────────────────────────

    def parse_intent(self) -> Node:
        self._skip_newlines()
        if self._at(TokenKind.EOF):
            raise self._error(self._current(), ("intent declaration",),
                              "empty Intent section")
        declaration = self._parse_intent_declaration()
        self._end_of_line()
        self._skip_newlines()
        if not self._at(TokenKind.EOF):
            raise self._error(self._current(), ("end of section",),
                              "the Intent section holds a single declaration")
        return node(NodeKind.INTENT_SECTION, declaration)

    def parse_inputs(self) -> Node:
        return node(NodeKind.INPUTS_SECTION, *self._parse_lines(self._parse_input_spec))

    def parse_outputs(self) -> Node:
        return node(NodeKind.OUTPUTS_SECTION, *self._parse_lines(self._parse_output_spec))

    def parse_examples(self) -> Node:
        return node(NodeKind.EXAMPLES_SECTION, *self._parse_lines(self._parse_example_spec))

    def parse_constraints(self) -> Node:
        return node(NodeKind.CONSTRAINTS_SECTION,
                    *self._parse_lines(self._parse_constraint_spec))

    def parse_invariants(self) -> Node:
        return node(NodeKind.INVARIANTS_SECTION,
                    *self._parse_lines(self._parse_invariant_spec))

    def _parse_lines(self, rule) -> list[Node]:
        specs: list[Node] = []
        self._skip_newlines()
        while not self._at(TokenKind.EOF):
            specs.append(rule())
            self._end_of_line()
            self._skip_newlines()
        return specs

    def _end_of_line(self) -> None:
        if self._at(TokenKind.NEWLINE):
            self._advance()
        elif not self._at(TokenKind.EOF):
            raise self._error(self._current(), _END_OF_LINE)

    # ── Intent ───────────────────────────────────────────────────

    def _parse_intent_declaration(self) -> Node:
        verb_tok = self._current()
        if verb_tok.kind != TokenKind.IDENTIFIER or not ACTION_VERB_RE.match(verb_tok.value):
            raise self._error(verb_tok, ("ACTION_VERB",))
        self._advance()
        subject = node(NodeKind.SUBJECT, self._parse_identifier())
        self._expect(TokenKind.WITH, "'WITH'")
        parameters = node(NodeKind.PARAMETERS, self._parse_identifier())
        self._expect(TokenKind.RETURNING, "'RETURNING'")
        return_type = node(NodeKind.RETURN_TYPE, self._parse_identifier())
        return node(NodeKind.INTENT_DECLARATION, leaf(NodeKind.ACTION_VERB, verb_tok),
                    subject, parameters, return_type)

    # ── Inputs / Outputs ─────────────────────────────────────────

    def _parse_input_spec(self) -> Node:
        name = self._parse_identifier()
        self._expect(TokenKind.COLON, "':'")
        type_spec = self._parse_type_specification()
        return node(NodeKind.INPUT_SPEC, name, type_spec)

    def _parse_output_spec(self) -> Node:
        marker = self._current()
        if (marker.kind != TokenKind.IDENTIFIER
                or marker.value not in ("SUCCESS", "FAILURE")
                or self._peek(1).kind != TokenKind.COLON):
            raise self._error(marker, ("'SUCCESS:'", "'FAILURE:'"))
        self._advance()
        self._advance()  # :
        name = self._parse_identifier().with_field("name")

        if marker.value == "SUCCESS":
            self._expect(TokenKind.COLON, "':'")
            type_spec = self._parse_type_specification().with_field("type")
            return node(NodeKind.OUTPUT_SPEC, name, type_spec,
                        span=marker.span.to(type_spec.span))

        self._expect(TokenKind.ASSIGN, "'='")
        errors = [self._parse_identifier()]
        while self._at(TokenKind.PIPE):
            self._advance()
            errors.append(self._parse_identifier())
        error_types = node(NodeKind.ERROR_TYPES, *errors).with_field("errors")
        return node(NodeKind.OUTPUT_SPEC, name, error_types,
                    span=marker.span.to(error_types.span))

    # ── Examples ─────────────────────────────────────────────────

    def _parse_example_spec(self) -> Node:
        call = self._parse_function_call()
        self._expect(TokenKind.RESULT_ARROW, "'→'")
        return node(NodeKind.EXAMPLE_SPEC, call, self._parse_expected_result())

    def _parse_function_call(self) -> Node:
        name = self._parse_identifier()
        self._expect(TokenKind.LPAREN, "'('")
        arguments: list[Node] = []
        while not self._at(TokenKind.RPAREN):
            if arguments:
                self._expect(TokenKind.COMMA, "','")
            arguments.append(self._parse_argument())
        end = self._advance()  # )
        return node(NodeKind.FUNCTION_CALL, name, *arguments, span=name.span.to(end.span))

    def _parse_argument(self) -> Node:
        tok = self._current()
        match tok.kind:
            case TokenKind.IDENTIFIER:
                inner = leaf(NodeKind.IDENTIFIER, self._advance())
            case TokenKind.STRING_LIT:
                inner = leaf(NodeKind.STRING_LITERAL, self._advance())
            case TokenKind.NUMBER_LIT | TokenKind.MINUS:
                inner = self._parse_number()
            case TokenKind.LBRACE:
                inner = self._parse_object_literal()
            case _:
                raise self._error(tok, ("identifier", "string", "number", "'{'", "')'"))
        return node(NodeKind.ARGUMENT, inner)

    def _parse_object_literal(self) -> Node:
        start = self._advance()  # {
        properties: list[Node] = []
        while not self._at(TokenKind.RBRACE):
            if properties:
                self._expect(TokenKind.COMMA, "','")
            name = self._parse_identifier()
            self._expect(TokenKind.COLON, "':'")
            properties.append(node(NodeKind.PROPERTY_ASSIGNMENT, name, self._parse_value()))
        end = self._advance()  # }
        return node(NodeKind.OBJECT_LITERAL, *properties, span=start.span.to(end.span))

    def _parse_expected_result(self) -> Node:
        tok = self._current()
        if (tok.kind == TokenKind.IDENTIFIER and tok.value == "Error"
                and self._peek(1).kind == TokenKind.COLON):
            self._advance()
            self._advance()  # :
            name = self._parse_identifier()
            inner = node(NodeKind.ERROR_RESULT, name, span=tok.span.to(name.span))
        else:
            match tok.kind:
                case TokenKind.STRING_LIT:
                    inner = leaf(NodeKind.STRING_LITERAL, self._advance())
                case TokenKind.NUMBER_LIT | TokenKind.MINUS:
                    inner = self._parse_number()
                case TokenKind.BOOLEAN_LIT:
                    inner = leaf(NodeKind.BOOLEAN_LITERAL, self._advance())
                case TokenKind.IDENTIFIER:
                    inner = leaf(NodeKind.IDENTIFIER, self._advance())
                case _:
                    raise self._error(tok, ("string", "number", "boolean",
                                            "identifier", "'Error:'"))
        return node(NodeKind.EXPECTED_RESULT, inner)

    # ── Constraints ──────────────────────────────────────────────

    def _parse_constraint_spec(self) -> Node:
        target = self._parse_property_access()
        tok = self._current()

        if tok.kind in _COMPARISON_OPERATORS:
            self._advance()
            operator = leaf(NodeKind.COMPARISON_OPERATOR, tok)
            constraint = node(NodeKind.COMPARISON, target, operator, self._parse_value())
        elif tok.kind == TokenKind.IN:
            self._advance()
            constraint = node(NodeKind.RANGE_CONSTRAINT, target, self._parse_range())
        elif tok.kind == TokenKind.MATCHES:
            self._advance()
            pattern = self._expect(TokenKind.PATTERN_LIT, "/pattern/")
            constraint = node(NodeKind.FORMAT_CONSTRAINT, target,
                              leaf(NodeKind.PATTERN, pattern))
        else:
            raise self._error(tok, ("comparison operator", "'IN'", "'MATCHES'"))
        return node(NodeKind.CONSTRAINT_SPEC, constraint)

    def _parse_range(self) -> Node:
        tok = self._current()
        if tok.kind == TokenKind.LBRACKET:
            self._advance()
            low = self._parse_value()
            self._expect(TokenKind.COMMA, "','")
            high = self._parse_value()
            end = self._expect(TokenKind.RBRACKET, "']'")
            return node(NodeKind.RANGE, low, high, span=tok.span.to(end.span))
        if tok.kind not in (TokenKind.NUMBER_LIT, TokenKind.MINUS):
            raise self._error(tok, ("number", "'['"))
        low = self._parse_number()
        self._expect(TokenKind.DOT_DOT, "'..'")
        high = self._parse_number()
        return node(NodeKind.RANGE, low, high)

    # ── Invariants ───────────────────────────────────────────────

    def _parse_invariant_spec(self) -> Node:
        left = self._parse_logical_expression()
        self._expect(TokenKind.IFF, "'⟺'")
        right = self._parse_logical_expression()
        return node(NodeKind.INVARIANT_SPEC, left, right)

    def _parse_logical_expression(self) -> Node:
        tok = self._current()
        if tok.kind == TokenKind.BOOLEAN_LIT:
            return leaf(NodeKind.BOOLEAN_LITERAL, self._advance())
        if tok.kind == TokenKind.IDENTIFIER and self._peek(1).kind == TokenKind.LPAREN:
            return self._parse_function_call()
        if tok.kind == TokenKind.IDENTIFIER:
            return self._parse_property_access()
        raise self._error(tok, ("function call", "property access", "boolean"))

    # ── Shared atoms ─────────────────────────────────────────────

    def _parse_property_access(self) -> Node:
        parts = [self._parse_identifier()]
        while self._at(TokenKind.DOT):
            self._advance()
            parts.append(self._parse_identifier())
        return node(NodeKind.PROPERTY_ACCESS, *parts)

    def _parse_value(self) -> Node:
        tok = self._current()
        match tok.kind:
            case TokenKind.IDENTIFIER:
                inner = leaf(NodeKind.IDENTIFIER, self._advance())
            case TokenKind.STRING_LIT:
                inner = leaf(NodeKind.STRING_LITERAL, self._advance())
            case TokenKind.NUMBER_LIT | TokenKind.MINUS:
                inner = self._parse_number()
            case TokenKind.BOOLEAN_LIT:
                inner = leaf(NodeKind.BOOLEAN_LITERAL, self._advance())
            case _:
                raise self._error(tok, ("identifier", "string", "number", "boolean"))
        return node(NodeKind.VALUE, inner)

    def _parse_number(self) -> Node:
        if self._at(TokenKind.MINUS):
            minus = self._advance()
            digits = self._expect(TokenKind.NUMBER_LIT, "number")
            return Node(NodeKind.NUMBER, (), f"-{digits.value}", None,
                        minus.span.to(digits.span))
        return leaf(NodeKind.NUMBER, self._expect(TokenKind.NUMBER_LIT, "number"))

    def _parse_identifier(self) -> Node:
        return leaf(NodeKind.IDENTIFIER, self._expect(TokenKind.IDENTIFIER, "identifier"))
