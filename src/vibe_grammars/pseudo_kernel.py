"""Parser for the pseudo-kernel language.

Outside fenced blocks a pseudo-kernel document is plain markdown: headers,
paragraphs and context links (``- [target] - description``). Fences tagged
``pseudo`` hold statements::

    fn authenticate(request: AuthRequest) -> Result<Session, VibeError> {
        let specs = load_specs("auth")
        if specs.valid {
            return spawn_subagent("login", request)
        }
        else {
            return execute("fallback")
        }
    }

Expressions are parsed with a Pratt loop over the binding powers below; calls
to the built-in system verbs are tagged ``system_function_call``.
"""

from __future__ import annotations

from vibe_grammars.ast_nodes import Node, NodeKind, leaf, node
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
from vibe_grammars.tokens import PSEUDO_KERNEL_KEYWORDS, Token, TokenKind
from vibe_grammars.type_spec import TypeSpecParser

SYSTEM_FUNCTIONS = frozenset({
    "spawn_subagent",
    "load_specs",
    "load_algorithm",
    "execute",
})

PSEUDO_LANGUAGE = "pseudo"
MATH_LANGUAGE = "latex"

# ── Binding powers for Pratt parser ─────────────────────────────

# (left_bp, right_bp) for infix operators
_INFIX_BP: dict[TokenKind, tuple[int, int]] = {
    TokenKind.PIPE_ARROW: (1, 2),
    TokenKind.OR: (3, 4),
    TokenKind.AND: (5, 6),
    TokenKind.EQUAL: (7, 8),
    TokenKind.NOT_EQUAL: (7, 8),
    TokenKind.LESS: (7, 8),
    TokenKind.GREATER: (7, 8),
    TokenKind.LESS_EQUAL: (7, 8),
    TokenKind.GREATER_EQUAL: (7, 8),
    TokenKind.DOT_DOT: (9, 10),
    TokenKind.PLUS: (11, 12),
    TokenKind.MINUS: (11, 12),
    TokenKind.STAR: (13, 14),
    TokenKind.SLASH: (13, 14),
    TokenKind.PERCENT: (13, 14),
}

_PREFIX_BP = 15  # right bp for unary ! and -
_POSTFIX_BP = 17  # left bp for ., ::, ()

_SEPARATORS = (TokenKind.NEWLINE, TokenKind.SEMICOLON)

_EXPRESSION_START = ("expression",)


def parse_pseudo_kernel(document: Document, ctx: ParseContext) -> Node:
    """Entry rule of the ``pseudo-kernel`` grammar."""
    return PseudoKernelGrammar(document, ctx).parse()


class PseudoKernelGrammar:
    """Maps markdown items onto pseudo-kernel content nodes."""

    def __init__(self, document: Document, ctx: ParseContext) -> None:
        self.document = document
        self.ctx = ctx

    def parse(self) -> Node:
        body = walk_sections(self.document.sections, self.ctx, self._parse_section)
        return source_file_node(self.document, body)

    def _parse_section(self, section: Section) -> list[Node]:
        nodes: list[Node] = []
        if section.heading is not None:
            title = section.heading.title
            nodes.append(Node(NodeKind.MARKDOWN_HEADER, (), title.value, None,
                              section.heading.span))
        for item in section.items:
            match item:
                case TextBlock():
                    nodes.append(Node(NodeKind.PARAGRAPH, (), item.text, None, item.span))
                case ContextLink():
                    nodes.append(self._context_link(item))
                case FencedBlock():
                    nodes.append(self._fenced_block(item))
        return nodes

    def _context_link(self, link: ContextLink) -> Node:
        children = [leaf(NodeKind.LINK_TARGET, link.target)]
        if link.description is not None:
            children.append(leaf(NodeKind.LINK_DESCRIPTION, link.description))
        return node(NodeKind.CONTEXT_LINK, *children, span=link.span)

    def _fenced_block(self, block: FencedBlock) -> Node:
        language = block.language
        if language == PSEUDO_LANGUAGE:
            tokens = tokenize_code(block.text, PSEUDO_KERNEL_KEYWORDS,
                                   self.ctx.filename, block.first_line, 1)
            statements = PseudoCodeParser(tokens, self.ctx).parse_statements()
            return node(NodeKind.PSEUDO_CODE_BLOCK, *statements, span=block.span)

        lines = [t for t in block.lines if t.value.strip()]
        if language == MATH_LANGUAGE:
            latex = [leaf(NodeKind.LATEX_LINE, t) for t in lines]
            return node(NodeKind.MATH_BLOCK, *latex, span=block.span)

        children: list[Node] = []
        if language:
            children.append(leaf(NodeKind.LANGUAGE_IDENTIFIER, block.opener, language))
        children.extend(leaf(NodeKind.CODE_LINE, t) for t in lines)
        return node(NodeKind.CODE_BLOCK, *children, span=block.span)


class PseudoCodeParser(TypeSpecParser):
    """Statement and expression parser for ``pseudo`` fenced blocks."""

    def parse_statements(self) -> list[Node]:
        """Parse every statement up to the end of the block text."""
        return self._parse_statement_list(TokenKind.EOF)

    def _parse_statement_list(self, terminator: TokenKind) -> list[Node]:
        statements: list[Node] = []
        self._skip_separators()
        while not self._at(terminator):
            if self._at(TokenKind.EOF):
                raise self._error(self._current(), ("'}'",))
            statements.append(self._parse_statement())
            if self._at_any(*_SEPARATORS):
                self._skip_separators()
            elif not self._at_any(terminator, TokenKind.EOF):
                raise self._error(self._current(), ("end of statement",))
        return statements

    def _skip_separators(self) -> None:
        while self._at_any(*_SEPARATORS):
            self._advance()

    # ── Statements ───────────────────────────────────────────────

    def _parse_statement(self) -> Node:
        tok = self._current()
        match tok.kind:
            case TokenKind.FN:
                return self._parse_function_definition()
            case TokenKind.LET:
                return self._parse_let_binding()
            case TokenKind.IF:
                return self._parse_if_statement()
            case TokenKind.RETURN:
                return self._parse_return_statement()

        # Assignment: identifier '=' expr (but not ==)
        if tok.kind == TokenKind.IDENTIFIER and self._peek(1).kind == TokenKind.ASSIGN:
            name = leaf(NodeKind.IDENTIFIER, self._advance())
            self._advance()  # =
            return node(NodeKind.ASSIGNMENT, name, self._parse_expression(0))

        expr = self._parse_expression(0)
        if expr.kind == NodeKind.SYSTEM_FUNCTION_CALL:
            return expr
        return node(NodeKind.EXPRESSION_STATEMENT, expr)

    def _parse_function_definition(self) -> Node:
        start = self._advance()  # fn
        children = [self._parse_identifier().with_field("name")]
        self._expect(TokenKind.LPAREN, "'('")
        params: list[Node] = []
        while not self._at(TokenKind.RPAREN):
            if params:
                self._expect(TokenKind.COMMA, "','")
            params.append(self._parse_parameter())
        self._advance()  # )
        if params:
            children.append(node(NodeKind.PARAMETER_LIST, *params).with_field("parameters"))
        if self._at(TokenKind.ARROW):
            self._advance()
            children.append(self._parse_type_specification().with_field("return_type"))
        body = self._parse_block().with_field("body")
        children.append(body)
        return node(NodeKind.FUNCTION_DEFINITION, *children, span=start.span.to(body.span))

    def _parse_parameter(self) -> Node:
        name = self._parse_identifier()
        self._expect(TokenKind.COLON, "':'")
        return node(NodeKind.PARAMETER, name, self._parse_type_specification())

    def _parse_block(self) -> Node:
        start = self._current()
        if start.kind != TokenKind.LBRACE:
            raise self._error(start, ("'{'",))
        with self._nested():
            self._advance()
            statements = self._parse_statement_list(TokenKind.RBRACE)
            end = self._advance()  # }
        return node(NodeKind.BLOCK, *statements, span=start.span.to(end.span))

    def _parse_let_binding(self) -> Node:
        start = self._advance()  # let
        name = self._parse_identifier()
        self._expect(TokenKind.ASSIGN, "'='")
        value = self._parse_expression(0)
        return node(NodeKind.LET_BINDING, name, value, span=start.span.to(value.span))

    def _parse_if_statement(self) -> Node:
        start = self._advance()  # if
        condition = self._parse_expression(0).with_field("condition")
        consequence = self._parse_block().with_field("consequence")
        children = [condition, consequence]

        # else may sit on the line after the closing brace
        save_pos = self.pos
        self._skip_newlines()
        if self._at(TokenKind.ELSE):
            self._advance()
            if self._at(TokenKind.IF):
                with self._nested():
                    alternative = self._parse_if_statement()
            else:
                alternative = self._parse_block()
            children.append(alternative.with_field("alternative"))
        else:
            self.pos = save_pos

        return node(NodeKind.IF_STATEMENT, *children,
                    span=start.span.to(children[-1].span))

    def _parse_return_statement(self) -> Node:
        tok = self._advance()  # return
        if self._at_any(*_SEPARATORS, TokenKind.RBRACE, TokenKind.EOF):
            return node(NodeKind.RETURN_STATEMENT, span=tok.span)
        value = self._parse_expression(0)
        return node(NodeKind.RETURN_STATEMENT, value, span=tok.span.to(value.span))

    # ── Pratt expression parser ──────────────────────────────────

    def _parse_expression(self, min_bp: int) -> Node:
        """Parse an expression using Pratt parsing with binding powers."""
        with self._nested():
            left = self._parse_prefix()

            while True:
                tok = self._current()

                if tok.kind == TokenKind.DOT:
                    if _POSTFIX_BP < min_bp:
                        break
                    self._advance()
                    name = self._parse_identifier()
                    if self._at(TokenKind.LPAREN):
                        args = self._parse_arguments()
                        left = node(NodeKind.METHOD_CALL, left, name, *args,
                                    span=left.span.to(self._previous().span))
                    elif left.kind == NodeKind.PROPERTY_ACCESS:
                        left = node(NodeKind.PROPERTY_ACCESS, *left.children, name)
                    else:
                        left = node(NodeKind.PROPERTY_ACCESS, left, name)
                    continue

                if tok.kind == TokenKind.DOUBLE_COLON and left.kind in (
                        NodeKind.IDENTIFIER, NodeKind.SCOPED_IDENTIFIER):
                    if _POSTFIX_BP < min_bp:
                        break
                    self._advance()
                    name = self._parse_identifier()
                    if left.kind == NodeKind.SCOPED_IDENTIFIER:
                        left = node(NodeKind.SCOPED_IDENTIFIER, *left.children, name)
                    else:
                        left = node(NodeKind.SCOPED_IDENTIFIER, left, name)
                    continue

                if tok.kind == TokenKind.LPAREN and left.kind in (
                        NodeKind.IDENTIFIER, NodeKind.SCOPED_IDENTIFIER):
                    if _POSTFIX_BP < min_bp:
                        break
                    left = self._parse_call(left)
                    continue

                # Infix operators
                if tok.kind in _INFIX_BP:
                    left_bp, right_bp = _INFIX_BP[tok.kind]
                    if left_bp < min_bp:
                        break
                    op_tok = self._advance()
                    self._skip_newlines()
                    right = self._parse_expression(right_bp)
                    match op_tok.kind:
                        case TokenKind.PIPE_ARROW:
                            left = node(NodeKind.PIPE_EXPRESSION, left, right)
                        case TokenKind.DOT_DOT:
                            left = node(NodeKind.RANGE_EXPRESSION, left, right)
                        case _:
                            left = node(NodeKind.BINARY_EXPRESSION, left, right,
                                        text=op_tok.value)
                    continue

                break

            return left

    def _parse_prefix(self) -> Node:
        """Parse a prefix expression (atom or unary operator)."""
        tok = self._current()

        match tok.kind:
            case TokenKind.BANG | TokenKind.MINUS:
                self._advance()
                operand = self._parse_expression(_PREFIX_BP)
                return node(NodeKind.UNARY_EXPRESSION, operand, text=tok.value,
                            span=tok.span.to(operand.span))
            case TokenKind.NUMBER_LIT:
                return leaf(NodeKind.NUMBER, self._advance())
            case TokenKind.STRING_LIT:
                return leaf(NodeKind.STRING_LITERAL, self._advance())
            case TokenKind.BOOLEAN_LIT:
                return leaf(NodeKind.BOOLEAN, self._advance())
            case TokenKind.IDENTIFIER:
                return leaf(NodeKind.IDENTIFIER, self._advance())
            case TokenKind.LPAREN:
                self._advance()
                expr = self._parse_expression(0)
                self._expect(TokenKind.RPAREN, "')'")
                return expr
            case TokenKind.LBRACKET:
                return self._parse_array_literal()
            case TokenKind.LBRACE:
                return self._parse_object_literal()

        raise self._error(tok, _EXPRESSION_START)

    def _parse_call(self, callee: Node) -> Node:
        args = self._parse_arguments()
        span = callee.span.to(self._previous().span)
        if callee.kind == NodeKind.IDENTIFIER and callee.text in SYSTEM_FUNCTIONS:
            return node(NodeKind.SYSTEM_FUNCTION_CALL, callee, *args, span=span)
        return node(NodeKind.FUNCTION_CALL, callee, *args, span=span)

    def _parse_arguments(self) -> list[Node]:
        """Parse ``( args )``; returns ``[argument_list]`` or ``[]`` when empty."""
        self._advance()  # (
        args: list[Node] = []
        while not self._at(TokenKind.RPAREN):
            if args:
                self._expect(TokenKind.COMMA, "','")
            args.append(self._parse_expression(0))
        self._advance()  # )
        if not args:
            return []
        return [node(NodeKind.ARGUMENT_LIST, *args)]

    def _parse_array_literal(self) -> Node:
        start = self._advance()  # [
        elements: list[Node] = []
        while not self._at(TokenKind.RBRACKET):
            if elements:
                self._expect(TokenKind.COMMA, "','")
            elements.append(self._parse_expression(0))
        end = self._advance()  # ]
        return node(NodeKind.ARRAY_LITERAL, *elements, span=start.span.to(end.span))

    def _parse_object_literal(self) -> Node:
        start = self._advance()  # {
        properties: list[Node] = []
        self._skip_newlines()
        while not self._at(TokenKind.RBRACE):
            if properties:
                self._expect(TokenKind.COMMA, "','")
                self._skip_newlines()
            key_tok = self._current()
            if key_tok.kind == TokenKind.IDENTIFIER:
                key = leaf(NodeKind.IDENTIFIER, self._advance())
            elif key_tok.kind == TokenKind.STRING_LIT:
                key = leaf(NodeKind.STRING_LITERAL, self._advance())
            else:
                raise self._error(key_tok, ("property name", "'}'"))
            self._expect(TokenKind.COLON, "':'")
            properties.append(node(NodeKind.OBJECT_PROPERTY, key, self._parse_expression(0)))
            self._skip_newlines()
        end = self._advance()  # }
        return node(NodeKind.OBJECT_LITERAL, *properties, span=start.span.to(end.span))

    # ── Helpers ──────────────────────────────────────────────────

    def _previous(self) -> Token:
        return self.tokens[max(self.pos - 1, 0)]

    def _parse_identifier(self) -> Node:
        return leaf(NodeKind.IDENTIFIER, self._expect(TokenKind.IDENTIFIER, "identifier"))
