"""Recursive-descent parser for jinko templates.

The parser pulls tokens lazily from the lexer and builds an immutable
AST (see `jinko.nodes`). It is assembled from mixins:

- `TokenNavigationMixin` (this module): current/lookahead token,
  expect/skip helpers, error construction, recursion guard.
- `ExpressionParsingMixin`: precedence climbing for expressions.
- `StatementParsingMixin`: template body and statement dispatch.
- `blocks.*`: one mixin per statement family.

Example:
    >>> parse("Hello {{ name }}!", "greeting.txt")
    Template(span=..., children=(EmitRaw(..., raw='Hello '), EmitExpr(...), ...))

"""

from __future__ import annotations

from collections.abc import Callable, Iterator

from jinko._types import Span, Token, TokenType
from jinko.environment.exceptions import ErrorKind, TemplateSyntaxError
from jinko.lexer import DEFAULT_SYNTAX, SyntaxConfig, tokenize
from jinko.nodes import Expr, Template
from jinko.parser.blocks import (
    ControlFlowBlockParsingMixin,
    FunctionBlockParsingMixin,
    TemplateStructureBlockParsingMixin,
    VariableBlockParsingMixin,
)
from jinko.parser.expressions import ExpressionParsingMixin
from jinko.parser.statements import StatementParsingMixin

MAX_RECURSION = 150


class TokenNavigationMixin:
    """Token stream access shared by every parsing mixin."""

    _tokens: Iterator[Token]
    _current_token: Token
    _last_span: Span
    _depth: int

    @property
    def _current(self) -> Token:
        return self._current_token

    def _advance(self) -> Token:
        """Consume and return the current token."""
        token = self._current_token
        if token.type is not TokenType.EOF:
            self._current_token = next(self._tokens)
        self._last_span = token.span
        return token

    def _match(self, *types: TokenType) -> bool:
        return self._current_token.type in types

    def _match_ident(self, *names: str) -> bool:
        token = self._current_token
        return token.type is TokenType.IDENT and token.value in names

    def _skip(self, token_type: TokenType) -> bool:
        if self._current_token.type is token_type:
            self._advance()
            return True
        return False

    def _skip_ident(self, name: str) -> bool:
        if self._match_ident(name):
            self._advance()
            return True
        return False

    def _expect(self, token_type: TokenType, expected: str | None = None) -> Token:
        if self._current_token.type is token_type:
            return self._advance()
        raise self._unexpected(self._current_token, expected or str(token_type))

    def _expect_ident(self, name: str | None = None, expected: str | None = None) -> Token:
        token = self._current_token
        if token.type is TokenType.IDENT and (name is None or token.value == name):
            return self._advance()
        raise self._unexpected(token, expected or name or "identifier")

    def _expand_span(self, start: Span) -> Span:
        """Span from ``start`` to the end of the last consumed token."""
        end = self._last_span
        return Span(
            start.start_line, start.start_col, start.start_offset,
            end.end_line, end.end_col, end.end_offset,
        )

    def _error(self, message: str, span: Span | None = None) -> TemplateSyntaxError:
        span = span or self._current_token.span
        return TemplateSyntaxError(message, span=span, lineno=span.start_line)

    def _unexpected(self, token: Token, expected: str) -> TemplateSyntaxError:
        if token.type is TokenType.EOF:
            return TemplateSyntaxError(
                f"expected {expected}",
                kind=ErrorKind.UNEXPECTED_EOF,
                span=token.span,
                lineno=token.lineno,
            )
        return self._error(f"unexpected {token.describe()}, expected {expected}", token.span)

    def _recursion_error(self) -> TemplateSyntaxError:
        return self._error("template exceeds maximum recursion limits")

    def _guarded(self, func: Callable[[], object]) -> object:
        self._depth += 1
        if self._depth > MAX_RECURSION:
            raise self._recursion_error()
        try:
            return func()
        finally:
            self._depth -= 1


class Parser(
    TokenNavigationMixin,
    ExpressionParsingMixin,
    StatementParsingMixin,
    ControlFlowBlockParsingMixin,
    VariableBlockParsingMixin,
    TemplateStructureBlockParsingMixin,
    FunctionBlockParsingMixin,
):
    """Parser over one template source.

    Attributes:
        _name: Template name for error messages
        _source: Template source, attached to errors
        _in_macro: Inside a macro body (blocks are rejected)
        _blocks: Names of blocks defined so far
        _depth: Current recursion depth

    """

    __slots__ = (
        "_blocks",
        "_current_token",
        "_depth",
        "_in_macro",
        "_last_span",
        "_name",
        "_source",
        "_tokens",
    )

    def __init__(
        self,
        source: str,
        name: str = "<string>",
        syntax: SyntaxConfig = DEFAULT_SYNTAX,
        *,
        in_expr: bool = False,
    ):
        self._name = name
        self._source = source
        self._tokens = tokenize(source, syntax, in_expr=in_expr)
        self._last_span = Span(1, 0, 0, 1, 0, 0)
        self._depth = 0
        self._in_macro = False
        self._blocks: set[str] = set()
        self._current_token = next(self._tokens)

    def _locate(self, exc: TemplateSyntaxError) -> TemplateSyntaxError:
        exc.attach_location(self._name, self._last_span.start_line, self._last_span, self._source)
        if exc.name is None:
            exc.name = self._name
        if exc.source is None:
            exc.source = self._source
        return exc

    def parse(self) -> Template:
        start = self._current_token.span
        try:
            children = self._subparse(None)
        except TemplateSyntaxError as exc:
            raise self._locate(exc) from None
        except RecursionError:
            raise self._locate(self._recursion_error()) from None
        return Template(span=self._expand_span(start), children=tuple(children))

    def parse_standalone_expr(self) -> Expr:
        try:
            expr = self._parse_expr()
            if not self._match(TokenType.EOF):
                raise self._error("unexpected input after expression")
        except TemplateSyntaxError as exc:
            raise self._locate(exc) from None
        except RecursionError:
            raise self._locate(self._recursion_error()) from None
        return expr


def parse(
    source: str,
    name: str = "<string>",
    syntax: SyntaxConfig = DEFAULT_SYNTAX,
    *,
    keep_trailing_newline: bool = False,
) -> Template:
    """Parse template source into an AST.

    A single trailing ``\\n`` and then a single ``\\r`` are removed unless
    ``keep_trailing_newline`` is set, so an inline template does not end
    with a blank line.

    Raises:
        TemplateSyntaxError: With name, line and span of the offending token.
    """
    if not keep_trailing_newline:
        source = source.removesuffix("\n").removesuffix("\r")
    try:
        parser = Parser(source, name, syntax)
    except TemplateSyntaxError as exc:
        exc.attach_location(name, None, None, source)
        exc.name = name
        raise
    return parser.parse()


def parse_expr(source: str, syntax: SyntaxConfig = DEFAULT_SYNTAX) -> Expr:
    """Parse a standalone expression (no delimiters)."""
    try:
        parser = Parser(source, "<expression>", syntax, in_expr=True)
    except TemplateSyntaxError as exc:
        exc.name = "<expression>"
        raise
    return parser.parse_standalone_expr()
