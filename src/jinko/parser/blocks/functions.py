"""Function block parsing for the jinko parser.

Provides a mixin for ``macro``, ``call`` and ``do`` statements.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from jinko._types import Span, TokenType
from jinko.nodes import Call, CallBlock, Do, Expr, Macro, Stmt

if TYPE_CHECKING:
    from jinko._types import Token
    from jinko.environment.exceptions import TemplateSyntaxError
    from jinko.nodes import Var


def describe_expr(expr: Expr) -> str:
    """Short human readable name of an expression kind."""
    return _EXPR_NAMES.get(type(expr).__name__, "expression")


_EXPR_NAMES = {
    "Var": "variable",
    "Const": "constant",
    "Slice": "slice",
    "UnaryOp": "unary operator",
    "BinOp": "binary operator",
    "IfExpr": "if expression",
    "Filter": "filter expression",
    "Test": "test expression",
    "GetAttr": "get attribute",
    "GetItem": "get item",
    "Call": "call",
    "List": "list literal",
    "Map": "map literal",
    "Kwargs": "keyword arguments",
}


class FunctionBlockParsingMixin:
    """Mixin for parsing function blocks."""

    # ─────────────────────────────────────────────────────────────────────────
    # Host attributes and cross-mixin dependencies (type-check only)
    # ─────────────────────────────────────────────────────────────────────────
    if TYPE_CHECKING:
        _in_macro: bool

        @property
        def _current(self) -> Token: ...
        def _match(self, *types: TokenType) -> bool: ...
        def _skip(self, token_type: TokenType) -> bool: ...
        def _expect(self, token_type: TokenType, expected: str | None = None) -> Token: ...
        def _expect_ident(self, name: str | None = None, expected: str | None = None) -> Token: ...
        def _expand_span(self, start: Span) -> Span: ...
        def _error(self, message: str, span: Span | None = None) -> TemplateSyntaxError: ...
        def _subparse(self, end_tags: tuple[str, ...] | None) -> list[Stmt]: ...
        def _parse_assign_name(self) -> Var: ...
        def _parse_expr(self) -> Expr: ...

    def _parse_macro_args_and_defaults(self) -> tuple[list[Expr], list[Expr]]:
        """Parse ``(a, b, c=1)``.

        Once a parameter has a default, every following parameter needs
        one too.
        """
        args: list[Expr] = []
        defaults: list[Expr] = []
        self._expect(TokenType.LPAREN, "`(`")
        while not self._skip(TokenType.RPAREN):
            if args:
                self._expect(TokenType.COMMA, "`,`")
                if self._skip(TokenType.RPAREN):
                    break
            args.append(self._parse_assign_name())
            if self._skip(TokenType.ASSIGN):
                defaults.append(self._parse_expr())
            elif defaults:
                self._expect(TokenType.ASSIGN, "`=`")
        return args, defaults

    def _parse_macro_body(self, end_tag: str) -> list[Stmt]:
        self._expect(TokenType.BLOCK_END, "end of block")
        old_in_macro = self._in_macro
        self._in_macro = True
        try:
            body = self._subparse((end_tag,))
        finally:
            self._in_macro = old_in_macro
        self._expect_ident(end_tag)
        return body

    def _parse_macro(self, start: Span) -> Macro:
        """Parse ``{% macro name(args) %}...{% endmacro %}``."""
        name = cast("str", self._expect(TokenType.IDENT, "identifier").value)
        args, defaults = self._parse_macro_args_and_defaults()
        body = self._parse_macro_body("endmacro")
        return Macro(
            span=self._expand_span(start),
            name=name,
            args=tuple(args),
            defaults=tuple(defaults),
            body=tuple(body),
        )

    def _parse_call_block(self, start: Span) -> CallBlock:
        """Parse ``{% call[(params)] macro(args) %}body{% endcall %}``.

        The body becomes a macro named ``caller`` passed to the called
        macro as a keyword argument.
        """
        args: list[Expr] = []
        defaults: list[Expr] = []
        if self._match(TokenType.LPAREN):
            args, defaults = self._parse_macro_args_and_defaults()
        call = self._parse_expr()
        if not isinstance(call, Call):
            raise self._error(
                f"expected call expression in call block, got {describe_expr(call)}",
                call.span,
            )
        body = self._parse_macro_body("endcall")
        span = self._expand_span(start)
        return CallBlock(
            span=span,
            call=call,
            macro_decl=Macro(
                span=span,
                name="caller",
                args=tuple(args),
                defaults=tuple(defaults),
                body=tuple(body),
            ),
        )

    def _parse_do(self, start: Span) -> Do:
        call = self._parse_expr()
        if not isinstance(call, Call):
            raise self._error(
                f"expected call expression in do block, got {describe_expr(call)}",
                call.span,
            )
        return Do(span=self._expand_span(start), call=call)
