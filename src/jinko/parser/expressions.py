"""Expression parsing for the jinko parser.

Precedence, lowest first::

    if-expr   a if cond else b
    or
    and
    not       (unary, right-recursive)
    compare   == != < <= > >= in, not in
    math1     + -
    concat    ~
    math2     * / // %
    pow       **
    unary     -x, then postfix (.attr [sub] (call)), then | filter / is test

Every binary level is left-associative. Constant list and map literals
are folded into a single `Const` node.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from jinko._types import Span, Token, TokenType
from jinko.nodes import (
    BinOp,
    BinOpKind,
    Call,
    Const,
    Expr,
    Filter,
    GetAttr,
    GetItem,
    IfExpr,
    Kwargs,
    List,
    Map,
    Slice,
    Test,
    UnaryOp,
    UnaryOpKind,
    Var,
)
from jinko.value import NONE, Value

if TYPE_CHECKING:
    from collections.abc import Callable

    from jinko.environment.exceptions import TemplateSyntaxError


_COMPARE_OPS = {
    TokenType.EQ: BinOpKind.EQ,
    TokenType.NE: BinOpKind.NE,
    TokenType.LT: BinOpKind.LT,
    TokenType.LTE: BinOpKind.LTE,
    TokenType.GT: BinOpKind.GT,
    TokenType.GTE: BinOpKind.GTE,
}

_MATH1_OPS = {TokenType.PLUS: BinOpKind.ADD, TokenType.MINUS: BinOpKind.SUB}
_CONCAT_OPS = {TokenType.TILDE: BinOpKind.CONCAT}
_MATH2_OPS = {
    TokenType.MUL: BinOpKind.MUL,
    TokenType.DIV: BinOpKind.DIV,
    TokenType.FLOORDIV: BinOpKind.FLOOR_DIV,
    TokenType.MOD: BinOpKind.REM,
}
_POW_OPS = {TokenType.POW: BinOpKind.POW}

_CONSTANT_NAMES = {
    "true": Value.from_bool(True),
    "True": Value.from_bool(True),
    "false": Value.from_bool(False),
    "False": Value.from_bool(False),
    "none": NONE,
    "None": NONE,
}


class ExpressionParsingMixin:
    """Mixin for parsing expressions."""

    # ─────────────────────────────────────────────────────────────────────────
    # Host attributes and cross-mixin dependencies (type-check only)
    # ─────────────────────────────────────────────────────────────────────────
    if TYPE_CHECKING:
        _last_span: Span

        @property
        def _current(self) -> Token: ...
        def _advance(self) -> Token: ...
        def _match(self, *types: TokenType) -> bool: ...
        def _match_ident(self, *names: str) -> bool: ...
        def _skip(self, token_type: TokenType) -> bool: ...
        def _skip_ident(self, name: str) -> bool: ...
        def _expect(self, token_type: TokenType, expected: str | None = None) -> Token: ...
        def _expect_ident(self, name: str | None = None, expected: str | None = None) -> Token: ...
        def _expand_span(self, start: Span) -> Span: ...
        def _error(self, message: str, span: Span | None = None) -> TemplateSyntaxError: ...
        def _unexpected(self, token: Token, expected: str) -> TemplateSyntaxError: ...
        def _guarded(self, func: Callable[[], object]) -> object: ...

    # ─────────────────────────────────────────────────────────────────────────
    # Entry points
    # ─────────────────────────────────────────────────────────────────────────

    def _parse_expr(self) -> Expr:
        """Parse a full expression, including ``a if b else c``."""
        return cast("Expr", self._guarded(self._parse_ifexpr))

    def _parse_expr_no_if(self) -> Expr:
        """Parse an expression without a trailing conditional.

        Used where ``if`` starts a clause of its own, such as the filter
        of a for loop.
        """
        return cast("Expr", self._guarded(self._parse_or))

    def _parse_ifexpr(self) -> Expr:
        start = self._current.span
        expr = self._parse_or()
        while self._skip_ident("if"):
            test_expr = self._parse_or()
            false_expr = None
            if self._skip_ident("else"):
                false_expr = self._parse_ifexpr()
            expr = IfExpr(
                span=self._expand_span(start),
                test_expr=test_expr,
                true_expr=expr,
                false_expr=false_expr,
            )
        return expr

    # ─────────────────────────────────────────────────────────────────────────
    # Boolean and binary operators
    # ─────────────────────────────────────────────────────────────────────────

    def _parse_or(self) -> Expr:
        start = self._current.span
        left = self._parse_and()
        while self._skip_ident("or"):
            right = self._parse_and()
            left = BinOp(span=self._expand_span(start), op=BinOpKind.SC_OR, left=left, right=right)
        return left

    def _parse_and(self) -> Expr:
        start = self._current.span
        left = self._parse_not()
        while self._skip_ident("and"):
            right = self._parse_not()
            left = BinOp(span=self._expand_span(start), op=BinOpKind.SC_AND, left=left, right=right)
        return left

    def _parse_not(self) -> Expr:
        start = self._current.span
        if self._skip_ident("not"):
            expr = self._parse_not()
            return UnaryOp(span=self._expand_span(start), op=UnaryOpKind.NOT, expr=expr)
        return self._parse_compare()

    def _parse_compare(self) -> Expr:
        start = self._current.span
        expr = self._parse_math1()
        while True:
            token = self._current
            negated = False
            if token.type in _COMPARE_OPS:
                op = _COMPARE_OPS[token.type]
                self._advance()
            elif self._match_ident("in"):
                op = BinOpKind.IN
                self._advance()
            elif self._match_ident("not"):
                self._advance()
                self._expect_ident("in", "`in`")
                op = BinOpKind.IN
                negated = True
            else:
                break
            right = self._parse_math1()
            expr = BinOp(span=self._expand_span(start), op=op, left=expr, right=right)
            if negated:
                expr = UnaryOp(span=self._expand_span(start), op=UnaryOpKind.NOT, expr=expr)
        return expr

    def _parse_binary(
        self,
        ops: dict[TokenType, BinOpKind],
        operand: Callable[[], Expr],
    ) -> Expr:
        start = self._current.span
        left = operand()
        while self._current.type in ops:
            op = ops[self._advance().type]
            right = operand()
            left = BinOp(span=self._expand_span(start), op=op, left=left, right=right)
        return left

    def _parse_math1(self) -> Expr:
        return self._parse_binary(_MATH1_OPS, self._parse_concat)

    def _parse_concat(self) -> Expr:
        return self._parse_binary(_CONCAT_OPS, self._parse_math2)

    def _parse_math2(self) -> Expr:
        return self._parse_binary(_MATH2_OPS, self._parse_pow)

    def _parse_pow(self) -> Expr:
        return self._parse_binary(_POW_OPS, self._parse_unary)

    # ─────────────────────────────────────────────────────────────────────────
    # Unary, postfix, filters and tests
    # ─────────────────────────────────────────────────────────────────────────

    def _parse_unary(self) -> Expr:
        start = self._current.span
        expr = self._parse_unary_only()
        expr = self._parse_postfix(expr, start)
        return self._parse_filter_chain(expr)

    def _parse_unary_only(self) -> Expr:
        start = self._current.span
        if self._skip(TokenType.MINUS):
            expr = self._parse_unary_only()
            return UnaryOp(span=self._expand_span(start), op=UnaryOpKind.NEG, expr=expr)
        return cast("Expr", self._guarded(self._parse_primary))

    def _parse_postfix(self, expr: Expr, start: Span) -> Expr:
        while True:
            if self._skip(TokenType.DOT):
                name = self._expect(TokenType.IDENT, "identifier").value
                expr = GetAttr(span=self._expand_span(start), expr=expr, name=cast("str", name))
            elif self._skip(TokenType.LBRACKET):
                expr = self._parse_subscript(expr, start)
            elif self._match(TokenType.LPAREN):
                args = self._parse_args()
                expr = Call(span=self._expand_span(start), expr=expr, args=tuple(args))
            else:
                return expr

    def _parse_subscript(self, expr: Expr, start: Span) -> Expr:
        lower = upper = step = None
        is_slice = False
        if self._match(TokenType.RBRACKET):
            raise self._error("empty subscript", self._expand_span(start))
        if not self._match(TokenType.COLON):
            lower = self._parse_expr()
        if self._skip(TokenType.COLON):
            is_slice = True
            if not self._match(TokenType.RBRACKET, TokenType.COLON):
                upper = self._parse_expr()
            if self._skip(TokenType.COLON) and not self._match(TokenType.RBRACKET):
                step = self._parse_expr()
        self._expect(TokenType.RBRACKET, "`]`")
        span = self._expand_span(start)
        if is_slice:
            return Slice(span=span, expr=expr, start=lower, stop=upper, step=step)
        return GetItem(span=span, expr=expr, subscript_expr=cast("Expr", lower))

    def _parse_filter_chain(self, expr: Expr) -> Expr:
        while True:
            if self._skip(TokenType.PIPE):
                name_token = self._expect(TokenType.IDENT, "identifier")
                args = self._parse_args() if self._match(TokenType.LPAREN) else []
                expr = Filter(
                    span=self._expand_span(name_token.span),
                    name=cast("str", name_token.value),
                    expr=expr,
                    args=tuple(args),
                )
            elif self._skip_ident("is"):
                negated = self._skip_ident("not")
                name_token = self._expect(TokenType.IDENT, "identifier")
                args = self._parse_args() if self._match(TokenType.LPAREN) else []
                span = self._expand_span(name_token.span)
                expr = Test(span=span, name=cast("str", name_token.value), expr=expr, args=tuple(args))
                if negated:
                    expr = UnaryOp(span=span, op=UnaryOpKind.NOT, expr=expr)
            else:
                return expr

    def _parse_args(self) -> list[Expr]:
        """Parse ``(a, b, key=value)``.

        Keyword arguments are collected into a trailing `Kwargs` node;
        a positional argument after a keyword argument is an error.
        """
        args: list[Expr] = []
        kwargs: list[tuple[str, Expr]] = []
        first_kwarg: Span | None = None
        self._expect(TokenType.LPAREN, "`(`")
        while not self._skip(TokenType.RPAREN):
            if args or kwargs:
                self._expect(TokenType.COMMA, "`,`")
                if self._skip(TokenType.RPAREN):
                    break
            expr = self._parse_expr()
            if isinstance(expr, Var) and self._skip(TokenType.ASSIGN):
                if first_kwarg is None:
                    first_kwarg = expr.span
                kwargs.append((expr.id, self._parse_expr_no_if()))
            elif kwargs:
                raise self._error("non-keyword arg after keyword arg", expr.span)
            else:
                args.append(expr)
        if kwargs:
            assert first_kwarg is not None
            args.append(Kwargs(span=self._expand_span(first_kwarg), pairs=tuple(kwargs)))
        return args

    # ─────────────────────────────────────────────────────────────────────────
    # Primary expressions
    # ─────────────────────────────────────────────────────────────────────────

    def _parse_primary(self) -> Expr:
        token = self._current
        span = token.span
        if token.type is TokenType.IDENT:
            self._advance()
            name = cast("str", token.value)
            if name in _CONSTANT_NAMES:
                return Const(span=span, value=_CONSTANT_NAMES[name])
            return Var(span=span, id=name)
        if token.type is TokenType.STRING:
            self._advance()
            return Const(span=span, value=Value.from_str(cast("str", token.value)))
        if token.type is TokenType.INTEGER:
            self._advance()
            return Const(span=span, value=Value.from_int(cast("int", token.value)))
        if token.type is TokenType.FLOAT:
            self._advance()
            return Const(span=span, value=Value.from_f64(cast("float", token.value)))
        if token.type is TokenType.LPAREN:
            self._advance()
            return self._parse_tuple_or_expr(span)
        if token.type is TokenType.LBRACKET:
            self._advance()
            return self._fold(self._parse_list(span))
        if token.type is TokenType.LBRACE:
            self._advance()
            return self._fold(self._parse_map(span))
        raise self._unexpected(token, "expression")

    @staticmethod
    def _fold(expr: List | Map) -> Expr:
        value = expr.as_const()
        if value is None:
            return expr
        return Const(span=expr.span, value=value)

    def _parse_tuple_or_expr(self, start: Span) -> Expr:
        # tuples are lists
        if self._skip(TokenType.RPAREN):
            return self._fold(List(span=self._expand_span(start), items=()))
        expr = self._parse_expr()
        if not self._match(TokenType.COMMA):
            self._expect(TokenType.RPAREN, "`)`")
            return expr
        items = [expr]
        while not self._skip(TokenType.RPAREN):
            self._expect(TokenType.COMMA, "`,`")
            if self._skip(TokenType.RPAREN):
                break
            items.append(self._parse_expr())
        return self._fold(List(span=self._expand_span(start), items=tuple(items)))

    def _parse_list(self, start: Span) -> List:
        items: list[Expr] = []
        while not self._skip(TokenType.RBRACKET):
            if items:
                self._expect(TokenType.COMMA, "`,`")
                if self._skip(TokenType.RBRACKET):
                    break
            items.append(self._parse_expr())
        return List(span=self._expand_span(start), items=tuple(items))

    def _parse_map(self, start: Span) -> Map:
        keys: list[Expr] = []
        values: list[Expr] = []
        while not self._skip(TokenType.RBRACE):
            if keys:
                self._expect(TokenType.COMMA, "`,`")
                if self._skip(TokenType.RBRACE):
                    break
            keys.append(self._parse_expr())
            self._expect(TokenType.COLON, "`:`")
            values.append(self._parse_expr())
        return Map(span=self._expand_span(start), keys=tuple(keys), values=tuple(values))
