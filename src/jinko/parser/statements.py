"""Template body and statement dispatch for the jinko parser.

`_subparse` walks template data, ``{{ ... }}`` output and ``{% ... %}``
statements until one of the given end tags (or the end of input) is
reached. The end tag itself is left for the caller to consume, so every
statement parser ends with ``self._expect_ident("endxxx")`` and the
enclosing `_subparse` consumes the closing ``%}``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from jinko._types import Span, Token, TokenType
from jinko.nodes import EmitExpr, EmitRaw, Expr, List, Stmt, Var

if TYPE_CHECKING:
    from collections.abc import Callable

    from jinko.environment.exceptions import TemplateSyntaxError

RESERVED_NAMES = frozenset({"true", "True", "false", "False", "none", "None", "loop", "self"})

_STATEMENTS = {
    "for": "_parse_for_stmt",
    "if": "_parse_if_cond",
    "with": "_parse_with_block",
    "set": "_parse_set",
    "autoescape": "_parse_auto_escape",
    "filter": "_parse_filter_block",
    "block": "_parse_block",
    "extends": "_parse_extends",
    "include": "_parse_include",
    "import": "_parse_import",
    "from": "_parse_from_import",
    "macro": "_parse_macro",
    "call": "_parse_call_block",
    "do": "_parse_do",
}


class StatementParsingMixin:
    """Mixin for the template body, statement dispatch and assignment targets."""

    if TYPE_CHECKING:
        @property
        def _current(self) -> Token: ...
        def _advance(self) -> Token: ...
        def _match(self, *types: TokenType) -> bool: ...
        def _match_ident(self, *names: str) -> bool: ...
        def _skip(self, token_type: TokenType) -> bool: ...
        def _expect(self, token_type: TokenType, expected: str | None = None) -> Token: ...
        def _expand_span(self, start: Span) -> Span: ...
        def _error(self, message: str, span: Span | None = None) -> TemplateSyntaxError: ...
        def _unexpected(self, token: Token, expected: str) -> TemplateSyntaxError: ...
        def _guarded(self, func: Callable[[], object]) -> object: ...
        def _parse_expr(self) -> Expr: ...

    def _subparse(self, end_tags: tuple[str, ...] | None) -> list[Stmt]:
        """Parse template body until a ``{% tag %}`` in ``end_tags``.

        On return the current token is the end tag identifier (or EOF).
        """
        body: list[Stmt] = []
        while True:
            token = self._current
            if token.type is TokenType.EOF:
                return body
            if token.type is TokenType.TEMPLATE_DATA:
                self._advance()
                body.append(EmitRaw(span=token.span, raw=cast("str", token.value)))
            elif token.type is TokenType.VARIABLE_START:
                self._advance()
                expr = self._parse_expr()
                self._expect(TokenType.VARIABLE_END, "end of variable block")
                body.append(EmitExpr(span=self._expand_span(token.span), expr=expr))
            elif token.type is TokenType.BLOCK_START:
                self._advance()
                if end_tags is not None and self._match_ident(*end_tags):
                    return body
                body.append(self._parse_stmt())
                self._expect(TokenType.BLOCK_END, "end of block")
            else:
                raise self._unexpected(token, "template data")

    def _parse_stmt(self) -> Stmt:
        return cast("Stmt", self._guarded(self._parse_stmt_unguarded))

    def _parse_stmt_unguarded(self) -> Stmt:
        token = self._expect(TokenType.IDENT, "statement")
        method = _STATEMENTS.get(cast("str", token.value))
        if method is None:
            raise self._error(f"unknown statement {token.value}", token.span)
        return getattr(self, method)(token.span)

    # ─────────────────────────────────────────────────────────────────────────
    # Assignment targets
    # ─────────────────────────────────────────────────────────────────────────

    def _parse_assign_name(self) -> Var:
        token = self._expect(TokenType.IDENT, "identifier")
        name = cast("str", token.value)
        if name in RESERVED_NAMES:
            raise self._error(f"cannot assign to reserved variable name {name}", token.span)
        return Var(span=token.span, id=name)

    def _parse_assignment(self) -> Expr:
        """Parse ``a``, ``a, b`` or ``(a, (b, c))`` as an assignment target."""
        start = self._current.span
        items: list[Expr] = []
        is_tuple = False
        while True:
            if items:
                self._expect(TokenType.COMMA, "`,`")
            if self._match(TokenType.RPAREN, TokenType.VARIABLE_END, TokenType.BLOCK_END) or (
                self._match_ident("in")
            ):
                break
            if self._skip(TokenType.LPAREN):
                items.append(self._parse_assignment())
                self._expect(TokenType.RPAREN, "`)`")
            else:
                items.append(self._parse_assign_name())
            if not self._match(TokenType.COMMA):
                break
            is_tuple = True
        if len(items) == 1 and not is_tuple:
            return items[0]
        return List(span=self._expand_span(start), items=tuple(items))
