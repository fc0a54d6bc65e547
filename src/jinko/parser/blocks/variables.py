"""Variable block parsing for the jinko parser.

Handles both forms of ``set``:

- ``{% set x = expr %}`` / ``{% set (a, b) = pair %}``
- ``{% set ns.attr = expr %}`` for namespace objects
- ``{% set x | upper %}captured body{% endset %}``
"""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from jinko._types import Span, TokenType
from jinko.nodes import Expr, GetAttr, Set, SetBlock, Stmt

if TYPE_CHECKING:
    from jinko._types import Token


class VariableBlockParsingMixin:
    """Mixin for parsing ``set`` statements."""

    if TYPE_CHECKING:
        def _match(self, *types: TokenType) -> bool: ...
        def _skip(self, token_type: TokenType) -> bool: ...
        def _expect(self, token_type: TokenType, expected: str | None = None) -> Token: ...
        def _expect_ident(self, name: str | None = None, expected: str | None = None) -> Token: ...
        def _expand_span(self, start: Span) -> Span: ...
        def _subparse(self, end_tags: tuple[str, ...] | None) -> list[Stmt]: ...
        def _parse_assignment(self) -> Expr: ...
        def _parse_assign_name(self) -> Expr: ...
        def _parse_expr(self) -> Expr: ...
        def _parse_filter_block_chain(self) -> Expr: ...

    def _parse_set(self, start: Span) -> Set | SetBlock:
        in_paren = self._skip(TokenType.LPAREN)
        if in_paren:
            target = self._parse_assignment()
            self._expect(TokenType.RPAREN, "`)`")
        else:
            target = self._parse_assign_name()
            if self._skip(TokenType.DOT):
                attr = self._expect(TokenType.IDENT, "identifier")
                target = GetAttr(
                    span=self._expand_span(start), expr=target, name=cast("str", attr.value)
                )

        if not in_paren and self._match(TokenType.BLOCK_END, TokenType.PIPE):
            chain = self._parse_filter_block_chain() if self._skip(TokenType.PIPE) else None
            self._expect(TokenType.BLOCK_END, "end of block")
            body = self._subparse(("endset",))
            self._expect_ident("endset")
            return SetBlock(span=self._expand_span(start), target=target, filter=chain, body=tuple(body))

        self._expect(TokenType.ASSIGN, "assignment operator")
        expr = self._parse_expr()
        return Set(span=self._expand_span(start), target=target, expr=expr)
