"""Control flow block parsing for the jinko parser.

Provides a mixin for ``for``, ``if``/``elif``/``else``, ``with``,
``autoescape`` and ``filter`` blocks.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from jinko._types import Span, Token, TokenType
from jinko.nodes import AutoEscape, Expr, Filter, FilterBlock, ForLoop, IfCond, Stmt, WithBlock

if TYPE_CHECKING:
    from jinko.environment.exceptions import TemplateSyntaxError


class ControlFlowBlockParsingMixin:
    """Mixin for parsing control flow blocks."""

    # ─────────────────────────────────────────────────────────────────────────
    # Host attributes and cross-mixin dependencies (type-check only)
    # ─────────────────────────────────────────────────────────────────────────
    if TYPE_CHECKING:
        @property
        def _current(self) -> Token: ...
        def _advance(self) -> Token: ...
        def _match(self, *types: TokenType) -> bool: ...
        def _skip(self, token_type: TokenType) -> bool: ...
        def _skip_ident(self, name: str) -> bool: ...
        def _expect(self, token_type: TokenType, expected: str | None = None) -> Token: ...
        def _expect_ident(self, name: str | None = None, expected: str | None = None) -> Token: ...
        def _expand_span(self, start: Span) -> Span: ...
        def _error(self, message: str, span: Span | None = None) -> TemplateSyntaxError: ...

        # From StatementParsingMixin
        def _subparse(self, end_tags: tuple[str, ...] | None) -> list[Stmt]: ...
        def _parse_assignment(self) -> Expr: ...
        def _parse_assign_name(self) -> Expr: ...

        # From ExpressionParsingMixin
        def _parse_expr(self) -> Expr: ...
        def _parse_expr_no_if(self) -> Expr: ...
        def _parse_args(self) -> list[Expr]: ...

    def _parse_for_stmt(self, start: Span) -> ForLoop:
        """Parse ``{% for target in iter [if cond] [recursive] %}``.

        The loop filter is evaluated per item; the ``else`` body renders
        when no item passed it.
        """
        target = self._parse_assignment()
        self._expect_ident("in", "`in`")
        iter_expr = self._parse_expr_no_if()
        filter_expr = self._parse_expr() if self._skip_ident("if") else None
        recursive = self._skip_ident("recursive")
        self._expect(TokenType.BLOCK_END, "end of block")
        body = self._subparse(("endfor", "else"))
        else_body: list[Stmt] = []
        if self._skip_ident("else"):
            self._expect(TokenType.BLOCK_END, "end of block")
            else_body = self._subparse(("endfor",))
        self._expect_ident("endfor")
        return ForLoop(
            span=self._expand_span(start),
            target=target,
            iter=iter_expr,
            filter_expr=filter_expr,
            recursive=recursive,
            body=tuple(body),
            else_body=tuple(else_body),
        )

    def _parse_if_cond(self, start: Span) -> IfCond:
        expr = self._parse_expr_no_if()
        self._expect(TokenType.BLOCK_END, "end of block")
        true_body = self._subparse(("elif", "else", "endif"))
        tag = self._expect_ident(None, "endif")
        false_body: list[Stmt] = []
        if tag.value == "else":
            self._expect(TokenType.BLOCK_END, "end of block")
            false_body = self._subparse(("endif",))
            self._expect_ident("endif")
        elif tag.value == "elif":
            false_body = [self._parse_if_cond(tag.span)]
        return IfCond(
            span=self._expand_span(start),
            expr=expr,
            true_body=tuple(true_body),
            false_body=tuple(false_body),
        )

    def _parse_with_block(self, start: Span) -> WithBlock:
        assignments: list[tuple[Expr, Expr]] = []
        while not self._match(TokenType.BLOCK_END):
            if assignments:
                self._expect(TokenType.COMMA, "`,`")
            if self._skip(TokenType.LPAREN):
                target = self._parse_assignment()
                self._expect(TokenType.RPAREN, "`)`")
            else:
                target = self._parse_assign_name()
            self._expect(TokenType.ASSIGN, "assignment operator")
            assignments.append((target, self._parse_expr()))
        self._expect(TokenType.BLOCK_END, "end of block")
        body = self._subparse(("endwith",))
        self._expect_ident("endwith")
        return WithBlock(
            span=self._expand_span(start),
            assignments=tuple(assignments),
            body=tuple(body),
        )

    def _parse_auto_escape(self, start: Span) -> AutoEscape:
        enabled = self._parse_expr()
        self._expect(TokenType.BLOCK_END, "end of block")
        body = self._subparse(("endautoescape",))
        self._expect_ident("endautoescape")
        return AutoEscape(span=self._expand_span(start), enabled=enabled, body=tuple(body))

    def _parse_filter_block_chain(self) -> Expr:
        """Parse ``name(args) | name ...`` up to the end of the block tag.

        The innermost filter has no input expression; the value being
        filtered is supplied at render time.
        """
        chain: Expr | None = None
        while not self._match(TokenType.BLOCK_END):
            if chain is not None:
                self._expect(TokenType.PIPE, "`|`")
            name_token = self._expect(TokenType.IDENT, "identifier")
            args = self._parse_args() if self._match(TokenType.LPAREN) else []
            chain = Filter(
                span=self._expand_span(name_token.span),
                name=cast("str", name_token.value),
                expr=chain,
                args=tuple(args),
            )
        if chain is None:
            raise self._error("expected a filter")
        return chain

    def _parse_filter_block(self, start: Span) -> FilterBlock:
        chain = self._parse_filter_block_chain()
        self._expect(TokenType.BLOCK_END, "end of block")
        body = self._subparse(("endfilter",))
        self._expect_ident("endfilter")
        return FilterBlock(span=self._expand_span(start), filter=chain, body=tuple(body))
