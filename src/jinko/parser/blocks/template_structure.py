"""Template structure block parsing for the jinko parser.

Provides a mixin for ``block``, ``extends``, ``include``, ``import`` and
``from ... import``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from jinko._types import Span, TokenType
from jinko.nodes import Block, Expr, Extends, FromImport, Import, Include, Stmt, Var

if TYPE_CHECKING:
    from jinko._types import Token
    from jinko.environment.exceptions import TemplateSyntaxError


class TemplateStructureBlockParsingMixin:
    """Mixin for parsing template structure blocks."""

    # ─────────────────────────────────────────────────────────────────────────
    # Host attributes and cross-mixin dependencies (type-check only)
    # ─────────────────────────────────────────────────────────────────────────
    if TYPE_CHECKING:
        _in_macro: bool
        _blocks: set[str]

        @property
        def _current(self) -> Token: ...
        def _match(self, *types: TokenType) -> bool: ...
        def _skip_ident(self, name: str) -> bool: ...
        def _expect(self, token_type: TokenType, expected: str | None = None) -> Token: ...
        def _expect_ident(self, name: str | None = None, expected: str | None = None) -> Token: ...
        def _expand_span(self, start: Span) -> Span: ...
        def _error(self, message: str, span: Span | None = None) -> TemplateSyntaxError: ...
        def _subparse(self, end_tags: tuple[str, ...] | None) -> list[Stmt]: ...
        def _parse_assign_name(self) -> Var: ...
        def _parse_expr(self) -> Expr: ...

    def _parse_block(self, start: Span) -> Block:
        """Parse ``{% block name %}...{% endblock [name] %}``."""
        if self._in_macro:
            raise self._error("block tags in macros are not allowed", start)
        name_token = self._expect(TokenType.IDENT, "identifier")
        name = cast("str", name_token.value)
        if name in self._blocks:
            raise self._error(f"block '{name}' defined twice", name_token.span)
        self._blocks.add(name)
        self._expect(TokenType.BLOCK_END, "end of block")
        body = self._subparse(("endblock",))
        self._expect_ident("endblock")
        if self._match(TokenType.IDENT):
            end_token = self._expect(TokenType.IDENT)
            if end_token.value != name:
                raise self._error(
                    f"mismatching name on block. Got `{end_token.value}`, expected `{name}`",
                    end_token.span,
                )
        return Block(span=self._expand_span(start), name=name, body=tuple(body))

    def _parse_extends(self, start: Span) -> Extends:
        name = self._parse_expr()
        return Extends(span=self._expand_span(start), name=name)

    def _skip_context_marker(self) -> None:
        """Accept ``with context`` / ``without context``; context is always passed."""
        if self._skip_ident("with") or self._skip_ident("without"):
            self._expect_ident("context", "`context`")

    def _parse_include(self, start: Span) -> Include:
        """Parse ``{% include name [ignore missing] [with|without context] %}``.

        ``name`` may evaluate to a list of names; the first that exists is
        rendered.
        """
        name = self._parse_expr()
        self._skip_context_marker()
        ignore_missing = False
        if self._skip_ident("ignore"):
            self._expect_ident("missing", "`missing`")
            ignore_missing = True
            self._skip_context_marker()
        return Include(span=self._expand_span(start), name=name, ignore_missing=ignore_missing)

    def _parse_import(self, start: Span) -> Import:
        """Parse ``{% import "macros.html" as m %}``."""
        expr = self._parse_expr()
        self._expect_ident("as", "`as`")
        name = self._parse_assign_name()
        self._skip_context_marker()
        return Import(span=self._expand_span(start), expr=expr, name=name)

    def _parse_from_import(self, start: Span) -> FromImport:
        """Parse ``{% from "macros.html" import a, b as c %}``."""
        expr = self._parse_expr()
        self._expect_ident("import", "`import`")
        names: list[tuple[Expr, Expr | None]] = []
        while not self._match(TokenType.BLOCK_END):
            if self._current.type is TokenType.IDENT and self._current.value in ("with", "without"):
                self._skip_context_marker()
                break
            if names:
                self._expect(TokenType.COMMA, "`,`")
                if self._match(TokenType.BLOCK_END):
                    break
            name = self._parse_assign_name()
            alias = self._parse_assign_name() if self._skip_ident("as") else None
            names.append((name, alias))
        return FromImport(span=self._expand_span(start), expr=expr, names=tuple(names))
