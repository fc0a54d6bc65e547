"""Base node classes for the jinko AST."""

from __future__ import annotations

from dataclasses import dataclass

from jinko._types import Span


@dataclass(frozen=True, slots=True)
class Node:
    """Base class for all AST nodes.

    Every node carries the source span it was parsed from. Nodes are
    immutable so a parsed template can be shared freely.

    """

    span: Span

    @property
    def lineno(self) -> int:
        return self.span.start_line

    @property
    def col_offset(self) -> int:
        return self.span.start_col


@dataclass(frozen=True, slots=True)
class Expr(Node):
    """Base class for expressions."""


@dataclass(frozen=True, slots=True)
class Stmt(Node):
    """Base class for statements."""
