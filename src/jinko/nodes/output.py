"""Output nodes for the jinko AST."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from jinko.nodes.base import Expr, Stmt


@dataclass(frozen=True, slots=True)
class Template(Stmt):
    """Root node: the whole template."""

    children: Sequence[Stmt]


@dataclass(frozen=True, slots=True)
class EmitExpr(Stmt):
    """Expression output: {{ expr }}"""

    expr: Expr


@dataclass(frozen=True, slots=True)
class EmitRaw(Stmt):
    """Literal template data."""

    raw: str
