"""Variable assignment nodes for the jinko AST."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from jinko.nodes.base import Expr, Stmt


@dataclass(frozen=True, slots=True)
class Set(Stmt):
    """Assignment: {% set x = expr %} or {% set (a, b) = pair %}"""

    target: Expr
    expr: Expr


@dataclass(frozen=True, slots=True)
class SetBlock(Stmt):
    """Capture assignment: {% set x | filter %}...{% endset %}"""

    target: Expr
    filter: Expr | None
    body: Sequence[Stmt]
