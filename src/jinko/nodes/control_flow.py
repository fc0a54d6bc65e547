"""Control flow nodes for the jinko AST."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from jinko.nodes.base import Expr, Stmt


@dataclass(frozen=True, slots=True)
class ForLoop(Stmt):
    """For loop: {% for x in items if cond recursive %}...{% else %}...{% endfor %}"""

    target: Expr
    iter: Expr
    filter_expr: Expr | None
    recursive: bool
    body: Sequence[Stmt]
    else_body: Sequence[Stmt] = ()


@dataclass(frozen=True, slots=True)
class IfCond(Stmt):
    """Conditional: {% if cond %}...{% elif cond %}...{% else %}...{% endif %}

    ``elif`` branches are nested IfCond nodes in ``false_body``.
    """

    expr: Expr
    true_body: Sequence[Stmt]
    false_body: Sequence[Stmt] = ()


@dataclass(frozen=True, slots=True)
class WithBlock(Stmt):
    """Scoped assignments: {% with a=1, (b, c)=pair %}...{% endwith %}"""

    assignments: Sequence[tuple[Expr, Expr]]
    body: Sequence[Stmt]


@dataclass(frozen=True, slots=True)
class AutoEscape(Stmt):
    """Auto-escape override: {% autoescape 'html' %}...{% endautoescape %}"""

    enabled: Expr
    body: Sequence[Stmt]


@dataclass(frozen=True, slots=True)
class FilterBlock(Stmt):
    """Filter a rendered body: {% filter upper %}...{% endfilter %}"""

    filter: Expr
    body: Sequence[Stmt]
