"""Macro and call nodes for the jinko AST."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from jinko.nodes.base import Expr, Stmt
from jinko.nodes.expressions import Call


@dataclass(frozen=True, slots=True)
class Macro(Stmt):
    """Macro definition: {% macro name(a, b=1) %}...{% endmacro %}

    ``defaults`` align with the tail of ``args``.
    """

    name: str
    args: Sequence[Expr]
    defaults: Sequence[Expr]
    body: Sequence[Stmt]


@dataclass(frozen=True, slots=True)
class CallBlock(Stmt):
    """Call with a caller body: {% call m(args) %}...{% endcall %}"""

    call: Call
    macro_decl: Macro


@dataclass(frozen=True, slots=True)
class Do(Stmt):
    """Evaluate a call for its side effects: {% do obj.method() %}"""

    call: Call
