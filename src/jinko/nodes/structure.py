"""Template structure nodes for the jinko AST."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from jinko.nodes.base import Expr, Stmt


@dataclass(frozen=True, slots=True)
class Block(Stmt):
    """Named block: {% block name %}...{% endblock %}"""

    name: str
    body: Sequence[Stmt]


@dataclass(frozen=True, slots=True)
class Extends(Stmt):
    """Template inheritance: {% extends "base.html" %}"""

    name: Expr


@dataclass(frozen=True, slots=True)
class Include(Stmt):
    """Include template: {% include "x.html" ignore missing %}"""

    name: Expr
    ignore_missing: bool = False


@dataclass(frozen=True, slots=True)
class Import(Stmt):
    """Module import: {% import "macros.html" as m %}"""

    expr: Expr
    name: Expr


@dataclass(frozen=True, slots=True)
class FromImport(Stmt):
    """Selective import: {% from "macros.html" import a, b as c %}"""

    expr: Expr
    names: Sequence[tuple[Expr, Expr | None]]
