"""Expression nodes for the jinko AST."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from jinko.nodes.base import Expr
from jinko.value import Value


class UnaryOpKind(Enum):
    NOT = "not"
    NEG = "-"


class BinOpKind(Enum):
    EQ = "=="
    NE = "!="
    LT = "<"
    LTE = "<="
    GT = ">"
    GTE = ">="
    SC_AND = "and"
    SC_OR = "or"
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    FLOOR_DIV = "//"
    REM = "%"
    POW = "**"
    CONCAT = "~"
    IN = "in"


@dataclass(frozen=True, slots=True)
class Var(Expr):
    """Variable reference: {{ user }}"""

    id: str


@dataclass(frozen=True, slots=True)
class Const(Expr):
    """Constant value, including folded list/map literals."""

    value: Value


@dataclass(frozen=True, slots=True)
class UnaryOp(Expr):
    """Unary operation: not x, -x"""

    op: UnaryOpKind
    expr: Expr


@dataclass(frozen=True, slots=True)
class BinOp(Expr):
    """Binary operation: a + b, a and b, a in b"""

    op: BinOpKind
    left: Expr
    right: Expr


@dataclass(frozen=True, slots=True)
class IfExpr(Expr):
    """Conditional expression: a if cond else b"""

    test_expr: Expr
    true_expr: Expr
    false_expr: Expr | None = None


@dataclass(frozen=True, slots=True)
class Filter(Expr):
    """Filter application: expr | name(args)

    ``expr`` is None for filter blocks and set-block filter chains, where
    the filtered value is already on the stack.
    """

    name: str
    expr: Expr | None
    args: Sequence[Expr] = ()


@dataclass(frozen=True, slots=True)
class Test(Expr):
    """Test application: expr is name(args)"""

    name: str
    expr: Expr
    args: Sequence[Expr] = ()


@dataclass(frozen=True, slots=True)
class GetAttr(Expr):
    """Attribute access: obj.attr"""

    expr: Expr
    name: str


@dataclass(frozen=True, slots=True)
class GetItem(Expr):
    """Subscript access: obj[key]"""

    expr: Expr
    subscript_expr: Expr


@dataclass(frozen=True, slots=True)
class Slice(Expr):
    """Slice expression: obj[start:stop:step]"""

    expr: Expr
    start: Expr | None = None
    stop: Expr | None = None
    step: Expr | None = None


@dataclass(frozen=True, slots=True)
class Call(Expr):
    """Call: func(args), obj.method(args), expr(args)"""

    expr: Expr
    args: Sequence[Expr] = ()

    def identity(self) -> tuple[str, object]:
        """Classify the callee.

        Returns one of ``("function", name)``, ``("block", name)``,
        ``("method", (expr, name))`` or ``("object", expr)``.
        """
        expr = self.expr
        if isinstance(expr, Var):
            return "function", expr.id
        if isinstance(expr, GetAttr):
            if isinstance(expr.expr, Var) and expr.expr.id == "self":
                return "block", expr.name
            return "method", (expr.expr, expr.name)
        return "object", expr


@dataclass(frozen=True, slots=True)
class List(Expr):
    """List literal: [a, b] or (a, b)"""

    items: Sequence[Expr]

    def as_const(self) -> Value | None:
        """Fold to a constant when every item is constant."""
        if not all(isinstance(item, Const) for item in self.items):
            return None
        return Value.from_seq([item.value for item in self.items])


@dataclass(frozen=True, slots=True)
class Map(Expr):
    """Map literal: {a: b}"""

    keys: Sequence[Expr]
    values: Sequence[Expr]

    def as_const(self) -> Value | None:
        """Fold to a constant when every key and value is constant."""
        if not all(isinstance(e, Const) for e in (*self.keys, *self.values)):
            return None
        return Value.from_pairs(
            (k.value, v.value) for k, v in zip(self.keys, self.values)
        )


@dataclass(frozen=True, slots=True)
class Kwargs(Expr):
    """Trailing keyword arguments of a call: f(a, key=value)"""

    pairs: Sequence[tuple[str, Expr]]

    def as_const(self) -> Value | None:
        """Fold to a constant kwargs map when every value is constant."""
        if not all(isinstance(v, Const) for _, v in self.pairs):
            return None
        return Value.from_pairs(
            ((Value.from_str(k), v.value) for k, v in self.pairs),
            kwargs=True,
        )
