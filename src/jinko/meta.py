"""Static analysis over the template AST.

`find_macro_closure` computes which outer variables a macro body reads
so the code generator can enclose them when the macro is declared.
`find_undeclared` lists the variables a template reads without
assigning them first, which is what `Template.undeclared_variables`
reports.

Scoping mirrors the VM: loops, with blocks, if branches and block
bodies open a scope; names assigned in a scope are not reported for
reads within that scope or scopes nested in it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from jinko.nodes import (
    AutoEscape,
    BinOp,
    Block,
    Call,
    CallBlock,
    Do,
    EmitExpr,
    Extends,
    Filter,
    FilterBlock,
    ForLoop,
    FromImport,
    GetAttr,
    GetItem,
    IfCond,
    IfExpr,
    Import,
    Include,
    Kwargs,
    List,
    Macro,
    Map,
    Set,
    SetBlock,
    Slice,
    Template,
    Test,
    UnaryOp,
    Var,
    WithBlock,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from jinko.nodes import Expr, Stmt


class _AssignmentTracker:
    __slots__ = ("assigned", "nested_out", "out")

    def __init__(self, nested: bool = False):
        # dicts keep first-seen order
        self.out: dict[str, None] = {}
        self.nested_out: dict[str, None] | None = {} if nested else None
        self.assigned: list[set[str]] = [set()]

    def is_assigned(self, name: str) -> bool:
        return any(name in scope for scope in self.assigned)

    def assign(self, name: str) -> None:
        self.assigned[-1].add(name)

    def assign_nested(self, name: str) -> None:
        if self.nested_out is not None:
            self.nested_out[name] = None

    def push(self) -> None:
        self.assigned.append(set())

    def pop(self) -> None:
        self.assigned.pop()


def _track_assign(expr: Expr, state: _AssignmentTracker) -> None:
    if isinstance(expr, Var):
        state.assign(expr.id)
    elif isinstance(expr, GetAttr):
        _visit_expr(expr.expr, state)
    elif isinstance(expr, List):
        for item in expr.items:
            _track_assign(item, state)


def _attr_path(expr: GetAttr) -> tuple[Var, list[str]] | None:
    """Return ``(root, [attr, ...])`` for ``root.a.b``, else None."""
    attrs = [expr.name]
    node = expr.expr
    while isinstance(node, GetAttr):
        attrs.append(node.name)
        node = node.expr
    if isinstance(node, Var):
        attrs.reverse()
        return node, attrs
    return None


def _visit_exprs(exprs: Iterable[Expr | None], state: _AssignmentTracker) -> None:
    for expr in exprs:
        if expr is not None:
            _visit_expr(expr, state)


def _visit_expr(expr: Expr, state: _AssignmentTracker) -> None:
    if isinstance(expr, Var):
        if not state.is_assigned(expr.id):
            state.out[expr.id] = None
            if state.nested_out is None:
                state.assign(expr.id)
            else:
                state.assign_nested(expr.id)
    elif isinstance(expr, UnaryOp):
        _visit_expr(expr.expr, state)
    elif isinstance(expr, BinOp):
        _visit_exprs((expr.left, expr.right), state)
    elif isinstance(expr, IfExpr):
        _visit_exprs((expr.test_expr, expr.true_expr, expr.false_expr), state)
    elif isinstance(expr, Filter):
        _visit_exprs((expr.expr, *expr.args), state)
    elif isinstance(expr, Test):
        _visit_exprs((expr.expr, *expr.args), state)
    elif isinstance(expr, GetAttr):
        if state.nested_out is not None:
            path = _attr_path(expr)
            if path is not None and not state.is_assigned(path[0].id):
                root, attrs = path
                state.out[root.id] = None
                state.assign_nested(".".join([root.id, *attrs]))
                return
        _visit_expr(expr.expr, state)
    elif isinstance(expr, GetItem):
        _visit_exprs((expr.expr, expr.subscript_expr), state)
    elif isinstance(expr, Slice):
        _visit_exprs((expr.expr, expr.start, expr.stop, expr.step), state)
    elif isinstance(expr, Call):
        _visit_exprs((expr.expr, *expr.args), state)
    elif isinstance(expr, List):
        _visit_exprs(expr.items, state)
    elif isinstance(expr, Map):
        _visit_exprs((*expr.keys, *expr.values), state)
    elif isinstance(expr, Kwargs):
        _visit_exprs((value for _, value in expr.pairs), state)


def _walk_all(nodes: Iterable[Stmt], state: _AssignmentTracker) -> None:
    for node in nodes:
        _walk(node, state)


def _walk_macro(macro: Macro, state: _AssignmentTracker) -> None:
    state.push()
    _visit_exprs(macro.defaults, state)
    for arg in macro.args:
        _track_assign(arg, state)
    state.assign("caller")
    _walk_all(macro.body, state)
    state.pop()


def _walk(node: Stmt, state: _AssignmentTracker) -> None:
    if isinstance(node, Template):
        state.assign("self")
        _walk_all(node.children, state)
    elif isinstance(node, EmitExpr):
        _visit_expr(node.expr, state)
    elif isinstance(node, ForLoop):
        state.push()
        state.assign("loop")
        _visit_expr(node.iter, state)
        _track_assign(node.target, state)
        _visit_exprs((node.filter_expr,), state)
        _walk_all(node.body, state)
        state.pop()
        state.push()
        _walk_all(node.else_body, state)
        state.pop()
    elif isinstance(node, IfCond):
        _visit_expr(node.expr, state)
        state.push()
        _walk_all(node.true_body, state)
        state.pop()
        state.push()
        _walk_all(node.false_body, state)
        state.pop()
    elif isinstance(node, WithBlock):
        state.push()
        for target, value in node.assignments:
            _track_assign(target, state)
            _visit_expr(value, state)
        _walk_all(node.body, state)
        state.pop()
    elif isinstance(node, Set):
        _track_assign(node.target, state)
        _visit_expr(node.expr, state)
    elif isinstance(node, SetBlock):
        _track_assign(node.target, state)
        _visit_exprs((node.filter,), state)
        state.push()
        _walk_all(node.body, state)
        state.pop()
    elif isinstance(node, AutoEscape):
        _visit_expr(node.enabled, state)
        state.push()
        _walk_all(node.body, state)
        state.pop()
    elif isinstance(node, FilterBlock):
        _visit_expr(node.filter, state)
        state.push()
        _walk_all(node.body, state)
        state.pop()
    elif isinstance(node, Block):
        state.push()
        state.assign("super")
        _walk_all(node.body, state)
        state.pop()
    elif isinstance(node, Import):
        _visit_expr(node.expr, state)
        _track_assign(node.name, state)
    elif isinstance(node, FromImport):
        _visit_expr(node.expr, state)
        for name, alias in node.names:
            _track_assign(alias or name, state)
    elif isinstance(node, Macro):
        state.assign(node.name)
        _walk_macro(node, state)
    elif isinstance(node, CallBlock):
        _visit_exprs((node.call.expr, *node.call.args), state)
        _walk_macro(node.macro_decl, state)
    elif isinstance(node, Do):
        _visit_exprs((node.call.expr, *node.call.args), state)
    elif isinstance(node, (Extends, Include)):
        _visit_expr(node.name, state)


def find_macro_closure(macro: Macro) -> set[str]:
    """Names a macro body reads that are not its own parameters or locals.

    ``caller`` is included when the body references it; the code
    generator removes it and sets the caller flag instead.
    """
    state = _AssignmentTracker()
    _visit_exprs(macro.defaults, state)
    for arg in macro.args:
        _track_assign(arg, state)
    _walk_all(macro.body, state)
    return set(state.out)


def find_undeclared(template: Template, nested: bool = False) -> set[str]:
    """Variables read by ``template`` before any assignment.

    With ``nested`` set, attribute chains on undeclared roots are
    reported as dotted paths (``user.name``) instead of the root name.
    """
    state = _AssignmentTracker(nested=nested)
    _walk(template, state)
    if nested:
        assert state.nested_out is not None
        return set(state.nested_out)
    return set(state.out)
