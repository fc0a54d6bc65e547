"""Expression compilation for the jinko code generator.

Every expression leaves exactly one value on the operand stack.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from jinko.compiler.instructions import CaptureMode, Instruction, Opcode
from jinko.nodes import BinOpKind, Kwargs, UnaryOpKind
from jinko.value import NONE, UNDEFINED, Value

if TYPE_CHECKING:
    from collections.abc import Sequence

    from jinko._types import Span
    from jinko.nodes import (
        BinOp,
        Call,
        Const,
        Expr,
        Filter,
        GetAttr,
        GetItem,
        IfExpr,
        List,
        Macro,
        Map,
        Slice,
        Test,
        UnaryOp,
        Var,
    )


_BIN_OPS = {
    BinOpKind.EQ: Opcode.EQ,
    BinOpKind.NE: Opcode.NE,
    BinOpKind.LT: Opcode.LT,
    BinOpKind.LTE: Opcode.LTE,
    BinOpKind.GT: Opcode.GT,
    BinOpKind.GTE: Opcode.GTE,
    BinOpKind.ADD: Opcode.ADD,
    BinOpKind.SUB: Opcode.SUB,
    BinOpKind.MUL: Opcode.MUL,
    BinOpKind.DIV: Opcode.DIV,
    BinOpKind.FLOOR_DIV: Opcode.INT_DIV,
    BinOpKind.REM: Opcode.REM,
    BinOpKind.POW: Opcode.POW,
    BinOpKind.CONCAT: Opcode.STRING_CONCAT,
    BinOpKind.IN: Opcode.IN,
}


class ExpressionCompilationMixin:
    """Mixin for compiling expressions."""

    # ─────────────────────────────────────────────────────────────────────────
    # Host attributes and cross-mixin dependencies (type-check only)
    # ─────────────────────────────────────────────────────────────────────────
    if TYPE_CHECKING:

        def compile_expr(self, node: Expr) -> None: ...
        def set_line_from_span(self, span: Span) -> None: ...
        def push_span(self, span: Span) -> None: ...
        def pop_span(self) -> None: ...
        def add(self, instr: Instruction) -> int: ...
        def add_with_span(self, instr: Instruction, span: Span) -> int: ...
        def filter_local_id(self, name: str) -> int: ...
        def test_local_id(self, name: str) -> int: ...
        def start_if(self) -> None: ...
        def start_else(self) -> None: ...
        def end_if(self) -> None: ...
        def start_sc_bool(self) -> None: ...
        def sc_bool(self, and_: bool) -> None: ...
        def end_sc_bool(self) -> None: ...
        def _compile_macro_expression(self, macro: Macro) -> None: ...

    def _compile_var(self, node: Var) -> None:
        self.set_line_from_span(node.span)
        self.add(Instruction(Opcode.LOOKUP, node.id))

    def _compile_const(self, node: Const) -> None:
        self.set_line_from_span(node.span)
        self.add(Instruction(Opcode.LOAD_CONST, node.value))

    def _compile_slice(self, node: Slice) -> None:
        self.push_span(node.span)
        self.compile_expr(node.expr)
        if node.start is not None:
            self.compile_expr(node.start)
        else:
            self.add(Instruction(Opcode.LOAD_CONST, Value.from_int(0)))
        if node.stop is not None:
            self.compile_expr(node.stop)
        else:
            self.add(Instruction(Opcode.LOAD_CONST, NONE))
        if node.step is not None:
            self.compile_expr(node.step)
        else:
            self.add(Instruction(Opcode.LOAD_CONST, Value.from_int(1)))
        self.add(Instruction(Opcode.SLICE))
        self.pop_span()

    def _compile_unary_op(self, node: UnaryOp) -> None:
        self.set_line_from_span(node.span)
        self.compile_expr(node.expr)
        if node.op is UnaryOpKind.NOT:
            self.add(Instruction(Opcode.NOT))
        else:
            self.add_with_span(Instruction(Opcode.NEG), node.span)

    def _compile_bin_op(self, node: BinOp) -> None:
        self.push_span(node.span)
        if node.op in (BinOpKind.SC_AND, BinOpKind.SC_OR):
            self.start_sc_bool()
            self.compile_expr(node.left)
            self.sc_bool(node.op is BinOpKind.SC_AND)
            self.compile_expr(node.right)
            self.end_sc_bool()
        else:
            self.compile_expr(node.left)
            self.compile_expr(node.right)
            self.add(Instruction(_BIN_OPS[node.op]))
        self.pop_span()

    def _compile_if_expr(self, node: IfExpr) -> None:
        self.set_line_from_span(node.span)
        self.compile_expr(node.test_expr)
        self.start_if()
        self.compile_expr(node.true_expr)
        self.start_else()
        if node.false_expr is not None:
            self.compile_expr(node.false_expr)
        else:
            self.add(Instruction(Opcode.LOAD_CONST, UNDEFINED))
        self.end_if()

    def _compile_filter(self, node: Filter) -> None:
        self.push_span(node.span)
        # expr is None inside filter blocks: the captured body is on the stack
        if node.expr is not None:
            self.compile_expr(node.expr)
        for arg in node.args:
            self.compile_expr(arg)
        self.add(
            Instruction(
                Opcode.APPLY_FILTER,
                node.name,
                len(node.args) + 1,
                self.filter_local_id(node.name),
            )
        )
        self.pop_span()

    def _compile_test(self, node: Test) -> None:
        self.push_span(node.span)
        self.compile_expr(node.expr)
        for arg in node.args:
            self.compile_expr(arg)
        self.add(
            Instruction(
                Opcode.PERFORM_TEST,
                node.name,
                len(node.args) + 1,
                self.test_local_id(node.name),
            )
        )
        self.pop_span()

    def _compile_get_attr(self, node: GetAttr) -> None:
        self.push_span(node.span)
        self.compile_expr(node.expr)
        self.add(Instruction(Opcode.GET_ATTR, node.name))
        self.pop_span()

    def _compile_get_item(self, node: GetItem) -> None:
        self.push_span(node.span)
        self.compile_expr(node.expr)
        self.compile_expr(node.subscript_expr)
        self.add(Instruction(Opcode.GET_ITEM))
        self.pop_span()

    def _compile_call_expr(self, node: Call) -> None:
        self._compile_call(node, None)

    def _compile_call(self, node: Call, caller: Macro | None) -> None:
        self.push_span(node.span)
        kind, target = node.identity()
        if kind == "function":
            argc = self._compile_call_args(node.args, caller)
            self.add(Instruction(Opcode.CALL_FUNCTION, target, argc))
        elif kind == "block":
            self.add(Instruction(Opcode.BEGIN_CAPTURE, CaptureMode.CAPTURE))
            self.add(Instruction(Opcode.CALL_BLOCK, target))
            self.add(Instruction(Opcode.END_CAPTURE))
        elif kind == "method":
            expr, name = target  # type: ignore[misc]
            self.compile_expr(expr)
            argc = self._compile_call_args(node.args, caller)
            self.add(Instruction(Opcode.CALL_METHOD, name, argc + 1))
        else:
            self.compile_expr(target)  # type: ignore[arg-type]
            argc = self._compile_call_args(node.args, caller)
            self.add(Instruction(Opcode.CALL_OBJECT, argc=argc + 1))
        self.pop_span()

    def _compile_call_args(self, args: Sequence[Expr], caller: Macro | None) -> int:
        if caller is not None:
            return self._compile_call_args_with_caller(args, caller)
        for arg in args:
            self.compile_expr(arg)
        return len(args)

    def _compile_call_args_with_caller(
        self, args: Sequence[Expr], caller: Macro
    ) -> int:
        injected = False
        for arg in args:
            if isinstance(arg, Kwargs):
                self.set_line_from_span(arg.span)
                for key, value in arg.pairs:
                    self.add(Instruction(Opcode.LOAD_CONST, Value.from_str(key)))
                    self.compile_expr(value)
                self.add(Instruction(Opcode.LOAD_CONST, Value.from_str("caller")))
                self._compile_macro_expression(caller)
                self.add(Instruction(Opcode.BUILD_KWARGS, argc=len(arg.pairs) + 1))
                injected = True
            else:
                self.compile_expr(arg)
        if injected:
            return len(args)
        self.add(Instruction(Opcode.LOAD_CONST, Value.from_str("caller")))
        self._compile_macro_expression(caller)
        self.add(Instruction(Opcode.BUILD_KWARGS, argc=1))
        return len(args) + 1

    def _compile_list(self, node: List) -> None:
        value = node.as_const()
        if value is not None:
            self.add(Instruction(Opcode.LOAD_CONST, value))
            return
        self.set_line_from_span(node.span)
        for item in node.items:
            self.compile_expr(item)
        self.add(Instruction(Opcode.BUILD_LIST, argc=len(node.items)))

    def _compile_map(self, node: Map) -> None:
        value = node.as_const()
        if value is not None:
            self.add(Instruction(Opcode.LOAD_CONST, value))
            return
        self.set_line_from_span(node.span)
        for key, item in zip(node.keys, node.values, strict=True):
            self.compile_expr(key)
            self.compile_expr(item)
        self.add(Instruction(Opcode.BUILD_MAP, argc=len(node.keys)))

    def _compile_kwargs(self, node: Kwargs) -> None:
        value = node.as_const()
        if value is not None:
            self.add(Instruction(Opcode.LOAD_CONST, value))
            return
        self.set_line_from_span(node.span)
        for key, item in node.pairs:
            self.add(Instruction(Opcode.LOAD_CONST, Value.from_str(key)))
            self.compile_expr(item)
        self.add(Instruction(Opcode.BUILD_KWARGS, argc=len(node.pairs)))
