"""Basic statement compilation: the template root and output."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from jinko.compiler.instructions import Instruction, Opcode
from jinko.nodes import Call

if TYPE_CHECKING:
    from jinko._types import Span
    from jinko.nodes import EmitExpr, EmitRaw, Expr, Template


class BasicStatementMixin:
    """Mixin for compiling basic output statements."""

    # ─────────────────────────────────────────────────────────────────────────
    # Host attributes and cross-mixin dependencies (type-check only)
    # ─────────────────────────────────────────────────────────────────────────
    if TYPE_CHECKING:

        def compile_expr(self, node: Expr) -> None: ...
        def set_line(self, lineno: int) -> None: ...
        def set_line_from_span(self, span: Span) -> None: ...
        def add(self, instr: Instruction) -> int: ...
        def add_with_span(self, instr: Instruction, span: Span) -> int: ...
        def _compile_body(self, body: Any) -> None: ...

    def _compile_template(self, node: Template) -> None:
        self.set_line(1)
        self._compile_body(node.children)

    def _compile_emit_raw(self, node: EmitRaw) -> None:
        self.add(Instruction(Opcode.EMIT_RAW, node.raw))

    def _compile_emit_expr(self, node: EmitExpr) -> None:
        """Compile ``{{ expr }}``.

        ``{{ super() }}``, ``{{ loop(x) }}`` and ``{{ self.name() }}``
        write straight to the output instead of building a string first.
        """
        self.set_line_from_span(node.span)
        expr = node.expr
        if isinstance(expr, Call):
            kind, target = expr.identity()
            if kind == "function":
                if target == "super" and not expr.args:
                    self.add_with_span(Instruction(Opcode.FAST_SUPER), expr.span)
                    return
                if target == "loop" and len(expr.args) == 1:
                    self.compile_expr(expr.args[0])
                    self.add(Instruction(Opcode.FAST_RECURSE))
                    return
            elif kind == "block":
                self.add(Instruction(Opcode.CALL_BLOCK, target))
                return
        self.compile_expr(expr)
        self.add(Instruction(Opcode.EMIT))
