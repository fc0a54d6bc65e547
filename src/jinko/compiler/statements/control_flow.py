"""Control flow compilation: loops, conditionals and scoped blocks."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from jinko.compiler.instructions import CaptureMode, Instruction, Opcode

if TYPE_CHECKING:
    from jinko._types import Span
    from jinko.nodes import AutoEscape, Expr, FilterBlock, ForLoop, IfCond, WithBlock


class ControlFlowMixin:
    """Mixin for compiling control flow statements."""

    # ─────────────────────────────────────────────────────────────────────────
    # Host attributes and cross-mixin dependencies (type-check only)
    # ─────────────────────────────────────────────────────────────────────────
    if TYPE_CHECKING:

        def compile_expr(self, node: Expr) -> None: ...
        def set_line_from_span(self, span: Span) -> None: ...
        def add(self, instr: Instruction) -> int: ...
        def start_for_loop(self, with_loop_var: bool, recursive: bool) -> None: ...
        def end_for_loop(self, push_did_not_iterate: bool) -> None: ...
        def start_if(self) -> None: ...
        def start_else(self) -> None: ...
        def end_if(self) -> None: ...
        def _compile_body(self, body: Any) -> None: ...
        def _compile_assignment(self, target: Expr) -> None: ...

    def _compile_for_loop(self, node: ForLoop) -> None:
        """Compile ``{% for %}``.

        With a filter (``for x in seq if cond``) a first loop without the
        ``loop`` variable collects the matching items into a list, which
        the second loop then iterates. This keeps ``loop.length`` and
        ``loop.last`` correct for filtered loops.
        """
        self.set_line_from_span(node.span)
        if node.filter_expr is not None:
            self.add(Instruction(Opcode.BUILD_LIST, argc=0))
            self.compile_expr(node.iter)
            self.start_for_loop(False, False)
            self.add(Instruction(Opcode.DUP_TOP))
            self._compile_assignment(node.target)
            self.compile_expr(node.filter_expr)
            self.start_if()
            self.add(Instruction(Opcode.LIST_APPEND))
            self.start_else()
            self.add(Instruction(Opcode.DISCARD_TOP))
            self.end_if()
            self.end_for_loop(False)
        else:
            self.compile_expr(node.iter)

        self.start_for_loop(True, node.recursive)
        self._compile_assignment(node.target)
        self._compile_body(node.body)
        self.end_for_loop(bool(node.else_body))
        if node.else_body:
            self.start_if()
            self._compile_body(node.else_body)
            self.end_if()

    def _compile_if_cond(self, node: IfCond) -> None:
        self.set_line_from_span(node.span)
        self.compile_expr(node.expr)
        self.start_if()
        self._compile_body(node.true_body)
        if node.false_body:
            self.start_else()
            self._compile_body(node.false_body)
        self.end_if()

    def _compile_with_block(self, node: WithBlock) -> None:
        self.set_line_from_span(node.span)
        self.add(Instruction(Opcode.PUSH_WITH))
        for target, value in node.assignments:
            self.compile_expr(value)
            self._compile_assignment(target)
        self._compile_body(node.body)
        self.add(Instruction(Opcode.POP_FRAME))

    def _compile_auto_escape(self, node: AutoEscape) -> None:
        self.set_line_from_span(node.span)
        self.compile_expr(node.enabled)
        self.add(Instruction(Opcode.PUSH_AUTO_ESCAPE))
        self._compile_body(node.body)
        self.add(Instruction(Opcode.POP_AUTO_ESCAPE))

    def _compile_filter_block(self, node: FilterBlock) -> None:
        self.set_line_from_span(node.span)
        self.add(Instruction(Opcode.BEGIN_CAPTURE, CaptureMode.CAPTURE))
        self._compile_body(node.body)
        self.add(Instruction(Opcode.END_CAPTURE))
        self.compile_expr(node.filter)
        self.add(Instruction(Opcode.EMIT))
