"""Variable assignment compilation: set, set blocks and unpacking."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from jinko.compiler.instructions import CaptureMode, Instruction, Opcode
from jinko.nodes import GetAttr, List, Var

if TYPE_CHECKING:
    from jinko._types import Span
    from jinko.nodes import Expr, Set, SetBlock


class VariableAssignmentMixin:
    """Mixin for compiling assignments."""

    # ─────────────────────────────────────────────────────────────────────────
    # Host attributes and cross-mixin dependencies (type-check only)
    # ─────────────────────────────────────────────────────────────────────────
    if TYPE_CHECKING:

        def compile_expr(self, node: Expr) -> None: ...
        def set_line_from_span(self, span: Span) -> None: ...
        def add(self, instr: Instruction) -> int: ...
        def _compile_body(self, body: Any) -> None: ...

    def _compile_assignment(self, target: Expr) -> None:
        """Store the value on top of the stack into ``target``.

        List targets unpack: ``a, b`` pushes the items in reverse so the
        stores below pop them in order. ``ns.attr`` targets write into a
        namespace object.
        """
        if isinstance(target, Var):
            self.add(Instruction(Opcode.STORE_LOCAL, target.id))
        elif isinstance(target, List):
            self.set_line_from_span(target.span)
            self.add(Instruction(Opcode.UNPACK_LIST, argc=len(target.items)))
            for item in target.items:
                self._compile_assignment(item)
        elif isinstance(target, GetAttr):
            self.compile_expr(target.expr)
            self.add(Instruction(Opcode.SET_ATTR, target.name))
        else:
            raise RuntimeError(f"unreachable: cannot assign to {target!r}")

    def _compile_set(self, node: Set) -> None:
        self.set_line_from_span(node.span)
        self.compile_expr(node.expr)
        self._compile_assignment(node.target)

    def _compile_set_block(self, node: SetBlock) -> None:
        self.set_line_from_span(node.span)
        self.add(Instruction(Opcode.BEGIN_CAPTURE, CaptureMode.CAPTURE))
        self._compile_body(node.body)
        self.add(Instruction(Opcode.END_CAPTURE))
        if node.filter is not None:
            self.compile_expr(node.filter)
        self._compile_assignment(node.target)
