"""Macro compilation: macros, call blocks and do statements."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from jinko.compiler.instructions import MACRO_CALLER, Instruction, Opcode
from jinko.meta import find_macro_closure
from jinko.value import Value

if TYPE_CHECKING:
    from jinko._types import Span
    from jinko.compiler.instructions import Instructions
    from jinko.nodes import Call, CallBlock, Do, Expr, Macro


class FunctionCompilationMixin:
    """Mixin for compiling macros and calls used as statements."""

    # ─────────────────────────────────────────────────────────────────────────
    # Host attributes and cross-mixin dependencies (type-check only)
    # ─────────────────────────────────────────────────────────────────────────
    if TYPE_CHECKING:
        instructions: Instructions

        def compile_expr(self, node: Expr) -> None: ...
        def set_line_from_span(self, span: Span) -> None: ...
        def add(self, instr: Instruction) -> int: ...
        def next_instruction(self) -> int: ...
        def start_if(self) -> None: ...
        def end_if(self) -> None: ...
        def _compile_body(self, body: Any) -> None: ...
        def _compile_assignment(self, target: Expr) -> None: ...
        def _compile_call(self, node: Call, caller: Macro | None) -> None: ...

    def _compile_macro_expression(self, macro: Macro) -> None:
        """Compile a macro declaration, leaving the macro value on the stack.

        Layout::

            JUMP(after body)
            <bind arguments, fill defaults for undefined ones>
            <body>
            RETURN
            ENCLOSE(name)...        <- jump lands here
            GET_CLOSURE
            LOAD_CONST(arg names)
            BUILD_MACRO(name, body offset, flags)
        """
        self.set_line_from_span(macro.span)
        jump_instr = self.add(Instruction(Opcode.JUMP))

        # Arguments arrive on the stack in call order; bind the last first.
        defaults_start = len(macro.args) - len(macro.defaults)
        for idx in range(len(macro.args) - 1, -1, -1):
            if idx >= defaults_start:
                self.add(Instruction(Opcode.DUP_TOP))
                self.add(Instruction(Opcode.IS_UNDEFINED))
                self.start_if()
                self.add(Instruction(Opcode.DISCARD_TOP))
                self.compile_expr(macro.defaults[idx - defaults_start])
                self.end_if()
            self._compile_assignment(macro.args[idx])

        self._compile_body(macro.body)
        self.add(Instruction(Opcode.RETURN))

        closure = find_macro_closure(macro)
        caller_reference = "caller" in closure
        closure.discard("caller")

        enclose_start = self.next_instruction()
        for name in sorted(closure):
            self.add(Instruction(Opcode.ENCLOSE, name))
        self.add(Instruction(Opcode.GET_CLOSURE))
        arg_names = [Value.from_str(arg.id) for arg in macro.args]  # type: ignore[attr-defined]
        self.add(Instruction(Opcode.LOAD_CONST, Value.from_seq(arg_names)))
        self.add(
            Instruction(
                Opcode.BUILD_MACRO,
                macro.name,
                jump_instr + 1,
                MACRO_CALLER if caller_reference else 0,
            )
        )
        self.instructions.patch(jump_instr, enclose_start)

    def _compile_macro(self, node: Macro) -> None:
        self._compile_macro_expression(node)
        self.add(Instruction(Opcode.STORE_LOCAL, node.name))

    def _compile_call_block(self, node: CallBlock) -> None:
        self._compile_call(node.call, node.macro_decl)
        self.add(Instruction(Opcode.EMIT))

    def _compile_do(self, node: Do) -> None:
        self._compile_call(node.call, None)
        self.add(Instruction(Opcode.DISCARD_TOP))
