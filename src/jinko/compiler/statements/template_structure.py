"""Template structure compilation: blocks, inheritance, include and import."""

from __future__ import annotations

from typing import TYPE_CHECKING

from jinko.compiler.instructions import CaptureMode, Instruction, Opcode

if TYPE_CHECKING:
    from jinko._types import Span
    from jinko.compiler.core import CodeGenerator
    from jinko.compiler.instructions import Instructions
    from jinko.nodes import Block, Expr, Extends, FromImport, Import, Include


class TemplateStructureMixin:
    """Mixin for compiling template structure statements."""

    # ─────────────────────────────────────────────────────────────────────────
    # Host attributes and cross-mixin dependencies (type-check only)
    # ─────────────────────────────────────────────────────────────────────────
    if TYPE_CHECKING:
        blocks: dict[str, Instructions]

        def compile_expr(self, node: Expr) -> None: ...
        def set_line_from_span(self, span: Span) -> None: ...
        def add(self, instr: Instruction) -> int: ...
        def add_with_span(self, instr: Instruction, span: Span) -> int: ...
        def new_subgenerator(self) -> CodeGenerator: ...
        def finish_subgenerator(self, sub: CodeGenerator) -> Instructions: ...
        def _compile_assignment(self, target: Expr) -> None: ...

    def _compile_block(self, node: Block) -> None:
        """Compile ``{% block name %}``.

        The body goes into the block table; the main stream only gets a
        ``CALL_BLOCK`` so a child template can override it.
        """
        self.set_line_from_span(node.span)
        sub = self.new_subgenerator()
        for child in node.body:
            sub.compile_stmt(child)
        self.blocks[node.name] = self.finish_subgenerator(sub)
        self.add(Instruction(Opcode.CALL_BLOCK, node.name))

    def _compile_extends(self, node: Extends) -> None:
        self.set_line_from_span(node.span)
        self.compile_expr(node.name)
        self.add_with_span(Instruction(Opcode.LOAD_BLOCKS), node.span)

    def _compile_include(self, node: Include) -> None:
        self.set_line_from_span(node.span)
        self.compile_expr(node.name)
        self.add_with_span(Instruction(Opcode.INCLUDE, node.ignore_missing), node.span)

    def _compile_import(self, node: Import) -> None:
        """Compile ``{% import expr as name %}``.

        The imported template runs in its own frame with output
        discarded; its top-level locals become a map bound to ``name``.
        """
        self.set_line_from_span(node.span)
        self.add(Instruction(Opcode.BEGIN_CAPTURE, CaptureMode.DISCARD))
        self.add(Instruction(Opcode.PUSH_WITH))
        self.compile_expr(node.expr)
        self.add_with_span(Instruction(Opcode.INCLUDE, False), node.span)
        self.add(Instruction(Opcode.EXPORT_LOCALS))
        self.add(Instruction(Opcode.POP_FRAME))
        self._compile_assignment(node.name)
        self.add(Instruction(Opcode.END_CAPTURE))
        self.add(Instruction(Opcode.DISCARD_TOP))

    def _compile_from_import(self, node: FromImport) -> None:
        self.set_line_from_span(node.span)
        self.add(Instruction(Opcode.BEGIN_CAPTURE, CaptureMode.DISCARD))
        self.add(Instruction(Opcode.PUSH_WITH))
        self.compile_expr(node.expr)
        self.add_with_span(Instruction(Opcode.INCLUDE, False), node.span)
        for name, _ in node.names:
            self.compile_expr(name)
        self.add(Instruction(Opcode.POP_FRAME))
        for name, alias in reversed(node.names):
            self._compile_assignment(alias or name)
        self.add(Instruction(Opcode.END_CAPTURE))
        self.add(Instruction(Opcode.DISCARD_TOP))
