"""Code generator: lowers the template AST to VM instructions.

A single forward pass walks the AST and appends instructions to an
`Instructions` buffer. Control flow that needs forward jumps pushes a
pending block when it starts and patches the jump once the target is
known:

    {% if x %}a{% else %}b{% endif %}

    0  LOOKUP('x')
    1  JUMP_IF_FALSE(4)      <- patched by start_else
    2  EMIT_RAW('a')
    3  JUMP(5)               <- patched by end_if
    4  EMIT_RAW('b')

Named ``{% block %}`` bodies are compiled by a subgenerator into a side
table returned alongside the main buffer.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from jinko.compiler.expressions import ExpressionCompilationMixin
from jinko.compiler.instructions import (
    LOOP_FLAG_RECURSIVE,
    LOOP_FLAG_WITH_LOOP_VAR,
    MAX_LOCALS,
    NO_LOCAL,
    Instruction,
    Instructions,
    Opcode,
)
from jinko.compiler.statements import StatementCompilationMixin

if TYPE_CHECKING:
    from jinko._types import Span
    from jinko.nodes import Expr, Stmt
    from jinko.nodes import Template as TemplateNode


@dataclass(slots=True)
class _Branch:
    jump_instr: int


@dataclass(slots=True)
class _Loop:
    iter_instr: int


@dataclass(slots=True)
class _ScBool:
    jump_instrs: list[int] = field(default_factory=list)


def get_local_id(ids: dict[str, int], name: str) -> int:
    """Memoization slot for a filter or test name.

    Slots are handed out in first-use order; once `MAX_LOCALS` names have
    slots, further names get `NO_LOCAL`.
    """
    local_id = ids.get(name)
    if local_id is not None:
        return local_id
    if len(ids) >= MAX_LOCALS:
        return NO_LOCAL
    ids[name] = len(ids)
    return ids[name]


class CodeGenerator(ExpressionCompilationMixin, StatementCompilationMixin):
    """Compile a template AST into instructions.

    Example:
        >>> from jinko.parser import parse
        >>> gen = CodeGenerator("hello.txt", "Hello {{ name }}")
        >>> gen.compile_stmt(parse("Hello {{ name }}", "hello.txt"))
        >>> instructions, blocks = gen.finish()
        >>> print(instructions.dump())
            0  EMIT_RAW('Hello ')                       line 1
            1  LOOKUP('name')                           line 1
            2  EMIT                                     line 1

    Node Dispatch:
        Statements and expressions are dispatched on the node class name
        through dicts built once per generator.
    """

    __slots__ = (
        "_current_line",
        "_expr_dispatch",
        "_filter_local_ids",
        "_pending_blocks",
        "_span_stack",
        "_stmt_dispatch",
        "_test_local_ids",
        "blocks",
        "instructions",
    )

    def __init__(self, name: str, source: str | None = None):
        self.instructions = Instructions(name, source)
        self.blocks: dict[str, Instructions] = {}
        self._pending_blocks: list[_Branch | _Loop | _ScBool] = []
        self._current_line = 0
        self._span_stack: list[Span] = []
        self._filter_local_ids: dict[str, int] = {}
        self._test_local_ids: dict[str, int] = {}

        self._stmt_dispatch: dict[str, Callable[[Any], None]] = {
            "Template": self._compile_template,
            "EmitExpr": self._compile_emit_expr,
            "EmitRaw": self._compile_emit_raw,
            "ForLoop": self._compile_for_loop,
            "IfCond": self._compile_if_cond,
            "WithBlock": self._compile_with_block,
            "Set": self._compile_set,
            "SetBlock": self._compile_set_block,
            "AutoEscape": self._compile_auto_escape,
            "FilterBlock": self._compile_filter_block,
            "Block": self._compile_block,
            "Extends": self._compile_extends,
            "Include": self._compile_include,
            "Import": self._compile_import,
            "FromImport": self._compile_from_import,
            "Macro": self._compile_macro,
            "CallBlock": self._compile_call_block,
            "Do": self._compile_do,
        }
        self._expr_dispatch: dict[str, Callable[[Any], None]] = {
            "Var": self._compile_var,
            "Const": self._compile_const,
            "Slice": self._compile_slice,
            "UnaryOp": self._compile_unary_op,
            "BinOp": self._compile_bin_op,
            "IfExpr": self._compile_if_expr,
            "Filter": self._compile_filter,
            "Test": self._compile_test,
            "GetAttr": self._compile_get_attr,
            "GetItem": self._compile_get_item,
            "Call": self._compile_call_expr,
            "List": self._compile_list,
            "Map": self._compile_map,
            "Kwargs": self._compile_kwargs,
        }

    # ─────────────────────────────────────────────────────────────────────
    # Dispatch
    # ─────────────────────────────────────────────────────────────────────

    def compile_stmt(self, node: Stmt) -> None:
        handler = self._stmt_dispatch.get(type(node).__name__)
        if handler is None:
            raise RuntimeError(f"unreachable: cannot compile statement {node!r}")
        handler(node)

    def compile_expr(self, node: Expr) -> None:
        handler = self._expr_dispatch.get(type(node).__name__)
        if handler is None:
            raise RuntimeError(f"unreachable: cannot compile expression {node!r}")
        handler(node)

    def _compile_body(self, body: Any) -> None:
        for node in body:
            self.compile_stmt(node)

    def finish(self) -> tuple[Instructions, dict[str, Instructions]]:
        """Return the main instructions and the named block table."""
        if self._pending_blocks:
            raise RuntimeError("unreachable: unfinished pending blocks")
        return self.instructions, self.blocks

    # ─────────────────────────────────────────────────────────────────────
    # Emission
    # ─────────────────────────────────────────────────────────────────────

    def set_line(self, lineno: int) -> None:
        self._current_line = lineno

    def set_line_from_span(self, span: Span) -> None:
        self._current_line = span.start_line

    def push_span(self, span: Span) -> None:
        self._span_stack.append(span)
        self.set_line_from_span(span)

    def pop_span(self) -> None:
        self._span_stack.pop()

    def add(self, instr: Instruction) -> int:
        if self._span_stack:
            span = self._span_stack[-1]
            if span.start_line == self._current_line:
                return self.instructions.add_with_span(instr, span)
        return self.instructions.add_with_line(instr, self._current_line)

    def add_with_span(self, instr: Instruction, span: Span) -> int:
        return self.instructions.add_with_span(instr, span)

    def next_instruction(self) -> int:
        return len(self.instructions)

    def filter_local_id(self, name: str) -> int:
        return get_local_id(self._filter_local_ids, name)

    def test_local_id(self, name: str) -> int:
        return get_local_id(self._test_local_ids, name)

    def new_subgenerator(self) -> CodeGenerator:
        sub = CodeGenerator(self.instructions.name, self.instructions.source)
        sub._current_line = self._current_line
        if self._span_stack:
            sub._span_stack.append(self._span_stack[-1])
        return sub

    def finish_subgenerator(self, sub: CodeGenerator) -> Instructions:
        self._current_line = sub._current_line
        instructions, blocks = sub.finish()
        self.blocks.update(blocks)
        return instructions

    # ─────────────────────────────────────────────────────────────────────
    # Pending blocks
    # ─────────────────────────────────────────────────────────────────────

    def start_for_loop(self, with_loop_var: bool, recursive: bool) -> None:
        flags = 0
        if with_loop_var:
            flags |= LOOP_FLAG_WITH_LOOP_VAR
        if recursive:
            flags |= LOOP_FLAG_RECURSIVE
        self.add(Instruction(Opcode.PUSH_LOOP, flags=flags))
        iter_instr = self.add(Instruction(Opcode.ITERATE))
        self._pending_blocks.append(_Loop(iter_instr))

    def end_for_loop(self, push_did_not_iterate: bool) -> None:
        pending = self._pending_blocks.pop()
        if not isinstance(pending, _Loop):
            raise RuntimeError("unreachable: expected a loop block")
        self.add(Instruction(Opcode.JUMP, pending.iter_instr))
        loop_end = self.next_instruction()
        if push_did_not_iterate:
            self.add(Instruction(Opcode.PUSH_DID_NOT_ITERATE))
        self.add(Instruction(Opcode.POP_FRAME))
        self.instructions.patch(pending.iter_instr, loop_end)

    def start_if(self) -> None:
        jump_instr = self.add(Instruction(Opcode.JUMP_IF_FALSE))
        self._pending_blocks.append(_Branch(jump_instr))

    def start_else(self) -> None:
        jump_instr = self.add(Instruction(Opcode.JUMP))
        self._end_condition(jump_instr + 1)
        self._pending_blocks.append(_Branch(jump_instr))

    def end_if(self) -> None:
        self._end_condition(self.next_instruction())

    def _end_condition(self, target: int) -> None:
        pending = self._pending_blocks.pop()
        if not isinstance(pending, _Branch):
            raise RuntimeError("unreachable: expected a branch block")
        self.instructions.patch(pending.jump_instr, target)

    def start_sc_bool(self) -> None:
        self._pending_blocks.append(_ScBool())

    def sc_bool(self, and_: bool) -> None:
        pending = self._pending_blocks[-1]
        if not isinstance(pending, _ScBool):
            raise RuntimeError("unreachable: expected a short-circuit block")
        op = Opcode.JUMP_IF_FALSE_OR_POP if and_ else Opcode.JUMP_IF_TRUE_OR_POP
        pending.jump_instrs.append(self.add(Instruction(op)))

    def end_sc_bool(self) -> None:
        pending = self._pending_blocks.pop()
        if not isinstance(pending, _ScBool):
            raise RuntimeError("unreachable: expected a short-circuit block")
        end = self.next_instruction()
        for idx in pending.jump_instrs:
            self.instructions.patch(idx, end)


def generate(
    template: TemplateNode, name: str, source: str | None = None
) -> tuple[Instructions, dict[str, Instructions]]:
    """Compile a parsed template into ``(instructions, blocks)``."""
    gen = CodeGenerator(name, source)
    gen.compile_stmt(template)
    return gen.finish()
