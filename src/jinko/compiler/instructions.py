"""Bytecode for the jinko virtual machine.

A compiled template is an `Instructions` buffer: a flat list of
`Instruction` records plus sparse line and span tables used for error
reporting. Jumps address instructions by index.

Operand layout per opcode (unused fields stay at their defaults):

===================  ==========================  =========  ==========
opcode               arg                         argc       flags
===================  ==========================  =========  ==========
EMIT_RAW             text
STORE_LOCAL          name
LOOKUP               name
GET_ATTR             name
LOAD_CONST           Value
BUILD_MAP                                        pairs
BUILD_KWARGS                                     pairs
BUILD_LIST                                       count
UNPACK_LIST                                      count
APPLY_FILTER         name                        argc       local id
PERFORM_TEST         name                        argc       local id
PUSH_LOOP                                                   loop flags
ITERATE / JUMP*      target index
BEGIN_CAPTURE        CaptureMode
CALL_FUNCTION        name                        argc
CALL_METHOD          name                        argc
CALL_OBJECT                                      argc
CALL_BLOCK           name
INCLUDE              ignore_missing (bool)
BUILD_MACRO          name                        offset     macro flags
ENCLOSE              name
SET_ATTR             name
===================  ==========================  =========  ==========
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator

    from jinko._types import Span

# Loop carries the `loop` variable.
LOOP_FLAG_WITH_LOOP_VAR = 1
# Loop is recursive.
LOOP_FLAG_RECURSIVE = 2

# Macro references `caller`.
MACRO_CALLER = 2

# Maximum number of filters/tests memoized per template.
MAX_LOCALS = 50
# Local id that disables memoization.
NO_LOCAL = 255


class CaptureMode(Enum):
    CAPTURE = "capture"
    DISCARD = "discard"


class Opcode(IntEnum):
    """Virtual machine operations."""

    EMIT_RAW = 1
    STORE_LOCAL = 2
    LOOKUP = 3
    GET_ATTR = 4
    GET_ITEM = 5
    SLICE = 6
    LOAD_CONST = 7
    BUILD_MAP = 8
    BUILD_KWARGS = 9
    BUILD_LIST = 10
    UNPACK_LIST = 11
    LIST_APPEND = 12
    ADD = 13
    SUB = 14
    MUL = 15
    DIV = 16
    INT_DIV = 17
    REM = 18
    POW = 19
    NEG = 20
    EQ = 21
    NE = 22
    GT = 23
    GTE = 24
    LT = 25
    LTE = 26
    NOT = 27
    STRING_CONCAT = 28
    IN = 29
    APPLY_FILTER = 30
    PERFORM_TEST = 31
    EMIT = 32
    PUSH_LOOP = 33
    PUSH_WITH = 34
    ITERATE = 35
    PUSH_DID_NOT_ITERATE = 36
    POP_FRAME = 37
    JUMP = 38
    JUMP_IF_FALSE = 39
    JUMP_IF_FALSE_OR_POP = 40
    JUMP_IF_TRUE_OR_POP = 41
    PUSH_AUTO_ESCAPE = 42
    POP_AUTO_ESCAPE = 43
    BEGIN_CAPTURE = 44
    END_CAPTURE = 45
    CALL_FUNCTION = 46
    CALL_METHOD = 47
    CALL_OBJECT = 48
    DUP_TOP = 49
    DISCARD_TOP = 50
    FAST_SUPER = 51
    FAST_RECURSE = 52
    CALL_BLOCK = 53
    LOAD_BLOCKS = 54
    INCLUDE = 55
    EXPORT_LOCALS = 56
    BUILD_MACRO = 57
    RETURN = 58
    IS_UNDEFINED = 59
    ENCLOSE = 60
    GET_CLOSURE = 61
    SET_ATTR = 62


_JUMPS = frozenset(
    {
        Opcode.ITERATE,
        Opcode.JUMP,
        Opcode.JUMP_IF_FALSE,
        Opcode.JUMP_IF_FALSE_OR_POP,
        Opcode.JUMP_IF_TRUE_OR_POP,
    }
)


@dataclass(frozen=True, slots=True)
class Instruction:
    """A single VM instruction. See the module docstring for operands."""

    op: Opcode
    arg: Any = None
    argc: int = 0
    flags: int = 0

    def with_target(self, target: int) -> Instruction:
        """Copy of a jump instruction pointing at ``target``."""
        assert self.op in _JUMPS, f"not a jump: {self}"
        return Instruction(self.op, target, self.argc, self.flags)

    def __str__(self) -> str:
        op = self.op
        name = op.name
        if op is Opcode.LOAD_CONST:
            return f"{name}({self.arg.debug()})"
        if op in (Opcode.APPLY_FILTER, Opcode.PERFORM_TEST):
            return f"{name}({self.arg!r}, {self.argc}, {self.flags})"
        if op is Opcode.BUILD_MACRO:
            return f"{name}({self.arg!r}, {self.argc}, {self.flags})"
        if op in (Opcode.CALL_FUNCTION, Opcode.CALL_METHOD):
            return f"{name}({self.arg!r}, {self.argc})"
        if op in (
            Opcode.BUILD_MAP,
            Opcode.BUILD_KWARGS,
            Opcode.BUILD_LIST,
            Opcode.UNPACK_LIST,
            Opcode.CALL_OBJECT,
        ):
            return f"{name}({self.argc})"
        if op is Opcode.PUSH_LOOP:
            return f"{name}({self.flags})"
        if op is Opcode.BEGIN_CAPTURE:
            return f"{name}({self.arg.name})"
        if self.arg is not None:
            return f"{name}({self.arg!r})"
        return name


class Instructions:
    """Append-only instruction buffer with line and span information.

    Line and span records are stored only where they change; the record
    covering instruction ``i`` is the last one whose first instruction is
    ``<= i``.
    """

    __slots__ = (
        "_instructions",
        "_line_lines",
        "_line_starts",
        "_span_spans",
        "_span_starts",
        "name",
        "source",
    )

    def __init__(self, name: str, source: str | None = None):
        self.name = name
        self.source = source
        self._instructions: list[Instruction] = []
        self._line_starts: list[int] = []
        self._line_lines: list[int] = []
        self._span_starts: list[int] = []
        self._span_spans: list[Span | None] = []

    def __len__(self) -> int:
        return len(self._instructions)

    def __getitem__(self, idx: int) -> Instruction:
        return self._instructions[idx]

    def __iter__(self) -> Iterator[Instruction]:
        return iter(self._instructions)

    @property
    def instructions(self) -> list[Instruction]:
        return self._instructions

    def add(self, instr: Instruction) -> int:
        self._instructions.append(instr)
        return len(self._instructions) - 1

    def _add_line_record(self, idx: int, line: int) -> None:
        if not self._line_lines or self._line_lines[-1] != line:
            self._line_starts.append(idx)
            self._line_lines.append(line)

    def add_with_line(self, instr: Instruction, line: int) -> int:
        idx = self.add(instr)
        self._add_line_record(idx, line)
        if self._span_spans and self._span_spans[-1] is not None:
            self._span_starts.append(idx)
            self._span_spans.append(None)
        return idx

    def add_with_span(self, instr: Instruction, span: Span) -> int:
        idx = self.add(instr)
        if not self._span_spans or self._span_spans[-1] != span:
            self._span_starts.append(idx)
            self._span_spans.append(span)
        self._add_line_record(idx, span.start_line)
        return idx

    def patch(self, idx: int, target: int) -> None:
        """Point the jump at ``idx`` to ``target``."""
        self._instructions[idx] = self._instructions[idx].with_target(target)

    def get_line(self, idx: int) -> int | None:
        pos = bisect_right(self._line_starts, idx)
        return self._line_lines[pos - 1] if pos else None

    def get_span(self, idx: int) -> Span | None:
        pos = bisect_right(self._span_starts, idx)
        return self._span_spans[pos - 1] if pos else None

    def get_referenced_names(self, idx: int) -> list[str]:
        """Names looked up or stored before ``idx`` in the current scope.

        Walks backwards until the start of the enclosing loop or with
        block; used to show relevant variables in error reports.
        """
        rv: list[str] = []
        if not self._instructions:
            return rv
        idx = min(idx, len(self._instructions) - 1)
        for instr in reversed(self._instructions[: idx + 1]):
            op = instr.op
            if op in (Opcode.LOOKUP, Opcode.STORE_LOCAL, Opcode.CALL_FUNCTION):
                name = instr.arg
            elif op is Opcode.PUSH_LOOP and instr.flags & LOOP_FLAG_WITH_LOOP_VAR:
                name = "loop"
            elif op in (Opcode.PUSH_LOOP, Opcode.PUSH_WITH):
                break
            else:
                continue
            if name not in rv:
                rv.append(name)
        return rv

    def dump(self) -> str:
        """Human readable listing, one instruction per line."""
        lines = []
        for idx, instr in enumerate(self._instructions):
            line = self.get_line(idx)
            lines.append(f"{idx:>5}  {str(instr):<40} line {line}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"<Instructions {self.name!r} ({len(self)} instructions)>"
