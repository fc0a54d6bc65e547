"""Compiler for jinko templates.

Lowers the AST produced by `jinko.parser` to a flat instruction stream
executed by `jinko.vm`.
"""

from jinko.compiler.core import CodeGenerator, generate
from jinko.compiler.instructions import (
    LOOP_FLAG_RECURSIVE,
    LOOP_FLAG_WITH_LOOP_VAR,
    MACRO_CALLER,
    MAX_LOCALS,
    NO_LOCAL,
    CaptureMode,
    Instruction,
    Instructions,
    Opcode,
)

__all__ = [
    "LOOP_FLAG_RECURSIVE",
    "LOOP_FLAG_WITH_LOOP_VAR",
    "MACRO_CALLER",
    "MAX_LOCALS",
    "NO_LOCAL",
    "CaptureMode",
    "CodeGenerator",
    "Instruction",
    "Instructions",
    "Opcode",
    "generate",
]
