"""Tests for the jinko code generator.

Verifies the instruction sequences emitted for the core constructs,
jump patching, the block table, filter memoization slots and the line
table used for error locations.
"""

from __future__ import annotations

from jinko.compiler import (
    LOOP_FLAG_RECURSIVE,
    LOOP_FLAG_WITH_LOOP_VAR,
    CaptureMode,
    Instructions,
    Opcode,
    generate,
)
from jinko.compiler.core import get_local_id
from jinko.compiler.instructions import MAX_LOCALS, NO_LOCAL
from jinko.parser import parse


def _compile(source: str, name: str = "test.txt") -> tuple[Instructions, dict[str, Instructions]]:
    return generate(parse(source, name), name, source)


def _ops(instructions: Instructions) -> list[Opcode]:
    return [instr.op for instr in instructions]


class TestBasicEmission:
    """Output and expression lowering."""

    def test_text_and_variable(self) -> None:
        instructions, blocks = _compile("Hello {{ name }}")
        assert _ops(instructions) == [Opcode.EMIT_RAW, Opcode.LOOKUP, Opcode.EMIT]
        assert instructions[0].arg == "Hello "
        assert instructions[1].arg == "name"
        assert blocks == {}

    def test_binary_operator(self) -> None:
        instructions, _ = _compile("{{ a + 1 }}")
        assert _ops(instructions) == [
            Opcode.LOOKUP,
            Opcode.LOAD_CONST,
            Opcode.ADD,
            Opcode.EMIT,
        ]

    def test_short_circuit_and(self) -> None:
        instructions, _ = _compile("{{ a and b }}")
        assert _ops(instructions) == [
            Opcode.LOOKUP,
            Opcode.JUMP_IF_FALSE_OR_POP,
            Opcode.LOOKUP,
            Opcode.EMIT,
        ]
        # the jump lands right after the right operand
        assert instructions[1].arg == 3

    def test_short_circuit_or(self) -> None:
        instructions, _ = _compile("{{ a or b }}")
        assert instructions[1].op is Opcode.JUMP_IF_TRUE_OR_POP

    def test_attribute_and_item(self) -> None:
        instructions, _ = _compile("{{ a.b[c] }}")
        assert _ops(instructions) == [
            Opcode.LOOKUP,
            Opcode.GET_ATTR,
            Opcode.LOOKUP,
            Opcode.GET_ITEM,
            Opcode.EMIT,
        ]
        assert instructions[1].arg == "b"

    def test_method_call(self) -> None:
        instructions, _ = _compile("{{ s.upper() }}")
        call = instructions[1]
        assert call.op is Opcode.CALL_METHOD
        assert call.arg == "upper"
        assert call.argc == 1

    def test_function_call(self) -> None:
        instructions, _ = _compile("{{ range(3) }}")
        call = instructions[1]
        assert call.op is Opcode.CALL_FUNCTION
        assert call.arg == "range"
        assert call.argc == 1

    def test_object_call(self) -> None:
        instructions, _ = _compile("{{ fns[0]() }}")
        assert instructions[3].op is Opcode.CALL_OBJECT
        assert instructions[3].argc == 1


class TestFiltersAndTests:
    """Filter and test application."""

    def test_filter_argc_includes_value(self) -> None:
        instructions, _ = _compile("{{ x | replace('a', 'b') }}")
        apply = instructions[3]
        assert apply.op is Opcode.APPLY_FILTER
        assert apply.arg == "replace"
        assert apply.argc == 3

    def test_filter_slots_are_reused(self) -> None:
        instructions, _ = _compile("{{ a | upper }}{{ b | lower }}{{ c | upper }}")
        slots = {(i.arg, i.flags) for i in instructions if i.op is Opcode.APPLY_FILTER}
        assert slots == {("upper", 0), ("lower", 1)}

    def test_filter_and_test_slots_are_separate(self) -> None:
        instructions, _ = _compile("{{ a | upper }}{{ b is defined }}")
        test = next(i for i in instructions if i.op is Opcode.PERFORM_TEST)
        assert test.flags == 0

    def test_slots_run_out(self) -> None:
        ids: dict[str, int] = {}
        for n in range(MAX_LOCALS):
            assert get_local_id(ids, f"f{n}") == n
        assert get_local_id(ids, "one_too_many") == NO_LOCAL
        assert get_local_id(ids, "f0") == 0


class TestControlFlow:
    """Loops and conditionals."""

    def test_for_loop(self) -> None:
        instructions, _ = _compile("{% for x in xs %}{{ x }}{% endfor %}")
        assert _ops(instructions) == [
            Opcode.LOOKUP,
            Opcode.PUSH_LOOP,
            Opcode.ITERATE,
            Opcode.STORE_LOCAL,
            Opcode.LOOKUP,
            Opcode.EMIT,
            Opcode.JUMP,
            Opcode.POP_FRAME,
        ]
        assert instructions[1].flags == LOOP_FLAG_WITH_LOOP_VAR
        # ITERATE exits to POP_FRAME, JUMP goes back to ITERATE
        assert instructions[2].arg == 7
        assert instructions[6].arg == 2

    def test_recursive_loop_flag(self) -> None:
        instructions, _ = _compile("{% for x in xs recursive %}{% endfor %}")
        assert instructions[1].flags == LOOP_FLAG_WITH_LOOP_VAR | LOOP_FLAG_RECURSIVE

    def test_for_else_pushes_did_not_iterate(self) -> None:
        instructions, _ = _compile("{% for x in xs %}{% else %}empty{% endfor %}")
        ops = _ops(instructions)
        assert Opcode.PUSH_DID_NOT_ITERATE in ops
        assert ops.index(Opcode.PUSH_DID_NOT_ITERATE) < ops.index(Opcode.JUMP_IF_FALSE)

    def test_filtered_loop_builds_list_first(self) -> None:
        instructions, _ = _compile("{% for x in xs if x %}{{ x }}{% endfor %}")
        ops = _ops(instructions)
        assert ops[0] is Opcode.BUILD_LIST
        assert Opcode.LIST_APPEND in ops
        loops = [i for i in instructions if i.op is Opcode.PUSH_LOOP]
        assert [loop.flags for loop in loops] == [0, LOOP_FLAG_WITH_LOOP_VAR]

    def test_if_else_jumps(self) -> None:
        instructions, _ = _compile("{% if a %}x{% else %}y{% endif %}")
        assert _ops(instructions) == [
            Opcode.LOOKUP,
            Opcode.JUMP_IF_FALSE,
            Opcode.EMIT_RAW,
            Opcode.JUMP,
            Opcode.EMIT_RAW,
        ]
        assert instructions[1].arg == 4
        assert instructions[3].arg == 5

    def test_with_block_pushes_frame(self) -> None:
        instructions, _ = _compile("{% with a = 1 %}{{ a }}{% endwith %}")
        ops = _ops(instructions)
        assert ops[0] is Opcode.PUSH_WITH
        assert ops[-1] is Opcode.POP_FRAME

    def test_set_block_captures(self) -> None:
        instructions, _ = _compile("{% set s %}x{% endset %}")
        assert instructions[0].op is Opcode.BEGIN_CAPTURE
        assert instructions[0].arg is CaptureMode.CAPTURE
        assert instructions[-1].op is Opcode.STORE_LOCAL

    def test_namespace_assignment(self) -> None:
        instructions, _ = _compile("{% set ns.count = 1 %}")
        assert _ops(instructions) == [Opcode.LOAD_CONST, Opcode.LOOKUP, Opcode.SET_ATTR]
        assert instructions[2].arg == "count"


class TestTemplateStructure:
    """Blocks, inheritance, includes and imports."""

    def test_block_goes_to_block_table(self) -> None:
        instructions, blocks = _compile("a{% block body %}b{% endblock %}c")
        assert _ops(instructions) == [Opcode.EMIT_RAW, Opcode.CALL_BLOCK, Opcode.EMIT_RAW]
        assert instructions[1].arg == "body"
        assert list(blocks) == ["body"]
        assert _ops(blocks["body"]) == [Opcode.EMIT_RAW]

    def test_nested_blocks_are_flattened(self) -> None:
        _, blocks = _compile("{% block outer %}{% block inner %}x{% endblock %}{% endblock %}")
        assert set(blocks) == {"outer", "inner"}
        assert _ops(blocks["outer"]) == [Opcode.CALL_BLOCK]

    def test_extends(self) -> None:
        instructions, _ = _compile('{% extends "base.txt" %}')
        assert _ops(instructions) == [Opcode.LOAD_CONST, Opcode.LOAD_BLOCKS]

    def test_include(self) -> None:
        instructions, _ = _compile('{% include "a.txt" ignore missing %}')
        assert instructions[1].op is Opcode.INCLUDE
        assert instructions[1].arg is True

    def test_import(self) -> None:
        instructions, _ = _compile('{% import "m.txt" as m %}')
        assert _ops(instructions) == [
            Opcode.BEGIN_CAPTURE,
            Opcode.PUSH_WITH,
            Opcode.LOAD_CONST,
            Opcode.INCLUDE,
            Opcode.EXPORT_LOCALS,
            Opcode.POP_FRAME,
            Opcode.STORE_LOCAL,
            Opcode.END_CAPTURE,
            Opcode.DISCARD_TOP,
        ]
        assert instructions[0].arg is CaptureMode.DISCARD

    def test_super_fast_path(self) -> None:
        _, blocks = _compile("{% block a %}{{ super() }}{% endblock %}")
        assert _ops(blocks["a"]) == [Opcode.FAST_SUPER]

    def test_self_block_call(self) -> None:
        instructions, _ = _compile("{% block a %}{% endblock %}{{ self.a() }}")
        assert _ops(instructions) == [Opcode.CALL_BLOCK, Opcode.CALL_BLOCK]


class TestMacros:
    """Macro definition lowering."""

    def test_macro_body_is_jumped_over(self) -> None:
        instructions, _ = _compile("{% macro m(a) %}{{ a }}{% endmacro %}")
        assert instructions[0].op is Opcode.JUMP
        ret = _ops(instructions).index(Opcode.RETURN)
        assert instructions[0].arg == ret + 1
        build = next(i for i in instructions if i.op is Opcode.BUILD_MACRO)
        assert build.arg == "m"
        # body offset: right after the jump
        assert build.argc == 1

    def test_macro_default_checks_undefined(self) -> None:
        instructions, _ = _compile("{% macro m(a=1) %}{% endmacro %}")
        ops = _ops(instructions)
        assert Opcode.IS_UNDEFINED in ops
        assert Opcode.DUP_TOP in ops


class TestLineTable:
    """Line and span records for error reporting."""

    def test_lines(self) -> None:
        instructions, _ = _compile("a\n{{ x }}\n{{ y }}")
        lookups = [idx for idx, i in enumerate(instructions) if i.op is Opcode.LOOKUP]
        assert [instructions.get_line(idx) for idx in lookups] == [2, 3]
        assert instructions.get_line(0) == 1

    def test_spans(self) -> None:
        instructions, _ = _compile("{{ a.b }}")
        span = instructions.get_span(1)
        assert span is not None
        assert span.start_col == 3

    def test_source_and_name_kept(self) -> None:
        instructions, _ = _compile("{{ x }}", "page.txt")
        assert instructions.name == "page.txt"
        assert instructions.source == "{{ x }}"

    def test_dump(self) -> None:
        instructions, _ = _compile("{{ x }}")
        listing = instructions.dump()
        assert "LOOKUP('x')" in listing
        assert "EMIT" in listing

    def test_referenced_names(self) -> None:
        instructions, _ = _compile("{% set a = 1 %}{{ a + b }}")
        names = instructions.get_referenced_names(len(instructions) - 1)
        assert set(names) == {"a", "b"}
