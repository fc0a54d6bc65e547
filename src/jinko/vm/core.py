"""Stack-based virtual machine that executes compiled templates.

Evaluation runs one loop over an `Instructions` buffer with an operand
stack. Blocks, super calls, includes and macros run nested loops over
other buffers against the same `State` (macros get a fresh one), so a
nested loop starts with empty filter and test caches and its own
auto-escape stack.

Template inheritance works by switching buffers: ``{% extends %}``
collects the parent's blocks, starts discarding output, and once the
child's instructions run out the loop continues from the start of the
parent's instructions.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from jinko.compiler.instructions import (
    LOOP_FLAG_RECURSIVE,
    LOOP_FLAG_WITH_LOOP_VAR,
    MACRO_CALLER,
    NO_LOCAL,
    CaptureMode,
    Opcode,
)
from jinko.environment.escape import AutoEscape, escape_value
from jinko.environment.exceptions import (
    ErrorKind,
    TemplateError,
    TemplateNotFoundError,
    TemplateRuntimeError,
    UndefinedError,
)
from jinko.environment.globals import Namespace
from jinko.environment.undefined import UndefinedBehavior
from jinko.value import UNDEFINED, Value, ValueKind, ValueType, call_python, ops
from jinko.vm.context import Context, Frame, LoopState, RecursionJump
from jinko.vm.loop import Loop
from jinko.vm.macro import Macro
from jinko.vm.state import BlockStack, State, prepare_blocks

if TYPE_CHECKING:
    from collections.abc import Callable

    from jinko.compiler.instructions import Instructions
    from jinko.environment.core import Environment
    from jinko.vm.output import Output

logger = logging.getLogger(__name__)

# Depth charged against the recursion limit per include and macro call.
INCLUDE_RECURSION_COST = 10
MACRO_RECURSION_COST = 5


def _pop_n(stack: list[Value], n: int) -> list[Value]:
    if n == 0:
        return []
    rv = stack[-n:]
    del stack[-n:]
    return rv


def _assert_valid(value: Value) -> Value:
    if value.tag is ValueType.INVALID:
        raise TemplateRuntimeError(ErrorKind.BAD_SERIALIZATION, value.data)
    return value


def _cached(cache: dict[int, Callable], local_id: int, lookup: Callable[[], Callable | None]) -> Callable | None:
    if local_id == NO_LOCAL:
        return lookup()
    rv = cache.get(local_id)
    if rv is None:
        rv = lookup()
        if rv is not None:
            cache[local_id] = rv
    return rv


def derive_auto_escape(value: Value, initial: AutoEscape) -> AutoEscape:
    """Escape mode selected by the argument of ``{% autoescape %}``."""
    s = value.as_str()
    if s == "html":
        return AutoEscape.HTML
    if s == "json":
        return AutoEscape.JSON
    if s == "none":
        return AutoEscape.NONE
    if value.tag is ValueType.BOOL and value.data:
        return AutoEscape.HTML if initial is AutoEscape.NONE else initial
    raise TemplateRuntimeError(ErrorKind.INVALID_OPERATION, "invalid value to autoescape tag")


class Vm:
    """Executes instructions against an environment.

    Example:
        >>> out = Output(chunks.append)
        >>> Vm(env).eval(tmpl.instructions, Value.from_python(ctx), tmpl.blocks,
        ...              out, AutoEscape.HTML)

    """

    __slots__ = ("env",)

    def __init__(self, env: Environment):
        self.env = env

    # ─────────────────────────────────────────────────────────────────────
    # Entry points
    # ─────────────────────────────────────────────────────────────────────

    def eval(
        self,
        instructions: Instructions,
        root: Value,
        blocks: dict[str, Instructions],
        out: Output,
        auto_escape: AutoEscape,
    ) -> Value | None:
        """Render ``instructions`` with ``root`` as the template context.

        Returns the value left on the stack, if any.
        """
        state = State(
            self.env,
            Context(Frame.new_checked(root)),
            auto_escape,
            instructions,
            prepare_blocks(blocks),
        )
        return self._eval_state(state, out)

    def eval_macro(
        self,
        instructions: Instructions,
        pc: int,
        closure: Value,
        caller: Value | None,
        out: Output,
        state: State,
        args: list[Value],
    ) -> Value | None:
        """Run a macro body starting at ``pc`` with ``args`` on the stack."""
        ctx = Context(Frame(ctx=closure))
        if caller is not None:
            ctx.store("caller", caller)
        ctx.incr_depth(state.ctx.depth() + MACRO_RECURSION_COST)
        macro_state = State(self.env, ctx, state.auto_escape, instructions, {})
        return self._eval_impl(macro_state, out, list(args), pc)

    def _eval_state(self, state: State, out: Output) -> Value | None:
        return self._eval_impl(state, out, [], 0)

    # ─────────────────────────────────────────────────────────────────────
    # Main loop
    # ─────────────────────────────────────────────────────────────────────

    def _eval_impl(self, state: State, out: Output, stack: list[Value], pc: int) -> Value | None:
        env = self.env
        undefined_behavior = state.undefined_behavior
        strict = undefined_behavior is UndefinedBehavior.STRICT
        initial_auto_escape = state.auto_escape
        auto_escape_stack: list[AutoEscape] = []
        next_recursion_jump: RecursionJump | None = None
        loaded_filters: dict[int, Callable] = {}
        loaded_tests: dict[int, Callable] = {}
        parent_instructions: Instructions | None = None
        code = state.instructions.instructions

        try:
            while True:
                if pc >= len(code):
                    if parent_instructions is None:
                        break
                    # the child ran out: continue with the parent template
                    logger.debug(
                        f"Switching from {state.name!r} to parent {parent_instructions.name!r}"
                    )
                    state.instructions = parent_instructions
                    parent_instructions = None
                    code = state.instructions.instructions
                    out.end_capture(AutoEscape.NONE)
                    loaded_filters.clear()
                    loaded_tests.clear()
                    pc = 0
                    continue

                instr = code[pc]
                op = instr.op

                if op is Opcode.EMIT_RAW:
                    out.write(instr.arg)
                elif op is Opcode.EMIT:
                    value = _assert_valid(stack.pop())
                    undefined_behavior.assert_printable(value)
                    out.write(escape_value(value, state.auto_escape))
                elif op is Opcode.STORE_LOCAL:
                    state.ctx.store(instr.arg, stack.pop())
                elif op is Opcode.SET_ATTR:
                    target = stack.pop()
                    value = stack.pop()
                    obj = target.as_object()
                    if not isinstance(obj, Namespace):
                        raise TemplateRuntimeError(
                            ErrorKind.INVALID_OPERATION,
                            "can only assign to attributes of namespaces",
                        )
                    obj.set_field(instr.arg, value)
                elif op is Opcode.LOOKUP:
                    value = state.ctx.load(env, instr.arg)
                    stack.append(UNDEFINED if value is None else value)
                elif op is Opcode.GET_ATTR:
                    a = stack.pop()
                    value = a.get_attr_fast(instr.arg)
                    if value is not None:
                        stack.append(_assert_valid(value))
                    else:
                        stack.append(undefined_behavior.handle_undefined(a.is_undefined))
                elif op is Opcode.GET_ITEM:
                    a = stack.pop()
                    b = stack.pop()
                    value = b.get_item_opt(a)
                    if value is not None:
                        stack.append(_assert_valid(value))
                    else:
                        stack.append(undefined_behavior.handle_undefined(b.is_undefined))
                elif op is Opcode.SLICE:
                    step = stack.pop()
                    stop = stack.pop()
                    start = stack.pop()
                    value = stack.pop()
                    if strict and value.is_undefined:
                        raise UndefinedError()
                    stack.append(ops.slice_(value, start, stop, step))
                elif op is Opcode.LOAD_CONST:
                    stack.append(instr.arg)
                elif op is Opcode.BUILD_MAP or op is Opcode.BUILD_KWARGS:
                    items = _pop_n(stack, instr.argc * 2)
                    pairs = zip(items[::2], items[1::2], strict=True)
                    stack.append(Value.from_pairs(pairs, kwargs=op is Opcode.BUILD_KWARGS))
                elif op is Opcode.BUILD_LIST:
                    stack.append(Value.from_seq(_pop_n(stack, instr.argc)))
                elif op is Opcode.UNPACK_LIST:
                    self._unpack_list(stack, instr.argc)
                elif op is Opcode.LIST_APPEND:
                    a = stack.pop()
                    target = stack.pop()
                    if target.tag is not ValueType.SEQ:
                        raise TemplateRuntimeError(
                            ErrorKind.INVALID_OPERATION, "cannot append to non-list"
                        )
                    target.data.append(a)
                    stack.append(target)
                elif op in _BINARY_OPS:
                    b = stack.pop()
                    a = stack.pop()
                    stack.append(_BINARY_OPS[op](a, b))
                elif op is Opcode.NOT:
                    stack.append(Value.from_bool(not stack.pop().is_true()))
                elif op is Opcode.NEG:
                    stack.append(ops.neg(stack.pop()))
                elif op is Opcode.STRING_CONCAT:
                    a = stack.pop()
                    b = stack.pop()
                    stack.append(ops.string_concat(b, a))
                elif op is Opcode.IN:
                    container = stack.pop()
                    item = stack.pop()
                    if strict and container.is_undefined:
                        raise UndefinedError()
                    stack.append(ops.contains(container, item))
                elif op is Opcode.APPLY_FILTER:
                    name = instr.arg
                    func = _cached(loaded_filters, instr.flags, lambda: env.get_filter(name))
                    if func is None:
                        raise TemplateRuntimeError(
                            ErrorKind.UNKNOWN_FILTER, f"filter {name} is unknown"
                        )
                    args = _pop_n(stack, instr.argc)
                    stack.append(call_python(func, state, args))
                elif op is Opcode.PERFORM_TEST:
                    name = instr.arg
                    func = _cached(loaded_tests, instr.flags, lambda: env.get_test(name))
                    if func is None:
                        raise TemplateRuntimeError(
                            ErrorKind.UNKNOWN_TEST, f"test {name} is unknown"
                        )
                    args = _pop_n(stack, instr.argc)
                    stack.append(Value.from_bool(call_python(func, state, args).is_true()))
                elif op is Opcode.PUSH_LOOP:
                    iterable = stack.pop()
                    self._push_loop(state, iterable, instr.flags, pc, next_recursion_jump)
                    next_recursion_jump = None
                elif op is Opcode.PUSH_WITH:
                    state.ctx.push_frame(Frame())
                elif op is Opcode.ITERATE:
                    loop_state = state.ctx.current_loop()
                    assert loop_state is not None
                    loop = loop_state.object
                    loop.idx += 1
                    triple = loop.value_triple
                    triple[0] = triple[1]
                    triple[1] = triple[2]
                    triple[2] = loop_state.iterator.next()
                    item = triple[1]
                    if item is None:
                        pc = instr.arg
                        continue
                    stack.append(_assert_valid(item))
                elif op is Opcode.PUSH_DID_NOT_ITERATE:
                    loop_state = state.ctx.current_loop()
                    assert loop_state is not None
                    stack.append(Value.from_bool(loop_state.object.idx == 0))
                elif op is Opcode.POP_FRAME:
                    frame = state.ctx.pop_frame()
                    loop_state = frame.current_loop
                    if loop_state is not None and loop_state.current_recursion_jump is not None:
                        jump = loop_state.current_recursion_jump
                        loop_state.current_recursion_jump = None
                        pc = jump.target
                        if jump.end_capture:
                            stack.append(out.end_capture(state.auto_escape))
                        continue
                elif op is Opcode.IS_UNDEFINED:
                    stack.append(Value.from_bool(stack.pop().is_undefined))
                elif op is Opcode.JUMP:
                    pc = instr.arg
                    continue
                elif op is Opcode.JUMP_IF_FALSE:
                    if not stack.pop().is_true():
                        pc = instr.arg
                        continue
                elif op is Opcode.JUMP_IF_FALSE_OR_POP:
                    if stack[-1].is_true():
                        stack.pop()
                    else:
                        pc = instr.arg
                        continue
                elif op is Opcode.JUMP_IF_TRUE_OR_POP:
                    if stack[-1].is_true():
                        pc = instr.arg
                        continue
                    stack.pop()
                elif op is Opcode.PUSH_AUTO_ESCAPE:
                    value = stack.pop()
                    auto_escape_stack.append(state.auto_escape)
                    state.auto_escape = derive_auto_escape(value, initial_auto_escape)
                elif op is Opcode.POP_AUTO_ESCAPE:
                    state.auto_escape = auto_escape_stack.pop()
                elif op is Opcode.BEGIN_CAPTURE:
                    out.begin_capture(instr.arg)
                elif op is Opcode.END_CAPTURE:
                    stack.append(out.end_capture(state.auto_escape))
                elif op is Opcode.CALL_FUNCTION:
                    name = instr.arg
                    if name == "super":
                        if instr.argc != 0:
                            raise TemplateRuntimeError(
                                ErrorKind.INVALID_OPERATION, "super() takes no arguments"
                            )
                        stack.append(self._perform_super(state, out, True))
                    elif name == "loop":
                        if instr.argc != 1:
                            raise TemplateRuntimeError(
                                ErrorKind.INVALID_OPERATION,
                                f"loop() takes one argument, got {instr.argc}",
                            )
                        next_recursion_jump = RecursionJump(pc + 1, True)
                        out.begin_capture(CaptureMode.CAPTURE)
                        pc = self._prepare_loop_recursion(state)
                        continue
                    else:
                        func = state.lookup(name)
                        if func is None:
                            raise TemplateRuntimeError(
                                ErrorKind.UNKNOWN_FUNCTION, f"{name} is unknown"
                            )
                        args = _pop_n(stack, instr.argc)
                        stack.append(func.call(state, args))
                elif op is Opcode.CALL_METHOD:
                    args = _pop_n(stack, instr.argc)
                    stack.append(args[0].call_method(state, instr.arg, args[1:]))
                elif op is Opcode.CALL_OBJECT:
                    args = _pop_n(stack, instr.argc)
                    stack.append(args[0].call(state, args[1:]))
                elif op is Opcode.DUP_TOP:
                    stack.append(stack[-1].clone())
                elif op is Opcode.DISCARD_TOP:
                    stack.pop()
                elif op is Opcode.FAST_SUPER:
                    self._perform_super(state, out, False)
                elif op is Opcode.FAST_RECURSE:
                    next_recursion_jump = RecursionJump(pc + 1, False)
                    pc = self._prepare_loop_recursion(state)
                    continue
                elif op is Opcode.CALL_BLOCK:
                    if parent_instructions is None and not out.is_discarding():
                        self._call_block(instr.arg, state, out)
                elif op is Opcode.LOAD_BLOCKS:
                    name_value = stack.pop()
                    if parent_instructions is not None:
                        raise TemplateRuntimeError(
                            ErrorKind.INVALID_OPERATION,
                            "tried to extend a second time in a template",
                        )
                    parent_instructions = self._load_blocks(name_value, state)
                    out.begin_capture(CaptureMode.DISCARD)
                elif op is Opcode.INCLUDE:
                    self._perform_include(stack.pop(), state, out, instr.arg)
                elif op is Opcode.EXPORT_LOCALS:
                    stack.append(
                        Value.from_pairs(
                            (Value.from_str(key), value.clone())
                            for key, value in state.ctx.current_locals().items()
                        )
                    )
                elif op is Opcode.BUILD_MACRO:
                    arg_spec = stack.pop()
                    closure = stack.pop()
                    macro = Macro(
                        instr.arg,
                        [str(arg) for arg in arg_spec.data],
                        closure,
                        bool(instr.flags & MACRO_CALLER),
                        state.instructions,
                        instr.argc,
                    )
                    stack.append(Value.from_object(macro))
                elif op is Opcode.RETURN:
                    break
                elif op is Opcode.ENCLOSE:
                    state.ctx.enclose(env, instr.arg)
                elif op is Opcode.GET_CLOSURE:
                    closure = state.ctx.closure()
                    stack.append(UNDEFINED if closure is None else Value.from_object(closure))
                else:
                    raise RuntimeError(f"unreachable: unknown opcode {op!r}")

                pc += 1
        except TemplateError as err:
            self._attach_location(err, state, pc)
            raise

        return stack.pop() if stack else None

    def _attach_location(self, err: TemplateError, state: State, pc: int) -> None:
        instructions = state.instructions
        source = instructions.source if self.env.debug else None
        err.attach_location(
            instructions.name,
            instructions.get_line(pc),
            instructions.get_span(pc),
            source,
        )

    # ─────────────────────────────────────────────────────────────────────
    # Loops
    # ─────────────────────────────────────────────────────────────────────

    def _unpack_list(self, stack: list[Value], count: int) -> None:
        top = stack.pop()
        items = top.as_list()
        if items is None:
            raise TemplateRuntimeError(ErrorKind.CANNOT_UNPACK, "not a sequence")
        if len(items) != count:
            raise TemplateRuntimeError(
                ErrorKind.CANNOT_UNPACK,
                f"sequence of wrong length (expected {count}, got {len(items)})",
            )
        stack.extend(reversed(items))

    def _push_loop(
        self,
        state: State,
        iterable: Value,
        flags: int,
        pc: int,
        current_recursion_jump: RecursionJump | None,
    ) -> None:
        iterator = state.undefined_behavior.try_iter(iterable)
        depth = 0
        outer = state.ctx.current_loop()
        if outer is not None and outer.recurse_jump_target is not None:
            depth = outer.object.depth + 1
        loop = Loop(iterator.len(), depth, iterator.next())
        state.ctx.push_frame(
            Frame(
                current_loop=LoopState(
                    with_loop_var=bool(flags & LOOP_FLAG_WITH_LOOP_VAR),
                    recurse_jump_target=pc if flags & LOOP_FLAG_RECURSIVE else None,
                    current_recursion_jump=current_recursion_jump,
                    iterator=iterator,
                    object=loop,
                )
            )
        )

    def _prepare_loop_recursion(self, state: State) -> int:
        loop_state = state.ctx.current_loop()
        if loop_state is None:
            raise TemplateRuntimeError(
                ErrorKind.INVALID_OPERATION, "cannot recurse outside of loop"
            )
        if loop_state.recurse_jump_target is None:
            raise TemplateRuntimeError(
                ErrorKind.INVALID_OPERATION, "cannot recurse outside of recursive loop"
            )
        return loop_state.recurse_jump_target

    # ─────────────────────────────────────────────────────────────────────
    # Blocks and inheritance
    # ─────────────────────────────────────────────────────────────────────

    def _call_block(self, name: str, state: State, out: Output) -> None:
        block_stack = state.blocks.get(name)
        if block_stack is None:
            raise TemplateRuntimeError(ErrorKind.UNKNOWN_BLOCK, f"block '{name}' not found")
        state.ctx.push_frame(Frame())
        old_block = state.current_block
        old_instructions = state.instructions
        state.current_block = name
        state.instructions = block_stack.instructions()
        try:
            self._eval_state(state, out)
        finally:
            state.ctx.pop_frame()
            state.instructions = old_instructions
            state.current_block = old_block

    def _perform_super(self, state: State, out: Output, capture: bool) -> Value:
        name = state.current_block
        if name is None:
            raise TemplateRuntimeError(
                ErrorKind.INVALID_OPERATION, "cannot super outside of block"
            )
        block_stack = state.blocks[name]
        if not block_stack.push():
            raise TemplateRuntimeError(ErrorKind.INVALID_OPERATION, "no parent block exists")
        if capture:
            out.begin_capture(CaptureMode.CAPTURE)
        old_instructions = state.instructions
        try:
            state.ctx.push_frame(Frame())
            state.instructions = block_stack.instructions()
            try:
                self._eval_state(state, out)
            finally:
                state.ctx.pop_frame()
        except TemplateError as err:
            raise TemplateRuntimeError(ErrorKind.EVAL_BLOCK, "error in super block") from err
        finally:
            state.instructions = old_instructions
            block_stack.pop()
        if capture:
            return out.end_capture(state.auto_escape)
        return UNDEFINED

    def _load_blocks(self, name: Value, state: State) -> Instructions:
        template_name = name.as_str()
        if template_name is None:
            raise TemplateRuntimeError(
                ErrorKind.INVALID_OPERATION, "template name was not a string"
            )
        if template_name in state.loaded_templates:
            raise TemplateRuntimeError(
                ErrorKind.INVALID_OPERATION,
                f"cycle in template inheritance. {name.debug()} was referenced more than once",
            )
        state.loaded_templates.add(template_name)
        tmpl = self.env.get_template(template_name)
        for block_name, instructions in tmpl.blocks.items():
            block_stack = state.blocks.get(block_name)
            if block_stack is None:
                state.blocks[block_name] = BlockStack(instructions)
            else:
                block_stack.append(instructions)
        logger.debug(f"Template {state.name!r} extends {template_name!r}")
        return tmpl.instructions

    # ─────────────────────────────────────────────────────────────────────
    # Include
    # ─────────────────────────────────────────────────────────────────────

    def _perform_include(
        self, name: Value, state: State, out: Output, ignore_missing: bool
    ) -> None:
        if name.kind is ValueKind.SEQ:
            choices = name.as_list() or []
        else:
            choices = [name]

        tried: list[Value] = []
        for choice in choices:
            template_name = choice.as_str()
            if template_name is None:
                raise TemplateRuntimeError(
                    ErrorKind.INVALID_OPERATION, "template name was not a string"
                )
            try:
                tmpl = self.env.get_template(template_name)
            except TemplateNotFoundError:
                tried.append(choice)
                continue

            logger.debug(f"Template {state.name!r} includes {template_name!r}")
            state.ctx.incr_depth(INCLUDE_RECURSION_COST)
            old_escape = state.auto_escape
            old_instructions = state.instructions
            old_blocks = state.blocks
            old_loaded = state.loaded_templates
            old_closure = state.ctx.take_closure()
            state.auto_escape = tmpl.initial_auto_escape
            state.instructions = tmpl.instructions
            state.blocks = prepare_blocks(tmpl.blocks)
            state.loaded_templates = {template_name}
            try:
                self._eval_state(state, out)
            except TemplateError as err:
                raise TemplateRuntimeError(
                    ErrorKind.BAD_INCLUDE, f'error in "{template_name}"'
                ) from err
            finally:
                state.ctx.reset_closure(old_closure)
                state.auto_escape = old_escape
                state.instructions = old_instructions
                state.blocks = old_blocks
                state.loaded_templates = old_loaded
                state.ctx.decr_depth(INCLUDE_RECURSION_COST)
            return

        if tried and not ignore_missing:
            if len(tried) == 1:
                detail = f"tried to include non-existing template {tried[0].debug()}"
            else:
                detail = (
                    "tried to include one of multiple templates, none of which existed "
                    f"{Value.from_seq(tried).debug()}"
                )
            raise TemplateNotFoundError(detail)


_BINARY_OPS: dict[Opcode, Callable[[Value, Value], Value]] = {
    Opcode.ADD: ops.add,
    Opcode.SUB: ops.sub,
    Opcode.MUL: ops.mul,
    Opcode.DIV: ops.div,
    Opcode.INT_DIV: ops.int_div,
    Opcode.REM: ops.rem,
    Opcode.POW: ops.pow_,
    Opcode.EQ: lambda a, b: Value.from_bool(ops.equal(a, b)),
    Opcode.NE: lambda a, b: Value.from_bool(not ops.equal(a, b)),
    Opcode.LT: lambda a, b: Value.from_bool(ops.cmp(a, b) < 0),
    Opcode.LTE: lambda a, b: Value.from_bool(ops.cmp(a, b) <= 0),
    Opcode.GT: lambda a, b: Value.from_bool(ops.cmp(a, b) > 0),
    Opcode.GTE: lambda a, b: Value.from_bool(ops.cmp(a, b) >= 0),
}
