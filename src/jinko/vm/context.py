"""Scoped variable context for the virtual machine.

A `Context` is a stack of `Frame`s. The first frame wraps the render
context value; loops, with blocks, blocks and super calls push more.
Lookups search from the innermost frame outwards and finally fall back
to the environment globals.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from jinko.environment.exceptions import ErrorKind, TemplateRuntimeError
from jinko.value import UNDEFINED, Value, ValueKind
from jinko.vm.closure import Closure

if TYPE_CHECKING:
    from jinko.environment.core import Environment
    from jinko.value import ValueIterator
    from jinko.vm.loop import Loop

# Maximum of outer stack depth plus frame count.
MAX_RECURSION = 500


@dataclass(slots=True)
class RecursionJump:
    """Where to continue once a recursive ``loop()`` call finishes."""

    target: int
    end_capture: bool


@dataclass(slots=True)
class LoopState:
    with_loop_var: bool
    recurse_jump_target: int | None
    current_recursion_jump: RecursionJump | None
    iterator: ValueIterator
    object: Loop


@dataclass(slots=True)
class Frame:
    locals: dict[str, Value] = field(default_factory=dict)
    ctx: Value = UNDEFINED
    current_loop: LoopState | None = None
    closure: Closure | None = None

    @classmethod
    def new_checked(cls, root: Value) -> Frame:
        """Root frame for a render context; it must be map-like."""
        if not (root.is_undefined or root.is_none or root.kind is ValueKind.MAP):
            raise TemplateRuntimeError(
                ErrorKind.INVALID_OPERATION,
                "context must be a map or object",
            )
        return cls(ctx=root)


class Context:
    """Stack of frames plus the depth accumulated by outer evaluations."""

    __slots__ = ("outer_stack_depth", "stack")

    def __init__(self, frame: Frame):
        self.stack: list[Frame] = [frame]
        self.outer_stack_depth = 0

    def store(self, key: str, value: Value) -> None:
        top = self.stack[-1]
        top.locals[key] = value
        if top.closure is not None:
            top.closure.store(key, value)

    def load(self, env: Environment, key: str) -> Value | None:
        for frame in reversed(self.stack):
            rv = frame.locals.get(key)
            if rv is not None:
                return rv
            loop = frame.current_loop
            if loop is not None and loop.with_loop_var and key == "loop":
                return Value.from_object(loop.object)
            rv = frame.ctx.get_attr_fast(key)
            if rv is not None:
                return rv
        return env.get_global(key)

    def enclose(self, env: Environment, key: str) -> None:
        """Capture ``key`` into the current frame's closure."""
        top = self.stack[-1]
        if top.closure is None:
            top.closure = Closure()
        value = self.load(env, key)
        top.closure.store(key, UNDEFINED if value is None else value)

    def closure(self) -> Closure | None:
        return self.stack[-1].closure

    def take_closure(self) -> Closure | None:
        top = self.stack[-1]
        closure, top.closure = top.closure, None
        return closure

    def reset_closure(self, closure: Closure | None) -> None:
        self.stack[-1].closure = closure

    def current_locals(self) -> dict[str, Value]:
        return self.stack[-1].locals

    def current_loop(self) -> LoopState | None:
        for frame in reversed(self.stack):
            if frame.current_loop is not None:
                return frame.current_loop
        return None

    def push_frame(self, frame: Frame) -> None:
        self._check_depth(1)
        self.stack.append(frame)

    def pop_frame(self) -> Frame:
        return self.stack.pop()

    def depth(self) -> int:
        return self.outer_stack_depth + len(self.stack)

    def incr_depth(self, delta: int) -> None:
        self._check_depth(delta)
        self.outer_stack_depth += delta

    def decr_depth(self, delta: int) -> None:
        self.outer_stack_depth -= delta

    def _check_depth(self, delta: int) -> None:
        if self.depth() + delta > MAX_RECURSION:
            raise TemplateRuntimeError(ErrorKind.INVALID_OPERATION, "recursion limit exceeded")
