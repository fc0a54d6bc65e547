"""Macro objects created by ``{% macro %}`` and ``{% call %}``."""

from __future__ import annotations

from typing import TYPE_CHECKING

from jinko.environment.escape import AutoEscape
from jinko.environment.exceptions import ErrorKind, TemplateRuntimeError
from jinko.value import UNDEFINED, StructObject, Value, split_kwargs

if TYPE_CHECKING:
    from jinko.compiler.instructions import Instructions
    from jinko.vm.state import State


class Macro(StructObject):
    """A callable template fragment.

    The macro keeps the instructions it was compiled into, so it stays
    callable after being imported into another template. Calling it
    renders the body into a fresh capture and returns the text, marked
    safe unless auto-escaping is off.
    """

    __slots__ = ("arg_spec", "caller_reference", "closure", "instructions", "name", "offset")

    def __init__(
        self,
        name: str,
        arg_spec: list[str],
        closure: Value,
        caller_reference: bool,
        instructions: Instructions,
        offset: int,
    ):
        self.name = name
        self.arg_spec = arg_spec
        self.closure = closure
        self.caller_reference = caller_reference
        self.instructions = instructions
        self.offset = offset

    def static_fields(self) -> tuple[str, ...]:
        return ("name", "arguments", "caller")

    def get_field(self, name: str) -> Value | None:
        if name == "name":
            return Value.from_str(self.name)
        if name == "arguments":
            return Value.from_seq([Value.from_str(arg) for arg in self.arg_spec])
        if name == "caller":
            return Value.from_bool(self.caller_reference)
        return None

    def _bind_arguments(self, args: list[Value]) -> tuple[list[Value], Value | None]:
        positional, kwargs = split_kwargs(args)
        if len(positional) > len(self.arg_spec):
            raise TemplateRuntimeError(ErrorKind.TOO_MANY_ARGUMENTS)

        used: set[str] = set()
        values = []
        for idx, name in enumerate(self.arg_spec):
            by_keyword = kwargs.get(name)
            if idx < len(positional):
                if by_keyword is not None:
                    raise TemplateRuntimeError(
                        ErrorKind.TOO_MANY_ARGUMENTS, f"duplicate argument `{name}`"
                    )
                values.append(positional[idx])
            elif by_keyword is not None:
                used.add(name)
                values.append(by_keyword)
            else:
                values.append(UNDEFINED)

        caller = None
        if self.caller_reference:
            used.add("caller")
            caller = kwargs.get("caller", UNDEFINED)

        for key in kwargs:
            if key not in used:
                raise TemplateRuntimeError(
                    ErrorKind.TOO_MANY_ARGUMENTS, f"unknown keyword argument `{key}`"
                )
        return values, caller

    def call(self, state: State, args: list[Value]) -> Value:
        from jinko.vm.core import Vm
        from jinko.vm.output import Output

        values, caller = self._bind_arguments(args)
        chunks: list[str] = []
        Vm(state.env).eval_macro(
            self.instructions,
            self.offset,
            self.closure,
            caller,
            Output(chunks.append),
            state,
            values,
        )
        text = "".join(chunks)
        if state.auto_escape is AutoEscape.NONE:
            return Value.from_str(text)
        return Value.from_safe_str(text)

    def render(self) -> str:
        return f"<macro {self.name}>"

    def debug(self) -> str:
        return f"<macro {self.name}>"

    def to_python(self) -> Macro:
        return self
