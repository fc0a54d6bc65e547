"""The ``loop`` variable available inside for loops."""

from __future__ import annotations

from typing import TYPE_CHECKING

from jinko.environment.exceptions import ErrorKind, TemplateRuntimeError
from jinko.value import UNDEFINED, StructObject, Value

if TYPE_CHECKING:
    from jinko.vm.state import State

_FIELDS = (
    "index0",
    "index",
    "length",
    "revindex",
    "revindex0",
    "first",
    "last",
    "depth",
    "depth0",
    "previtem",
    "nextitem",
)


class Loop(StructObject):
    """Loop iteration state exposed to templates.

    ``value_triple`` holds the previous, current and next item; the VM
    shifts it on every iteration. ``idx`` is -1 until the first item has
    been produced, and every field reads as undefined until then.

    Example:
        {% for item in items %}
          {{ loop.index }}/{{ loop.length }}{% if loop.last %}.{% endif %}
        {% endfor %}

    Methods:
        cycle(*values): Pick ``values[index0 % len(values)]``.
        changed(*values): True when the arguments differ from the last call.
    """

    __slots__ = ("depth", "idx", "last_changed_value", "len", "value_triple")

    def __init__(self, length: int | None, depth: int, first: Value | None):
        self.len = length
        self.idx = -1
        self.depth = depth
        self.value_triple: list[Value | None] = [None, None, first]
        self.last_changed_value: list[Value] | None = None

    def static_fields(self) -> tuple[str, ...]:
        return _FIELDS

    def get_field(self, name: str) -> Value | None:
        idx = self.idx
        if idx < 0:
            return UNDEFINED
        length = self.len
        if name == "index0":
            return Value.from_int(idx)
        if name == "index":
            return Value.from_int(idx + 1)
        if name in ("length", "len"):
            return UNDEFINED if length is None else Value.from_int(length)
        if name == "revindex":
            return UNDEFINED if length is None else Value.from_int(max(length - idx, 0))
        if name == "revindex0":
            return UNDEFINED if length is None else Value.from_int(max(length - idx - 1, 0))
        if name == "first":
            return Value.from_bool(idx == 0)
        if name == "last":
            return Value.from_bool(self.value_triple[2] is None)
        if name == "depth":
            return Value.from_int(self.depth + 1)
        if name == "depth0":
            return Value.from_int(self.depth)
        if name == "previtem":
            return self.value_triple[0] or UNDEFINED
        if name == "nextitem":
            return self.value_triple[2] or UNDEFINED
        return None

    def call(self, state: State, args: list[Value]) -> Value:
        raise TemplateRuntimeError(
            ErrorKind.INVALID_OPERATION,
            "loop cannot be called if reassigned to different variable",
        )

    def call_method(self, state: State, name: str, args: list[Value]) -> Value:
        if name == "changed":
            if args != self.last_changed_value:
                self.last_changed_value = list(args)
                return Value.from_bool(True)
            return Value.from_bool(False)
        if name == "cycle":
            if not args:
                return UNDEFINED
            return args[max(self.idx, 0) % len(args)]
        raise TemplateRuntimeError(
            ErrorKind.UNKNOWN_METHOD, f"loop object has no method named {name}"
        )

    def render(self) -> str:
        if self.len is None:
            return f"<loop {self.idx}>"
        return f"<loop {self.idx}/{self.len}>"
