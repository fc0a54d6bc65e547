"""Dynamic objects.

A dynamic value wraps an `Object`. The object's `kind` decides how the
engine treats it: plain objects are opaque (callable at most), sequence
objects support indexing, iteration and slicing, and struct objects
expose named fields for attribute access.

Host objects passed in the render context that are neither scalars,
mappings nor sequences are wrapped in `PyObject`, which exposes their
public attributes as fields and their methods as callable methods.
Plain Python callables are wrapped in `PyCallable`.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

from jinko.environment.exceptions import ErrorKind, TemplateRuntimeError
from jinko.value.core import Value, debug_str
from jinko.value.functions import call_python

if TYPE_CHECKING:
    from collections.abc import Callable

    from jinko.vm.state import State


class ObjectKind(Enum):
    PLAIN = "plain"
    SEQ = "seq"
    STRUCT = "struct"


class Object:
    """Base class for dynamic objects."""

    __slots__ = ()

    kind = ObjectKind.PLAIN

    def call(self, state: State, args: list[Value]) -> Value:
        raise TemplateRuntimeError(ErrorKind.INVALID_OPERATION, "object is not callable")

    def call_method(self, state: State, name: str, args: list[Value]) -> Value:
        raise TemplateRuntimeError(ErrorKind.UNKNOWN_METHOD, f"object has no method named {name}")

    def render(self) -> str:
        return self.debug()

    def debug(self) -> str:
        return f"<{type(self).__name__}>"

    def to_python(self) -> Any:
        return self


class SeqObject(Object):
    """Object that behaves like a sequence."""

    __slots__ = ()

    kind = ObjectKind.SEQ

    def get_item(self, idx: int) -> Value | None:
        raise NotImplementedError

    def item_count(self) -> int:
        raise NotImplementedError

    def debug(self) -> str:
        items = (self.get_item(i) for i in range(self.item_count()))
        return "[" + ", ".join(item.debug() for item in items if item is not None) + "]"

    def to_python(self) -> Any:
        return [
            item.to_python()
            for item in (self.get_item(i) for i in range(self.item_count()))
            if item is not None
        ]


class StructObject(Object):
    """Object with named fields.

    Subclasses implement `get_field` and either `static_fields` (a fixed
    tuple of names) or `fields` (computed on demand).
    """

    __slots__ = ()

    kind = ObjectKind.STRUCT

    def get_field(self, name: str) -> Value | None:
        raise NotImplementedError

    def static_fields(self) -> tuple[str, ...] | None:
        return None

    def fields(self) -> list[str]:
        return list(self.static_fields() or ())

    def field_count(self) -> int:
        return len(self.fields())

    def debug(self) -> str:
        parts = []
        for name in self.fields():
            value = self.get_field(name)
            if value is not None:
                parts.append(f"{debug_str(name)}: {value.debug()}")
        return "{" + ", ".join(parts) + "}"

    def to_python(self) -> Any:
        rv = {}
        for name in self.fields():
            value = self.get_field(name)
            if value is not None:
                rv[name] = value.to_python()
        return rv


class PyCallable(Object):
    """A Python callable exposed to templates."""

    __slots__ = ("func",)

    def __init__(self, func: Callable[..., Any]):
        self.func = func

    def call(self, state: State, args: list[Value]) -> Value:
        return call_python(self.func, state, args)

    def debug(self) -> str:
        return f"<function {getattr(self.func, '__name__', type(self.func).__name__)}>"

    def to_python(self) -> Any:
        return self.func


class PyObject(StructObject):
    """Attribute view over an arbitrary Python object.

    Names starting with an underscore are hidden.
    """

    __slots__ = ("obj",)

    def __init__(self, obj: Any):
        self.obj = obj

    def get_field(self, name: str) -> Value | None:
        if name.startswith("_"):
            return None
        try:
            attr = getattr(self.obj, name)
        except AttributeError:
            return None
        return Value.from_python(attr)

    def fields(self) -> list[str]:
        try:
            names = vars(self.obj)
        except TypeError:
            names = [name for name in dir(self.obj) if not callable(getattr(self.obj, name, None))]
        return [name for name in names if not name.startswith("_")]

    def call(self, state: State, args: list[Value]) -> Value:
        if callable(self.obj):
            return call_python(self.obj, state, args)
        return super().call(state, args)

    def call_method(self, state: State, name: str, args: list[Value]) -> Value:
        method = None if name.startswith("_") else getattr(self.obj, name, None)
        if method is None or not callable(method):
            return super().call_method(state, name, args)
        return call_python(method, state, args)

    def render(self) -> str:
        return str(self.obj)

    def to_python(self) -> Any:
        return self.obj
