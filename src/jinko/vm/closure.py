"""Closures captured by macros."""

from __future__ import annotations

from jinko.value import StructObject, Value


class Closure(StructObject):
    """Values a macro captured from the frame it was declared in.

    The declaring frame keeps writing into the closure after the macro
    is built, so a macro sees later assignments in its scope, including
    its own name.
    """

    __slots__ = ("values",)

    def __init__(self) -> None:
        self.values: dict[str, Value] = {}

    def store(self, key: str, value: Value) -> None:
        self.values[key] = value

    def get_field(self, name: str) -> Value | None:
        return self.values.get(name)

    def fields(self) -> list[str]:
        return list(self.values)

    def debug(self) -> str:
        return "<closure>"
