"""Default global functions for templates.

These functions are registered in every Environment:

    - ``range(stop)`` / ``range(start, stop, step=1)``: List of integers
    - ``dict(**kwargs)``: Build a map from keyword arguments
    - ``namespace(**kwargs)``: Mutable attribute holder

Usage:
    {% set ns = namespace(found=false) %}
    {% for item in items %}
      {% if item.match %}{% set ns.found = true %}{% endif %}
    {% endfor %}
    {{ ns.found }}
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from jinko.environment.exceptions import ErrorKind, TemplateRuntimeError
from jinko.value import StructObject, Value, pass_values

if TYPE_CHECKING:
    from collections.abc import Callable

# Upper bound on the number of items ``range`` produces.
MAX_RANGE = 10000


class Namespace(StructObject):
    """Attribute holder that ``{% set ns.attr = ... %}`` may write to.

    Unlike plain maps, namespaces are shared by reference, so writes in
    a loop body are visible after the loop.
    """

    __slots__ = ("values",)

    def __init__(self, values: dict[str, Value] | None = None):
        self.values: dict[str, Value] = dict(values or {})

    def get_field(self, name: str) -> Value | None:
        return self.values.get(name)

    def set_field(self, name: str, value: Value) -> None:
        self.values[name] = value

    def fields(self) -> list[str]:
        return list(self.values)

    def render(self) -> str:
        return f"<namespace {self.debug()}>"


def _range(lower: int, upper: int | None = None, step: int | None = None) -> list[int]:
    if upper is None:
        lower, upper = 0, lower
    if step is None:
        step = 1
    elif step == 0:
        raise TemplateRuntimeError(
            ErrorKind.INVALID_OPERATION, "cannot create range with step of 0"
        )
    rv = range(lower, upper, step)
    if len(rv) > MAX_RANGE:
        raise TemplateRuntimeError(ErrorKind.INVALID_OPERATION, "range has too many elements")
    return list(rv)


@pass_values
def _dict(value: Value | None = None, **kwargs: Value) -> Value:
    """Copy a map, or build one from keyword arguments."""
    if value is not None and not value.is_undefined:
        mapping = value.as_map()
        if mapping is None:
            raise TemplateRuntimeError(ErrorKind.INVALID_OPERATION, "dict() expects a map")
        base = list(mapping.items())
    else:
        base = []
    pairs = base + [(Value.from_str(k), v) for k, v in kwargs.items()]
    return Value.from_pairs(pairs)


@pass_values
def _namespace(value: Value | None = None, **kwargs: Value) -> Value:
    values: dict[str, Value] = {}
    if value is not None and not value.is_undefined:
        for key in value.try_iter():
            values[str(key)] = value.get_item(key)
    values.update(kwargs)
    return Value.from_object(Namespace(values))


# Default globals
DEFAULT_GLOBALS: dict[str, Callable[..., object]] = {
    "range": _range,
    "dict": _dict,
    "namespace": _namespace,
}
