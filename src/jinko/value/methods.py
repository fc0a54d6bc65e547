"""Builtin methods on strings, maps and sequences.

These back method-call syntax on primitive values, for example
``{{ name.upper() }}`` or ``{% for k, v in d.items() %}``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from jinko.environment.exceptions import ErrorKind, TemplateRuntimeError
from jinko.value.core import FALSE, NONE, TRUE, Value, ValueType
from jinko.value.functions import split_kwargs
from jinko.value.ops import equal

if TYPE_CHECKING:
    from collections.abc import Callable

    from jinko.vm.state import State


def _arity(name: str, args: list[Value], low: int, high: int | None = None) -> list[Value]:
    positional, kwargs = split_kwargs(args)
    if kwargs:
        raise TemplateRuntimeError(
            ErrorKind.TOO_MANY_ARGUMENTS, f"{name}() takes no keyword arguments"
        )
    high = low if high is None else high
    if len(positional) < low:
        raise TemplateRuntimeError(ErrorKind.MISSING_ARGUMENT, f"{name}() expects {low} argument(s)")
    if len(positional) > high:
        raise TemplateRuntimeError(ErrorKind.TOO_MANY_ARGUMENTS, f"{name}() takes at most {high}")
    return positional


def _str_arg(value: Value, name: str) -> str:
    rv = value.as_str()
    if rv is None:
        raise TemplateRuntimeError(
            ErrorKind.INVALID_OPERATION, f"{name}() expects a string, got {value.kind}"
        )
    return rv


def _opt_str(args: list[Value], idx: int, name: str) -> str | None:
    if idx >= len(args) or args[idx].is_none:
        return None
    return _str_arg(args[idx], name)


def _strip(name: str, func: Callable[[str, str | None], str]) -> Callable[[str, list[Value]], Value]:
    def method(s: str, args: list[Value]) -> Value:
        args = _arity(name, args, 0, 1)
        return Value.from_str(func(s, _opt_str(args, 0, name)))

    return method


def _simple(name: str, func: Callable[[str], object]) -> Callable[[str, list[Value]], Value]:
    def method(s: str, args: list[Value]) -> Value:
        _arity(name, args, 0)
        return Value.from_python(func(s))

    return method


def _str_replace(s: str, args: list[Value]) -> Value:
    args = _arity("replace", args, 2, 3)
    count = args[2].try_to_i128() if len(args) > 2 else -1
    return Value.from_str(
        s.replace(_str_arg(args[0], "replace"), _str_arg(args[1], "replace"), count)
    )


def _str_split(s: str, args: list[Value]) -> Value:
    args = _arity("split", args, 0, 2)
    sep = _opt_str(args, 0, "split")
    maxsplit = args[1].try_to_i128() if len(args) > 1 else -1
    return Value.from_seq([Value.from_str(part) for part in s.split(sep, maxsplit)])


def _str_startswith(s: str, args: list[Value]) -> Value:
    (prefix,) = _arity("startswith", args, 1)
    return TRUE if s.startswith(_str_arg(prefix, "startswith")) else FALSE


def _str_endswith(s: str, args: list[Value]) -> Value:
    (suffix,) = _arity("endswith", args, 1)
    return TRUE if s.endswith(_str_arg(suffix, "endswith")) else FALSE


def _str_count(s: str, args: list[Value]) -> Value:
    (sub,) = _arity("count", args, 1)
    return Value.from_int(s.count(_str_arg(sub, "count")))


def _str_find(s: str, args: list[Value]) -> Value:
    (sub,) = _arity("find", args, 1)
    return Value.from_int(s.find(_str_arg(sub, "find")))


_STRING_METHODS: dict[str, Callable[[str, list[Value]], Value]] = {
    "upper": _simple("upper", str.upper),
    "lower": _simple("lower", str.lower),
    "title": _simple("title", str.title),
    "capitalize": _simple("capitalize", str.capitalize),
    "islower": _simple("islower", str.islower),
    "isupper": _simple("isupper", str.isupper),
    "isalpha": _simple("isalpha", str.isalpha),
    "isnumeric": _simple("isnumeric", str.isnumeric),
    "strip": _strip("strip", str.strip),
    "lstrip": _strip("lstrip", str.lstrip),
    "rstrip": _strip("rstrip", str.rstrip),
    "replace": _str_replace,
    "split": _str_split,
    "startswith": _str_startswith,
    "endswith": _str_endswith,
    "count": _str_count,
    "find": _str_find,
}


def _map_method(value: Value, name: str, args: list[Value]) -> Value | None:
    m = value.data
    if name == "keys":
        _arity(name, args, 0)
        return Value.from_seq(list(m.keys()))
    if name == "values":
        _arity(name, args, 0)
        return Value.from_seq(list(m.values()))
    if name == "items":
        _arity(name, args, 0)
        return Value.from_seq([Value.from_seq([k, v]) for k, v in m.items()])
    if name == "get":
        args = _arity(name, args, 1, 2)
        rv = m.get(args[0])
        if rv is None:
            return args[1] if len(args) > 1 else NONE
        return rv
    return None


def _seq_method(items: list[Value], name: str, args: list[Value]) -> Value | None:
    if name == "count":
        (needle,) = _arity(name, args, 1)
        return Value.from_int(sum(1 for item in items if equal(item, needle)))
    if name == "index":
        (needle,) = _arity(name, args, 1)
        for idx, item in enumerate(items):
            if equal(item, needle):
                return Value.from_int(idx)
        raise TemplateRuntimeError(ErrorKind.INVALID_OPERATION, "value is not in sequence")
    return None


def call_builtin_method(state: State, value: Value, name: str, args: list[Value]) -> Value:
    """Dispatch a method call on a primitive value.

    Raises:
        TemplateRuntimeError: UNKNOWN_METHOD if the value has no such method.
    """
    rv: Value | None = None
    if value.tag is ValueType.STRING:
        method = _STRING_METHODS.get(name)
        if method is not None:
            return method(value.data, args)
    elif value.tag is ValueType.MAP:
        rv = _map_method(value, name, args)
    elif value.tag is ValueType.SEQ:
        rv = _seq_method(value.data, name, args)
    if rv is None:
        raise TemplateRuntimeError(
            ErrorKind.UNKNOWN_METHOD, f"{value.kind} has no method named {name}"
        )
    return rv
