"""Calling convention for Python functions used as filters, tests and
template functions.

By default a Python callable receives native Python arguments converted
with `Value.to_python` and its return value is converted back with
`Value.from_python`. A trailing keyword-arguments map in the argument
list is passed as Python keyword arguments.

Two decorators change this:

- `pass_state` passes the render `State` as the first argument.
- `pass_values` passes `Value` objects unconverted; the function may
  return either a `Value` or a native Python object.

Example:
    >>> @pass_state
    ... def current_name(state):
    ...     return state.name
    >>> env.add_function("current_name", current_name)

"""

from __future__ import annotations

import inspect
from functools import lru_cache
from typing import TYPE_CHECKING, Any, TypeVar

from jinko.environment.exceptions import ErrorKind, TemplateRuntimeError
from jinko.value.core import Value

if TYPE_CHECKING:
    from collections.abc import Callable

    from jinko.vm.state import State

F = TypeVar("F", bound="Callable[..., Any]")


def pass_state(func: F) -> F:
    """Mark ``func`` to receive the render state as its first argument."""
    func._jinko_pass_state = True  # type: ignore[attr-defined]
    return func


def pass_values(func: F) -> F:
    """Mark ``func`` to receive and return `Value` objects unconverted."""
    func._jinko_pass_values = True  # type: ignore[attr-defined]
    return func


def split_kwargs(args: list[Value]) -> tuple[list[Value], dict[str, Value]]:
    """Split a trailing kwargs map off ``args``."""
    if args and args[-1].is_kwargs:
        kwargs = {}
        for key, value in args[-1].data.items():
            name = key.as_str()
            if name is None:
                raise TemplateRuntimeError(
                    ErrorKind.INVALID_OPERATION, "keyword argument names must be strings"
                )
            kwargs[name] = value
        return args[:-1], kwargs
    return args, {}


@lru_cache(maxsize=512)
def _signature(func: Callable[..., Any]) -> inspect.Signature | None:
    try:
        return inspect.signature(func)
    except (TypeError, ValueError):
        return None


def _bind(func: Callable[..., Any], args: list[Any], kwargs: dict[str, Any]) -> None:
    try:
        sig = _signature(func)
    except TypeError:
        # unhashable callable
        sig = None
    if sig is None:
        return
    try:
        sig.bind(*args, **kwargs)
    except TypeError as exc:
        message = str(exc)
        if "missing" in message:
            raise TemplateRuntimeError(ErrorKind.MISSING_ARGUMENT, message) from None
        raise TemplateRuntimeError(ErrorKind.TOO_MANY_ARGUMENTS, message) from None


def call_python(func: Callable[..., Any], state: State, args: list[Value]) -> Value:
    """Call a Python function with template arguments.

    Raises:
        TemplateRuntimeError: MISSING_ARGUMENT or TOO_MANY_ARGUMENTS if the
            arguments do not fit the function's signature. Exceptions raised
            by the function itself propagate unchanged.
    """
    positional, kwargs = split_kwargs(args)
    if getattr(func, "_jinko_pass_values", False):
        call_args: list[Any] = list(positional)
        call_kwargs: dict[str, Any] = kwargs
    else:
        call_args = [arg.to_python() for arg in positional]
        call_kwargs = {name: value.to_python() for name, value in kwargs.items()}
    if getattr(func, "_jinko_pass_state", False):
        call_args.insert(0, state)
    _bind(func, call_args, call_kwargs)
    return Value.from_python(func(*call_args, **call_kwargs))
