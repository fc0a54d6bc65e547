"""Operators on values.

Arithmetic operands are coerced before the operation:

1. two strings stay strings (only ``+`` and comparisons accept them),
2. if either side is a float both become floats,
3. otherwise both widen to signed 128-bit integers (booleans become 0/1,
   integral floats their integer value, u128 wraps to two's complement).

Integer results are narrowed back to the smallest variant that holds
them. ``+`` wraps at the 128-bit boundary; ``-``, ``*`` and ``**`` fail
instead.

"""

from __future__ import annotations

import math
import struct
from typing import TYPE_CHECKING

from jinko.environment.exceptions import ErrorKind, TemplateRuntimeError
from jinko.value.core import (
    FALSE,
    I128_MAX,
    I128_MIN,
    TRUE,
    Value,
    ValueKind,
    ValueType,
)

if TYPE_CHECKING:
    from collections.abc import Callable

_TWO_POW_128 = 1 << 128
_U32_MAX = (1 << 32) - 1

# Coercion result tags
_INT = 1
_FLOAT = 2
_STR = 3


def _coerce(a: Value, b: Value) -> tuple[int, object, object] | None:
    if a.tag is ValueType.STRING and b.tag is ValueType.STRING:
        return _STR, a.data, b.data
    if a.tag is ValueType.F64 or b.tag is ValueType.F64:
        fa = a.as_f64()
        fb = b.as_f64()
        if fa is None or fb is None:
            return None
        return _FLOAT, fa, fb
    ia = a.as_i128()
    ib = b.as_i128()
    if ia is None or ib is None:
        return None
    return _INT, ia, ib


_int_value = Value.from_int


def _fits_i128(n: int) -> bool:
    return I128_MIN <= n <= I128_MAX


def _wrap_i128(n: int) -> int:
    n &= _TWO_POW_128 - 1
    return n - _TWO_POW_128 if n > I128_MAX else n


def _failed(op: str, lhs: Value, rhs: Value) -> TemplateRuntimeError:
    return TemplateRuntimeError(
        ErrorKind.INVALID_OPERATION, f"unable to calculate {lhs} {op} {rhs}"
    )


def _impossible(op: str, lhs: Value, rhs: Value) -> TemplateRuntimeError:
    return TemplateRuntimeError(
        ErrorKind.INVALID_OPERATION,
        f"tried to use {op} operator on unsupported types {lhs.kind} and {rhs.kind}",
    )


# ─────────────────────────────────────────────────────────────────────────────
# Arithmetic
# ─────────────────────────────────────────────────────────────────────────────


def add(lhs: Value, rhs: Value) -> Value:
    c = _coerce(lhs, rhs)
    if c is None:
        raise _impossible("+", lhs, rhs)
    kind, a, b = c
    if kind == _INT:
        return _int_value(_wrap_i128(a + b))  # type: ignore[operator]
    if kind == _FLOAT:
        return Value.from_f64(a + b)  # type: ignore[operator]
    return Value.from_str(a + b)  # type: ignore[operator]


def _checked(op: str, lhs: Value, rhs: Value, int_op: Callable, float_op: Callable) -> Value:
    c = _coerce(lhs, rhs)
    if c is None or c[0] == _STR:
        raise _impossible(op, lhs, rhs)
    kind, a, b = c
    if kind == _FLOAT:
        return Value.from_f64(float_op(a, b))
    rv = int_op(a, b)
    if rv is None or not _fits_i128(rv):
        raise _failed(op, lhs, rhs)
    return _int_value(rv)


def sub(lhs: Value, rhs: Value) -> Value:
    return _checked("-", lhs, rhs, lambda a, b: a - b, lambda a, b: a - b)


def mul(lhs: Value, rhs: Value) -> Value:
    return _checked("*", lhs, rhs, lambda a, b: a * b, lambda a, b: a * b)


def div(lhs: Value, rhs: Value) -> Value:
    """True division, always producing a float."""
    a = lhs.as_f64()
    b = rhs.as_f64()
    if a is None or b is None:
        raise _impossible("/", lhs, rhs)
    return Value.from_f64(_float_div(a, b))


def _float_div(a: float, b: float) -> float:
    if b == 0.0:
        if a == 0.0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def _int_floordiv(a: int, b: int) -> int | None:
    if b == 0:
        return None
    return a // b


def _int_rem(a: int, b: int) -> int | None:
    if b == 0:
        return None
    return a % b


def _float_floordiv(a: float, b: float) -> float:
    q = _float_div(a, b)
    return float(math.floor(q)) if math.isfinite(q) else q


def int_div(lhs: Value, rhs: Value) -> Value:
    """Floor division; integer division by zero fails."""
    return _checked("//", lhs, rhs, _int_floordiv, _float_floordiv)


def rem(lhs: Value, rhs: Value) -> Value:
    return _checked(
        "%", lhs, rhs, _int_rem, lambda a, b: math.fmod(a, b) if b != 0.0 else math.nan
    )


def _int_pow(base: int, exp: int) -> int | None:
    if exp < 0 or exp > _U32_MAX:
        return None
    if abs(base) > 1 and exp > 127:
        return None
    return base**exp


def _float_pow(a: float, b: float) -> float:
    try:
        return math.pow(a, b)
    except OverflowError:
        return math.inf
    except ValueError:
        return math.nan


def pow_(lhs: Value, rhs: Value) -> Value:
    return _checked("**", lhs, rhs, _int_pow, _float_pow)


def neg(value: Value) -> Value:
    if value.kind is not ValueKind.NUMBER:
        raise TemplateRuntimeError(
            ErrorKind.INVALID_OPERATION, f"cannot negate {value.kind}"
        )
    if value.tag is ValueType.F64:
        return Value.from_f64(-value.data)
    n = -value.try_to_i128()
    if not _fits_i128(n):
        raise TemplateRuntimeError(
            ErrorKind.INVALID_OPERATION, f"unable to calculate -{value}"
        )
    return _int_value(n)


def string_concat(lhs: Value, rhs: Value) -> Value:
    return Value.from_str(f"{lhs}{rhs}")


def contains(container: Value, item: Value) -> Value:
    """Containment check backing the ``in`` operator.

    An undefined container holds nothing. Strings check for a substring
    (of the item's display form), sequences for an equal element and maps
    for a key.
    """
    if container.is_undefined:
        return FALSE
    haystack = container.as_str()
    if haystack is not None:
        needle = item.as_str()
        return TRUE if (needle if needle is not None else str(item)) in haystack else FALSE
    items = container.as_list()
    if items is not None:
        return TRUE if any(equal(elem, item) for elem in items) else FALSE
    if container.tag is ValueType.MAP:
        return TRUE if item in container.data else FALSE
    raise TemplateRuntimeError(
        ErrorKind.INVALID_OPERATION, "cannot perform a containment check on this value"
    )


# ─────────────────────────────────────────────────────────────────────────────
# Equality and ordering
# ─────────────────────────────────────────────────────────────────────────────


def equal(a: Value, b: Value) -> bool:
    ka = a.kind
    kb = b.kind
    if ka is kb and ka in (ValueKind.NONE, ValueKind.UNDEFINED):
        return True
    if a.tag is ValueType.STRING and b.tag is ValueType.STRING:
        return a.data == b.data
    if a.tag is ValueType.BYTES and b.tag is ValueType.BYTES:
        return a.data == b.data
    c = _coerce(a, b)
    if c is not None:
        return c[1] == c[2]
    items_a = a.as_list()
    items_b = b.as_list()
    if items_a is not None and items_b is not None:
        return len(items_a) == len(items_b) and all(
            equal(x, y) for x, y in zip(items_a, items_b, strict=True)
        )
    if a.tag is ValueType.MAP and b.tag is ValueType.MAP:
        if len(a.data) != len(b.data):
            return False
        for key, value in a.data.items():
            other = b.data.get(key)
            if other is None or not equal(value, other):
                return False
        return True
    if a.tag is ValueType.DYNAMIC and b.tag is ValueType.DYNAMIC:
        return a.data is b.data
    return False


def _f64_total_key(f: float) -> int:
    bits = struct.unpack("<q", struct.pack("<d", f))[0]
    if bits < 0:
        bits ^= 0x7FFFFFFFFFFFFFFF
    return bits


def _sign(n: int) -> int:
    return (n > 0) - (n < 0)


def _cmp_seq(a: list[Value], b: list[Value]) -> int:
    for x, y in zip(a, b, strict=False):
        rv = cmp(x, y)
        if rv != 0:
            return rv
    return _sign(len(a) - len(b))


def cmp(a: Value, b: Value) -> int:
    """Total order over values; returns -1, 0 or 1.

    Values of the same kind compare naturally (floats by IEEE total
    order, sequences and maps lexicographically); values of different
    kinds compare by kind rank.
    """
    ka = a.kind
    kb = b.kind
    rv = 0
    if ka is kb and ka in (ValueKind.NONE, ValueKind.UNDEFINED):
        return 0
    if a.tag is ValueType.STRING and b.tag is ValueType.STRING:
        rv = (a.data > b.data) - (a.data < b.data)
    elif a.tag is ValueType.BYTES and b.tag is ValueType.BYTES:
        rv = (a.data > b.data) - (a.data < b.data)
    else:
        c = _coerce(a, b)
        if c is not None:
            kind, x, y = c
            if kind == _FLOAT:
                return _sign(_f64_total_key(x) - _f64_total_key(y))  # type: ignore[arg-type]
            return (x > y) - (x < y)  # type: ignore[operator]
        items_a = a.as_list()
        items_b = b.as_list()
        if items_a is not None and items_b is not None:
            return _cmp_seq(items_a, items_b)
        if a.tag is ValueType.MAP and b.tag is ValueType.MAP:
            flat_a = [v for pair in a.data.items() for v in pair]
            flat_b = [v for pair in b.data.items() for v in pair]
            return _cmp_seq(flat_a, flat_b)
    if rv != 0:
        return rv
    return _sign(int(ka) - int(kb))


# ─────────────────────────────────────────────────────────────────────────────
# Slicing
# ─────────────────────────────────────────────────────────────────────────────


def _slice_arg(value: Value, what: str) -> int | None:
    if value.is_none or value.is_undefined:
        return None
    n = value.as_index()
    if n is None:
        raise TemplateRuntimeError(
            ErrorKind.INVALID_OPERATION, f"slice {what} must be an integer, got {value.kind}"
        )
    return n


def _offsets(start: int, stop: int | None, length: int) -> range:
    if start < 0:
        start = max(length + start, 0)
    if stop is None:
        stop = length
    elif stop < 0:
        stop = max(length + stop, 0)
    return range(min(start, length), min(stop, length))


def slice_(value: Value, start: Value, stop: Value, step: Value) -> Value:
    """Slice a string, sequence or sequence object."""
    start_idx = _slice_arg(start, "start") or 0
    stop_idx = _slice_arg(stop, "stop")
    step_n = _slice_arg(step, "step")
    if step_n is None:
        step_n = 1
    elif step_n < 0:
        raise TemplateRuntimeError(
            ErrorKind.INVALID_OPERATION, "cannot slice by negative step size"
        )
    elif step_n == 0:
        raise TemplateRuntimeError(
            ErrorKind.INVALID_OPERATION, "cannot slice by step size of 0"
        )

    if value.tag is ValueType.STRING:
        text = value.data
        indices = _offsets(start_idx, stop_idx, len(text))[::step_n]
        return Value.from_str("".join(text[i] for i in indices))
    if value.is_none or value.is_undefined:
        return Value.from_seq([])
    items = value.as_list()
    if items is not None:
        indices = _offsets(start_idx, stop_idx, len(items))[::step_n]
        return Value.from_seq([items[i] for i in indices])
    raise TemplateRuntimeError(
        ErrorKind.INVALID_OPERATION, f"value of type {value.kind} cannot be sliced"
    )
