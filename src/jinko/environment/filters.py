"""Built-in filters for jinko templates.

Filters transform values in template expressions using the pipe syntax:
`{{ value | filter }}` or `{{ value | filter(arg1, arg2) }}`

Categories:
**String Manipulation**:
    - `capitalize`, `lower`, `upper`, `title`: Case transforms
    - `trim`: Remove surrounding whitespace (or the given characters)
    - `replace(old, new)`: Replace every occurrence
    - `indent(width)`: Indent every line but the first

**HTML/Security**:
    - `escape`, `e`: Escape with the active auto-escape mode
    - `safe`: Mark as safe (no escaping)
    - `urlencode`: Percent-encode for URLs

**Collections**:
    - `first`, `last`: Get first/last item
    - `length`, `count`: Item count
    - `sort`, `dictsort`: Sorting (case-insensitive unless asked)
    - `reverse`, `list`, `items`, `unique`
    - `join(sep)`: Join items into a string
    - `batch(n)`, `slice(n)`: Group items
    - `map`, `select`, `reject`, `selectattr`, `rejectattr`
    - `min`, `max`

**Type Conversion**:
    - `bool`, `int`, `float`, `string`
    - `tojson`: JSON serialization, marked safe

**Numbers**:
    - `abs`, `round(precision)`

**Misc**:
    - `attr(name)`: Item or attribute lookup
    - `default(value)`, `d`: Fallback for undefined values

Every filter receives `Value` arguments unconverted; filters that need
the render state (escaping, iteration under the undefined policy,
nested filter and test lookups) receive it first.
"""

from __future__ import annotations

import math
from functools import cmp_to_key
from typing import TYPE_CHECKING

from jinko.environment.escape import AutoEscape, escape_value, json_dumps
from jinko.environment.exceptions import ErrorKind, TemplateError, TemplateRuntimeError
from jinko.value import (
    UNDEFINED,
    Value,
    ValueKind,
    ValueType,
    call_python,
    pass_state,
    pass_values,
)
from jinko.value.core import I128_MIN
from jinko.value.ops import cmp

if TYPE_CHECKING:
    from collections.abc import Callable

    from jinko.vm.state import State


def _flag(value: Value | None) -> bool:
    return value is not None and value.is_true()


def _iter_items(state: State, value: Value) -> list[Value]:
    try:
        return list(state.undefined_behavior.try_iter(value))
    except TemplateError as exc:
        raise TemplateRuntimeError(
            ErrorKind.INVALID_OPERATION, "cannot convert value to list"
        ) from exc


def _get_path(value: Value, path: str) -> Value:
    """Follow a dotted path; numeric segments index sequences."""
    for part in path.split("."):
        if part.isdigit():
            value = value.get_item(Value.from_int(int(part)))
        else:
            value = value.get_attr(part)
    return value


def _cmp_ci(a: Value, b: Value) -> int:
    sa = a.as_str()
    sb = b.as_str()
    if sa is not None and sb is not None:
        la = sa.lower()
        lb = sb.lower()
        return (la > lb) - (la < lb)
    return cmp(a, b)


def _str_of(value: Value) -> str:
    s = value.as_str()
    return s if s is not None else str(value)


# ─────────────────────────────────────────────────────────────────────────────
# Strings
# ─────────────────────────────────────────────────────────────────────────────


@pass_values
def _filter_safe(value: Value) -> Value:
    return Value.from_safe_str(_str_of(value))


@pass_state
@pass_values
def _filter_escape(state: State, value: Value) -> Value:
    """Escape using the active mode; HTML when escaping is off entirely."""
    if value.is_safe:
        return value
    mode = state.auto_escape
    if mode is AutoEscape.NONE:
        mode = state.env.initial_auto_escape(state.name)
        if mode is AutoEscape.NONE:
            mode = AutoEscape.HTML
    return Value.from_safe_str(escape_value(value, mode))


@pass_values
def _filter_lower(value: Value) -> Value:
    return Value.from_str(_str_of(value).lower())


@pass_values
def _filter_upper(value: Value) -> Value:
    return Value.from_str(_str_of(value).upper())


_WORD_BREAKS = frozenset("!\"#$%&'()*+,-./:;<=>?@[\\]^_`{|}~")


@pass_values
def _filter_title(value: Value) -> Value:
    """Uppercase the first letter of every word, lowercase the rest.

    Words are separated by whitespace and ASCII punctuation.
    """
    chars = []
    capitalize = True
    for ch in _str_of(value):
        if ch in _WORD_BREAKS or ch.isspace():
            chars.append(ch)
            capitalize = True
        elif capitalize:
            chars.append(ch.upper())
            capitalize = False
        else:
            chars.append(ch.lower())
    return Value.from_str("".join(chars))


@pass_values
def _filter_capitalize(value: Value) -> Value:
    s = _str_of(value)
    return Value.from_str(s[:1].upper() + s[1:].lower())


@pass_values
def _filter_replace(value: Value, old: Value, new: Value) -> Value:
    return Value.from_str(_str_of(value).replace(_str_of(old), _str_of(new)))


@pass_values
def _filter_trim(value: Value, chars: Value | None = None) -> Value:
    s = _str_of(value)
    if chars is None or chars.is_none:
        return Value.from_str(s.strip())
    return Value.from_str(s.strip(_str_of(chars)))


@pass_values
def _filter_indent(
    value: Value,
    width: Value | None = None,
    first: Value | None = None,
    blank: Value | None = None,
) -> Value:
    """Indent every line by ``width`` spaces (default 4).

    The first line is left alone unless ``first`` is true; blank lines
    stay empty unless ``blank`` is true.
    """
    text = _str_of(value).removesuffix("\n").removesuffix("\r")
    prefix = " " * (4 if width is None else width.try_to_i128())
    lines = text.split("\n")
    out = []
    for idx, line in enumerate(lines):
        if idx == 0 and not _flag(first):
            out.append(line)
        elif line:
            out.append(prefix + line)
        elif _flag(blank):
            out.append(prefix)
        else:
            out.append("")
    return Value.from_str("\n".join(out))


_URL_SAFE = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789/.-_")


def _url_quote(text: str) -> str:
    return "".join(
        ch if ch in _URL_SAFE else "".join(f"%{b:02X}" for b in ch.encode("utf-8"))
        for ch in text
    )


@pass_values
def _filter_urlencode(value: Value) -> Value:
    """Percent-encode a string, or a map as a query string."""
    if value.kind is ValueKind.MAP:
        parts = []
        for key in value.try_iter():
            parts.append(f"{_url_quote(str(key))}={_url_quote(str(value.get_item(key)))}")
        return Value.from_str("&".join(parts))
    if value.is_none or value.is_undefined:
        return Value.from_str("")
    if value.tag is ValueType.BYTES:
        return Value.from_str(_url_quote(value.data.decode("utf-8", "replace")))
    return Value.from_str(_url_quote(str(value)))


# ─────────────────────────────────────────────────────────────────────────────
# Collections
# ─────────────────────────────────────────────────────────────────────────────


@pass_values
def _filter_length(value: Value) -> Value:
    n = value.length()
    if n is None:
        raise TemplateRuntimeError(
            ErrorKind.INVALID_OPERATION,
            f"cannot calculate length of value of type {value.kind}",
        )
    return Value.from_int(n)


def _pairs(value: Value) -> list[tuple[Value, Value]]:
    if value.kind is not ValueKind.MAP:
        raise TemplateRuntimeError(
            ErrorKind.INVALID_OPERATION, "cannot convert value into pair list"
        )
    return [(key, value.get_item(key)) for key in value.try_iter()]


@pass_values
def _filter_items(value: Value) -> Value:
    return Value.from_seq([Value.from_seq([k, v]) for k, v in _pairs(value)])


@pass_values
def _filter_dictsort(
    value: Value,
    case_sensitive: Value | None = None,
    by: Value | None = None,
    reverse: Value | None = None,
) -> Value:
    """Sort a map's pairs by key (or by value with ``by="value"``)."""
    pairs = _pairs(value)
    pos = 0
    if by is not None:
        by_name = by.as_str()
        if by_name == "value":
            pos = 1
        elif by_name != "key":
            raise TemplateRuntimeError(
                ErrorKind.INVALID_OPERATION, f"invalid value '{by}' for 'by' parameter"
            )
    compare = cmp if _flag(case_sensitive) else _cmp_ci
    pairs.sort(key=cmp_to_key(lambda a, b: compare(a[pos], b[pos])), reverse=_flag(reverse))
    return Value.from_seq([Value.from_seq([k, v]) for k, v in pairs])


@pass_state
@pass_values
def _filter_sort(
    state: State,
    value: Value,
    reverse: Value | None = None,
    case_sensitive: Value | None = None,
    attribute: Value | None = None,
) -> Value:
    items = _iter_items(state, value)
    compare = cmp if _flag(case_sensitive) else _cmp_ci
    path = attribute.as_str() if attribute is not None else None
    if path:
        key = cmp_to_key(lambda a, b: compare(_get_path(a, path), _get_path(b, path)))
    else:
        key = cmp_to_key(compare)
    items.sort(key=key, reverse=_flag(reverse))
    return Value.from_seq(items)


@pass_values
def _filter_reverse(value: Value) -> Value:
    s = value.as_str()
    if s is not None:
        return Value.from_str(s[::-1])
    items = value.as_list()
    if items is not None:
        return Value.from_seq(items[::-1])
    raise TemplateRuntimeError(
        ErrorKind.INVALID_OPERATION, f"cannot reverse value of type {value.kind}"
    )


@pass_values
def _filter_join(value: Value, d: Value | None = None) -> Value:
    if value.is_undefined or value.is_none:
        return Value.from_str("")
    sep = "" if d is None else _str_of(d)
    s = value.as_str()
    if s is not None:
        return Value.from_str(sep.join(s))
    items = value.as_list()
    if items is not None:
        return Value.from_str(sep.join(_str_of(item) for item in items))
    raise TemplateRuntimeError(
        ErrorKind.INVALID_OPERATION, f"cannot join value of type {value.kind}"
    )


@pass_values
def _filter_first(value: Value) -> Value:
    s = value.as_str()
    if s is not None:
        return Value.from_str(s[0]) if s else UNDEFINED
    items = value.as_list()
    if items is not None:
        return items[0] if items else UNDEFINED
    raise TemplateRuntimeError(
        ErrorKind.INVALID_OPERATION, "cannot get first item from value"
    )


@pass_values
def _filter_last(value: Value) -> Value:
    s = value.as_str()
    if s is not None:
        return Value.from_str(s[-1]) if s else UNDEFINED
    items = value.as_list()
    if items is not None:
        return items[-1] if items else UNDEFINED
    raise TemplateRuntimeError(
        ErrorKind.INVALID_OPERATION, "cannot get last item from value"
    )


@pass_state
@pass_values
def _filter_min(state: State, value: Value) -> Value:
    items = _iter_items(state, value)
    return min(items, key=cmp_to_key(cmp)) if items else UNDEFINED


@pass_state
@pass_values
def _filter_max(state: State, value: Value) -> Value:
    items = _iter_items(state, value)
    return max(items, key=cmp_to_key(cmp)) if items else UNDEFINED


@pass_state
@pass_values
def _filter_list(state: State, value: Value) -> Value:
    return Value.from_seq(_iter_items(state, value))


@pass_values
def _filter_unique(value: Value) -> Value:
    seen: dict[Value, None] = {}
    for item in value.try_iter():
        if item not in seen:
            seen[item] = None
    return Value.from_seq(list(seen))


def _count_arg(count: Value) -> int:
    n = count.try_to_i128()
    if n <= 0:
        raise TemplateRuntimeError(ErrorKind.INVALID_OPERATION, "count cannot be 0")
    return n


@pass_state
@pass_values
def _filter_batch(
    state: State, value: Value, count: Value, fill_with: Value | None = None
) -> Value:
    """Group items into lists of ``count``, padding the last one if asked."""
    size = _count_arg(count)
    items = list(state.undefined_behavior.try_iter(value))
    rv = []
    for start in range(0, len(items), size):
        chunk = items[start : start + size]
        if fill_with is not None and len(chunk) < size:
            chunk.extend(fill_with.clone() for _ in range(size - len(chunk)))
        rv.append(Value.from_seq(chunk))
    return Value.from_seq(rv)


@pass_state
@pass_values
def _filter_slice(
    state: State, value: Value, count: Value, fill_with: Value | None = None
) -> Value:
    """Split items into ``count`` columns, the first ones one longer."""
    columns = _count_arg(count)
    items = list(state.undefined_behavior.try_iter(value))
    per_column, with_extra = divmod(len(items), columns)
    rv = []
    offset = 0
    for column in range(columns):
        start = offset + column * per_column
        if column < with_extra:
            offset += 1
        chunk = items[start : offset + (column + 1) * per_column]
        if fill_with is not None and column >= with_extra:
            chunk = [*chunk, fill_with.clone()]
        rv.append(Value.from_seq(chunk))
    return Value.from_seq(rv)


def _select_or_reject(
    state: State,
    invert: bool,
    value: Value,
    attr: str | None,
    test_name: Value | None,
    args: tuple[Value, ...],
) -> Value:
    test: Callable | None = None
    if test_name is not None:
        name = _str_of(test_name)
        test = state.env.get_test(name)
        if test is None:
            raise TemplateRuntimeError(ErrorKind.UNKNOWN_TEST, f"test {name} is unknown")
    rv = []
    for item in state.undefined_behavior.try_iter(value):
        subject = _get_path(item, attr) if attr is not None else item
        if test is not None:
            passed = call_python(test, state, [subject, *args]).is_true()
        else:
            passed = subject.is_true()
        if passed != invert:
            rv.append(item)
    return Value.from_seq(rv)


@pass_state
@pass_values
def _filter_select(
    state: State, value: Value, test_name: Value | None = None, *args: Value
) -> Value:
    return _select_or_reject(state, False, value, None, test_name, args)


@pass_state
@pass_values
def _filter_reject(
    state: State, value: Value, test_name: Value | None = None, *args: Value
) -> Value:
    return _select_or_reject(state, True, value, None, test_name, args)


@pass_state
@pass_values
def _filter_selectattr(
    state: State, value: Value, attr: Value, test_name: Value | None = None, *args: Value
) -> Value:
    return _select_or_reject(state, False, value, _str_of(attr), test_name, args)


@pass_state
@pass_values
def _filter_rejectattr(
    state: State, value: Value, attr: Value, test_name: Value | None = None, *args: Value
) -> Value:
    return _select_or_reject(state, True, value, _str_of(attr), test_name, args)


@pass_state
@pass_values
def _filter_map(
    state: State,
    value: Value,
    *args: Value,
    attribute: Value | None = None,
    default: Value | None = None,
) -> Value:
    """Look up ``attribute`` on every item, or apply a filter by name.

    Example:
        {{ users | map(attribute="name") | join(", ") }}
        {{ names | map("upper") | join(", ") }}
    """
    items = state.undefined_behavior.try_iter(value)
    if attribute is not None:
        if args:
            raise TemplateRuntimeError(ErrorKind.TOO_MANY_ARGUMENTS)
        fallback = UNDEFINED if default is None else default
        path = attribute.as_str()
        rv = []
        for item in items:
            sub = _get_path(item, path) if path is not None else item.get_item(attribute)
            rv.append(fallback.clone() if sub.is_undefined else sub)
        return Value.from_seq(rv)

    if not args:
        raise TemplateRuntimeError(ErrorKind.INVALID_OPERATION, "filter name is required")
    name = args[0].as_str()
    if name is None:
        raise TemplateRuntimeError(
            ErrorKind.INVALID_OPERATION, "filter name must be a string"
        )
    func = state.env.get_filter(name)
    if func is None:
        raise TemplateRuntimeError(ErrorKind.UNKNOWN_FILTER, f"filter {name} is unknown")
    extra = list(args[1:])
    return Value.from_seq([call_python(func, state, [item, *extra]) for item in items])


@pass_values
def _filter_attr(value: Value, key: Value) -> Value:
    return value.get_item(key)


@pass_values
def _filter_default(
    value: Value, default_value: Value | None = None, boolean: Value | None = None
) -> Value:
    """``default_value`` (or ``""``) for undefined values.

    With ``boolean`` true, any falsy value is replaced.
    """
    if value.is_undefined or (_flag(boolean) and not value.is_true()):
        return Value.from_str("") if default_value is None else default_value
    return value


# ─────────────────────────────────────────────────────────────────────────────
# Numbers and conversion
# ─────────────────────────────────────────────────────────────────────────────


def _round_half_away(x: float) -> float:
    return math.copysign(math.floor(abs(x) + 0.5), x)


@pass_values
def _filter_round(value: Value, precision: Value | None = None) -> Value:
    if value.is_integer:
        return value
    if value.tag is ValueType.F64:
        factor = 10.0 ** (0 if precision is None else precision.try_to_i128())
        return Value.from_f64(_round_half_away(value.data * factor) / factor)
    raise TemplateRuntimeError(ErrorKind.INVALID_OPERATION, "cannot round value")


@pass_values
def _filter_abs(value: Value) -> Value:
    if value.is_integer:
        n = value.as_i128()
        if n == I128_MIN:
            raise TemplateRuntimeError(ErrorKind.INVALID_OPERATION, "overflow on abs")
        return Value.from_int(abs(value.data))
    if value.tag is ValueType.F64:
        return Value.from_f64(abs(value.data))
    raise TemplateRuntimeError(ErrorKind.INVALID_OPERATION, "cannot get absolute value")


@pass_values
def _filter_bool(value: Value) -> bool:
    return value.is_true()


@pass_values
def _filter_int(value: Value) -> Value:
    if value.is_integer:
        return value
    if value.tag is ValueType.BOOL:
        return Value.from_int(int(value.data))
    if value.tag is ValueType.F64 and math.isfinite(value.data):
        return Value.from_int(int(value.data))
    s = value.as_str()
    if s is not None:
        try:
            return Value.from_int(int(s.strip()))
        except ValueError:
            try:
                return Value.from_int(int(float(s.strip())))
            except (ValueError, OverflowError):
                pass
    raise TemplateRuntimeError(
        ErrorKind.INVALID_OPERATION, f"cannot convert {value.kind} to integer"
    )


@pass_values
def _filter_float(value: Value) -> Value:
    f = value.as_f64()
    if f is not None:
        return Value.from_f64(f)
    s = value.as_str()
    if s is not None:
        try:
            return Value.from_f64(float(s.strip()))
        except ValueError:
            pass
    raise TemplateRuntimeError(
        ErrorKind.INVALID_OPERATION, f"cannot convert {value.kind} to float"
    )


@pass_values
def _filter_string(value: Value) -> Value:
    if value.tag is ValueType.STRING:
        return value
    return Value.from_str(str(value))


@pass_values
def _filter_tojson(value: Value, indent: Value | None = None) -> Value:
    """Serialize as HTML-safe JSON; ``indent`` may be a width or true."""
    width = None
    if indent is not None and indent.is_true():
        width = 2 if indent.tag is ValueType.BOOL else indent.try_to_i128()
    return Value.from_safe_str(json_dumps(value, indent=width))


# Default filters
DEFAULT_FILTERS: dict[str, Callable[..., object]] = {
    "safe": _filter_safe,
    "escape": _filter_escape,
    "e": _filter_escape,
    "lower": _filter_lower,
    "upper": _filter_upper,
    "title": _filter_title,
    "capitalize": _filter_capitalize,
    "replace": _filter_replace,
    "length": _filter_length,
    "count": _filter_length,
    "dictsort": _filter_dictsort,
    "items": _filter_items,
    "reverse": _filter_reverse,
    "trim": _filter_trim,
    "join": _filter_join,
    "default": _filter_default,
    "d": _filter_default,
    "round": _filter_round,
    "abs": _filter_abs,
    "attr": _filter_attr,
    "first": _filter_first,
    "last": _filter_last,
    "min": _filter_min,
    "max": _filter_max,
    "sort": _filter_sort,
    "list": _filter_list,
    "bool": _filter_bool,
    "int": _filter_int,
    "float": _filter_float,
    "string": _filter_string,
    "batch": _filter_batch,
    "slice": _filter_slice,
    "indent": _filter_indent,
    "select": _filter_select,
    "reject": _filter_reject,
    "selectattr": _filter_selectattr,
    "rejectattr": _filter_rejectattr,
    "map": _filter_map,
    "unique": _filter_unique,
    "tojson": _filter_tojson,
    "urlencode": _filter_urlencode,
}
