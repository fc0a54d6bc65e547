"""Built-in tests for jinko templates.

Tests are boolean predicates used with `is` in conditionals:
`{% if value is test %}` or `{% if value is test(arg) %}`

Categories:
**Type Tests**:
    - `defined` / `undefined`: Value is (not) undefined
    - `none`: Value is none
    - `safe` / `escaped`: Value is a safe string
    - `string`, `number`, `integer`, `float`, `boolean`
    - `sequence`: Value is a list or a sequence object
    - `mapping`: Value is a map or a struct object
    - `iterable`: Value can be looped over

**Boolean Tests**:
    - `true`: Value is exactly true
    - `false`: Value is exactly false

**Number Tests**:
    - `odd`: Integer is odd
    - `even`: Integer is even
    - `divisibleby(n)`: Integer is divisible by n

**Comparison Tests**:
    - `eq(other)` / `equalto(other)` / `==`
    - `ne(other)` / `!=`
    - `lt(other)` / `lessthan(other)` / `<`
    - `le(other)` / `<=`
    - `gt(other)` / `greaterthan(other)` / `>`
    - `ge(other)` / `>=`
    - `in(seq)`: Value is in sequence

**String Tests**:
    - `startingwith(prefix)`, `endingwith(suffix)`

**Environment Tests**:
    - `filter`: A filter with this name exists
    - `test`: A test with this name exists

Negation:
Use `is not` for negated tests:
`{% if user is not defined %}` or `{% if count is not even %}`

All tests receive `Value` objects so undefined and none stay distinct.

Custom Tests:
    >>> env.add_test('prime', lambda n: n > 1 and all(n % i for i in range(2, n)))
    >>> # {% if 17 is prime %}Yes{% endif %}

"""

from __future__ import annotations

from typing import TYPE_CHECKING

from jinko.value import Value, ValueKind, ValueType, pass_state, pass_values
from jinko.value.ops import cmp, contains, equal

if TYPE_CHECKING:
    from collections.abc import Callable

    from jinko.vm.state import State


@pass_values
def _test_undefined(value: Value) -> bool:
    return value.is_undefined


@pass_values
def _test_defined(value: Value) -> bool:
    return not value.is_undefined


@pass_values
def _test_none(value: Value) -> bool:
    return value.is_none


@pass_values
def _test_safe(value: Value) -> bool:
    return value.is_safe


@pass_values
def _test_odd(value: Value) -> bool:
    n = value.as_i128()
    return n is not None and n % 2 != 0


@pass_values
def _test_even(value: Value) -> bool:
    n = value.as_i128()
    return n is not None and n % 2 == 0


@pass_values
def _test_divisible_by(value: Value, num: Value) -> bool:
    """Integer divisibility; false for zero or non-integer operands."""
    a = value.as_i128()
    b = num.as_i128()
    if a is None or not b:
        return False
    return a % b == 0


@pass_values
def _test_number(value: Value) -> bool:
    return value.is_number


@pass_values
def _test_integer(value: Value) -> bool:
    return value.is_integer


@pass_values
def _test_float(value: Value) -> bool:
    return value.tag is ValueType.F64


@pass_values
def _test_string(value: Value) -> bool:
    return value.kind is ValueKind.STRING


@pass_values
def _test_boolean(value: Value) -> bool:
    return value.kind is ValueKind.BOOL


@pass_values
def _test_sequence(value: Value) -> bool:
    return value.kind is ValueKind.SEQ


@pass_values
def _test_iterable(value: Value) -> bool:
    return value.kind in (ValueKind.SEQ, ValueKind.MAP, ValueKind.STRING)


@pass_values
def _test_mapping(value: Value) -> bool:
    return value.kind is ValueKind.MAP


@pass_values
def _test_true(value: Value) -> bool:
    return value.tag is ValueType.BOOL and value.data is True


@pass_values
def _test_false(value: Value) -> bool:
    return value.tag is ValueType.BOOL and value.data is False


@pass_values
def _test_starting_with(value: Value, prefix: Value) -> bool:
    s = value.as_str()
    p = prefix.as_str()
    return s is not None and p is not None and s.startswith(p)


@pass_values
def _test_ending_with(value: Value, suffix: Value) -> bool:
    s = value.as_str()
    p = suffix.as_str()
    return s is not None and p is not None and s.endswith(p)


@pass_values
def _test_eq(value: Value, other: Value) -> bool:
    return equal(value, other)


@pass_values
def _test_ne(value: Value, other: Value) -> bool:
    return not equal(value, other)


@pass_values
def _test_lt(value: Value, other: Value) -> bool:
    return cmp(value, other) < 0


@pass_values
def _test_le(value: Value, other: Value) -> bool:
    return cmp(value, other) <= 0


@pass_values
def _test_gt(value: Value, other: Value) -> bool:
    return cmp(value, other) > 0


@pass_values
def _test_ge(value: Value, other: Value) -> bool:
    return cmp(value, other) >= 0


@pass_values
def _test_in(value: Value, seq: Value) -> bool:
    return contains(seq, value).is_true()


@pass_state
@pass_values
def _test_is_filter(state: State, value: Value) -> bool:
    name = value.as_str()
    return name is not None and state.env.get_filter(name) is not None


@pass_state
@pass_values
def _test_is_test(state: State, value: Value) -> bool:
    name = value.as_str()
    return name is not None and state.env.get_test(name) is not None


# Default tests
DEFAULT_TESTS: dict[str, Callable[..., bool]] = {
    "undefined": _test_undefined,
    "defined": _test_defined,
    "none": _test_none,
    "safe": _test_safe,
    "escaped": _test_safe,
    "odd": _test_odd,
    "even": _test_even,
    "divisibleby": _test_divisible_by,
    "number": _test_number,
    "integer": _test_integer,
    "float": _test_float,
    "string": _test_string,
    "boolean": _test_boolean,
    "sequence": _test_sequence,
    "iterable": _test_iterable,
    "mapping": _test_mapping,
    "true": _test_true,
    "false": _test_false,
    "startingwith": _test_starting_with,
    "endingwith": _test_ending_with,
    "eq": _test_eq,
    "equalto": _test_eq,
    "==": _test_eq,
    "ne": _test_ne,
    "!=": _test_ne,
    "lt": _test_lt,
    "lessthan": _test_lt,
    "<": _test_lt,
    "le": _test_le,
    "<=": _test_le,
    "gt": _test_gt,
    "greaterthan": _test_gt,
    ">": _test_gt,
    "ge": _test_ge,
    ">=": _test_ge,
    "in": _test_in,
    "filter": _test_is_filter,
    "test": _test_is_test,
}
