"""Tests for the runtime value model.

Covers constructors and kinds, display formatting, truthiness, the
arithmetic and comparison operators with their coercion rules, ordered
maps, slicing, and conversion from and to native Python objects.
"""

from __future__ import annotations

import pytest
from hypothesis import given, settings

from jinko.environment.escape import Markup
from jinko.environment.exceptions import ErrorKind, TemplateRuntimeError
from jinko.value import (
    NONE,
    UNDEFINED,
    Value,
    ValueKind,
    ValueMap,
    ValueType,
)
from jinko.value import ops
from jinko.value.core import I64_MAX, I128_MAX, I128_MIN, format_float

from .strategies import i64_integer, map_keys

v = Value.from_python


class TestConstruction:
    """Constructors, tags and kinds."""

    def test_integer_narrowing(self) -> None:
        assert Value.from_int(5).tag is ValueType.I64
        assert Value.from_int(I64_MAX + 1).tag is ValueType.U64
        assert Value.from_int(-(1 << 100)).tag is ValueType.I128
        assert Value.from_int(1 << 127).tag is ValueType.U128

    def test_integer_out_of_range_is_invalid(self) -> None:
        assert Value.from_int(1 << 200).is_invalid

    def test_kinds(self) -> None:
        assert UNDEFINED.kind is ValueKind.UNDEFINED
        assert NONE.kind is ValueKind.NONE
        assert v(True).kind is ValueKind.BOOL
        assert v(1.5).kind is ValueKind.NUMBER
        assert v("s").kind is ValueKind.STRING
        assert v(b"b").kind is ValueKind.BYTES
        assert v([1]).kind is ValueKind.SEQ
        assert v({"a": 1}).kind is ValueKind.MAP

    def test_kind_names(self) -> None:
        assert str(ValueKind.SEQ) == "sequence"
        assert str(ValueKind.PLAIN) == "plain object"

    def test_safe_string(self) -> None:
        value = Value.from_safe_str("<b>")
        assert value.is_safe
        assert not Value.from_str("<b>").is_safe

    def test_html_objects_become_safe(self) -> None:
        assert v(Markup("<b>")).is_safe

    def test_kwargs_map(self) -> None:
        value = Value.from_pairs([(v("a"), v(1))], kwargs=True)
        assert value.is_kwargs
        assert value.kind is ValueKind.MAP


class TestDisplay:
    """String conversion and debug form."""

    def test_scalars(self) -> None:
        assert str(UNDEFINED) == ""
        assert str(NONE) == "none"
        assert str(v(True)) == "true"
        assert str(v(False)) == "false"
        assert str(v(42)) == "42"

    def test_floats(self) -> None:
        assert str(v(1.0)) == "1.0"
        assert str(v(0.1)) == "0.1"
        assert str(v(-2.5)) == "-2.5"

    def test_float_never_uses_exponent(self) -> None:
        assert format_float(1e20) == "100000000000000000000.0"
        assert format_float(1.5e-7) == "0.00000015"
        assert format_float(float("inf")) == "inf"
        assert format_float(float("nan")) == "NaN"

    def test_containers_use_debug_form(self) -> None:
        assert str(v([1, "a", None])) == '[1, "a", none]'
        assert str(v({"a": [True]})) == '{"a": [true]}'

    def test_debug_quotes_strings(self) -> None:
        assert v('say "hi"').debug() == '"say \\"hi\\""'
        assert UNDEFINED.debug() == "undefined"


class TestTruthiness:
    """Template truthiness."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (UNDEFINED, False),
            (NONE, False),
            (v(0), False),
            (v(0.0), False),
            (v(""), False),
            (v([]), False),
            (v({}), False),
            (v(1), True),
            (v("x"), True),
            (v([0]), True),
            (v({"a": None}), True),
        ],
    )
    def test_is_true(self, value: Value, expected: bool) -> None:
        assert value.is_true() is expected


class TestArithmetic:
    """Operators and numeric coercion."""

    def test_int_addition(self) -> None:
        assert ops.add(v(2), v(3)) == v(5)
        assert ops.add(v(2), v(3)).tag is ValueType.I64

    def test_float_contaminates(self) -> None:
        rv = ops.add(v(1), v(0.5))
        assert rv.tag is ValueType.F64
        assert rv.data == 1.5

    def test_string_addition(self) -> None:
        assert str(ops.add(v("a"), v("b"))) == "ab"

    def test_mixed_string_number_addition_fails(self) -> None:
        with pytest.raises(TemplateRuntimeError) as exc_info:
            ops.add(v(1), v("a"))
        assert exc_info.value.kind is ErrorKind.INVALID_OPERATION
        assert "tried to use + operator on unsupported types number and string" in str(
            exc_info.value
        )

    def test_add_wraps_at_128_bits(self) -> None:
        assert ops.add(v(I128_MAX), v(1)).as_i128() == I128_MIN

    def test_mul_overflow_fails(self) -> None:
        with pytest.raises(TemplateRuntimeError, match="unable to calculate"):
            ops.mul(v(I128_MAX), v(2))

    def test_division_is_always_float(self) -> None:
        assert str(ops.div(v(4), v(2))) == "2.0"
        assert str(ops.div(v(3), v(2))) == "1.5"

    def test_floor_division(self) -> None:
        assert ops.int_div(v(7), v(2)) == v(3)
        assert ops.int_div(v(-7), v(2)) == v(-4)

    def test_int_division_by_zero(self) -> None:
        with pytest.raises(TemplateRuntimeError, match="unable to calculate"):
            ops.int_div(v(1), v(0))

    def test_remainder_follows_divisor_sign(self) -> None:
        assert ops.rem(v(7), v(3)) == v(1)
        assert ops.rem(v(-7), v(3)) == v(2)

    def test_float_remainder(self) -> None:
        assert ops.rem(v(7.5), v(2)).data == 1.5

    def test_power(self) -> None:
        assert ops.pow_(v(2), v(10)) == v(1024)
        assert ops.pow_(v(2.0), v(-1)).data == 0.5

    def test_negation(self) -> None:
        assert ops.neg(v(3)) == v(-3)
        assert ops.neg(v(1.5)).data == -1.5
        with pytest.raises(TemplateRuntimeError, match="cannot negate string"):
            ops.neg(v("a"))

    def test_concat_stringifies(self) -> None:
        assert str(ops.string_concat(v(1), v([2]))) == "1[2]"
        assert str(ops.string_concat(NONE, UNDEFINED)) == "none"


class TestContains:
    """The ``in`` operator."""

    def test_substring(self) -> None:
        assert ops.contains(v("hello"), v("ell")).is_true()

    def test_number_in_string_uses_display(self) -> None:
        assert ops.contains(v("a1"), v(1)).is_true()

    def test_sequence(self) -> None:
        assert ops.contains(v([1, 2]), v(2.0)).is_true()
        assert not ops.contains(v([1, 2]), v(3)).is_true()

    def test_map_keys(self) -> None:
        assert ops.contains(v({"a": 1}), v("a")).is_true()
        assert not ops.contains(v({"a": 1}), v(1)).is_true()

    def test_undefined_container(self) -> None:
        assert not ops.contains(UNDEFINED, v("x")).is_true()

    def test_number_container_fails(self) -> None:
        with pytest.raises(TemplateRuntimeError, match="containment check"):
            ops.contains(v(1), v(1))


class TestComparison:
    """Equality and total ordering."""

    def test_numeric_equality_across_types(self) -> None:
        assert v(1) == v(1.0)
        assert v(True) == v(1)

    def test_none_and_undefined(self) -> None:
        assert NONE == NONE
        assert UNDEFINED == UNDEFINED
        assert NONE != UNDEFINED

    def test_sequences(self) -> None:
        assert v([1, 2]) == v([1.0, 2])
        assert ops.cmp(v([1, 2]), v([1, 3])) == -1
        assert ops.cmp(v([1, 2]), v([1])) == 1

    def test_maps_ignore_order_for_equality(self) -> None:
        assert v({"a": 1, "b": 2}) == v({"b": 2, "a": 1})

    def test_cross_kind_order(self) -> None:
        ordered = [v({"a": 1}), v("s"), v(5), NONE, v([1]), v(True), UNDEFINED]
        ordered.sort()
        assert [value.kind for value in ordered] == [
            ValueKind.UNDEFINED,
            ValueKind.NONE,
            ValueKind.BOOL,
            ValueKind.NUMBER,
            ValueKind.STRING,
            ValueKind.SEQ,
            ValueKind.MAP,
        ]

    def test_float_total_order(self) -> None:
        assert ops.cmp(v(-0.0), v(0.0)) == -1
        assert ops.cmp(v(float("nan")), v(float("inf"))) == 1


class TestSlicing:
    """Slices of strings and sequences."""

    def test_string(self) -> None:
        assert str(ops.slice_(v("Johnson"), v(0), v(4), NONE)) == "John"

    def test_negative_bounds(self) -> None:
        assert ops.slice_(v([1, 2, 3, 4]), v(-2), NONE, NONE) == v([3, 4])

    def test_step(self) -> None:
        assert ops.slice_(v([0, 1, 2, 3, 4]), v(0), NONE, v(2)) == v([0, 2, 4])

    def test_negative_step_fails(self) -> None:
        with pytest.raises(TemplateRuntimeError, match="negative step"):
            ops.slice_(v([1]), v(0), NONE, v(-1))

    def test_none_slices_to_empty(self) -> None:
        assert ops.slice_(NONE, v(0), NONE, NONE) == v([])

    def test_number_cannot_be_sliced(self) -> None:
        with pytest.raises(TemplateRuntimeError, match="cannot be sliced"):
            ops.slice_(v(1), v(0), NONE, NONE)


class TestValueMap:
    """Insertion-ordered maps."""

    def test_insertion_order(self) -> None:
        m = ValueMap()
        for key in ("b", "a", "c"):
            m.insert(v(key), v(key.upper()))
        assert [str(k) for k in m.keys()] == ["b", "a", "c"]

    def test_overwrite_keeps_position(self) -> None:
        m = ValueMap([(v("a"), v(1)), (v("b"), v(2))])
        m.insert(v("a"), v(3))
        assert [(str(k), val.as_i128()) for k, val in m.items()] == [("a", 3), ("b", 2)]

    def test_non_string_keys(self) -> None:
        m = ValueMap([(v(1), v("one")), (v([1, 2]), v("pair"))])
        assert str(m.get(v(1.0))) == "one"
        assert str(m.get(v([1, 2]))) == "pair"
        assert list(m.str_keys()) == []

    def test_remove_and_contains(self) -> None:
        m = ValueMap([(v("a"), v(1))])
        assert "a" in m
        assert m.remove("a") == v(1)
        assert "a" not in m
        assert m.remove("a") is None

    def test_copy_is_independent(self) -> None:
        m = ValueMap([(v("a"), v(1))])
        other = m.copy()
        other.insert(v("b"), v(2))
        assert len(m) == 1
        assert len(other) == 2


class TestPythonConversion:
    """from_python and to_python."""

    def test_round_trip(self) -> None:
        data = {"a": [1, 2.5, "x", None, True], "b": {"c": b"raw"}}
        assert v(data).to_python() == data

    def test_undefined_becomes_none(self) -> None:
        assert UNDEFINED.to_python() is None

    def test_safe_string_becomes_markup(self) -> None:
        rv = Value.from_safe_str("<b>").to_python()
        assert isinstance(rv, Markup)

    def test_tuple_and_generator_become_sequences(self) -> None:
        assert v((1, 2)).kind is ValueKind.SEQ
        assert v(x for x in range(2)).kind is ValueKind.SEQ

    def test_plain_object_attributes(self) -> None:
        class User:
            def __init__(self) -> None:
                self.name = "Ann"
                self._secret = "hidden"

        user = v(User())
        assert str(user.get_attr("name")) == "Ann"
        assert user.get_attr("_secret").is_undefined

    def test_callable(self) -> None:
        assert v(len).kind is ValueKind.PLAIN


class TestValueProperties:
    """Property-based value invariants."""

    @given(a=i64_integer, b=i64_integer)
    @settings(max_examples=300)
    def test_addition_matches_wrapping_128_bit(self, a: int, b: int) -> None:
        expected = (a + b) & ((1 << 128) - 1)
        if expected > I128_MAX:
            expected -= 1 << 128
        assert str(ops.add(v(a), v(b))) == str(expected)

    @given(keys=map_keys)
    @settings(max_examples=200)
    def test_map_order_is_first_insertion_order(self, keys: list[str]) -> None:
        m = ValueMap()
        for idx, key in enumerate(keys):
            m.insert(v(key), v(idx))
        assert [str(k) for k in m.keys()] == list(dict.fromkeys(keys))
        last = {key: idx for idx, key in enumerate(keys)}
        assert [val.as_i128() for val in m.values()] == [last[k] for k in dict.fromkeys(keys)]
