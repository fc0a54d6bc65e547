"""Runtime value model.

`Value` is a single tagged union: every runtime value carries a
`ValueType` tag plus its payload, so coercion and comparison in
`jinko.value.ops` can dispatch on the tag alone.

Variants:
    undefined, none, bool, i64, u64, i128, u128, f64, string (with a
    safe bit), bytes, seq, map (normal or kwargs), dynamic object and
    invalid (a value that failed conversion, carrying a detail message).

Integers are stored as Python ints; the tag records the smallest of the
four integer widths that holds them. Sequences hold a Python list of
values and maps a `ValueMap`; both are shared on copy and only cloned
where a write is expected.

Example:
    >>> Value.from_python({"a": [1, 2.5, None]})
    Value({"a": [1, 2.5, none]})
    >>> str(Value.from_python(1e16))
    '10000000000000000.0'

"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from decimal import Decimal
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Any

from jinko.environment.exceptions import ErrorKind, TemplateRuntimeError
from jinko.value.map import ValueMap

if TYPE_CHECKING:
    from jinko.value.iterator import ValueIterator
    from jinko.value.objects import Object
    from jinko.vm.state import State

I64_MIN = -(1 << 63)
I64_MAX = (1 << 63) - 1
U64_MAX = (1 << 64) - 1
I128_MIN = -(1 << 127)
I128_MAX = (1 << 127) - 1
U128_MAX = (1 << 128) - 1


class ValueType(Enum):
    """Internal representation tag of a `Value`."""

    UNDEFINED = "undefined"
    NONE = "none"
    BOOL = "bool"
    I64 = "i64"
    U64 = "u64"
    I128 = "i128"
    U128 = "u128"
    F64 = "f64"
    STRING = "string"
    BYTES = "bytes"
    SEQ = "seq"
    MAP = "map"
    DYNAMIC = "dynamic"
    INVALID = "invalid"


class ValueKind(IntEnum):
    """User-facing kind of a value; the integer is the cross-kind sort rank."""

    UNDEFINED = 0
    NONE = 1
    BOOL = 2
    NUMBER = 3
    STRING = 4
    BYTES = 5
    SEQ = 6
    MAP = 7
    PLAIN = 8

    def __str__(self) -> str:
        return _KIND_NAMES[self]


_KIND_NAMES = {
    ValueKind.UNDEFINED: "undefined",
    ValueKind.NONE: "none",
    ValueKind.BOOL: "bool",
    ValueKind.NUMBER: "number",
    ValueKind.STRING: "string",
    ValueKind.BYTES: "bytes",
    ValueKind.SEQ: "sequence",
    ValueKind.MAP: "map",
    ValueKind.PLAIN: "plain object",
}


class StringType(Enum):
    NORMAL = "normal"
    SAFE = "safe"


class MapType(Enum):
    NORMAL = "normal"
    KWARGS = "kwargs"


_INT_TYPES = frozenset({ValueType.I64, ValueType.U64, ValueType.I128, ValueType.U128})
_NUMBER_TYPES = _INT_TYPES | {ValueType.F64}

_DEBUG_ESCAPES = str.maketrans(
    {'"': '\\"', "\\": "\\\\", "\n": "\\n", "\r": "\\r", "\t": "\\t", "\0": "\\0"}
)


def format_float(f: float) -> str:
    """Shortest round-tripping decimal, never in exponent notation."""
    if math.isnan(f):
        return "NaN"
    if math.isinf(f):
        return "inf" if f > 0 else "-inf"
    text = repr(f)
    if "e" in text or "E" in text:
        text = format(Decimal(text), "f")
    if "." not in text:
        text += ".0"
    return text


def debug_str(s: str) -> str:
    return f'"{s.translate(_DEBUG_ESCAPES)}"'


class Value:
    """A runtime template value.

    Attributes:
        tag: The ValueType of this value.
        data: The payload (int, float, str, list, ValueMap, Object, ...).
        subtype: StringType for strings, MapType for maps, else None.

    Values compare with ``==`` and ``<`` using template semantics (numeric
    coercion across integer and float variants, total ordering across
    kinds), which also makes them usable as dict keys and sort keys.
    """

    __slots__ = ("data", "subtype", "tag")

    def __init__(self, tag: ValueType, data: Any = None, subtype: StringType | MapType | None = None):
        self.tag = tag
        self.data = data
        self.subtype = subtype

    # ─────────────────────────────────────────────────────────────────────
    # Constructors
    # ─────────────────────────────────────────────────────────────────────

    @staticmethod
    def from_bool(b: bool) -> Value:
        return TRUE if b else FALSE

    @staticmethod
    def from_int(n: int) -> Value:
        """Create an integer value narrowed to the smallest fitting variant."""
        if I64_MIN <= n <= I64_MAX:
            return Value(ValueType.I64, n)
        if 0 <= n <= U64_MAX:
            return Value(ValueType.U64, n)
        if I128_MIN <= n <= I128_MAX:
            return Value(ValueType.I128, n)
        if 0 <= n <= U128_MAX:
            return Value(ValueType.U128, n)
        return Value.invalid(f"integer {n} out of range")

    @staticmethod
    def from_f64(f: float) -> Value:
        return Value(ValueType.F64, float(f))

    @staticmethod
    def from_str(s: str) -> Value:
        return Value(ValueType.STRING, s, StringType.NORMAL)

    @staticmethod
    def from_safe_str(s: str) -> Value:
        return Value(ValueType.STRING, s, StringType.SAFE)

    @staticmethod
    def from_bytes(b: bytes) -> Value:
        return Value(ValueType.BYTES, bytes(b))

    @staticmethod
    def from_seq(items: list[Value]) -> Value:
        return Value(ValueType.SEQ, items)

    @staticmethod
    def from_map(m: ValueMap, *, kwargs: bool = False) -> Value:
        return Value(ValueType.MAP, m, MapType.KWARGS if kwargs else MapType.NORMAL)

    @staticmethod
    def from_pairs(pairs: Iterable[tuple[Value, Value]], *, kwargs: bool = False) -> Value:
        return Value.from_map(ValueMap(pairs), kwargs=kwargs)

    @staticmethod
    def from_object(obj: Object) -> Value:
        return Value(ValueType.DYNAMIC, obj)

    @staticmethod
    def invalid(detail: str) -> Value:
        return Value(ValueType.INVALID, detail)

    @staticmethod
    def from_python(obj: Any) -> Value:
        """Convert a native Python object into a value.

        - None, bool, int, float, str and bytes map to their scalar variants;
          objects with ``__html__`` become safe strings.
        - Mappings become maps, lists/tuples/sets and other iterables
          become sequences.
        - `Object` instances are wrapped as dynamic values; other callables
          and arbitrary objects are wrapped with attribute access.
        """
        if isinstance(obj, Value):
            return obj
        if obj is None:
            return NONE
        if isinstance(obj, bool):
            return TRUE if obj else FALSE
        if isinstance(obj, int):
            return Value.from_int(obj)
        if isinstance(obj, float):
            return Value(ValueType.F64, obj)
        if hasattr(obj, "__html__"):
            return Value.from_safe_str(str(obj.__html__()))
        if isinstance(obj, str):
            return Value(ValueType.STRING, obj, StringType.NORMAL)
        if isinstance(obj, (bytes, bytearray, memoryview)):
            return Value.from_bytes(bytes(obj))

        from jinko.value.objects import Object, PyCallable, PyObject

        if isinstance(obj, Object):
            return Value(ValueType.DYNAMIC, obj)
        if isinstance(obj, Mapping):
            return Value.from_pairs(
                (Value.from_python(k), Value.from_python(v)) for k, v in obj.items()
            )
        if isinstance(obj, (list, tuple, set, frozenset, range)):
            return Value(ValueType.SEQ, [Value.from_python(item) for item in obj])
        if callable(obj):
            return Value(ValueType.DYNAMIC, PyCallable(obj))
        if hasattr(obj, "__iter__") and not hasattr(obj, "__dict__"):
            return Value(ValueType.SEQ, [Value.from_python(item) for item in obj])
        return Value(ValueType.DYNAMIC, PyObject(obj))

    # ─────────────────────────────────────────────────────────────────────
    # Introspection
    # ─────────────────────────────────────────────────────────────────────

    @property
    def kind(self) -> ValueKind:
        tag = self.tag
        if tag in _NUMBER_TYPES:
            return ValueKind.NUMBER
        if tag is ValueType.DYNAMIC:
            from jinko.value.objects import ObjectKind

            obj_kind = self.data.kind
            if obj_kind is ObjectKind.SEQ:
                return ValueKind.SEQ
            if obj_kind is ObjectKind.STRUCT:
                return ValueKind.MAP
            return ValueKind.PLAIN
        return _TAG_KINDS[tag]

    @property
    def is_undefined(self) -> bool:
        return self.tag is ValueType.UNDEFINED

    @property
    def is_none(self) -> bool:
        return self.tag is ValueType.NONE

    @property
    def is_safe(self) -> bool:
        return self.subtype is StringType.SAFE

    @property
    def is_kwargs(self) -> bool:
        return self.subtype is MapType.KWARGS

    @property
    def is_number(self) -> bool:
        return self.tag in _NUMBER_TYPES

    @property
    def is_integer(self) -> bool:
        return self.tag in _INT_TYPES

    @property
    def is_invalid(self) -> bool:
        return self.tag is ValueType.INVALID

    def is_true(self) -> bool:
        """Template truthiness."""
        tag = self.tag
        if tag is ValueType.BOOL:
            return self.data
        if tag in _NUMBER_TYPES:
            return self.data != 0
        if tag in (ValueType.STRING, ValueType.BYTES, ValueType.SEQ, ValueType.MAP):
            return len(self.data) != 0
        if tag is ValueType.DYNAMIC:
            from jinko.value.objects import ObjectKind

            obj = self.data
            if obj.kind is ObjectKind.SEQ:
                return obj.item_count() != 0
            if obj.kind is ObjectKind.STRUCT:
                return obj.field_count() != 0
            return True
        return False

    # ─────────────────────────────────────────────────────────────────────
    # Conversions
    # ─────────────────────────────────────────────────────────────────────

    def as_str(self) -> str | None:
        return self.data if self.tag is ValueType.STRING else None

    def as_f64(self) -> float | None:
        tag = self.tag
        if tag is ValueType.F64:
            return self.data
        if tag in _INT_TYPES:
            return float(self.data)
        if tag is ValueType.BOOL:
            return 1.0 if self.data else 0.0
        return None

    def as_i128(self) -> int | None:
        """Widen to a signed 128-bit integer, or None if not possible.

        Booleans convert to 0/1, floats only when integral, and u128 values
        above the signed range are reinterpreted as two's complement.
        """
        tag = self.tag
        if tag is ValueType.I64 or tag is ValueType.U64 or tag is ValueType.I128:
            return self.data
        if tag is ValueType.U128:
            n = self.data
            return n - (1 << 128) if n > I128_MAX else n
        if tag is ValueType.BOOL:
            return int(self.data)
        if tag is ValueType.F64:
            f = self.data
            if math.isfinite(f) and f.is_integer() and I128_MIN <= f <= I128_MAX:
                return int(f)
        return None

    def try_to_i128(self) -> int:
        n = self.as_i128()
        if n is None:
            raise TemplateRuntimeError(
                ErrorKind.INVALID_OPERATION,
                f"cannot convert {self.kind} to integer",
            )
        return n

    def as_index(self) -> int | None:
        """Integer value usable as a sequence index."""
        return self.data if self.tag in _INT_TYPES else None

    def as_list(self) -> list[Value] | None:
        """Items of a sequence or dynamic sequence, else None."""
        if self.tag is ValueType.SEQ:
            return self.data
        if self.tag is ValueType.DYNAMIC:
            from jinko.value.objects import ObjectKind

            obj = self.data
            if obj.kind is ObjectKind.SEQ:
                return [obj.get_item(i) or UNDEFINED for i in range(obj.item_count())]
        return None

    def as_map(self) -> ValueMap | None:
        return self.data if self.tag is ValueType.MAP else None

    def as_object(self) -> Object | None:
        return self.data if self.tag is ValueType.DYNAMIC else None

    def to_python(self) -> Any:
        """Convert to a native Python object.

        Undefined and none both become None; safe strings become `Markup`.
        """
        tag = self.tag
        if tag is ValueType.UNDEFINED or tag is ValueType.NONE:
            return None
        if tag is ValueType.STRING:
            if self.subtype is StringType.SAFE:
                from jinko.environment.escape import Markup

                return Markup(self.data)
            return self.data
        if tag is ValueType.SEQ:
            return [item.to_python() for item in self.data]
        if tag is ValueType.MAP:
            rv = {}
            for key, value in self.data.items():
                pykey = key.to_python()
                if isinstance(pykey, list):
                    pykey = tuple(pykey)
                rv[pykey] = value.to_python()
            return rv
        if tag is ValueType.DYNAMIC:
            return self.data.to_python()
        if tag is ValueType.INVALID:
            raise TemplateRuntimeError(ErrorKind.BAD_SERIALIZATION, self.data)
        return self.data

    def clone(self) -> Value:
        """Copy for mutation; maps are copied, everything else is shared."""
        if self.tag is ValueType.MAP:
            return Value(ValueType.MAP, self.data.copy(), self.subtype)
        return self

    # ─────────────────────────────────────────────────────────────────────
    # Access
    # ─────────────────────────────────────────────────────────────────────

    def length(self) -> int | None:
        tag = self.tag
        if tag in (ValueType.STRING, ValueType.SEQ, ValueType.MAP, ValueType.BYTES):
            return len(self.data)
        if tag is ValueType.DYNAMIC:
            from jinko.value.objects import ObjectKind

            obj = self.data
            if obj.kind is ObjectKind.SEQ:
                return obj.item_count()
            if obj.kind is ObjectKind.STRUCT:
                return obj.field_count()
        return None

    def get_attr_fast(self, name: str) -> Value | None:
        """Attribute lookup that never fails; None on a miss."""
        tag = self.tag
        if tag is ValueType.MAP:
            return self.data.get_str(name)
        if tag is ValueType.DYNAMIC:
            from jinko.value.objects import ObjectKind

            obj = self.data
            if obj.kind is ObjectKind.STRUCT:
                return obj.get_field(name)
        return None

    def get_attr(self, name: str) -> Value:
        rv = self.get_attr_fast(name)
        return UNDEFINED if rv is None else rv

    def get_item_opt(self, key: Value) -> Value | None:
        """Subscript lookup; None on a miss."""
        tag = self.tag
        if tag is ValueType.MAP:
            return self.data.get(key)
        if tag is ValueType.SEQ or tag is ValueType.STRING:
            idx = key.as_index()
            if idx is None:
                return None
            data = self.data
            if idx < 0:
                idx += len(data)
            if not 0 <= idx < len(data):
                return None
            item = data[idx]
            return Value.from_str(item) if tag is ValueType.STRING else item
        if tag is ValueType.DYNAMIC:
            from jinko.value.objects import ObjectKind

            obj = self.data
            if obj.kind is ObjectKind.SEQ:
                idx = key.as_index()
                if idx is None:
                    return None
                if idx < 0:
                    idx += obj.item_count()
                if idx < 0:
                    return None
                return obj.get_item(idx)
            if obj.kind is ObjectKind.STRUCT:
                name = key.as_str()
                return obj.get_field(name) if name is not None else None
        return None

    def get_item(self, key: Value) -> Value:
        rv = self.get_item_opt(key)
        return UNDEFINED if rv is None else rv

    def try_iter(self) -> ValueIterator:
        """Iterate over the value.

        Strings yield characters, sequences their items, maps their keys
        and dynamic objects their items or field names. Undefined and none
        iterate as empty.

        Raises:
            TemplateRuntimeError: if the value is not iterable.
        """
        from jinko.value.iterator import ValueIterator

        tag = self.tag
        if tag is ValueType.SEQ:
            return ValueIterator(self.data, len(self.data))
        if tag is ValueType.MAP:
            return ValueIterator(self.data.keys(), len(self.data))
        if tag is ValueType.STRING:
            return ValueIterator(map(Value.from_str, self.data), len(self.data))
        if tag is ValueType.UNDEFINED or tag is ValueType.NONE:
            return ValueIterator.empty()
        if tag is ValueType.DYNAMIC:
            from jinko.value.objects import ObjectKind

            obj = self.data
            if obj.kind is ObjectKind.SEQ:
                count = obj.item_count()
                return ValueIterator(
                    (obj.get_item(i) or UNDEFINED for i in range(count)), count
                )
            if obj.kind is ObjectKind.STRUCT:
                names = obj.fields()
                return ValueIterator(map(Value.from_str, names), len(names))
        raise TemplateRuntimeError(
            ErrorKind.INVALID_OPERATION, f"{self.kind} is not iterable"
        )

    # ─────────────────────────────────────────────────────────────────────
    # Calls
    # ─────────────────────────────────────────────────────────────────────

    def call(self, state: State, args: list[Value]) -> Value:
        if self.tag is ValueType.DYNAMIC:
            return self.data.call(state, args)
        raise TemplateRuntimeError(
            ErrorKind.INVALID_OPERATION, f"value of type {self.kind} is not callable"
        )

    def call_method(self, state: State, name: str, args: list[Value]) -> Value:
        if self.tag is ValueType.MAP:
            func = self.data.get_str(name)
            if func is not None:
                return func.call(state, args)
        elif self.tag is ValueType.DYNAMIC:
            return self.data.call_method(state, name, args)
        from jinko.value.methods import call_builtin_method

        return call_builtin_method(state, self, name, args)

    # ─────────────────────────────────────────────────────────────────────
    # Formatting and comparison
    # ─────────────────────────────────────────────────────────────────────

    def __str__(self) -> str:
        tag = self.tag
        if tag is ValueType.STRING:
            return self.data
        if tag is ValueType.UNDEFINED:
            return ""
        if tag is ValueType.NONE:
            return "none"
        if tag is ValueType.BOOL:
            return "true" if self.data else "false"
        if tag is ValueType.F64:
            return format_float(self.data)
        if tag in _INT_TYPES:
            return str(self.data)
        if tag is ValueType.BYTES:
            return self.data.decode("utf-8", "replace")
        if tag is ValueType.SEQ or tag is ValueType.MAP:
            return self.debug()
        if tag is ValueType.DYNAMIC:
            return self.data.render()
        return f"<invalid value: {self.data}>"

    def debug(self) -> str:
        """Debug form; strings are quoted, containers use debug form for items."""
        tag = self.tag
        if tag is ValueType.STRING:
            return debug_str(self.data)
        if tag is ValueType.UNDEFINED:
            return "undefined"
        if tag is ValueType.BYTES:
            return repr(self.data)
        if tag is ValueType.SEQ:
            return "[" + ", ".join(item.debug() for item in self.data) + "]"
        if tag is ValueType.MAP:
            inner = ", ".join(f"{k.debug()}: {v.debug()}" for k, v in self.data.items())
            return "{" + inner + "}"
        if tag is ValueType.DYNAMIC:
            return self.data.debug()
        return str(self)

    def __repr__(self) -> str:
        return f"Value({self.debug()})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Value):
            return NotImplemented
        from jinko.value.ops import equal

        return equal(self, other)

    def __ne__(self, other: object) -> bool:
        rv = self.__eq__(other)
        return rv if rv is NotImplemented else not rv

    def __lt__(self, other: Value) -> bool:
        from jinko.value.ops import cmp

        return cmp(self, other) < 0

    def __le__(self, other: Value) -> bool:
        from jinko.value.ops import cmp

        return cmp(self, other) <= 0

    def __gt__(self, other: Value) -> bool:
        from jinko.value.ops import cmp

        return cmp(self, other) > 0

    def __ge__(self, other: Value) -> bool:
        from jinko.value.ops import cmp

        return cmp(self, other) >= 0

    def __hash__(self) -> int:
        from jinko.value.map import _hash_value

        return _hash_value(self)


_TAG_KINDS = {
    ValueType.UNDEFINED: ValueKind.UNDEFINED,
    ValueType.NONE: ValueKind.NONE,
    ValueType.BOOL: ValueKind.BOOL,
    ValueType.STRING: ValueKind.STRING,
    ValueType.BYTES: ValueKind.BYTES,
    ValueType.SEQ: ValueKind.SEQ,
    ValueType.MAP: ValueKind.MAP,
    ValueType.INVALID: ValueKind.PLAIN,
}

UNDEFINED = Value(ValueType.UNDEFINED)
NONE = Value(ValueType.NONE)
TRUE = Value(ValueType.BOOL, True)
FALSE = Value(ValueType.BOOL, False)
