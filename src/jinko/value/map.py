"""Insertion-ordered value map.

`ValueMap` backs the ``map`` value variant and the keyword-argument
maps passed to calls. String keys are stored as plain ``str`` so that a
lookup by attribute name does not allocate; every other key is wrapped
in a `KeyRef` that hashes and compares by value semantics.

Overwriting an existing key keeps its original position; enumeration
order is insertion order.

"""

from __future__ import annotations

from collections.abc import Hashable, Iterable, Iterator
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from jinko.value.core import Value


def _hash_value(value: Value) -> int:
    from jinko.value.core import ValueType

    tag = value.tag
    if tag is ValueType.STRING or tag is ValueType.BYTES:
        return hash(value.data)
    if tag is ValueType.BOOL:
        return hash(int(value.data))
    if tag in (ValueType.I64, ValueType.U64, ValueType.I128, ValueType.U128, ValueType.F64):
        return hash(value.data)
    if tag is ValueType.SEQ:
        return hash(tuple(_hash_value(item) for item in value.data))
    if tag is ValueType.MAP:
        return hash(("map", len(value.data)))
    if tag is ValueType.DYNAMIC:
        return id(value.data)
    return hash(tag)


class KeyRef:
    """Hashable wrapper for non-string map keys."""

    __slots__ = ("_hash", "value")

    def __init__(self, value: Value):
        self.value = value
        self._hash = _hash_value(value)

    def __hash__(self) -> int:
        return self._hash

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KeyRef):
            return NotImplemented
        from jinko.value.ops import equal

        return self._hash == other._hash and equal(self.value, other.value)

    def __repr__(self) -> str:
        return f"KeyRef({self.value!r})"


def key_of(key: Value | str) -> Hashable:
    """Return the dict key used to store ``key``."""
    if isinstance(key, str):
        return key
    from jinko.value.core import ValueType

    if key.tag is ValueType.STRING:
        return key.data
    return KeyRef(key)


class ValueMap:
    """Ordered mapping of `Value` keys to `Value` values.

    Example:
        >>> m = ValueMap()
        >>> m.insert(Value.from_str("a"), Value.from_int(1))
        >>> m.get_str("a")
        Value(1)

    """

    __slots__ = ("_entries",)

    def __init__(self, pairs: Iterable[tuple[Value, Value]] = ()):
        self._entries: dict[Hashable, tuple[Value, Value]] = {}
        for key, value in pairs:
            self.insert(key, value)

    def insert(self, key: Value, value: Value) -> None:
        """Insert or update; an existing key keeps its position."""
        k = key_of(key)
        existing = self._entries.get(k)
        self._entries[k] = (existing[0] if existing is not None else key, value)

    def get(self, key: Value | str) -> Value | None:
        entry = self._entries.get(key_of(key))
        return entry[1] if entry is not None else None

    def get_str(self, name: str) -> Value | None:
        entry = self._entries.get(name)
        return entry[1] if entry is not None else None

    def remove(self, key: Value | str) -> Value | None:
        entry = self._entries.pop(key_of(key), None)
        return entry[1] if entry is not None else None

    def copy(self) -> ValueMap:
        rv = ValueMap()
        rv._entries = self._entries.copy()
        return rv

    def keys(self) -> Iterator[Value]:
        return (key for key, _ in self._entries.values())

    def values(self) -> Iterator[Value]:
        return (value for _, value in self._entries.values())

    def items(self) -> Iterator[tuple[Value, Value]]:
        return iter(self._entries.values())

    def str_keys(self) -> Iterator[str]:
        """Iterate over the keys that are strings."""
        return (k for k in self._entries if isinstance(k, str))

    def __contains__(self, key: object) -> bool:
        if isinstance(key, str):
            return key in self._entries
        return key_of(key) in self._entries  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Value]:
        return self.keys()

    def __repr__(self) -> str:
        inner = ", ".join(f"{k!r}: {v!r}" for k, v in self.items())
        return f"ValueMap({{{inner}}})"
