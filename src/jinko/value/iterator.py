"""Iterator protocol for values.

`ValueIterator` wraps any Python iterator of values and keeps an
advisory count of the remaining items, which the loop object uses for
``loop.length`` and ``loop.last``.
"""

from __future__ import annotations

import itertools
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from jinko.value.core import Value


class ValueIterator:
    """Iterator over values with a remaining-length hint."""

    __slots__ = ("_inner", "_remaining")

    def __init__(self, items: Iterable[Value], length: int | None = None):
        self._inner: Iterator[Value] = iter(items)
        self._remaining = length

    @classmethod
    def empty(cls) -> ValueIterator:
        return cls((), 0)

    @classmethod
    def chained(cls, first: ValueIterator, second: ValueIterator) -> ValueIterator:
        length = None
        if first._remaining is not None and second._remaining is not None:
            length = first._remaining + second._remaining
        return cls(itertools.chain(first, second), length)

    def cloned(self) -> ValueIterator:
        """Return an independent iterator over the remaining items.

        Both this iterator and the returned one continue from the current
        position.
        """
        self._inner, other = itertools.tee(self._inner)
        return ValueIterator(other, self._remaining)

    def next(self) -> Value | None:
        """Return the next value, or None when exhausted."""
        try:
            rv = next(self._inner)
        except StopIteration:
            self._remaining = 0
            return None
        if self._remaining:
            self._remaining -= 1
        return rv

    def len(self) -> int | None:
        return self._remaining

    def __iter__(self) -> Iterator[Value]:
        return self

    def __next__(self) -> Value:
        rv = self.next()
        if rv is None:
            raise StopIteration
        return rv
