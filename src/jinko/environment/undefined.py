"""Undefined-value policy.

=========  ==========  ==========  ============================
mode       printing    iteration   attribute of undefined
=========  ==========  ==========  ============================
LENIENT    ``""``      empty       error if parent is undefined
CHAINABLE  ``""``      empty       undefined
STRICT     error       error       error
=========  ==========  ==========  ============================

Truthiness of an undefined value is false in every mode.
"""

from __future__ import annotations

from enum import Enum

from jinko.environment.exceptions import UndefinedError
from jinko.value.core import UNDEFINED, Value
from jinko.value.iterator import ValueIterator


class UndefinedBehavior(Enum):
    LENIENT = "lenient"
    CHAINABLE = "chainable"
    STRICT = "strict"

    def handle_undefined(self, parent_was_undefined: bool) -> Value:
        """Result of an attribute or item lookup that missed."""
        if self is UndefinedBehavior.CHAINABLE:
            return UNDEFINED
        if self is UndefinedBehavior.LENIENT and not parent_was_undefined:
            return UNDEFINED
        raise UndefinedError()

    def try_iter(self, value: Value) -> ValueIterator:
        """Iterate ``value``; undefined iterates as empty unless strict."""
        if value.is_undefined and self is UndefinedBehavior.STRICT:
            raise UndefinedError("cannot iterate over undefined value")
        return value.try_iter()

    def assert_printable(self, value: Value) -> None:
        if value.is_undefined and self is UndefinedBehavior.STRICT:
            raise UndefinedError()
