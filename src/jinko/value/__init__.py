"""Runtime value model: values, maps, iterators, objects and operators."""

from jinko.value.core import (
    FALSE,
    NONE,
    TRUE,
    UNDEFINED,
    MapType,
    StringType,
    Value,
    ValueKind,
    ValueType,
)
from jinko.value.functions import call_python, pass_state, pass_values, split_kwargs
from jinko.value.iterator import ValueIterator
from jinko.value.map import ValueMap
from jinko.value.objects import Object, ObjectKind, PyCallable, PyObject, SeqObject, StructObject

__all__ = [
    "FALSE",
    "NONE",
    "TRUE",
    "UNDEFINED",
    "MapType",
    "Object",
    "ObjectKind",
    "PyCallable",
    "PyObject",
    "SeqObject",
    "StringType",
    "StructObject",
    "Value",
    "ValueIterator",
    "ValueKind",
    "ValueMap",
    "ValueType",
    "call_python",
    "pass_state",
    "pass_values",
    "split_kwargs",
]
