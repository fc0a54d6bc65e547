"""Auto-escape modes and output formatters.

The VM formats every emitted value through the active `AutoEscape`
mode. Safe strings and values whose mode is NONE are written unchanged;
HTML mode escapes with a single `str.translate` pass; JSON mode
serializes the value as JSON that is safe to embed in HTML.

`Markup` is a ``str`` subclass marking already escaped text. Values
with an ``__html__`` method (including `Markup`) become safe strings
when passed into a template.

"""

from __future__ import annotations

import json
from enum import Enum
from typing import TYPE_CHECKING, Any, SupportsIndex

from jinko.environment.exceptions import ErrorKind, TemplateRuntimeError
from jinko.value.core import ValueKind

if TYPE_CHECKING:
    from jinko.value.core import Value


class AutoEscape(Enum):
    """Escape mode applied when a value is emitted."""

    NONE = "none"
    HTML = "html"
    JSON = "json"


_HTML_ESCAPE_TABLE = str.maketrans(
    {
        "&": "&amp;",
        "'": "&#x27;",
        "/": "&#x2f;",
        "<": "&lt;",
        ">": "&gt;",
        '"': "&quot;",
    }
)

_JSON_SAFE_TABLE = str.maketrans(
    {
        "<": "\\u003c",
        ">": "\\u003e",
        "&": "\\u0026",
        "'": "\\u0027",
    }
)


def html_escape(text: str) -> str:
    """Escape ``& ' / < > "`` for HTML output."""
    return text.translate(_HTML_ESCAPE_TABLE)


class Markup(str):
    """A string that is safe to insert into HTML without escaping.

    Example:
        >>> Markup("<b>") + "<i>"
        Markup('<b>&lt;i&gt;')

    """

    __slots__ = ()

    def __new__(cls, base: Any = "") -> Markup:
        if hasattr(base, "__html__"):
            base = base.__html__()
        return super().__new__(cls, base)

    def __html__(self) -> Markup:
        return self

    @classmethod
    def escape(cls, text: Any) -> Markup:
        if hasattr(text, "__html__"):
            return cls(text.__html__())
        return cls(html_escape(str(text)))

    def __add__(self, other: str) -> Markup:
        if isinstance(other, str):
            return Markup(str.__add__(self, Markup.escape(other)))
        return NotImplemented

    def __radd__(self, other: str) -> Markup:
        if isinstance(other, str):
            return Markup.escape(other) + self
        return NotImplemented

    def __mul__(self, n: SupportsIndex) -> Markup:
        return Markup(str.__mul__(self, n))

    def join(self, seq: Any) -> Markup:
        return Markup(str.join(self, (Markup.escape(item) for item in seq)))

    def __repr__(self) -> str:
        return f"Markup({str.__repr__(self)})"


def json_dumps(value: Value, *, indent: int | None = None) -> str:
    """Serialize a value as HTML-safe JSON.

    Raises:
        TemplateRuntimeError: BAD_SERIALIZATION if the value holds something
            JSON cannot represent (NaN, objects, invalid values).
    """
    try:
        text = json.dumps(
            value.to_python(), allow_nan=False, indent=indent, sort_keys=False,
            ensure_ascii=False,
        )
    except (TypeError, ValueError) as exc:
        raise TemplateRuntimeError(ErrorKind.BAD_SERIALIZATION, str(exc)) from None
    return text.translate(_JSON_SAFE_TABLE)


def escape_value(value: Value, mode: AutoEscape) -> str:
    """Format ``value`` for output under the auto-escape ``mode``."""
    if mode is AutoEscape.NONE or value.is_safe:
        return str(value)
    if mode is AutoEscape.HTML:
        if value.kind in (ValueKind.NUMBER, ValueKind.BOOL, ValueKind.NONE):
            return str(value)
        return html_escape(str(value))
    return json_dumps(value)


_HTML_SUFFIXES = frozenset({"html", "htm", "xml"})
_JSON_SUFFIXES = frozenset({"json", "json5", "js", "yaml", "yml"})


def default_auto_escape(name: str) -> AutoEscape:
    """Pick the escape mode from a template name's extension.

    Only the part after the first ``.`` is looked at, so ``foo.html.j2``
    has suffix ``html.j2`` and is not escaped.
    """
    _, dot, suffix = name.partition(".")
    if not dot:
        return AutoEscape.NONE
    if suffix in _HTML_SUFFIXES:
        return AutoEscape.HTML
    if suffix in _JSON_SUFFIXES:
        return AutoEscape.JSON
    return AutoEscape.NONE
