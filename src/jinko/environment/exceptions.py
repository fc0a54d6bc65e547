"""Exceptions for the jinko template engine.

Exception Hierarchy:
TemplateError (base)
├── TemplateSyntaxError       # Lexer/parser error (Syntax, UnexpectedEOF, BadEscape)
├── TemplateNotFoundError     # Template not found by the environment or loader
├── UndefinedError            # Undefined value used where the policy forbids it
└── TemplateRuntimeError      # Every other render-time failure

Every error carries an `ErrorKind` plus an optional detail message. The
virtual machine attaches the template name, line and span of the failing
instruction the first time an error passes through it; nested errors
(an error inside an included template, a failing super block) are linked
with ``raise ... from``.

Example:
    ```
    >>> env.from_string("{{ 1 + }}").render()
    TemplateSyntaxError: syntax error: unexpected end of variable block, expected expression (in <string>:1)
    ```

"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from jinko._types import Span


class ErrorKind(Enum):
    """Category of a template error.

    The value is the short description used as the message prefix.
    """

    NON_PRIMITIVE = "not a primitive"
    INVALID_OPERATION = "invalid operation"
    SYNTAX = "syntax error"
    UNEXPECTED_EOF = "unexpected end of input"
    TEMPLATE_NOT_FOUND = "template not found"
    TOO_MANY_ARGUMENTS = "too many arguments"
    MISSING_ARGUMENT = "missing argument"
    UNKNOWN_FILTER = "unknown filter"
    UNKNOWN_TEST = "unknown test"
    UNKNOWN_FUNCTION = "unknown function"
    UNKNOWN_METHOD = "unknown method"
    BAD_ESCAPE = "bad string escape"
    UNDEFINED_ERROR = "undefined value"
    BAD_SERIALIZATION = "could not serialize to value"
    BAD_INCLUDE = "could not render include"
    EVAL_BLOCK = "could not render block"
    CANNOT_UNPACK = "cannot unpack"
    UNKNOWN_BLOCK = "unknown block"

    @property
    def description(self) -> str:
        return self.value


# ---------------------------------------------------------------------------
# Source snippets
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SourceSnippet:
    """Template source context around an error line.

    Attributes:
        lines: Tuple of (line_number, line_content) pairs around the error.
        error_line: The 1-based line number where the error occurred.
        column: Optional column offset for caret pointer.
        width: Caret width, at least one character.
    """

    lines: tuple[tuple[int, str], ...]
    error_line: int
    column: int | None = None
    width: int = 1

    def format(self) -> str:
        """Format snippet in a compiler-style diagnostic layout."""
        parts: list[str] = ["    |"]
        for lineno, content in self.lines:
            marker = ">" if lineno == self.error_line else " "
            parts.append(f"{marker}{lineno:>3} | {content}")
            if lineno == self.error_line and self.column is not None:
                parts.append(f"    | {' ' * self.column}{'^' * max(self.width, 1)}")
        parts.append("    |")
        return "\n".join(parts)


def build_source_snippet(
    source: str,
    error_line: int,
    *,
    context_lines: int = 2,
    column: int | None = None,
    width: int = 1,
) -> SourceSnippet:
    """Build a SourceSnippet from template source.

    Args:
        source: Full template source text.
        error_line: 1-based line number of the error.
        context_lines: Number of lines to show before/after the error line.
        column: Optional column offset for caret pointer.
        width: Number of caret characters.

    Returns:
        SourceSnippet with surrounding context lines.
    """
    all_lines = source.splitlines()
    start = max(0, error_line - 1 - context_lines)
    end = min(len(all_lines), error_line + context_lines)
    lines = tuple((i + 1, all_lines[i]) for i in range(start, end))
    return SourceSnippet(lines=lines, error_line=error_line, column=column, width=width)


class TemplateError(Exception):
    """Base exception for all template errors.

    Enables broad exception handling:

        >>> try:
        ...     template.render()
        ... except TemplateError as e:
        ...     log.error("template failed: %s", e)

    Attributes:
        kind: The ErrorKind of this error.
        detail: Optional detail message.
        name: Template name, attached by the VM or parser.
        lineno: 1-based line number, attached by the VM or parser.
        span: Fine-grained source span when known.
        source: Template source when debug info is enabled.
    """

    def __init__(
        self,
        kind: ErrorKind,
        detail: str | None = None,
        *,
        name: str | None = None,
        lineno: int | None = None,
        span: Span | None = None,
        source: str | None = None,
    ):
        self.kind = kind
        self.detail = detail
        self.name = name
        self.lineno = lineno
        self.span = span
        self.source = source
        super().__init__(detail or kind.description)

    def attach_location(
        self,
        name: str | None,
        lineno: int | None,
        span: Span | None = None,
        source: str | None = None,
    ) -> TemplateError:
        """Attach location info unless the error already carries a line."""
        if self.lineno is None:
            self.name = name
            self.lineno = span.start_line if span is not None else lineno
            self.span = span
            if self.source is None:
                self.source = source
        return self

    @property
    def message(self) -> str:
        if self.detail:
            return f"{self.kind.description}: {self.detail}"
        return self.kind.description

    def __str__(self) -> str:
        if self.name is not None and self.lineno is not None:
            return f"{self.message} (in {self.name}:{self.lineno})"
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.kind.name}, {self.detail!r})"

    def format_compact(self) -> str:
        """Format the error as a multi-line terminal diagnostic.

        Format::

            syntax error: unexpected `}`
              --> page.html:3:7
                |
               2 | <ul>
              >3 | {{ } }}
                |        ^
                |
            caused by: ...

        """
        parts = [self.message]
        if self.name is not None or self.lineno is not None:
            location = self.name or "<template>"
            if self.lineno is not None:
                location += f":{self.lineno}"
                if self.span is not None:
                    location += f":{self.span.start_col}"
            parts.append(f"  --> {location}")
        if self.source and self.lineno:
            column = width = None
            if self.span is not None:
                column = self.span.start_col
                width = 1
                if self.span.end_line == self.span.start_line:
                    width = self.span.end_col - self.span.start_col
            snippet = build_source_snippet(
                self.source, self.lineno, column=column, width=width or 1
            )
            parts.append(snippet.format())
        cause = self.__cause__
        while cause is not None:
            parts.append(f"caused by: {cause}")
            cause = cause.__cause__
        return "\n".join(parts)


class TemplateSyntaxError(TemplateError):
    """Lexer or parser error in template source.

    Raised while compiling a template. ``kind`` is SYNTAX for ordinary
    parse errors, UNEXPECTED_EOF when the source ended early, and
    BAD_ESCAPE for invalid string escapes.
    """

    def __init__(
        self,
        detail: str | None = None,
        *,
        kind: ErrorKind = ErrorKind.SYNTAX,
        name: str | None = None,
        lineno: int | None = None,
        span: Span | None = None,
        source: str | None = None,
    ):
        super().__init__(
            kind, detail, name=name, lineno=lineno, span=span, source=source
        )


class TemplateNotFoundError(TemplateError):
    """Template not found by the environment or its loader.

    Example:
            >>> env.get_template("nonexistent.html")
        TemplateNotFoundError: template not found: template "nonexistent.html" does not exist

    """

    def __init__(self, detail: str | None = None, **location: object):
        super().__init__(ErrorKind.TEMPLATE_NOT_FOUND, detail, **location)  # type: ignore[arg-type]

    @classmethod
    def for_name(cls, name: str) -> TemplateNotFoundError:
        return cls(f'template "{name}" does not exist')


class UndefinedError(TemplateError):
    """An undefined value was used where the undefined policy forbids it.

    In strict mode printing, iterating or subscripting an undefined value
    raises this error; in lenient mode only attribute access on an
    already undefined value does.
    """

    def __init__(self, detail: str | None = None, **location: object):
        super().__init__(ErrorKind.UNDEFINED_ERROR, detail, **location)  # type: ignore[arg-type]


class TemplateRuntimeError(TemplateError):
    """Render-time error of any other kind.

    Example:
            >>> env.from_string("{{ 1 - 'a' }}").render()
        TemplateRuntimeError: invalid operation: tried to use - operator on
        unsupported types number and string (in <string>:1)

    """


_KIND_CLASSES: dict[ErrorKind, type[TemplateError]] = {
    ErrorKind.SYNTAX: TemplateSyntaxError,
    ErrorKind.UNEXPECTED_EOF: TemplateSyntaxError,
    ErrorKind.BAD_ESCAPE: TemplateSyntaxError,
    ErrorKind.TEMPLATE_NOT_FOUND: TemplateNotFoundError,
    ErrorKind.UNDEFINED_ERROR: UndefinedError,
}


def make_error(kind: ErrorKind, detail: str | None = None) -> TemplateError:
    """Create an error of the right class for ``kind``."""
    cls = _KIND_CLASSES.get(kind, TemplateRuntimeError)
    if cls is TemplateSyntaxError:
        return TemplateSyntaxError(detail, kind=kind)
    if cls is TemplateRuntimeError:
        return TemplateRuntimeError(kind, detail)
    return cls(detail)  # type: ignore[call-arg]
