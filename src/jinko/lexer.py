"""Lexer for jinko templates.

Turns template source into a lazy stream of tokens. The lexer is a small
state machine with two kinds of states:

- **template**: scanning literal template data until a start marker
  (``{{``, ``{%`` or ``{#`` by default) is found.
- **in-variable / in-block**: scanning expression tokens until the
  matching end marker.

Whitespace control:
    A ``-`` right after a start marker strips whitespace before the tag,
    a ``-`` right before an end marker strips whitespace after it.

Raw blocks:
    ``{% raw %}...{% endraw %}`` is emitted verbatim as a single
    TEMPLATE_DATA token; no syntax inside it is interpreted.

Example:
    >>> [t.type.name for t in tokenize("Hi {{ name }}")]
    ['TEMPLATE_DATA', 'VARIABLE_START', 'IDENT', 'VARIABLE_END', 'EOF']

"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from jinko._types import Span, Token, TokenType
from jinko.environment.exceptions import ErrorKind, TemplateSyntaxError

_U128_MAX = (1 << 128) - 1

_IDENT_RE = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")
_NUMBER_RE = re.compile(r"[0-9]+(?P<frac>\.[0-9]+)?(?P<exp>[eE][+-]?[0-9]+)?")
_WHITESPACE_RE = re.compile(r"[ \t\n\f\r]+")

_TWO_CHAR_OPS = {
    "//": TokenType.FLOORDIV,
    "**": TokenType.POW,
    "==": TokenType.EQ,
    "!=": TokenType.NE,
    ">=": TokenType.GTE,
    "<=": TokenType.LTE,
}

_SINGLE_CHAR_OPS = {
    "+": TokenType.PLUS,
    "-": TokenType.MINUS,
    "*": TokenType.MUL,
    "/": TokenType.DIV,
    "%": TokenType.MOD,
    "!": TokenType.BANG,
    ".": TokenType.DOT,
    ",": TokenType.COMMA,
    ":": TokenType.COLON,
    "~": TokenType.TILDE,
    "|": TokenType.PIPE,
    "=": TokenType.ASSIGN,
    "<": TokenType.LT,
    ">": TokenType.GT,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
}

_OPENING = frozenset("([{")
_CLOSING = frozenset(")]}")

_SIMPLE_ESCAPES = {
    '"': '"',
    "\\": "\\",
    "/": "/",
    "'": "'",
    "b": "\x08",
    "f": "\x0c",
    "n": "\n",
    "r": "\r",
    "t": "\t",
}


@dataclass(frozen=True, slots=True)
class SyntaxConfig:
    """Delimiter configuration for the lexer.

    End markers may be shared, but the three start markers must be
    distinct and non-empty.
    """

    block_start: str = "{%"
    block_end: str = "%}"
    variable_start: str = "{{"
    variable_end: str = "}}"
    comment_start: str = "{#"
    comment_end: str = "#}"

    def __post_init__(self) -> None:
        starts = (self.block_start, self.variable_start, self.comment_start)
        if not all(starts) or not all(
            (self.block_end, self.variable_end, self.comment_end)
        ):
            raise ValueError("delimiters must not be empty")
        if len(set(starts)) != 3:
            raise ValueError("start delimiters must be distinct")


DEFAULT_SYNTAX = SyntaxConfig()


class _State(Enum):
    TEMPLATE = "template"
    IN_VARIABLE = "variable"
    IN_BLOCK = "block"


class _Marker(Enum):
    VARIABLE = "variable"
    BLOCK = "block"
    COMMENT = "comment"


def unescape(text: str) -> str:
    """Resolve backslash escapes of a string literal body.

    Supports ``\\" \\\\ \\/ \\' \\b \\f \\n \\r \\t`` and ``\\uXXXX`` with
    UTF-16 surrogate pair decoding.

    Raises:
        TemplateSyntaxError: with kind BAD_ESCAPE on an invalid escape.
    """
    out: list[str] = []
    pending_surrogate: int | None = None
    i = 0
    n = len(text)
    while i < n:
        char = text[i]
        i += 1
        if char != "\\":
            if pending_surrogate is not None:
                raise TemplateSyntaxError(kind=ErrorKind.BAD_ESCAPE)
            out.append(char)
            continue
        if i >= n:
            raise TemplateSyntaxError(kind=ErrorKind.BAD_ESCAPE)
        char = text[i]
        i += 1
        if char == "u":
            hexdigits = text[i : i + 4]
            if len(hexdigits) != 4 or not all(c in "0123456789abcdefABCDEF" for c in hexdigits):
                raise TemplateSyntaxError(kind=ErrorKind.BAD_ESCAPE)
            i += 4
            code = int(hexdigits, 16)
            if pending_surrogate is not None:
                if not 0xDC00 <= code <= 0xDFFF:
                    raise TemplateSyntaxError(kind=ErrorKind.BAD_ESCAPE)
                combined = 0x10000 + ((pending_surrogate - 0xD800) << 10) + (code - 0xDC00)
                out.append(chr(combined))
                pending_surrogate = None
            elif 0xD800 <= code <= 0xDBFF:
                pending_surrogate = code
            elif 0xDC00 <= code <= 0xDFFF:
                raise TemplateSyntaxError(kind=ErrorKind.BAD_ESCAPE)
            else:
                out.append(chr(code))
            continue
        if pending_surrogate is not None:
            raise TemplateSyntaxError(kind=ErrorKind.BAD_ESCAPE)
        try:
            out.append(_SIMPLE_ESCAPES[char])
        except KeyError:
            raise TemplateSyntaxError(kind=ErrorKind.BAD_ESCAPE) from None
    if pending_surrogate is not None:
        raise TemplateSyntaxError(kind=ErrorKind.BAD_ESCAPE)
    return "".join(out)


class Lexer:
    """Lazy tokenizer over a template source string.

    Attributes:
        _source: Full template source
        _pos: Current character offset
        _line: Current 1-based line
        _col: Current 0-based column
        _stack: Lexer state stack
        _trim_leading: Strip whitespace from the next template data
        _paren_balance: Open brackets in the current expression

    """

    __slots__ = (
        "_col",
        "_in_expr",
        "_line",
        "_markers",
        "_paren_balance",
        "_pos",
        "_source",
        "_stack",
        "_syntax",
        "_trim_leading",
    )

    def __init__(
        self,
        source: str,
        syntax: SyntaxConfig = DEFAULT_SYNTAX,
        *,
        in_expr: bool = False,
    ):
        self._source = source
        self._syntax = syntax
        self._in_expr = in_expr
        self._pos = 0
        self._line = 1
        self._col = 0
        self._stack = [_State.IN_VARIABLE if in_expr else _State.TEMPLATE]
        self._trim_leading = False
        self._paren_balance = 0
        # longest marker first so overlapping prefixes resolve correctly
        self._markers = sorted(
            (
                (syntax.variable_start, _Marker.VARIABLE),
                (syntax.block_start, _Marker.BLOCK),
                (syntax.comment_start, _Marker.COMMENT),
            ),
            key=lambda item: -len(item[0]),
        )

    # ─────────────────────────────────────────────────────────────────────
    # Position helpers
    # ─────────────────────────────────────────────────────────────────────

    def _loc(self) -> tuple[int, int, int]:
        return self._line, self._col, self._pos

    def _span(self, start: tuple[int, int, int]) -> Span:
        return Span(start[0], start[1], start[2], self._line, self._col, self._pos)

    def _advance(self, count: int) -> str:
        text = self._source[self._pos : self._pos + count]
        newlines = text.count("\n")
        if newlines:
            self._line += newlines
            self._col = len(text) - text.rfind("\n") - 1
        else:
            self._col += len(text)
        self._pos += len(text)
        return text

    def _error(self, message: str, start: tuple[int, int, int] | None = None) -> TemplateSyntaxError:
        return TemplateSyntaxError(
            message, span=self._span(start or self._loc()), lineno=(start or self._loc())[0]
        )

    def _skip_whitespace(self) -> None:
        rest = self._source[self._pos :]
        stripped = rest.lstrip()
        if len(stripped) != len(rest):
            self._advance(len(rest) - len(stripped))

    # ─────────────────────────────────────────────────────────────────────
    # Marker matching
    # ─────────────────────────────────────────────────────────────────────

    def _match_start_marker(self) -> tuple[_Marker, int] | None:
        for text, marker in self._markers:
            if self._source.startswith(text, self._pos):
                return marker, len(text)
        return None

    def _find_start_marker(self) -> tuple[int, bool] | None:
        best: tuple[int, int] | None = None
        for text, _marker in self._markers:
            idx = self._source.find(text, self._pos)
            if idx != -1 and (best is None or idx < best[0]):
                best = (idx, len(text))
        if best is None:
            return None
        idx, length = best
        return idx, self._source.startswith("-", idx + length)

    def _skip_basic_tag(self, pos: int, name: str) -> tuple[int, bool, bool] | None:
        """Match ``-? name -? block_end`` at ``pos``.

        Returns the consumed length and the leading/trailing hyphen flags.
        """
        source = self._source
        ptr = pos
        leading = source.startswith("-", ptr)
        if leading:
            ptr += 1
        while ptr < len(source) and source[ptr] in " \t\n\f\r":
            ptr += 1
        if not source.startswith(name, ptr):
            return None
        ptr += len(name)
        while ptr < len(source) and source[ptr] in " \t\n\f\r":
            ptr += 1
        trailing = source.startswith("-", ptr)
        if trailing:
            ptr += 1
        if not source.startswith(self._syntax.block_end, ptr):
            return None
        ptr += len(self._syntax.block_end)
        return ptr - pos, leading, trailing

    # ─────────────────────────────────────────────────────────────────────
    # Token producers
    # ─────────────────────────────────────────────────────────────────────

    def tokenize(self) -> Iterator[Token]:
        """Yield tokens lazily, ending with a single EOF token."""
        source = self._source
        while self._pos < len(source):
            state = self._stack[-1]
            if state is _State.TEMPLATE:
                token = self._lex_template()
            else:
                token = self._lex_expression(state)
            if token is not None:
                yield token
        yield Token(TokenType.EOF, None, self._span(self._loc()))

    def _lex_template(self) -> Token | None:
        start = self._loc()
        matched = self._match_start_marker()
        if matched is not None:
            marker, skip = matched
            if marker is _Marker.COMMENT:
                end_marker = self._syntax.comment_end
                end = self._source.find(end_marker, self._pos + skip)
                if end == -1:
                    raise self._error("unexpected end of comment", start)
                if end > self._pos + skip and self._source[end - 1] == "-":
                    self._trim_leading = True
                self._advance(end - self._pos + len(end_marker))
                return None
            if marker is _Marker.BLOCK:
                raw = self._skip_basic_tag(self._pos + skip, "raw")
                if raw is not None:
                    return self._lex_raw(start, skip + raw[0], raw[2])
            hyphen = 1 if self._source.startswith("-", self._pos + skip) else 0
            self._advance(skip + hyphen)
            self._paren_balance = 0
            if marker is _Marker.VARIABLE:
                self._stack.append(_State.IN_VARIABLE)
                return Token(TokenType.VARIABLE_START, None, self._span(start))
            self._stack.append(_State.IN_BLOCK)
            return Token(TokenType.BLOCK_START, None, self._span(start))

        if self._trim_leading:
            self._trim_leading = False
            self._skip_whitespace()
        start = self._loc()

        found = self._find_start_marker()
        if found is None:
            lead = self._advance(len(self._source) - self._pos)
            span = self._span(start)
        else:
            idx, hyphen = found
            peeked = self._source[self._pos : idx]
            if hyphen:
                trimmed = peeked.rstrip()
                lead = self._advance(len(trimmed))
                span = self._span(start)
                self._advance(len(peeked) - len(trimmed))
            else:
                lead = self._advance(len(peeked))
                span = self._span(start)
        if not lead:
            return None
        return Token(TokenType.TEMPLATE_DATA, lead, span)

    def _lex_raw(self, start: tuple[int, int, int], consumed: int, trim_start: bool) -> Token:
        self._advance(consumed)
        block_start = self._syntax.block_start
        ptr = self._pos
        while True:
            idx = self._source.find(block_start, ptr)
            if idx == -1:
                raise self._error("unexpected end of raw block", start)
            ptr = idx + len(block_start)
            endraw = self._skip_basic_tag(ptr, "endraw")
            if endraw is None:
                continue
            length, trim_end, trim_after = endraw
            result = self._source[self._pos : idx]
            if trim_start:
                result = result.lstrip()
            if trim_end:
                result = result.rstrip()
            self._advance(ptr + length - self._pos)
            self._trim_leading = trim_after
            return Token(TokenType.TEMPLATE_DATA, result, self._span(start))

    def _lex_expression(self, state: _State) -> Token | None:
        source = self._source
        ws = _WHITESPACE_RE.match(source, self._pos)
        if ws is not None:
            self._advance(ws.end() - self._pos)
            return None

        start = self._loc()
        if self._paren_balance == 0 and not (self._in_expr and len(self._stack) == 1):
            if state is _State.IN_BLOCK:
                end_marker, end_type = self._syntax.block_end, TokenType.BLOCK_END
            else:
                end_marker, end_type = self._syntax.variable_end, TokenType.VARIABLE_END
            if source.startswith("-", self._pos) and source.startswith(end_marker, self._pos + 1):
                self._stack.pop()
                self._trim_leading = True
                self._advance(1 + len(end_marker))
                return Token(end_type, None, self._span(start))
            if source.startswith(end_marker, self._pos):
                self._stack.pop()
                self._advance(len(end_marker))
                return Token(end_type, None, self._span(start))

        two = source[self._pos : self._pos + 2]
        if two in _TWO_CHAR_OPS:
            self._advance(2)
            return Token(_TWO_CHAR_OPS[two], None, self._span(start))

        char = source[self._pos]
        if char in _SINGLE_CHAR_OPS:
            if char in _OPENING:
                self._paren_balance += 1
            elif char in _CLOSING and self._paren_balance:
                self._paren_balance -= 1
            self._advance(1)
            return Token(_SINGLE_CHAR_OPS[char], None, self._span(start))
        if char in "'\"":
            return self._eat_string(char, start)
        if char.isascii() and char.isdigit():
            return self._eat_number(start)

        match = _IDENT_RE.match(source, self._pos)
        if match is None:
            raise self._error("unexpected character", start)
        ident = self._advance(match.end() - self._pos)
        return Token(TokenType.IDENT, ident, self._span(start))

    def _eat_number(self, start: tuple[int, int, int]) -> Token:
        match = _NUMBER_RE.match(self._source, self._pos)
        assert match is not None
        text = self._advance(match.end() - self._pos)
        if match.group("frac") or match.group("exp"):
            try:
                return Token(TokenType.FLOAT, float(text), self._span(start))
            except ValueError:
                raise self._error("invalid float", start) from None
        value = int(text)
        if value > _U128_MAX:
            raise self._error("invalid integer", start)
        return Token(TokenType.INTEGER, value, self._span(start))

    def _eat_string(self, delim: str, start: tuple[int, int, int]) -> Token:
        source = self._source
        i = self._pos + 1
        escaped = False
        has_escapes = False
        while i < len(source):
            char = source[i]
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
                has_escapes = True
            elif char == delim:
                break
            i += 1
        else:
            raise self._error("unexpected end of string", start)
        body = source[self._pos + 1 : i]
        self._advance(i + 1 - self._pos)
        if has_escapes:
            try:
                body = unescape(body)
            except TemplateSyntaxError as exc:
                exc.attach_location(None, start[0], self._span(start))
                raise
        return Token(TokenType.STRING, body, self._span(start))


def tokenize(
    source: str,
    syntax: SyntaxConfig = DEFAULT_SYNTAX,
    *,
    in_expr: bool = False,
) -> Iterator[Token]:
    """Tokenize template source lazily.

    Args:
        source: Template source text.
        syntax: Delimiter configuration.
        in_expr: Start inside an expression (used for standalone
            expressions compiled without delimiters).

    Yields:
        Tokens in source order, the last one being EOF.

    Raises:
        TemplateSyntaxError: When the source cannot be tokenized.
    """
    return Lexer(source, syntax, in_expr=in_expr).tokenize()
