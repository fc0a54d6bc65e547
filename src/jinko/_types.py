"""Shared token and source-location types.

These types are used by the lexer, parser, code generator and error
reporting. They are immutable and safe to share between threads.

"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TokenType(Enum):
    """Kinds of tokens produced by the lexer."""

    TEMPLATE_DATA = "template-data"
    VARIABLE_START = "start of variable block"
    VARIABLE_END = "end of variable block"
    BLOCK_START = "start of block"
    BLOCK_END = "end of block"
    IDENT = "identifier"
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    PLUS = "`+`"
    MINUS = "`-`"
    MUL = "`*`"
    DIV = "`/`"
    FLOORDIV = "`//`"
    POW = "`**`"
    MOD = "`%`"
    BANG = "`!`"
    DOT = "`.`"
    COMMA = "`,`"
    COLON = "`:`"
    TILDE = "`~`"
    ASSIGN = "`=`"
    PIPE = "`|`"
    EQ = "`==`"
    NE = "`!=`"
    GT = "`>`"
    GTE = "`>=`"
    LT = "`<`"
    LTE = "`<=`"
    LBRACKET = "`[`"
    RBRACKET = "`]`"
    LPAREN = "`(`"
    RPAREN = "`)`"
    LBRACE = "`{`"
    RBRACE = "`}`"
    EOF = "end of input"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class Span:
    """Half-open source range.

    Lines are 1-based, columns and offsets 0-based. Offsets count
    characters of the source string.
    """

    start_line: int
    start_col: int
    start_offset: int
    end_line: int
    end_col: int
    end_offset: int

    def __str__(self) -> str:
        return (
            f"@ {self.start_line}:{self.start_col}-"
            f"{self.end_line}:{self.end_col}"
        )


@dataclass(frozen=True, slots=True)
class Token:
    """A lexed token with its value and source span.

    ``value`` holds the identifier or string text, the parsed number for
    INTEGER/FLOAT, or None for punctuation.
    """

    type: TokenType
    value: str | int | float | None
    span: Span

    @property
    def lineno(self) -> int:
        return self.span.start_line

    @property
    def col_offset(self) -> int:
        return self.span.start_col

    def describe(self) -> str:
        """Human readable form used in "unexpected X" messages."""
        if self.type is TokenType.IDENT:
            return f"`{self.value}`"
        if self.type is TokenType.STRING:
            return f"string {self.value!r}"
        if self.type in (TokenType.INTEGER, TokenType.FLOAT):
            return f"{self.type.value} {self.value}"
        return str(self.type)
