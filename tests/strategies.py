"""Shared hypothesis strategies for jinko property-based testing.

Provides reusable strategies that generate structurally valid template
inputs at three abstraction levels:

- **Lexer**: Template fragments with valid delimiter patterns
- **Values**: Integers, constants and key lists with known display forms
- **Filters**: Filter names and chains drawn from the built-in registry

These are building blocks -- individual test modules compose them into
property-specific strategies.
"""

from __future__ import annotations

from hypothesis import strategies as st

# ---------------------------------------------------------------------------
# Lexer strategies
# ---------------------------------------------------------------------------

# Plain text that cannot contain a start delimiter (no {)
plain_text = st.text(
    alphabet=st.characters(
        blacklist_categories=("Cs",),
        blacklist_characters="{\x00",
    ),
    min_size=1,
    max_size=200,
)

_identifier = st.from_regex(r"[a-z_][a-z0-9_]{0,12}", fullmatch=True)
jinko_variable = _identifier.map(lambda name: f"{{{{ {name} }}}}")

_comment_body = st.from_regex(r"[a-zA-Z0-9_ ]{0,30}", fullmatch=True)
jinko_comment = _comment_body.map(lambda body: f"{{# {body} #}}")

# Template fragments: plain text interleaved with variables and comments
template_fragment = st.lists(
    st.one_of(plain_text, jinko_variable, jinko_comment),
    min_size=1,
    max_size=5,
).map("".join)

# Arbitrary text that might stress the lexer (fuzz-like)
arbitrary_template_source = st.text(
    alphabet=st.characters(blacklist_categories=("Cs",)),
    min_size=0,
    max_size=300,
)

# ---------------------------------------------------------------------------
# Value strategies
# ---------------------------------------------------------------------------

# Identifiers safe to use as variable names (no keywords)
safe_identifier = st.sampled_from(
    ["x", "y", "z", "a", "b", "val", "item", "count", "name", "data", "foo", "bar"]
)

# Integers in the signed 64-bit range
i64_integer = st.integers(min_value=-(1 << 63), max_value=(1 << 63) - 1)

# Non-negative integer literals (the lexer has no negative literals)
int_literal = st.integers(min_value=0, max_value=(1 << 63) - 1)

# String literals without quotes or backslashes, paired with their display
string_literal = st.text(
    alphabet=st.characters(
        blacklist_categories=("Cs", "Cc"),
        blacklist_characters="\"'\\{}%#",
    ),
    max_size=40,
)

# Keys for ordered-map properties; duplicates allowed on purpose
map_keys = st.lists(st.sampled_from(["a", "b", "c", "d", "e", "f"]), min_size=1, max_size=12)

# ---------------------------------------------------------------------------
# Filter strategies
# ---------------------------------------------------------------------------

# Filters that are safe to apply to strings without arguments
string_safe_filters = st.sampled_from(
    ["upper", "lower", "trim", "title", "capitalize", "string"]
)

string_filter_chain = st.lists(
    string_safe_filters,
    min_size=1,
    max_size=4,
).map(" | ".join)

# Sortable integer lists (no None, no mixed types)
sortable_int_list = st.lists(
    st.integers(min_value=-1000, max_value=1000),
    min_size=0,
    max_size=30,
)
