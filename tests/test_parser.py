"""Tests for the jinko parser.

Checks the AST shapes produced for expressions and statements, operator
precedence, constant folding, and the syntax errors raised for
malformed templates (kind, message and location).
"""

from __future__ import annotations

import pytest

from jinko.environment.exceptions import ErrorKind, TemplateSyntaxError
from jinko.nodes import (
    BinOp,
    BinOpKind,
    Block,
    Call,
    CallBlock,
    Const,
    EmitExpr,
    EmitRaw,
    Filter,
    ForLoop,
    FromImport,
    GetAttr,
    GetItem,
    IfCond,
    IfExpr,
    Import,
    Include,
    Kwargs,
    List,
    Macro,
    Set,
    SetBlock,
    Slice,
    Test,
    UnaryOp,
    UnaryOpKind,
    Var,
)
from jinko.parser import parse, parse_expr
from jinko.value import Value


def _body(source: str) -> tuple:
    return parse(source).children


def _stmt(source: str):
    (node,) = _body(source)
    return node


class TestTemplateBody:
    """Top-level template data and output expressions."""

    def test_text_and_variable(self) -> None:
        raw, emit = _body("Hello {{ name }}")
        assert isinstance(raw, EmitRaw)
        assert raw.raw == "Hello "
        assert isinstance(emit, EmitExpr)
        assert isinstance(emit.expr, Var)
        assert emit.expr.id == "name"

    def test_trailing_newline_removed(self) -> None:
        (raw,) = _body("text\n")
        assert raw.raw == "text"

    def test_trailing_newline_kept(self) -> None:
        (raw,) = parse("text\n", keep_trailing_newline=True).children
        assert raw.raw == "text\n"

    def test_only_one_newline_removed(self) -> None:
        (raw,) = _body("text\n\n")
        assert raw.raw == "text\n"

    def test_parse_is_deterministic(self) -> None:
        source = "{% for x in items if x %}{{ x | upper }}{% else %}-{% endfor %}"
        assert parse(source) == parse(source)


class TestExpressions:
    """Expression shapes and operator precedence."""

    def test_attribute_and_item(self) -> None:
        expr = parse_expr("a.b[0]")
        assert isinstance(expr, GetItem)
        assert isinstance(expr.expr, GetAttr)
        assert expr.expr.name == "b"
        assert expr.subscript_expr.value == Value.from_int(0)

    def test_multiplication_binds_tighter(self) -> None:
        expr = parse_expr("1 + 2 * 3")
        assert expr.op is BinOpKind.ADD
        assert expr.right.op is BinOpKind.MUL

    def test_concat_between_additive_and_multiplicative(self) -> None:
        expr = parse_expr("a + b ~ c * d")
        assert expr.op is BinOpKind.ADD
        assert expr.right.op is BinOpKind.CONCAT
        assert expr.right.right.op is BinOpKind.MUL

    def test_power_binds_tighter_than_multiplication(self) -> None:
        expr = parse_expr("2 * 3 ** 2")
        assert expr.op is BinOpKind.MUL
        assert expr.right.op is BinOpKind.POW

    def test_unary_minus_binds_tighter_than_power(self) -> None:
        expr = parse_expr("-2 ** 2")
        assert isinstance(expr, BinOp)
        assert expr.op is BinOpKind.POW
        assert isinstance(expr.left, UnaryOp)
        assert expr.left.op is UnaryOpKind.NEG

    def test_and_binds_tighter_than_or(self) -> None:
        expr = parse_expr("a or b and c")
        assert expr.op is BinOpKind.SC_OR
        assert expr.right.op is BinOpKind.SC_AND

    def test_not_in(self) -> None:
        expr = parse_expr("a not in b")
        assert isinstance(expr, UnaryOp)
        assert expr.op is UnaryOpKind.NOT
        assert expr.expr.op is BinOpKind.IN

    def test_comparison_chain_is_left_associative(self) -> None:
        expr = parse_expr("a < b == c")
        assert expr.op is BinOpKind.EQ
        assert expr.left.op is BinOpKind.LT

    def test_if_expression(self) -> None:
        expr = parse_expr("a if b else c")
        assert isinstance(expr, IfExpr)
        assert expr.true_expr.id == "a"
        assert expr.test_expr.id == "b"
        assert expr.false_expr.id == "c"

    def test_if_expression_without_else(self) -> None:
        expr = parse_expr("a if b")
        assert isinstance(expr, IfExpr)
        assert expr.false_expr is None

    def test_filter_chain(self) -> None:
        expr = parse_expr("name | trim | replace('a', 'b')")
        assert isinstance(expr, Filter)
        assert expr.name == "replace"
        assert len(expr.args) == 2
        assert isinstance(expr.expr, Filter)
        assert expr.expr.name == "trim"

    def test_filter_applies_after_postfix(self) -> None:
        expr = parse_expr("user.name | upper")
        assert isinstance(expr, Filter)
        assert isinstance(expr.expr, GetAttr)

    def test_negated_test(self) -> None:
        expr = parse_expr("x is not defined")
        assert isinstance(expr, UnaryOp)
        assert isinstance(expr.expr, Test)
        assert expr.expr.name == "defined"

    def test_test_with_argument(self) -> None:
        expr = parse_expr("x is divisibleby(3)")
        assert isinstance(expr, Test)
        assert len(expr.args) == 1

    def test_keyword_arguments_become_trailing_kwargs(self) -> None:
        expr = parse_expr("f(1, a=2, b=3)")
        assert isinstance(expr, Call)
        assert isinstance(expr.args[0], Const)
        kwargs = expr.args[-1]
        assert isinstance(kwargs, Kwargs)
        assert [name for name, _ in kwargs.pairs] == ["a", "b"]

    def test_positional_after_keyword_is_error(self) -> None:
        with pytest.raises(TemplateSyntaxError, match="non-keyword arg after keyword arg"):
            parse_expr("f(a=1, 2)")

    def test_slice(self) -> None:
        expr = parse_expr("s[1:]")
        assert isinstance(expr, Slice)
        assert expr.start.value == Value.from_int(1)
        assert expr.stop is None
        assert expr.step is None

    def test_slice_with_step(self) -> None:
        expr = parse_expr("s[::2]")
        assert isinstance(expr, Slice)
        assert expr.start is None
        assert expr.step.value == Value.from_int(2)

    def test_empty_subscript(self) -> None:
        with pytest.raises(TemplateSyntaxError, match="empty subscript"):
            parse_expr("s[]")

    def test_constant_names(self) -> None:
        assert parse_expr("true").value == Value.from_bool(True)
        assert parse_expr("False").value == Value.from_bool(False)
        assert parse_expr("none").value.is_none

    def test_constant_list_is_folded(self) -> None:
        expr = parse_expr("[1, 'two', [3]]")
        assert isinstance(expr, Const)
        assert expr.value.debug() == '[1, "two", [3]]'

    def test_constant_map_is_folded(self) -> None:
        expr = parse_expr("{'a': 1, 'b': 2}")
        assert isinstance(expr, Const)
        assert expr.value.debug() == '{"a": 1, "b": 2}'

    def test_list_with_variable_is_not_folded(self) -> None:
        expr = parse_expr("[1, x]")
        assert isinstance(expr, List)

    def test_tuple_is_a_list(self) -> None:
        expr = parse_expr("(1, 2)")
        assert isinstance(expr, Const)
        assert expr.value.debug() == "[1, 2]"

    def test_trailing_input_is_error(self) -> None:
        with pytest.raises(TemplateSyntaxError, match="unexpected input after expression"):
            parse_expr("a b")


class TestStatements:
    """Statement nodes for each tag."""

    def test_for_loop(self) -> None:
        node = _stmt("{% for k, v in items if v recursive %}{{ k }}{% else %}none{% endfor %}")
        assert isinstance(node, ForLoop)
        assert isinstance(node.target, List)
        assert node.filter_expr is not None
        assert node.recursive
        assert len(node.else_body) == 1

    def test_if_elif_else(self) -> None:
        node = _stmt("{% if a %}1{% elif b %}2{% else %}3{% endif %}")
        assert isinstance(node, IfCond)
        (nested,) = node.false_body
        assert isinstance(nested, IfCond)
        assert nested.expr.id == "b"
        assert nested.false_body[0].raw == "3"

    def test_set(self) -> None:
        node = _stmt("{% set x = 1 %}")
        assert isinstance(node, Set)
        assert node.target.id == "x"

    def test_set_tuple_target(self) -> None:
        node = _stmt("{% set (a, b) = pair %}")
        assert isinstance(node.target, List)
        assert [item.id for item in node.target.items] == ["a", "b"]

    def test_set_namespace_attribute(self) -> None:
        node = _stmt("{% set ns.count = 1 %}")
        assert isinstance(node.target, GetAttr)
        assert node.target.name == "count"

    def test_set_block_with_filter(self) -> None:
        node = _stmt("{% set x | upper %}text{% endset %}")
        assert isinstance(node, SetBlock)
        assert node.filter.name == "upper"
        assert node.filter.expr is None

    def test_reserved_name(self) -> None:
        with pytest.raises(TemplateSyntaxError, match="reserved variable name loop"):
            parse("{% set loop = 1 %}")

    def test_block(self) -> None:
        node = _stmt("{% block content %}x{% endblock content %}")
        assert isinstance(node, Block)
        assert node.name == "content"

    def test_block_end_name_mismatch(self) -> None:
        with pytest.raises(TemplateSyntaxError, match="mismatching name on block"):
            parse("{% block a %}{% endblock b %}")

    def test_block_defined_twice(self) -> None:
        with pytest.raises(TemplateSyntaxError, match="block 'a' defined twice"):
            parse("{% block a %}{% endblock %}{% block a %}{% endblock %}")

    def test_block_in_macro(self) -> None:
        with pytest.raises(TemplateSyntaxError, match="block tags in macros are not allowed"):
            parse("{% macro m() %}{% block a %}{% endblock %}{% endmacro %}")

    def test_include(self) -> None:
        node = _stmt("{% include 'a.txt' ignore missing %}")
        assert isinstance(node, Include)
        assert node.ignore_missing

    def test_import(self) -> None:
        node = _stmt("{% import 'macros.txt' as m %}")
        assert isinstance(node, Import)
        assert node.name.id == "m"

    def test_from_import(self) -> None:
        node = _stmt("{% from 'macros.txt' import a, b as c with context %}")
        assert isinstance(node, FromImport)
        names = [(name.id, alias.id if alias else None) for name, alias in node.names]
        assert names == [("a", None), ("b", "c")]

    def test_macro(self) -> None:
        node = _stmt("{% macro m(a, b=2) %}{{ a }}{% endmacro %}")
        assert isinstance(node, Macro)
        assert node.name == "m"
        assert [arg.id for arg in node.args] == ["a", "b"]
        assert len(node.defaults) == 1

    def test_call_block(self) -> None:
        node = _stmt("{% call(x) m() %}{{ x }}{% endcall %}")
        assert isinstance(node, CallBlock)
        assert node.macro_decl.name == "caller"
        assert [arg.id for arg in node.macro_decl.args] == ["x"]

    def test_call_block_needs_call(self) -> None:
        with pytest.raises(TemplateSyntaxError, match="expected call expression in call block"):
            parse("{% call m %}{% endcall %}")

    def test_do_needs_call(self) -> None:
        with pytest.raises(TemplateSyntaxError, match="expected call expression in do block"):
            parse("{% do x %}")


class TestSyntaxErrors:
    """Error kinds and locations."""

    def test_unknown_statement(self) -> None:
        with pytest.raises(TemplateSyntaxError, match="unknown statement foo"):
            parse("{% foo %}")

    def test_stray_end_tag(self) -> None:
        with pytest.raises(TemplateSyntaxError, match="unknown statement endif"):
            parse("{% endif %}")

    def test_unclosed_block_is_unexpected_eof(self) -> None:
        with pytest.raises(TemplateSyntaxError) as exc_info:
            parse("{% if x %}never closed")
        assert exc_info.value.kind is ErrorKind.UNEXPECTED_EOF

    def test_unclosed_variable(self) -> None:
        with pytest.raises(TemplateSyntaxError) as exc_info:
            parse("{{ x")
        assert exc_info.value.kind is ErrorKind.UNEXPECTED_EOF

    def test_error_location(self) -> None:
        with pytest.raises(TemplateSyntaxError) as exc_info:
            parse("line one\nline two {{ 1 + }}", "page.txt")
        err = exc_info.value
        assert err.name == "page.txt"
        assert err.lineno == 2
        assert err.source is not None
        assert "(in page.txt:2)" in str(err)

    def test_unexpected_token_message(self) -> None:
        with pytest.raises(TemplateSyntaxError, match="unexpected `}`|unexpected end of variable"):
            parse("{{ 1 + }}")

    def test_recursion_limit(self) -> None:
        source = "{{ " + "(" * 200 + "1" + ")" * 200 + " }}"
        with pytest.raises(TemplateSyntaxError, match="maximum recursion"):
            parse(source)
