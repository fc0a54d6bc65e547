"""Tests for static template analysis."""

from __future__ import annotations

import pytest

from jinko import Environment
from jinko.meta import find_macro_closure, find_undeclared
from jinko.nodes import Macro
from jinko.parser import parse


class TestUndeclaredVariables:
    """`Template.undeclared_variables`."""

    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("{{ a }}{{ b }}", {"a", "b"}),
            ("{% set x = 1 %}{{ x }}", set()),
            ("{{ x }}{% set x = 1 %}", {"x"}),
            ("{% for item in items %}{{ item }}{{ loop.index }}{% endfor %}", {"items"}),
            ("{% for a, b in pairs %}{{ a }}{{ b }}{% endfor %}", {"pairs"}),
            ("{% for x in xs %}{% else %}{{ x }}{% endfor %}", {"xs", "x"}),
            ("{% if a %}{% set b = 1 %}{% endif %}{{ b }}", {"a", "b"}),
            ("{% with a = b %}{{ a }}{% endwith %}{{ a }}", {"a", "b"}),
            ("{% set s %}{{ inner }}{% endset %}{{ s }}", {"inner"}),
            ("{% macro m(x) %}{{ x }}{{ y }}{% endmacro %}{{ m(1) }}", {"y"}),
            ("{% macro m(a=dflt) %}{{ a }}{% endmacro %}", {"dflt"}),
            ("{% call m() %}{{ caller }}{{ z }}{% endcall %}", {"m", "z"}),
            ("{% block a %}{{ super() }}{{ title }}{% endblock %}", {"title"}),
            ("{{ self.a() }}", set()),
            ('{% import "x.txt" as lib %}{{ lib.f() }}', set()),
            ('{% from "x.txt" import f, g as h %}{{ f() }}{{ h() }}', set()),
            ("{{ a if b else c }}", {"a", "b", "c"}),
            ("{{ x | default(y) }}{{ z is divisibleby(w) }}", {"x", "y", "z", "w"}),
            ("{{ d[k] }}{{ s[i:j] }}", {"d", "k", "s", "i", "j"}),
            ("{{ [a, {b: c}] }}", {"a", "b", "c"}),
            ("{{ f(x=v) }}", {"f", "v"}),
            ("{{ range(3) }}", {"range"}),
            ("{% include t %}", {"t"}),
            ("{% extends base %}", {"base"}),
            ("{% import lib as m %}{{ m.f() }}", {"lib"}),
            ("{% from lib import f %}{{ f() }}", {"lib"}),
            ("{% filter replace('a', x) %}a{% endfilter %}", {"x"}),
            ("{% set s | replace('a', x) %}a{% endset %}", {"x"}),
            ("{% autoescape mode %}{% endautoescape %}", {"mode"}),
        ],
    )
    def test_names(self, env: Environment, source: str, expected: set[str]) -> None:
        assert env.from_string(source).undeclared_variables() == expected

    def test_nested_paths(self, env: Environment) -> None:
        tmpl = env.from_string(
            "{% set x = 1 %}{{ x }} {{ user.name }} {{ user.profile.email | lower }} {{ page }}"
        )
        assert tmpl.undeclared_variables() == {"user", "page"}
        assert tmpl.undeclared_variables(nested=True) == {
            "user.name",
            "user.profile.email",
            "page",
        }

    def test_nested_assigned_root_is_skipped(self, env: Environment) -> None:
        tmpl = env.from_string("{% set cfg = {} %}{{ cfg.debug }}")
        assert tmpl.undeclared_variables(nested=True) == set()

    def test_result_is_a_copy(self, env: Environment) -> None:
        tmpl = env.from_string("{{ a }}")
        tmpl.undeclared_variables().add("b")
        assert tmpl.undeclared_variables() == {"a"}

    def test_find_undeclared_on_ast(self) -> None:
        ast = parse("{% for i in range(n) %}{{ i }}{% endfor %}")
        assert find_undeclared(ast) == {"range", "n"}


class TestMacroClosure:
    """`find_macro_closure`."""

    def _macro(self, source: str) -> Macro:
        node = parse(source).children[0]
        assert isinstance(node, Macro)
        return node

    def test_outer_names(self) -> None:
        macro = self._macro("{% macro m(a, b=c) %}{{ a }}{{ b }}{{ d }}{% endmacro %}")
        assert find_macro_closure(macro) == {"c", "d"}

    def test_caller_reported(self) -> None:
        macro = self._macro("{% macro m() %}{{ caller() }}{% endmacro %}")
        assert find_macro_closure(macro) == {"caller"}

    def test_filter_block_arguments_reported(self) -> None:
        macro = self._macro(
            "{% macro m() %}{% filter replace(' ', sep) %}a b{% endfilter %}{% endmacro %}"
        )
        assert find_macro_closure(macro) == {"sep"}

    def test_include_name_reported(self) -> None:
        macro = self._macro("{% macro m() %}{% include t %}{% endmacro %}")
        assert find_macro_closure(macro) == {"t"}

    def test_locals_not_reported(self) -> None:
        macro = self._macro(
            "{% macro m() %}{% set t = 1 %}{% for i in xs %}{{ i }}{{ t }}{% endfor %}{% endmacro %}"
        )
        assert find_macro_closure(macro) == {"xs"}


class TestBlocks:
    """Block listing."""

    def test_list_blocks_sorted(self, env: Environment) -> None:
        tmpl = env.from_string(
            "{% block b %}{% endblock %}{% block a %}{% block c %}{% endblock %}{% endblock %}"
        )
        assert tmpl.list_blocks() == ["a", "b", "c"]
        assert tmpl.block_names == ["a", "b", "c"]

    def test_no_blocks(self, env: Environment) -> None:
        assert env.from_string("plain").list_blocks() == []

    def test_loaded_template_blocks(self, env_with_loader: Environment) -> None:
        assert env_with_loader.get_template("base.html").list_blocks() == ["body", "head"]
        assert env_with_loader.get_template("child.html").list_blocks() == ["body"]
