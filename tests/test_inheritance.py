"""Tests for template inheritance, includes and imports."""

from __future__ import annotations

import pytest

from jinko import (
    DictLoader,
    Environment,
    TemplateNotFoundError,
    TemplateRuntimeError,
)
from jinko.environment.exceptions import ErrorKind


def _env(**templates: str) -> Environment:
    return Environment(loader=DictLoader({k.replace("_", "."): v for k, v in templates.items()}))


class TestExtends:
    """``{% extends %}`` and block overriding."""

    def test_child_overrides_block(self, env_with_loader: Environment) -> None:
        assert env_with_loader.get_template("child.html").render() == (
            "<html><head></head><body>Hello World</body></html>"
        )

    def test_base_renders_defaults(self) -> None:
        env = _env(base_txt="<{% block a %}base{% endblock %}>")
        assert env.get_template("base.txt").render() == "<base>"

    def test_super(self) -> None:
        env = _env(
            base_txt="<{% block a %}base{% endblock %}>",
            child_txt='{% extends "base.txt" %}{% block a %}[{{ super() }}]{% endblock %}',
        )
        assert env.get_template("child.txt").render() == "<[base]>"

    def test_super_captured(self) -> None:
        env = _env(
            base_txt="{% block a %}base{% endblock %}",
            child_txt='{% extends "base.txt" %}{% block a %}{{ super() | upper }}{% endblock %}',
        )
        assert env.get_template("child.txt").render() == "BASE"

    def test_three_levels(self) -> None:
        env = _env(
            base_txt="{% block a %}A{% endblock %}",
            mid_txt='{% extends "base.txt" %}{% block a %}B{{ super() }}{% endblock %}',
            child_txt='{% extends "mid.txt" %}{% block a %}C{{ super() }}{% endblock %}',
        )
        assert env.get_template("child.txt").render() == "CBA"

    def test_output_outside_blocks_is_discarded(self) -> None:
        env = _env(
            base_txt="{% block a %}{% endblock %}",
            child_txt='{% extends "base.txt" %}ignored{% block a %}kept{% endblock %}ignored',
        )
        assert env.get_template("child.txt").render() == "kept"

    def test_child_sets_are_visible(self) -> None:
        env = _env(
            base_txt="{% block a %}{% endblock %}",
            child_txt='{% extends "base.txt" %}{% set who = "child" %}{% block a %}{{ who }}{% endblock %}',
        )
        assert env.get_template("child.txt").render() == "child"

    def test_blocks_see_context(self, env: Environment) -> None:
        tmpl = env.from_string("{% block a %}{{ x }}{% endblock %}")
        assert tmpl.render(x=1) == "1"

    def test_self_block_call(self, render) -> None:
        assert render("{% block title %}T{% endblock %}|{{ self.title() }}") == "T|T"

    def test_dynamic_parent_name(self) -> None:
        env = _env(
            a_txt="A{% block b %}{% endblock %}",
            child_txt="{% extends parent %}{% block b %}!{% endblock %}",
        )
        assert env.get_template("child.txt").render(parent="a.txt") == "A!"

    def test_super_without_parent(self, env: Environment) -> None:
        tmpl = env.from_string("{% block a %}{{ super() }}{% endblock %}")
        with pytest.raises(TemplateRuntimeError, match="no parent block exists"):
            tmpl.render()

    def test_super_outside_block(self, env: Environment) -> None:
        with pytest.raises(TemplateRuntimeError, match="cannot super outside of block"):
            env.from_string("{{ super() }}").render()

    def test_cycle_detected(self) -> None:
        env = _env(
            a_txt='{% extends "b.txt" %}',
            b_txt='{% extends "a.txt" %}',
        )
        with pytest.raises(TemplateRuntimeError, match="cycle in template inheritance"):
            env.get_template("a.txt").render()

    def test_missing_parent(self) -> None:
        env = _env(child_txt='{% extends "nope.txt" %}')
        with pytest.raises(TemplateNotFoundError):
            env.get_template("child.txt").render()

    def test_extends_twice(self) -> None:
        env = _env(
            a_txt="a",
            child_txt='{% extends "a.txt" %}{% extends "a.txt" %}',
        )
        with pytest.raises(TemplateRuntimeError, match="extend a second time"):
            env.get_template("child.txt").render()


class TestInclude:
    """``{% include %}``."""

    def test_include(self, env_with_loader: Environment) -> None:
        tmpl = env_with_loader.from_string('[{% include "partial.txt" %}]')
        assert tmpl.render(name="X") == "[<p>Partial X</p>]"

    def test_include_shares_locals(self, env_with_loader: Environment) -> None:
        tmpl = env_with_loader.from_string('{% set name = "Y" %}{% include "partial.txt" %}')
        assert tmpl.render() == "<p>Partial Y</p>"

    def test_include_inside_loop(self, env_with_loader: Environment) -> None:
        tmpl = env_with_loader.from_string(
            '{% for name in ["a", "b"] %}{% include "partial.txt" %}{% endfor %}'
        )
        assert tmpl.render() == "<p>Partial a</p><p>Partial b</p>"

    def test_context_markers_accepted(self, env_with_loader: Environment) -> None:
        tmpl = env_with_loader.from_string('{% include "partial.txt" with context %}')
        assert tmpl.render(name="Z") == "<p>Partial Z</p>"

    def test_first_existing_choice(self, env_with_loader: Environment) -> None:
        tmpl = env_with_loader.from_string('{% include ["nope.txt", "partial.txt"] %}')
        assert tmpl.render(name="Q") == "<p>Partial Q</p>"

    def test_ignore_missing(self, env_with_loader: Environment) -> None:
        tmpl = env_with_loader.from_string('[{% include "nope.txt" ignore missing %}]')
        assert tmpl.render() == "[]"

    def test_missing_raises(self, env_with_loader: Environment) -> None:
        tmpl = env_with_loader.from_string('{% include "nope.txt" %}')
        with pytest.raises(TemplateNotFoundError, match='non-existing template "nope.txt"'):
            tmpl.render()

    def test_missing_choices_raise(self, env_with_loader: Environment) -> None:
        tmpl = env_with_loader.from_string('{% include ["a.txt", "b.txt"] %}')
        with pytest.raises(TemplateNotFoundError, match="none of which existed"):
            tmpl.render()

    def test_error_in_included_template(self) -> None:
        env = _env(bad_txt="line one\n{{ 1 + 'a' }}")
        tmpl = env.from_string('{% include "bad.txt" %}')
        with pytest.raises(TemplateRuntimeError) as exc_info:
            tmpl.render()
        err = exc_info.value
        assert err.kind is ErrorKind.BAD_INCLUDE
        assert 'error in "bad.txt"' in str(err)
        cause = err.__cause__
        assert isinstance(cause, TemplateRuntimeError)
        assert cause.kind is ErrorKind.INVALID_OPERATION
        assert cause.name == "bad.txt"
        assert cause.lineno == 2

    def test_included_template_uses_own_escaping(self) -> None:
        env = _env(
            frag_html="{{ v }}",
            page_txt='{{ v }}|{% include "frag.html" %}',
        )
        assert env.get_template("page.txt").render(v="<") == "<|&lt;"

    def test_template_name_captured_by_macro(self) -> None:
        env = _env(inc_txt="ok")
        tmpl = env.from_string(
            "{% set t = 'inc.txt' %}{% macro m() %}{% include t %}{% endmacro %}{{ m() }}"
        )
        assert tmpl.render() == "ok"

    def test_self_include_hits_recursion_limit(self) -> None:
        env = _env(loop_txt="x{% include 'loop.txt' %}")
        with pytest.raises(TemplateRuntimeError) as exc_info:
            env.get_template("loop.txt").render()
        err: BaseException = exc_info.value
        assert err.kind is ErrorKind.BAD_INCLUDE
        while err.__cause__ is not None:
            err = err.__cause__
        assert isinstance(err, TemplateRuntimeError)
        assert "recursion limit exceeded" in str(err)


class TestImport:
    """``{% import %}`` and ``{% from ... import %}``."""

    def test_import_as_namespace(self, env_with_loader: Environment) -> None:
        tmpl = env_with_loader.from_string(
            '{% import "macros.txt" as m %}{{ m.greet("A") }} {{ m.add(1, 2) }} {{ m.answer }}'
        )
        assert tmpl.render() == "Hello A 3 42"

    def test_from_import(self, env_with_loader: Environment) -> None:
        tmpl = env_with_loader.from_string(
            '{% from "macros.txt" import greet, add as plus %}{{ greet("A") }} {{ plus(1, 2) }}'
        )
        assert tmpl.render() == "Hello A 3"

    def test_from_import_with_context(self, env_with_loader: Environment) -> None:
        tmpl = env_with_loader.from_string(
            '{% from "macros.txt" import answer with context %}{{ answer }}'
        )
        assert tmpl.render() == "42"

    def test_import_produces_no_output(self) -> None:
        env = _env(lib_txt="noise{% macro m() %}ok{% endmacro %}")
        tmpl = env.from_string('[{% import "lib.txt" as lib %}]{{ lib.m() }}')
        assert tmpl.render() == "[]ok"

    def test_imported_names_stay_scoped(self, env_with_loader: Environment) -> None:
        tmpl = env_with_loader.from_string('{% import "macros.txt" as m %}[{{ greet }}]')
        assert tmpl.render() == "[]"

    def test_import_missing_template(self, env_with_loader: Environment) -> None:
        tmpl = env_with_loader.from_string('{% import "nope.txt" as m %}')
        with pytest.raises(TemplateNotFoundError):
            tmpl.render()
