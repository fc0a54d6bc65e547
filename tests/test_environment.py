"""Tests for the Environment, loaders and the Template API."""

from __future__ import annotations

import io
import logging

import pytest

from jinko import (
    AutoEscape,
    ChoiceLoader,
    DictLoader,
    Environment,
    Expression,
    FileSystemLoader,
    FunctionLoader,
    SyntaxConfig,
    Template,
    TemplateNotFoundError,
    TemplateSyntaxError,
    UndefinedBehavior,
    Value,
)


class TestDictLoader:
    """In-memory loading."""

    def test_get_source(self) -> None:
        loader = DictLoader({"a.txt": "A"})
        assert loader.get_source("a.txt") == ("A", None)

    def test_missing(self) -> None:
        with pytest.raises(TemplateNotFoundError, match='template "b.txt" does not exist'):
            DictLoader({}).get_source("b.txt")

    def test_list_templates(self) -> None:
        assert DictLoader({"b": "", "a": ""}).list_templates() == ["a", "b"]


class TestFunctionLoader:
    """Callable-backed loading."""

    def test_string_result(self) -> None:
        env = Environment(loader=FunctionLoader(lambda name: f"name={name}"))
        assert env.get_template("x").render() == "name=x"

    def test_tuple_result(self) -> None:
        loader = FunctionLoader(lambda name: ("src", f"/virtual/{name}"))
        assert loader.get_source("y") == ("src", "/virtual/y")

    def test_none_means_missing(self) -> None:
        env = Environment(loader=FunctionLoader(lambda name: None))
        with pytest.raises(TemplateNotFoundError):
            env.get_template("x")


class TestChoiceLoader:
    """Fallback across loaders."""

    def test_first_match_wins(self) -> None:
        loader = ChoiceLoader(
            [DictLoader({"a.txt": "first"}), DictLoader({"a.txt": "second", "b.txt": "b"})]
        )
        assert loader.get_source("a.txt") == ("first", None)
        assert loader.get_source("b.txt") == ("b", None)

    def test_none_match(self) -> None:
        loader = ChoiceLoader([DictLoader({}), FunctionLoader(lambda name: None)])
        with pytest.raises(TemplateNotFoundError):
            loader.get_source("x")


class TestFileSystemLoader:
    """Loading from directories."""

    def test_loads_nested_file(self, tmp_path) -> None:
        (tmp_path / "pages").mkdir()
        (tmp_path / "pages" / "about.txt").write_text("About {{ who }}", encoding="utf-8")
        env = Environment(loader=FileSystemLoader(tmp_path))
        assert env.get_template("pages/about.txt").render(who="us") == "About us"

    def test_filename_reported(self, tmp_path) -> None:
        (tmp_path / "a.txt").write_text("x", encoding="utf-8")
        source, filename = FileSystemLoader(str(tmp_path)).get_source("a.txt")
        assert source == "x"
        assert filename == str(tmp_path / "a.txt")

    def test_search_order(self, tmp_path) -> None:
        custom = tmp_path / "custom"
        default = tmp_path / "default"
        custom.mkdir()
        default.mkdir()
        (custom / "a.txt").write_text("custom", encoding="utf-8")
        (default / "a.txt").write_text("default", encoding="utf-8")
        (default / "b.txt").write_text("fallback", encoding="utf-8")
        loader = FileSystemLoader([custom, default])
        assert loader.get_source("a.txt")[0] == "custom"
        assert loader.get_source("b.txt")[0] == "fallback"

    def test_parent_and_hidden_segments_rejected(self, tmp_path) -> None:
        root = tmp_path / "root"
        root.mkdir()
        (tmp_path / "secret.txt").write_text("secret", encoding="utf-8")
        (root / ".hidden").write_text("hidden", encoding="utf-8")
        loader = FileSystemLoader(root)
        for name in ("../secret.txt", ".hidden", "a\\b.txt"):
            with pytest.raises(TemplateNotFoundError):
                loader.get_source(name)

    def test_directory_is_not_a_template(self, tmp_path) -> None:
        (tmp_path / "dir").mkdir()
        with pytest.raises(TemplateNotFoundError):
            FileSystemLoader(tmp_path).get_source("dir")

    def test_list_templates(self, tmp_path) -> None:
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "b.txt").write_text("", encoding="utf-8")
        (tmp_path / "a.txt").write_text("", encoding="utf-8")
        (tmp_path / ".git").mkdir()
        (tmp_path / ".git" / "config").write_text("", encoding="utf-8")
        loader = FileSystemLoader([tmp_path, tmp_path / "missing"])
        assert loader.list_templates() == ["a.txt", "sub/b.txt"]


class TestTemplateRegistry:
    """Named templates, caching and lookup order."""

    def test_add_template(self, env: Environment) -> None:
        tmpl = env.add_template("hello.txt", "Hello {{ name }}")
        assert env.get_template("hello.txt") is tmpl
        assert tmpl.render(name="A") == "Hello A"

    def test_add_template_syntax_error(self, env: Environment) -> None:
        with pytest.raises(TemplateSyntaxError):
            env.add_template("bad.txt", "{{ 1 + }}")
        with pytest.raises(TemplateNotFoundError):
            env.get_template("bad.txt")

    def test_registered_template_beats_loader(self) -> None:
        env = Environment(loader=DictLoader({"a.txt": "loader"}))
        env.add_template("a.txt", "registered")
        assert env.get_template("a.txt").render() == "registered"
        env.remove_template("a.txt")
        assert env.get_template("a.txt").render() == "loader"

    def test_loader_results_are_cached(self) -> None:
        calls: list[str] = []

        def load(name: str) -> str:
            calls.append(name)
            return "x"

        env = Environment(loader=FunctionLoader(load))
        first = env.get_template("a")
        assert env.get_template("a") is first
        assert calls == ["a"]
        env.clear_cache()
        assert env.get_template("a") is not first
        assert calls == ["a", "a"]

    def test_no_loader(self, env: Environment) -> None:
        with pytest.raises(TemplateNotFoundError, match='template "x.html" does not exist'):
            env.get_template("x.html")

    def test_list_templates(self) -> None:
        env = Environment(loader=DictLoader({"b.txt": "", "a.txt": ""}))
        env.add_template("c.txt", "")
        env.add_template("a.txt", "")
        assert env.list_templates() == ["a.txt", "b.txt", "c.txt"]

    def test_list_templates_without_loader(self, env: Environment) -> None:
        env.add_template("only.txt", "")
        assert env.list_templates() == ["only.txt"]

    def test_repr(self) -> None:
        env = Environment(loader=DictLoader({"a.txt": ""}), undefined=UndefinedBehavior.STRICT)
        env.add_template("x", "")
        env.get_template("a.txt")
        assert repr(env) == "<Environment undefined=STRICT templates=1 cached=1>"

    def test_cache_miss_is_logged(self, caplog) -> None:
        env = Environment(loader=DictLoader({"a.txt": "x"}))
        with caplog.at_level(logging.DEBUG, logger="jinko.environment.core"):
            env.get_template("a.txt")
            env.get_template("a.txt")
        misses = [r for r in caplog.records if "cache miss" in r.getMessage()]
        assert len(misses) == 1
        assert "'a.txt'" in misses[0].getMessage()
        assert any("Compiled 'a.txt'" in r.getMessage() for r in caplog.records)


class TestTemplateObject:
    """Template properties and render entry points."""

    def test_properties(self, env_with_loader: Environment) -> None:
        tmpl = env_with_loader.get_template("base.html")
        assert isinstance(tmpl, Template)
        assert tmpl.name == "base.html"
        assert tmpl.source.startswith("<html>")
        assert tmpl.environment is env_with_loader
        assert tmpl.initial_auto_escape is AutoEscape.HTML
        assert sorted(tmpl.blocks) == ["body", "head"]
        assert len(tmpl.instructions) > 0
        assert repr(tmpl) == "<Template base.html>"

    def test_render_with_mapping_and_kwargs(self, env: Environment) -> None:
        tmpl = env.from_string("{{ a }}{{ b }}")
        assert tmpl.render({"a": 1, "b": 2}, b=3) == "13"
        assert tmpl.render(None, a=4) == "4"

    def test_render_with_value(self, env: Environment) -> None:
        tmpl = env.from_string("{{ a }}")
        assert tmpl.render(Value.from_python({"a": "v"})) == "v"

    def test_render_argument_errors(self, env: Environment) -> None:
        tmpl = env.from_string("")
        with pytest.raises(TypeError):
            tmpl.render({}, {})
        with pytest.raises(TypeError):
            tmpl.render(Value.from_python({}), a=1)
        with pytest.raises(TypeError):
            tmpl.render([1, 2])

    def test_render_is_repeatable(self, env: Environment) -> None:
        tmpl = env.from_string("{% set x = (x or 0) + 1 %}{{ x }}")
        assert tmpl.render() == "1"
        assert tmpl.render() == "1"

    def test_render_to_text_stream(self, env: Environment) -> None:
        buf = io.StringIO()
        env.from_string("Hello {{ name }}").render_to(buf, name="Wörld")
        assert buf.getvalue() == "Hello Wörld"

    def test_render_to_binary_stream(self, env: Environment) -> None:
        buf = io.BytesIO()
        env.from_string("Hello {{ name }}").render_to(buf, {"name": "Wörld"})
        assert buf.getvalue() == "Hello Wörld".encode()

    def test_render_to_binary_file(self, env: Environment, tmp_path) -> None:
        path = tmp_path / "out.txt"
        with open(path, "wb") as f:
            env.from_string("ü").render_to(f)
        assert path.read_bytes() == "ü".encode()


class TestCompileExpression:
    """Standalone expressions."""

    def test_eval(self, env: Environment) -> None:
        expr = env.compile_expression("user.age >= 18")
        assert isinstance(expr, Expression)
        assert expr.eval(user={"age": 21}) is True
        assert expr.eval({"user": {"age": 5}}) is False

    def test_eval_native_types(self, env: Environment) -> None:
        assert env.compile_expression("[1, 2, x]").eval(x=3) == [1, 2, 3]
        assert env.compile_expression("'a' ~ 1").eval() == "a1"
        assert env.compile_expression("items | map('upper') | list").eval(items=["a"]) == ["A"]

    def test_undefined_becomes_none(self, env: Environment) -> None:
        assert env.compile_expression("missing").eval() is None

    def test_eval_value(self, env: Environment) -> None:
        rv = env.compile_expression("1 + 1").eval_value()
        assert isinstance(rv, Value)
        assert rv == Value.from_int(2)

    def test_syntax_errors(self, env: Environment) -> None:
        with pytest.raises(TemplateSyntaxError):
            env.compile_expression("1 +")
        with pytest.raises(TemplateSyntaxError, match="unexpected input after expression"):
            env.compile_expression("a b")

    def test_uses_environment_filters(self, env: Environment) -> None:
        env.add_filter("double", lambda n: n * 2)
        assert env.compile_expression("n | double").eval(n=4) == 8

    def test_repr(self, env: Environment) -> None:
        assert repr(env.compile_expression("1")) == "<Expression <expression>>"


class TestConfiguration:
    """Constructor options."""

    def test_trailing_newline_stripped_by_default(self, env: Environment) -> None:
        assert env.from_string("a\n").render() == "a"
        assert env.from_string("a\n\n").render() == "a\n"

    def test_keep_trailing_newline(self) -> None:
        env = Environment(keep_trailing_newline=True)
        assert env.from_string("a\n").render() == "a\n"

    def test_custom_syntax(self) -> None:
        syntax = SyntaxConfig(
            block_start="<%",
            block_end="%>",
            variable_start="${",
            variable_end="}",
            comment_start="<#",
            comment_end="#>",
        )
        env = Environment(syntax=syntax)
        tmpl = env.from_string("<% for x in xs %>${ x }<# note #><% endfor %> {{ raw }}")
        assert tmpl.render(xs=[1, 2]) == "12 {{ raw }}"

    def test_custom_syntax_expression(self) -> None:
        env = Environment(syntax=SyntaxConfig(variable_start="${", variable_end="}"))
        assert env.compile_expression("a + 1").eval(a=1) == 2

    def test_invalid_syntax_config(self) -> None:
        with pytest.raises(ValueError, match="distinct"):
            SyntaxConfig(block_start="{{")
        with pytest.raises(ValueError, match="empty"):
            SyntaxConfig(variable_end="")

    def test_undefined_behavior_attribute(self) -> None:
        env = Environment(undefined=UndefinedBehavior.CHAINABLE)
        assert env.undefined_behavior is UndefinedBehavior.CHAINABLE
        assert env.from_string("[{{ a.b.c }}]").render() == "[]"

    def test_debug_flag_keeps_source(self, env: Environment) -> None:
        assert env.debug is True
        assert env.from_string("x").instructions.source == "x"
        assert Environment(debug=False).from_string("x").instructions.source is None

    def test_initial_auto_escape(self, env: Environment) -> None:
        assert env.initial_auto_escape("a.html") is AutoEscape.HTML
        assert env.initial_auto_escape("a.txt") is AutoEscape.NONE
