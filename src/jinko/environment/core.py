"""Environment: the central configuration and template registry.

An `Environment` holds everything renders share: the template table,
the loader and its compiled-template cache, the filter/test registries,
globals and the undefined and auto-escape policies.

Example:
    >>> from jinko import Environment, DictLoader
    >>> env = Environment(loader=DictLoader({"hello.txt": "Hello {{ name }}!"}))
    >>> env.get_template("hello.txt").render(name="World")
    'Hello World!'

Thread-Safety:
    Rendering only reads from the environment. Registries are updated
    copy-on-write, but adding templates, filters or globals while other
    threads render is the caller's responsibility.

"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from jinko.compiler import generate
from jinko.environment.escape import AutoEscape, default_auto_escape
from jinko.environment.exceptions import TemplateNotFoundError
from jinko.environment.filters import DEFAULT_FILTERS
from jinko.environment.globals import DEFAULT_GLOBALS
from jinko.environment.registry import FilterRegistry
from jinko.environment.tests import DEFAULT_TESTS
from jinko.environment.undefined import UndefinedBehavior
from jinko.lexer import DEFAULT_SYNTAX, SyntaxConfig
from jinko.parser import parse, parse_expr
from jinko.template import Expression, Template
from jinko.value import Value

if TYPE_CHECKING:
    from jinko.environment.loaders import Loader

logger = logging.getLogger(__name__)

AutoEscapeSetting = bool | Callable[[str], AutoEscape]


class Environment:
    """Central configuration for template compilation and rendering.

    Attributes:
        loader: Optional template source loader
        undefined_behavior: How undefined values are handled
        syntax: Delimiter configuration
        keep_trailing_newline: Keep a template's final newline
        debug: Keep template source for error snippets
        globals: Variables available in all templates

    Methods:
        get_template(name): Load a registered or loader-provided template
        from_string(source): Compile a template from a string
        add_template(name, source): Register a named template
        compile_expression(source): Compile a standalone expression
        add_filter / add_test / add_global / add_function: Registration

    Auto-Escaping:
        The ``autoescape`` argument is either a bool or a callable that
        maps a template name to an `AutoEscape` mode. By default the mode
        follows the file extension (``.html`` escapes HTML, ``.json``
        serializes as JSON, everything else is left as is).

    Example:
            >>> env = Environment(undefined=UndefinedBehavior.STRICT)
            >>> env.add_filter("double", lambda x: x * 2)
            >>> env.from_string("{{ n | double }}").render(n=21)
            '42'

    """

    def __init__(
        self,
        loader: Loader | None = None,
        *,
        undefined: UndefinedBehavior = UndefinedBehavior.LENIENT,
        autoescape: AutoEscapeSetting = default_auto_escape,
        syntax: SyntaxConfig = DEFAULT_SYNTAX,
        keep_trailing_newline: bool = False,
        debug: bool = True,
        filters: dict[str, Callable[..., Any]] | None = None,
        tests: dict[str, Callable[..., Any]] | None = None,
        globals: dict[str, Any] | None = None,
    ):
        self.loader = loader
        self.undefined_behavior = undefined
        self.syntax = syntax
        self.keep_trailing_newline = keep_trailing_newline
        self.debug = debug
        self._auto_escape_callback = self._resolve_auto_escape(autoescape)

        self._filters: dict[str, Callable[..., Any]] = {**DEFAULT_FILTERS, **(filters or {})}
        self._tests: dict[str, Callable[..., Any]] = {**DEFAULT_TESTS, **(tests or {})}
        self.globals: dict[str, Any] = {**DEFAULT_GLOBALS, **(globals or {})}

        self._templates: dict[str, Template] = {}
        self._cache: dict[str, Template] = {}

    @staticmethod
    def _resolve_auto_escape(setting: AutoEscapeSetting) -> Callable[[str], AutoEscape]:
        if setting is True:
            return lambda _name: AutoEscape.HTML
        if setting is False:
            return lambda _name: AutoEscape.NONE
        if not callable(setting):
            raise TypeError(f"autoescape must be a bool or a callable, got {setting!r}")
        return setting

    # ─────────────────────────────────────────────────────────────────────
    # Registries
    # ─────────────────────────────────────────────────────────────────────

    @property
    def filters(self) -> FilterRegistry:
        """Dict-like view of the registered filters."""
        return FilterRegistry(self, "_filters")

    @property
    def tests(self) -> FilterRegistry:
        """Dict-like view of the registered tests."""
        return FilterRegistry(self, "_tests")

    def add_filter(self, name: str, func: Callable[..., Any]) -> None:
        self.filters[name] = func

    def add_test(self, name: str, func: Callable[..., Any]) -> None:
        self.tests[name] = func

    def add_global(self, name: str, value: Any) -> None:
        self.globals[name] = value

    def add_function(self, name: str, func: Callable[..., Any]) -> None:
        """Register a global function callable as ``{{ name(...) }}``."""
        if not callable(func):
            raise TypeError(f"function {name!r} must be callable")
        self.globals[name] = func

    def get_filter(self, name: str) -> Callable[..., Any] | None:
        return self._filters.get(name)

    def get_test(self, name: str) -> Callable[..., Any] | None:
        return self._tests.get(name)

    def get_global(self, name: str) -> Value | None:
        """Look up a global, converted to a template value."""
        try:
            value = self.globals[name]
        except KeyError:
            return None
        return Value.from_python(value)

    # ─────────────────────────────────────────────────────────────────────
    # Templates
    # ─────────────────────────────────────────────────────────────────────

    def initial_auto_escape(self, name: str) -> AutoEscape:
        """Auto-escape mode a template named ``name`` starts in."""
        return self._auto_escape_callback(name)

    def add_template(self, name: str, source: str) -> Template:
        """Compile ``source`` and register it as ``name``.

        Registered templates take precedence over the loader.

        Raises:
            TemplateSyntaxError: If the source does not parse.
        """
        tmpl = self._compile(source, name)
        self._templates[name] = tmpl
        return tmpl

    def remove_template(self, name: str) -> None:
        self._templates.pop(name, None)
        self._cache.pop(name, None)

    def get_template(self, name: str) -> Template:
        """Return the template registered or loadable as ``name``.

        Raises:
            TemplateNotFoundError: If no template has that name.
            TemplateSyntaxError: If a loaded template does not parse.
        """
        tmpl = self._templates.get(name)
        if tmpl is not None:
            return tmpl
        tmpl = self._cache.get(name)
        if tmpl is not None:
            return tmpl
        if self.loader is None:
            raise TemplateNotFoundError.for_name(name)

        logger.debug(f"Template cache miss for {name!r}, loading")
        source, _filename = self.loader.get_source(name)
        tmpl = self._compile(source, name)
        self._cache[name] = tmpl
        return tmpl

    def from_string(self, source: str, name: str = "<string>") -> Template:
        """Compile a template that is not registered by name."""
        return self._compile(source, name)

    def compile_expression(self, source: str) -> Expression:
        """Compile a standalone expression such as ``user.age >= 18``.

        Example:
            >>> expr = env.compile_expression("a + b")
            >>> expr.eval(a=1, b=2)
            3
        """
        return Expression(self, parse_expr(source, self.syntax))

    def clear_cache(self) -> None:
        """Drop templates compiled from the loader."""
        self._cache.clear()

    def list_templates(self) -> list[str]:
        names = set(self._templates)
        list_loader = getattr(self.loader, "list_templates", None)
        if list_loader is not None:
            names.update(list_loader())
        return sorted(names)

    def _compile(self, source: str, name: str) -> Template:
        ast = parse(
            source,
            name,
            self.syntax,
            keep_trailing_newline=self.keep_trailing_newline,
        )
        instructions, blocks = generate(ast, name, source if self.debug else None)
        logger.debug(
            f"Compiled {name!r}: {len(instructions)} instructions, "
            f"blocks {sorted(blocks)}"
        )
        return Template(
            self,
            name,
            source,
            instructions,
            blocks,
            self.initial_auto_escape(name),
            ast,
        )

    def __repr__(self) -> str:
        return (
            f"<Environment undefined={self.undefined_behavior.name} "
            f"templates={len(self._templates)} cached={len(self._cache)}>"
        )
