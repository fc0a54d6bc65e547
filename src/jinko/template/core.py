"""Template: compiled instructions ready for rendering.

The Template class wraps the instruction buffers produced by the code
generator and provides the ``render()`` API. Templates are immutable
after construction; every render builds its own VM state.

Architecture:
    ```
    Template
    ├── environment                 # Owning Environment
    ├── _instructions: Instructions # Top-level instructions
    ├── _blocks: dict[str, ...]     # Named block bodies
    ├── _ast: TemplateNode          # Preserved for introspection
    └── _name, _source              # For error messages
    ```

Rendering:
    ```python
    chunks = []
    Vm(env).eval(instructions, Value.from_python(ctx), blocks,
                 Output(chunks.append), initial_auto_escape)
    return "".join(chunks)
    ```

Thread-Safety:
- Templates are immutable after construction
- ``render()`` creates only local state (operand stack, frames, chunks)
- Multiple threads can call ``render()`` concurrently

"""

from __future__ import annotations

import io
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from jinko.compiler import CodeGenerator
from jinko.environment.escape import AutoEscape
from jinko.template.introspection import TemplateIntrospectionMixin
from jinko.value import Value
from jinko.vm import Output, Vm

if TYPE_CHECKING:
    from collections.abc import Callable

    from jinko.compiler.instructions import Instructions
    from jinko.environment.core import Environment
    from jinko.nodes import Expr
    from jinko.nodes import Template as TemplateNode


def _make_root(args: tuple[Any, ...], kwargs: dict[str, Any]) -> Value:
    """Build the root context value from render arguments."""
    if len(args) > 1:
        raise TypeError(
            f"render() takes at most 1 positional argument (a dict), got {len(args)}"
        )
    if args:
        (base,) = args
        if isinstance(base, Value):
            if kwargs:
                raise TypeError("render() cannot combine a Value context with keyword arguments")
            return base
        if base is None:
            base = {}
        if not isinstance(base, Mapping):
            raise TypeError(
                f"render() positional argument must be a mapping, got {type(base).__name__}"
            )
        ctx = dict(base)
        ctx.update(kwargs)
        return Value.from_python(ctx)
    return Value.from_python(kwargs)


def _is_binary(stream: Any) -> bool:
    if isinstance(stream, (io.RawIOBase, io.BufferedIOBase)):
        return True
    return "b" in getattr(stream, "mode", "")


class Template(TemplateIntrospectionMixin):
    """Compiled template ready for rendering.

    Attributes:
        name: Template name (for error messages and auto-escape)
        environment: The Environment the template was compiled by
        initial_auto_escape: Escape mode a render starts in

    Methods:
        render(**context): Render to a string
        render_to(stream, **context): Render into a text or binary stream
        undeclared_variables(nested=False): Names the context must provide

    Example:
            >>> from jinko import Environment
            >>> env = Environment()
            >>> t = env.from_string("Hello, {{ name | upper }}!")
            >>> t.render(name="World")
            'Hello, WORLD!'

            >>> t.render({"name": "World"})  # Dict context also works
            'Hello, WORLD!'

    """

    __slots__ = (
        "_ast",
        "_blocks",
        "_instructions",
        "_name",
        "_source",
        "_undeclared_cache",
        "environment",
        "initial_auto_escape",
    )

    def __init__(
        self,
        env: Environment,
        name: str,
        source: str,
        instructions: Instructions,
        blocks: dict[str, Instructions],
        initial_auto_escape: AutoEscape,
        ast: TemplateNode,
    ):
        self.environment = env
        self._name = name
        self._source = source
        self._instructions = instructions
        self._blocks = blocks
        self.initial_auto_escape = initial_auto_escape
        self._ast = ast
        self._undeclared_cache: dict[bool, frozenset[str]] = {}

    @property
    def name(self) -> str:
        return self._name

    @property
    def source(self) -> str:
        return self._source

    @property
    def instructions(self) -> Instructions:
        return self._instructions

    @property
    def blocks(self) -> dict[str, Instructions]:
        return self._blocks

    def render(self, *args: Any, **kwargs: Any) -> str:
        """Render template with given context.

        Args:
            *args: Single dict (or `Value`) of context variables
            **kwargs: Context variables as keyword arguments

        Returns:
            Rendered template as string

        Raises:
            TemplateError: Subclass matching the failure, with the
                template name and line attached.

        Example:
            >>> t.render(name="World")
            'Hello, World!'
            >>> t.render({"name": "World"})
            'Hello, World!'
        """
        chunks: list[str] = []
        self._render(chunks.append, _make_root(args, kwargs))
        return "".join(chunks)

    def render_to(self, stream: Any, *args: Any, **kwargs: Any) -> None:
        """Render into ``stream``.

        Text streams receive ``str`` chunks; binary streams (``BytesIO``,
        files opened in ``"wb"`` mode) receive UTF-8 encoded bytes.

        Example:
            >>> buf = io.StringIO()
            >>> t.render_to(buf, name="World")
            >>> buf.getvalue()
            'Hello, World!'
        """
        root = _make_root(args, kwargs)
        if _is_binary(stream):
            write = stream.write

            def _write(text: str) -> None:
                write(text.encode("utf-8"))

            self._render(_write, root)
        else:
            self._render(stream.write, root)

    def _render(self, write: Callable[[str], object], root: Value) -> None:
        Vm(self.environment).eval(
            self._instructions,
            root,
            self._blocks,
            Output(write),
            self.initial_auto_escape,
        )

    def __repr__(self) -> str:
        return f"<Template {self._name}>"


class Expression:
    """A compiled standalone expression.

    Created by `Environment.compile_expression`; evaluates to a native
    Python value.

    Example:
            >>> expr = env.compile_expression("user.age >= 18")
            >>> expr.eval(user={"age": 21})
            True

    """

    __slots__ = ("_instructions", "environment")

    def __init__(self, env: Environment, expr: Expr):
        self.environment = env
        gen = CodeGenerator("<expression>")
        gen.compile_expr(expr)
        self._instructions, _ = gen.finish()

    def eval_value(self, *args: Any, **kwargs: Any) -> Value:
        """Evaluate and return the result as a template `Value`."""
        chunks: list[str] = []
        rv = Vm(self.environment).eval(
            self._instructions,
            _make_root(args, kwargs),
            {},
            Output(chunks.append),
            AutoEscape.NONE,
        )
        assert rv is not None
        return rv

    def eval(self, *args: Any, **kwargs: Any) -> Any:
        """Evaluate against a context; undefined becomes None."""
        return self.eval_value(*args, **kwargs).to_python()

    def __repr__(self) -> str:
        return f"<Expression {self._instructions.name}>"
