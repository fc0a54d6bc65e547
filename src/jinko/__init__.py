"""jinko: a Jinja2-compatible template engine built on a bytecode VM.

Quickstart:
    >>> from jinko import Environment
    >>> env = Environment()
    >>> template = env.from_string("Hello, {{ name }}!")
    >>> template.render(name="World")
    'Hello, World!'

Named templates:
    >>> from jinko import Environment, DictLoader
    >>> env = Environment(loader=DictLoader({
    ...     "base.html": "<title>{% block title %}{% endblock %}</title>",
    ...     "page.html": "{% extends 'base.html' %}{% block title %}Hi{% endblock %}",
    ... }))
    >>> env.get_template("page.html").render()
    '<title>Hi</title>'

Architecture:
Template Source → Lexer → Parser → AST → Code Generator → Instructions → VM

Pipeline stages:
1. **Lexer**: Tokenizes template source into a token stream
2. **Parser**: Builds an immutable AST from tokens
3. **Code Generator**: Lowers the AST to a flat instruction buffer
4. **VM**: Executes instructions against a context with an operand stack

Undefined Values:
Lenient by default: ``{{ missing }}`` renders as an empty string. Use
``Environment(undefined=UndefinedBehavior.STRICT)`` to make undefined
values an error, or ``CHAINABLE`` to allow ``{{ missing.a.b }}``.

"""

from jinko._types import Span, Token, TokenType
from jinko.environment import (
    AutoEscape,
    ChoiceLoader,
    DictLoader,
    Environment,
    ErrorKind,
    FileSystemLoader,
    FunctionLoader,
    Markup,
    Namespace,
    TemplateError,
    TemplateNotFoundError,
    TemplateRuntimeError,
    TemplateSyntaxError,
    UndefinedBehavior,
    UndefinedError,
)
from jinko.lexer import DEFAULT_SYNTAX, SyntaxConfig
from jinko.template import Expression, Template
from jinko.value import Value, pass_state, pass_values

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_SYNTAX",
    "AutoEscape",
    "ChoiceLoader",
    "DictLoader",
    "Environment",
    "ErrorKind",
    "Expression",
    "FileSystemLoader",
    "FunctionLoader",
    "Markup",
    "Namespace",
    "Span",
    "SyntaxConfig",
    "Template",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateRuntimeError",
    "TemplateSyntaxError",
    "Token",
    "TokenType",
    "UndefinedBehavior",
    "UndefinedError",
    "Value",
    "__version__",
    "pass_state",
    "pass_values",
]
