"""Environment, configuration and error types for jinko.

Re-exports the public symbols so that ``from jinko.environment import
Environment`` works without knowing the module layout.

"""

from jinko.environment.core import Environment
from jinko.environment.escape import AutoEscape, Markup, default_auto_escape, html_escape
from jinko.environment.exceptions import (
    ErrorKind,
    SourceSnippet,
    TemplateError,
    TemplateNotFoundError,
    TemplateRuntimeError,
    TemplateSyntaxError,
    UndefinedError,
    build_source_snippet,
)
from jinko.environment.globals import Namespace
from jinko.environment.loaders import ChoiceLoader, DictLoader, FileSystemLoader, FunctionLoader
from jinko.environment.registry import FilterRegistry
from jinko.environment.undefined import UndefinedBehavior

__all__ = [
    "AutoEscape",
    "ChoiceLoader",
    "DictLoader",
    "Environment",
    "ErrorKind",
    "FileSystemLoader",
    "FilterRegistry",
    "FunctionLoader",
    "Markup",
    "Namespace",
    "SourceSnippet",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateRuntimeError",
    "TemplateSyntaxError",
    "UndefinedBehavior",
    "UndefinedError",
    "build_source_snippet",
    "default_auto_escape",
    "html_escape",
]
