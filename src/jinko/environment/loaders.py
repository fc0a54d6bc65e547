"""Template loaders.

A loader supplies template source to the `Environment`. Any object with
a ``get_source(name)`` method returning ``(source, filename)`` works;
missing templates raise `TemplateNotFoundError`.

Built-in Loaders:
- `FileSystemLoader`: load from one or more directories
- `DictLoader`: load from an in-memory mapping (tests, embedded templates)
- `FunctionLoader`: wrap a callable
- `ChoiceLoader`: try several loaders in order

Custom Loaders:
    ```python
    class DatabaseLoader:
        def get_source(self, name: str) -> tuple[str, str | None]:
            row = db.query("SELECT source FROM templates WHERE name = ?", name)
            if not row:
                raise TemplateNotFoundError.for_name(name)
            return row.source, f"db://{name}"
    ```

"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Protocol

from jinko.environment.exceptions import TemplateNotFoundError


class Loader(Protocol):
    def get_source(self, name: str) -> tuple[str, str | None]: ...


class FileSystemLoader:
    """Load templates from filesystem directories.

    Template names always use ``/`` as separator. Names with a segment
    that starts with a dot or contains a backslash are never loaded, so
    ``../secret`` and ``.git/config`` are reported as not found.

    Search Order:
        Directories are searched in order; the first match wins:
            ```python
            loader = FileSystemLoader(["themes/custom/", "themes/default/"])
            ```

    Example:
            >>> loader = FileSystemLoader("templates/")
            >>> source, filename = loader.get_source("pages/about.html")
            >>> print(filename)
            'templates/pages/about.html'

    """

    __slots__ = ("_encoding", "_paths")

    def __init__(
        self,
        paths: str | Path | list[str | Path],
        encoding: str = "utf-8",
    ):
        if isinstance(paths, (str, Path)):
            paths = [paths]
        self._paths = [Path(p) for p in paths]
        self._encoding = encoding

    @staticmethod
    def _segments(name: str) -> list[str] | None:
        segments = name.split("/")
        for segment in segments:
            if segment.startswith(".") or "\\" in segment:
                return None
        return segments

    def get_source(self, name: str) -> tuple[str, str]:
        segments = self._segments(name)
        if segments is not None:
            for base in self._paths:
                path = base.joinpath(*segments)
                if path.is_file():
                    return path.read_text(self._encoding), str(path)
        raise TemplateNotFoundError.for_name(name)

    def list_templates(self) -> list[str]:
        templates = set()
        for base in self._paths:
            if not base.is_dir():
                continue
            for path in base.rglob("*"):
                rel = path.relative_to(base).as_posix()
                if path.is_file() and self._segments(rel) is not None:
                    templates.add(rel)
        return sorted(templates)


class DictLoader:
    """Load templates from an in-memory mapping of name to source.

    Example:
            >>> loader = DictLoader({
            ...     "base.html": "<html>{% block content %}{% endblock %}</html>",
            ...     "page.html": "{% extends 'base.html' %}{% block content %}Hi{% endblock %}",
            ... })
            >>> Environment(loader=loader).get_template("page.html").render()
            '<html>Hi</html>'

    """

    __slots__ = ("_mapping",)

    def __init__(self, mapping: Mapping[str, str]):
        self._mapping = mapping

    def get_source(self, name: str) -> tuple[str, None]:
        try:
            return self._mapping[name], None
        except KeyError:
            raise TemplateNotFoundError.for_name(name) from None

    def list_templates(self) -> list[str]:
        return sorted(self._mapping)


class FunctionLoader:
    """Wrap a callable as a template loader.

    The callable takes a template name and returns the source, a
    ``(source, filename)`` tuple, or None if the template does not exist.

    Example:
            >>> def load(name):
            ...     if name == "greeting.txt":
            ...         return "Hello, {{ name }}!"
            ...     return None
            >>> env = Environment(loader=FunctionLoader(load))
            >>> env.get_template("greeting.txt").render(name="World")
            'Hello, World!'

    """

    __slots__ = ("_load_func",)

    def __init__(self, load_func: Callable[[str], str | tuple[str, str | None] | None]):
        self._load_func = load_func

    def get_source(self, name: str) -> tuple[str, str | None]:
        result = self._load_func(name)
        if result is None:
            raise TemplateNotFoundError.for_name(name)
        if isinstance(result, str):
            return result, None
        return result


class ChoiceLoader:
    """Try multiple loaders in order, returning the first match."""

    __slots__ = ("_loaders",)

    def __init__(self, loaders: list[Loader]):
        self._loaders = loaders

    def get_source(self, name: str) -> tuple[str, str | None]:
        for loader in self._loaders:
            try:
                return loader.get_source(name)
            except TemplateNotFoundError:
                continue
        raise TemplateNotFoundError.for_name(name)
