"""Parser for jinko templates.

Turns template source into the AST defined in `jinko.nodes`.

Example:
    >>> from jinko.parser import parse
    >>> ast = parse("{% for x in items %}{{ x }}{% endfor %}", "list.txt")

"""

from jinko.parser.core import Parser, parse, parse_expr

__all__ = ["Parser", "parse", "parse_expr"]
