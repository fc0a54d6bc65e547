"""Compiled template and expression handles ready for rendering."""

from jinko.template.core import Expression, Template

__all__ = ["Expression", "Template"]
