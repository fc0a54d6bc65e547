"""Template introspection mixin.

Adds static analysis over the preserved AST to the Template class via
mixin inheritance.

"""

from __future__ import annotations

from typing import TYPE_CHECKING

from jinko.meta import find_undeclared

if TYPE_CHECKING:
    from jinko.compiler.instructions import Instructions
    from jinko.nodes import Template as TemplateNode


class TemplateIntrospectionMixin:
    """Mixin adding static analysis and introspection to Template.

    Requires the host class to define the following slots:
        _ast: TemplateNode
        _blocks: dict[str, Instructions]
        _undeclared_cache: dict[bool, frozenset[str]]

    """

    if TYPE_CHECKING:
        _ast: TemplateNode
        _blocks: dict[str, Instructions]
        _undeclared_cache: dict[bool, frozenset[str]]

    def undeclared_variables(self, nested: bool = False) -> set[str]:
        """Variables the template reads without assigning them first.

        These are the names a caller has to supply in the render context
        (or as globals). With ``nested`` set, attribute chains are kept
        as dotted paths.

        Example:
            >>> tmpl = env.from_string("{% set x = 1 %}{{ x }} {{ user.name }}")
            >>> tmpl.undeclared_variables()
            {'user'}
            >>> tmpl.undeclared_variables(nested=True)
            {'user.name'}

        Note:
            Names provided by globals (``range``, ``namespace``, ...) are
            reported too; the analysis does not consult the environment.
        """
        cached = self._undeclared_cache.get(nested)
        if cached is None:
            cached = frozenset(find_undeclared(self._ast, nested))
            self._undeclared_cache[nested] = cached
        return set(cached)

    def list_blocks(self) -> list[str]:
        """Names of the blocks this template defines, sorted."""
        return sorted(self._blocks)

    @property
    def block_names(self) -> list[str]:
        return self.list_blocks()
