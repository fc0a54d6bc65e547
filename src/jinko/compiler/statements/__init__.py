"""Statement compilation for the jinko code generator.

The statements package is organized into logical modules:
- basic: template root, raw text and expression output
- control_flow: for loops, conditionals, with, autoescape and filter blocks
- variables: set, set blocks and assignment targets
- template_structure: block, extends, include, import and from-import
- functions: macros, call blocks and do

Uses inline TYPE_CHECKING declarations for host attributes.
"""

from __future__ import annotations

from jinko.compiler.statements.basic import BasicStatementMixin
from jinko.compiler.statements.control_flow import ControlFlowMixin
from jinko.compiler.statements.functions import FunctionCompilationMixin
from jinko.compiler.statements.template_structure import TemplateStructureMixin
from jinko.compiler.statements.variables import VariableAssignmentMixin


class StatementCompilationMixin(
    BasicStatementMixin,
    ControlFlowMixin,
    VariableAssignmentMixin,
    TemplateStructureMixin,
    FunctionCompilationMixin,
):
    """Combined mixin for compiling all statement types.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks in each individual mixin.
    """


__all__ = [
    "BasicStatementMixin",
    "ControlFlowMixin",
    "FunctionCompilationMixin",
    "StatementCompilationMixin",
    "TemplateStructureMixin",
    "VariableAssignmentMixin",
]
