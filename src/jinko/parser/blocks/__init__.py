"""Statement parsing mixins, one per statement family."""

from jinko.parser.blocks.control_flow import ControlFlowBlockParsingMixin
from jinko.parser.blocks.functions import FunctionBlockParsingMixin
from jinko.parser.blocks.template_structure import TemplateStructureBlockParsingMixin
from jinko.parser.blocks.variables import VariableBlockParsingMixin

__all__ = [
    "ControlFlowBlockParsingMixin",
    "FunctionBlockParsingMixin",
    "TemplateStructureBlockParsingMixin",
    "VariableBlockParsingMixin",
]
