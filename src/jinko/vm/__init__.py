"""Virtual machine executing compiled templates."""

from jinko.vm.core import Vm, derive_auto_escape
from jinko.vm.loop import Loop
from jinko.vm.macro import Macro
from jinko.vm.output import Output
from jinko.vm.state import BlockStack, State

__all__ = [
    "BlockStack",
    "Loop",
    "Macro",
    "Output",
    "State",
    "Vm",
    "derive_auto_escape",
]
