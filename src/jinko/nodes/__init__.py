"""AST node types for jinko templates.

Nodes are frozen, slotted dataclasses. Expressions derive from `Expr`,
statements from `Stmt`; both carry a source `Span`.
"""

from jinko.nodes.base import Expr, Node, Stmt
from jinko.nodes.control_flow import AutoEscape, FilterBlock, ForLoop, IfCond, WithBlock
from jinko.nodes.expressions import (
    BinOp,
    BinOpKind,
    Call,
    Const,
    Filter,
    GetAttr,
    GetItem,
    IfExpr,
    Kwargs,
    List,
    Map,
    Slice,
    Test,
    UnaryOp,
    UnaryOpKind,
    Var,
)
from jinko.nodes.functions import CallBlock, Do, Macro
from jinko.nodes.output import EmitExpr, EmitRaw, Template
from jinko.nodes.structure import Block, Extends, FromImport, Import, Include
from jinko.nodes.variables import Set, SetBlock

__all__ = [
    "AutoEscape",
    "BinOp",
    "BinOpKind",
    "Block",
    "Call",
    "CallBlock",
    "Const",
    "Do",
    "EmitExpr",
    "EmitRaw",
    "Expr",
    "Extends",
    "Filter",
    "FilterBlock",
    "ForLoop",
    "FromImport",
    "GetAttr",
    "GetItem",
    "IfCond",
    "IfExpr",
    "Import",
    "Include",
    "Kwargs",
    "List",
    "Macro",
    "Map",
    "Node",
    "Set",
    "SetBlock",
    "Slice",
    "Stmt",
    "Template",
    "Test",
    "UnaryOp",
    "UnaryOpKind",
    "Var",
    "WithBlock",
]
