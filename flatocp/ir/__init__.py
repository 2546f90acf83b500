"""
Intermediate representation of model variables and expressions.
"""

from flatocp.ir.types import Alias, Causality, Variability, VariableRole
from flatocp.ir.names import (
    QualifiedNamePart,
    canonical_name,
    format_qualified_name,
    parse_qualified_name,
)
from flatocp.ir.variable import Variable
from flatocp.ir.expr import Expr, ExprKind, binary, der, literal, unary, var
from flatocp.ir.registry import VariableRegistry

__all__ = [
    # Types
    "Alias",
    "Causality",
    "Variability",
    "VariableRole",
    # Names
    "QualifiedNamePart",
    "canonical_name",
    "format_qualified_name",
    "parse_qualified_name",
    # Core structures
    "Variable",
    "VariableRegistry",
    "Expr",
    "ExprKind",
    # Expression builders
    "binary",
    "der",
    "literal",
    "unary",
    "var",
]
