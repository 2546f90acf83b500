"""
Expression tree for model descriptions.

The model description encodes expressions as element trees tagged with a
fixed vocabulary of operator names (``Add``, ``Sub``, ``Der``, ``NoEvent`` ...).
They are read into immutable Expr nodes whose kind is one of the closed
ExprKind enumeration, so that every consumer can dispatch exhaustively on
the kind instead of on free-form strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Union

from flatocp.errors import ParseDomainError


class ExprKind(Enum):
    """Kinds of expression nodes."""

    # Leaf nodes
    REAL_LITERAL = auto()
    INTEGER_LITERAL = auto()
    IDENTIFIER = auto()  # Qualified variable name
    DER = auto()  # der(x)
    TIME = auto()  # Independent variable
    TIMED_VARIABLE = auto()  # x(t_k), value of a variable at a time point

    # Unary operations
    NEG = auto()
    SIN = auto()
    COS = auto()
    TAN = auto()
    ASIN = auto()
    ACOS = auto()
    ATAN = auto()
    EXP = auto()
    LOG = auto()
    SQRT = auto()

    # Binary operations
    ADD = auto()
    SUB = auto()
    MUL = auto()
    DIV = auto()
    POW = auto()
    LT = auto()
    GT = auto()

    # cond_1, value_1, cond_2, value_2, ..., default
    NO_EVENT = auto()


LEAF_KINDS = frozenset(
    {
        ExprKind.REAL_LITERAL,
        ExprKind.INTEGER_LITERAL,
        ExprKind.IDENTIFIER,
        ExprKind.DER,
        ExprKind.TIME,
        ExprKind.TIMED_VARIABLE,
    }
)

UNARY_KINDS = frozenset(
    {
        ExprKind.NEG,
        ExprKind.SIN,
        ExprKind.COS,
        ExprKind.TAN,
        ExprKind.ASIN,
        ExprKind.ACOS,
        ExprKind.ATAN,
        ExprKind.EXP,
        ExprKind.LOG,
        ExprKind.SQRT,
    }
)

BINARY_KINDS = frozenset(
    {
        ExprKind.ADD,
        ExprKind.SUB,
        ExprKind.MUL,
        ExprKind.DIV,
        ExprKind.POW,
        ExprKind.LT,
        ExprKind.GT,
    }
)

# Element names used by the model description
TAG_KINDS: dict[str, ExprKind] = {
    "Add": ExprKind.ADD,
    "Acos": ExprKind.ACOS,
    "Asin": ExprKind.ASIN,
    "Atan": ExprKind.ATAN,
    "Cos": ExprKind.COS,
    "Der": ExprKind.DER,
    "Div": ExprKind.DIV,
    "Exp": ExprKind.EXP,
    "Identifier": ExprKind.IDENTIFIER,
    "Instant": ExprKind.REAL_LITERAL,
    "IntegerLiteral": ExprKind.INTEGER_LITERAL,
    "Log": ExprKind.LOG,
    "LogLt": ExprKind.LT,
    "LogGt": ExprKind.GT,
    "Mul": ExprKind.MUL,
    "Neg": ExprKind.NEG,
    "NoEvent": ExprKind.NO_EVENT,
    "Pow": ExprKind.POW,
    "RealLiteral": ExprKind.REAL_LITERAL,
    "Sin": ExprKind.SIN,
    "Sqrt": ExprKind.SQRT,
    "Sub": ExprKind.SUB,
    "Tan": ExprKind.TAN,
    "Time": ExprKind.TIME,
    "TimedVariable": ExprKind.TIMED_VARIABLE,
}


@dataclass(frozen=True)
class Expr:
    """
    Immutable expression tree node.

    ``name`` holds the qualified variable name of IDENTIFIER, DER and
    TIMED_VARIABLE nodes; ``value`` holds the literal value, or the time
    point of a TIMED_VARIABLE.
    """

    kind: ExprKind
    children: tuple[Expr, ...] = ()
    name: Optional[str] = None
    value: Optional[Union[float, int]] = None

    def __post_init__(self) -> None:
        n = len(self.children)
        if self.kind in LEAF_KINDS and n != 0:
            raise ParseDomainError(f"{self.kind.name} takes no operands, got {n}")
        if self.kind in UNARY_KINDS and n != 1:
            raise ParseDomainError(f"{self.kind.name} takes 1 operand, got {n}")
        if self.kind in BINARY_KINDS and n != 2:
            raise ParseDomainError(f"{self.kind.name} takes 2 operands, got {n}")
        if self.kind == ExprKind.NO_EVENT and n % 2 != 1:
            raise ParseDomainError(f"NO_EVENT takes an odd number of operands, got {n}")

    def __str__(self) -> str:
        if self.kind in (ExprKind.REAL_LITERAL, ExprKind.INTEGER_LITERAL):
            return str(self.value)
        if self.kind == ExprKind.IDENTIFIER:
            return str(self.name)
        if self.kind == ExprKind.DER:
            return f"der({self.name})"
        if self.kind == ExprKind.TIME:
            return "time"
        if self.kind == ExprKind.TIMED_VARIABLE:
            return f"{self.name}({self.value})"
        if self.kind in BINARY_KINDS:
            op = {
                ExprKind.ADD: "+",
                ExprKind.SUB: "-",
                ExprKind.MUL: "*",
                ExprKind.DIV: "/",
                ExprKind.POW: "^",
                ExprKind.LT: "<",
                ExprKind.GT: ">",
            }[self.kind]
            return f"({self.children[0]} {op} {self.children[1]})"
        if self.kind == ExprKind.NEG:
            return f"-({self.children[0]})"
        if self.kind == ExprKind.NO_EVENT:
            return f"noEvent({', '.join(str(c) for c in self.children)})"
        return f"{self.kind.name.lower()}({self.children[0]})"

    def variables(self) -> set[str]:
        """Qualified names of all variables referenced in the tree."""
        result: set[str] = set()
        if self.name is not None:
            result.add(self.name)
        for child in self.children:
            result |= child.variables()
        return result


def literal(value: Union[float, int]) -> Expr:
    """Numeric literal."""
    if isinstance(value, int) and not isinstance(value, bool):
        return Expr(ExprKind.INTEGER_LITERAL, value=value)
    return Expr(ExprKind.REAL_LITERAL, value=float(value))


def var(name: str) -> Expr:
    """Reference to a variable by qualified name."""
    return Expr(ExprKind.IDENTIFIER, name=name)


def der(name: str) -> Expr:
    """Time derivative of a variable."""
    return Expr(ExprKind.DER, name=name)


def binary(kind: ExprKind, left: Expr, right: Expr) -> Expr:
    """Binary operation."""
    return Expr(kind, children=(left, right))


def unary(kind: ExprKind, operand: Expr) -> Expr:
    """Unary operation or elementary function."""
    return Expr(kind, children=(operand,))
