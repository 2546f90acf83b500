"""
Conversion of Expr trees to CasADi SX expressions.

Every ExprKind has exactly one handler. The handler table is checked when
the module is imported, so adding a kind without a handler fails early
instead of at the first model that uses it.
"""

from __future__ import annotations

from typing import Callable

import casadi as ca

from flatocp.errors import ParseDomainError
from flatocp.ir.expr import Expr, ExprKind
from flatocp.ir.registry import VariableRegistry

_BINARY: dict[ExprKind, Callable[[ca.SX, ca.SX], ca.SX]] = {
    ExprKind.ADD: lambda l, r: l + r,
    ExprKind.SUB: lambda l, r: l - r,
    ExprKind.MUL: lambda l, r: l * r,
    ExprKind.DIV: lambda l, r: l / r,
    ExprKind.POW: lambda l, r: l**r,
    ExprKind.LT: lambda l, r: l < r,
    ExprKind.GT: lambda l, r: l > r,
}

_UNARY: dict[ExprKind, Callable[[ca.SX], ca.SX]] = {
    ExprKind.NEG: lambda a: -a,
    ExprKind.SIN: ca.sin,
    ExprKind.COS: ca.cos,
    ExprKind.TAN: ca.tan,
    ExprKind.ASIN: ca.asin,
    ExprKind.ACOS: ca.acos,
    ExprKind.ATAN: ca.atan,
    ExprKind.EXP: ca.exp,
    ExprKind.LOG: ca.log,
    ExprKind.SQRT: ca.sqrt,
}


class CasadiConverter:
    """
    Convert expressions to CasADi, resolving identifiers in a registry.

    Example:
        >>> from flatocp.ir.expr import ExprKind, binary, literal, var
        >>> from flatocp.ir.registry import VariableRegistry
        >>> from flatocp.ir.variable import Variable
        >>> reg = VariableRegistry()
        >>> reg.add("x", Variable("x"))
        >>> conv = CasadiConverter(reg, ca.SX.sym("time"))
        >>> print(conv.convert(binary(ExprKind.MUL, literal(2), var("x"))))
        (2*x)
    """

    def __init__(self, registry: VariableRegistry, time: ca.SX) -> None:
        self.registry = registry
        self.time = time
        self._handlers: dict[ExprKind, Callable[[Expr], ca.SX]] = {
            ExprKind.REAL_LITERAL: self._literal,
            ExprKind.INTEGER_LITERAL: self._literal,
            ExprKind.IDENTIFIER: self._identifier,
            ExprKind.DER: self._der,
            ExprKind.TIME: self._time,
            ExprKind.TIMED_VARIABLE: self._timed,
            ExprKind.NO_EVENT: self._no_event,
        }
        for kind in _BINARY:
            self._handlers[kind] = self._binary
        for kind in _UNARY:
            self._handlers[kind] = self._unary

    def convert(self, expr: Expr) -> ca.SX:
        """Convert an expression tree to a scalar SX expression."""
        return self._handlers[expr.kind](expr)

    def _literal(self, expr: Expr) -> ca.SX:
        return ca.SX(float(expr.value))

    def _identifier(self, expr: Expr) -> ca.SX:
        return self.registry.lookup(expr.name).sym

    def _der(self, expr: Expr) -> ca.SX:
        return self.registry.lookup(expr.name).der(create=True)

    def _time(self, expr: Expr) -> ca.SX:
        return self.time

    def _timed(self, expr: Expr) -> ca.SX:
        return self.registry.lookup(expr.name).at_time(float(expr.value))

    def _binary(self, expr: Expr) -> ca.SX:
        left = self.convert(expr.children[0])
        right = self.convert(expr.children[1])
        return _BINARY[expr.kind](left, right)

    def _unary(self, expr: Expr) -> ca.SX:
        return _UNARY[expr.kind](self.convert(expr.children[0]))

    def _no_event(self, expr: Expr) -> ca.SX:
        # Nested if_else, built from the default value backwards
        args = [self.convert(c) for c in expr.children]
        result = args[-1]
        for i in range(len(args) - 3, -1, -2):
            result = ca.if_else(args[i], args[i + 1], result)
        return result


def _check_exhaustive() -> None:
    handled = set(_BINARY) | set(_UNARY) | {
        ExprKind.REAL_LITERAL,
        ExprKind.INTEGER_LITERAL,
        ExprKind.IDENTIFIER,
        ExprKind.DER,
        ExprKind.TIME,
        ExprKind.TIMED_VARIABLE,
        ExprKind.NO_EVENT,
    }
    missing = set(ExprKind) - handled
    if missing:
        raise ParseDomainError(
            "No CasADi conversion for expression kinds: "
            + ", ".join(sorted(k.name for k in missing))
        )


_check_exhaustive()
