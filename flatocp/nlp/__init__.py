"""
Derivative functions and solver infrastructure for nonlinear programs.
"""

from flatocp.nlp.options import NlpOptions
from flatocp.nlp.derivatives import SCHEMES, DerivativeFunctionManager, DerivativeKind, Scheme
from flatocp.nlp.bounds import (
    ConstraintReport,
    check_bounds,
    check_initial_guess,
    format_report,
    report_constraints,
)
from flatocp.nlp.solver import NlpSolver

__all__ = [
    "NlpOptions",
    "DerivativeFunctionManager",
    "DerivativeKind",
    "Scheme",
    "SCHEMES",
    "ConstraintReport",
    "check_bounds",
    "check_initial_guess",
    "format_report",
    "report_constraints",
    "NlpSolver",
]
