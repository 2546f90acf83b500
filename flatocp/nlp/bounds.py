"""
Consistency checks of simple bounds and a constraint violation report.
"""

import math
import warnings
from dataclasses import dataclass

import numpy as np

from flatocp.errors import ConfigurationError, IllPosedProblemError


def _vector(values, what: str) -> np.ndarray:
    try:
        return np.asarray(values, dtype=float).ravel()
    except (TypeError, ValueError):
        raise ConfigurationError(f"{what} must be a numeric vector") from None


def check_bounds(lb, ub, kind: str) -> None:
    """
    Detect simple bounds that no point can satisfy.

    Raises:
        IllPosedProblemError: if ``lb[i] == inf``, ``ub[i] == -inf`` or
            ``lb[i] > ub[i]`` for some i. The error carries the index and kind.
    """
    lb = _vector(lb, f"lower {kind} bound")
    ub = _vector(ub, f"upper {kind} bound")
    if lb.shape != ub.shape:
        raise ConfigurationError(
            f"Lower and upper {kind} bounds differ in length: {lb.size} and {ub.size}"
        )
    for i in range(lb.size):
        if lb[i] == math.inf or ub[i] == -math.inf or lb[i] > ub[i]:
            raise IllPosedProblemError(
                f"Ill-posed problem detected ({kind} bounds): "
                f"lower bound {lb[i]} and upper bound {ub[i]} at index {i}",
                index=i,
                kind=kind,
            )


def check_initial_guess(x0, lbx, ubx) -> bool:
    """Warn if the initial guess violates the simple bounds. Returns True if it does not."""
    x0 = _vector(x0, "initial guess")
    outside = np.flatnonzero((x0 > _vector(ubx, "ubx")) | (x0 < _vector(lbx, "lbx")))
    if outside.size:
        warnings.warn(
            "The initial guess does not satisfy LBX and UBX at indices "
            f"{outside.tolist()}. Option 'warn_initial_bounds' controls this warning."
        )
        return False
    return True


@dataclass(frozen=True)
class ConstraintReport:
    """One row of the constraint report."""

    index: int
    lower: float
    value: float
    upper: float
    violation: float

    @property
    def violated(self) -> bool:
        return self.violation > 0.0


def report_constraints(values, lb, ub, name: str, tol: float = 1e-8) -> list[ConstraintReport]:
    """
    Compare values against their bounds.

    The violation is the amount by which a value lies outside ``[lb, ub]``
    beyond the tolerance, zero otherwise.
    """
    values = _vector(values, name)
    lb = _vector(lb, f"lower {name} bound")
    ub = _vector(ub, f"upper {name} bound")
    if not (values.shape == lb.shape == ub.shape):
        raise ConfigurationError(
            f"Cannot report {name}: {values.size} values, {lb.size} lower and {ub.size} upper bounds"
        )
    rows = []
    for i, (v, lo, hi) in enumerate(zip(values, lb, ub)):
        excess = max(lo - v, v - hi, 0.0)
        rows.append(
            ConstraintReport(
                index=i,
                lower=float(lo),
                value=float(v),
                upper=float(hi),
                violation=float(excess) if excess > tol else 0.0,
            )
        )
    return rows


def format_report(rows: list[ConstraintReport], name: str = "constraints") -> str:
    """Render a constraint report as text."""
    lines = [f"Reporting {name}"]
    header = f"{'index':>6} | {'lower':>12} | {'value':>12} | {'upper':>12} | violation"
    lines.append(header)
    lines.append("-" * len(header))
    for r in rows:
        flag = f"{r.violation:.3g} VIOLATED" if r.violated else ""
        lines.append(f"{r.index:>6} | {r.lower:>12.6g} | {r.value:>12.6g} | {r.upper:>12.6g} | {flag}")
    n = sum(r.violated for r in rows)
    lines.append(f"{n} of {len(rows)} {name} violated")
    return "\n".join(lines)
