"""
Options of the NLP derivative manager and solver base.
"""

from dataclasses import dataclass, fields
from typing import Any, Callable, Optional

import casadi as ca

from flatocp.errors import ConfigurationError


@dataclass
class NlpOptions:
    """
    Attributes:
        expand: Expand MX functions to SX before differentiating.
        grad_f, jac_f, jac_g, grad_lag, hess_lag: User-supplied derivative
            functions, used instead of the generated ones.
        iteration_callback: Called as ``callback(iteration, data)``; a truthy
            return value requests the solver to stop.
        iteration_callback_step: Call the callback every that many iterations.
        iteration_callback_ignore_errors: Warn instead of raising when the
            callback fails.
        ignore_check_vec: Skip the dimension checks of the solver inputs.
        warn_initial_bounds: Warn if the initial guess violates the bounds.
        eval_errors_fatal: Raise when a function evaluation fails.
        constr_viol_tol: Tolerance of the constraint report.
    """

    expand: bool = False
    grad_f: Optional[ca.Function] = None
    jac_f: Optional[ca.Function] = None
    jac_g: Optional[ca.Function] = None
    grad_lag: Optional[ca.Function] = None
    hess_lag: Optional[ca.Function] = None
    iteration_callback: Optional[Callable] = None
    iteration_callback_step: int = 1
    iteration_callback_ignore_errors: bool = False
    ignore_check_vec: bool = False
    warn_initial_bounds: bool = False
    eval_errors_fatal: bool = False
    constr_viol_tol: float = 1e-8

    def __post_init__(self) -> None:
        if self.iteration_callback_step < 1:
            raise ConfigurationError(
                f"iteration_callback_step must be at least 1, got {self.iteration_callback_step}"
            )
        if self.constr_viol_tol < 0:
            raise ConfigurationError(
                f"constr_viol_tol must be non-negative, got {self.constr_viol_tol}"
            )

    @classmethod
    def from_dict(cls, opts: dict[str, Any]) -> "NlpOptions":
        """Create options from a plain dictionary."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(opts) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown option(s) {', '.join(unknown)}; available: {', '.join(sorted(known))}"
            )
        return cls(**opts)

    def override(self, kind: str) -> Optional[ca.Function]:
        """User-supplied function for a derivative kind, if any."""
        return getattr(self, kind)
