"""
Base class of NLP solvers built on the derivative function manager.
"""

import warnings
from abc import ABC, abstractmethod
from typing import Any, Optional

import casadi as ca
import numpy as np

from flatocp.errors import ConfigurationError, EvaluationError
from flatocp.logging import logger
from flatocp.nlp.bounds import (
    ConstraintReport,
    check_bounds,
    check_initial_guess,
    format_report,
    report_constraints,
)
from flatocp.nlp.derivatives import DerivativeFunctionManager
from flatocp.nlp.options import NlpOptions

INPUT_NAMES = ("x0", "lbx", "ubx", "lbg", "ubg", "lam_x0", "lam_g0", "p")


class NlpSolver(ABC):
    """
    Common state of NLP solvers.

    Holds the derivative functions and the solver inputs

        x0, lbx, ubx    initial guess and simple bounds (size nx)
        lbg, ubg        constraint bounds (size ng)
        lam_x0, lam_g0  initial multipliers
        p               parameter values (size np)

    which default to zeros, with infinite bounds.
    """

    def __init__(self, nlp: ca.Function, options: Optional[NlpOptions] = None) -> None:
        self.derivatives = DerivativeFunctionManager(nlp, options)
        self.options = self.derivatives.options
        nx, ng, np_ = self.nx, self.ng, self.derivatives.np
        self.inputs: dict[str, np.ndarray] = {
            "x0": np.zeros(nx),
            "lbx": np.full(nx, -np.inf),
            "ubx": np.full(nx, np.inf),
            "lbg": np.full(ng, -np.inf),
            "ubg": np.full(ng, np.inf),
            "lam_x0": np.zeros(nx),
            "lam_g0": np.zeros(ng),
            "p": np.zeros(np_),
        }
        self._sizes = {name: value.size for name, value in self.inputs.items()}

    @property
    def nlp(self) -> ca.Function:
        return self.derivatives.nlp

    @property
    def nx(self) -> int:
        return self.derivatives.nx

    @property
    def ng(self) -> int:
        return self.derivatives.ng

    def set_input(self, name: str, value: Any) -> None:
        """Set one solver input, checking its size unless ``ignore_check_vec`` is set."""
        if name not in self.inputs:
            raise ConfigurationError(
                f"Unknown solver input '{name}'; available: {', '.join(INPUT_NAMES)}"
            )
        arr = np.asarray(value, dtype=float).ravel()
        if arr.size == 1 and self._sizes[name] != 1:
            arr = np.full(self._sizes[name], arr[0])
        if not self.options.ignore_check_vec and arr.size != self._sizes[name]:
            raise ConfigurationError(
                f"Solver input '{name}' has {arr.size} entries, expected {self._sizes[name]}"
            )
        self.inputs[name] = arr

    def check_initial_bounds(self) -> None:
        """
        Detect ill-posed simple bounds and, if ``warn_initial_bounds`` is set,
        warn about an initial guess outside the bounds.
        """
        check_bounds(self.inputs["lbx"], self.inputs["ubx"], "x")
        check_bounds(self.inputs["lbg"], self.inputs["ubg"], "g")
        if self.options.warn_initial_bounds:
            check_initial_guess(self.inputs["x0"], self.inputs["lbx"], self.inputs["ubx"])

    def report_constraints(self, x: Any, g: Any) -> str:
        """Constraint report of a primal solution x with constraint values g."""
        rows_x = report_constraints(x, self.inputs["lbx"], self.inputs["ubx"], "decision bounds")
        rows_g = report_constraints(
            g, self.inputs["lbg"], self.inputs["ubg"], "constraints", self.options.constr_viol_tol
        )
        text = "\n".join(
            [
                "Reporting NLP constraints",
                format_report(rows_x, "decision bounds"),
                format_report(rows_g, "constraints"),
            ]
        )
        logger.info(text)
        return text

    def violations(self, x: Any, g: Any) -> list[ConstraintReport]:
        """Violated rows of the constraint report."""
        rows = report_constraints(x, self.inputs["lbx"], self.inputs["ubx"], "decision bounds")
        rows += report_constraints(
            g, self.inputs["lbg"], self.inputs["ubg"], "constraints", self.options.constr_viol_tol
        )
        return [r for r in rows if r.violated]

    def call_iteration_callback(self, iteration: int, data: Any) -> bool:
        """
        Call the iteration callback every ``iteration_callback_step`` iterations.

        Returns:
            True if the callback requests the solver to stop.
        """
        callback = self.options.iteration_callback
        if callback is None or iteration % self.options.iteration_callback_step != 0:
            return False
        try:
            return bool(callback(iteration, data))
        except Exception as e:
            if not self.options.iteration_callback_ignore_errors:
                raise
            warnings.warn(f"Error in the iteration callback ignored: {e}")
            return False

    def evaluate(self, fcn: ca.Function, *args: Any) -> Optional[list]:
        """
        Evaluate a function numerically.

        A failed or non-finite evaluation raises EvaluationError if
        ``eval_errors_fatal`` is set, and otherwise warns and returns None.
        """
        try:
            res = fcn.call([ca.DM(a) for a in args])
        except RuntimeError as e:
            return self._evaluation_failed(f"Evaluation of '{fcn.name()}' failed: {e}")
        if not all(np.all(np.isfinite(np.asarray(r))) for r in res):
            return self._evaluation_failed(f"Evaluation of '{fcn.name()}' gave non-finite values")
        return res

    def _evaluation_failed(self, message: str) -> None:
        if self.options.eval_errors_fatal:
            raise EvaluationError(message)
        warnings.warn(message)
        return None

    @abstractmethod
    def solve(self) -> dict[str, Any]:
        """Solve the NLP from the current inputs."""
