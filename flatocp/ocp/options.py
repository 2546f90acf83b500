"""
Options of the flat OCP transformation pipeline.
"""

from dataclasses import dataclass, fields
from typing import Any

from flatocp.errors import ConfigurationError


@dataclass
class OcpOptions:
    """
    Options controlling FlatOcp.init().

    Attributes:
        scale_variables: Replace variables by their nominal-scaled counterparts.
        eliminate_dependent: Substitute dependent variables into all equations.
        scale_equations: Scale the implicit equations by their Jacobian row norms.
            Requires scale_variables.
        fully_explicit: BLT sort and make the DAE explicit.
        with_x: Include the states in the BLT sparsity pattern.
        newton_iterations: Newton steps used to approximate the solution of
            nonlinear blocks when making the DAE explicit. Zero rejects
            nonlinear blocks.
        exact_newton: Update the block Jacobian in every Newton step.
    """

    scale_variables: bool = True
    eliminate_dependent: bool = True
    scale_equations: bool = True
    fully_explicit: bool = False
    with_x: bool = False
    newton_iterations: int = 3
    exact_newton: bool = True

    def __post_init__(self) -> None:
        if self.scale_equations and not self.scale_variables:
            raise ConfigurationError("scale_equations requires scale_variables")
        if self.newton_iterations < 0:
            raise ConfigurationError(
                f"newton_iterations must be non-negative, got {self.newton_iterations}"
            )

    @classmethod
    def from_dict(cls, opts: dict[str, Any]) -> "OcpOptions":
        """Create options from a plain dictionary."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(opts) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown option(s) {', '.join(unknown)}; available: {', '.join(sorted(known))}"
            )
        return cls(**opts)
