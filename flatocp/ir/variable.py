"""
Variable representation in the IR.
"""

import math
from dataclasses import dataclass, field
from typing import Optional

import casadi as ca

from flatocp.errors import StructuralError
from flatocp.ir.types import Alias, Causality, Variability, VariableRole


@dataclass(eq=False)
class Variable:
    """
    A scalar model variable.

    Each variable owns a CasADi SX symbol with its qualified name. The symbol of
    its time derivative is created the first time ``der(x)`` is read from the
    model, which is also what makes an implicit state differential.
    Variables compare by identity.
    """

    name: str
    variability: Variability = Variability.CONTINUOUS
    causality: Causality = Causality.INTERNAL
    alias: Alias = Alias.NO_ALIAS

    # Assigned by VariableRegistry.sort_by_role
    role: Optional[VariableRole] = None

    value_reference: Optional[int] = None

    start: float = 0.0
    derivative_start: float = 0.0
    nominal: float = 1.0
    min_value: float = -math.inf
    max_value: float = math.inf

    unit: str = ""
    display_unit: str = ""
    description: str = ""

    # Free parameters are decision variables of the optimization problem
    free: bool = False

    sym: ca.SX = field(init=False, repr=False)
    der_sym: Optional[ca.SX] = field(default=None, init=False, repr=False)
    _timed: dict[float, ca.SX] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.nominal <= 0.0:
            raise StructuralError(
                f"Variable '{self.name}' has a non-positive nominal value {self.nominal}"
            )
        self.sym = ca.SX.sym(self.name)

    def der(self, create: bool = False) -> ca.SX:
        """Symbol of the time derivative of this variable.

        Args:
            create: Create the derivative symbol if it does not exist yet.

        Raises:
            StructuralError: if the variable has no derivative and create is False.
        """
        if self.der_sym is None:
            if not create:
                raise StructuralError(f"Variable '{self.name}' is not differentiated")
            self.der_sym = ca.SX.sym(f"der({self.name})")
        return self.der_sym

    def drop_derivative(self) -> None:
        """Forget the derivative symbol (the variable becomes algebraic)."""
        self.der_sym = None

    def at_time(self, t: float) -> ca.SX:
        """Symbol for the value of this variable at a fixed time point."""
        if t not in self._timed:
            self._timed[t] = ca.SX.sym(f"{self.name}({t:g})")
        return self._timed[t]

    def timed_symbols(self) -> list[ca.SX]:
        """All timed-reference symbols created so far."""
        return list(self._timed.values())

    @property
    def has_derivative(self) -> bool:
        """True if der(x) appears in the model."""
        return self.der_sym is not None

    @property
    def highest(self) -> ca.SX:
        """Highest order time derivative appearing in the model."""
        return self.der_sym if self.der_sym is not None else self.sym

    @property
    def has_finite_bounds(self) -> bool:
        """True if the variable has a finite lower or upper bound."""
        return not math.isinf(self.min_value) or not math.isinf(self.max_value)

    def start_value(self, scaled: bool = False) -> float:
        """Start value, divided by the nominal value if scaled."""
        return self.start / self.nominal if scaled else self.start

    def derivative_start_value(self, scaled: bool = False) -> float:
        """Start value of der(x), divided by the nominal value if scaled."""
        return self.derivative_start / self.nominal if scaled else self.derivative_start

    def __str__(self) -> str:
        return self.name
