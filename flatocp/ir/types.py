"""
Type definitions for the IR.
"""

from enum import Enum, auto


class Variability(Enum):
    """How often a variable can change (FMI terminology)."""

    CONSTANT = auto()  # Never changes
    PARAMETER = auto()  # Fixed after initialization
    DISCRETE = auto()  # Changes only at events
    CONTINUOUS = auto()  # Can change continuously


class Causality(Enum):
    """Causality of a variable (FMI terminology)."""

    INPUT = auto()  # Set from outside
    OUTPUT = auto()  # Computed and exposed
    INTERNAL = auto()  # Internal variable


class Alias(Enum):
    """Alias flag of a model variable."""

    NO_ALIAS = auto()
    ALIAS = auto()
    NEGATED_ALIAS = auto()


class VariableRole(Enum):
    """Role of a variable in the flat optimal control problem."""

    DIFFERENTIAL = auto()  # State appearing differentiated
    ALGEBRAIC = auto()  # State not differentiated
    QUADRATURE = auto()  # State defined by a quadrature (integral) equation
    CONTROL = auto()  # Control input
    PARAMETER = auto()  # Free parameter
    DEPENDENT = auto()  # Defined by a binding equation or a constant value


VARIABILITY_NAMES = {
    "constant": Variability.CONSTANT,
    "parameter": Variability.PARAMETER,
    "discrete": Variability.DISCRETE,
    "continuous": Variability.CONTINUOUS,
}

CAUSALITY_NAMES = {
    "input": Causality.INPUT,
    "output": Causality.OUTPUT,
    "internal": Causality.INTERNAL,
}

ALIAS_NAMES = {
    "noAlias": Alias.NO_ALIAS,
    "alias": Alias.ALIAS,
    "negatedAlias": Alias.NEGATED_ALIAS,
}
