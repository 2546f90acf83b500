"""
Exception hierarchy for flatocp.

All errors derive from FlatOcpError and also from the builtin exception that
best describes them, so callers can catch either. None of them is recoverable:
a pass that raises leaves the model in an undefined state.
"""

from typing import Optional


class FlatOcpError(Exception):
    """Base class for all flatocp errors."""


class ConfigurationError(FlatOcpError, ValueError):
    """Bad or missing option, or an inconsistent option combination."""


class SignatureError(ConfigurationError):
    """A derivative function has the wrong number of inputs or outputs."""

    def __init__(self, kind: str, what: str, expected: int, actual: int) -> None:
        self.kind = kind
        self.what = what
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Wrong number of {what} to the '{kind}' function: "
            f"expected {expected}, got {actual}"
        )


class StructuralError(FlatOcpError):
    """The model structure is inconsistent."""


class DuplicateNameError(StructuralError):
    """A variable with the same qualified name is already registered."""


class UnknownVariableError(StructuralError):
    """No variable with the given qualified name is registered."""


class VariableRoleError(StructuralError):
    """A variable cannot be classified into exactly one role."""


class CyclicDefinitionError(StructuralError):
    """Dependent variables are defined in terms of each other."""

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        super().__init__("Cyclic definition of dependent variables: " + " -> ".join(cycle))


class IllPosedProblemError(StructuralError):
    """Simple bounds that no point can satisfy."""

    def __init__(self, message: str, index: int, kind: Optional[str] = None) -> None:
        self.index = index
        self.kind = kind
        super().__init__(message)


class UnsupportedFeatureError(FlatOcpError, NotImplementedError):
    """The requested transformation is not implemented (e.g. tearing)."""


class ParseDomainError(FlatOcpError, ValueError):
    """Unknown expression node kind or malformed qualified name."""


class PreconditionError(FlatOcpError, RuntimeError):
    """A pass was called out of order or a second time."""


class EvaluationError(FlatOcpError, RuntimeError):
    """Numerical evaluation of a function failed."""
