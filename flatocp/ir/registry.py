"""
Variable registry.

Maps qualified names to Variable records and classifies the variables into
roles once all equations of a model are known.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from flatocp.errors import (
    DuplicateNameError,
    ParseDomainError,
    StructuralError,
    UnknownVariableError,
    VariableRoleError,
)
from flatocp.ir.names import canonical_name
from flatocp.ir.types import Alias, Causality, Variability, VariableRole
from flatocp.ir.variable import Variable

# Role of a non-dependent variable by (variability, causality). Continuous
# internal and output variables are implicit states; whether they are
# differential is decided by the presence of a derivative symbol.
_IMPLICIT = "implicit"
ROLE_TABLE: dict[tuple[Variability, Causality], object] = {
    (Variability.CONTINUOUS, Causality.INTERNAL): _IMPLICIT,
    (Variability.CONTINUOUS, Causality.OUTPUT): _IMPLICIT,
    (Variability.CONTINUOUS, Causality.INPUT): VariableRole.CONTROL,
    (Variability.PARAMETER, Causality.INTERNAL): VariableRole.PARAMETER,
    (Variability.PARAMETER, Causality.INPUT): VariableRole.PARAMETER,
    (Variability.PARAMETER, Causality.OUTPUT): VariableRole.PARAMETER,
    (Variability.CONSTANT, Causality.INTERNAL): VariableRole.DEPENDENT,
    (Variability.CONSTANT, Causality.INPUT): VariableRole.DEPENDENT,
    (Variability.CONSTANT, Causality.OUTPUT): VariableRole.DEPENDENT,
}


class VariableRegistry:
    """
    Ordered mapping from qualified names to variables.

    Iteration is in insertion order, which is the order in which the model
    description lists the variables. Role classification follows that order,
    so the per-role lists are reproducible.
    """

    def __init__(self) -> None:
        self._vars: dict[str, Variable] = {}

    def add(self, name: str, variable: Variable) -> None:
        """Register a variable under its qualified name."""
        key = canonical_name(name)
        if key in self._vars:
            raise DuplicateNameError(f"Variable '{key}' has already been added")
        if variable.alias != Alias.NO_ALIAS:
            raise StructuralError(
                f"Variable '{key}' is an alias; aliases are folded into their target"
            )
        self._vars[key] = variable

    def lookup(self, name: str) -> Variable:
        """Find a variable by qualified name."""
        try:
            return self._vars[name]
        except KeyError:
            pass
        key = canonical_name(name)
        if key not in self._vars:
            raise UnknownVariableError(f"No such variable: '{name}'")
        return self._vars[key]

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        if name in self._vars:
            return True
        try:
            return canonical_name(name) in self._vars
        except ParseDomainError:
            return False

    def __len__(self) -> int:
        return len(self._vars)

    def __iter__(self) -> Iterator[Variable]:
        return iter(self._vars.values())

    def names(self) -> list[str]:
        """Qualified names in insertion order."""
        return list(self._vars)

    def sort_by_role(self, dependent: Iterable[str]) -> dict[VariableRole, list[Variable]]:
        """
        Classify every variable into exactly one role.

        A variable is dependent iff its name is in ``dependent`` (it is the left
        side of a binding equation). Constants without a binding equation are
        dependent as well. The remaining variables are classified with
        ROLE_TABLE; a parameter must be free to become a decision parameter.

        Args:
            dependent: Names of the variables defined by binding equations.

        Returns:
            Ordered variable lists per role. DEPENDENT only contains the
            constants, not the variables named in ``dependent``.

        Raises:
            VariableRoleError: for a combination the table does not cover.
        """
        bound = {canonical_name(n) for n in dependent}
        roles: dict[VariableRole, list[Variable]] = {role: [] for role in VariableRole}

        for name, v in self._vars.items():
            if name in bound:
                v.role = VariableRole.DEPENDENT
                continue

            role = ROLE_TABLE.get((v.variability, v.causality))
            if role is None:
                raise VariableRoleError(
                    f"Cannot classify variable '{name}' with variability "
                    f"{v.variability.name} and causality {v.causality.name}"
                )
            if role == _IMPLICIT:
                role = VariableRole.DIFFERENTIAL if v.has_derivative else VariableRole.ALGEBRAIC
            elif role == VariableRole.PARAMETER and not v.free:
                raise VariableRoleError(
                    f"Parameter '{name}' is neither free nor defined by a binding equation"
                )
            v.role = role
            roles[role].append(v)

        return roles
