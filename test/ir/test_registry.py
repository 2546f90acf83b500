"""Tests for the variable registry and role classification."""

import pytest

from flatocp.errors import (
    DuplicateNameError,
    ParseDomainError,
    StructuralError,
    UnknownVariableError,
    VariableRoleError,
)
from flatocp.ir.registry import VariableRegistry
from flatocp.ir.types import Alias, Causality, Variability, VariableRole
from flatocp.ir.variable import Variable


def make_registry(*variables: Variable) -> VariableRegistry:
    reg = VariableRegistry()
    for v in variables:
        reg.add(v.name, v)
    return reg


class TestAddLookup:
    """Tests for add and lookup."""

    def test_add_and_lookup(self) -> None:
        v = Variable("a.b[1]")
        reg = make_registry(v)
        assert reg.lookup("a.b[1]") is v
        assert "a.b[1]" in reg
        assert len(reg) == 1

    def test_lookup_canonicalizes(self) -> None:
        v = Variable("m[1,2]")
        reg = make_registry(v)
        assert reg.lookup("m[1, 2]") is v
        assert "m[1, 2]" in reg
        assert "m[1 ,2]" in reg

    def test_contains_malformed_name(self) -> None:
        reg = make_registry(Variable("x"))
        assert "x[" not in reg
        assert "" not in reg
        assert 3 not in reg

    def test_duplicate(self) -> None:
        reg = make_registry(Variable("x"))
        with pytest.raises(DuplicateNameError):
            reg.add("x", Variable("x"))

    def test_unknown(self) -> None:
        reg = make_registry(Variable("x"))
        with pytest.raises(UnknownVariableError):
            reg.lookup("y")

    def test_malformed_name(self) -> None:
        with pytest.raises(ParseDomainError):
            VariableRegistry().add("1bad", Variable("bad"))

    def test_alias_rejected(self) -> None:
        with pytest.raises(StructuralError):
            VariableRegistry().add("x", Variable("x", alias=Alias.ALIAS))

    def test_iteration_order(self) -> None:
        reg = make_registry(Variable("c"), Variable("a"), Variable("b"))
        assert reg.names() == ["c", "a", "b"]
        assert [v.name for v in reg] == ["c", "a", "b"]


class TestSortByRole:
    """Tests for sort_by_role."""

    def test_states(self) -> None:
        x = Variable("x")
        x.der(create=True)
        z = Variable("z", causality=Causality.OUTPUT)
        roles = make_registry(x, z).sort_by_role([])
        assert roles[VariableRole.DIFFERENTIAL] == [x]
        assert roles[VariableRole.ALGEBRAIC] == [z]
        assert x.role == VariableRole.DIFFERENTIAL
        assert z.role == VariableRole.ALGEBRAIC

    def test_controls_and_parameters(self) -> None:
        u = Variable("u", causality=Causality.INPUT)
        p = Variable("p", variability=Variability.PARAMETER, free=True)
        roles = make_registry(u, p).sort_by_role([])
        assert roles[VariableRole.CONTROL] == [u]
        assert roles[VariableRole.PARAMETER] == [p]

    def test_dependent_excluded_from_other_roles(self) -> None:
        y = Variable("y")
        p = Variable("p", variability=Variability.PARAMETER)
        roles = make_registry(y, p).sort_by_role(["y", "p"])
        assert all(roles[r] == [] for r in VariableRole)
        assert y.role == VariableRole.DEPENDENT
        assert p.role == VariableRole.DEPENDENT

    def test_constants_are_dependent(self) -> None:
        c = Variable("c", variability=Variability.CONSTANT, start=3.0)
        roles = make_registry(c).sort_by_role([])
        assert roles[VariableRole.DEPENDENT] == [c]

    def test_fixed_parameter_without_binding(self) -> None:
        p = Variable("p", variability=Variability.PARAMETER)
        with pytest.raises(VariableRoleError, match="neither free"):
            make_registry(p).sort_by_role([])

    def test_discrete_rejected(self) -> None:
        d = Variable("d", variability=Variability.DISCRETE)
        with pytest.raises(VariableRoleError):
            make_registry(d).sort_by_role([])

    def test_every_variable_has_exactly_one_role(self) -> None:
        variables = [
            Variable("x1"),
            Variable("x2"),
            Variable("u", causality=Causality.INPUT),
            Variable("p", variability=Variability.PARAMETER, free=True),
            Variable("y"),
        ]
        variables[0].der(create=True)
        roles = make_registry(*variables).sort_by_role(["y"])
        listed = [v for r in VariableRole for v in roles[r]]
        assert len(listed) == len({id(v) for v in listed}) == 4
        assert all(v.role is not None for v in variables)
