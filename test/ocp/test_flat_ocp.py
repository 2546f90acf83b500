"""Tests for FlatOcp and its options."""

import math

import casadi as ca
import pytest

from flatocp.errors import (
    ConfigurationError,
    PreconditionError,
    StructuralError,
    UnknownVariableError,
)
from flatocp.ir.types import Causality, Variability
from flatocp.ir.variable import Variable
from flatocp.ocp.model import FlatOcp, substitute_all, vcat, vsplit
from flatocp.ocp.options import OcpOptions


class TestHelpers:
    """Tests for the column helpers."""

    def test_vcat_empty(self) -> None:
        assert vcat([]).shape == (0, 1)

    def test_vsplit(self) -> None:
        x = ca.SX.sym("x", 3)
        parts = vsplit(x)
        assert len(parts) == 3
        assert ca.is_equal(parts[1], x[1])

    def test_substitute_all(self) -> None:
        a, b = ca.SX.sym("a"), ca.SX.sym("b")
        out = substitute_all([a + b, a * 2], [a], [b])
        assert len(out) == 2
        assert not any(ca.depends_on(e, a) for e in out)
        assert substitute_all([], [a], [b]) == []


class TestFlatOcp:
    """Tests covering building and sorting a flat OCP."""

    def test_defaults(self) -> None:
        ocp = FlatOcp()
        assert math.isnan(ocp.t0) and math.isnan(ocp.tf)
        assert not ocp.scaled_variables
        assert ocp.blt is None
        assert ocp.options == OcpOptions()

    def test_variable_lookup(self) -> None:
        ocp = FlatOcp()
        v = ocp.add_variable("a.b", Variable("a.b"))
        assert ocp.variable("a.b") is v
        with pytest.raises(UnknownVariableError):
            ocp.variable("a.c")

    def test_sort_type(self) -> None:
        ocp = FlatOcp()
        x = ocp.add_variable("x", Variable("x"))
        z = ocp.add_variable("z", Variable("z"))
        u = ocp.add_variable("u", Variable("u", causality=Causality.INPUT))
        p = ocp.add_variable("p", Variable("p", variability=Variability.PARAMETER, free=True))
        c = ocp.add_variable("c", Variable("c", variability=Variability.CONSTANT, start=7.0))
        ocp.dae.append(x.der(create=True) - z.sym)
        ocp.dae.append(z.sym - p.sym * u.sym)
        ocp.sort_type()
        assert ocp.x == [x, z]
        assert ocp.differential() == [x]
        assert ocp.algebraic() == [z]
        assert ocp.u == [u]
        assert ocp.p == [p]
        assert ocp.y == [c]
        assert float(ca.DM(ocp.dep[0])) == 7.0
        ocp.check_dimensions()

    def test_sort_type_twice(self) -> None:
        ocp = FlatOcp()
        ocp.add_variable("c", Variable("c", variability=Variability.CONSTANT, start=7.0))
        ocp.sort_type()
        with pytest.raises(PreconditionError, match="already been sorted"):
            ocp.sort_type()
        assert len(ocp.y) == len(ocp.dep) == 1

    def test_add_dependent_twice(self) -> None:
        ocp = FlatOcp()
        y = ocp.add_variable("y", Variable("y"))
        ocp.add_dependent(y, ca.SX(1.0))
        with pytest.raises(StructuralError):
            ocp.add_dependent(y, ca.SX(2.0))

    def test_check_dimensions(self) -> None:
        ocp = FlatOcp()
        ocp.ode.append(ca.SX(1.0))
        with pytest.raises(StructuralError, match="1 entries in ode but 0 in xd"):
            ocp.check_dimensions()

    def test_path_constraint_bounds(self) -> None:
        ocp = FlatOcp()
        x = ocp.add_variable("x", Variable("x"))
        ocp.add_path_constraint(x.sym, -1.0, 1.0)
        ocp.path_max.pop()
        with pytest.raises(StructuralError, match="path_max"):
            ocp.check_dimensions()

    def test_substitute_skip(self) -> None:
        ocp = FlatOcp()
        a = ocp.add_variable("a", Variable("a"))
        b = ocp.add_variable("b", Variable("b"))
        ocp.lterm.append(a.sym)
        ocp.mterm.append(a.sym)
        ocp.substitute([a.sym], [b.sym], skip=("mterm",))
        assert ca.is_equal(ocp.lterm[0], b.sym)
        assert ca.is_equal(ocp.mterm[0], a.sym)

    def test_print(self) -> None:
        ocp = FlatOcp()
        x = ocp.add_variable("x", Variable("x"))
        ocp.dae.append(x.der(create=True) + x.sym)
        ocp.add_path_constraint(x.sym, 0.0, 1.0)
        ocp.t0, ocp.tf = 0.0, 2.0
        ocp.sort_type()
        text = str(ocp)
        assert text.startswith("Dimensions: #s = 1")
        assert "s =  [x]" in text
        assert "0 == (der(x)+x)" in text
        assert "0 <= x <= 1" in text
        assert "tf = 2.0" in text
        assert repr(ocp).startswith("FlatOcp(#x=1")


class TestOcpOptions:
    """Tests for OcpOptions."""

    def test_defaults(self) -> None:
        opts = OcpOptions()
        assert opts.scale_variables and opts.eliminate_dependent and opts.scale_equations
        assert not opts.fully_explicit
        assert opts.newton_iterations == 3

    def test_scale_equations_requires_scale_variables(self) -> None:
        with pytest.raises(ConfigurationError):
            OcpOptions(scale_variables=False)
        OcpOptions(scale_variables=False, scale_equations=False)

    def test_negative_newton_iterations(self) -> None:
        with pytest.raises(ConfigurationError):
            OcpOptions(newton_iterations=-1)

    def test_from_dict(self) -> None:
        opts = OcpOptions.from_dict({"fully_explicit": True, "with_x": True})
        assert opts.fully_explicit and opts.with_x
        with pytest.raises(ConfigurationError, match="Unknown option"):
            OcpOptions.from_dict({"tearing": True})

    def test_init_without_scaling(self) -> None:
        ocp = FlatOcp(OcpOptions(scale_variables=False, scale_equations=False))
        x = ocp.add_variable("x", Variable("x", nominal=3.0))
        y = ocp.add_variable("y", Variable("y"))
        ocp.add_dependent(y, 2 * x.sym)
        ocp.dae.append(x.der(create=True) - y.sym)
        ocp.sort_type()
        ocp.init()
        assert not ocp.scaled_variables
        assert not ca.depends_on(ocp.dae[0], y.sym)
        assert ca.depends_on(ocp.dae[0], x.sym)
