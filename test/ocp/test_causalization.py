"""Tests for making the implicit equations explicit."""

import casadi as ca
import numpy as np
import pytest

from common import SX_close, evaluate
from flatocp.errors import (
    PreconditionError,
    StructuralError,
    UnknownVariableError,
    UnsupportedFeatureError,
)
from flatocp.ir.types import VariableRole
from flatocp.ir.variable import Variable
from flatocp.ocp.blt import sort_blt
from flatocp.ocp.causality import make_algebraic, make_explicit
from flatocp.ocp.model import FlatOcp
from flatocp.ocp.options import OcpOptions
from flatocp.ocp.scaling import scale_variables


def oscillator(options=None) -> tuple:
    # der(x1) = x2, der(x2) = -x1
    ocp = FlatOcp(options)
    x1 = ocp.add_variable("x1", Variable("x1", start=1.0))
    x2 = ocp.add_variable("x2", Variable("x2"))
    ocp.dae.append(x1.der(create=True) - x2.sym)
    ocp.dae.append(x2.der(create=True) + x1.sym)
    ocp.sort_type()
    return ocp, x1, x2


def algebraic(residuals, **kwargs) -> tuple:
    """Problem with algebraic states z1, z2, ... defined by residuals(z)."""
    ocp = FlatOcp(OcpOptions(**kwargs) if kwargs else None)
    n = residuals.__code__.co_argcount
    zs = [ocp.add_variable(f"z{i + 1}", Variable(f"z{i + 1}", start=1.0)) for i in range(n)]
    ocp.dae.extend(residuals(*[z.sym for z in zs]))
    ocp.sort_type()
    return (ocp,) + tuple(zs)


class TestMakeExplicit:
    """Tests for make_explicit."""

    def test_requires_blt(self) -> None:
        ocp, _, _ = oscillator()
        with pytest.raises(PreconditionError):
            make_explicit(ocp)

    def test_oscillator(self) -> None:
        ocp, x1, x2 = oscillator()
        sort_blt(ocp)
        make_explicit(ocp)
        assert [v.name for v in ocp.xd] == ["x1", "x2"]
        assert ocp.x == [] and ocp.dae == []
        assert ocp.blt is None
        assert x1.role == VariableRole.DIFFERENTIAL
        ode = evaluate(ca.vertcat(*ocp.ode), [x1.sym, x2.sym], [3.0, 5.0])
        np.testing.assert_allclose(ode, [5.0, -3.0])

    def test_linear_loop(self) -> None:
        # z1 + z2 == 3, z1 - z2 == 1
        ocp, z1, z2 = algebraic(lambda a, b: [a + b - 3, a - b - 1])
        bd = sort_blt(ocp)
        assert bd.block_sizes() == [2]
        make_explicit(ocp)
        assert {v.name for v in ocp.y} == {"z1", "z2"}
        assert z1.role == VariableRole.DEPENDENT
        values = {v.name: float(ca.DM(d)) for v, d in zip(ocp.y, ocp.dep)}
        assert values["z1"] == pytest.approx(2.0)
        assert values["z2"] == pytest.approx(1.0)

    def test_large_linear_block_uses_solve(self) -> None:
        # Cyclic coupling of five unknowns: z_i + z_{i+1} == i + 1
        def residuals(a, b, c, d, e):
            z = [a, b, c, d, e]
            return [z[i] + z[(i + 1) % 5] - (i + 1) for i in range(5)]

        ocp, *zs = algebraic(residuals)
        bd = sort_blt(ocp)
        assert bd.block_sizes() == [5]
        make_explicit(ocp)
        values = {v.name: float(ca.DM(d)) for v, d in zip(ocp.y, ocp.dep)}
        solution = np.linalg.solve(
            np.eye(5) + np.roll(np.eye(5), 1, axis=1), np.arange(1.0, 6.0)
        )
        for i, z in enumerate(zs):
            assert values[z.name] == pytest.approx(solution[i])

    def test_exact_newton(self) -> None:
        # z1**2 == 4 from z1 = 1, three exact Newton steps
        ocp, z1 = algebraic(lambda a: [a * a - 4])
        sort_blt(ocp)
        with pytest.warns(UserWarning, match="exact Newton iteration with 3 iterations"):
            make_explicit(ocp)
        assert float(ca.DM(ocp.dep[0])) == pytest.approx(2.000609756, rel=1e-8)

    def test_quasi_newton(self) -> None:
        ocp, z1 = algebraic(lambda a: [a * a - 4], exact_newton=False, newton_iterations=1)
        sort_blt(ocp)
        with pytest.warns(UserWarning, match="quasi- Newton"):
            make_explicit(ocp)
        assert float(ca.DM(ocp.dep[0])) == pytest.approx(2.5)

    def test_nonlinear_without_newton(self) -> None:
        ocp, _ = algebraic(lambda a: [ca.sin(a) - 0.5], newton_iterations=0)
        sort_blt(ocp)
        with pytest.raises(UnsupportedFeatureError, match="tearing"):
            make_explicit(ocp)

    def test_not_square(self) -> None:
        ocp, _, _ = algebraic(lambda a, b: [a - 1, 2 * a])
        sort_blt(ocp)
        with pytest.raises(UnsupportedFeatureError, match="structurally square"):
            make_explicit(ocp)

    def test_bounds_become_path_constraints(self) -> None:
        ocp = FlatOcp()
        x = ocp.add_variable("x", Variable("x"))
        z = ocp.add_variable("z", Variable("z", min_value=0.0, max_value=10.0))
        ocp.dae.append(x.der(create=True) + z.sym)
        ocp.dae.append(z.sym - x.sym * x.sym)
        ocp.sort_type()
        sort_blt(ocp)
        make_explicit(ocp)
        assert ocp.path_min == [0.0]
        assert ocp.path_max == [10.0]
        # z was eliminated from the constraint and the state equation
        assert not ca.depends_on(ocp.path[0], z.sym)
        assert evaluate(ocp.ode[0], [x.sym], [3.0])[0] == pytest.approx(-9.0)

    def test_scaled_bounds_become_path_constraints(self) -> None:
        ocp = FlatOcp()
        x = ocp.add_variable("x", Variable("x"))
        z = ocp.add_variable("z", Variable("z", nominal=2.0, min_value=0.0, max_value=10.0))
        ocp.dae.append(x.der(create=True) + z.sym)
        ocp.dae.append(z.sym - x.sym * x.sym)
        ocp.sort_type()
        scale_variables(ocp)
        sort_blt(ocp)
        make_explicit(ocp)
        assert ocp.path_min == [0.0]
        assert ocp.path_max == [5.0]
        # The constraint is on the scaled variable z/2
        assert evaluate(ocp.path[0], [x.sym], [3.0])[0] == pytest.approx(4.5)
        assert evaluate(ocp.ode[0], [x.sym], [3.0])[0] == pytest.approx(-9.0)

    def test_scaled_newton_seed(self) -> None:
        # der(x)**2 == 4e4 with nominal 100: the scaled derivative is 2
        ocp = FlatOcp()
        x = ocp.add_variable("x", Variable("x", nominal=100.0, derivative_start=150.0))
        ocp.dae.append(x.der(create=True) ** 2 - 4e4)
        ocp.sort_type()
        scale_variables(ocp)
        sort_blt(ocp)
        with pytest.warns(UserWarning, match="Newton iteration"):
            make_explicit(ocp)
        assert float(ca.DM(ocp.ode[0])) * x.nominal == pytest.approx(200.0, rel=1e-5)

    def test_init_fully_explicit(self) -> None:
        ocp, x1, x2 = oscillator(OcpOptions(fully_explicit=True))
        ocp.init()
        assert len(ocp.xd) == 2
        assert ocp.dae == []
        ode = evaluate(ca.vertcat(*ocp.ode), [x1.sym, x2.sym], [1.0, 2.0])
        np.testing.assert_allclose(ode, [2.0, -1.0])


class TestMakeAlgebraic:
    """Tests for make_algebraic."""

    def test_implicit_state(self) -> None:
        ocp, x1, _ = oscillator()
        d = x1.der()
        make_algebraic(ocp, "x1")
        assert not x1.has_derivative
        assert x1.role == VariableRole.ALGEBRAIC
        assert not ca.depends_on(ocp.dae[0], d)
        assert x1 in ocp.algebraic()

    def test_explicit_state(self) -> None:
        ocp, x1, x2 = oscillator()
        sort_blt(ocp)
        make_explicit(ocp)
        make_algebraic(ocp, "x2")
        assert [v.name for v in ocp.xd] == ["x1"]
        assert [v.name for v in ocp.x] == ["x2"]
        # 0 == -x1
        assert SX_close(evaluate(ocp.dae[0], [x1.sym], [4.0])[0], -4.0)

    def test_algebraic_rejected(self) -> None:
        ocp, _ = algebraic(lambda a: [a - 1])
        with pytest.raises(StructuralError, match="not a differential state"):
            make_algebraic(ocp, "z1")

    def test_unknown(self) -> None:
        ocp, _, _ = oscillator()
        with pytest.raises(UnknownVariableError):
            make_algebraic(ocp, "nope")
