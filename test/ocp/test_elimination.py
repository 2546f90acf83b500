"""Tests for the elimination of dependent variables."""

import casadi as ca
import pytest

from common import SX_close, evaluate
from flatocp.errors import CyclicDefinitionError
from flatocp.ir.types import Variability
from flatocp.ir.variable import Variable
from flatocp.ocp.elimination import (
    definition_order,
    dependency_graph,
    eliminate_dependent,
    eliminate_interdependencies,
)
from flatocp.ocp.model import FlatOcp


def build(*names: str) -> tuple:
    ocp = FlatOcp()
    return (ocp,) + tuple(ocp.add_variable(n, Variable(n)) for n in names)


class TestInterdependencies:
    """Tests for eliminate_interdependencies."""

    def test_chain(self) -> None:
        # y1 = x + 1, y2 = 2*y1, y3 = y2 + y1
        ocp, x, y1, y2, y3 = build("x", "y1", "y2", "y3")
        ocp.add_dependent(y3, y2.sym + y1.sym)
        ocp.add_dependent(y2, 2 * y1.sym)
        ocp.add_dependent(y1, x.sym + 1)
        assert dependency_graph(ocp) == [[1, 2], [2], []]
        assert definition_order(ocp) == [2, 1, 0]

        eliminate_interdependencies(ocp)
        dep_syms = [y1.sym, y2.sym, y3.sym]
        for d in ocp.dep:
            assert all(not ca.depends_on(d, s) for s in dep_syms)
        # y3 = 3*(x + 1)
        assert evaluate(ocp.dep[0], [x.sym], [1.0])[0] == pytest.approx(6.0)

    def test_constants_fold(self) -> None:
        ocp, a, b = build("a", "b")
        ocp.add_dependent(a, ca.SX(2.0))
        ocp.add_dependent(b, a.sym * 3)
        eliminate_interdependencies(ocp)
        assert ocp.dep[1].is_constant()
        assert SX_close(ocp.dep[1], 6.0)

    def test_self_cycle(self) -> None:
        ocp, y = build("y")
        ocp.add_dependent(y, y.sym + 1)
        with pytest.raises(CyclicDefinitionError) as exc:
            eliminate_interdependencies(ocp)
        assert exc.value.cycle == ["y", "y"]

    def test_cycle(self) -> None:
        ocp, a, b, c = build("a", "b", "c")
        ocp.add_dependent(a, b.sym)
        ocp.add_dependent(b, c.sym)
        ocp.add_dependent(c, a.sym * 2)
        with pytest.raises(CyclicDefinitionError, match="a -> b -> c -> a"):
            eliminate_interdependencies(ocp)


class TestEliminateDependent:
    """Tests for eliminate_dependent."""

    def test_substitutes_into_all_sets(self) -> None:
        # y := x1 + 1 with g = y - x2
        ocp, x1, x2, y = build("x1", "x2", "y")
        ocp.add_dependent(y, x1.sym + 1)
        ocp.path.append(y.sym - x2.sym)
        ocp.path_min.append(0.0)
        ocp.path_max.append(0.0)
        ocp.mterm.append(y.sym**2)
        ocp.initial.append(y.sym)
        eliminate_dependent(ocp)

        for eq in ocp.path + ocp.mterm + ocp.initial:
            assert not ca.depends_on(eq, y.sym)
        assert evaluate(ocp.path[0], [x1.sym, x2.sym], [2.0, 1.0])[0] == pytest.approx(2.0)
        assert evaluate(ocp.mterm[0], [x1.sym], [2.0])[0] == pytest.approx(9.0)
        # The definitions themselves are kept
        assert len(ocp.dep) == len(ocp.y) == 1

    def test_resolves_interdependencies_first(self) -> None:
        ocp, x, y1, y2 = build("x", "y1", "y2")
        ocp.add_dependent(y2, y1.sym * 2)
        ocp.add_dependent(y1, x.sym)
        ocp.lterm.append(y2.sym)
        eliminate_dependent(ocp)
        assert not ca.depends_on(ocp.lterm[0], y1.sym)
        assert evaluate(ocp.lterm[0], [x.sym], [4.0])[0] == pytest.approx(8.0)

    def test_idempotent(self) -> None:
        ocp, x, y = build("x", "y")
        ocp.add_dependent(y, ca.sin(x.sym))
        ocp.lterm.append(y.sym + x.sym)
        eliminate_dependent(ocp)
        first = ocp.lterm[0]
        eliminate_dependent(ocp)
        assert ca.is_equal(ocp.lterm[0], first, 10)

    def test_no_dependents(self) -> None:
        ocp, x = build("x")
        ocp.lterm.append(x.sym)
        eliminate_dependent(ocp)
        assert ca.is_equal(ocp.lterm[0], x.sym)

    def test_constant_variables(self) -> None:
        ocp = FlatOcp()
        c = ocp.add_variable("c", Variable("c", variability=Variability.CONSTANT, start=4.0))
        x = ocp.add_variable("x", Variable("x"))
        ocp.dae.append(x.der(create=True) - c.sym * x.sym)
        ocp.sort_type()
        eliminate_dependent(ocp)
        assert not ca.depends_on(ocp.dae[0], c.sym)
        assert evaluate(ocp.dae[0], [x.sym, x.der()], [1.0, 0.0])[0] == pytest.approx(-4.0)
