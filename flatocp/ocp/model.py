"""
Flat optimal control problem.

A FlatOcp holds the variables of a model sorted by role together with the
equation sets that define them:

    0 == dae(t, x, der(x), p, u)       implicit equations, matched with x
    der(xd) == ode(t, xd, xa, p, u)     explicit differential equations
    xa == alg(t, xd, p, u)              explicit algebraic equations
    der(q) == quad(t, xd, xa, p, u)     quadrature equations
    y == dep(t, xd, xa, p, u)           dependent variables
    0 == initial(...)                   initial equations
    path_min <= path(...) <= path_max   path constraints
    mterm, lterm                        Mayer and Lagrange objective terms

The passes in flatocp.ocp.elimination, flatocp.ocp.scaling,
flatocp.ocp.blt and flatocp.ocp.causality mutate the problem in place.
init() runs them in the standard order.
"""

import math
from typing import Optional

import casadi as ca

from flatocp.errors import PreconditionError, StructuralError
from flatocp.ir.registry import VariableRegistry
from flatocp.ir.types import VariableRole
from flatocp.ir.variable import Variable
from flatocp.logging import timed
from flatocp.ocp.options import OcpOptions


def vcat(exprs: list) -> ca.SX:
    """Stack scalar expressions into a column, empty lists give a 0x1 matrix."""
    if not exprs:
        return ca.SX(0, 1)
    return ca.vertcat(*exprs)


def vsplit(m: ca.SX) -> list[ca.SX]:
    """Split a column into its scalar entries."""
    return [m[i] for i in range(m.shape[0])]


def substitute_all(exprs: list[ca.SX], old: list[ca.SX], new: list[ca.SX]) -> list[ca.SX]:
    """Substitute ``old`` by ``new`` in a list of scalar expressions."""
    if not exprs or not old:
        return list(exprs)
    return vsplit(ca.substitute(vcat(exprs), vcat(old), vcat(new)))


class FlatOcp:
    """
    Flat optimal control problem in DAE form.

    Example:
        >>> from flatocp.ir.variable import Variable
        >>> ocp = FlatOcp()
        >>> x = ocp.add_variable("x", Variable("x", start=1.0))
        >>> ocp.dae.append(x.der(create=True) + x.sym)
        >>> ocp.sort_type()
        >>> [v.name for v in ocp.x]
        ['x']
    """

    def __init__(self, options: Optional[OcpOptions] = None) -> None:
        self.options = options if options is not None else OcpOptions()
        self.registry = VariableRegistry()

        # Independent variable and time horizon
        self.t = ca.SX.sym("time")
        self.t0 = math.nan
        self.tf = math.nan

        # Variables by role
        self.x: list[Variable] = []
        self.xd: list[Variable] = []
        self.xa: list[Variable] = []
        self.q: list[Variable] = []
        self.y: list[Variable] = []
        self.p: list[Variable] = []
        self.u: list[Variable] = []

        # Equation sets
        self.dae: list[ca.SX] = []
        self.ode: list[ca.SX] = []
        self.alg: list[ca.SX] = []
        self.quad: list[ca.SX] = []
        self.initial: list[ca.SX] = []
        self.dep: list[ca.SX] = []
        self.path: list[ca.SX] = []
        self.path_min: list[float] = []
        self.path_max: list[float] = []
        self.mterm: list[ca.SX] = []
        self.lterm: list[ca.SX] = []

        # Pass state
        self.type_sorted = False
        self.scaled_variables = False
        self.scaled_equations = False
        self.blt = None

    # Building

    def add_variable(self, name: str, variable: Variable) -> Variable:
        self.registry.add(name, variable)
        return variable

    def variable(self, name: str) -> Variable:
        return self.registry.lookup(name)

    def add_dependent(self, variable: Variable, definition: ca.SX) -> None:
        """Add a binding equation ``variable == definition``."""
        if any(v is variable for v in self.y):
            raise StructuralError(f"Variable '{variable.name}' has more than one binding equation")
        self.y.append(variable)
        self.dep.append(definition)

    def add_path_constraint(self, expr: ca.SX, lb: float, ub: float) -> None:
        """Add ``lb <= expr <= ub``."""
        self.path.append(expr)
        self.path_min.append(lb)
        self.path_max.append(ub)

    def sort_type(self) -> None:
        """
        Sort the registered variables into x, u, p and y.

        Variables with a binding equation are already in y. Implicit states go
        to x in registry order, whether differential or algebraic. Constants are
        appended to y, bound to their start value.

        Raises:
            PreconditionError: if the variables have already been sorted.
        """
        if self.type_sorted:
            raise PreconditionError("The variables have already been sorted")
        roles = self.registry.sort_by_role([v.name for v in self.y])

        self.x = [
            v for v in self.registry if v.role in (VariableRole.DIFFERENTIAL, VariableRole.ALGEBRAIC)
        ]
        self.xd = []
        self.xa = []
        self.u = roles[VariableRole.CONTROL]
        self.p = roles[VariableRole.PARAMETER]
        for v in roles[VariableRole.DEPENDENT]:
            self.y.append(v)
            self.dep.append(ca.SX(v.start))
        self.type_sorted = True

    def check_dimensions(self) -> None:
        """Make sure every equation set matches its variables."""
        pairs = [
            ("dae", self.dae, "x", self.x),
            ("ode", self.ode, "xd", self.xd),
            ("alg", self.alg, "xa", self.xa),
            ("quad", self.quad, "q", self.q),
            ("dep", self.dep, "y", self.y),
            ("path_min", self.path_min, "path", self.path),
            ("path_max", self.path_max, "path", self.path),
        ]
        for eq_name, eqs, var_name, variables in pairs:
            if len(eqs) != len(variables):
                raise StructuralError(
                    f"Dimension mismatch: {len(eqs)} entries in {eq_name} "
                    f"but {len(variables)} in {var_name}"
                )

    # Symbolic views

    def differential(self) -> list[Variable]:
        """Implicit states that appear differentiated."""
        return [v for v in self.x if v.has_derivative]

    def algebraic(self) -> list[Variable]:
        """Implicit states that do not appear differentiated."""
        return [v for v in self.x if not v.has_derivative]

    @staticmethod
    def syms(variables: list[Variable]) -> ca.SX:
        return vcat([v.sym for v in variables])

    @staticmethod
    def ders(variables: list[Variable]) -> ca.SX:
        return vcat([v.der() for v in variables])

    @staticmethod
    def highest(variables: list[Variable]) -> ca.SX:
        return vcat([v.highest for v in variables])

    def equation_sets(self) -> dict[str, list[ca.SX]]:
        """Named equation sets that may reference model variables."""
        return {
            "dae": self.dae,
            "ode": self.ode,
            "alg": self.alg,
            "quad": self.quad,
            "initial": self.initial,
            "dep": self.dep,
            "path": self.path,
            "mterm": self.mterm,
            "lterm": self.lterm,
        }

    def substitute(self, old: list[ca.SX], new: list[ca.SX], skip: tuple[str, ...] = ()) -> None:
        """Substitute symbols in every equation set except those named in ``skip``."""
        for name, eqs in self.equation_sets().items():
            if name not in skip:
                eqs[:] = substitute_all(eqs, old, new)

    # Pipeline

    def init(self) -> None:
        """Run the transformation pipeline selected by the options."""
        from flatocp.ocp.blt import sort_blt
        from flatocp.ocp.causality import make_explicit
        from flatocp.ocp.elimination import eliminate_dependent, eliminate_interdependencies
        from flatocp.ocp.scaling import scale_equations, scale_variables

        opts = self.options
        with timed("Initializing flat OCP"):
            if opts.scale_variables:
                scale_variables(self)
            eliminate_interdependencies(self)
            if opts.eliminate_dependent:
                eliminate_dependent(self)
            if opts.scale_equations:
                scale_equations(self)
            if opts.fully_explicit:
                sort_blt(self, with_x=opts.with_x)
                make_explicit(self)

    # Printing

    def __repr__(self) -> str:
        return (
            f"FlatOcp(#x={len(self.x)}, #xd={len(self.xd)}, #xa={len(self.xa)}, "
            f"#q={len(self.q)}, #y={len(self.y)}, #p={len(self.p)}, #u={len(self.u)})"
        )

    def __str__(self) -> str:
        def names(variables: list[Variable]) -> str:
            return "[" + ", ".join(v.name for v in variables) + "]"

        lines = [
            f"Dimensions: #s = {len(self.x)}, #xd = {len(self.xd)}, #z = {len(self.xa)}, "
            f"#q = {len(self.q)}, #y = {len(self.y)}, #p = {len(self.p)}, #u = {len(self.u)}",
            "",
            "Variables",
            "{",
            f"  t = {self.t}",
            f"  s =  {names(self.x)}",
            f"  xd = {names(self.xd)}",
            f"  z =  {names(self.xa)}",
            f"  q =  {names(self.q)}",
            f"  y =  {names(self.y)}",
            f"  p =  {names(self.p)}",
            f"  u =  {names(self.u)}",
            "}",
            "Implicit dynamic equations",
        ]
        lines += [f"0 == {e}" for e in self.dae]
        lines += ["", "Explicit differential equations"]
        lines += [f"{v.der()} == {e}" for v, e in zip(self.xd, self.ode)]
        lines += ["", "Algebraic equations"]
        lines += [f"{v.sym} == {e}" for v, e in zip(self.xa, self.alg)]
        lines += ["", "Quadrature equations"]
        lines += [f"{v.der()} == {e}" for v, e in zip(self.q, self.quad)]
        lines += ["", "Initial equations"]
        lines += [f"0 == {e}" for e in self.initial]
        lines += ["", "Dependent equations"]
        lines += [f"{v.sym} == {e}" for v, e in zip(self.y, self.dep)]
        lines += ["", "Mayer objective terms"]
        lines += [str(e) for e in self.mterm]
        lines += ["", "Lagrange objective terms"]
        lines += [str(e) for e in self.lterm]
        lines += ["", "Constraint functions"]
        lines += [
            f"{lb} <= {e} <= {ub}" for e, lb, ub in zip(self.path, self.path_min, self.path_max)
        ]
        lines += ["", "Time horizon", f"t0 = {self.t0}", f"tf = {self.tf}"]
        return "\n".join(lines)
