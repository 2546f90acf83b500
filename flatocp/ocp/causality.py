"""
Causalization of the implicit equations.

After BLT sorting, make_explicit solves the diagonal blocks of
0 == dae(x, der(x), ...) one at a time for their unknowns, turning the
implicit DAE into explicit differential equations and dependent variables.
"""

import warnings

import casadi as ca

from flatocp.errors import PreconditionError, StructuralError, UnsupportedFeatureError
from flatocp.ir.types import VariableRole
from flatocp.ir.variable import Variable
from flatocp.logging import logger, timed
from flatocp.ocp.elimination import eliminate_dependent
from flatocp.ocp.model import FlatOcp, substitute_all, vcat, vsplit


def _newton_guess(ocp: FlatOcp, variables: list[Variable]) -> ca.DM:
    guess = []
    for v in variables:
        if v.has_derivative:
            guess.append(v.derivative_start_value(scaled=ocp.scaled_variables))
        else:
            guess.append(v.start_value(scaled=ocp.scaled_variables))
    return ca.DM(guess)


def _solve_linear(fb: ca.SX, vb: ca.SX, jb: ca.SX) -> ca.SX:
    # fb == jb*vb + fb_res
    fb_res = ca.substitute(fb, vb, ca.SX.zeros(vb.shape[0], 1))
    if vb.shape[0] <= 3:
        return ca.mtimes(ca.inv(jb), -fb_res)
    return ca.solve(jb, -fb_res)


def _solve_newton(
    ocp: FlatOcp, b: int, fb: ca.SX, vb: ca.SX, jb: ca.SX, variables: list[Variable]
) -> ca.SX:
    opts = ocp.options
    if opts.newton_iterations == 0:
        raise UnsupportedFeatureError(
            f"Block {b} is nonlinear in {[v.name for v in variables]}; "
            "tearing is not implemented and newton_iterations is 0"
        )

    guess = _newton_guess(ocp, variables)
    if opts.exact_newton:
        step = vb - ca.solve(jb, fb)
    else:
        jb0 = ca.substitute(jb, vb, ca.SX(guess))
        step = vb - ca.solve(jb0, fb)

    xk = ca.SX(guess)
    for _ in range(opts.newton_iterations):
        xk = ca.substitute(step, vb, xk)

    warnings.warn(
        f"Using {'an exact' if opts.exact_newton else 'a quasi-'} Newton iteration with "
        f"{opts.newton_iterations} iterations to approximate block {b} for the "
        f"{len(variables)} variables {[v.name for v in variables]}"
    )
    logger.debug(
        "Block %d: the implicit equations have %d nodes, the explicit expression has %d",
        b,
        ca.n_nodes(fb),
        ca.n_nodes(xk),
    )
    return xk


def make_explicit(ocp: FlatOcp) -> None:
    """
    Make the implicit equations explicit, block by block.

    Linear blocks are solved exactly. Nonlinear blocks are replaced by a fixed
    number of Newton steps from the start values, which is an approximation.
    Differential states move to xd/ode; algebraic states become dependent
    variables, and their finite bounds become path constraints.

    Raises:
        PreconditionError: if sort_blt has not been called.
        UnsupportedFeatureError: if the structure is not square, or a block is
            nonlinear and newton_iterations is 0.
    """
    if ocp.blt is None:
        raise PreconditionError("The OCP has not been BLT sorted, call sort_blt() first")
    bd = ocp.blt
    if not bd.is_square or len(ocp.dae) != len(ocp.x):
        raise UnsupportedFeatureError(
            "Only structurally square DAEs can be made explicit; "
            f"coarse rows {bd.coarse_rowblock}, coarse columns {bd.coarse_colblock}"
        )

    with timed("Making explicit"):
        unknowns = vsplit(FlatOcp.highest(ocp.x))
        vb_cum: list[ca.SX] = []
        def_cum: list[ca.SX] = []

        for b in range(bd.nb):
            r0, r1 = bd.rowblock[b], bd.rowblock[b + 1]
            c0, c1 = bd.colblock[b], bd.colblock[b + 1]
            variables = ocp.x[c0:c1]
            vb = vcat(unknowns[c0:c1])
            fb = vcat(substitute_all(ocp.dae[r0:r1], vb_cum, def_cum))
            jb = ca.jacobian(fb, vb)

            if ca.depends_on(jb, vb):
                vb_exp = _solve_newton(ocp, b, fb, vb, jb, variables)
            else:
                vb_exp = _solve_linear(fb, vb, jb)

            vb_cum += vsplit(vb)
            def_cum += vsplit(vb_exp)

        for v, definition in zip(ocp.x, def_cum):
            if v.has_derivative:
                v.role = VariableRole.DIFFERENTIAL
                ocp.xd.append(v)
                ocp.ode.append(definition)
            else:
                v.role = VariableRole.DEPENDENT
                ocp.add_dependent(v, definition)
                if v.has_finite_bounds:
                    scale = v.nominal if ocp.scaled_variables else 1.0
                    ocp.add_path_constraint(v.sym, v.min_value / scale, v.max_value / scale)

        ocp.x = []
        ocp.dae = []
        ocp.blt = None

        eliminate_dependent(ocp)


def make_algebraic(ocp: FlatOcp, name: str) -> None:
    """
    Assume steady state for a differential state.

    An explicit state moves to the implicit equations as ``0 == ode``. An
    implicit state has its derivative replaced by zero.

    Raises:
        StructuralError: if the variable is not a differential state.
    """
    v = ocp.variable(name)
    for k, xd in enumerate(ocp.xd):
        if xd is v:
            ode = ocp.ode.pop(k)
            ocp.xd.pop(k)
            ocp.x.append(v)
            ocp.dae.append(ode)
            break
    else:
        if not any(x is v for x in ocp.x) or not v.has_derivative:
            raise StructuralError(f"Variable '{name}' is not a differential state")

    if v.has_derivative:
        ocp.substitute([v.der()], [ca.SX(0)])
        v.drop_derivative()
    v.role = VariableRole.ALGEBRAIC
    ocp.blt = None
