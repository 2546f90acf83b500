"""
Scaling of variables and equations.

Variables are scaled by their nominal values, so that the scaled variable
is of order one when the model behaves as its author expected. The implicit
equations are then scaled by the largest entry of their Jacobian row at the
start point.
"""

import warnings

import casadi as ca
import numpy as np

from flatocp.errors import PreconditionError
from flatocp.ir.variable import Variable
from flatocp.logging import logger, timed
from flatocp.ocp.model import FlatOcp, vcat


def _start(variables: list[Variable]) -> ca.DM:
    if not variables:
        return ca.DM.zeros(0, 1)
    return ca.DM([v.start_value(scaled=True) for v in variables])


def scale_variables(ocp: FlatOcp) -> None:
    """
    Replace every non-dependent variable v by v*nominal(v) in all equations.

    Derivatives and timed references are scaled with the same factor. The
    explicit equations are divided by the nominal value of the variable they
    define, so that they define the scaled variable.

    Raises:
        PreconditionError: if the variables are already scaled.
    """
    if ocp.scaled_variables:
        raise PreconditionError("The variables have already been scaled")

    with timed("Scaling variables"):
        old: list[ca.SX] = []
        new: list[ca.SX] = []
        for v in ocp.x + ocp.xd + ocp.xa + ocp.q + ocp.p + ocp.u:
            if v.nominal == 1.0:
                continue
            syms = [v.sym] + v.timed_symbols()
            if v.has_derivative:
                syms.append(v.der())
            for s in syms:
                old.append(s)
                new.append(s * v.nominal)

        ocp.substitute(old, new)

        for eqs, variables in ((ocp.ode, ocp.xd), (ocp.alg, ocp.xa), (ocp.quad, ocp.q)):
            for k, v in enumerate(variables):
                eqs[k] = eqs[k] / v.nominal

        ocp.scaled_variables = True
        logger.debug("Scaled %d symbols", len(old))


def scale_equations(ocp: FlatOcp) -> np.ndarray:
    """
    Divide every implicit equation by the largest absolute entry of its
    Jacobian row, evaluated at t=0, the scaled start values and zero
    derivatives.

    Rows without a finite nonzero entry keep scale 1, with a warning.

    Returns:
        The scale factors, one per implicit equation.

    Raises:
        PreconditionError: if the equations are already scaled, or the
            variables are not.
    """
    if ocp.scaled_equations:
        raise PreconditionError("The equations have already been scaled")
    if not ocp.scaled_variables:
        raise PreconditionError("The variables must be scaled before the equations")
    if not ocp.dae:
        return np.ones(0)

    with timed("Scaling equations"):
        states = ocp.differential() + ocp.xd
        algebraic = ocp.algebraic() + ocp.xa

        x = FlatOcp.syms(states)
        xdot = FlatOcp.ders(states)
        z = FlatOcp.syms(algebraic)
        p = FlatOcp.syms(ocp.p)
        u = FlatOcp.syms(ocp.u)

        dae = vcat(ocp.dae)
        if ocp.y:
            dae = ca.substitute(dae, FlatOcp.syms(ocp.y), vcat(ocp.dep))
        jac = ca.jacobian(dae, ca.vertcat(x, xdot, z, p, u))
        fcn = ca.Function("dae_jac", [ocp.t, x, xdot, z, p, u], [jac])

        j0 = fcn(
            0.0,
            _start(states),
            ca.DM.zeros(xdot.shape[0], 1),
            _start(algebraic),
            _start(ocp.p),
            _start(ocp.u),
        )

        scale = np.zeros(len(ocp.dae))
        rows, _ = j0.sparsity().get_triplet()
        for row, value in zip(rows, j0.nonzeros()):
            if np.isfinite(value) and value != 0.0:
                scale[row] = max(scale[row], abs(value))

        for i in range(len(ocp.dae)):
            if scale[i] == 0.0:
                warnings.warn(
                    f"Could not generate a scaling factor for equation {i} "
                    f"(0 == {ocp.dae[i]}), selecting 1."
                )
                scale[i] = 1.0
            ocp.dae[i] = ocp.dae[i] / float(scale[i])

        ocp.scaled_equations = True
    return scale
