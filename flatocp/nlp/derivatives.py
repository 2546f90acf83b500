"""
Derivative functions of a nonlinear program.

An NLP is given as a CasADi function with the fixed signature

    (x, p) -> (f, g)

where x are the decision variables, p the parameters, f the scalar objective
and g the constraints. DerivativeFunctionManager builds the derived functions
a solver needs on first request, checks their signatures and caches them.
"""

import warnings
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

import casadi as ca

from flatocp.errors import ConfigurationError, SignatureError
from flatocp.logging import logger
from flatocp.nlp.options import NlpOptions


class DerivativeKind(Enum):
    GRAD_F = "grad_f"
    JAC_F = "jac_f"
    JAC_G = "jac_g"
    GRAD_LAG = "grad_lag"
    HESS_LAG = "hess_lag"
    HESS_LAG_SPARSITY = "hess_lag_sparsity"


@dataclass(frozen=True)
class Scheme:
    """Input and output names of a derivative function."""

    inputs: tuple[str, ...]
    outputs: tuple[str, ...]


NLP_SCHEME = Scheme(("x", "p"), ("f", "g"))

SCHEMES: dict[DerivativeKind, Scheme] = {
    DerivativeKind.GRAD_F: Scheme(("x", "p"), ("grad", "f", "g")),
    DerivativeKind.JAC_F: Scheme(("x", "p"), ("jac", "f", "g")),
    DerivativeKind.JAC_G: Scheme(("x", "p"), ("jac", "f", "g")),
    DerivativeKind.GRAD_LAG: Scheme(("x", "p", "lam_f", "lam_g"), ("f", "g", "grad_x", "grad_p")),
    DerivativeKind.HESS_LAG: Scheme(
        ("x", "p", "lam_f", "lam_g"), ("hess", "f", "g", "grad_x", "grad_p")
    ),
}


def symbolic_inputs(fcn: ca.Function) -> list:
    """Symbolic inputs matching the expression type of a function."""
    if fcn.is_a("SXFunction"):
        return fcn.sx_in()
    return fcn.mx_in()


class DerivativeFunctionManager:
    """
    Lazily built and cached derivative functions of an NLP.

    Each accessor builds its function on the first call, either from the
    user-supplied function in the options or from the NLP symbolically, checks
    the number of inputs and outputs against the fixed scheme and returns the
    same object on every later call.

    Example:
        >>> x = ca.SX.sym("x", 2)
        >>> nlp = ca.Function("nlp", [x, ca.SX(0, 1)], [ca.sumsqr(x), x[0] + x[1] - 1])
        >>> manager = DerivativeFunctionManager(nlp)
        >>> manager.jac_g() is manager.jac_g()
        True
    """

    def __init__(self, nlp: ca.Function, options: Optional[NlpOptions] = None) -> None:
        if nlp.n_in() != len(NLP_SCHEME.inputs):
            raise ConfigurationError(
                f"The NLP function must have exactly two inputs, got {nlp.n_in()}"
            )
        if nlp.n_out() != len(NLP_SCHEME.outputs):
            raise ConfigurationError(
                f"The NLP function must have exactly two outputs, got {nlp.n_out()}"
            )
        self.options = options if options is not None else NlpOptions()

        if self.options.expand:
            if nlp.is_a("MXFunction"):
                logger.info("Expanding NLP in scalar operations")
                nlp = nlp.expand()
            else:
                warnings.warn("Cannot expand NLP as it is not an MXFunction")
        self.nlp = nlp

        self.nx = nlp.nnz_in(0)
        self.np = nlp.nnz_in(1)
        self.ng = nlp.nnz_out(1)

        self._cache: dict[DerivativeKind, Union[ca.Function, ca.Sparsity]] = {}
        self.build_count: Counter = Counter()

    # Caching and validation

    def _get(self, kind: DerivativeKind, build: Callable[[], Union[ca.Function, ca.Sparsity]]):
        if kind not in self._cache:
            logger.debug("Generating %s", kind.value)
            self._cache[kind] = build()
            self.build_count[kind] += 1
        return self._cache[kind]

    def _function(self, kind: DerivativeKind, generate: Callable[[], ca.Function]) -> ca.Function:
        def build() -> ca.Function:
            override = self.options.override(kind.value)
            fcn = override if override is not None else generate()
            scheme = SCHEMES[kind]
            if fcn.n_in() != len(scheme.inputs):
                raise SignatureError(kind.value, "inputs", len(scheme.inputs), fcn.n_in())
            if fcn.n_out() != len(scheme.outputs):
                raise SignatureError(kind.value, "outputs", len(scheme.outputs), fcn.n_out())
            if override is None:
                return fcn
            # Give the user function the standard name and IO names
            args = symbolic_inputs(fcn)
            return ca.Function(
                kind.value, args, fcn.call(args), list(scheme.inputs), list(scheme.outputs)
            )

        return self._get(kind, build)

    def _nlp_symbols(self):
        x, p = symbolic_inputs(self.nlp)
        f, g = self.nlp.call([x, p])
        return x, p, f, g

    def _named(self, kind: DerivativeKind, args: list, res: list) -> ca.Function:
        scheme = SCHEMES[kind]
        return ca.Function(kind.value, args, res, list(scheme.inputs), list(scheme.outputs))

    # Accessors

    def grad_f(self) -> ca.Function:
        """Gradient of the objective: (x, p) -> (grad, f, g)."""

        def generate() -> ca.Function:
            x, p, f, g = self._nlp_symbols()
            return self._named(DerivativeKind.GRAD_F, [x, p], [ca.gradient(f, x), f, g])

        return self._function(DerivativeKind.GRAD_F, generate)

    def jac_f(self) -> ca.Function:
        """Jacobian of the objective (a row): (x, p) -> (jac, f, g)."""

        def generate() -> ca.Function:
            x, p, f, g = self._nlp_symbols()
            return self._named(DerivativeKind.JAC_F, [x, p], [ca.jacobian(f, x), f, g])

        return self._function(DerivativeKind.JAC_F, generate)

    def jac_g(self) -> Optional[ca.Function]:
        """Jacobian of the constraints: (x, p) -> (jac, f, g). None without constraints."""
        if self.ng == 0:
            return None

        def generate() -> ca.Function:
            x, p, f, g = self._nlp_symbols()
            return self._named(DerivativeKind.JAC_G, [x, p], [ca.jacobian(g, x), f, g])

        return self._function(DerivativeKind.JAC_G, generate)

    def grad_lag(self) -> ca.Function:
        """
        Gradient of the Lagrangian ``lam_f*f + lam_g'*g``:
        (x, p, lam_f, lam_g) -> (f, g, grad_x, grad_p).
        """

        def generate() -> ca.Function:
            x, p, f, g = self._nlp_symbols()
            sym = type(x).sym
            lam_f = sym("lam_f", f.sparsity())
            lam_g = sym("lam_g", g.sparsity())
            lag = lam_f * f + ca.dot(lam_g, g)
            return self._named(
                DerivativeKind.GRAD_LAG,
                [x, p, lam_f, lam_g],
                [f, g, ca.gradient(lag, x), ca.gradient(lag, p)],
            )

        return self._function(DerivativeKind.GRAD_LAG, generate)

    def _grad_lag_symbols(self):
        grad_lag = self.grad_lag()
        args = symbolic_inputs(grad_lag)
        return args, grad_lag.call(args)

    def hess_lag(self) -> ca.Function:
        """
        Hessian of the Lagrangian with respect to x, as the Jacobian of the
        gradient of the Lagrangian: (x, p, lam_f, lam_g) -> (hess, f, g, grad_x, grad_p).
        """

        def generate() -> ca.Function:
            args, (f, g, grad_x, grad_p) = self._grad_lag_symbols()
            hess = ca.jacobian(grad_x, args[0])
            return self._named(DerivativeKind.HESS_LAG, args, [hess, f, g, grad_x, grad_p])

        return self._function(DerivativeKind.HESS_LAG, generate)

    def hess_lag_sparsity(self) -> ca.Sparsity:
        """Sparsity of the Jacobian of grad_x of the Lagrangian gradient with respect to x."""

        def build() -> ca.Sparsity:
            args, res = self._grad_lag_symbols()
            return ca.jacobian(res[2], args[0]).sparsity()

        return self._get(DerivativeKind.HESS_LAG_SPARSITY, build)
