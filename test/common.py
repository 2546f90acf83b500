import casadi as ca
import numpy as np
from beartype import beartype
from beartype.typing import Union

EPS = 1e-9


@beartype
def is_finite(e: Union[ca.SX, ca.DM]) -> bool:
    """Check if all elements in a CasADi expression are finite."""
    return bool(np.all(np.isfinite(np.array(ca.DM(e)))))


@beartype
def SX_close(e1: Union[ca.SX, ca.DM, float], e2: Union[ca.SX, ca.DM, float]) -> bool:
    """Check if two constant CasADi expressions are close within EPS tolerance."""
    close = float(ca.mmax(ca.fabs(ca.DM(e1) - ca.DM(e2)))) < EPS
    if not close:
        print(ca.DM(e1), ca.DM(e2))
    return close


@beartype
def evaluate(expr: ca.SX, symbols: list, values: list) -> np.ndarray:
    """Evaluate a scalar or column SX expression at the given symbol values."""
    fcn = ca.Function("f", symbols, [expr])
    return np.array(fcn(*values)).ravel() if symbols else np.array(ca.DM(expr)).ravel()


XML_HEADER = (
    '<fmiModelDescription xmlns:exp="https://svn.jmodelica.org/trunk/XML/daeExpressions.xsd" '
    'xmlns:equ="https://svn.jmodelica.org/trunk/XML/daeEquations.xsd" '
    'xmlns:opt="https://svn.jmodelica.org/trunk/XML/daeOptimization.xsd" '
    'modelName="test">'
)


def model_description(body: str) -> str:
    """Wrap sections in a model description root element."""
    return XML_HEADER + body + "</fmiModelDescription>"
