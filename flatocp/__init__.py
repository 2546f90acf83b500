"""
flatocp - Flat optimal control problems with CasADi

Reads FMI/JModelica style model descriptions into a flat optimal control
problem, eliminates dependent variables, scales, BLT sorts and causalizes the
DAE, and builds the derivative functions an NLP solver needs.
"""

from beartype import BeartypeConf
from beartype.claw import beartype_package

beartype_package(__name__, conf=BeartypeConf(is_pep484_tower=True))

__version__ = "0.1.0"

from . import errors
from . import ir
from . import ocp
from . import nlp
from . import io

__all__ = ["errors", "ir", "ocp", "nlp", "io", "__version__"]
