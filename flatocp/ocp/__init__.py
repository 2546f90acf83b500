"""
Flat optimal control problems and their transformation passes.
"""

from flatocp.ocp.options import OcpOptions
from flatocp.ocp.model import FlatOcp
from flatocp.ocp.sparsity import SparsityPattern
from flatocp.ocp.elimination import eliminate_dependent, eliminate_interdependencies
from flatocp.ocp.scaling import scale_equations, scale_variables
from flatocp.ocp.blt import BlockDecomposition, dae_sparsity, dulmage_mendelsohn, sort_blt
from flatocp.ocp.causality import make_algebraic, make_explicit

__all__ = [
    "OcpOptions",
    "FlatOcp",
    "SparsityPattern",
    "BlockDecomposition",
    # Passes
    "eliminate_interdependencies",
    "eliminate_dependent",
    "scale_variables",
    "scale_equations",
    "dae_sparsity",
    "dulmage_mendelsohn",
    "sort_blt",
    "make_explicit",
    "make_algebraic",
]
