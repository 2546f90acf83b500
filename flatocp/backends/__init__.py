"""
Backends converting the expression IR to symbolic frameworks.
"""

from flatocp.backends.casadi import CasadiConverter

__all__ = ["CasadiConverter"]
