"""
pyesm: a coupled Earth-system model (atmosphere, land, ocean, sea ice) on a
shared lat-lon boundary space, exchanging fluxes through a central coupler.
"""

from .grid import BoundarySpace
from .timevarying import TimeVaryingInput

__all__ = ["BoundarySpace", "TimeVaryingInput"]
