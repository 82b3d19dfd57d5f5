# pyesm/grid.py

"""
Defines the 2D horizontal boundary space shared by every component model.

All components (atmosphere, land, ocean, sea ice) and the coupler live on the
same regular latitude-longitude grid, so a coupler field maps column-for-column
onto any component's surface field without regridding.
"""

from __future__ import annotations

import numpy as np

from . import constants
from .errors import FieldShapeError


class BoundarySpace:
    """
    Represents the global cell-centred lat-lon surface grid.
    """
    def __init__(self, n_lat: int, n_lon: int, radius: float = constants.PLANET_RADIUS):
        """
        Initializes a grid with a specified resolution.

        Args:
            n_lat (int): Number of latitude cells.
            n_lon (int): Number of longitude cells.
            radius (float): Sphere radius in metres.
        """
        if n_lat < 1 or n_lon < 1:
            raise ValueError(f"BoundarySpace needs at least one cell, got ({n_lat}, {n_lon})")
        self.n_lat = int(n_lat)
        self.n_lon = int(n_lon)
        self.radius = float(radius)

        # Cell edges, then centres (no points sit on the poles)
        self.lat_edges = np.linspace(-90.0, 90.0, self.n_lat + 1)
        self.lon_edges = np.linspace(0.0, 360.0, self.n_lon + 1)
        self.lat = 0.5 * (self.lat_edges[:-1] + self.lat_edges[1:])
        self.lon = 0.5 * (self.lon_edges[:-1] + self.lon_edges[1:])

        # Create a 2D meshgrid for calculations
        self.lon_mesh, self.lat_mesh = np.meshgrid(self.lon, self.lat)

        # Grid spacing in radians
        self.dlat_rad = np.deg2rad(180.0 / self.n_lat)
        self.dlon_rad = np.deg2rad(360.0 / self.n_lon)

        # Exact spherical cell areas: A = R^2 * dlon * (sin(phi_n) - sin(phi_s))
        sin_edges = np.sin(np.deg2rad(self.lat_edges))
        band = self.radius ** 2 * self.dlon_rad * (sin_edges[1:] - sin_edges[:-1])
        self.cell_area = np.repeat(band[:, None], self.n_lon, axis=1)

    @property
    def shape(self) -> tuple[int, int]:
        return (self.n_lat, self.n_lon)

    @property
    def total_area(self) -> float:
        return float(np.sum(self.cell_area))

    def zeros(self) -> np.ndarray:
        return np.zeros(self.shape, dtype=float)

    def full(self, value: float) -> np.ndarray:
        return np.full(self.shape, float(value), dtype=float)

    def check(self, value, name: str = "field", allow_scalar: bool = False):
        """
        Validate that `value` lives on this space and return it as an array.

        Scalars are accepted only when `allow_scalar` is set. Anything else
        must have exactly `self.shape`; no broadcasting is performed.
        """
        if np.ndim(value) == 0:
            if allow_scalar:
                return float(value)
            raise FieldShapeError(f"{name}: expected array of shape {self.shape}, got a scalar")
        arr = np.asarray(value, dtype=float)
        if arr.shape != self.shape:
            raise FieldShapeError(f"{name}: expected shape {self.shape}, got {arr.shape}")
        return arr

    def integrate(self, field) -> float:
        """
        Area integral of `field` over the sphere (field units x m^2).
        """
        if np.ndim(field) == 0:
            return float(field) * self.total_area
        return float(np.sum(np.asarray(field, dtype=float) * self.cell_area))

    def global_mean(self, field) -> float:
        return self.integrate(field) / self.total_area

    def same_as(self, other: BoundarySpace) -> bool:
        return (
            self.shape == other.shape
            and np.allclose(self.lat, other.lat)
            and np.allclose(self.lon, other.lon)
            and np.isclose(self.radius, other.radius)
        )

    def __repr__(self) -> str:
        return f"BoundarySpace(n_lat={self.n_lat}, n_lon={self.n_lon})"
