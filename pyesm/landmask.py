# pyesm/landmask.py
"""
Static land area fraction for the boundary space.

Key public functions:
- idealized_land_fraction(space, target_land_frac=0.29, seed=42, ...) -> fraction in [0, 1]
- load_land_fraction_from_netcdf(path, space, varname="land_fraction") -> fraction in [0, 1]

Notes:
- Continents are generalized Gaussian bumps on the sphere. The bump field is
  thresholded at the area-weighted quantile that gives the target land
  fraction, then smoothed so coastal cells carry fractional land.
"""

from __future__ import annotations

import numpy as np
from scipy.ndimage import gaussian_filter

from .timevarying import regrid_to_space


def _great_circle_distance_rad(lat_deg: np.ndarray, lon_deg: np.ndarray,
                               lat0_deg: float, lon0_deg: float) -> np.ndarray:
    lat = np.deg2rad(lat_deg)
    lon = np.deg2rad(lon_deg)
    lat0 = np.deg2rad(lat0_deg)
    lon0 = np.deg2rad(lon0_deg)
    cos_d = np.sin(lat) * np.sin(lat0) + np.cos(lat) * np.cos(lat0) * np.cos(lon - lon0)
    return np.arccos(np.clip(cos_d, -1.0, 1.0))


def _weighted_quantile(values: np.ndarray, weights: np.ndarray, q: float) -> float:
    v = values.ravel()
    w = weights.ravel()
    sorter = np.argsort(v)
    v = v[sorter]
    cum_w = np.cumsum(w[sorter])
    cum_w /= cum_w[-1]
    idx = int(np.clip(np.searchsorted(cum_w, q, side="left"), 0, v.size - 1))
    return float(v[idx])


def idealized_land_fraction(space,
                            target_land_frac: float = 0.29,
                            seed: int | None = 42,
                            n_continents: int = 3,
                            sigma_deg: float = 30.0,
                            shape_p: float = 2.0,
                            coast_smoothing: float = 0.75) -> np.ndarray:
    """
    Procedural land fraction with approximately `target_land_frac` land area.
    """
    if not 0.0 <= target_land_frac <= 1.0:
        raise ValueError(f"target_land_frac must be in [0, 1], got {target_land_frac}")
    if target_land_frac == 0.0:
        return space.zeros()
    if target_land_frac == 1.0:
        return space.full(1.0)

    rng = np.random.default_rng(seed)
    lats = np.rad2deg(np.arcsin(rng.uniform(-0.8, 0.8, size=n_continents)))
    lons = rng.uniform(0.0, 360.0, size=n_continents)
    amps = rng.uniform(0.8, 1.2, size=n_continents)

    H = np.zeros(space.shape, dtype=float)
    sigma_rad = np.deg2rad(sigma_deg)
    for lat0, lon0, A in zip(lats, lons, amps):
        d = _great_circle_distance_rad(space.lat_mesh, space.lon_mesh, lat0, lon0)
        H += A * np.exp(-(d / sigma_rad) ** shape_p)

    threshold = _weighted_quantile(H, space.cell_area, 1.0 - target_land_frac)
    mask = (H >= threshold).astype(float)
    if coast_smoothing > 0.0:
        mask = gaussian_filter(mask, sigma=coast_smoothing, mode=("nearest", "wrap"))
    return np.clip(mask, 0.0, 1.0)


def load_land_fraction_from_netcdf(path: str, space, varname: str = "land_fraction") -> np.ndarray:
    try:
        from netCDF4 import Dataset
    except Exception as e:
        raise RuntimeError("netCDF4 is required to load a land fraction. Please install 'netCDF4'.") from e

    with Dataset(path, "r") as ds:
        lat = np.asarray(ds["lat"][:], dtype=float)
        lon = np.asarray(ds["lon"][:], dtype=float)
        frac = np.asarray(ds[varname][:], dtype=float)
    return np.clip(regrid_to_space(lat, lon, frac, space), 0.0, 1.0)
