# pyesm/timevarying.py
"""
Monthly boundary data (SST, sea-ice concentration, CO2) evaluated at a date.

Implements a minimal time-varying input: a sorted list of sample dates with one
field (or scalar) per date, linearly interpolated in time and held constant
outside the sampled range.

Key public API:
- TimeVaryingInput(dates, data, name)
- TimeVaryingInput.evaluate(date) -> field or scalar
- TimeVaryingInput.monthly_climatology(values, year0, n_years, name)
- TimeVaryingInput.from_netcdf(path, varname, boundary_space)  (regrids onto the boundary space)

Notes:
- NetCDF time axes must be "<unit> since <date>" with unit days or hours.
- Regridding is bilinear with a cyclic longitude extension, as for topography.
"""

from __future__ import annotations

import bisect
from datetime import datetime, timedelta

import numpy as np


class TimeVaryingInput:
    def __init__(self, dates, data, name: str = ""):
        dates = list(dates)
        data = np.asarray(data, dtype=float)
        if len(dates) == 0:
            raise ValueError(f"TimeVaryingInput {name!r}: no samples")
        if data.shape[0] != len(dates):
            raise ValueError(
                f"TimeVaryingInput {name!r}: {len(dates)} dates but data has leading dimension {data.shape[0]}"
            )
        order = sorted(range(len(dates)), key=lambda i: dates[i])
        self.dates = [dates[i] for i in order]
        self.data = data[order]
        self.name = name

    @property
    def is_scalar(self) -> bool:
        return self.data.ndim == 1

    def evaluate(self, date: datetime):
        """Linear interpolation between the bracketing samples (flat outside)."""
        if date <= self.dates[0]:
            return self._sample(0)
        if date >= self.dates[-1]:
            return self._sample(-1)
        i1 = bisect.bisect_right(self.dates, date)
        i0 = i1 - 1
        d0, d1 = self.dates[i0], self.dates[i1]
        w = (date - d0).total_seconds() / (d1 - d0).total_seconds()
        out = (1.0 - w) * self.data[i0] + w * self.data[i1]
        return float(out) if self.is_scalar else out

    def _sample(self, i: int):
        return float(self.data[i]) if self.is_scalar else self.data[i].copy()

    @classmethod
    def monthly_climatology(cls, values, year0: int, n_years: int = 1, name: str = "", day: int = 15) -> TimeVaryingInput:
        """
        Repeat 12 monthly values (scalars or fields) on day `day` of each month,
        padded with December of the previous year and January of the next one.
        """
        values = np.asarray(values, dtype=float)
        if values.shape[0] != 12:
            raise ValueError(f"monthly climatology {name!r} needs 12 values, got {values.shape[0]}")
        dates = [datetime(year0 - 1, 12, day)]
        data = [values[11]]
        for y in range(year0, year0 + int(n_years)):
            for m in range(12):
                dates.append(datetime(y, m + 1, day))
                data.append(values[m])
        dates.append(datetime(year0 + int(n_years), 1, day))
        data.append(values[0])
        return cls(dates, np.stack(data), name=name)

    @classmethod
    def from_netcdf(cls, path: str, varname: str, boundary_space, *, time_var: str = "time", scale: float = 1.0) -> TimeVaryingInput:
        try:
            from netCDF4 import Dataset
        except Exception as e:
            raise RuntimeError("netCDF4 is required to read boundary data. Please install 'netCDF4'.") from e

        with Dataset(path, "r") as ds:
            tv = ds[time_var]
            dates = _decode_time(np.asarray(tv[:], dtype=float), getattr(tv, "units", "days since 1970-01-01"))
            raw = np.asarray(ds[varname][:], dtype=float) * float(scale)
            if raw.ndim == 1:
                return cls(dates, raw, name=varname)
            lat = np.asarray(ds["lat"][:], dtype=float)
            lon = np.asarray(ds["lon"][:], dtype=float)
        fields = np.stack([regrid_to_space(lat, lon, raw[k], boundary_space) for k in range(raw.shape[0])])
        return cls(dates, fields, name=varname)


def _decode_time(values: np.ndarray, units: str) -> list[datetime]:
    try:
        unit, ref = units.split(" since ")
        ref_date = datetime.fromisoformat(ref.strip().replace("T", " "))
    except Exception as e:
        raise ValueError(f"Unsupported time units: {units!r}") from e
    unit = unit.strip().lower()
    if unit in ("days", "day"):
        step = timedelta(days=1)
    elif unit in ("hours", "hour"):
        step = timedelta(hours=1)
    elif unit in ("seconds", "second", "s"):
        step = timedelta(seconds=1)
    else:
        raise ValueError(f"Unsupported time unit: {unit!r}")
    return [ref_date + float(v) * step for v in values]


def regrid_to_space(src_lat, src_lon, field, boundary_space) -> np.ndarray:
    from scipy.interpolate import RegularGridInterpolator

    lon = np.mod(np.asarray(src_lon, dtype=float), 360.0)
    lat = np.asarray(src_lat, dtype=float)
    arr = np.asarray(field, dtype=float)
    if arr.shape == boundary_space.shape and np.allclose(lat, boundary_space.lat) and np.allclose(lon, boundary_space.lon):
        return arr.copy()

    # Interpolator requires strictly increasing coords
    if not np.all(np.diff(lat) > 0):
        lat = lat[::-1]
        arr = arr[::-1, :]
    idx = np.argsort(lon)
    lon = lon[idx]
    arr = arr[:, idx]

    # Cyclic extension in longitude to avoid seam artifacts
    lon_ext = np.concatenate([lon - 360.0, lon, lon + 360.0])
    arr_ext = np.concatenate([arr, arr, arr], axis=1)
    interp = RegularGridInterpolator((lat, lon_ext), arr_ext, bounds_error=False, fill_value=None, method="linear")
    pts = np.column_stack([boundary_space.lat_mesh.ravel(), boundary_space.lon_mesh.ravel()])
    return interp(pts).reshape(boundary_space.shape)
