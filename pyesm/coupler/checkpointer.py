from __future__ import annotations

"""
NetCDF checkpoint / restart of component prognostic states and coupler fields.

Layout
- <output_dir>/checkpoint/checkpoint_<name>_<t>.nc   one file per component with
  a prognostic state (stubs have none and are skipped)
- <output_dir>/checkpoint/checkpoint_coupler_<t>.nc  coupler fields + calendar

Each file holds lat/lon coordinates, one (lat, lon) variable per state array,
and `t_seconds` / `date` attributes. Restoring gives physical-state
continuation; integrator internals are rebuilt by reinit().
"""

import os
from datetime import datetime

import numpy as np

from ..errors import FieldShapeError
from .time_manager import resync_callbacks


def _require_netcdf():
    try:
        from netCDF4 import Dataset
    except Exception as e:
        raise RuntimeError("netCDF4 is required for checkpoints. Please install 'netCDF4'.") from e
    return Dataset


def checkpoint_dir(output_dir: str) -> str:
    return os.path.join(output_dir, "checkpoint")


def checkpoint_path(output_dir: str, name: str, t: float) -> str:
    return os.path.join(checkpoint_dir(output_dir), f"checkpoint_{name}_{int(round(t))}.nc")


def write_state_netcdf(path: str, boundary_space, state: dict, attrs: dict | None = None) -> str:
    Dataset = _require_netcdf()
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with Dataset(path, "w") as ds:
        ds.createDimension("lat", boundary_space.n_lat)
        ds.createDimension("lon", boundary_space.n_lon)
        vlat = ds.createVariable("lat", "f8", ("lat",))
        vlon = ds.createVariable("lon", "f8", ("lon",))
        vlat[:] = boundary_space.lat
        vlon[:] = boundary_space.lon

        for name, data in state.items():
            if np.ndim(data) == 0:
                var = ds.createVariable(name, "f8")
                var[...] = float(data)
            else:
                arr = boundary_space.check(data, name=name)
                var = ds.createVariable(name, "f8", ("lat", "lon"))
                var[:] = arr

        ds.setncattr("title", "pyesm coupled model checkpoint")
        for k, v in (attrs or {}).items():
            ds.setncattr(k, v)
    return path


def read_state_netcdf(path: str, boundary_space) -> tuple[dict[str, np.ndarray], dict]:
    Dataset = _require_netcdf()
    state: dict[str, np.ndarray] = {}
    with Dataset(path, "r") as ds:
        nlat = len(ds.dimensions["lat"])
        nlon = len(ds.dimensions["lon"])
        if (nlat, nlon) != boundary_space.shape:
            raise FieldShapeError(
                f"checkpoint {os.path.basename(path)} is on a ({nlat}, {nlon}) grid, expected {boundary_space.shape}"
            )
        for name, var in ds.variables.items():
            if name in ("lat", "lon"):
                continue
            data = np.asarray(var[...], dtype=float)
            state[name] = float(data) if data.ndim == 0 else data.copy()
        attrs = {k: ds.getncattr(k) for k in ds.ncattrs()}
    return state, attrs


def checkpoint_model_state(sim, cs) -> str | None:
    state = sim.get_model_prog_state()
    if state is None:
        return None
    path = checkpoint_path(cs.output_dir, sim.name, cs.t)
    write_state_netcdf(path, cs.boundary_space, state, {
        "component": sim.name,
        "t_seconds": float(cs.t),
        "date": cs.dates.date.isoformat(),
    })
    return path


def checkpoint_sims(cs) -> list[str]:
    """Write every component's prognostic state plus the coupler's own fields/dates."""
    written = []
    for sim in cs.model_sims:
        path = checkpoint_model_state(sim, cs)
        if path is not None:
            written.append(path)
    path = checkpoint_path(cs.output_dir, "coupler", cs.t)
    write_state_netcdf(path, cs.boundary_space, cs.fields.as_dict(), {
        "component": "coupler",
        "t_seconds": float(cs.t),
        "date": cs.dates.date.isoformat(),
        "date0": cs.dates.date0.isoformat(),
        "date1": cs.dates.date1.isoformat(),
    })
    written.append(path)
    if cs.diag:
        print(f"[Checkpoint] wrote {len(written)} file(s) at t={cs.t:.0f}s ({cs.dates.date:%Y-%m-%d %H:%M})")
    return written


def restart_model_state(sim, t: float, input_dir: str) -> None:
    path = checkpoint_path(input_dir, sim.name, t)
    state, _ = read_state_netcdf(path, sim.boundary_space)
    sim.set_model_prog_state(state)
    sim.reset_time(t)
    sim.reinit()


def restart_coupler_fields(cs, t: float, input_dir: str) -> None:
    path = checkpoint_path(input_dir, "coupler", t)
    state, attrs = read_state_netcdf(path, cs.boundary_space)
    for name, value in state.items():
        cs.fields.copy_in(name, value)
    cs.t = float(attrs.get("t_seconds", t))
    if "date" in attrs:
        cs.dates.date = datetime.fromisoformat(attrs["date"])
    if "date1" in attrs:
        cs.dates.date1 = datetime.fromisoformat(attrs["date1"])
    resync_callbacks(cs)


def restart_sims(cs, t: float, input_dir: str) -> None:
    """Restore every component that has a prognostic state, then the coupler."""
    for sim in cs.model_sims:
        if sim.get_model_prog_state() is not None:
            restart_model_state(sim, t, input_dir)
        else:
            sim.reset_time(t)
    restart_coupler_fields(cs, t, input_dir)
