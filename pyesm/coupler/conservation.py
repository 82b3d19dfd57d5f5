from __future__ import annotations

"""
Global energy and water conservation checks for the coupled system.

Purpose
- An observer, not on the control path: once per coupling step it integrates
  each component's energy (J) or water (kg) over the sphere and appends one
  sample per component name, plus the total.
- Surface totals are weighted by the surface's current area fraction. A
  component that does not track the quantity contributes zero, never a missing
  entry.
- TOA radiation is a flux, not a stored quantity: its cumulative integral is
  kept separately (toa_net_source) and added to the atmosphere's total.
- Surfaces without a water reservoir are credited with the cumulative net
  water they received, -(F_turb_moisture + P_liq + P_snow) * dt * fraction.

Notes
- The checker only measures. assert_conservation is the post-hoc pass/fail
  step; with softfail it warns instead of raising.
- total[k] is the plain sum of the component samples at k, so it can be
  reconstructed exactly from the per-component series.
"""

import os
from abc import ABC, abstractmethod

import numpy as np

from ..errors import ConservationError
from .fields import FieldTag

try:
    import matplotlib.pyplot as plt  # type: ignore
except Exception:
    plt = None


def _require_matplotlib():
    if plt is None:
        raise RuntimeError("matplotlib is required for plotting. Please install 'matplotlib'.")


class ConservationCheck(ABC):
    quantity: str = ""
    units: str = ""

    def __init__(self, model_sims) -> None:
        self.names = [sim.name for sim in model_sims]
        self.series: dict[str, list[float]] = {n: [] for n in self.names}
        self.series["total"] = []
        self.times: list[float] = []

    def __len__(self) -> int:
        return len(self.times)

    def _append(self, t: float, values: dict[str, float]) -> None:
        total = 0.0
        for n in self.names:
            v = float(values[n])
            self.series[n].append(v)
            total += v
        self.series["total"].append(total)
        self.times.append(float(t))

    @abstractmethod
    def record(self, cs) -> None:
        """Append one sample per component at the current time."""


class EnergyConservationCheck(ConservationCheck):
    quantity = "energy"
    units = "J"

    def __init__(self, model_sims) -> None:
        super().__init__(model_sims)
        self.series["toa_net_source"] = []
        self.toa_cumulative = 0.0

    def record(self, cs) -> None:
        space = cs.boundary_space
        if self.times:
            # upward-positive net TOA flux over the previous interval leaves the system
            self.toa_cumulative += space.integrate(cs.fields.radiative_energy_flux_toa) * cs.dt_cpl
        values = {}
        for kind, sim in cs.model_sims.items():
            e = sim.get_field(FieldTag.ENERGY)
            if kind == "atmos":
                values[sim.name] = space.integrate(e) + self.toa_cumulative
            elif e is None:
                values[sim.name] = 0.0
            else:
                values[sim.name] = space.integrate(e * getattr(cs.surface_masks, kind))
        self.series["toa_net_source"].append(self.toa_cumulative)
        self._append(cs.t, values)


class WaterConservationCheck(ConservationCheck):
    quantity = "water"
    units = "kg"

    def __init__(self, model_sims) -> None:
        super().__init__(model_sims)
        self.surface_net_water: dict[str, np.ndarray] = {}

    def record(self, cs) -> None:
        space = cs.boundary_space
        f = cs.fields
        first = not self.times
        if not first:
            f.copy_in("P_net", f.P_net - (f.F_turb_moisture + f.P_liq + f.P_snow) * cs.dt_cpl)
        values = {}
        for kind, sim in cs.model_sims.items():
            w = sim.get_field(FieldTag.WATER)
            if kind == "atmos":
                values[sim.name] = space.integrate(w)
                continue
            frac = getattr(cs.surface_masks, kind)
            if w is not None:
                values[sim.name] = space.integrate(w * frac)
                continue
            acc = self.surface_net_water.setdefault(sim.name, space.zeros())
            if not first:
                moisture = cs.turbulent_fluxes.moisture_flux_for(kind, f)
                acc -= (moisture + f.P_liq + f.P_snow) * cs.dt_cpl * frac
            values[sim.name] = space.integrate(acc)
        self._append(cs.t, values)


def check_conservation(cs) -> None:
    for check in cs.conservation_checks:
        check.record(cs)


def conservation_report(check: ConservationCheck) -> dict:
    components = {n: np.asarray(check.series[n], dtype=float) for n in check.names}
    total = np.asarray(check.series["total"], dtype=float)
    reconstructed = np.sum([components[n] for n in check.names], axis=0) if components else total * 0.0
    if total.size and total[0] != 0.0:
        drift = np.abs(total - total[0]) / abs(total[0])
    else:
        drift = np.zeros_like(total)
    return {
        "quantity": check.quantity,
        "times": np.asarray(check.times, dtype=float),
        "components": components,
        "total": total,
        "reconstructed_total": reconstructed,
        "relative_drift": drift,
        "max_relative_drift": float(np.max(drift)) if drift.size else 0.0,
    }


def assert_conservation(check: ConservationCheck, rtol: float, softfail: bool = False, diag: bool = True) -> bool:
    rep = conservation_report(check)
    drift = rep["max_relative_drift"]
    if diag:
        print(f"[Conservation] {check.quantity}: max relative drift {drift:.3e} over {len(check)} samples (rtol={rtol:.1e})")
    if drift <= rtol:
        return True
    msg = f"{check.quantity} not conserved: max relative drift {drift:.3e} > {rtol:.1e}"
    if softfail:
        if diag:
            print(f"[Conservation] WARNING: {msg}")
        return False
    raise ConservationError(msg)


def write_conservation_netcdf(checks, path: str) -> str:
    """One variable per (quantity, component) series, sampled once per coupling step."""
    try:
        from netCDF4 import Dataset
    except Exception as e:
        raise RuntimeError("netCDF4 is required to write conservation output. Please install 'netCDF4'.") from e
    checks = list(checks)
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with Dataset(path, "w") as ds:
        n = len(checks[0]) if checks else 0
        ds.createDimension("time", n)
        vt = ds.createVariable("time", "f8", ("time",))
        vt.units = "seconds"
        if checks:
            vt[:] = np.asarray(checks[0].times, dtype=float)
        for check in checks:
            if len(check) != n:
                raise ValueError(f"{check.quantity} check has {len(check)} samples, expected {n}")
            for name, values in check.series.items():
                var = ds.createVariable(f"{check.quantity}_{name}", "f8", ("time",))
                var.units = check.units
                var[:] = np.asarray(values, dtype=float)
        ds.setncattr("title", "pyesm conservation diagnostics")
    return path


def plot_global_conservation(check: ConservationCheck, figname1: str, figname2: str) -> tuple[str, str]:
    """
    figname1: per-component change since the first sample (and their sum).
    figname2: log10 relative drift of the total.
    """
    _require_matplotlib()
    rep = conservation_report(check)
    days = rep["times"] / 86400.0

    fig, ax = plt.subplots(figsize=(8, 4.5))
    for name, values in rep["components"].items():
        ax.plot(days, values - values[0], label=name)
    ax.plot(days, rep["total"] - rep["total"][0], "k--", label="total")
    ax.set_xlabel("time (days)")
    ax.set_ylabel(f"{check.quantity} change ({check.units})")
    ax.set_title(f"Global {check.quantity} by component")
    ax.legend(loc="best", fontsize=8)
    fig.tight_layout()
    fig.savefig(figname1, dpi=120)
    plt.close(fig)

    fig, ax = plt.subplots(figsize=(8, 4.5))
    ax.plot(days, np.log10(np.maximum(rep["relative_drift"], 1e-16)), "k-")
    ax.set_xlabel("time (days)")
    ax.set_ylabel("log10 |total - total0| / |total0|")
    ax.set_title(f"Relative {check.quantity} drift")
    fig.tight_layout()
    fig.savefig(figname2, dpi=120)
    plt.close(fig)
    return figname1, figname2
