# pyesm/models/ocean.py
"""
Mixed-layer (slab) ocean.

    (h rho c) dT/dt = -(F_turb_energy + F_radiative)

Evolution is frozen where the ocean area fraction is zero (binary mask) and can
be switched off entirely (evolving=False). The slab carries heat, not water:
its water total is reported as untracked.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

import numpy as np

from ..coupler.fields import FieldTag
from ..coupler.interfacer import OceanModelSimulation
from ..coupler.masker import binary_mask
from ..thermo import q_vap_saturation


@dataclass
class SlabOceanParams:
    h: float = 20.0           # m; mixed-layer depth
    rho: float = 1500.0       # kg m^-3
    c: float = 800.0          # J kg^-1 K^-1
    T_init: float = 271.0     # K; base of the initial SST profile
    z0m: float = 5e-5         # m
    z0b: float = 5e-5         # m
    albedo: float = 0.38
    evolving: bool = True


def get_slab_ocean_params_from_env() -> SlabOceanParams:
    def _f(env: str, default: float) -> float:
        try:
            return float(os.getenv(env, str(default)))
        except Exception:
            return default

    def _i(env: str, default: int) -> int:
        try:
            return int(os.getenv(env, str(default)))
        except Exception:
            return default

    return SlabOceanParams(
        h=_f("ESM_OCEAN_H", 20.0),
        rho=_f("ESM_OCEAN_RHO", 1500.0),
        c=_f("ESM_OCEAN_C", 800.0),
        T_init=_f("ESM_OCEAN_T_INIT", 271.0),
        z0m=_f("ESM_OCEAN_Z0M", 5e-5),
        z0b=_f("ESM_OCEAN_Z0B", 5e-5),
        albedo=_f("ESM_OCEAN_ALBEDO", 0.38),
        evolving=(_i("ESM_OCEAN_EVOLVING", 1) == 1),
    )


def sst_anomaly(lat_deg: np.ndarray) -> np.ndarray:
    """Gaussian equatorial warm anomaly (K) added to T_init."""
    return 29.0 * np.exp(-(np.asarray(lat_deg, dtype=float) ** 2) / (2.0 * 26.0 ** 2))


class SlabOcean(OceanModelSimulation):
    GETTERS = {
        FieldTag.AREA_FRACTION: "area_fraction",
        FieldTag.SURFACE_TEMPERATURE: lambda sim: sim.T,
        FieldTag.SURFACE_HUMIDITY: lambda sim: q_vap_saturation(sim.T, sim.cache["rho_sfc"], sim.saturation_phase),
        FieldTag.AIR_DENSITY: "rho_sfc",
        FieldTag.ROUGHNESS_MOMENTUM: lambda sim: sim.params.z0m,
        FieldTag.ROUGHNESS_BUOYANCY: lambda sim: sim.params.z0b,
        FieldTag.BETA: lambda sim: 1.0,
        FieldTag.SURFACE_DIRECT_ALBEDO: lambda sim: sim.params.albedo,
        FieldTag.SURFACE_DIFFUSE_ALBEDO: lambda sim: sim.params.albedo,
        FieldTag.ENERGY: lambda sim: sim.params.rho * sim.params.c * sim.params.h * sim.T,
        FieldTag.WATER: lambda sim: None,
    }
    UPDATERS = {
        FieldTag.AREA_FRACTION: "area_fraction",
        FieldTag.AIR_DENSITY: "rho_sfc",
        FieldTag.TURBULENT_ENERGY_FLUX: "F_turb_energy",
        FieldTag.RADIATIVE_ENERGY_FLUX_SFC: "F_radiative",
    }

    def __init__(self,
                 boundary_space,
                 area_fraction,
                 params: SlabOceanParams | None = None,
                 *,
                 dt: float = 3600.0,
                 T_init: np.ndarray | float | None = None,
                 name: str = "SlabOcean",
                 t0: float = 0.0):
        super().__init__(name, boundary_space, dt, t0)
        self.params = params or SlabOceanParams()
        if T_init is None:
            self.T = self.params.T_init + sst_anomaly(boundary_space.lat_mesh)
        elif np.ndim(T_init) == 0:
            self.T = boundary_space.full(T_init)
        else:
            self.T = np.array(boundary_space.check(T_init, name=f"{name}.T_init"), dtype=float, copy=True)
        if np.ndim(area_fraction) == 0:
            frac = boundary_space.full(area_fraction)
        else:
            frac = np.array(boundary_space.check(area_fraction, name=f"{name}.area_fraction"), dtype=float)
        self.cache = {
            "area_fraction": frac,
            "rho_sfc": boundary_space.full(1.2),
            "F_turb_energy": boundary_space.zeros(),
            "F_radiative": boundary_space.zeros(),
        }

    @property
    def heat_capacity(self) -> float:
        return self.params.h * self.params.rho * self.params.c

    def get_model_prog_state(self) -> dict[str, np.ndarray]:
        return {"T": self.T}

    def set_model_prog_state(self, state: dict[str, np.ndarray]) -> None:
        self.T[...] = self.boundary_space.check(state["T"], name=f"{self.name}.T")

    def _advance(self, dt: float) -> None:
        if not self.params.evolving:
            return
        c = self.cache
        mask = binary_mask(c["area_fraction"])
        self.T -= dt * (c["F_turb_energy"] + c["F_radiative"]) / self.heat_capacity * mask
