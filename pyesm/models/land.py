"""
land.py

Bucket land model: a soil heat slab, a single water bucket and a snowpack.

This module provides:
- BucketParams loaded from environment variables
- BucketLand: the land component behind the coupler adapter contract

Conventions and units:
- Energy fluxes F_turb_energy / F_radiative are W m^-2, positive upward.
- Water fluxes are m s^-1 of liquid water: evaporation positive upward,
  precipitation (liquid and snow) positive downward, as handed over by
  land_pull.
- Reservoirs W (bucket), S (snow water equivalent) and R (runoff store) are in
  metres of liquid water; the column water total is RHO_LIQ * (W + S + R).
- Soil energy is rho_c_soil * d_soil * T (J m^-2).
- Bucket overflow above W_f is moved to the runoff store, so the land water
  budget closes exactly.
- Snow melts with a degree-day rate above T_melt.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

import numpy as np

from .. import constants as const
from ..coupler.fields import FieldTag
from ..coupler.interfacer import LandModelSimulation
from ..thermo import q_vap_saturation


@dataclass
class BucketParams:
    d_soil: float = 3.5               # m; soil depth
    rho_c_soil: float = 2.0e8         # J m^-3 K^-1; soil volumetric heat capacity
    W_f: float = 10.0                 # m; bucket capacity
    W_init_frac: float = 0.5          # initial bucket fill (fraction of W_f)
    z0m: float = 1e-3                 # m; roughness length for momentum
    z0b: float = 1e-3                 # m; roughness length for scalars
    albedo_bare: float = 0.2          # bare-ground albedo
    albedo_snow: float = 0.8          # snow albedo
    sigma_snow_c: float = 0.2         # m; SWE for full snow cover
    ddf_mm_per_k_day: float = 3.0     # degree-day melt factor (mm/K/day)
    T_melt: float = const.T_FREEZE    # K
    diag: bool = True


def get_bucket_params_from_env() -> BucketParams:
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

    return BucketParams(
        d_soil=_f("ESM_LAND_D_SOIL", 3.5),
        rho_c_soil=_f("ESM_LAND_RHOC", 2.0e8),
        W_f=_f("ESM_LAND_W_F", 10.0),
        W_init_frac=_f("ESM_LAND_W_INIT", 0.5),
        z0m=_f("ESM_LAND_Z0M", 1e-3),
        z0b=_f("ESM_LAND_Z0B", 1e-3),
        albedo_bare=_f("ESM_LAND_ALBEDO", 0.2),
        albedo_snow=_f("ESM_SNOW_ALBEDO", 0.8),
        sigma_snow_c=_f("ESM_SNOW_SIGMA_C", 0.2),
        ddf_mm_per_k_day=_f("ESM_SNOW_DDF_MM_PER_K_DAY", 3.0),
        T_melt=_f("ESM_SNOW_MELT_TREF", const.T_FREEZE),
        diag=(_i("ESM_LAND_DIAG", 1) == 1),
    )


def _snow_cover(sim: BucketLand) -> np.ndarray:
    return np.clip(sim.S / sim.params.sigma_snow_c, 0.0, 1.0)


def _albedo(sim: BucketLand) -> np.ndarray:
    sc = _snow_cover(sim)
    return (1.0 - sc) * sim.params.albedo_bare + sc * sim.params.albedo_snow


class BucketLand(LandModelSimulation):
    GETTERS = {
        FieldTag.AREA_FRACTION: "area_fraction",
        FieldTag.SURFACE_TEMPERATURE: lambda sim: sim.T,
        FieldTag.SURFACE_HUMIDITY: lambda sim: q_vap_saturation(sim.T, sim.cache["rho_sfc"], sim.saturation_phase),
        FieldTag.AIR_DENSITY: "rho_sfc",
        FieldTag.ROUGHNESS_MOMENTUM: lambda sim: sim.params.z0m,
        FieldTag.ROUGHNESS_BUOYANCY: lambda sim: sim.params.z0b,
        FieldTag.BETA: lambda sim: np.clip(sim.W / (0.75 * sim.params.W_f), 0.0, 1.0),
        FieldTag.SURFACE_DIRECT_ALBEDO: _albedo,
        FieldTag.SURFACE_DIFFUSE_ALBEDO: _albedo,
        FieldTag.ENERGY: lambda sim: sim.params.rho_c_soil * sim.params.d_soil * sim.T,
        FieldTag.WATER: lambda sim: const.RHO_LIQ * (sim.W + sim.S + sim.R),
    }
    UPDATERS = {
        FieldTag.AREA_FRACTION: "area_fraction",
        FieldTag.AIR_DENSITY: "rho_sfc",
        FieldTag.TURBULENT_ENERGY_FLUX: "F_turb_energy",
        FieldTag.TURBULENT_MOISTURE_FLUX: "evaporation",
        FieldTag.RADIATIVE_ENERGY_FLUX_SFC: "F_radiative",
        FieldTag.LIQUID_PRECIPITATION: "P_liq",
        FieldTag.SNOW_PRECIPITATION: "P_snow",
    }

    def __init__(self,
                 boundary_space,
                 land_fraction,
                 params: BucketParams | None = None,
                 *,
                 dt: float = 3600.0,
                 T_init: np.ndarray | float | None = None,
                 name: str = "BucketLand",
                 t0: float = 0.0):
        super().__init__(name, boundary_space, dt, t0)
        self.params = params or BucketParams()
        p = self.params

        if T_init is None:
            c = np.cos(np.deg2rad(boundary_space.lat_mesh))
            self.T = 260.0 + 40.0 * c * c
        elif np.ndim(T_init) == 0:
            self.T = boundary_space.full(T_init)
        else:
            self.T = np.array(boundary_space.check(T_init, name=f"{name}.T_init"), dtype=float, copy=True)
        self.W = boundary_space.full(p.W_init_frac * p.W_f)
        self.S = boundary_space.zeros()
        self.R = boundary_space.zeros()

        if np.ndim(land_fraction) == 0:
            frac = boundary_space.full(land_fraction)
        else:
            frac = np.array(boundary_space.check(land_fraction, name=f"{name}.area_fraction"), dtype=float)
        zeros = boundary_space.zeros
        self.cache = {
            "area_fraction": frac,
            "rho_sfc": boundary_space.full(1.2),
            "F_turb_energy": zeros(),
            "evaporation": zeros(),
            "F_radiative": zeros(),
            "P_liq": zeros(),
            "P_snow": zeros(),
        }

    def update_turbulent_fluxes(self, fluxes: dict[FieldTag, np.ndarray]) -> None:
        self.update_field(FieldTag.TURBULENT_ENERGY_FLUX, fluxes[FieldTag.TURBULENT_ENERGY_FLUX])
        self.update_field(FieldTag.TURBULENT_MOISTURE_FLUX,
                          fluxes[FieldTag.TURBULENT_MOISTURE_FLUX] / const.RHO_LIQ)

    def get_model_prog_state(self) -> dict[str, np.ndarray]:
        return {"T": self.T, "W": self.W, "S": self.S, "R": self.R}

    def set_model_prog_state(self, state: dict[str, np.ndarray]) -> None:
        for key in ("T", "W", "S", "R"):
            getattr(self, key)[...] = self.boundary_space.check(state[key], name=f"{self.name}.{key}")

    def _advance(self, dt: float) -> None:
        c = self.cache
        p = self.params
        self.T -= dt * (c["F_turb_energy"] + c["F_radiative"]) / (p.rho_c_soil * p.d_soil)

        self.W += dt * (c["P_liq"] - c["evaporation"])
        self.S += dt * c["P_snow"]

        ddf = p.ddf_mm_per_k_day * 1e-3 / 86400.0  # m K^-1 s^-1
        melt = np.minimum(np.maximum(self.S, 0.0), ddf * np.maximum(self.T - p.T_melt, 0.0) * dt)
        self.S -= melt
        self.W += melt

        overflow = np.maximum(self.W - p.W_f, 0.0)
        self.W -= overflow
        self.R += overflow
