# pyesm/models/sea_ice.py
"""
Prescribed-thickness sea ice (zero-layer thermodynamics).

    (rho c h_ice) dT/dt = -(F_turb_energy + F_radiative) + k_ice (T_base - T) / h_ice

T is capped at the freezing point and frozen where the ice fraction is zero.
The area fraction is prescribed from outside (sea-ice concentration) and the
ice thickness never changes, so the ice reports neither an energy nor a water
total: its heat exchange with the ocean below is not part of the closed budget.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

import numpy as np

from .. import constants as const
from ..coupler.fields import FieldTag
from ..coupler.interfacer import SeaIceModelSimulation
from ..coupler.masker import binary_mask
from ..thermo import q_vap_saturation


@dataclass
class IceParams:
    h_ice: float = 2.0          # m; prescribed thickness
    rho: float = 900.0          # kg m^-3
    c: float = 2100.0           # J kg^-1 K^-1
    k_ice: float = 2.0          # W m^-1 K^-1
    T_base: float = 271.2       # K; ocean temperature under the ice
    T_freeze: float = const.T_FREEZE
    z0m: float = 1e-3
    z0b: float = 1e-5
    albedo: float = 0.8


def get_ice_params_from_env() -> IceParams:
    def _f(env: str, default: float) -> float:
        try:
            return float(os.getenv(env, str(default)))
        except Exception:
            return default

    return IceParams(
        h_ice=_f("ESM_ICE_H", 2.0),
        rho=_f("ESM_ICE_RHO", 900.0),
        c=_f("ESM_ICE_C", 2100.0),
        k_ice=_f("ESM_ICE_K", 2.0),
        T_base=_f("ESM_ICE_T_BASE", 271.2),
        z0m=_f("ESM_ICE_Z0M", 1e-3),
        z0b=_f("ESM_ICE_Z0B", 1e-5),
        albedo=_f("ESM_ICE_ALBEDO", 0.8),
    )


class PrescribedIce(SeaIceModelSimulation):
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
        FieldTag.ENERGY: lambda sim: None,
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
                 params: IceParams | None = None,
                 *,
                 dt: float = 3600.0,
                 T_init: np.ndarray | float | None = None,
                 name: str = "PrescribedIce",
                 t0: float = 0.0):
        super().__init__(name, boundary_space, dt, t0)
        self.params = params or IceParams()
        if T_init is None:
            self.T = boundary_space.full(self.params.T_base)
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

    def get_model_prog_state(self) -> dict[str, np.ndarray]:
        return {"T": self.T}

    def set_model_prog_state(self, state: dict[str, np.ndarray]) -> None:
        self.T[...] = self.boundary_space.check(state["T"], name=f"{self.name}.T")

    def _advance(self, dt: float) -> None:
        p = self.params
        c = self.cache
        mask = binary_mask(c["area_fraction"])
        conduction = p.k_ice * (p.T_base - self.T) / p.h_ice
        tendency = (-(c["F_turb_energy"] + c["F_radiative"]) + conduction) / (p.rho * p.c * p.h_ice)
        self.T += dt * tendency * mask
        np.minimum(self.T, p.T_freeze, out=self.T)
