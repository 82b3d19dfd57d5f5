from __future__ import annotations

"""
Turbulent surface fluxes between the atmosphere's lowest level and the surface.

Purpose
- Neutral bulk-aerodynamic fluxes from roughness lengths:
      C_D = (kappa / ln(z/z0m))^2
      C_H = kappa^2 / (ln(z/z0m) * ln(z/z0b))
      SH  = rho_sfc c_p C_H |U| (T_sfc - T_1 - g z / c_p)
      E   = rho_sfc C_H |U| beta (q_sfc - q_1)
      F_turb_energy = SH + L_v E
      rho tau_x = -rho_sfc C_D |U| u
  All fluxes are positive upward (out of the surface).
- Two strategies, selected once per run:
  * CombinedStateFluxes: one calculation with the area-blended surface state.
    Every surface later receives the same flux through its pull.
  * PartitionedStateFluxes: one calculation per surface type with that
    surface's own state. Each surface receives its own flux immediately; the
    atmosphere receives the area-weighted sum.

Notes
- Surface air density is extrapolated from the lowest level on every call
  (thermo.extrapolate_rho_to_sfc); surface humidity is saturation at that
  density over liquid or ice depending on the surface.
"""

import os
from dataclasses import dataclass

import numpy as np

from .. import constants as const
from ..thermo import extrapolate_rho_to_sfc
from .fields import FieldTag
from .masker import SURFACE_TYPES, combine_surfaces

TURBULENT_TAGS: tuple[FieldTag, ...] = (
    FieldTag.TURBULENT_ENERGY_FLUX,
    FieldTag.TURBULENT_MOISTURE_FLUX,
    FieldTag.TURBULENT_MOMENTUM_FLUX_X,
    FieldTag.TURBULENT_MOMENTUM_FLUX_Y,
)


@dataclass
class FluxParams:
    gustiness: float = 1.0  # m/s; floor on |U| so calm columns still exchange
    z0_min: float = 1e-6  # m; floor on roughness lengths


def get_flux_params_from_env() -> FluxParams:
    def _f(env: str, default: float) -> float:
        try:
            return float(os.getenv(env, str(default)))
        except Exception:
            return default

    return FluxParams(
        gustiness=_f("ESM_GUSTINESS", 1.0),
        z0_min=_f("ESM_Z0_MIN", 1e-6),
    )


@dataclass
class AtmosLowestLevel:
    T: np.ndarray
    q: np.ndarray
    rho: np.ndarray
    z: float
    u: np.ndarray


@dataclass
class SurfaceState:
    T: np.ndarray
    q: np.ndarray
    rho: np.ndarray
    z0m: object
    z0b: object
    beta: object


def atmos_lowest_level(atmos) -> AtmosLowestLevel:
    return AtmosLowestLevel(
        T=atmos.get_field(FieldTag.AIR_TEMPERATURE),
        q=atmos.get_field(FieldTag.AIR_HUMIDITY),
        rho=atmos.get_field(FieldTag.AIR_DENSITY),
        z=float(atmos.get_field(FieldTag.HEIGHT_INT)),
        u=atmos.get_field(FieldTag.WIND_SPEED),
    )


def bulk_coefficients(z: float, z0m, z0b, z0_min: float = 1e-6) -> tuple[np.ndarray, np.ndarray]:
    lm = np.log(z / np.maximum(z0m, z0_min))
    lb = np.log(z / np.maximum(z0b, z0_min))
    C_D = (const.KAPPA_VK / lm) ** 2
    C_H = const.KAPPA_VK ** 2 / (lm * lb)
    return np.asarray(C_D, dtype=float), np.asarray(C_H, dtype=float)


def surface_fluxes(sfc: SurfaceState, atm: AtmosLowestLevel, params: FluxParams | None = None) -> dict[FieldTag, np.ndarray]:
    """
    Bulk turbulent fluxes for one surface state.

    Returns
    -------
    dict keyed by the four turbulent FieldTags, arrays over the boundary space.
    """
    p = params or FluxParams()
    C_D, C_H = bulk_coefficients(atm.z, sfc.z0m, sfc.z0b, p.z0_min)
    U = np.maximum(np.abs(atm.u), p.gustiness)
    dT = sfc.T - atm.T - const.GRAV * atm.z / const.CP_D
    SH = sfc.rho * const.CP_D * C_H * U * dT
    E = sfc.rho * C_H * U * sfc.beta * (sfc.q - atm.q)
    tau_x = -sfc.rho * C_D * U * atm.u
    shape = np.shape(sfc.T)
    return {
        FieldTag.TURBULENT_ENERGY_FLUX: np.broadcast_to(SH + const.LV * E, shape).astype(float),
        FieldTag.TURBULENT_MOISTURE_FLUX: np.broadcast_to(E, shape).astype(float),
        FieldTag.TURBULENT_MOMENTUM_FLUX_X: np.broadcast_to(tau_x, shape).astype(float),
        FieldTag.TURBULENT_MOMENTUM_FLUX_Y: np.zeros(shape, dtype=float),
    }


def _surface_humidity(sim, rho_sfc) -> np.ndarray:
    sim.update_field(FieldTag.AIR_DENSITY, rho_sfc)
    return sim.get_field(FieldTag.SURFACE_HUMIDITY)


class CombinedStateFluxes:
    """Fluxes from the area-blended surface state (one calculation)."""

    kind = "combined"
    surfaces_pull_turbulent = True

    def __init__(self, params: FluxParams | None = None) -> None:
        self.params = params or FluxParams()

    def compute(self, cs) -> dict[FieldTag, np.ndarray]:
        fields = cs.fields
        sims = cs.model_sims
        atm = atmos_lowest_level(sims.atmos)

        rho_sfc = extrapolate_rho_to_sfc(atm.rho, atm.T, fields.T_S)
        fields.copy_in("rho_sfc", rho_sfc)
        q_parts = {kind: _surface_humidity(getattr(sims, kind), rho_sfc) for kind in SURFACE_TYPES}
        fields.copy_in("q_sfc", combine_surfaces(cs.surface_masks, q_parts))

        sfc = SurfaceState(
            T=fields.T_S, q=fields.q_sfc, rho=fields.rho_sfc,
            z0m=fields.z0m_S, z0b=fields.z0b_S, beta=fields.beta,
        )
        return surface_fluxes(sfc, atm, self.params)

    def moisture_flux_for(self, kind: str, fields) -> np.ndarray:
        return fields.F_turb_moisture


class PartitionedStateFluxes:
    """Fluxes per surface type; the atmosphere sees the area-weighted sum."""

    kind = "partitioned"
    surfaces_pull_turbulent = False

    def __init__(self, params: FluxParams | None = None) -> None:
        self.params = params or FluxParams()
        self.surface_moisture: dict[str, np.ndarray] = {}

    def compute(self, cs) -> dict[FieldTag, np.ndarray]:
        fields = cs.fields
        sims = cs.model_sims
        masks = cs.surface_masks
        atm = atmos_lowest_level(sims.atmos)

        per_surface: dict[str, dict[FieldTag, np.ndarray]] = {}
        rho_parts: dict[str, np.ndarray] = {}
        q_parts: dict[str, np.ndarray] = {}
        for kind in SURFACE_TYPES:
            sim = getattr(sims, kind)
            T = sim.get_field(FieldTag.SURFACE_TEMPERATURE)
            rho = extrapolate_rho_to_sfc(atm.rho, atm.T, T)
            q = _surface_humidity(sim, rho)
            sfc = SurfaceState(
                T=T, q=q, rho=rho,
                z0m=sim.get_field(FieldTag.ROUGHNESS_MOMENTUM),
                z0b=sim.get_field(FieldTag.ROUGHNESS_BUOYANCY),
                beta=sim.get_field(FieldTag.BETA),
            )
            flux = surface_fluxes(sfc, atm, self.params)
            sim.update_turbulent_fluxes(flux)
            per_surface[kind] = flux
            rho_parts[kind] = rho
            q_parts[kind] = q
            self.surface_moisture[kind] = flux[FieldTag.TURBULENT_MOISTURE_FLUX].copy()

        fields.copy_in("rho_sfc", combine_surfaces(masks, rho_parts))
        fields.copy_in("q_sfc", combine_surfaces(masks, q_parts))
        return {
            tag: combine_surfaces(masks, {kind: per_surface[kind][tag] for kind in SURFACE_TYPES})
            for tag in TURBULENT_TAGS
        }

    def moisture_flux_for(self, kind: str, fields) -> np.ndarray:
        return self.surface_moisture.get(kind, fields.F_turb_moisture)


def make_flux_calculator(kind: str = "combined", params: FluxParams | None = None):
    k = (kind or "combined").strip().lower()
    if k in ("combined", "combinedstatefluxes"):
        return CombinedStateFluxes(params)
    if k in ("partitioned", "partitionedstatefluxes"):
        return PartitionedStateFluxes(params)
    raise ValueError(f"Unknown turbulent flux strategy: {kind!r}")
