from __future__ import annotations

"""
Pull/push field exchange between the coupler and the component models.

Purpose
- import_combined_surface_fields: blend the surfaces' boundary state into the
  coupler fields (T_S, roughness, beta, albedo).
- atmos_pull: compute turbulent fluxes from the combined surface state and the
  atmosphere's lowest level, and hand them (with the surface state needed for
  radiation) to the atmosphere.
- atmos_push: copy the fluxes the atmosphere actually used over its last step
  (turbulent, radiative, precipitation, TOA) into the coupler fields.
- land_pull / ocean_pull / ice_pull: distribute the coupler fluxes into each
  surface with its own unit and sign conventions.
- step_model_sims: one coupling interval in the fixed order
      atmos_pull -> atmos.step -> atmos_push -> surface pulls -> surface steps

Notes
- Land receives precipitation positive downward while the coupler stores it
  upward-positive like the atmosphere; land_pull flips the sign. Land water
  fluxes are converted to m s^-1 of liquid water (divided by RHO_LIQ).
- Ocean and ice receive only aerodynamic and radiative energy fluxes.
- Under the partitioned flux strategy the surfaces already received their own
  turbulent fluxes inside atmos_pull, so the surface pulls skip them.
- Surface stubs carry prescribed state and receive no fluxes.
"""

import numpy as np

from .. import constants as const
from ..errors import ComponentStepError
from .fields import FieldTag
from .interfacer import SurfaceStub
from .masker import SURFACE_TYPES, combine_surface_field

_COMBINED_SURFACE_FIELDS: tuple[tuple[str, FieldTag], ...] = (
    ("T_S", FieldTag.SURFACE_TEMPERATURE),
    ("z0m_S", FieldTag.ROUGHNESS_MOMENTUM),
    ("z0b_S", FieldTag.ROUGHNESS_BUOYANCY),
    ("beta", FieldTag.BETA),
    ("surface_direct_albedo", FieldTag.SURFACE_DIRECT_ALBEDO),
    ("surface_diffuse_albedo", FieldTag.SURFACE_DIFFUSE_ALBEDO),
)

_ATMOS_PUSHED_FIELDS: tuple[tuple[str, FieldTag], ...] = (
    ("F_turb_energy", FieldTag.TURBULENT_ENERGY_FLUX),
    ("F_turb_moisture", FieldTag.TURBULENT_MOISTURE_FLUX),
    ("F_turb_rho_tau_xz", FieldTag.TURBULENT_MOMENTUM_FLUX_X),
    ("F_turb_rho_tau_yz", FieldTag.TURBULENT_MOMENTUM_FLUX_Y),
    ("F_radiative", FieldTag.RADIATIVE_ENERGY_FLUX_SFC),
    ("P_liq", FieldTag.LIQUID_PRECIPITATION),
    ("P_snow", FieldTag.SNOW_PRECIPITATION),
    ("radiative_energy_flux_toa", FieldTag.RADIATIVE_ENERGY_FLUX_TOA),
)


def import_combined_surface_fields(cs) -> None:
    for name, tag in _COMBINED_SURFACE_FIELDS:
        cs.fields.copy_in(name, combine_surface_field(cs, tag))


def update_model_sims(cs) -> None:
    """
    Distribute the cached coupler state: current area fractions to every
    surface and the combined surface state to the atmosphere.
    """
    sims = cs.model_sims
    masks = cs.surface_masks
    for kind in SURFACE_TYPES:
        getattr(sims, kind).update_field(FieldTag.AREA_FRACTION, getattr(masks, kind))
    _atmos_surface_state(cs)


def _atmos_surface_state(cs) -> None:
    atmos = cs.model_sims.atmos
    f = cs.fields
    atmos.update_field(FieldTag.SURFACE_TEMPERATURE, f.T_S)
    atmos.update_field(FieldTag.SURFACE_DIRECT_ALBEDO, f.surface_direct_albedo)
    atmos.update_field(FieldTag.SURFACE_DIFFUSE_ALBEDO, f.surface_diffuse_albedo)


def atmos_pull(cs) -> None:
    atmos = cs.model_sims.atmos
    fluxes = cs.turbulent_fluxes.compute(cs)
    for tag, value in fluxes.items():
        atmos.update_field(tag, value)
    _atmos_surface_state(cs)


def atmos_push(cs) -> None:
    atmos = cs.model_sims.atmos
    for name, tag in _ATMOS_PUSHED_FIELDS:
        cs.fields.copy_in(name, atmos.get_field(tag))


def land_pull(cs) -> None:
    land = cs.model_sims.land
    if isinstance(land, SurfaceStub):
        return
    f = cs.fields
    if cs.turbulent_fluxes.surfaces_pull_turbulent:
        land.update_field(FieldTag.TURBULENT_ENERGY_FLUX, f.F_turb_energy)
        # moisture flux (kg m^-2 s^-1) -> evaporation rate (m s^-1)
        land.update_field(FieldTag.TURBULENT_MOISTURE_FLUX, f.F_turb_moisture / const.RHO_LIQ)
    land.update_field(FieldTag.RADIATIVE_ENERGY_FLUX_SFC, f.F_radiative)
    # land counts precipitation positive downward
    land.update_field(FieldTag.LIQUID_PRECIPITATION, -1.0 * f.P_liq / const.RHO_LIQ)
    land.update_field(FieldTag.SNOW_PRECIPITATION, -1.0 * f.P_snow / const.RHO_LIQ)


def _energy_only_pull(cs, sim) -> None:
    if isinstance(sim, SurfaceStub):
        return
    f = cs.fields
    if cs.turbulent_fluxes.surfaces_pull_turbulent:
        sim.update_field(FieldTag.TURBULENT_ENERGY_FLUX, f.F_turb_energy)
    sim.update_field(FieldTag.RADIATIVE_ENERGY_FLUX_SFC, f.F_radiative)


def ocean_pull(cs) -> None:
    _energy_only_pull(cs, cs.model_sims.ocean)


def ice_pull(cs) -> None:
    _energy_only_pull(cs, cs.model_sims.ice)


def step_component(sim, t: float, step_index: int) -> None:
    """
    Advance one component to `t`. Any failure, including NaN/Inf in the
    resulting state, aborts the run with the component and step named.
    """
    try:
        sim.step(t)
    except Exception as err:
        raise ComponentStepError(sim.name, t, step_index, f"{type(err).__name__}: {err}") from err
    bad = sim.nonfinite_state()
    if bad:
        raise ComponentStepError(sim.name, t, step_index, f"non-finite values in {', '.join(bad)}")


def step_model_sims(cs, t: float, step_index: int = 0) -> None:
    """One coupling interval in the fixed exchange order."""
    sims = cs.model_sims
    atmos_pull(cs)
    step_component(sims.atmos, t, step_index)
    atmos_push(cs)
    land_pull(cs)
    ocean_pull(cs)
    ice_pull(cs)
    for kind in SURFACE_TYPES:
        step_component(getattr(sims, kind), t, step_index)


def reinit_model_sims(cs) -> None:
    for sim in cs.model_sims:
        sim.reinit()


def global_mean_fields(cs, names=("T_S", "F_turb_energy", "F_radiative")) -> dict[str, float]:
    space = cs.boundary_space
    return {n: space.global_mean(np.asarray(cs.fields[n])) for n in names}
