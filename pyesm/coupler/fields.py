from __future__ import annotations

"""
Coupler field schema: the closed set of exchanged quantities.

Purpose
- FieldTag names every quantity a component can be asked for (get_field) or
  handed (update_field). Components declare which tags they support in
  per-class dispatch tables; anything else fails loudly.
- CouplerFields is the shared, coupler-owned store of interface quantities
  (combined surface state and fluxes), one array per name over the boundary
  space. The set of names is fixed at construction; there is no dynamic field
  creation afterwards.

Conventions
- Energy and moisture fluxes are positive upward (out of the surface).
- Precipitation P_liq / P_snow is stored with the same upward-positive sign,
  i.e. falling precipitation is negative.
- P_net is the cumulative net surface water gain (kg m^-2) used for water
  bookkeeping of surfaces that do not carry a water reservoir.
"""

from enum import Enum, auto

import numpy as np

from ..errors import UnknownCouplerFieldError


class FieldTag(Enum):
    AREA_FRACTION = auto()
    SURFACE_TEMPERATURE = auto()
    SURFACE_HUMIDITY = auto()
    ROUGHNESS_MOMENTUM = auto()
    ROUGHNESS_BUOYANCY = auto()
    BETA = auto()
    SURFACE_DIRECT_ALBEDO = auto()
    SURFACE_DIFFUSE_ALBEDO = auto()
    AIR_DENSITY = auto()
    AIR_TEMPERATURE = auto()
    AIR_HUMIDITY = auto()
    HEIGHT_INT = auto()
    WIND_SPEED = auto()
    TURBULENT_ENERGY_FLUX = auto()
    TURBULENT_MOISTURE_FLUX = auto()
    TURBULENT_MOMENTUM_FLUX_X = auto()
    TURBULENT_MOMENTUM_FLUX_Y = auto()
    RADIATIVE_ENERGY_FLUX_SFC = auto()
    RADIATIVE_ENERGY_FLUX_TOA = auto()
    LIQUID_PRECIPITATION = auto()
    SNOW_PRECIPITATION = auto()
    CO2 = auto()
    ENERGY = auto()
    WATER = auto()


COUPLER_FIELD_NAMES: tuple[str, ...] = (
    "T_S",
    "z0m_S",
    "z0b_S",
    "rho_sfc",
    "q_sfc",
    "surface_direct_albedo",
    "surface_diffuse_albedo",
    "beta",
    "F_turb_energy",
    "F_turb_moisture",
    "F_turb_rho_tau_xz",
    "F_turb_rho_tau_yz",
    "F_radiative",
    "P_liq",
    "P_snow",
    "radiative_energy_flux_toa",
    "P_net",
)


class CouplerFields:
    """
    Fixed-schema mapping name -> array over the boundary space.

    Arrays are allocated once and written in place; references handed out by
    `fields[name]` stay valid for the whole run.
    """

    __slots__ = ("_space", "_data")

    def __init__(self, boundary_space, names=COUPLER_FIELD_NAMES) -> None:
        names = tuple(names)
        unknown = [n for n in names if n not in COUPLER_FIELD_NAMES]
        if unknown:
            raise UnknownCouplerFieldError(f"not in the coupler field schema: {unknown}")
        if len(set(names)) != len(names):
            raise ValueError(f"duplicate coupler field names in {names}")
        object.__setattr__(self, "_space", boundary_space)
        object.__setattr__(self, "_data", {n: boundary_space.zeros() for n in names})

    @property
    def boundary_space(self):
        return self._space

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._data)

    def __getitem__(self, name: str) -> np.ndarray:
        try:
            return self._data[name]
        except KeyError:
            raise UnknownCouplerFieldError(f"unknown coupler field {name!r}") from None

    def __setitem__(self, name: str, value) -> None:
        self.copy_in(name, value)

    def __getattr__(self, name: str) -> np.ndarray:
        data = object.__getattribute__(self, "_data")
        if name in data:
            return data[name]
        raise AttributeError(f"CouplerFields has no field {name!r}")

    def __setattr__(self, name: str, value) -> None:
        self.copy_in(name, value)

    def __contains__(self, name: object) -> bool:
        return name in self._data

    def __iter__(self):
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def copy_in(self, name: str, value) -> None:
        """Write `value` into field `name` in place (shape-checked, no broadcasting)."""
        target = self[name]
        target[...] = self._space.check(value, name=name)

    def as_dict(self) -> dict[str, np.ndarray]:
        """Snapshot copy (used by the checkpointer)."""
        return {n: a.copy() for n, a in self._data.items()}

    def __repr__(self) -> str:
        return f"CouplerFields({', '.join(self._data)})"
