"""
atmosphere.py

Single-layer moist atmospheric column with gray radiation.

Prognostic state per column:
- T (K): layer temperature
- q (kg/kg): specific humidity
Column mass M = p_sfc / g is fixed, so the column totals are
    energy = M (c_p T + L_v q)     (J m^-2)
    water  = M q                   (kg m^-2)

Formulas (held fixed over one coupling step, evaluated at step start):
- Shortwave (annual-mean insolation I):
    R = I * alpha_sfc;  SW_atm = I * a0;  SW_sfc = I - R - SW_atm
- Longwave:
    eps = clip(eps0 + k_co2 * ln(CO2 / CO2_ref), 0.05, 0.99)
    OLR = eps*sigma*T^4 + (1 - eps)*sigma*Ts^4
    DLR = eps*sigma*T^4
- Net upward radiative fluxes:
    F_radiative (surface) = sigma*Ts^4 - DLR - SW_sfc
    F_toa                 = OLR - (I - R)
- Column energy tendency:
    dE/dt = F_turb_energy + F_radiative - F_toa
- Large-scale condensation relaxes supersaturation over tau_cond; the
  condensate precipitates immediately (snow when T < T_freeze) and leaves the
  column. Precipitation is exported as the time mean over the last step,
  upward-positive (i.e. negative when falling).

Environment parameters:
    ESM_ATM_PSFC=1e5, ESM_ATM_ZINT=10, ESM_ATM_WIND=5, ESM_ATM_RH0=0.6
    ESM_TAU_COND=1800, ESM_SW_A0=0.06, ESM_LW_EPS0=0.75, ESM_LW_KCO2=0.03
    ESM_CO2=280, ESM_CO2_REF=280
"""

from __future__ import annotations

import os
from dataclasses import dataclass

import numpy as np

from .. import constants as const
from ..coupler.fields import FieldTag
from ..coupler.interfacer import AtmosModelSimulation
from ..thermo import partition_precip_phase, q_vap_saturation


@dataclass
class AtmosParams:
    p_sfc: float = 1.0e5          # Pa; surface pressure (column mass p/g)
    z_int: float = 10.0           # m; height of the level used for surface exchange
    wind: float = 5.0             # m/s; near-surface zonal wind
    rh_init: float = 0.6          # initial relative humidity
    tau_cond: float = 1800.0      # s; condensation relaxation time
    sw_a0: float = 0.06           # atmospheric shortwave absorption fraction
    lw_eps0: float = 0.75         # gray emissivity at CO2_ref
    lw_k_co2: float = 0.03        # emissivity gain per e-folding of CO2
    co2: float = 280.0            # ppm
    co2_ref: float = 280.0        # ppm
    diag: bool = True


def get_atmos_params_from_env() -> AtmosParams:
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

    return AtmosParams(
        p_sfc=_f("ESM_ATM_PSFC", 1.0e5),
        z_int=_f("ESM_ATM_ZINT", 10.0),
        wind=_f("ESM_ATM_WIND", 5.0),
        rh_init=_f("ESM_ATM_RH0", 0.6),
        tau_cond=_f("ESM_TAU_COND", 1800.0),
        sw_a0=_f("ESM_SW_A0", 0.06),
        lw_eps0=_f("ESM_LW_EPS0", 0.75),
        lw_k_co2=_f("ESM_LW_KCO2", 0.03),
        co2=_f("ESM_CO2", 280.0),
        co2_ref=_f("ESM_CO2_REF", 280.0),
        diag=(_i("ESM_ATM_DIAG", 1) == 1),
    )


def annual_mean_insolation(lat_deg: np.ndarray, S0: float = const.SOLAR_CONSTANT) -> np.ndarray:
    """I(phi) = S0/4 * (1 - 0.482 * P2(sin phi))."""
    x = np.sin(np.deg2rad(lat_deg))
    P2 = 0.5 * (3.0 * x * x - 1.0)
    return 0.25 * S0 * (1.0 - 0.482 * P2)


def gray_radiation(I, albedo, T_atm, T_sfc, co2: float, params: AtmosParams) -> tuple[np.ndarray, np.ndarray]:
    """
    Returns (F_radiative_sfc, F_toa): net upward radiative fluxes (W m^-2) at
    the surface and at the top of the atmosphere.
    """
    eps = params.lw_eps0 + params.lw_k_co2 * np.log(max(co2, 1e-6) / params.co2_ref)
    eps = float(np.clip(eps, 0.05, 0.99))
    R = I * albedo
    SW_atm = I * params.sw_a0
    SW_sfc = I - R - SW_atm
    sTa4 = const.SIGMA * T_atm ** 4
    sTs4 = const.SIGMA * T_sfc ** 4
    OLR = eps * sTa4 + (1.0 - eps) * sTs4
    DLR = eps * sTa4
    return sTs4 - DLR - SW_sfc, OLR - (I - R)


def _energy(sim: SlabAtmosphere) -> np.ndarray:
    return sim.M * (const.CP_D * sim.T + const.LV * sim.q)


def _water(sim: SlabAtmosphere) -> np.ndarray:
    return sim.M * sim.q


class SlabAtmosphere(AtmosModelSimulation):
    GETTERS = {
        FieldTag.AIR_TEMPERATURE: lambda sim: sim.T,
        FieldTag.AIR_HUMIDITY: lambda sim: sim.q,
        FieldTag.AIR_DENSITY: "rho",
        FieldTag.HEIGHT_INT: "z_int",
        FieldTag.WIND_SPEED: "u",
        FieldTag.SURFACE_TEMPERATURE: "T_sfc",
        FieldTag.SURFACE_DIRECT_ALBEDO: "albedo_direct",
        FieldTag.SURFACE_DIFFUSE_ALBEDO: "albedo_diffuse",
        FieldTag.TURBULENT_ENERGY_FLUX: "F_turb_energy",
        FieldTag.TURBULENT_MOISTURE_FLUX: "F_turb_moisture",
        FieldTag.TURBULENT_MOMENTUM_FLUX_X: "F_turb_rho_tau_xz",
        FieldTag.TURBULENT_MOMENTUM_FLUX_Y: "F_turb_rho_tau_yz",
        FieldTag.RADIATIVE_ENERGY_FLUX_SFC: "F_radiative",
        FieldTag.RADIATIVE_ENERGY_FLUX_TOA: "F_toa",
        FieldTag.LIQUID_PRECIPITATION: "P_liq",
        FieldTag.SNOW_PRECIPITATION: "P_snow",
        FieldTag.CO2: "co2",
        FieldTag.ENERGY: _energy,
        FieldTag.WATER: _water,
    }
    UPDATERS = {
        FieldTag.SURFACE_TEMPERATURE: "T_sfc",
        FieldTag.SURFACE_DIRECT_ALBEDO: "albedo_direct",
        FieldTag.SURFACE_DIFFUSE_ALBEDO: "albedo_diffuse",
        FieldTag.TURBULENT_ENERGY_FLUX: "F_turb_energy",
        FieldTag.TURBULENT_MOISTURE_FLUX: "F_turb_moisture",
        FieldTag.TURBULENT_MOMENTUM_FLUX_X: "F_turb_rho_tau_xz",
        FieldTag.TURBULENT_MOMENTUM_FLUX_Y: "F_turb_rho_tau_yz",
        FieldTag.CO2: "co2",
    }

    def __init__(self,
                 boundary_space,
                 params: AtmosParams | None = None,
                 *,
                 dt: float = 600.0,
                 T_init: np.ndarray | float | None = None,
                 name: str = "SlabAtmosphere",
                 t0: float = 0.0):
        super().__init__(name, boundary_space, dt, t0)
        self.params = params or AtmosParams()
        p = self.params
        self.M = p.p_sfc / const.GRAV

        if T_init is None:
            s = np.sin(np.deg2rad(boundary_space.lat_mesh))
            self.T = 285.0 - 35.0 * s * s
        elif np.ndim(T_init) == 0:
            self.T = boundary_space.full(T_init)
        else:
            self.T = np.array(boundary_space.check(T_init, name=f"{name}.T_init"), dtype=float, copy=True)
        rho = p.p_sfc / (const.R_D * self.T)
        self.q = float(np.clip(p.rh_init, 0.0, 1.0)) * q_vap_saturation(self.T, rho)

        self.insolation = annual_mean_insolation(boundary_space.lat_mesh)
        zeros = boundary_space.zeros
        self.cache = {
            "rho": rho,
            "z_int": float(p.z_int),
            "u": boundary_space.full(p.wind),
            "T_sfc": self.T.copy(),
            "albedo_direct": boundary_space.full(0.3),
            "albedo_diffuse": boundary_space.full(0.3),
            "F_turb_energy": zeros(),
            "F_turb_moisture": zeros(),
            "F_turb_rho_tau_xz": zeros(),
            "F_turb_rho_tau_yz": zeros(),
            "F_radiative": zeros(),
            "F_toa": zeros(),
            "P_liq": zeros(),
            "P_snow": zeros(),
            "co2": float(p.co2),
        }
        self._acc_liq = zeros()
        self._acc_snow = zeros()
        self._begin_step(0.0)

    # ----------------- state -----------------

    def get_model_prog_state(self) -> dict[str, np.ndarray]:
        return {"T": self.T, "q": self.q}

    def set_model_prog_state(self, state: dict[str, np.ndarray]) -> None:
        self.T[...] = self.boundary_space.check(state["T"], name=f"{self.name}.T")
        self.q[...] = self.boundary_space.check(state["q"], name=f"{self.name}.q")

    # ----------------- integration -----------------

    def _begin_step(self, span: float) -> None:
        c = self.cache
        c["rho"][...] = self.params.p_sfc / (const.R_D * self.T)
        albedo = 0.5 * (c["albedo_direct"] + c["albedo_diffuse"])
        F_rad, F_toa = gray_radiation(self.insolation, albedo, self.T, c["T_sfc"], c["co2"], self.params)
        c["F_radiative"][...] = F_rad
        c["F_toa"][...] = F_toa
        self._acc_liq[...] = 0.0
        self._acc_snow[...] = 0.0

    def _advance(self, dt: float) -> None:
        c = self.cache
        p = self.params
        heating = c["F_turb_energy"] + c["F_radiative"] - c["F_toa"]
        E = c["F_turb_moisture"]
        self.T += dt * (heating - const.LV * E) / (self.M * const.CP_D)
        self.q += dt * E / self.M

        rho = p.p_sfc / (const.R_D * self.T)
        excess = np.maximum(self.q - q_vap_saturation(self.T, rho), 0.0)
        cond = excess * min(dt / p.tau_cond, 1.0)
        self.q -= cond
        self.T += const.LV * cond / const.CP_D

        rain, snow = partition_precip_phase(self.M * cond, self.T)
        self._acc_liq += rain
        self._acc_snow += snow

    def _end_step(self, span: float) -> None:
        c = self.cache
        if span > 0.0:
            c["P_liq"][...] = -self._acc_liq / span
            c["P_snow"][...] = -self._acc_snow / span
        c["rho"][...] = self.params.p_sfc / (const.R_D * self.T)
