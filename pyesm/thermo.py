"""
thermo.py

Closed-form thermodynamic relations used at the surface interface.

This module provides:
- saturation_vapor_pressure(T, phase): Clausius-Clapeyron over liquid or ice.
- q_vap_saturation(T, rho, phase): saturation specific humidity at density rho.
- extrapolate_rho_to_sfc(rho_1, T_1, T_sfc): surface air density from the lowest
  atmospheric level assuming an adiabatic, hydrostatic layer.
- partition_precip_phase(P, T): split precipitation into liquid and snow.

Conventions:
- Temperatures in K, densities in kg m^-3, q in kg/kg.
- Saturation uses constant latent heats (LV over liquid, LS over ice), anchored
  at the triple point.
"""

from __future__ import annotations

import numpy as np

from . import constants as const

PHASE_LIQUID = "liquid"
PHASE_ICE = "ice"


def saturation_vapor_pressure(T, phase: str = PHASE_LIQUID) -> np.ndarray:
    """
    Saturation vapour pressure (Pa) from the integrated Clausius-Clapeyron relation.
    """
    if phase == PHASE_LIQUID:
        L = const.LV
    elif phase == PHASE_ICE:
        L = const.LS
    else:
        raise ValueError(f"Unknown phase: {phase!r}")
    T_arr = np.maximum(np.asarray(T, dtype=float), 150.0)
    return const.PRESS_TRIPLE * np.exp(L / const.R_V * (1.0 / const.T_TRIPLE - 1.0 / T_arr))


def q_vap_saturation(T, rho, phase: str = PHASE_LIQUID) -> np.ndarray:
    """
    Saturation specific humidity (kg/kg) at temperature T and air density rho.

    q_sat = e_s(T) / (rho * R_v * T), capped at 1.
    """
    T_arr = np.maximum(np.asarray(T, dtype=float), 150.0)
    rho_arr = np.maximum(np.asarray(rho, dtype=float), 1e-6)
    e_s = saturation_vapor_pressure(T_arr, phase)
    return np.clip(e_s / (rho_arr * const.R_V * T_arr), 0.0, 1.0)


def extrapolate_rho_to_sfc(rho_1, T_1, T_sfc) -> np.ndarray:
    """
    Surface air density from the lowest prognostic level:

        rho_sfc = rho_1 * (T_sfc / T_1) ** (c_v / R_d)

    This is the ideal-gas/hydrostatic closure; it must be re-evaluated every
    time the atmosphere state or the surface temperature changes.
    """
    rho_1 = np.asarray(rho_1, dtype=float)
    T_1 = np.asarray(T_1, dtype=float)
    T_sfc = np.asarray(T_sfc, dtype=float)
    return rho_1 * (T_sfc / T_1) ** (const.CV_D / const.R_D)


def partition_precip_phase(P_flux, T, T_thresh: float = const.T_FREEZE) -> tuple[np.ndarray, np.ndarray]:
    """
    Split total precipitation mass flux into rain and snow by a temperature threshold.
    Args:
      P_flux: total precip flux (kg m^-2 s^-1)
      T: air temperature (K)
      T_thresh: threshold (K): T < T_thresh -> snow, else rain
    Returns:
      (P_rain_flux, P_snow_flux) in kg m^-2 s^-1
    """
    P_flux = np.asarray(P_flux, dtype=float)
    snow_mask = np.asarray(T, dtype=float) < float(T_thresh)
    P_snow = np.where(snow_mask, P_flux, 0.0)
    P_rain = np.where(snow_mask, 0.0, P_flux)
    return P_rain, P_snow
