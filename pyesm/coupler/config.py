from __future__ import annotations

"""
Run configuration for the coupled model (env-driven, ESM_* variables).
"""

import os
from dataclasses import dataclass
from datetime import datetime

MODES = ("slabplanet", "amip")
FLUX_STRATEGIES = ("combined", "partitioned")


@dataclass(frozen=True)
class CouplerConfig:
    """Coupled run configuration; validated on construction."""

    n_lat: int = 32
    n_lon: int = 64
    dt_cpl: float = 3600.0
    dt_atmos: float = 600.0
    dt_land: float = 3600.0
    dt_ocean: float = 3600.0
    dt_ice: float = 3600.0
    t_end: float = 10 * 86400.0
    start_date: datetime = datetime(1979, 1, 1)
    mode: str = "slabplanet"
    turb_flux_partition: str = "combined"
    energy_check: bool = True
    water_check: bool = True
    conservation_softfail: bool = True
    checkpoint_hours: float = 0.0
    diag_hours: float = 24.0
    output_dir: str = "output"
    diag: bool = True

    def __post_init__(self) -> None:
        if self.mode not in MODES:
            raise ValueError(f"Unknown mode: {self.mode!r} (expected one of {MODES})")
        if self.turb_flux_partition not in FLUX_STRATEGIES:
            raise ValueError(
                f"Unknown turbulent flux strategy: {self.turb_flux_partition!r} (expected one of {FLUX_STRATEGIES})"
            )
        if self.dt_cpl <= 0.0:
            raise ValueError(f"dt_cpl must be positive, got {self.dt_cpl}")
        if self.t_end < self.dt_cpl:
            raise ValueError(f"t_end ({self.t_end}) must cover at least one coupling step ({self.dt_cpl})")
        if self.energy_check and self.mode != "slabplanet":
            raise ValueError("energy conservation can only be checked in slabplanet mode (amip is not a closed system)")

    @property
    def n_steps(self) -> int:
        return int(round(self.t_end / self.dt_cpl))

    @classmethod
    def from_env(cls) -> CouplerConfig:
        def _ibool(name: str, default: str = "1") -> bool:
            try:
                return int(os.getenv(name, default)) == 1
            except Exception:
                return default == "1"

        def _int(name: str, default: str) -> int:
            try:
                return int(os.getenv(name, default))
            except Exception:
                return int(default)

        def _float(name: str, default: str) -> float:
            try:
                return float(os.getenv(name, default))
            except Exception:
                return float(default)

        def _date(name: str, default: str) -> datetime:
            try:
                return datetime.fromisoformat(os.getenv(name, default))
            except Exception:
                return datetime.fromisoformat(default)

        mode = os.getenv("ESM_MODE", "slabplanet").strip().lower()
        return cls(
            n_lat=_int("ESM_N_LAT", "32"),
            n_lon=_int("ESM_N_LON", "64"),
            dt_cpl=_float("ESM_DT_CPL", "3600"),
            dt_atmos=_float("ESM_DT_ATMOS", "600"),
            dt_land=_float("ESM_DT_LAND", "3600"),
            dt_ocean=_float("ESM_DT_OCEAN", "3600"),
            dt_ice=_float("ESM_DT_ICE", "3600"),
            t_end=_float("ESM_T_END", str(10 * 86400)),
            start_date=_date("ESM_START_DATE", "1979-01-01"),
            mode=mode,
            turb_flux_partition=os.getenv("ESM_TURB_FLUX_PARTITION", "combined").strip().lower(),
            energy_check=_ibool("ESM_ENERGY_CHECK", "1" if mode == "slabplanet" else "0"),
            water_check=_ibool("ESM_WATER_CHECK", "1"),
            conservation_softfail=_ibool("ESM_CONSERVATION_SOFTFAIL", "1"),
            checkpoint_hours=_float("ESM_CHECKPOINT_HOURS", "0"),
            diag_hours=_float("ESM_DIAG_HOURS", "24"),
            output_dir=os.getenv("ESM_OUTPUT_DIR", "output"),
            diag=_ibool("ESM_DIAG", "1"),
        )
