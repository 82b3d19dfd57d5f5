from __future__ import annotations

"""
Component model adapter contract (the only view the coupler has of a model).

Purpose
- Every atmosphere/land/ocean/sea-ice implementation subclasses one of the kind
  classes below and implements five operations: get_field, update_field, step,
  reinit and name.
- Field access is dispatched through two per-class tables keyed by FieldTag:
  GETTERS and UPDATERS. A table entry is either a cache key (str) or a function
  taking the simulation (and the value, for updaters). Tags missing from a table
  raise UnsupportedFieldError; nothing falls through to a default.

Design
- get_field returns the cached object itself (no copy) and must not mutate the
  simulation.
- update_field writes in place after validating the value against the
  simulation's boundary space: array slots accept only arrays of exactly the
  boundary shape, scalar slots accept only scalars.
- step(t) advances with the component's own dt, shortening the last substep so
  that the internal clock lands on t exactly. Subclasses implement _advance(dt)
  and optionally the _begin_step/_end_step hooks.

Notes
- SurfaceStub wraps prescribed data (e.g. observed SST) into the same contract;
  its step/reinit leave the cache untouched.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, ClassVar, Union

import numpy as np

from ..errors import FieldShapeError, RestartStateError, UnsupportedFieldError
from ..thermo import PHASE_ICE, PHASE_LIQUID, q_vap_saturation
from .fields import FieldTag

TableEntry = Union[str, Callable[..., Any]]


class ComponentModelSimulation(ABC):
    """Base class for all component models seen by the coupler."""

    kind: ClassVar[str] = "component"
    GETTERS: ClassVar[dict[FieldTag, TableEntry]] = {}
    UPDATERS: ClassVar[dict[FieldTag, TableEntry]] = {}

    def __init__(self, name: str, boundary_space, dt: float, t0: float = 0.0) -> None:
        if dt <= 0.0:
            raise ValueError(f"{name}: dt must be positive, got {dt}")
        self._name = str(name)
        self.boundary_space = boundary_space
        self.dt = float(dt)
        self._t = float(t0)
        self.cache: dict[str, Any] = {}

    # ----------------- contract -----------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def time(self) -> float:
        return self._t

    def supports(self, tag: FieldTag, action: str = "get") -> bool:
        table = self.GETTERS if action == "get" else self.UPDATERS
        return tag in table

    def get_field(self, tag: FieldTag):
        try:
            entry = self.GETTERS[tag]
        except KeyError:
            raise UnsupportedFieldError(self.name, tag, "get") from None
        if callable(entry):
            return entry(self)
        return self.cache[entry]

    def update_field(self, tag: FieldTag, value) -> None:
        try:
            entry = self.UPDATERS[tag]
        except KeyError:
            raise UnsupportedFieldError(self.name, tag, "update") from None
        if callable(entry):
            entry(self, value)
        else:
            self._write_cache(entry, value)

    def step(self, t: float) -> None:
        t = float(t)
        span = t - self._t
        if span < -1e-9 * max(1.0, abs(t)):
            raise ValueError(f"{self.name}: cannot step backwards from t={self._t} to t={t}")
        span = max(span, 0.0)
        self._begin_step(span)
        remaining = span
        while remaining > 0.0:
            h = min(self.dt, remaining)
            if remaining - h < 1e-9 * self.dt:
                h = remaining
            self._advance(h)
            remaining -= h
        self._end_step(span)
        # Clock set from the target, not from the sum of substeps
        self._t = t

    def reinit(self) -> None:
        """Reset integrator bookkeeping to the current prognostic state."""
        self._begin_step(0.0)

    def reset_time(self, t: float) -> None:
        """Move the clock (restart only; prognostic values are untouched)."""
        self._t = float(t)

    # ----------------- optional capabilities -----------------

    def get_model_prog_state(self) -> dict[str, np.ndarray] | None:
        return None

    def set_model_prog_state(self, state: dict[str, np.ndarray]) -> None:
        raise RestartStateError(self.name)

    def nonfinite_state(self) -> list[str]:
        """Names of prognostic variables holding NaN/Inf (empty when healthy)."""
        state = self.get_model_prog_state() or {}
        return [k for k, v in state.items() if not np.all(np.isfinite(v))]

    # ----------------- subclass hooks -----------------

    @abstractmethod
    def _advance(self, dt: float) -> None:
        ...

    def _begin_step(self, span: float) -> None:
        pass

    def _end_step(self, span: float) -> None:
        pass

    # ----------------- helpers -----------------

    def _write_cache(self, key: str, value) -> None:
        target = self.cache[key]
        if isinstance(target, np.ndarray):
            target[...] = self.boundary_space.check(value, name=f"{self.name}.{key}")
        else:
            if np.ndim(value) != 0:
                raise FieldShapeError(f"{self.name}.{key}: expected a scalar, got shape {np.shape(value)}")
            self.cache[key] = float(value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, t={self._t:g})"


class AtmosModelSimulation(ComponentModelSimulation):
    kind = "atmos"


class SurfaceModelSimulation(ComponentModelSimulation):
    kind = "surface"
    saturation_phase: ClassVar[str] = PHASE_LIQUID

    def update_turbulent_fluxes(self, fluxes: dict[FieldTag, np.ndarray]) -> None:
        """
        Receive this surface's own turbulent fluxes (partitioned-state strategy).
        Tags the surface does not consume are skipped.
        """
        for tag, value in fluxes.items():
            if tag in self.UPDATERS:
                self.update_field(tag, value)


class LandModelSimulation(SurfaceModelSimulation):
    kind = "land"


class OceanModelSimulation(SurfaceModelSimulation):
    kind = "ocean"


class SeaIceModelSimulation(SurfaceModelSimulation):
    kind = "ice"
    saturation_phase = PHASE_ICE


def _stub_refresh_humidity(sim: SurfaceStub) -> None:
    sim.cache["q_sfc"][...] = q_vap_saturation(sim.cache["T_sfc"], sim.cache["rho_sfc"], sim.phase)


def _stub_set_temperature(sim: SurfaceStub, value) -> None:
    sim._write_cache("T_sfc", value)
    _stub_refresh_humidity(sim)


def _stub_set_density(sim: SurfaceStub, value) -> None:
    sim._write_cache("rho_sfc", value)
    _stub_refresh_humidity(sim)


class SurfaceStub(SurfaceModelSimulation):
    """
    Prescribed surface (e.g. observed SST or sea ice) behind the adapter contract.

    Only the area fraction and the prescribed-state slots (surface temperature,
    surface air density) can be updated. step/reinit leave the cache untouched.
    """

    kind = "stub"

    GETTERS = {
        FieldTag.AREA_FRACTION: "area_fraction",
        FieldTag.SURFACE_TEMPERATURE: "T_sfc",
        FieldTag.SURFACE_HUMIDITY: "q_sfc",
        FieldTag.AIR_DENSITY: "rho_sfc",
        FieldTag.ROUGHNESS_MOMENTUM: "z0m",
        FieldTag.ROUGHNESS_BUOYANCY: "z0b",
        FieldTag.BETA: "beta",
        FieldTag.SURFACE_DIRECT_ALBEDO: "albedo_direct",
        FieldTag.SURFACE_DIFFUSE_ALBEDO: "albedo_diffuse",
        FieldTag.ENERGY: lambda sim: None,
        FieldTag.WATER: lambda sim: None,
    }
    UPDATERS = {
        FieldTag.AREA_FRACTION: "area_fraction",
        FieldTag.SURFACE_TEMPERATURE: _stub_set_temperature,
        FieldTag.AIR_DENSITY: _stub_set_density,
    }

    def __init__(self,
                 name: str,
                 boundary_space,
                 *,
                 T_sfc,
                 area_fraction,
                 z0m: float = 5e-4,
                 z0b: float = 5e-4,
                 beta: float = 1.0,
                 albedo: float = 0.07,
                 rho_sfc: float = 1.2,
                 phase: str = PHASE_LIQUID,
                 dt: float = 3600.0,
                 t0: float = 0.0) -> None:
        super().__init__(name, boundary_space, dt, t0)
        self.phase = phase
        self.cache = {
            "T_sfc": np.array(self._as_field(T_sfc), dtype=float),
            "area_fraction": np.array(self._as_field(area_fraction), dtype=float),
            "rho_sfc": boundary_space.full(rho_sfc),
            "q_sfc": boundary_space.zeros(),
            "z0m": float(z0m),
            "z0b": float(z0b),
            "beta": float(beta),
            "albedo_direct": float(albedo),
            "albedo_diffuse": float(albedo),
        }
        _stub_refresh_humidity(self)

    def _as_field(self, value):
        if np.ndim(value) == 0:
            return self.boundary_space.full(value)
        return self.boundary_space.check(value, name=f"{self.name} initial field")

    def step(self, t: float) -> None:
        t = float(t)
        if t < self._t - 1e-9 * max(1.0, abs(t)):
            raise ValueError(f"{self.name}: cannot step backwards from t={self._t} to t={t}")
        self._t = t

    def reinit(self) -> None:
        pass

    def update_turbulent_fluxes(self, fluxes: dict[FieldTag, np.ndarray]) -> None:
        pass

    def _advance(self, dt: float) -> None:
        pass
