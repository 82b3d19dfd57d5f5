from __future__ import annotations

"""
CoupledSimulation context and the coupling scheduler.

Purpose
- CoupledSimulation is the explicit context object threaded through every
  exchange function: boundary space, coupler fields, the four component
  handles, calendar, masks, conservation checks, callbacks and the flux
  strategy. It is built once after the components are initialized and is
  mutated in place every coupling step.
- solve_coupler runs the sequential loop over t in (t0 + dt_cpl, ..., t_end):
    1. advance the calendar date
    2. amip mode: inject SST / SIC / CO2 interpolated to the date
    3. conservation check on the pre-step state
    4. barrier, then recompute surface masks
    5. distribute cached coupler state to the components
    6. step all components in the fixed pull/push order
    7. re-import the combined surface state (next step's fluxes are computed
       from it in atmos_pull)
    8. calendar callbacks (first of month, checkpoint, diagnostics)
  A final conservation sample is taken at t_end.

Notes
- Any component failure raises ComponentStepError and ends the run; there is
  no retry at this level.
"""

import time
from dataclasses import dataclass, field
from typing import Any

from tqdm import tqdm

from ..errors import CouplerError
from .checkpointer import checkpoint_sims
from .config import CouplerConfig
from .conservation import EnergyConservationCheck, WaterConservationCheck, check_conservation
from .field_exchanger import (
    atmos_pull,
    import_combined_surface_fields,
    reinit_model_sims,
    step_model_sims,
    update_model_sims,
)
from .fields import CouplerFields, FieldTag
from .flux_calculator import make_flux_calculator
from .masker import SurfaceMasks, update_surface_fractions
from .time_manager import (
    CouplerDates,
    HourlyCallback,
    MonthlyCallback,
    current_date,
    print_diagnostics,
    trigger_callback,
    update_firstdayofmonth,
)

COMPONENT_SLOTS: tuple[str, ...] = ("atmos", "land", "ocean", "ice")


@dataclass
class ModelSims:
    atmos: Any
    land: Any
    ocean: Any
    ice: Any

    def __post_init__(self) -> None:
        names = [sim.name for sim in self]
        if len(set(names)) != len(names):
            raise ValueError(f"component names must be unique, got {names}")

    def __iter__(self):
        for slot in COMPONENT_SLOTS:
            yield getattr(self, slot)

    def items(self):
        for slot in COMPONENT_SLOTS:
            yield slot, getattr(self, slot)


class Comms:
    """Single-process communication context; barrier() is a no-op."""

    n_ranks = 1
    rank = 0

    @property
    def is_root(self) -> bool:
        return self.rank == 0

    def barrier(self) -> None:
        pass


@dataclass
class ModeSpecifics:
    type: str = "slabplanet"
    SST: Any = None
    SIC: Any = None
    CO2: Any = None


@dataclass
class CoupledSimulation:
    boundary_space: Any
    fields: CouplerFields
    model_sims: ModelSims
    dates: CouplerDates
    tspan: tuple[float, float]
    dt_cpl: float
    turbulent_fluxes: Any
    mode: ModeSpecifics = field(default_factory=ModeSpecifics)
    conservation_checks: list = field(default_factory=list)
    callbacks: list = field(default_factory=list)
    surface_masks: SurfaceMasks | None = None
    output_dir: str = "output"
    diag: bool = True
    comms: Comms = field(default_factory=Comms)
    t: float | None = None
    initialized: bool = False

    def __post_init__(self) -> None:
        if self.dt_cpl <= 0.0:
            raise ValueError(f"dt_cpl must be positive, got {self.dt_cpl}")
        t0, t1 = (float(x) for x in self.tspan)
        n = (t1 - t0) / self.dt_cpl
        if n < 1.0 or abs(n - round(n)) > 1e-9 * max(1.0, n):
            raise ValueError(f"tspan {self.tspan} is not a positive multiple of dt_cpl={self.dt_cpl}")
        self.tspan = (t0, t1)
        if self.t is None:
            self.t = t0
        for sim in self.model_sims:
            if not sim.boundary_space.same_as(self.boundary_space):
                raise CouplerError(f"{sim.name} is not defined on the coupler boundary space")
            if abs(sim.time - self.t) > 1e-9 * max(1.0, abs(self.t)):
                raise CouplerError(f"{sim.name} clock t={sim.time} differs from coupler t={self.t}")

    @property
    def n_steps(self) -> int:
        return int(round((self.tspan[1] - self.tspan[0]) / self.dt_cpl))

    @classmethod
    def from_config(cls, config: CouplerConfig, boundary_space, model_sims: ModelSims,
                    mode: ModeSpecifics | None = None, callbacks: list | None = None) -> CoupledSimulation:
        mode = mode or ModeSpecifics(type=config.mode)
        checks = []
        if config.energy_check:
            checks.append(EnergyConservationCheck(model_sims))
        if config.water_check:
            checks.append(WaterConservationCheck(model_sims))
        cs = cls(
            boundary_space=boundary_space,
            fields=CouplerFields(boundary_space),
            model_sims=model_sims,
            dates=CouplerDates(date0=config.start_date),
            tspan=(0.0, config.t_end),
            dt_cpl=config.dt_cpl,
            turbulent_fluxes=make_flux_calculator(config.turb_flux_partition),
            mode=mode,
            conservation_checks=checks,
            output_dir=config.output_dir,
            diag=config.diag,
        )
        cs.callbacks = default_callbacks(config, cs.dates) if callbacks is None else list(callbacks)
        return cs


def default_callbacks(config: CouplerConfig, dates: CouplerDates) -> list:
    month_start = dates.date0.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return [
        MonthlyCallback(1, update_firstdayofmonth, month_start, True, name="firstdayofmonth"),
        HourlyCallback(config.checkpoint_hours or 1.0, checkpoint_sims, dates.date0,
                       config.checkpoint_hours > 0.0, name="checkpoint"),
        HourlyCallback(config.diag_hours or 1.0, print_diagnostics, dates.date0,
                       config.diag and config.diag_hours > 0.0, name="diagnostics"),
    ]


def update_prescribed_boundaries(cs) -> None:
    """amip mode: evaluate SST / SIC / CO2 at the current date and inject them."""
    mode = cs.mode
    if mode.type != "amip":
        return
    date = cs.dates.date
    sims = cs.model_sims
    if mode.SST is not None:
        sims.ocean.update_field(FieldTag.SURFACE_TEMPERATURE, mode.SST.evaluate(date))
    if mode.SIC is not None:
        sims.ice.update_field(FieldTag.AREA_FRACTION, mode.SIC.evaluate(date))
    if mode.CO2 is not None:
        sims.atmos.update_field(FieldTag.CO2, mode.CO2.evaluate(date))


def initialize_coupler(cs) -> CoupledSimulation:
    """
    Pre-loop exchange so the first coupling step starts from consistent
    masks, combined surface state and fluxes.
    """
    update_surface_fractions(cs)
    import_combined_surface_fields(cs)
    update_model_sims(cs)
    atmos_pull(cs)
    reinit_model_sims(cs)
    cs.initialized = True
    return cs


def solve_coupler(cs) -> CoupledSimulation:
    if not cs.initialized:
        initialize_coupler(cs)
    t0 = cs.t
    n_left = int(round((cs.tspan[1] - t0) / cs.dt_cpl))
    times = [t0 + k * cs.dt_cpl for k in range(1, n_left + 1)]
    if times:
        times[-1] = cs.tspan[1]
    step0 = int(round((t0 - cs.tspan[0]) / cs.dt_cpl))

    if cs.diag:
        print(f"[Coupler] starting coupling loop: {len(times)} step(s) of {cs.dt_cpl:g}s from {cs.dates.date:%Y-%m-%d %H:%M}")
    walltime = time.time()

    for k, t in enumerate(tqdm(times, disable=not cs.diag), start=step0 + 1):
        cs.dates.date = current_date(cs, t)
        cs.dates.new_month = False

        update_prescribed_boundaries(cs)
        check_conservation(cs)
        cs.comms.barrier()

        update_surface_fractions(cs)
        update_model_sims(cs)

        cs.t = t
        step_model_sims(cs, t, k)
        import_combined_surface_fields(cs)

        for cb in cs.callbacks:
            trigger_callback(cs, cb)

    check_conservation(cs)
    if cs.diag:
        print(f"[Coupler] finished at {cs.dates.date:%Y-%m-%d %H:%M}; walltime {time.time() - walltime:.2f}s")
    return cs
