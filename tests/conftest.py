"""
pytest configuration for the coupler test suite

Goals:
- keep tests fast and deterministic
- avoid plotting windows, progress bars and checkpoint I/O unless a test asks
- shrink the default grid unless a test overrides explicitly
"""

import os
import sys

import numpy as np
import pytest

# Ensure project root on sys.path for 'pyesm' and 'scripts' imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)


@pytest.fixture(autouse=True)
def _coupler_env(monkeypatch):
    # Small grid by default (tests can override via monkeypatch in the test)
    monkeypatch.setenv("ESM_N_LAT", os.getenv("ESM_N_LAT", "6"))
    monkeypatch.setenv("ESM_N_LON", os.getenv("ESM_N_LON", "12"))
    # Quiet runs: no tqdm bar, no [Coupler] prints
    monkeypatch.setenv("ESM_DIAG", os.getenv("ESM_DIAG", "0"))
    # Force non-interactive backend for matplotlib (avoid display requirements)
    monkeypatch.setenv("MPLBACKEND", os.getenv("MPLBACKEND", "Agg"))
    # No checkpoint files unless a test enables them explicitly
    monkeypatch.setenv("ESM_CHECKPOINT_HOURS", os.getenv("ESM_CHECKPOINT_HOURS", "0"))
    yield


@pytest.fixture
def space():
    from pyesm.grid import BoundarySpace

    return BoundarySpace(6, 12)


@pytest.fixture
def half_land(space):
    """Land on the western half of the globe, fraction 1."""
    frac = space.zeros()
    frac[:, : space.n_lon // 2] = 1.0
    return frac



def _build_mock_classes():
    from pyesm.coupler.fields import FieldTag
    from pyesm.coupler.interfacer import AtmosModelSimulation

    pushed = {
        FieldTag.TURBULENT_ENERGY_FLUX: "F_turb_energy",
        FieldTag.TURBULENT_MOISTURE_FLUX: "F_turb_moisture",
        FieldTag.TURBULENT_MOMENTUM_FLUX_X: "F_turb_rho_tau_xz",
        FieldTag.TURBULENT_MOMENTUM_FLUX_Y: "F_turb_rho_tau_yz",
        FieldTag.RADIATIVE_ENERGY_FLUX_SFC: "F_radiative",
        FieldTag.RADIATIVE_ENERGY_FLUX_TOA: "F_toa",
        FieldTag.LIQUID_PRECIPITATION: "P_liq",
        FieldTag.SNOW_PRECIPITATION: "P_snow",
    }

    class _MockAtmos(AtmosModelSimulation):
        """
        Column energy E only: dE/dt = F_turb_energy + F_radiative - F_toa.
        With sentinel=True it writes 1000 * (number of completed steps) into
        its radiative flux at the end of every step.
        """

        GETTERS = {
            **pushed,
            FieldTag.ENERGY: lambda sim: sim.E,
            FieldTag.WATER: lambda sim: sim.W,
            FieldTag.CO2: "co2",
        }
        UPDATERS = {
            FieldTag.TURBULENT_ENERGY_FLUX: "F_turb_energy",
            FieldTag.TURBULENT_MOISTURE_FLUX: "F_turb_moisture",
            FieldTag.TURBULENT_MOMENTUM_FLUX_X: "F_turb_rho_tau_xz",
            FieldTag.TURBULENT_MOMENTUM_FLUX_Y: "F_turb_rho_tau_yz",
            FieldTag.SURFACE_TEMPERATURE: "T_sfc",
            FieldTag.SURFACE_DIRECT_ALBEDO: "albedo_direct",
            FieldTag.SURFACE_DIFFUSE_ALBEDO: "albedo_diffuse",
            FieldTag.CO2: "co2",
        }

        def __init__(self, space, *, dt=600.0, E0=1.0e9, name="MockAtmos", sentinel=False):
            super().__init__(name, space, dt)
            self.E = space.full(E0)
            self.W = space.zeros()
            self.sentinel = sentinel
            self.completed_steps = 0
            keys = list(pushed.values()) + ["T_sfc", "albedo_direct", "albedo_diffuse"]
            self.cache = {k: space.zeros() for k in keys}
            self.cache["co2"] = 280.0

        def _advance(self, dt):
            c = self.cache
            self.E += dt * (c["F_turb_energy"] + c["F_radiative"] - c["F_toa"])

        def _end_step(self, span):
            if span > 0.0:
                self.completed_steps += 1
            if self.sentinel:
                self.cache["F_radiative"][...] = 1000.0 * self.completed_steps

    class _FixedFluxes:
        """Turbulent flux strategy returning a constant energy flux everywhere."""

        kind = "fixed"
        surfaces_pull_turbulent = True

        def __init__(self, energy_flux):
            self.energy_flux = float(energy_flux)

        def compute(self, cs):
            space = cs.boundary_space
            return {
                FieldTag.TURBULENT_ENERGY_FLUX: space.full(self.energy_flux),
                FieldTag.TURBULENT_MOISTURE_FLUX: space.zeros(),
                FieldTag.TURBULENT_MOMENTUM_FLUX_X: space.zeros(),
                FieldTag.TURBULENT_MOMENTUM_FLUX_Y: space.zeros(),
            }

        def moisture_flux_for(self, kind, fields):
            return fields.F_turb_moisture

    return _MockAtmos, _FixedFluxes


@pytest.fixture
def mock_atmos_cls():
    return _build_mock_classes()[0]


@pytest.fixture
def fixed_fluxes_cls():
    return _build_mock_classes()[1]


@pytest.fixture
def make_coupled(space, half_land):
    """
    Factory for a small slabplanet (or amip) coupled run: SlabAtmosphere,
    BucketLand on the western half, SlabOcean elsewhere, no sea ice.
    """
    def _make(flux="combined", hours=6, output_dir="output", checkpoint_hours=0.0,
              atmos=None, ocean=None, ice=None, mode=None, callbacks=None):
        from pyesm.coupler import CoupledSimulation, CouplerConfig, ModelSims
        from pyesm.models import BucketLand, PrescribedIce, SlabAtmosphere, SlabOcean

        mode_type = mode.type if mode is not None else "slabplanet"
        config = CouplerConfig(
            n_lat=space.n_lat,
            n_lon=space.n_lon,
            dt_cpl=3600.0,
            t_end=hours * 3600.0,
            mode=mode_type,
            turb_flux_partition=flux,
            energy_check=(mode_type == "slabplanet"),
            checkpoint_hours=checkpoint_hours,
            output_dir=str(output_dir),
            diag=False,
        )
        sims = ModelSims(
            atmos=atmos if atmos is not None else SlabAtmosphere(space, dt=600.0),
            land=BucketLand(space, half_land),
            ocean=ocean if ocean is not None else SlabOcean(space, 1.0 - half_land),
            ice=ice if ice is not None else PrescribedIce(space, 0.0),
        )
        return CoupledSimulation.from_config(config, space, sims, mode=mode, callbacks=callbacks)

    return _make
