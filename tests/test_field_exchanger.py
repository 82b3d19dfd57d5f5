"""
Pull/push exchange: ordering within a coupling step, unit and sign
conversions on the land side, stubs left untouched.
"""

from datetime import datetime

import numpy as np
import pytest

from pyesm.coupler.fields import FieldTag


def _mock_cs(space, atmos, land, ocean, ice, fluxes, hours=1):
    from pyesm.coupler import CoupledSimulation, CouplerFields, ModelSims
    from pyesm.coupler.time_manager import CouplerDates

    return CoupledSimulation(
        boundary_space=space,
        fields=CouplerFields(space),
        model_sims=ModelSims(atmos=atmos, land=land, ocean=ocean, ice=ice),
        dates=CouplerDates(datetime(2000, 1, 1)),
        tspan=(0.0, hours * 3600.0),
        dt_cpl=3600.0,
        turbulent_fluxes=fluxes,
        diag=False,
    )


def test_surfaces_see_fluxes_from_the_same_step(space, mock_atmos_cls, fixed_fluxes_cls):
    from pyesm.coupler import SurfaceStub, solve_coupler
    from pyesm.models import SlabOcean

    class RecordingOcean(SlabOcean):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            self.received = []

        def update_field(self, tag, value):
            if tag is FieldTag.RADIATIVE_ENERGY_FLUX_SFC:
                self.received.append((self.time, float(np.asarray(value)[0, 0])))
            super().update_field(tag, value)

    atmos = mock_atmos_cls(space, sentinel=True)
    ocean = RecordingOcean(space, 1.0)
    land = SurfaceStub("land", space, T_sfc=280.0, area_fraction=0.0)
    ice = SurfaceStub("ice", space, T_sfc=271.0, area_fraction=0.0)
    cs = _mock_cs(space, atmos, land, ocean, ice, fixed_fluxes_cls(0.0), hours=4)
    solve_coupler(cs)

    # step k pulls the sentinel written by the atmosphere's step k, before the ocean steps
    assert ocean.received == [
        (0.0, 1000.0),
        (3600.0, 2000.0),
        (7200.0, 3000.0),
        (10800.0, 4000.0),
    ]


def test_step_order(make_coupled):
    from pyesm.coupler.field_exchanger import step_model_sims
    from pyesm.coupler.simulation import initialize_coupler

    log = []
    cs = make_coupled()
    for sim in cs.model_sims:
        def wrap_step(t, _sim=sim, _step=sim.step):
            log.append(("step", _sim.name))
            _step(t)

        def wrap_update(tag, value, _sim=sim, _update=sim.update_field):
            log.append(("update", _sim.name, tag))
            _update(tag, value)

        def wrap_get(tag, _sim=sim, _get=sim.get_field):
            log.append(("get", _sim.name, tag))
            return _get(tag)

        sim.step = wrap_step
        sim.update_field = wrap_update
        sim.get_field = wrap_get

    initialize_coupler(cs)
    log.clear()
    step_model_sims(cs, 3600.0, 1)

    atmos_step = log.index(("step", "SlabAtmosphere"))
    first_flux_in = log.index(("update", "SlabAtmosphere", FieldTag.TURBULENT_ENERGY_FLUX))
    push = log.index(("get", "SlabAtmosphere", FieldTag.RADIATIVE_ENERGY_FLUX_TOA))
    land_pull = log.index(("update", "BucketLand", FieldTag.LIQUID_PRECIPITATION))
    ocean_pull = log.index(("update", "SlabOcean", FieldTag.RADIATIVE_ENERGY_FLUX_SFC))
    ice_pull = log.index(("update", "PrescribedIce", FieldTag.RADIATIVE_ENERGY_FLUX_SFC))
    steps = [log.index(("step", n)) for n in ("BucketLand", "SlabOcean", "PrescribedIce")]

    assert first_flux_in < atmos_step < push < land_pull < ocean_pull < ice_pull < min(steps)
    assert steps == sorted(steps)


def test_land_pull_sign_and_units(make_coupled, space):
    from pyesm.coupler.field_exchanger import land_pull
    from pyesm.coupler.simulation import initialize_coupler

    cs = make_coupled()
    initialize_coupler(cs)
    # coupler precipitation is upward-positive: falling rain/snow is negative
    cs.fields.P_liq = space.full(-1.0e-4)
    cs.fields.P_snow = space.full(-2.0e-5)
    cs.fields.F_turb_moisture = space.full(3.0e-5)
    land_pull(cs)

    land = cs.model_sims.land
    np.testing.assert_allclose(land.cache["P_liq"], 1.0e-7)
    np.testing.assert_allclose(land.cache["P_snow"], 2.0e-8)
    np.testing.assert_allclose(land.cache["evaporation"], 3.0e-8)
    assert np.all(land.cache["P_liq"] > 0.0)


def test_ocean_and_ice_receive_energy_fluxes_only(make_coupled, space):
    from pyesm.coupler.field_exchanger import ice_pull, ocean_pull
    from pyesm.coupler.simulation import initialize_coupler

    cs = make_coupled()
    initialize_coupler(cs)
    cs.fields.F_turb_energy = space.full(42.0)
    cs.fields.F_radiative = space.full(-7.0)
    ocean_pull(cs)
    ice_pull(cs)
    for sim in (cs.model_sims.ocean, cs.model_sims.ice):
        assert np.all(sim.cache["F_turb_energy"] == 42.0)
        assert np.all(sim.cache["F_radiative"] == -7.0)
        assert not sim.supports(FieldTag.LIQUID_PRECIPITATION, "update")


def test_pulls_skip_surface_stubs(make_coupled, space, half_land):
    from pyesm.coupler import SurfaceStub
    from pyesm.coupler.field_exchanger import ocean_pull
    from pyesm.coupler.simulation import initialize_coupler

    stub = SurfaceStub("PrescribedOcean", space, T_sfc=290.0, area_fraction=1.0 - half_land)
    cs = make_coupled(ocean=stub)
    initialize_coupler(cs)
    T_before = stub.cache["T_sfc"].copy()
    cs.fields.F_turb_energy = space.full(500.0)
    ocean_pull(cs)
    assert np.array_equal(stub.cache["T_sfc"], T_before)


def test_component_failure_names_component_and_step(make_coupled, space, half_land):
    from pyesm.coupler import solve_coupler
    from pyesm.errors import ComponentStepError
    from pyesm.models import SlabOcean

    class FailingOcean(SlabOcean):
        def _advance(self, dt):
            super()._advance(dt)
            if self.time >= 2 * 3600.0:
                self.T[0, -1] = np.nan

    ocean = FailingOcean(space, 1.0 - half_land)
    cs = make_coupled(ocean=ocean)
    with pytest.raises(ComponentStepError) as exc:
        solve_coupler(cs)
    assert exc.value.component == "SlabOcean"
    assert exc.value.step_index == 3
    assert "SlabOcean" in str(exc.value)
    assert "non-finite" in str(exc.value)
    assert cs.t == 3 * 3600.0


def test_component_exception_is_wrapped(make_coupled, space):
    from pyesm.coupler import solve_coupler
    from pyesm.errors import ComponentStepError
    from pyesm.models import BucketLand

    class BrokenLand(BucketLand):
        def _advance(self, dt):
            raise FloatingPointError("soil froze solid")

    cs = make_coupled()
    land = BrokenLand(space, cs.model_sims.land.cache["area_fraction"])
    cs.model_sims.land = land
    with pytest.raises(ComponentStepError) as exc:
        solve_coupler(cs)
    assert exc.value.component == "BucketLand"
    assert exc.value.step_index == 1
    assert isinstance(exc.value.__cause__, FloatingPointError)
