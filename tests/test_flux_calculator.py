"""
Bulk turbulent fluxes and the combined / partitioned strategies.
"""

import numpy as np
import pytest

from pyesm.coupler.fields import FieldTag


def _lowest_level(space, T=280.0, q=0.005, rho=1.2, z=10.0, u=5.0):
    from pyesm.coupler.flux_calculator import AtmosLowestLevel

    return AtmosLowestLevel(T=space.full(T), q=space.full(q), rho=space.full(rho), z=z, u=space.full(u))


def test_bulk_coefficients():
    from pyesm.coupler.flux_calculator import bulk_coefficients

    C_D, C_H = bulk_coefficients(10.0, 1e-3, 1e-3)
    assert C_D > 0.0 and C_H > 0.0
    assert np.isclose(C_D, C_H)
    C_D_rough, _ = bulk_coefficients(10.0, 1e-1, 1e-3)
    assert C_D_rough > C_D


def test_flux_signs_positive_upward(space):
    from pyesm.coupler.flux_calculator import SurfaceState, surface_fluxes

    atm = _lowest_level(space)
    warm_wet = SurfaceState(T=space.full(290.0), q=space.full(0.012), rho=space.full(1.2),
                            z0m=1e-3, z0b=1e-3, beta=1.0)
    flux = surface_fluxes(warm_wet, atm)
    assert set(flux) == {
        FieldTag.TURBULENT_ENERGY_FLUX,
        FieldTag.TURBULENT_MOISTURE_FLUX,
        FieldTag.TURBULENT_MOMENTUM_FLUX_X,
        FieldTag.TURBULENT_MOMENTUM_FLUX_Y,
    }
    assert np.all(flux[FieldTag.TURBULENT_ENERGY_FLUX] > 0.0)
    assert np.all(flux[FieldTag.TURBULENT_MOISTURE_FLUX] > 0.0)
    # eastward wind: momentum flows down into the surface
    assert np.all(flux[FieldTag.TURBULENT_MOMENTUM_FLUX_X] < 0.0)
    assert np.all(flux[FieldTag.TURBULENT_MOMENTUM_FLUX_Y] == 0.0)

    dry = SurfaceState(T=space.full(290.0), q=space.full(0.012), rho=space.full(1.2),
                       z0m=1e-3, z0b=1e-3, beta=0.0)
    assert np.all(surface_fluxes(dry, atm)[FieldTag.TURBULENT_MOISTURE_FLUX] == 0.0)


def test_make_flux_calculator():
    from pyesm.coupler.flux_calculator import (
        CombinedStateFluxes,
        PartitionedStateFluxes,
        make_flux_calculator,
    )

    assert isinstance(make_flux_calculator("combined"), CombinedStateFluxes)
    assert isinstance(make_flux_calculator("Partitioned"), PartitionedStateFluxes)
    with pytest.raises(ValueError):
        make_flux_calculator("mosaic")


def test_env_params(monkeypatch):
    from pyesm.coupler.flux_calculator import get_flux_params_from_env

    monkeypatch.setenv("ESM_GUSTINESS", "0.5")
    monkeypatch.setenv("ESM_Z0_MIN", "not-a-number")
    p = get_flux_params_from_env()
    assert p.gustiness == 0.5
    assert p.z0_min == 1e-6


def _identical_surfaces_cs(space, flux):
    from datetime import datetime

    from pyesm.coupler import CoupledSimulation, CouplerFields, ModelSims, SurfaceStub
    from pyesm.coupler.field_exchanger import import_combined_surface_fields
    from pyesm.coupler.flux_calculator import make_flux_calculator
    from pyesm.coupler.masker import update_surface_fractions
    from pyesm.coupler.time_manager import CouplerDates
    from pyesm.models import SlabAtmosphere

    def stub(name, area):
        return SurfaceStub(name, space, T_sfc=288.0, area_fraction=area, z0m=1e-3, z0b=1e-4, beta=0.8)

    frac = space.zeros()
    frac[:, : space.n_lon // 2] = 0.5
    sims = ModelSims(
        atmos=SlabAtmosphere(space),
        land=stub("land", frac),
        ocean=stub("ocean", 1.0 - frac),
        ice=stub("ice", 0.0),
    )
    cs = CoupledSimulation(
        boundary_space=space,
        fields=CouplerFields(space),
        model_sims=sims,
        dates=CouplerDates(datetime(2000, 1, 1)),
        tspan=(0.0, 3600.0),
        dt_cpl=3600.0,
        turbulent_fluxes=make_flux_calculator(flux),
        diag=False,
    )
    update_surface_fractions(cs)
    import_combined_surface_fields(cs)
    return cs


def test_partitioned_equals_combined_for_identical_surfaces(space):
    combined = _identical_surfaces_cs(space, "combined")
    partitioned = _identical_surfaces_cs(space, "partitioned")
    fc = combined.turbulent_fluxes.compute(combined)
    fp = partitioned.turbulent_fluxes.compute(partitioned)
    for tag in fc:
        np.testing.assert_allclose(fp[tag], fc[tag], rtol=1e-12, atol=1e-15)
    np.testing.assert_allclose(partitioned.fields.q_sfc, combined.fields.q_sfc, rtol=1e-12)
    np.testing.assert_allclose(partitioned.fields.rho_sfc, combined.fields.rho_sfc, rtol=1e-12)


def test_partitioned_fluxes_reach_each_surface(make_coupled):
    from pyesm.coupler.field_exchanger import import_combined_surface_fields
    from pyesm.coupler.masker import combine_surfaces, update_surface_fractions

    cs = make_coupled(flux="partitioned")
    update_surface_fractions(cs)
    import_combined_surface_fields(cs)
    fluxes = cs.turbulent_fluxes.compute(cs)

    land_E = cs.model_sims.land.cache["F_turb_energy"]
    ocean_E = cs.model_sims.ocean.cache["F_turb_energy"]
    assert not np.allclose(land_E, ocean_E)
    # the atmosphere sees the area-weighted sum of what each surface received
    expected = combine_surfaces(cs.surface_masks, {"land": land_E, "ocean": ocean_E, "ice": 0.0})
    np.testing.assert_allclose(fluxes[FieldTag.TURBULENT_ENERGY_FLUX], expected, rtol=1e-12)
    # land evaporation in m/s of liquid water
    np.testing.assert_allclose(
        cs.model_sims.land.cache["evaporation"] * 1000.0,
        cs.turbulent_fluxes.surface_moisture["land"],
        rtol=1e-12,
    )
