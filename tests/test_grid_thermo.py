"""
Boundary space and surface thermodynamics

Covers:
- exact cell areas (sum to the sphere), integrate/global_mean, shape checks
- saturation humidity monotonicity and phase ordering
- surface density extrapolation and precipitation phase split
"""

import numpy as np
import pytest


def test_cell_areas_sum_to_sphere():
    from pyesm.grid import BoundarySpace

    space = BoundarySpace(18, 36, radius=6.371e6)
    assert space.shape == (18, 36)
    assert np.isclose(space.total_area, 4.0 * np.pi * 6.371e6 ** 2, rtol=1e-12)
    # no cell centre on a pole
    assert np.all(np.abs(space.lat) < 90.0)
    assert np.isclose(space.global_mean(space.full(3.5)), 3.5)
    assert np.isclose(space.integrate(2.0), 2.0 * space.total_area)


def test_check_rejects_scalars_and_wrong_shapes(space):
    from pyesm.errors import FieldShapeError

    with pytest.raises(FieldShapeError):
        space.check(1.0, name="T")
    with pytest.raises(FieldShapeError):
        space.check(np.zeros((space.n_lat + 1, space.n_lon)), name="T")
    assert space.check(2.0, allow_scalar=True) == 2.0
    assert space.check(space.zeros()).shape == space.shape


def test_same_as():
    from pyesm.grid import BoundarySpace

    assert BoundarySpace(4, 8).same_as(BoundarySpace(4, 8))
    assert not BoundarySpace(4, 8).same_as(BoundarySpace(4, 9))


def test_saturation_humidity():
    from pyesm.thermo import PHASE_ICE, PHASE_LIQUID, q_vap_saturation, saturation_vapor_pressure

    T = np.array([250.0, 270.0, 290.0, 300.0])
    q = q_vap_saturation(T, 1.2)
    assert np.all(np.diff(q) > 0.0)
    assert np.all((q > 0.0) & (q < 0.1))
    # triple point anchor
    assert np.isclose(saturation_vapor_pressure(273.16), 611.657)
    # below freezing, saturation over ice is lower than over liquid
    assert saturation_vapor_pressure(250.0, PHASE_ICE) < saturation_vapor_pressure(250.0, PHASE_LIQUID)
    with pytest.raises(ValueError):
        saturation_vapor_pressure(280.0, "plasma")


def test_extrapolate_rho_to_sfc():
    from pyesm.thermo import extrapolate_rho_to_sfc

    assert np.isclose(extrapolate_rho_to_sfc(1.2, 280.0, 280.0), 1.2)
    # warmer surface -> denser adiabatic extrapolation
    assert extrapolate_rho_to_sfc(1.2, 280.0, 290.0) > 1.2


def test_partition_precip_phase():
    from pyesm.thermo import partition_precip_phase

    rain, snow = partition_precip_phase(np.array([1.0, 2.0]), np.array([280.0, 260.0]))
    np.testing.assert_array_equal(rain, [1.0, 0.0])
    np.testing.assert_array_equal(snow, [0.0, 2.0])
