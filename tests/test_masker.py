"""
Surface composition: fraction partition, area-weighted blending, failures.
"""

import numpy as np
import pytest


def test_combined_temperature_from_fractions(space):
    from pyesm.coupler.masker import SurfaceMasks, combine_surfaces

    masks = SurfaceMasks(land=space.full(0.3), ocean=space.full(0.7), ice=space.zeros())
    combined = combine_surfaces(masks, {"land": space.full(290.0), "ocean": space.full(285.0), "ice": 271.0})
    np.testing.assert_allclose(combined, 286.5)


def test_masked_out_surface_does_not_leak(space):
    from pyesm.coupler.masker import SurfaceMasks, combine_surfaces

    masks = SurfaceMasks(land=space.full(0.3), ocean=space.full(0.7), ice=space.zeros())
    ice = space.full(np.nan)
    combined = combine_surfaces(masks, {"land": 1.0, "ocean": 2.0, "ice": ice})
    assert np.all(np.isfinite(combined))
    np.testing.assert_allclose(combined, 1.7)


def test_zero_combined_mask_is_an_error(space):
    from pyesm.coupler.masker import SurfaceMasks, combine_surfaces
    from pyesm.errors import SurfaceFractionError

    land = space.full(0.5)
    land[2, 3] = 0.0
    ocean = space.full(0.5)
    ocean[2, 3] = 0.0
    masks = SurfaceMasks(land=land, ocean=ocean, ice=space.zeros())
    with pytest.raises(SurfaceFractionError):
        combine_surfaces(masks, {"land": 1.0, "ocean": 1.0, "ice": 1.0})


def test_stale_masks_and_bad_shapes(space):
    from pyesm.coupler.masker import SurfaceMasks, combine_surfaces
    from pyesm.errors import SurfaceFractionError

    masks = SurfaceMasks(land=space.full(0.3), ocean=space.full(0.7), ice=space.zeros())
    with pytest.raises(SurfaceFractionError):
        combine_surfaces(masks, {"land": 1.0, "ocean": np.zeros((2, 2)), "ice": 1.0})
    masks.invalidate()
    with pytest.raises(SurfaceFractionError):
        combine_surfaces(masks, {"land": 1.0, "ocean": 1.0, "ice": 1.0})


def test_compute_surface_fractions_partition(space, half_land):
    from pyesm.coupler.masker import compute_surface_fractions

    land = 0.5 * half_land + 0.2
    sic = space.full(0.6)
    sic[0, :] = 1.4  # clipped to 1
    masks = compute_surface_fractions(land, sic)
    masks.validate()
    np.testing.assert_allclose(masks.total(), 1.0, atol=1e-12)
    assert np.all(masks.ice <= 1.0 - land + 1e-12)
    assert np.all(masks.ocean >= 0.0)
    # where land is 0.7 the ice is capped at the 0.3 that remains
    np.testing.assert_allclose(masks.ice[1, 0], 0.3)
    np.testing.assert_allclose(masks.ocean[1, 0], 0.0, atol=1e-12)


def test_validate_rejects_bad_partitions(space):
    from pyesm.coupler.masker import SurfaceMasks
    from pyesm.errors import SurfaceFractionError

    with pytest.raises(SurfaceFractionError):
        SurfaceMasks(land=space.full(0.5), ocean=space.full(0.6), ice=space.zeros()).validate()
    with pytest.raises(SurfaceFractionError):
        SurfaceMasks(land=space.full(-0.1), ocean=space.full(1.1), ice=space.zeros()).validate()
    land = space.full(0.5)
    land[0, 0] = np.nan
    with pytest.raises(SurfaceFractionError):
        SurfaceMasks(land=land, ocean=space.full(0.5), ice=space.zeros()).validate()


def test_update_surface_fractions_hands_fractions_back(make_coupled, space, half_land):
    from pyesm.coupler.fields import FieldTag
    from pyesm.coupler.masker import update_surface_fractions
    from pyesm.models import PrescribedIce

    sic = space.full(0.25)
    cs = make_coupled(ice=PrescribedIce(space, sic))
    masks = update_surface_fractions(cs)
    assert cs.surface_masks is masks
    np.testing.assert_allclose(masks.ice, np.minimum(0.25, 1.0 - half_land))
    np.testing.assert_allclose(cs.model_sims.ocean.get_field(FieldTag.AREA_FRACTION), masks.ocean)
    np.testing.assert_allclose(cs.model_sims.ice.get_field(FieldTag.AREA_FRACTION), masks.ice)


def test_binary_mask():
    from pyesm.coupler.masker import binary_mask

    np.testing.assert_array_equal(binary_mask([0.0, 1e-3, 0.5]), [0.0, 1.0, 1.0])
    np.testing.assert_array_equal(binary_mask([0.0, 1e-3, 0.5], threshold=0.1), [0.0, 0.0, 1.0])
