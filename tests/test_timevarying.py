"""
Time-varying boundary data: interpolation in time, clamping, monthly
climatologies, NetCDF input regridded onto the boundary space.
"""

from datetime import datetime

import numpy as np
import pytest


def test_linear_interpolation_and_clamping():
    from pyesm.timevarying import TimeVaryingInput

    tv = TimeVaryingInput([datetime(2000, 1, 3), datetime(2000, 1, 1)], [30.0, 10.0], name="co2")
    assert tv.is_scalar
    assert tv.dates[0] == datetime(2000, 1, 1)
    assert tv.evaluate(datetime(2000, 1, 2)) == pytest.approx(20.0)
    assert tv.evaluate(datetime(2000, 1, 1, 12)) == pytest.approx(15.0)
    # flat outside the sampled range
    assert tv.evaluate(datetime(1999, 6, 1)) == 10.0
    assert tv.evaluate(datetime(2001, 1, 1)) == 30.0


def test_field_samples_are_copies(space):
    from pyesm.timevarying import TimeVaryingInput

    tv = TimeVaryingInput([datetime(2000, 1, 1)], [space.full(290.0)], name="SST")
    a = tv.evaluate(datetime(2000, 1, 1))
    a[...] = 0.0
    assert np.all(tv.evaluate(datetime(2000, 1, 1)) == 290.0)


def test_bad_inputs():
    from pyesm.timevarying import TimeVaryingInput

    with pytest.raises(ValueError):
        TimeVaryingInput([], [], name="empty")
    with pytest.raises(ValueError):
        TimeVaryingInput([datetime(2000, 1, 1)], [1.0, 2.0], name="mismatch")
    with pytest.raises(ValueError):
        TimeVaryingInput.monthly_climatology(np.arange(11.0), 2000)


def test_monthly_climatology_wraps_the_year():
    from pyesm.timevarying import TimeVaryingInput

    tv = TimeVaryingInput.monthly_climatology(np.arange(12.0), 2000, n_years=2, name="m")
    assert tv.evaluate(datetime(2000, 1, 15)) == pytest.approx(0.0)
    assert tv.evaluate(datetime(2001, 7, 15)) == pytest.approx(6.0)
    # between 15 Dec (11) and 15 Jan of the next year (0)
    mid = tv.evaluate(datetime(2000, 12, 31))
    assert 0.0 < mid < 11.0
    # early January of the first year sits between the padded December and January
    assert 0.0 < tv.evaluate(datetime(2000, 1, 1)) < 11.0


def test_from_netcdf_regrids(space, tmp_path):
    netCDF4 = pytest.importorskip("netCDF4")
    from pyesm.timevarying import TimeVaryingInput

    lat = np.linspace(-89.0, 89.0, 37)
    lon = np.arange(0.0, 360.0, 5.0)
    path = str(tmp_path / "sst.nc")
    with netCDF4.Dataset(path, "w") as ds:
        ds.createDimension("time", 2)
        ds.createDimension("lat", lat.size)
        ds.createDimension("lon", lon.size)
        vt = ds.createVariable("time", "f8", ("time",))
        vt.units = "days since 2000-01-01"
        vt[:] = [0.0, 31.0]
        ds.createVariable("lat", "f8", ("lat",))[:] = lat
        ds.createVariable("lon", "f8", ("lon",))[:] = lon
        sst = ds.createVariable("SST", "f8", ("time", "lat", "lon"))
        sst[0] = np.full((lat.size, lon.size), 280.0)
        sst[1] = np.full((lat.size, lon.size), 290.0)

    tv = TimeVaryingInput.from_netcdf(path, "SST", space)
    assert tv.dates == [datetime(2000, 1, 1), datetime(2000, 2, 1)]
    assert tv.data.shape == (2,) + space.shape
    np.testing.assert_allclose(tv.evaluate(datetime(2000, 1, 16, 12)), 285.0)


def test_regrid_identity_and_cyclic_longitude(space):
    from pyesm.timevarying import regrid_to_space

    field = space.lat_mesh + 0.01 * space.lon_mesh
    assert np.array_equal(regrid_to_space(space.lat, space.lon, field, space), field)

    # source given on a -180..180 grid with descending latitudes
    lat = np.linspace(80.0, -80.0, 17)
    lon = np.arange(-180.0, 180.0, 10.0)
    src = np.cos(np.deg2rad(lon))[None, :] * np.ones((lat.size, 1))
    out = regrid_to_space(lat, lon, src, space)
    assert out.shape == space.shape
    np.testing.assert_allclose(out, np.cos(np.deg2rad(space.lon_mesh)), atol=0.02)
