#!/usr/bin/env python3
"""
Run the coupled atmosphere / land / ocean / sea-ice model.

Modes:
  slabplanet  slab ocean + bucket land + (empty) sea ice; a closed system, so
              both energy and water conservation are checked.
  amip        prescribed SST (ocean stub), sea-ice concentration and CO2 from
              monthly data (NetCDF files, or an idealized climatology when no
              files are given); only the water budget is checked.

Environment variables (see pyesm.coupler.config.CouplerConfig.from_env):
  ESM_N_LAT / ESM_N_LON   grid size
  ESM_DT_CPL              coupling interval (s)
  ESM_T_END               run length (s)
  ESM_MODE                slabplanet | amip
  ESM_TURB_FLUX_PARTITION combined | partitioned
  ESM_CHECKPOINT_HOURS    checkpoint cadence (0 disables)
  ESM_OUTPUT_DIR          output directory
  ESM_DIAG                1 prints progress / diagnostics

Usage:
  python scripts/run_coupled.py --mode slabplanet --days 10
  python scripts/run_coupled.py --mode amip --sst-file sst.nc --sic-file sic.nc
"""
import argparse
import dataclasses
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np

from pyesm.coupler import (
    CoupledSimulation,
    CouplerConfig,
    ModelSims,
    ModeSpecifics,
    SurfaceStub,
    assert_conservation,
    plot_global_conservation,
    solve_coupler,
    write_conservation_netcdf,
)
from pyesm.coupler.checkpointer import restart_sims
from pyesm.coupler.fields import FieldTag
from pyesm.grid import BoundarySpace
from pyesm.landmask import idealized_land_fraction, load_land_fraction_from_netcdf
from pyesm.models import (
    BucketLand,
    PrescribedIce,
    SlabAtmosphere,
    SlabOcean,
    get_atmos_params_from_env,
    get_bucket_params_from_env,
    get_ice_params_from_env,
    get_slab_ocean_params_from_env,
)
from pyesm.models.ocean import sst_anomaly
from pyesm.timevarying import TimeVaryingInput

T_SEAWATER_FREEZE = 271.35


def idealized_amip_inputs(space: BoundarySpace, year0: int, n_years: int) -> ModeSpecifics:
    """Monthly SST with a seasonally migrating warm pool, SIC where SST is below freezing, rising CO2."""
    sst_months = []
    for m in range(12):
        shift = 10.0 * np.sin(2.0 * np.pi * (m - 3) / 12.0)
        sst_months.append(271.0 + sst_anomaly(space.lat_mesh - shift) - 4.0 * np.abs(np.sin(np.deg2rad(space.lat_mesh))))
    sst_months = np.stack(sst_months)
    sic_months = (sst_months < T_SEAWATER_FREEZE).astype(float)
    co2_months = 340.0 + np.arange(12) * (1.5 / 12.0)
    return ModeSpecifics(
        type="amip",
        SST=TimeVaryingInput.monthly_climatology(sst_months, year0, n_years, name="SST"),
        SIC=TimeVaryingInput.monthly_climatology(sic_months, year0, n_years, name="SIC"),
        CO2=TimeVaryingInput.monthly_climatology(co2_months, year0, n_years, name="CO2"),
    )


def amip_inputs_from_files(args, space: BoundarySpace, fallback: ModeSpecifics) -> ModeSpecifics:
    mode = dataclasses.replace(fallback)
    if args.sst_file:
        mode.SST = TimeVaryingInput.from_netcdf(args.sst_file, args.sst_var, space)
    if args.sic_file:
        # concentration stored in percent
        mode.SIC = TimeVaryingInput.from_netcdf(args.sic_file, args.sic_var, space, scale=args.sic_scale)
    if args.co2_file:
        mode.CO2 = TimeVaryingInput.from_netcdf(args.co2_file, args.co2_var, space)
    return mode


def build_model_sims(config: CouplerConfig, space: BoundarySpace, land_fraction: np.ndarray,
                     mode: ModeSpecifics) -> ModelSims:
    atmos = SlabAtmosphere(space, get_atmos_params_from_env(), dt=config.dt_atmos)
    land = BucketLand(space, land_fraction, get_bucket_params_from_env(), dt=config.dt_land)
    ocean_fraction = 1.0 - land_fraction
    if mode.type == "slabplanet":
        ocean = SlabOcean(space, ocean_fraction, get_slab_ocean_params_from_env(), dt=config.dt_ocean)
        ice = PrescribedIce(space, 0.0, get_ice_params_from_env(), dt=config.dt_ice)
    else:
        date0 = config.start_date
        ocean = SurfaceStub(
            "PrescribedOcean", space,
            T_sfc=mode.SST.evaluate(date0),
            area_fraction=ocean_fraction,
            z0m=5e-5, z0b=5e-5, albedo=0.38, dt=config.dt_ocean,
        )
        sic0 = mode.SIC.evaluate(date0) if mode.SIC is not None else 0.0
        ice = PrescribedIce(space, np.minimum(sic0, ocean_fraction), get_ice_params_from_env(), dt=config.dt_ice)
        if mode.CO2 is not None:
            atmos.update_field(FieldTag.CO2, float(mode.CO2.evaluate(date0)))
    return ModelSims(atmos=atmos, land=land, ocean=ocean, ice=ice)


def main(argv=None):
    ap = argparse.ArgumentParser(description="Run the coupled atmosphere/land/ocean/sea-ice model.")
    ap.add_argument("--mode", choices=("slabplanet", "amip"), default=None)
    ap.add_argument("--days", type=float, default=None, help="Run length in days (overrides ESM_T_END).")
    ap.add_argument("--nlat", type=int, default=None)
    ap.add_argument("--nlon", type=int, default=None)
    ap.add_argument("--dt-cpl", type=float, default=None, help="Coupling interval (s).")
    ap.add_argument("--flux", choices=("combined", "partitioned"), default=None)
    ap.add_argument("--output", type=str, default=None)
    ap.add_argument("--land-frac", type=float, default=0.29, help="Target land fraction of the idealized mask.")
    ap.add_argument("--land-file", type=str, default="", help="NetCDF with a land_fraction variable.")
    ap.add_argument("--sst-file", type=str, default="")
    ap.add_argument("--sst-var", type=str, default="SST")
    ap.add_argument("--sic-file", type=str, default="")
    ap.add_argument("--sic-var", type=str, default="SEAICE")
    ap.add_argument("--sic-scale", type=float, default=0.01)
    ap.add_argument("--co2-file", type=str, default="")
    ap.add_argument("--co2-var", type=str, default="co2")
    ap.add_argument("--restart-t", type=float, default=None, help="Restart from checkpoints written at this time (s).")
    ap.add_argument("--restart-dir", type=str, default="", help="Directory holding checkpoint/ (default: output dir).")
    ap.add_argument("--rtol", type=float, default=1e-6, help="Relative drift tolerance for conservation checks.")
    args = ap.parse_args(argv)

    config = CouplerConfig.from_env()
    overrides = {}
    if args.mode is not None:
        overrides["mode"] = args.mode
        overrides["energy_check"] = args.mode == "slabplanet" and config.energy_check
    if args.days is not None:
        overrides["t_end"] = args.days * 86400.0
    if args.nlat is not None:
        overrides["n_lat"] = args.nlat
    if args.nlon is not None:
        overrides["n_lon"] = args.nlon
    if args.dt_cpl is not None:
        overrides["dt_cpl"] = args.dt_cpl
    if args.flux is not None:
        overrides["turb_flux_partition"] = args.flux
    if args.output is not None:
        overrides["output_dir"] = args.output
    config = dataclasses.replace(config, **overrides)

    space = BoundarySpace(config.n_lat, config.n_lon)
    if args.land_file:
        land_fraction = load_land_fraction_from_netcdf(args.land_file, space)
    else:
        land_fraction = idealized_land_fraction(space, target_land_frac=args.land_frac)

    if config.mode == "amip":
        n_years = int(np.ceil(config.t_end / (365.0 * 86400.0))) + 1
        mode = idealized_amip_inputs(space, config.start_date.year, n_years)
        mode = amip_inputs_from_files(args, space, mode)
    else:
        mode = ModeSpecifics(type="slabplanet")

    model_sims = build_model_sims(config, space, land_fraction, mode)
    cs = CoupledSimulation.from_config(config, space, model_sims, mode=mode)
    if config.diag:
        print(f"[Coupler] {config.mode} run on {space}, flux strategy {cs.turbulent_fluxes.kind}, "
              f"land fraction {space.global_mean(land_fraction):.3f}")

    if args.restart_t is not None:
        restart_sims(cs, args.restart_t, args.restart_dir or config.output_dir)

    solve_coupler(cs)

    os.makedirs(config.output_dir, exist_ok=True)
    if cs.conservation_checks:
        write_conservation_netcdf(cs.conservation_checks, os.path.join(config.output_dir, "conservation.nc"))
    ok = True
    for check in cs.conservation_checks:
        plot_global_conservation(
            check,
            os.path.join(config.output_dir, f"{check.quantity}_by_component.png"),
            os.path.join(config.output_dir, f"{check.quantity}_relative_drift.png"),
        )
        ok = assert_conservation(check, args.rtol, softfail=config.conservation_softfail, diag=config.diag) and ok
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
