"""
Coupler core: field schema, adapter contract, surface composition, flux
exchange, scheduler and conservation checks.
"""

from .config import CouplerConfig
from .conservation import (
    EnergyConservationCheck,
    WaterConservationCheck,
    assert_conservation,
    check_conservation,
    conservation_report,
    plot_global_conservation,
    write_conservation_netcdf,
)
from .field_exchanger import (
    atmos_pull,
    atmos_push,
    ice_pull,
    import_combined_surface_fields,
    land_pull,
    ocean_pull,
    reinit_model_sims,
    step_model_sims,
    update_model_sims,
)
from .fields import COUPLER_FIELD_NAMES, CouplerFields, FieldTag
from .flux_calculator import CombinedStateFluxes, PartitionedStateFluxes, make_flux_calculator
from .interfacer import (
    AtmosModelSimulation,
    ComponentModelSimulation,
    LandModelSimulation,
    OceanModelSimulation,
    SeaIceModelSimulation,
    SurfaceModelSimulation,
    SurfaceStub,
)
from .masker import SurfaceMasks, binary_mask, combine_surfaces, update_surface_fractions
from .simulation import (
    Comms,
    CoupledSimulation,
    ModelSims,
    ModeSpecifics,
    initialize_coupler,
    solve_coupler,
)

__all__ = [
    "CouplerConfig",
    "EnergyConservationCheck",
    "WaterConservationCheck",
    "assert_conservation",
    "check_conservation",
    "conservation_report",
    "plot_global_conservation",
    "write_conservation_netcdf",
    "atmos_pull",
    "atmos_push",
    "ice_pull",
    "import_combined_surface_fields",
    "land_pull",
    "ocean_pull",
    "reinit_model_sims",
    "step_model_sims",
    "update_model_sims",
    "COUPLER_FIELD_NAMES",
    "CouplerFields",
    "FieldTag",
    "CombinedStateFluxes",
    "PartitionedStateFluxes",
    "make_flux_calculator",
    "AtmosModelSimulation",
    "ComponentModelSimulation",
    "LandModelSimulation",
    "OceanModelSimulation",
    "SeaIceModelSimulation",
    "SurfaceModelSimulation",
    "SurfaceStub",
    "SurfaceMasks",
    "binary_mask",
    "combine_surfaces",
    "update_surface_fractions",
    "Comms",
    "CoupledSimulation",
    "ModelSims",
    "ModeSpecifics",
    "initialize_coupler",
    "solve_coupler",
]
