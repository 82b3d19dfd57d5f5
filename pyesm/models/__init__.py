from .atmosphere import AtmosParams, SlabAtmosphere, get_atmos_params_from_env
from .land import BucketLand, BucketParams, get_bucket_params_from_env
from .ocean import SlabOcean, SlabOceanParams, get_slab_ocean_params_from_env
from .sea_ice import IceParams, PrescribedIce, get_ice_params_from_env

__all__ = [
    "AtmosParams",
    "SlabAtmosphere",
    "get_atmos_params_from_env",
    "BucketLand",
    "BucketParams",
    "get_bucket_params_from_env",
    "SlabOcean",
    "SlabOceanParams",
    "get_slab_ocean_params_from_env",
    "IceParams",
    "PrescribedIce",
    "get_ice_params_from_env",
]
