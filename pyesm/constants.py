# pyesm/constants.py

"""
Central repository for the physical constants shared by the coupler and the
component models.
"""

# --- Physical Constants (SI units) ---
SIGMA = 5.670374e-8  # Stefan-Boltzmann constant (W m^-2 K^-4)
GRAV = 9.81  # Gravitational acceleration (m s^-2)
KAPPA_VK = 0.4  # von Karman constant

# --- Dry air / water vapour ---
R_D = 287.05  # Gas constant of dry air (J kg^-1 K^-1)
R_V = 461.5  # Gas constant of water vapour (J kg^-1 K^-1)
CP_D = 1004.0  # Isobaric specific heat of dry air (J kg^-1 K^-1)
CV_D = CP_D - R_D  # Isochoric specific heat of dry air (J kg^-1 K^-1)

# --- Water phases ---
LV = 2.5e6  # Latent heat of vaporization (J kg^-1)
LF = 3.34e5  # Latent heat of fusion (J kg^-1)
LS = LV + LF  # Latent heat of sublimation (J kg^-1)
RHO_LIQ = 1000.0  # Density of liquid water (kg m^-3)
T_FREEZE = 273.15  # Freezing point (K)
T_TRIPLE = 273.16  # Triple point (K)
PRESS_TRIPLE = 611.657  # Vapour pressure at the triple point (Pa)

# --- Planet ---
PLANET_RADIUS = 6.371e6  # Planet radius (m)
SOLAR_CONSTANT = 1361.0  # Top-of-atmosphere insolation (W m^-2)
