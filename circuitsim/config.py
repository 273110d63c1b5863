"""Default configuration values and physical constants for circuitsim.

This module centralizes constants used throughout the simulator. The
physical constants are the classic SPICE values and must stay bit-for-bit
identical so that device results can be cross-validated against reference
simulators.
"""

import math

# Elementary charge (C)
CHARGE = 1.6021918e-19

# Boltzmann's constant (J/K)
BOLTZMANN = 1.3806226e-23

# Offset between Celsius and Kelvin
CELSIUS_KELVIN = 273.15

# Reference temperature in Kelvin (27C = 300.15K)
REFERENCE_TEMPERATURE = 300.15

# Temperature in Kelvin used as default for all analyses
DEFAULT_TEMPERATURE_K = REFERENCE_TEMPERATURE

ROOT2 = math.sqrt(2.0)

# Thermal voltage at 27C
VT0 = BOLTZMANN * (27.0 + CELSIUS_KELVIN) / CHARGE

KOVERQ = BOLTZMANN / CHARGE
